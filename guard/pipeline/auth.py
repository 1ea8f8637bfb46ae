"""Bearer-token authentication and rule-based authorization stages."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from starlette.responses import Response

from guard.identity import TokenService

from .base import Inspector
from .context import InspectionContext
from .errors import AuthenticationFailure, AuthorizationFailure

logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None

    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None

    return credentials.strip() or None


class AuthenticationInspector(Inspector):
    """
    Resolves the caller's identity from ``Authorization: Bearer``.

    Never rejects on its own: an invalid token leaves the request anonymous
    and the authorization stage decides whether that is acceptable.
    """

    name = "authentication"

    def __init__(self, tokens: TokenService):
        self.tokens = tokens

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        ctx.identity = None
        token = bearer_token(ctx.headers.get("authorization"))
        if token is None:
            return None

        verification = self.tokens.verify(token)
        if verification.ok:
            ctx.identity = verification.identity
        else:
            ctx.state["auth_failure"] = verification.reason
            logger.info(
                "TOKEN_REJECTED reason=%s path=%s client=%s",
                verification.reason,
                ctx.path,
                ctx.client_host,
            )

        return None


class Requirement(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    ROLES = "roles"


@dataclass(frozen=True, slots=True)
class AccessRule:
    """Path prefix plus optional method set mapped to an access requirement."""

    prefix: str
    requirement: Requirement
    methods: Optional[frozenset[str]] = None
    roles: frozenset[str] = field(default_factory=frozenset)

    def matches(self, method: str, path: str) -> bool:
        prefix = self.prefix.rstrip("/")
        if path != prefix and not path.startswith(prefix + "/"):
            return False

        return self.methods is None or method.upper() in self.methods


def anonymous(prefix: str, methods: Optional[Iterable[str]] = None) -> AccessRule:
    return AccessRule(prefix, Requirement.ANONYMOUS, _methods(methods))


def authenticated(prefix: str, methods: Optional[Iterable[str]] = None) -> AccessRule:
    return AccessRule(prefix, Requirement.AUTHENTICATED, _methods(methods))


def roles_required(prefix: str, roles: Iterable[str], methods: Optional[Iterable[str]] = None) -> AccessRule:
    return AccessRule(prefix, Requirement.ROLES, _methods(methods), frozenset(roles))


def _methods(methods: Optional[Iterable[str]]) -> Optional[frozenset[str]]:
    return frozenset(method.upper() for method in methods) if methods is not None else None


class AuthorizationInspector(Inspector):
    """First matching rule wins; paths no rule covers are anonymous."""

    name = "authorization"

    def __init__(self, rules: Sequence[AccessRule]):
        self.rules = tuple(rules)

    def rule_for(self, method: str, path: str) -> Optional[AccessRule]:
        for rule in self.rules:
            if rule.matches(method, path):
                return rule
        return None

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        rule = self.rule_for(ctx.method, ctx.path)
        if rule is None or rule.requirement is Requirement.ANONYMOUS:
            return None

        identity = ctx.identity
        if identity is None:
            raise AuthenticationFailure(reason=ctx.state.get("auth_failure", "no credentials"))

        if rule.requirement is Requirement.ROLES and not identity.has_any_role(rule.roles):
            logger.warning(
                "ACCESS_DENIED subject=%s roles=%s required=%s path=%s",
                identity.subject_id,
                sorted(identity.roles),
                sorted(rule.roles),
                ctx.path,
            )
            raise AuthorizationFailure(reason=f"missing role {sorted(rule.roles)}")

        return None
