"""Signed identity tokens: issuing, verification and the Identity record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(hours=1)

_REQUIRED_CLAIMS_OPTIONS = {
    "require_exp": True,
    "require_iat": True,
    "require_sub": True,
    "require_aud": True,
    "require_iss": True,
    "leeway": 0,
}


@dataclass(frozen=True, slots=True)
class Identity:
    """Verified caller identity, rebuilt from the presented token on every request."""

    subject_id: str
    display_name: str
    roles: frozenset[str]
    issued_at: datetime
    expires_at: datetime
    email: Optional[str] = None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return not self.roles.isdisjoint(roles)


@dataclass(frozen=True, slots=True)
class TokenVerification:
    identity: Optional[Identity]
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.identity is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """
    Issues and verifies HS256 identity tokens.

    The signing key is read-only after construction. Verification accepts
    exactly one algorithm; tokens declaring any other (including ``none``)
    are rejected before their signature is looked at.
    """

    def __init__(
        self,
        secret: str,
        issuer: str,
        audience: str,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        algorithm: str = DEFAULT_ALGORITHM,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("Token signing key is not configured")
        self._secret = secret
        self.issuer = issuer
        self.audience = audience
        self.ttl = ttl
        self.algorithm = algorithm
        self._clock = clock

    def issue(
        self,
        subject_id: str | int,
        display_name: str,
        roles: Iterable[str],
        email: Optional[str] = None,
    ) -> str:
        """Creates a signed token for an already verified principal."""
        issued_at = self._clock()
        claims = {
            "sub": str(subject_id),
            "name": display_name,
            "roles": sorted(set(roles)),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        if email:
            claims["email"] = email

        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> TokenVerification:
        """Validates signature, algorithm, issuer, audience and expiry."""
        if not token:
            return TokenVerification(None, "missing token")

        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            return TokenVerification(None, "malformed token")

        if header.get("alg") != self.algorithm:
            return TokenVerification(None, f"unexpected algorithm {header.get('alg')!r}")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options=_REQUIRED_CLAIMS_OPTIONS,
            )
        except ExpiredSignatureError:
            return TokenVerification(None, "token expired")
        except JWTClaimsError as exc:
            return TokenVerification(None, f"invalid claims: {exc}")
        except JWTError:
            return TokenVerification(None, "invalid signature or structure")

        roles = payload.get("roles", [])
        if isinstance(roles, str):
            roles = [roles]
        if not isinstance(roles, list) or not all(isinstance(role, str) for role in roles):
            return TokenVerification(None, "malformed roles claim")

        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError):
            return TokenVerification(None, "malformed time claims")

        identity = Identity(
            subject_id=payload["sub"],
            display_name=str(payload.get("name") or ""),
            roles=frozenset(roles),
            issued_at=issued_at,
            expires_at=expires_at,
            email=payload.get("email"),
        )
        return TokenVerification(identity)
