"""
Inbound request inspection pipeline

Every request passes these stages in order before reaching the
application; any stage may end the run with a terminal response:

    exception boundary -> security headers -> request shape -> XSS ->
    SQL injection -> transport -> origin -> rate limit ->
    authentication -> authorization

Usage:
    from guard.pipeline import InspectionPipeline, build_inspectors

    app.add_middleware(InspectionPipeline, inspectors=build_inspectors(...))
"""

from typing import Iterable, List, Optional, Sequence

from guard.identity import TokenService

from .auth import (
    AccessRule,
    AuthenticationInspector,
    AuthorizationInspector,
    Requirement,
    anonymous,
    authenticated,
    bearer_token,
    roles_required,
)
from .base import Inspector
from .boundary import ExceptionBoundary
from .context import ClientDisconnected, InspectionContext
from .errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    MalformedInput,
    PayloadTooLarge,
    PipelineRejection,
    RateExceeded,
    ThreatSignatureMatch,
    UnhandledFault,
)
from .headers import SECURITY_HEADERS, SecurityHeaderInjector
from .origin import OriginPolicy
from .rate_limit import (
    InMemoryRateLimiter,
    RateDecision,
    RateLimiter,
    RateLimitInspector,
    RateWindow,
    RedisRateLimiter,
    client_key,
)
from .runner import InspectionPipeline
from .shape import DEFAULT_MAX_BODY_BYTES, RequestShapeValidator
from .threats import SqlInjectionInspector, ThreatInspector, XssInspector
from .transport import TransportPolicy


def build_inspectors(
    tokens: TokenService,
    limiter: RateLimiter,
    access_rules: Sequence[AccessRule],
    allowed_origins: Iterable[str],
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    enforce_https: bool = False,
    https_port: Optional[int] = None,
    trust_forwarded: bool = False,
) -> List[Inspector]:
    """Assemble the inspectors in their fixed order."""
    return [
        ExceptionBoundary(),
        SecurityHeaderInjector(),
        RequestShapeValidator(max_body_bytes=max_body_bytes),
        XssInspector(max_body_bytes=max_body_bytes),
        SqlInjectionInspector(max_body_bytes=max_body_bytes),
        TransportPolicy(enforce_https=enforce_https, https_port=https_port),
        OriginPolicy(allowed_origins),
        RateLimitInspector(limiter, trust_forwarded=trust_forwarded),
        AuthenticationInspector(tokens),
        AuthorizationInspector(access_rules),
    ]


__all__ = [
    # Runner
    'InspectionPipeline',
    'InspectionContext',
    'ClientDisconnected',
    'Inspector',
    'build_inspectors',

    # Stages
    'ExceptionBoundary',
    'SecurityHeaderInjector',
    'SECURITY_HEADERS',
    'RequestShapeValidator',
    'DEFAULT_MAX_BODY_BYTES',
    'ThreatInspector',
    'XssInspector',
    'SqlInjectionInspector',
    'TransportPolicy',
    'OriginPolicy',
    'RateLimitInspector',
    'AuthenticationInspector',
    'AuthorizationInspector',

    # Rate limiting
    'RateLimiter',
    'InMemoryRateLimiter',
    'RedisRateLimiter',
    'RateWindow',
    'RateDecision',
    'client_key',

    # Access rules
    'AccessRule',
    'Requirement',
    'anonymous',
    'authenticated',
    'roles_required',
    'bearer_token',

    # Errors
    'PipelineRejection',
    'MalformedInput',
    'PayloadTooLarge',
    'ThreatSignatureMatch',
    'RateExceeded',
    'AuthenticationFailure',
    'AuthorizationFailure',
    'UnhandledFault',
]
