"""Security header injection."""

from __future__ import annotations

from typing import Mapping, Optional

from starlette.responses import Response

from .base import Inspector
from .context import InspectionContext

SECURITY_HEADERS: Mapping[str, str] = {
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline';",
}


class SecurityHeaderInjector(Inspector):
    """Stamps hardening headers on every response. Never rejects."""

    name = "security-headers"

    def __init__(self, headers: Optional[Mapping[str, str]] = None):
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        ctx.response_headers.update(self.headers)
        return None
