"""Cross-origin policy."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from starlette.responses import PlainTextResponse, Response

from .base import Inspector
from .context import InspectionContext

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
PREFLIGHT_MAX_AGE = 600


def normalize_origin(origin: str) -> str:
    return origin.strip().rstrip("/").lower()


class OriginPolicy(Inspector):
    """
    Applies the allowed-origin list.

    Preflight requests end the run here. Simple requests from an allowed
    origin get ``Access-Control-Allow-Origin`` and continue; requests from
    any other origin continue without CORS headers, leaving the browser to
    block the response.
    """

    name = "origin"

    def __init__(
        self,
        allowed_origins: Iterable[str],
        allowed_methods: Iterable[str] = DEFAULT_ALLOWED_METHODS,
        max_age: int = PREFLIGHT_MAX_AGE,
    ):
        self.allowed_origins = frozenset(normalize_origin(origin) for origin in allowed_origins)
        self.allow_all = "*" in self.allowed_origins
        self.allowed_methods = tuple(method.upper() for method in allowed_methods)
        self.max_age = max_age

    def is_allowed(self, origin: str) -> bool:
        return self.allow_all or normalize_origin(origin) in self.allowed_origins

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        origin = ctx.headers.get("origin")
        if not origin:
            return None

        is_preflight = ctx.method == "OPTIONS" and "access-control-request-method" in ctx.headers
        allowed = self.is_allowed(origin)

        if is_preflight:
            return self._preflight(ctx, origin, allowed)

        if allowed:
            ctx.response_headers["Access-Control-Allow-Origin"] = origin
            ctx.response_headers["Vary"] = "Origin"
        else:
            logger.debug("CORS_ORIGIN_REJECTED origin=%s path=%s", origin[:100], ctx.path)

        return None

    def _preflight(self, ctx: InspectionContext, origin: str, allowed: bool) -> Response:
        requested_method = ctx.headers.get("access-control-request-method", "").upper()
        if not allowed or requested_method not in self.allowed_methods:
            logger.info(
                "CORS_PREFLIGHT_REJECTED origin=%s method=%s path=%s",
                origin[:100],
                requested_method,
                ctx.path,
            )
            return PlainTextResponse("Disallowed CORS origin", status_code=400)

        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ", ".join(self.allowed_methods),
            "Access-Control-Max-Age": str(self.max_age),
            "Vary": "Origin",
        }
        requested_headers = ctx.headers.get("access-control-request-headers")
        if requested_headers:
            headers["Access-Control-Allow-Headers"] = requested_headers

        return Response(status_code=204, headers=headers)
