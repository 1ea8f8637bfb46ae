"""HTTPS redirect policy."""

from __future__ import annotations

import logging
from typing import Optional

from starlette.datastructures import URL
from starlette.responses import RedirectResponse, Response

from .base import Inspector
from .context import InspectionContext

logger = logging.getLogger(__name__)


class TransportPolicy(Inspector):
    """Redirects plain-HTTP requests to HTTPS when enforcement is on."""

    name = "transport"

    def __init__(self, enforce_https: bool = False, https_port: Optional[int] = None):
        self.enforce_https = enforce_https
        self.https_port = https_port

    def redirect_url(self, ctx: InspectionContext) -> str:
        url = URL(scope=ctx.scope)
        hostname = url.hostname or "localhost"
        if self.https_port and self.https_port != 443:
            netloc = f"{hostname}:{self.https_port}"
        elif url.port in (None, 80, 443):
            netloc = hostname
        else:
            netloc = url.netloc
        return str(url.replace(scheme="https", netloc=netloc))

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        if not self.enforce_https or ctx.scheme != "http":
            return None

        target = self.redirect_url(ctx)
        logger.debug("HTTPS_REDIRECT path=%s target=%s", ctx.path, target)
        return RedirectResponse(target, status_code=307)
