"""Outermost stage: turns unexpected failures into a generic 500."""

from __future__ import annotations

import logging
from typing import Optional

from starlette.responses import Response

from .base import Inspector
from .context import InspectionContext
from .errors import UnhandledFault

logger = logging.getLogger(__name__)


class ExceptionBoundary(Inspector):
    name = "exception-boundary"

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        return None

    async def on_fault(self, ctx: InspectionContext, exc: BaseException) -> Optional[Response]:
        # Full traceback goes to the log, never to the client
        logger.error(
            "UNHANDLED_EXCEPTION method=%s path=%s client=%s elapsed_ms=%.1f",
            ctx.method,
            ctx.path,
            ctx.client_host,
            ctx.elapsed_ms,
            exc_info=exc,
        )
        return UnhandledFault().to_response()
