"""Ordered inspection pipeline installed as pure ASGI middleware."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from starlette.datastructures import MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .base import Inspector
from .context import ClientDisconnected, InspectionContext
from .errors import PipelineRejection, UnhandledFault

logger = logging.getLogger(__name__)
_request_logger = logging.getLogger("app.requests")


class InspectionPipeline:
    """
    Runs every inspector in order before the wrapped application.

    The first inspector to return a response or raise a rejection ends the
    run. Headers collected on the context are applied to whichever response
    is sent, terminal or downstream.
    """

    def __init__(self, app: ASGIApp, inspectors: Sequence[Inspector]):
        self.app = app
        self.inspectors: tuple[Inspector, ...] = tuple(inspectors)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        ctx = InspectionContext(scope, receive)

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                ctx.response_started = True
                ctx.status_code = message["status"]
                headers = MutableHeaders(scope=message)
                for name, value in ctx.response_headers.items():
                    if name.lower() == "vary":
                        headers.add_vary_header(value)
                    else:
                        headers[name] = value
            await send(message)

        try:
            response = await self._inspect(ctx)
        except ClientDisconnected:
            ctx.release_body()
            logger.info("CLIENT_DISCONNECTED method=%s path=%s client=%s", ctx.method, ctx.path, ctx.client_host)
            return

        if response is None:
            try:
                await self.app(scope, ctx.replay_receive(), send_with_headers)
            except Exception as exc:
                if ctx.response_started:
                    logger.exception(
                        "UNHANDLED_EXCEPTION after response start method=%s path=%s", ctx.method, ctx.path
                    )
                    raise
                response = await self._fault_response(ctx, exc)

        if response is not None:
            await response(scope, receive, send_with_headers)

        self._log_outcome(ctx)

    async def _inspect(self, ctx: InspectionContext) -> Optional[Response]:
        for inspector in self.inspectors:
            try:
                response = await inspector.inspect(ctx)
            except ClientDisconnected:
                raise
            except PipelineRejection as rejection:
                return self._reject(ctx, inspector, rejection)
            except Exception as exc:
                return await self._fault_response(ctx, exc)

            if response is not None:
                return response

        return None

    def _reject(self, ctx: InspectionContext, inspector: Inspector, rejection: PipelineRejection) -> Response:
        logger.log(
            rejection.log_level,
            "PIPELINE_REJECTION stage=%s status=%d method=%s path=%s client=%s reason=%s",
            inspector.name,
            rejection.status_code,
            ctx.method,
            ctx.path,
            ctx.client_host,
            rejection.reason or rejection.public_message,
        )
        return rejection.to_response()

    async def _fault_response(self, ctx: InspectionContext, exc: Exception) -> Response:
        for inspector in self.inspectors:
            response = await inspector.on_fault(ctx, exc)
            if response is not None:
                return response

        logger.error(
            "UNHANDLED_EXCEPTION method=%s path=%s client=%s",
            ctx.method,
            ctx.path,
            ctx.client_host,
            exc_info=exc,
        )
        return UnhandledFault().to_response()

    def _log_outcome(self, ctx: InspectionContext) -> None:
        status = ctx.status_code or 0
        if status >= 500:
            _request_logger.error(
                "SERVER_ERROR status=%d method=%s path=%s client=%s elapsed_ms=%.1f",
                status,
                ctx.method,
                ctx.path,
                ctx.client_host,
                ctx.elapsed_ms,
            )
        elif status >= 400:
            _request_logger.warning(
                "CLIENT_ERROR status=%d method=%s path=%s client=%s elapsed_ms=%.1f",
                status,
                ctx.method,
                ctx.path,
                ctx.client_host,
                ctx.elapsed_ms,
            )
        else:
            _request_logger.debug(
                "OK status=%d method=%s path=%s elapsed_ms=%.1f",
                status,
                ctx.method,
                ctx.path,
                ctx.elapsed_ms,
            )
