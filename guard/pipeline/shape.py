"""Request shape validation: size ceiling, JSON well-formedness, forwarding headers."""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

from starlette.responses import Response

from guard.checks import GENERIC_SUSPICIOUS_SIGNATURES, Signature, match

from .base import Inspector
from .context import InspectionContext
from .errors import MalformedInput, PayloadTooLarge

logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024

FORWARDING_HEADERS = ("x-forwarded-for", "x-real-ip", "x-forwarded-host")


def is_json_content_type(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


class RequestShapeValidator(Inspector):
    name = "request-shape"

    def __init__(
        self,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
        header_signatures: Sequence[Signature] = GENERIC_SUSPICIOUS_SIGNATURES,
    ):
        self.max_body_bytes = max_body_bytes
        self.header_signatures = tuple(header_signatures)

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        self._check_declared_length(ctx)

        if ctx.has_body_method:
            body = await ctx.read_body(limit=self.max_body_bytes)
            if body and is_json_content_type(ctx.content_type):
                try:
                    json.loads(body)
                except (ValueError, RecursionError) as exc:
                    raise MalformedInput("Invalid JSON format", reason=f"json parse error: {exc}") from exc

        self._check_forwarding_headers(ctx)
        return None

    def _check_declared_length(self, ctx: InspectionContext) -> None:
        declared = ctx.headers.get("content-length")
        if declared is None:
            return

        try:
            length = int(declared)
        except ValueError as exc:
            raise MalformedInput(reason=f"non-numeric content-length {declared[:32]!r}") from exc

        if length < 0:
            raise MalformedInput(reason="negative content-length")

        if length > self.max_body_bytes:
            raise PayloadTooLarge(reason=f"declared length {length} exceeds {self.max_body_bytes}")

    def _check_forwarding_headers(self, ctx: InspectionContext) -> None:
        for header_name in FORWARDING_HEADERS:
            for value in ctx.headers.getlist(header_name):
                signature = match(value, self.header_signatures)
                if signature is not None:
                    logger.warning(
                        "SUSPICIOUS_HEADER header=%s signature=%s client=%s",
                        header_name,
                        signature.id,
                        ctx.client_host,
                    )
                    raise MalformedInput(reason=f"suspicious {header_name} header ({signature.id})")
