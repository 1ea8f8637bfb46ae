"""XSS and SQL-injection inspection of query strings and request bodies."""

from __future__ import annotations

import hashlib
import logging
from typing import Optional, Sequence

from starlette.responses import Response

from guard.checks import (
    InspectionSource,
    InspectionVerdict,
    Signature,
    ThreatClass,
    has_double_encoding_indicators,
    scan,
    signatures_for,
)

from .base import Inspector
from .context import InspectionContext
from .errors import ThreatSignatureMatch
from .shape import is_json_content_type

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 64

FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


def _body_is_inspected(ctx: InspectionContext) -> bool:
    if not ctx.has_body_method:
        return False

    content_type = ctx.content_type
    media_type = content_type.split(";", 1)[0].strip().lower()
    return is_json_content_type(content_type) or media_type == FORM_MEDIA_TYPE


def payload_fingerprint(content: str) -> tuple[str, str]:
    """Short preview and SHA-256 of a payload, for logs only."""
    preview = content[:PREVIEW_CHARS].encode("unicode_escape").decode("ascii")
    digest = hashlib.sha256(content.encode("utf-8", errors="ignore")).hexdigest()
    return preview, digest


class ThreatInspector(Inspector):
    """Scans the query string and inspectable bodies against one threat class."""

    def __init__(
        self,
        threat_class: ThreatClass,
        signatures: Optional[Sequence[Signature]] = None,
        max_body_bytes: Optional[int] = None,
    ):
        self.threat_class = ThreatClass(threat_class)
        self.signatures = tuple(signatures if signatures is not None else signatures_for(self.threat_class))
        self.max_body_bytes = max_body_bytes
        self.name = f"{self.threat_class.value}-inspection"

    async def collect(self, ctx: InspectionContext) -> dict[InspectionSource, list[str]]:
        sources: dict[InspectionSource, list[str]] = {InspectionSource.QUERY: [ctx.query_string]}

        if _body_is_inspected(ctx):
            body = await ctx.read_body(limit=self.max_body_bytes)
            if body:
                sources[InspectionSource.BODY] = [body.decode("utf-8", errors="ignore")]

        return sources

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        sources = await self.collect(ctx)
        verdict = scan(sources, self.signatures)
        if not verdict.matched:
            return None

        self._log_match(ctx, verdict, sources)
        raise ThreatSignatureMatch(
            reason=f"{self.threat_class.value} signature {verdict.matched_signature.id} in {verdict.source.value}"
        )

    def _log_match(
        self,
        ctx: InspectionContext,
        verdict: InspectionVerdict,
        sources: dict[InspectionSource, list[str]],
    ) -> None:
        raw = next((content for content in sources[verdict.source] if content), "")
        preview, digest = payload_fingerprint(raw)
        logger.warning(
            "THREAT_SIGNATURE_MATCH class=%s signature=%s source=%s method=%s path=%s client=%s "
            "double_encoded=%s preview=%s sha256=%s",
            self.threat_class.value,
            verdict.matched_signature.id,
            verdict.source.value,
            ctx.method,
            ctx.path,
            ctx.client_host,
            has_double_encoding_indicators(raw),
            preview,
            digest,
        )


class XssInspector(ThreatInspector):
    def __init__(self, max_body_bytes: Optional[int] = None):
        super().__init__(ThreatClass.XSS, max_body_bytes=max_body_bytes)


class SqlInjectionInspector(ThreatInspector):
    def __init__(self, max_body_bytes: Optional[int] = None):
        super().__init__(ThreatClass.SQL_INJECTION, max_body_bytes=max_body_bytes)
