"""
Shared signature matcher.

One stateless matcher serves both call sites: the field-level ``NoXss``
validator and the request inspectors in ``guard.pipeline``. Nothing here
keeps state between calls.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from .encoders import variants
from .signatures import Signature, ThreatClass, XSS_SIGNATURES, signatures_for

logger = logging.getLogger(__name__)


class InspectionSource(str, enum.Enum):
    QUERY = "query"
    BODY = "body"
    HEADER = "header"


@dataclass(frozen=True, slots=True)
class InspectionVerdict:
    """Outcome of scanning one request's inputs."""

    matched: bool
    source: Optional[InspectionSource] = None
    matched_signature: Optional[Signature] = None
    matched_variant: Optional[str] = None

    @property
    def threat_class(self) -> Optional[ThreatClass]:
        return self.matched_signature.threat_class if self.matched_signature else None


NO_MATCH = InspectionVerdict(matched=False)


def match(content: Optional[str], signatures: Sequence[Signature]) -> Optional[Signature]:
    """
    Return the first signature, in set order, found anywhere in content.

    Matching is case-insensitive. Empty or None content never matches.
    """
    if not content:
        return None

    for signature in signatures:
        if signature.search(content):
            return signature

    return None


def match_any_variant(content: Optional[str], signatures: Sequence[Signature]) -> tuple[Optional[Signature], Optional[str]]:
    """Run ``match`` over the raw and the percent-decoded form of content."""
    if not content:
        return None, None

    for variant in variants(content):
        signature = match(variant, signatures)
        if signature is not None:
            return signature, variant

    return None, None


def find_threat(content: Optional[str], threat_class: ThreatClass) -> Optional[Signature]:
    return match(content, signatures_for(threat_class))


def scan(
    sources: Mapping[InspectionSource, Iterable[str]],
    signatures: Sequence[Signature],
) -> InspectionVerdict:
    """
    Scan every source and every decoded variant, stopping at the first hit.

    Args:
        sources: Inputs grouped by where they came from, in scan order
        signatures: Signature set to apply

    Returns:
        The first matching verdict, or ``NO_MATCH``
    """
    for source, contents in sources.items():
        for content in contents:
            signature, variant = match_any_variant(content, signatures)
            if signature is not None:
                return InspectionVerdict(
                    matched=True,
                    source=InspectionSource(source),
                    matched_signature=signature,
                    matched_variant=variant,
                )

    return NO_MATCH


def contains_xss(value: Optional[str]) -> bool:
    """Field-level check used by the ``NoXss`` validator (raw value only)."""
    return match(value, XSS_SIGNATURES) is not None
