"""
Decoder normalizer for signature matching.

Produces the decoded variants of an input so a signature cannot be evaded
by percent-encoding it once. Decoding is a single pass on purpose: the
work per input stays bounded, at the cost of letting doubly-encoded
payloads (e.g. ``%253C``) through undecoded.
"""

import logging
import urllib.parse
from typing import List

logger = logging.getLogger(__name__)

MAX_VARIANTS = 2


def percent_decode(content: str) -> str:
    """Single percent-decoding pass; ``+`` decodes to a space as in form data."""
    return urllib.parse.unquote_plus(content)


def variants(content: str) -> List[str]:
    """
    Generate the decoded variants of content, raw first.

    Args:
        content: Raw input content

    Returns:
        ``[content]`` or ``[content, decoded]`` when decoding changed it
    """
    if not content:
        return [content] if content is not None else []

    decoded = percent_decode(content)
    if decoded == content:
        return [content]

    return [content, decoded]


# Quick indicators that an input carries a second encoding layer which a
# single decode pass leaves undecoded.
DOUBLE_ENCODING_INDICATORS = ("%25",)


def has_double_encoding_indicators(content: str) -> bool:
    """
    Check whether content looks percent-encoded more than once.

    Used for logging only; it never changes a verdict.
    """
    if not content:
        return False

    lowered = content.lower()
    return any(indicator in lowered for indicator in DOUBLE_ENCODING_INDICATORS)
