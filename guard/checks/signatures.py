"""
Fixed threat signature sets.

Every signature is compiled once when this module is imported and the
resulting tuples are never mutated. Order inside a set is significant: the
matcher reports the first signature that matches.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Iterable

from .exceptions import SignatureCompilationError, SignatureComplexityError

MAX_PATTERN_LENGTH = 500
MAX_PATTERN_GROUPS = 20

# Constructs known to backtrack catastrophically on hostile input
_DANGEROUS_CONSTRUCTS = (
    re.compile(r"\(\?\=.*\)\+"),
    re.compile(r"\(\?\!.*\)\+"),
    re.compile(r"\(\?\<\=.*\)\+"),
    re.compile(r"\(\?\<\!.*\)\+"),
    re.compile(r"\(\.\*\)\+\\1"),
    re.compile(r"\(.*\)\\1\+"),
    re.compile(r"\([^)]*[+*]\)[+*]"),
)


class ThreatClass(str, enum.Enum):
    XSS = "xss"
    SQL_INJECTION = "sql-injection"
    GENERIC_SUSPICIOUS = "generic-suspicious"


@dataclass(frozen=True, slots=True)
class Signature:
    """A compiled threat pattern tagged with its threat class."""

    id: str
    threat_class: ThreatClass
    pattern: str
    description: str = ""
    regex: re.Pattern = field(default=None, compare=False, repr=False)

    def search(self, content: str) -> bool:
        return self.regex.search(content) is not None


def validate_pattern_complexity(pattern: str) -> None:
    """
    Reject patterns that could make a scan run away.

    Raises:
        SignatureComplexityError: If the pattern is too long, has too many
            groups or contains a nested-quantifier construct
    """
    if len(pattern) > MAX_PATTERN_LENGTH:
        raise SignatureComplexityError(pattern, f"longer than {MAX_PATTERN_LENGTH} chars")

    if pattern.count("(") > MAX_PATTERN_GROUPS:
        raise SignatureComplexityError(pattern, f"more than {MAX_PATTERN_GROUPS} groups")

    for dangerous in _DANGEROUS_CONSTRUCTS:
        if dangerous.search(pattern):
            raise SignatureComplexityError(pattern, "nested quantifier")


def compile_signature(
    signature_id: str,
    threat_class: ThreatClass,
    pattern: str,
    description: str = "",
) -> Signature:
    validate_pattern_complexity(pattern)

    try:
        # No DOTALL: '.' never crosses a line break, which bounds lazy scans per line
        compiled = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise SignatureCompilationError(pattern, str(e)) from e

    return Signature(
        id=signature_id,
        threat_class=threat_class,
        pattern=pattern,
        description=description,
        regex=compiled,
    )


def _build_set(threat_class: ThreatClass, prefix: str, entries: Iterable[tuple[str, str]]) -> tuple[Signature, ...]:
    return tuple(
        compile_signature(f"{prefix}-{index:03d}", threat_class, pattern, description)
        for index, (pattern, description) in enumerate(entries, start=1)
    )


XSS_SIGNATURES: tuple[Signature, ...] = _build_set(
    ThreatClass.XSS,
    "xss",
    [
        (r"<script[^>]*>.*?</script>", "script tag pair"),
        (r"javascript:", "javascript URI scheme"),
        (r"on\w+\s*=", "inline event handler attribute"),
        (r"<iframe[^>]*>", "iframe tag"),
        (r"<object[^>]*>", "object tag"),
        (r"<embed[^>]*>", "embed tag"),
        (r"<link[^>]*>", "link tag"),
        (r"<meta[^>]*>", "meta tag"),
        (r"<img[^>]*onerror[^>]*>", "image tag with onerror handler"),
        (r"vbscript:", "vbscript URI scheme"),
        (r"data:", "data URI scheme"),
        (r"&#x?[0-9a-f]+;", "hex HTML entity escape"),
        (r"&#[0-9]+;", "numeric HTML entity escape"),
        (r"%3C.*?%3E", "percent-encoded tag"),
        (r"&lt;.*?&gt;", "entity-encoded tag"),
        (r"<.*?>", "generic tag-like sequence"),
    ],
)

SQL_INJECTION_SIGNATURES: tuple[Signature, ...] = _build_set(
    ThreatClass.SQL_INJECTION,
    "sqli",
    [
        (r"(\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|EXECUTE|UNION|OR|AND)\b)", "SQL keyword"),
        (r"(--|#|/\*|\*/)", "SQL comment marker"),
        (r"(\b(WAITFOR|DELAY|SLEEP)\b)", "time-delay function"),
        (r"(\b(INFORMATION_SCHEMA|sys\.|sysobjects|syscolumns)\b)", "schema introspection"),
        (r"(\b(xp_|sp_)\w*\b)", "extended/stored procedure"),
        (r"(\b(CAST|CONVERT)\s*\()", "type conversion call"),
        (r"(\b(CHAR|ASCII|SUBSTRING|LEN)\s*\()", "string function call"),
        (r"(\b(HAVING|GROUP BY|ORDER BY)\b)", "result shaping clause"),
        (r"(\b(UNION ALL|UNION SELECT)\b)", "union query"),
        (r"""(\b(OR 1=1|OR '1'='1'|OR "1"="1")\b)""", "OR tautology"),
        (r"""(\b(AND 1=1|AND '1'='1'|AND "1"="1")\b)""", "AND tautology"),
        (r"('.*?OR.*?'.*?=.*?')", "quote-balanced OR tautology"),
        (r"('.*?AND.*?'.*?=.*?')", "quote-balanced AND tautology"),
        (r"(\bOR\s+\d+\s*=\s*\d+\b)", "numeric OR tautology"),
        (r"(\bAND\s+\d+\s*=\s*\d+\b)", "numeric AND tautology"),
        (r"('.*?UNION.*?SELECT)", "quote-led UNION SELECT"),
        (r"('.*?DROP.*?TABLE)", "quote-led DROP TABLE"),
        (r"('.*?INSERT.*?INTO)", "quote-led INSERT INTO"),
        (r"('.*?UPDATE.*?SET)", "quote-led UPDATE SET"),
        (r"('.*?DELETE.*?FROM)", "quote-led DELETE FROM"),
    ],
)

GENERIC_SUSPICIOUS_SIGNATURES: tuple[Signature, ...] = _build_set(
    ThreatClass.GENERIC_SUSPICIOUS,
    "generic",
    [
        (r"<script", "script tag opener"),
        (r"javascript:", "javascript URI scheme"),
        (r"vbscript:", "vbscript URI scheme"),
        (r"data:", "data URI scheme"),
        (r"file:", "file URI scheme"),
        (r"ftp:", "ftp URI scheme"),
        (r"gopher:", "gopher URI scheme"),
        (r"telnet:", "telnet URI scheme"),
        (r"news:", "news URI scheme"),
        (r"mailto:", "mailto URI scheme"),
        (r"\b(UNION|SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER)\b", "SQL keyword"),
        (r"\b(OR|AND)\s+\d+\s*=\s*\d+", "numeric tautology"),
        (r"--", "SQL line comment"),
        (r"/\*", "SQL block comment opener"),
        (r"\*/", "SQL block comment closer"),
    ],
)

SIGNATURE_SETS: dict[ThreatClass, tuple[Signature, ...]] = {
    ThreatClass.XSS: XSS_SIGNATURES,
    ThreatClass.SQL_INJECTION: SQL_INJECTION_SIGNATURES,
    ThreatClass.GENERIC_SUSPICIOUS: GENERIC_SUSPICIOUS_SIGNATURES,
}


def signatures_for(threat_class: ThreatClass) -> tuple[Signature, ...]:
    return SIGNATURE_SETS[ThreatClass(threat_class)]
