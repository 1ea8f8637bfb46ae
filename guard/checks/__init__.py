"""
Threat signature checks

Deterministic signature matching shared by request inspection and
field-level validation:

- Fixed, ordered signature sets per threat class (xss, sql-injection,
  generic-suspicious), compiled once at import
- A single percent-decoding pass so encoded payloads are still matched
- A pure matcher returning the first matching signature

Usage:
    from guard.checks import match, XSS_SIGNATURES

    signature = match(content, XSS_SIGNATURES)
"""

from .encoders import variants, percent_decode, has_double_encoding_indicators
from .exceptions import SignatureError, SignatureCompilationError, SignatureComplexityError
from .matcher import (
    InspectionSource,
    InspectionVerdict,
    NO_MATCH,
    contains_xss,
    find_threat,
    match,
    match_any_variant,
    scan,
)
from .signatures import (
    GENERIC_SUSPICIOUS_SIGNATURES,
    SQL_INJECTION_SIGNATURES,
    XSS_SIGNATURES,
    Signature,
    ThreatClass,
    compile_signature,
    signatures_for,
)

__all__ = [
    # Signatures
    'Signature',
    'ThreatClass',
    'XSS_SIGNATURES',
    'SQL_INJECTION_SIGNATURES',
    'GENERIC_SUSPICIOUS_SIGNATURES',
    'compile_signature',
    'signatures_for',

    # Matching
    'InspectionSource',
    'InspectionVerdict',
    'NO_MATCH',
    'match',
    'match_any_variant',
    'find_threat',
    'scan',
    'contains_xss',

    # Decoding
    'variants',
    'percent_decode',
    'has_double_encoding_indicators',

    # Exceptions
    'SignatureError',
    'SignatureCompilationError',
    'SignatureComplexityError',
]
