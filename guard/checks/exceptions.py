"""
Custom exceptions for the signature matching system.

Signature sets are built once at import time, so these are raised while
the process starts and never per request.
"""

import logging

logger = logging.getLogger(__name__)


class SignatureError(Exception):
    """Base exception for signature set errors."""

    def __init__(self, message: str, pattern: str = None):
        self.pattern = pattern[:100] if pattern else None
        super().__init__(message)
        logger.error(f"Signature error: {message}")


class SignatureComplexityError(SignatureError):
    """Raised when a signature pattern exceeds complexity limits."""

    def __init__(self, pattern: str, reason: str):
        message = f"Signature pattern rejected ({reason}): {pattern[:50]}..."
        super().__init__(message, pattern=pattern)


class SignatureCompilationError(SignatureError):
    """Raised when a signature pattern fails to compile."""

    def __init__(self, pattern: str, error: str):
        message = f"Failed to compile signature pattern: {error}"
        super().__init__(message, pattern=pattern)
