"""
Rejection taxonomy for the inspection pipeline.

Every rejection carries the status code and the generic public message the
client sees. Diagnostic detail stays in ``reason`` and only reaches the log.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from starlette.responses import JSONResponse


class PipelineRejection(Exception):
    """Terminal outcome raised by an inspector."""

    status_code: int = 400
    public_message: str = "Invalid request"
    log_level: int = logging.WARNING

    def __init__(
        self,
        public_message: Optional[str] = None,
        *,
        reason: str = "",
        headers: Optional[Mapping[str, str]] = None,
    ):
        if public_message is not None:
            self.public_message = public_message
        self.reason = reason
        self.headers = dict(headers or {})
        super().__init__(reason or self.public_message)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            {"detail": self.public_message},
            status_code=self.status_code,
            headers=self.headers or None,
        )


class MalformedInput(PipelineRejection):
    status_code = 400
    public_message = "Invalid request"


class PayloadTooLarge(PipelineRejection):
    status_code = 413
    public_message = "Request too large"


class ThreatSignatureMatch(PipelineRejection):
    status_code = 400
    public_message = "Invalid input detected"


class RateExceeded(PipelineRejection):
    status_code = 429
    public_message = "Too many requests"

    def __init__(self, retry_after: int, *, reason: str = ""):
        self.retry_after = max(int(retry_after), 1)
        super().__init__(reason=reason, headers={"Retry-After": str(self.retry_after)})


class AuthenticationFailure(PipelineRejection):
    status_code = 401
    public_message = "Could not validate credentials"
    log_level = logging.INFO

    def __init__(self, public_message: Optional[str] = None, *, reason: str = ""):
        super().__init__(public_message, reason=reason, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationFailure(PipelineRejection):
    status_code = 403
    public_message = "Not authorized to perform this action"
    log_level = logging.INFO


class UnhandledFault(PipelineRejection):
    status_code = 500
    public_message = "An internal error occurred"
    log_level = logging.ERROR
