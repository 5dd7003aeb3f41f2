"""
API Error Taxonomy and Error Normalizer.

Every failure leaving the service is an ApiError with a body of
``{"code": int, "display": str}``. The code set is fixed:

    0  unknown / unclassified (backend failures, bad input, unknown mode)
    1  unknown voice for the resolved mode
    2  text longer than max_length (or the backend's own limit)
    3  speaking rate outside the adapter's bounds
    4  Authorization header missing or wrong while a secret is configured

Backend failures never get new codes; they fold into code 0 with a
descriptive display string and an HTTP status that tells operators what
kind of failure it was:

    RateLimitError                          -> 429
    BackendUnavailableError, BackendBusyError -> 503
    BackendTimeoutError                     -> 504
    other AdapterError                      -> 502
    anything unexpected                     -> 500
"""
from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict

from tts_service.core.logging import exception, get_logger
from tts_service.tts.errors import (
    AdapterError,
    BackendBusyError,
    BackendTimeoutError,
    BackendUnavailableError,
    RateLimitError,
    VoiceNotFoundError,
)

_LOG = get_logger("tts-service.errors")


class ErrorCode(IntEnum):
    UNKNOWN = 0
    UNKNOWN_VOICE = 1
    MAX_LENGTH_EXCEEDED = 2
    SPEAKING_RATE_EXCEEDED = 3
    AUTH_MISSING = 4


class ApiError(Exception):
    """
    Error returned to the caller.

    Attributes:
        code: ErrorCode value.
        display: Human-readable message.
        status_code: HTTP status used at the exit path; never 200.
    """

    code: ErrorCode = ErrorCode.UNKNOWN
    status_code: int = 400

    def __init__(self, display: str, code: ErrorCode | None = None, status_code: int | None = None):
        super().__init__(display)
        self.display = display
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"code": int(self.code), "display": self.display}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={int(self.code)}, status={self.status_code}, display={self.display!r})"


class InvalidRequestError(ApiError):
    """Malformed query parameter (code 0)."""


class UnknownModeError(ApiError):
    def __init__(self, mode: str | None):
        super().__init__(f"Unknown mode: {mode}" if mode else "Missing mode")
        self.mode = mode


class UnknownVoiceError(ApiError):
    code = ErrorCode.UNKNOWN_VOICE


class MaxLengthExceededError(ApiError):
    code = ErrorCode.MAX_LENGTH_EXCEEDED


class SpeakingRateExceededError(ApiError):
    code = ErrorCode.SPEAKING_RATE_EXCEEDED


class AuthError(ApiError):
    code = ErrorCode.AUTH_MISSING
    status_code = 403


def normalize_error(exc: BaseException) -> ApiError:
    """
    Map any exception to an ApiError.

    ApiErrors pass through untouched. Adapter failures keep their message
    as the display string. Unexpected exceptions get a generic display and
    are logged with their traceback.
    """
    if isinstance(exc, ApiError):
        return exc

    if isinstance(exc, VoiceNotFoundError):
        return UnknownVoiceError(exc.message)

    if isinstance(exc, AdapterError):
        if isinstance(exc, RateLimitError):
            status = 429
        elif isinstance(exc, (BackendUnavailableError, BackendBusyError)):
            status = 503
        elif isinstance(exc, BackendTimeoutError):
            status = 504
        else:
            status = 502
        return ApiError(exc.message, code=ErrorCode.UNKNOWN, status_code=status)

    exception(_LOG, "unexpected_error", error_type=type(exc).__name__, error=str(exc))
    return ApiError("Internal server error", code=ErrorCode.UNKNOWN, status_code=500)
