"""
tts-service Services Layer.

Sits between the HTTP layer and the adapters.

Components:
    - dispatcher.py: Dispatcher (auth gate, orchestration, metrics)
    - validators.py: /tts request validation
    - errors.py: ErrorCode, ApiError and normalize_error()
"""
from .dispatcher import Dispatcher, get_dispatcher, reset_dispatcher
from .errors import (
    ApiError,
    AuthError,
    ErrorCode,
    InvalidRequestError,
    MaxLengthExceededError,
    SpeakingRateExceededError,
    UnknownModeError,
    UnknownVoiceError,
    normalize_error,
)

__all__ = [
    "Dispatcher",
    "get_dispatcher",
    "reset_dispatcher",
    "ApiError",
    "AuthError",
    "ErrorCode",
    "InvalidRequestError",
    "MaxLengthExceededError",
    "SpeakingRateExceededError",
    "UnknownModeError",
    "UnknownVoiceError",
    "normalize_error",
]
