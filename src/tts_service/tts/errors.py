"""
Adapter failure hierarchy.

Adapters raise these instead of SDK or transport exceptions, so the
error normalizer only has to know one family. None of them carries an
API error code; the mapping to codes and HTTP statuses lives in
services/errors.py.

Hierarchy:
    AdapterError
    ├── VoiceNotFoundError       backend rejected the voice late
    ├── RateLimitError           upstream quota / throttling
    ├── TransportError           network or HTTP-level failure
    ├── MalformedResponseError   upstream answered with something unusable
    ├── ProcessError             local binary missing or exited non-zero
    ├── BackendUnavailableError  backend down or unreachable
    ├── BackendTimeoutError      connect or request timeout expired
    └── BackendBusyError         no concurrency permit available
"""
from __future__ import annotations

from typing import Optional


class AdapterError(Exception):
    """Base class for every backend adapter failure."""

    def __init__(self, message: str, mode: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.mode = mode


class VoiceNotFoundError(AdapterError):
    pass


class RateLimitError(AdapterError):
    pass


class TransportError(AdapterError):
    """
    Network or HTTP-level failure talking to a backend.

    Attributes:
        status_code: Upstream HTTP status when one was received.
        body: Upstream response body (decoded, possibly truncated).
    """

    def __init__(
        self,
        message: str,
        mode: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message, mode)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(AdapterError):
    pass


class ProcessError(AdapterError):
    """
    Local synthesis process failed.

    Attributes:
        returncode: Exit status, or None when the binary could not start.
        stderr: Captured standard error output.
    """

    def __init__(
        self,
        message: str,
        mode: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message, mode)
        self.returncode = returncode
        self.stderr = stderr


class BackendUnavailableError(AdapterError):
    pass


class BackendTimeoutError(AdapterError):
    pass


class BackendBusyError(AdapterError):
    pass
