"""Router error taxonomy.

Adapters classify every backend failure into an ``ErrorKind`` before it
leaves the adapter boundary; the orchestrator only ever looks at the kind.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Classified provider failure."""

    AUTH = "AUTH"
    RATE_LIMIT = "RATE_LIMIT"
    UNAVAILABLE = "UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


HTTP_STATUS_HINTS: Dict[ErrorKind, int] = {
    ErrorKind.AUTH: 401,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.UNAVAILABLE: 503,
    ErrorKind.TIMEOUT: 408,
    ErrorKind.UNKNOWN: 500,
}

# Non-standard status for requests the client abandoned
CLIENT_CLOSED_REQUEST = 499


def http_status_hint(kind: Optional[ErrorKind]) -> int:
    """HTTP status a boundary layer should emit for an error kind."""
    if kind is None:
        return 500
    return HTTP_STATUS_HINTS.get(kind, 500)


class RouterError(Exception):
    """Base router error."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        super().__init__(message)
        self.message = message
        self.kind = kind

    @property
    def http_status_hint(self) -> int:
        return http_status_hint(self.kind)

    def to_dict(self) -> Dict[str, Any]:
        """Boundary-safe representation of the error."""
        return {
            "errorKind": self.kind.value,
            "message": self.message,
            "httpStatusHint": self.http_status_hint,
        }


class ProviderError(RouterError):
    """Classified failure of a single provider call or initialization."""

    def __init__(
        self,
        message: str,
        provider_id: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        http_status: Optional[int] = None,
    ):
        super().__init__(message, kind)
        self.provider_id = provider_id
        self.http_status = http_status

    @property
    def retryable(self) -> bool:
        return self.kind != ErrorKind.AUTH


class NoProviderAvailableError(RouterError):
    """No enabled provider has a usable credential. No call was made."""

    def __init__(self, message: str = "No AI services are available. Please check your API key configuration."):
        super().__init__(message, ErrorKind.UNAVAILABLE)


class AllProvidersExhaustedError(RouterError):
    """Every candidate was tried and failed."""

    def __init__(
        self,
        last_error: Optional[ProviderError],
        errors: Optional[Dict[str, ProviderError]] = None,
        total_attempts: int = 0,
    ):
        self.last_error = last_error
        self.errors = errors or {}
        self.total_attempts = total_attempts

        kind = last_error.kind if last_error else ErrorKind.UNKNOWN
        if kind == ErrorKind.UNAVAILABLE:
            message = "AI services are temporarily unavailable. Please try again in a few moments."
        else:
            detail = last_error.message if last_error else "Unknown error"
            message = f"All AI services failed. Last error: {detail}"
        super().__init__(message, kind)

    @property
    def temporarily_unavailable(self) -> bool:
        return self.kind == ErrorKind.UNAVAILABLE


class RequestCancelledError(RouterError):
    """The caller abandoned the request between attempts."""

    def __init__(self, total_attempts: int = 0):
        super().__init__("Request cancelled by caller", ErrorKind.UNKNOWN)
        self.total_attempts = total_attempts

    @property
    def http_status_hint(self) -> int:
        return CLIENT_CLOSED_REQUEST
