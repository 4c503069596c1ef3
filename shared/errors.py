"""
Error taxonomy shared by the service clients, the query cache and the remote loader.

HTTP failures are classified exactly once, at the service-client boundary,
into one of a closed set of error variants. Everything downstream branches on
the variant (or its `retryable` flag) instead of inspecting status codes.

Design decisions:
- One exception class per variant, all deriving from ServiceError
- `retryable` is decided by the variant, not by the caller
- Persistence and remote-load failures get their own types; they are logged
  and absorbed by the layer that detects them
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """The closed set of service failure variants."""
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    SERVER = "server"
    TIMEOUT = "timeout"
    NETWORK = "network"


DEFAULT_MESSAGES = {
    400: "Invalid request. Please check your input.",
    401: "You need to log in to access this resource.",
    403: "You don't have permission to access this resource.",
    404: "The requested resource was not found.",
    409: "This action conflicts with existing data.",
    422: "Validation failed. Please check your input.",
    429: "Too many requests. Please try again later.",
    500: "Server error. Please try again later.",
    502: "Bad gateway. The server is temporarily unavailable.",
    503: "Service unavailable. Please try again later.",
    504: "Gateway timeout. The server took too long to respond.",
}


class ServiceError(Exception):
    """Base class for every classified service failure."""

    kind: ErrorKind = ErrorKind.SERVER
    retryable: bool = False

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} ({self.status}): {self.message}"
        return f"{self.kind.value}: {self.message}"


class Unauthorized(ServiceError):
    kind = ErrorKind.UNAUTHORIZED


class Forbidden(ServiceError):
    kind = ErrorKind.FORBIDDEN


class NotFound(ServiceError):
    kind = ErrorKind.NOT_FOUND


class ValidationFailed(ServiceError):
    """400/422-class rejection. Carries the server-provided detail."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, status: Optional[int] = 422, detail: Any = None):
        super().__init__(message, status)
        self.detail = detail


class ServerError(ServiceError):
    kind = ErrorKind.SERVER
    retryable = True


class RequestTimeout(ServiceError):
    kind = ErrorKind.TIMEOUT
    retryable = True


class NetworkError(ServiceError):
    kind = ErrorKind.NETWORK
    retryable = True


def _message_from_body(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    if isinstance(body.get("message"), str):
        return body["message"]
    errors = body.get("errors")
    if isinstance(errors, list):
        return ", ".join(
            e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors
        )
    if isinstance(errors, dict):
        parts = []
        for value in errors.values():
            parts.extend(value if isinstance(value, list) else [value])
        return ", ".join(str(p) for p in parts)
    if isinstance(body.get("detail"), str):
        return body["detail"]
    return None


def error_from_status(status: int, body: Any = None) -> ServiceError:
    """
    Classify an HTTP error response.

    Args:
        status: Response status code (>= 400)
        body: Decoded JSON body, if any

    Returns:
        The matching ServiceError variant (not raised)
    """
    message = _message_from_body(body) or DEFAULT_MESSAGES.get(
        status, "An error occurred. Please try again."
    )
    if status == 401:
        return Unauthorized(message, status)
    if status == 403:
        return Forbidden(message, status)
    if status == 404:
        return NotFound(message, status)
    if status == 408:
        return RequestTimeout(message, status)
    if status == 429 or status >= 500:
        return ServerError(message, status)
    # Remaining 4xx responses are the server rejecting the request content
    detail = body.get("errors", body) if isinstance(body, dict) else body
    return ValidationFailed(message, status, detail=detail)


def is_retryable(error: BaseException) -> bool:
    """
    Whether a fetch failure should be retried.

    Unclassified exceptions raised by a fetch function count as transient.
    """
    if isinstance(error, ServiceError):
        return error.retryable
    return True


def describe_error(error: BaseException) -> str:
    """User-facing message for any error value."""
    if isinstance(error, ServiceError):
        return error.message
    return str(error) or "An unexpected error occurred"


class PersistenceError(Exception):
    """Durable storage could not be read or written."""


class RemoteLoadError(Exception):
    """A remote module could not be resolved or mounted."""

    def __init__(self, remote: str, module: str, reason: str):
        super().__init__(f"{remote}/{module}: {reason}")
        self.remote = remote
        self.module = module
        self.reason = reason
