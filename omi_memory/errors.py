"""Error taxonomy for the memory ingestion API."""

from __future__ import annotations


class ApiError(Exception):
    """Base error for anything that stops a memory from being accepted.

    Attributes:
        message: Human-readable detail (server message or local reason).
        status: HTTP status code, or ``None`` for local and transport errors.
    """

    kind = "api_error"
    retryable = False

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is None:
            return f"{self.kind}: {self.message}"
        return f"{self.kind} ({self.status}): {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status!r})"

    def __reduce__(self):
        # Keyword-only attributes (status, retry_after) travel in the state dict.
        return (type(self), (self.message,), self.__dict__.copy())


class InvalidRequest(ApiError):
    """Malformed payload, detected locally or by the server."""

    kind = "invalid_request"


class Unauthenticated(ApiError):
    """Missing or invalid API key."""

    kind = "unauthenticated"


class Forbidden(ApiError):
    """Valid key, but the app lacks the capability or is not enabled for the user."""

    kind = "forbidden"


class NotFound(ApiError):
    """Unknown app identifier."""

    kind = "not_found"


class RateLimited(ApiError):
    """Throttled by the remote. Safe to retry after ``retry_after`` seconds."""

    kind = "rate_limited"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status=status)
        self.retry_after = retry_after


class ServerError(ApiError):
    """5xx from the remote."""

    kind = "server_error"
    retryable = True


class TransportError(ApiError):
    """Network-level failure: connect, DNS, TLS, timeout."""

    kind = "transport_error"
    retryable = True


_STATUS_ERRORS: dict[int, type[ApiError]] = {
    400: InvalidRequest,
    401: Unauthenticated,
    403: Forbidden,
    404: NotFound,
    422: InvalidRequest,
}


def error_for_status(
    status: int,
    message: str,
    retry_after: float | None = None,
) -> ApiError:
    """Build the error matching an HTTP failure status."""
    if status == 429:
        return RateLimited(message, status=status, retry_after=retry_after)
    if status >= 500:
        return ServerError(message, status=status)
    cls = _STATUS_ERRORS.get(status, ApiError)
    return cls(message, status=status)
