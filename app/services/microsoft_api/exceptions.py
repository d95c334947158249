"""Custom exceptions for generic Microsoft Graph / Azure RM API calls."""
from typing import Any, Optional


class ApiCallError(Exception):
    """Base exception for all Microsoft API call errors."""

    def __init__(
        self,
        message: str,
        status_code: int = None,
        details: Any = None,
        url: str = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details
        self.url = url
        super().__init__(self.message)


class ParameterError(ApiCallError):
    """Raised when a request is invalid before any network I/O is attempted."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status_code=400, details=details)


class AuthError(ApiCallError):
    """Raised when the OAuth client credentials exchange fails.

    Troubleshooting:
    - Verify AZURE_TENANT_ID is correct
    - Verify AZURE_CLIENT_ID matches your app registration
    - Verify AZURE_CLIENT_SECRET is valid and not expired
    - Check that the app has been granted the requested scope
    """

    def __init__(self, message: str = None, details: Any = None):
        super().__init__(
            message or "Authentication failed. Check Azure AD credentials.",
            status_code=401,
            details=details,
        )


class ClientError(ApiCallError):
    """Raised for 4xx responses other than 429. Never retried."""


class ThrottleError(ApiCallError):
    """Raised when the backend throttles the caller (HTTP 429).

    Troubleshooting:
    - Reduce request volume or batch size
    - Check the Retry-After header for the suggested wait time
    """

    def __init__(
        self,
        retry_after: Optional[float] = None,
        message: str = None,
        details: Any = None,
        url: str = None,
    ):
        self.retry_after = retry_after
        super().__init__(
            message or f"Rate limited. Retry after {retry_after or 'unknown'} seconds.",
            status_code=429,
            details=details,
            url=url,
        )


class ServerError(ApiCallError):
    """Raised for server-side errors (HTTP 5xx)."""


class NetworkError(ApiCallError):
    """Raised when the backend cannot be reached."""


class RequestTimeoutError(ApiCallError):
    """Raised when a single HTTP request exceeds its timeout."""


class UnsupportedMethodError(ApiCallError):
    """Raised for an HTTP method the executors do not know how to send."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unsupported HTTP method: {method}", status_code=405)


class PaginationError(ApiCallError):
    """Raised when a page fetch fails after exhausting its retries.

    The whole paginated call is aborted; already accumulated pages are dropped.
    """

    def __init__(self, page: int, cause: ApiCallError):
        self.page = page
        self.cause = cause
        super().__init__(
            f"Pagination aborted on page {page}: {cause.message}",
            status_code=cause.status_code,
            details=cause.details,
            url=cause.url,
        )
