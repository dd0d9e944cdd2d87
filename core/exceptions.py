# =============================================================================
# core/exceptions.py  -  Error Types
# =============================================================================
#
# Every failure the client or facade raises derives from EightSleepError, so
# the tools layer can turn any of them into a failed tool call.
#
#   ConfigurationError   credentials missing, raised before any network call
#   AuthenticationError  login failed, or a request was rejected after relogin
#   ApiError             any other non-2xx status (status=None on network error)
#   ValidationError      bad arguments caught before the request is sent
#   NotFoundError        the API returned no record for the requested date
# =============================================================================


class EightSleepError(Exception):
    """Base exception for Eight Sleep errors.

    Attributes:
        detail: The message without any operation prefix.
        operation: Description of the facade operation that failed, if known.

    """

    def __init__(self, detail: str, *, operation: str | None = None) -> None:
        """Initialize the error, prefixing the message with the operation."""
        message = f"{operation}: {detail}" if operation else detail
        super().__init__(message)
        self.detail = detail
        self.operation = operation

    def for_operation(self, operation: str) -> "EightSleepError":
        """Return a copy of this error labelled with a facade operation."""
        return type(self)(self.detail, operation=operation)


class ConfigurationError(EightSleepError):
    """Required credentials are missing."""


class AuthenticationError(EightSleepError):
    """Login or token refresh failed."""


class ApiError(EightSleepError):
    """The vendor API answered with a non-2xx status or could not be reached.

    Attributes:
        status: HTTP status code, or None when no response was received.

    """

    def __init__(
        self,
        status: int | None,
        detail: str,
        *,
        operation: str | None = None,
    ) -> None:
        """Initialize the error with the HTTP status and vendor message."""
        super().__init__(detail, operation=operation)
        self.status = status

    def for_operation(self, operation: str) -> "ApiError":
        """Return a copy of this error labelled with a facade operation."""
        return type(self)(self.status, self.detail, operation=operation)


class ValidationError(EightSleepError):
    """A caller-supplied argument is outside its contract."""


class NotFoundError(EightSleepError):
    """Expected data is absent, e.g. no sleep record for a date."""
