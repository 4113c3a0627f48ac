"""App-wide exception hierarchy.

Every error raised by the service derives from AppException, which carries the
HTTP status, a stable machine-readable type and whether the client may retry
the same action unchanged.
"""


class AppException(Exception):
    """Base exception for all application errors.

    All custom exceptions inherit from this class and define their own
    status_code and error_type for consistent API responses.
    """

    status_code: int = 500
    error_type: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(message)


# Authentication errors (401)
class AuthenticationError(AppException):
    """Base class for authentication failures."""

    status_code = 401
    error_type = "authentication_error"

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


# Not found errors (404)
class NotFoundError(AppException):
    """Base class for resource not found errors."""

    status_code = 404
    error_type = "not_found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


# Conflict errors (409)
class ConflictError(AppException):
    """Base class for resource conflict errors."""

    status_code = 409
    error_type = "conflict"

    def __init__(self, message: str = "Resource conflict"):
        super().__init__(message)


# Validation errors (400)
class ValidationError(AppException):
    """Base class for validation errors.

    ``fields`` maps offending field names to a human readable message so
    clients can render errors inline.
    """

    status_code = 400
    error_type = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        fields: dict[str, str] | None = None,
    ):
        self.fields = fields or {}
        super().__init__(message)


# Service unavailable (503)
class PersistenceError(AppException):
    """Raised when the account store cannot be read or written.

    The requested step has not been applied; the client may retry it.
    """

    status_code = 503
    error_type = "persistence_error"
    retryable = True

    def __init__(self, message: str = "Could not save your progress, please retry"):
        super().__init__(message)


# External service errors (502)
class ExternalServiceError(AppException):
    """Base class for external service failures."""

    status_code = 502
    error_type = "external_service_error"
    retryable = True

    def __init__(self, message: str = "External service error"):
        super().__init__(message)


class ProviderError(ExternalServiceError):
    """Raised when an upstream provider returns an unexpected response."""

    error_type = "provider_error"

    def __init__(self, message: str = "Upstream provider returned an invalid response"):
        super().__init__(message)


# Internal errors (500)
class InternalError(AppException):
    """Raised for internal server errors."""

    status_code = 500
    error_type = "internal_error"

    def __init__(self, message: str = "An internal error occurred"):
        super().__init__(message)
