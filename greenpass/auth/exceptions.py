"""Auth domain exceptions.

Authentication related exceptions.
"""

from greenpass.core.exceptions import AuthenticationError


class InvalidCredentialsError(AuthenticationError):
    """Raised when no usable credential accompanies the request."""

    error_type = "invalid_credentials"

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class InvalidTokenError(AuthenticationError):
    """Raised when authentication token is invalid or expired."""

    error_type = "invalid_token"

    def __init__(self, message: str = "Invalid authentication token"):
        super().__init__(message)


class SessionCookieError(AuthenticationError):
    """Raised when session cookie operations fail."""

    error_type = "session_cookie_error"

    def __init__(self, message: str = "Session cookie error"):
        super().__init__(message)
