"""Account domain exceptions."""

from greenpass.core.exceptions import NotFoundError


class AccountNotFoundError(NotFoundError):
    """Raised when no account exists for the subject id."""

    error_type = "account_not_found"

    def __init__(self, message: str = "Account not found"):
        super().__init__(message)


class RoleRecordNotFoundError(NotFoundError):
    """Raised when the account has no role record (students, or not yet seeded)."""

    error_type = "role_record_not_found"

    def __init__(self, message: str = "No role profile exists for this account"):
        super().__init__(message)
