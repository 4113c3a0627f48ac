"""Payment domain exceptions.

Both leave the account on the subscription step: the user may retry the
payment or skip it.
"""

from greenpass.core.exceptions import AppException, ExternalServiceError


class PaymentError(AppException):
    """Raised when an order cannot be created or captured."""

    status_code = 402
    error_type = "payment_error"
    retryable = True

    def __init__(self, message: str = "Payment could not be completed"):
        super().__init__(message)


class PaymentProviderError(ExternalServiceError):
    """Raised when PayPal is unreachable or answers unexpectedly."""

    error_type = "payment_provider_error"

    def __init__(self, message: str = "Payment service is temporarily unavailable"):
        super().__init__(message)
