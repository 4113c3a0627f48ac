"""Onboarding domain exceptions."""

from greenpass.core.exceptions import AppException, ConflictError, ValidationError


class OnboardingValidationError(ValidationError):
    """Raised when submitted onboarding fields fail validation.

    Blocks the transition; the user corrects the listed fields and resubmits.
    """

    error_type = "onboarding_validation_error"

    def __init__(
        self,
        fields: dict[str, str],
        message: str = "Please complete the highlighted fields",
    ):
        super().__init__(message, fields=fields)


class StepTransitionError(ConflictError):
    """Raised when an action does not apply to the account's current step."""

    error_type = "invalid_step_transition"

    def __init__(self, message: str = "This action is not available at this step"):
        super().__init__(message)


class FinalizationPartialFailure(AppException):
    """The account was completed but its role record could not be created.

    Never raised to the client: the finalizer logs it and returns it in the
    result so reconciliation can seed the record later.
    """

    error_type = "finalization_partial_failure"

    def __init__(self, subject_id: str, role: str, reason: str):
        self.subject_id = subject_id
        self.role = role
        self.reason = reason
        super().__init__(
            f"Role record for {role} account {subject_id} was not created: {reason}"
        )
