"""Role registry.

Static, exhaustive table of every role an account can onboard as: its step
sequence, the rules a submitted profile must satisfy, the draft and record
shapes, and the subscription price. All lookups are pure.
"""

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from greenpass.onboarding.drafts import (
    AgentDraft,
    SchoolDraft,
    StudentDraft,
    TutorDraft,
    VendorDraft,
)
from greenpass.onboarding.exceptions import OnboardingValidationError
from greenpass.onboarding.records import (
    Agent,
    RoleRecordBase,
    SchoolProfile,
    Tutor,
    Vendor,
)


class Role(str, Enum):
    student = "student"
    agent = "agent"
    tutor = "tutor"
    school = "school"
    vendor = "vendor"


class Step(str, Enum):
    choose_role = "choose_role"
    basic_info = "basic_info"
    role_specific = "role_specific"
    subscription = "subscription"
    complete = "complete"


# Tokens still sent by older deep links and the SSO bridge.
ROLE_ALIASES: dict[str, Role] = {
    "user": Role.student,
    "institution": Role.school,
    "provider": Role.vendor,
}

SCHOOL_TYPES = (
    "High School",
    "College",
    "University",
    "Institute",
    "Vocational",
    "Other",
)

STUDENT_STEPS = (Step.choose_role, Step.basic_info, Step.complete)
PARTNER_STEPS = (
    Step.choose_role,
    Step.basic_info,
    Step.role_specific,
    Step.subscription,
    Step.complete,
)

_email_adapter = TypeAdapter(EmailStr)


def parse_role(token: str | None) -> Role | None:
    """Resolve a role token from a URL or cookie, or None when unknown."""
    if not token:
        return None
    value = token.strip().lower()
    try:
        return Role(value)
    except ValueError:
        return ROLE_ALIASES.get(value)


def generate_referral_code() -> str:
    """Agent referral code: ``AG`` followed by the last six digits of the epoch ms."""
    return f"AG{int(time.time() * 1000) % 1_000_000:06d}"


# Field checks. Each receives the draft attribute value.


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def _non_empty_list(value: Any) -> bool:
    return bool(value)


def _positive(value: Any) -> bool:
    return value is not None and value > 0


def _email(value: Any) -> bool:
    if not _present(value):
        return False
    try:
        _email_adapter.validate_python(value)
    except PydanticValidationError:
        return False
    return True


def _one_of(choices: tuple[str, ...]) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return value in choices

    return check


@dataclass(frozen=True)
class FieldRule:
    name: str
    check: Callable[[Any], bool]
    message: str


@dataclass(frozen=True)
class Pricing:
    label: str
    amount: Decimal
    currency: str = "USD"


@dataclass(frozen=True)
class RoleDefinition:
    role: Role
    title: str
    steps: tuple[Step, ...]
    draft_model: type[BaseModel]
    rules: tuple[FieldRule, ...] = ()
    pricing: Pricing | None = None
    record_model: type[RoleRecordBase] | None = None
    # Record attribute filled by reference_code() when the record is created.
    reference_field: str | None = None
    reference_code: Callable[[], str] | None = field(default=None, compare=False)


_PAYOUT_EMAIL = FieldRule("payout_email", _email, "A valid payout email is required")

ROLE_DEFINITIONS: tuple[RoleDefinition, ...] = (
    RoleDefinition(
        role=Role.student,
        title="Student",
        steps=STUDENT_STEPS,
        draft_model=StudentDraft,
    ),
    RoleDefinition(
        role=Role.agent,
        title="Agent",
        steps=PARTNER_STEPS,
        draft_model=AgentDraft,
        rules=(
            FieldRule("company_name", _present, "Company name is required"),
            FieldRule("business_license", _present, "Business license is required"),
            _PAYOUT_EMAIL,
        ),
        pricing=Pricing("Agent Annual Membership", Decimal("299.00")),
        record_model=Agent,
        reference_field="referral_code",
        reference_code=generate_referral_code,
    ),
    RoleDefinition(
        role=Role.tutor,
        title="Tutor",
        steps=PARTNER_STEPS,
        draft_model=TutorDraft,
        rules=(
            FieldRule(
                "specializations", _non_empty_list, "Add at least one specialization"
            ),
            FieldRule(
                "experience_years", _positive, "Experience must be greater than zero"
            ),
            FieldRule(
                "hourly_rate", _positive, "Hourly rate must be greater than zero"
            ),
            _PAYOUT_EMAIL,
        ),
        pricing=Pricing("Tutor Annual Membership", Decimal("199.00")),
        record_model=Tutor,
    ),
    RoleDefinition(
        role=Role.school,
        title="School",
        steps=PARTNER_STEPS,
        draft_model=SchoolDraft,
        rules=(
            FieldRule("name", _present, "School name is required"),
            FieldRule("location", _present, "Location is required"),
            FieldRule("website", _present, "Website is required"),
            FieldRule(
                "type",
                _one_of(SCHOOL_TYPES),
                f"School type must be one of: {', '.join(SCHOOL_TYPES)}",
            ),
        ),
        pricing=Pricing("School Annual Listing", Decimal("499.00")),
        record_model=SchoolProfile,
    ),
    RoleDefinition(
        role=Role.vendor,
        title="Vendor",
        steps=PARTNER_STEPS,
        draft_model=VendorDraft,
        rules=(
            FieldRule("business_name", _present, "Business name is required"),
            FieldRule(
                "service_categories",
                _non_empty_list,
                "Select at least one service category",
            ),
            _PAYOUT_EMAIL,
        ),
        pricing=Pricing("Vendor Annual Membership", Decimal("199.00")),
        record_model=Vendor,
    ),
)


class RoleRegistry:
    """Dispatch table keyed by role.

    Construction fails unless every Role has exactly one definition, so the
    rest of the flow never needs a fallback branch.
    """

    def __init__(self, definitions: tuple[RoleDefinition, ...] = ROLE_DEFINITIONS):
        table: dict[Role, RoleDefinition] = {}
        for definition in definitions:
            if definition.role in table:
                raise ValueError(f"Duplicate role definition: {definition.role.value}")
            table[definition.role] = definition

        missing = set(Role) - set(table)
        if missing:
            names = ", ".join(sorted(role.value for role in missing))
            raise ValueError(f"Missing role definitions: {names}")

        self._table: Mapping[Role, RoleDefinition] = table

    def definition(self, role: Role) -> RoleDefinition:
        return self._table[role]

    def steps_for(self, role: Role) -> tuple[Step, ...]:
        return self._table[role].steps

    def is_valid_step(self, role: Role, step: Step) -> bool:
        return step in self._table[role].steps

    def next_step(self, role: Role, step: Step) -> Step | None:
        steps = self.steps_for(role)
        index = steps.index(step)
        return steps[index + 1] if index + 1 < len(steps) else None

    def previous_step(self, role: Role, step: Step) -> Step | None:
        steps = self.steps_for(role)
        index = steps.index(step)
        return steps[index - 1] if index > 0 else None

    def progress(self, role: Role, step: Step) -> int:
        """Percentage through the role's flow, for progress bars."""
        steps = self.steps_for(role)
        if step not in steps:
            return 0
        return round(steps.index(step) * 100 / (len(steps) - 1))

    def required_fields(self, role: Role) -> tuple[str, ...]:
        return tuple(rule.name for rule in self._table[role].rules)

    def pricing(self, role: Role) -> Pricing | None:
        return self._table[role].pricing

    def build_draft(self, role: Role, data: Mapping[str, Any] | None) -> BaseModel:
        """Coerce raw form input into the role's draft model.

        Raises:
            OnboardingValidationError: If a value cannot be coerced (e.g. a
                non-numeric experience).
        """
        payload = dict(data or {})
        payload["role"] = role.value
        try:
            return self._table[role].draft_model.model_validate(payload)
        except PydanticValidationError as e:
            fields = {
                ".".join(str(loc) for loc in error["loc"]) or "draft": error["msg"]
                for error in e.errors()
            }
            raise OnboardingValidationError(fields) from e

    def validation_errors(
        self, role: Role, draft: BaseModel | Mapping[str, Any] | None
    ) -> dict[str, str]:
        """Map each failing required field to its message (empty when valid)."""
        if not isinstance(draft, BaseModel):
            try:
                draft = self.build_draft(role, draft)
            except OnboardingValidationError as e:
                return e.fields

        if getattr(draft, "role", None) != role.value:
            return {"role": "Profile does not match the selected role"}

        return {
            rule.name: rule.message
            for rule in self._table[role].rules
            if not rule.check(getattr(draft, rule.name, None))
        }

    def validate(self, role: Role, draft: BaseModel | Mapping[str, Any] | None) -> bool:
        return not self.validation_errors(role, draft)


BASIC_INFO_FIELDS = ("full_name", "phone", "country")


def basic_info_errors(
    full_name: str | None, phone: str | None, country: str | None
) -> dict[str, str]:
    """Check the basic-info step: full name, phone and country are all required."""
    values = {"full_name": full_name, "phone": phone, "country": country}
    labels = {"full_name": "Full name", "phone": "Phone", "country": "Country"}
    return {
        name: f"{labels[name]} is required"
        for name in BASIC_INFO_FIELDS
        if not _present(values[name])
    }


role_registry = RoleRegistry()


def get_role_registry() -> RoleRegistry:
    return role_registry
