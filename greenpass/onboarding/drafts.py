"""Role-shaped profile drafts.

A draft is the bag of role-specific fields staged on the account before it is
promoted into a role record. Drafts are lenient: every field is optional so a
half-filled form can be saved and resumed; completeness is checked by the
role registry's rules when the user submits.
"""

from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _split_list(value: Any) -> Any:
    """Accept a comma-separated string where a list is expected."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, list | tuple):
        return [str(item).strip() for item in value if str(item).strip()]
    return value


class DraftBase(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        # Empty form inputs arrive as "" and mean "not provided".
        if isinstance(value, str) and not value.strip():
            return None
        return value


class StudentDraft(DraftBase):
    role: Literal["student"] = "student"


class AgentDraft(DraftBase):
    role: Literal["agent"] = "agent"
    company_name: str | None = None
    business_license: str | None = None
    year_established: int | None = None
    payout_email: str | None = None


class TutorDraft(DraftBase):
    role: Literal["tutor"] = "tutor"
    specializations: list[str] = Field(default_factory=list)
    experience_years: int | None = None
    hourly_rate: Decimal | None = Field(default=None, decimal_places=2)
    bio: str | None = None
    payout_email: str | None = None

    @field_validator("specializations", mode="before")
    @classmethod
    def split_specializations(cls, value: Any) -> Any:
        return _split_list(value)


class SchoolDraft(DraftBase):
    role: Literal["school"] = "school"
    name: str | None = None
    location: str | None = None
    website: str | None = None
    type: str | None = None
    about: str | None = None


class VendorDraft(DraftBase):
    role: Literal["vendor"] = "vendor"
    business_name: str | None = None
    service_categories: list[str] = Field(default_factory=list)
    payout_email: str | None = None

    @field_validator("service_categories", mode="before")
    @classmethod
    def split_categories(cls, value: Any) -> Any:
        return _split_list(value)


RoleProfileDraft = Annotated[
    StudentDraft | AgentDraft | TutorDraft | SchoolDraft | VendorDraft,
    Field(discriminator="role"),
]
