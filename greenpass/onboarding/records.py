"""Role record tables.

One record per non-student account, created when onboarding completes. The
record is the system of record for the role's public profile; the account's
staged draft becomes historical once it exists.
"""

import uuid
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel

from greenpass.core.mixins import PayoutMixin, TimestampMixin


class VerificationStatus(str, Enum):
    """Review state of a role record.

    - pending: created by onboarding, awaiting review
    - verified: approved, may be shown in the marketplace
    - rejected: declined by review
    """

    pending = "pending"
    verified = "verified"
    rejected = "rejected"


class RoleRecordBase(TimestampMixin, SQLModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # Unique so concurrent finalizations cannot seed two records.
    subject_id: str = Field(index=True, unique=True, max_length=128)
    verification_status: VerificationStatus = Field(default=VerificationStatus.pending)
    is_verified: bool = Field(default=False)
    is_visible: bool = Field(default=False)


class Agent(PayoutMixin, RoleRecordBase, table=True):
    __tablename__: str = "agents"

    company_name: str = Field(max_length=200)
    business_license: str = Field(max_length=100)
    year_established: int | None = None
    referral_code: str = Field(index=True, max_length=16)


class Tutor(PayoutMixin, RoleRecordBase, table=True):
    __tablename__: str = "tutors"

    specializations: list[str] = Field(default_factory=list, sa_type=JSON)
    experience_years: int
    hourly_rate: Decimal = Field(max_digits=10, decimal_places=2)
    bio: str | None = None


class SchoolProfile(RoleRecordBase, table=True):
    __tablename__: str = "school_profiles"

    name: str = Field(max_length=200)
    location: str = Field(max_length=200)
    website: str = Field(max_length=255)
    type: str = Field(max_length=50)
    about: str | None = None


class Vendor(PayoutMixin, RoleRecordBase, table=True):
    __tablename__: str = "vendors"

    business_name: str = Field(max_length=200)
    service_categories: list[str] = Field(default_factory=list, sa_type=JSON)
