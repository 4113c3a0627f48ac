"""Account domain models.

SQLModel table definition for Account, the per-identity onboarding record.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel

from greenpass.core.mixins import TimestampMixin
from greenpass.onboarding.roles import Role, Step


class SubscriptionStatus(str, Enum):
    """Outcome of the subscription step.

    - none: the account has not reached a decision yet
    - active: a payment was captured
    - skipped: the user chose "skip for now" (or is a student)
    """

    none = "none"
    active = "active"
    skipped = "skipped"


@dataclass(frozen=True)
class Subscription:
    """Read-only view over the account's subscription columns."""

    active: bool
    status: SubscriptionStatus
    plan: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    provider_order_id: str | None = None
    captured_at: datetime | None = None


class Account(TimestampMixin, SQLModel, table=True):
    """Account database model.

    Keyed by the identity provider's subject id. ``subject_id`` and ``email``
    are written once on creation and never patched.
    """

    __tablename__: str = "accounts"

    subject_id: str = Field(primary_key=True, max_length=128)
    email: str = Field(default="", index=True, max_length=255)
    full_name: str = Field(default="", max_length=120)
    phone: str = Field(default="", max_length=32)
    country: str = Field(default="", max_length=80)
    country_code: str = Field(default="", max_length=8)

    role: Role = Field(default=Role.student)
    role_locked: bool = Field(default=False)
    onboarding_step: Step = Field(default=Step.choose_role)
    onboarding_completed: bool = Field(default=False)
    completed_at: datetime | None = None
    role_profile_draft: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)

    subscription_active: bool = Field(default=False)
    subscription_status: SubscriptionStatus = Field(default=SubscriptionStatus.none)
    subscription_plan: str | None = Field(default=None, max_length=120)
    subscription_amount: Decimal | None = Field(
        default=None, max_digits=10, decimal_places=2
    )
    subscription_currency: str | None = Field(default=None, max_length=3)
    subscription_provider_order_id: str | None = Field(
        default=None, index=True, max_length=64
    )
    subscription_captured_at: datetime | None = None
    # Transaction id and payer details returned by the provider capture.
    subscription_capture: dict[str, Any] | None = Field(default=None, sa_type=JSON)

    @property
    def subscription(self) -> Subscription:
        return Subscription(
            active=self.subscription_active,
            status=self.subscription_status,
            plan=self.subscription_plan,
            amount=self.subscription_amount,
            currency=self.subscription_currency,
            provider_order_id=self.subscription_provider_order_id,
            captured_at=self.subscription_captured_at,
        )

    @property
    def has_active_subscription(self) -> bool:
        """What downstream pages use to gate subscriber-only features."""
        return (
            self.subscription_active
            or self.subscription_status == SubscriptionStatus.active
        )
