"""Account domain schemas.

Read models for downstream pages that consume the finalized account.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from greenpass.account.models import Account, SubscriptionStatus
from greenpass.onboarding.records import RoleRecordBase, VerificationStatus
from greenpass.onboarding.roles import Role, Step


class SubscriptionRead(BaseModel):
    active: bool
    status: SubscriptionStatus
    plan: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    provider_order_id: str | None = None
    captured_at: datetime | None = None


class AccountRead(BaseModel):
    subject_id: str
    email: str
    full_name: str
    phone: str
    country: str
    country_code: str
    role: Role
    role_locked: bool
    onboarding_step: Step
    onboarding_completed: bool
    completed_at: datetime | None
    subscription: SubscriptionRead
    has_active_subscription: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountRead":
        subscription = account.subscription
        return cls(
            subject_id=account.subject_id,
            email=account.email,
            full_name=account.full_name,
            phone=account.phone,
            country=account.country,
            country_code=account.country_code,
            role=account.role,
            role_locked=account.role_locked,
            onboarding_step=account.onboarding_step,
            onboarding_completed=account.onboarding_completed,
            completed_at=account.completed_at,
            subscription=SubscriptionRead(
                active=subscription.active,
                status=subscription.status,
                plan=subscription.plan,
                amount=subscription.amount,
                currency=subscription.currency,
                provider_order_id=subscription.provider_order_id,
                captured_at=subscription.captured_at,
            ),
            has_active_subscription=account.has_active_subscription,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class RoleRecordRead(BaseModel):
    id: str
    role: Role
    verification_status: VerificationStatus
    is_verified: bool
    is_visible: bool
    profile: dict[str, Any]

    @classmethod
    def from_record(cls, role: Role, record: RoleRecordBase) -> "RoleRecordRead":
        common = {
            "id",
            "subject_id",
            "verification_status",
            "is_verified",
            "is_visible",
            "created_at",
            "updated_at",
        }
        return cls(
            id=str(record.id),
            role=role,
            verification_status=record.verification_status,
            is_verified=record.is_verified,
            is_visible=record.is_visible,
            profile=record.model_dump(mode="json", exclude=common),
        )
