"""Onboarding domain schemas.

Request bodies for onboarding actions and the state snapshot returned by
every onboarding endpoint.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from greenpass.onboarding.machine import OnboardingState
from greenpass.onboarding.roles import Role, Step
from greenpass.onboarding.subscription import GatewayStatus


class SelectRoleRequest(BaseModel):
    role: Role


class BasicInfoRequest(BaseModel):
    """Basic info form. Completeness is checked by the flow, not here, so
    missing values come back as per-field messages."""

    full_name: str = Field(default="", max_length=120)
    phone: str = Field(default="", max_length=32)
    country: str = Field(default="", max_length=80)
    country_code: str = Field(default="", max_length=8)


class RoleProfileRequest(BaseModel):
    fields: dict[str, Any] = Field(default_factory=dict)


class PaymentApprovedRequest(BaseModel):
    order_id: str = Field(min_length=1, max_length=64)


class PaymentErrorRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class OrderCreated(BaseModel):
    order_id: str


class PricingRead(BaseModel):
    label: str
    amount: Decimal
    currency: str


class GatewayRead(BaseModel):
    status: GatewayStatus
    message: str | None = None
    client_id: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    description: str | None = None
    skip_available: bool = True


class OnboardingStateRead(BaseModel):
    step: Step
    role: Role
    role_locked: bool
    completed: bool
    steps: list[Step]
    progress: int
    draft: dict[str, Any]
    pricing: PricingRead | None = None
    gateway: GatewayRead | None = None
    notice: str | None = None
    partial_failure: bool = False

    @classmethod
    def from_state(cls, state: OnboardingState) -> "OnboardingStateRead":
        pricing = state.pricing
        gateway = state.gateway
        return cls(
            step=state.step,
            role=state.role,
            role_locked=state.role_locked,
            completed=state.completed,
            steps=list(state.steps),
            progress=state.progress,
            draft=state.draft,
            pricing=(
                PricingRead(
                    label=pricing.label,
                    amount=pricing.amount,
                    currency=pricing.currency,
                )
                if pricing
                else None
            ),
            gateway=(
                GatewayRead(
                    status=gateway.status,
                    message=gateway.message,
                    client_id=gateway.client_id,
                    amount=gateway.amount,
                    currency=gateway.currency,
                    description=gateway.description,
                    skip_available=gateway.skip_available,
                )
                if gateway
                else None
            ),
            notice=state.notice,
            partial_failure=state.partial_failure,
        )
