"""Profile finalization.

Marks an account's onboarding complete and seeds its role record exactly
once. Safe under at-least-once invocation: duplicate approve callbacks,
client retries and concurrent tabs all converge on one completed account
and at most one role record.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from resend.exceptions import ResendError

from greenpass.account.models import Account, SubscriptionStatus
from greenpass.core.email import SubscriptionReceipt, send_subscription_receipt
from greenpass.core.exceptions import AppException, PersistenceError
from greenpass.core.mixins import utc_now
from greenpass.core.retry import with_retry
from greenpass.core.settings import Settings
from greenpass.onboarding.context import SessionContext
from greenpass.onboarding.exceptions import FinalizationPartialFailure
from greenpass.onboarding.records import RoleRecordBase
from greenpass.onboarding.roles import Pricing, Role, RoleRegistry, Step
from greenpass.onboarding.store import ProfileDraftStore
from greenpass.payments.paypal import CaptureResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalizationDecision:
    """How the subscription step ended."""

    subscription_active: bool
    status: SubscriptionStatus
    plan: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    order_id: str | None = None
    captured_at: datetime | None = None
    capture: CaptureResult | None = None

    @classmethod
    def skip(cls) -> "FinalizationDecision":
        return cls(subscription_active=False, status=SubscriptionStatus.skipped)

    @classmethod
    def paid(cls, pricing: Pricing, capture: CaptureResult) -> "FinalizationDecision":
        return cls(
            subscription_active=True,
            status=SubscriptionStatus.active,
            plan=pricing.label,
            amount=capture.amount if capture.amount is not None else pricing.amount,
            currency=capture.currency or pricing.currency,
            order_id=capture.order_id,
            captured_at=utc_now(),
            capture=capture,
        )

    def subscription_fields(self) -> dict[str, Any]:
        return {
            "subscription_active": self.subscription_active,
            "subscription_status": self.status,
            "subscription_plan": self.plan,
            "subscription_amount": self.amount,
            "subscription_currency": self.currency,
            "subscription_provider_order_id": self.order_id,
            "subscription_captured_at": self.captured_at,
            "subscription_capture": self.capture.as_dict() if self.capture else None,
        }


@dataclass(frozen=True)
class FinalizationResult:
    account: Account
    already_completed: bool = False
    role_record: RoleRecordBase | None = None
    record_created: bool = False
    partial_failure: FinalizationPartialFailure | None = None
    receipt_sent: bool = False


class ProfileFinalizer:
    def __init__(
        self,
        store: ProfileDraftStore,
        registry: RoleRegistry,
        settings: Settings,
        send_receipt=send_subscription_receipt,
    ):
        self._store = store
        self._registry = registry
        self._settings = settings
        self._send_receipt = send_receipt

    async def finalize(
        self,
        account: Account,
        decision: FinalizationDecision,
        context: SessionContext | None = None,
    ) -> FinalizationResult:
        """Complete onboarding for the account.

        Raises:
            PersistenceError: If the completion patch still fails after
                retries. Nothing was completed; a captured payment is
                recovered when the client retries the approval.
        """
        subject_id = account.subject_id

        # Guard on the stored row, not the caller's possibly stale copy.
        fresh = self._store.get(subject_id)
        if fresh.onboarding_completed:
            if context is not None:
                context.clear()
            if decision.subscription_active and not fresh.subscription_active:
                return await self._activate_late(fresh, decision)
            logger.info(
                "Account %s already finalized, skipping",
                subject_id,
                extra={"subject_id": subject_id, "role": fresh.role.value},
            )
            return FinalizationResult(account=fresh, already_completed=True)

        fields = {
            "onboarding_completed": True,
            "onboarding_step": Step.complete,
            "completed_at": utc_now(),
            **decision.subscription_fields(),
        }

        async def commit() -> None:
            self._store.patch(subject_id, fields)

        await with_retry(
            commit,
            attempts=self._settings.persistence_retry_attempts,
            exceptions=(PersistenceError,),
            label="finalize",
        )

        completed = self._store.get(subject_id)
        logger.info(
            "Finalized onboarding for %s (subscription %s)",
            subject_id,
            decision.status.value,
            extra={
                "subject_id": subject_id,
                "role": completed.role.value,
                "step": Step.complete.value,
                "order_id": decision.order_id,
            },
        )

        record, created, failure = self._seed_role_record(completed)

        if context is not None:
            context.clear()

        receipt_sent = False
        if decision.subscription_active and decision.order_id:
            receipt_sent = self._deliver_receipt(completed, decision)

        return FinalizationResult(
            account=completed,
            role_record=record,
            record_created=created,
            partial_failure=failure,
            receipt_sent=receipt_sent,
        )

    async def _activate_late(
        self, account: Account, decision: FinalizationDecision
    ) -> FinalizationResult:
        """Record a capture that landed after another tab completed the account."""
        subject_id = account.subject_id

        async def commit() -> bool:
            return self._store.activate_subscription(
                subject_id, decision.subscription_fields()
            )

        activated = await with_retry(
            commit,
            attempts=self._settings.persistence_retry_attempts,
            exceptions=(PersistenceError,),
            label="activate subscription",
        )
        updated = self._store.get(subject_id)
        if not activated:
            return FinalizationResult(account=updated, already_completed=True)

        logger.warning(
            "Account %s was completed while order %s was captured, "
            "subscription activated after completion",
            subject_id,
            decision.order_id,
            extra={
                "subject_id": subject_id,
                "role": updated.role.value,
                "order_id": decision.order_id,
            },
        )
        receipt_sent = False
        if decision.order_id:
            receipt_sent = self._deliver_receipt(updated, decision)
        return FinalizationResult(
            account=updated, already_completed=True, receipt_sent=receipt_sent
        )

    def _seed_role_record(
        self, account: Account
    ) -> tuple[RoleRecordBase | None, bool, FinalizationPartialFailure | None]:
        definition = self._registry.definition(account.role)
        model = definition.record_model
        if model is None:
            return None, False, None

        subject_id = account.subject_id
        try:
            existing = self._store.find_role_record(model, subject_id)
            if existing is not None:
                return existing, False, None

            draft = self._registry.build_draft(account.role, account.role_profile_draft)
            errors = self._registry.validation_errors(account.role, draft)
            if errors:
                raise FinalizationPartialFailure(
                    subject_id,
                    account.role.value,
                    f"staged profile incomplete ({', '.join(sorted(errors))})",
                )

            values = draft.model_dump(exclude={"role"})
            if definition.reference_field and definition.reference_code:
                values[definition.reference_field] = definition.reference_code()

            record, created = self._store.create_role_record(
                model(subject_id=subject_id, **values)
            )
        except FinalizationPartialFailure as failure:
            return None, False, self._report(failure)
        except AppException as e:
            failure = FinalizationPartialFailure(
                subject_id, account.role.value, e.message
            )
            return None, False, self._report(failure)

        if created:
            logger.info(
                "Created %s record for %s",
                account.role.value,
                subject_id,
                extra={"subject_id": subject_id, "role": account.role.value},
            )
        return record, created, None

    @staticmethod
    def _report(failure: FinalizationPartialFailure) -> FinalizationPartialFailure:
        logger.error(
            "%s; awaiting reconciliation",
            failure.message,
            extra={
                "subject_id": failure.subject_id,
                "role": failure.role,
                "error_type": failure.error_type,
            },
        )
        return failure

    def _deliver_receipt(
        self, account: Account, decision: FinalizationDecision
    ) -> bool:
        if not account.email:
            return False
        capture = decision.capture
        receipt = SubscriptionReceipt(
            to_email=account.email,
            full_name=account.full_name,
            plan=decision.plan or "subscription",
            amount=decision.amount or Decimal("0"),
            currency=decision.currency or "USD",
            order_id=decision.order_id or "",
            transaction_id=capture.transaction_id if capture else None,
            captured_at=decision.captured_at or utc_now(),
        )
        try:
            return self._send_receipt(receipt)
        except (ResendError, OSError) as e:
            # The capture is already recorded; a missing receipt is not fatal.
            logger.warning(
                "Receipt email for order %s not sent: %s",
                decision.order_id,
                e,
                extra={"subject_id": account.subject_id, "order_id": decision.order_id},
            )
            return False

    def reconcile(self, subject_id: str) -> FinalizationResult:
        """Seed the role record a completed account is missing.

        No-op for incomplete accounts, students and accounts that already
        have their record.
        """
        account = self._store.get(subject_id)
        if not account.onboarding_completed or account.role == Role.student:
            return FinalizationResult(account=account)

        record, created, failure = self._seed_role_record(account)
        return FinalizationResult(
            account=account,
            already_completed=True,
            role_record=record,
            record_created=created,
            partial_failure=failure,
        )
