"""Tests for greenpass/onboarding/finalizer.py - Profile finalization."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlmodel import Session, select

from greenpass.account.models import SubscriptionStatus
from greenpass.core.exceptions import PersistenceError
from greenpass.onboarding.context import SessionContext
from greenpass.onboarding.finalizer import FinalizationDecision, ProfileFinalizer
from greenpass.onboarding.records import Agent, Tutor
from greenpass.onboarding.roles import Pricing, Role, Step
from greenpass.onboarding.store import ProfileDraftStore
from greenpass.payments.paypal import CaptureResult

AGENT_DRAFT = {
    "role": "agent",
    "company_name": "Maple Education",
    "business_license": "BL-1234",
    "payout_email": "payouts@maple-education.com",
}


def _staged(
    store: ProfileDraftStore, role: Role = Role.agent, draft: dict | None = None
):
    """Create an account sitting on the subscription step."""
    store.create_default("uid-123", "jane@example.com", "Jane Doe", role_hint=role)
    store.patch(
        "uid-123",
        {
            "onboarding_step": Step.subscription,
            "role_profile_draft": AGENT_DRAFT if draft is None else draft,
        },
    )
    return store.get("uid-123")


def _paid(capture: CaptureResult) -> FinalizationDecision:
    return FinalizationDecision.paid(
        Pricing("Agent Annual Membership", Decimal("299.00")), capture
    )


class TestFinalize:
    @pytest.mark.asyncio
    async def test_skip_completes_and_seeds_record(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore
    ):
        account = _staged(store)

        result = await finalizer.finalize(account, FinalizationDecision.skip())

        assert result.already_completed is False
        assert result.record_created is True
        assert result.partial_failure is None
        assert result.receipt_sent is False
        assert result.account.onboarding_completed is True
        assert result.account.onboarding_step == Step.complete
        assert result.account.completed_at is not None
        assert result.account.subscription_status == SubscriptionStatus.skipped
        assert isinstance(result.role_record, Agent)

    @pytest.mark.asyncio
    async def test_paid_records_capture_and_sends_receipt(
        self,
        finalizer: ProfileFinalizer,
        store: ProfileDraftStore,
        capture: CaptureResult,
        send_receipt: MagicMock,
    ):
        account = _staged(store)

        result = await finalizer.finalize(account, _paid(capture))

        stored = store.get("uid-123")
        assert stored.subscription_active is True
        assert stored.subscription_plan == "Agent Annual Membership"
        assert stored.subscription_amount == Decimal("299.00")
        assert stored.subscription_currency == "USD"
        assert stored.subscription_provider_order_id == "ORDER123"
        assert stored.subscription_captured_at is not None
        assert stored.has_active_subscription is True
        assert result.receipt_sent is True
        receipt = send_receipt.call_args[0][0]
        assert receipt.to_email == "jane@example.com"
        assert receipt.order_id == "ORDER123"
        assert receipt.transaction_id == "TXN-9"

    @pytest.mark.asyncio
    async def test_second_call_is_noop(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore, session: Session
    ):
        """Test that finalizing twice yields one completion and one record."""
        account = _staged(store)

        await finalizer.finalize(account, FinalizationDecision.skip())
        result = await finalizer.finalize(account, FinalizationDecision.skip())

        assert result.already_completed is True
        assert len(session.exec(select(Agent)).all()) == 1

    @pytest.mark.asyncio
    async def test_stale_copy_does_not_refinalize(
        self,
        finalizer: ProfileFinalizer,
        store: ProfileDraftStore,
        session: Session,
        capture: CaptureResult,
    ):
        """Test that the completion guard reads the stored row."""
        account = _staged(store)
        await finalizer.finalize(account, _paid(capture))
        session.refresh(account)
        session.expunge(account)
        account.onboarding_completed = False

        result = await finalizer.finalize(account, FinalizationDecision.skip())

        assert result.already_completed is True
        assert store.get("uid-123").subscription_status == SubscriptionStatus.active

    @pytest.mark.asyncio
    async def test_capture_after_skip_activates_subscription(
        self,
        finalizer: ProfileFinalizer,
        store: ProfileDraftStore,
        session: Session,
        capture: CaptureResult,
        send_receipt: MagicMock,
    ):
        """Test that a payment captured after a concurrent skip is not dropped."""
        account = _staged(store)
        await finalizer.finalize(account, FinalizationDecision.skip())

        result = await finalizer.finalize(account, _paid(capture))

        stored = store.get("uid-123")
        assert result.already_completed is True
        assert result.receipt_sent is True
        assert stored.subscription_active is True
        assert stored.subscription_status == SubscriptionStatus.active
        assert stored.subscription_provider_order_id == "ORDER123"
        assert len(session.exec(select(Agent)).all()) == 1

    @pytest.mark.asyncio
    async def test_second_capture_keeps_first_order(
        self,
        finalizer: ProfileFinalizer,
        store: ProfileDraftStore,
        capture: CaptureResult,
        send_receipt: MagicMock,
    ):
        account = _staged(store)
        await finalizer.finalize(account, _paid(capture))
        other = CaptureResult(
            order_id="ORDER456",
            status="COMPLETED",
            amount=Decimal("299.00"),
            currency="USD",
            reference_id="uid-123",
        )

        result = await finalizer.finalize(account, _paid(other))

        assert result.already_completed is True
        assert result.receipt_sent is False
        assert store.get("uid-123").subscription_provider_order_id == "ORDER123"
        send_receipt.assert_called_once()

    @pytest.mark.asyncio
    async def test_clears_session_context(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore
    ):
        context = SessionContext.from_tokens("agent", "1")

        await finalizer.finalize(_staged(store), FinalizationDecision.skip(), context)

        assert context.cleared is True
        assert context.role is None

    @pytest.mark.asyncio
    async def test_student_gets_no_record(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore, session: Session
    ):
        account = _staged(store, role=Role.student, draft={})

        result = await finalizer.finalize(account, FinalizationDecision.skip())

        assert result.role_record is None
        assert result.partial_failure is None
        assert session.exec(select(Agent)).first() is None

    @pytest.mark.asyncio
    async def test_incomplete_draft_is_partial_failure(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore, caplog
    ):
        """Test that the account completes even when the record cannot be built."""
        account = _staged(store, role=Role.tutor, draft={"bio": "Hi"})

        with caplog.at_level("ERROR", logger="greenpass.onboarding.finalizer"):
            result = await finalizer.finalize(account, FinalizationDecision.skip())

        assert result.account.onboarding_completed is True
        assert result.role_record is None
        assert result.partial_failure is not None
        assert result.partial_failure.role == "tutor"
        assert "awaiting reconciliation" in caplog.text

    @pytest.mark.asyncio
    async def test_retries_transient_write_failure(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore
    ):
        """Test that one failed completion write is retried."""
        account = _staged(store)
        real_patch = store.patch
        calls = 0

        def flaky_patch(subject_id, fields):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise PersistenceError()
            real_patch(subject_id, fields)

        with patch.object(store, "patch", side_effect=flaky_patch):
            result = await finalizer.finalize(account, FinalizationDecision.skip())

        assert calls == 2
        assert result.account.onboarding_completed is True

    @pytest.mark.asyncio
    async def test_persistent_write_failure_propagates(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore
    ):
        """Test that nothing is completed when every attempt fails."""
        account = _staged(store)

        with (
            patch.object(store, "patch", side_effect=PersistenceError()),
            pytest.raises(PersistenceError),
        ):
            await finalizer.finalize(account, FinalizationDecision.skip())

        assert store.get("uid-123").onboarding_completed is False

    @pytest.mark.asyncio
    async def test_receipt_failure_is_not_fatal(
        self,
        finalizer: ProfileFinalizer,
        store: ProfileDraftStore,
        capture: CaptureResult,
        send_receipt: MagicMock,
    ):
        send_receipt.side_effect = OSError("connection reset")

        result = await finalizer.finalize(_staged(store), _paid(capture))

        assert result.receipt_sent is False
        assert result.account.subscription_active is True


class TestReconcile:
    @pytest.mark.asyncio
    async def test_seeds_missing_record(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore, session: Session
    ):
        """Test that reconciliation creates the record a partial failure left out."""
        account = _staged(store, role=Role.tutor, draft={"bio": "Hi"})
        await finalizer.finalize(account, FinalizationDecision.skip())
        store.patch(
            "uid-123",
            {
                "role_profile_draft": {
                    "specializations": ["IELTS"],
                    "experience_years": 3,
                    "hourly_rate": "40.00",
                    "payout_email": "tutor@example.com",
                }
            },
        )

        result = finalizer.reconcile("uid-123")

        assert result.record_created is True
        tutors = session.exec(select(Tutor)).all()
        assert len(tutors) == 1
        assert tutors[0].specializations == ["IELTS"]

    def test_incomplete_account_untouched(
        self, finalizer: ProfileFinalizer, store: ProfileDraftStore
    ):
        _staged(store)

        result = finalizer.reconcile("uid-123")

        assert result.role_record is None
        assert result.record_created is False
