"""Tests for greenpass/onboarding/store.py - Account persistence adapter."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from greenpass.account.exceptions import AccountNotFoundError
from greenpass.account.models import Account, SubscriptionStatus
from greenpass.core.exceptions import PersistenceError
from greenpass.onboarding.records import Agent, VerificationStatus
from greenpass.onboarding.roles import Role, Step
from greenpass.onboarding.store import ProfileDraftStore


def _agent(subject_id: str = "uid-123", company: str = "Maple Education") -> Agent:
    return Agent(
        subject_id=subject_id,
        company_name=company,
        business_license="BL-1234",
        payout_email="payouts@maple-education.com",
        referral_code="AG123456",
    )


class TestCreate:
    def test_create_default(self, store: ProfileDraftStore):
        """Test that a new account starts at role choice as an unlocked student."""
        account = store.create_default("uid-1", "jane@example.com", "Jane Doe")

        assert account.role == Role.student
        assert account.role_locked is False
        assert account.onboarding_step == Step.choose_role
        assert account.onboarding_completed is False
        assert account.role_profile_draft == {}
        assert account.subscription_status == SubscriptionStatus.none
        assert account.full_name == "Jane Doe"

    def test_create_default_with_role_hint(self, store: ProfileDraftStore):
        account = store.create_default("uid-1", None, role_hint=Role.agent)

        assert account.role == Role.agent
        assert account.email == ""

    def test_concurrent_create_returns_stored_row(
        self, store: ProfileDraftStore, session: Session
    ):
        """Test that losing the insert race yields the winner's row."""
        store.create_default("uid-1", "jane@example.com", role_hint=Role.tutor)
        session.expunge_all()

        account = store.create_default("uid-1", "other@example.com")

        assert account.role == Role.tutor
        assert account.email == "jane@example.com"

    def test_load_or_create_is_idempotent(self, store: ProfileDraftStore, identity):
        first = store.load_or_create(identity, role_hint=Role.agent)
        second = store.load_or_create(identity, role_hint=Role.school)

        assert first.subject_id == second.subject_id
        assert second.role == Role.agent

    def test_load_missing(self, store: ProfileDraftStore):
        assert store.load("nobody") is None
        with pytest.raises(AccountNotFoundError):
            store.get("nobody")


class TestPatch:
    def test_patch_updates_only_given_columns(
        self, store: ProfileDraftStore, session: Session
    ):
        """Test that two writers touching different fields both persist."""
        store.create_default("uid-1", "jane@example.com")
        other_tab = ProfileDraftStore(session)

        store.patch("uid-1", {"phone": "+15550000"})
        other_tab.patch("uid-1", {"country": "Canada"})

        account = store.get("uid-1")
        assert account.phone == "+15550000"
        assert account.country == "Canada"

    def test_patch_returns_fresh_values(self, store: ProfileDraftStore):
        """Test that reads after a patch see the stored row, not a cached copy."""
        account = store.create_default("uid-1", "jane@example.com")

        store.patch("uid-1", {"role_profile_draft": {"company_name": "Maple"}})

        assert store.get("uid-1").role_profile_draft == {"company_name": "Maple"}
        assert account.role_profile_draft == {"company_name": "Maple"}

    @pytest.mark.parametrize("field", ["subject_id", "email", "created_at"])
    def test_immutable_fields_rejected(self, store: ProfileDraftStore, field):
        store.create_default("uid-1", "jane@example.com")

        with pytest.raises(ValueError, match="Immutable"):
            store.patch("uid-1", {field: "x"})

    def test_unknown_field_rejected(self, store: ProfileDraftStore):
        store.create_default("uid-1", "jane@example.com")

        with pytest.raises(ValueError, match="Unknown account fields: nickname"):
            store.patch("uid-1", {"nickname": "JD"})

    def test_patch_missing_account(self, store: ProfileDraftStore):
        with pytest.raises(AccountNotFoundError):
            store.patch("nobody", {"phone": "1"})

    def test_write_failure_raises_persistence_error(
        self, store: ProfileDraftStore, session: Session
    ):
        """Test that a failed write maps to a retryable error and changes nothing."""
        store.create_default("uid-1", "jane@example.com")
        failure = OperationalError("UPDATE accounts", {}, Exception("disk I/O error"))

        with (
            patch.object(session, "execute", side_effect=failure),
            pytest.raises(PersistenceError),
        ):
            store.patch("uid-1", {"onboarding_step": Step.basic_info})

        assert store.read_cursor("uid-1") == Step.choose_role

    def test_activate_subscription_only_once(self, store: ProfileDraftStore):
        """Test that an active subscription is never overwritten."""
        store.create_default("uid-1", "jane@example.com")

        first = store.activate_subscription(
            "uid-1",
            {
                "subscription_active": True,
                "subscription_status": SubscriptionStatus.active,
                "subscription_provider_order_id": "ORDER123",
            },
        )
        second = store.activate_subscription(
            "uid-1",
            {
                "subscription_active": True,
                "subscription_status": SubscriptionStatus.active,
                "subscription_provider_order_id": "ORDER456",
            },
        )

        assert (first, second) == (True, False)
        assert store.get("uid-1").subscription_provider_order_id == "ORDER123"

    def test_cursor_round_trip(self, store: ProfileDraftStore):
        store.create_default("uid-1", "jane@example.com")

        store.write_cursor("uid-1", Step.basic_info)

        assert store.read_cursor("uid-1") == Step.basic_info


class TestRoleRecords:
    def test_create_and_find(self, store: ProfileDraftStore):
        record, created = store.create_role_record(_agent())

        assert created is True
        assert record.verification_status == VerificationStatus.pending
        assert record.is_verified is False
        assert store.find_role_record(Agent, "uid-123") is not None

    def test_second_create_returns_existing(
        self, store: ProfileDraftStore, session: Session
    ):
        """Test that a duplicate insert resolves to the first record."""
        first, _ = store.create_role_record(_agent())

        second, created = store.create_role_record(_agent(company="Other Co"))

        assert created is False
        assert second.id == first.id
        assert second.company_name == "Maple Education"
        assert len(session.exec(select(Agent)).all()) == 1

    def test_completed_accounts(self, store: ProfileDraftStore):
        store.create_default("uid-1", "a@example.com", role_hint=Role.agent)
        store.create_default("uid-2", "b@example.com", role_hint=Role.student)
        store.create_default("uid-3", "c@example.com", role_hint=Role.tutor)
        store.patch("uid-1", {"onboarding_completed": True})
        store.patch("uid-2", {"onboarding_completed": True})

        accounts = list(store.completed_accounts((Role.agent, Role.tutor)))

        assert [account.subject_id for account in accounts] == ["uid-1"]
        assert all(isinstance(account, Account) for account in accounts)
