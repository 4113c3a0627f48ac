"""Onboarding state machine.

Drives one account through::

    choose_role -> basic_info -> role_specific -> subscription -> complete

(students go straight from basic_info to complete). The public surface is
``current_state`` and ``dispatch(event)``. Every transition is persisted
before the in-memory state moves, so a reload resumes at the last stored
step and a failed write leaves the user where they were.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from greenpass.account.models import Account
from greenpass.auth.schemas import Identity
from greenpass.core.exceptions import InternalError
from greenpass.onboarding.context import SessionContext
from greenpass.onboarding.exceptions import (
    FinalizationPartialFailure,
    OnboardingValidationError,
    StepTransitionError,
)
from greenpass.onboarding.finalizer import (
    FinalizationDecision,
    FinalizationResult,
    ProfileFinalizer,
)
from greenpass.onboarding.roles import (
    Pricing,
    Role,
    RoleRegistry,
    Step,
    basic_info_errors,
)
from greenpass.onboarding.store import ProfileDraftStore
from greenpass.onboarding.subscription import GatewayState, SubscriptionGateway

logger = logging.getLogger(__name__)

PARTIAL_FAILURE_NOTICE = (
    "Your profile is saved and will appear once it has been set up."
)


# Events


@dataclass(frozen=True)
class SelectRole:
    role: Role


@dataclass(frozen=True)
class SubmitBasicInfo:
    full_name: str
    phone: str
    country: str
    country_code: str = ""


@dataclass(frozen=True)
class SaveRoleProfileDraft:
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmitRoleProfile:
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GoBack:
    pass


@dataclass(frozen=True)
class PrepareSubscription:
    pass


@dataclass(frozen=True)
class PaymentApproved:
    order_id: str


@dataclass(frozen=True)
class PaymentCancelled:
    pass


@dataclass(frozen=True)
class PaymentErrored:
    reason: str | None = None


@dataclass(frozen=True)
class SkipSubscription:
    pass


Event = (
    SelectRole
    | SubmitBasicInfo
    | SaveRoleProfileDraft
    | SubmitRoleProfile
    | GoBack
    | PrepareSubscription
    | PaymentApproved
    | PaymentCancelled
    | PaymentErrored
    | SkipSubscription
)


@dataclass(frozen=True)
class OnboardingState:
    """Snapshot rendered by the client."""

    subject_id: str
    step: Step
    role: Role
    role_locked: bool
    completed: bool
    steps: tuple[Step, ...]
    progress: int
    draft: dict[str, Any]
    pricing: Pricing | None = None
    gateway: GatewayState | None = None
    notice: str | None = None
    partial_failure: bool = False


class OnboardingStateMachine:
    def __init__(
        self,
        store: ProfileDraftStore,
        registry: RoleRegistry,
        gateway: SubscriptionGateway,
        finalizer: ProfileFinalizer,
        context: SessionContext | None = None,
    ):
        self._store = store
        self._registry = registry
        self._gateway = gateway
        self._finalizer = finalizer
        self._context = context or SessionContext()
        self._account: Account | None = None
        self._entry_resolved = False
        self._notice: str | None = None
        self._last_result: FinalizationResult | None = None
        self._handlers: dict[type, Callable[[Account, Any], Awaitable[None]]] = {
            SelectRole: self._select_role,
            SubmitBasicInfo: self._submit_basic_info,
            SaveRoleProfileDraft: self._save_role_profile_draft,
            SubmitRoleProfile: self._submit_role_profile,
            GoBack: self._go_back,
            PrepareSubscription: self._prepare_subscription,
            PaymentApproved: self._payment_approved,
            PaymentCancelled: self._payment_cancelled,
            PaymentErrored: self._payment_errored,
            SkipSubscription: self._skip_subscription,
        }

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def last_result(self) -> FinalizationResult | None:
        return self._last_result

    def _require_account(self) -> Account:
        if self._account is None:
            raise InternalError("Onboarding session was not opened")
        return self._account

    def _reload(self) -> Account:
        self._account = self._store.get(self._require_account().subject_id)
        return self._account

    def _persist(self, account: Account, fields: dict[str, Any]) -> Account:
        """Write fields, then adopt the stored row as the current state."""
        self._store.patch(account.subject_id, fields)
        return self._reload()

    def open(self, identity: Identity) -> "OnboardingState":
        """Load the identity's account, creating it on first visit."""
        self._account = self._store.load_or_create(
            identity, role_hint=self._context.role
        )
        return self.current_state

    def resume(self, subject_id: str) -> "OnboardingState":
        """Re-attach to a stored account at its persisted step."""
        self._account = self._store.get(subject_id)
        return self.current_state

    @property
    def current_state(self) -> OnboardingState:
        account = self._require_account()
        role = account.role
        on_subscription = account.onboarding_step == Step.subscription
        gateway = self._gateway.state if on_subscription else None
        return OnboardingState(
            subject_id=account.subject_id,
            step=account.onboarding_step,
            role=role,
            role_locked=account.role_locked,
            completed=account.onboarding_completed,
            steps=self._registry.steps_for(role),
            progress=self._registry.progress(role, account.onboarding_step),
            draft=dict(account.role_profile_draft or {}),
            pricing=self._registry.pricing(role) if on_subscription else None,
            gateway=gateway,
            notice=self._notice,
            partial_failure=bool(
                self._last_result and self._last_result.partial_failure
            ),
        )

    def resolve_entry(self) -> OnboardingState:
        """Apply the session's entry hint. Runs at most once per session.

        A valid hint pins the role and moves a fresh account past role
        selection. Without one the stored role is kept, unlocked.
        """
        account = self._require_account()
        if self._entry_resolved:
            return self.current_state
        self._entry_resolved = True

        if account.onboarding_completed:
            return self.current_state

        hinted = self._context.role
        fields: dict[str, Any] = {}

        if hinted is None:
            if account.role_locked:
                fields["role_locked"] = False
        elif self._context.lock:
            if hinted != account.role:
                fields.update(self._switch_role_fields(account, hinted))
            if not account.role_locked:
                fields["role_locked"] = True
            step = fields.get("onboarding_step", account.onboarding_step)
            if step == Step.choose_role:
                fields["onboarding_step"] = Step.basic_info
        elif account.onboarding_step == Step.choose_role and hinted != account.role:
            # Unlocked hint: preselect the role tile only.
            fields.update(self._switch_role_fields(account, hinted))
            fields["role_locked"] = False

        if fields:
            account = self._persist(account, fields)

        logger.info(
            "Resolved onboarding entry for %s",
            account.subject_id,
            extra={
                "subject_id": account.subject_id,
                "role": account.role.value,
                "step": account.onboarding_step.value,
                "event": f"entry:{self._context.source}",
            },
        )
        return self.current_state

    def _switch_role_fields(self, account: Account, role: Role) -> dict[str, Any]:
        """Fields for moving an account to another role.

        Drops the staged draft so the old role's fields never reach the new
        role's record, and pulls a cursor the new role cannot hold back to
        basic info.
        """
        fields: dict[str, Any] = {"role": role, "role_profile_draft": {}}
        step = account.onboarding_step
        if step in (Step.role_specific, Step.subscription) or not (
            self._registry.is_valid_step(role, step)
        ):
            fields["onboarding_step"] = Step.basic_info
        return fields

    async def dispatch(self, event: Event) -> OnboardingState:
        """Apply a user action and return the resulting state.

        Raises:
            StepTransitionError: If the action does not apply to the step.
            OnboardingValidationError: If submitted fields are invalid.
            PersistenceError: If the write failed; the step did not change.
            PaymentError: If a capture failed; still on subscription.
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported onboarding event: {type(event).__name__}")

        account = self._reload()
        self._notice = None
        logger.debug(
            "Dispatching %s",
            type(event).__name__,
            extra={
                "subject_id": account.subject_id,
                "role": account.role.value,
                "step": account.onboarding_step.value,
                "event": type(event).__name__,
            },
        )
        await handler(account, event)
        return self.current_state

    def _expect_step(self, account: Account, *steps: Step) -> None:
        if account.onboarding_completed or account.onboarding_step not in steps:
            raise StepTransitionError(
                f"Cannot do that at step '{account.onboarding_step.value}'"
            )

    def _log_transition(self, account: Account, event: str, previous: Step) -> None:
        logger.info(
            "Onboarding %s: %s -> %s",
            event,
            previous.value,
            account.onboarding_step.value,
            extra={
                "subject_id": account.subject_id,
                "role": account.role.value,
                "step": account.onboarding_step.value,
                "event": event,
            },
        )

    async def _select_role(self, account: Account, event: SelectRole) -> None:
        if account.onboarding_completed or account.role_locked:
            # Locked accounts only change role through entry resolution.
            logger.info(
                "Ignoring role selection for %s (locked or complete)",
                account.subject_id,
                extra={"subject_id": account.subject_id, "role": account.role.value},
            )
            return
        self._expect_step(account, Step.choose_role)

        fields: dict[str, Any] = {"onboarding_step": Step.basic_info}
        if event.role != account.role:
            fields.update(role=event.role, role_profile_draft={})
        previous = account.onboarding_step
        account = self._persist(account, fields)
        self._log_transition(account, "select_role", previous)

    async def _submit_basic_info(
        self, account: Account, event: SubmitBasicInfo
    ) -> None:
        self._expect_step(account, Step.basic_info)

        errors = basic_info_errors(event.full_name, event.phone, event.country)
        if errors:
            raise OnboardingValidationError(errors)

        fields: dict[str, Any] = {
            "full_name": event.full_name.strip(),
            "phone": event.phone.strip(),
            "country": event.country.strip(),
            "country_code": (event.country_code or "").strip(),
        }
        previous = account.onboarding_step
        next_step = self._registry.next_step(account.role, Step.basic_info)

        if next_step == Step.complete:
            # Roles without a profile or subscription step finish here.
            account = self._persist(account, fields)
            await self._finalize(account, FinalizationDecision.skip())
            self._log_transition(self._require_account(), "submit_basic_info", previous)
            return

        fields["onboarding_step"] = next_step
        account = self._persist(account, fields)
        self._log_transition(account, "submit_basic_info", previous)

    async def _save_role_profile_draft(
        self, account: Account, event: SaveRoleProfileDraft
    ) -> None:
        self._expect_step(account, Step.role_specific)
        merged = {**(account.role_profile_draft or {}), **event.fields}
        draft = self._registry.build_draft(account.role, merged)
        self._persist(account, {"role_profile_draft": draft.model_dump(mode="json")})

    async def _submit_role_profile(
        self, account: Account, event: SubmitRoleProfile
    ) -> None:
        self._expect_step(account, Step.role_specific)

        merged = {**(account.role_profile_draft or {}), **event.fields}
        draft = self._registry.build_draft(account.role, merged)
        errors = self._registry.validation_errors(account.role, draft)
        if errors:
            raise OnboardingValidationError(errors)

        previous = account.onboarding_step
        account = self._persist(
            account,
            {
                "role_profile_draft": draft.model_dump(mode="json"),
                "onboarding_step": self._registry.next_step(
                    account.role, Step.role_specific
                ),
            },
        )
        self._log_transition(account, "submit_role_profile", previous)

    async def _go_back(self, account: Account, _event: GoBack) -> None:
        if account.onboarding_completed:
            return
        step = account.onboarding_step
        if step == Step.basic_info and account.role_locked:
            return
        previous = self._registry.previous_step(account.role, step)
        if previous is None:
            return
        account = self._persist(account, {"onboarding_step": previous})
        self._log_transition(account, "back", step)

    def _pricing(self, account: Account) -> Pricing:
        pricing = self._registry.pricing(account.role)
        if pricing is None:
            raise StepTransitionError("This role has no subscription step")
        return pricing

    async def _prepare_subscription(
        self, account: Account, _event: PrepareSubscription
    ) -> None:
        self._expect_step(account, Step.subscription)
        await self._gateway.prepare(self._pricing(account))

    async def create_order(self) -> str:
        """Create the provider order for the widget on the subscription step."""
        account = self._reload()
        self._expect_step(account, Step.subscription)
        return await self._gateway.create_order(
            self._pricing(account), reference_id=account.subject_id
        )

    async def _payment_approved(self, account: Account, event: PaymentApproved) -> None:
        if account.onboarding_completed:
            # Duplicate approve callback; the first one already finalized.
            return
        self._expect_step(account, Step.subscription)
        decision = await self._gateway.approve(
            event.order_id, self._pricing(account), account.subject_id
        )
        await self._finalize(account, decision)

    async def _payment_cancelled(
        self, account: Account, _event: PaymentCancelled
    ) -> None:
        self._expect_step(account, Step.subscription)
        self._notice = self._gateway.cancelled()

    async def _payment_errored(self, account: Account, event: PaymentErrored) -> None:
        self._expect_step(account, Step.subscription)
        self._notice = self._gateway.errored(event.reason)

    async def _skip_subscription(
        self, account: Account, _event: SkipSubscription
    ) -> None:
        if account.onboarding_completed:
            return
        self._expect_step(account, Step.subscription)
        await self._finalize(account, self._gateway.skip())

    async def _finalize(self, account: Account, decision: FinalizationDecision) -> None:
        result = await self._finalizer.finalize(account, decision, self._context)
        self._last_result = result
        self._account = result.account
        failure: FinalizationPartialFailure | None = result.partial_failure
        if failure is not None:
            self._notice = PARTIAL_FAILURE_NOTICE
