"""Onboarding domain router.

Thin HTTP handlers: each one turns a request into a state-machine event and
returns the resulting state snapshot.
"""

from fastapi import APIRouter, Response, status

from greenpass.core.constants import CommonResponses, Routes
from greenpass.core.deps import SettingsDep
from greenpass.core.settings import Settings
from greenpass.onboarding.dependencies import StateMachineDep
from greenpass.onboarding.machine import (
    Event,
    GoBack,
    OnboardingStateMachine,
    PaymentApproved,
    PaymentCancelled,
    PaymentErrored,
    PrepareSubscription,
    SaveRoleProfileDraft,
    SelectRole,
    SkipSubscription,
    SubmitBasicInfo,
    SubmitRoleProfile,
)
from greenpass.onboarding.schemas import (
    BasicInfoRequest,
    OnboardingStateRead,
    OrderCreated,
    PaymentApprovedRequest,
    PaymentErrorRequest,
    RoleProfileRequest,
    SelectRoleRequest,
)

router = APIRouter(
    prefix=Routes.ONBOARDING.prefix,
    tags=[Routes.ONBOARDING.tag],
    responses={**CommonResponses.UNAUTHORIZED, **CommonResponses.UNAVAILABLE},
)


def _sync_hint_cookies(
    response: Response, machine: OnboardingStateMachine, settings: Settings
) -> None:
    """Delete the entry-hint cookies once the session context was cleared."""
    if machine.context.cleared:
        response.delete_cookie(settings.role_hint_cookie)
        response.delete_cookie(settings.role_lock_cookie)


async def _dispatch(
    machine: OnboardingStateMachine,
    event: Event,
    response: Response,
    settings: Settings,
) -> OnboardingStateRead:
    state = await machine.dispatch(event)
    _sync_hint_cookies(response, machine, settings)
    return OnboardingStateRead.from_state(state)


@router.post("/start", response_model=OnboardingStateRead)
async def start(machine: StateMachineDep, response: Response, settings: SettingsDep):
    """Open the onboarding session and apply the entry hint.

    A hint passed as ``?role=&lock=`` is kept in session cookies so that a
    reload keeps the role pinned until onboarding completes.
    """
    state = machine.resolve_entry()
    context = machine.context

    if state.completed:
        context.clear()
    elif context.source == "query" and context.role is not None:
        for key, value in (
            (settings.role_hint_cookie, context.role.value),
            (settings.role_lock_cookie, "1" if context.lock else "0"),
        ):
            response.set_cookie(
                key=key,
                value=value,
                httponly=True,
                secure=settings.is_secure_cookie,
                samesite="lax",
            )

    _sync_hint_cookies(response, machine, settings)
    return OnboardingStateRead.from_state(state)


@router.get("/state", response_model=OnboardingStateRead)
async def get_state(machine: StateMachineDep):
    """Current step, resumed from the last persisted cursor."""
    return OnboardingStateRead.from_state(machine.current_state)


@router.post(
    "/role",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.CONFLICT},
)
async def select_role(
    body: SelectRoleRequest,
    machine: StateMachineDep,
    response: Response,
    settings: SettingsDep,
):
    """Choose a role. Ignored while the role is pinned by the entry hint."""
    return await _dispatch(machine, SelectRole(role=body.role), response, settings)


@router.post(
    "/basic-info",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.BAD_REQUEST, **CommonResponses.CONFLICT},
)
async def submit_basic_info(
    body: BasicInfoRequest,
    machine: StateMachineDep,
    response: Response,
    settings: SettingsDep,
):
    event = SubmitBasicInfo(
        full_name=body.full_name,
        phone=body.phone,
        country=body.country,
        country_code=body.country_code,
    )
    return await _dispatch(machine, event, response, settings)


@router.put(
    "/role-profile/draft",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.BAD_REQUEST, **CommonResponses.CONFLICT},
)
async def save_role_profile_draft(
    body: RoleProfileRequest,
    machine: StateMachineDep,
    response: Response,
    settings: SettingsDep,
):
    """Stage partial role fields without validating or advancing."""
    return await _dispatch(
        machine, SaveRoleProfileDraft(fields=body.fields), response, settings
    )


@router.post(
    "/role-profile",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.BAD_REQUEST, **CommonResponses.CONFLICT},
)
async def submit_role_profile(
    body: RoleProfileRequest,
    machine: StateMachineDep,
    response: Response,
    settings: SettingsDep,
):
    return await _dispatch(
        machine, SubmitRoleProfile(fields=body.fields), response, settings
    )


@router.post("/back", response_model=OnboardingStateRead)
async def go_back(machine: StateMachineDep, response: Response, settings: SettingsDep):
    return await _dispatch(machine, GoBack(), response, settings)


@router.get(
    "/subscription",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.CONFLICT},
)
async def prepare_subscription(
    machine: StateMachineDep, response: Response, settings: SettingsDep
):
    """Gateway state and widget configuration for the subscription step."""
    return await _dispatch(machine, PrepareSubscription(), response, settings)


@router.post(
    "/subscription/order",
    response_model=OrderCreated,
    status_code=status.HTTP_201_CREATED,
    responses={**CommonResponses.CONFLICT, **CommonResponses.PAYMENT_FAILED},
)
async def create_order(machine: StateMachineDep):
    """Create the PayPal order the widget asks the buyer to approve."""
    return OrderCreated(order_id=await machine.create_order())


@router.post(
    "/subscription/approve",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.CONFLICT, **CommonResponses.PAYMENT_FAILED},
)
async def approve_payment(
    body: PaymentApprovedRequest,
    machine: StateMachineDep,
    response: Response,
    settings: SettingsDep,
):
    """Capture the approved order and complete onboarding.

    Safe to repeat: a second approval of the same order does not charge or
    finalize twice.
    """
    return await _dispatch(
        machine, PaymentApproved(order_id=body.order_id), response, settings
    )


@router.post(
    "/subscription/cancel",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.CONFLICT},
)
async def cancel_payment(
    machine: StateMachineDep, response: Response, settings: SettingsDep
):
    return await _dispatch(machine, PaymentCancelled(), response, settings)


@router.post(
    "/subscription/error",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.CONFLICT},
)
async def report_payment_error(
    body: PaymentErrorRequest,
    machine: StateMachineDep,
    response: Response,
    settings: SettingsDep,
):
    return await _dispatch(
        machine, PaymentErrored(reason=body.reason), response, settings
    )


@router.post(
    "/subscription/skip",
    response_model=OnboardingStateRead,
    responses={**CommonResponses.CONFLICT},
)
async def skip_subscription(
    machine: StateMachineDep, response: Response, settings: SettingsDep
):
    """Finish onboarding without paying."""
    return await _dispatch(machine, SkipSubscription(), response, settings)
