"""Onboarding domain dependencies.

Wires a per-request state machine from the store, registry, payment gateway,
finalizer and the entry-hint context of the request.
"""

from typing import Annotated

from fastapi import Depends, Query, Request

from greenpass.core.deps import (
    CurrentIdentityDep,
    RoleRegistryDep,
    SessionDep,
    SettingsDep,
)
from greenpass.onboarding.context import SessionContext
from greenpass.onboarding.finalizer import ProfileFinalizer
from greenpass.onboarding.machine import OnboardingStateMachine
from greenpass.onboarding.store import ProfileDraftStore
from greenpass.onboarding.subscription import SubscriptionGateway
from greenpass.payments.paypal import PayPalClient, get_paypal_client


def get_session_context(
    request: Request,
    settings: SettingsDep,
    role: Annotated[str | None, Query(max_length=32)] = None,
    lock: Annotated[str | None, Query(max_length=8)] = None,
) -> SessionContext:
    """Entry hint from ``?role=&lock=``, falling back to the hint cookies."""
    if role:
        return SessionContext.from_tokens(role, lock, source="query")
    cookie_role = request.cookies.get(settings.role_hint_cookie)
    if cookie_role:
        return SessionContext.from_tokens(
            cookie_role, request.cookies.get(settings.role_lock_cookie), source="cookie"
        )
    return SessionContext()


def get_store(session: SessionDep) -> ProfileDraftStore:
    return ProfileDraftStore(session)


StoreDep = Annotated[ProfileDraftStore, Depends(get_store)]
SessionContextDep = Annotated[SessionContext, Depends(get_session_context)]
PayPalClientDep = Annotated[PayPalClient | None, Depends(get_paypal_client)]


def get_subscription_gateway(
    client: PayPalClientDep, settings: SettingsDep
) -> SubscriptionGateway:
    return SubscriptionGateway(client, settings)


def get_finalizer(
    store: StoreDep, registry: RoleRegistryDep, settings: SettingsDep
) -> ProfileFinalizer:
    return ProfileFinalizer(store, registry, settings)


def get_state_machine(
    identity: CurrentIdentityDep,
    store: StoreDep,
    registry: RoleRegistryDep,
    gateway: Annotated[SubscriptionGateway, Depends(get_subscription_gateway)],
    finalizer: Annotated[ProfileFinalizer, Depends(get_finalizer)],
    context: SessionContextDep,
) -> OnboardingStateMachine:
    machine = OnboardingStateMachine(store, registry, gateway, finalizer, context)
    machine.open(identity)
    return machine


StateMachineDep = Annotated[OnboardingStateMachine, Depends(get_state_machine)]
