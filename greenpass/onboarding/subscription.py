"""Subscription gateway.

Finite sub-machine around the PayPal checkout lifecycle::

    idle -> loading -> ready
                    -> failed

It isolates the onboarding flow from the widget's own quirks: the flow only
sees a gateway state to render and, after a capture, a finalization decision.
Cancellation and widget errors never fail the step; skipping is always
available.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from greenpass.core.settings import Settings
from greenpass.onboarding.finalizer import FinalizationDecision
from greenpass.onboarding.roles import Pricing
from greenpass.payments.exceptions import PaymentError, PaymentProviderError
from greenpass.payments.paypal import PayPalClient

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = (
    "Subscriptions are currently disabled. You can skip this step for now."
)
NOT_CONFIGURED_MESSAGE = (
    "Online payment is not available yet. You can skip this step for now."
)
UNAVAILABLE_MESSAGE = (
    "The payment service is temporarily unavailable. Try again or skip for now."
)
CANCELLED_NOTICE = "Payment was cancelled. You can try again or skip for now."
ERRORED_NOTICE = (
    "Something went wrong with the payment. You can try again or skip for now."
)


class GatewayStatus(str, Enum):
    idle = "idle"
    loading = "loading"
    ready = "ready"
    failed = "failed"


@dataclass(frozen=True)
class GatewayState:
    status: GatewayStatus = GatewayStatus.idle
    message: str | None = None
    client_id: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    description: str | None = None
    skip_available: bool = True


class SubscriptionGateway:
    def __init__(self, client: PayPalClient | None, settings: Settings):
        self._client = client
        self._settings = settings
        self._state = GatewayState()

    @property
    def state(self) -> GatewayState:
        return self._state

    def _failed(self, message: str) -> GatewayState:
        self._state = GatewayState(status=GatewayStatus.failed, message=message)
        return self._state

    def _require_client(self) -> PayPalClient:
        if not self._settings.subscription_mode_enabled:
            raise PaymentError(DISABLED_MESSAGE)
        if self._client is None:
            raise PaymentError(NOT_CONFIGURED_MESSAGE)
        return self._client

    async def prepare(self, pricing: Pricing) -> GatewayState:
        """Get the widget ready to charge ``pricing``.

        Never raises: configuration and provider problems land in ``failed``
        with a message offering the skip path.
        """
        if not self._settings.subscription_mode_enabled:
            return self._failed(DISABLED_MESSAGE)
        if self._client is None:
            logger.info("PayPal credentials not configured, subscription unavailable")
            return self._failed(NOT_CONFIGURED_MESSAGE)

        self._state = GatewayState(status=GatewayStatus.loading)
        try:
            await self._client.get_access_token()
        except PaymentProviderError as e:
            logger.warning("Subscription gateway failed to load: %s", e.message)
            return self._failed(UNAVAILABLE_MESSAGE)

        self._state = replace(
            self._state,
            status=GatewayStatus.ready,
            client_id=self._client.client_id,
            amount=pricing.amount,
            currency=pricing.currency,
            description=pricing.label,
        )
        return self._state

    async def create_order(self, pricing: Pricing, reference_id: str) -> str:
        """Create the provider order the widget asks the buyer to approve."""
        client = self._require_client()
        return await client.create_order(
            amount=pricing.amount,
            currency=pricing.currency,
            description=pricing.label,
            reference_id=reference_id,
        )

    async def approve(
        self, order_id: str, pricing: Pricing, reference_id: str
    ) -> FinalizationDecision:
        """Capture an approved order and turn it into a paid decision.

        The capture must belong to ``reference_id`` (the subject the order
        was created for) and cover ``pricing`` in full.

        Raises:
            PaymentError: If the capture was declined, did not complete, or
                does not match the account and price.
            PaymentProviderError: If PayPal could not be reached.
        """
        client = self._require_client()
        capture = await client.capture_order(order_id)
        if not capture.completed:
            logger.warning(
                "Capture of %s ended in status %s",
                order_id,
                capture.status,
                extra={"order_id": order_id},
            )
            raise PaymentError("Payment was not completed, please try again")
        if capture.reference_id != reference_id:
            logger.warning(
                "Order %s was created for another account",
                order_id,
                extra={"order_id": order_id, "subject_id": reference_id},
            )
            raise PaymentError("This payment does not belong to your account")
        if (
            capture.currency != pricing.currency
            or capture.amount is None
            or capture.amount < pricing.amount
        ):
            logger.warning(
                "Order %s captured %s %s, expected %s %s",
                order_id,
                capture.amount,
                capture.currency,
                pricing.amount,
                pricing.currency,
                extra={"order_id": order_id, "subject_id": reference_id},
            )
            raise PaymentError("Payment amount does not match the subscription price")
        return FinalizationDecision.paid(pricing, capture)

    def skip(self) -> FinalizationDecision:
        return FinalizationDecision.skip()

    def cancelled(self) -> str:
        return CANCELLED_NOTICE

    def errored(self, reason: str | None) -> str:
        logger.warning("Payment widget reported an error: %s", reason or "unknown")
        return ERRORED_NOTICE
