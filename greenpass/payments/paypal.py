"""PayPal Orders v2 client.

Server-side half of the PayPal checkout: the browser widget renders the
button and reports the approved order id, this client creates and captures
orders through the REST API.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any

import httpx

from greenpass.core.http import get_paypal_http_client
from greenpass.core.retry import with_retry
from greenpass.core.settings import get_settings
from greenpass.payments.exceptions import PaymentError, PaymentProviderError

logger = logging.getLogger(__name__)

# Refresh the OAuth token this many seconds before PayPal expires it.
TOKEN_EXPIRY_MARGIN = 60

ORDER_ALREADY_CAPTURED = "ORDER_ALREADY_CAPTURED"


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of capturing an approved order."""

    order_id: str
    status: str
    transaction_id: str | None = None
    payer_email: str | None = None
    payer_name: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    reference_id: str | None = None

    @property
    def completed(self) -> bool:
        return self.status == "COMPLETED"

    def as_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "status": self.status,
            "transaction_id": self.transaction_id,
            "payer_email": self.payer_email,
            "payer_name": self.payer_name,
            "amount": str(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "reference_id": self.reference_id,
        }


def _issue(response: httpx.Response) -> str | None:
    """Extract the first PayPal error issue code from an error body."""
    try:
        data = response.json()
    except ValueError:
        return None
    details = data.get("details") or []
    if details and isinstance(details[0], dict):
        return details[0].get("issue")
    return data.get("name")


def parse_order(data: dict[str, Any]) -> CaptureResult:
    """Build a CaptureResult from an order or capture response body."""
    transaction_id = None
    amount = None
    currency = None

    units = data.get("purchase_units") or []
    captures = ((units[0].get("payments") or {}).get("captures") or []) if units else []
    if captures:
        capture = captures[0]
        transaction_id = capture.get("id")
        money = capture.get("amount") or {}
        currency = money.get("currency_code")
        try:
            amount = Decimal(money["value"]) if "value" in money else None
        except InvalidOperation:
            amount = None

    payer = data.get("payer") or {}
    name = payer.get("name") or {}
    payer_name = " ".join(
        part for part in (name.get("given_name"), name.get("surname")) if part
    )

    return CaptureResult(
        order_id=data["id"],
        status=data.get("status", "UNKNOWN"),
        transaction_id=transaction_id,
        payer_email=payer.get("email_address"),
        payer_name=payer_name or None,
        amount=amount,
        currency=currency,
        reference_id=units[0].get("reference_id") if units else None,
    )


class PayPalClient:
    """Async client for the PayPal REST API.

    Transport failures are retried with backoff. Every mutating call carries
    a PayPal-Request-Id, so a retried create or capture is applied once.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient,
        retry_attempts: int = 2,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http_client
        self._retry_attempts = retry_attempts
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    @property
    def client_id(self) -> str:
        """Public client id handed to the browser widget."""
        return self._client_id

    async def _send(self, label: str, **request: Any) -> httpx.Response:
        async def do_request() -> httpx.Response:
            return await self._http.request(**request)

        try:
            return await with_retry(
                do_request,
                attempts=self._retry_attempts,
                exceptions=(httpx.TransportError,),
                label=label,
            )
        except httpx.TransportError as e:
            logger.warning("PayPal %s failed: %s", label, e)
            raise PaymentProviderError() from e

    async def get_access_token(self) -> str:
        """Return a cached OAuth token, fetching a new one when near expiry.

        Raises:
            PaymentProviderError: If PayPal is unreachable or rejects the
                client credentials.
        """
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        response = await self._send(
            "paypal.oauth",
            method="POST",
            url="/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
        )
        if response.status_code != 200:
            logger.error("PayPal OAuth rejected (status %s)", response.status_code)
            raise PaymentProviderError("Payment service rejected the API credentials")

        data = response.json()
        self._access_token = data["access_token"]
        expires_in = int(data.get("expires_in", 0))
        self._token_expires_at = time.monotonic() + max(
            expires_in - TOKEN_EXPIRY_MARGIN, 0
        )
        return self._access_token

    async def _authorized(
        self, label: str, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", {}))
        headers["Authorization"] = f"Bearer {await self.get_access_token()}"
        response = await self._send(
            label, method=method, url=url, headers=headers, **kwargs
        )

        if response.status_code == 401:
            # Token revoked or expired early; fetch a new one once.
            self._access_token = None
            headers["Authorization"] = f"Bearer {await self.get_access_token()}"
            response = await self._send(
                label, method=method, url=url, headers=headers, **kwargs
            )
        return response

    @staticmethod
    def _error(response: httpx.Response, action: str) -> Exception:
        issue = _issue(response)
        if response.status_code >= 500 or response.status_code in (401, 403):
            logger.error(
                "PayPal %s failed (status %s, issue %s)",
                action,
                response.status_code,
                issue,
            )
            return PaymentProviderError()
        logger.warning("PayPal %s declined: %s", action, issue)
        detail = f" ({issue})" if issue else ""
        return PaymentError(f"Payment could not be completed{detail}")

    async def create_order(
        self,
        *,
        amount: Decimal,
        currency: str,
        description: str,
        reference_id: str,
        request_id: str | None = None,
    ) -> str:
        """Create a CAPTURE-intent order and return its id."""
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference_id,
                    "description": description,
                    "amount": {"currency_code": currency, "value": f"{amount:.2f}"},
                }
            ],
        }
        response = await self._authorized(
            "paypal.create_order",
            "POST",
            "/v2/checkout/orders",
            json=payload,
            headers={"PayPal-Request-Id": request_id or f"order-{uuid.uuid4().hex}"},
        )
        if response.status_code not in (200, 201):
            raise self._error(response, "create order")

        order_id = response.json()["id"]
        logger.info("Created PayPal order %s", order_id, extra={"order_id": order_id})
        return order_id

    async def get_order(self, order_id: str) -> CaptureResult:
        response = await self._authorized(
            "paypal.get_order", "GET", f"/v2/checkout/orders/{order_id}"
        )
        if response.status_code != 200:
            raise self._error(response, "order lookup")
        return parse_order(response.json())

    async def capture_order(self, order_id: str) -> CaptureResult:
        """Capture an approved order.

        Safe to call more than once for the same order: the request id is
        derived from the order id, and an ORDER_ALREADY_CAPTURED answer is
        resolved by reading the completed order back.
        """
        response = await self._authorized(
            "paypal.capture_order",
            "POST",
            f"/v2/checkout/orders/{order_id}/capture",
            json={},
            headers={
                "PayPal-Request-Id": f"capture-{order_id}",
                "Prefer": "return=representation",
            },
        )

        if response.status_code in (200, 201):
            return parse_order(response.json())

        if response.status_code == 422 and _issue(response) == ORDER_ALREADY_CAPTURED:
            logger.info(
                "PayPal order %s already captured, reading it back",
                order_id,
                extra={"order_id": order_id},
            )
            order = await self.get_order(order_id)
            if order.completed:
                return order

        raise self._error(response, "capture")


@lru_cache
def get_paypal_client() -> PayPalClient | None:
    """Get the cached PayPal client, or None when no credentials are configured."""
    settings = get_settings()
    if not settings.payments_configured:
        return None
    return PayPalClient(
        client_id=settings.paypal_client_id or "",
        client_secret=settings.paypal_client_secret or "",
        http_client=get_paypal_http_client(settings.paypal_base_url),
    )
