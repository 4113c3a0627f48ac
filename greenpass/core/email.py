"""Transactional email delivery through Resend."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import resend

from greenpass.core.constants import JinjaEmailTemplatesEnv
from greenpass.core.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionReceipt:
    """Values rendered into the subscription receipt email."""

    to_email: str
    full_name: str
    plan: str
    amount: Decimal
    currency: str
    order_id: str
    transaction_id: str | None
    captured_at: datetime


def _render_template(template_name: str, **context: object) -> str:
    """Render an email template.

    Args:
        template_name: Name of the template file
        **context: Template variables

    Returns:
        Rendered HTML
    """
    template = JinjaEmailTemplatesEnv.get_template(template_name)
    return template.render(**context)


def init_resend() -> None:
    """Initialize Resend with API key if available."""
    settings = get_settings()
    if not settings.resend_api_key:
        return
    resend.api_key = settings.resend_api_key


def send_subscription_receipt(receipt: SubscriptionReceipt) -> bool:
    """Send the subscription receipt email via Resend.

    Returns False without sending when no Resend API key is configured.
    """
    settings = get_settings()
    if not settings.resend_api_key:
        logger.info("Resend not configured, receipt for %s not sent", receipt.order_id)
        return False

    from_email = f"billing@{settings.app_domain}"
    html_content = _render_template(
        "subscription-receipt.html",
        full_name=receipt.full_name,
        plan=receipt.plan,
        amount=f"{receipt.amount:.2f}",
        currency=receipt.currency,
        order_id=receipt.order_id,
        transaction_id=receipt.transaction_id,
        captured_at=receipt.captured_at.strftime("%Y-%m-%d %H:%M UTC"),
        dashboard_url=f"{settings.client_url}/dashboard",
    )

    resend.Emails.send(
        {
            "from": from_email,
            "to": receipt.to_email,
            "subject": f"GreenPass - {receipt.plan} receipt",
            "html": html_content,
        }
    )
    return True
