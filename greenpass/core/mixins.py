"""Column mixins shared by the account and role record tables."""

from datetime import UTC, datetime

from sqlalchemy import text
from sqlmodel import Field


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(UTC).replace(microsecond=0)


class TimestampMixin:
    """created_at / updated_at columns, filled by the database on raw inserts.

    ``updated_at`` is only bumped by ORM flushes; bulk UPDATE statements
    (see ProfileDraftStore.patch) set it explicitly.
    """

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column_kwargs={
            "server_default": text("CURRENT_TIMESTAMP"),
            "onupdate": utc_now,
        },
    )


class PayoutMixin:
    """Email address partner payouts and commission reports are sent to."""

    payout_email: str = Field(max_length=255)
