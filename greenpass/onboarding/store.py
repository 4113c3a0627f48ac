"""Persistence adapter for onboarding.

Wraps the accounts table and the role-record tables. Every write is a
single-row partial UPDATE of only the given columns, so two tabs editing
unrelated fields of the same account never clobber each other.
"""

import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from greenpass.account.exceptions import AccountNotFoundError
from greenpass.account.models import Account
from greenpass.core.exceptions import PersistenceError
from greenpass.core.mixins import utc_now
from greenpass.onboarding.records import RoleRecordBase
from greenpass.onboarding.roles import Role, Step

if TYPE_CHECKING:
    from greenpass.auth.schemas import Identity

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=RoleRecordBase)

IMMUTABLE_FIELDS = frozenset({"subject_id", "email", "created_at"})


class ProfileDraftStore:
    def __init__(self, session: Session):
        self._session = session

    def _fail(self, action: str, subject_id: str, error: Exception) -> PersistenceError:
        self._session.rollback()
        logger.error(
            "Failed to %s for %s: %s",
            action,
            subject_id,
            error,
            extra={"subject_id": subject_id},
        )
        return PersistenceError()

    def load(self, subject_id: str) -> Account | None:
        """Return the stored account, re-read from the database, or None."""
        try:
            return self._session.get(Account, subject_id, populate_existing=True)
        except SQLAlchemyError as e:
            raise self._fail("load account", subject_id, e) from e

    def get(self, subject_id: str) -> Account:
        account = self.load(subject_id)
        if account is None:
            raise AccountNotFoundError()
        return account

    def create_default(
        self,
        subject_id: str,
        email: str | None,
        full_name: str | None = None,
        role_hint: Role | None = None,
    ) -> Account:
        """Insert a fresh account at the start of the flow.

        If another tab created the row first, that row is returned instead.
        """
        account = Account(
            subject_id=subject_id,
            email=email or "",
            full_name=full_name or "",
            role=role_hint or Role.student,
        )
        self._session.add(account)
        try:
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            existing = self.load(subject_id)
            if existing is None:
                raise PersistenceError() from None
            logger.info(
                "Account %s was created concurrently, using stored row",
                subject_id,
                extra={"subject_id": subject_id},
            )
            return existing
        except SQLAlchemyError as e:
            raise self._fail("create account", subject_id, e) from e

        self._session.refresh(account)
        logger.info(
            "Created account %s",
            subject_id,
            extra={"subject_id": subject_id, "role": account.role.value},
        )
        return account

    def load_or_create(
        self, identity: "Identity", role_hint: Role | None = None
    ) -> Account:
        account = self.load(identity.subject_id)
        if account is not None:
            return account
        return self.create_default(
            identity.subject_id, identity.email, identity.display_name, role_hint
        )

    def patch(self, subject_id: str, fields: Mapping[str, Any]) -> None:
        """Atomically set only the given account columns.

        Raises:
            ValueError: If an immutable or unknown column is named.
            AccountNotFoundError: If no account row matches.
            PersistenceError: If the write fails; nothing was applied.
        """
        immutable = IMMUTABLE_FIELDS.intersection(fields)
        if immutable:
            names = ", ".join(sorted(immutable))
            raise ValueError(f"Immutable account fields: {names}")
        unknown = set(fields) - set(Account.model_fields)
        if unknown:
            raise ValueError(f"Unknown account fields: {', '.join(sorted(unknown))}")
        if not fields:
            return

        statement = (
            update(Account)
            .where(Account.subject_id == subject_id)  # type: ignore[arg-type]
            .values(**fields, updated_at=utc_now())
        )
        try:
            result = self._session.execute(statement)
            if result.rowcount == 0:
                self._session.rollback()
                raise AccountNotFoundError()
            self._session.commit()
        except SQLAlchemyError as e:
            raise self._fail("patch account", subject_id, e) from e

    def activate_subscription(self, subject_id: str, fields: Mapping[str, Any]) -> bool:
        """Write subscription columns only if no subscription is active yet.

        Returns False when the row already holds an active subscription.

        Raises:
            PersistenceError: If the write fails; nothing was applied.
        """
        statement = (
            update(Account)
            .where(
                Account.subject_id == subject_id,  # type: ignore[arg-type]
                Account.subscription_active == False,  # noqa: E712
            )
            .values(**fields, updated_at=utc_now())
        )
        try:
            result = self._session.execute(statement)
            self._session.commit()
        except SQLAlchemyError as e:
            raise self._fail("activate subscription", subject_id, e) from e
        return result.rowcount > 0

    def read_cursor(self, subject_id: str) -> Step:
        return self.get(subject_id).onboarding_step

    def write_cursor(self, subject_id: str, step: Step) -> None:
        self.patch(subject_id, {"onboarding_step": step})

    def find_role_record(
        self, model: type[R], subject_id: str
    ) -> R | None:
        try:
            return self._session.exec(
                select(model).where(model.subject_id == subject_id)
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("look up role record", subject_id, e) from e

    def create_role_record(self, record: R) -> tuple[R, bool]:
        """Insert a role record unless one already exists for the subject.

        Returns the stored record and whether this call created it. A unique
        constraint violation means a concurrent finalization won the race.
        """
        subject_id = record.subject_id
        self._session.add(record)
        try:
            self._session.commit()
        except IntegrityError as e:
            self._session.rollback()
            existing = self.find_role_record(type(record), subject_id)
            if existing is None:
                raise self._fail("create role record", subject_id, e) from e
            return existing, False
        except SQLAlchemyError as e:
            raise self._fail("create role record", subject_id, e) from e

        self._session.refresh(record)
        return record, True

    def completed_accounts(self, roles: tuple[Role, ...]) -> Iterator[Account]:
        """Yield completed accounts with one of the given roles."""
        statement = select(Account).where(
            Account.onboarding_completed == True,  # noqa: E712
            Account.role.in_(roles),  # type: ignore[attr-defined]
        )
        try:
            accounts = list(self._session.exec(statement))
        except SQLAlchemyError as e:
            raise self._fail("list completed accounts", "*", e) from e
        yield from accounts
