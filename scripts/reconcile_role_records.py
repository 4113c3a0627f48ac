#!/usr/bin/env python3
"""Seed role records missing from completed accounts.

Finalization completes an account even when its role record could not be
created (logged as a partial failure). This script finds completed
agent/tutor/school/vendor accounts without a record and creates it from the
staged profile draft.

Run it directly:
    python scripts/reconcile_role_records.py [--dry-run]
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlmodel import Session  # noqa: E402

from greenpass.core.logging import configure_logging  # noqa: E402
from greenpass.core.settings import get_settings  # noqa: E402
from greenpass.db.engine import engine  # noqa: E402
from greenpass.onboarding.finalizer import ProfileFinalizer  # noqa: E402
from greenpass.onboarding.roles import Role, role_registry  # noqa: E402
from greenpass.onboarding.store import ProfileDraftStore  # noqa: E402

logger = logging.getLogger("greenpass.reconcile")

PARTNER_ROLES = tuple(
    role for role in Role if role_registry.definition(role).record_model
)


def reconcile(session: Session, *, dry_run: bool = False) -> tuple[int, int]:
    """Return (records created, accounts still failing)."""
    store = ProfileDraftStore(session)
    finalizer = ProfileFinalizer(store, role_registry, get_settings())
    created = failed = 0

    for account in store.completed_accounts(PARTNER_ROLES):
        model = role_registry.definition(account.role).record_model
        if model is None or store.find_role_record(model, account.subject_id):
            continue

        if dry_run:
            logger.info(
                "Would seed %s record for %s", account.role.value, account.subject_id
            )
            continue

        result = finalizer.reconcile(account.subject_id)
        if result.record_created:
            created += 1
        elif result.partial_failure is not None:
            failed += 1

    return created, failed


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--dry-run", action="store_true", help="list accounts without writing"
    )
    args = parser.parse_args()

    configure_logging()
    with Session(engine) as session:
        created, failed = reconcile(session, dry_run=args.dry_run)

    logger.info("Reconciliation done: %d created, %d failed", created, failed)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
