"""Account domain router.

Read-only views of the caller's account for downstream pages (dashboards,
directory listings) that gate on the finalized onboarding state.
"""

from fastapi import APIRouter

from greenpass.account.exceptions import RoleRecordNotFoundError
from greenpass.account.schemas import AccountRead, RoleRecordRead
from greenpass.core.constants import CommonResponses, Routes
from greenpass.core.deps import CurrentIdentityDep, RoleRegistryDep
from greenpass.onboarding.dependencies import StoreDep

router = APIRouter(
    prefix=Routes.ACCOUNT.prefix,
    tags=[Routes.ACCOUNT.tag],
    responses={**CommonResponses.UNAUTHORIZED, **CommonResponses.NOT_FOUND},
)


@router.get("/me", response_model=AccountRead)
async def get_my_account(identity: CurrentIdentityDep, store: StoreDep):
    """Get the current account."""
    return AccountRead.from_account(store.get(identity.subject_id))


@router.get("/me/role-record", response_model=RoleRecordRead)
async def get_my_role_record(
    identity: CurrentIdentityDep, store: StoreDep, registry: RoleRegistryDep
):
    """Get the role record seeded when onboarding completed."""
    account = store.get(identity.subject_id)
    model = registry.definition(account.role).record_model
    record = store.find_role_record(model, account.subject_id) if model else None
    if record is None:
        raise RoleRecordNotFoundError()
    return RoleRecordRead.from_record(account.role, record)
