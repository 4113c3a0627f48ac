"""Centralized dependency type aliases for FastAPI routes.

Import all dependencies from this single module:
    from greenpass.core.deps import SessionDep, SettingsDep, CurrentIdentityDep
"""

from typing import Annotated

from fastapi import Depends
from sqlmodel import Session

from greenpass.auth.dependencies import CurrentIdentityDep
from greenpass.core.settings import Settings, get_settings
from greenpass.db.engine import get_session
from greenpass.onboarding.roles import RoleRegistry, get_role_registry

# Database session
SessionDep = Annotated[Session, Depends(get_session)]

# Application settings
SettingsDep = Annotated[Settings, Depends(get_settings)]

# Role registry (static; overridable in tests)
RoleRegistryDep = Annotated[RoleRegistry, Depends(get_role_registry)]

__all__ = ["CurrentIdentityDep", "RoleRegistryDep", "SessionDep", "SettingsDep"]
