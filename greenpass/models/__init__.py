"""
Model package.

IMPORTANT (Alembic / SQLModel):
- Alembic autogenerate relies on `SQLModel.metadata`, which is populated only
  when the table models are imported.
- `alembic/env.py` and `db.engine.init_db` import `greenpass.models`, so this
  module must import all SQLModel `table=True` models to register them.
"""

# Import table models so SQLModel registers them in metadata.
from greenpass.account.models import Account  # noqa: F401
from greenpass.onboarding.records import (  # noqa: F401
    Agent,
    SchoolProfile,
    Tutor,
    Vendor,
)
