import logging
from collections.abc import Generator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from greenpass.core.settings import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()

connect_args: dict[str, object] = {}
engine_kwargs: dict[str, object] = {}
if _settings.database_url.startswith("sqlite"):
    # Required for SQLite when used with FastAPI across threads.
    connect_args = {"check_same_thread": False}
    if _settings.database_url in {"sqlite://", "sqlite:///:memory:"}:
        # One shared connection, otherwise every session sees an empty database.
        engine_kwargs = {"poolclass": StaticPool}

engine = create_engine(
    _settings.database_url, echo=False, connect_args=connect_args, **engine_kwargs
)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Create missing tables when AUTO_CREATE_TABLES is set.

    Deployed environments disable this and run `alembic upgrade head` instead.
    """
    if not _settings.auto_create_tables:
        return

    import greenpass.models  # noqa: F401  (registers every table on the metadata)

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ensured")
