import inspect
import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

# Must be set before greenpass modules read settings at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV_NAME"] = "test"
os.environ["RESEND_API_KEY"] = ""

import anyio  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402

import greenpass.models  # noqa: E402, F401
from greenpass.auth.dependencies import get_current_identity  # noqa: E402
from greenpass.auth.schemas import Identity  # noqa: E402
from greenpass.auth.service import (  # noqa: E402
    FirebaseAuthService,
    TokenClaims,
    get_firebase_auth_service,
)
from greenpass.core.settings import Settings, get_settings  # noqa: E402
from greenpass.db.engine import get_session  # noqa: E402
from greenpass.main import app  # noqa: E402
from greenpass.onboarding.context import SessionContext  # noqa: E402
from greenpass.onboarding.finalizer import ProfileFinalizer  # noqa: E402
from greenpass.onboarding.machine import OnboardingStateMachine  # noqa: E402
from greenpass.onboarding.roles import RoleRegistry, role_registry  # noqa: E402
from greenpass.onboarding.store import ProfileDraftStore  # noqa: E402
from greenpass.onboarding.subscription import SubscriptionGateway  # noqa: E402
from greenpass.payments.paypal import (  # noqa: E402
    CaptureResult,
    PayPalClient,
    get_paypal_client,
)


def pytest_configure(config: pytest.Config) -> None:
    # Tests use @pytest.mark.asyncio, but we intentionally rely on anyio.
    config.addinivalue_line(
        "markers",
        "asyncio: run async tests using anyio (project-local hook)",
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run @pytest.mark.asyncio tests with anyio.

    This avoids adding an external pytest-asyncio dependency.
    """
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    funcargs = {
        name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
    }

    async def _run_async_test() -> None:
        await test_func(**funcargs)

    anyio.run(_run_async_test)
    return True


@pytest.fixture(name="session")
def session_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="mock_settings")
def mock_settings_fixture():
    """Create settings with payments configured and email disabled."""
    return Settings(
        env_name="test",
        database_url="sqlite://",
        persistence_retry_attempts=2,
        paypal_client_id="test-client-id",
        paypal_client_secret="test-client-secret",
        subscription_mode_enabled=True,
        resend_api_key=None,
    )


@pytest.fixture(name="identity")
def identity_fixture():
    return Identity(
        subject_id="uid-123", email="jane@example.com", display_name="Jane Doe"
    )


@pytest.fixture(name="registry")
def registry_fixture() -> RoleRegistry:
    return role_registry


@pytest.fixture(name="store")
def store_fixture(session: Session):
    return ProfileDraftStore(session)


@pytest.fixture(name="capture")
def capture_fixture():
    """A completed PayPal capture for ORDER123."""
    return CaptureResult(
        order_id="ORDER123",
        status="COMPLETED",
        transaction_id="TXN-9",
        payer_email="payer@example.com",
        payer_name="Jane Doe",
        amount=Decimal("299.00"),
        currency="USD",
        reference_id="uid-123",
    )


@pytest.fixture(name="mock_paypal")
def mock_paypal_fixture(capture: CaptureResult):
    """Create a mock PayPalClient that approves everything."""
    mock_client = MagicMock(spec=PayPalClient)
    mock_client.client_id = "test-client-id"
    mock_client.get_access_token = AsyncMock(return_value="access-token")
    mock_client.create_order = AsyncMock(return_value="ORDER123")
    mock_client.capture_order = AsyncMock(return_value=capture)
    return mock_client


@pytest.fixture(name="send_receipt")
def send_receipt_fixture():
    return MagicMock(return_value=True)


@pytest.fixture(name="gateway")
def gateway_fixture(mock_paypal: MagicMock, mock_settings: Settings):
    return SubscriptionGateway(mock_paypal, mock_settings)


@pytest.fixture(name="finalizer")
def finalizer_fixture(
    store: ProfileDraftStore,
    registry: RoleRegistry,
    mock_settings: Settings,
    send_receipt: MagicMock,
):
    return ProfileFinalizer(store, registry, mock_settings, send_receipt=send_receipt)


@pytest.fixture(name="make_machine")
def make_machine_fixture(
    store: ProfileDraftStore,
    registry: RoleRegistry,
    gateway: SubscriptionGateway,
    finalizer: ProfileFinalizer,
    identity: Identity,
):
    """Factory for state machines opened on the test identity."""

    def make(context: SessionContext | None = None) -> OnboardingStateMachine:
        machine = OnboardingStateMachine(store, registry, gateway, finalizer, context)
        machine.open(identity)
        return machine

    return make


@pytest.fixture(name="mock_firebase_auth")
def mock_firebase_auth_fixture():
    """Create a mock FirebaseAuthService."""
    mock_service = MagicMock(spec=FirebaseAuthService)
    # Default mock behaviors
    mock_service.verify_session_cookie.return_value = TokenClaims(uid="test-uid")
    mock_service.verify_id_token.return_value = TokenClaims(uid="test-uid")
    return mock_service


@pytest.fixture(name="client")
def client_fixture(
    session: Session,
    identity: Identity,
    mock_paypal: MagicMock,
    mock_settings: Settings,
):
    """Create a test client with overridden dependencies."""

    def get_session_override():
        return session

    def get_current_identity_override():
        return identity

    def get_paypal_client_override():
        return mock_paypal

    def get_settings_override():
        return mock_settings

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_current_identity] = get_current_identity_override
    app.dependency_overrides[get_paypal_client] = get_paypal_client_override
    app.dependency_overrides[get_settings] = get_settings_override

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="unauthenticated_client")
def unauthenticated_client_fixture(
    session: Session,
    mock_firebase_auth: MagicMock,
    mock_settings: Settings,
):
    """Create a test client without auth override (for testing auth failures)."""

    def get_session_override():
        return session

    def get_firebase_auth_override():
        return mock_firebase_auth

    def get_settings_override():
        return mock_settings

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_firebase_auth_service] = get_firebase_auth_override
    app.dependency_overrides[get_settings] = get_settings_override

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
