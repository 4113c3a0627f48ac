"""Tests for onboarding domain router."""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from greenpass.onboarding.records import Agent
from greenpass.payments.exceptions import PaymentError, PaymentProviderError

HINT_COOKIE = "onboarding_role_hint"
LOCK_COOKIE = "onboarding_role_lock"

BASIC_INFO = {"full_name": "Jane Doe", "phone": "+15550000", "country": "Canada"}
AGENT_PROFILE = {
    "company_name": "Maple Education",
    "business_license": "BL-1234",
    "payout_email": "payouts@maple-education.com",
}


def _set_cookies(response) -> list[str]:
    return response.headers.get_list("set-cookie")


def _deleted(response, name: str) -> bool:
    return any(
        header.startswith(f"{name}=") and "Max-Age=0" in header
        for header in _set_cookies(response)
    )


def _to_subscription(client: TestClient) -> None:
    client.post("/onboarding/start?role=agent&lock=1")
    client.post("/onboarding/basic-info", json=BASIC_INFO)
    response = client.post("/onboarding/role-profile", json={"fields": AGENT_PROFILE})
    assert response.json()["step"] == "subscription"


class TestStart:
    def test_start_without_hint(self, client: TestClient):
        response = client.post("/onboarding/start")

        assert response.status_code == 200
        data = response.json()
        assert data["step"] == "choose_role"
        assert data["role"] == "student"
        assert data["role_locked"] is False
        assert data["completed"] is False
        assert data["pricing"] is None

    def test_start_with_locked_hint(self, client: TestClient):
        """Test that a locked hint pins the role and is kept in cookies."""
        response = client.post("/onboarding/start?role=agent&lock=1")

        assert response.status_code == 200
        data = response.json()
        assert data["step"] == "basic_info"
        assert data["role"] == "agent"
        assert data["role_locked"] is True
        assert data["progress"] == 25
        assert response.cookies.get(HINT_COOKIE) == "agent"
        assert response.cookies.get(LOCK_COOKIE) == "1"

    def test_hint_read_from_cookies(self, client: TestClient):
        """Test that the hint survives a reload through the session cookies."""
        client.cookies.set(HINT_COOKIE, "tutor")
        client.cookies.set(LOCK_COOKIE, "1")

        response = client.post("/onboarding/start")

        assert response.json()["role"] == "tutor"
        assert response.json()["role_locked"] is True

    def test_get_state_resumes(self, client: TestClient):
        client.post("/onboarding/start?role=agent&lock=1")
        client.post("/onboarding/basic-info", json=BASIC_INFO)

        response = client.get("/onboarding/state")

        assert response.status_code == 200
        assert response.json()["step"] == "role_specific"


class TestSteps:
    def test_role_selection(self, client: TestClient):
        client.post("/onboarding/start")

        response = client.post("/onboarding/role", json={"role": "school"})

        assert response.status_code == 200
        assert response.json()["role"] == "school"
        assert response.json()["step"] == "basic_info"

    def test_invalid_role_body(self, client: TestClient):
        client.post("/onboarding/start")

        response = client.post("/onboarding/role", json={"role": "admin"})

        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"

    def test_basic_info_validation(self, client: TestClient):
        """Test that missing basic info comes back as per-field messages."""
        client.post("/onboarding/start?role=agent&lock=1")

        response = client.post("/onboarding/basic-info", json={"full_name": "Jane"})

        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "onboarding_validation_error"
        assert data["fields"] == {
            "phone": "Phone is required",
            "country": "Country is required",
        }

    def test_out_of_step_action_conflicts(self, client: TestClient):
        client.post("/onboarding/start")

        response = client.post("/onboarding/role-profile", json={"fields": {}})

        assert response.status_code == 409
        assert response.json()["type"] == "invalid_step_transition"

    def test_save_draft_and_back(self, client: TestClient):
        client.post("/onboarding/start?role=agent&lock=1")
        client.post("/onboarding/basic-info", json=BASIC_INFO)

        saved = client.put(
            "/onboarding/role-profile/draft", json={"fields": {"company_name": "Maple"}}
        )
        back = client.post("/onboarding/back")

        assert saved.json()["draft"]["company_name"] == "Maple"
        assert back.json()["step"] == "basic_info"

    def test_incomplete_profile_rejected(self, client: TestClient):
        client.post("/onboarding/start?role=agent&lock=1")
        client.post("/onboarding/basic-info", json=BASIC_INFO)

        response = client.post(
            "/onboarding/role-profile", json={"fields": {"company_name": "Maple"}}
        )

        assert response.status_code == 400
        assert set(response.json()["fields"]) == {"business_license", "payout_email"}


class TestSubscription:
    def test_prepare_returns_widget_config(self, client: TestClient):
        _to_subscription(client)

        response = client.get("/onboarding/subscription")

        data = response.json()
        assert data["pricing"] == {
            "label": "Agent Annual Membership",
            "amount": "299.00",
            "currency": "USD",
        }
        assert data["gateway"]["status"] == "ready"
        assert data["gateway"]["client_id"] == "test-client-id"
        assert data["gateway"]["skip_available"] is True

    def test_prepare_when_provider_down(
        self, client: TestClient, mock_paypal: MagicMock
    ):
        """Test that a provider outage still renders the step with skip."""
        mock_paypal.get_access_token.side_effect = PaymentProviderError()
        _to_subscription(client)

        response = client.get("/onboarding/subscription")

        assert response.status_code == 200
        assert response.json()["gateway"]["status"] == "failed"
        assert response.json()["gateway"]["skip_available"] is True

    def test_create_order(self, client: TestClient):
        _to_subscription(client)

        response = client.post("/onboarding/subscription/order")

        assert response.status_code == 201
        assert response.json() == {"order_id": "ORDER123"}

    def test_approve_completes_and_clears_hint(
        self, client: TestClient, session: Session, mock_paypal: MagicMock
    ):
        _to_subscription(client)

        response = client.post(
            "/onboarding/subscription/approve", json={"order_id": "ORDER123"}
        )
        repeat = client.post(
            "/onboarding/subscription/approve", json={"order_id": "ORDER123"}
        )

        assert response.status_code == 200
        assert response.json()["completed"] is True
        assert response.json()["step"] == "complete"
        assert _deleted(response, HINT_COOKIE)
        assert _deleted(response, LOCK_COOKIE)
        assert repeat.status_code == 200
        assert mock_paypal.capture_order.await_count == 1
        assert len(session.exec(select(Agent)).all()) == 1

    def test_declined_payment_stays_on_step(
        self, client: TestClient, mock_paypal: MagicMock
    ):
        mock_paypal.capture_order.side_effect = PaymentError(
            "Payment could not be completed (INSTRUMENT_DECLINED)"
        )
        _to_subscription(client)

        response = client.post(
            "/onboarding/subscription/approve", json={"order_id": "ORDER123"}
        )

        assert response.status_code == 402
        assert response.json()["retryable"] is True
        assert client.get("/onboarding/state").json()["step"] == "subscription"

    def test_cancel_and_error(self, client: TestClient):
        _to_subscription(client)

        cancelled = client.post("/onboarding/subscription/cancel")
        errored = client.post(
            "/onboarding/subscription/error", json={"reason": "popup blocked"}
        )

        assert cancelled.json()["notice"].startswith("Payment was cancelled")
        assert errored.json()["notice"] is not None
        assert errored.json()["step"] == "subscription"

    def test_skip(self, client: TestClient):
        _to_subscription(client)

        response = client.post("/onboarding/subscription/skip")

        assert response.status_code == 200
        assert response.json()["completed"] is True
        assert response.json()["progress"] == 100

    def test_completed_account_start_clears_hint(self, client: TestClient):
        """Test that returning after completion drops any leftover hint cookies."""
        _to_subscription(client)
        client.post("/onboarding/subscription/skip")
        client.cookies.set(HINT_COOKIE, "tutor")

        response = client.post("/onboarding/start")

        assert response.json()["role"] == "agent"
        assert _deleted(response, HINT_COOKIE)


def test_requires_authentication(unauthenticated_client: TestClient):
    """Test that onboarding endpoints reject anonymous callers."""
    response = unauthenticated_client.post("/onboarding/start")

    assert response.status_code == 401
    assert response.json()["type"] == "invalid_credentials"
