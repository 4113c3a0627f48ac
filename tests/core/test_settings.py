"""Tests for greenpass/core/settings.py - Typed configuration."""

import pytest
from pydantic import ValidationError

from greenpass.core.settings import Settings


def test_cors_origins_list_trims_and_drops_empty():
    """Test that CORS_ORIGINS is split on commas and cleaned."""
    settings = Settings(cors_origins=" https://a.example , ,https://b.example")

    assert settings.cors_origins_list == ["https://a.example", "https://b.example"]


@pytest.mark.parametrize(
    ("env_name", "secure"),
    [("development", False), ("test", False), ("staging", True), ("production", True)],
)
def test_is_secure_cookie(env_name, secure):
    """Test that cookies are only marked Secure outside local environments."""
    assert Settings(env_name=env_name).is_secure_cookie is secure


def test_payments_configured_requires_both_credentials():
    """Test that PayPal counts as configured only with id and secret."""
    id_only = Settings(paypal_client_id="id", paypal_client_secret=None)
    secret_only = Settings(paypal_client_id=None, paypal_client_secret="s")
    both = Settings(paypal_client_id="id", paypal_client_secret="s")

    assert not id_only.payments_configured
    assert not secret_only.payments_configured
    assert both.payments_configured


def test_reads_environment_aliases(monkeypatch):
    """Test that settings are read from their environment variable names."""
    monkeypatch.setenv("SUBSCRIPTION_MODE_ENABLED", "false")
    monkeypatch.setenv("ROLE_HINT_COOKIE", "hint")

    settings = Settings()

    assert settings.subscription_mode_enabled is False
    assert settings.role_hint_cookie == "hint"


def test_persistence_retry_attempts_bounds():
    """Test that the retry count is validated."""
    with pytest.raises(ValidationError):
        Settings(persistence_retry_attempts=0)
