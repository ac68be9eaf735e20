from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from app import create_app, startup
from backend.services.auth_service import (
    AuthService,
    InvalidLoginSecretError,
    InvalidTokenError,
    LoginNotConfiguredError,
)
from backend.utils.config import get_settings, parse_office_quotas


LOGIN_SECRET = "test-login-secret"


def _build_test_settings(tmp_path, filename: str, **overrides):
    get_settings.cache_clear()
    base = get_settings()
    values = {
        "database_path": tmp_path / filename,
        "auth_trust_bearer_email": False,
        "login_secret": LOGIN_SECRET,
        "system_admin_emails": ("admin@example.com",),
        "office_quotas": parse_office_quotas([{"name": "Melbourne", "quota": 2, "parkingQuota": 1}]),
        "app_version": "9.9.9",
    }
    values.update(overrides)
    return replace(base, **values)


def _build_client(tmp_path, **overrides) -> TestClient:
    app = create_app(_build_test_settings(tmp_path, "auth.db", **overrides))
    startup(app)
    return TestClient(app)


def test_login_issues_token_usable_as_bearer(tmp_path):
    client = _build_client(tmp_path)
    response = client.post("/api/login", json={"email": "Someone@Example.com", "secret": LOGIN_SECRET})
    assert response.status_code == 200
    payload = response.json()
    assert payload["token_type"] == "bearer"

    me = client.get(
        "/api/users/someone@example.com",
        headers={"Authorization": f"Bearer {payload['access_token']}"},
    )
    assert me.status_code == 200
    assert me.json()["email"] == "someone@example.com"


def test_login_rejects_wrong_secret_and_bad_email(tmp_path):
    client = _build_client(tmp_path)
    wrong = client.post("/api/login", json={"email": "someone@example.com", "secret": "nope"})
    assert wrong.status_code == 401
    invalid = client.post("/api/login", json={"email": "someone", "secret": LOGIN_SECRET})
    assert invalid.status_code == 400


def test_login_without_configured_secret(tmp_path):
    client = _build_client(tmp_path, login_secret=None)
    response = client.post("/api/login", json={"email": "someone@example.com", "secret": "anything"})
    assert response.status_code == 401
    assert "LOGIN_SECRET" in response.json()["detail"]


def test_protected_routes_require_bearer(tmp_path):
    client = _build_client(tmp_path)
    assert client.get("/api/offices").status_code == 401
    assert client.get("/api/bookings").status_code == 401
    # Without trusted-email mode an email is not a valid token.
    assert client.get("/api/offices", headers={"Authorization": "Bearer admin@example.com"}).status_code == 401


def test_config_and_health_are_public(tmp_path):
    client = _build_client(tmp_path, advance_booking_days=7, default_weekly_quota=3)
    config = client.get("/api/config")
    assert config.status_code == 200
    body = config.json()
    assert body["advanceBookingDays"] == 7
    assert body["defaultWeeklyQuota"] == 3
    assert body["officeQuotas"] == [{"id": "melbourne", "name": "Melbourne", "quota": 2, "parkingQuota": 1}]
    assert "emailRegex" in body

    health = client.get("/api/health")
    assert health.json() == {"status": "ok", "version": "9.9.9"}


def test_auth_service_sessions(tmp_path):
    service = AuthService(settings=_build_test_settings(tmp_path, "unused.db"))
    token = service.login("someone@example.com", LOGIN_SECRET)
    assert service.resolve_bearer_token(token) == "someone@example.com"

    service.logout(token)
    with pytest.raises(InvalidTokenError):
        service.resolve_bearer_token(token)
    with pytest.raises(InvalidTokenError):
        service.resolve_bearer_token("  ")
    with pytest.raises(InvalidLoginSecretError):
        service.login("someone@example.com", "wrong")


def test_auth_service_trusted_email_mode(tmp_path):
    trusting = AuthService(
        settings=_build_test_settings(tmp_path, "unused.db", auth_trust_bearer_email=True, login_secret=None)
    )
    assert trusting.resolve_bearer_token("Someone@Example.com") == "someone@example.com"
    with pytest.raises(InvalidTokenError):
        trusting.resolve_bearer_token("no-at-sign")
    with pytest.raises(LoginNotConfiguredError):
        trusting.login("someone@example.com", "anything")
