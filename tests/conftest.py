"""
Shared fixtures.

Every test gets fresh settings pointing at an in-memory SQLite database
and a temporary content directory.
"""

import pytest
from fastapi.testclient import TestClient

from estate_crm.api.app import create_app
from estate_crm.config import get_settings

SUPERUSER_EMAIL = "admin@example.com"
SUPERUSER_PASSWORD = "admin-password"
PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def settings_env(monkeypatch, tmp_path):
    """Isolated configuration for each test."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("CONTENT_DIR", str(tmp_path / "content"))
    monkeypatch.setenv("CORS_ORIGINS", "https://crm.example.com,https://admin.example.com")
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key-for-jwt-signing-0123456789")
    monkeypatch.setenv("BOOTSTRAP_SUPERUSER_EMAIL", SUPERUSER_EMAIL)
    monkeypatch.setenv("BOOTSTRAP_SUPERUSER_PASSWORD", SUPERUSER_PASSWORD)
    monkeypatch.setenv("SENTRY_DSN", "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client():
    """API client with lifespan (storage, bootstrap superuser) running."""
    with TestClient(create_app(get_settings())) as test_client:
        yield test_client


# =============================================================================
# Helpers
# =============================================================================


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login(client, email: str, password: str = PASSWORD) -> dict:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def register(client, email: str, password: str = PASSWORD, full_name: str = "Test User") -> dict:
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "full_name": full_name},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def superuser_headers(client):
    return bearer(login(client, SUPERUSER_EMAIL, SUPERUSER_PASSWORD)["access_token"])


@pytest.fixture
def make_user(client, superuser_headers):
    """
    Create an approved account through the admin API and sign it in.

    Returns (user, headers).
    """

    def _make(email: str, role: str = "manager", full_name: str = "Agent"):
        response = client.post(
            "/api/users",
            json={"email": email, "password": PASSWORD, "full_name": full_name, "role": role},
            headers=superuser_headers,
        )
        assert response.status_code == 201, response.text
        user = response.json()["user"]
        return user, bearer(login(client, email)["access_token"])

    return _make
