"""
Tests for the application factory.
"""

from fastapi.testclient import TestClient

from conftest import SUPERUSER_EMAIL, SUPERUSER_PASSWORD
from estate_crm.api.app import create_app
from estate_crm.config import Settings


def test_startup_uses_given_settings(tmp_path):
    settings = Settings(
        database_url="sqlite://",
        content_dir=str(tmp_path / "other-content"),
        bootstrap_superuser_email="owner@example.com",
        bootstrap_superuser_password="owner-password",
    )

    with TestClient(create_app(settings)) as client:
        response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "owner-password"})
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "superuser"

        # The environment's bootstrap account is not created
        response = client.post("/api/auth/login", json={"email": SUPERUSER_EMAIL, "password": SUPERUSER_PASSWORD})
        assert response.status_code == 401
