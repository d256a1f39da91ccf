"""
Tests for reports and report signing.
"""

import hashlib

import pytest

REPORT = {"title": "May report", "period_start": "2024-05-01", "period_end": "2024-05-31"}


@pytest.fixture
def author(client, make_user):
    user, headers = make_user("author@example.com")
    secret_key = client.post("/api/auth/secret-key", headers=headers).json()["secret_key"]
    report = client.post("/api/reports", json=REPORT, headers=headers).json()
    return user, headers, secret_key, report


class TestReports:
    def test_created_as_draft(self, author):
        user, _, _, report = author
        assert report["status"] == "draft"
        assert report["user_id"] == user["id"]
        assert report["signature"] is None

    def test_managers_see_only_own(self, client, make_user, author):
        _, other = make_user("other@example.com")
        assert client.get("/api/reports", headers=other).json() == []

    def test_top_manager_sees_all(self, client, make_user, author):
        _, top = make_user("top@example.com", role="top_manager")
        assert len(client.get("/api/reports", headers=top).json()) == 1

    def test_signature_fields_readonly(self, client, author):
        _, headers, _, report = author
        response = client.put(f"/api/reports/{report['id']}", json={"signature": "forged"}, headers=headers)
        assert response.status_code == 400


class TestSigning:
    def test_sign(self, client, author):
        _, headers, secret_key, report = author

        response = client.post(f"/api/reports/{report['id']}/sign", json={"secret_key": secret_key}, headers=headers)
        assert response.status_code == 200
        signed = response.json()

        expected = hashlib.sha256(
            f"{report['id']}-2024-05-01-2024-05-31-{secret_key}".encode()
        ).hexdigest()
        assert signed["signature"] == expected
        assert signed["status"] == "signed"
        assert signed["signed_at"] and signed["sent_at"]

    def test_wrong_key(self, client, author):
        _, headers, _, report = author

        response = client.post(f"/api/reports/{report['id']}/sign", json={"secret_key": "wrong"}, headers=headers)
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid secret key"}

    def test_missing_key(self, client, author):
        _, headers, _, report = author
        response = client.post(f"/api/reports/{report['id']}/sign", json={}, headers=headers)
        assert response.status_code == 401

    def test_sign_twice(self, client, author):
        _, headers, secret_key, report = author
        url = f"/api/reports/{report['id']}/sign"

        assert client.post(url, json={"secret_key": secret_key}, headers=headers).status_code == 200
        assert client.post(url, json={"secret_key": secret_key}, headers=headers).status_code == 400

    def test_signed_report_is_frozen(self, client, author):
        _, headers, secret_key, report = author
        client.post(f"/api/reports/{report['id']}/sign", json={"secret_key": secret_key}, headers=headers)

        response = client.put(f"/api/reports/{report['id']}", json={"title": "Edited"}, headers=headers)
        assert response.status_code == 400

    def test_only_author_signs(self, client, make_user, author):
        _, top = make_user("top@example.com", role="top_manager")
        top_key = client.post("/api/auth/secret-key", headers=top).json()["secret_key"]
        _, _, _, report = author

        response = client.post(f"/api/reports/{report['id']}/sign", json={"secret_key": top_key}, headers=top)
        assert response.status_code == 403

    def test_invisible_report(self, client, make_user, author):
        _, other = make_user("other@example.com")
        _, _, _, report = author

        response = client.post(f"/api/reports/{report['id']}/sign", json={"secret_key": "x"}, headers=other)
        assert response.status_code == 404

    def test_rotated_key_invalidates_old(self, client, author):
        _, headers, old_key, report = author
        client.post("/api/auth/secret-key", headers=headers)

        response = client.post(f"/api/reports/{report['id']}/sign", json={"secret_key": old_key}, headers=headers)
        assert response.status_code == 401
