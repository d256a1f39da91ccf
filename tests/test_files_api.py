"""
Tests for uploads, the download proxy and documents.
"""

import pytest

from estate_crm.api.files import build_key, can_read_key, safe_filename
from estate_crm.auth.context import AuthContext
from estate_crm.core.errors import ValidationError
from estate_crm.core.models import Role


class TestKeys:
    def test_key_layout(self):
        key = build_key("photos", "u1", "flat.jpg")
        folder, owner, name = key.split("/")
        assert (folder, owner) == ("photos", "u1")
        assert name.endswith("_flat.jpg")

    @pytest.mark.parametrize("folder", ["", "../etc", "a/b", "UPPER"])
    def test_bad_folder(self, folder):
        with pytest.raises(ValidationError):
            build_key(folder, "u1", "x.txt")

    def test_safe_filename(self):
        assert safe_filename("../../etc/passwd") == "passwd"
        assert safe_filename("my report (final).pdf") == "my_report_final_.pdf"
        assert safe_filename(None) == "file"

    def test_document_keys_are_private(self):
        owner = AuthContext(user_id="u1", email="a@example.com", role=Role.MANAGER)
        other = AuthContext(user_id="u2", email="b@example.com", role=Role.TOP_MANAGER)
        admin = AuthContext(user_id="u3", email="c@example.com", role=Role.SUPERUSER)

        assert can_read_key(owner, "documents/u1/abc_x.pdf")
        assert not can_read_key(other, "documents/u1/abc_x.pdf")
        assert can_read_key(admin, "documents/u1/abc_x.pdf")
        assert can_read_key(other, "photos/u1/abc_x.jpg")
        assert not can_read_key(other, "photos/../documents/u1/abc_x.pdf")


class TestUploadAndDownload:
    def test_roundtrip(self, client, make_user):
        user, headers = make_user("agent@example.com")

        response = client.post(
            "/api/files/upload",
            files={"file": ("flat.jpg", b"\xff\xd8jpeg-bytes", "image/jpeg")},
            data={"folder": "photos"},
            headers=headers,
        )
        assert response.status_code == 201
        stored = response.json()
        assert stored["key"].startswith(f"photos/{user['id']}/")
        assert stored["name"] == "flat.jpg"
        assert stored["size"] == 12
        assert stored["type"] == "image/jpeg"

        download = client.get(f"/api/files/{stored['key']}", headers=headers)
        assert download.status_code == 200
        assert download.content == b"\xff\xd8jpeg-bytes"
        assert download.headers["content-type"] == "image/jpeg"

    def test_default_folder(self, client, make_user):
        _, headers = make_user("agent@example.com")

        response = client.post("/api/files/upload", files={"file": ("a.txt", b"hi", "text/plain")}, headers=headers)
        assert response.json()["key"].startswith("uploads/")

    def test_requires_approval(self, client):
        tokens = client.post(
            "/api/auth/register",
            json={"email": "new@example.com", "password": "secret123", "full_name": "New"},
        ).json()
        response = client.post(
            "/api/files/upload",
            files={"file": ("a.txt", b"hi", "text/plain")},
            headers={"Authorization": f"Bearer {tokens['access_token']}"},
        )
        assert response.status_code == 403

    def test_missing_file(self, client, make_user):
        _, headers = make_user("agent@example.com")
        assert client.get("/api/files/uploads/nobody/missing.txt", headers=headers).status_code == 404


class TestDocuments:
    def _upload(self, client, headers, title="Passport"):
        return client.post(
            "/api/documents",
            files={"file": ("passport.pdf", b"%PDF-1.4 data", "application/pdf")},
            data={"title": title, "category": "identity"},
            headers=headers,
        )

    def test_upload_and_proxy(self, client, make_user):
        user, headers = make_user("agent@example.com")

        response = self._upload(client, headers)
        assert response.status_code == 201
        document = response.json()
        assert document["user_id"] == user["id"]
        assert document["file_name"] == "passport.pdf"
        assert document["file_size"] == 13
        assert document["file_url"].startswith(f"/api/files/documents/{user['id']}/")

        download = client.get(document["file_url"], headers=headers)
        assert download.content == b"%PDF-1.4 data"

    def test_other_users_cannot_read(self, client, make_user, superuser_headers):
        _, owner = make_user("owner@example.com")
        _, other = make_user("other@example.com", role="top_manager")
        document = self._upload(client, owner).json()

        assert client.get(document["file_url"], headers=other).status_code == 404
        assert client.get(f"/api/documents/{document['id']}", headers=other).status_code == 404
        assert client.get(document["file_url"], headers=superuser_headers).status_code == 200

    def test_title_required(self, client, make_user):
        _, headers = make_user("agent@example.com")
        assert self._upload(client, headers, title=" ").status_code == 400

    def test_delete_removes_object(self, client, make_user):
        _, headers = make_user("agent@example.com")
        document = self._upload(client, headers).json()

        response = client.delete(f"/api/documents/{document['id']}", headers=headers)
        assert response.json() == {"success": True}
        assert client.get(document["file_url"], headers=headers).status_code == 404

    def test_file_fields_are_readonly(self, client, make_user):
        _, headers = make_user("agent@example.com")
        document = self._upload(client, headers).json()

        response = client.put(
            f"/api/documents/{document['id']}",
            json={"title": "Renamed", "file_url": "/api/files/documents/other/x.pdf"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        assert response.json()["file_url"] == document["file_url"]
