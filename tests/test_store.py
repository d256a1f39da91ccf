"""
Tests for the credential store and SQL storage.
"""

import asyncio

import pytest

from estate_crm.auth.store import CredentialStore
from estate_crm.core.errors import Conflict, SessionExpired, StorageError, ValidationError
from estate_crm.core.models import Role
from estate_crm.storage.base import Collections, ResourceQuery, SortOrder
from estate_crm.storage.local import LocalContentStorage
from estate_crm.storage.sql import SqlMetadataStorage


@pytest.fixture
def metadata(tmp_path):
    storage = SqlMetadataStorage.from_url(f"sqlite:///{tmp_path / 'crm.db'}")
    storage.create_all()
    yield storage
    asyncio.run(storage.close())


@pytest.fixture
def store(metadata):
    return CredentialStore(metadata)


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# Users
# =============================================================================


class TestUsers:
    def test_create_and_lookup(self, store):
        user = run(store.create_user("Alice@Example.com", "hash", "Alice"))

        assert user.email == "alice@example.com"
        assert user.role == Role.MANAGER
        assert user.approved is False
        assert run(store.get_user_by_email("ALICE@example.com")).id == user.id

    def test_duplicate_email(self, store):
        run(store.create_user("alice@example.com", "hash", "Alice"))
        with pytest.raises(Conflict):
            run(store.create_user("alice@example.com", "hash", "Alice again"))

    def test_delete_removes_sessions(self, store, metadata):
        user = run(store.create_user("alice@example.com", "hash", "Alice"))
        run(store.create_session(user.id, "token-1"))

        assert run(store.delete_user(user.id))
        assert run(store.get_session("token-1")) is None


# =============================================================================
# Sessions
# =============================================================================


class TestSessions:
    @pytest.fixture
    def user(self, store):
        return run(store.create_user("alice@example.com", "hash", "Alice"))

    def test_consume_once(self, store, user):
        run(store.create_session(user.id, "token-1"))

        session = run(store.consume_session("token-1"))
        assert session.user_id == user.id

        with pytest.raises(SessionExpired):
            run(store.consume_session("token-1"))

    def test_unknown_token(self, store):
        with pytest.raises(SessionExpired):
            run(store.consume_session("nope"))

    def test_expired_session(self, store, metadata, user):
        session = run(store.create_session(user.id, "token-1"))
        run(metadata.update(Collections.SESSIONS, session.id, {"expires_at": "2000-01-01T00:00:00+00:00"}))

        with pytest.raises(SessionExpired):
            run(store.consume_session("token-1"))
        assert run(store.get_session("token-1")) is None

    def test_concurrent_consume_only_one_wins(self, store, user):
        run(store.create_session(user.id, "token-1"))

        async def race():
            return await asyncio.gather(
                store.consume_session("token-1"),
                store.consume_session("token-1"),
                return_exceptions=True,
            )

        results = run(race())
        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, SessionExpired)]
        assert len(winners) == 1
        assert len(losers) == 1

    def test_revoke_all(self, store, user):
        run(store.create_session(user.id, "token-1"))
        run(store.create_session(user.id, "token-2"))

        assert run(store.revoke_all_sessions(user.id)) == 2
        assert run(store.get_session("token-2")) is None


# =============================================================================
# Queries
# =============================================================================


class TestQuery:
    def _note(self, metadata, id, created_at, created_by="u1", title="n"):
        row = {
            "id": id,
            "title": title,
            "created_by": created_by,
            "created_at": created_at,
            "updated_at": created_at,
        }
        return run(metadata.insert(Collections.NOTES, row))

    def test_sort_filter_and_page(self, metadata):
        self._note(metadata, "a", "2024-01-01T00:00:00+00:00")
        self._note(metadata, "b", "2024-01-03T00:00:00+00:00")
        self._note(metadata, "c", "2024-01-02T00:00:00+00:00", created_by="u2")

        rows = run(metadata.query(ResourceQuery(
            collection=Collections.NOTES,
            sort=SortOrder("created_at", descending=True),
        )))
        assert [r["id"] for r in rows] == ["b", "c", "a"]

        rows = run(metadata.query(ResourceQuery(
            collection=Collections.NOTES,
            filters={"created_by": "u1"},
            sort=SortOrder("created_at"),
            limit=1,
            offset=1,
        )))
        assert [r["id"] for r in rows] == ["b"]

    def test_match_any(self, metadata):
        self._note(metadata, "a", "2024-01-01T00:00:00+00:00", created_by="u1")
        self._note(metadata, "b", "2024-01-02T00:00:00+00:00", created_by="u2")

        rows = run(metadata.query(ResourceQuery(
            collection=Collections.NOTES,
            match_any={"created_by": "u2"},
        )))
        assert [r["id"] for r in rows] == ["b"]

    def test_unknown_column(self, metadata):
        with pytest.raises(StorageError):
            run(metadata.query(ResourceQuery(collection=Collections.NOTES, filters={"nope": 1})))

    def test_delete_where_requires_filters(self, metadata):
        with pytest.raises(StorageError):
            run(metadata.delete_where(Collections.NOTES, {}))

    def test_integer_overflow_is_a_validation_error(self, metadata):
        row = {
            "id": "p1",
            "title": "Flat",
            "rooms": 10**30,
            "created_by": "u1",
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
        }
        with pytest.raises(ValidationError):
            run(metadata.insert(Collections.PROPERTIES, row))
        assert run(metadata.get(Collections.PROPERTIES, "p1")) is None


# =============================================================================
# Content
# =============================================================================


class TestLocalContent:
    @pytest.fixture
    def content(self, tmp_path):
        return LocalContentStorage(str(tmp_path / "content"))

    def test_put_get_delete(self, content):
        run(content.put("photos/u1/a.jpg", b"data", "image/jpeg"))

        assert run(content.get("photos/u1/a.jpg")) == b"data"
        assert run(content.content_type("photos/u1/a.jpg")) == "image/jpeg"
        assert run(content.delete("photos/u1/a.jpg"))
        with pytest.raises(FileNotFoundError):
            run(content.get("photos/u1/a.jpg"))

    def test_list_keys_skips_sidecars(self, content):
        run(content.put("photos/u1/a.jpg", b"a"))
        run(content.put("photos/u2/b.jpg", b"b"))

        async def collect():
            return sorted([key async for key in content.list_keys("photos")])

        assert run(collect()) == ["photos/u1/a.jpg", "photos/u2/b.jpg"]

    def test_traversal_refused(self, content):
        with pytest.raises(FileNotFoundError):
            run(content.get("../outside.txt"))
        assert run(content.delete("../outside.txt")) is False
