"""Tests for the secret record store."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from burnlink.errors import StoreError
from burnlink.models.secret import Secret
from burnlink.services.secret_store import SecretStore
from tests.test_utils import utcnow


def make_secret(**overrides) -> Secret:
    fields = {
        "ciphertext": b"ct",
        "iv": b"\x00" * 12,
        "auth_tag": b"\x00" * 16,
        "one_time_access": False,
        "viewed": False,
    }
    fields.update(overrides)
    return Secret(**fields)


@pytest.fixture
def store(db_session):
    return SecretStore(db_session)


def test_insert_assigns_id_and_timestamps(store):
    secret_id = store.insert(make_secret())

    fetched = store.fetch_by_id(secret_id)
    assert fetched is not None
    assert len(secret_id) == 36
    assert fetched.created_at is not None
    assert fetched.updated_at is not None
    assert fetched.viewed is False


def test_fetch_missing_returns_none(store):
    assert store.fetch_by_id("does-not-exist") is None


def test_conditional_mark_viewed_transitions_once(store):
    secret_id = store.insert(make_secret(one_time_access=True))

    assert store.conditional_mark_viewed(secret_id) is True
    assert store.conditional_mark_viewed(secret_id) is False
    assert store.fetch_by_id(secret_id).viewed is True


def test_conditional_mark_viewed_missing_row(store):
    assert store.conditional_mark_viewed("nope") is False


def test_update_changes_only_given_fields(store):
    secret_id = store.insert(make_secret(password_hash="h"))

    assert store.update(secret_id, {"one_time_access": True})

    fetched = store.fetch_by_id(secret_id)
    assert fetched.one_time_access is True
    assert fetched.password_hash == "h"


def test_update_skips_consumed_one_time_secret(store):
    secret_id = store.insert(make_secret(one_time_access=True, viewed=True))

    assert store.update(secret_id, {"one_time_access": False}) is False

    assert store.fetch_by_id(secret_id).one_time_access is True


def test_update_skips_rows_expired_before_live_at(store):
    now = utcnow()
    expired_id = store.insert(make_secret(expires_at=now - timedelta(seconds=1)))
    live_id = store.insert(make_secret(expires_at=now))

    assert store.update(expired_id, {"password_hash": "h"}, live_at=now) is False
    assert store.update(live_id, {"password_hash": "h"}, live_at=now) is True
    assert store.fetch_by_id(expired_id).password_hash is None


def test_update_rejects_unknown_fields(store):
    secret_id = store.insert(make_secret())
    with pytest.raises(ValueError, match="viewed"):
        store.update(secret_id, {"viewed": False})


def test_delete_by_id(store):
    secret_id = store.insert(make_secret())

    assert store.delete_by_id(secret_id) is True
    assert store.fetch_by_id(secret_id) is None
    assert store.delete_by_id(secret_id) is False


def test_delete_finished_predicate(store):
    now = utcnow()
    expired = store.insert(make_secret(expires_at=now - timedelta(minutes=1)))
    expiring_now = store.insert(make_secret(expires_at=now))
    future = store.insert(make_secret(expires_at=now + timedelta(days=1)))
    forever = store.insert(make_secret())
    consumed = store.insert(make_secret(one_time_access=True, viewed=True))
    viewed_reusable = store.insert(make_secret(one_time_access=False, viewed=True))

    deleted = store.delete_finished(now)

    assert deleted == 3
    for gone in (expired, expiring_now, consumed):
        assert store.fetch_by_id(gone) is None
    for kept in (future, forever, viewed_reusable):
        assert store.fetch_by_id(kept) is not None
    assert store.delete_finished(now) == 0


def test_list_by_owner_newest_first(store):
    now = utcnow()
    oldest = store.insert(make_secret(owner_id="alice", created_at=now - timedelta(hours=2)))
    newest = store.insert(make_secret(owner_id="alice", created_at=now))
    middle = store.insert(make_secret(owner_id="alice", created_at=now - timedelta(hours=1)))
    store.insert(make_secret(owner_id="bob"))
    store.insert(make_secret())

    listed = store.list_by_owner("alice")

    assert [s.id for s in listed] == [newest, middle, oldest]


def test_persistence_errors_become_store_errors(store, db_session, monkeypatch):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", broken_commit)

    with pytest.raises(StoreError) as exc_info:
        store.insert(make_secret())

    assert "disk I/O error" in exc_info.value.detail
    assert exc_info.value.message == "Failed to process request"
