from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from secureauth.auth.errors import StoreUnavailableError
from secureauth.auth.tokens import SQLTokenStore, generate_token, hash_token


def test_insert_exists_delete(token_store: SQLTokenStore) -> None:
    assert token_store.insert(1, "hash-a") is True
    assert token_store.exists(1, "hash-a") is True
    assert token_store.exists(2, "hash-a") is False

    token_store.delete(1, "hash-a")
    token_store.delete(1, "hash-a")

    assert token_store.exists(1, "hash-a") is False


def test_duplicate_insert_fails(token_store: SQLTokenStore) -> None:
    assert token_store.insert(1, "hash-a") is True
    assert token_store.insert(1, "hash-a") is False
    assert token_store.count(1) == 1


def test_update_replaces_hash_atomically(token_store: SQLTokenStore) -> None:
    token_store.insert(1, "old")

    assert token_store.update(1, "old", "new") is True
    assert token_store.exists(1, "old") is False
    assert token_store.exists(1, "new") is True

    # the old hash is gone for good; a second rotation from it must not resurrect it
    assert token_store.update(1, "old", "newer") is False
    assert token_store.exists(1, "newer") is False
    assert token_store.count(1) == 1


def test_update_is_scoped_to_user(token_store: SQLTokenStore) -> None:
    token_store.insert(1, "shared")

    assert token_store.update(2, "shared", "stolen") is False
    assert token_store.exists(1, "shared") is True
    assert token_store.count(2) == 0


def test_purge_removes_every_device_of_one_user(token_store: SQLTokenStore) -> None:
    token_store.insert(1, "laptop")
    token_store.insert(1, "phone")
    token_store.insert(2, "other")

    token_store.purge(1)
    token_store.purge(1)

    assert token_store.count(1) == 0
    assert token_store.exists(2, "other") is True


def test_clean_keeps_rows_at_or_after_cutoff(token_store: SQLTokenStore, clock) -> None:
    token_store.insert(1, "oldest")
    clock.advance(seconds=10)
    cutoff = clock()
    token_store.insert(1, "at-cutoff")
    clock.advance(seconds=10)
    token_store.insert(1, "newest")

    token_store.clean(cutoff)
    token_store.clean(cutoff)

    assert token_store.exists(1, "oldest") is False
    assert token_store.exists(1, "at-cutoff") is True
    assert token_store.exists(1, "newest") is True


def test_rotation_refreshes_issue_time(token_store: SQLTokenStore, clock) -> None:
    token_store.insert(1, "old")
    clock.advance(days=30)
    token_store.update(1, "old", "new")
    clock.advance(days=1)

    token_store.clean(clock() - timedelta(days=2))

    assert token_store.exists(1, "new") is True


def test_backend_failure_raises_store_unavailable(tmp_path) -> None:
    # no tables were created in this database
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.sqlite3'}")
    store = SQLTokenStore(engine)

    with pytest.raises(StoreUnavailableError):
        store.exists(1, "anything")
    with pytest.raises(StoreUnavailableError):
        store.clean(datetime.now(timezone.utc))


def test_token_generation_is_unpredictable() -> None:
    tokens = {generate_token("secret", 1) for _ in range(50)}
    assert len(tokens) == 50
    token = tokens.pop()
    assert len(token) == 64
    assert hash_token(token) != token
    assert hash_token(token) == hash_token(token)
    assert len(hash_token(token, "sha512")) == 128
