from __future__ import annotations

import json
import os

import pytest

from goalify.cache import CacheKey, LocalCacheStore
from goalify.errors import DurabilityFailure
from goalify.telemetry import clear_listeners, recent_events


@pytest.fixture
def store(tmp_path) -> LocalCacheStore:
    clear_listeners()
    return LocalCacheStore(tmp_path / "cache")


def test_put_then_get_round_trips(store: LocalCacheStore) -> None:
    key = CacheKey("goals", "user-1")
    payload = [{"id": "goal-1", "description": "Read twenty pages"}]
    store.put(key, payload)
    assert store.get(key) == payload


def test_missing_key_is_a_miss(store: LocalCacheStore) -> None:
    assert store.get(CacheKey("profile", "nobody")) is None


def test_put_replaces_previous_value_without_temp_files(store: LocalCacheStore) -> None:
    key = CacheKey("profile", "user-1")
    store.put(key, {"total_xp": 10})
    store.put(key, {"total_xp": 20})
    assert store.get(key) == {"total_xp": 20}
    files = os.listdir(store.root / "user-1")
    assert files == ["profile.json"]


def test_corrupted_file_reads_as_miss(store: LocalCacheStore) -> None:
    key = CacheKey("conversations", "user-1")
    store.put(key, [])
    path = store.root / "user-1" / "conversations.json"
    path.write_text("{not json", encoding="utf-8")

    assert store.get(key) is None
    event = recent_events("cache_corruption")[0]
    assert event.payload["key"] == "conversations:user-1"


def test_unserialisable_value_raises_durability_failure(store: LocalCacheStore) -> None:
    key = CacheKey("profile", "user-1")
    store.put(key, {"total_xp": 5})
    with pytest.raises(DurabilityFailure):
        store.put(key, {"bad": object()})
    assert store.get(key) == {"total_xp": 5}


def test_unwritable_root_raises_durability_failure(tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = LocalCacheStore(blocker)
    with pytest.raises(DurabilityFailure):
        store.put(CacheKey("profile", "user-1"), {})


def test_delete_reports_whether_value_existed(store: LocalCacheStore) -> None:
    key = CacheKey("pending", "user-1")
    store.put(key, [])
    assert store.delete(key) is True
    assert store.delete(key) is False
    assert store.get(key) is None


def test_scoped_keys_and_user_listing(store: LocalCacheStore) -> None:
    store.put(CacheKey("profile", "user/1"), {"id": "user/1"})
    store.put(CacheKey("messages", "user/1", "conv 1"), ["a"])
    store.put(CacheKey("messages", "user/1", "conv/2"), ["b"])
    store.put(CacheKey("goals", "user-2"), [])

    assert store.get(CacheKey("messages", "user/1", "conv 1")) == ["a"]
    assert store.get(CacheKey("messages", "user/1", "conv/2")) == ["b"]
    assert sorted(path.name for path in (store.root / "user%2F1").iterdir()) == [
        "messages@conv%201.json",
        "messages@conv%2F2.json",
        "profile.json",
    ]
    assert store.users() == ["user-2", "user/1"]


def test_cache_key_validation() -> None:
    with pytest.raises(ValueError):
        CacheKey("settings", "user-1")
    with pytest.raises(ValueError):
        CacheKey("profile", "   ")
    assert CacheKey("profile", " user-1 ").user_id == "user-1"
    assert str(CacheKey("messages", "u", "c")) == "messages:u:c"


def test_values_are_plain_json_on_disk(store: LocalCacheStore) -> None:
    store.put(CacheKey("goals", "user-1"), [{"id": "g"}])
    raw = (store.root / "user-1" / "goals.json").read_text(encoding="utf-8")
    assert json.loads(raw) == [{"id": "g"}]
