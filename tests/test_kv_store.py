"""Tests for key-value persistence backends."""

from tutaviendo import config
from tutaviendo.kv_store import FileKeyValueStore, MemoryKeyValueStore, SaveResult
from tutaviendo.session import get_session_id


class TestMemoryKeyValueStore:
    def test_set_get_remove(self):
        store = MemoryKeyValueStore()
        assert store.set("k", "v") is SaveResult.SAVED
        assert store.get("k") == "v"

        store.remove("k")
        assert store.get("k") is None

    def test_remove_missing_key_is_noop(self):
        MemoryKeyValueStore().remove("missing")

    def test_quota_exceeded_keeps_old_value(self):
        store = MemoryKeyValueStore(quota=10)
        assert store.set("k", "abc") is SaveResult.SAVED
        assert store.set("k", "x" * 20) is SaveResult.QUOTA_EXCEEDED
        assert store.get("k") == "abc"

    def test_overwrite_does_not_count_old_value(self):
        store = MemoryKeyValueStore(quota=6)
        assert store.set("k", "12345") is SaveResult.SAVED
        assert store.set("k", "54321") is SaveResult.SAVED


class TestFileKeyValueStore:
    def test_set_get_remove(self, temp_dir):
        store = FileKeyValueStore(temp_dir)
        assert store.set("tutaviendo_analytics", "[1, 2]") is SaveResult.SAVED
        assert store.get("tutaviendo_analytics") == "[1, 2]"
        assert (temp_dir / "tutaviendo_analytics.json").exists()

        store.remove("tutaviendo_analytics")
        assert store.get("tutaviendo_analytics") is None

    def test_values_survive_new_instance(self, temp_dir):
        FileKeyValueStore(temp_dir).set("k", "persisted")
        assert FileKeyValueStore(temp_dir).get("k") == "persisted"

    def test_creates_data_dir(self, temp_dir):
        store = FileKeyValueStore(temp_dir / "nested" / "data")
        store.set("k", "v")
        assert store.get("k") == "v"

    def test_quota_counts_all_keys(self, temp_dir):
        store = FileKeyValueStore(temp_dir, quota=10)
        assert store.set("a", "12345") is SaveResult.SAVED
        assert store.set("b", "123456") is SaveResult.QUOTA_EXCEEDED
        assert store.get("b") is None

    def test_no_temp_files_left(self, temp_dir):
        store = FileKeyValueStore(temp_dir)
        store.set("k", "v")
        assert [p.name for p in temp_dir.iterdir()] == ["k.json"]


class TestSessionId:
    def test_created_once_and_reused(self):
        session_store = MemoryKeyValueStore()
        first = get_session_id(session_store)

        assert first.startswith("session_")
        assert get_session_id(session_store) == first
        assert session_store.get(config.SESSION_KEY) == first

    def test_distinct_sessions(self):
        assert get_session_id(MemoryKeyValueStore()) != get_session_id(MemoryKeyValueStore())


def test_storage_keys_are_distinct():
    assert len({config.EVENTS_KEY, config.VISITS_KEY, config.SESSION_KEY}) == 3
