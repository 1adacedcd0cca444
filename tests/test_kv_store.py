"""Tests for squirt.storage.kv — key-value backends and factory."""

import pytest

from squirt.errors import ConfigurationError, PersistenceError
from squirt.storage.kv import MemoryKeyValueStore, SQLiteKeyValueStore, build_kv_store


@pytest.fixture
def sqlite_store(tmp_path):
    """Create a SQLiteKeyValueStore in a temp directory."""
    s = SQLiteKeyValueStore(tmp_path / "kv" / "test.db")
    yield s
    s.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        yield MemoryKeyValueStore()
    else:
        s = SQLiteKeyValueStore(tmp_path / "any.db")
        yield s
        s.close()


class TestKeyValueContract:
    def test_missing_key(self, any_store):
        assert any_store.get("nope") is None

    def test_set_and_get(self, any_store):
        any_store.set("k", b"value")
        assert any_store.get("k") == b"value"

    def test_overwrite(self, any_store):
        any_store.set("k", b"one")
        any_store.set("k", b"two")
        assert any_store.get("k") == b"two"

    def test_remove(self, any_store):
        any_store.set("k", b"v")
        any_store.remove("k")
        any_store.remove("k")
        assert any_store.get("k") is None

    def test_binary_values(self, any_store):
        payload = bytes(range(256))
        any_store.set("bin", payload)
        assert any_store.get("bin") == payload


class TestSQLiteKeyValueStore:
    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "deep" / "er" / "kv.db"
        s = SQLiteKeyValueStore(path)
        s.close()
        assert path.exists()

    def test_persists_across_reopen(self, tmp_path):
        path = tmp_path / "kv.db"
        first = SQLiteKeyValueStore(path)
        first.set("endpoints", b"[]")
        first.close()

        second = SQLiteKeyValueStore(path)
        assert second.get("endpoints") == b"[]"
        second.close()

    def test_wal_mode(self, sqlite_store):
        mode = sqlite_store._conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"

    def test_closed_store_raises_persistence_error(self, tmp_path):
        s = SQLiteKeyValueStore(tmp_path / "kv.db")
        s.close()
        with pytest.raises(PersistenceError):
            s.get("k")
        with pytest.raises(PersistenceError):
            s.set("k", b"v")

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(PersistenceError):
            SQLiteKeyValueStore(blocker / "kv.db")


class TestBuildKeyValueStore:
    def test_memory(self):
        assert isinstance(build_kv_store("memory"), MemoryKeyValueStore)

    def test_sqlite(self, tmp_path):
        s = build_kv_store("sqlite", tmp_path)
        assert isinstance(s, SQLiteKeyValueStore)
        assert s.path == tmp_path / "squirt.db"
        s.close()

    def test_unknown_backend(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Unknown storage backend"):
            build_kv_store("redis", tmp_path)
