"""Tests for the persisted control record."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from tinydb import TinyDB
from tinydb.middlewares import CachingMiddleware
from tinydb.storages import JSONStorage, MemoryStorage

from tiny_migrator.control import ControlRecord, ControlStore, lock_path_for, storage_path


def _file_store(tmp_path: Path, table_name: str = "migrations") -> ControlStore:
    db_path = tmp_path / "db.json"
    return ControlStore(TinyDB(db_path), table_name, lock_path=tmp_path / "db.json.lock")


class TestControlStore:
    """Tests for ControlStore with a file-backed database."""

    def test_read_missing(self, tmp_path: Path) -> None:
        """Test read returns None before the record exists."""
        store = _file_store(tmp_path)
        assert store.read() is None
        store.db.close()

    def test_get_or_create(self, tmp_path: Path) -> None:
        """Test the record is created at version 0, unlocked."""
        store = _file_store(tmp_path)

        record = store.get_or_create()

        assert record == ControlRecord(version=0, locked=False)
        assert store.read() == record
        assert len(store.table) == 1
        store.db.close()

    def test_get_or_create_keeps_existing(self, tmp_path: Path) -> None:
        """Test an existing record is returned unchanged."""
        store = _file_store(tmp_path)
        store.save(4, locked=False)

        assert store.get_or_create().version == 4
        assert len(store.table) == 1
        store.db.close()

    def test_record_layout(self, tmp_path: Path) -> None:
        """Test the document is keyed by 'control' in the named table."""
        store = _file_store(tmp_path, "_migration")
        store.get_or_create()
        store.acquire_lock(datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))
        store.db.close()

        data = json.loads((tmp_path / "db.json").read_text(encoding="utf-8"))
        docs = list(data["_migration"].values())

        assert docs == [
            {
                "key": "control",
                "version": 0,
                "locked": True,
                "locked_at": "2025-01-01T12:00:00+00:00",
            }
        ]

    def test_acquire_lock_once(self, tmp_path: Path) -> None:
        """Test only the first acquisition succeeds."""
        store = _file_store(tmp_path)
        store.get_or_create()
        now = datetime.now(timezone.utc)

        assert store.acquire_lock(now) is True
        assert store.acquire_lock(now) is False

        record = store.read()
        assert record is not None
        assert record.locked is True
        assert record.locked_at == now
        store.db.close()

    def test_acquire_lock_without_record(self, tmp_path: Path) -> None:
        """Test acquisition matches nothing before the record exists."""
        store = _file_store(tmp_path)
        assert store.acquire_lock(datetime.now(timezone.utc)) is False
        store.db.close()

    def test_acquire_lock_across_instances(self, tmp_path: Path) -> None:
        """Test two handles on the same file see each other's lock."""
        first = _file_store(tmp_path)
        second = _file_store(tmp_path)
        first.get_or_create()
        now = datetime.now(timezone.utc)

        assert first.acquire_lock(now) is True
        assert second.acquire_lock(now) is False

        first.db.close()
        second.db.close()

    def test_stale_lock_taken_over(self, tmp_path: Path) -> None:
        """Test a lock older than stale_before can be re-acquired."""
        store = _file_store(tmp_path)
        store.get_or_create()
        taken = datetime.now(timezone.utc) - timedelta(hours=1)
        store.acquire_lock(taken)

        now = datetime.now(timezone.utc)
        assert store.acquire_lock(now, stale_before=now - timedelta(minutes=30)) is True

        record = store.read()
        assert record is not None
        assert record.locked_at == now
        store.db.close()

    def test_fresh_lock_not_taken_over(self, tmp_path: Path) -> None:
        """Test a lock newer than stale_before stays held."""
        store = _file_store(tmp_path)
        store.get_or_create()
        now = datetime.now(timezone.utc)
        store.acquire_lock(now)

        assert store.acquire_lock(now, stale_before=now - timedelta(minutes=30)) is False
        store.db.close()

    def test_save(self, tmp_path: Path) -> None:
        """Test save upserts version and lock flag."""
        store = _file_store(tmp_path)

        record = store.save(3, locked=True)

        assert record.version == 3
        assert record.locked is True
        assert len(store.table) == 1

        store.save(2, locked=False)
        record = store.read()
        assert record is not None
        assert (record.version, record.locked) == (2, False)
        assert len(store.table) == 1
        store.db.close()

    def test_force_unlock_keeps_version(self, tmp_path: Path) -> None:
        """Test force_unlock clears the flag only."""
        store = _file_store(tmp_path)
        store.save(5, locked=True)

        store.force_unlock()

        record = store.read()
        assert record is not None
        assert record.locked is False
        assert record.version == 5
        store.db.close()

    def test_clear(self, tmp_path: Path) -> None:
        """Test clear deletes the record."""
        store = _file_store(tmp_path)
        store.save(5, locked=False)

        store.clear()

        assert store.read() is None
        assert store.get_or_create().version == 0
        store.db.close()

    def test_other_tables_untouched(self, tmp_path: Path) -> None:
        """Test clear only affects the control table."""
        store = _file_store(tmp_path)
        store.db.table("users").insert({"name": "ada"})
        store.save(1, locked=False)

        store.clear()

        assert len(store.db.table("users")) == 1
        store.db.close()


class TestMemoryControlStore:
    """Tests for ControlStore with an in-memory database."""

    def test_stores_share_lock_per_database(self) -> None:
        """Test two stores on one in-memory database exclude each other."""
        db = TinyDB(storage=MemoryStorage)
        first = ControlStore(db)
        second = ControlStore(db)
        first.get_or_create()
        now = datetime.now(timezone.utc)

        assert first.acquire_lock(now) is True
        assert second.acquire_lock(now) is False

        second.force_unlock()
        assert second.acquire_lock(now) is True


class TestLockPath:
    """Tests for locating the sidecar lock file."""

    def test_lock_path_for(self, tmp_path: Path) -> None:
        """Test the lock file sits next to the database file."""
        assert lock_path_for(tmp_path / "db.json") == tmp_path / "db.json.lock"

    def test_storage_path_of_json_database(self, tmp_path: Path) -> None:
        """Test the file of a JSON-backed database is found."""
        db = TinyDB(tmp_path / "db.json")
        assert storage_path(db) == tmp_path / "db.json"
        db.close()

    def test_storage_path_through_middleware(self, tmp_path: Path) -> None:
        """Test middlewares are unwrapped to reach the file."""
        db = TinyDB(tmp_path / "db.json", storage=CachingMiddleware(JSONStorage))
        assert storage_path(db) == tmp_path / "db.json"
        db.close()

    def test_storage_path_of_memory_database(self) -> None:
        """Test in-memory databases have no file."""
        assert storage_path(TinyDB(storage=MemoryStorage)) is None

    def test_store_derives_lock_path(self, tmp_path: Path) -> None:
        """Test an open file-backed database gets the file lock by default."""
        db = TinyDB(tmp_path / "db.json")

        store = ControlStore(db)

        assert store.lock_path == tmp_path / "db.json.lock"
        store.get_or_create()
        assert (tmp_path / "db.json.lock").exists()
        db.close()

    def test_memory_store_has_no_lock_path(self) -> None:
        """Test in-memory databases fall back to the shared thread lock."""
        assert ControlStore(TinyDB(storage=MemoryStorage)).lock_path is None
