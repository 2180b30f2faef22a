"""Persisted control record tracking the current version and the lock."""

import fcntl
import logging
import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel
from tinydb import Query, TinyDB
from tinydb.middlewares import Middleware
from tinydb.storages import JSONStorage

from .constants import CONTROL_KEY, CONTROL_KEY_FIELD, DEFAULT_COLLECTION_NAME, LOCK_FILE_SUFFIX
from .utils import ensure_dir

logger = logging.getLogger(__name__)

# In-memory databases have no file to lock, so every store bound to the same
# TinyDB instance shares one thread lock.
_memory_locks: "weakref.WeakKeyDictionary[TinyDB, threading.Lock]" = weakref.WeakKeyDictionary()
_memory_locks_guard = threading.Lock()


def _thread_lock_for(db: TinyDB) -> threading.Lock:
    with _memory_locks_guard:
        lock = _memory_locks.get(db)
        if lock is None:
            lock = threading.Lock()
            _memory_locks[db] = lock
        return lock


def storage_path(db: TinyDB) -> Path | None:
    """
    Get the file behind a TinyDB instance.

    Middlewares such as ``CachingMiddleware`` are unwrapped first.

    Args:
        db: TinyDB database instance

    Returns:
        Resolved path of the JSON file, or None for storages without one
    """
    storage = db.storage
    while isinstance(storage, Middleware):
        storage = storage.storage

    if not isinstance(storage, JSONStorage):
        return None
    return Path(storage._handle.name).resolve()


def lock_path_for(db_path: Path) -> Path:
    """Sidecar lock file of a database file."""
    return db_path.with_name(db_path.name + LOCK_FILE_SUFFIX)


class ControlRecord(BaseModel):
    """The single control document of a migrations table.

    Attributes:
        version: Last version fully and successfully reached
        locked: Whether a migration run is in progress
        locked_at: When the lock was taken (diagnostic only)
    """

    version: int = 0
    locked: bool = False
    locked_at: datetime | None = None


class ControlStore:
    """Reads and writes the control record in a TinyDB table.

    The record is one document identified by ``key == "control"``. Every
    read-modify-write runs inside an exclusive section so the conditional
    lock update is atomic across threads and, for file-backed databases,
    across processes.
    """

    def __init__(
        self,
        db: TinyDB,
        table_name: str = DEFAULT_COLLECTION_NAME,
        lock_path: Path | None = None,
    ):
        """
        Initialize control store.

        Args:
            db: TinyDB database instance
            table_name: Table holding the control record
            lock_path: Sidecar file used for cross-process locking. Defaults
                to one next to the database file; databases without a file
                share a thread lock per instance instead.
        """
        self.db = db
        self.table = db.table(table_name)
        if lock_path is None:
            db_path = storage_path(db)
            if db_path is not None:
                lock_path = lock_path_for(db_path)
        self.lock_path = lock_path
        self._key = Query()[CONTROL_KEY_FIELD] == CONTROL_KEY

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self.lock_path is None:
            with _thread_lock_for(self.db):
                yield
            return

        ensure_dir(self.lock_path.parent)
        with open(self.lock_path, "a") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def read(self) -> ControlRecord | None:
        """
        Read the control record.

        Returns:
            The record, or None if it has not been created yet
        """
        with self._exclusive():
            doc = self.table.get(self._key)
        return ControlRecord.model_validate(doc) if doc else None

    def get_or_create(self) -> ControlRecord:
        """
        Read the control record, creating it at version 0 when absent.

        Returns:
            The existing or newly created record
        """
        with self._exclusive():
            doc = self.table.get(self._key)
            if doc:
                return ControlRecord.model_validate(doc)

            record = ControlRecord()
            self.table.upsert(self._document(record), self._key)
            logger.debug(f"Created control record in table '{self.table.name}'")
            return record

    def acquire_lock(self, now: datetime, stale_before: datetime | None = None) -> bool:
        """
        Atomically take the lock.

        Matches the control document only while it is unlocked, or, when
        ``stale_before`` is given, while its lock was taken before that instant.

        Args:
            now: Lock acquisition time to record
            stale_before: Locks older than this are treated as abandoned

        Returns:
            True if the lock was acquired
        """
        Control = Query()
        available = Control.locked == False  # noqa: E712
        if stale_before is not None:
            threshold = stale_before

            def _is_stale(value: str | None) -> bool:
                return value is not None and datetime.fromisoformat(value) < threshold

            available = available | Control.locked_at.test(_is_stale)

        with self._exclusive():
            updated = self.table.update(
                {"locked": True, "locked_at": now.isoformat()},
                self._key & available,
            )
        return len(updated) > 0

    def save(self, version: int, locked: bool) -> ControlRecord:
        """
        Upsert the version and lock flag.

        Args:
            version: Version to record
            locked: Lock flag to record

        Returns:
            The record as written
        """
        with self._exclusive():
            self.table.upsert(
                {CONTROL_KEY_FIELD: CONTROL_KEY, "version": version, "locked": locked},
                self._key,
            )
            doc = self.table.get(self._key)
        return ControlRecord.model_validate(doc)

    def force_unlock(self) -> None:
        """Clear the lock flag unconditionally. The version is not touched."""
        with self._exclusive():
            self.table.update({"locked": False}, self._key)

    def clear(self) -> None:
        """Delete every document in the table."""
        with self._exclusive():
            self.table.truncate()

    @staticmethod
    def _document(record: ControlRecord) -> dict:
        data = record.model_dump(mode="json")
        data[CONTROL_KEY_FIELD] = CONTROL_KEY
        return data
