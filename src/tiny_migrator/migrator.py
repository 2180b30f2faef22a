"""Migration execution engine.

Migrations are registered on a Migrator and run by asking for a target
version::

    migrator = Migrator()
    migrator.configure(db="~/.local/share/app/db.json")
    migrator.add(Migration(version=1, name="Add users", up=add_users, down=drop_users))
    migrator.migrate_to("latest")   # or 1, "1", "1,rerun"

The current version and a lock flag live in a control record stored in the
database itself. The lock ensures only one caller migrates at a time; a caller
that finds it taken returns without doing anything. If a process crashes
mid-walk the record stays locked at the last version it fully reached, and
``unlock()`` is the way out.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from tinydb import TinyDB

from .command import parse_command
from .constants import DEFAULT_COLLECTION_NAME
from .control import ControlRecord, ControlStore, lock_path_for, storage_path
from .errors import NotConfiguredError, StepExecutionError
from .log import Logger, logging_sink, null_logger
from .migration import Direction, Migration
from .registry import MigrationRegistry, Step
from .utils import backup_file, ensure_dir, expand_path

logger = logging.getLogger(__name__)


class MigratorOptions(BaseModel):
    """Options for a Migrator.

    Attributes:
        db: Open TinyDB instance, or path of the JSON database file
        collection_name: Table holding the control record
        log: False disables logging entirely
        log_if_latest: Log "already at version N" when there is nothing to do
        logger: Sink called as ``logger(level, *parts)``; None uses ``logging``
        lock_lease_seconds: Treat locks older than this as abandoned.
            None keeps locks until ``unlock()`` is called.
        backup: Copy the database file before a walk that changes the version
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    db: TinyDB | Path | None = None
    collection_name: str = Field(default=DEFAULT_COLLECTION_NAME, min_length=1)
    log: bool = True
    log_if_latest: bool = True
    logger: Logger | None = None
    lock_lease_seconds: float | None = Field(default=None, gt=0)
    backup: bool = False

    @field_validator("db", mode="before")
    @classmethod
    def expand_db_path(cls, v: Any) -> Any:
        """Expand path strings with ~ and environment variables."""
        if isinstance(v, str):
            return expand_path(v)
        return v


class MigrationStatus(str, Enum):
    """Outcome of a migrate_to call."""

    MIGRATED = "migrated"
    UP_TO_DATE = "up_to_date"
    LOCKED = "locked"
    RERUN = "rerun"


@dataclass(frozen=True)
class MigrationResult:
    """Summary of a migrate_to call."""

    status: MigrationStatus
    from_version: int
    to_version: int
    steps: int = 0


class Migrator:
    """Registers migrations and walks a database between their versions."""

    def __init__(self, options: MigratorOptions | None = None, **overrides: Any):
        """
        Initialize migrator.

        Nothing is opened until configure() is called.

        Args:
            options: Initial options
            **overrides: Individual option values applied over ``options``
        """
        self.registry = MigrationRegistry()
        self.options = self._merge(MigratorOptions(), options, overrides)
        self.logger: Logger = null_logger
        self.db: TinyDB | None = None
        self.db_path: Path | None = None
        self.store: ControlStore | None = None
        self._owns_db = False

    @staticmethod
    def _merge(
        base: MigratorOptions,
        options: MigratorOptions | None,
        overrides: dict[str, Any],
    ) -> MigratorOptions:
        values = dict(base)
        if options is not None:
            values.update({name: getattr(options, name) for name in options.model_fields_set})
        values.update(overrides)
        return MigratorOptions.model_validate(values)

    def configure(self, options: MigratorOptions | None = None, **overrides: Any) -> None:
        """
        Merge options and bind the migrator to its database.

        Args:
            options: Options to merge over the current ones
            **overrides: Individual option values

        Raises:
            NotConfiguredError: If no database is available
        """
        self.options = self._merge(self.options, options, overrides)

        if not self.options.log:
            self.logger = null_logger
        elif self.options.logger is not None:
            self.logger = self.options.logger
        else:
            self.logger = logging_sink()

        db = self.options.db
        if db is None and self.db is None:
            raise NotConfiguredError("db option must be defined")

        if isinstance(db, Path):
            if db != self.db_path or self.db is None:
                self.close()
                ensure_dir(db.parent)
                self.db = TinyDB(db)
                self.db_path = db
                self._owns_db = True
                logger.debug(f"Opened database {db}")
        elif db is not None and db is not self.db:
            self.close()
            self.db = db
            self.db_path = storage_path(db)
            self._owns_db = False

        lock_path = lock_path_for(self.db_path) if self.db_path is not None else None
        self.store = ControlStore(self.db, self.options.collection_name, lock_path)

    def add(self, migration: Migration | Any) -> Migration:
        """
        Register a migration.

        Args:
            migration: Migration, mapping or object with version/name/up/down

        Returns:
            The frozen migration that was stored

        Raises:
            ValidationError: If the definition is invalid or its version is taken
        """
        return self.registry.add(migration)

    def migrate_to(self, command: int | str) -> MigrationResult:
        """
        Migrate to the version named by a command.

        Args:
            command: A version (2, "2"), "latest", or "<version>,rerun"

        Returns:
            Summary of what was done

        Raises:
            NotConfiguredError: If configure() has not been called
            InvalidCommandError: If the command is empty or malformed
            NotFoundError: If a version in the walk is not registered
            StepExecutionError: If a migration action fails
            DirectionUnsupportedError: If a step has no action for its direction
        """
        self._require_store()
        parsed = parse_command(command)

        try:
            if parsed.latest:
                return self._execute(self.registry.latest_version)
            return self._execute(parsed.target, rerun=parsed.rerun)
        except Exception:
            self.logger("info", "Encountered an error while migrating. Migration failed.")
            raise

    def get_number_of_migrations(self) -> int:
        """Number of registered migrations, excluding the version 0 baseline."""
        return self.registry.count()

    def get_version(self) -> int:
        """
        Get the current version, creating the control record if absent.

        Raises:
            NotConfiguredError: If configure() has not been called
        """
        return self.get_control().version

    def get_control(self) -> ControlRecord:
        """
        Get the full control record, creating it if absent.

        Raises:
            NotConfiguredError: If configure() has not been called
        """
        return self._require_store().get_or_create()

    def unlock(self) -> None:
        """
        Clear the lock flag unconditionally.

        Recovery for a run that crashed while holding the lock. The recorded
        version is not changed.
        """
        self._require_store().force_unlock()

    def reset(self) -> None:
        """
        Drop all registered migrations and delete the control record.

        Intended for development and tests only.
        """
        store = self._require_store()
        self.registry.reset()
        store.clear()

    def close(self) -> None:
        """Close the database if this migrator opened it."""
        if self.db is not None and self._owns_db:
            self.db.close()
        self.db = None
        self.db_path = None
        self.store = None
        self._owns_db = False

    def __enter__(self) -> "Migrator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _require_store(self) -> ControlStore:
        if self.store is None:
            raise NotConfiguredError(
                "Migrator has not been configured. Call configure(...) to bind a database"
            )
        return self.store

    def _lock(self, control: ControlRecord) -> bool:
        """Take the lock. Returns False if someone else holds it."""
        now = datetime.now(timezone.utc)
        stale_before = None
        if self.options.lock_lease_seconds is not None:
            stale_before = now - timedelta(seconds=self.options.lock_lease_seconds)

        acquired = self.store.acquire_lock(now, stale_before)
        if acquired and control.locked:
            self.logger("warning", f"Taking over lock left since {control.locked_at}")
        return acquired

    def _unlock(self, version: int) -> None:
        self.store.save(version, locked=False)

    def _run(self, step: Step) -> None:
        """Invoke one step's action, wrapping its failure."""
        action = step.migration.action(step.direction)
        self.logger("info", f"Running {step.direction.value}() on version {step.migration.label}")
        try:
            action(self.db, self.logger)
        except Exception as e:
            raise StepExecutionError(
                step.from_version, step.to_version, step.direction.value, e
            ) from e

    def _backup(self) -> None:
        if self.db_path is None:
            logger.debug("Skipping backup: database was not opened from a file")
            return
        backup_path = backup_file(self.db_path)
        if backup_path:
            self.logger("info", f"Created backup: {backup_path}")

    def _execute(self, version: int, rerun: bool = False) -> MigrationResult:
        """Walk from the recorded version to ``version``."""
        control = self.store.get_or_create()

        if not self._lock(control):
            self.logger("info", "Not migrating, control is locked.")
            return MigrationResult(MigrationStatus.LOCKED, control.version, control.version)

        # Another caller may have finished a walk between the read and the lock
        current = self.store.get_or_create().version
        start = current

        if rerun:
            # Re-runs whatever version is current; the target only has to exist.
            try:
                self.registry.find_by_version(version)
                migration = self.registry.find_by_version(current)
                self.logger("info", f"Rerunning version {migration.label}")
                self._run(Step(Direction.UP, migration, current, current))
            except Exception:
                self.logger("error", f"Encountered an error while rerunning version {current}")
                self._unlock(current)
                raise
            self._unlock(current)
            self.logger("info", "Finished migrating.")
            return MigrationResult(MigrationStatus.RERUN, current, current, steps=1)

        if current == version:
            if self.options.log_if_latest:
                self.logger("info", f"Not migrating, already at version {version}")
            self._unlock(current)
            return MigrationResult(MigrationStatus.UP_TO_DATE, current, current)

        try:
            steps = self.registry.path(current, version)
        except Exception:
            self._unlock(current)
            raise

        self.logger("info", f"Migrating from version {current} -> {version}")
        if self.options.backup:
            self._backup()

        for step in steps:
            try:
                self._run(step)
            except Exception:
                self.logger(
                    "error",
                    f"Encountered an error while migrating from {step.from_version} "
                    f"to {step.to_version}",
                )
                self._unlock(current)
                raise
            current = step.to_version
            # Commit each step so a crash leaves the record at the last completed version
            self.store.save(current, locked=True)

        self._unlock(current)
        self.logger("info", "Finished migrating.")
        return MigrationResult(MigrationStatus.MIGRATED, start, current, steps=len(steps))
