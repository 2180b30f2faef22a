"""Ordered registry of migrations."""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, ValidationError
from .migration import SENTINEL, Direction, Migration, describe_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """One step of a walk between two versions."""

    direction: Direction
    migration: Migration
    from_version: int
    to_version: int


def _to_migration(definition: Any) -> Migration:
    """Validate a definition into a fresh frozen Migration."""
    try:
        if isinstance(definition, Migration):
            # Re-validate so instances built with model_construct are checked too
            return Migration.model_validate(dict(definition))
        if isinstance(definition, Mapping):
            return Migration.model_validate(dict(definition))
        return Migration.model_validate(definition, from_attributes=True)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid migration definition: {describe_errors(e)}") from e


class MigrationRegistry:
    """Registry of migrations kept sorted ascending by version.

    The first entry is always the version 0 sentinel, so a fresh store
    (version 0) always has a valid starting point.
    """

    def __init__(self) -> None:
        """Initialize registry containing only the sentinel."""
        self._migrations: list[Migration] = [SENTINEL]

    def add(self, definition: Migration | Mapping[str, Any] | Any) -> Migration:
        """
        Register a migration.

        Accepts a Migration, a mapping with the same fields, or any object
        exposing ``version``, ``name``, ``up`` and ``down`` attributes.

        Args:
            definition: Migration definition

        Returns:
            The frozen migration that was stored

        Raises:
            ValidationError: If the definition is invalid or its version is taken
        """
        migration = _to_migration(definition)

        if any(m.version == migration.version for m in self._migrations):
            raise ValidationError(f"Migration version {migration.version} is already registered")

        self._migrations = sorted([*self._migrations, migration], key=lambda m: m.version)
        logger.debug(f"Registered migration {migration.label}")
        return migration

    def find_by_version(self, version: int) -> Migration:
        """
        Get a migration by version.

        Raises:
            NotFoundError: If no migration carries that version
        """
        return self._migrations[self.index_of(version)]

    def index_of(self, version: int) -> int:
        """
        Get the position of a version in the sorted sequence.

        Raises:
            NotFoundError: If no migration carries that version
        """
        for index, migration in enumerate(self._migrations):
            if migration.version == version:
                return index
        raise NotFoundError(version)

    def reset(self) -> None:
        """Discard every registered migration except the sentinel."""
        self._migrations = [SENTINEL]

    def count(self) -> int:
        """Number of registered migrations, excluding the sentinel."""
        return len(self._migrations) - 1

    @property
    def latest_version(self) -> int:
        """Highest registered version (0 when nothing is registered)."""
        return self._migrations[-1].version

    @property
    def versions(self) -> list[int]:
        """Registered versions in ascending order, excluding the sentinel."""
        return [m.version for m in self._migrations[1:]]

    def path(self, from_version: int, to_version: int) -> list[Step]:
        """
        Get the ordered steps of a walk between two versions.

        Ascending walks run each intervening migration's up action in order.
        Descending walks run the down action of every migration from
        ``from_version`` down to, but excluding, ``to_version``.

        Args:
            from_version: Version the walk starts at
            to_version: Version the walk ends at

        Returns:
            Steps in execution order (empty when the versions are equal)

        Raises:
            NotFoundError: If either version is not registered
        """
        start = self.index_of(from_version)
        end = self.index_of(to_version)
        items = self._migrations

        if start < end:
            return [
                Step(Direction.UP, items[i + 1], items[i].version, items[i + 1].version)
                for i in range(start, end)
            ]
        return [
            Step(Direction.DOWN, items[i], items[i].version, items[i - 1].version)
            for i in range(start, end, -1)
        ]

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[Migration]:
        return iter(self._migrations[1:])
