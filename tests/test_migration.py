"""Tests for migration definitions."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from tiny_migrator.errors import DirectionUnsupportedError, ValidationError
from tiny_migrator.migration import SENTINEL, Direction, Migration


def _noop(db, logger) -> None:
    return None


class TestMigration:
    """Tests for the Migration model."""

    def test_label_with_name(self) -> None:
        """Test label includes the display name when set."""
        migration = Migration(version=3, name="Add index", up=_noop, down=_noop)
        assert migration.label == "3 (Add index)"

    def test_label_without_name(self) -> None:
        """Test label is just the version when no name is set."""
        migration = Migration(version=3, up=_noop, down=_noop)
        assert migration.label == "3"

    def test_frozen(self) -> None:
        """Test fields cannot be reassigned after construction."""
        migration = Migration(version=1, up=_noop, down=_noop)

        with pytest.raises(PydanticValidationError):
            migration.version = 2  # type: ignore[misc]

        assert migration.version == 1

    def test_rejects_non_positive_version(self) -> None:
        """Test version 0 and negative versions are rejected."""
        with pytest.raises(ValidationError):
            Migration(version=0, up=_noop, down=_noop)
        with pytest.raises(ValidationError):
            Migration(version=-1, up=_noop, down=_noop)

    def test_rejects_non_integer_version(self) -> None:
        """Test string and float versions are not coerced."""
        with pytest.raises(ValidationError):
            Migration(version="1", up=_noop, down=_noop)  # type: ignore[arg-type]
        with pytest.raises(ValidationError):
            Migration(version=1.5, up=_noop, down=_noop)  # type: ignore[arg-type]

    def test_rejects_non_callable_actions(self) -> None:
        """Test up and down must be callable."""
        with pytest.raises(ValidationError):
            Migration(version=1, up="not callable", down=_noop)  # type: ignore[arg-type]
        with pytest.raises(ValidationError):
            Migration(version=1, up=_noop)  # type: ignore[call-arg]

    def test_validation_error_keeps_cause(self) -> None:
        """Test construction failures name the field and chain the pydantic error."""
        with pytest.raises(ValidationError, match="version") as exc_info:
            Migration(version=0, up=_noop, down=_noop)

        assert isinstance(exc_info.value.__cause__, PydanticValidationError)
        assert isinstance(exc_info.value, ValueError)

    def test_name_none_is_empty(self) -> None:
        """Test a None name is accepted as no name."""
        migration = Migration(version=2, name=None, up=_noop, down=_noop)

        assert migration.name == ""
        assert migration.label == "2"

    def test_action_selects_direction(self) -> None:
        """Test action returns the callable for each direction."""

        def up(db, logger) -> None:
            pass

        def down(db, logger) -> None:
            pass

        migration = Migration(version=1, up=up, down=down)

        assert migration.action(Direction.UP) is up
        assert migration.action(Direction.DOWN) is down


class TestSentinel:
    """Tests for the version 0 baseline."""

    def test_sentinel_version(self) -> None:
        """Test the sentinel sits at version 0."""
        assert SENTINEL.version == 0
        assert SENTINEL.name == "default"

    def test_sentinel_up_is_noop(self) -> None:
        """Test the sentinel's up action does nothing."""
        assert SENTINEL.action(Direction.UP)(None, None) is None

    def test_sentinel_down_unsupported(self) -> None:
        """Test there is nothing below version 0."""
        with pytest.raises(DirectionUnsupportedError) as exc_info:
            SENTINEL.action(Direction.DOWN)

        assert exc_info.value.version == 0
        assert exc_info.value.direction == "down"
