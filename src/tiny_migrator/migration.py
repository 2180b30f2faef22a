"""Migration definitions."""

from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic import ValidationError as PydanticValidationError

from .constants import SENTINEL_NAME, SENTINEL_VERSION
from .errors import DirectionUnsupportedError, ValidationError

MigrationAction = Callable[..., Any]


def describe_errors(error: PydanticValidationError) -> str:
    """Flatten pydantic errors into a single line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "migration"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class Direction(str, Enum):
    """Direction a migration step is run in.

    Attributes:
        UP: Move from the predecessor version to this one
        DOWN: Move from this version back to its predecessor
    """

    UP = "up"
    DOWN = "down"


class Migration(BaseModel):
    """A single versioned migration.

    Instances are frozen: assigning to any field after construction raises.
    Invalid definitions raise ValidationError.
    Both actions are called as ``action(db, logger)``.

    Example:
        Migration(
            version=1,
            name="Add email index",
            up=lambda db, log: db.table("users").update({"indexed": True}),
            down=lambda db, log: db.table("users").update({"indexed": False}),
        )
    """

    model_config = ConfigDict(frozen=True)

    version: StrictInt = Field(gt=0)
    name: str = ""
    up: MigrationAction
    down: MigrationAction

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid migration definition: {describe_errors(e)}") from e

    @field_validator("name", mode="before")
    @classmethod
    def default_name(cls, v: Any) -> Any:
        """Treat a missing name as empty."""
        return "" if v is None else v

    @property
    def label(self) -> str:
        """Version number with the display name, when set."""
        if self.name:
            return f"{self.version} ({self.name})"
        return str(self.version)

    def action(self, direction: Direction) -> MigrationAction:
        """
        Get the callable for a direction.

        Args:
            direction: Direction to run

        Returns:
            The up or down action

        Raises:
            DirectionUnsupportedError: If this migration has no action for the direction
        """
        action = self.up if direction is Direction.UP else self.down
        if not callable(action):
            raise DirectionUnsupportedError(self.version, direction.value)
        return action


def _noop(db: Any, logger: Any = None) -> None:
    return None


# Baseline "nothing applied" state. Built without validation since version 0
# is not a valid user version, and it has no down action.
SENTINEL = Migration.model_construct(
    version=SENTINEL_VERSION,
    name=SENTINEL_NAME,
    up=_noop,
    down=None,
)
