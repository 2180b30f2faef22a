"""tiny-migrator: versioned, locked migrations for TinyDB databases."""

from importlib.metadata import PackageNotFoundError, version

from .command import MigrationCommand, parse_command
from .control import ControlRecord, ControlStore
from .errors import (
    DirectionUnsupportedError,
    InvalidCommandError,
    MigratorError,
    NotConfiguredError,
    NotFoundError,
    StepExecutionError,
    ValidationError,
)
from .log import Logger, SyslogLevel, logging_sink, null_logger
from .migration import SENTINEL, Direction, Migration
from .migrator import MigrationResult, MigrationStatus, Migrator, MigratorOptions
from .registry import MigrationRegistry, Step

try:
    __version__ = version("tiny-migrator")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "ControlRecord",
    "ControlStore",
    "Direction",
    "DirectionUnsupportedError",
    "InvalidCommandError",
    "Logger",
    "Migration",
    "MigrationCommand",
    "MigrationRegistry",
    "MigrationResult",
    "MigrationStatus",
    "Migrator",
    "MigratorError",
    "MigratorOptions",
    "NotConfiguredError",
    "NotFoundError",
    "SENTINEL",
    "Step",
    "StepExecutionError",
    "SyslogLevel",
    "ValidationError",
    "logging_sink",
    "null_logger",
    "parse_command",
]
