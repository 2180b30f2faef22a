"""Parsing of migration commands such as ``latest``, ``3`` or ``3,rerun``."""

from dataclasses import dataclass

from .constants import COMMAND_LATEST, COMMAND_RERUN, COMMAND_SEPARATOR
from .errors import InvalidCommandError


@dataclass(frozen=True)
class MigrationCommand:
    """A parsed migration command.

    Attributes:
        target: Explicit target version, or None for ``latest``
        latest: Whether the target is the highest registered version
        rerun: Whether to re-run the current version's up action in place
    """

    target: int | None
    latest: bool = False
    rerun: bool = False


def parse_command(command: int | str | None) -> MigrationCommand:
    """
    Parse a migration command.

    Accepted forms:
        2           migrate to version 2
        "2"         same as above
        "latest"    migrate to the highest registered version
        "2,rerun"   re-run the up action of the current version

    A ``rerun`` modifier is only honored with an explicit version;
    ``"latest,rerun"`` is a plain migration to the latest version.

    Args:
        command: Command to parse

    Returns:
        Parsed command

    Raises:
        InvalidCommandError: If the command is empty or malformed
    """
    if command is None or isinstance(command, bool):
        raise InvalidCommandError(command)

    if isinstance(command, int):
        return MigrationCommand(target=command)

    if not isinstance(command, str) or not command.strip():
        raise InvalidCommandError(command)

    parts = [part.strip() for part in command.split(COMMAND_SEPARATOR)]
    if len(parts) > 2:
        raise InvalidCommandError(command, "too many parts")

    version_part = parts[0]
    modifier = parts[1] if len(parts) == 2 and parts[1] else None
    if modifier is not None and modifier != COMMAND_RERUN:
        raise InvalidCommandError(command, f"unknown modifier '{modifier}'")

    if version_part == COMMAND_LATEST:
        return MigrationCommand(target=None, latest=True)

    try:
        target = int(version_part)
    except ValueError:
        raise InvalidCommandError(command, f"'{version_part}' is not a version number") from None

    return MigrationCommand(target=target, rerun=modifier == COMMAND_RERUN)
