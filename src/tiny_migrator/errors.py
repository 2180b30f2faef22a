"""Exceptions raised by tiny-migrator."""


class MigratorError(Exception):
    """Base class for every error raised by the migrator."""

    pass


class ValidationError(MigratorError, ValueError):
    """
    Raised when a migration definition is rejected at registration time.

    This covers:
    - Missing or non-callable up/down actions
    - Versions that are not positive integers
    - Versions that are already registered

    The registry is left unchanged when this is raised.
    """

    pass


class NotConfiguredError(MigratorError):
    """Raised when the migrator is used before a database has been bound."""

    pass


class NotFoundError(MigratorError, LookupError):
    """Raised when no registered migration carries the requested version."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Can't find migration version {version}")


class InvalidCommandError(MigratorError, ValueError):
    """Raised for empty or malformed migration commands."""

    def __init__(self, command: object, reason: str | None = None):
        self.command = command
        message = f"Cannot migrate using invalid command: {command!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class DirectionUnsupportedError(MigratorError):
    """Raised before invoking a step whose direction has no action."""

    def __init__(self, version: int, direction: str):
        self.version = version
        self.direction = direction
        super().__init__(f"Cannot migrate {direction} on version {version}")


class StepExecutionError(MigratorError):
    """
    Raised when a migration's up or down action fails.

    The original exception is available as ``__cause__`` and ``cause``.
    """

    def __init__(
        self,
        from_version: int,
        to_version: int,
        direction: str,
        cause: BaseException,
    ):
        self.from_version = from_version
        self.to_version = to_version
        self.direction = direction
        self.cause = cause
        super().__init__(
            f"Migration {direction} from version {from_version} to {to_version} failed: {cause}"
        )
