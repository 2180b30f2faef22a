"""Logger sinks used by the migrator.

A sink is any callable accepting a severity level followed by message parts::

    def sink(level: str, *parts: object) -> None: ...

Migrations receive the configured sink as their second argument.
"""

import logging
from enum import Enum
from typing import Callable

from .constants import LOGGER_NAME

Logger = Callable[..., None]


class SyslogLevel(str, Enum):
    """Severity levels understood by sinks."""

    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERROR = "error"
    CRIT = "crit"
    ALERT = "alert"


_LOGGING_LEVELS: dict[str, int] = {
    SyslogLevel.DEBUG.value: logging.DEBUG,
    SyslogLevel.INFO.value: logging.INFO,
    # logging has no NOTICE level; it sits between INFO and WARNING
    SyslogLevel.NOTICE.value: logging.INFO + 5,
    SyslogLevel.WARNING.value: logging.WARNING,
    SyslogLevel.ERROR.value: logging.ERROR,
    SyslogLevel.CRIT.value: logging.CRITICAL,
    SyslogLevel.ALERT.value: logging.CRITICAL,
}


def to_logging_level(level: str | SyslogLevel) -> int:
    """
    Map a syslog level name onto a ``logging`` level.

    Unknown names map to INFO.
    """
    name = level.value if isinstance(level, SyslogLevel) else str(level).lower()
    return _LOGGING_LEVELS.get(name, logging.INFO)


def null_logger(level: str, *parts: object) -> None:
    """Sink used when logging is disabled."""
    return None


def logging_sink(name: str = LOGGER_NAME) -> Logger:
    """
    Build a sink that forwards to the standard ``logging`` module.

    Args:
        name: Name of the logger records are emitted on

    Returns:
        Sink callable
    """
    target = logging.getLogger(name)

    def sink(level: str, *parts: object) -> None:
        target.log(to_logging_level(level), " ".join(str(part) for part in parts))

    return sink
