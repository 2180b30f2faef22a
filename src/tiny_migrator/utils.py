"""Utility functions for tiny-migrator."""

import logging
import os
import shutil
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from rich.console import Console
from rich.prompt import Confirm

logger = logging.getLogger(__name__)

T = TypeVar("T")


def ensure_dir(path: Path) -> Path:
    """
    Create directory if it doesn't exist.

    Args:
        path: Directory path to create

    Returns:
        The created/existing directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def expand_path(path: str) -> Path:
    """
    Expand ~ and environment variables in path.

    Args:
        path: Path string to expand

    Returns:
        Expanded Path object
    """
    return Path(os.path.expanduser(os.path.expandvars(path))).resolve()


def prompt_confirm(message: str, default: bool = False) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message
        default: Default value if user just presses Enter

    Returns:
        True if confirmed, False otherwise
    """
    return Confirm.ask(message, default=default)


def backup_file(path: Path) -> Path | None:
    """
    Copy a database file next to itself with a timestamp suffix.

    Args:
        path: File to back up

    Returns:
        Path to backup file, or None if there was nothing to copy or the copy failed
    """
    if not path.exists():
        return None

    try:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = path.parent / f"{path.stem}_backup_{timestamp}{path.suffix}"
        shutil.copy2(path, backup_path)
        logger.info(f"Created backup: {backup_path}")
        return backup_path
    except OSError as e:
        logger.warning(f"Failed to create backup of {path}: {e}")
        return None


class ErrorContext:
    """Context for error handling with actionable guidance."""

    def __init__(self, error_prefix: str, suggestions: dict[type[Exception], str] | None = None):
        """
        Initialize error context.

        Args:
            error_prefix: Prefix for error messages
            suggestions: Mapping of exception types to actionable suggestions
        """
        self.error_prefix = error_prefix
        self.suggestions = suggestions or {}


def handle_operation(
    console: Console,
    operation: Callable[[], T],
    context: ErrorContext,
    error_types: tuple[type[Exception], ...] | None = None,
    reraise: bool = True,
) -> T | None:
    """
    Execute an operation, printing the error and a suggestion when it fails.

    Args:
        console: Rich console for output
        operation: Callable that performs the operation
        context: Error context with prefix and suggestions
        error_types: Tuple of exception types to catch (None = catch all)
        reraise: Whether to re-raise the exception after printing

    Returns:
        Result from the operation callable, or None if error and not reraising

    Raises:
        Exception: Re-raises caught exceptions if reraise=True
    """
    try:
        return operation()
    except Exception as e:
        if error_types and not isinstance(e, error_types):
            raise

        console.print(f"[red]Error:[/red] {context.error_prefix}: {e}")

        suggestion = next(
            (text for exc_type, text in context.suggestions.items() if isinstance(e, exc_type)),
            None,
        )
        if suggestion:
            console.print(f"[cyan]Suggestion:[/cyan] {suggestion}")
        elif isinstance(e, (PermissionError, OSError)):
            console.print("[cyan]Suggestion:[/cyan] Check file permissions and disk space")

        if reraise:
            raise
        return None
