"""Loading migration definitions from Python modules.

A migrations module either defines a ``MIGRATIONS`` sequence::

    MIGRATIONS = [
        Migration(version=1, name="Add users", up=add_users, down=drop_users),
        {"version": 2, "up": index_users, "down": unindex_users},
    ]

or a ``register(migrator)`` function that calls ``migrator.add(...)`` itself.
"""

import importlib
import importlib.util
import logging
from collections.abc import Sequence
from types import ModuleType
from typing import TYPE_CHECKING, Any

from .constants import MIGRATIONS_ATTRIBUTE, REGISTER_HOOK
from .errors import MigratorError
from .utils import expand_path

if TYPE_CHECKING:
    from .migrator import Migrator

logger = logging.getLogger(__name__)


class MigrationLoadError(MigratorError):
    """Raised when a migrations module cannot be imported or has no migrations."""

    pass


def import_migrations_module(spec: str) -> ModuleType:
    """
    Import a module by dotted name or by path to a ``.py`` file.

    Args:
        spec: Dotted module name, or file path ending in ``.py``

    Returns:
        Imported module

    Raises:
        MigrationLoadError: If the module cannot be found or fails to import
    """
    if spec.endswith(".py"):
        path = expand_path(spec)
        if not path.is_file():
            raise MigrationLoadError(f"Migrations file not found: {path}")

        module_spec = importlib.util.spec_from_file_location(f"_tiny_migrator_{path.stem}", path)
        if module_spec is None or module_spec.loader is None:
            raise MigrationLoadError(f"Cannot load migrations from {path}")

        module = importlib.util.module_from_spec(module_spec)
        try:
            module_spec.loader.exec_module(module)
        except Exception as e:
            raise MigrationLoadError(f"Failed to import {path}: {e}") from e
        return module

    try:
        return importlib.import_module(spec)
    except ImportError as e:
        raise MigrationLoadError(f"Cannot import migrations module '{spec}': {e}") from e


def _definitions(module: ModuleType) -> list[Any] | None:
    definitions = getattr(module, MIGRATIONS_ATTRIBUTE, None)
    if not isinstance(definitions, Sequence) or isinstance(definitions, str):
        return None
    return list(definitions)


def load_migrations(spec: str) -> list[Any]:
    """
    Get the ``MIGRATIONS`` sequence of a module.

    Args:
        spec: Dotted module name, or file path ending in ``.py``

    Returns:
        Migration definitions in the order the module lists them

    Raises:
        MigrationLoadError: If the module has no usable MIGRATIONS attribute
    """
    definitions = _definitions(import_migrations_module(spec))
    if definitions is None:
        raise MigrationLoadError(f"Module '{spec}' does not define a {MIGRATIONS_ATTRIBUTE} list")
    return definitions


def register_from_module(migrator: "Migrator", spec: str) -> int:
    """
    Register every migration a module defines.

    Prefers a ``register(migrator)`` hook, falling back to ``MIGRATIONS``.

    Args:
        migrator: Migrator to register into
        spec: Dotted module name, or file path ending in ``.py``

    Returns:
        Number of migrations registered

    Raises:
        MigrationLoadError: If the module defines neither
        ValidationError: If a definition is rejected
    """
    module = import_migrations_module(spec)
    before = migrator.get_number_of_migrations()

    hook = getattr(module, REGISTER_HOOK, None)
    if callable(hook):
        hook(migrator)
    else:
        definitions = _definitions(module)
        if definitions is None:
            raise MigrationLoadError(
                f"Module '{spec}' defines neither {REGISTER_HOOK}() nor {MIGRATIONS_ATTRIBUTE}"
            )
        for definition in definitions:
            migrator.add(definition)

    added = migrator.get_number_of_migrations() - before
    logger.debug(f"Registered {added} migration(s) from {spec}")
    return added
