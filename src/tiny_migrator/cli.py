"""CLI interface for tiny-migrator."""

import json
import logging
import os
import sys
from pathlib import Path

# Runtime version check - must be before other imports
if sys.version_info < (3, 11):
    print("Error: tiny-migrator requires Python 3.11 or higher", file=sys.stderr)
    version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print(f"Current version: {version}", file=sys.stderr)
    sys.exit(1)

import click
from rich.console import Console

from . import __version__
from .config import Config, load_config
from .constants import COMMAND_LATEST, ENV_MIGRATE, JSON_OUTPUT_INDENT, LOG_DATE_FORMAT, LOG_FORMAT
from .display import console_sink, display_migration_result, display_status
from .errors import (
    InvalidCommandError,
    MigratorError,
    NotConfiguredError,
    NotFoundError,
    StepExecutionError,
)
from .loader import MigrationLoadError, register_from_module
from .log import Logger
from .migrator import MigrationResult, Migrator
from .utils import ErrorContext, handle_operation, prompt_confirm

console = Console()

MIGRATE_SUGGESTIONS: dict[type[Exception], str] = {
    InvalidCommandError: "Use a version number, 'latest', or '<version>,rerun'",
    NotFoundError: "Run 'tiny-migrator status' to list registered versions",
    StepExecutionError: (
        "The recorded version is the last step that completed. "
        "Fix the migration and run the command again"
    ),
    MigrationLoadError: "Check the --migrations option or [migrations] module in the config file",
    NotConfiguredError: "Pass --db or set [database] path in the config file",
}


def build_migrator(
    config: Config,
    db: Path | None = None,
    migrations_module: str | None = None,
    logger: Logger | None = None,
) -> Migrator:
    """
    Create a configured Migrator with its migrations registered.

    Args:
        config: Loaded configuration
        db: Database path overriding the configured one
        migrations_module: Migrations module overriding the configured one
        logger: Sink to use instead of the default one

    Returns:
        Configured migrator

    Raises:
        MigratorError: If the database cannot be bound or migrations fail to load
    """
    migrator = Migrator(config.to_options(logger=logger))
    if db is not None:
        migrator.configure(db=db)
    else:
        migrator.configure()

    module = migrations_module or config.migrations_module
    if module:
        register_from_module(migrator, module)
    return migrator


def run_from_env(config_path: Path | None = None) -> MigrationResult | None:
    """
    Run the command in the MIGRATE environment variable, if set.

    Intended to be called once from an application entry point.

    Args:
        config_path: Optional custom config path

    Returns:
        Result of the migration, or None when MIGRATE is unset
    """
    command = os.environ.get(ENV_MIGRATE)
    if not command:
        return None

    with build_migrator(load_config(config_path)) as migrator:
        return migrator.migrate_to(command)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Custom config file path",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """tiny-migrator: Versioned, locked migrations for TinyDB databases."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    ctx.ensure_object(dict)

    try:
        ctx.obj["config"] = load_config(config)
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] Configuration: {e}")
        sys.exit(1)


def _open(ctx: click.Context, db: Path | None, migrations: str | None) -> Migrator:
    config = ctx.obj["config"]
    sink = console_sink(console) if config.logging.enabled else None
    try:
        return handle_operation(
            console,
            lambda: build_migrator(config, db, migrations, logger=sink),
            ErrorContext("Setup", MIGRATE_SUGGESTIONS),
            error_types=(MigratorError,),
        )
    except MigratorError:
        sys.exit(1)


db_option = click.option(
    "--db",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Database file (overrides config)",
)
migrations_option = click.option(
    "--migrations",
    "-m",
    help="Migrations module or .py file (overrides config)",
)


@cli.command()
@click.argument("command", required=False, envvar=ENV_MIGRATE, default=COMMAND_LATEST)
@db_option
@migrations_option
@click.pass_context
def migrate(ctx: click.Context, command: str, db: Path | None, migrations: str | None) -> None:
    """
    Migrate the database to a version.

    COMMAND is a version number, 'latest', or '<version>,rerun' to re-run the
    current version's up action. Defaults to the MIGRATE environment variable,
    then to 'latest'.

    Examples:

        \b
        # Migrate to the newest registered version
        tiny-migrator migrate --migrations myapp.migrations

        \b
        # Migrate (up or down) to version 3
        tiny-migrator migrate 3

        \b
        # Re-run version 3's up action without changing the version
        tiny-migrator migrate 3,rerun
    """
    with _open(ctx, db, migrations) as migrator:
        try:
            result = handle_operation(
                console,
                lambda: migrator.migrate_to(command),
                ErrorContext("Migration", MIGRATE_SUGGESTIONS),
                error_types=(MigratorError,),
            )
        except MigratorError:
            sys.exit(1)

    display_migration_result(result, console)


@cli.command()
@db_option
@migrations_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, db: Path | None, migrations: str | None, as_json: bool) -> None:
    """
    Show the current version, lock state and registered migrations.

    Examples:

        \b
        tiny-migrator status --migrations myapp.migrations
        tiny-migrator status --json
    """
    with _open(ctx, db, migrations) as migrator:
        control = migrator.get_control()
        registered = list(migrator.registry)

    if as_json:
        data = {
            "version": control.version,
            "locked": control.locked,
            "locked_at": control.locked_at.isoformat() if control.locked_at else None,
            "latest": max((m.version for m in registered), default=0),
            "migrations": [{"version": m.version, "name": m.name} for m in registered],
        }
        click.echo(json.dumps(data, indent=JSON_OUTPUT_INDENT))
        return

    display_status(control, registered, console)


@cli.command()
@db_option
@click.pass_context
def unlock(ctx: click.Context, db: Path | None) -> None:
    """
    Force-clear the migration lock.

    Use this after a migration process crashed and left the lock held.
    The recorded version is not changed.
    """
    with _open(ctx, db, None) as migrator:
        was_locked = migrator.get_control().locked
        migrator.unlock()
        version = migrator.get_version()

    if was_locked:
        console.print(f"[green]✓[/green] Lock cleared (version {version})")
    else:
        console.print(f"Lock was not held (version {version})")


@cli.command()
@db_option
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def reset(ctx: click.Context, db: Path | None, force: bool) -> None:
    """
    Delete the control record. Intended for development and tests.

    The next run starts from version 0. Data written by migrations is not
    touched.
    """
    with _open(ctx, db, None) as migrator:
        if not force:
            console.print(f"Resetting control record in [cyan]{migrator.db_path}[/cyan]")
            if not prompt_confirm("Proceed with reset?", default=False):
                console.print("Reset cancelled.")
                return
        migrator.reset()

    console.print("[green]✓[/green] Control record deleted")


if __name__ == "__main__":
    cli()
