"""Display functions for tiny-migrator CLI output."""

from collections.abc import Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .control import ControlRecord
from .log import Logger, SyslogLevel
from .migration import Migration
from .migrator import MigrationResult, MigrationStatus

_LEVEL_STYLES = {
    SyslogLevel.DEBUG.value: "dim",
    SyslogLevel.INFO.value: "cyan",
    SyslogLevel.NOTICE.value: "blue",
    SyslogLevel.WARNING.value: "yellow",
    SyslogLevel.ERROR.value: "red",
    SyslogLevel.CRIT.value: "bold red",
    SyslogLevel.ALERT.value: "bold red",
}


def console_sink(console: Console) -> Logger:
    """
    Build a logger sink printing to a rich console.

    Args:
        console: Rich console instance for output

    Returns:
        Sink callable
    """

    def sink(level: str, *parts: object) -> None:
        style = _LEVEL_STYLES.get(str(level), "cyan")
        message = escape(" ".join(str(part) for part in parts))
        console.print(f"[{style}]{level}[/{style}] {message}")

    return sink


def display_status(
    control: ControlRecord,
    migrations: Iterable[Migration],
    console: Console,
) -> None:
    """
    Display the control record and registered migrations.

    Args:
        control: Current control record
        migrations: Registered migrations in ascending order
        console: Rich console instance for output
    """
    lock_status = "[yellow]locked[/yellow]" if control.locked else "[green]unlocked[/green]"
    console.print(f"Current version: [bold]{control.version}[/bold]")
    console.print(f"Lock: {lock_status}")
    if control.locked and control.locked_at:
        console.print(f"Locked at: {control.locked_at.strftime('%Y-%m-%d %H:%M:%S %Z')}")

    migrations = list(migrations)
    if not migrations:
        console.print("No migrations registered.")
        return

    table = Table(title="Migrations")
    table.add_column("Version", style="cyan", justify="right")
    table.add_column("Name", style="magenta")
    table.add_column("Status")

    for migration in migrations:
        if migration.version <= control.version:
            status = "[green]✓ Applied[/green]"
        else:
            status = "[yellow]Pending[/yellow]"
        table.add_row(str(migration.version), migration.name or "-", status)

    console.print(table)


def display_migration_result(result: MigrationResult, console: Console) -> None:
    """
    Display the outcome of a migrate_to call.

    Args:
        result: Result returned by the migrator
        console: Rich console instance for output
    """
    if result.status == MigrationStatus.MIGRATED:
        console.print(
            f"[green]✓[/green] Migrated from version {result.from_version} "
            f"to {result.to_version} ({result.steps} step(s))"
        )
    elif result.status == MigrationStatus.RERUN:
        console.print(f"[green]✓[/green] Re-ran version {result.to_version}")
    elif result.status == MigrationStatus.UP_TO_DATE:
        console.print(f"[blue]✓[/blue] Already at version {result.to_version}")
    else:
        console.print(
            "[yellow]![/yellow] Another process is migrating; nothing was done. "
            "If no migration is running, clear the lock with 'tiny-migrator unlock'."
        )
