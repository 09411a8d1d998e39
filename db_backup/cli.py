"""CLI for the database backup service (Typer + Rich)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from db_backup.backup import run_backup_cycle
from db_backup.config import BackupConfig
from db_backup.cron import CronParser, run_scheduler
from db_backup.database import mask_url
from db_backup.errors import BackupError, ConfigError
from db_backup.health import start_health_server
from db_backup.logging_config import init_logging
from db_backup.retention import prune_older_than
from db_backup.runner import run_safely, state
from db_backup.storage import S3Storage

app = typer.Typer(
    name="db-backup",
    help="Scheduled PostgreSQL backups to S3-compatible storage.",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)


def _load_config() -> BackupConfig:
    """Load config, reading a local .env first."""
    load_dotenv()
    init_logging()
    try:
        return BackupConfig.from_env()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        raise typer.Exit(1)


def _format_size(size_bytes: int) -> str:
    """Human-readable file size."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.2f} MB"


def _format_age(dt: datetime) -> str:
    """Human-readable age from a datetime."""
    delta = datetime.now(UTC) - dt
    hours = delta.total_seconds() / 3600
    if hours < 1:
        return f"{int(delta.total_seconds() / 60)}m ago"
    elif hours < 24:
        return f"{hours:.1f}h ago"
    else:
        return f"{delta.days}d ago"


# ── serve ───────────────────────────────────────────────────────────────


@app.command()
def serve(
    schedule: Annotated[
        Optional[str], typer.Option("--schedule", "-s", help="Cron schedule (default from env)")
    ] = None,
) -> None:
    """Run a backup now, then keep running on the cron schedule."""
    config = _load_config()
    cron_schedule = schedule or config.cron_schedule

    # A schedule that parses but never matches would only fail after the first cycle
    try:
        first_run = CronParser.next_run(cron_schedule)
    except ValueError as e:
        console.print(f"[red]Invalid cron schedule:[/] {e}")
        raise typer.Exit(1)

    if config.health_port:
        start_health_server(config.health_port, state)
    state.set_next_run(first_run)
    state.update(status="ready")

    storage = S3Storage(config)
    logger.info(f"Backup cron scheduled ({cron_schedule})...")
    run_scheduler(cron_schedule, lambda: run_safely(config, storage, state), on_next_run=state.set_next_run)


# ── run ─────────────────────────────────────────────────────────────────


@app.command()
def run() -> None:
    """Run a single backup cycle and exit."""
    config = _load_config()

    try:
        artifacts = run_backup_cycle(config)
    except BackupError as e:
        console.print(f"[red]Backup failed:[/] {e}")
        raise typer.Exit(1)

    lines = [f"[green]OK[/]   {a.database_name}: {a.name}" for a in artifacts]
    console.print(Panel("\n".join(lines), title="[green]Backup Complete[/]"))


# ── list ────────────────────────────────────────────────────────────────


@app.command("list")
def list_backups() -> None:
    """List objects in the backup bucket."""
    config = _load_config()
    storage = S3Storage(config)

    try:
        objects = storage.list_objects()
    except BackupError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    if not objects:
        console.print("[yellow]No backups found.[/]")
        return

    cutoff = datetime.now(UTC) - timedelta(days=config.retention_days)
    objects.sort(key=lambda o: o.last_modified or datetime.min.replace(tzinfo=UTC), reverse=True)

    table = Table(title=f"s3://{config.s3_bucket}")
    table.add_column("#", style="dim", width=4)
    table.add_column("Key")
    table.add_column("Size", justify="right")
    table.add_column("Date")
    table.add_column("Age", style="dim")

    for i, obj in enumerate(objects, 1):
        if obj.last_modified is None:
            date, age = "[yellow]unknown[/]", ""
        else:
            date = obj.last_modified.strftime("%Y-%m-%d %H:%M UTC")
            age = _format_age(obj.last_modified)
            if obj.last_modified < cutoff:
                age = f"[red]{age} (expired)[/]"
        table.add_row(str(i), obj.key, _format_size(obj.size), date, age)

    console.print(table)


# ── prune ───────────────────────────────────────────────────────────────


@app.command()
def prune(
    days: Annotated[Optional[int], typer.Option("--days", "-d", min=0, help="Retention window in days")] = None,
) -> None:
    """Delete backups older than the retention window."""
    config = _load_config()
    retention = config.retention_days if days is None else days

    try:
        removed = prune_older_than(S3Storage(config), retention)
    except BackupError as e:
        console.print(f"[red]Prune failed:[/] {e}")
        raise typer.Exit(1)

    console.print(f"Removed {removed} backup(s) older than {retention} days")


# ── status ──────────────────────────────────────────────────────────────


@app.command()
def status() -> None:
    """Show backup configuration and the next scheduled run."""
    config = _load_config()

    lines = [
        f"[bold]Database URL:[/]   {mask_url(config.database_url)}",
        f"[bold]Databases:[/]      {', '.join(config.database_names)}",
        "",
        f"[bold]S3 Bucket:[/]      {config.s3_bucket}",
        f"[bold]S3 Region:[/]      {config.s3_region}",
        f"[bold]S3 Endpoint:[/]    {config.s3_endpoint or '[dim](AWS default)[/]'}",
        "",
        f"[bold]Retention:[/]      {config.retention_days} days",
        f"[bold]Cron Schedule:[/]  {config.cron_schedule}",
    ]

    try:
        next_run = CronParser.next_run(config.cron_schedule)
        lines.append(f"[bold]Next Run:[/]       {next_run.strftime('%Y-%m-%d %H:%M')}")
    except ValueError as e:
        lines.append(f"[bold]Next Run:[/]       [red]invalid schedule: {e}[/]")

    console.print(Panel("\n".join(lines), title="Backup Service Status"))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
