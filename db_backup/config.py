"""Backup service configuration (os.getenv based)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from db_backup.errors import ConfigError

DEFAULT_RETENTION_DAYS = 31

_REQUIRED = (
    "BACKUP_DATABASE_URL",
    "BACKUP_DATABASE_NAMES",
    "BACKUP_CRON_SCHEDULE",
    "AWS_S3_BUCKET",
    "AWS_S3_REGION",
)


def parse_database_names(raw: str) -> tuple[str, ...]:
    """Split a comma-separated list of database names, keeping order."""
    return tuple(name.strip() for name in raw.split(",") if name.strip())


@dataclass(frozen=True)
class BackupConfig:
    """Configuration for the backup service, loaded once at startup."""

    # Databases
    database_url: str
    database_names: tuple[str, ...]

    # Schedule
    cron_schedule: str

    # S3
    s3_bucket: str
    s3_region: str
    s3_endpoint: str | None = None

    # Behavior
    retention_days: int = DEFAULT_RETENTION_DAYS
    tmp_dir: str = "/tmp"

    # Health server (disabled unless a port is given)
    health_port: int | None = None

    def __post_init__(self) -> None:
        if not self.database_names:
            raise ConfigError("At least one database name is required (BACKUP_DATABASE_NAMES)")

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load configuration from environment variables.

        Raises ConfigError listing every required variable that is unset.
        """
        missing = [name for name in _REQUIRED if not os.getenv(name, "").strip()]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        names = parse_database_names(os.environ["BACKUP_DATABASE_NAMES"])
        if not names:
            raise ConfigError("BACKUP_DATABASE_NAMES does not contain any database name")

        health_port = os.getenv("BACKUP_HEALTH_PORT", "").strip()
        try:
            port = int(health_port) if health_port else None
        except ValueError as e:
            raise ConfigError(f"BACKUP_HEALTH_PORT must be an integer, got {health_port!r}") from e

        return cls(
            database_url=os.environ["BACKUP_DATABASE_URL"].strip(),
            database_names=names,
            cron_schedule=os.environ["BACKUP_CRON_SCHEDULE"].strip(),
            s3_bucket=os.environ["AWS_S3_BUCKET"].strip(),
            s3_region=os.environ["AWS_S3_REGION"].strip(),
            s3_endpoint=os.getenv("AWS_S3_ENDPOINT", "").strip() or None,
            health_port=port,
        )

    def database_url_for(self, name: str) -> str:
        """Connection URL for one database: the base URL with ``/<name>`` appended."""
        return f"{self.database_url.rstrip('/')}/{name}"
