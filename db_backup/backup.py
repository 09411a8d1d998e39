"""One backup cycle: dump, upload and clean up every database, then prune."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import TYPE_CHECKING

from db_backup.artifacts import BackupArtifact, cycle_timestamp
from db_backup.database import dump_to_file
from db_backup.errors import CleanupFailure
from db_backup.retention import prune_older_than
from db_backup.storage import S3Storage

if TYPE_CHECKING:
    from db_backup.config import BackupConfig

logger = logging.getLogger(__name__)


def delete_file(path: str) -> None:
    """Remove a local dump. Raises CleanupFailure only if the unlink fails."""
    logger.info(f"Deleting file {path}...")
    try:
        os.unlink(path)
    except OSError as e:
        raise CleanupFailure(f"Could not delete {path}: {e}") from e


def backup_database(config: BackupConfig, storage: S3Storage, artifact: BackupArtifact) -> None:
    """Dump, upload and delete a single database's artifact.

    Any failure propagates immediately; the local file is only removed after
    a successful upload.
    """
    logger.info(f"[{artifact.database_name}] Backing up database")
    dump_to_file(artifact.local_path, config.database_url_for(artifact.database_name))
    storage.upload(artifact.name, artifact.local_path)
    delete_file(artifact.local_path)


def run_backup_cycle(
    config: BackupConfig,
    storage: S3Storage | None = None,
    now: datetime | None = None,
) -> list[BackupArtifact]:
    """Back up every configured database in order, then prune old backups.

    The first failure aborts the cycle: later databases are skipped and the
    retention pass does not run. Returns the uploaded artifacts.
    """
    logger.info("Initiating DB backup...")
    if storage is None:
        storage = S3Storage(config)

    timestamp = cycle_timestamp(now)
    uploaded: list[BackupArtifact] = []

    for database_name in config.database_names:
        artifact = BackupArtifact.create(timestamp, database_name, config.tmp_dir)
        backup_database(config, storage, artifact)
        uploaded.append(artifact)

    removed = prune_older_than(storage, config.retention_days, now=now)
    logger.info(f"DB backup complete: {len(uploaded)} uploaded, {removed} outdated removed")
    return uploaded
