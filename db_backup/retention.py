"""Retention: drop backups older than a number of days."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Iterable

from db_backup.config import DEFAULT_RETENTION_DAYS

if TYPE_CHECKING:
    from db_backup.storage import S3Storage, StoredObject

logger = logging.getLogger(__name__)


def select_outdated(objects: Iterable[StoredObject], days: int, now: datetime) -> list[StoredObject]:
    """Objects whose last modification is strictly before ``now - days``.

    Objects without a LastModified timestamp are never selected.
    """
    cutoff = now - timedelta(days=days)
    outdated = []
    for obj in objects:
        if obj.last_modified is None:
            logger.warning(f"Object {obj.key} has no LastModified date")
            continue
        if obj.last_modified < cutoff:
            outdated.append(obj)
    return outdated


def prune_older_than(storage: S3Storage, days: int = DEFAULT_RETENTION_DAYS, now: datetime | None = None) -> int:
    """Remove every object in the bucket older than ``days``. Returns the count removed.

    One listing call, then at most one batch delete. Nothing is deleted when
    no object qualifies.
    """
    logger.info("Removing outdated backups...")
    if now is None:
        now = datetime.now(UTC)

    objects = storage.list_objects()
    if not objects:
        logger.info("No objects found in bucket")
        return 0

    outdated = select_outdated(objects, days, now)
    if not outdated:
        logger.info("No outdated objects found")
        return 0

    logger.info(f"Removing {len(outdated)} outdated objects...")
    deleted = storage.delete_objects([obj.key for obj in outdated])
    if deleted != len(outdated):
        logger.warning(f"Storage reported {deleted} of {len(outdated)} outdated objects deleted")

    logger.info("Outdated backups removed...")
    return deleted
