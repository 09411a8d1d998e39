"""Naming of backup artifacts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import PurePosixPath

ARTIFACT_PREFIX = "backup-"
ARTIFACT_SUFFIX = ".tar.gz"


def cycle_timestamp(now: datetime | None = None) -> str:
    """Timestamp shared by every artifact of one cycle.

    ISO-8601 UTC with millisecond precision and a ``Z`` suffix, with ``:`` and
    ``.`` replaced by ``-`` so it is safe in keys and file names, e.g.
    ``2024-01-15T03-00-00-123Z``.
    """
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    iso = now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return re.sub(r"[:.]+", "-", iso)


@dataclass(frozen=True)
class BackupArtifact:
    """A single compressed dump: its object key, temp file and source database."""

    name: str
    local_path: str
    database_name: str

    @classmethod
    def create(cls, timestamp: str, database_name: str, tmp_dir: str = "/tmp") -> BackupArtifact:
        name = f"{ARTIFACT_PREFIX}{timestamp}-{database_name}{ARTIFACT_SUFFIX}"
        return cls(
            name=name,
            local_path=str(PurePosixPath(tmp_dir) / name),
            database_name=database_name,
        )
