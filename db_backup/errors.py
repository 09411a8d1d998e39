"""Exceptions raised by the backup pipeline."""

from __future__ import annotations


class BackupError(Exception):
    """Base class for every backup failure."""


class ConfigError(BackupError):
    """Required configuration is missing or invalid."""


class DumpFailure(BackupError):
    """pg_dump (or the gzip stage behind it) failed."""

    def __init__(self, message: str, stderr: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode

    def __str__(self) -> str:
        msg = super().__str__()
        if self.stderr:
            msg += f": {self.stderr.strip()[:500]}"
        return msg


class UploadFailure(BackupError):
    """Object storage rejected an upload or the transfer broke."""


class CleanupFailure(BackupError):
    """A local temporary dump could not be removed."""


class PruneFailure(BackupError):
    """Listing or batch-deleting outdated backups failed."""
