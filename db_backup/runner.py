"""Top-level cycle runner: never lets a failed cycle take the process down."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from db_backup.backup import run_backup_cycle

if TYPE_CHECKING:
    from db_backup.config import BackupConfig
    from db_backup.storage import S3Storage

logger = logging.getLogger(__name__)


@dataclass
class CycleState:
    """Outcome of the most recent cycles, shared with the health server.

    ``status`` is one of starting, ready, running, completed or error.
    ``last_outcome`` is success, failed or skipped once a trigger has fired.
    """

    status: str = "starting"
    last_outcome: str | None = None
    last_backup: str | None = None
    last_error: str | None = None
    next_run: str | None = None
    backups_completed: int = 0
    cycles_failed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    _cycle_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def update(self, **changes: Any) -> None:
        with self._lock:
            for name, value in changes.items():
                setattr(self, name, value)

    def set_next_run(self, when: datetime) -> None:
        self.update(next_run=when.isoformat(timespec="minutes"))

    def snapshot(self) -> dict[str, Any]:
        """Public fields as a JSON-ready dict."""
        with self._lock:
            return {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}

    def record_success(self, uploaded: int) -> None:
        with self._lock:
            self.status = "completed"
            self.last_outcome = "success"
            self.last_backup = datetime.now(UTC).isoformat()
            self.backups_completed += uploaded

    def record_failure(self, error: BaseException) -> None:
        with self._lock:
            self.status = "error"
            self.last_outcome = "failed"
            self.last_error = str(error)
            self.cycles_failed += 1

    @property
    def ready(self) -> bool:
        return self.status != "starting"


state = CycleState()


def run_safely(config: BackupConfig, storage: S3Storage | None = None, cycle_state: CycleState | None = None) -> bool:
    """Run one backup cycle, logging instead of raising on failure.

    If a cycle is already in progress the trigger is skipped. Returns True
    only when a cycle ran to completion.
    """
    cycle_state = cycle_state or state

    if not cycle_state._cycle_lock.acquire(blocking=False):
        logger.warning("Previous backup cycle still running; skipping this trigger")
        cycle_state.update(last_outcome="skipped")
        return False

    try:
        cycle_state.update(status="running")
        artifacts = run_backup_cycle(config, storage)
    except Exception as e:
        logger.exception("Error while running backup")
        cycle_state.record_failure(e)
        return False
    else:
        cycle_state.record_success(len(artifacts))
        return True
    finally:
        cycle_state._cycle_lock.release()
