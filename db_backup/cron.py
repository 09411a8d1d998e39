"""Cron expressions and the blocking scheduler loop used by ``serve``."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

logger = logging.getLogger(__name__)

# (name, min, max) for each of the five fields
_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 7),
)


class CronParser:
    """Standard five-field cron expression parser.

    Supports: minute hour day_of_month month day_of_week
    Examples:
        "* * * * *"       - Every minute
        "0 3 * * *"       - 3 AM daily
        "0 9 * * 1-5"     - 9 AM weekdays
        "*/15 * * * *"    - Every 15 minutes
        "0 0 1 * *"       - First of every month
    """

    @staticmethod
    def parse(expression: str) -> tuple[set[int], set[int], set[int], set[int], set[int]]:
        """Parse a cron expression.

        Returns (minutes, hours, days, months, weekdays) as sets. Weekdays use
        cron numbering with Sunday as 0; a 7 is folded into 0.
        """
        parts = expression.strip().split()
        if len(parts) != 5:
            raise ValueError(f"Expected 5 cron fields, got {len(parts)}: {expression!r}")

        minutes, hours, days, months, weekdays = (
            CronParser._parse_field(part, name, lo, hi) for part, (name, lo, hi) in zip(parts, _FIELDS)
        )
        if 7 in weekdays:
            weekdays = (weekdays - {7}) | {0}
        return minutes, hours, days, months, weekdays

    @staticmethod
    def _parse_field(field: str, name: str, min_val: int, max_val: int) -> set[int]:
        """Parse a single field (*, */N, N, N-M, N-M/S, N,M,...)."""
        result: set[int] = set()

        for part in field.split(","):
            step = 1
            stepped = "/" in part
            if stepped:
                part, step_str = part.split("/", 1)
                step = int(step_str)
                if step < 1:
                    raise ValueError(f"Invalid step in {name} field: {field!r}")

            if part == "*":
                start, end = min_val, max_val
            elif "-" in part:
                start_str, end_str = part.split("-", 1)
                start, end = int(start_str), int(end_str)
            else:
                start = int(part)
                # "N/S" means from N to the end of the range
                end = max_val if stepped else start

            if start < min_val or end > max_val or start > end:
                raise ValueError(f"{name.capitalize()} must be {min_val}-{max_val}, got {part!r}")
            result.update(range(start, end + 1, step))

        return result

    @staticmethod
    def _date_matches(when: datetime, days: set[int], months: set[int], weekdays: set[int], either_day: bool) -> bool:
        if when.month not in months:
            return False
        day_ok = when.day in days
        # Python weekday() is Monday=0, cron is Sunday=0
        weekday_ok = (when.weekday() + 1) % 7 in weekdays
        # Both day fields restricted: either may match
        if either_day:
            return day_ok or weekday_ok
        return day_ok and weekday_ok

    @staticmethod
    def _either_day(expression: str) -> bool:
        parts = expression.split()
        return not parts[2].startswith("*") and not parts[4].startswith("*")

    @staticmethod
    def matches(expression: str, when: datetime) -> bool:
        """True if ``when`` (to the minute) satisfies the expression."""
        minutes, hours, days, months, weekdays = CronParser.parse(expression)
        return (
            when.minute in minutes
            and when.hour in hours
            and CronParser._date_matches(when, days, months, weekdays, CronParser._either_day(expression))
        )

    @staticmethod
    def next_run(expression: str, after: datetime | None = None) -> datetime:
        """Next datetime strictly after ``after`` (default now) matching the expression."""
        minutes, hours, days, months, weekdays = CronParser.parse(expression)
        either_day = CronParser._either_day(expression)

        if after is None:
            after = datetime.now()

        candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = candidate + timedelta(days=4 * 366)

        # Skip whole days and hours that cannot match
        while candidate < limit:
            if not CronParser._date_matches(candidate, days, months, weekdays, either_day):
                candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
            elif candidate.hour not in hours:
                candidate = candidate.replace(minute=0) + timedelta(hours=1)
            elif candidate.minute not in minutes:
                candidate += timedelta(minutes=1)
            else:
                return candidate

        raise ValueError(f"Could not find next run time for: {expression}")


def run_scheduler(
    schedule: str,
    callback: Callable[[], None],
    stop_event: threading.Event | None = None,
    run_immediately: bool = True,
    on_next_run: Callable[[datetime], None] | None = None,
) -> None:
    """Run a blocking scheduler loop.

    Calls ``callback`` once right away (unless ``run_immediately`` is False),
    then sleeps until each next matching minute and calls it again. Exceptions
    from the callback are logged and the loop carries on. Returns when
    ``stop_event`` is set. ``on_next_run`` receives each computed trigger time.

    Raises ValueError up front if the schedule is invalid or can never fire.
    """
    CronParser.next_run(schedule)
    stop_event = stop_event or threading.Event()

    def fire(reason: str) -> None:
        logger.info(f"{reason}: starting backup")
        try:
            callback()
        except Exception:
            logger.exception("Scheduled backup failed")

    if run_immediately:
        fire("Startup")

    while not stop_event.is_set():
        target = CronParser.next_run(schedule)
        logger.info(f"Next backup scheduled at {target.strftime('%Y-%m-%d %H:%M')}")
        if on_next_run:
            on_next_run(target)

        # Event.wait runs on the monotonic clock; re-check wall time so we never fire early
        while (remaining := (target - datetime.now()).total_seconds()) > 0:
            if stop_event.wait(remaining):
                return

        fire("Cron trigger")
