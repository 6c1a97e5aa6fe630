"""Time source abstraction so timestamps and pauses can be simulated in tests."""

from __future__ import annotations

import time
from datetime import datetime, timezone


class Clock:
    """Wall-clock time, monotonic time, and sleeping."""

    def now(self) -> datetime:
        """Return the current UTC time."""
        return datetime.now(timezone.utc)

    def timestamp(self) -> float:
        """Return the current POSIX timestamp."""
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


SYSTEM_CLOCK = Clock()


def safe_timestamp(moment: datetime) -> str:
    """Render ``moment`` as a millisecond ISO-8601 string usable in file names.

    ``2024-05-01T12:30:45.123Z`` becomes ``2024-05-01T12-30-45-123Z``.
    """
    moment = moment.astimezone(timezone.utc)
    iso = moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{moment.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


__all__ = ["Clock", "SYSTEM_CLOCK", "safe_timestamp"]
