"""In-memory store of the latest progress snapshot per operation."""

from __future__ import annotations

import logging
import threading

from depara.clock import SYSTEM_CLOCK, Clock

from .models import ProgressSnapshot

LOGGER = logging.getLogger(__name__)


class ProgressStore:
    """Thread-safe map of operation id to its most recent snapshot."""

    def __init__(self, *, clock: Clock = SYSTEM_CLOCK) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshots: dict[str, ProgressSnapshot] = {}

    def set(self, operation_id: str, snapshot: ProgressSnapshot) -> None:
        """Record ``snapshot`` for ``operation_id``, replacing any previous one."""
        with self._lock:
            self._snapshots[operation_id] = snapshot

    def report(
        self,
        operation_id: str,
        percentage: int,
        total: int,
        message: str,
        *,
        cancelled: bool = False,
    ) -> ProgressSnapshot:
        """Build a snapshot stamped with the current time and store it."""
        snapshot = ProgressSnapshot(
            operation_id=operation_id,
            percentage=percentage,
            total=total,
            message=message,
            cancelled=cancelled,
            timestamp=self._clock.now(),
        )
        self.set(operation_id, snapshot)
        return snapshot

    def get(self, operation_id: str) -> ProgressSnapshot | None:
        with self._lock:
            return self._snapshots.get(operation_id)

    def list_active(self) -> list[ProgressSnapshot]:
        """Return snapshots of runs that have started but not finished."""
        with self._lock:
            return [snapshot for snapshot in self._snapshots.values() if snapshot.is_active]

    def clear(self, operation_id: str) -> bool:
        """Forget the snapshot for ``operation_id``.

        Returns:
            bool: ``True`` when a snapshot was removed.
        """
        with self._lock:
            return self._snapshots.pop(operation_id, None) is not None

    def prune(self, max_age_seconds: float) -> list[str]:
        """Drop terminal snapshots older than ``max_age_seconds``.

        Returns:
            list[str]: Operation ids whose snapshots were removed.
        """
        now = self._clock.now()
        with self._lock:
            expired = [
                operation_id
                for operation_id, snapshot in self._snapshots.items()
                if snapshot.is_terminal
                and (now - snapshot.timestamp).total_seconds() > max_age_seconds
            ]
            for operation_id in expired:
                del self._snapshots[operation_id]
        if expired:
            LOGGER.debug("Pruned %d finished progress snapshot(s)", len(expired))
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)


__all__ = ["ProgressStore"]
