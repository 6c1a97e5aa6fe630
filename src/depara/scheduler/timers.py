"""Thread-backed timers used by the scheduler."""

from __future__ import annotations

import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    """Live binding of a recurring callback."""

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None], str], TimerHandle]
Spawner = Callable[[Callable[[], None], str], None]


class RepeatingTimer(threading.Thread):
    """Daemon thread invoking ``callback`` every ``interval`` seconds.

    The first call happens one full interval after :meth:`start`. Calls never
    overlap within one timer; a slow callback delays the next tick.
    """

    def __init__(self, interval: float, callback: Callable[[], None], *, name: str) -> None:
        super().__init__(name=name, daemon=True)
        self.interval = interval
        self._callback = callback
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            self._callback()

    def cancel(self) -> None:
        """Stop future ticks; a tick already running is left to finish."""
        self._stopped.set()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()


def start_repeating_timer(
    interval: float, callback: Callable[[], None], name: str
) -> RepeatingTimer:
    """Create and start a :class:`RepeatingTimer`."""
    timer = RepeatingTimer(interval, callback, name=name)
    timer.start()
    return timer


def spawn_daemon(callback: Callable[[], None], name: str) -> None:
    """Run ``callback`` once on a new daemon thread."""
    threading.Thread(target=callback, name=name, daemon=True).start()


__all__ = [
    "RepeatingTimer",
    "Spawner",
    "TimerFactory",
    "TimerHandle",
    "spawn_daemon",
    "start_repeating_timer",
]
