"""Shared fixtures: deterministic clock, manual timers, and a sandboxed engine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest

from depara.backup import BackupVault
from depara.batch import BatchRunner
from depara.clock import Clock
from depara.config.models import BackupSettings
from depara.discovery import IgnoreMatcher
from depara.operations import OperationExecutor
from depara.paths import PathGuard
from depara.progress import ProgressStore

EPOCH = datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)


class FakeClock(Clock):
    """Clock frozen at a settable instant that records sleeps instead of waiting."""

    def __init__(self, moment: datetime = EPOCH) -> None:
        self.moment = moment
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.moment

    def timestamp(self) -> float:
        return self.moment.timestamp()

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    def advance(self, seconds: float) -> None:
        self.moment += timedelta(seconds=seconds)


class FakeTimer:
    """Timer handle that only fires when a test calls :meth:`fire`."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str) -> None:
        self.interval = interval
        self.callback = callback
        self.name = name
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.callback()


class FakeTimerFactory:
    """Timer factory recording every timer it creates."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, callback: Callable[[], None], name: str) -> FakeTimer:
        timer = FakeTimer(interval, callback, name)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]


class InlineSpawner:
    """Runs background work synchronously and records the thread names."""

    def __init__(self) -> None:
        self.names: list[str] = []

    def __call__(self, callback: Callable[[], None], name: str) -> None:
        self.names.append(name)
        callback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def spawner() -> InlineSpawner:
    return InlineSpawner()


@pytest.fixture
def guard(tmp_path: Path) -> PathGuard:
    """Return a guard that only allows the per-test temporary directory.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    return PathGuard([tmp_path], include_defaults=False)


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    return tmp_path / "backups"


@pytest.fixture
def vault(backup_dir: Path, clock: FakeClock) -> BackupVault:
    return BackupVault(BackupSettings(backup_dir=str(backup_dir)), clock=clock)


@pytest.fixture
def executor(guard: PathGuard, vault: BackupVault, clock: FakeClock) -> OperationExecutor:
    return OperationExecutor(guard, vault, matcher=IgnoreMatcher(), clock=clock)


@pytest.fixture
def progress(clock: FakeClock) -> ProgressStore:
    return ProgressStore(clock=clock)


@pytest.fixture
def runner(
    executor: OperationExecutor, progress: ProgressStore, clock: FakeClock
) -> BatchRunner:
    return BatchRunner(executor, progress, max_concurrent=2, clock=clock)
