"""Recurring scheduling of file operations."""

from .models import (
    FREQUENCY_KEYWORDS,
    MANUAL,
    ON_STARTUP,
    EditResult,
    OperationDefinition,
    ScheduledOperation,
    frequency_seconds,
)
from .service import RunOutcome, Scheduler
from .timers import RepeatingTimer, TimerFactory, TimerHandle, spawn_daemon, start_repeating_timer

__all__ = [
    "EditResult",
    "FREQUENCY_KEYWORDS",
    "MANUAL",
    "ON_STARTUP",
    "OperationDefinition",
    "RepeatingTimer",
    "RunOutcome",
    "ScheduledOperation",
    "Scheduler",
    "TimerFactory",
    "TimerHandle",
    "frequency_seconds",
    "spawn_daemon",
    "start_repeating_timer",
]
