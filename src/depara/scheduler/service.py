"""Recurring execution of operation definitions."""

from __future__ import annotations

import functools
import threading
from pathlib import Path
from typing import Any, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from depara.batch import BatchRunner, BatchSummary
from depara.config.models import SchedulerSettings
from depara.errors import NotFoundError, ValidationError
from depara.oplog import OperationLogger
from depara.operations import OperationExecutor, OperationResult

from .models import (
    MANUAL,
    ON_STARTUP,
    EditResult,
    OperationDefinition,
    ScheduledOperation,
    frequency_seconds,
)
from .timers import Spawner, TimerFactory, TimerHandle, spawn_daemon, start_repeating_timer

RunOutcome = Union[OperationResult, BatchSummary]


def _default_name(definition: OperationDefinition) -> str:
    return f"{definition.action.upper()} - {definition.frequency}"


def _field_names() -> dict[str, str]:
    """Map both aliases and field names of a definition to field names."""
    names: dict[str, str] = {}
    for name, field in OperationDefinition.model_fields.items():
        names[name] = name
        if field.alias:
            names[field.alias] = name
    return names


class Scheduler:
    """Own the operation definitions and their recurring timers.

    Each definition id maps to at most one timer. A tick that fires while a
    previous run of the same id is still executing is skipped unless
    ``skip_overlapping_ticks`` is disabled.
    """

    def __init__(
        self,
        executor: OperationExecutor,
        runner: BatchRunner,
        *,
        settings: SchedulerSettings | None = None,
        timer_factory: TimerFactory = start_repeating_timer,
        spawn: Spawner = spawn_daemon,
        log: OperationLogger | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            executor: Executor used for single-file runs.
            runner: Batch runner used for directory runs with ``batch`` enabled.
            settings: Default interval and overlap policy.
            timer_factory: Creates and starts recurring timers.
            spawn: Runs a callable once in the background (``on-startup``).
            log: Structured operation logger.
        """
        self._executor = executor
        self._runner = runner
        self._settings = settings or SchedulerSettings()
        self._timer_factory = timer_factory
        self._spawn = spawn
        self._log = log or OperationLogger()
        self._lock = threading.Lock()
        self._definitions: dict[str, OperationDefinition] = {}
        self._timers: dict[str, TimerHandle] = {}
        self._stop_flags: dict[str, threading.Event] = {}
        self._running: dict[str, int] = {}

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def schedule(self, operation_id: str, config: Mapping[str, Any]) -> OperationDefinition:
        """Validate ``config`` and (re)start the timer for ``operation_id``.

        Raises:
            ValidationError: If the definition is invalid.
        """
        definition = self._validate(operation_id, dict(config))
        self._install(definition)
        return definition

    def edit(self, operation_id: str, partial: Mapping[str, Any]) -> EditResult:
        """Merge ``partial`` over the stored definition and re-register its timer.

        Supplied top-level fields replace stored ones; ``options`` is replaced
        as a whole.

        Raises:
            NotFoundError: If ``operation_id`` is unknown.
            ValidationError: If the merged definition is invalid.
        """
        with self._lock:
            current = self._definitions.get(operation_id)
        if current is None:
            raise NotFoundError(f"Scheduled operation not found: {operation_id}")

        names = _field_names()
        merged = current.model_dump()
        updates = {names.get(key, key): value for key, value in partial.items()}
        if "name" not in updates and current.name == _default_name(current):
            merged.pop("name")
        merged.update(updates)
        merged.pop("id", None)
        definition = self._validate(operation_id, merged)
        self._install(definition)
        self._log.info("Scheduled operation edited", operation_id=operation_id)
        return EditResult(operation_id=operation_id, config=definition)

    def cancel(self, operation_id: str, *, abort_running: bool = False) -> bool:
        """Stop the timer for ``operation_id`` and forget its definition.

        A run already in progress finishes unless ``abort_running`` is set, in
        which case a batch run stops before its next batch.

        Returns:
            bool: ``True`` when a definition was removed.
        """
        with self._lock:
            timer = self._timers.pop(operation_id, None)
            definition = self._definitions.pop(operation_id, None)
            stop_flag = self._stop_flags.pop(operation_id, None)
        if timer is not None:
            timer.cancel()
        if abort_running and stop_flag is not None:
            stop_flag.set()
        if definition is not None:
            self._log.info(
                "Scheduled operation cancelled",
                operation_id=operation_id,
                abort_running=abort_running,
            )
        return definition is not None

    def run_now(self, operation_id: str) -> RunOutcome:
        """Execute ``operation_id`` immediately without touching its timer.

        Raises:
            NotFoundError: If ``operation_id`` is unknown.
            DeParaError: Any failure of the run itself.
        """
        with self._lock:
            definition = self._definitions.get(operation_id)
            stop_flag = self._stop_flags.get(operation_id)
            if definition is not None:
                self._running[operation_id] = self._running.get(operation_id, 0) + 1
        if definition is None:
            raise NotFoundError(f"Scheduled operation not found: {operation_id}")
        try:
            return self._execute(definition, stop_flag)
        finally:
            self._finish(operation_id)

    def get(self, operation_id: str) -> OperationDefinition | None:
        with self._lock:
            return self._definitions.get(operation_id)

    def list_operations(self) -> list[ScheduledOperation]:
        """Return every definition with its ``active`` flag."""
        with self._lock:
            return [
                ScheduledOperation(**definition.model_dump(), active=operation_id in self._timers)
                for operation_id, definition in self._definitions.items()
            ]

    def active_count(self) -> int:
        """Return how many definitions currently have a recurring timer."""
        with self._lock:
            return len(self._timers)

    def is_running(self, operation_id: str) -> bool:
        with self._lock:
            return self._running.get(operation_id, 0) > 0

    def shutdown(self) -> None:
        """Stop every timer and ask in-flight batch runs to stop."""
        with self._lock:
            timers = list(self._timers.values())
            flags = list(self._stop_flags.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        for flag in flags:
            flag.set()
        self._log.info("Scheduler stopped", timers=len(timers))

    def __len__(self) -> int:
        with self._lock:
            return len(self._definitions)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _validate(self, operation_id: str, config: dict[str, Any]) -> OperationDefinition:
        config.pop("id", None)
        try:
            return OperationDefinition.model_validate({"id": operation_id, **config})
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid operation definition '{operation_id}': {exc}") from exc

    def _interval_for(self, definition: OperationDefinition) -> float:
        seconds = frequency_seconds(definition.frequency)
        if seconds is None:
            seconds = self._settings.default_interval_seconds
            self._log.warning(
                "Unrecognised frequency, using default interval",
                operation_id=definition.id,
                frequency=definition.frequency,
                interval_seconds=seconds,
            )
        return seconds

    def _install(self, definition: OperationDefinition) -> None:
        operation_id = definition.id
        callback = functools.partial(self._tick, operation_id)
        interval: float | None = None
        if definition.frequency not in (MANUAL, ON_STARTUP):
            interval = self._interval_for(definition)

        with self._lock:
            previous = self._timers.pop(operation_id, None)
            self._definitions[operation_id] = definition
            # Runs started before an edit hold this flag; only a spent one is replaced.
            flag = self._stop_flags.get(operation_id)
            if flag is None or flag.is_set():
                self._stop_flags[operation_id] = threading.Event()
        if previous is not None:
            previous.cancel()

        if interval is not None:
            timer = self._timer_factory(interval, callback, f"depara-schedule-{operation_id}")
            with self._lock:
                self._timers[operation_id] = timer
        self._log.info(
            "Operation scheduled",
            operation_id=operation_id,
            action=definition.action,
            frequency=definition.frequency,
            interval_seconds=interval,
        )
        if definition.frequency == ON_STARTUP:
            self._spawn(callback, f"depara-startup-{operation_id}")

    def _tick(self, operation_id: str) -> None:
        with self._lock:
            definition = self._definitions.get(operation_id)
            if definition is None:
                return
            if self._settings.skip_overlapping_ticks and self._running.get(operation_id, 0):
                self._log.warning(
                    "Previous run still executing, tick skipped", operation_id=operation_id
                )
                return
            self._running[operation_id] = self._running.get(operation_id, 0) + 1
            stop_flag = self._stop_flags.get(operation_id)

        try:
            self._execute(definition, stop_flag)
        except Exception as exc:  # noqa: BLE001
            self._log.operation_error("Scheduled Operation", exc, operation_id=operation_id)
        finally:
            self._finish(operation_id)

    def _execute(
        self, definition: OperationDefinition, stop_flag: threading.Event | None
    ) -> RunOutcome:
        source = Path(definition.source_path)
        target = definition.target_path if definition.action != "delete" else None
        self._log.debug(
            "Executing scheduled operation", operation_id=definition.id, action=definition.action
        )
        if definition.is_batch and source.is_dir():
            return self._runner.run(
                definition.id,
                definition.action,
                source,
                target,
                definition.options,
                cancel_event=stop_flag,
            )
        return self._executor.run(definition.action, source, target, definition.options)

    def _finish(self, operation_id: str) -> None:
        with self._lock:
            remaining = self._running.get(operation_id, 0) - 1
            if remaining > 0:
                self._running[operation_id] = remaining
            else:
                self._running.pop(operation_id, None)


__all__ = ["RunOutcome", "Scheduler"]
