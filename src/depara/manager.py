"""Facade wiring the engine components together for collaborators."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic.alias_generators import to_snake

from depara.backup import BackupVault
from depara.batch import BatchRunner, BatchSummary
from depara.clock import SYSTEM_CLOCK, Clock
from depara.config import DeParaConfig
from depara.config.models import BackupSettings
from depara.discovery import FileDescriptor, IgnoreMatcher, list_images_recursive
from depara.errors import DeParaError, ValidationError
from depara.oplog import OperationLogger
from depara.operations import (
    Action,
    EngineModel,
    OperationExecutor,
    OperationResult,
    coerce_options,
)
from depara.operations.executor import OptionsLike
from depara.paths import PathGuard
from depara.progress import FAILED_PERCENTAGE, ProgressSnapshot, ProgressStore
from depara.scheduler import (
    EditResult,
    OperationDefinition,
    RunOutcome,
    ScheduledOperation,
    Scheduler,
    TimerFactory,
    spawn_daemon,
    start_repeating_timer,
)
from depara.scheduler.timers import Spawner


class EngineStats(EngineModel):
    """Counters reported by :meth:`FileOperationsManager.get_stats`."""

    scheduled_operations: int
    total_operations: int
    backup_enabled: bool
    backup_dir: str
    retention_days: int


class FileOperationsManager:
    """Single owner of every engine component and the shared in-memory state.

    Instances are independent; tests build isolated managers with their own
    allow-list, clock, and timer factory.
    """

    def __init__(
        self,
        config: DeParaConfig | None = None,
        *,
        guard: PathGuard | None = None,
        clock: Clock = SYSTEM_CLOCK,
        timer_factory: TimerFactory = start_repeating_timer,
        spawn: Spawner = spawn_daemon,
        log: OperationLogger | None = None,
    ) -> None:
        """Build the engine from ``config``.

        Args:
            config: Effective configuration; defaults are used when omitted.
            guard: Path guard override; built from ``config.security`` otherwise.
            clock: Time source shared by every component.
            timer_factory: Factory for recurring schedule timers.
            spawn: Runs one-off background work (``on-startup`` schedules, batches).
            log: Structured operation logger.
        """
        self._config = config or DeParaConfig()
        self._log = log or OperationLogger()
        self._spawn = spawn
        self._batch_flags: dict[str, threading.Event] = {}
        self._flags_lock = threading.Lock()

        security = self._config.security
        self.guard = guard or PathGuard(
            security.allowed_base_paths, include_defaults=security.include_default_bases
        )
        self.matcher = IgnoreMatcher(extra_patterns=self._config.ignore.extra_patterns)
        self.vault = BackupVault(self._config.backup, clock=clock, log=self._log)
        self.progress = ProgressStore(clock=clock)
        self.executor = OperationExecutor(
            self.guard, self.vault, matcher=self.matcher, clock=clock, log=self._log
        )
        self.runner = BatchRunner(
            self.executor,
            self.progress,
            matcher=self.matcher,
            max_concurrent=self._config.batch.max_concurrent_operations,
            pause_seconds=self._config.batch.pause_seconds,
            clock=clock,
            log=self._log,
        )
        self.scheduler = Scheduler(
            self.executor,
            self.runner,
            settings=self._config.scheduler,
            timer_factory=timer_factory,
            spawn=spawn,
            log=self._log,
        )

    @property
    def config(self) -> DeParaConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Scheduling                                                         #
    # ------------------------------------------------------------------ #

    def schedule_operation(self, operation_id: str, config: Mapping[str, Any]) -> None:
        """Validate and start a recurring operation.

        Raises:
            ValidationError: If the definition is invalid.
        """
        self.scheduler.schedule(operation_id, config)

    def cancel_scheduled_operation(self, operation_id: str, *, abort_running: bool = False) -> None:
        """Stop and forget ``operation_id``; unknown ids are ignored."""
        self.scheduler.cancel(operation_id, abort_running=abort_running)

    def edit_scheduled_operation(
        self, operation_id: str, partial: Mapping[str, Any]
    ) -> EditResult:
        """Merge ``partial`` into an existing definition.

        Raises:
            NotFoundError: If ``operation_id`` is unknown.
            ValidationError: If the merged definition is invalid.
        """
        return self.scheduler.edit(operation_id, partial)

    def get_scheduled_operation(self, operation_id: str) -> OperationDefinition | None:
        return self.scheduler.get(operation_id)

    def get_scheduled_operations(self) -> list[ScheduledOperation]:
        return self.scheduler.list_operations()

    def execute_scheduled_operation_now(self, operation_id: str) -> RunOutcome:
        """Run a scheduled operation immediately.

        Raises:
            NotFoundError: If ``operation_id`` is unknown.
        """
        return self.scheduler.run_now(operation_id)

    def start_configured_schedules(
        self, schedules: Iterable[Mapping[str, Any]] | None = None
    ) -> int:
        """Schedule every definition listed in the configuration.

        Returns:
            int: Number of definitions scheduled.

        Raises:
            ValidationError: If an entry lacks an ``id`` or is otherwise invalid.
        """
        entries = list(self._config.schedules if schedules is None else schedules)
        for entry in entries:
            payload = dict(entry)
            operation_id = payload.pop("id", None)
            if not operation_id:
                raise ValidationError(f"Configured schedule is missing an id: {entry}")
            self.scheduler.schedule(str(operation_id), payload)
        return len(entries)

    # ------------------------------------------------------------------ #
    # Direct operations                                                  #
    # ------------------------------------------------------------------ #

    def move_file(
        self, source: Path | str, target: Path | str, options: OptionsLike = None
    ) -> OperationResult:
        return self.executor.run("move", source, target, options)

    def copy_file(
        self, source: Path | str, target: Path | str, options: OptionsLike = None
    ) -> OperationResult:
        return self.executor.run("copy", source, target, options)

    def delete_file(self, path: Path | str, options: OptionsLike = None) -> OperationResult:
        return self.executor.run("delete", path, None, options)

    def run_batch(
        self,
        operation_id: str,
        action: Action,
        source_dir: Path | str,
        target_dir: Path | str | None = None,
        options: OptionsLike = None,
    ) -> BatchSummary:
        """Run a batch synchronously and return its summary."""
        flag = self._register_flag(operation_id)
        try:
            return self.runner.run(
                operation_id,
                action,
                source_dir,
                target_dir,
                coerce_options(options),
                cancel_event=flag,
            )
        finally:
            self._release_flag(operation_id, flag)

    def execute_batch_operation(
        self,
        operation_id: str,
        action: Action,
        source_dir: Path | str,
        target_dir: Path | str | None = None,
        options: OptionsLike = None,
    ) -> None:
        """Start a batch in the background; poll :meth:`get_progress` for its state.

        Raises:
            ValidationError: If ``options`` is invalid.
        """
        opts = coerce_options(options)

        def _background() -> None:
            try:
                self.run_batch(operation_id, action, source_dir, target_dir, opts)
            except DeParaError:
                # The runner already published a failed snapshot and logged the cause.
                return
            except Exception as exc:  # noqa: BLE001
                self.progress.report(operation_id, FAILED_PERCENTAGE, 0, f"Batch failed: {exc}")
                self._log.operation_error("Batch Operation", exc, operation_id=operation_id)

        self._spawn(_background, f"depara-batch-{operation_id}")

    # ------------------------------------------------------------------ #
    # Progress, discovery, and housekeeping                              #
    # ------------------------------------------------------------------ #

    def get_progress(self, operation_id: str) -> ProgressSnapshot | None:
        return self.progress.get(operation_id)

    def get_active_operations(self) -> list[ProgressSnapshot]:
        return self.progress.list_active()

    def clear_progress(self, operation_id: str) -> bool:
        return self.progress.clear(operation_id)

    def prune_progress(self, max_age_seconds: float) -> list[str]:
        return self.progress.prune(max_age_seconds)

    def should_ignore_file(self, path_or_name: Path | str, name: str | None = None) -> bool:
        """Return whether the entry matches an ignore pattern."""
        full_path = str(path_or_name)
        return self.matcher.should_ignore(name or Path(full_path).name, full_path)

    def filter_ignored_files(self, names: Iterable[str]) -> list[str]:
        return self.matcher.filter(names)

    def list_images_recursive(
        self,
        folder: Path | str,
        *,
        max_depth: int | None = None,
        extensions: Iterable[str] | None = None,
    ) -> list[FileDescriptor]:
        """List images under ``folder``, most recently modified first.

        Raises:
            NotFoundError: If ``folder`` does not exist.
            InvalidPathError: If ``folder`` is not a directory.
        """
        settings = self._config.images
        root = self.guard.resolve(folder, "read")
        return list_images_recursive(
            root,
            extensions=settings.extensions if extensions is None else extensions,
            max_depth=settings.max_depth if max_depth is None else max_depth,
            matcher=self.matcher,
        )

    def update_backup_config(self, partial: Mapping[str, Any]) -> BackupSettings:
        """Merge ``partial`` (snake_case or camelCase keys) into the backup settings.

        Raises:
            ValidationError: If the merged settings are invalid.
        """
        return self.vault.update({to_snake(key): value for key, value in partial.items()})

    def cleanup_backups(self, retention_days: int | None = None) -> list[Path]:
        return self.vault.cleanup(retention_days)

    def get_stats(self) -> EngineStats:
        settings = self.vault.settings
        return EngineStats(
            scheduled_operations=self.scheduler.active_count(),
            total_operations=len(self.scheduler),
            backup_enabled=settings.enabled,
            backup_dir=str(self.vault.backup_dir),
            retention_days=settings.retention_days,
        )

    def shutdown(self) -> None:
        """Stop every timer and ask running batches to stop before their next batch."""
        self.scheduler.shutdown()
        with self._flags_lock:
            flags = list(self._batch_flags.values())
        for flag in flags:
            flag.set()

    def _register_flag(self, operation_id: str) -> threading.Event:
        flag = threading.Event()
        with self._flags_lock:
            self._batch_flags[operation_id] = flag
        return flag

    def _release_flag(self, operation_id: str, flag: threading.Event) -> None:
        with self._flags_lock:
            if self._batch_flags.get(operation_id) is flag:
                del self._batch_flags[operation_id]


__all__ = ["EngineStats", "FileOperationsManager"]
