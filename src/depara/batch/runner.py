"""Bounded-concurrency batch runs over a directory tree."""

from __future__ import annotations

import math
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Iterator, Sequence

from depara.clock import SYSTEM_CLOCK, Clock
from depara.discovery import DirectoryScanner, IgnoreMatcher
from depara.errors import (
    DeParaError,
    OperationIOError,
    SourceNotFoundError,
    TargetExistsError,
    ValidationError,
)
from depara.oplog import OperationLogger
from depara.operations import OperationExecutor, OperationOptions, decorate_name
from depara.operations.filters import matches_filters
from depara.operations.models import Action
from depara.progress import COMPLETE_PERCENTAGE, FAILED_PERCENTAGE, ProgressStore

from .models import BatchSummary

MAX_BATCH_SIZE = 3
DEFAULT_PAUSE_SECONDS = 0.1


def batch_size_for(max_concurrent: int) -> int:
    """Return the effective number of files processed concurrently."""
    return max(1, min(max_concurrent, MAX_BATCH_SIZE))


def percentage(completed: int, total: int) -> int:
    """Return ``completed / total`` as a rounded percentage (half rounds up)."""
    if total <= 0:
        return COMPLETE_PERCENTAGE
    return min(COMPLETE_PERCENTAGE, math.floor(completed / total * 100 + 0.5))


def chunked(items: Sequence[Path], size: int) -> Iterator[Sequence[Path]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class _RunState:
    """Mutable counters shared by the worker threads of one run."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.processed = 0
        self.errors = 0
        self.skipped = 0
        self.destinations: set[Path] = set()
        self.lock = threading.Lock()

    @property
    def completed(self) -> int:
        return self.processed + self.errors + self.skipped


class BatchRunner:
    """Apply one action to every qualifying file below a source directory.

    Files are processed in fixed-size batches; the files of one batch run
    concurrently and the next batch starts only after the whole batch has
    finished and a short pause has elapsed.
    """

    def __init__(
        self,
        executor: OperationExecutor,
        progress: ProgressStore,
        *,
        matcher: IgnoreMatcher | None = None,
        max_concurrent: int = 2,
        pause_seconds: float = DEFAULT_PAUSE_SECONDS,
        clock: Clock = SYSTEM_CLOCK,
        log: OperationLogger | None = None,
    ) -> None:
        self._executor = executor
        self._progress = progress
        self._matcher = matcher or executor.matcher
        self._batch_size = batch_size_for(max_concurrent)
        self._pause_seconds = pause_seconds
        self._clock = clock
        self._log = log or OperationLogger()
        self._scanner = DirectoryScanner()

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def run(
        self,
        operation_id: str,
        action: Action,
        source_dir: Path | str,
        target_dir: Path | str | None = None,
        options: OperationOptions | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> BatchSummary:
        """Run ``action`` over every file below ``source_dir``.

        Per-file failures are counted and logged; they never stop the run.

        Args:
            operation_id: Key under which progress snapshots are published.
            action: ``move``, ``copy`` or ``delete``.
            source_dir: Directory whose tree is scanned.
            target_dir: Destination root for ``move`` and ``copy``.
            options: Operation options; ``preserve_structure`` and ``filters`` apply here.
            cancel_event: Cooperative stop flag, checked before each batch.

        Returns:
            BatchSummary: Counters for the run.

        Raises:
            ValidationError: If a required target directory is missing.
            DeParaError: If the source directory cannot be validated or listed; a
                ``-1`` progress snapshot is published first.
        """
        opts = options or OperationOptions()
        started = self._clock.monotonic()
        label = f"Batch {action.capitalize()}"
        self._log.start_operation(
            label, operation_id=operation_id, source=source_dir, target=target_dir
        )

        try:
            target_root = self._validate_target(action, target_dir)
            source_root = self._executor.guard.resolve(source_dir, "read")
            files = self._scanner.list_files(source_root)
        except (DeParaError, OSError) as exc:
            self._progress.report(operation_id, FAILED_PERCENTAGE, 0, f"Batch failed: {exc}")
            self._log.operation_error(label, exc, operation_id=operation_id)
            if isinstance(exc, DeParaError):
                raise
            raise OperationIOError(f"Could not list {source_dir}: {exc}") from exc

        state = _RunState(len(files))
        self._log.info(
            "Files discovered",
            operation_id=operation_id,
            total=state.total,
            batch_size=self._batch_size,
        )
        cancelled = False
        if not files:
            self._progress.report(operation_id, COMPLETE_PERCENTAGE, 0, "No files to process")
        else:
            self._progress.report(operation_id, 0, state.total, "Starting")
            cancelled = self._run_batches(
                operation_id, action, source_root, target_root, files, opts, state, cancel_event
            )

        summary = BatchSummary(
            operation_id=operation_id,
            action=action,
            total=state.total,
            processed=state.processed,
            errors=state.errors,
            skipped=state.skipped,
            cancelled=cancelled,
            duration_ms=(self._clock.monotonic() - started) * 1000,
        )
        if cancelled:
            self._progress.report(
                operation_id,
                percentage(state.completed, state.total),
                state.total,
                summary.message,
                cancelled=True,
            )
        elif files:
            self._progress.report(operation_id, COMPLETE_PERCENTAGE, state.total, summary.message)
        self._log.end_operation(
            label,
            summary.duration_ms,
            operation_id=operation_id,
            processed=summary.processed,
            errors=summary.errors,
            skipped=summary.skipped,
            cancelled=cancelled,
        )
        return summary

    def _validate_target(self, action: Action, target_dir: Path | str | None) -> Path | None:
        if action == "delete":
            return None
        if not target_dir:
            raise ValidationError(f"A target directory is required for batch '{action}'.")
        return self._executor.guard.check(target_dir)

    def _run_batches(
        self,
        operation_id: str,
        action: Action,
        source_root: Path,
        target_root: Path | None,
        files: list[Path],
        options: OperationOptions,
        state: _RunState,
        cancel_event: threading.Event | None,
    ) -> bool:
        batches = list(chunked(files, self._batch_size))
        with ThreadPoolExecutor(
            max_workers=self._batch_size, thread_name_prefix=f"depara-{operation_id}"
        ) as pool:
            for index, batch in enumerate(batches):
                if cancel_event is not None and cancel_event.is_set():
                    self._log.warning(
                        "Batch run cancelled",
                        operation_id=operation_id,
                        completed=state.completed,
                        total=state.total,
                    )
                    return True
                futures = [
                    pool.submit(
                        self._process_file,
                        operation_id,
                        action,
                        path,
                        source_root,
                        target_root,
                        options,
                        state,
                    )
                    for path in batch
                ]
                wait(futures)
                for future in futures:
                    future.result()
                if index < len(batches) - 1:
                    self._clock.sleep(self._pause_seconds)
        return False

    def _process_file(
        self,
        operation_id: str,
        action: Action,
        path: Path,
        source_root: Path,
        target_root: Path | None,
        options: OperationOptions,
        state: _RunState,
    ) -> None:
        outcome = "skipped"
        try:
            if self._accepts(path, source_root, options):
                destination = self._destination(path, source_root, target_root, options)
                if action != "delete":
                    self._claim(destination, state)
                if action == "delete":
                    self._executor.delete(path, options)
                elif action == "move":
                    self._executor.move(path, destination, options)
                else:
                    self._executor.copy(path, destination, options)
                outcome = "processed"
        except (DeParaError, OSError) as exc:
            outcome = "errors"
            self._log.error(
                "Batch item failed", operation_id=operation_id, path=path, error=exc
            )

        with state.lock:
            setattr(state, outcome, getattr(state, outcome) + 1)
            completed = state.completed
            self._progress.report(
                operation_id,
                percentage(completed, state.total),
                state.total,
                f"Processed {completed}/{state.total} files",
            )

    @staticmethod
    def _claim(destination: Path, state: _RunState) -> None:
        """Reserve ``destination`` for one file of the run.

        Raises:
            TargetExistsError: If an earlier file of the same run already maps there.
        """
        with state.lock:
            if destination in state.destinations:
                raise TargetExistsError(
                    f"Another file of this batch already targets {destination}"
                )
            state.destinations.add(destination)

    def _accepts(self, path: Path, source_root: Path, options: OperationOptions) -> bool:
        relative = "/" + path.relative_to(source_root).as_posix()
        if self._matcher.should_ignore(path.name, relative):
            self._log.debug("Ignored file skipped", path=path)
            return False
        if not path.exists():
            raise SourceNotFoundError(f"File vanished before processing: {path}")
        if not path.is_file():
            return False
        if options.filters.is_empty:
            return True
        return matches_filters(path, path.stat(), options.filters, self._clock.timestamp())

    def _destination(
        self,
        path: Path,
        source_root: Path,
        target_root: Path | None,
        options: OperationOptions,
    ) -> Path:
        if target_root is None:
            return path
        name = decorate_name(path.name, options, self._clock.now())
        if options.preserve_structure:
            return target_root / path.relative_to(source_root).parent / name
        return target_root / name


__all__ = ["BatchRunner", "batch_size_for", "percentage"]
