"""Executor for single move, copy, and delete operations."""

from __future__ import annotations

import errno
import os
import shutil
import time
import uuid
from datetime import datetime
from pathlib import Path, PurePath
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from depara.backup import BackupVault
from depara.clock import SYSTEM_CLOCK, Clock, safe_timestamp
from depara.discovery import DirectoryScanner, IgnoreMatcher
from depara.errors import (
    DeParaError,
    InvalidPathError,
    OperationIOError,
    SourceNotFoundError,
    TargetExistsError,
    ValidationError,
)
from depara.oplog import OperationLogger
from depara.paths import PathGuard

from .filters import matches_filters
from .models import Action, OperationOptions, OperationResult

OptionsLike = Optional[Union[OperationOptions, Mapping[str, Any]]]

_LABELS = {"move": "File Move", "copy": "File Copy", "delete": "File Delete"}


def new_operation_id() -> str:
    """Return a unique id of the form ``op_<epoch-ms>_<random>``."""
    return f"op_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def coerce_options(options: OptionsLike) -> OperationOptions:
    """Validate a mapping of options into :class:`OperationOptions`.

    Raises:
        ValidationError: If the mapping contains unknown or invalid fields.
    """
    if options is None:
        return OperationOptions()
    if isinstance(options, OperationOptions):
        return options
    try:
        return OperationOptions.model_validate(dict(options))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid operation options: {exc}") from exc


def decorate_name(name: str, options: OperationOptions, moment: datetime) -> str:
    """Apply the timestamp and suffix naming options to a file name.

    A suffix replaces the timestamp decoration when both are requested.
    """
    pure = PurePath(name)
    decorated = name
    if options.add_timestamp:
        decorated = f"{pure.stem}_{safe_timestamp(moment)}{pure.suffix}"
    if options.suffix:
        decorated = f"{pure.stem}{options.suffix}{pure.suffix}"
    return decorated


def _tree_size(path: Path) -> int:
    if path.is_file():
        return path.stat().st_size
    total = 0
    for child in path.rglob("*"):
        if child.is_file():
            total += child.stat().st_size
    return total


class OperationExecutor:
    """Perform primitive file operations behind the path guard and backup vault."""

    def __init__(
        self,
        guard: PathGuard,
        vault: BackupVault,
        *,
        matcher: IgnoreMatcher | None = None,
        clock: Clock = SYSTEM_CLOCK,
        log: OperationLogger | None = None,
    ) -> None:
        self._guard = guard
        self._vault = vault
        self._matcher = matcher or IgnoreMatcher()
        self._clock = clock
        self._log = log or OperationLogger()

    @property
    def guard(self) -> PathGuard:
        return self._guard

    @property
    def matcher(self) -> IgnoreMatcher:
        return self._matcher

    def run(
        self,
        action: Action,
        source: Path | str,
        target: Path | str | None,
        options: OptionsLike = None,
    ) -> OperationResult:
        """Dispatch ``action`` for a single source.

        When ``target`` is an existing directory and ``source`` is a file, the
        file is placed inside it under its (decorated) base name.

        Raises:
            ValidationError: If the action is unknown or a required target is missing.
        """
        opts = coerce_options(options)
        if action == "delete":
            return self.delete(source, opts)
        if action not in ("move", "copy"):
            raise ValidationError(f"Unsupported action: {action}")
        if not target:
            raise ValidationError(f"A target path is required for '{action}'.")

        target_path = Path(target)
        source_path = Path(source)
        if target_path.is_dir() and source_path.is_file():
            target_path = target_path / decorate_name(source_path.name, opts, self._clock.now())
        if action == "move":
            return self.move(source_path, target_path, opts)
        return self.copy(source_path, target_path, opts)

    def move(
        self, source: Path | str, target: Path | str, options: OptionsLike = None
    ) -> OperationResult:
        """Move ``source`` to ``target`` with an atomic rename.

        Falls back to copy, size verification, and unlink when the rename
        crosses filesystems. A directory source is moved file by file: ignored
        entries and files rejected by ``filters`` stay behind together with the
        directories that still hold them.

        Raises:
            BackupFailedError: If ``backup_before_move`` is set and the backup fails.
            SourceNotFoundError: If the source vanished before the rename.
            TargetExistsError: If the target exists and ``overwrite`` is false.
        """
        opts = coerce_options(options)
        operation_id = new_operation_id()
        started = self._clock.monotonic()
        context: dict[str, Any] = {"operation_id": operation_id, "source": source, "target": target}
        try:
            source_path = self._guard.resolve(source, "read")
            target_path = self._prepare_target(source_path, target, opts)
            context.update(source=source_path, target=target_path)
            self._log.start_operation(_LABELS["move"], **context)

            backup_path = None
            backups = 0
            if source_path.is_dir():
                size, backups = self._move_tree(source_path, target_path, opts)
            else:
                if opts.backup_before_move:
                    backup_path = self._vault.backup(source_path, "move")
                self._rename(source_path, target_path)
                size = self._stat_size(target_path)
        except DeParaError as exc:
            self._log.operation_error(_LABELS["move"], exc, **context)
            raise

        duration = (self._clock.monotonic() - started) * 1000
        self._log.end_operation(_LABELS["move"], duration, file_size=size, **context)
        return OperationResult(
            operation_id=operation_id,
            action="move",
            source=str(source_path),
            target=str(target_path),
            file_size=size,
            duration_ms=duration,
            backup_created=backup_path is not None or backups > 0,
            backup_path=str(backup_path) if backup_path else None,
            preserve_structure=opts.preserve_structure,
        )

    def copy(
        self, source: Path | str, target: Path | str, options: OptionsLike = None
    ) -> OperationResult:
        """Copy ``source`` to ``target``; directories are copied without ignored entries.

        Raises:
            SourceNotFoundError: If the source vanished before the copy.
            TargetExistsError: If the target exists and ``overwrite`` is false.
        """
        opts = coerce_options(options)
        operation_id = new_operation_id()
        started = self._clock.monotonic()
        context: dict[str, Any] = {"operation_id": operation_id, "source": source, "target": target}
        try:
            source_path = self._guard.resolve(source, "read")
            target_path = self._prepare_target(source_path, target, opts)
            context.update(source=source_path, target=target_path)
            self._log.start_operation(_LABELS["copy"], **context)

            self._copy(source_path, target_path, overwrite=opts.overwrite)
            size = self._stat_size(target_path)
        except DeParaError as exc:
            self._log.operation_error(_LABELS["copy"], exc, **context)
            raise

        duration = (self._clock.monotonic() - started) * 1000
        self._log.end_operation(_LABELS["copy"], duration, file_size=size, **context)
        return OperationResult(
            operation_id=operation_id,
            action="copy",
            source=str(source_path),
            target=str(target_path),
            file_size=size,
            duration_ms=duration,
            preserve_structure=opts.preserve_structure,
        )

    def delete(self, path: Path | str, options: OptionsLike = None) -> OperationResult:
        """Delete a file, backing it up first when backups apply.

        A directory is emptied file by file and removed once nothing is left in
        it; ignored entries and files rejected by ``filters`` are kept, and so
        are the directories holding them.

        Raises:
            SourceNotFoundError: If the path does not exist.
            InvalidPathError: If the path is neither a file nor a directory.
            BackupFailedError: If a required backup fails; that file is kept.
        """
        opts = coerce_options(options)
        operation_id = new_operation_id()
        started = self._clock.monotonic()
        context: dict[str, Any] = {"operation_id": operation_id, "path": path}
        backup_requested = self._vault.enabled or opts.force_backup
        backup_path = None
        try:
            file_path = self._guard.resolve(path, "write")
            context["path"] = file_path
            self._log.start_operation(_LABELS["delete"], **context)
            if not file_path.exists():
                raise SourceNotFoundError(f"File does not exist: {file_path}")
            if file_path.is_dir():
                size, backups = self._delete_tree(file_path, opts, backup=backup_requested)
                backup_requested = backups > 0
            elif file_path.is_file():
                if backup_requested:
                    backup_path = self._vault.backup(file_path, "delete")
                size = self._stat_size(file_path)
                self._unlink(file_path)
            else:
                raise InvalidPathError(f"Not a regular file or directory: {file_path}")
        except DeParaError as exc:
            self._log.operation_error(_LABELS["delete"], exc, **context)
            raise

        duration = (self._clock.monotonic() - started) * 1000
        self._log.end_operation(
            _LABELS["delete"], duration, file_size=size, backup_created=backup_requested, **context
        )
        return OperationResult(
            operation_id=operation_id,
            action="delete",
            source=str(file_path),
            file_size=size,
            duration_ms=duration,
            backup_created=backup_requested,
            backup_path=str(backup_path) if backup_path else None,
        )

    def _prepare_target(
        self, source_path: Path, target: Path | str, opts: OperationOptions
    ) -> Path:
        checked = self._guard.check(target)
        if checked == source_path:
            raise ValidationError(f"Source and target are the same path: {source_path}")
        if source_path in checked.parents:
            raise ValidationError(f"Target {checked} lies inside source directory {source_path}")
        self._make_dirs(checked.parent)
        target_path = self._guard.resolve(checked, "write")
        if target_path.exists() and not opts.overwrite:
            raise TargetExistsError(f"Target already exists: {target_path}")
        return target_path

    def _rename(self, source: Path, target: Path) -> None:
        try:
            os.replace(source, target)
        except FileNotFoundError as exc:
            if not source.exists():
                raise SourceNotFoundError(f"Source vanished before the move: {source}") from exc
            raise OperationIOError(f"Could not move {source} to {target}: {exc}") from exc
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                raise OperationIOError(f"Could not move {source} to {target}: {exc}") from exc
            self._log.info("Cross-device move, copying then deleting", source=source, target=target)
            self._move_across_devices(source, target)

    def _move_across_devices(self, source: Path, target: Path) -> None:
        self._copy(source, target, overwrite=True)
        expected = _tree_size(source)
        actual = _tree_size(target)
        if expected != actual:
            target.unlink(missing_ok=True)
            raise OperationIOError(
                f"Copy verification failed for {target}: expected {expected} bytes, found {actual}"
            )
        try:
            source.unlink()
        except OSError as exc:
            raise OperationIOError(f"Copied {source} but could not remove it: {exc}") from exc

    def _tree_candidates(self, root: Path, opts: OperationOptions) -> list[Path]:
        """Return the files below ``root`` that a directory move or delete may touch."""
        now = self._clock.timestamp()
        candidates = []
        try:
            for path in DirectoryScanner().list_files(root):
                if self._matcher.should_ignore(path.name, "/" + path.relative_to(root).as_posix()):
                    self._log.debug("Ignored entry left in place", path=path)
                    continue
                if opts.filters.is_empty or matches_filters(path, path.stat(), opts.filters, now):
                    candidates.append(path)
        except OSError as exc:
            raise OperationIOError(f"Could not list {root}: {exc}") from exc
        return candidates

    def _move_tree(self, source: Path, target: Path, opts: OperationOptions) -> tuple[int, int]:
        """Move the candidate files of ``source`` below ``target``.

        Returns:
            tuple[int, int]: Bytes moved and backups written.
        """
        size = 0
        backups = 0
        self._make_dirs(target)
        for path in self._tree_candidates(source, opts):
            destination = target / path.relative_to(source)
            if destination.exists() and not opts.overwrite:
                raise TargetExistsError(f"Target already exists: {destination}")
            file_size = self._stat_size(path)
            if opts.backup_before_move:
                self._vault.backup(path, "move")
                backups += 1
            self._make_dirs(destination.parent)
            self._rename(path, destination)
            size += file_size
        self._prune_empty_dirs(source)
        return size, backups

    def _delete_tree(
        self, root: Path, opts: OperationOptions, *, backup: bool
    ) -> tuple[int, int]:
        """Delete the candidate files of ``root``, backing each up when ``backup`` is set.

        Returns:
            tuple[int, int]: Bytes deleted and backups written.
        """
        size = 0
        backups = 0
        for path in self._tree_candidates(root, opts):
            file_size = self._stat_size(path)
            if backup:
                self._vault.backup(path, "delete")
                backups += 1
            self._unlink(path)
            size += file_size
        self._prune_empty_dirs(root)
        return size, backups

    def _prune_empty_dirs(self, root: Path) -> None:
        """Remove ``root`` and every non-ignored directory below it that is now empty."""
        for current, _dirs, _files in os.walk(root, topdown=False):
            directory = Path(current)
            if directory != root:
                relative = "/" + directory.relative_to(root).as_posix() + "/"
                if self._matcher.should_ignore(directory.name, relative):
                    continue
            try:
                if any(directory.iterdir()):
                    continue
                directory.rmdir()
            except OSError as exc:
                raise OperationIOError(f"Could not remove {directory}: {exc}") from exc

    def _make_dirs(self, directory: Path) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OperationIOError(f"Could not create {directory}: {exc}") from exc

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise SourceNotFoundError(f"File vanished before deletion: {path}") from exc
        except OSError as exc:
            raise OperationIOError(f"Could not delete {path}: {exc}") from exc

    def _copy(self, source: Path, target: Path, *, overwrite: bool) -> None:
        try:
            if source.is_dir():
                shutil.copytree(
                    source, target, ignore=self._ignored_entries, dirs_exist_ok=overwrite
                )
            else:
                shutil.copy2(source, target)
        except FileNotFoundError as exc:
            if not source.exists():
                raise SourceNotFoundError(f"Source vanished before the copy: {source}") from exc
            raise OperationIOError(f"Could not copy {source} to {target}: {exc}") from exc
        except (OSError, shutil.Error) as exc:
            raise OperationIOError(f"Could not copy {source} to {target}: {exc}") from exc

    def _ignored_entries(self, directory: str, names: list[str]) -> set[str]:
        return {name for name in names if self._matcher.should_ignore(name)}

    def _stat_size(self, path: Path) -> int:
        try:
            return _tree_size(path)
        except FileNotFoundError as exc:
            raise SourceNotFoundError(f"Path vanished during the operation: {path}") from exc
        except OSError as exc:
            raise OperationIOError(f"Could not stat {path}: {exc}") from exc


__all__ = [
    "OperationExecutor",
    "coerce_options",
    "decorate_name",
    "new_operation_id",
]
