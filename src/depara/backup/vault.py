"""Timestamped pre-operation backups with retention-based cleanup."""

from __future__ import annotations

import gzip
import shutil
import threading
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Mapping

from depara.clock import SYSTEM_CLOCK, Clock, safe_timestamp
from depara.config import ConfigError, apply_partial
from depara.config.models import BackupSettings
from depara.errors import BackupFailedError, ValidationError
from depara.oplog import OperationLogger

SECONDS_PER_DAY = 86_400


class BackupVault:
    """Copy files into a backup directory before destructive operations.

    Backups are named ``{base_name}.{operation}.{timestamp}`` (plus ``.gz`` when
    compression is enabled). No index is kept; the directory is re-listed on
    every cleanup pass and entries are aged by modification time.
    """

    def __init__(
        self,
        settings: BackupSettings | None = None,
        *,
        clock: Clock = SYSTEM_CLOCK,
        log: OperationLogger | None = None,
    ) -> None:
        self._settings = settings or BackupSettings()
        self._clock = clock
        self._log = log or OperationLogger()
        self._lock = threading.Lock()

    @property
    def settings(self) -> BackupSettings:
        """Return the active backup settings."""
        return self._settings

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    @property
    def backup_dir(self) -> Path:
        return Path(self._settings.backup_dir).expanduser()

    def update(self, partial: Mapping[str, Any]) -> BackupSettings:
        """Merge ``partial`` into the current settings.

        Raises:
            ValidationError: If the merged settings are invalid.
        """
        try:
            updated = apply_partial(self._settings, partial)
        except ConfigError as exc:
            raise ValidationError(str(exc)) from exc
        with self._lock:
            self._settings = updated
        self._log.info("Backup configuration updated", **updated.model_dump(mode="json"))
        return updated

    def ensure_directory(self) -> Path:
        """Create the backup directory (and parents) if it is missing."""
        directory = self.backup_dir
        if not directory.is_dir():
            directory.mkdir(parents=True, exist_ok=True)
            self._log.info("Backup directory created", path=directory)
        return directory

    def backup(self, file_path: Path | str, operation: str = "backup") -> Path:
        """Copy ``file_path`` into the vault and sweep expired backups.

        Args:
            file_path: Regular file to preserve.
            operation: Tag recorded in the backup name (``delete``, ``move`` ...).

        Returns:
            Path: Location of the new backup.

        Raises:
            BackupFailedError: If the source is not a regular file or the copy fails.
        """
        source = Path(file_path)
        if not source.is_file():
            raise BackupFailedError(f"Only regular files can be backed up: {source}")

        stem = f"{source.name}.{operation}.{safe_timestamp(self._clock.now())}"
        if self._settings.compress_backups:
            stem += ".gz"

        target: Path | None = None
        try:
            self.ensure_directory()
            target, handle = self._reserve(stem)
            with handle, source.open("rb") as reader:
                if self._settings.compress_backups:
                    with gzip.GzipFile(fileobj=handle, mode="wb") as writer:
                        shutil.copyfileobj(reader, writer)
                else:
                    shutil.copyfileobj(reader, handle)
        except OSError as exc:
            if target is not None:
                target.unlink(missing_ok=True)
            self._log.error("Backup failed", source=source, error=exc)
            raise BackupFailedError(f"Could not back up {source}: {exc}") from exc

        self._log.info("Backup created", source=source, backup=target)
        self.cleanup(keep=[target])
        return target

    def cleanup(
        self,
        retention_days: int | None = None,
        *,
        keep: Iterable[Path] = (),
    ) -> list[Path]:
        """Delete backups whose modification time is older than the retention window.

        Failures on individual entries are logged and the sweep continues.

        Args:
            retention_days: Override for the configured retention.
            keep: Paths that must survive this sweep.

        Returns:
            list[Path]: Backups that were removed.
        """
        days = self._settings.retention_days if retention_days is None else retention_days
        directory = self.backup_dir
        if not directory.is_dir():
            return []

        cutoff = self._clock.timestamp() - days * SECONDS_PER_DAY
        protected = {Path(path) for path in keep}
        removed: list[Path] = []
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            self._log.error("Could not list backup directory", path=directory, error=exc)
            return removed

        for entry in entries:
            if entry in protected:
                continue
            try:
                if not entry.is_file() or entry.stat().st_mtime >= cutoff:
                    continue
                entry.unlink()
            except OSError as exc:
                self._log.warning("Could not remove expired backup", path=entry, error=exc)
                continue
            removed.append(entry)
            self._log.info("Expired backup removed", path=entry)
        return removed

    def _reserve(self, stem: str) -> tuple[Path, BinaryIO]:
        directory = self.backup_dir
        counter = 0
        while True:
            name = stem if counter == 0 else f"{stem}-{counter}"
            candidate = directory / name
            try:
                return candidate, candidate.open("xb")
            except FileExistsError:
                counter += 1


__all__ = ["BackupVault", "SECONDS_PER_DAY"]
