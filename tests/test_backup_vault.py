"""Tests for the backup vault."""

from __future__ import annotations

import gzip
import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from depara.backup import SECONDS_PER_DAY, BackupVault
from depara.clock import safe_timestamp
from depara.config.models import BackupSettings
from depara.errors import BackupFailedError, ValidationError

if TYPE_CHECKING:
    from conftest import FakeClock


def _age(path: Path, clock: FakeClock, days: float) -> None:
    """Set the modification time of ``path`` to ``days`` before the clock's now.

    Args:
        path: File whose timestamps are rewritten.
        clock: Fake clock providing the reference instant.
        days: Age in days.
    """
    moment = clock.timestamp() - days * SECONDS_PER_DAY
    os.utime(path, (moment, moment))


def test_safe_timestamp_replaces_separators(clock: FakeClock) -> None:
    assert safe_timestamp(clock.now()) == "2024-05-01T12-30-45-123Z"


def test_backup_copies_bytes_with_naming_convention(
    vault: BackupVault, backup_dir: Path, tmp_path: Path
) -> None:
    """A backup lands in the vault as ``name.operation.timestamp``.

    Args:
        vault: Vault writing into ``backup_dir``.
        backup_dir: Backup directory inside the sandbox.
        tmp_path: Temporary directory provided by pytest.
    """
    source = tmp_path / "report.txt"
    source.write_bytes(b"quarterly numbers")

    backup = vault.backup(source, "delete")

    assert backup == backup_dir / "report.txt.delete.2024-05-01T12-30-45-123Z"
    assert backup.read_bytes() == b"quarterly numbers"
    assert source.exists()


def test_backups_with_the_same_timestamp_do_not_collide(
    vault: BackupVault, tmp_path: Path
) -> None:
    source = tmp_path / "a.txt"
    source.write_text("one", encoding="utf-8")
    first = vault.backup(source, "move")
    source.write_text("two", encoding="utf-8")

    second = vault.backup(source, "move")

    assert first != second
    assert second.name.endswith("-1")
    assert first.read_text(encoding="utf-8") == "one"
    assert second.read_text(encoding="utf-8") == "two"


def test_compressed_backups_are_gzip(backup_dir: Path, clock: FakeClock, tmp_path: Path) -> None:
    vault = BackupVault(
        BackupSettings(backup_dir=str(backup_dir), compress_backups=True), clock=clock
    )
    source = tmp_path / "data.csv"
    source.write_bytes(b"a,b,c\n" * 100)

    backup = vault.backup(source)

    assert backup.name.endswith(".gz")
    with gzip.open(backup, "rb") as handle:
        assert handle.read() == b"a,b,c\n" * 100


def test_backup_of_missing_or_directory_source_fails(vault: BackupVault, tmp_path: Path) -> None:
    with pytest.raises(BackupFailedError):
        vault.backup(tmp_path / "missing.txt")
    with pytest.raises(BackupFailedError):
        vault.backup(tmp_path)


def test_backup_io_failure_is_wrapped(
    vault: BackupVault, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = tmp_path / "a.txt"
    source.write_text("x", encoding="utf-8")

    def _explode(*_: object, **__: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("depara.backup.vault.shutil.copyfileobj", _explode)

    with pytest.raises(BackupFailedError, match="disk full"):
        vault.backup(source)
    assert list(vault.backup_dir.iterdir()) == []


def test_cleanup_honours_retention_window(
    vault: BackupVault, backup_dir: Path, clock: FakeClock
) -> None:
    """Entries older than the window go; younger ones stay.

    Args:
        vault: Vault writing into ``backup_dir``.
        backup_dir: Backup directory inside the sandbox.
        clock: Fake clock used as the reference instant.
    """
    backup_dir.mkdir()
    expired = backup_dir / "old.txt.delete.x"
    recent = backup_dir / "new.txt.delete.y"
    expired.write_text("old", encoding="utf-8")
    recent.write_text("new", encoding="utf-8")
    _age(expired, clock, 8)
    _age(recent, clock, 6)

    removed = vault.cleanup(7)

    assert removed == [expired]
    assert not expired.exists()
    assert recent.exists()


def test_cleanup_uses_configured_retention(
    backup_dir: Path, clock: FakeClock
) -> None:
    vault = BackupVault(BackupSettings(backup_dir=str(backup_dir), retention_days=30), clock=clock)
    backup_dir.mkdir()
    stale = backup_dir / "stale"
    stale.write_text("x", encoding="utf-8")
    _age(stale, clock, 31)

    assert vault.cleanup() == [stale]


def test_cleanup_continues_past_failures(
    vault: BackupVault, backup_dir: Path, clock: FakeClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    backup_dir.mkdir()
    stuck = backup_dir / "a-stuck"
    gone = backup_dir / "b-gone"
    for entry in (stuck, gone):
        entry.write_text("x", encoding="utf-8")
        _age(entry, clock, 90)

    original_unlink = Path.unlink

    def _unlink(self: Path, missing_ok: bool = False) -> None:
        if self.name == "a-stuck":
            raise PermissionError("locked")
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", _unlink)

    removed = vault.cleanup(30)

    assert removed == [gone]
    assert stuck.exists()


def test_cleanup_without_directory_is_a_no_op(vault: BackupVault) -> None:
    assert vault.cleanup() == []


def test_ensure_directory_is_idempotent(vault: BackupVault, backup_dir: Path) -> None:
    assert vault.ensure_directory() == backup_dir
    assert vault.ensure_directory() == backup_dir
    assert backup_dir.is_dir()


def test_update_merges_partial_settings(vault: BackupVault, tmp_path: Path) -> None:
    updated = vault.update({"retention_days": 7, "backup_dir": str(tmp_path / "vault")})

    assert updated.retention_days == 7
    assert vault.backup_dir == tmp_path / "vault"
    assert vault.enabled is True


def test_update_rejects_invalid_values(vault: BackupVault) -> None:
    with pytest.raises(ValidationError):
        vault.update({"retention_days": -1})
    with pytest.raises(ValidationError):
        vault.update({"unknown": True})
    assert vault.settings.retention_days == 30
