"""Tests for single-file move, copy, and delete."""

from __future__ import annotations

import errno
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError as PydanticValidationError

from depara.backup import BackupVault
from depara.config.models import BackupSettings
from depara.errors import (
    AccessDeniedError,
    BackupFailedError,
    NotFoundError,
    OperationIOError,
    SourceNotFoundError,
    TargetExistsError,
    UnsafePathError,
    ValidationError,
)
from depara.operations import (
    OperationExecutor,
    OperationOptions,
    decorate_name,
    new_operation_id,
)
from depara.paths import PathGuard

if TYPE_CHECKING:
    from conftest import FakeClock


def _write(path: Path, content: str = "payload") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_move_renames_file_and_reports_size(executor: OperationExecutor, tmp_path: Path) -> None:
    """A move leaves nothing at the source and the original bytes at the target.

    Args:
        executor: Executor sandboxed to ``tmp_path``.
        tmp_path: Temporary directory provided by pytest.
    """
    source = _write(tmp_path / "src" / "file.txt", "hello world")
    target = tmp_path / "dst" / "nested" / "file.txt"

    result = executor.move(source, target)

    assert not source.exists()
    assert target.read_text(encoding="utf-8") == "hello world"
    assert result.success is True
    assert result.action == "move"
    assert result.file_size == len("hello world")
    assert result.target == str(target.resolve())
    assert result.backup_created is False
    assert re.fullmatch(r"op_\d+_[0-9a-f]{9}", result.operation_id)


def test_move_with_backup_keeps_a_copy(
    executor: OperationExecutor, backup_dir: Path, tmp_path: Path
) -> None:
    source = _write(tmp_path / "a.txt", "keep me")

    result = executor.move(source, tmp_path / "b.txt", {"backupBeforeMove": True})

    assert result.backup_created is True
    assert result.backup_path is not None
    backup = Path(result.backup_path)
    assert backup.parent == backup_dir
    assert backup.name.startswith("a.txt.move.")
    assert backup.read_text(encoding="utf-8") == "keep me"


def test_move_aborts_when_backup_fails(
    executor: OperationExecutor,
    vault: BackupVault,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    source = _write(tmp_path / "a.txt")

    def _fail(*_: object, **__: object) -> Path:
        raise BackupFailedError("no space")

    monkeypatch.setattr(vault, "backup", _fail)

    with pytest.raises(BackupFailedError):
        executor.move(source, tmp_path / "b.txt", OperationOptions(backup_before_move=True))
    assert source.exists()
    assert not (tmp_path / "b.txt").exists()


def test_move_missing_source_is_not_found(executor: OperationExecutor, tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        executor.move(tmp_path / "missing.txt", tmp_path / "b.txt")


def test_move_source_vanishing_before_rename(
    executor: OperationExecutor, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = _write(tmp_path / "a.txt")
    real_replace = os.replace

    def _vanish(src: Path, dst: Path) -> None:
        Path(src).unlink()
        real_replace(src, dst)

    monkeypatch.setattr(os, "replace", _vanish)

    with pytest.raises(SourceNotFoundError):
        executor.move(source, tmp_path / "b.txt")


def test_move_falls_back_to_copy_across_devices(
    executor: OperationExecutor, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = _write(tmp_path / "a.txt", "cross device")

    def _exdev(*_: object) -> None:
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(os, "replace", _exdev)

    result = executor.move(source, tmp_path / "other" / "a.txt")

    assert not source.exists()
    assert (tmp_path / "other" / "a.txt").read_text(encoding="utf-8") == "cross device"
    assert result.file_size == len("cross device")


def test_cross_device_size_mismatch_removes_partial_target(
    executor: OperationExecutor, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = _write(tmp_path / "a.txt", "full content")
    target = tmp_path / "b.txt"

    def _exdev(*_: object) -> None:
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    def _short_copy(src: Path, dst: Path, **_: object) -> None:
        Path(dst).write_text("short", encoding="utf-8")

    monkeypatch.setattr(os, "replace", _exdev)
    monkeypatch.setattr("depara.operations.executor.shutil.copy2", _short_copy)

    with pytest.raises(OperationIOError, match="verification"):
        executor.move(source, target)
    assert source.exists()
    assert not target.exists()


def test_move_refuses_existing_target_without_overwrite(
    executor: OperationExecutor, tmp_path: Path
) -> None:
    source = _write(tmp_path / "a.txt", "new")
    target = _write(tmp_path / "b.txt", "old")

    with pytest.raises(TargetExistsError):
        executor.move(source, target, {"overwrite": False})
    assert target.read_text(encoding="utf-8") == "old"


def test_move_directory_moves_every_file(executor: OperationExecutor, tmp_path: Path) -> None:
    _write(tmp_path / "album" / "one.jpg", "1")
    _write(tmp_path / "album" / "sub" / "two.jpg", "22")

    result = executor.move(tmp_path / "album", tmp_path / "archive" / "album")

    assert not (tmp_path / "album").exists()
    assert (tmp_path / "archive" / "album" / "sub" / "two.jpg").exists()
    assert result.file_size == 3


def test_move_directory_leaves_ignored_entries_behind(
    executor: OperationExecutor, tmp_path: Path
) -> None:
    tree = tmp_path / "tree"
    _write(tree / "keep.txt", "keep")
    _write(tree / ".sync", "state")
    _write(tree / ".git" / "HEAD", "ref")
    _write(tree / "sub" / "b.txt", "b")

    result = executor.move(tree, tmp_path / "moved")

    destination = tmp_path / "moved"
    moved = sorted(path.relative_to(destination).as_posix() for path in destination.rglob("*"))
    assert moved == ["keep.txt", "sub", "sub/b.txt"]
    assert (tree / ".sync").read_text(encoding="utf-8") == "state"
    assert (tree / ".git" / "HEAD").exists()
    assert not (tree / "sub").exists()
    assert result.file_size == 5


def test_move_directory_honours_filters(executor: OperationExecutor, tmp_path: Path) -> None:
    _write(tmp_path / "inbox" / "a.jpg")
    _write(tmp_path / "inbox" / "notes.txt")

    executor.move(tmp_path / "inbox", tmp_path / "photos", {"filters": {"extensions": ["jpg"]}})

    assert [path.name for path in (tmp_path / "photos").iterdir()] == ["a.jpg"]
    assert [path.name for path in (tmp_path / "inbox").iterdir()] == ["notes.txt"]


def test_same_source_and_target_is_rejected(executor: OperationExecutor, tmp_path: Path) -> None:
    source = _write(tmp_path / "a.txt")

    with pytest.raises(ValidationError):
        executor.copy(source, source)


def test_copy_is_byte_identical(executor: OperationExecutor, tmp_path: Path) -> None:
    data = bytes(range(256)) * 64
    source = tmp_path / "blob.bin"
    source.write_bytes(data)

    result = executor.copy(source, tmp_path / "copies" / "blob.bin")

    assert (tmp_path / "copies" / "blob.bin").read_bytes() == data
    assert source.read_bytes() == data
    assert result.file_size == len(data)
    assert result.action == "copy"


def test_copy_directory_skips_ignored_entries(
    executor: OperationExecutor, tmp_path: Path
) -> None:
    _write(tmp_path / "photos" / "a.jpg")
    _write(tmp_path / "photos" / ".DS_Store")
    _write(tmp_path / "photos" / ".git" / "HEAD")
    _write(tmp_path / "photos" / "draft.tmp")

    executor.copy(tmp_path / "photos", tmp_path / "mirror")

    copied = sorted(path.name for path in (tmp_path / "mirror").rglob("*"))
    assert copied == ["a.jpg"]


def test_copy_refuses_existing_target_without_overwrite(
    executor: OperationExecutor, tmp_path: Path
) -> None:
    source = _write(tmp_path / "a.txt")
    target = _write(tmp_path / "b.txt")

    with pytest.raises(TargetExistsError):
        executor.copy(source, target, OperationOptions(overwrite=False))


def test_delete_backs_up_when_enabled(
    executor: OperationExecutor, backup_dir: Path, tmp_path: Path
) -> None:
    doomed = _write(tmp_path / "old.log.txt", "bye")

    result = executor.delete(doomed)

    assert not doomed.exists()
    assert result.backup_created is True
    assert result.file_size == 3
    assert [entry.name.split(".delete.")[0] for entry in backup_dir.iterdir()] == ["old.log.txt"]


def test_delete_without_backup_when_disabled(
    guard: PathGuard, backup_dir: Path, clock: FakeClock, tmp_path: Path
) -> None:
    vault = BackupVault(BackupSettings(enabled=False, backup_dir=str(backup_dir)), clock=clock)
    executor = OperationExecutor(guard, vault, clock=clock)
    plain = _write(tmp_path / "plain.txt")
    forced = _write(tmp_path / "forced.txt")

    plain_result = executor.delete(plain)
    forced_result = executor.delete(forced, {"forceBackup": True})

    assert plain_result.backup_created is False
    assert forced_result.backup_created is True
    assert [entry.name.split(".")[0] for entry in backup_dir.iterdir()] == ["forced"]


def test_delete_keeps_file_when_backup_fails(
    executor: OperationExecutor,
    vault: BackupVault,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    precious = _write(tmp_path / "precious.txt")

    def _fail(*_: object, **__: object) -> Path:
        raise BackupFailedError("backup disk offline")

    monkeypatch.setattr(vault, "backup", _fail)

    with pytest.raises(BackupFailedError):
        executor.delete(precious)
    assert precious.exists()


def test_delete_missing_file(executor: OperationExecutor, tmp_path: Path) -> None:
    with pytest.raises(SourceNotFoundError):
        executor.delete(tmp_path / "ghost.txt")


def test_delete_directory_skips_ignored_entries(
    executor: OperationExecutor, backup_dir: Path, tmp_path: Path
) -> None:
    folder = tmp_path / "folder"
    _write(folder / "a.txt", "aa")
    _write(folder / "nested" / "b.txt", "b")
    _write(folder / "Thumbs.db", "meta")

    result = executor.delete(folder)

    assert [path.name for path in folder.iterdir()] == ["Thumbs.db"]
    assert result.file_size == 3
    assert result.backup_created is True
    assert len(list(backup_dir.iterdir())) == 2


def test_delete_directory_removes_emptied_tree(
    executor: OperationExecutor, tmp_path: Path
) -> None:
    folder = tmp_path / "folder"
    _write(folder / "deep" / "er" / "c.txt")

    executor.delete(folder, {"filters": {"extensions": ["txt"]}})

    assert not folder.exists()


def test_guard_errors_propagate(executor: OperationExecutor, tmp_path: Path) -> None:
    source = _write(tmp_path / "a.txt")

    with pytest.raises(UnsafePathError):
        executor.copy(source, f"{tmp_path}/../escape.txt")
    with pytest.raises(AccessDeniedError):
        executor.copy(source, tmp_path.parent / "escape.txt")


def test_invalid_options_are_rejected(executor: OperationExecutor, tmp_path: Path) -> None:
    source = _write(tmp_path / "a.txt")

    with pytest.raises(ValidationError):
        executor.copy(source, tmp_path / "b.txt", {"unknownFlag": True})


def test_run_places_file_inside_existing_directory(
    executor: OperationExecutor, tmp_path: Path
) -> None:
    source = _write(tmp_path / "report.pdf")
    (tmp_path / "inbox").mkdir()

    result = executor.run("copy", source, tmp_path / "inbox", {"suffix": "_copy"})

    assert result.target == str((tmp_path / "inbox" / "report_copy.pdf").resolve())
    assert (tmp_path / "inbox" / "report_copy.pdf").exists()


def test_run_requires_target_for_move(executor: OperationExecutor, tmp_path: Path) -> None:
    source = _write(tmp_path / "a.txt")

    with pytest.raises(ValidationError):
        executor.run("move", source, None)


def test_run_delete_ignores_target(executor: OperationExecutor, tmp_path: Path) -> None:
    source = _write(tmp_path / "a.txt")

    result = executor.run("delete", source, tmp_path / "unused")

    assert result.action == "delete"
    assert not source.exists()


def test_decorate_name_variants(clock: FakeClock) -> None:
    moment = clock.now()

    assert decorate_name("a.txt", OperationOptions(), moment) == "a.txt"
    assert (
        decorate_name("a.txt", OperationOptions(add_timestamp=True), moment)
        == "a_2024-05-01T12-30-45-123Z.txt"
    )
    assert decorate_name("a.txt", OperationOptions(suffix="-v2"), moment) == "a-v2.txt"
    assert (
        decorate_name("a.txt", OperationOptions(suffix="-v2", add_timestamp=True), moment)
        == "a-v2.txt"
    )
    assert decorate_name("Makefile", OperationOptions(suffix=".bak"), moment) == "Makefile.bak"


def test_suffix_with_separator_is_invalid() -> None:
    with pytest.raises(PydanticValidationError):
        OperationOptions(suffix="../x")


def test_operation_ids_are_unique() -> None:
    ids = {new_operation_id() for _ in range(200)}

    assert len(ids) == 200
