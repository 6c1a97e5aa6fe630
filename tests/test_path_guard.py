"""Tests for path validation against the allow-list."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from depara.errors import (
    AccessDeniedError,
    InvalidPathError,
    NotFoundError,
    ParentNotAccessibleError,
    UnsafePathError,
)
from depara.paths import PathGuard, default_base_paths, sanitize_path


@pytest.mark.parametrize("mode", ["read", "write", "create"])
@pytest.mark.parametrize(
    "suffix", ["../etc/passwd", "a/../../b", "~/notes.txt", "$HOME/x", "dir/~backup"]
)
def test_unsafe_sequences_rejected_in_every_mode(
    guard: PathGuard, tmp_path: Path, mode: str, suffix: str
) -> None:
    """Traversal and expansion characters fail before any filesystem access.

    Args:
        guard: Guard restricted to ``tmp_path``.
        tmp_path: Temporary directory provided by pytest.
        mode: Access mode under test.
        suffix: Unsafe fragment appended to the sandbox path.
    """
    with pytest.raises(UnsafePathError):
        guard.resolve(f"{tmp_path}/{suffix}", mode)  # type: ignore[arg-type]


def test_paths_outside_allowed_bases_are_denied(guard: PathGuard, tmp_path: Path) -> None:
    outside = tmp_path.parent / "elsewhere.txt"

    with pytest.raises(AccessDeniedError):
        guard.resolve(outside, "write")


def test_prefix_sibling_is_not_treated_as_inside(tmp_path: Path) -> None:
    """A sibling sharing a string prefix with a base must still be denied.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    base = tmp_path / "data"
    sibling = tmp_path / "data-private"
    base.mkdir()
    sibling.mkdir()
    guard = PathGuard([base], include_defaults=False)

    with pytest.raises(AccessDeniedError):
        guard.resolve(sibling)


def test_read_requires_existing_target(guard: PathGuard, tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        guard.resolve(tmp_path / "missing.txt", "read")


def test_read_returns_absolute_path(guard: PathGuard, tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    resolved = guard.resolve(target)

    assert resolved == target.resolve()
    assert resolved.is_absolute()


def test_write_accepts_missing_target_with_existing_parent(
    guard: PathGuard, tmp_path: Path
) -> None:
    resolved = guard.resolve(tmp_path / "new.txt", "write")

    assert resolved == (tmp_path / "new.txt").resolve()
    assert not resolved.exists()


def test_write_requires_parent_directory(guard: PathGuard, tmp_path: Path) -> None:
    with pytest.raises(ParentNotAccessibleError):
        guard.resolve(tmp_path / "missing" / "new.txt", "create")


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="named pipes unavailable")
def test_special_files_are_invalid(guard: PathGuard, tmp_path: Path) -> None:
    fifo = tmp_path / "pipe"
    os.mkfifo(fifo)

    with pytest.raises(InvalidPathError):
        guard.resolve(fifo)


def test_empty_path_is_invalid(guard: PathGuard) -> None:
    with pytest.raises(InvalidPathError):
        guard.check("   ")


def test_default_bases_cover_common_roots() -> None:
    bases = default_base_paths()

    assert Path("/tmp") in bases
    assert Path("/opt") in bases
    assert Path.home() in bases


def test_default_guard_allows_tmp(tmp_path: Path) -> None:
    guard = PathGuard()

    assert guard.check(tmp_path) == tmp_path.resolve()


def test_sanitize_path_strips_forbidden_sequences() -> None:
    assert sanitize_path(" ../a/~b/$c\0 ") == "/a/b/c"
