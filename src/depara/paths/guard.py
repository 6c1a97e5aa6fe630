"""Validation of filesystem paths against an allow-list of base directories."""

from __future__ import annotations

import logging
import os
import string
import sys
from pathlib import Path
from typing import Iterable, Literal

from depara.errors import (
    AccessDeniedError,
    InvalidPathError,
    NotFoundError,
    ParentNotAccessibleError,
    UnsafePathError,
)

LOGGER = logging.getLogger(__name__)

PathMode = Literal["read", "write", "create"]

UNSAFE_SEQUENCES = ("..", "~", "$")
PACKAGE_ROOT = Path(__file__).resolve().parents[1]


def default_base_paths() -> list[Path]:
    """Return the built-in base directories operations may touch."""
    bases = [
        Path.home(),
        Path("/home"),
        Path("/usr/local"),
        Path("/opt"),
        Path("/var"),
        Path("/tmp"),
        Path("/media"),
        Path("/mnt"),
        PACKAGE_ROOT,
    ]
    if sys.platform == "win32":
        bases.extend(Path(f"{letter}:\\") for letter in string.ascii_uppercase)
    return bases


def sanitize_path(value: str) -> str:
    """Strip traversal and expansion characters plus NUL bytes from ``value``."""
    for sequence in (*UNSAFE_SEQUENCES, "\0"):
        value = value.replace(sequence, "")
    return value.strip()


class PathGuard:
    """Resolve caller-supplied paths, rejecting anything outside the allow-list."""

    def __init__(
        self,
        allowed_bases: Iterable[Path | str] | None = None,
        *,
        include_defaults: bool = True,
    ) -> None:
        """Initialize the guard.

        Args:
            allowed_bases: Extra base directories to allow.
            include_defaults: Whether the built-in base directories are allowed too.
        """
        bases: list[Path] = default_base_paths() if include_defaults else []
        bases.extend(Path(base) for base in allowed_bases or ())
        resolved: list[Path] = []
        for base in bases:
            candidate = base.expanduser().resolve()
            if candidate not in resolved:
                resolved.append(candidate)
        self._bases = tuple(resolved)

    @property
    def allowed_bases(self) -> tuple[Path, ...]:
        """Return the resolved allow-list."""
        return self._bases

    def check(self, path: str | Path) -> Path:
        """Return the absolute form of ``path`` after the lexical and allow-list checks.

        No filesystem state beyond symlink resolution is consulted.

        Raises:
            InvalidPathError: If the path is empty.
            UnsafePathError: If the path contains ``..``, ``~`` or ``$``.
            AccessDeniedError: If the path lies outside every allowed base.
        """
        raw = str(path)
        if not raw.strip():
            raise InvalidPathError("Path must be a non-empty string.")
        if any(sequence in raw for sequence in UNSAFE_SEQUENCES):
            LOGGER.warning("Rejected path with unsafe characters: %s", raw)
            raise UnsafePathError(f"Path contains forbidden characters: {raw}")

        resolved = Path(raw).resolve()
        if not any(resolved == base or base in resolved.parents for base in self._bases):
            LOGGER.warning("Rejected path outside allowed bases: %s", resolved)
            raise AccessDeniedError(f"Access denied to path: {resolved}")
        return resolved

    def resolve(self, path: str | Path, mode: PathMode = "read") -> Path:
        """Validate ``path`` for the requested access mode.

        Args:
            path: Caller-supplied path.
            mode: ``read`` requires an existing file or directory; ``write`` and
                ``create`` accept a missing target whose parent directory exists
                and is writable.

        Returns:
            Path: Absolute, symlink-resolved path.

        Raises:
            UnsafePathError: If the path contains traversal characters.
            AccessDeniedError: If the path lies outside the allow-list.
            NotFoundError: If a ``read`` target does not exist.
            InvalidPathError: If the target exists but is neither file nor directory.
            ParentNotAccessibleError: If a new target's parent is missing or not writable.
        """
        resolved = self.check(path)
        try:
            stats = resolved.stat()
        except FileNotFoundError:
            if mode == "read":
                raise NotFoundError(f"Path does not exist: {resolved}") from None
            return self._check_parent(resolved)
        except NotADirectoryError as exc:
            raise InvalidPathError(f"Part of the path is not a directory: {resolved}") from exc
        except PermissionError as exc:
            raise AccessDeniedError(f"Access denied to path: {resolved}") from exc

        if not (resolved.is_file() or resolved.is_dir()):
            raise InvalidPathError(
                f"Path is not a regular file or directory: {resolved} (mode {oct(stats.st_mode)})"
            )
        return resolved

    def _check_parent(self, resolved: Path) -> Path:
        parent = resolved.parent
        if not parent.is_dir() or not os.access(parent, os.W_OK | os.X_OK):
            raise ParentNotAccessibleError(f"Parent directory is not accessible: {parent}")
        return resolved


__all__ = ["PathGuard", "PathMode", "default_base_paths", "sanitize_path", "UNSAFE_SEQUENCES"]
