"""Recursive file discovery used by batch runs and image listings."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from depara.errors import InvalidPathError, NotFoundError

from .ignore import IgnoreMatcher
from .models import FileDescriptor

LOGGER = logging.getLogger(__name__)


def describe(path: Path, root: Path | None = None) -> FileDescriptor:
    """Build a descriptor for ``path`` from a fresh ``stat`` call."""
    stats = path.stat()
    relative = None
    if root is not None:
        try:
            relative = path.relative_to(root).as_posix()
        except ValueError:
            relative = None
    return FileDescriptor(
        path=path,
        name=path.name,
        size=stats.st_size,
        modified_time=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
        extension=path.suffix.lower().lstrip("."),
        relative_path=relative,
    )


class DirectoryScanner:
    """Enumerate regular files under a directory tree.

    Every sub-directory is traversed; filtering is left to the caller so that
    scan breadth never depends on how results are later placed.
    """

    def __init__(self, *, follow_symlinks: bool = False, max_depth: int | None = None) -> None:
        self.follow_symlinks = follow_symlinks
        self.max_depth = max_depth

    def iter_files(self, root: Path) -> Iterator[Path]:
        """Yield regular files under ``root`` in directory-listing order.

        Raises:
            NotFoundError: If ``root`` does not exist.
            InvalidPathError: If ``root`` is not a directory.
            OSError: If the root itself cannot be listed.
        """
        root = Path(root)
        if not root.exists():
            raise NotFoundError(f"Directory does not exist: {root}")
        if not root.is_dir():
            raise InvalidPathError(f"Path is not a directory: {root}")
        yield from self._walk(root, depth=0, strict=True)

    def list_files(self, root: Path) -> list[Path]:
        """Return every regular file under ``root``."""
        return list(self.iter_files(root))

    def _walk(self, directory: Path, *, depth: int, strict: bool) -> Iterator[Path]:
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            if strict:
                raise
            LOGGER.warning("Skipping unreadable directory %s: %s", directory, exc)
            return

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=self.follow_symlinks):
                    if self.max_depth is None or depth < self.max_depth:
                        yield from self._walk(Path(entry.path), depth=depth + 1, strict=False)
                elif entry.is_file(follow_symlinks=self.follow_symlinks):
                    yield Path(entry.path)
            except OSError as exc:
                LOGGER.warning("Skipping unreadable entry %s: %s", entry.path, exc)


def list_images_recursive(
    folder: Path,
    *,
    extensions: Iterable[str],
    max_depth: int = 10,
    matcher: IgnoreMatcher | None = None,
) -> list[FileDescriptor]:
    """Return image descriptors under ``folder``, most recently modified first.

    Args:
        folder: Directory to scan.
        extensions: Accepted extensions, with or without a leading dot.
        max_depth: Deepest sub-directory level to descend into.
        matcher: Ignore matcher applied to every candidate.

    Raises:
        NotFoundError: If ``folder`` does not exist.
        InvalidPathError: If ``folder`` is not a directory.
    """
    accepted = {extension.lower().lstrip(".") for extension in extensions}
    matcher = matcher or IgnoreMatcher()
    scanner = DirectoryScanner(max_depth=max_depth)

    images: list[FileDescriptor] = []
    for path in scanner.iter_files(folder):
        if path.suffix.lower().lstrip(".") not in accepted:
            continue
        if matcher.should_ignore(path.name, "/" + path.relative_to(folder).as_posix()):
            continue
        try:
            images.append(describe(path, folder))
        except OSError as exc:
            LOGGER.warning("Skipping image %s: %s", path, exc)

    images.sort(key=lambda descriptor: descriptor.modified_time, reverse=True)
    return images


__all__ = ["DirectoryScanner", "describe", "list_images_recursive"]
