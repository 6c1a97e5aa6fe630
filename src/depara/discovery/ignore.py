"""Built-in "never touch" patterns for sync artifacts, OS metadata, and temp files."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

LOGGER = logging.getLogger(__name__)

SYNC_TOOL_PATTERNS = (
    ".sync",
    ".!sync",
    "!sync",
    ".rsls",
    ".syncignore",
    ".bts",
    ".sync.ffs_db",
    ".sync.ffs_lock",
    ".resilio-sync",
    "resilio-sync",
    "*.!sync",
    "*.sync",
    "*.rsls",
    "*.bts",
)

OS_METADATA_PATTERNS = (
    "Thumbs.db",
    ".DS_Store",
    "desktop.ini",
    ".directory",
    ".Trash",
    ".Trash-*",
    ".Trashes",
    ".fseventsd",
    ".Spotlight-*",
    ".TemporaryItems",
    "._*",
    "$RECYCLE.BIN",
    "System Volume Information",
    ".AppleDouble",
    ".AppleDB",
    ".AppleDesktop",
    ".LSOverride",
    "Network Trash Folder",
    "Temporary Items",
    ".apdisk",
)

TEMP_BUILD_PATTERNS = (
    "~$*",
    "*.tmp",
    "*.temp",
    "*.bak",
    "*.backup",
    "*.swp",
    "*.swo",
    "*~",
    ".#*",
    "#*#",
    "*.lock",
    "*.lck",
    ".nfs*",
    "4913",
    "*.part",
    "*.crdownload",
    "*.download",
    "*.td.part",
    "*.fcache",
    "*.pyc",
    "*.pyo",
    "__pycache__",
    "*.class",
    "*.jar",
    "target/",
    "build/",
    "dist/",
    "node_modules/",
    ".git",
    ".gitignore",
    ".git/",
    ".svn",
    ".svn/",
    ".hg",
    ".hg/",
    ".bzr/",
    "CVS/",
    ".sass-cache/",
    ".cache/",
    "*.log",
    "*.log.*",
    "*.pid",
    "*.sock",
)

DEFAULT_PATTERN_GROUPS: Mapping[str, Sequence[str]] = {
    "sync_tool": SYNC_TOOL_PATTERNS,
    "os_metadata": OS_METADATA_PATTERNS,
    "temp_build": TEMP_BUILD_PATTERNS,
}


@dataclass(frozen=True, slots=True)
class _CompiledPattern:
    group: str
    pattern: str
    name_regex: re.Pattern[str] | None = None
    path_regex: re.Pattern[str] | None = None
    literal: str | None = None
    directory_only: bool = False

    def matches(self, name: str, full_path: str) -> bool:
        if self.name_regex is not None and self.path_regex is not None:
            return bool(self.name_regex.fullmatch(name) or self.path_regex.search(full_path))
        literal = self.literal or ""
        if self.directory_only:
            return f"/{literal}/" in full_path
        return (
            name == literal
            or f"/{literal}/" in full_path
            or full_path.endswith(f"/{literal}")
        )


def _compile(group: str, pattern: str) -> _CompiledPattern:
    if "*" in pattern:
        translated = ".*".join(re.escape(part) for part in pattern.split("*"))
        return _CompiledPattern(
            group=group,
            pattern=pattern,
            name_regex=re.compile(translated, re.IGNORECASE),
            path_regex=re.compile(rf"(?:^|/){translated}$", re.IGNORECASE),
        )
    directory_only = pattern.endswith("/")
    return _CompiledPattern(
        group=group,
        pattern=pattern,
        literal=pattern.rstrip("/").lower(),
        directory_only=directory_only,
    )


class IgnoreMatcher:
    """Decide whether a file or directory must never be operated on.

    Wildcard patterns (``*``) match the whole base name, or the tail of the full
    path starting at a segment boundary. Plain patterns match the base name
    exactly, or appear as a directory segment of the full path, or end it.
    Patterns with a trailing ``/`` only match directory segments. All matching
    is case-insensitive; patterns are compiled once at construction.
    """

    def __init__(
        self,
        groups: Mapping[str, Sequence[str]] | None = None,
        *,
        extra_patterns: Iterable[str] = (),
    ) -> None:
        source = dict(groups if groups is not None else DEFAULT_PATTERN_GROUPS)
        extra = [pattern for pattern in extra_patterns if pattern]
        if extra:
            source["user"] = extra
        self._patterns = tuple(
            _compile(group, pattern) for group, patterns in source.items() for pattern in patterns
        )

    @property
    def patterns(self) -> tuple[str, ...]:
        """Return the raw patterns in evaluation order."""
        return tuple(compiled.pattern for compiled in self._patterns)

    def should_ignore(self, name: str, full_path: str | None = None) -> bool:
        """Return True when ``name`` (or ``full_path``) matches any ignore pattern.

        Args:
            name: Base name of the file or directory.
            full_path: Full path of the entry; defaults to ``name``.
        """
        if not name:
            return False
        lowered_name = name.lower()
        lowered_path = (full_path or name).replace("\\", "/").lower()
        for compiled in self._patterns:
            if compiled.matches(lowered_name, lowered_path):
                LOGGER.debug(
                    "Ignoring %s (%s: %s)", full_path or name, compiled.group, compiled.pattern
                )
                return True
        return False

    def filter(self, names: Iterable[str]) -> list[str]:
        """Return ``names`` without the entries that should be ignored."""
        return [name for name in names if not self.should_ignore(_base_name(name), name)]


def _base_name(value: str) -> str:
    return value.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


__all__ = [
    "IgnoreMatcher",
    "DEFAULT_PATTERN_GROUPS",
    "SYNC_TOOL_PATTERNS",
    "OS_METADATA_PATTERNS",
    "TEMP_BUILD_PATTERNS",
]
