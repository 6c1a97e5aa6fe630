"""File discovery and ignore-pattern matching."""

from .ignore import DEFAULT_PATTERN_GROUPS, IgnoreMatcher
from .models import FileDescriptor
from .scanner import DirectoryScanner, describe, list_images_recursive

__all__ = [
    "DEFAULT_PATTERN_GROUPS",
    "IgnoreMatcher",
    "FileDescriptor",
    "DirectoryScanner",
    "describe",
    "list_images_recursive",
]
