"""User-supplied candidate filters for tree and batch operations."""

from __future__ import annotations

import os
import re
from pathlib import Path

from .models import FileFilters


def matches_filters(path: Path, stats: os.stat_result, filters: FileFilters, now: float) -> bool:
    """Return whether ``path`` passes every configured filter.

    Args:
        path: Candidate file.
        stats: Result of ``stat`` for the candidate.
        filters: Filters to apply; empty filters accept everything.
        now: Current POSIX timestamp used for the age filter.
    """
    if filters.is_empty:
        return True
    if filters.extensions and path.suffix.lower().lstrip(".") not in filters.extensions:
        return False
    if filters.pattern and not re.search(filters.pattern, path.name, re.IGNORECASE):
        return False
    if filters.min_size is not None and stats.st_size < filters.min_size:
        return False
    if filters.max_size is not None and stats.st_size > filters.max_size:
        return False
    if filters.min_age is not None and now - stats.st_mtime < filters.min_age:
        return False
    return True


__all__ = ["matches_filters"]
