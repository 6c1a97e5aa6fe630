"""Path validation helpers."""

from .guard import PathGuard, PathMode, default_base_paths, sanitize_path

__all__ = ["PathGuard", "PathMode", "default_base_paths", "sanitize_path"]
