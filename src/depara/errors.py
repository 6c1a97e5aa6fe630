"""Error taxonomy shared by the DePara engine.

Each error carries a ``code`` that collaborators (HTTP routes, the CLI) map to a
response class: ``bad_request`` for rejected input, ``not_found`` for missing
paths or operation ids, and ``internal_error`` for everything else.
"""

from __future__ import annotations

BAD_REQUEST = "bad_request"
NOT_FOUND = "not_found"
INTERNAL_ERROR = "internal_error"


class DeParaError(Exception):
    """Base exception for engine failures."""

    code: str = INTERNAL_ERROR


class ValidationError(DeParaError):
    """Raised when an operation definition or setting is invalid."""

    code = BAD_REQUEST


class UnsafePathError(DeParaError):
    """Raised when a path contains traversal or expansion characters."""

    code = BAD_REQUEST


class AccessDeniedError(DeParaError):
    """Raised when a path resolves outside every allowed base directory."""

    code = BAD_REQUEST


class InvalidPathError(DeParaError):
    """Raised when a path exists but is not usable for the requested operation."""

    code = BAD_REQUEST


class TargetExistsError(DeParaError):
    """Raised when a destination exists and overwriting was not allowed."""

    code = BAD_REQUEST


class NotFoundError(DeParaError):
    """Raised when a path or a scheduled operation id does not exist."""

    code = NOT_FOUND


class SourceNotFoundError(NotFoundError):
    """Raised when a source vanished between validation and the operation itself.

    Callers retrying a move must check whether the target already exists before
    treating this as a hard failure.
    """


class ParentNotAccessibleError(DeParaError):
    """Raised when the parent directory of a new path is missing or not writable."""


class BackupFailedError(DeParaError):
    """Raised when a pre-operation backup could not be written."""


class OperationIOError(DeParaError):
    """Wraps any other filesystem failure raised during an operation."""


def error_code(exc: BaseException) -> str:
    """Return the collaborator-facing error class for ``exc``."""
    if isinstance(exc, DeParaError):
        return exc.code
    return INTERNAL_ERROR


__all__ = [
    "BAD_REQUEST",
    "NOT_FOUND",
    "INTERNAL_ERROR",
    "DeParaError",
    "ValidationError",
    "UnsafePathError",
    "AccessDeniedError",
    "InvalidPathError",
    "TargetExistsError",
    "NotFoundError",
    "SourceNotFoundError",
    "ParentNotAccessibleError",
    "BackupFailedError",
    "OperationIOError",
    "error_code",
]
