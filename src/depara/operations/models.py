"""Option and result models for single-file operations."""

from __future__ import annotations

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Action = Literal["move", "copy", "delete"]
ACTIONS: tuple[str, ...] = ("move", "copy", "delete")


class EngineModel(BaseModel):
    """Base for engine models; accepts snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    def to_payload(self) -> dict:
        """Return a JSON-ready camelCase mapping for HTTP collaborators."""
        return self.model_dump(mode="json", by_alias=True)


class FileFilters(EngineModel):
    """User filters applied to batch candidates after the ignore patterns.

    Attributes:
        extensions: Accepted extensions (lower-case, no leading dot); empty accepts all.
        pattern: Case-insensitive regular expression searched in the file name.
        min_size: Minimum size in bytes.
        max_size: Maximum size in bytes.
        min_age: Minimum seconds since last modification.
    """

    extensions: List[str] = Field(default_factory=list)
    pattern: Optional[str] = None
    min_size: Optional[int] = Field(default=None, ge=0)
    max_size: Optional[int] = Field(default=None, ge=0)
    min_age: Optional[float] = Field(default=None, ge=0)

    @field_validator("extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple, set, frozenset)):
            cleaned = [str(item).strip().lower().lstrip(".") for item in value]
            return sorted({item for item in cleaned if item})
        return value

    @field_validator("pattern")
    @classmethod
    def _compile_pattern(cls, value: Optional[str]) -> Optional[str]:
        if value:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid regular expression: {exc}") from exc
        return value or None

    @property
    def is_empty(self) -> bool:
        return not (
            self.extensions
            or self.pattern
            or self.min_size is not None
            or self.max_size is not None
            or self.min_age is not None
        )


class OperationOptions(EngineModel):
    """Per-operation behavior switches.

    Attributes:
        batch: Run over every file of a source directory.
        preserve_structure: Mirror relative paths under the target (batch only).
        backup_before_move: Back up the source before moving it.
        force_backup: Back up before deleting even when backups are disabled.
        overwrite: Replace existing targets; ``TargetExistsError`` otherwise.
        filters: Batch candidate filters.
        add_timestamp: Append a timestamp to destination file names.
        suffix: Text inserted before the extension of destination file names.
    """

    batch: bool = False
    preserve_structure: bool = False
    backup_before_move: bool = False
    force_backup: bool = False
    overwrite: bool = True
    filters: FileFilters = Field(default_factory=FileFilters)
    add_timestamp: bool = False
    suffix: Optional[str] = None

    @field_validator("suffix")
    @classmethod
    def _reject_separators(cls, value: Optional[str]) -> Optional[str]:
        if value and ("/" in value or "\\" in value):
            raise ValueError("suffix must not contain path separators")
        return value or None


class OperationResult(EngineModel):
    """Outcome of one move, copy, or delete."""

    success: bool = True
    operation_id: str
    action: Action
    source: str
    target: Optional[str] = None
    file_size: int = 0
    duration_ms: float = 0.0
    backup_created: bool = False
    backup_path: Optional[str] = None
    preserve_structure: Optional[bool] = None


__all__ = [
    "Action",
    "ACTIONS",
    "EngineModel",
    "FileFilters",
    "OperationOptions",
    "OperationResult",
]
