"""Data models produced by directory enumeration."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class FileDescriptor(BaseModel):
    """Transient description of an enumerated file.

    Attributes:
        path: Absolute path of the file.
        name: Base name of the file.
        size: Size in bytes.
        modified_time: Last modification time (UTC).
        extension: Lower-case extension without the leading dot.
        relative_path: Path relative to the enumeration root, when known.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    path: Path
    name: str
    size: int
    modified_time: datetime
    extension: str
    relative_path: Optional[str] = None

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["FileDescriptor"]
