"""Operation definitions managed by the scheduler."""

from __future__ import annotations

import re
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator

from depara.operations.models import Action, EngineModel, OperationOptions

MANUAL = "manual"
ON_STARTUP = "on-startup"
FREQUENCY_KEYWORDS = (MANUAL, ON_STARTUP)
FREQUENCY_PATTERN = re.compile(r"^(\d+)([smhd])$")
UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def frequency_seconds(frequency: str) -> float | None:
    """Return the interval encoded by ``frequency`` (``30s``, ``5m``, ``1h``, ``1d``).

    Returns:
        float | None: Seconds between runs, or ``None`` when the value is not a
        positive interval.
    """
    match = FREQUENCY_PATTERN.match(frequency)
    if match is None:
        return None
    seconds = int(match.group(1)) * UNIT_SECONDS[match.group(2)]
    return float(seconds) if seconds > 0 else None


class OperationDefinition(EngineModel):
    """User-authored recurring operation.

    Attributes:
        id: Unique identifier chosen by the caller.
        name: Display label; defaults to ``"<ACTION> - <frequency>"``.
        frequency: Interval string, ``manual`` or ``on-startup``.
        action: Operation to perform on each run.
        source_path: File or directory the action applies to.
        target_path: Destination for ``move`` and ``copy``; ignored for ``delete``.
        options: Behavior switches forwarded to the executor or batch runner.
    """

    id: str = Field(min_length=1)
    name: Optional[str] = None
    frequency: str
    action: Action
    source_path: str = Field(min_length=1)
    target_path: Optional[str] = None
    options: OperationOptions = Field(default_factory=OperationOptions)

    @field_validator("frequency")
    @classmethod
    def _require_frequency(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("frequency must not be empty")
        return value

    @model_validator(mode="after")
    def _check_target(self) -> "OperationDefinition":
        if self.action in ("move", "copy"):
            if not self.target_path:
                raise ValueError(f"targetPath is required for '{self.action}'")
            if self.target_path == self.source_path:
                raise ValueError("targetPath must differ from sourcePath")
        if not self.name:
            self.name = f"{self.action.upper()} - {self.frequency}"
        return self

    @property
    def is_batch(self) -> bool:
        return self.options.batch


class ScheduledOperation(OperationDefinition):
    """Definition plus whether a recurring timer currently exists for it."""

    active: bool = False


class EditResult(EngineModel):
    """Acknowledgement returned after editing a definition."""

    operation_id: str
    config: OperationDefinition
    status: Literal["edited"] = "edited"


__all__ = [
    "EditResult",
    "FREQUENCY_KEYWORDS",
    "FREQUENCY_PATTERN",
    "MANUAL",
    "ON_STARTUP",
    "OperationDefinition",
    "ScheduledOperation",
    "frequency_seconds",
]
