"""Progress snapshot model for batch runs."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from depara.operations.models import EngineModel

FAILED_PERCENTAGE = -1
COMPLETE_PERCENTAGE = 100


class ProgressSnapshot(EngineModel):
    """Last reported completion state of one batch run.

    Attributes:
        operation_id: Identifier of the batch run or scheduled operation.
        percentage: 0-100, or -1 once the run failed. A cancelled run keeps
            the percentage it had reached.
        total: Number of files discovered for the run.
        message: Human-readable status line.
        cancelled: Whether the run was stopped before all files were handled.
        timestamp: When the snapshot was recorded.
    """

    operation_id: str
    percentage: int = Field(ge=FAILED_PERCENTAGE, le=COMPLETE_PERCENTAGE)
    total: int = Field(default=0, ge=0)
    message: str = ""
    cancelled: bool = False
    timestamp: datetime

    @property
    def is_terminal(self) -> bool:
        """Return whether the run will publish no further progress."""
        return self.cancelled or self.percentage in (FAILED_PERCENTAGE, COMPLETE_PERCENTAGE)

    @property
    def is_active(self) -> bool:
        return not self.cancelled and 0 <= self.percentage < COMPLETE_PERCENTAGE


__all__ = ["ProgressSnapshot", "FAILED_PERCENTAGE", "COMPLETE_PERCENTAGE"]
