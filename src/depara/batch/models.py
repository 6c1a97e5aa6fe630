"""Summary model returned by batch runs."""

from __future__ import annotations

from depara.operations.models import Action, EngineModel


class BatchSummary(EngineModel):
    """Counters describing one completed (or stopped) batch run.

    ``processed + errors`` equals the number of files that were not skipped by
    ignore patterns, user filters, or cancellation.
    """

    operation_id: str
    action: Action
    total: int = 0
    processed: int = 0
    errors: int = 0
    skipped: int = 0
    cancelled: bool = False
    duration_ms: float = 0.0

    @property
    def message(self) -> str:
        text = (
            f"{self.action.capitalize()} finished: {self.processed} processed, "
            f"{self.errors} errors, {self.skipped} skipped"
        )
        if self.cancelled:
            handled = self.processed + self.errors + self.skipped
            text = f"Cancelled after {handled} of {self.total} files"
        return text


__all__ = ["BatchSummary"]
