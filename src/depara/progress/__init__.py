"""Progress tracking for batch runs."""

from .models import COMPLETE_PERCENTAGE, FAILED_PERCENTAGE, ProgressSnapshot
from .store import ProgressStore

__all__ = ["ProgressSnapshot", "ProgressStore", "COMPLETE_PERCENTAGE", "FAILED_PERCENTAGE"]
