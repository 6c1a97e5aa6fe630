"""Batch runs applying one action across a directory tree."""

from depara.operations.filters import matches_filters

from .models import BatchSummary
from .runner import BatchRunner, batch_size_for, percentage

__all__ = ["BatchRunner", "BatchSummary", "batch_size_for", "matches_filters", "percentage"]
