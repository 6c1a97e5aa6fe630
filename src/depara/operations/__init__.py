"""Single-file move, copy, and delete operations."""

from .executor import OperationExecutor, coerce_options, decorate_name, new_operation_id
from .models import ACTIONS, Action, EngineModel, FileFilters, OperationOptions, OperationResult

__all__ = [
    "ACTIONS",
    "Action",
    "EngineModel",
    "FileFilters",
    "OperationExecutor",
    "OperationOptions",
    "OperationResult",
    "coerce_options",
    "decorate_name",
    "new_operation_id",
]
