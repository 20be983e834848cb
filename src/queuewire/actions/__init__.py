"""User-initiated actions — bulk operations and optimistic reordering.

Both converge on the same QueryCache invalidation surface as push events.
"""

from queuewire.actions.bulk import BulkActions, BulkExecutor, BulkOutcome, BulkResult, BulkTask
from queuewire.actions.duplicates import BulkAddPlan, auto_requeue_template_ids, plan_bulk_add
from queuewire.actions.modes import InteractionModes
from queuewire.actions.reorder import (
    ReorderOperation,
    ReorderReconciler,
    array_move,
    reorderable_jobs,
)

__all__ = [
    "BulkActions",
    "BulkAddPlan",
    "BulkExecutor",
    "BulkOutcome",
    "BulkResult",
    "BulkTask",
    "InteractionModes",
    "ReorderOperation",
    "ReorderReconciler",
    "array_move",
    "auto_requeue_template_ids",
    "plan_bulk_add",
    "reorderable_jobs",
]
