"""Optimistic reorder reconciler for pending jobs.

A drag gesture over the pending subset of a group's queue becomes exactly one
"set order" request carrying the full ordered ID list for that subset.  The
new order is shown immediately by writing it provisionally into the cached
queue; afterwards the queue key is invalidated whether the request worked or
not, and the next authoritative fetch replaces the guess either way.  No
rollback state is kept.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from queuewire._errors import ApiError
from queuewire.cache import queue_key
from queuewire.models import Job

if TYPE_CHECKING:
    from queuewire._types import JobStatus
    from queuewire.api.client import ApiClient
    from queuewire.cache import QueryCache
    from queuewire.observability.collector import SyncCollector

REORDERABLE_STATUS: JobStatus = "pending"


def array_move[T](items: Sequence[T], old_index: int, new_index: int) -> list[T]:
    """Return a copy of ``items`` with the element at ``old_index`` moved to ``new_index``."""
    result = list(items)
    if not result:
        return result
    item = result.pop(old_index)
    result.insert(new_index, item)
    return result


def reorderable_jobs(jobs: Iterable[Job], status: JobStatus = REORDERABLE_STATUS) -> list[Job]:
    """Jobs in the reorderable status, in queue position order."""
    return sorted((job for job in jobs if job.status == status), key=lambda job: job.position)


@dataclass(frozen=True, slots=True)
class ReorderOperation:
    """One resolved reorder gesture.

    Attributes:
        group_id: Group whose queue was reordered.
        ordered_ids: The full pending order that was sent.
        status: The status filter that defined the reorderable subset.
        ok: Whether the server accepted the request.
        error: Error text when it did not.

    """

    group_id: str
    ordered_ids: tuple[str, ...]
    status: JobStatus = REORDERABLE_STATUS
    ok: bool = True
    error: str = ""


class ReorderReconciler:
    """Applies local-first reorders and reconciles them through the cache.

    Args:
        api: Issues the reorder request.
        cache: Holds the provisional queue and is invalidated afterwards.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        api: ApiClient,
        cache: QueryCache,
        *,
        collector: SyncCollector | None = None,
    ) -> None:
        self._api = api
        self._cache = cache
        self._collector = collector

    async def move(
        self,
        group_id: str,
        jobs: Iterable[Job],
        old_index: int,
        new_index: int,
    ) -> ReorderOperation | None:
        """Move the pending job at ``old_index`` to ``new_index``.

        Indices address the pending subset only.  Returns None (and sends
        nothing) when the move is a no-op or out of range.
        """
        jobs = list(jobs)
        pending = reorderable_jobs(jobs)
        if old_index == new_index or not (0 <= old_index < len(pending)):
            return None
        if not (0 <= new_index < len(pending)):
            return None

        reordered = array_move(pending, old_index, new_index)
        ordered_ids = tuple(job.id for job in reordered)
        self._show_provisional(group_id, jobs, reordered)

        try:
            await self._api.reorder_queue(group_id, list(ordered_ids))
        except ApiError as exc:
            operation = ReorderOperation(group_id, ordered_ids, ok=False, error=exc.message)
        else:
            operation = ReorderOperation(group_id, ordered_ids)
        finally:
            self._cache.invalidate(queue_key(group_id), source="reorder")

        if self._collector is not None:
            self._collector.record_reorder(
                group_id, ordered_ids, ok=operation.ok, error=operation.error
            )
        return operation

    async def move_by_id(
        self,
        group_id: str,
        jobs: Iterable[Job],
        active_id: str,
        over_id: str | None,
    ) -> ReorderOperation | None:
        """Drag-end form: move ``active_id`` to where ``over_id`` sits."""
        if over_id is None or active_id == over_id:
            return None
        jobs = list(jobs)
        ids = [job.id for job in reorderable_jobs(jobs)]
        if active_id not in ids or over_id not in ids:
            return None
        return await self.move(group_id, jobs, ids.index(active_id), ids.index(over_id))

    def _show_provisional(self, group_id: str, jobs: list[Job], reordered: list[Job]) -> None:
        """Write the guessed order into the cached queue, if one is cached."""
        key = queue_key(group_id)
        if self._cache.get(key) is None:
            return
        others = [job for job in jobs if job.status != REORDERABLE_STATUS]
        self._cache.set_provisional(key, others + reordered)
