"""Bulk operation executor — fan out one remote action over many targets.

Every target's action runs concurrently; completion order is whatever the
server produces.  Each settlement is recorded as it happens, a failing
target never cancels or blocks its siblings, and the call resolves only once
all of them have settled.  The owning group's queue and the group list are
invalidated once, after full settlement, not once per item.

Duplicate-risk filtering happens before ``execute`` is called (see
``queuewire.actions.duplicates``); the executor acts on exactly the targets
it is given.
"""

from __future__ import annotations

import asyncio
import sys
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from queuewire.cache import GROUPS_KEY, queue_key

if TYPE_CHECKING:
    from queuewire._types import ItemAction
    from queuewire.actions.duplicates import BulkAddPlan
    from queuewire.api.client import ApiClient
    from queuewire.cache import QueryCache
    from queuewire.models import JobTemplate
    from queuewire.observability.collector import SyncCollector


@dataclass(frozen=True, slots=True)
class BulkOutcome:
    """How one target's action settled."""

    status: Literal["success", "failure"]
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass(slots=True)
class BulkTask:
    """Progress of one bulk operation while it runs.

    Attributes:
        target_ids: The targets, in the order actions were started.
        label: Human label (e.g. ``"Pausing jobs"``).
        group_id: Group whose caches are invalidated afterwards.
        completed: Targets settled so far.
        outcomes: Settlement per target, filled in completion order.

    """

    target_ids: tuple[str, ...]
    label: str
    group_id: str
    completed: int = 0
    outcomes: dict[str, BulkOutcome] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.target_ids)

    @property
    def done(self) -> bool:
        return self.completed == self.total


@dataclass(frozen=True, slots=True)
class BulkResult:
    """Aggregate of a settled bulk operation."""

    label: str
    total: int
    completed: int
    outcomes: dict[str, BulkOutcome]

    @property
    def succeeded(self) -> tuple[str, ...]:
        return tuple(tid for tid, outcome in self.outcomes.items() if outcome.ok)

    @property
    def failed(self) -> dict[str, str]:
        return {tid: o.error for tid, o in self.outcomes.items() if not o.ok}

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return self.total - self.success_count


type ProgressCallback = Callable[[BulkTask], object]


class BulkExecutor:
    """Runs bulk actions and invalidates the owning group once they settle.

    Args:
        cache: The shared invalidation surface.
        on_progress: Called with the task after every settlement (and once at
            start with ``completed == 0``).
        collector: Optional observability collector.

    """

    def __init__(
        self,
        cache: QueryCache,
        *,
        on_progress: ProgressCallback | None = None,
        collector: SyncCollector | None = None,
    ) -> None:
        self._cache = cache
        self._on_progress = on_progress
        self._collector = collector

    async def execute(
        self,
        target_ids: Iterable[str],
        action: ItemAction,
        label: str,
        *,
        group_id: str,
    ) -> BulkResult:
        """Apply ``action`` to every target concurrently and wait for all of them."""
        task = BulkTask(target_ids=tuple(dict.fromkeys(target_ids)), label=label, group_id=group_id)
        if not task.target_ids:
            return BulkResult(label=label, total=0, completed=0, outcomes={})

        started = time.perf_counter()
        self._report(task)
        await asyncio.gather(*(self._run_one(task, tid, action) for tid in task.target_ids))

        self._cache.invalidate_many((queue_key(group_id), GROUPS_KEY), source="bulk")

        result = BulkResult(
            label=label,
            total=task.total,
            completed=task.completed,
            outcomes=dict(task.outcomes),
        )
        if self._collector is not None:
            self._collector.record_bulk(
                label,
                group_id,
                total=result.total,
                succeeded=result.success_count,
                failed=result.failure_count,
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        return result

    async def _run_one(self, task: BulkTask, target_id: str, action: ItemAction) -> None:
        try:
            await action(target_id)
        except Exception as exc:
            outcome = BulkOutcome("failure", str(exc) or type(exc).__name__)
        else:
            outcome = BulkOutcome("success")
        task.outcomes[target_id] = outcome
        task.completed += 1
        self._report(task)

    def _report(self, task: BulkTask) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(task)
        except Exception as exc:
            if self._collector is not None:
                self._collector.record_callback_failed("bulk_progress", exc)
            else:
                print(f"  Progress callback error ({task.label}): {exc}", file=sys.stderr)


class BulkActions:
    """The dashboard's bulk job actions, bound to one API client.

    Labels match what the progress display shows while each runs.

    """

    def __init__(self, api: ApiClient, executor: BulkExecutor) -> None:
        self._api = api
        self._executor = executor

    async def cancel(self, group_id: str, job_ids: Iterable[str]) -> BulkResult:
        return await self._executor.execute(
            job_ids, self._api.cancel_job, "Cancelling jobs", group_id=group_id
        )

    async def enable_auto_requeue(self, group_id: str, job_ids: Iterable[str]) -> BulkResult:
        async def action(job_id: str) -> object:
            return await self._api.update_auto_requeue(job_id, True, None)

        return await self._executor.execute(
            job_ids, action, "Enabling auto-requeue", group_id=group_id
        )

    async def disable_auto_requeue(self, group_id: str, job_ids: Iterable[str]) -> BulkResult:
        async def action(job_id: str) -> object:
            return await self._api.update_auto_requeue(job_id, False, None)

        return await self._executor.execute(
            job_ids, action, "Disabling auto-requeue", group_id=group_id
        )

    async def pause(self, group_id: str, job_ids: Iterable[str]) -> BulkResult:
        return await self._executor.execute(
            job_ids, self._api.pause_job, "Pausing jobs", group_id=group_id
        )

    async def resume(self, group_id: str, job_ids: Iterable[str]) -> BulkResult:
        return await self._executor.execute(
            job_ids, self._api.unpause_job, "Resuming jobs", group_id=group_id
        )

    async def remove(self, group_id: str, job_ids: Iterable[str]) -> BulkResult:
        return await self._executor.execute(
            job_ids, self._api.delete_job, "Removing jobs", group_id=group_id
        )

    async def add_to_queue(
        self,
        group_id: str,
        plan: BulkAddPlan,
        templates: Iterable[JobTemplate] = (),
        *,
        auto_requeue: bool = False,
        include_duplicates: bool = False,
    ) -> BulkResult:
        """Create one job per planned template, using each template's default inputs.

        At-risk templates are skipped unless ``include_duplicates`` is set.
        """
        defaults = {t.id: t.default_inputs for t in templates}
        label = "Adding to queue with auto-requeue" if auto_requeue else "Adding to queue"

        async def action(template_id: str) -> object:
            return await self._api.create_job(
                group_id,
                template_id,
                inputs=defaults.get(template_id),
                auto_requeue=auto_requeue,
            )

        return await self._executor.execute(
            plan.targets(include_duplicates=include_duplicates),
            action,
            label,
            group_id=group_id,
        )
