"""Tests for queuewire.actions.bulk — concurrent fan-out with one invalidation."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeServer, job_dict

from queuewire.actions.bulk import BulkActions, BulkExecutor, BulkTask
from queuewire.actions.duplicates import plan_bulk_add
from queuewire.api.client import ApiClient
from queuewire.cache import QueryCache
from queuewire.models import JobTemplate
from queuewire.observability import BulkCompleted, CacheInvalidated, CallbackFailed, SyncCollector


def _invalidated(collector: SyncCollector) -> list[str]:
    return [e.key for e in reversed(collector.log.query(event_type=CacheInvalidated))]


class TestExecutor:
    """BulkExecutor.execute."""

    @pytest.mark.asyncio
    async def test_partial_failure_aggregates(self) -> None:
        """N targets, K failing: N-K successes, K failures, one invalidation per key."""
        collector = SyncCollector()
        executor = BulkExecutor(QueryCache(collector), collector=collector)
        failing = {"j2", "j4"}

        async def action(job_id: str) -> None:
            await asyncio.sleep(0)
            if job_id in failing:
                raise RuntimeError(f"cannot touch {job_id}")

        result = await executor.execute(
            ["j1", "j2", "j3", "j4", "j5"], action, "Pausing jobs", group_id="g1",
        )

        assert result.total == 5
        assert result.completed == 5
        assert result.success_count == 3
        assert result.failure_count == 2
        assert set(result.succeeded) == {"j1", "j3", "j5"}
        assert result.failed == {"j2": "cannot touch j2", "j4": "cannot touch j4"}
        assert _invalidated(collector) == ["queue:g1", "groups"]

    @pytest.mark.asyncio
    async def test_actions_run_concurrently(self) -> None:
        """Every action starts before any finishes."""
        started: list[str] = []
        release = asyncio.Event()

        async def action(job_id: str) -> None:
            started.append(job_id)
            await release.wait()

        executor = BulkExecutor(QueryCache())
        run = asyncio.ensure_future(executor.execute(["a", "b", "c"], action, "x", group_id="g"))
        await asyncio.sleep(0.01)
        assert sorted(started) == ["a", "b", "c"]
        assert not run.done()
        release.set()
        result = await run
        assert result.success_count == 3

    @pytest.mark.asyncio
    async def test_outcomes_in_completion_order(self) -> None:
        delays = {"slow": 0.03, "fast": 0.0, "mid": 0.01}

        async def action(job_id: str) -> None:
            await asyncio.sleep(delays[job_id])

        result = await BulkExecutor(QueryCache()).execute(
            ["slow", "fast", "mid"], action, "x", group_id="g",
        )
        assert list(result.outcomes) == ["fast", "mid", "slow"]

    @pytest.mark.asyncio
    async def test_progress_reported(self) -> None:
        snapshots: list[int] = []

        def on_progress(task: BulkTask) -> None:
            snapshots.append(task.completed)

        async def action(job_id: str) -> None:
            return None

        executor = BulkExecutor(QueryCache(), on_progress=on_progress)
        await executor.execute(["a", "b", "c"], action, "x", group_id="g")
        assert snapshots == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_raising_progress_callback_does_not_abort(self) -> None:
        """Every target still settles and the group is invalidated exactly once."""
        collector = SyncCollector()

        def on_progress(task: BulkTask) -> None:
            raise RuntimeError("display gone")

        async def action(job_id: str) -> None:
            await asyncio.sleep(0)

        executor = BulkExecutor(
            QueryCache(collector), on_progress=on_progress, collector=collector,
        )
        result = await executor.execute(["a", "b", "c"], action, "x", group_id="g")

        assert result.completed == result.total == 3
        assert result.success_count == 3
        assert _invalidated(collector) == ["queue:g", "groups"]
        failures = collector.log.query(event_type=CallbackFailed)
        assert len(failures) == 4
        assert {f.kind for f in failures} == {"bulk_progress"}

    @pytest.mark.asyncio
    async def test_duplicate_targets_collapse(self) -> None:
        calls: list[str] = []

        async def action(job_id: str) -> None:
            calls.append(job_id)

        result = await BulkExecutor(QueryCache()).execute(
            ["a", "b", "a"], action, "x", group_id="g",
        )
        assert sorted(calls) == ["a", "b"]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_empty_target_set(self) -> None:
        collector = SyncCollector()

        async def action(job_id: str) -> None:
            raise AssertionError("should not run")

        result = await BulkExecutor(QueryCache(collector), collector=collector).execute(
            [], action, "x", group_id="g",
        )
        assert result.total == 0
        assert _invalidated(collector) == []

    @pytest.mark.asyncio
    async def test_all_failures_still_invalidate(self) -> None:
        collector = SyncCollector()

        async def action(job_id: str) -> None:
            raise ValueError

        result = await BulkExecutor(QueryCache(collector), collector=collector).execute(
            ["a"], action, "x", group_id="g",
        )
        assert result.failed == {"a": "ValueError"}
        assert _invalidated(collector) == ["queue:g", "groups"]

    @pytest.mark.asyncio
    async def test_completion_recorded(self) -> None:
        collector = SyncCollector()

        async def action(job_id: str) -> None:
            return None

        await BulkExecutor(QueryCache(collector), collector=collector).execute(
            ["a", "b"], action, "Resuming jobs", group_id="g",
        )
        (event,) = collector.log.query(event_type=BulkCompleted)
        assert (event.label, event.total, event.succeeded, event.failed) == (
            "Resuming jobs", 2, 2, 0,
        )


class TestBulkActions:
    """Job actions bound to the REST client."""

    @pytest.mark.asyncio
    async def test_cancel_hits_each_job(self, api: ApiClient, server: FakeServer) -> None:
        server.route("POST", "/jobs/j1/cancel", body=job_dict("j1", status="cancelled"))
        server.route("POST", "/jobs/j2/cancel", status=409, body={"error": "already done"})
        actions = BulkActions(api, BulkExecutor(QueryCache()))

        result = await actions.cancel("g1", ["j1", "j2"])
        assert result.label == "Cancelling jobs"
        assert result.succeeded == ("j1",)
        assert result.failed == {"j2": "API error 409: already done"}

    @pytest.mark.asyncio
    async def test_remove(self, api: ApiClient, server: FakeServer) -> None:
        server.route("DELETE", "/jobs/j1", status=204)
        result = await BulkActions(api, BulkExecutor(QueryCache())).remove("g1", ["j1"])
        assert result.label == "Removing jobs"
        assert result.success_count == 1

    @pytest.mark.asyncio
    async def test_enable_auto_requeue(self, api: ApiClient, server: FakeServer) -> None:
        server.route("PUT", "/jobs/j1/auto-requeue", body=job_dict("j1", auto_requeue=True))
        result = await BulkActions(api, BulkExecutor(QueryCache())).enable_auto_requeue(
            "g1", ["j1"],
        )
        assert result.label == "Enabling auto-requeue"
        assert result.success_count == 1

    @pytest.mark.asyncio
    async def test_add_to_queue_skips_at_risk(self, api: ApiClient, server: FakeServer) -> None:
        server.route("POST", "/groups/g1/queue", status=201, body=job_dict("new"))
        templates = [JobTemplate(id="t1", group_id="g1", default_inputs={"env": "ci"})]
        plan = plan_bulk_add(["t1", "t2"], at_risk=["t2"])

        result = await BulkActions(api, BulkExecutor(QueryCache())).add_to_queue(
            "g1", plan, templates, auto_requeue=True,
        )

        assert result.label == "Adding to queue with auto-requeue"
        assert result.total == 1
        (request,) = server.calls("POST", "/groups/g1/queue")
        assert b'"template_id":"t1"' in request.content.replace(b" ", b"")
        assert b'"env":"ci"' in request.content.replace(b" ", b"")

    @pytest.mark.asyncio
    async def test_add_to_queue_with_duplicates(self, api: ApiClient, server: FakeServer) -> None:
        server.route("POST", "/groups/g1/queue", status=201, body=job_dict("new"))
        plan = plan_bulk_add(["t1", "t2"], at_risk=["t2"])

        result = await BulkActions(api, BulkExecutor(QueryCache())).add_to_queue(
            "g1", plan, include_duplicates=True,
        )
        assert result.label == "Adding to queue"
        assert result.total == 2
