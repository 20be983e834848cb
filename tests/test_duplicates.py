"""Tests for queuewire.actions.duplicates — the bulk-add risk filter."""

from conftest import make_job

from queuewire.actions.duplicates import auto_requeue_template_ids, plan_bulk_add


class TestAutoRequeueTemplates:
    def test_only_auto_requeue_jobs_count(self) -> None:
        queue = [
            make_job("a", template_id="t1", auto_requeue=True),
            make_job("b", template_id="t2"),
            make_job("c", template_id="t3", auto_requeue=True, status="running"),
        ]
        assert auto_requeue_template_ids(queue) == frozenset({"t1", "t3"})

    def test_jobs_without_template_ignored(self) -> None:
        assert auto_requeue_template_ids([make_job("a", auto_requeue=True)]) == frozenset()


class TestPlan:
    """plan_bulk_add / BulkAddPlan."""

    def test_split_by_risk(self) -> None:
        plan = plan_bulk_add(["t1", "t2", "t3"], at_risk={"t2"})
        assert plan.safe == ("t1", "t3")
        assert plan.at_risk == ("t2",)
        assert plan.has_risk

    def test_targets_exclude_risk_by_default(self) -> None:
        plan = plan_bulk_add(["t1", "t2"], at_risk={"t2"})
        assert plan.targets() == ("t1",)
        assert plan.targets(include_duplicates=True) == ("t1", "t2")

    def test_selection_order_kept_and_deduplicated(self) -> None:
        plan = plan_bulk_add(["t3", "t1", "t3"], at_risk=())
        assert plan.targets() == ("t3", "t1")

    def test_summary(self) -> None:
        assert plan_bulk_add(["t1", "t2"], ()).summary() == "Add 2 template(s) to the queue?"
        assert (
            plan_bulk_add(["t1", "t2"], {"t1"}).summary()
            == "Add 1 of 2 template(s) to the queue?"
        )

    def test_all_at_risk_gives_empty_targets(self) -> None:
        plan = plan_bulk_add(["t1"], {"t1"})
        assert plan.targets() == ()
