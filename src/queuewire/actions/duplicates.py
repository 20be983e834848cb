"""Duplicate-risk pre-filter for bulk "add to queue".

A template is at risk when the queue already holds an auto-requeue job made
from it: adding another would create a second self-perpetuating chain.  The
caller shows at-risk templates distinctly and, unless the user opts in,
leaves them out of the target set handed to the bulk executor.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from queuewire.models import Job


def auto_requeue_template_ids(queue: Iterable[Job]) -> frozenset[str]:
    """Templates that have at least one auto-requeue job in the queue."""
    return frozenset(job.template_id for job in queue if job.auto_requeue and job.template_id)


@dataclass(frozen=True, slots=True)
class PlannedItem:
    template_id: str
    at_risk: bool


@dataclass(frozen=True, slots=True)
class BulkAddPlan:
    """Selected templates split by duplicate risk, in selection order."""

    items: tuple[PlannedItem, ...]

    @property
    def safe(self) -> tuple[str, ...]:
        return tuple(item.template_id for item in self.items if not item.at_risk)

    @property
    def at_risk(self) -> tuple[str, ...]:
        return tuple(item.template_id for item in self.items if item.at_risk)

    @property
    def has_risk(self) -> bool:
        return any(item.at_risk for item in self.items)

    def targets(self, *, include_duplicates: bool = False) -> tuple[str, ...]:
        """The final target set: safe templates, plus at-risk ones if opted in."""
        if include_duplicates:
            return tuple(item.template_id for item in self.items)
        return self.safe

    def summary(self) -> str:
        """Confirmation prompt text for the plan."""
        total = len(self.items)
        if self.has_risk:
            return f"Add {len(self.safe)} of {total} template(s) to the queue?"
        return f"Add {total} template(s) to the queue?"


def plan_bulk_add(selected: Iterable[str], at_risk: Iterable[str]) -> BulkAddPlan:
    """Mark each selected template with whether it risks a duplicate."""
    risky = frozenset(at_risk)
    return BulkAddPlan(
        items=tuple(PlannedItem(tid, tid in risky) for tid in dict.fromkeys(selected))
    )
