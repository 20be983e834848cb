"""Domain records mirrored from the job-queue server.

The server is the authority for every field here; these records are
read-only snapshots built from REST responses and push payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from queuewire._types import JobStatus, RunnerStatus


@dataclass(frozen=True, slots=True)
class Job:
    """A queued, running or finished job in a group."""

    id: str
    group_id: str
    template_id: str = ""
    status: JobStatus = "pending"
    position: int = 0
    priority: int = 0
    paused: bool = False
    auto_requeue: bool = False
    requeue_limit: int | None = None
    requeue_count: int = 0
    inputs: dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    runner_name: str = ""
    run_url: str = ""
    error_message: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        return cls(
            id=str(data["id"]),
            group_id=str(data["group_id"]),
            template_id=str(data.get("template_id") or ""),
            status=data.get("status") or "pending",
            position=int(data.get("position") or 0),
            priority=int(data.get("priority") or 0),
            paused=bool(data.get("paused", False)),
            auto_requeue=bool(data.get("auto_requeue", False)),
            requeue_limit=data.get("requeue_limit"),
            requeue_count=int(data.get("requeue_count") or 0),
            inputs=dict(data.get("inputs") or {}),
            runner_name=data.get("runner_name") or "",
            run_url=data.get("run_url") or "",
            error_message=data.get("error_message") or "",
        )

    @property
    def is_active(self) -> bool:
        """Dispatched to a runner but not finished."""
        return self.status in ("triggered", "running")


@dataclass(frozen=True, slots=True)
class Runner:
    """A self-hosted runner serving one or more groups."""

    id: int
    name: str
    status: RunnerStatus = "offline"
    busy: bool = False
    labels: tuple[str, ...] = ()
    os: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Runner:
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            status=data.get("status") or "offline",
            busy=bool(data.get("busy", False)),
            labels=tuple(data.get("labels") or ()),
            os=data.get("os") or "",
        )

    @property
    def is_idle(self) -> bool:
        return self.status == "online" and not self.busy


@dataclass(frozen=True, slots=True)
class JobTemplate:
    """A workflow template jobs are created from."""

    id: str
    group_id: str
    name: str = ""
    default_inputs: dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    labels: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobTemplate:
        return cls(
            id=str(data["id"]),
            group_id=str(data["group_id"]),
            name=data.get("name") or "",
            default_inputs=dict(data.get("default_inputs") or {}),
            labels=dict(data.get("labels") or {}),
        )


@dataclass(frozen=True, slots=True)
class Group:
    """A runner group with its queue statistics."""

    id: str
    name: str = ""
    description: str = ""
    enabled: bool = True
    paused: bool = False
    queued_jobs: int = 0
    running_jobs: int = 0
    idle_runners: int = 0
    busy_runners: int = 0
    total_runners: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Group:
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            enabled=bool(data.get("enabled", True)),
            paused=bool(data.get("paused", False)),
            queued_jobs=int(data.get("queued_jobs") or 0),
            running_jobs=int(data.get("running_jobs") or 0),
            idle_runners=int(data.get("idle_runners") or 0),
            busy_runners=int(data.get("busy_runners") or 0),
            total_runners=int(data.get("total_runners") or 0),
        )
