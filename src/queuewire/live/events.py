"""Inbound push events — parsing and validation of raw frames.

Frames arrive as ``{"type": ..., "group_id"?: str, "payload"?: object}``.
``parse_frame`` turns one into a typed event or reports why it cannot.  An
event missing a required field is absent, never partially applied.  A
payload counts as present unless it is null, false, zero or the empty
string; empty objects and lists are present.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal

type AckKind = Literal["subscribed", "unsubscribed"]


@dataclass(frozen=True, slots=True)
class RunnerStatus:
    """A runner in ``group_id`` changed status."""

    group_id: str
    runner: dict[str, Any]


@dataclass(frozen=True, slots=True)
class QueueUpdate:
    """The queue of ``group_id`` changed."""

    group_id: str
    jobs: list[Any]


@dataclass(frozen=True, slots=True)
class JobState:
    """A job changed state. The job carries its own group."""

    job: dict[str, Any]

    @property
    def job_id(self) -> str:
        return str(self.job["id"])

    @property
    def group_id(self) -> str:
        return str(self.job["group_id"])


@dataclass(frozen=True, slots=True)
class Dispatch:
    """A job was handed to a runner."""

    job: dict[str, Any]

    @property
    def group_id(self) -> str:
        return str(self.job["group_id"])


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """The server reported an error on the channel."""

    message: str


@dataclass(frozen=True, slots=True)
class SystemStatus:
    """Periodic server health broadcast."""

    payload: Any


@dataclass(frozen=True, slots=True)
class ChannelAck:
    """The server confirmed a subscribe or unsubscribe."""

    kind: AckKind
    group_id: str | None


type InboundEvent = (
    RunnerStatus | QueueUpdate | JobState | Dispatch | ErrorEvent | SystemStatus | ChannelAck
)


@dataclass(frozen=True, slots=True)
class Rejected:
    """Why a frame produced no event.

    Attributes:
        reason: ``invalid_json``, ``not_object``, ``unknown_type`` or ``missing_field``.
        kind: The frame's type tag when it could be read.

    """

    reason: Literal["invalid_json", "not_object", "unknown_type", "missing_field"]
    kind: str = ""


def decode_frame(raw: str | bytes) -> InboundEvent | Rejected:
    """Decode and validate one frame, returning the event or the rejection."""
    try:
        message = json.loads(raw)
    except (ValueError, TypeError, RecursionError):
        return Rejected("invalid_json")

    if not isinstance(message, dict):
        return Rejected("not_object")

    kind = message.get("type")
    if not isinstance(kind, str) or kind not in _BUILDERS:
        return Rejected("unknown_type", kind if isinstance(kind, str) else "")

    event = _BUILDERS[kind](_channel(message), message.get("payload"))
    if event is None:
        return Rejected("missing_field", kind)
    return event


def parse_frame(raw: str | bytes) -> InboundEvent | None:
    """Parse one frame; None when it is invalid, unknown or incomplete."""
    result = decode_frame(raw)
    return None if isinstance(result, Rejected) else result


def _channel(message: dict[str, Any]) -> str | None:
    group_id = message.get("group_id")
    if isinstance(group_id, str) and group_id:
        return group_id
    return None


def _has_id(job: Any, *fields: str) -> bool:
    if not isinstance(job, dict):
        return False
    return all(job.get(name) not in (None, "") for name in fields)


def _runner_status(group_id: str | None, payload: Any) -> RunnerStatus | None:
    if group_id is None or not isinstance(payload, dict):
        return None
    return RunnerStatus(group_id=group_id, runner=payload)


def _queue_update(group_id: str | None, payload: Any) -> QueueUpdate | None:
    if group_id is None or not isinstance(payload, list):
        return None
    return QueueUpdate(group_id=group_id, jobs=payload)


def _job_state(group_id: str | None, payload: Any) -> JobState | None:
    if not _has_id(payload, "id", "group_id"):
        return None
    return JobState(job=payload)


def _dispatch(group_id: str | None, payload: Any) -> Dispatch | None:
    if not _has_id(payload, "group_id"):
        return None
    return Dispatch(job=payload)


def _error(group_id: str | None, payload: Any) -> ErrorEvent | None:
    if payload is None or payload is False or payload == "" or payload == 0:
        return None
    return ErrorEvent(message=payload if isinstance(payload, str) else json.dumps(payload))


def _system_status(group_id: str | None, payload: Any) -> SystemStatus:
    return SystemStatus(payload=payload)


def _subscribed(group_id: str | None, payload: Any) -> ChannelAck:
    return ChannelAck(kind="subscribed", group_id=group_id)


def _unsubscribed(group_id: str | None, payload: Any) -> ChannelAck:
    return ChannelAck(kind="unsubscribed", group_id=group_id)


_BUILDERS = {
    "runner_status": _runner_status,
    "queue_update": _queue_update,
    "job_state": _job_state,
    "dispatch": _dispatch,
    "error": _error,
    "system_status": _system_status,
    "subscribed": _subscribed,
    "unsubscribed": _unsubscribed,
}
