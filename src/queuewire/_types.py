"""Shared type definitions for queuewire."""

from collections.abc import Awaitable, Callable
from typing import Any, Literal

# Channel identifier on the push connection
type GroupID = str

# Named read-path key, e.g. ("queue", "group-x") or ("groups",)
type CacheKey = tuple[str, ...]

# Wire frame as decoded JSON
type Frame = dict[str, Any]

# One remote action of a bulk operation
type ItemAction = Callable[[str], Awaitable[Any]]

type JobStatus = Literal["pending", "triggered", "running", "completed", "failed", "cancelled"]

type RunnerStatus = Literal["online", "offline"]
