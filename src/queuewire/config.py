"""Queuewire configuration.

SyncConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Configuration for a live-sync client.

    Attributes:
        api_url: REST base URL (e.g. ``http://localhost:9090/api/v1``).
            The push channel address is derived from it.
        reconnect_delay: Fixed delay in seconds before a reconnect attempt.
        request_timeout: Timeout in seconds for REST calls.
        history_limit: Page size for job history requests.
        token_path: Optional file the session token is persisted to.
        verbose: Echo observability events to stderr.
        max_events: Capacity of the in-memory event log.

    """

    api_url: str = "http://localhost:9090/api/v1"
    reconnect_delay: float = 3.0
    request_timeout: float = 30.0
    history_limit: int = 50
    token_path: Path | None = None
    verbose: bool = False
    max_events: int = 10_000

    def __post_init__(self) -> None:
        # Trailing slashes would double up when paths are appended.
        if self.api_url.endswith("/"):
            object.__setattr__(self, "api_url", self.api_url.rstrip("/"))
        if self.token_path is not None and not isinstance(self.token_path, Path):
            object.__setattr__(self, "token_path", Path(self.token_path))

    @property
    def is_secure(self) -> bool:
        """Whether the API is served over TLS (selects ``wss://``)."""
        return self.api_url.startswith("https://")
