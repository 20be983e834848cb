"""Session — the bearer token and the global logout signal.

The token is held in memory and optionally persisted to a file so a restarted
client picks it up again.  It is always read through ``token`` at the moment
it is needed, never captured, so a re-authenticated session is seen by the
next connect attempt.

Any component may subscribe to logout.  The REST client calls ``expire()`` on
HTTP 401; the live connection subscribes and disconnects instead of
reconnecting with a token the server already rejected.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

type LogoutListener = Callable[[], None]


class Session:
    """Holds the current token and fans out the logout signal.

    Args:
        token: Initial token, if already known.
        token_path: File to persist the token to. Read lazily when no token
            is held in memory.

    """

    __slots__ = ("_listeners", "_token", "_token_path")

    def __init__(self, token: str | None = None, *, token_path: Path | None = None) -> None:
        self._token = token or None
        self._token_path = token_path
        self._listeners: list[LogoutListener] = []

    @property
    def token(self) -> str | None:
        """The current token, or None when signed out."""
        if self._token is None and self._token_path is not None:
            try:
                stored = self._token_path.read_text(encoding="utf-8").strip()
            except FileNotFoundError:
                stored = ""
            self._token = stored or None
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def set_token(self, token: str | None) -> None:
        """Replace the token, persisting or removing the token file."""
        self._token = token or None
        if self._token_path is None:
            return
        if self._token is None:
            self._token_path.unlink(missing_ok=True)
        else:
            self._token_path.parent.mkdir(parents=True, exist_ok=True)
            self._token_path.write_text(self._token, encoding="utf-8")

    def on_logout(self, listener: LogoutListener) -> Callable[[], None]:
        """Register ``listener`` for session end. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def expire(self) -> None:
        """End the session: drop the token and notify every listener."""
        self.set_token(None)
        for listener in tuple(self._listeners):
            listener()
