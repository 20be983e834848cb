"""Queuewire error hierarchy.

All queuewire-specific errors inherit from QueuewireError for easy catching.
"""


class QueuewireError(Exception):
    """Base error for all queuewire operations."""


class ConfigError(QueuewireError):
    """Invalid or missing configuration."""


class ProtocolError(QueuewireError):
    """A server response could not be interpreted."""


class ApiError(QueuewireError):
    """The REST API answered with a non-success status.

    Attributes:
        status_code: HTTP status code (0 when the request never got a response).
        message: Server-provided error text, or ``HTTP <status>``.

    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"API error {status_code}: {message}")


class UnauthorizedError(ApiError):
    """The API rejected the session token (HTTP 401)."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(401, message)
