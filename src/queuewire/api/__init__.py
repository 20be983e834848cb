"""REST surface — session token handling and the HTTP client."""

from queuewire.api.client import ApiClient
from queuewire.api.session import Session

__all__ = ["ApiClient", "Session"]
