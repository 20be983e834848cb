"""REST client for the job-queue API.

Contract:
- All methods are async (httpx.AsyncClient)
- Non-success responses raise ApiError; 401 raises UnauthorizedError after
  ending the session, which disconnects the push channel
- Reads return domain records from ``queuewire.models``; 204 returns None
- No sync logic here, only HTTP transport
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlsplit

import httpx

from queuewire._errors import ApiError, ProtocolError, UnauthorizedError
from queuewire.models import Group, Job, JobTemplate, Runner

if TYPE_CHECKING:
    from queuewire.api.session import Session
    from queuewire.config import SyncConfig


class ApiClient:
    """HTTP client for the queue server's ``/api/v1`` surface.

    Args:
        config: Supplies the base URL and request timeout.
        session: Token source and logout signal.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).

    """

    def __init__(
        self,
        config: SyncConfig,
        session: Session,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._session = session
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def session(self) -> Session:
        return self._session

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.api_url,
                timeout=self._config.request_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request with the current bearer token and decode JSON."""
        headers = {"Content-Type": "application/json"}
        token = self._session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._http().request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as exc:
            raise ApiError(0, f"Request failed: {exc}") from exc

        if response.status_code == 401:
            self._session.expire()
            raise UnauthorizedError

        if not response.is_success:
            raise ApiError(response.status_code, _error_message(response))

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            msg = f"{method} {path}: response is not JSON"
            raise ProtocolError(msg) from exc

    # -----------------------------------------------------------------
    # Auth
    # -----------------------------------------------------------------

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """POST /auth/login — stores the returned token on the session."""
        result = await self._request(
            "POST", "/auth/login", json={"username": username, "password": password}
        )
        self._session.set_token(result["token"])
        return result

    async def logout(self) -> None:
        try:
            await self._request("POST", "/auth/logout")
        finally:
            self._session.set_token(None)

    async def current_user(self) -> dict[str, Any]:
        return await self._request("GET", "/auth/me")

    # -----------------------------------------------------------------
    # Groups
    # -----------------------------------------------------------------

    async def get_groups(self) -> list[Group]:
        data = await self._request("GET", "/groups")
        return [Group.from_dict(item) for item in data or ()]

    async def get_group(self, group_id: str) -> Group:
        return Group.from_dict(await self._request("GET", f"/groups/{group_id}"))

    async def pause_group(self, group_id: str) -> None:
        await self._request("POST", f"/groups/{group_id}/pause")

    async def unpause_group(self, group_id: str) -> None:
        await self._request("POST", f"/groups/{group_id}/unpause")

    async def get_templates(self, group_id: str) -> list[JobTemplate]:
        data = await self._request("GET", f"/groups/{group_id}/templates")
        return [JobTemplate.from_dict(item) for item in data or ()]

    # -----------------------------------------------------------------
    # Queue / Jobs
    # -----------------------------------------------------------------

    async def get_queue(self, group_id: str) -> list[Job]:
        data = await self._request("GET", f"/groups/{group_id}/queue")
        return [Job.from_dict(item) for item in data or ()]

    async def get_history(
        self,
        group_id: str,
        *,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> dict[str, Any]:
        """GET /groups/{id}/history — one page: ``jobs``, ``has_more``, ``next_cursor``."""
        params: dict[str, Any] = {"limit": limit or self._config.history_limit}
        if cursor:
            params["cursor"] = cursor
        data = await self._request("GET", f"/groups/{group_id}/history", params=params)
        if isinstance(data, list):
            return {"jobs": [Job.from_dict(item) for item in data], "has_more": False}
        page = dict(data or {})
        page["jobs"] = [Job.from_dict(item) for item in page.get("jobs") or ()]
        return page

    async def get_job(self, job_id: str) -> Job:
        return Job.from_dict(await self._request("GET", f"/jobs/{job_id}"))

    async def create_job(
        self,
        group_id: str,
        template_id: str,
        *,
        inputs: dict[str, str] | None = None,
        auto_requeue: bool | None = None,
        requeue_limit: int | None = None,
    ) -> Job:
        body = {
            "template_id": template_id,
            "inputs": inputs,
            "auto_requeue": auto_requeue,
            "requeue_limit": requeue_limit,
        }
        return Job.from_dict(await self._request("POST", f"/groups/{group_id}/queue", json=body))

    async def update_job(self, job_id: str, inputs: dict[str, str]) -> Job:
        data = await self._request("PUT", f"/jobs/{job_id}", json={"inputs": inputs})
        return Job.from_dict(data)

    async def delete_job(self, job_id: str) -> None:
        await self._request("DELETE", f"/jobs/{job_id}")

    async def pause_job(self, job_id: str) -> Job:
        return Job.from_dict(await self._request("POST", f"/jobs/{job_id}/pause"))

    async def unpause_job(self, job_id: str) -> Job:
        return Job.from_dict(await self._request("POST", f"/jobs/{job_id}/unpause"))

    async def cancel_job(self, job_id: str) -> Job:
        return Job.from_dict(await self._request("POST", f"/jobs/{job_id}/cancel"))

    async def disable_auto_requeue(self, job_id: str) -> Job:
        return Job.from_dict(await self._request("POST", f"/jobs/{job_id}/disable-requeue"))

    async def update_auto_requeue(
        self,
        job_id: str,
        auto_requeue: bool,
        requeue_limit: int | None = None,
    ) -> Job:
        body = {"auto_requeue": auto_requeue, "requeue_limit": requeue_limit}
        return Job.from_dict(await self._request("PUT", f"/jobs/{job_id}/auto-requeue", json=body))

    async def reorder_queue(self, group_id: str, job_ids: list[str]) -> None:
        """PUT /groups/{id}/queue/reorder with the full ordered pending list."""
        await self._request("PUT", f"/groups/{group_id}/queue/reorder", json={"job_ids": job_ids})

    # -----------------------------------------------------------------
    # Runners / System
    # -----------------------------------------------------------------

    async def get_runners(self, group_id: str) -> list[Runner]:
        data = await self._request("GET", f"/groups/{group_id}/runners")
        return [Runner.from_dict(item) for item in data or ()]

    async def get_all_runners(self) -> list[Runner]:
        data = await self._request("GET", "/runners")
        return [Runner.from_dict(item) for item in data or ()]

    async def refresh_runners(self) -> None:
        await self._request("POST", "/runners/refresh")

    async def get_status(self) -> dict[str, Any]:
        return await self._request("GET", "/status")

    # -----------------------------------------------------------------
    # Push channel address
    # -----------------------------------------------------------------

    def websocket_url(self) -> str | None:
        """Push channel URL for the current token, or None when signed out.

        Resolved on every call so reconnects never reuse a stale token.
        """
        token = self._session.token
        if not token:
            return None
        parts = urlsplit(self._config.api_url)
        scheme = "wss" if self._config.is_secure else "ws"
        path = parts.path.rstrip("/")
        return f"{scheme}://{parts.netloc}{path}/ws?token={quote(token, safe='')}"


def _error_message(response: httpx.Response) -> str:
    """Extract ``{"error": ...}`` from an error body, falling back to the status."""
    fallback = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return fallback
