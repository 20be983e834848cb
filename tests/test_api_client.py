"""Tests for queuewire.api.client — REST calls over httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest
from conftest import FakeServer, job_dict

from queuewire._errors import ApiError, ProtocolError, UnauthorizedError
from queuewire.api.client import ApiClient
from queuewire.api.session import Session
from queuewire.config import SyncConfig
from queuewire.models import Group, Job, Runner


class TestRequests:
    """Headers, decoding, and error mapping."""

    @pytest.mark.asyncio
    async def test_bearer_header_sent(self, api: ApiClient, server: FakeServer) -> None:
        server.route("GET", "/groups", body=[])
        await api.get_groups()
        (request,) = server.requests
        assert request.headers["Authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_no_header_when_signed_out(self, server: FakeServer) -> None:
        server.route("GET", "/status", body={"ok": True})
        api = ApiClient(SyncConfig(), Session(), transport=server.transport)
        await api.get_status()
        assert "Authorization" not in server.requests[0].headers

    @pytest.mark.asyncio
    async def test_error_body_becomes_api_error(self, api: ApiClient, server: FakeServer) -> None:
        server.route("POST", "/jobs/j1/cancel", status=409, body={"error": "Job not running"})
        with pytest.raises(ApiError) as excinfo:
            await api.cancel_job("j1")
        assert excinfo.value.status_code == 409
        assert excinfo.value.message == "Job not running"

    @pytest.mark.asyncio
    async def test_error_without_body(self, api: ApiClient, server: FakeServer) -> None:
        server.route("GET", "/groups", status=502)
        with pytest.raises(ApiError, match="HTTP 502"):
            await api.get_groups()

    @pytest.mark.asyncio
    async def test_unauthorized_expires_session(
        self, api: ApiClient, server: FakeServer, session: Session,
    ) -> None:
        server.route("GET", "/groups", status=401, body={"error": "expired"})
        logged_out: list[bool] = []
        session.on_logout(lambda: logged_out.append(True))
        with pytest.raises(UnauthorizedError):
            await api.get_groups()
        assert session.token is None
        assert logged_out == [True]

    @pytest.mark.asyncio
    async def test_transport_failure_is_api_error(self, config: SyncConfig) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        api = ApiClient(config, Session("t"), transport=httpx.MockTransport(refuse))
        with pytest.raises(ApiError) as excinfo:
            await api.get_groups()
        assert excinfo.value.status_code == 0

    @pytest.mark.asyncio
    async def test_non_json_success_is_protocol_error(
        self, api: ApiClient, server: FakeServer,
    ) -> None:
        server.handle("GET", "/status", lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(ProtocolError, match="GET /status"):
            await api.get_status()

    @pytest.mark.asyncio
    async def test_no_content_returns_none(self, api: ApiClient, server: FakeServer) -> None:
        server.route("DELETE", "/jobs/j1", status=204)
        assert await api.delete_job("j1") is None

    @pytest.mark.asyncio
    async def test_close_is_repeatable(self, api: ApiClient, server: FakeServer) -> None:
        server.route("GET", "/groups", body=[])
        await api.get_groups()
        await api.close()
        await api.close()


class TestEndpoints:
    """Paths, bodies, and record decoding."""

    @pytest.mark.asyncio
    async def test_login_stores_token(self, server: FakeServer, config: SyncConfig) -> None:
        server.route("POST", "/auth/login", body={"token": "new-token", "user": {"id": 1}})
        session = Session()
        api = ApiClient(config, session, transport=server.transport)
        await api.login("admin", "pw")
        assert session.token == "new-token"
        assert json.loads(server.requests[0].content) == {"username": "admin", "password": "pw"}

    @pytest.mark.asyncio
    async def test_logout_clears_token_even_on_error(
        self, api: ApiClient, server: FakeServer, session: Session,
    ) -> None:
        server.route("POST", "/auth/logout", status=500)
        with pytest.raises(ApiError):
            await api.logout()
        assert session.token is None

    @pytest.mark.asyncio
    async def test_get_queue_decodes_jobs(self, api: ApiClient, server: FakeServer) -> None:
        server.route("GET", "/groups/g1/queue", body=[job_dict("a"), job_dict("b")])
        jobs = await api.get_queue("g1")
        assert [j.id for j in jobs] == ["a", "b"]
        assert all(isinstance(j, Job) for j in jobs)

    @pytest.mark.asyncio
    async def test_get_groups_decodes(self, api: ApiClient, server: FakeServer) -> None:
        server.route("GET", "/groups", body=[{"id": "g1", "name": "CI"}])
        (group,) = await api.get_groups()
        assert isinstance(group, Group)
        assert group.name == "CI"

    @pytest.mark.asyncio
    async def test_get_runners_decodes(self, api: ApiClient, server: FakeServer) -> None:
        server.route("GET", "/groups/g1/runners", body=[{"id": 3, "name": "r3"}])
        (runner,) = await api.get_runners("g1")
        assert isinstance(runner, Runner)
        assert runner.id == 3

    @pytest.mark.asyncio
    async def test_history_page(self, api: ApiClient, server: FakeServer) -> None:
        server.route(
            "GET", "/groups/g1/history",
            body={"jobs": [job_dict("a", status="completed")], "has_more": True,
                  "next_cursor": "c2"},
        )
        page = await api.get_history("g1", cursor="c1")
        assert [j.id for j in page["jobs"]] == ["a"]
        assert page["next_cursor"] == "c2"
        params = server.requests[0].url.params
        assert params["limit"] == "50"
        assert params["cursor"] == "c1"

    @pytest.mark.asyncio
    async def test_create_job_body(self, api: ApiClient, server: FakeServer) -> None:
        server.route("POST", "/groups/g1/queue", status=201, body=job_dict("new"))
        job = await api.create_job("g1", "t1", inputs={"x": "1"}, auto_requeue=True)
        assert job.id == "new"
        body = json.loads(server.requests[0].content)
        assert body["template_id"] == "t1"
        assert body["inputs"] == {"x": "1"}
        assert body["auto_requeue"] is True

    @pytest.mark.asyncio
    async def test_update_auto_requeue(self, api: ApiClient, server: FakeServer) -> None:
        server.route("PUT", "/jobs/j1/auto-requeue", body=job_dict("j1", auto_requeue=True))
        job = await api.update_auto_requeue("j1", True, 3)
        assert job.auto_requeue
        assert json.loads(server.requests[0].content) == {
            "auto_requeue": True, "requeue_limit": 3,
        }

    @pytest.mark.asyncio
    async def test_reorder_sends_full_list(self, api: ApiClient, server: FakeServer) -> None:
        server.route("PUT", "/groups/g1/queue/reorder", status=204)
        await api.reorder_queue("g1", ["a", "d", "b", "c"])
        assert json.loads(server.requests[0].content) == {"job_ids": ["a", "d", "b", "c"]}


class TestWebsocketUrl:
    """Push channel address derived from the REST base URL."""

    def test_signed_out_gives_none(self) -> None:
        assert ApiClient(SyncConfig(), Session()).websocket_url() is None

    def test_http_becomes_ws(self, api: ApiClient) -> None:
        assert api.websocket_url() == "ws://localhost:9090/api/v1/ws?token=secret-token"

    def test_https_becomes_wss_and_token_quoted(self) -> None:
        api = ApiClient(SyncConfig(api_url="https://q.example.com/api/v1"), Session("a/b c"))
        assert api.websocket_url() == "wss://q.example.com/api/v1/ws?token=a%2Fb%20c"

    def test_token_read_on_every_call(self, api: ApiClient, session: Session) -> None:
        session.set_token("rotated")
        assert api.websocket_url().endswith("token=rotated")  # type: ignore[union-attr]
