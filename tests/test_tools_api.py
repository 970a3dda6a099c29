"""JSON-RPC transport and tool dispatch."""

from __future__ import annotations

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from event_intel.config import Settings
from event_intel.main import create_app

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def app_and_client(engine, seeded_events, api_tokens, tmp_path):
    settings = Settings(
        environment="test",
        database_url=str(engine.url),
        audit_log_file=str(tmp_path / "audit.log"),
        embedding_dimensions=64,
        _env_file=None,
    )
    app = create_app(settings)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield app, c


async def _rpc(client, method, params=None, request_id=1):
    body = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        body["params"] = params
    res = await client.post("/mcp", json=body)
    assert res.status_code == 200
    return res.json()


async def _call(client, name, arguments, token=None):
    params = {"name": name, "arguments": arguments}
    if token is not None:
        params["_meta"] = {"authToken": token}
    return await _rpc(client, "tools/call", params)


def _payload(response) -> dict:
    return json.loads(response["result"]["content"][0]["text"])


class TestProtocol:
    async def test_initialize(self, app_and_client):
        _, client = app_and_client
        res = await _rpc(client, "initialize", {})
        assert res["result"]["serverInfo"]["name"] == "platform-event-intelligence"

    async def test_tools_list_uses_camel_case_schemas(self, app_and_client):
        _, client = app_and_client
        tools = {t["name"]: t for t in (await _rpc(client, "tools/list"))["result"]["tools"]}
        assert set(tools) == {"search_events", "get_event_details", "get_service_timeline", "get_impact_summary"}
        assert "useSemanticSearch" in tools["search_events"]["inputSchema"]["properties"]
        assert tools["get_impact_summary"]["inputSchema"]["properties"]["maxEvents"]["maximum"] == 100

    async def test_unknown_method(self, app_and_client):
        _, client = app_and_client
        res = await _rpc(client, "resources/list")
        assert res["error"]["code"] == -32601

    async def test_unknown_tool(self, app_and_client):
        _, client = app_and_client
        res = await _call(client, "drop_events", {})
        assert res["error"]["code"] == -32602

    async def test_invalid_arguments(self, app_and_client, api_tokens):
        _, client = app_and_client
        res = await _call(client, "search_events", {"query": "db", "limit": 500}, api_tokens["all"])
        assert res["error"]["code"] == -32602
        res = await _call(client, "get_event_details", {"eventId": "not-a-uuid"}, api_tokens["all"])
        assert res["error"]["code"] == -32602

    async def test_bad_date_is_invalid_params(self, app_and_client, api_tokens):
        _, client = app_and_client
        res = await _call(
            client, "get_service_timeline", {"serviceId": "svc-a", "startDate": "yesterday"}, api_tokens["all"]
        )
        assert res["error"]["code"] == -32602

    async def test_health(self, app_and_client):
        _, client = app_and_client
        res = await client.get("/health")
        assert res.status_code == 200
        assert res.json()["database"] == "ok"
        assert "X-Request-ID" in res.headers


@pytest.mark.security
class TestToolCalls:
    async def test_search_is_scoped_to_token(self, app_and_client, api_tokens, seeded_events):
        _, client = app_and_client
        payload = _payload(
            await _call(
                client,
                "search_events",
                {"query": "database", "useSemanticSearch": False},
                api_tokens["svc_a"],
            )
        )
        assert payload["searchType"] == "keyword"
        assert payload["resultCount"] == 1
        assert payload["results"][0]["service"] == "svc-a"
        assert "relevanceScore" not in payload["results"][0]

    async def test_empty_query_is_accepted(self, app_and_client, api_tokens, seeded_events):
        _, client = app_and_client
        res = await _call(client, "search_events", {"query": "", "useSemanticSearch": False}, api_tokens["svc_a"])
        assert "error" not in res
        payload = _payload(res)
        assert payload["resultCount"] == 3
        assert {item["service"] for item in payload["results"]} == {"svc-a"}

    async def test_semantic_search_formats_scores(self, app_and_client, api_tokens, seeded_events):
        _, client = app_and_client
        payload = _payload(await _call(client, "search_events", {"query": "deploy", "limit": 3}, api_tokens["all"]))
        assert payload["searchType"] == "semantic"
        assert payload["resultCount"] == 3
        for item in payload["results"]:
            score = item["relevanceScore"]
            assert isinstance(score, str)
            assert len(score.split(".")[1]) == 3

    async def test_details_not_found_for_other_tenant(self, app_and_client, api_tokens, seeded_events):
        _, client = app_and_client
        b_event = seeded_events["b_incident"]
        denied = _payload(await _call(client, "get_event_details", {"eventId": b_event.id}, api_tokens["svc_a"]))
        assert denied == {"error": "Event not found"}

        allowed = _payload(await _call(client, "get_event_details", {"eventId": b_event.id}, api_tokens["svc_b"]))
        assert allowed["id"] == b_event.id
        assert allowed["service"] == "svc-b"
        assert allowed["occurredAt"].endswith("Z")

    async def test_missing_token_sees_nothing(self, app_and_client, seeded_events):
        _, client = app_and_client
        payload = _payload(await _call(client, "get_service_timeline", {"serviceId": "svc-a"}))
        assert payload == {"service": "svc-a", "eventCount": 0, "timeline": []}

    async def test_expired_token_sees_nothing(self, app_and_client, api_tokens, seeded_events):
        _, client = app_and_client
        payload = _payload(await _call(client, "get_service_timeline", {"serviceId": "svc-a"}, api_tokens["expired"]))
        assert payload["eventCount"] == 0

    async def test_metadata_key_is_accepted(self, app_and_client, api_tokens, seeded_events):
        _, client = app_and_client
        res = await _rpc(
            client,
            "tools/call",
            {
                "name": "get_service_timeline",
                "arguments": {"serviceId": "svc-a", "limit": 2},
                "metadata": {"authToken": api_tokens["svc_a"]},
            },
        )
        assert _payload(res)["eventCount"] == 2

    async def test_impact_summary(self, app_and_client, api_tokens, seeded_events):
        _, client = app_and_client
        payload = _payload(await _call(client, "get_impact_summary", {"serviceId": "svc-a"}, api_tokens["svc_a"]))
        assert payload["timeRange"] == {"start": "beginning", "end": "now"}
        assert payload["summary"].startswith("Impact Summary for svc-a")

    async def test_audit_file_receives_entries(self, app_and_client, api_tokens, seeded_events, tmp_path):
        _, client = app_and_client
        await _call(client, "get_service_timeline", {"serviceId": "svc-b"}, api_tokens["svc_a"])
        lines = (tmp_path / "audit.log").read_text().splitlines()
        actions = [json.loads(line)["action"] for line in lines]
        assert actions[-2:] == ["authentication_success", "authorization_denied"]
