"""Tests for the MCP and HTTP front-ends."""
import json

import mcp.types as types
import pytest
from fastapi.testclient import TestClient

from lodestar_mcp.main import build_mcp_server, create_app, envelope_status_code
from lodestar_mcp.models import ToolEnvelope
from lodestar_mcp.tools import TOOL_CATALOG, ToolDispatcher

TOKEN = "abc123def456ghi789"


@pytest.fixture
def http(dispatcher: ToolDispatcher):
    with TestClient(create_app(dispatcher)) as client:
        yield client


# ---------------------------------------------------------------------------
# HTTP proxy
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_health(http: TestClient) -> None:
    response = http.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "lodestar-mcp", "authenticated": False}


@pytest.mark.unit
def test_list_tools(http: TestClient) -> None:
    response = http.get("/tools")

    assert response.status_code == 200
    tools = response.json()
    assert [t["name"] for t in tools] == [t.name for t in TOOL_CATALOG]
    counties = next(t for t in tools if t["name"] == "lodestar_get_counties")
    assert counties["inputSchema"]["required"] == ["state"]


@pytest.mark.unit
def test_describe_unknown_tool(http: TestClient) -> None:
    assert http.get("/tools/nonexistent_tool").status_code == 404


@pytest.mark.unit
def test_call_unknown_tool(http: TestClient, upstream) -> None:
    response = http.post("/tools/nonexistent_tool", json={})

    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "UnknownOperation"
    assert upstream.requests == []


@pytest.mark.unit
def test_call_before_login_is_401(http: TestClient) -> None:
    response = http.post("/tools/lodestar_get_counties", json={"state": "NJ"})

    assert response.status_code == 401
    body = response.json()
    assert body["ok"] is False
    assert body["error"]["message"] == "Tool execution failed: Not authenticated. Please login first."


@pytest.mark.unit
def test_invalid_arguments_are_422(http: TestClient) -> None:
    response = http.post("/tools/lodestar_get_counties", json={})

    assert response.status_code == 422
    assert response.json()["error"]["kind"] == "ValidationError"


@pytest.mark.unit
def test_non_object_body_is_a_422_envelope(http: TestClient, upstream) -> None:
    response = http.post("/tools/lodestar_get_counties", json=["NJ"])

    assert response.status_code == 422
    body = response.json()
    assert body["ok"] is False
    assert body["error"]["kind"] == "ValidationError"
    assert body["error"]["message"] == (
        "Invalid arguments for lodestar_get_counties: arguments must be a JSON object, got list"
    )
    assert upstream.requests == []


@pytest.mark.unit
def test_login_then_call(http: TestClient, upstream) -> None:
    upstream.login_ok(TOKEN)
    upstream.route("/counties.php", json={"status": 1, "counties": ["Hudson"]})

    login = http.post("/tools/lodestar_login", json={"username": "agent", "password": "secret"})
    counties = http.post("/tools/lodestar_get_counties", json={"state": "NJ"})
    session = http.get("/session")

    assert login.status_code == 200
    assert counties.status_code == 200
    assert counties.json() == {
        "ok": True,
        "result": {"status": 1, "counties": ["Hudson"]},
        "error": None,
    }
    assert session.json() == {
        "authenticated": True,
        "session_id": "abc123de...",
        "status": "Ready for API calls",
    }


@pytest.mark.unit
def test_upstream_failure_is_502(http: TestClient, upstream) -> None:
    upstream.login_ok(TOKEN)
    upstream.route("/sub_agents.php", status_code=500, text="boom")

    http.post("/tools/lodestar_login", json={"username": "agent", "password": "secret"})
    response = http.post("/tools/lodestar_get_sub_agents", json={"state": "NJ", "county": "Hudson"})

    assert response.status_code == 502
    assert response.json()["error"]["detail"].startswith("Get sub agents failed:")


@pytest.mark.unit
@pytest.mark.parametrize(
    "envelope,status",
    [
        (ToolEnvelope.success({}), 200),
        (ToolEnvelope.failure("UnknownOperation", "Unknown tool: x"), 404),
        (ToolEnvelope.failure("ValidationError", "Invalid arguments"), 422),
        (ToolEnvelope.failure("ExecutionError", "m", cause="AuthenticationError"), 401),
        (ToolEnvelope.failure("ExecutionError", "m", cause="ValidationError"), 400),
        (ToolEnvelope.failure("ExecutionError", "m", cause="UpstreamError"), 502),
    ],
)
def test_envelope_status_code(envelope: ToolEnvelope, status: int) -> None:
    assert envelope_status_code(envelope) == status


# ---------------------------------------------------------------------------
# MCP server
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mcp_list_tools_mirrors_catalog(dispatcher: ToolDispatcher) -> None:
    server = build_mcp_server(dispatcher)
    handler = server.request_handlers[types.ListToolsRequest]

    result = await handler(types.ListToolsRequest(method="tools/list"))

    tools = result.root.tools
    assert [t.name for t in tools] == [t.name for t in TOOL_CATALOG]
    geocode = next(t for t in tools if t.name == "lodestar_geocode")
    assert sorted(geocode.inputSchema["required"]) == ["address", "city", "county", "state"]
    assert geocode.annotations.readOnlyHint is True


def _call_request(name: str, arguments: dict) -> types.CallToolRequest:
    return types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mcp_call_unknown_tool_is_error(dispatcher: ToolDispatcher, upstream) -> None:
    server = build_mcp_server(dispatcher)
    handler = server.request_handlers[types.CallToolRequest]

    result = await handler(_call_request("nonexistent_tool", {}))

    assert result.root.isError is True
    assert result.root.content[0].text == "Unknown tool: nonexistent_tool"
    assert upstream.requests == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mcp_call_counties_returns_indented_json(dispatcher: ToolDispatcher, upstream) -> None:
    upstream.login_ok(TOKEN)
    upstream.route("/counties.php", json={"status": 1, "counties": ["Hudson"]})
    server = build_mcp_server(dispatcher)
    handler = server.request_handlers[types.CallToolRequest]

    login = await handler(_call_request("lodestar_login", {"username": "agent", "password": "secret"}))
    result = await handler(_call_request("lodestar_get_counties", {"state": "NJ"}))

    assert login.root.isError is False
    assert result.root.isError is False
    text = result.root.content[0].text
    assert json.loads(text) == {"status": 1, "counties": ["Hudson"]}
    assert "\n  " in text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mcp_call_invalid_arguments_is_error(dispatcher: ToolDispatcher, upstream) -> None:
    server = build_mcp_server(dispatcher)
    handler = server.request_handlers[types.CallToolRequest]

    result = await handler(_call_request("lodestar_get_counties", {}))

    assert result.root.isError is True
    assert result.root.content[0].text.startswith("Invalid arguments for lodestar_get_counties:")
    assert upstream.requests == []
