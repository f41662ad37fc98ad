# -*- coding: utf-8 -*-
"""Location: ./tests/unit/wpgateway/services/test_rpc_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for the JSON-RPC dispatcher.
"""

# Standard
import asyncio
from unittest.mock import AsyncMock, MagicMock

# Third-Party
import httpx
import orjson
import pytest

# First-Party
from wpgateway.config import settings
from wpgateway.db import UsageMonthly
from wpgateway.errors import ErrorCodes
from wpgateway.models import UsageStatus
from wpgateway.services.rpc_service import RpcDispatcher
from wpgateway.services.wordpress_client import WordPressClient
from wpgateway.tools.wordpress import build_registry


def body(method, params=None, request_id=1) -> bytes:
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return orjson.dumps(message)


def call(name, arguments=None, request_id=1) -> bytes:
    return body("tools/call", {"name": name, "arguments": arguments or {}}, request_id)


class Upstream:
    """Records upstream requests and answers with a canned handler."""

    def __init__(self, handler=None):
        self.requests = []
        self.handler = handler or (lambda request: httpx.Response(200, json=[{"id": 1, "title": {"rendered": "Hello"}}]))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def factory(self, connection):
        return WordPressClient(connection, timeout=5, transport=httpx.MockTransport(self))


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def recorder():
    return MagicMock()


@pytest.fixture
def dispatcher(resolver, recorder, upstream):
    return RpcDispatcher(build_registry(), resolver, recorder=recorder, client_factory=upstream.factory, request_timeout=5)


# --------------------------------------------------------------------------- #
# Envelope handling                                                           #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_parse_error(dispatcher):
    outcome = await dispatcher.handle(b"{not json", {})
    assert outcome.status_code == 200
    assert outcome.payload == {"jsonrpc": "2.0", "id": None, "error": {"code": ErrorCodes.PARSE_ERROR, "message": "Parse error"}}


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [b"[]", b"42", b'"x"'])
async def test_non_object_body_is_invalid_request(dispatcher, raw):
    outcome = await dispatcher.handle(raw, {})
    assert outcome.payload["error"]["code"] == ErrorCodes.INVALID_REQUEST
    assert outcome.payload["id"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message",
    [
        {"jsonrpc": "1.0", "id": 5, "method": "ping"},
        {"id": 5, "method": "ping"},
        {"jsonrpc": "2.0", "id": 5, "method": ""},
        {"jsonrpc": "2.0", "id": 5, "method": "ping", "params": [1, 2]},
    ],
)
async def test_invalid_envelope_echoes_id(dispatcher, message):
    outcome = await dispatcher.handle(orjson.dumps(message), {})
    assert outcome.payload["id"] == 5
    assert outcome.payload["error"]["code"] == ErrorCodes.INVALID_REQUEST
    assert "result" not in outcome.payload


@pytest.mark.asyncio
async def test_unknown_method(dispatcher):
    outcome = await dispatcher.handle(body("resources/list", request_id="abc"), {})
    assert outcome.payload["id"] == "abc"
    assert outcome.payload["error"]["code"] == ErrorCodes.METHOD_NOT_FOUND


# --------------------------------------------------------------------------- #
# Unauthenticated methods                                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_initialize_echoes_supported_version(dispatcher):
    outcome = await dispatcher.handle(body("initialize", {"protocolVersion": "2024-11-05"}), {})
    result = outcome.payload["result"]
    assert result["protocolVersion"] == "2024-11-05"
    assert result["capabilities"] == {"tools": {"listChanged": False}}
    assert result["serverInfo"]["name"] == settings.server_name


@pytest.mark.asyncio
async def test_initialize_unknown_version_gets_latest(dispatcher):
    outcome = await dispatcher.handle(body("initialize", {"protocolVersion": "1999-01-01"}), {})
    assert outcome.payload["result"]["protocolVersion"] == settings.latest_protocol_version


@pytest.mark.asyncio
async def test_ping(dispatcher):
    assert (await dispatcher.handle(body("ping"), {})).payload == {"jsonrpc": "2.0", "id": 1, "result": {}}


@pytest.mark.asyncio
async def test_tools_list_needs_no_key(dispatcher):
    outcome = await dispatcher.handle(body("tools/list"), {})
    names = [t["name"] for t in outcome.payload["result"]["tools"]]
    assert "wp_get_posts" in names
    assert all("inputSchema" in t for t in outcome.payload["result"]["tools"])


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["initialize", "ping", "tools/list"])
async def test_discovery_never_invokes_resolver(method, upstream):
    resolver_spy = MagicMock()
    resolver_spy.resolve = AsyncMock()
    dispatcher = RpcDispatcher(build_registry(), resolver_spy, client_factory=upstream.factory)
    outcome = await dispatcher.handle(body(method), {"Authorization": "Bearer not-even-a-key"})
    assert "result" in outcome.payload
    resolver_spy.resolve.assert_not_called()


# --------------------------------------------------------------------------- #
# tools/call                                                                  #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_call_without_key_is_401(dispatcher, upstream):
    outcome = await dispatcher.handle(call("wp_get_posts"), {})
    assert outcome.status_code == 401
    assert outcome.payload["error"]["code"] == ErrorCodes.NO_CREDENTIALS
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_malformed_params(dispatcher):
    outcome = await dispatcher.handle(body("tools/call", {"arguments": {}}), {})
    assert outcome.payload["error"]["code"] == ErrorCodes.INVALID_PARAMS


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher, auth_headers):
    outcome = await dispatcher.handle(call("wp_nope"), auth_headers)
    assert outcome.payload["error"]["code"] == ErrorCodes.TOOL_NOT_FOUND


@pytest.mark.asyncio
async def test_arguments_are_validated_before_auth(resolver, upstream):
    resolver_spy = MagicMock()
    resolver_spy.resolve = AsyncMock()
    dispatcher = RpcDispatcher(build_registry(), resolver_spy, client_factory=upstream.factory)
    outcome = await dispatcher.handle(call("wp_get_post", {"id": "not-a-number"}), {})
    assert outcome.payload["error"]["code"] == ErrorCodes.INVALID_PARAMS
    assert outcome.payload["error"]["data"]["errors"][0]["loc"] == ["id"]
    resolver_spy.resolve.assert_not_awaited()


@pytest.mark.asyncio
async def test_successful_call(dispatcher, recorder, upstream, tenant, auth_headers):
    outcome = await dispatcher.handle(call("wp_get_posts", {"per_page": 3}, request_id=42), auth_headers)

    assert outcome.status_code == 200
    assert outcome.payload["id"] == 42
    result = outcome.payload["result"]
    assert result["isError"] is False
    assert result["structuredContent"]["items"][0]["title"] == "Hello"
    assert outcome.headers["X-Usage-Used"] == "1"
    assert outcome.headers["X-RateLimit-Remaining"] == "9"

    assert str(upstream.requests[0].url).startswith("https://blog.example.com/wp-json/wp/v2/posts")
    event = recorder.record.call_args.args[0]
    assert event.status == UsageStatus.SUCCESS
    assert event.user_id == tenant.user.id
    assert event.api_key_id == tenant.key.id
    assert event.connection_id == tenant.connection.id


@pytest.mark.asyncio
async def test_upstream_error_is_recorded_as_error(resolver, recorder, auth_headers):
    upstream = Upstream(lambda request: httpx.Response(404, json={"code": "rest_post_invalid_id", "message": "Invalid post ID."}))
    dispatcher = RpcDispatcher(build_registry(), resolver, recorder=recorder, client_factory=upstream.factory)
    outcome = await dispatcher.handle(call("wp_get_post", {"id": 99}), auth_headers)

    assert outcome.status_code == 200
    error = outcome.payload["error"]
    assert error["code"] == ErrorCodes.UPSTREAM_ERROR
    assert error["data"] == {"status": 404, "wp_code": "rest_post_invalid_id"}
    assert outcome.headers["X-Usage-Used"] == "1"
    assert recorder.record.call_args.args[0].status == UsageStatus.ERROR


@pytest.mark.asyncio
async def test_upstream_timeout(resolver, auth_headers):
    def handler(request):
        raise httpx.ConnectTimeout("slow", request=request)

    dispatcher = RpcDispatcher(build_registry(), resolver, client_factory=Upstream(handler).factory)
    outcome = await dispatcher.handle(call("wp_get_posts"), auth_headers)
    assert outcome.payload["error"]["code"] == ErrorCodes.UPSTREAM_TIMEOUT


@pytest.mark.asyncio
async def test_gateway_budget_exhausted(resolver, recorder, auth_headers):
    class SlowClient:
        async def get(self, path, params=None):
            await asyncio.sleep(5)

    dispatcher = RpcDispatcher(build_registry(), resolver, recorder=recorder, client_factory=lambda conn: SlowClient(), request_timeout=0.05)
    outcome = await dispatcher.handle(call("wp_get_posts"), auth_headers)
    assert outcome.payload["error"]["code"] == ErrorCodes.GATEWAY_TIMEOUT
    assert recorder.record.call_args.args[0].status == UsageStatus.ERROR


@pytest.mark.asyncio
async def test_unexpected_handler_failure_is_internal_error_without_detail(resolver, auth_headers):
    class BrokenClient:
        async def get(self, path, params=None):
            raise KeyError("secret detail")

    dispatcher = RpcDispatcher(build_registry(), resolver, client_factory=lambda conn: BrokenClient())
    outcome = await dispatcher.handle(call("wp_get_posts"), auth_headers)
    assert outcome.payload["error"] == {"code": ErrorCodes.INTERNAL_ERROR, "message": "Internal error"}


@pytest.mark.asyncio
async def test_rate_limited_call_is_429_with_retry_after(dispatcher, recorder, upstream, auth_headers):
    for _ in range(10):
        assert "result" in (await dispatcher.handle(call("wp_get_posts"), auth_headers)).payload
    outcome = await dispatcher.handle(call("wp_get_posts"), auth_headers)

    assert outcome.status_code == 429
    assert outcome.headers["Retry-After"] == "30"
    assert outcome.payload["error"]["code"] == ErrorCodes.RATE_LIMITED
    assert outcome.payload["error"]["data"]["retry_after"] == 30
    assert len(upstream.requests) == 10
    assert recorder.record.call_args.args[0].status == UsageStatus.RATE_LIMITED


@pytest.mark.asyncio
async def test_quota_exceeded_call_is_429(dispatcher, recorder, db, tenant, auth_headers):
    db.add(UsageMonthly(user_id=tenant.user.id, year_month="2025-06", request_count=100))
    db.commit()
    outcome = await dispatcher.handle(call("wp_get_posts"), auth_headers)

    assert outcome.status_code == 429
    assert "Retry-After" in outcome.headers
    assert outcome.payload["error"]["code"] == ErrorCodes.QUOTA_EXCEEDED
    assert (outcome.payload["error"]["data"]["used"], outcome.payload["error"]["data"]["limit"]) == (100, 100)
    assert recorder.record.call_args.args[0].status == UsageStatus.QUOTA_EXCEEDED


@pytest.mark.asyncio
async def test_invalid_key_is_not_recorded(dispatcher, recorder):
    outcome = await dispatcher.handle(call("wp_get_posts"), {"X-API-Key": "wp_mcp_test_" + "9" * 32})
    assert outcome.status_code == 401
    assert outcome.payload["error"]["code"] == ErrorCodes.INVALID_API_KEY
    recorder.record.assert_not_called()
