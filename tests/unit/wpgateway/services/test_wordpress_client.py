# -*- coding: utf-8 -*-
"""Location: ./tests/unit/wpgateway/services/test_wordpress_client.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for the upstream WordPress client using httpx.MockTransport.
"""

# Standard
import base64

# Third-Party
import httpx
from pydantic import SecretStr
import pytest

# First-Party
from wpgateway.errors import ErrorCodes, UpstreamError, UpstreamTimeoutError
from wpgateway.services.auth_service import DecryptedConnection
from wpgateway.services.wordpress_client import WordPressClient


@pytest.fixture
def connection():
    return DecryptedConnection(id="c1", site_url="https://blog.example.com/", username=SecretStr("admin"), password=SecretStr("abcd efgh ijkl mnop"))


def client_for(connection, handler, timeout=5.0):
    return WordPressClient(connection, timeout=timeout, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_request_carries_basic_auth_and_rest_prefix(connection):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json=[{"id": 1}])

    result = await client_for(connection, handler).get("/posts", params={"per_page": 5, "search": None})
    assert result == [{"id": 1}]
    assert seen["url"] == "https://blog.example.com/wp-json/wp/v2/posts?per_page=5"
    assert seen["auth"] == "Basic " + base64.b64encode(b"admin:abcdefghijklmnop").decode()


@pytest.mark.asyncio
async def test_post_sends_json_body(connection):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        return httpx.Response(201, content=request.content, headers={"Content-Type": "application/json"})

    assert await client_for(connection, handler).post("/posts", json={"title": "Hi"}) == {"title": "Hi"}


@pytest.mark.asyncio
async def test_http_error_maps_to_upstream_error_with_wp_code(connection):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"code": "rest_not_logged_in", "message": "You are not currently logged in."})

    with pytest.raises(UpstreamError) as exc:
        await client_for(connection, handler).get("/users/me")
    assert exc.value.code == ErrorCodes.UPSTREAM_ERROR
    assert exc.value.data == {"status": 401, "wp_code": "rest_not_logged_in"}
    assert "logged in" not in exc.value.message


@pytest.mark.asyncio
async def test_http_error_without_json_body(connection):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    with pytest.raises(UpstreamError) as exc:
        await client_for(connection, handler).get("/posts")
    assert exc.value.data == {"status": 502}


@pytest.mark.asyncio
async def test_timeout_is_distinguishable(connection):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamTimeoutError) as exc:
        await client_for(connection, handler).get("/posts")
    assert exc.value.code == ErrorCodes.UPSTREAM_TIMEOUT


@pytest.mark.asyncio
async def test_network_error_maps_to_upstream_error(connection):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamError) as exc:
        await client_for(connection, handler).get("/posts")
    assert not isinstance(exc.value, UpstreamTimeoutError)


@pytest.mark.asyncio
async def test_invalid_json_maps_to_upstream_error(connection):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not json")

    with pytest.raises(UpstreamError):
        await client_for(connection, handler).get("/posts")


@pytest.mark.asyncio
async def test_test_connection(connection):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/wp-json/wp/v2/users/me"
        return httpx.Response(200, json={"id": 1, "name": "Admin", "slug": "admin", "email": "a@b.c"})

    assert await client_for(connection, handler).test_connection() == {"id": 1, "name": "Admin", "slug": "admin"}
