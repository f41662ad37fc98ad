# -*- coding: utf-8 -*-
"""Location: ./tests/unit/wpgateway/tools/test_wordpress_tools.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for the tool registry and the WordPress tool set.
"""

# Standard
from unittest.mock import AsyncMock

# Third-Party
from pydantic import BaseModel
import pytest

# First-Party
from wpgateway.errors import ErrorCodes, InvalidParamsError, ToolNotFoundError
from wpgateway.tools.registry import ToolRegistry
from wpgateway.tools.wordpress import build_registry

EXPECTED_TOOLS = {
    "wp_get_posts",
    "wp_get_post",
    "wp_create_post",
    "wp_update_post",
    "wp_delete_post",
    "wp_get_pages",
    "wp_get_categories",
    "wp_get_tags",
    "wp_get_comments",
    "wp_get_media",
}


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def client():
    return AsyncMock()


def test_catalogue(registry):
    tools = registry.list_tools()
    assert {t.name for t in tools} == EXPECTED_TOOLS
    listing = {t.name: t.to_dict() for t in tools}
    schema = listing["wp_get_post"]["inputSchema"]
    assert schema["type"] == "object"
    assert schema["required"] == ["id"]


def test_duplicate_registration_is_rejected():
    reg = ToolRegistry()

    class Args(BaseModel):
        pass

    reg.register("t", "d", Args, AsyncMock())
    with pytest.raises(ValueError):
        reg.register("t", "d", Args, AsyncMock())


def test_unknown_tool(registry):
    with pytest.raises(ToolNotFoundError) as exc:
        registry.validate_arguments("wp_nope", {})
    assert exc.value.code == ErrorCodes.TOOL_NOT_FOUND


@pytest.mark.parametrize(
    "name,arguments",
    [
        ("wp_get_post", {}),
        ("wp_get_post", {"id": "abc"}),
        ("wp_get_post", {"id": 0}),
        ("wp_get_posts", {"per_page": 500}),
        ("wp_get_posts", {"status": "published"}),
        ("wp_create_post", {"title": ""}),
        ("wp_get_posts", {"unexpected": True}),
    ],
)
def test_invalid_arguments(registry, name, arguments):
    with pytest.raises(InvalidParamsError) as exc:
        registry.validate_arguments(name, arguments)
    assert exc.value.code == ErrorCodes.INVALID_PARAMS
    assert exc.value.data["errors"]
    assert all(set(e) == {"loc", "msg"} for e in exc.value.data["errors"])


@pytest.mark.asyncio
async def test_list_posts_maps_params_and_trims(registry, client):
    client.get.return_value = [{"id": 3, "title": {"rendered": "Hello"}, "status": "publish", "content": {"rendered": "<p>x</p>"}}]
    args = registry.validate_arguments("wp_get_posts", {"per_page": 5, "categories": [1, 2], "status": "publish"})
    result = await registry.invoke("wp_get_posts", args, client)

    client.get.assert_awaited_once_with("/posts", params={"per_page": 5, "page": 1, "status": "publish", "categories": "1,2"})
    assert result.structured_content == {"items": [{"id": 3, "title": "Hello", "status": "publish", "date": None, "link": None, "excerpt": None}]}
    assert '"title": "Hello"' in result.content[0].text
    assert result.to_dict()["isError"] is False


@pytest.mark.asyncio
async def test_get_post_includes_content(registry, client):
    client.get.return_value = {"id": 7, "title": {"rendered": "T"}, "content": {"rendered": "<p>body</p>"}, "categories": [1]}
    result = await registry.invoke("wp_get_post", registry.validate_arguments("wp_get_post", {"id": 7}), client)
    client.get.assert_awaited_once_with("/posts/7")
    assert result.structured_content["content"] == "<p>body</p>"
    assert result.structured_content["tags"] == []


@pytest.mark.asyncio
async def test_create_post_defaults_to_draft(registry, client):
    client.post.return_value = {"id": 9, "title": {"rendered": "New"}, "status": "draft"}
    args = registry.validate_arguments("wp_create_post", {"title": "New", "content": "Body"})
    await registry.invoke("wp_create_post", args, client)
    client.post.assert_awaited_once_with("/posts", json={"title": "New", "content": "Body", "status": "draft"})


@pytest.mark.asyncio
async def test_update_post_sends_only_given_fields(registry, client):
    client.post.return_value = {"id": 9, "status": "publish"}
    args = registry.validate_arguments("wp_update_post", {"id": 9, "status": "publish"})
    await registry.invoke("wp_update_post", args, client)
    client.post.assert_awaited_once_with("/posts/9", json={"status": "publish"})


@pytest.mark.asyncio
@pytest.mark.parametrize("force,param", [(False, None), (True, "true")])
async def test_delete_post(registry, client, force, param):
    client.delete.return_value = {}
    args = registry.validate_arguments("wp_delete_post", {"id": 4, "force": force})
    result = await registry.invoke("wp_delete_post", args, client)
    client.delete.assert_awaited_once_with("/posts/4", params={"force": param})
    assert result.structured_content == {"id": 4, "deleted": True, "permanent": force}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "tool,path,row,expected_key",
    [
        ("wp_get_pages", "/pages", {"id": 1, "title": {"rendered": "About"}}, "title"),
        ("wp_get_categories", "/categories", {"id": 1, "name": "News", "slug": "news"}, "slug"),
        ("wp_get_tags", "/tags", {"id": 1, "name": "py", "slug": "py"}, "name"),
        ("wp_get_comments", "/comments", {"id": 1, "post": 3, "content": {"rendered": "hi"}}, "author_name"),
        ("wp_get_media", "/media", {"id": 1, "source_url": "https://x/y.png"}, "source_url"),
    ],
)
async def test_listing_tools(registry, client, tool, path, row, expected_key):
    client.get.return_value = [row]
    result = await registry.invoke(tool, registry.validate_arguments(tool, {}), client)
    assert client.get.await_args.args[0] == path
    assert expected_key in result.structured_content["items"][0]
