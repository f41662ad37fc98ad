# -*- coding: utf-8 -*-
"""Location: ./wpgateway/tools/wordpress.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

WordPress content tools.

Posts (list, get, create, update, delete), pages, categories, tags, comments
and media listing. Each tool is a thin mapping from a validated argument
model onto one REST call; responses are trimmed to the fields an assistant
needs.

Examples:
    >>> registry = build_registry()
    >>> "wp_get_posts" in registry and "wp_delete_post" in registry
    True
"""

# Standard
from typing import Any, Dict, List, Literal, Optional

# Third-Party
from pydantic import BaseModel, ConfigDict, Field

# First-Party
from wpgateway.services.wordpress_client import WordPressClient
from wpgateway.tools.registry import ToolRegistry

PostStatus = Literal["publish", "draft", "pending", "private", "future"]


class _Args(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ListArgs(_Args):
    """Common listing arguments."""

    per_page: int = Field(10, ge=1, le=100, description="Items per page")
    page: int = Field(1, ge=1, description="Page number")
    search: Optional[str] = Field(None, max_length=200, description="Search term")


class ListPostsArgs(ListArgs):
    status: Optional[PostStatus] = None
    categories: Optional[List[int]] = None


class PostIdArgs(_Args):
    id: int = Field(..., gt=0, description="Post id")


class CreatePostArgs(_Args):
    title: str = Field(..., min_length=1)
    content: str = ""
    excerpt: Optional[str] = None
    status: PostStatus = "draft"
    categories: Optional[List[int]] = None
    tags: Optional[List[int]] = None


class UpdatePostArgs(_Args):
    id: int = Field(..., gt=0)
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    status: Optional[PostStatus] = None
    categories: Optional[List[int]] = None
    tags: Optional[List[int]] = None


class DeletePostArgs(PostIdArgs):
    force: bool = Field(False, description="Bypass trash and delete permanently")


class ListCommentsArgs(ListArgs):
    post: Optional[int] = Field(None, gt=0)
    status: Literal["approve", "hold", "spam", "trash"] = "approve"


class ListMediaArgs(ListArgs):
    media_type: Optional[Literal["image", "video", "audio", "application"]] = None


def _rendered(value: Any) -> Any:
    return value.get("rendered") if isinstance(value, dict) else value


def _summarize_post(post: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the fields of a post or page worth returning.

    Args:
        post: Raw REST object.

    Returns:
        Dict[str, Any]: Trimmed object.

    Examples:
        >>> _summarize_post({"id": 1, "title": {"rendered": "Hi"}, "status": "publish", "extra": 1})
        {'id': 1, 'title': 'Hi', 'status': 'publish', 'date': None, 'link': None, 'excerpt': None}
    """
    return {
        "id": post.get("id"),
        "title": _rendered(post.get("title")),
        "status": post.get("status"),
        "date": post.get("date"),
        "link": post.get("link"),
        "excerpt": _rendered(post.get("excerpt")),
    }


def _args_to_body(args: BaseModel, exclude: Optional[set] = None) -> Dict[str, Any]:
    return args.model_dump(exclude_none=True, exclude=exclude or set())


def build_registry() -> ToolRegistry:
    """Create a registry holding every WordPress tool.

    Returns:
        ToolRegistry: The populated registry.
    """
    registry = ToolRegistry()

    @registry.tool("wp_get_posts", "List posts, optionally filtered by status, category or search term", ListPostsArgs)
    async def list_posts(args: ListPostsArgs, client: WordPressClient) -> List[Dict[str, Any]]:
        params = _args_to_body(args, exclude={"categories"})
        if args.categories:
            params["categories"] = ",".join(str(c) for c in args.categories)
        return [_summarize_post(p) for p in await client.get("/posts", params=params)]

    @registry.tool("wp_get_post", "Get a single post including its content", PostIdArgs)
    async def get_post(args: PostIdArgs, client: WordPressClient) -> Dict[str, Any]:
        post = await client.get(f"/posts/{args.id}")
        return {**_summarize_post(post), "content": _rendered(post.get("content")), "categories": post.get("categories", []), "tags": post.get("tags", [])}

    @registry.tool("wp_create_post", "Create a post (draft by default)", CreatePostArgs)
    async def create_post(args: CreatePostArgs, client: WordPressClient) -> Dict[str, Any]:
        return _summarize_post(await client.post("/posts", json=_args_to_body(args)))

    @registry.tool("wp_update_post", "Update fields of an existing post", UpdatePostArgs)
    async def update_post(args: UpdatePostArgs, client: WordPressClient) -> Dict[str, Any]:
        return _summarize_post(await client.post(f"/posts/{args.id}", json=_args_to_body(args, exclude={"id"})))

    @registry.tool("wp_delete_post", "Move a post to the trash, or delete it permanently with force", DeletePostArgs)
    async def delete_post(args: DeletePostArgs, client: WordPressClient) -> Dict[str, Any]:
        await client.delete(f"/posts/{args.id}", params={"force": "true" if args.force else None})
        return {"id": args.id, "deleted": True, "permanent": args.force}

    @registry.tool("wp_get_pages", "List pages", ListArgs)
    async def list_pages(args: ListArgs, client: WordPressClient) -> List[Dict[str, Any]]:
        return [_summarize_post(p) for p in await client.get("/pages", params=_args_to_body(args))]

    @registry.tool("wp_get_categories", "List categories", ListArgs)
    async def list_categories(args: ListArgs, client: WordPressClient) -> List[Dict[str, Any]]:
        rows = await client.get("/categories", params=_args_to_body(args))
        return [{"id": c.get("id"), "name": c.get("name"), "slug": c.get("slug"), "count": c.get("count"), "parent": c.get("parent")} for c in rows]

    @registry.tool("wp_get_tags", "List tags", ListArgs)
    async def list_tags(args: ListArgs, client: WordPressClient) -> List[Dict[str, Any]]:
        rows = await client.get("/tags", params=_args_to_body(args))
        return [{"id": t.get("id"), "name": t.get("name"), "slug": t.get("slug"), "count": t.get("count")} for t in rows]

    @registry.tool("wp_get_comments", "List comments, optionally for one post", ListCommentsArgs)
    async def list_comments(args: ListCommentsArgs, client: WordPressClient) -> List[Dict[str, Any]]:
        rows = await client.get("/comments", params=_args_to_body(args))
        return [{"id": c.get("id"), "post": c.get("post"), "author_name": c.get("author_name"), "date": c.get("date"), "content": _rendered(c.get("content"))} for c in rows]

    @registry.tool("wp_get_media", "List media library items", ListMediaArgs)
    async def list_media(args: ListMediaArgs, client: WordPressClient) -> List[Dict[str, Any]]:
        rows = await client.get("/media", params=_args_to_body(args))
        return [{"id": m.get("id"), "title": _rendered(m.get("title")), "media_type": m.get("media_type"), "mime_type": m.get("mime_type"), "source_url": m.get("source_url")} for m in rows]

    return registry
