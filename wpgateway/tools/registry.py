# -*- coding: utf-8 -*-
"""Location: ./wpgateway/tools/registry.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Tool registry.

A tool is a name, a description, a pydantic model for its arguments and an
async handler. Arguments are validated into the model before the dispatcher
does any auth work; a handler therefore always receives a typed, validated
object and a ready upstream client.

Examples:
    >>> import asyncio
    >>> from pydantic import BaseModel
    >>> reg = ToolRegistry()
    >>> class EchoArgs(BaseModel):
    ...     text: str
    >>> @reg.tool("echo", "Echo text back", EchoArgs)
    ... async def echo(args, client):
    ...     return {"echo": args.text}
    >>> [t.name for t in reg.list_tools()]
    ['echo']
    >>> args = reg.validate_arguments("echo", {"text": "hi"})
    >>> asyncio.run(reg.invoke("echo", args, client=None)).structured_content
    {'echo': 'hi'}
"""

# Standard
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

# Third-Party
import orjson
from pydantic import BaseModel, ValidationError

# First-Party
from wpgateway.errors import InvalidParamsError, ToolNotFoundError
from wpgateway.models import CallToolResult, TextContent, Tool

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any, Any], Awaitable[Any]]


def format_validation_errors(error: ValidationError) -> List[Dict[str, Any]]:
    """Reduce a pydantic error to caller-safe location and message pairs.

    Args:
        error: The validation error.

    Returns:
        List[Dict[str, Any]]: ``[{"loc": [...], "msg": "..."}]``.

    Examples:
        >>> from pydantic import BaseModel
        >>> class M(BaseModel):
        ...     n: int
        >>> try:
        ...     M(n="x")
        ... except ValidationError as e:
        ...     format_validation_errors(e)[0]["loc"]
        ['n']
    """
    return [{"loc": [str(part) for part in item["loc"]], "msg": item["msg"]} for item in error.errors(include_url=False, include_input=False)]


class ToolDefinition:
    """A registered tool."""

    def __init__(self, name: str, description: str, args_model: Type[BaseModel], handler: ToolHandler):
        self.name = name
        self.description = description
        self.args_model = args_model
        self.handler = handler

    def describe(self) -> Tool:
        return Tool(name=self.name, description=self.description, input_schema=self.args_model.model_json_schema())


class ToolRegistry:
    """Name-indexed collection of tools."""

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDefinition] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def register(self, name: str, description: str, args_model: Type[BaseModel], handler: ToolHandler) -> ToolDefinition:
        """Add a tool.

        Args:
            name: Unique tool name.
            description: Human readable description.
            args_model: Pydantic model for the arguments.
            handler: ``async handler(args, client)``.

        Returns:
            ToolDefinition: The registered tool.

        Raises:
            ValueError: If the name is already taken.
        """
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        definition = ToolDefinition(name, description, args_model, handler)
        self._tools[name] = definition
        return definition

    def tool(self, name: str, description: str, args_model: Type[BaseModel]) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator form of :meth:`register`.

        Args:
            name: Unique tool name.
            description: Human readable description.
            args_model: Pydantic model for the arguments.

        Returns:
            Callable: Decorator returning the handler unchanged.
        """

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(name, description, args_model, handler)
            return handler

        return decorator

    def get(self, name: str) -> ToolDefinition:
        """Look up a tool.

        Args:
            name: Tool name.

        Returns:
            ToolDefinition: The tool.

        Raises:
            ToolNotFoundError: If no tool has that name.
        """
        definition = self._tools.get(name)
        if definition is None:
            raise ToolNotFoundError(f"Tool not found: {name}")
        return definition

    def list_tools(self) -> List[Tool]:
        return [definition.describe() for definition in self._tools.values()]

    def validate_arguments(self, name: str, arguments: Optional[Dict[str, Any]]) -> BaseModel:
        """Validate raw arguments into the tool's model.

        Args:
            name: Tool name.
            arguments: Raw ``arguments`` from the request.

        Returns:
            BaseModel: Validated arguments.

        Raises:
            ToolNotFoundError: If no tool has that name.
            InvalidParamsError: If validation fails; ``data.errors`` lists each problem.
        """
        definition = self.get(name)
        try:
            return definition.args_model.model_validate(arguments or {})
        except ValidationError as e:
            raise InvalidParamsError(f"Invalid arguments for tool {name}", data={"errors": format_validation_errors(e)}) from e

    async def invoke(self, name: str, args: BaseModel, client: Any) -> CallToolResult:
        """Run a tool and wrap its result.

        Args:
            name: Tool name.
            args: Validated arguments.
            client: Upstream client handed to the handler.

        Returns:
            CallToolResult: JSON text content plus structured content for dict results.
        """
        result = await self.get(name).handler(args, client)
        text = orjson.dumps(result, option=orjson.OPT_INDENT_2).decode("utf-8")
        structured = result if isinstance(result, dict) else {"items": result} if isinstance(result, list) else None
        return CallToolResult(content=[TextContent(text=text)], structured_content=structured)
