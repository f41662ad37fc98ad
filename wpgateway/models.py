# -*- coding: utf-8 -*-
"""Location: ./wpgateway/models.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Wire and internal message types.
It includes:
  - JSON-RPC 2.0 envelope types
  - MCP initialization, tool listing and tool result types
  - Usage events handed from the request path to the usage recorder

Examples:
    >>> from wpgateway.models import TextContent, UsageStatus
    >>> TextContent(text="Hello").model_dump()
    {'type': 'text', 'text': 'Hello'}
    >>> UsageStatus.RATE_LIMITED.value
    'rate_limited'
"""

# Standard
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

# Third-Party
from pydantic import BaseModel, ConfigDict, Field

# First-Party
from wpgateway.utils.base_models import BaseModelWithConfigDict


class UsageStatus(str, Enum):
    """Outcome of a recorded request."""

    SUCCESS = "success"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"


# JSON-RPC types
class JSONRPCRequest(BaseModel):
    """JSON-RPC 2.0 request.

    Attributes:
        jsonrpc (Literal["2.0"]): The JSON-RPC version.
        id (Optional[Union[str, int]]): The request identifier.
        method (str): The method name.
        params (Optional[Dict[str, Any]]): The parameters for the request.

    Examples:
        >>> JSONRPCRequest(jsonrpc="2.0", id=1, method="ping").params is None
        True
    """

    jsonrpc: Literal["2.0"]
    id: Optional[Union[str, int]] = None
    method: str = Field(..., min_length=1)
    params: Optional[Dict[str, Any]] = None


class JSONRPCError(BaseModel):
    """JSON-RPC 2.0 error object.

    Attributes:
        code (int): The error code.
        message (str): A short description of the error.
        data (Optional[Any]): Additional data about the error.
    """

    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCResponse(BaseModel):
    """JSON-RPC 2.0 response. Exactly one of ``result`` / ``error`` is set.

    Examples:
        >>> JSONRPCResponse(id=3, result={}).to_envelope()
        {'jsonrpc': '2.0', 'id': 3, 'result': {}}
        >>> JSONRPCResponse(id=None, error=JSONRPCError(code=-32700, message="Parse error")).to_envelope()
        {'jsonrpc': '2.0', 'id': None, 'error': {'code': -32700, 'message': 'Parse error'}}
    """

    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Union[str, int]] = None
    result: Optional[Any] = None
    error: Optional[JSONRPCError] = None

    def to_envelope(self) -> Dict[str, Any]:
        """Render the envelope with only one of result/error present.

        Returns:
            Dict[str, Any]: The wire dictionary.
        """
        envelope: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            envelope["error"] = self.error.model_dump(exclude_none=True)
        else:
            envelope["result"] = self.result
        return envelope


# Initialization types
class Implementation(BaseModel):
    """MCP implementation information.

    Attributes:
        name (str): The name of the implementation.
        version (str): The version of the implementation.
    """

    name: str
    version: str


class ServerCapabilities(BaseModel):
    """Capabilities advertised by the gateway."""

    tools: Optional[Dict[str, bool]] = None
    logging: Optional[Dict[str, Any]] = None


class InitializeResult(BaseModel):
    """Server's response to the initialization request.

    Attributes:
        protocol_version (str): The negotiated protocol version.
        capabilities (ServerCapabilities): The server's capabilities.
        server_info (Implementation): The server's implementation information.
        instructions (Optional[str]): Optional instructions for the client.
    """

    protocol_version: str = Field(..., alias="protocolVersion")
    capabilities: ServerCapabilities
    server_info: Implementation = Field(..., alias="serverInfo")
    instructions: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


# Tool types
class Tool(BaseModelWithConfigDict):
    """A tool as advertised by ``tools/list``.

    Examples:
        >>> Tool(name="ping", description="d", input_schema={"type": "object"}).to_dict()
        {'name': 'ping', 'description': 'd', 'inputSchema': {'type': 'object'}}
    """

    name: str
    description: str
    input_schema: Dict[str, Any]


class ListToolsResult(BaseModelWithConfigDict):
    """Result of ``tools/list``."""

    tools: List[Tool]


class CallToolParams(BaseModel):
    """Params of a ``tools/call`` request."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    arguments: Dict[str, Any] = Field(default_factory=dict)


class TextContent(BaseModelWithConfigDict):
    """Text content block."""

    type: Literal["text"] = "text"
    text: str


class CallToolResult(BaseModelWithConfigDict):
    """Result of a tool invocation.

    Examples:
        >>> CallToolResult(content=[TextContent(text="ok")]).to_dict()
        {'content': [{'type': 'text', 'text': 'ok'}], 'isError': False}
    """

    content: List[TextContent]
    is_error: bool = False
    structured_content: Optional[Dict[str, Any]] = None


# Usage recording
class UsageEvent(BaseModel):
    """One request outcome queued for the usage recorder.

    Attributes:
        user_id: Tenant id.
        tool_name: Tool that was invoked.
        status: Outcome bucket.
        created_at: When the request completed (UTC).
        api_key_id: Key used, when resolved.
        connection_id: Connection used, when resolved.
        response_time_ms: Wall time spent in the gateway.
        error_message: Caller-safe error message for failed calls.
    """

    user_id: str
    tool_name: str
    status: UsageStatus
    created_at: datetime
    api_key_id: Optional[str] = None
    connection_id: Optional[str] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None
