# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/rpc_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Protocol Dispatcher.

Parses one JSON-RPC 2.0 request, routes it and maps every outcome, success or
failure, onto a single envelope shape:

    {"jsonrpc": "2.0", "id": <id>, "result": {...}}
    {"jsonrpc": "2.0", "id": <id>, "error": {"code": ..., "message": ..., "data": ...}}

Methods:
    - ``initialize``: capability negotiation (no auth)
    - ``ping``: liveness (no auth)
    - ``tools/list``: tool catalogue (no auth)
    - ``tools/call``: params and tool arguments are validated first, then the
      caller is authorized, then the tool runs under the request budget

Error objects never contain exception text. Unexpected exceptions become
``-32603 Internal error`` and are logged with their stack trace.
"""

# Standard
import asyncio
from datetime import datetime, timezone
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

# Third-Party
import orjson
from pydantic import BaseModel, Field, ValidationError

# First-Party
from wpgateway import __version__
from wpgateway.config import settings
from wpgateway.errors import (
    AuthRejectedError,
    CredentialDecryptionError,
    GatewayError,
    GatewayTimeoutError,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    ParseError,
    QuotaExceededError,
    RateLimitedError,
)
from wpgateway.models import CallToolParams, Implementation, InitializeResult, JSONRPCError, JSONRPCRequest, JSONRPCResponse, ListToolsResult, ServerCapabilities, UsageEvent, UsageStatus
from wpgateway.services.auth_service import AuthContext, AuthResolver, DecryptedConnection
from wpgateway.services.metrics import TOOL_CALLS
from wpgateway.services.usage_service import UsageRecorder
from wpgateway.services.wordpress_client import WordPressClient
from wpgateway.tools.registry import format_validation_errors, ToolRegistry

logger = logging.getLogger(__name__)

RequestId = Optional[Union[str, int]]
ClientFactory = Callable[[DecryptedConnection], Any]

_REJECTION_STATUS = {
    QuotaExceededError: UsageStatus.QUOTA_EXCEEDED,
    RateLimitedError: UsageStatus.RATE_LIMITED,
    CredentialDecryptionError: UsageStatus.ERROR,
}


class RpcOutcome(BaseModel):
    """Envelope plus the transport details the HTTP layer needs."""

    payload: Dict[str, Any]
    status_code: int = 200
    headers: Dict[str, str] = Field(default_factory=dict)


def _readable_id(message: Any) -> RequestId:
    """Best-effort id from a request that may be invalid.

    Args:
        message: Decoded request body.

    Returns:
        RequestId: The id when it is a string or integer, else None.

    Examples:
        >>> _readable_id({"id": 7}), _readable_id({"id": [1]}), _readable_id([1])
        (7, None, None)
        >>> _readable_id({"id": True}) is None
        True
    """
    if isinstance(message, dict):
        value = message.get("id")
        if isinstance(value, str) or (isinstance(value, int) and not isinstance(value, bool)):
            return value
    return None


def error_outcome(request_id: RequestId, error: GatewayError, headers: Optional[Dict[str, str]] = None) -> RpcOutcome:
    """Build the envelope and transport status for a gateway error.

    Args:
        request_id: Id to echo.
        error: The error.
        headers: Extra response headers.

    Returns:
        RpcOutcome: Error envelope with the error's HTTP status.
    """
    out_headers = dict(headers or {})
    retry_after = getattr(error, "retry_after", None)
    if retry_after is not None:
        out_headers["Retry-After"] = str(retry_after)
    envelope = JSONRPCResponse(id=request_id, error=JSONRPCError(**error.to_dict())).to_envelope()
    return RpcOutcome(payload=envelope, status_code=error.http_status, headers=out_headers)


class RpcDispatcher:
    """Routes JSON-RPC requests to protocol handlers and tools.

    Args:
        registry: Tool registry.
        resolver: Auth resolver for ``tools/call``.
        recorder: Usage recorder receiving one event per completed call.
        client_factory: Builds the upstream client from a decrypted connection.
        request_timeout: Budget in seconds for one tool invocation.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        resolver: AuthResolver,
        recorder: Optional[UsageRecorder] = None,
        client_factory: Optional[ClientFactory] = None,
        request_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.resolver = resolver
        self.recorder = recorder
        self.client_factory = client_factory or WordPressClient
        self.request_timeout = request_timeout or settings.request_timeout
        self._methods = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._list_tools,
        }

    async def handle(self, body: bytes, headers: Mapping[str, str]) -> RpcOutcome:
        """Process one raw request body.

        Args:
            body: Raw HTTP body.
            headers: Request headers.

        Returns:
            RpcOutcome: The response envelope, status and headers.
        """
        try:
            message = orjson.loads(body)
        except orjson.JSONDecodeError:
            return error_outcome(None, ParseError())

        request_id = _readable_id(message)
        if not isinstance(message, dict):
            return error_outcome(None, InvalidRequestError())
        try:
            request = JSONRPCRequest.model_validate(message)
        except ValidationError as e:
            return error_outcome(request_id, InvalidRequestError(data={"errors": format_validation_errors(e)}))

        try:
            if request.method == "tools/call":
                return await self._call_tool(request, headers)
            handler = self._methods.get(request.method)
            if handler is None:
                raise MethodNotFoundError(f"Method not found: {request.method}")
            result = await handler(request.params or {})
            return RpcOutcome(payload=JSONRPCResponse(id=request.id, result=result).to_envelope())
        except GatewayError as e:
            return error_outcome(request.id, e)
        except Exception:  # pylint: disable=broad-except
            logger.exception(f"Unhandled error in method {request.method}")
            return error_outcome(request.id, InternalError())

    # ------------------------------------------------------------------ #
    # Unauthenticated methods                                            #
    # ------------------------------------------------------------------ #
    async def _initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        requested = params.get("protocolVersion")
        version = requested if requested in settings.protocol_versions else settings.latest_protocol_version
        result = InitializeResult(
            protocol_version=version,
            capabilities=ServerCapabilities(tools={"listChanged": False}),
            server_info=Implementation(name=settings.server_name, version=__version__),
        )
        return result.model_dump(by_alias=True, exclude_none=True)

    async def _ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    async def _list_tools(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return ListToolsResult(tools=self.registry.list_tools()).to_dict()

    # ------------------------------------------------------------------ #
    # tools/call                                                         #
    # ------------------------------------------------------------------ #
    async def _call_tool(self, request: JSONRPCRequest, headers: Mapping[str, str]) -> RpcOutcome:
        """Validate, authorize, invoke and record one tool call.

        Args:
            request: Parsed request.
            headers: Request headers carrying the credential.

        Returns:
            RpcOutcome: Result or error envelope.

        Raises:
            InvalidParamsError: Params or tool arguments failed validation.
            ToolNotFoundError: Unknown tool.
        """
        try:
            params = CallToolParams.model_validate(request.params or {})
        except ValidationError as e:
            raise InvalidParamsError(data={"errors": format_validation_errors(e)}) from e
        args = self.registry.validate_arguments(params.name, params.arguments)

        started = time.perf_counter()
        try:
            context = await self.resolver.resolve(headers)
        except AuthRejectedError as e:
            self._record_rejection(params.name, e, started)
            return error_outcome(request.id, e)

        response_headers = context.response_headers()
        try:
            result = await asyncio.wait_for(self.registry.invoke(params.name, args, self.client_factory(context.connection)), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            error: GatewayError = GatewayTimeoutError()
        except GatewayError as e:
            error = e
        except Exception:  # pylint: disable=broad-except
            logger.exception(f"Tool {params.name} failed for tenant {context.tenant_id}")
            error = InternalError()
        else:
            self._record(context, params.name, UsageStatus.SUCCESS, started)
            return RpcOutcome(payload=JSONRPCResponse(id=request.id, result=result.to_dict()).to_envelope(), headers=response_headers)

        self._record(context, params.name, UsageStatus.ERROR, started, error.message)
        return error_outcome(request.id, error, response_headers)

    def _record(self, context: AuthContext, tool_name: str, status: UsageStatus, started: float, error_message: Optional[str] = None) -> None:
        TOOL_CALLS.labels(tool=tool_name, status=status.value).inc()
        if self.recorder is None:
            return
        self.recorder.record(
            UsageEvent(
                user_id=context.tenant_id,
                api_key_id=context.api_key_id,
                connection_id=context.connection.id,
                tool_name=tool_name,
                status=status,
                response_time_ms=int((time.perf_counter() - started) * 1000),
                error_message=error_message,
                created_at=datetime.now(timezone.utc),
            )
        )

    def _record_rejection(self, tool_name: str, error: AuthRejectedError, started: float) -> None:
        status = _REJECTION_STATUS.get(type(error))
        if status is None or error.tenant_id is None or self.recorder is None:
            return
        self.recorder.record(
            UsageEvent(
                user_id=error.tenant_id,
                api_key_id=error.api_key_id,
                tool_name=tool_name,
                status=status,
                response_time_ms=int((time.perf_counter() - started) * 1000),
                error_message=error.message,
                created_at=datetime.now(timezone.utc),
            )
        )
