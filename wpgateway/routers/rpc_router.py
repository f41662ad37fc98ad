# -*- coding: utf-8 -*-
"""Location: ./wpgateway/routers/rpc_router.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

JSON-RPC HTTP endpoint.

``POST /rpc`` (and ``POST /``) hands the raw body and headers to the
dispatcher and returns its envelope. The body is always a JSON-RPC envelope;
the transport status is 200 except for authentication failures (401) and
quota or rate-limit failures (429, with ``Retry-After``).
"""

# Third-Party
from fastapi import APIRouter, Depends, Request

# First-Party
from wpgateway.services.rpc_service import RpcDispatcher
from wpgateway.utils.orjson_response import ORJSONResponse

router = APIRouter(tags=["JSON-RPC"])


def get_dispatcher(request: Request) -> RpcDispatcher:
    """Dispatcher built by the application lifespan.

    Args:
        request: Incoming request.

    Returns:
        RpcDispatcher: The shared dispatcher.
    """
    return request.app.state.dispatcher


@router.post("/rpc", response_class=ORJSONResponse)
@router.post("/", response_class=ORJSONResponse, include_in_schema=False)
async def handle_rpc(request: Request, dispatcher: RpcDispatcher = Depends(get_dispatcher)) -> ORJSONResponse:
    """Process one JSON-RPC request.

    Args:
        request: Incoming request.
        dispatcher: Protocol dispatcher.

    Returns:
        ORJSONResponse: The JSON-RPC envelope.
    """
    outcome = await dispatcher.handle(await request.body(), request.headers)
    return ORJSONResponse(content=outcome.payload, status_code=outcome.status_code, headers=outcome.headers)
