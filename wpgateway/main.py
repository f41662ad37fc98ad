# -*- coding: utf-8 -*-
"""Location: ./wpgateway/main.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

WordPress MCP Gateway - main FastAPI application.

Wires the gateway together at startup: shared cache, store, credential vault,
rate limiter, quota enforcer, usage recorder, auth resolver, tool registry and
dispatcher. The wiring lives in :class:`GatewayServices` so tests (and the admin
CLI) can build the same graph over their own database and cache.

Endpoints:
    - ``POST /rpc`` and ``POST /``: JSON-RPC
    - ``GET /health``: liveness
    - ``GET /metrics/prometheus``: Prometheus metrics
"""

# Standard
from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator, Callable, Optional

# Third-Party
from fastapi import FastAPI
from sqlalchemy.orm import Session

# First-Party
from wpgateway import __version__
from wpgateway.cache import build_cache, Cache
from wpgateway.config import settings, Settings
from wpgateway.db import SessionLocal
from wpgateway.routers.rpc_router import router as rpc_router
from wpgateway.services.api_key_service import ApiKeyService
from wpgateway.services.auth_service import AuthResolver
from wpgateway.services.encryption_service import EncryptionService, get_encryption_service
from wpgateway.services.logging_service import LoggingService
from wpgateway.services.metrics import setup_metrics
from wpgateway.services.quota_service import QuotaEnforcer
from wpgateway.services.rate_limiter import RateLimiter
from wpgateway.services.rpc_service import ClientFactory, RpcDispatcher
from wpgateway.services.store import GatewayStore
from wpgateway.services.usage_service import UsageRecorder
from wpgateway.tools.wordpress import build_registry
from wpgateway.utils.orjson_response import ORJSONResponse

logging_service = LoggingService()
logger = logging.getLogger(__name__)


class GatewayServices:
    """The wired service graph of one gateway process."""

    def __init__(
        self,
        config: Settings = settings,
        session_factory: Callable[[], Session] = SessionLocal,
        cache: Optional[Cache] = None,
        vault: Optional[EncryptionService] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """Build every service.

        Args:
            config: Gateway settings.
            session_factory: Database session factory.
            cache: Cache handle. Defaults to the backend selected by ``cache_type``.
            vault: Credential vault. Defaults to one keyed by ``encryption_key``.
            client_factory: Upstream client factory for tool handlers.
        """
        self.config = config
        self.cache = cache or build_cache(config)
        self.store = GatewayStore(session_factory)
        self.vault = vault or get_encryption_service(config.encryption_key)
        self.recorder = UsageRecorder(self.store, maxsize=config.usage_queue_size)
        self.quota = QuotaEnforcer(self.store)
        self.rate_limiter = RateLimiter(self.cache, window=config.rate_limit_window, skew=config.rate_limit_skew_buffer)
        self.resolver = AuthResolver(self.store, self.cache, self.vault, self.quota, self.rate_limiter, recorder=self.recorder, cache_ttl=config.api_key_cache_ttl)
        self.api_keys = ApiKeyService(self.cache)
        self.registry = build_registry()
        self.dispatcher = RpcDispatcher(self.registry, self.resolver, recorder=self.recorder, client_factory=client_factory, request_timeout=config.request_timeout)

    async def start(self) -> None:
        await self.cache.start()
        await self.recorder.start()

    async def stop(self) -> None:
        await self.recorder.stop()
        await self.cache.close()


def create_app(services_factory: Callable[[], GatewayServices] = GatewayServices, enable_metrics: Optional[bool] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services_factory: Builds the services when the app starts.
        enable_metrics: Overrides ``settings.enable_metrics``.

    Returns:
        FastAPI: The application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logging_service.initialize()
        services = services_factory()
        await services.start()
        app.state.services = services
        app.state.dispatcher = services.dispatcher
        logger.info(f"{settings.app_name} {__version__} started ({services.config.cache_type} cache)")
        try:
            yield
        finally:
            await services.stop()
            logger.info("Gateway stopped")

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan, default_response_class=ORJSONResponse)
    app.include_router(rpc_router)

    @app.get("/health")
    async def health() -> dict:
        """Liveness probe.

        Returns:
            dict: ``{"status": "healthy"}``.
        """
        return {"status": "healthy"}

    if settings.enable_metrics if enable_metrics is None else enable_metrics:
        setup_metrics(app)
    return app


app = create_app()
