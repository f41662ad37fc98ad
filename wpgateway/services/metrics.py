# -*- coding: utf-8 -*-
"""
Location: ./wpgateway/services/metrics.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Gateway Metrics Service.

Prometheus instrumentation for the gateway: HTTP metrics from
prometheus-fastapi-instrumentator plus a handful of gateway counters.

Gateway counters:
- wpgateway_auth_rejections_total{reason}: rejected ``tools/call`` attempts
- wpgateway_decryption_failures_total: stored credentials that failed to decrypt
- wpgateway_usage_events_dropped_total: usage events dropped on a full queue
- wpgateway_usage_write_failures_total: usage writes that raised in the worker
- wpgateway_tool_calls_total{tool,status}: completed tool invocations

Metrics are exposed at ``/metrics/prometheus``.

Usage:
    from wpgateway.services.metrics import setup_metrics

    app = FastAPI()
    setup_metrics(app)
"""

# Standard
import logging
import re

# Third-Party
from fastapi import FastAPI, Response, status
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

# First-Party
from wpgateway.config import settings

logger = logging.getLogger(__name__)

AUTH_REJECTIONS = Counter("wpgateway_auth_rejections_total", "Rejected tools/call attempts by reason", labelnames=["reason"])
DECRYPTION_FAILURES = Counter("wpgateway_decryption_failures_total", "Stored connection credentials that failed to decrypt")
USAGE_EVENTS_DROPPED = Counter("wpgateway_usage_events_dropped_total", "Usage events dropped because the recorder queue was full")
USAGE_WRITE_FAILURES = Counter("wpgateway_usage_write_failures_total", "Usage writes that failed in the recorder worker")
TOOL_CALLS = Counter("wpgateway_tool_calls_total", "Completed tool invocations", labelnames=["tool", "status"])


def setup_metrics(app: FastAPI) -> None:
    """Configure Prometheus instrumentation for the gateway app.

    When ``enable_metrics`` is off the endpoint still exists and answers 503.

    Args:
        app: FastAPI application instance to instrument.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> # setup_metrics(app)  # exposes GET /metrics/prometheus
    """
    if settings.enable_metrics:
        excluded = [pattern.strip() for pattern in (settings.metrics_excluded_handlers or "").split(",") if pattern.strip()]

        instrumentator = Instrumentator(
            should_group_status_codes=False,
            should_ignore_untemplated=True,
            excluded_handlers=[re.compile(p) for p in excluded],
        )
        instrumentator.instrument(app)
        instrumentator.expose(app, endpoint="/metrics/prometheus", include_in_schema=True, should_gzip=True)

        logger.info("Metrics instrumentation enabled")
    else:
        logger.info("Metrics instrumentation disabled")

        @app.get("/metrics/prometheus")
        async def metrics_disabled():
            """Returns metrics response when metrics collection is disabled.

            Returns:
                Response: HTTP 503 response indicating metrics are disabled.
            """
            return Response(content='{"error": "Metrics collection is disabled"}', media_type="application/json", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
