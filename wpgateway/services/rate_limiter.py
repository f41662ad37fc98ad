# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/rate_limiter.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Fixed-window per-tenant rate limiter.

Time is cut into windows of ``window`` seconds. Each tenant has one counter
per window, kept in the shared cache under ``ratelimit:{tenant}:{index}`` with
a TTL of one window plus a skew buffer. The check is read-then-write and is
not linearizable: concurrent requests from several instances can briefly
exceed the limit. That is an accepted trade-off of this limiter.

Examples:
    >>> import asyncio
    >>> from wpgateway.cache import MemoryCache
    >>> limiter = RateLimiter(MemoryCache(clock=lambda: 130.0))
    >>> info = asyncio.run(limiter.check("t1", limit=2, now=130.0))
    >>> info.allowed, info.remaining, info.reset_at
    (True, 1, 180)
"""

# Standard
import logging
import math
import time
from typing import Optional

# Third-Party
from pydantic import BaseModel

# First-Party
from wpgateway.cache import Cache
from wpgateway.config import settings

logger = logging.getLogger(__name__)


class RateLimitInfo(BaseModel):
    """Outcome of a rate-limit check.

    Attributes:
        allowed: Whether the call may proceed.
        limit: Calls allowed per window.
        remaining: Calls left in the window after this one.
        reset_at: Unix time at which the window ends.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int

    def retry_after(self, now: Optional[float] = None) -> int:
        """Seconds until the window resets.

        Args:
            now: Current unix time. Defaults to :func:`time.time`.

        Returns:
            int: ``ceil(reset_at - now)``, at least 1 when the call was rejected.

        Examples:
            >>> RateLimitInfo(allowed=False, limit=1, remaining=0, reset_at=120).retry_after(119.5)
            1
            >>> RateLimitInfo(allowed=False, limit=1, remaining=0, reset_at=120).retry_after(120.0)
            1
            >>> RateLimitInfo(allowed=True, limit=1, remaining=0, reset_at=120).retry_after(100.0)
            20
        """
        now = time.time() if now is None else now
        seconds = max(0, math.ceil(self.reset_at - now))
        return max(1, seconds) if not self.allowed else seconds


class RateLimiter:
    """Per-tenant fixed-window limiter over the shared cache.

    Args:
        cache: Shared cache handle.
        window: Window length in seconds.
        skew: Extra TTL on window counters for clock skew between instances.
    """

    def __init__(self, cache: Cache, window: Optional[int] = None, skew: Optional[int] = None):
        self.cache = cache
        self.window = window or settings.rate_limit_window
        self.skew = settings.rate_limit_skew_buffer if skew is None else skew

    def _window_index(self, now: float) -> int:
        return int(now // self.window)

    def window_key(self, tenant_id: str, now: float) -> str:
        """Cache key of the tenant's counter for the window containing ``now``.

        Args:
            tenant_id: Tenant id.
            now: Unix time.

        Returns:
            str: ``ratelimit:{tenant}:{index}``.

        Examples:
            >>> from wpgateway.cache import MemoryCache
            >>> RateLimiter(MemoryCache(), window=60).window_key("t1", 125.0)
            'ratelimit:t1:2'
        """
        return f"ratelimit:{tenant_id}:{self._window_index(now)}"

    def _reset_at(self, now: float) -> int:
        return (self._window_index(now) + 1) * self.window

    async def _read(self, key: str) -> int:
        raw = await self.cache.get(key)
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            logger.warning(f"Discarding corrupt rate-limit counter {key}")
            return 0

    async def check(self, tenant_id: str, limit: int, now: Optional[float] = None) -> RateLimitInfo:
        """Count one call against the tenant's current window.

        Args:
            tenant_id: Tenant id.
            limit: Calls allowed per window.
            now: Current unix time. Defaults to :func:`time.time`.

        Returns:
            RateLimitInfo: ``allowed`` False when the window is already full;
            the counter is not incremented in that case.
        """
        now = time.time() if now is None else now
        key = self.window_key(tenant_id, now)
        reset_at = self._reset_at(now)
        count = await self._read(key)
        if count >= limit:
            logger.debug(f"Rate limit reached for tenant {tenant_id}: {count}/{limit}")
            return RateLimitInfo(allowed=False, limit=limit, remaining=0, reset_at=reset_at)
        count += 1
        await self.cache.set(key, str(count), ttl=self.window + self.skew)
        return RateLimitInfo(allowed=True, limit=limit, remaining=max(0, limit - count), reset_at=reset_at)

    async def get_status(self, tenant_id: str, limit: int, now: Optional[float] = None) -> RateLimitInfo:
        """Report the tenant's current window without counting a call.

        Args:
            tenant_id: Tenant id.
            limit: Calls allowed per window.
            now: Current unix time.

        Returns:
            RateLimitInfo: Current usage.
        """
        now = time.time() if now is None else now
        count = await self._read(self.window_key(tenant_id, now))
        return RateLimitInfo(allowed=count < limit, limit=limit, remaining=max(0, limit - count), reset_at=self._reset_at(now))

    async def reset(self, tenant_id: str, now: Optional[float] = None) -> None:
        """Clear the tenant's counter for the current window.

        Args:
            tenant_id: Tenant id.
            now: Current unix time.
        """
        now = time.time() if now is None else now
        await self.cache.delete(self.window_key(tenant_id, now))
