# -*- coding: utf-8 -*-
"""Location: ./wpgateway/cache.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Shared TTL cache.

The gateway keeps two kinds of short-lived state outside the database:
credential snapshots (``apikey:{hash}``) and rate-limit window counters
(``ratelimit:{tenant}:{window}``). Both go through a :class:`Cache` handle that
is built once at startup and injected into the services that need it.

Backends:
    - :class:`MemoryCache` - process-local dict, suitable for one instance and tests
    - :class:`RedisCache` - ``redis.asyncio`` client for multi-instance deployments

Values are strings. Callers serialize structured data themselves (orjson).

Examples:
    >>> import asyncio
    >>> clock = [1000.0]
    >>> cache = MemoryCache(clock=lambda: clock[0])
    >>> asyncio.run(cache.set("k", "v", ttl=10))
    >>> asyncio.run(cache.get("k"))
    'v'
    >>> clock[0] += 11
    >>> asyncio.run(cache.get("k")) is None
    True
"""

# Standard
import logging
import time
from typing import Callable, Dict, Optional, Tuple

# Third-Party
import redis.asyncio as aioredis

# First-Party
from wpgateway.config import Settings

logger = logging.getLogger(__name__)


class Cache:
    """Async TTL cache interface."""

    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key`` or None when absent or expired.

        Args:
            key: Cache key.

        Raises:
            NotImplementedError: Always, implemented by backends.
        """
        raise NotImplementedError

    async def set(self, key: str, value: str, ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds.

        Args:
            key: Cache key.
            value: String value.
            ttl: Time to live in seconds.

        Raises:
            NotImplementedError: Always, implemented by backends.
        """
        raise NotImplementedError

    async def delete(self, *keys: str) -> None:
        """Remove keys. Missing keys are ignored.

        Args:
            *keys: Cache keys.

        Raises:
            NotImplementedError: Always, implemented by backends.
        """
        raise NotImplementedError

    async def start(self) -> None:
        """Open backend resources."""

    async def close(self) -> None:
        """Release backend resources."""


class MemoryCache(Cache):
    """Dictionary-backed cache with lazy expiry.

    Args:
        clock: Returns the current time in seconds. Injectable for tests.

    Examples:
        >>> import asyncio
        >>> c = MemoryCache()
        >>> asyncio.run(c.set("a", "1", ttl=60))
        >>> asyncio.run(c.delete("a", "missing"))
        >>> len(c)
        0
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._data: Dict[str, Tuple[str, float]] = {}

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, expires in self._data.values() if expires > now)

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires = entry
        if expires <= self._clock():
            self._data.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        self._data[key] = (value, self._clock() + ttl)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def close(self) -> None:
        self._data.clear()


class RedisCache(Cache):
    """Cache backed by a Redis server.

    Keys are namespaced with ``prefix`` so several deployments can share one
    Redis database.

    Args:
        redis_url: Connection URL, e.g. ``redis://localhost:6379/0``.
        prefix: Namespace prepended to every key.
        client: Pre-built client (tests inject a fake).
    """

    def __init__(self, redis_url: str, prefix: str = "", client: Optional[aioredis.Redis] = None):
        self.redis_url = redis_url
        self.prefix = prefix
        self._client = client

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @property
    def client(self) -> aioredis.Redis:
        """Underlying client, created lazily.

        Returns:
            aioredis.Redis: The client.
        """
        if self._client is None:
            self._client = aioredis.from_url(self.redis_url, decode_responses=True, socket_connect_timeout=5, socket_timeout=5)
        return self._client

    async def start(self) -> None:
        """Verify connectivity.

        Raises:
            redis.exceptions.ConnectionError: If Redis is unreachable.
        """
        await self.client.ping()
        logger.info("Connected to Redis cache")

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(self._key(key))

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self.client.setex(self._key(key), ttl, value)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self.client.delete(*(self._key(k) for k in keys))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def build_cache(config: Settings) -> Cache:
    """Create the cache backend selected by ``cache_type``.

    Args:
        config: Gateway settings.

    Returns:
        Cache: A memory or Redis cache.

    Examples:
        >>> s = Settings(encryption_key="a-sufficiently-long-root-key", _env_file=None)
        >>> type(build_cache(s)).__name__
        'MemoryCache'
        >>> type(build_cache(s.model_copy(update={"cache_type": "redis"}))).__name__
        'RedisCache'
    """
    if config.cache_type == "redis":
        logger.info("Using Redis cache backend")
        return RedisCache(config.redis_url, prefix=config.cache_prefix)
    logger.info("Using in-memory cache backend")
    return MemoryCache()
