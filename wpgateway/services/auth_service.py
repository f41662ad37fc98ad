# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/auth_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Auth Resolver.

Turns the headers of a ``tools/call`` request into an :class:`AuthContext` or
raises exactly one :class:`~wpgateway.errors.AuthRejectedError` subclass. The
checks run in a fixed order, each one a state transition:

    UNAUTHENTICATED
      -> KEY_FORMAT_OK          bearer present and well-formed
      -> TENANT_RESOLVED        snapshot from cache or store; key/user/connection usable
      -> QUOTA_OK               monthly counter below the plan ceiling
      -> RATE_OK                per-minute window not full
      -> CREDENTIALS_DECRYPTED  connection secrets decrypted
      -> AUTHORIZED             monthly counter incremented, context built

Malformed keys are rejected before hashing, so they never reach the cache or
the store. Quota is checked before decryption so an exhausted tenant costs no
crypto work. The cached :class:`CredentialSnapshot` holds ciphertext only;
plaintext secrets exist only inside the returned context, wrapped in
:class:`~pydantic.SecretStr`.
"""

# Standard
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Callable, Dict, Mapping, Optional

# Third-Party
import orjson
from pydantic import BaseModel, SecretStr, ValidationError

# First-Party
from wpgateway.cache import Cache
from wpgateway.config import settings
from wpgateway.db import as_utc
from wpgateway.errors import (
    AccountInactiveError,
    AuthRejectedError,
    ConnectionInactiveError,
    CredentialDecryptionError,
    ExpiredKeyError,
    InvalidApiKeyError,
    InvalidKeyFormatError,
    NoCredentialsError,
    QuotaExceededError,
    RateLimitedError,
    RevokedKeyError,
)
from wpgateway.services.api_key_service import api_key_cache_key, hash_api_key, is_valid_format
from wpgateway.services.encryption_service import DecryptionError, EncryptionService
from wpgateway.services.metrics import AUTH_REJECTIONS, DECRYPTION_FAILURES
from wpgateway.services.quota_service import QuotaEnforcer, UsageSnapshot
from wpgateway.services.rate_limiter import RateLimiter, RateLimitInfo
from wpgateway.services.store import GatewayStore
from wpgateway.services.usage_service import UsageRecorder

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    """Resolution states. A returned context is always ``AUTHORIZED``."""

    UNAUTHENTICATED = "unauthenticated"
    KEY_FORMAT_OK = "key_format_ok"
    TENANT_RESOLVED = "tenant_resolved"
    QUOTA_OK = "quota_ok"
    RATE_OK = "rate_ok"
    CREDENTIALS_DECRYPTED = "credentials_decrypted"
    AUTHORIZED = "authorized"


class CredentialSnapshot(BaseModel):
    """Cached view of an api key, its tenant and its connection.

    Never holds plaintext secrets.

    Examples:
        >>> snap = CredentialSnapshot(user_id="u", user_email="a@b.c", user_plan="free", connection_id="c",
        ...     site_url="https://wp.example", username_encrypted="x", password_encrypted="y", api_key_id="k")
        >>> CredentialSnapshot.from_cache(snap.to_cache()) == snap
        True
    """

    user_id: str
    user_email: str
    user_plan: str
    connection_id: str
    site_url: str
    username_encrypted: str
    password_encrypted: str
    third_party_key_encrypted: Optional[str] = None
    api_key_id: str
    expires_at: Optional[datetime] = None

    def to_cache(self) -> str:
        return orjson.dumps(self.model_dump(mode="json")).decode("utf-8")

    @classmethod
    def from_cache(cls, raw: str) -> "CredentialSnapshot":
        return cls.model_validate(orjson.loads(raw))


class DecryptedConnection(BaseModel):
    """Connection with its secrets decrypted for the duration of one request."""

    id: str
    site_url: str
    username: SecretStr
    password: SecretStr
    third_party_key: Optional[SecretStr] = None


class AuthContext(BaseModel):
    """Everything a tool handler needs about the authorized caller."""

    tenant_id: str
    tenant_email: str
    plan: str
    api_key_id: str
    connection: DecryptedConnection
    usage: UsageSnapshot
    rate_limit: RateLimitInfo
    state: AuthState = AuthState.AUTHORIZED

    def response_headers(self) -> Dict[str, str]:
        """Usage and rate-limit headers for the HTTP response.

        Returns:
            Dict[str, str]: ``X-Usage-*``, ``X-RateLimit-*`` and ``X-Tier``.
        """
        return {
            "X-Usage-Limit": str(self.usage.limit),
            "X-Usage-Used": str(self.usage.used),
            "X-Usage-Remaining": str(self.usage.remaining),
            "X-Usage-Reset": str(self.usage.reset_at),
            "X-RateLimit-Limit": str(self.rate_limit.limit),
            "X-RateLimit-Remaining": str(self.rate_limit.remaining),
            "X-RateLimit-Reset": str(self.rate_limit.reset_at),
            "X-Tier": self.plan,
        }


def extract_api_key(headers: Mapping[str, str]) -> Optional[str]:
    """Read the bearer credential from request headers.

    ``Authorization: Bearer <key>`` wins over ``X-API-Key``. Header names are
    matched case-insensitively.

    Args:
        headers: Request headers.

    Returns:
        Optional[str]: The credential, or None when absent.

    Examples:
        >>> extract_api_key({"authorization": "Bearer abc"})
        'abc'
        >>> extract_api_key({"X-API-Key": " xyz "})
        'xyz'
        >>> extract_api_key({"Authorization": "Basic abc"}) is None
        True
        >>> extract_api_key({}) is None
        True
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    authorization = lowered.get("authorization", "")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    api_key = lowered.get("x-api-key", "").strip()
    return api_key or None


class AuthResolver:
    """Resolves bearer credentials into an authorized request context.

    Args:
        store: Durable record access.
        cache: Shared cache handle for credential snapshots.
        vault: Credential vault for connection secrets.
        quota: Monthly quota enforcer.
        rate_limiter: Per-minute limiter.
        recorder: Background recorder receiving last-used touches.
        clock: Returns the current aware datetime. Injectable for tests.
        cache_ttl: Snapshot TTL in seconds.
    """

    def __init__(
        self,
        store: GatewayStore,
        cache: Cache,
        vault: EncryptionService,
        quota: QuotaEnforcer,
        rate_limiter: RateLimiter,
        recorder: Optional[UsageRecorder] = None,
        clock: Optional[Callable[[], datetime]] = None,
        cache_ttl: Optional[int] = None,
    ):
        self.store = store
        self.cache = cache
        self.vault = vault
        self.quota = quota
        self.rate_limiter = rate_limiter
        self.recorder = recorder
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.cache_ttl = cache_ttl or settings.api_key_cache_ttl

    async def resolve(self, headers: Mapping[str, str]) -> AuthContext:
        """Authorize a request.

        Args:
            headers: Request headers.

        Returns:
            AuthContext: The authorized context.

        Raises:
            AuthRejectedError: One subclass per rejection reason.
        """
        try:
            return await self._resolve(headers)
        except AuthRejectedError as e:
            AUTH_REJECTIONS.labels(reason=e.reason).inc()
            logger.info(f"Rejected tools/call: {e.reason} (tenant={e.tenant_id or '-'})")
            raise

    async def _resolve(self, headers: Mapping[str, str]) -> AuthContext:
        api_key = extract_api_key(headers)
        if api_key is None:
            raise NoCredentialsError()
        if not is_valid_format(api_key):
            raise InvalidKeyFormatError()

        now = self.clock()
        snapshot = await self._load_snapshot(hash_api_key(api_key), now)
        ids = {"tenant_id": snapshot.user_id, "api_key_id": snapshot.api_key_id}

        limits = self.quota.plan_limits(snapshot.user_plan)
        usage = self.quota.check_quota(snapshot.user_id, limits, now)
        if usage.exceeded:
            raise QuotaExceededError(used=usage.used, limit=usage.limit, plan=usage.plan, retry_after=self.quota.retry_after(usage, now), reset_at=usage.reset_at, **ids)

        ts = now.timestamp()
        rate = await self.rate_limiter.check(snapshot.user_id, limits.rate_limit_per_minute, now=ts)
        if not rate.allowed:
            raise RateLimitedError(limit=rate.limit, remaining=rate.remaining, reset_at=rate.reset_at, retry_after=rate.retry_after(ts), **ids)

        connection = self._decrypt(snapshot)

        usage = self.quota.record_authorized_call(usage, snapshot.user_id)
        if self.recorder is not None:
            self.recorder.touch_api_key(snapshot.api_key_id, now)
        logger.debug(f"Authorized tenant {snapshot.user_id} via key {snapshot.api_key_id}")
        return AuthContext(
            tenant_id=snapshot.user_id,
            tenant_email=snapshot.user_email,
            plan=usage.plan,
            api_key_id=snapshot.api_key_id,
            connection=connection,
            usage=usage,
            rate_limit=rate,
        )

    async def _load_snapshot(self, key_hash: str, now: datetime) -> CredentialSnapshot:
        cache_key = api_key_cache_key(key_hash)
        snapshot = await self._cache_get(cache_key)
        if snapshot is None:
            snapshot = self._snapshot_from_store(key_hash, now)
            await self._cache_set(cache_key, snapshot)
        expires_at = as_utc(snapshot.expires_at)
        if expires_at is not None and expires_at <= now:
            await self._cache_delete(cache_key)
            raise ExpiredKeyError(tenant_id=snapshot.user_id, api_key_id=snapshot.api_key_id)
        return snapshot

    async def _cache_get(self, cache_key: str) -> Optional[CredentialSnapshot]:
        try:
            raw = await self.cache.get(cache_key)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(f"Credential cache read failed, falling back to store: {e}")
            return None
        if raw is None:
            return None
        try:
            return CredentialSnapshot.from_cache(raw)
        except (ValidationError, orjson.JSONDecodeError):
            logger.warning("Discarding unreadable credential snapshot")
            await self._cache_delete(cache_key)
            return None

    async def _cache_set(self, cache_key: str, snapshot: CredentialSnapshot) -> None:
        try:
            await self.cache.set(cache_key, snapshot.to_cache(), ttl=self.cache_ttl)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(f"Credential cache write failed: {e}")

    async def _cache_delete(self, cache_key: str) -> None:
        try:
            await self.cache.delete(cache_key)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(f"Credential cache delete failed: {e}")

    def _snapshot_from_store(self, key_hash: str, now: datetime) -> CredentialSnapshot:
        api_key = self.store.get_api_key_by_hash(key_hash)
        if api_key is None:
            raise InvalidApiKeyError()
        ids = {"tenant_id": api_key.user_id, "api_key_id": api_key.id}
        if not api_key.is_active:
            raise RevokedKeyError(**ids)
        expires_at = as_utc(api_key.expires_at)
        if expires_at is not None and expires_at <= now:
            raise ExpiredKeyError(**ids)

        user = self.store.get_user(api_key.user_id)
        if user is None or not user.is_active:
            raise AccountInactiveError(**ids)

        connection = self.store.get_connection(api_key.connection_id)
        if connection is None or connection.status != "active" or connection.user_id != user.id:
            raise ConnectionInactiveError(**ids)

        return CredentialSnapshot(
            user_id=user.id,
            user_email=user.email,
            user_plan=user.plan,
            connection_id=connection.id,
            site_url=connection.site_url,
            username_encrypted=connection.username_encrypted,
            password_encrypted=connection.password_encrypted,
            third_party_key_encrypted=connection.third_party_key_encrypted,
            api_key_id=api_key.id,
            expires_at=expires_at,
        )

    def _decrypt(self, snapshot: CredentialSnapshot) -> DecryptedConnection:
        try:
            username = self.vault.decrypt_secret(snapshot.username_encrypted)
            password = self.vault.decrypt_secret(snapshot.password_encrypted)
            third_party = self.vault.decrypt_optional(snapshot.third_party_key_encrypted)
        except DecryptionError as e:
            DECRYPTION_FAILURES.inc()
            logger.critical(f"Stored credentials for connection {snapshot.connection_id} failed to decrypt: {e}")
            raise CredentialDecryptionError(tenant_id=snapshot.user_id, api_key_id=snapshot.api_key_id) from e
        return DecryptedConnection(
            id=snapshot.connection_id,
            site_url=snapshot.site_url,
            username=SecretStr(username),
            password=SecretStr(password),
            third_party_key=SecretStr(third_party) if third_party is not None else None,
        )

    # ------------------------------------------------------------------ #
    # Invalidation                                                       #
    # ------------------------------------------------------------------ #
    async def invalidate_key_hash(self, key_hash: str) -> None:
        await self.cache.delete(api_key_cache_key(key_hash))

    async def invalidate_connection(self, connection_id: str) -> int:
        """Drop cached snapshots of every key bound to a connection.

        Args:
            connection_id: Connection id.

        Returns:
            int: Number of keys invalidated.
        """
        hashes = self.store.api_key_hashes_for_connection(connection_id)
        if hashes:
            await self.cache.delete(*(api_key_cache_key(h) for h in hashes))
        return len(hashes)

    async def invalidate_user(self, user_id: str) -> int:
        """Drop cached snapshots of every key owned by a tenant.

        Args:
            user_id: Tenant id.

        Returns:
            int: Number of keys invalidated.
        """
        hashes = self.store.api_key_hashes_for_user(user_id)
        if hashes:
            await self.cache.delete(*(api_key_cache_key(h) for h in hashes))
        return len(hashes)
