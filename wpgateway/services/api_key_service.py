# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/api_key_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

API Key Service.

Bearer keys have the shape ``wp_mcp_{live|test}_{32 x [a-z0-9]}``. Only the
SHA-256 hex digest and a short display prefix are ever stored; the plaintext
is returned exactly once, at creation. Format validation is a pure regex
check so malformed credentials are rejected before any hashing or store
access.

Examples:
    >>> key = generate_api_key("test")
    >>> is_valid_format(key)
    True
    >>> get_environment(key)
    'test'
    >>> len(hash_api_key(key))
    64
    >>> is_valid_format("wp_mcp_live_TOO-SHORT")
    False
"""

# Standard
from datetime import datetime
import hashlib
import logging
import re
import secrets
import string
from typing import List, Literal, Optional, Tuple

# Third-Party
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.orm import Session

# First-Party
from wpgateway.cache import Cache
from wpgateway.config import settings
from wpgateway.db import ApiKey

logger = logging.getLogger(__name__)

Environment = Literal["live", "test"]

_ALPHABET = string.ascii_lowercase + string.digits
_KEY_PATTERN = re.compile(rf"^{re.escape(settings.api_key_prefix)}_(live|test)_[a-z0-9]{{{settings.api_key_random_length}}}$")


class ApiKeyError(Exception):
    """Raised for invalid api key management requests."""


class ApiKeyInfo(BaseModel):
    """Listing view of an api key. Never carries the hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    connection_id: str
    key_prefix: str
    name: str
    is_active: bool
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    created_at: datetime


def api_key_cache_key(key_hash: str) -> str:
    """Cache key holding the credential snapshot for a key hash.

    Args:
        key_hash: SHA-256 hex digest.

    Returns:
        str: ``apikey:{hash}``.

    Examples:
        >>> api_key_cache_key("abc")
        'apikey:abc'
    """
    return f"apikey:{key_hash}"


def generate_api_key(environment: Environment = "live") -> str:
    """Generate a new plaintext key from a CSPRNG.

    Args:
        environment: ``live`` or ``test``.

    Returns:
        str: The plaintext key.

    Raises:
        ApiKeyError: For an unknown environment.
    """
    if environment not in ("live", "test"):
        raise ApiKeyError(f"Unknown api key environment: {environment}")
    random_part = "".join(secrets.choice(_ALPHABET) for _ in range(settings.api_key_random_length))
    return f"{settings.api_key_prefix}_{environment}_{random_part}"


def hash_api_key(api_key: str) -> str:
    """SHA-256 hex digest of a plaintext key.

    Args:
        api_key: Plaintext key.

    Returns:
        str: 64 hex characters.

    Examples:
        >>> hash_api_key("wp_mcp_test_" + "a" * 32) == hash_api_key("wp_mcp_test_" + "a" * 32)
        True
    """
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def is_valid_format(api_key: Optional[str]) -> bool:
    """Check the key shape without touching any storage.

    Args:
        api_key: Candidate key.

    Returns:
        bool: True when the key matches the expected pattern.

    Examples:
        >>> is_valid_format(None)
        False
        >>> is_valid_format("wp_mcp_prod_" + "a" * 32)
        False
        >>> is_valid_format("wp_mcp_live_" + "A" * 32)
        False
    """
    return bool(api_key) and _KEY_PATTERN.match(api_key) is not None


def get_environment(api_key: str) -> Optional[Environment]:
    """Environment encoded in a well-formed key.

    Args:
        api_key: Plaintext key.

    Returns:
        Optional[str]: ``live``, ``test`` or None for malformed keys.
    """
    match = _KEY_PATTERN.match(api_key or "")
    return match.group(1) if match else None  # type: ignore[return-value]


def get_display_prefix(api_key: str) -> str:
    """Non-secret prefix shown in listings and logs.

    Args:
        api_key: Plaintext key.

    Returns:
        str: ``wp_mcp_{env}_`` plus the first random characters.

    Examples:
        >>> get_display_prefix("wp_mcp_live_abcdefgh" + "1" * 24)
        'wp_mcp_live_abcdefgh'
    """
    head = f"{settings.api_key_prefix}_{get_environment(api_key)}_"
    return api_key[: len(head) + settings.api_key_display_chars]


class ApiKeyService:
    """Create, list, revoke and delete api keys.

    Mutations that disable a key also drop its cached credential snapshot
    before returning, so a revoked key stops authenticating immediately.

    Args:
        cache: Shared cache handle holding credential snapshots.
    """

    def __init__(self, cache: Cache):
        self.cache = cache

    def create_api_key(
        self,
        db: Session,
        user_id: str,
        connection_id: str,
        name: str = "Default",
        environment: Environment = "live",
        expires_at: Optional[datetime] = None,
    ) -> Tuple[ApiKey, str]:
        """Create a key bound to a connection.

        Args:
            db: Database session. Committed on success.
            user_id: Owning tenant.
            connection_id: Connection the key authorizes.
            name: Label shown in listings.
            environment: ``live`` or ``test``.
            expires_at: Optional expiry.

        Returns:
            Tuple[ApiKey, str]: The stored record and the plaintext key, which is
            not recoverable afterwards.
        """
        plaintext = generate_api_key(environment)
        record = ApiKey(
            user_id=user_id,
            connection_id=connection_id,
            key_hash=hash_api_key(plaintext),
            key_prefix=get_display_prefix(plaintext),
            name=name,
            is_active=True,
            expires_at=expires_at,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        logger.info(f"Created api key {record.key_prefix}... for user {user_id}")
        return record, plaintext

    def list_api_keys(self, db: Session, user_id: str) -> List[ApiKeyInfo]:
        """List a tenant's keys, newest first.

        Args:
            db: Database session.
            user_id: Tenant id.

        Returns:
            List[ApiKeyInfo]: Keys without their hashes.
        """
        rows = db.execute(select(ApiKey).where(ApiKey.user_id == user_id).order_by(ApiKey.created_at.desc())).scalars()
        return [ApiKeyInfo.model_validate(row) for row in rows]

    def get_by_hash(self, db: Session, key_hash: str) -> Optional[ApiKey]:
        return db.execute(select(ApiKey).where(ApiKey.key_hash == key_hash)).scalar_one_or_none()

    def _owned_key(self, db: Session, key_id: str, user_id: Optional[str]) -> Optional[ApiKey]:
        record = db.get(ApiKey, key_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            return None
        return record

    async def revoke_api_key(self, db: Session, key_id: str, user_id: Optional[str] = None) -> bool:
        """Soft-revoke a key. Idempotent.

        Args:
            db: Database session.
            key_id: Key id.
            user_id: When given, the key must belong to this tenant.

        Returns:
            bool: True if the key went from active to revoked, False if it was
            already revoked.

        Raises:
            ApiKeyError: If the key does not exist for this tenant.
        """
        record = self._owned_key(db, key_id, user_id)
        if record is None:
            raise ApiKeyError(f"API key not found: {key_id}")
        cache_key = api_key_cache_key(record.key_hash)
        if not record.is_active:
            # The snapshot is dropped even when already revoked.
            await self.cache.delete(cache_key)
            return False
        record.is_active = False
        db.commit()
        await self.cache.delete(cache_key)
        logger.info(f"Revoked api key {record.key_prefix}...")
        return True

    async def delete_api_key(self, db: Session, key_id: str, user_id: Optional[str] = None) -> bool:
        """Hard-delete a key.

        Args:
            db: Database session.
            key_id: Key id.
            user_id: When given, the key must belong to this tenant.

        Returns:
            bool: True if a key was deleted.
        """
        record = self._owned_key(db, key_id, user_id)
        if record is None:
            return False
        cache_key, prefix = api_key_cache_key(record.key_hash), record.key_prefix
        db.delete(record)
        db.commit()
        await self.cache.delete(cache_key)
        logger.info(f"Deleted api key {prefix}...")
        return True
