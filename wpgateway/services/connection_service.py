# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/connection_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Connection Service.

Onboards WordPress sites. A connection and its first api key are created
together; the credentials are encrypted before they touch the database.
Rotating credentials or deactivating a connection drops the cached snapshot
of every key bound to it before returning.
"""

# Standard
from datetime import datetime
import logging
from typing import List, Optional, Tuple

# Third-Party
from pydantic import BaseModel, ConfigDict, field_validator, HttpUrl
from sqlalchemy import func, select
from sqlalchemy.orm import Session

# First-Party
from wpgateway.db import ApiKey, Connection, CONNECTION_STATUSES, Plan, User, utc_now
from wpgateway.services.api_key_service import ApiKeyService, Environment
from wpgateway.services.auth_service import AuthResolver
from wpgateway.services.encryption_service import EncryptionService

logger = logging.getLogger(__name__)


class ConnectionServiceError(Exception):
    """Raised for invalid connection operations."""


class ConnectionCreate(BaseModel):
    """Input for a new connection.

    Examples:
        >>> ConnectionCreate(name="Blog", site_url="https://blog.example/", username=" admin ", password="abcd efgh").password
        'abcdefgh'
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    site_url: HttpUrl
    username: str
    password: str
    third_party_key: Optional[str] = None

    @field_validator("password")
    @classmethod
    def _strip_password(cls, value: str) -> str:
        return "".join(value.split())


class ConnectionInfo(BaseModel):
    """Listing view of a connection. Never carries credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    site_url: str
    status: str
    last_tested_at: Optional[datetime] = None
    created_at: datetime


class ConnectionService:
    """Connection lifecycle.

    Args:
        vault: Credential vault.
        api_keys: Api key service used for the first key.
        resolver: Auth resolver whose cached snapshots are invalidated on change.
    """

    def __init__(self, vault: EncryptionService, api_keys: ApiKeyService, resolver: Optional[AuthResolver] = None):
        self.vault = vault
        self.api_keys = api_keys
        self.resolver = resolver

    def _check_capacity(self, db: Session, user: User) -> None:
        plan = db.get(Plan, user.plan)
        if plan is None or plan.max_connections < 0:
            return
        active = db.execute(select(func.count(Connection.id)).where(Connection.user_id == user.id, Connection.status != "deleted")).scalar_one()
        if active >= plan.max_connections:
            raise ConnectionServiceError(f"Plan {plan.id} allows {plan.max_connections} connection(s)")

    def create_connection(self, db: Session, user_id: str, data: ConnectionCreate, key_name: str = "Default", environment: Environment = "live") -> Tuple[Connection, ApiKey, str]:
        """Create a connection and its first api key.

        Args:
            db: Database session. Committed on success.
            user_id: Owning tenant.
            data: Site and credentials.
            key_name: Label of the first key.
            environment: ``live`` or ``test`` key.

        Returns:
            Tuple[Connection, ApiKey, str]: The connection, the key record and the
            plaintext key (shown once).

        Raises:
            ConnectionServiceError: Unknown or inactive tenant, or plan capacity reached.
        """
        user = db.get(User, user_id)
        if user is None or not user.is_active:
            raise ConnectionServiceError(f"Tenant not found or inactive: {user_id}")
        self._check_capacity(db, user)
        connection = Connection(
            user_id=user_id,
            name=data.name,
            site_url=str(data.site_url).rstrip("/"),
            username_encrypted=self.vault.encrypt_secret(data.username),
            password_encrypted=self.vault.encrypt_secret(data.password),
            third_party_key_encrypted=self.vault.encrypt_optional(data.third_party_key),
            status="active",
        )
        db.add(connection)
        db.flush()
        record, plaintext = self.api_keys.create_api_key(db, user_id, connection.id, name=key_name, environment=environment)
        logger.info(f"Created connection {connection.id} for tenant {user_id}")
        return connection, record, plaintext

    def list_connections(self, db: Session, user_id: str) -> List[ConnectionInfo]:
        rows = db.execute(select(Connection).where(Connection.user_id == user_id, Connection.status != "deleted").order_by(Connection.created_at)).scalars()
        return [ConnectionInfo.model_validate(row) for row in rows]

    def _get(self, db: Session, connection_id: str, user_id: Optional[str]) -> Connection:
        connection = db.get(Connection, connection_id)
        if connection is None or (user_id is not None and connection.user_id != user_id):
            raise ConnectionServiceError(f"Connection not found: {connection_id}")
        return connection

    async def _invalidate(self, connection_id: str) -> None:
        if self.resolver is not None:
            await self.resolver.invalidate_connection(connection_id)

    async def rotate_credentials(self, db: Session, connection_id: str, username: str, password: str, user_id: Optional[str] = None) -> Connection:
        """Replace a connection's WordPress credentials.

        Args:
            db: Database session.
            connection_id: Connection id.
            username: New username.
            password: New application password. Whitespace is removed.
            user_id: When given, the connection must belong to this tenant.

        Returns:
            Connection: The updated connection.
        """
        connection = self._get(db, connection_id, user_id)
        connection.username_encrypted = self.vault.encrypt_secret(username.strip())
        connection.password_encrypted = self.vault.encrypt_secret("".join(password.split()))
        connection.updated_at = utc_now()
        db.commit()
        await self._invalidate(connection_id)
        logger.info(f"Rotated credentials of connection {connection_id}")
        return connection

    async def set_status(self, db: Session, connection_id: str, status: str, user_id: Optional[str] = None) -> Connection:
        """Change a connection's status.

        Args:
            db: Database session.
            connection_id: Connection id.
            status: ``active``, ``inactive``, ``error`` or ``deleted``.
            user_id: When given, the connection must belong to this tenant.

        Returns:
            Connection: The updated connection.

        Raises:
            ConnectionServiceError: Unknown connection or status.
        """
        if status not in CONNECTION_STATUSES:
            raise ConnectionServiceError(f"Unknown status: {status}")
        connection = self._get(db, connection_id, user_id)
        connection.status = status
        db.commit()
        await self._invalidate(connection_id)
        logger.info(f"Connection {connection_id} is now {status}")
        return connection

    async def deactivate(self, db: Session, connection_id: str, user_id: Optional[str] = None) -> Connection:
        return await self.set_status(db, connection_id, "inactive", user_id)

    async def rotate_root_key(self, db: Session, target: EncryptionService) -> int:
        """Re-encrypt every stored connection secret under a new root key.

        Runs in one transaction: either every row moves to the new key or none does.
        Cached snapshots of every rotated connection are dropped afterwards.

        Args:
            db: Database session.
            target: Vault holding the new root key.

        Returns:
            int: Number of connections re-encrypted.
        """
        rotated: List[str] = []
        try:
            for connection in db.execute(select(Connection)).scalars():
                connection.username_encrypted = self.vault.reencrypt(connection.username_encrypted, target)
                connection.password_encrypted = self.vault.reencrypt(connection.password_encrypted, target)
                if connection.third_party_key_encrypted is not None:
                    connection.third_party_key_encrypted = self.vault.reencrypt(connection.third_party_key_encrypted, target)
                rotated.append(connection.id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        for connection_id in rotated:
            await self._invalidate(connection_id)
        logger.info(f"Re-encrypted {len(rotated)} connection(s) under the new root key")
        return len(rotated)
