# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/tenant_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Tenant Service.

Registers tenants, verifies their passwords and changes their status or plan.
Status and plan changes drop every cached credential snapshot of the tenant
so the next request sees the new state.
"""

# Standard
import logging
from typing import Optional

# Third-Party
from sqlalchemy import func, select
from sqlalchemy.orm import Session

# First-Party
from wpgateway.db import Plan, User, USER_STATUSES
from wpgateway.services.auth_service import AuthResolver
from wpgateway.services.encryption_service import PasswordHasher

logger = logging.getLogger(__name__)


class TenantError(Exception):
    """Raised for invalid tenant operations."""


class TenantService:
    """Tenant lifecycle.

    Args:
        hasher: Password hasher.
        resolver: Auth resolver whose cached snapshots are invalidated on change.
    """

    def __init__(self, hasher: Optional[PasswordHasher] = None, resolver: Optional[AuthResolver] = None):
        self.hasher = hasher or PasswordHasher()
        self.resolver = resolver

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    def register(self, db: Session, email: str, password: Optional[str] = None, name: Optional[str] = None, plan: str = "free") -> User:
        """Create a tenant.

        Args:
            db: Database session. Committed on success.
            email: Unique login email.
            password: Optional password; externally provisioned tenants have none.
            name: Display name.
            plan: Plan id.

        Returns:
            User: The new tenant.

        Raises:
            TenantError: If the email is taken or the plan is unknown.
        """
        email = self._normalize_email(email)
        if db.execute(select(User.id).where(func.lower(User.email) == email)).first() is not None:
            raise TenantError(f"A tenant with email {email} already exists")
        if db.get(Plan, plan) is None:
            raise TenantError(f"Unknown plan: {plan}")
        user = User(email=email, name=name, plan=plan, status="active", password_hash=self.hasher.hash_password(password) if password else None)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Registered tenant {user.id} on plan {plan}")
        return user

    def authenticate(self, db: Session, email: str, password: str) -> Optional[User]:
        """Check a tenant's password.

        Args:
            db: Database session.
            email: Login email.
            password: Candidate password.

        Returns:
            Optional[User]: The tenant when the password matches and the account is active.
        """
        user = db.execute(select(User).where(func.lower(User.email) == self._normalize_email(email))).scalar_one_or_none()
        if user is None or not user.password_hash or not user.is_active:
            return None
        return user if self.hasher.verify_password(password, user.password_hash) else None

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.execute(select(User).where(func.lower(User.email) == self._normalize_email(email))).scalar_one_or_none()

    async def _invalidate(self, user_id: str) -> None:
        if self.resolver is not None:
            await self.resolver.invalidate_user(user_id)

    async def set_status(self, db: Session, user_id: str, status: str) -> User:
        """Change a tenant's status.

        Args:
            db: Database session.
            user_id: Tenant id.
            status: ``active``, ``suspended`` or ``deleted``.

        Returns:
            User: The updated tenant.

        Raises:
            TenantError: Unknown tenant or status.
        """
        if status not in USER_STATUSES:
            raise TenantError(f"Unknown status: {status}")
        user = db.get(User, user_id)
        if user is None:
            raise TenantError(f"Tenant not found: {user_id}")
        user.status = status
        db.commit()
        await self._invalidate(user_id)
        logger.info(f"Tenant {user_id} is now {status}")
        return user

    async def change_plan(self, db: Session, user_id: str, plan: str) -> User:
        """Move a tenant to another plan.

        Args:
            db: Database session.
            user_id: Tenant id.
            plan: Plan id.

        Returns:
            User: The updated tenant.

        Raises:
            TenantError: Unknown tenant or plan.
        """
        user = db.get(User, user_id)
        if user is None:
            raise TenantError(f"Tenant not found: {user_id}")
        if db.get(Plan, plan) is None:
            raise TenantError(f"Unknown plan: {plan}")
        user.plan = plan
        db.commit()
        await self._invalidate(user_id)
        return user
