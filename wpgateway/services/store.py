# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/store.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Gateway Store.

The durable operations the request path needs, expressed over SQLAlchemy
sessions. Every call opens and closes its own short-lived session so the store
can be shared by concurrent requests and by the usage recorder worker.

Counter writes are idempotent-create plus relative increment:
``INSERT ... ON CONFLICT DO NOTHING`` followed by ``UPDATE ... SET n = n + 1``.
Two instances creating the same monthly row never collide, and no increment
is lost to a read-modify-write race. Supported dialects: SQLite, PostgreSQL.
"""

# Standard
from datetime import datetime
import logging
from typing import Any, Callable, Dict, List, Optional, Type

# Third-Party
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

# First-Party
from wpgateway.db import ApiKey, Connection, new_id, Plan, SessionLocal, UsageDaily, UsageLog, UsageMonthly, User, utc_now
from wpgateway.models import UsageEvent, UsageStatus

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the store cannot serve a request for the current dialect."""


def _dialect_insert(db: Session, model: Type[Any]):
    """Return a dialect-specific ``insert`` supporting ON CONFLICT.

    Args:
        db: Session whose bind decides the dialect.
        model: ORM class to insert into.

    Returns:
        Insert: A postgresql or sqlite insert construct.

    Raises:
        StoreError: For dialects without ON CONFLICT support.
    """
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise StoreError(f"Unsupported database dialect: {name}")


class GatewayStore:
    """Durable record access for the gateway core.

    Args:
        session_factory: Callable returning a new :class:`Session`.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    # ------------------------------------------------------------------ #
    # Lookups                                                            #
    # ------------------------------------------------------------------ #
    def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        """Fetch an api key record by its SHA-256 hash.

        Args:
            key_hash: Hex digest of the plaintext key.

        Returns:
            Optional[ApiKey]: The record, active or not, or None.
        """
        with self.session_factory() as db:
            return db.execute(select(ApiKey).where(ApiKey.key_hash == key_hash)).scalar_one_or_none()

    def get_user(self, user_id: str) -> Optional[User]:
        with self.session_factory() as db:
            return db.get(User, user_id)

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        with self.session_factory() as db:
            return db.get(Connection, connection_id)

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        with self.session_factory() as db:
            plan = db.get(Plan, plan_id)
            return plan if plan is not None and plan.is_active else None

    def api_key_hashes_for_connection(self, connection_id: str) -> List[str]:
        """Hashes of every key bound to a connection, for cache invalidation.

        Args:
            connection_id: Connection id.

        Returns:
            List[str]: Key hashes.
        """
        with self.session_factory() as db:
            return list(db.execute(select(ApiKey.key_hash).where(ApiKey.connection_id == connection_id)).scalars())

    def api_key_hashes_for_user(self, user_id: str) -> List[str]:
        with self.session_factory() as db:
            return list(db.execute(select(ApiKey.key_hash).where(ApiKey.user_id == user_id)).scalars())

    # ------------------------------------------------------------------ #
    # Monthly counters                                                   #
    # ------------------------------------------------------------------ #
    @staticmethod
    def _ensure_monthly_row(db: Session, user_id: str, period: str) -> None:
        stmt = _dialect_insert(db, UsageMonthly).values(id=new_id(), user_id=user_id, year_month=period, request_count=0, success_count=0, error_count=0)
        db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id", "year_month"]))

    def get_monthly_usage(self, user_id: str, period: str) -> int:
        """Get-or-create the tenant's counter for ``period`` and return its value.

        Args:
            user_id: Tenant id.
            period: ``YYYY-MM``.

        Returns:
            int: Calls counted so far in the period.
        """
        with self.session_factory() as db:
            self._ensure_monthly_row(db, user_id, period)
            db.commit()
            count = db.execute(select(UsageMonthly.request_count).where(UsageMonthly.user_id == user_id, UsageMonthly.year_month == period)).scalar_one()
            return int(count)

    def increment_monthly_usage(self, user_id: str, period: str) -> int:
        """Add one authorized call to the tenant's monthly counter.

        Args:
            user_id: Tenant id.
            period: ``YYYY-MM``.

        Returns:
            int: The counter value after the increment.
        """
        with self.session_factory() as db:
            self._ensure_monthly_row(db, user_id, period)
            db.execute(
                update(UsageMonthly)
                .where(UsageMonthly.user_id == user_id, UsageMonthly.year_month == period)
                .values(request_count=UsageMonthly.request_count + 1, updated_at=utc_now())
            )
            db.commit()
            return int(db.execute(select(UsageMonthly.request_count).where(UsageMonthly.user_id == user_id, UsageMonthly.year_month == period)).scalar_one())

    # ------------------------------------------------------------------ #
    # Writes performed by the usage recorder                             #
    # ------------------------------------------------------------------ #
    def touch_api_key(self, api_key_id: str, when: datetime) -> None:
        """Update ``last_used_at`` on an api key.

        Args:
            api_key_id: Key id.
            when: Timestamp to store.
        """
        with self.session_factory() as db:
            db.execute(update(ApiKey).where(ApiKey.id == api_key_id).values(last_used_at=when))
            db.commit()

    def write_usage(self, event: UsageEvent) -> None:
        """Persist a usage log row and fold it into the aggregates.

        The daily aggregate is upsert-or-increment. The monthly success/error
        split is updated for success and error outcomes only; the monthly
        request counter itself is owned by the quota enforcer.

        Args:
            event: Completed request.
        """
        day = event.created_at.strftime("%Y-%m-%d")
        period = event.created_at.strftime("%Y-%m")
        is_success = event.status == UsageStatus.SUCCESS
        is_error = event.status == UsageStatus.ERROR
        elapsed = event.response_time_ms or 0
        with self.session_factory() as db:
            db.add(
                UsageLog(
                    user_id=event.user_id,
                    api_key_id=event.api_key_id,
                    connection_id=event.connection_id,
                    tool_name=event.tool_name,
                    status=event.status.value,
                    response_time_ms=event.response_time_ms,
                    error_message=event.error_message,
                    created_at=event.created_at,
                )
            )
            daily = _dialect_insert(db, UsageDaily).values(
                id=f"{event.user_id}:{day}",
                user_id=event.user_id,
                date=day,
                requests_count=1,
                successful_count=int(is_success),
                errors_count=int(not is_success),
                total_response_time_ms=elapsed,
            )
            db.execute(
                daily.on_conflict_do_update(
                    index_elements=["user_id", "date"],
                    set_={
                        "requests_count": UsageDaily.requests_count + 1,
                        "successful_count": UsageDaily.successful_count + int(is_success),
                        "errors_count": UsageDaily.errors_count + int(not is_success),
                        "total_response_time_ms": UsageDaily.total_response_time_ms + elapsed,
                    },
                )
            )
            if is_success or is_error:
                self._ensure_monthly_row(db, event.user_id, period)
                values: Dict[str, Any] = {"success_count": UsageMonthly.success_count + 1} if is_success else {"error_count": UsageMonthly.error_count + 1}
                db.execute(update(UsageMonthly).where(UsageMonthly.user_id == event.user_id, UsageMonthly.year_month == period).values(**values))
            db.commit()
