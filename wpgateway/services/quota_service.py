# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/quota_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Monthly quota enforcement.

Each tenant's plan sets a ceiling on authorized calls per calendar month
(UTC). The durable counter lives in ``usage_monthly``; it is read before any
credential work and incremented exactly once per authorized call.

Examples:
    >>> from datetime import datetime, timezone
    >>> current_period(datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc))
    '2025-12'
    >>> period_reset_at(datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc)).isoformat()
    '2026-01-01T00:00:00+00:00'
"""

# Standard
from datetime import datetime, timezone
import logging
import math
from typing import Optional

# Third-Party
from pydantic import BaseModel

# First-Party
from wpgateway.config import settings
from wpgateway.services.store import GatewayStore

logger = logging.getLogger(__name__)


class PlanLimits(BaseModel):
    """Effective limits for a tenant's plan."""

    plan: str
    monthly_limit: int
    rate_limit_per_minute: int


class UsageSnapshot(BaseModel):
    """Monthly usage read at authorization time.

    Examples:
        >>> UsageSnapshot(plan="free", used=40, limit=100, period="2025-01", reset_at=1738368000).remaining
        60
    """

    plan: str
    used: int
    limit: int
    period: str
    reset_at: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    @property
    def exceeded(self) -> bool:
        return self.used >= self.limit


def current_period(now: Optional[datetime] = None) -> str:
    """``YYYY-MM`` of the month containing ``now`` (UTC).

    Args:
        now: Aware datetime. Defaults to now.

    Returns:
        str: Period label.
    """
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m")


def period_reset_at(now: Optional[datetime] = None) -> datetime:
    """First instant of the month after ``now`` (UTC).

    Args:
        now: Aware datetime. Defaults to now.

    Returns:
        datetime: Reset time.
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


class QuotaEnforcer:
    """Reads plan limits and the durable monthly counter.

    Args:
        store: Gateway store.
    """

    def __init__(self, store: GatewayStore):
        self.store = store

    def plan_limits(self, plan_id: Optional[str]) -> PlanLimits:
        """Resolve the limits of a plan, falling back to configured defaults.

        Args:
            plan_id: Plan id from the tenant record.

        Returns:
            PlanLimits: Effective limits.
        """
        plan = self.store.get_plan(plan_id) if plan_id else None
        if plan is None:
            logger.warning(f"Unknown plan {plan_id!r}, applying {settings.default_plan} limits")
            return PlanLimits(plan=settings.default_plan, monthly_limit=settings.default_monthly_limit, rate_limit_per_minute=settings.default_rate_limit)
        return PlanLimits(plan=plan.id, monthly_limit=plan.monthly_request_limit, rate_limit_per_minute=plan.rate_limit_per_minute)

    def check_quota(self, user_id: str, limits: PlanLimits, now: Optional[datetime] = None) -> UsageSnapshot:
        """Read (get-or-create) the tenant's counter for the current period.

        Args:
            user_id: Tenant id.
            limits: The tenant's plan limits.
            now: Current time.

        Returns:
            UsageSnapshot: Usage before this call. ``exceeded`` tells the caller
            to reject.
        """
        now = now or datetime.now(timezone.utc)
        period = current_period(now)
        used = self.store.get_monthly_usage(user_id, period)
        return UsageSnapshot(plan=limits.plan, used=used, limit=limits.monthly_limit, period=period, reset_at=int(period_reset_at(now).timestamp()))

    def record_authorized_call(self, snapshot: UsageSnapshot, user_id: str) -> UsageSnapshot:
        """Count one authorized call against the period of ``snapshot``.

        Args:
            snapshot: Snapshot returned by :meth:`check_quota`.
            user_id: Tenant id.

        Returns:
            UsageSnapshot: Snapshot with the post-increment count.
        """
        used = self.store.increment_monthly_usage(user_id, snapshot.period)
        return snapshot.model_copy(update={"used": used})

    @staticmethod
    def retry_after(snapshot: UsageSnapshot, now: Optional[datetime] = None) -> int:
        """Seconds until the quota period resets.

        Args:
            snapshot: Current usage.
            now: Current time.

        Returns:
            int: At least 1.
        """
        now = now or datetime.now(timezone.utc)
        return max(1, math.ceil(snapshot.reset_at - now.timestamp()))
