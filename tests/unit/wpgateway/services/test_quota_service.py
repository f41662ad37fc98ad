# -*- coding: utf-8 -*-
"""Location: ./tests/unit/wpgateway/services/test_quota_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for monthly quota enforcement and the durable counters behind it.
"""

# Standard
from datetime import datetime, timezone

# Third-Party
import pytest

# First-Party
from wpgateway.services.quota_service import current_period, period_reset_at, PlanLimits, QuotaEnforcer


@pytest.fixture
def quota(store):
    return QuotaEnforcer(store)


def test_period_boundaries_are_utc():
    late = datetime(2025, 1, 31, 23, 30, tzinfo=timezone.utc)
    assert current_period(late) == "2025-01"
    assert period_reset_at(late) == datetime(2025, 2, 1, tzinfo=timezone.utc)


def test_plan_limits_from_catalogue(quota):
    limits = quota.plan_limits("pro")
    assert (limits.monthly_limit, limits.rate_limit_per_minute) == (10000, 100)


def test_unknown_plan_falls_back_to_defaults(quota):
    limits = quota.plan_limits("platinum")
    assert limits.plan == "free"
    assert (limits.monthly_limit, limits.rate_limit_per_minute) == (100, 10)


def test_first_check_creates_zero_row(quota, tenant, now):
    snapshot = quota.check_quota(tenant.user.id, quota.plan_limits("free"), now)
    assert snapshot.used == 0
    assert snapshot.period == "2025-06"
    assert snapshot.reset_at == int(datetime(2025, 7, 1, tzinfo=timezone.utc).timestamp())
    assert not snapshot.exceeded


def test_hundred_and_first_call_is_over_quota(quota, tenant, now):
    limits = PlanLimits(plan="free", monthly_limit=100, rate_limit_per_minute=10)
    for _ in range(100):
        snapshot = quota.check_quota(tenant.user.id, limits, now)
        assert not snapshot.exceeded
        quota.record_authorized_call(snapshot, tenant.user.id)
    over = quota.check_quota(tenant.user.id, limits, now)
    assert over.exceeded
    assert (over.used, over.limit, over.remaining) == (100, 100, 0)


def test_record_returns_post_increment_count(quota, tenant, now):
    snapshot = quota.check_quota(tenant.user.id, quota.plan_limits("free"), now)
    assert quota.record_authorized_call(snapshot, tenant.user.id).used == 1
    assert quota.record_authorized_call(snapshot, tenant.user.id).used == 2


def test_new_month_starts_at_zero(quota, tenant, now):
    limits = quota.plan_limits("free")
    quota.record_authorized_call(quota.check_quota(tenant.user.id, limits, now), tenant.user.id)
    july = datetime(2025, 7, 1, 0, 0, 1, tzinfo=timezone.utc)
    assert quota.check_quota(tenant.user.id, limits, july).used == 0


def test_retry_after_counts_to_period_end(quota, tenant):
    at = datetime(2025, 6, 30, 23, 59, 59, tzinfo=timezone.utc)
    snapshot = quota.check_quota(tenant.user.id, quota.plan_limits("free"), at)
    assert QuotaEnforcer.retry_after(snapshot, at) == 1
