# -*- coding: utf-8 -*-
"""Location: ./tests/unit/wpgateway/services/test_store.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for the gateway store: lookups and counter upserts.
"""

# Standard
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

# Third-Party
import pytest
from sqlalchemy import func, select

# First-Party
from wpgateway.db import ApiKey, Plan, UsageDaily, UsageLog, UsageMonthly
from wpgateway.models import UsageEvent, UsageStatus

WHEN = datetime(2025, 6, 15, 9, 30, tzinfo=timezone.utc)


def event(user_id: str, status: UsageStatus, ms: int = 100, tool: str = "wp_get_posts") -> UsageEvent:
    return UsageEvent(user_id=user_id, tool_name=tool, status=status, created_at=WHEN, response_time_ms=ms)


def test_lookups(store, tenant):
    assert store.get_api_key_by_hash(tenant.key.key_hash).id == tenant.key.id
    assert store.get_api_key_by_hash("0" * 64) is None
    assert store.get_user(tenant.user.id).email == "owner@example.com"
    assert store.get_connection(tenant.connection.id).site_url == "https://blog.example.com"
    assert store.get_plan("starter").monthly_request_limit == 1000
    assert store.get_plan("missing") is None


def test_inactive_plan_is_hidden(store, db):
    db.get(Plan, "pro").is_active = False
    db.commit()
    assert store.get_plan("pro") is None


def test_key_hash_listings(store, tenant):
    assert store.api_key_hashes_for_connection(tenant.connection.id) == [tenant.key.key_hash]
    assert store.api_key_hashes_for_user(tenant.user.id) == [tenant.key.key_hash]
    assert store.api_key_hashes_for_user("nobody") == []


def test_monthly_row_is_created_once(store, db, tenant):
    assert store.get_monthly_usage(tenant.user.id, "2025-06") == 0
    assert store.get_monthly_usage(tenant.user.id, "2025-06") == 0
    assert store.increment_monthly_usage(tenant.user.id, "2025-06") == 1
    assert store.increment_monthly_usage(tenant.user.id, "2025-06") == 2
    rows = db.execute(select(func.count(UsageMonthly.id)).where(UsageMonthly.user_id == tenant.user.id)).scalar_one()
    assert rows == 1


def test_increment_without_prior_read_creates_row(store, tenant):
    assert store.increment_monthly_usage(tenant.user.id, "2025-08") == 1


def test_concurrent_first_increments_lose_nothing(store, db, tenant):
    workers = 8
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda _: store.increment_monthly_usage(tenant.user.id, "2025-09"), range(workers)))

    assert max(results) == workers
    assert store.get_monthly_usage(tenant.user.id, "2025-09") == workers
    rows = db.execute(select(func.count(UsageMonthly.id)).where(UsageMonthly.user_id == tenant.user.id, UsageMonthly.year_month == "2025-09")).scalar_one()
    assert rows == 1


def test_touch_api_key(store, db, tenant):
    store.touch_api_key(tenant.key.id, WHEN)
    db.expire_all()
    assert db.get(ApiKey, tenant.key.id).last_used_at.replace(tzinfo=timezone.utc) == WHEN


def test_write_usage_upserts_daily_and_monthly_split(store, db, tenant):
    uid = tenant.user.id
    store.write_usage(event(uid, UsageStatus.SUCCESS, ms=100))
    store.write_usage(event(uid, UsageStatus.SUCCESS, ms=300))
    store.write_usage(event(uid, UsageStatus.ERROR, ms=50))
    store.write_usage(event(uid, UsageStatus.RATE_LIMITED, ms=1))

    assert db.execute(select(func.count(UsageLog.id))).scalar_one() == 4

    daily = db.get(UsageDaily, f"{uid}:2025-06-15")
    assert (daily.requests_count, daily.successful_count, daily.errors_count) == (4, 2, 2)
    assert daily.total_response_time_ms == 451

    monthly = db.execute(select(UsageMonthly).where(UsageMonthly.user_id == uid, UsageMonthly.year_month == "2025-06")).scalar_one()
    assert (monthly.success_count, monthly.error_count) == (2, 1)
    # the request counter belongs to the quota enforcer
    assert monthly.request_count == 0


@pytest.mark.parametrize("status", [UsageStatus.QUOTA_EXCEEDED, UsageStatus.RATE_LIMITED])
def test_rejections_leave_monthly_split_alone(store, db, tenant, status):
    store.write_usage(event(tenant.user.id, status))
    assert db.execute(select(UsageMonthly).where(UsageMonthly.user_id == tenant.user.id)).scalar_one_or_none() is None
