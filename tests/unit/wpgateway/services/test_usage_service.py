# -*- coding: utf-8 -*-
"""Location: ./tests/unit/wpgateway/services/test_usage_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Unit tests for the background usage recorder and the usage reports.
"""

# Standard
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# Third-Party
import pytest

# First-Party
from wpgateway.db import UsageLog
from wpgateway.models import UsageEvent, UsageStatus
from wpgateway.services.usage_service import cleanup_old_logs, get_recent_logs, get_tool_usage_breakdown, get_usage_history, get_usage_stats, UsageRecorder


def make_event(user_id: str = "u1", status: UsageStatus = UsageStatus.SUCCESS, tool: str = "wp_get_posts", ms: int = 10, when: datetime = None) -> UsageEvent:
    return UsageEvent(user_id=user_id, tool_name=tool, status=status, response_time_ms=ms, created_at=when or datetime.now(timezone.utc))


# --------------------------------------------------------------------------- #
# Recorder                                                                    #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_full_queue_drops_and_counts():
    store = MagicMock()
    recorder = UsageRecorder(store, maxsize=2)
    assert recorder.record(make_event())
    assert recorder.record(make_event())
    assert not recorder.record(make_event())
    assert not recorder.touch_api_key("k1")
    assert recorder.dropped == 2
    await recorder.flush()
    assert store.write_usage.call_count == 2


@pytest.mark.asyncio
async def test_worker_writes_events_and_touches():
    store = MagicMock()
    recorder = UsageRecorder(store, maxsize=10)
    await recorder.start()
    assert recorder.running
    recorder.record(make_event())
    recorder.touch_api_key("k1", datetime(2025, 1, 1, tzinfo=timezone.utc))
    await recorder.stop()
    assert not recorder.running
    store.write_usage.assert_called_once()
    store.touch_api_key.assert_called_once_with("k1", datetime(2025, 1, 1, tzinfo=timezone.utc))
    assert recorder.written == 2


@pytest.mark.asyncio
async def test_write_failure_is_counted_and_worker_survives():
    store = MagicMock()
    store.write_usage.side_effect = [RuntimeError("db down"), None]
    recorder = UsageRecorder(store, maxsize=10)
    await recorder.start()
    recorder.record(make_event())
    recorder.record(make_event())
    await recorder.flush()
    assert recorder.failed == 1
    assert recorder.written == 1
    assert recorder.running
    await recorder.stop()


@pytest.mark.asyncio
async def test_record_never_blocks_caller():
    store = MagicMock()
    recorder = UsageRecorder(store, maxsize=1)

    async def burst():
        return [recorder.record(make_event()) for _ in range(50)]

    accepted = await asyncio.wait_for(burst(), timeout=1)
    assert accepted.count(True) == 1
    assert recorder.dropped == 49


@pytest.mark.asyncio
async def test_stop_drains_queue_into_database(store, db, tenant):
    recorder = UsageRecorder(store, maxsize=10)
    await recorder.start()
    for _ in range(3):
        recorder.record(make_event(user_id=tenant.user.id))
    await recorder.stop()
    assert len(get_recent_logs(db, tenant.user.id)) == 3


# --------------------------------------------------------------------------- #
# Reports                                                                     #
# --------------------------------------------------------------------------- #


def test_usage_stats_without_traffic(db, tenant):
    stats = get_usage_stats(db, tenant.user.id, 100, period="2025-06")
    assert stats["requests_used"] == 0
    assert stats["requests_remaining"] == 100
    assert stats["percentage_used"] == 0.0


def test_usage_stats_after_calls(db, store, tenant):
    for _ in range(25):
        store.increment_monthly_usage(tenant.user.id, "2025-06")
    store.write_usage(make_event(user_id=tenant.user.id, when=datetime(2025, 6, 3, tzinfo=timezone.utc)))
    stats = get_usage_stats(db, tenant.user.id, 100, period="2025-06")
    assert (stats["requests_used"], stats["requests_remaining"], stats["success_count"]) == (25, 75, 1)
    assert stats["percentage_used"] == 25.0


def test_history_and_breakdown(db, store, tenant):
    uid = tenant.user.id
    today = datetime.now(timezone.utc)
    store.write_usage(make_event(user_id=uid, tool="wp_get_posts", ms=100, when=today))
    store.write_usage(make_event(user_id=uid, tool="wp_get_posts", ms=300, when=today))
    store.write_usage(make_event(user_id=uid, tool="wp_get_post", status=UsageStatus.ERROR, ms=20, when=today))

    history = get_usage_history(db, uid, days=7)
    assert len(history) == 1
    assert history[0]["requests"] == 3
    assert history[0]["errors"] == 1
    assert history[0]["avg_response_time_ms"] == 140

    breakdown = get_tool_usage_breakdown(db, uid, days=7)
    assert breakdown[0] == {"tool_name": "wp_get_posts", "count": 2, "avg_response_time_ms": 200}
    assert breakdown[1]["tool_name"] == "wp_get_post"


def test_cleanup_old_logs(db, store, tenant):
    uid = tenant.user.id
    store.write_usage(make_event(user_id=uid, when=datetime.now(timezone.utc) - timedelta(days=120)))
    store.write_usage(make_event(user_id=uid))
    assert cleanup_old_logs(db, retention_days=90) == 1
    assert db.query(UsageLog).count() == 1
