# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/usage_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Usage recording and reporting.

The request path never waits on usage bookkeeping. :class:`UsageRecorder`
owns a bounded :class:`asyncio.Queue` and a single worker task:

- ``record(event)`` and ``touch_api_key(id)`` enqueue without blocking; when
  the queue is full the item is dropped and counted in ``dropped``
- the worker writes usage logs, the daily aggregate and the monthly
  success/error split through the store; any exception is logged and counted
  in ``failed`` and never reaches a caller
- ``stop()`` drains already-queued items before the worker exits

Reporting queries (``get_usage_stats`` and friends) read the same tables for
the admin CLI and dashboards.
"""

# Standard
import asyncio
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

# Third-Party
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

# First-Party
from wpgateway.config import settings
from wpgateway.db import as_utc, UsageDaily, UsageLog, UsageMonthly
from wpgateway.models import UsageEvent
from wpgateway.services.metrics import USAGE_EVENTS_DROPPED, USAGE_WRITE_FAILURES
from wpgateway.services.quota_service import current_period
from wpgateway.services.store import GatewayStore

logger = logging.getLogger(__name__)

_Touch = Tuple[str, datetime]
_QueueItem = Union[UsageEvent, _Touch]


class UsageRecorder:
    """Best-effort background writer for usage data.

    Args:
        store: Gateway store used by the worker.
        maxsize: Queue capacity. Defaults to ``settings.usage_queue_size``.

    Examples:
        >>> from unittest.mock import MagicMock
        >>> recorder = UsageRecorder(MagicMock(), maxsize=1)
        >>> recorder.touch_api_key("k1")
        True
        >>> recorder.touch_api_key("k2")
        False
        >>> recorder.dropped
        1
    """

    def __init__(self, store: GatewayStore, maxsize: Optional[int] = None):
        self.store = store
        self.queue: "asyncio.Queue[_QueueItem]" = asyncio.Queue(maxsize=maxsize or settings.usage_queue_size)
        self.dropped = 0
        self.failed = 0
        self.written = 0
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def _enqueue(self, item: _QueueItem) -> bool:
        try:
            self.queue.put_nowait(item)
        except asyncio.QueueFull:
            self.dropped += 1
            USAGE_EVENTS_DROPPED.inc()
            logger.warning(f"Usage queue full, dropped item ({self.dropped} dropped so far)")
            return False
        return True

    def record(self, event: UsageEvent) -> bool:
        """Queue a completed request for persistence.

        Args:
            event: The usage event.

        Returns:
            bool: False when the event was dropped.
        """
        return self._enqueue(event)

    def touch_api_key(self, api_key_id: str, when: Optional[datetime] = None) -> bool:
        """Queue a last-used update for an api key.

        Args:
            api_key_id: Key id.
            when: Timestamp. Defaults to now.

        Returns:
            bool: False when the update was dropped.
        """
        return self._enqueue((api_key_id, when or datetime.now(timezone.utc)))

    def _write(self, item: _QueueItem) -> None:
        if isinstance(item, UsageEvent):
            self.store.write_usage(item)
        else:
            api_key_id, when = item
            self.store.touch_api_key(api_key_id, when)

    def _process(self, item: _QueueItem) -> None:
        try:
            self._write(item)
            self.written += 1
        except Exception as e:  # pylint: disable=broad-except
            self.failed += 1
            USAGE_WRITE_FAILURES.inc()
            logger.error(f"Usage write failed: {e}", exc_info=True)
        finally:
            self.queue.task_done()

    async def _run(self) -> None:
        while True:
            self._process(await self.queue.get())

    async def start(self) -> None:
        """Start the worker task if it is not running."""
        if not self.running:
            self._worker = asyncio.create_task(self._run(), name="usage-recorder")
            logger.info("Usage recorder started")

    async def flush(self) -> None:
        """Wait until every queued item has been processed."""
        if self.running:
            await self.queue.join()
        else:
            while not self.queue.empty():
                self._process(self.queue.get_nowait())

    async def stop(self) -> None:
        """Drain the queue and stop the worker."""
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        logger.info(f"Usage recorder stopped (written={self.written}, failed={self.failed}, dropped={self.dropped})")


# --------------------------------------------------------------------------- #
# Reporting                                                                   #
# --------------------------------------------------------------------------- #
def get_usage_stats(db: Session, user_id: str, monthly_limit: int, period: Optional[str] = None) -> Dict[str, Any]:
    """Summarize a tenant's usage for a month.

    Args:
        db: Database session.
        user_id: Tenant id.
        monthly_limit: The tenant's plan ceiling.
        period: ``YYYY-MM``. Defaults to the current month.

    Returns:
        Dict[str, Any]: Counts, remaining calls and percentage used.
    """
    period = period or current_period()
    row = db.execute(select(UsageMonthly).where(UsageMonthly.user_id == user_id, UsageMonthly.year_month == period)).scalar_one_or_none()
    used = row.request_count if row else 0
    return {
        "period": period,
        "requests_used": used,
        "requests_limit": monthly_limit,
        "requests_remaining": max(0, monthly_limit - used),
        "success_count": row.success_count if row else 0,
        "error_count": row.error_count if row else 0,
        "percentage_used": round(used / monthly_limit * 100, 2) if monthly_limit > 0 else 0.0,
    }


def get_usage_history(db: Session, user_id: str, days: int = 30) -> List[Dict[str, Any]]:
    """Daily aggregate rows for the last ``days`` days, oldest first.

    Args:
        db: Database session.
        user_id: Tenant id.
        days: Look-back window.

    Returns:
        List[Dict[str, Any]]: One entry per day with traffic.
    """
    since = (datetime.now(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%d")
    rows = db.execute(select(UsageDaily).where(UsageDaily.user_id == user_id, UsageDaily.date >= since).order_by(UsageDaily.date)).scalars()
    return [
        {
            "date": r.date,
            "requests": r.requests_count,
            "successful": r.successful_count,
            "errors": r.errors_count,
            "avg_response_time_ms": round(r.total_response_time_ms / r.requests_count) if r.requests_count else 0,
        }
        for r in rows
    ]


def get_recent_logs(db: Session, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    """Most recent usage log rows, newest first.

    Args:
        db: Database session.
        user_id: Tenant id.
        limit: Maximum rows.

    Returns:
        List[Dict[str, Any]]: Log entries.
    """
    rows = db.execute(select(UsageLog).where(UsageLog.user_id == user_id).order_by(UsageLog.created_at.desc()).limit(limit)).scalars()
    return [
        {
            "id": r.id,
            "tool_name": r.tool_name,
            "status": r.status,
            "response_time_ms": r.response_time_ms,
            "error_message": r.error_message,
            "created_at": as_utc(r.created_at),
        }
        for r in rows
    ]


def get_tool_usage_breakdown(db: Session, user_id: str, days: int = 30) -> List[Dict[str, Any]]:
    """Call counts per tool over the last ``days`` days, busiest first.

    Args:
        db: Database session.
        user_id: Tenant id.
        days: Look-back window.

    Returns:
        List[Dict[str, Any]]: ``tool_name``, ``count`` and ``avg_response_time_ms``.
    """
    since = datetime.now(timezone.utc) - timedelta(days=days)
    count = func.count(UsageLog.id).label("count")
    rows = db.execute(
        select(UsageLog.tool_name, count, func.avg(UsageLog.response_time_ms).label("avg_ms"))
        .where(UsageLog.user_id == user_id, UsageLog.created_at >= since)
        .group_by(UsageLog.tool_name)
        .order_by(count.desc())
    ).all()
    return [{"tool_name": name, "count": n, "avg_response_time_ms": round(avg or 0)} for name, n, avg in rows]


def cleanup_old_logs(db: Session, retention_days: Optional[int] = None) -> int:
    """Delete usage log rows older than the retention period.

    Args:
        db: Database session. Committed on return.
        retention_days: Days to keep. Defaults to ``settings.usage_retention_days``.

    Returns:
        int: Rows deleted.
    """
    days = retention_days if retention_days is not None else settings.usage_retention_days
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    result = db.execute(delete(UsageLog).where(UsageLog.created_at < cutoff))
    db.commit()
    logger.info(f"Deleted {result.rowcount} usage log rows older than {days} days")
    return result.rowcount
