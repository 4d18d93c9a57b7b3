"""
Contract Statistics
===================

Comparative statistics over the contracts a caller can see:

- all-time summary (total, active, draft, total value, expiring soon)
- grouped counts by type, status and risk level
- current window vs comparison window, reported as percent changes

Windows are matched on ``createdAt``. By default the current window is this
calendar month up to now and the comparison window is the whole previous
calendar month.

All sub-aggregations are independent reads; they run concurrently in worker
threads, each on its own session.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from .auth import AuthContext
from .db.models import ACTIVE_STATUSES, ContractStatus, utc_now
from .query_builder import IsNull, In, Eq, Range, Predicate, all_of, any_of, visibility_predicate
from .repository import ContractRepository
from .schemas import StatsWindowQuery

logger = logging.getLogger(__name__)


def percent_change(current: float, previous: float) -> str:
    """
    Format the change from ``previous`` to ``current`` as a signed percentage.

    Rounds half up (-50.5 -> -50, 2.5 -> 3). A zero baseline yields "+100%"
    when there is growth and "0%" otherwise.
    """
    if previous == 0:
        return "+100%" if current > 0 else "0%"
    change = (current - previous) / previous * 100
    sign = "+" if change >= 0 else ""
    return f"{sign}{math.floor(change + 0.5)}%"


# =============================================================================
# WINDOWS
# =============================================================================

@dataclass(frozen=True)
class Window:
    """createdAt range; the upper bound is inclusive unless end_exclusive"""
    start: datetime
    end: datetime
    end_exclusive: bool = False

    def predicate(self) -> Predicate:
        if self.end_exclusive:
            return Range("createdAt", gte=self.start, lt=self.end)
        return Range("createdAt", gte=self.start, lte=self.end)

    def to_json(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def resolve_windows(query: Optional[StatsWindowQuery], now: datetime) -> Tuple[Window, Window]:
    """Fill in whichever window bounds the caller left out"""
    query = query or StatsWindowQuery()
    this_month = month_start(now)
    last_month = month_start(this_month - timedelta(days=1))

    current = Window(
        start=query.start_date or this_month,
        end=query.end_date or now,
    )
    if query.compare_end_date is not None:
        previous_end, exclusive = query.compare_end_date, False
    else:
        previous_end, exclusive = this_month, True
    previous = Window(
        start=query.compare_start_date or last_month,
        end=previous_end,
        end_exclusive=exclusive,
    )
    return current, previous


# =============================================================================
# PREDICATES
# =============================================================================

def active_predicate(now: datetime) -> Predicate:
    """Approved or executed, and not past its end date"""
    return all_of(
        In("status", tuple(ACTIVE_STATUSES)),
        any_of(IsNull("endDate"), Range("endDate", gte=now)),
    )


def expiring_predicate(now: datetime, days: int) -> Predicate:
    """End date on or before the horizon (already-ended contracts included)"""
    return Range("endDate", lte=now + timedelta(days=days))


def expiring_soon_predicate(now: datetime, days: int) -> Predicate:
    return Range("endDate", gte=now, lte=now + timedelta(days=days))


# =============================================================================
# AGGREGATOR
# =============================================================================

class StatsAggregator:
    """Runs every statistic for a caller concurrently and shapes the result"""

    def __init__(self, repository: ContractRepository, expiring_soon_days: int = 30):
        self.repository = repository
        self.expiring_soon_days = expiring_soon_days

    async def _period(self, base: Predicate, window: Window, now: datetime):
        scoped = all_of(base, window.predicate())
        repo = self.repository
        return await asyncio.gather(
            asyncio.to_thread(repo.count, scoped),
            asyncio.to_thread(repo.count, all_of(scoped, active_predicate(now))),
            asyncio.to_thread(repo.sum_value, scoped),
            asyncio.to_thread(repo.count, all_of(scoped, expiring_predicate(now, self.expiring_soon_days))),
        )

    async def _overall(self, base: Predicate, now: datetime):
        repo = self.repository
        return await asyncio.gather(
            asyncio.to_thread(repo.count, base),
            asyncio.to_thread(repo.count, all_of(base, active_predicate(now))),
            asyncio.to_thread(repo.count, all_of(base, Eq("status", ContractStatus.DRAFT))),
            asyncio.to_thread(repo.sum_value, base),
            asyncio.to_thread(repo.count, all_of(base, expiring_soon_predicate(now, self.expiring_soon_days))),
            asyncio.to_thread(repo.group_counts, "type", base),
            asyncio.to_thread(repo.group_counts, "status", base),
            asyncio.to_thread(repo.group_counts, "riskLevel", base),
        )

    async def compute(
        self,
        auth: AuthContext,
        window_query: Optional[StatsWindowQuery] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or utc_now()
        current, previous = resolve_windows(window_query, now)
        base = visibility_predicate(auth)

        current_stats, previous_stats, overall = await asyncio.gather(
            self._period(base, current, now),
            self._period(base, previous, now),
            self._overall(base, now),
        )
        cur_total, cur_active, cur_value, cur_expiring = current_stats
        prev_total, prev_active, prev_value, prev_expiring = previous_stats
        total, active, draft, total_value, expiring_soon, by_type, by_status, by_risk = overall

        logger.debug(
            f"Stats for {auth.user_id}: total={total} current={cur_total} previous={prev_total}"
        )

        return {
            "summary": {
                "total": total,
                "active": active,
                "draft": draft,
                "totalValue": total_value,
                "expiringSoon": expiring_soon,
            },
            "changes": {
                "total": percent_change(cur_total, prev_total),
                "active": percent_change(cur_active, prev_active),
                "totalValue": percent_change(cur_value, prev_value),
                "expiring": percent_change(cur_expiring, prev_expiring),
            },
            "byType": [{"type": _enum_value(v), "count": n} for v, n in by_type],
            "byStatus": [{"status": _enum_value(v), "count": n} for v, n in by_status],
            "byRiskLevel": [{"riskLevel": _enum_value(v), "count": n} for v, n in by_risk],
            "periods": {
                "current": current.to_json(),
                "previous": previous.to_json(),
            },
        }


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)
