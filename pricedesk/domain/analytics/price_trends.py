"""
Price Trends - Aggregate statistics over stored pricing sessions

Feeds the pricing desk dashboard:
- summarize_sessions(): totals, average per item, and a first-half vs
  second-half trend (|change| < 5% is "stable")
- daily_totals(): one row per calendar day, invoice and marketplace values

Pure functions over already-loaded sessions; no database access here.
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel

from pricedesk.common.schemas.pricing_session import (
    InvoicePricingSession,
    MarketplacePricingSession,
)

# Relative change below this percentage counts as stable
STABLE_THRESHOLD_PERCENT = Decimal("5")

ZERO = Decimal("0")

AnySession = Union[InvoicePricingSession, MarketplacePricingSession]


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class PricingStats(BaseModel):
    """Summary of a set of sessions of one type"""
    session_count: int
    total_value: Decimal
    total_items: int
    average_per_item: Decimal
    trend: Trend
    trend_percentage: Decimal


class DailyTotal(BaseModel):
    day: date
    invoice_value: Decimal
    marketplace_value: Decimal
    invoice_sessions: int
    marketplace_sessions: int


def session_value(session: AnySession) -> Decimal:
    """Local-currency value of a session."""
    if isinstance(session, InvoicePricingSession):
        return session.total_value
    return session.selling_price_local


def _item_count(session: AnySession) -> int:
    if isinstance(session, InvoicePricingSession):
        return len(session.items)
    return 1


def _utc_day(moment: datetime) -> date:
    # Naive timestamps are stored as UTC
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


def _average(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


def summarize_sessions(sessions: Iterable[AnySession]) -> PricingStats:
    """
    Summarize sessions and compare the older half with the newer half.

    Sessions are ordered by created_at and split at len // 2.
    """
    ordered = sorted(sessions, key=lambda s: s.created_at)
    values = [session_value(s) for s in ordered]
    total_value = sum(values, ZERO)
    total_items = sum(_item_count(s) for s in ordered)
    average_per_item = total_value / total_items if total_items else ZERO

    trend = Trend.STABLE
    trend_percentage = ZERO

    if len(ordered) >= 2:
        midpoint = len(ordered) // 2
        first_avg = _average(values[:midpoint])
        second_avg = _average(values[midpoint:])

        change = (second_avg - first_avg) / first_avg * 100 if first_avg > 0 else ZERO
        if abs(change) >= STABLE_THRESHOLD_PERCENT:
            trend = Trend.UP if change > 0 else Trend.DOWN
        trend_percentage = abs(change)

    return PricingStats(
        session_count=len(ordered),
        total_value=total_value,
        total_items=total_items,
        average_per_item=average_per_item,
        trend=trend,
        trend_percentage=trend_percentage,
    )


def daily_totals(
    invoice_sessions: Iterable[InvoicePricingSession],
    marketplace_sessions: Iterable[MarketplacePricingSession],
    days: int,
    end_date: Optional[date] = None,
) -> List[DailyTotal]:
    """
    Per-day session values for the last `days` days, oldest first.

    Days are UTC calendar days; end_date defaults to today in UTC.

    Days with no sessions are included with zero values.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    end = end_date or datetime.now(timezone.utc).date()
    start = end - timedelta(days=days - 1)

    rows = {
        start + timedelta(days=offset): {
            "invoice_value": ZERO,
            "marketplace_value": ZERO,
            "invoice_sessions": 0,
            "marketplace_sessions": 0,
        }
        for offset in range(days)
    }

    for session in invoice_sessions:
        row = rows.get(_utc_day(session.created_at))
        if row is not None:
            row["invoice_value"] += session.total_value
            row["invoice_sessions"] += 1

    for session in marketplace_sessions:
        row = rows.get(_utc_day(session.created_at))
        if row is not None:
            row["marketplace_value"] += session.selling_price_local
            row["marketplace_sessions"] += 1

    return [DailyTotal(day=day, **values) for day, values in sorted(rows.items())]
