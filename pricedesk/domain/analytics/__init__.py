"""
Analytics Module - Dashboard statistics over stored pricing sessions
"""

from pricedesk.domain.analytics.price_trends import (
    DailyTotal,
    PricingStats,
    Trend,
    daily_totals,
    summarize_sessions,
)

__all__ = [
    'DailyTotal',
    'PricingStats',
    'Trend',
    'daily_totals',
    'summarize_sessions',
]
