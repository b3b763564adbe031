"""
Session Audit - Replay stored sessions and report discrepancies

Replays use the category snapshot frozen onto each priced line item plus the
session's own exchange rate and rounding option. The live registry is never
consulted, so editing a category cannot change what a replay produces.
"""
from decimal import Decimal
from typing import List

import structlog

from pricedesk.common.schemas.pricing_session import (
    InvoicePricingSession,
    LineItem,
    MarketplacePricingSession,
)
from pricedesk.domain.categorization.schemas import Category
from pricedesk.domain.pricing.invoice_calculator import (
    InvoicePricingResult,
    price_line_item,
)
from pricedesk.domain.pricing.marketplace_calculator import price_marketplace_item
from pricedesk.domain.pricing.rounding import coerce_rounding_option

logger = structlog.get_logger()


def replay_invoice_session(session: InvoicePricingSession) -> InvoicePricingResult:
    """Recompute an invoice session from its stored inputs and snapshots."""
    option = coerce_rounding_option(session.rounding_option)

    replayed = []
    for item in session.items:
        category = Category(
            id=item.category_id,
            name=item.category_name,
            markup_percentage=item.markup_percentage,
        )
        line = LineItem(description=item.description, unit_cost_usd=item.unit_cost_usd)
        replayed.append(price_line_item(line, category, session.exchange_rate, option))

    return InvoicePricingResult(
        priced_items=replayed,
        total_value=sum((p.final_price for p in replayed), Decimal("0")),
        exchange_rate=session.exchange_rate,
        rounding_option=option,
    )


def find_discrepancies(session: InvoicePricingSession) -> List[str]:
    """Return a list of issues found by replaying an invoice session."""
    issues: List[str] = []
    replay = replay_invoice_session(session)

    for index, (stored, expected) in enumerate(zip(session.items, replay.priced_items)):
        if stored.final_price != expected.final_price:
            issues.append(
                f"line {index}: final price {stored.final_price} != replayed {expected.final_price}"
            )

    item_sum = sum((item.final_price for item in session.items), Decimal("0"))
    if session.total_value != item_sum:
        issues.append(f"total {session.total_value} != sum of items {item_sum}")

    if issues:
        logger.warning("session_audit_failed", session_id=session.id, issues=issues)
    else:
        logger.info("session_audit_passed", session_id=session.id, item_count=len(session.items))
    return issues


def find_marketplace_discrepancies(session: MarketplacePricingSession) -> List[str]:
    """Return a list of issues found by replaying a marketplace session."""
    issues: List[str] = []
    expected = price_marketplace_item(
        session.unit_cost_usd,
        session.exchange_rate,
        session.markup_percentage,
    )

    for field in ("intermediate_price", "selling_price_usd", "selling_price_local"):
        stored_value = getattr(session, field)
        expected_value = getattr(expected, field)
        if stored_value != expected_value:
            issues.append(f"{field} {stored_value} != replayed {expected_value}")

    if issues:
        logger.warning("session_audit_failed", session_id=session.id, issues=issues)
    else:
        logger.info("session_audit_passed", session_id=session.id)
    return issues
