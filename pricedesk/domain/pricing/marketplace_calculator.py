"""
Marketplace Pricing Calculator - Cost + fee, tiered markup, conversion

1. intermediate_price  = unit_cost_usd × 1.07 (fixed 7% sourcing/handling fee)
2. markup              = override if given, else tier by raw cost:
                         cost > $100 → 120%, otherwise → 80%
3. selling_price_usd   = intermediate_price × (1 + markup / 100)
4. selling_price_local = selling_price_usd × exchange_rate

No rounding: marketplace items are priced one at a time and reviewed by hand.
"""
from decimal import Decimal
from typing import Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict

from pricedesk.common.schemas.pricing_session import MarkupSource
from pricedesk.domain.pricing.errors import InvalidInput
from pricedesk.domain.pricing.invoice_calculator import (
    validate_exchange_rate,
    validate_unit_cost,
)
from pricedesk.domain.pricing.rounding import to_decimal

logger = structlog.get_logger()

# Fixed sourcing/handling fee on top of marketplace cost; not configurable
MARKETPLACE_FEE_RATE = Decimal("0.07")

# Tier suggestion compares the raw cost, before the fee
TIER_THRESHOLD_USD = Decimal("100")
HIGH_TIER_MARKUP = Decimal("120")
STANDARD_TIER_MARKUP = Decimal("80")

MIN_MARKETPLACE_MARKUP = Decimal("0")
MAX_MARKETPLACE_MARKUP = Decimal("500")

HUNDRED = Decimal("100")


class MarketplacePricingResult(BaseModel):
    """Calculator output for one marketplace item"""
    model_config = ConfigDict(frozen=True)

    unit_cost_usd: Decimal
    intermediate_price: Decimal
    markup_percentage: Decimal
    markup_source: MarkupSource
    selling_price_usd: Decimal
    selling_price_local: Decimal
    exchange_rate: Decimal


def suggest_markup(unit_cost_usd: Union[Decimal, int, float, str]) -> Decimal:
    """
    Advisory markup tier for a raw USD cost.

    Recompute whenever the cost changes and no override is in effect.
    """
    cost = validate_unit_cost(unit_cost_usd)
    return HIGH_TIER_MARKUP if cost > TIER_THRESHOLD_USD else STANDARD_TIER_MARKUP


def validate_marketplace_markup(markup_percentage: Union[Decimal, int, float, str]) -> Decimal:
    markup = to_decimal(markup_percentage, field="markup_percentage")
    if markup < MIN_MARKETPLACE_MARKUP or markup > MAX_MARKETPLACE_MARKUP:
        logger.warning("invalid_input", field="markup_percentage", value=str(markup))
        raise InvalidInput(
            f"Markup must be between {MIN_MARKETPLACE_MARKUP}% and "
            f"{MAX_MARKETPLACE_MARKUP}%, got {markup}%"
        )
    return markup


def price_marketplace_item(
    unit_cost_usd: Union[Decimal, int, float, str],
    exchange_rate: Union[Decimal, int, float, str],
    markup_percentage: Optional[Union[Decimal, int, float, str]] = None,
) -> MarketplacePricingResult:
    """
    Price a single marketplace item.

    Args:
        unit_cost_usd: Listing cost in USD (≥ 0)
        exchange_rate: USD → local rate (> 0)
        markup_percentage: Operator override (0-500); tier suggestion if None

    Returns:
        MarketplacePricingResult at full decimal precision

    Raises:
        InvalidInput: Negative cost, non-positive rate or out-of-range markup
    """
    cost = validate_unit_cost(unit_cost_usd)
    rate = validate_exchange_rate(exchange_rate)

    if markup_percentage is None:
        markup = suggest_markup(cost)
        source = MarkupSource.TIER
    else:
        markup = validate_marketplace_markup(markup_percentage)
        source = MarkupSource.OVERRIDE

    intermediate_price = cost * (1 + MARKETPLACE_FEE_RATE)
    selling_price_usd = intermediate_price * (1 + markup / HUNDRED)
    selling_price_local = selling_price_usd * rate

    logger.info("marketplace_item_priced",
                unit_cost_usd=str(cost),
                markup=float(markup),
                markup_source=source.value,
                selling_price_usd=str(selling_price_usd),
                selling_price_local=str(selling_price_local))

    return MarketplacePricingResult(
        unit_cost_usd=cost,
        intermediate_price=intermediate_price,
        markup_percentage=markup,
        markup_source=source,
        selling_price_usd=selling_price_usd,
        selling_price_local=selling_price_local,
        exchange_rate=rate,
    )
