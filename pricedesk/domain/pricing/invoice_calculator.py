"""
Invoice Pricing Calculator - Category markup + GCT + conversion + rounding

Per line item, in order:
1. Classify description → category (markup snapshot)
2. cost_local    = unit_cost_usd × exchange_rate
3. gct           = cost_local × 15%
4. taxed_cost    = cost_local + gct
5. selling_price = taxed_cost × (1 + markup / 100)
6. final_price   = round_price(selling_price, rounding_option)

Example:
- "HP Ink Cartridge" @ $10, rate 150, nearest 100, Ink @ 45%
- cost_local 1500 → gct 225 → taxed 1725 → ×1.45 = 2501.25 → 2500

Validation happens for the whole batch before anything is priced, and the
registry is read once per run. An empty batch is not an error.
"""
from decimal import Decimal
from typing import Iterable, List, Union

import structlog
from pydantic import BaseModel, ConfigDict

from pricedesk.common.schemas.pricing_session import LineItem, PricedLineItem
from pricedesk.domain.categorization.classifier import CategoryLookup, classify
from pricedesk.domain.categorization.schemas import Category
from pricedesk.domain.pricing.errors import InvalidInput
from pricedesk.domain.pricing.rounding import (
    RoundingOption,
    coerce_rounding_option,
    round_price,
    to_decimal,
)

logger = structlog.get_logger()

# Fixed local sales tax (GCT); not configurable
GCT_RATE = Decimal("0.15")

HUNDRED = Decimal("100")


class InvoicePricingResult(BaseModel):
    """Calculator output, ready for the session materializer"""
    model_config = ConfigDict(frozen=True)

    priced_items: List[PricedLineItem]
    total_value: Decimal
    exchange_rate: Decimal
    rounding_option: RoundingOption


def validate_exchange_rate(exchange_rate: Union[Decimal, int, float, str]) -> Decimal:
    """Reject non-positive exchange rates."""
    rate = to_decimal(exchange_rate, field="exchange_rate")
    if rate <= 0:
        logger.warning("invalid_input", field="exchange_rate", value=str(rate))
        raise InvalidInput(f"Exchange rate must be positive, got {rate}")
    return rate


def validate_unit_cost(unit_cost_usd: Union[Decimal, int, float, str]) -> Decimal:
    """Reject negative unit costs (they are never clamped)."""
    cost = to_decimal(unit_cost_usd, field="unit_cost_usd")
    if cost < 0:
        logger.warning("invalid_input", field="unit_cost_usd", value=str(cost))
        raise InvalidInput(f"Unit cost must not be negative, got {cost}")
    return cost


def _coerce_item(item: Union[LineItem, tuple, dict]) -> LineItem:
    if isinstance(item, LineItem):
        description, cost = item.description, item.unit_cost_usd
    elif isinstance(item, dict):
        description, cost = item.get("description", ""), item.get("unit_cost_usd")
    elif isinstance(item, (tuple, list)) and len(item) == 2:
        description, cost = item
    else:
        logger.warning("invalid_input", field="line_item", value=repr(item))
        raise InvalidInput(
            f"Line item must be a LineItem, a dict or a (description, unit_cost_usd) pair, got {item!r}"
        )

    if description is not None and not isinstance(description, str):
        raise InvalidInput(f"Line item description must be text, got {description!r}")
    if cost is None:
        raise InvalidInput(f"Line item {description!r} has no unit cost")
    return LineItem(description=description or "", unit_cost_usd=validate_unit_cost(cost))


def price_line_item(
    item: LineItem,
    category: Category,
    exchange_rate: Decimal,
    rounding_option: Union[RoundingOption, int],
) -> PricedLineItem:
    """
    Price one line item against an explicit category snapshot.

    Inputs are assumed validated; price_invoice() and the session audit
    both call this so a replay follows exactly the same arithmetic.
    """
    cost_local = item.unit_cost_usd * exchange_rate
    gct_amount = cost_local * GCT_RATE
    taxed_cost = cost_local + gct_amount
    selling_price = taxed_cost * (1 + category.markup_percentage / HUNDRED)
    final_price = round_price(selling_price, rounding_option)

    return PricedLineItem(
        description=item.description,
        unit_cost_usd=item.unit_cost_usd,
        category_id=category.id,
        category_name=category.name,
        markup_percentage=category.markup_percentage,
        cost_local=cost_local,
        gct_amount=gct_amount,
        taxed_cost=taxed_cost,
        selling_price=selling_price,
        final_price=final_price,
    )


def price_invoice(
    items: Iterable[Union[LineItem, tuple, dict]],
    exchange_rate: Union[Decimal, int, float, str],
    rounding_option: Union[RoundingOption, int],
    registry: CategoryLookup,
) -> InvoicePricingResult:
    """
    Price every line item of an invoice.

    Args:
        items: LineItems, (description, unit_cost_usd) pairs, or dicts
        exchange_rate: USD → local rate (> 0)
        rounding_option: 100, 1000 or 10000
        registry: CategoryRegistry or CategorySnapshot

    Returns:
        InvoicePricingResult with priced items in input order and their total

    Raises:
        InvalidInput: Negative cost, non-positive rate or bad rounding option
        CategoryNotConfigured: An item resolved to a category the registry lacks
    """
    rate = validate_exchange_rate(exchange_rate)
    option = coerce_rounding_option(rounding_option)
    line_items = [_coerce_item(item) for item in items]

    # One consistent view for the whole batch
    snapshot = registry.snapshot()

    logger.info("invoice_pricing_started",
                item_count=len(line_items),
                exchange_rate=str(rate),
                rounding_option=int(option))

    priced_items: List[PricedLineItem] = []
    for item in line_items:
        category = classify(item.description, snapshot)
        priced = price_line_item(item, category, rate, option)
        priced_items.append(priced)

        logger.debug("line_item_priced",
                     description=item.description,
                     category=priced.category_name,
                     markup=float(priced.markup_percentage),
                     final_price=str(priced.final_price))

    total_value = sum((p.final_price for p in priced_items), Decimal("0"))

    logger.info("invoice_pricing_complete",
                item_count=len(priced_items),
                total_value=str(total_value))

    return InvoicePricingResult(
        priced_items=priced_items,
        total_value=total_value,
        exchange_rate=rate,
        rounding_option=option,
    )
