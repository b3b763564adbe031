"""
Rounding Engine - Snap invoice prices to a configured granularity

Round-half-up to the nearest multiple of the granularity:

    floor(value / granularity + 0.5) * granularity

Examples:
- 2501.25 @ 100   → 2500
- 150     @ 100   → 200
- 1499    @ 1000  → 1000
- 1500    @ 1000  → 2000

Only invoice pricing rounds. Marketplace prices are reported unrounded.
"""
from decimal import Decimal, ROUND_FLOOR
from enum import IntEnum
from typing import Union

import structlog

from pricedesk.domain.pricing.errors import InvalidInput

logger = structlog.get_logger()

HALF = Decimal("0.5")


class RoundingOption(IntEnum):
    """Granularities an invoice session can be rounded to"""
    HUNDRED = 100
    THOUSAND = 1000
    TEN_THOUSAND = 10000


def to_decimal(value: Union[Decimal, int, float, str], field: str = "value") -> Decimal:
    """
    Convert a numeric input to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than its
    binary expansion.

    Raises:
        InvalidInput: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a number, got bool")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except ArithmeticError:
            raise InvalidInput(f"{field} is not a number: {value!r}")
    else:
        raise InvalidInput(f"{field} must be a number, got {type(value).__name__}")

    if not result.is_finite():
        raise InvalidInput(f"{field} must be finite, got {value!r}")
    return result


def coerce_rounding_option(granularity: Union[RoundingOption, int]) -> RoundingOption:
    """Validate a granularity and return it as a RoundingOption."""
    if isinstance(granularity, bool):
        raise InvalidInput("Rounding option must be 100, 1000 or 10000")
    try:
        return RoundingOption(int(granularity))
    except (TypeError, ValueError):
        logger.warning("invalid_input",
                       field="rounding_option",
                       value=str(granularity))
        raise InvalidInput(
            f"Rounding option must be 100, 1000 or 10000, got {granularity!r}"
        )


def round_price(
    value: Union[Decimal, int, float, str],
    granularity: Union[RoundingOption, int],
) -> Decimal:
    """
    Round a price half-up to the nearest multiple of granularity.

    Args:
        value: Price to round
        granularity: 100, 1000 or 10000

    Returns:
        Rounded price as Decimal (an exact multiple of granularity)

    Raises:
        InvalidInput: If granularity is not a supported rounding option
    """
    option = coerce_rounding_option(granularity)
    amount = to_decimal(value)
    step = Decimal(int(option))

    units = (amount / step + HALF).to_integral_value(rounding=ROUND_FLOOR)
    return units * step
