from decimal import Decimal

import pytest

from pricedesk.common.schemas.pricing_session import MarkupSource
from pricedesk.domain.pricing.errors import InvalidInput
from pricedesk.domain.pricing.marketplace_calculator import (
    HIGH_TIER_MARKUP,
    STANDARD_TIER_MARKUP,
    price_marketplace_item,
    suggest_markup,
)


class TestSuggestMarkup:
    @pytest.mark.parametrize("cost, expected", [
        ("0", STANDARD_TIER_MARKUP),
        ("9.99", STANDARD_TIER_MARKUP),
        ("100.00", STANDARD_TIER_MARKUP),
        ("100.01", HIGH_TIER_MARKUP),
        ("2500", HIGH_TIER_MARKUP),
    ])
    def test_tiers(self, cost, expected) -> None:
        assert suggest_markup(cost) == expected

    def test_tier_values(self) -> None:
        assert STANDARD_TIER_MARKUP == Decimal("80")
        assert HIGH_TIER_MARKUP == Decimal("120")

    def test_negative_cost_rejected(self) -> None:
        with pytest.raises(InvalidInput):
            suggest_markup(-1)


class TestPriceMarketplaceItem:
    def test_high_tier_trail(self) -> None:
        result = price_marketplace_item(150, 160)

        assert result.intermediate_price == Decimal("160.50")
        assert result.markup_percentage == Decimal("120")
        assert result.markup_source is MarkupSource.TIER
        assert result.selling_price_usd == Decimal("353.10")
        assert result.selling_price_local == Decimal("56496.00")

    def test_standard_tier_is_not_rounded(self) -> None:
        result = price_marketplace_item("9.99", "157.5")

        assert result.intermediate_price == Decimal("10.6893")
        assert result.markup_percentage == Decimal("80")
        assert result.selling_price_usd == Decimal("19.24074")
        assert result.selling_price_local == Decimal("3030.41655")

    def test_threshold_uses_raw_cost(self) -> None:
        # 100.00 + 7% fee is above 100 but the tier reads the raw cost
        assert price_marketplace_item("100.00", 150).markup_percentage == Decimal("80")
        assert price_marketplace_item("100.01", 150).markup_percentage == Decimal("120")

    def test_override(self) -> None:
        result = price_marketplace_item(150, 160, markup_percentage=200)

        assert result.markup_percentage == Decimal("200")
        assert result.markup_source is MarkupSource.OVERRIDE
        assert result.selling_price_usd == Decimal("481.50")

    def test_zero_override_is_allowed(self) -> None:
        result = price_marketplace_item(150, 160, markup_percentage=0)

        assert result.markup_source is MarkupSource.OVERRIDE
        assert result.selling_price_usd == result.intermediate_price

    def test_override_at_upper_bound(self) -> None:
        assert price_marketplace_item(10, 150, markup_percentage=500).markup_percentage == 500

    @pytest.mark.parametrize("markup", [-1, 501, "500.5"])
    def test_override_out_of_range(self, markup) -> None:
        with pytest.raises(InvalidInput):
            price_marketplace_item(150, 160, markup_percentage=markup)

    @pytest.mark.parametrize("rate", [0, -1])
    def test_non_positive_rate(self, rate) -> None:
        with pytest.raises(InvalidInput):
            price_marketplace_item(150, rate)

    def test_negative_cost(self) -> None:
        with pytest.raises(InvalidInput):
            price_marketplace_item(-0.01, 160)

    def test_zero_cost(self) -> None:
        result = price_marketplace_item(0, 160)
        assert result.selling_price_local == Decimal("0")
