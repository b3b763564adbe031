"""Shared test fixtures."""
from decimal import Decimal

import pytest

from pricedesk.domain.categorization.category_registry import CategoryRegistry


@pytest.fixture
def registry() -> CategoryRegistry:
    """Registry seeded with the default categories."""
    seeded = CategoryRegistry()
    seeded.seed_defaults()
    return seeded


@pytest.fixture
def ink_registry() -> CategoryRegistry:
    """Registry holding only Ink @ 45%."""
    only_ink = CategoryRegistry()
    only_ink.create("Ink", Decimal("45"))
    return only_ink
