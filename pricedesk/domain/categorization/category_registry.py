"""
Category Registry - Category name → markup percentage

The unit of configuration for all invoice pricing. Calculators never read the
live registry item by item: a pricing run takes one snapshot() and prices
every line against it, so a concurrent edit cannot leave a batch priced
against mixed markup rates.
"""
import threading
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional, Union
from uuid import uuid4

import structlog

from pricedesk.domain.categorization.schemas import (
    MAX_CATEGORY_MARKUP,
    MIN_CATEGORY_MARKUP,
    Category,
    CategorySeed,
)
from pricedesk.domain.pricing.errors import InvalidInput
from pricedesk.domain.pricing.rounding import to_decimal

logger = structlog.get_logger()


DEFAULT_CATEGORIES = (
    CategorySeed(name="Accessories", markup_percentage=Decimal("100.00")),
    CategorySeed(name="Ink", markup_percentage=Decimal("45.00")),
    CategorySeed(name="Sub Woofers", markup_percentage=Decimal("35.00")),
    CategorySeed(name="Speakers", markup_percentage=Decimal("45.00")),
    CategorySeed(name="Headphones", markup_percentage=Decimal("65.00")),
    CategorySeed(name="UPS", markup_percentage=Decimal("50.00")),
    CategorySeed(name="Laptop Bags", markup_percentage=Decimal("50.00")),
    CategorySeed(name="Laptops", markup_percentage=Decimal("25.00")),
    CategorySeed(name="Desktops", markup_percentage=Decimal("25.00")),
    CategorySeed(name="Adaptors", markup_percentage=Decimal("65.00")),
    CategorySeed(name="Routers", markup_percentage=Decimal("50.00")),
)


def validate_markup(markup_percentage: Union[Decimal, int, float, str]) -> Decimal:
    """Validate a category markup against the 0-1000% bounds."""
    markup = to_decimal(markup_percentage, field="markup_percentage")
    if markup < MIN_CATEGORY_MARKUP or markup > MAX_CATEGORY_MARKUP:
        logger.warning("invalid_input",
                       field="markup_percentage",
                       value=str(markup))
        raise InvalidInput(
            f"Category markup must be between {MIN_CATEGORY_MARKUP}% and "
            f"{MAX_CATEGORY_MARKUP}%, got {markup}%"
        )
    return markup


def _validate_name(name: str) -> str:
    cleaned = " ".join((name or "").split())
    if not cleaned:
        raise InvalidInput("Category name must not be empty")
    return cleaned


class CategorySnapshot(Mapping[str, Category]):
    """
    Immutable, name-keyed view of the registry at one point in time.

    Also satisfies the lookup interface (snapshot() returns itself), so
    anything that accepts a registry accepts a snapshot.
    """

    def __init__(self, categories: Iterable[Category]):
        self._by_name = MappingProxyType({c.name: c for c in categories})

    def __getitem__(self, name: str) -> Category:
        return self._by_name[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def get_by_name(self, name: str) -> Optional[Category]:
        return self._by_name.get(name)

    def snapshot(self) -> "CategorySnapshot":
        return self


class CategoryRegistry:
    """
    In-memory category registry.

    Writes are serialized with a lock; reads used for pricing go through
    snapshot().

    Usage:
        registry = CategoryRegistry()
        registry.seed_defaults()
        ink = registry.get_by_name("Ink")
        registry.update(ink.id, markup_percentage=Decimal("50"))
    """

    def __init__(self, categories: Optional[Iterable[Category]] = None):
        self._lock = threading.Lock()
        self._by_id: dict[str, Category] = {}
        for category in categories or ():
            self._by_id[category.id] = category

    # Reads

    def get(self, category_id: str) -> Optional[Category]:
        with self._lock:
            return self._by_id.get(category_id)

    def get_by_name(self, name: str) -> Optional[Category]:
        with self._lock:
            for category in self._by_id.values():
                if category.name == name:
                    return category
        return None

    def list_categories(self) -> list[Category]:
        """List categories ordered by name."""
        with self._lock:
            return sorted(self._by_id.values(), key=lambda c: c.name)

    def snapshot(self) -> CategorySnapshot:
        """Take a consistent, immutable copy for a single pricing run."""
        with self._lock:
            return CategorySnapshot(list(self._by_id.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    # Writes

    def _insert(self, name: str, markup: Decimal) -> Category:
        # Caller holds self._lock
        if any(c.name == name for c in self._by_id.values()):
            logger.warning("category_name_conflict", name=name)
            raise InvalidInput(f"Category '{name}' already exists")

        category = Category(id=uuid4().hex, name=name, markup_percentage=markup)
        self._by_id[category.id] = category
        return category

    def create(
        self,
        name: str,
        markup_percentage: Union[Decimal, int, float, str],
    ) -> Category:
        """
        Create a category.

        Raises:
            InvalidInput: If the name is empty or taken, or markup is out of range
        """
        cleaned = _validate_name(name)
        markup = validate_markup(markup_percentage)

        with self._lock:
            category = self._insert(cleaned, markup)

        logger.info("category_created",
                    category_id=category.id,
                    name=category.name,
                    markup=float(category.markup_percentage))
        return category

    def update(
        self,
        category_id: str,
        name: Optional[str] = None,
        markup_percentage: Optional[Union[Decimal, int, float, str]] = None,
    ) -> Optional[Category]:
        """
        Update a category's name and/or markup.

        Historical sessions are unaffected: priced items hold their own copy
        of the name and markup.

        Returns:
            Updated Category, or None if no category has this id
        """
        updates: dict = {}
        if name is not None:
            updates["name"] = _validate_name(name)
        if markup_percentage is not None:
            updates["markup_percentage"] = validate_markup(markup_percentage)

        with self._lock:
            existing = self._by_id.get(category_id)
            if existing is None:
                logger.info("category_not_found", category_id=category_id)
                return None

            new_name = updates.get("name")
            if new_name and any(
                c.name == new_name and c.id != category_id for c in self._by_id.values()
            ):
                logger.warning("category_name_conflict", name=new_name)
                raise InvalidInput(f"Category '{new_name}' already exists")

            updated = existing.model_copy(update=updates)
            self._by_id[category_id] = updated

        logger.info("category_updated",
                    category_id=category_id,
                    name=updated.name,
                    markup=float(updated.markup_percentage))
        return updated

    def delete(self, category_id: str) -> bool:
        """Delete a category. Returns True if it existed."""
        with self._lock:
            removed = self._by_id.pop(category_id, None)

        logger.info("category_deleted", category_id=category_id, deleted=removed is not None)
        return removed is not None

    def seed_defaults(self, seeds: Iterable[CategorySeed] = DEFAULT_CATEGORIES) -> list[Category]:
        """
        Create the default categories if the registry is empty.

        The emptiness check and every insert happen under one lock
        acquisition, so concurrent callers seed exactly once. A failing seed
        leaves the registry empty.

        Returns:
            Categories created (empty if the registry already had entries)
        """
        validated = [
            (_validate_name(seed.name), validate_markup(seed.markup_percentage))
            for seed in seeds
        ]

        with self._lock:
            existing = len(self._by_id)
            if existing > 0:
                logger.debug("category_seed_skipped", existing=existing)
                return []

            try:
                created = [self._insert(name, markup) for name, markup in validated]
            except InvalidInput:
                self._by_id.clear()
                raise

        logger.info("categories_seeded", count=len(created))
        return created
