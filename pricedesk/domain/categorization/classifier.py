"""
Classifier - Keyword rules from item description to product category

Rules are a priority-ordered decision table evaluated top to bottom; the
first match wins. Order matters:
- "LAPTOP BAG" must be checked before "LAPTOP"
- a speaker that mentions SUB/WOOFER is a sub woofer, not a speaker

Example:
- "HP 664 Ink Cartridge"               → Ink
- "Laptop Bag for 15-inch Notebook"    → Laptop Bags (not Laptops)
- "JBL Speaker with built-in Subwoofer" → Sub Woofers (not Speakers)
- "Logitech Wireless Mouse"            → Accessories (default)

NO SIDE EFFECTS - the same description and registry snapshot always give the
same category.
"""
from typing import Callable, NamedTuple, Optional, Protocol

import structlog

from pricedesk.domain.categorization.schemas import Category
from pricedesk.domain.pricing.errors import CategoryNotConfigured

logger = structlog.get_logger()

DEFAULT_CATEGORY = "Accessories"


class CategoryLookup(Protocol):
    """Anything that can hand out a consistent name-keyed view of categories."""

    def snapshot(self): ...


class ClassificationRule(NamedTuple):
    """One row of the decision table"""
    predicate: Callable[[str], bool]
    category_name: str
    description: str


def _contains_any(*keywords: str) -> Callable[[str], bool]:
    def predicate(text: str) -> bool:
        return any(keyword in text for keyword in keywords)
    return predicate


_is_speaker = _contains_any("SPEAKER", "SUBWOOFER", "SUB WOOFER")
_mentions_sub = _contains_any("SUB", "WOOFER")


def _is_sub_woofer(text: str) -> bool:
    return _is_speaker(text) and _mentions_sub(text)


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(_contains_any("INK", "CARTRIDGE", "TONER"),
                       "Ink", "ink/cartridge/toner"),
    ClassificationRule(_contains_any("ADAPTER", "CHARGER", "POWER SUPPLY"),
                       "Adaptors", "adapter/charger/power supply"),
    ClassificationRule(_contains_any("HEADPHONE", "EARPHONE", "HEADSET"),
                       "Headphones", "headphone/earphone/headset"),
    ClassificationRule(_contains_any("ROUTER", "WIFI", "WIRELESS ROUTER"),
                       "Routers", "router/wifi"),
    ClassificationRule(_contains_any("UPS", "BATTERY BACKUP", "UNINTERRUPTIBLE"),
                       "UPS", "ups/battery backup"),
    # Bags before laptops
    ClassificationRule(_contains_any("LAPTOP BAG", "NOTEBOOK BAG", "CARRYING CASE"),
                       "Laptop Bags", "laptop bag/carrying case"),
    ClassificationRule(_contains_any("LAPTOP", "NOTEBOOK", "MACBOOK"),
                       "Laptops", "laptop/notebook"),
    ClassificationRule(_contains_any("DESKTOP", "PC", "WORKSTATION"),
                       "Desktops", "desktop/pc/workstation"),
    # Sub woofers before plain speakers
    ClassificationRule(_is_sub_woofer, "Sub Woofers", "speaker with sub/woofer"),
    ClassificationRule(_is_speaker, "Speakers", "speaker"),
)


def resolve_category_name(description: str) -> str:
    """
    Evaluate the rule table against a description.

    Returns:
        Category name of the first matching rule, or the default category
    """
    text = (description or "").upper()
    for rule in CLASSIFICATION_RULES:
        if rule.predicate(text):
            return rule.category_name
    return DEFAULT_CATEGORY


def classify(description: str, registry: CategoryLookup) -> Category:
    """
    Classify an item description into a configured category.

    Args:
        description: Free-text item description
        registry: CategoryRegistry or CategorySnapshot

    Returns:
        The registry's Category for the resolved name

    Raises:
        CategoryNotConfigured: If the resolved name is absent from the registry
    """
    category_name = resolve_category_name(description)
    category: Optional[Category] = registry.snapshot().get_by_name(category_name)

    if category is None:
        logger.warning("category_not_configured",
                       category=category_name,
                       description=description)
        raise CategoryNotConfigured(category_name, description)

    logger.debug("item_classified",
                 description=description,
                 category=category.name,
                 markup=float(category.markup_percentage))
    return category
