"""
Categorization Module - Keyword classification and category markups

Two pieces:
1. Classifier (Rules): Map a free-text item description to a category name
2. Category Registry: Map category name to a markup percentage

Example flow:
- "HP 664 Ink Cartridge" → rule 1 → "Ink" → registry → 45% markup
- "Laptop Bag 15.6in"    → rule 6 → "Laptop Bags" → 50% markup
- "Logitech M185 Mouse"  → no rule → "Accessories" → 100% markup
"""

from pricedesk.domain.categorization.category_registry import (
    DEFAULT_CATEGORIES,
    CategoryRegistry,
    CategorySnapshot,
)
from pricedesk.domain.categorization.classifier import (
    CLASSIFICATION_RULES,
    DEFAULT_CATEGORY,
    classify,
    resolve_category_name,
)
from pricedesk.domain.categorization.schemas import Category, CategorySeed

__all__ = [
    'CLASSIFICATION_RULES',
    'DEFAULT_CATEGORIES',
    'DEFAULT_CATEGORY',
    'Category',
    'CategoryRegistry',
    'CategorySeed',
    'CategorySnapshot',
    'classify',
    'resolve_category_name',
]
