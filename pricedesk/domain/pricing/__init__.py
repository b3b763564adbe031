"""
Pricing Module - Invoice and marketplace price calculation

Invoice flow (batch, rounded):
- description → classifier → category markup
- USD cost × rate → + 15% GCT → + markup → round to 100/1000/10000

Marketplace flow (single item, unrounded):
- USD cost + 7% fee → + tier markup (80% / 120% over $100) or override → × rate

Calculators live in invoice_calculator / marketplace_calculator; sessions are
built by session_materializer and re-checked by session_audit.
"""

from pricedesk.domain.pricing.errors import (
    CategoryNotConfigured,
    InvalidInput,
    PricingError,
)
from pricedesk.domain.pricing.rounding import RoundingOption, round_price

__all__ = [
    'CategoryNotConfigured',
    'InvalidInput',
    'PricingError',
    'RoundingOption',
    'round_price',
]
