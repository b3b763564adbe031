"""
Pricing errors

Raised synchronously at the point of the offending input, before any
computation produces a partial result.
"""


class PricingError(Exception):
    """Base class for pricing engine failures"""
    pass


class InvalidInput(PricingError, ValueError):
    """Raised for negative costs, non-positive rates, out-of-range markups or bad rounding options"""
    pass


class CategoryNotConfigured(PricingError, LookupError):
    """Raised when the classifier resolves a category name the registry does not hold"""

    def __init__(self, category_name: str, description: str = ""):
        self.category_name = category_name
        self.description = description
        super().__init__(
            f"Category '{category_name}' is not configured (item: {description!r})"
        )
