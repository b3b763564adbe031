"""
Data schemas for categorization module
"""
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

MIN_CATEGORY_MARKUP = Decimal("0")
MAX_CATEGORY_MARKUP = Decimal("1000")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(BaseModel):
    """
    A product category and the markup applied to items classified into it.

    Markup bounds are enforced by the registry at write time.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "3f1c9a0e8b6d4c2f9e7a5b3d1c0e8f6a",
                "name": "Ink",
                "markup_percentage": "45.00",
                "created_at": "2025-01-15T14:00:00Z",
            }
        },
    )

    id: str = Field(..., description="Opaque category identifier")
    name: str = Field(..., description="Unique human-readable name")
    markup_percentage: Decimal = Field(
        ...,
        ge=MIN_CATEGORY_MARKUP,
        le=MAX_CATEGORY_MARKUP,
        description="Markup applied on top of taxed cost, in percent",
    )
    created_at: datetime = Field(default_factory=_utcnow)


class CategorySeed(BaseModel):
    """Name and markup for a category created on first start"""
    model_config = ConfigDict(frozen=True)

    name: str
    markup_percentage: Decimal
