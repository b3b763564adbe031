"""
Pricing session schemas (Pydantic models)

Shapes handed to persistence verbatim. Financial fields are frozen once a
session is materialized; status, notes and the report-sent receipt change
only through the session materializer, which returns new copies.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    """Operator review state"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class MarkupSource(str, Enum):
    """Where a marketplace markup came from"""
    TIER = "tier"           # Suggested from cost threshold
    OVERRIDE = "override"   # Entered by operator


class LineItem(BaseModel):
    """Raw line item from document ingestion"""
    model_config = ConfigDict(frozen=True)

    description: str = Field(..., description="Free-text item description")
    unit_cost_usd: Decimal = Field(..., description="Unit cost in USD")


class PricedLineItem(BaseModel):
    """
    Line item after classification and pricing.

    category_name and markup_percentage are a snapshot taken at pricing time,
    not a live reference to the category.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "description": "HP Ink Cartridge",
                "unit_cost_usd": "10",
                "category_id": "3f1c9a0e8b6d4c2f9e7a5b3d1c0e8f6a",
                "category_name": "Ink",
                "markup_percentage": "45.00",
                "cost_local": "1500",
                "gct_amount": "225.00",
                "taxed_cost": "1725.00",
                "selling_price": "2501.2500",
                "final_price": "2500",
            }
        },
    )

    description: str
    unit_cost_usd: Decimal

    # Category snapshot
    category_id: str
    category_name: str
    markup_percentage: Decimal

    # Computation trail
    cost_local: Decimal = Field(..., description="unit_cost_usd × exchange_rate")
    gct_amount: Decimal = Field(..., description="15% GCT on cost_local")
    taxed_cost: Decimal = Field(..., description="cost_local + GCT")
    selling_price: Decimal = Field(..., description="taxed_cost with markup, before rounding")
    final_price: Decimal = Field(..., description="selling_price rounded to the session granularity")


class InvoicePricingSession(BaseModel):
    """Materialized multi-item invoice pricing run"""
    model_config = ConfigDict(frozen=True)

    id: str
    invoice_number: Optional[str] = None
    items: List[PricedLineItem] = Field(default_factory=list)
    exchange_rate: Decimal = Field(..., gt=0)
    rounding_option: int = Field(..., description="100, 1000 or 10000")
    total_value: Decimal = Field(..., description="Σ final_price at materialization")

    status: SessionStatus = SessionStatus.PENDING
    email_sent: bool = False
    email_sent_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class MarketplacePricingSession(BaseModel):
    """Materialized single-item marketplace pricing run"""
    model_config = ConfigDict(frozen=True)

    id: str
    source_url: str
    product_name: str
    unit_cost_usd: Decimal
    intermediate_price: Decimal = Field(..., description="unit cost + 7% fee")
    markup_percentage: Decimal
    markup_source: MarkupSource = MarkupSource.TIER
    selling_price_usd: Decimal
    selling_price_local: Decimal
    exchange_rate: Decimal = Field(..., gt=0)

    status: SessionStatus = SessionStatus.PENDING
    email_sent: bool = False
    email_sent_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
