"""
Session Materializer - Calculator output → persisted session shape

Sessions are frozen models. Every transition returns a new copy:
- mark_reported(): one-way email_sent latch (false → true, never back)
- update_status() / update_notes(): operator annotations

mark_reported() is idempotent so an at-least-once report dispatcher can call
it repeatedly (or concurrently) and still converge on the same record.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, TypeVar, Union
from uuid import uuid4

import structlog

from pricedesk.common.schemas.pricing_session import (
    InvoicePricingSession,
    MarketplacePricingSession,
    SessionStatus,
)
from pricedesk.domain.pricing.errors import InvalidInput
from pricedesk.domain.pricing.invoice_calculator import InvoicePricingResult
from pricedesk.domain.pricing.marketplace_calculator import MarketplacePricingResult

logger = structlog.get_logger()

AnySession = TypeVar("AnySession", InvoicePricingSession, MarketplacePricingSession)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def materialize_invoice_session(
    result: InvoicePricingResult,
    invoice_number: Optional[str] = None,
    notes: Optional[str] = None,
    session_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> InvoicePricingSession:
    """
    Build an invoice session from a completed pricing run.

    total_value is recomputed from the priced items so the stored snapshot
    always equals their sum.
    """
    total_value = sum((item.final_price for item in result.priced_items), Decimal("0"))
    if total_value != result.total_value:
        logger.warning("invoice_total_recomputed",
                       reported=str(result.total_value),
                       recomputed=str(total_value))

    session = InvoicePricingSession(
        id=session_id or str(uuid4()),
        invoice_number=invoice_number or None,
        items=list(result.priced_items),
        exchange_rate=result.exchange_rate,
        rounding_option=int(result.rounding_option),
        total_value=total_value,
        status=SessionStatus.PENDING,
        email_sent=False,
        notes=notes,
        created_at=created_at or _utcnow(),
    )

    logger.info("session_materialized",
                session_type="invoice",
                session_id=session.id,
                invoice_number=session.invoice_number,
                item_count=len(session.items),
                total_value=str(session.total_value))
    return session


def materialize_marketplace_session(
    result: MarketplacePricingResult,
    source_url: str,
    product_name: str,
    notes: Optional[str] = None,
    session_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> MarketplacePricingSession:
    """Build a marketplace session from a priced item and its listing metadata."""
    if not (product_name or "").strip():
        raise InvalidInput("Product name is required")

    session = MarketplacePricingSession(
        id=session_id or str(uuid4()),
        source_url=source_url,
        product_name=product_name.strip(),
        unit_cost_usd=result.unit_cost_usd,
        intermediate_price=result.intermediate_price,
        markup_percentage=result.markup_percentage,
        markup_source=result.markup_source,
        selling_price_usd=result.selling_price_usd,
        selling_price_local=result.selling_price_local,
        exchange_rate=result.exchange_rate,
        status=SessionStatus.PENDING,
        email_sent=False,
        notes=notes,
        created_at=created_at or _utcnow(),
    )

    logger.info("session_materialized",
                session_type="marketplace",
                session_id=session.id,
                product_name=session.product_name,
                selling_price_local=str(session.selling_price_local))
    return session


def mark_reported(session: AnySession, sent_at: Optional[datetime] = None) -> AnySession:
    """
    Latch email_sent to True.

    Already-reported sessions are returned unchanged: no error, and the first
    email_sent_at is kept.
    """
    if session.email_sent:
        logger.debug("session_already_reported", session_id=session.id)
        return session

    reported = session.model_copy(update={
        "email_sent": True,
        "email_sent_at": sent_at or _utcnow(),
    })

    logger.info("session_marked_reported",
                session_id=session.id,
                sent_at=reported.email_sent_at.isoformat())
    return reported


def update_status(session: AnySession, status: Union[SessionStatus, str]) -> AnySession:
    """Set the operator review status."""
    try:
        new_status = SessionStatus(status)
    except ValueError:
        logger.warning("invalid_input", field="status", value=str(status))
        raise InvalidInput(f"Unknown session status: {status!r}")

    if new_status == session.status:
        return session

    logger.info("session_status_changed",
                session_id=session.id,
                old_status=session.status.value,
                new_status=new_status.value)
    return session.model_copy(update={"status": new_status})


def update_notes(session: AnySession, notes: Optional[str]) -> AnySession:
    """Replace operator notes (blank notes are stored as None)."""
    cleaned = notes.strip() if notes else None
    return session.model_copy(update={"notes": cleaned or None})
