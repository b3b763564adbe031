"""
Pricing Service - Orchestrates a pricing run end to end

Flow (invoice):
1. Load the category registry from the database (one read per run)
2. Price every line item against that snapshot
3. Materialize a pending session and persist it

Flow (marketplace):
1. Price the listing (tier markup unless overridden)
2. Materialize a pending session and persist it

Report and review updates go through the repository, and the returned session
reflects what was stored (for reports, the first email_sent_at ever written).
"""
from decimal import Decimal
from typing import Iterable, Optional, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pricedesk.common.config import Settings, get_settings
from pricedesk.common.pricing_repository import PricingRepository, pricing_repository
from pricedesk.common.schemas.pricing_session import (
    InvoicePricingSession,
    LineItem,
    MarketplacePricingSession,
    SessionStatus,
)
from pricedesk.domain.analytics.price_trends import PricingStats, summarize_sessions
from pricedesk.domain.pricing.invoice_calculator import price_invoice
from pricedesk.domain.pricing.marketplace_calculator import price_marketplace_item
from pricedesk.domain.pricing.rounding import RoundingOption
from pricedesk.domain.pricing.session_materializer import (
    mark_reported,
    materialize_invoice_session,
    materialize_marketplace_session,
    update_notes,
    update_status,
)

logger = structlog.get_logger()

Number = Union[Decimal, int, float, str]


class PricingService:
    """
    Prices invoices and marketplace listings and stores the sessions.

    Usage:
        service = PricingService()
        session = await service.price_invoice(
            items=[("HP Ink Cartridge", Decimal("10"))],
            exchange_rate=Decimal("150"),
            db=db_session,
            rounding_option=100,
        )
        print(f"Total: {session.total_value}")
    """

    def __init__(
        self,
        repository: Optional[PricingRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository or pricing_repository
        self.settings = settings or get_settings()

    async def price_invoice(
        self,
        items: Iterable[Union[LineItem, tuple, dict]],
        exchange_rate: Number,
        db: AsyncSession,
        rounding_option: Optional[Union[RoundingOption, int]] = None,
        invoice_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> InvoicePricingSession:
        """
        Price an invoice and store it as a pending session.

        Args:
            items: LineItems, (description, unit_cost_usd) pairs, or dicts
            exchange_rate: USD → local rate
            db: Database session
            rounding_option: 100, 1000 or 10000 (DEFAULT_ROUNDING_OPTION if None)
            invoice_number: Supplier invoice reference
            notes: Operator notes

        Returns:
            The stored InvoicePricingSession

        Raises:
            InvalidInput, CategoryNotConfigured: Nothing is stored
        """
        if rounding_option is None:
            rounding_option = self.settings.default_rounding_option

        registry = await self.repository.load_registry(db)
        result = price_invoice(items, exchange_rate, rounding_option, registry)
        session = materialize_invoice_session(
            result, invoice_number=invoice_number, notes=notes
        )

        await self.repository.save_invoice_session(session, db)
        return session

    async def price_marketplace_item(
        self,
        unit_cost_usd: Number,
        exchange_rate: Number,
        source_url: str,
        product_name: str,
        db: AsyncSession,
        markup_percentage: Optional[Number] = None,
        notes: Optional[str] = None,
    ) -> MarketplacePricingSession:
        """Price one marketplace listing and store it as a pending session."""
        result = price_marketplace_item(unit_cost_usd, exchange_rate, markup_percentage)
        session = materialize_marketplace_session(
            result, source_url=source_url, product_name=product_name, notes=notes
        )

        await self.repository.save_marketplace_session(session, db)
        return session

    async def mark_reported(
        self,
        session: Union[InvoicePricingSession, MarketplacePricingSession],
        db: AsyncSession,
    ) -> Optional[Union[InvoicePricingSession, MarketplacePricingSession]]:
        """
        Record that the session's report was sent.

        Safe to call more than once, including with a stale copy: the returned
        session carries the email_sent_at the database kept, which is the
        first one ever written. Returns None if the session is not stored.
        """
        reported = mark_reported(session)

        if isinstance(session, InvoicePricingSession):
            stored_at = await self.repository.mark_invoice_session_reported(
                session.id, db, sent_at=reported.email_sent_at
            )
        else:
            stored_at = await self.repository.mark_marketplace_session_reported(
                session.id, db, sent_at=reported.email_sent_at
            )

        if stored_at is None:
            logger.warning("session_not_found", session_id=session.id)
            return None

        if stored_at != reported.email_sent_at:
            logger.info("session_report_already_recorded",
                        session_id=session.id,
                        email_sent_at=stored_at.isoformat())
            reported = reported.model_copy(update={"email_sent_at": stored_at})
        return reported

    async def update_review(
        self,
        session: Union[InvoicePricingSession, MarketplacePricingSession],
        db: AsyncSession,
        status: Optional[Union[SessionStatus, str]] = None,
        notes: Optional[str] = None,
    ) -> Optional[Union[InvoicePricingSession, MarketplacePricingSession]]:
        """Set operator status and/or notes. Returns None if the session is not stored."""
        updated = session
        if status is not None:
            updated = update_status(updated, status)
        if notes is not None:
            updated = update_notes(updated, notes)

        if updated is session:
            return session

        if isinstance(session, InvoicePricingSession):
            found = await self.repository.update_invoice_session_review(
                session.id, db, status=status, notes=notes
            )
        else:
            found = await self.repository.update_marketplace_session_review(
                session.id, db, status=status, notes=notes
            )

        return updated if found else None

    async def summarize(self, db: AsyncSession) -> dict[str, PricingStats]:
        """Dashboard statistics for invoice and marketplace sessions."""
        invoices = await self.repository.list_invoice_sessions(db)
        listings = await self.repository.list_marketplace_sessions(db)

        stats = {
            "invoice": summarize_sessions(invoices),
            "marketplace": summarize_sessions(listings),
        }

        logger.info("pricing_summary_built",
                    invoice_sessions=stats["invoice"].session_count,
                    marketplace_sessions=stats["marketplace"].session_count)
        return stats
