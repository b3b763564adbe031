"""
Pricing Repository - Database operations for categories and pricing sessions

Tables (public schema):
- categories                    → name, markup_percentage
- invoice_pricing_sessions      → priced items stored as JSONB snapshot
- marketplace_pricing_sessions  → one priced listing per row

Numeric columns are unconstrained NUMERIC so stored values replay exactly.

The report-sent update is a single idempotent UPDATE (COALESCE keeps the
first timestamp), so duplicate deliveries from the dispatcher are harmless.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pricedesk.common.schemas.pricing_session import (
    InvoicePricingSession,
    MarketplacePricingSession,
    SessionStatus,
)
from pricedesk.domain.categorization.category_registry import (
    DEFAULT_CATEGORIES,
    CategoryRegistry,
    validate_markup,
)
from pricedesk.domain.categorization.schemas import Category
from pricedesk.domain.pricing.errors import InvalidInput

logger = structlog.get_logger()

INVOICE_TABLE = "invoice_pricing_sessions"
MARKETPLACE_TABLE = "marketplace_pricing_sessions"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_category(row) -> Category:
    data = dict(row._mapping)
    return Category(
        id=str(data["id"]),
        name=data["name"],
        markup_percentage=Decimal(str(data["markup_percentage"])),
        created_at=data["created_at"],
    )


def _row_to_invoice_session(row) -> InvoicePricingSession:
    data = dict(row._mapping)
    items = data.get("items") or []
    if isinstance(items, str):
        items = json.loads(items)
    data["items"] = items
    data["id"] = str(data["id"])
    return InvoicePricingSession(**data)


def _row_to_marketplace_session(row) -> MarketplacePricingSession:
    data = dict(row._mapping)
    data["id"] = str(data["id"])
    return MarketplacePricingSession(**data)


class PricingRepository:
    """
    Repository for category and pricing session persistence.

    All methods take the AsyncSession explicitly and commit their own writes.
    """

    # === CATEGORIES ===

    async def list_categories(self, db: AsyncSession) -> List[Category]:
        """List all categories ordered by name."""
        query = text("""
            SELECT id, name, markup_percentage, created_at
            FROM categories
            ORDER BY name
        """)

        result = await db.execute(query)
        return [_row_to_category(row) for row in result.fetchall()]

    async def get_category(self, category_id: str, db: AsyncSession) -> Optional[Category]:
        query = text("""
            SELECT id, name, markup_percentage, created_at
            FROM categories
            WHERE id = :id
        """)

        result = await db.execute(query, {"id": category_id})
        row = result.fetchone()
        return _row_to_category(row) if row else None

    async def load_registry(self, db: AsyncSession) -> CategoryRegistry:
        """
        Read every category once into an in-memory registry.

        Take one registry per pricing run so all lines see the same markups.
        """
        categories = await self.list_categories(db)
        logger.debug("category_registry_loaded", count=len(categories))
        return CategoryRegistry(categories)

    async def create_category(
        self,
        name: str,
        markup_percentage: Union[Decimal, int, float, str],
        db: AsyncSession,
    ) -> Category:
        """
        Insert a category.

        Raises:
            InvalidInput: If the name is empty or taken, or markup is out of range
        """
        cleaned = " ".join((name or "").split())
        if not cleaned:
            raise InvalidInput("Category name must not be empty")
        markup = validate_markup(markup_percentage)

        existing = await db.execute(
            text("SELECT id FROM categories WHERE name = :name"),
            {"name": cleaned},
        )
        if existing.fetchone():
            logger.warning("category_name_conflict", name=cleaned)
            raise InvalidInput(f"Category '{cleaned}' already exists")

        category = Category(id=uuid4().hex, name=cleaned, markup_percentage=markup)

        query = text("""
            INSERT INTO categories (id, name, markup_percentage, created_at)
            VALUES (:id, :name, :markup_percentage, :created_at)
        """)

        await db.execute(query, {
            "id": category.id,
            "name": category.name,
            "markup_percentage": category.markup_percentage,
            "created_at": category.created_at,
        })
        await db.commit()

        logger.info("category_created",
                    category_id=category.id,
                    name=category.name,
                    markup=float(category.markup_percentage))
        return category

    async def update_category(
        self,
        category_id: str,
        db: AsyncSession,
        name: Optional[str] = None,
        markup_percentage: Optional[Union[Decimal, int, float, str]] = None,
    ) -> Optional[Category]:
        """
        Update a category's name and/or markup.

        Returns:
            Updated Category, or None if no category has this id
        """
        assignments = []
        params: Dict[str, Any] = {"id": category_id}

        if name is not None:
            cleaned = " ".join(name.split())
            if not cleaned:
                raise InvalidInput("Category name must not be empty")
            conflict = await db.execute(
                text("SELECT id FROM categories WHERE name = :name AND id <> :id"),
                {"name": cleaned, "id": category_id},
            )
            if conflict.fetchone():
                logger.warning("category_name_conflict", name=cleaned)
                raise InvalidInput(f"Category '{cleaned}' already exists")
            assignments.append("name = :name")
            params["name"] = cleaned
        if markup_percentage is not None:
            assignments.append("markup_percentage = :markup_percentage")
            params["markup_percentage"] = validate_markup(markup_percentage)

        if not assignments:
            return await self.get_category(category_id, db)

        query = text(f"""
            UPDATE categories
            SET {", ".join(assignments)}
            WHERE id = :id
        """)

        result = await db.execute(query, params)
        await db.commit()

        if result.rowcount == 0:
            logger.info("category_not_found", category_id=category_id)
            return None

        logger.info("category_updated", category_id=category_id, fields=sorted(params))
        return await self.get_category(category_id, db)

    async def delete_category(self, category_id: str, db: AsyncSession) -> bool:
        result = await db.execute(
            text("DELETE FROM categories WHERE id = :id"),
            {"id": category_id},
        )
        await db.commit()

        deleted = result.rowcount > 0
        logger.info("category_deleted", category_id=category_id, deleted=deleted)
        return deleted

    async def seed_default_categories(self, db: AsyncSession) -> int:
        """
        Insert the default categories if the table is empty.

        All defaults go in with one statement and one commit, so a failure
        leaves the table empty and the next start seeds again. ON CONFLICT
        skips names a concurrent seeder already wrote.

        Returns:
            Number of default rows submitted (0 if the table had entries)
        """
        result = await db.execute(text("SELECT COUNT(*) FROM categories"))
        existing = result.scalar() or 0
        if existing:
            logger.debug("category_seed_skipped", existing=existing)
            return 0

        created_at = _utcnow()
        rows = [
            {
                "id": uuid4().hex,
                "name": seed.name,
                "markup_percentage": validate_markup(seed.markup_percentage),
                "created_at": created_at,
            }
            for seed in DEFAULT_CATEGORIES
        ]

        query = text("""
            INSERT INTO categories (id, name, markup_percentage, created_at)
            VALUES (:id, :name, :markup_percentage, :created_at)
            ON CONFLICT (name) DO NOTHING
        """)

        try:
            await db.execute(query, rows)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("category_seed_failed", count=len(rows), error=str(e))
            raise

        logger.info("categories_seeded", count=len(rows))
        return len(rows)

    # === INVOICE SESSIONS ===

    async def save_invoice_session(self, session: InvoicePricingSession, db: AsyncSession) -> None:
        query = text(f"""
            INSERT INTO {INVOICE_TABLE} (
                id,
                invoice_number,
                exchange_rate,
                rounding_option,
                items,
                total_value,
                status,
                email_sent,
                email_sent_at,
                notes,
                created_at
            ) VALUES (
                :id,
                :invoice_number,
                :exchange_rate,
                :rounding_option,
                CAST(:items AS JSONB),
                :total_value,
                :status,
                :email_sent,
                :email_sent_at,
                :notes,
                :created_at
            )
        """)

        await db.execute(query, {
            "id": session.id,
            "invoice_number": session.invoice_number,
            "exchange_rate": session.exchange_rate,
            "rounding_option": session.rounding_option,
            "items": json.dumps([item.model_dump(mode="json") for item in session.items]),
            "total_value": session.total_value,
            "status": session.status.value,
            "email_sent": session.email_sent,
            "email_sent_at": session.email_sent_at,
            "notes": session.notes,
            "created_at": session.created_at,
        })
        await db.commit()

        logger.info("invoice_session_saved",
                    session_id=session.id,
                    item_count=len(session.items),
                    total_value=str(session.total_value))

    async def get_invoice_session(self, session_id: str, db: AsyncSession) -> Optional[InvoicePricingSession]:
        result = await db.execute(
            text(f"SELECT * FROM {INVOICE_TABLE} WHERE id = :id"),
            {"id": session_id},
        )
        row = result.fetchone()
        return _row_to_invoice_session(row) if row else None

    async def list_invoice_sessions(self, db: AsyncSession) -> List[InvoicePricingSession]:
        """List invoice sessions oldest first."""
        result = await db.execute(text(f"SELECT * FROM {INVOICE_TABLE} ORDER BY created_at"))
        return [_row_to_invoice_session(row) for row in result.fetchall()]

    # === MARKETPLACE SESSIONS ===

    async def save_marketplace_session(self, session: MarketplacePricingSession, db: AsyncSession) -> None:
        query = text(f"""
            INSERT INTO {MARKETPLACE_TABLE} (
                id,
                source_url,
                product_name,
                unit_cost_usd,
                intermediate_price,
                markup_percentage,
                markup_source,
                selling_price_usd,
                selling_price_local,
                exchange_rate,
                status,
                email_sent,
                email_sent_at,
                notes,
                created_at
            ) VALUES (
                :id,
                :source_url,
                :product_name,
                :unit_cost_usd,
                :intermediate_price,
                :markup_percentage,
                :markup_source,
                :selling_price_usd,
                :selling_price_local,
                :exchange_rate,
                :status,
                :email_sent,
                :email_sent_at,
                :notes,
                :created_at
            )
        """)

        params = session.model_dump()
        params["status"] = session.status.value
        params["markup_source"] = session.markup_source.value

        await db.execute(query, params)
        await db.commit()

        logger.info("marketplace_session_saved",
                    session_id=session.id,
                    product_name=session.product_name,
                    selling_price_local=str(session.selling_price_local))

    async def get_marketplace_session(self, session_id: str, db: AsyncSession) -> Optional[MarketplacePricingSession]:
        result = await db.execute(
            text(f"SELECT * FROM {MARKETPLACE_TABLE} WHERE id = :id"),
            {"id": session_id},
        )
        row = result.fetchone()
        return _row_to_marketplace_session(row) if row else None

    async def list_marketplace_sessions(self, db: AsyncSession) -> List[MarketplacePricingSession]:
        """List marketplace sessions oldest first."""
        result = await db.execute(text(f"SELECT * FROM {MARKETPLACE_TABLE} ORDER BY created_at"))
        return [_row_to_marketplace_session(row) for row in result.fetchall()]

    # === REPORT + REVIEW UPDATES ===

    async def _mark_reported(
        self,
        table: str,
        session_id: str,
        db: AsyncSession,
        sent_at: Optional[datetime] = None,
    ) -> Optional[datetime]:
        query = text(f"""
            UPDATE {table}
            SET
                email_sent = TRUE,
                email_sent_at = COALESCE(email_sent_at, :sent_at)
            WHERE id = :id
            RETURNING email_sent_at
        """)

        result = await db.execute(query, {"id": session_id, "sent_at": sent_at or _utcnow()})
        row = result.fetchone()
        await db.commit()

        stored_at = row._mapping["email_sent_at"] if row else None
        logger.info("session_marked_reported",
                    table=table,
                    session_id=session_id,
                    found=row is not None,
                    email_sent_at=stored_at.isoformat() if stored_at else None)
        return stored_at

    async def mark_invoice_session_reported(
        self, session_id: str, db: AsyncSession, sent_at: Optional[datetime] = None
    ) -> Optional[datetime]:
        """
        Latch email_sent on an invoice session.

        Returns:
            The stored email_sent_at (the first one ever written), or None if
            the session does not exist
        """
        return await self._mark_reported(INVOICE_TABLE, session_id, db, sent_at)

    async def mark_marketplace_session_reported(
        self, session_id: str, db: AsyncSession, sent_at: Optional[datetime] = None
    ) -> Optional[datetime]:
        """Latch email_sent on a marketplace session. Returns the stored email_sent_at or None."""
        return await self._mark_reported(MARKETPLACE_TABLE, session_id, db, sent_at)

    async def _update_review(
        self,
        table: str,
        session_id: str,
        db: AsyncSession,
        status: Optional[Union[SessionStatus, str]] = None,
        notes: Optional[str] = None,
    ) -> bool:
        assignments = []
        params: Dict[str, Any] = {"id": session_id}

        if status is not None:
            try:
                params["status"] = SessionStatus(status).value
            except ValueError:
                raise InvalidInput(f"Unknown session status: {status!r}")
            assignments.append("status = :status")
        if notes is not None:
            params["notes"] = notes.strip() or None
            assignments.append("notes = :notes")

        if not assignments:
            return False

        query = text(f"""
            UPDATE {table}
            SET {", ".join(assignments)}
            WHERE id = :id
        """)

        result = await db.execute(query, params)
        await db.commit()

        updated = result.rowcount > 0
        logger.info("session_review_updated",
                    table=table,
                    session_id=session_id,
                    status=params.get("status"),
                    updated=updated)
        return updated

    async def update_invoice_session_review(
        self,
        session_id: str,
        db: AsyncSession,
        status: Optional[Union[SessionStatus, str]] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Set operator status and/or notes. Financial fields are never touched."""
        return await self._update_review(INVOICE_TABLE, session_id, db, status, notes)

    async def update_marketplace_session_review(
        self,
        session_id: str,
        db: AsyncSession,
        status: Optional[Union[SessionStatus, str]] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Set operator status and/or notes. Financial fields are never touched."""
        return await self._update_review(MARKETPLACE_TABLE, session_id, db, status, notes)


# Singleton instance
pricing_repository = PricingRepository()
