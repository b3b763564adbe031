"""
PricingRepository against a mocked AsyncSession.

SQL is not executed; tests check parameters, row mapping and commit behavior.
"""
import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pricedesk.common.pricing_repository import PricingRepository
from pricedesk.common.schemas.pricing_session import MarkupSource, SessionStatus
from pricedesk.domain.categorization.category_registry import CategoryRegistry
from pricedesk.domain.pricing.errors import InvalidInput
from pricedesk.domain.pricing.invoice_calculator import price_invoice
from pricedesk.domain.pricing.marketplace_calculator import price_marketplace_item
from pricedesk.domain.pricing.session_materializer import (
    materialize_invoice_session,
    materialize_marketplace_session,
)

CREATED = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _result(rows=None, rowcount=1, scalar=None):
    result = MagicMock()
    rows = rows or []
    result.fetchall.return_value = rows
    result.fetchone.return_value = rows[0] if rows else None
    result.rowcount = rowcount
    result.scalar.return_value = scalar
    return result


def _row(**mapping):
    row = MagicMock()
    row._mapping = mapping
    return row


@pytest.fixture
def repo() -> PricingRepository:
    return PricingRepository()


@pytest.fixture
def db() -> AsyncMock:
    session = AsyncMock()
    session.execute.return_value = _result()
    return session


@pytest.fixture
def invoice_session(registry: CategoryRegistry):
    result = price_invoice([("HP Ink Cartridge", 10)], 150, 100, registry)
    return materialize_invoice_session(result, invoice_number="INV-7", created_at=CREATED)


class TestCategories:
    @pytest.mark.asyncio
    async def test_list_maps_rows(self, repo, db) -> None:
        db.execute.return_value = _result([
            _row(id="c1", name="Ink", markup_percentage=Decimal("45.00"), created_at=CREATED),
            _row(id="c2", name="Laptops", markup_percentage=25, created_at=CREATED),
        ])

        categories = await repo.list_categories(db)

        assert [c.name for c in categories] == ["Ink", "Laptops"]
        assert categories[1].markup_percentage == Decimal("25")

    @pytest.mark.asyncio
    async def test_load_registry(self, repo, db) -> None:
        db.execute.return_value = _result([
            _row(id="c1", name="Ink", markup_percentage=Decimal("45.00"), created_at=CREATED),
        ])

        registry = await repo.load_registry(db)

        assert isinstance(registry, CategoryRegistry)
        assert registry.get_by_name("Ink").id == "c1"

    @pytest.mark.asyncio
    async def test_get_missing_category(self, repo, db) -> None:
        assert await repo.get_category("nope", db) is None

    @pytest.mark.asyncio
    async def test_create_category(self, repo, db) -> None:
        category = await repo.create_category("  Monitors ", "30", db)

        assert category.name == "Monitors"
        assert category.markup_percentage == Decimal("30")
        insert_params = db.execute.call_args.args[1]
        assert insert_params["name"] == "Monitors"
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_duplicate_name(self, repo, db) -> None:
        db.execute.return_value = _result([_row(id="c1")])

        with pytest.raises(InvalidInput):
            await repo.create_category("Ink", 45, db)
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_rejects_markup_without_query(self, repo, db) -> None:
        with pytest.raises(InvalidInput):
            await repo.create_category("Monitors", 1001, db)
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_unknown_category(self, repo, db) -> None:
        db.execute.return_value = _result(rowcount=0)
        assert await repo.update_category("nope", db, markup_percentage=10) is None

    @pytest.mark.asyncio
    async def test_rename_to_existing_name(self, repo, db) -> None:
        db.execute.return_value = _result([_row(id="c2")])

        with pytest.raises(InvalidInput):
            await repo.update_category("c1", db, name="Routers")

        check_sql, check_params = db.execute.call_args.args
        assert "id <> :id" in str(check_sql)
        assert check_params == {"name": "Routers", "id": "c1"}
        assert db.execute.await_count == 1
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rename_to_free_name(self, repo, db) -> None:
        renamed = _row(id="c1", name="Printer Ink", markup_percentage=Decimal("45"), created_at=CREATED)
        db.execute.side_effect = [_result(), _result(rowcount=1), _result([renamed])]

        category = await repo.update_category("c1", db, name="Printer Ink")

        assert category.name == "Printer Ink"
        update_params = db.execute.await_args_list[1].args[1]
        assert update_params == {"id": "c1", "name": "Printer Ink"}

    @pytest.mark.asyncio
    async def test_delete_category(self, repo, db) -> None:
        db.execute.return_value = _result(rowcount=1)
        assert await repo.delete_category("c1", db) is True

    @pytest.mark.asyncio
    async def test_seed_empty_table(self, repo, db) -> None:
        db.execute.return_value = _result(scalar=0)

        inserted = await repo.seed_default_categories(db)

        assert inserted == 11
        inserts = [
            call for call in db.execute.await_args_list
            if "INSERT INTO categories" in str(call.args[0])
        ]
        assert len(inserts) == 1
        assert "ON CONFLICT (name) DO NOTHING" in str(inserts[0].args[0])
        assert len(inserts[0].args[1]) == 11
        assert {row["name"] for row in inserts[0].args[1]} >= {"Accessories", "Ink", "Routers"}
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_seed_commits_nothing_and_retries(self, repo, db) -> None:
        db.execute.side_effect = [_result(scalar=0), RuntimeError("insert failed")]

        with pytest.raises(RuntimeError):
            await repo.seed_default_categories(db)

        db.commit.assert_not_awaited()
        db.rollback.assert_awaited_once()

        # Rolled back, so the table still counts as empty on the next start
        db.execute.side_effect = [_result(scalar=0), _result()]
        assert await repo.seed_default_categories(db) == 11
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_seed_skipped_when_populated(self, repo, db) -> None:
        db.execute.return_value = _result(scalar=4)

        assert await repo.seed_default_categories(db) == 0
        assert db.execute.await_count == 1


class TestInvoiceSessions:
    @pytest.mark.asyncio
    async def test_save_serializes_items(self, repo, db, invoice_session) -> None:
        await repo.save_invoice_session(invoice_session, db)

        params = db.execute.call_args.args[1]
        items = json.loads(params["items"])
        assert items[0]["category_name"] == "Ink"
        assert items[0]["final_price"] == "2500"
        assert params["status"] == "pending"
        assert params["total_value"] == Decimal("2500")
        db.commit.assert_awaited_once()

    @pytest.mark.parametrize("as_text", [True, False])
    @pytest.mark.asyncio
    async def test_get_round_trips_row(self, repo, db, invoice_session, as_text) -> None:
        items = [item.model_dump(mode="json") for item in invoice_session.items]
        db.execute.return_value = _result([_row(
            id=invoice_session.id,
            invoice_number="INV-7",
            exchange_rate=Decimal("150"),
            rounding_option=100,
            items=json.dumps(items) if as_text else items,
            total_value=Decimal("2500"),
            status="pending",
            email_sent=False,
            email_sent_at=None,
            notes=None,
            created_at=CREATED,
        )])

        loaded = await repo.get_invoice_session(invoice_session.id, db)

        assert loaded.items == invoice_session.items
        assert loaded.total_value == invoice_session.total_value
        assert loaded.status is SessionStatus.PENDING

    @pytest.mark.asyncio
    async def test_get_missing_session(self, repo, db) -> None:
        assert await repo.get_invoice_session("missing", db) is None


class TestMarketplaceSessions:
    @pytest.mark.asyncio
    async def test_save_uses_enum_values(self, repo, db) -> None:
        session = materialize_marketplace_session(
            price_marketplace_item(150, 160, markup_percentage=200),
            "https://example.com/item",
            "Echo Dot",
        )

        await repo.save_marketplace_session(session, db)

        params = db.execute.call_args.args[1]
        assert params["markup_source"] == MarkupSource.OVERRIDE.value
        assert params["status"] == "pending"
        assert params["selling_price_local"] == session.selling_price_local


class TestReportAndReview:
    @pytest.mark.asyncio
    async def test_mark_reported_keeps_first_timestamp(self, repo, db) -> None:
        first_sent = datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc)
        db.execute.return_value = _result([_row(email_sent_at=first_sent)])

        stored = await repo.mark_invoice_session_reported(
            "s1", db, sent_at=datetime(2024, 3, 5, tzinfo=timezone.utc)
        )

        assert stored == first_sent
        sql = str(db.execute.call_args.args[0])
        assert "COALESCE(email_sent_at" in sql
        assert "email_sent = TRUE" in sql
        assert "RETURNING email_sent_at" in sql
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mark_reported_missing_session(self, repo, db) -> None:
        assert await repo.mark_marketplace_session_reported("missing", db) is None

    @pytest.mark.asyncio
    async def test_update_review(self, repo, db) -> None:
        assert await repo.update_invoice_session_review(
            "s1", db, status="approved", notes="  ok  "
        ) is True

        params = db.execute.call_args.args[1]
        assert params["status"] == "approved"
        assert params["notes"] == "ok"

    @pytest.mark.asyncio
    async def test_update_review_never_touches_financials(self, repo, db) -> None:
        await repo.update_marketplace_session_review("s1", db, status="rejected")

        sql = str(db.execute.call_args.args[0])
        assert "selling_price" not in sql

    @pytest.mark.asyncio
    async def test_update_review_invalid_status(self, repo, db) -> None:
        with pytest.raises(InvalidInput):
            await repo.update_invoice_session_review("s1", db, status="archived")
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_review_nothing_to_do(self, repo, db) -> None:
        assert await repo.update_invoice_session_review("s1", db) is False
        db.execute.assert_not_awaited()
