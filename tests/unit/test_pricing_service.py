"""PricingService orchestration with a mocked repository."""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pricedesk.common.config import Settings
from pricedesk.common.pricing_repository import PricingRepository
from pricedesk.common.schemas.pricing_session import SessionStatus
from pricedesk.domain.analytics import Trend
from pricedesk.domain.categorization.category_registry import CategoryRegistry
from pricedesk.domain.pricing.errors import CategoryNotConfigured, InvalidInput
from pricedesk.domain.pricing.pricing_service import PricingService


async def _store_first_timestamp(session_id, db, sent_at=None):
    return sent_at


@pytest.fixture
def repository(registry: CategoryRegistry) -> AsyncMock:
    repo = AsyncMock(spec=PricingRepository)
    repo.load_registry.return_value = registry
    # First report: the database keeps the timestamp it was given
    repo.mark_invoice_session_reported.side_effect = _store_first_timestamp
    repo.mark_marketplace_session_reported.side_effect = _store_first_timestamp
    repo.update_invoice_session_review.return_value = True
    repo.update_marketplace_session_review.return_value = True
    return repo


@pytest.fixture
def service(repository: AsyncMock) -> PricingService:
    settings = Settings(_env_file=None, DEFAULT_ROUNDING_OPTION=100)
    return PricingService(repository=repository, settings=settings)


@pytest.fixture
def db() -> MagicMock:
    return MagicMock()


class TestPriceInvoice:
    @pytest.mark.asyncio
    async def test_prices_and_saves(self, service, repository, db) -> None:
        session = await service.price_invoice(
            [("HP Ink Cartridge", 10)], 150, db, invoice_number="INV-9"
        )

        assert session.total_value == Decimal("2500")
        assert session.rounding_option == 100
        assert session.status is SessionStatus.PENDING
        repository.load_registry.assert_awaited_once_with(db)
        repository.save_invoice_session.assert_awaited_once_with(session, db)

    @pytest.mark.asyncio
    async def test_explicit_rounding_option(self, service, db) -> None:
        session = await service.price_invoice(
            [("HP Ink Cartridge", 10)], 150, db, rounding_option=10000
        )
        assert session.total_value == Decimal("0")

    @pytest.mark.asyncio
    async def test_invalid_input_saves_nothing(self, service, repository, db) -> None:
        with pytest.raises(InvalidInput):
            await service.price_invoice([("HP Ink Cartridge", -1)], 150, db)
        repository.save_invoice_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_category_saves_nothing(
        self, service, repository, db, ink_registry
    ) -> None:
        repository.load_registry.return_value = ink_registry

        with pytest.raises(CategoryNotConfigured):
            await service.price_invoice([("Logitech M185 Mouse", 20)], 150, db)
        repository.save_invoice_session.assert_not_awaited()


class TestPriceMarketplaceItem:
    @pytest.mark.asyncio
    async def test_prices_and_saves(self, service, repository, db) -> None:
        session = await service.price_marketplace_item(
            150, 160, "https://example.com/item", "Echo Dot", db
        )

        assert session.selling_price_local == Decimal("56496.00")
        repository.save_marketplace_session.assert_awaited_once_with(session, db)


class TestReportAndReview:
    @pytest.mark.asyncio
    async def test_mark_reported_persists_same_timestamp(self, service, repository, db) -> None:
        session = await service.price_invoice([("HP Ink Cartridge", 10)], 150, db)

        reported = await service.mark_reported(session, db)

        assert reported.email_sent is True
        kwargs = repository.mark_invoice_session_reported.await_args.kwargs
        assert kwargs["sent_at"] == reported.email_sent_at

    @pytest.mark.asyncio
    async def test_mark_reported_marketplace(self, service, repository, db) -> None:
        session = await service.price_marketplace_item(
            50, 155, "https://example.com/item", "USB Hub", db
        )

        await service.mark_reported(session, db)

        repository.mark_marketplace_session_reported.assert_awaited_once()
        repository.mark_invoice_session_reported.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mark_reported_unknown_session(self, service, repository, db) -> None:
        session = await service.price_invoice([("HP Ink Cartridge", 10)], 150, db)
        repository.mark_invoice_session_reported.side_effect = None
        repository.mark_invoice_session_reported.return_value = None

        assert await service.mark_reported(session, db) is None

    @pytest.mark.asyncio
    async def test_stale_copy_gets_stored_timestamp(self, service, repository, db) -> None:
        session = await service.price_invoice([("HP Ink Cartridge", 10)], 150, db)
        first_sent = datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc)
        repository.mark_invoice_session_reported.side_effect = None
        repository.mark_invoice_session_reported.return_value = first_sent

        # session still has email_sent=False, as a duplicate dispatcher would
        reported = await service.mark_reported(session, db)

        assert reported.email_sent is True
        assert reported.email_sent_at == first_sent
        assert repository.mark_invoice_session_reported.await_args.kwargs["sent_at"] != first_sent

    @pytest.mark.asyncio
    async def test_update_review(self, service, repository, db) -> None:
        session = await service.price_invoice([("HP Ink Cartridge", 10)], 150, db)

        updated = await service.update_review(session, db, status="approved", notes="ok")

        assert updated.status is SessionStatus.APPROVED
        assert updated.notes == "ok"
        repository.update_invoice_session_review.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_review_no_change(self, service, repository, db) -> None:
        session = await service.price_invoice([("HP Ink Cartridge", 10)], 150, db)

        assert await service.update_review(session, db, status="pending") is session
        repository.update_invoice_session_review.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_review_invalid_status(self, service, repository, db) -> None:
        session = await service.price_invoice([("HP Ink Cartridge", 10)], 150, db)

        with pytest.raises(InvalidInput):
            await service.update_review(session, db, status="archived")
        repository.update_invoice_session_review.assert_not_awaited()


class TestSummarize:
    @pytest.mark.asyncio
    async def test_summarize(self, service, repository, db) -> None:
        first = await service.price_invoice([("HP Ink Cartridge", 10)], 150, db)
        second = await service.price_invoice([("HP Ink Cartridge", 20)], 150, db)
        repository.list_invoice_sessions.return_value = [first, second]
        repository.list_marketplace_sessions.return_value = []

        stats = await service.summarize(db)

        assert stats["invoice"].session_count == 2
        assert stats["invoice"].trend is Trend.UP
        assert stats["marketplace"].session_count == 0
