"""
Pricing desk startup and shutdown
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog

from pricedesk import __version__
from pricedesk.common.config import Settings, get_settings
from pricedesk.common.database import sessionmanager
from pricedesk.common.logging import configure_logging
from pricedesk.common.pricing_repository import pricing_repository

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(settings: Optional[Settings] = None) -> AsyncGenerator[None, None]:
    """
    Configure logging, open the connection pool and seed categories.

    Usage:
        async with lifespan():
            async with sessionmanager.session() as db:
                ...
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    logger.info("starting_pricedesk",
                environment=settings.environment,
                version=__version__)

    await sessionmanager.init(settings.database_url)

    if settings.seed_default_categories:
        async with sessionmanager.session() as db:
            seeded = await pricing_repository.seed_default_categories(db)
        logger.info("category_seed_checked", inserted=seeded)

    try:
        yield
    finally:
        logger.info("shutting_down_pricedesk")
        await sessionmanager.close()
