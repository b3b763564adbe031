"""
Structured logging setup (structlog, JSON lines)
"""
import logging
from typing import Optional

import structlog

from pricedesk.common.config import get_settings


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure structlog with the shared processor chain.

    Args:
        level: Log level name; defaults to LOG_LEVEL from settings
    """
    level_name = (level or get_settings().log_level).upper()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
