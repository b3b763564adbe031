#!/usr/bin/env python3
"""
Replay a stored pricing session and report any discrepancies.

Recomputes every price from the session's own inputs (category snapshots,
exchange rate, rounding option) and compares with what was stored.

Usage:
    python scripts/replay_session.py invoice <session_id>
    python scripts/replay_session.py marketplace <session_id>

Example:
    python scripts/replay_session.py invoice acafec2a-00e1-4484-96e7-ccb05e43185f
"""
import sys
import os
import asyncio

# Add parent directory to path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pricedesk.common.config import get_settings
from pricedesk.common.database import sessionmanager
from pricedesk.common.logging import configure_logging
from pricedesk.common.pricing_repository import pricing_repository
from pricedesk.domain.pricing.session_audit import (
    find_discrepancies,
    find_marketplace_discrepancies,
)


async def main():
    if len(sys.argv) < 3 or sys.argv[1] not in {"invoice", "marketplace"}:
        print("Usage: python scripts/replay_session.py <invoice|marketplace> <session_id>")
        sys.exit(1)

    session_type, session_id = sys.argv[1], sys.argv[2]
    settings = get_settings()
    configure_logging(settings.log_level)
    await sessionmanager.init(settings.database_url)

    try:
        async with sessionmanager.session() as db:
            if session_type == "invoice":
                session = await pricing_repository.get_invoice_session(session_id, db)
            else:
                session = await pricing_repository.get_marketplace_session(session_id, db)
    finally:
        await sessionmanager.close()

    if session is None:
        print(f"❌ {session_type} session not found: {session_id}")
        sys.exit(1)

    print(f"Replaying {session_type} session {session_id}...")
    if session_type == "invoice":
        issues = find_discrepancies(session)
        print(f"  Items: {len(session.items)}")
        print(f"  Rounding: nearest {session.rounding_option:,}")
        print(f"  Total: {session.total_value}")
    else:
        issues = find_marketplace_discrepancies(session)
        print(f"  Product: {session.product_name}")
        print(f"  Markup: {session.markup_percentage}% ({session.markup_source.value})")
        print(f"  Selling price (local): {session.selling_price_local}")
    print(f"  Exchange rate: {session.exchange_rate}")
    print(f"  Report sent: {session.email_sent}")

    if issues:
        print("\n❌ Discrepancies:")
        for issue in issues:
            print(f"  - {issue}")
        sys.exit(2)

    print("\n✓ Replay matches stored session")

if __name__ == "__main__":
    asyncio.run(main())
