#!/usr/bin/env python3
"""
Cron job script to activate and revert offers that are due.
Add to crontab: */15 * * * * cd /path/to/app && /path/to/venv/bin/python scripts/run_sweep.py

This runs the sweep as a standalone script, not through the web server.
"""

import asyncio
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import settings
from app.db import SQLiteDatabase
from app.processor import run_due_offers
from app.shopify import ShopifyClient

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


async def main():
    logger.info("Starting offer sweep...")

    db = SQLiteDatabase(settings.database_path)
    await db.initialize()

    try:
        async with ShopifyClient.from_settings(settings) as client:
            sweep = await run_due_offers(db, client)

        if sweep.failures:
            for failure in sweep.failures:
                logger.error(f"  Offer {failure.offer_id} ({failure.action.value}): {failure.error}")
            sys.exit(1)

    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
