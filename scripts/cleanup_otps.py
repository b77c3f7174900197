#!/usr/bin/env python3
"""
Clean up expired password-reset codes.

Expired codes are already rejected at verification time; this removes
them from storage. Should be run periodically (e.g., hourly cron job).

Usage:
    python scripts/cleanup_otps.py
    python scripts/cleanup_otps.py --stats
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from procurement_hub.config import get_settings
from procurement_hub.core.collection_store import OTP_ENTRIES, CollectionStore, Repository
from procurement_hub.db.database import get_async_url
from procurement_hub.models.schemas import OTPEntry, epoch_ms
from procurement_hub.services.recovery_service import RecoveryService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def get_otp_stats(session: AsyncSession) -> dict:
    """Count live and expired reset codes."""
    entries = await Repository(CollectionStore(session), OTP_ENTRIES, OTPEntry).all()
    now = epoch_ms()
    expired = sum(1 for e in entries if e.expires_at < now)
    return {
        "total_entries": len(entries),
        "active_entries": len(entries) - expired,
        "expired_entries": expired,
    }


async def main_async(stats_only: bool = False) -> None:
    """Main async function."""
    settings = get_settings()
    engine = create_async_engine(
        get_async_url(settings.database_url),
        echo=False,
    )
    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    try:
        async with session_maker() as session:
            stats = await get_otp_stats(session)

            logger.info("Reset Code Statistics:")
            logger.info(f"  Total entries: {stats['total_entries']:,}")
            logger.info(f"  Active entries: {stats['active_entries']:,}")
            logger.info(f"  Expired entries: {stats['expired_entries']:,}")

            if stats_only:
                return

            if stats["expired_entries"] == 0:
                logger.info("No expired codes to clean up.")
                return

            removed = await RecoveryService(session).purge_expired()
            await session.commit()

            logger.info(f"Cleaned up {len(removed):,} expired reset codes.")
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="Clean up expired password-reset codes"
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Only show statistics, don't clean up",
    )

    args = parser.parse_args()
    asyncio.run(main_async(stats_only=args.stats))


if __name__ == "__main__":
    main()
