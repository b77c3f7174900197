#!/usr/bin/env python3
"""
Report memos whose linked record no longer exists.

Deleting a record leaves its memos in place with a dangling link. This
lists them per user so they can be reviewed or removed.

Usage:
    python scripts/report_orphaned_memos.py
    python scripts/report_orphaned_memos.py --owner <user-id>
    python scripts/report_orphaned_memos.py --delete
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from procurement_hub.config import get_settings
from procurement_hub.db.database import get_async_url
from procurement_hub.services.auth_service import AuthService
from procurement_hub.services.memo_service import MemoService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def report(
    session: AsyncSession,
    owner_id: Optional[str] = None,
    delete: bool = False,
) -> int:
    """Log orphaned memos per user. Returns how many were found."""
    memo_service = MemoService(session)
    users = await AuthService(session).list_users()
    if owner_id:
        users = [u for u in users if u.id == owner_id]
        if not users:
            logger.warning(f"No user with id {owner_id}")

    found = 0
    for user in users:
        orphaned = await memo_service.list_orphaned(user.id)
        if not orphaned:
            continue

        logger.info(f"{user.username}: {len(orphaned)} orphaned memo(s)")
        for memo in orphaned:
            logger.info(f"  {memo.id} '{memo.title}' -> {memo.linked_record_id}")
            if delete:
                await memo_service.delete_memo(memo.id, user.id)
        found += len(orphaned)

    return found


async def main_async(owner_id: Optional[str] = None, delete: bool = False) -> None:
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
            found = await report(session, owner_id=owner_id, delete=delete)
            if not found:
                logger.info("No orphaned memos.")
            elif delete:
                await session.commit()
                logger.info(f"Deleted {found:,} orphaned memo(s).")
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="Report memos linked to records that no longer exist"
    )
    parser.add_argument(
        "--owner",
        help="Only check memos of this user id",
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete the orphaned memos instead of only reporting",
    )

    args = parser.parse_args()
    asyncio.run(main_async(owner_id=args.owner, delete=args.delete))


if __name__ == "__main__":
    main()
