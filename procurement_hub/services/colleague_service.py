"""
Colleague graph: per-user directed adjacency lists used to pick sharing targets.
"""

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.core.collection_store import COLLEAGUES, CollectionStore, Repository
from procurement_hub.core.exceptions import (
    DuplicateColleagueError,
    SelfColleagueError,
    UnknownColleagueError,
)
from procurement_hub.models.schemas import Colleague, ColleagueList, epoch_ms
from procurement_hub.services.auth_service import AuthService

logger = logging.getLogger(__name__)


class ColleagueService:
    """Adding A -> B never adds B -> A."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.auth = AuthService(session)
        self.lists = Repository(CollectionStore(session), COLLEAGUES, ColleagueList)

    async def list_colleagues(self, owner_id: str) -> List[Colleague]:
        for entry in await self.lists.all():
            if entry.owner_id == owner_id:
                return entry.colleagues
        return []

    async def add_colleague(self, owner_id: str, colleague_username: str) -> Colleague:
        """
        Add an edge from ``owner_id`` to the user named ``colleague_username``.

        Raises:
            UnknownColleagueError: No user with that username
            SelfColleagueError: The username is the owner's own
            DuplicateColleagueError: The edge already exists
        """
        users = await self.auth.list_users()
        target = next((u for u in users if u.username == colleague_username), None)
        if target is None:
            raise UnknownColleagueError(f"No user named {colleague_username}")
        if target.id == owner_id:
            raise SelfColleagueError(f"User {owner_id} tried to add themselves")

        snapshot = await self.lists.load()
        current = next((e for e in snapshot.items if e.owner_id == owner_id), None)
        existing = current.colleagues if current else []
        if any(c.user_id == target.id for c in existing):
            raise DuplicateColleagueError(f"{target.id} already a colleague of {owner_id}")

        colleague = Colleague(user_id=target.id, username=target.username, added_at=epoch_ms())
        updated = ColleagueList(owner_id=owner_id, colleagues=existing + [colleague])
        others = [e for e in snapshot.items if e.owner_id != owner_id]
        await self.lists.replace(others + [updated], snapshot.version)

        logger.info(f"User {owner_id} added colleague {target.id}")
        return colleague

    async def remove_colleague(self, owner_id: str, colleague_id: str) -> bool:
        snapshot = await self.lists.load()
        current = next((e for e in snapshot.items if e.owner_id == owner_id), None)
        if current is None or not any(c.user_id == colleague_id for c in current.colleagues):
            return False

        updated = ColleagueList(
            owner_id=owner_id,
            colleagues=[c for c in current.colleagues if c.user_id != colleague_id],
        )
        await self.lists.replace(
            [updated if e.owner_id == owner_id else e for e in snapshot.items],
            snapshot.version,
        )
        return True
