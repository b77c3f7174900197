"""
Read-modify-write access to the named JSON collections.

Every mutation in the core follows the same shape:

1. ``load`` the full collection together with its version token
2. compute the new collection in memory, re-checking invariants
3. ``replace`` it wholesale, passing the version that was read

``replace`` is a compare-and-swap on the version column, so a concurrent
writer that got there first surfaces as ``StaleWriteError`` (retryable)
instead of a silently lost update.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, List, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.core.exceptions import StaleWriteError
from procurement_hub.db.models import CollectionModel

logger = logging.getLogger(__name__)

# Fixed collection keys
USERS = "users"
OTP_ENTRIES = "otp_entries"
SESSIONS = "sessions"
PERSONAL_LIBRARY = "personal_library"
COLLECTIVE_LIBRARY = "collective_library"
MEMOS = "memos"
COLLEAGUES = "colleagues"
SETTINGS = "settings"
LEGACY_NOTE = "legacy_note"

T = TypeVar("T", bound=BaseModel)


@dataclass
class Snapshot:
    """Raw collection contents plus the version they were read at."""

    payload: Any
    version: int = 0

    @property
    def exists(self) -> bool:
        """False when the collection has never been written."""
        return self.version > 0


@dataclass
class ItemsSnapshot(Generic[T]):
    """Typed collection contents plus their version token."""

    items: List[T] = field(default_factory=list)
    version: int = 0

    @property
    def exists(self) -> bool:
        return self.version > 0


class CollectionStore:
    """Versioned get-all / replace-all over the ``collections`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self, name: str) -> Snapshot:
        """Read a collection. Missing collections load as version 0."""
        row = await self.session.get(CollectionModel, name, populate_existing=True)
        if row is None:
            return Snapshot(payload=None, version=0)
        return Snapshot(payload=row.payload, version=row.version)

    async def replace(self, name: str, payload: Any, expected_version: int) -> int:
        """
        Replace a collection wholesale.

        Args:
            name: Collection key
            payload: New JSON-serializable contents
            expected_version: Version returned by the ``load`` this write is based on

        Returns:
            The new version

        Raises:
            StaleWriteError: If the collection changed since it was read
        """
        now = datetime.now(timezone.utc)

        if expected_version == 0:
            self.session.add(
                CollectionModel(name=name, payload=payload, version=1, updated_at=now)
            )
            try:
                await self.session.flush()
            except IntegrityError as e:
                logger.warning(f"Concurrent creation of collection {name}")
                raise StaleWriteError(f"Collection {name} was created concurrently") from e
            return 1

        result = await self.session.execute(
            update(CollectionModel)
            .where(CollectionModel.name == name)
            .where(CollectionModel.version == expected_version)
            .values(payload=payload, version=expected_version + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Stale write to collection {name} at version {expected_version}")
            raise StaleWriteError(
                f"Collection {name} changed since version {expected_version}"
            )
        return expected_version + 1


class Repository(Generic[T]):
    """
    Typed view of one list-shaped collection.

    Usage:
        users = Repository(store, USERS, User)
        snapshot = await users.load()
        await users.replace(snapshot.items + [new_user], snapshot.version)
    """

    def __init__(self, store: CollectionStore, name: str, model: Type[T]):
        self.store = store
        self.name = name
        self.model = model

    async def load(self) -> ItemsSnapshot[T]:
        snapshot = await self.store.load(self.name)
        items = [self.model.model_validate(raw) for raw in (snapshot.payload or [])]
        return ItemsSnapshot(items=items, version=snapshot.version)

    async def all(self) -> List[T]:
        return (await self.load()).items

    async def replace(self, items: List[T], expected_version: int) -> int:
        payload = [item.model_dump(mode="json") for item in items]
        return await self.store.replace(self.name, payload, expected_version)
