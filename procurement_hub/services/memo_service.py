"""
Memo service: owner-scoped free-text notes with a soft link to a library record.

The link is an identifier only. Deleting the linked record leaves the memo in
place as an orphan; ``list_orphaned`` finds those.
"""

import logging
from typing import Iterable, List, Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.config import settings
from procurement_hub.core.collection_store import (
    LEGACY_NOTE,
    MEMOS,
    CollectionStore,
    ItemsSnapshot,
    Repository,
)
from procurement_hub.core.exceptions import (
    DuplicateMemoError,
    MemoNotFoundError,
    ValidationError,
)
from procurement_hub.models.schemas import Memo, epoch_ms
from procurement_hub.services.library_service import LibraryService

logger = logging.getLogger(__name__)

LEGACY_TITLE = "Migrated Memo"
LEGACY_LABEL = "legacy"
QUICK_MEMO_TITLE = "Quick Memo"


def normalize_labels(labels: Optional[Iterable[str]]) -> List[str]:
    """Trim, lower-case, drop empties and de-duplicate, keeping first occurrence."""
    seen: List[str] = []
    for label in labels or []:
        cleaned = label.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def derive_title(title: Optional[str], body: str, max_length: int = 30) -> str:
    """Use the given title, else the body's first line truncated with an ellipsis."""
    cleaned = (title or "").strip()
    if cleaned:
        return cleaned
    first_line = body.strip().split("\n")[0].strip()
    if len(first_line) > max_length:
        return first_line[:max_length] + "..."
    return first_line


class MemoService:
    """Service for memo CRUD and link queries."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = CollectionStore(session)
        self.memos = Repository(self.store, MEMOS, Memo)
        self.library = LibraryService(session)

    async def _load(self, owner_id: str) -> ItemsSnapshot[Memo]:
        """
        Load memos, upconverting the legacy single-string note on first read.

        The migrated memo is owned by the user whose read triggered it.
        """
        snapshot = await self.memos.load()
        if snapshot.exists:
            return snapshot

        legacy = await self.store.load(LEGACY_NOTE)
        if not isinstance(legacy.payload, str) or not legacy.payload.strip():
            return snapshot

        now = epoch_ms()
        migrated = Memo(
            id=str(uuid4()),
            title=LEGACY_TITLE,
            body=legacy.payload,
            labels=[LEGACY_LABEL],
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
        )
        version = await self.memos.replace([migrated], snapshot.version)
        logger.info(f"Migrated legacy note into memo {migrated.id} for {owner_id}")
        return ItemsSnapshot(items=[migrated], version=version)

    # ============ Reads ============

    async def list_memos(
        self,
        owner_id: str,
        label: Optional[str] = None,
        query: Optional[str] = None,
    ) -> List[Memo]:
        """Owner's memos, newest first, optionally filtered."""
        memos = [m for m in (await self._load(owner_id)).items if m.owner_id == owner_id]
        if label:
            wanted = label.strip().lower()
            memos = [m for m in memos if wanted in m.labels]
        if query:
            needle = query.strip().lower()
            memos = [
                m
                for m in memos
                if needle in m.title.lower()
                or needle in m.body.lower()
                or any(needle in lbl for lbl in m.labels)
            ]
        return memos

    async def list_labels(self, owner_id: str) -> List[str]:
        memos = await self.list_memos(owner_id)
        return sorted({label for memo in memos for label in memo.labels})

    async def get_memo(self, memo_id: str, owner_id: str) -> Memo:
        for memo in await self.list_memos(owner_id):
            if memo.id == memo_id:
                return memo
        raise MemoNotFoundError(f"Memo {memo_id} not found for {owner_id}")

    async def list_by_linked_record(self, record_id: str, owner_id: str) -> List[Memo]:
        """The caller's memos linked to ``record_id``, whichever partition it is in."""
        return [m for m in await self.list_memos(owner_id) if m.linked_record_id == record_id]

    async def list_orphaned(self, owner_id: str) -> List[Memo]:
        """Memos whose linked record is visible in neither partition."""
        visible = await self.library.visible_record_ids(owner_id)
        return [
            m
            for m in await self.list_memos(owner_id)
            if m.linked_record_id and m.linked_record_id not in visible
        ]

    # ============ Writes ============

    async def create_memo(
        self,
        owner_id: str,
        body: str,
        title: Optional[str] = None,
        labels: Optional[Iterable[str]] = None,
        linked_record_id: Optional[str] = None,
    ) -> Memo:
        """
        Create a memo.

        Raises:
            ValidationError: If the body is blank
            DuplicateMemoError: If the owner already has a memo with the same
                trimmed title and trimmed body. Nothing is written.
        """
        if not body.strip():
            raise ValidationError("Empty memo body", user_message="Memo content cannot be empty.")

        resolved_title = derive_title(title, body, settings.memo_title_max_length)

        snapshot = await self._load(owner_id)
        duplicate = next(
            (
                m
                for m in snapshot.items
                if m.owner_id == owner_id
                and m.title.strip() == resolved_title
                and m.body.strip() == body.strip()
            ),
            None,
        )
        if duplicate is not None:
            raise DuplicateMemoError(f"Memo duplicates {duplicate.id} for {owner_id}")

        now = epoch_ms()
        memo = Memo(
            id=str(uuid4()),
            title=resolved_title,
            body=body,
            labels=normalize_labels(labels),
            linked_record_id=linked_record_id or None,
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
        )
        await self.memos.replace([memo] + snapshot.items, snapshot.version)
        return memo

    async def create_quick_memo(
        self,
        owner_id: str,
        record_id: str,
        body: str,
        title: Optional[str] = None,
        label: str = "history-memo",
    ) -> Memo:
        """Memo written from an analysis view, linked to the record on screen."""
        return await self.create_memo(
            owner_id=owner_id,
            body=body,
            title=(title or "").strip() or QUICK_MEMO_TITLE,
            labels=[label],
            linked_record_id=record_id,
        )

    async def update_memo(
        self,
        memo_id: str,
        owner_id: str,
        body: str,
        title: Optional[str] = None,
        labels: Optional[Iterable[str]] = None,
        linked_record_id: Optional[str] = None,
    ) -> Memo:
        """Overwrite title, body, labels and link. No duplicate check applies."""
        if not body.strip():
            raise ValidationError("Empty memo body", user_message="Memo content cannot be empty.")

        snapshot = await self._load(owner_id)
        current = next(
            (m for m in snapshot.items if m.id == memo_id and m.owner_id == owner_id), None
        )
        if current is None:
            raise MemoNotFoundError(f"Memo {memo_id} not found for {owner_id}")

        updated = current.model_copy(
            update={
                "title": derive_title(title, body, settings.memo_title_max_length),
                "body": body,
                "labels": normalize_labels(labels),
                "linked_record_id": linked_record_id or None,
                "updated_at": epoch_ms(),
            }
        )
        await self.memos.replace(
            [updated if m is current else m for m in snapshot.items], snapshot.version
        )
        return updated

    async def delete_memo(self, memo_id: str, owner_id: str) -> None:
        snapshot = await self._load(owner_id)
        remaining = [
            m for m in snapshot.items if not (m.id == memo_id and m.owner_id == owner_id)
        ]
        if len(remaining) == len(snapshot.items):
            raise MemoNotFoundError(f"Memo {memo_id} not found for {owner_id}")
        await self.memos.replace(remaining, snapshot.version)
