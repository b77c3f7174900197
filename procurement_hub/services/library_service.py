"""
Library service: the Personal and Collective partitions of analysis records.

A logical record is in one of three states: Personal(owner),
Collective(uploader) or Absent.

- create:            Absent -> Personal(owner)
- publish:           Personal -> Collective(acting user); the Personal copy is
                     removed in the same operation, and an existing Collective
                     entry with the same id is overwritten in place
- save_to_personal:  Collective -> Personal(acting user); a fork, the
                     Collective copy stays
- delete:            Personal by its owner only; Collective by its uploader
                     or an admin

Identifiers are assigned once and never reused, so memo links keep pointing
at the same record whichever partition it lives in.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.core.collection_store import (
    COLLECTIVE_LIBRARY,
    PERSONAL_LIBRARY,
    CollectionStore,
    Repository,
)
from procurement_hub.core.exceptions import (
    DuplicateRecordError,
    PermissionDeniedError,
    ProcurementError,
    RecordNotFoundError,
    ValidationError,
)
from procurement_hub.core.vendor_groups import group_by_vendor, vendor_key
from procurement_hub.models.schemas import (
    AnalysisRecord,
    AnalysisResult,
    UploaderInfo,
    User,
    VendorGroup,
    epoch_ms,
)

logger = logging.getLogger(__name__)

MAX_COMPARE = 3


@dataclass
class GroupPublishResult:
    """Outcome of a non-atomic bulk publish."""

    published: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def _matches_search(record: AnalysisRecord, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    return needle in record.vendor_name.lower() or needle in record.file_name.lower()


def _uploader_for(user: User) -> UploaderInfo:
    return UploaderInfo(
        id=user.id,
        first_name=user.first_name or user.username,
        last_name=user.last_name or "",
    )


class LibraryService:
    """Service for library records across both partitions."""

    def __init__(self, session: AsyncSession):
        self.session = session
        store = CollectionStore(session)
        self.personal = Repository(store, PERSONAL_LIBRARY, AnalysisRecord)
        self.collective = Repository(store, COLLECTIVE_LIBRARY, AnalysisRecord)

    # ============ Reads ============

    async def list_personal(
        self, user_id: str, search: Optional[str] = None
    ) -> List[AnalysisRecord]:
        """Records owned by ``user_id``, newest first."""
        return [
            r
            for r in await self.personal.all()
            if r.owner_id == user_id and _matches_search(r, search)
        ]

    async def list_collective(self, search: Optional[str] = None) -> List[AnalysisRecord]:
        """All published records regardless of caller."""
        return [r for r in await self.collective.all() if _matches_search(r, search)]

    async def get_personal(self, record_id: str, user_id: str) -> AnalysisRecord:
        for record in await self.personal.all():
            if record.id == record_id and record.owner_id == user_id:
                return record
        raise RecordNotFoundError(f"Personal record {record_id} not found for {user_id}")

    async def get_collective(self, record_id: str) -> AnalysisRecord:
        for record in await self.collective.all():
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"Collective record {record_id} not found")

    async def get_record(self, record_id: str, user_id: str) -> AnalysisRecord:
        """A record visible to ``user_id``: their Personal copy first, then Collective."""
        try:
            return await self.get_personal(record_id, user_id)
        except RecordNotFoundError:
            return await self.get_collective(record_id)

    async def visible_record_ids(self, user_id: str) -> Set[str]:
        personal = await self.list_personal(user_id)
        collective = await self.list_collective()
        return {r.id for r in personal} | {r.id for r in collective}

    async def vendor_groups(
        self,
        user_id: str,
        scope: str = "personal",
        search: Optional[str] = None,
    ) -> List[VendorGroup]:
        """Per-vendor projection of one partition, recomputed on every call."""
        if scope == "collective":
            records = await self.list_collective()
        elif scope == "personal":
            records = await self.list_personal(user_id)
        else:
            raise ValidationError(f"Unknown scope {scope}", user_message="Unknown library scope.")
        return group_by_vendor(records, search=search)

    async def compare(self, record_ids: List[str], user_id: str) -> List[AnalysisRecord]:
        """Side-by-side view of up to three visible records."""
        if len(record_ids) > MAX_COMPARE:
            raise ValidationError(
                f"Compare requested {len(record_ids)} records",
                user_message=f"You can compare up to {MAX_COMPARE} proposals at a time.",
            )
        return [await self.get_record(record_id, user_id) for record_id in record_ids]

    # ============ Transitions ============

    async def create_record(
        self,
        owner_id: str,
        file_name: str,
        analysis: AnalysisResult,
    ) -> AnalysisRecord:
        """Wrap a fresh analysis in a new Personal record."""
        vendor_name = "Unknown"
        if analysis.vendor_identification and analysis.vendor_identification.vendor_name:
            vendor_name = analysis.vendor_identification.vendor_name
        elif analysis.vendor_check_inputs.registered_name:
            vendor_name = analysis.vendor_check_inputs.registered_name

        record = AnalysisRecord(
            id=str(uuid4()),
            timestamp=epoch_ms(),
            file_name=file_name,
            vendor_name=vendor_name,
            score=analysis.score,
            data=analysis.model_dump(mode="json"),
            owner_id=owner_id,
        )
        return await self.add_to_personal(record)

    async def add_to_personal(self, record: AnalysisRecord) -> AnalysisRecord:
        """Insert a record into Personal; its id must not exist there yet."""
        snapshot = await self.personal.load()
        if any(r.id == record.id for r in snapshot.items):
            raise DuplicateRecordError(f"Record {record.id} already in personal library")

        await self.personal.replace([record] + snapshot.items, snapshot.version)
        logger.info(f"Created record {record.id} for owner {record.owner_id}")
        return record

    async def publish(self, record_id: str, acting_user: User) -> AnalysisRecord:
        """
        Move a Personal record into Collective with the acting user as uploader.

        The acting user's own copy is preferred when several Personal copies
        share the id.

        Raises:
            RecordNotFoundError: If no Personal copy exists
        """
        personal = await self.personal.load()
        candidates = [r for r in personal.items if r.id == record_id]
        if not candidates:
            raise RecordNotFoundError(f"Record {record_id} not in personal library")
        source = next((r for r in candidates if r.owner_id == acting_user.id), candidates[0])

        published = source.model_copy(
            update={"uploader": _uploader_for(acting_user), "is_published": True}
        )

        collective = await self.collective.load()
        if any(r.id == record_id for r in collective.items):
            items = [published if r.id == record_id else r for r in collective.items]
        else:
            items = [published] + collective.items
        await self.collective.replace(items, collective.version)

        remaining = [r for r in personal.items if r is not source]
        await self.personal.replace(remaining, personal.version)

        logger.info(f"User {acting_user.id} published record {record_id}")
        return published

    async def publish_group(
        self, record_ids: Iterable[str], acting_user: User
    ) -> GroupPublishResult:
        """
        Publish each record in turn. Not atomic: a failure is recorded and the
        remaining records are still attempted, so re-running finishes the job.
        Each record publishes inside a savepoint, so a failed one leaves no
        partial write behind.
        """
        result = GroupPublishResult()
        for record_id in record_ids:
            try:
                async with self.session.begin_nested():
                    await self.publish(record_id, acting_user)
                result.published.append(record_id)
            except ProcurementError as e:
                logger.warning(f"Group publish skipped {record_id}: {e}")
                result.failed[record_id] = e.user_message
        return result

    async def publish_vendor(self, key: str, acting_user: User) -> GroupPublishResult:
        """Publish every Personal record of the acting user in one vendor group."""
        records = await self.list_personal(acting_user.id)
        ids = [r.id for r in records if vendor_key(r) == key]
        if not ids:
            raise RecordNotFoundError(f"No personal records for vendor {key}")
        return await self.publish_group(ids, acting_user)

    async def save_to_personal(self, record_id: str, acting_user: User) -> AnalysisRecord:
        """
        Fork a Collective record into the acting user's Personal partition.

        Ownership is reassigned to the saver; provenance and payload are kept.
        An existing Personal copy of the saver with the same id is overwritten.
        """
        source = await self.get_collective(record_id)
        copy = source.model_copy(update={"owner_id": acting_user.id})

        personal = await self.personal.load()

        def mine(r: AnalysisRecord) -> bool:
            return r.id == record_id and r.owner_id == acting_user.id

        if any(mine(r) for r in personal.items):
            items = [copy if mine(r) else r for r in personal.items]
        else:
            items = [copy] + personal.items
        await self.personal.replace(items, personal.version)

        logger.info(f"User {acting_user.id} saved collective record {record_id}")
        return copy

    async def delete_personal(self, record_id: str, acting_user: User) -> None:
        """Delete the acting user's Personal copy."""
        snapshot = await self.personal.load()
        matches = [r for r in snapshot.items if r.id == record_id]
        if not matches:
            raise RecordNotFoundError(f"Record {record_id} not in personal library")

        own = next((r for r in matches if r.owner_id == acting_user.id), None)
        if own is None:
            raise PermissionDeniedError(
                f"User {acting_user.id} does not own record {record_id}",
                user_message="Permission denied: you can only delete your own records.",
            )

        await self.personal.replace(
            [r for r in snapshot.items if r is not own], snapshot.version
        )
        logger.info(f"User {acting_user.id} deleted personal record {record_id}")

    async def delete_collective(self, record_id: str, acting_user: User) -> None:
        """
        Delete a Collective record.

        Raises:
            PermissionDeniedError: If the acting user is neither the uploader
                nor an admin. Nothing is written.
        """
        snapshot = await self.collective.load()
        target = next((r for r in snapshot.items if r.id == record_id), None)
        if target is None:
            raise RecordNotFoundError(f"Collective record {record_id} not found")

        uploader_id = target.uploader.id if target.uploader else None
        if not (acting_user.is_admin or uploader_id == acting_user.id):
            raise PermissionDeniedError(
                f"User {acting_user.id} may not delete collective record {record_id}"
            )

        await self.collective.replace(
            [r for r in snapshot.items if r.id != record_id], snapshot.version
        )
        logger.info(f"User {acting_user.id} deleted collective record {record_id}")
