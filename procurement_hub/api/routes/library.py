"""
Library endpoints: analysis upload, Personal and Collective partitions, vendor view.
"""

from typing import Any, Optional

from fastapi import APIRouter, File, Form, Query, UploadFile, status
from pydantic import BaseModel, Field

from procurement_hub.api.deps import CurrentUserDep, GatewayDep, SessionDep
from procurement_hub.models.schemas import AnalysisRecord, VendorGroup
from procurement_hub.services.analysis_service import AnalysisService
from procurement_hub.services.library_service import GroupPublishResult, LibraryService

router = APIRouter()


# Response Models
class UploaderResponse(BaseModel):
    id: str
    firstName: str
    lastName: str


class RecordResponse(BaseModel):
    """Analysis record response."""

    id: str
    timestamp: int
    fileName: str
    vendorName: str
    score: float
    data: dict[str, Any]
    dataVersion: int
    ownerId: str
    uploader: Optional[UploaderResponse] = None
    isPublished: Optional[bool] = None


class AnalyzeResponse(BaseModel):
    record: RecordResponse
    memoId: Optional[str] = None


class GroupPublishRequest(BaseModel):
    recordIds: list[str] = Field(..., min_length=1)


class GroupPublishResponse(BaseModel):
    published: list[str]
    failed: dict[str, str]


class CompareRequest(BaseModel):
    recordIds: list[str] = Field(..., min_length=1)


class VendorGroupResponse(BaseModel):
    key: str
    name: str
    proposalCount: int
    avgScore: int
    lastInteraction: int
    latestData: dict[str, Any]
    records: list[RecordResponse]


def format_record(record: AnalysisRecord) -> RecordResponse:
    """Format a record to response."""
    return RecordResponse(
        id=record.id,
        timestamp=record.timestamp,
        fileName=record.file_name,
        vendorName=record.vendor_name,
        score=record.score,
        data=record.data,
        dataVersion=record.data_version,
        ownerId=record.owner_id,
        uploader=UploaderResponse(
            id=record.uploader.id,
            firstName=record.uploader.first_name,
            lastName=record.uploader.last_name,
        )
        if record.uploader
        else None,
        isPublished=record.is_published,
    )


def format_group(group: VendorGroup) -> VendorGroupResponse:
    return VendorGroupResponse(
        key=group.key,
        name=group.name,
        proposalCount=group.proposal_count,
        avgScore=group.avg_score,
        lastInteraction=group.last_interaction,
        latestData=group.latest_data,
        records=[format_record(r) for r in group.records],
    )


def format_group_result(result: GroupPublishResult) -> GroupPublishResponse:
    return GroupPublishResponse(published=result.published, failed=result.failed)


# ============ Analysis ============

@router.post("/analyze", response_model=AnalyzeResponse, status_code=status.HTTP_201_CREATED)
async def analyze_document(
    session: SessionDep,
    current_user: CurrentUserDep,
    gateway: GatewayDep,
    file: UploadFile = File(...),
    memoTitle: Optional[str] = Form(None),
    memoBody: Optional[str] = Form(None),
):
    """
    Upload a supplier proposal for analysis.

    The document is:
    1. Validated (type and size)
    2. Scored by the analysis gateway
    3. Stored as a new record in the uploader's Personal library

    An optional quick memo is linked to the new record.
    """
    content = await file.read()
    outcome = await AnalysisService(session, gateway).analyze_upload(
        owner_id=current_user.id,
        file_name=file.filename or "",
        mime_type=file.content_type or "",
        content=content,
        memo_title=memoTitle,
        memo_body=memoBody,
    )
    return AnalyzeResponse(
        record=format_record(outcome.record),
        memoId=outcome.memo.id if outcome.memo else None,
    )


# ============ Personal ============

@router.get("/personal", response_model=list[RecordResponse])
async def list_personal(
    session: SessionDep,
    current_user: CurrentUserDep,
    search: Optional[str] = Query(None),
):
    """List the current user's Personal records, newest first."""
    records = await LibraryService(session).list_personal(current_user.id, search=search)
    return [format_record(r) for r in records]


@router.post("/personal/publish-group", response_model=GroupPublishResponse)
async def publish_group(
    request: GroupPublishRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
):
    """
    Publish several records. Not atomic: failures are reported per record
    and the request can be repeated.
    """
    result = await LibraryService(session).publish_group(request.recordIds, current_user)
    return format_group_result(result)


@router.post("/personal/vendors/{vendor_key}/publish", response_model=GroupPublishResponse)
async def publish_vendor(vendor_key: str, session: SessionDep, current_user: CurrentUserDep):
    """Publish every Personal record of one vendor group."""
    result = await LibraryService(session).publish_vendor(vendor_key, current_user)
    return format_group_result(result)


@router.get("/personal/{record_id}", response_model=RecordResponse)
async def get_personal(record_id: str, session: SessionDep, current_user: CurrentUserDep):
    record = await LibraryService(session).get_personal(record_id, current_user.id)
    return format_record(record)


@router.post("/personal/{record_id}/publish", response_model=RecordResponse)
async def publish_record(record_id: str, session: SessionDep, current_user: CurrentUserDep):
    """Move a record to the Collective library with the caller as uploader."""
    record = await LibraryService(session).publish(record_id, current_user)
    return format_record(record)


@router.delete("/personal/{record_id}")
async def delete_personal(record_id: str, session: SessionDep, current_user: CurrentUserDep):
    await LibraryService(session).delete_personal(record_id, current_user)
    return {"status": "deleted", "recordId": record_id}


# ============ Collective ============

@router.get("/collective", response_model=list[RecordResponse])
async def list_collective(
    session: SessionDep,
    current_user: CurrentUserDep,
    search: Optional[str] = Query(None),
):
    """List every published record."""
    records = await LibraryService(session).list_collective(search=search)
    return [format_record(r) for r in records]


@router.get("/collective/{record_id}", response_model=RecordResponse)
async def get_collective(record_id: str, session: SessionDep, current_user: CurrentUserDep):
    record = await LibraryService(session).get_collective(record_id)
    return format_record(record)


@router.post("/collective/{record_id}/save", response_model=RecordResponse)
async def save_to_personal(record_id: str, session: SessionDep, current_user: CurrentUserDep):
    """Copy a published record into the caller's Personal library."""
    record = await LibraryService(session).save_to_personal(record_id, current_user)
    return format_record(record)


@router.delete("/collective/{record_id}")
async def delete_collective(record_id: str, session: SessionDep, current_user: CurrentUserDep):
    """Delete a published record. Only its uploader or an admin may do this."""
    await LibraryService(session).delete_collective(record_id, current_user)
    return {"status": "deleted", "recordId": record_id}


# ============ Views ============

@router.get("/vendors", response_model=list[VendorGroupResponse])
async def list_vendor_groups(
    session: SessionDep,
    current_user: CurrentUserDep,
    scope: str = Query("personal", pattern="^(personal|collective)$"),
    search: Optional[str] = Query(None),
):
    """Group one partition by vendor: count, average score, last interaction."""
    groups = await LibraryService(session).vendor_groups(
        current_user.id, scope=scope, search=search
    )
    return [format_group(g) for g in groups]


@router.post("/compare", response_model=list[RecordResponse])
async def compare_records(
    request: CompareRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
):
    """Fetch up to three visible records for side-by-side comparison."""
    records = await LibraryService(session).compare(request.recordIds, current_user.id)
    return [format_record(r) for r in records]
