"""
Memo endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from procurement_hub.api.deps import CurrentUserDep, SessionDep
from procurement_hub.models.schemas import Memo
from procurement_hub.services.memo_service import MemoService

router = APIRouter()


class MemoRequest(BaseModel):
    """Create or overwrite a memo."""

    title: Optional[str] = None
    body: str = Field(..., min_length=1)
    labels: list[str] = Field(default_factory=list)
    linkedRecordId: Optional[str] = None


class QuickMemoRequest(BaseModel):
    title: Optional[str] = None
    body: str = Field(..., min_length=1)


class MemoResponse(BaseModel):
    id: str
    title: str
    body: str
    labels: list[str]
    linkedRecordId: Optional[str]
    createdAt: int
    updatedAt: int
    ownerId: str


def format_memo(memo: Memo) -> MemoResponse:
    return MemoResponse(
        id=memo.id,
        title=memo.title,
        body=memo.body,
        labels=memo.labels,
        linkedRecordId=memo.linked_record_id,
        createdAt=memo.created_at,
        updatedAt=memo.updated_at,
        ownerId=memo.owner_id,
    )


@router.get("/", response_model=list[MemoResponse])
async def list_memos(
    session: SessionDep,
    current_user: CurrentUserDep,
    label: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
):
    """List the caller's memos, newest first, with optional label/text filter."""
    memos = await MemoService(session).list_memos(current_user.id, label=label, query=q)
    return [format_memo(m) for m in memos]


@router.post("/", response_model=MemoResponse, status_code=status.HTTP_201_CREATED)
async def create_memo(request: MemoRequest, session: SessionDep, current_user: CurrentUserDep):
    """
    Create a memo.

    A memo with the same title and content as an existing one is rejected
    with 409 and nothing is stored.
    """
    memo = await MemoService(session).create_memo(
        owner_id=current_user.id,
        body=request.body,
        title=request.title,
        labels=request.labels,
        linked_record_id=request.linkedRecordId,
    )
    return format_memo(memo)


@router.get("/labels", response_model=list[str])
async def list_labels(session: SessionDep, current_user: CurrentUserDep):
    return await MemoService(session).list_labels(current_user.id)


@router.get("/orphaned", response_model=list[MemoResponse])
async def list_orphaned(session: SessionDep, current_user: CurrentUserDep):
    """Memos whose linked record no longer exists in either library."""
    memos = await MemoService(session).list_orphaned(current_user.id)
    return [format_memo(m) for m in memos]


@router.get("/records/{record_id}", response_model=list[MemoResponse])
async def list_record_memos(record_id: str, session: SessionDep, current_user: CurrentUserDep):
    """The caller's memos linked to one record, in whichever library it lives."""
    memos = await MemoService(session).list_by_linked_record(record_id, current_user.id)
    return [format_memo(m) for m in memos]


@router.post(
    "/records/{record_id}",
    response_model=MemoResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_record_memo(
    record_id: str,
    request: QuickMemoRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
):
    """Quick memo from a record view."""
    memo = await MemoService(session).create_quick_memo(
        owner_id=current_user.id,
        record_id=record_id,
        body=request.body,
        title=request.title,
    )
    return format_memo(memo)


@router.get("/{memo_id}", response_model=MemoResponse)
async def get_memo(memo_id: str, session: SessionDep, current_user: CurrentUserDep):
    return format_memo(await MemoService(session).get_memo(memo_id, current_user.id))


@router.put("/{memo_id}", response_model=MemoResponse)
async def update_memo(
    memo_id: str,
    request: MemoRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
):
    """Overwrite a memo's title, body, labels and link."""
    memo = await MemoService(session).update_memo(
        memo_id,
        current_user.id,
        body=request.body,
        title=request.title,
        labels=request.labels,
        linked_record_id=request.linkedRecordId,
    )
    return format_memo(memo)


@router.delete("/{memo_id}")
async def delete_memo(memo_id: str, session: SessionDep, current_user: CurrentUserDep):
    await MemoService(session).delete_memo(memo_id, current_user.id)
    return {"status": "deleted", "memoId": memo_id}
