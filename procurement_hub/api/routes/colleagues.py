"""
Colleague endpoints.
"""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from procurement_hub.api.deps import CurrentUserDep, SessionDep
from procurement_hub.models.schemas import Colleague
from procurement_hub.services.colleague_service import ColleagueService

router = APIRouter()


class AddColleagueRequest(BaseModel):
    username: str


class ColleagueResponse(BaseModel):
    userId: str
    username: str
    addedAt: int


def format_colleague(colleague: Colleague) -> ColleagueResponse:
    return ColleagueResponse(
        userId=colleague.user_id,
        username=colleague.username,
        addedAt=colleague.added_at,
    )


@router.get("/", response_model=list[ColleagueResponse])
async def list_colleagues(current_user: CurrentUserDep, session: SessionDep):
    colleagues = await ColleagueService(session).list_colleagues(current_user.id)
    return [format_colleague(c) for c in colleagues]


@router.post("/", response_model=ColleagueResponse, status_code=status.HTTP_201_CREATED)
async def add_colleague(
    request: AddColleagueRequest,
    current_user: CurrentUserDep,
    session: SessionDep,
):
    colleague = await ColleagueService(session).add_colleague(current_user.id, request.username)
    return format_colleague(colleague)


@router.delete("/{colleague_id}")
async def remove_colleague(colleague_id: str, current_user: CurrentUserDep, session: SessionDep):
    removed = await ColleagueService(session).remove_colleague(current_user.id, colleague_id)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Colleague not found",
        )
    return {"status": "removed", "userId": colleague_id}
