"""
User administration endpoints (admin role) and user search.
"""

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field

from procurement_hub.api.deps import AdminUserDep, CurrentUserDep, SessionDep
from procurement_hub.api.routes.auth import UserResponse, format_user
from procurement_hub.models.schemas import UserRole
from procurement_hub.services.auth_service import AuthService

router = APIRouter()


class CreateUserRequest(BaseModel):
    """Admin-driven provisioning request."""

    email: EmailStr
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=4)
    firstName: str = ""
    lastName: str = ""
    role: UserRole = UserRole.ANALYST


@router.get("/", response_model=list[UserResponse])
async def list_users(admin: AdminUserDep, session: SessionDep):
    """List every user."""
    users = await AuthService(session).list_users()
    return [format_user(u) for u in users]


@router.get("/search", response_model=list[UserResponse])
async def search_users(
    current_user: CurrentUserDep,
    session: SessionDep,
    q: str = Query(..., min_length=1),
):
    """Find users by username substring, e.g. to pick a colleague."""
    users = await AuthService(session).search_users(q)
    return [format_user(u) for u in users]


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(request: CreateUserRequest, admin: AdminUserDep, session: SessionDep):
    """
    Provision a user.

    The admin's own session is untouched; the new user is not logged in.
    """
    result = await AuthService(session).create_user(
        email=request.email,
        username=request.username,
        password=request.password,
        first_name=request.firstName,
        last_name=request.lastName,
        role=request.role,
        auto_activate=False,
    )
    return format_user(result.user)


@router.delete("/{user_id}")
async def delete_user(user_id: str, admin: AdminUserDep, session: SessionDep):
    """Delete a user. Admins cannot delete their own account."""
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account.",
        )

    deleted = await AuthService(session).delete_user(user_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return {"status": "deleted", "userId": user_id}
