"""
Authentication endpoints: registration, login, sessions, profile and password recovery.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, EmailStr, Field

from procurement_hub.api.deps import AccessTokenDep, CurrentUserDep, SessionDep
from procurement_hub.config import settings
from procurement_hub.core.auth import create_token_pair, decode_token
from procurement_hub.models.schemas import User
from procurement_hub.services.auth_service import AuthResult, AuthService
from procurement_hub.services.recovery_service import RecoveryService

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response Models
class RegisterRequest(BaseModel):
    """Self-registration request."""

    email: EmailStr
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=4, description="Minimum 4 characters")
    firstName: str = ""
    lastName: str = ""


class LoginRequest(BaseModel):
    """Login request."""

    username: str
    password: str


class RefreshRequest(BaseModel):
    """Token refresh request."""

    refreshToken: str


class ProfileUpdateRequest(BaseModel):
    """Partial profile update."""

    username: Optional[str] = Field(None, min_length=1, max_length=64)
    email: Optional[EmailStr] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None


class PasswordChangeRequest(BaseModel):
    currentPassword: str
    newPassword: str = Field(..., min_length=4)


class ResetRequest(BaseModel):
    email: EmailStr


class ResetVerifyRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)


class ResetConfirmRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)
    newPassword: str = Field(..., min_length=4)


class UserResponse(BaseModel):
    """User information response."""

    id: str
    username: str
    email: str
    firstName: str
    lastName: str
    role: str


class TokenResponse(BaseModel):
    """Authentication token response."""

    accessToken: str
    refreshToken: str
    tokenType: str = "bearer"


class AuthResponse(TokenResponse):
    """Tokens plus the authenticated user."""

    user: UserResponse


class ResetRequestResponse(BaseModel):
    status: str
    code: Optional[str] = None


def format_user(user: User) -> UserResponse:
    """Format a user record to response."""
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        firstName=user.first_name,
        lastName=user.last_name,
        role=user.role.value if user.role else "analyst",
    )


def format_auth(result: AuthResult) -> AuthResponse:
    tokens = create_token_pair(result.user.id, result.session.id)
    return AuthResponse(
        accessToken=tokens.access_token,
        refreshToken=tokens.refresh_token,
        user=format_user(result.user),
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(request: RegisterRequest, session: SessionDep):
    """
    Register a new analyst account.

    The new user is logged in immediately.
    """
    auth = AuthService(session)
    result = await auth.register(
        email=request.email,
        username=request.username,
        password=request.password,
        first_name=request.firstName,
        last_name=request.lastName,
    )
    return format_auth(result)


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, session: SessionDep):
    """
    Login with username and password.

    Returns JWT access and refresh tokens bound to a new session.
    """
    auth = AuthService(session)
    result = await auth.login(request.username, request.password)
    return format_auth(result)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(request: RefreshRequest, session: SessionDep):
    """
    Refresh access token using refresh token.

    The session the token belongs to must still be active.
    """
    token_data = decode_token(request.refreshToken)

    if not token_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    if token_data.token_type != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    auth = AuthService(session)
    user = await auth.get_active_user(token_data.session_id)

    if not user or user.id != token_data.user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session is no longer active",
        )

    tokens = create_token_pair(user.id, token_data.session_id)
    return TokenResponse(
        accessToken=tokens.access_token,
        refreshToken=tokens.refresh_token,
    )


@router.post("/logout")
async def logout(token: AccessTokenDep, session: SessionDep):
    """Clear the session behind the presented token."""
    await AuthService(session).logout(token.session_id)
    return {"status": "logged_out"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(current_user: CurrentUserDep):
    """Get current authenticated user's profile."""
    return format_user(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    request: ProfileUpdateRequest,
    current_user: CurrentUserDep,
    session: SessionDep,
):
    """Update username, email or display name of the current user."""
    user = await AuthService(session).update_profile(
        current_user.id,
        username=request.username,
        email=request.email,
        first_name=request.firstName,
        last_name=request.lastName,
    )
    return format_user(user)


@router.post("/password")
async def change_password(
    request: PasswordChangeRequest,
    current_user: CurrentUserDep,
    session: SessionDep,
):
    """Change the current user's password."""
    await AuthService(session).change_password(
        current_user.id, request.currentPassword, request.newPassword
    )
    return {"status": "updated"}


@router.post("/password-reset/request", response_model=ResetRequestResponse)
async def request_password_reset(request: ResetRequest, session: SessionDep):
    """
    Issue a six-digit reset code valid for a limited time.

    The code is returned only when code exposure is enabled (development);
    otherwise it must be delivered out-of-band.
    """
    code = await RecoveryService(session).request_reset(request.email)
    if settings.expose_otp_codes:
        return ResetRequestResponse(status="issued", code=code)
    logger.info(f"Reset code issued for {request.email}; deliver out-of-band")
    return ResetRequestResponse(status="issued")


@router.post("/password-reset/verify")
async def verify_reset_code(request: ResetVerifyRequest, session: SessionDep):
    """Check a reset code without consuming it."""
    valid = await RecoveryService(session).verify(request.email, request.code)
    return {"valid": valid}


@router.post("/password-reset/confirm")
async def confirm_password_reset(request: ResetConfirmRequest, session: SessionDep):
    """Set a new password with a valid code; the code is consumed."""
    await RecoveryService(session).reset_password(
        request.email, request.code, request.newPassword
    )
    return {"status": "reset"}
