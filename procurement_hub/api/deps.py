"""
API route dependencies.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.core.analysis_gateway import AnalysisGateway, get_analysis_gateway
from procurement_hub.core.auth import TokenData, decode_token, is_token_expired
from procurement_hub.db.database import get_db_session
from procurement_hub.models.schemas import User
from procurement_hub.services.auth_service import AuthService


# HTTP Bearer scheme for JWT; missing headers are answered with 401 below
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TokenData:
    """
    Dependency to get the decoded access token.

    Requires a valid, unexpired JWT access token.
    """
    if not credentials:
        raise _unauthorized("Not authenticated")

    token_data = decode_token(credentials.credentials)

    if not token_data:
        raise _unauthorized("Invalid or expired token")

    if is_token_expired(token_data):
        raise _unauthorized("Token has expired")

    if token_data.token_type != "access":
        raise _unauthorized("Invalid token type")

    return token_data


async def get_current_user(
    token_data: TokenData = Depends(get_access_token),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Dependency to get the current authenticated user.

    The token's session must still be active; logging out invalidates it.
    """
    auth_service = AuthService(session)
    user = await auth_service.get_active_user(token_data.session_id)

    if not user or user.id != token_data.user_id:
        raise _unauthorized("Session is no longer active")

    return user


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """Dependency restricting a route to the admin role."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return current_user


# Dependency annotations
SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
AccessTokenDep = Annotated[TokenData, Depends(get_access_token)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]
AdminUserDep = Annotated[User, Depends(require_admin)]
GatewayDep = Annotated[AnalysisGateway, Depends(get_analysis_gateway)]
