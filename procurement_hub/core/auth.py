"""
Password hashing and JWT utilities.

Tokens carry the session id (``sid``) so the API can resolve the active
session pointer on every request; logging out removes the pointer and
invalidates every token minted for it.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from procurement_hub.config import settings


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenData(BaseModel):
    """Data extracted from a JWT token."""

    user_id: str
    session_id: str
    exp: datetime
    token_type: str  # 'access' or 'refresh'


class TokenPair(BaseModel):
    """Access and refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def _encode(user_id: str, session_id: str, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "sid": session_id,
        "exp": now + lifetime,
        "type": token_type,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, session_id: str) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: User's unique ID
        session_id: Active session the token belongs to

    Returns:
        Encoded JWT token
    """
    return _encode(
        user_id,
        session_id,
        "access",
        timedelta(minutes=settings.jwt_access_expire_minutes),
    )


def create_refresh_token(user_id: str, session_id: str) -> str:
    """Create a JWT refresh token."""
    return _encode(
        user_id,
        session_id,
        "refresh",
        timedelta(days=settings.jwt_refresh_expire_days),
    )


def create_token_pair(user_id: str, session_id: str) -> TokenPair:
    """Create both access and refresh tokens for a session."""
    return TokenPair(
        access_token=create_access_token(user_id, session_id),
        refresh_token=create_refresh_token(user_id, session_id),
    )


def decode_token(token: str) -> Optional[TokenData]:
    """
    Decode and validate a JWT token.

    Args:
        token: Encoded JWT token

    Returns:
        TokenData if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return TokenData(
            user_id=payload["sub"],
            session_id=payload["sid"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            token_type=payload.get("type", "access"),
        )
    except (JWTError, KeyError):
        return None


def is_token_expired(token_data: TokenData) -> bool:
    """Check if a token is expired."""
    return token_data.exp < datetime.now(timezone.utc)
