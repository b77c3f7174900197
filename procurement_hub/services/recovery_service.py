"""
Password recovery with single-use numeric codes.

Per email the flow is NoRequest -> Issued -> (verified, still Issued) ->
consumed on reset. ``verify`` never mutates state; only a successful
``reset_password`` deletes the entry.
"""

import logging
import secrets
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.config import settings
from procurement_hub.core.collection_store import OTP_ENTRIES, CollectionStore, Repository
from procurement_hub.core.exceptions import InvalidOrExpiredCodeError, UnknownEmailError
from procurement_hub.models.schemas import OTPEntry, epoch_ms
from procurement_hub.services.auth_service import AuthService

logger = logging.getLogger(__name__)


def generate_code() -> str:
    """Uniformly random six-digit code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


def _matches(entry: OTPEntry, email: str) -> bool:
    return entry.email.casefold() == email.strip().casefold()


class RecoveryService:
    """Issues, verifies and consumes password-reset codes."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.auth = AuthService(session)
        self.entries = Repository(CollectionStore(session), OTP_ENTRIES, OTPEntry)

    async def request_reset(self, email: str) -> str:
        """
        Issue a new code for ``email``, invalidating any earlier one.

        Returns:
            The code, for the caller to deliver out-of-band

        Raises:
            UnknownEmailError: If no user has this email
        """
        user = await self.auth.get_user_by_email(email)
        if user is None:
            raise UnknownEmailError(f"No account for {email}")

        snapshot = await self.entries.load()
        entry = OTPEntry(
            email=user.email,
            code=generate_code(),
            expires_at=epoch_ms() + settings.otp_ttl_minutes * 60 * 1000,
        )
        remaining = [e for e in snapshot.items if not _matches(e, user.email)]
        await self.entries.replace(remaining + [entry], snapshot.version)

        logger.info(f"Issued password reset code for user {user.id}")
        return entry.code

    async def verify(self, email: str, code: str) -> bool:
        """Pure check: a live entry exists for ``email`` with this code."""
        now = epoch_ms()
        for entry in await self.entries.all():
            if _matches(entry, email) and entry.code == code:
                return now <= entry.expires_at
        return False

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        """
        Set a new secret using a valid code, then consume the code.

        Raises:
            InvalidOrExpiredCodeError: If ``verify`` would return False. The
                entry is left intact.
        """
        if not await self.verify(email, code):
            raise InvalidOrExpiredCodeError(f"Reset rejected for {email}")

        user = await self.auth.set_password_for_email(email, new_password)

        snapshot = await self.entries.load()
        remaining = [e for e in snapshot.items if not _matches(e, email)]
        await self.entries.replace(remaining, snapshot.version)
        logger.info(f"Password reset completed for user {user.id}")

    async def purge_expired(self) -> List[OTPEntry]:
        """Delete expired entries. Returns what was removed."""
        snapshot = await self.entries.load()
        now = epoch_ms()
        expired = [e for e in snapshot.items if e.expires_at < now]
        if expired:
            live = [e for e in snapshot.items if e.expires_at >= now]
            await self.entries.replace(live, snapshot.version)
        return expired
