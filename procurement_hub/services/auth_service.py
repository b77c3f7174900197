"""
Authentication service: credential store and active-session pointers.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.config import settings
from procurement_hub.core.auth import hash_password, verify_password
from procurement_hub.core.collection_store import (
    SESSIONS,
    USERS,
    CollectionStore,
    ItemsSnapshot,
    Repository,
)
from procurement_hub.core.exceptions import (
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialError,
    UserNotFoundError,
)
from procurement_hub.models.schemas import SessionEntry, User, UserRole, epoch_ms

logger = logging.getLogger(__name__)

BOOTSTRAP_USER_ID = "bootstrap-admin-id"


@dataclass
class AuthResult:
    """A user plus the session opened for them, if any."""

    user: User
    session: Optional[SessionEntry] = None


def _same_email(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


class AuthService:
    """Service for authentication and user management."""

    def __init__(self, session: AsyncSession):
        self.session = session
        store = CollectionStore(session)
        self.users = Repository(store, USERS, User)
        self.sessions = Repository(store, SESSIONS, SessionEntry)

    # ============ User collection ============

    async def _load_users(self) -> ItemsSnapshot[User]:
        """
        Load users, materializing the bootstrap admin when the store is empty
        and upconverting legacy records that predate roles.
        """
        snapshot = await self.users.load()

        if not snapshot.items:
            bootstrap = User(
                id=BOOTSTRAP_USER_ID,
                username=settings.bootstrap_username,
                email=settings.bootstrap_email,
                first_name=settings.bootstrap_first_name,
                last_name=settings.bootstrap_last_name,
                password_hash=hash_password(settings.bootstrap_password),
                role=UserRole.ADMIN,
            )
            version = await self.users.replace([bootstrap], snapshot.version)
            logger.info(f"Materialized bootstrap admin '{bootstrap.username}'")
            return ItemsSnapshot(items=[bootstrap], version=version)

        if any(user.role is None for user in snapshot.items):
            migrated = [
                user
                if user.role is not None
                else user.model_copy(
                    update={
                        "role": UserRole.ADMIN
                        if user.username == settings.bootstrap_username
                        else UserRole.ANALYST
                    }
                )
                for user in snapshot.items
            ]
            version = await self.users.replace(migrated, snapshot.version)
            logger.info("Assigned default roles to legacy user records")
            return ItemsSnapshot(items=migrated, version=version)

        return snapshot

    @staticmethod
    def _check_unique(
        users: List[User],
        username: Optional[str],
        email: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> None:
        others = [u for u in users if u.id != exclude_id]
        if email is not None and any(_same_email(u.email, email) for u in others):
            raise DuplicateEmailError(f"Email {email} already registered")
        if username is not None and any(u.username == username for u in others):
            raise DuplicateUsernameError(f"Username {username} already taken")

    async def list_users(self) -> List[User]:
        """List all users (materializes the bootstrap admin on first access)."""
        return (await self._load_users()).items

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        users = await self.list_users()
        return next((u for u in users if u.id == user_id), None)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email, case-insensitively."""
        users = await self.list_users()
        return next((u for u in users if _same_email(u.email, email)), None)

    async def search_users(self, query: str) -> List[User]:
        """Case-insensitive substring search on username."""
        needle = query.strip().lower()
        return [u for u in await self.list_users() if needle in u.username.lower()]

    async def create_user(
        self,
        email: str,
        username: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        role: UserRole = UserRole.ANALYST,
        auto_activate: bool = False,
    ) -> AuthResult:
        """
        Create a new user.

        Args:
            email: Unique email address
            username: Unique login name
            password: Plain text password (stored hashed)
            first_name: Display first name
            last_name: Display last name
            role: Role of the new user
            auto_activate: Open a session for the new user (self-registration).
                Admin provisioning leaves sessions untouched.

        Returns:
            AuthResult with the created user and, if activated, its session

        Raises:
            DuplicateEmailError: If email already exists
            DuplicateUsernameError: If username already exists
        """
        snapshot = await self._load_users()
        self._check_unique(snapshot.items, username, email)

        user = User(
            id=str(uuid4()),
            username=username,
            email=email.strip(),
            first_name=first_name,
            last_name=last_name,
            password_hash=hash_password(password),
            role=role,
        )
        await self.users.replace(snapshot.items + [user], snapshot.version)
        logger.info(f"Created user {user.id} with role {role.value}")

        session = await self._open_session(user.id) if auto_activate else None
        return AuthResult(user=user, session=session)

    async def register(
        self,
        email: str,
        username: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> AuthResult:
        """Self-registration: analyst role, logged in immediately."""
        return await self.create_user(
            email=email,
            username=username,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=UserRole.ANALYST,
            auto_activate=True,
        )

    async def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Apply a partial profile update.

        Uniqueness is checked against every other user, so re-submitting
        one's own username or email is a no-op rather than a collision.
        """
        snapshot = await self._load_users()
        current = next((u for u in snapshot.items if u.id == user_id), None)
        if current is None:
            raise UserNotFoundError(f"User {user_id} not found")

        self._check_unique(snapshot.items, username, email, exclude_id=user_id)

        changes = {
            key: value
            for key, value in {
                "username": username,
                "email": email.strip() if email is not None else None,
                "first_name": first_name,
                "last_name": last_name,
            }.items()
            if value is not None
        }
        updated = current.model_copy(update=changes)
        await self.users.replace(
            [updated if u.id == user_id else u for u in snapshot.items],
            snapshot.version,
        )
        return updated

    async def change_password(
        self,
        user_id: str,
        current_password: str,
        new_password: str,
    ) -> None:
        """Change password after checking the current one."""
        snapshot = await self._load_users()
        user = next((u for u in snapshot.items if u.id == user_id), None)
        if user is None or not verify_password(current_password, user.password_hash):
            raise InvalidCredentialError(
                f"Invalid current password for {user_id}",
                user_message="Invalid current password.",
            )

        updated = user.model_copy(update={"password_hash": hash_password(new_password)})
        await self.users.replace(
            [updated if u.id == user_id else u for u in snapshot.items],
            snapshot.version,
        )
        logger.info(f"Password changed for user {user_id}")

    async def set_password_for_email(self, email: str, new_password: str) -> User:
        """Overwrite the secret of the user owning ``email`` (recovery flow)."""
        snapshot = await self._load_users()
        user = next((u for u in snapshot.items if _same_email(u.email, email)), None)
        if user is None:
            raise UserNotFoundError(f"No user with email {email}")

        updated = user.model_copy(update={"password_hash": hash_password(new_password)})
        await self.users.replace(
            [updated if u.id == user.id else u for u in snapshot.items],
            snapshot.version,
        )
        return updated

    async def delete_user(self, user_id: str) -> bool:
        """
        Delete a user and their session pointers.

        Guarding the last admin or the caller's own account is left to the caller.
        """
        snapshot = await self._load_users()
        remaining = [u for u in snapshot.items if u.id != user_id]
        if len(remaining) == len(snapshot.items):
            return False

        await self.users.replace(remaining, snapshot.version)

        sessions = await self.sessions.load()
        kept = [s for s in sessions.items if s.user_id != user_id]
        if len(kept) != len(sessions.items):
            await self.sessions.replace(kept, sessions.version)

        logger.info(f"Deleted user {user_id}")
        return True

    # ============ Sessions ============

    async def _open_session(self, user_id: str) -> SessionEntry:
        snapshot = await self.sessions.load()
        entry = SessionEntry(id=str(uuid4()), user_id=user_id, created_at=epoch_ms())
        await self.sessions.replace(snapshot.items + [entry], snapshot.version)
        return entry

    async def login(self, username: str, password: str) -> AuthResult:
        """
        Authenticate by exact username and secret.

        Returns:
            AuthResult with the user and the session now marked active

        Raises:
            InvalidCredentialError: If the username is unknown or the secret is wrong
        """
        users = await self.list_users()
        user = next((u for u in users if u.username == username), None)

        if not user or not verify_password(password, user.password_hash):
            logger.info(f"Failed login for username '{username}'")
            raise InvalidCredentialError(f"Login failed for {username}")

        session = await self._open_session(user.id)
        logger.info(f"User {user.id} logged in (session {session.id})")
        return AuthResult(user=user, session=session)

    async def logout(self, session_id: str) -> None:
        """Clear the active session pointer."""
        snapshot = await self.sessions.load()
        remaining = [s for s in snapshot.items if s.id != session_id]
        if len(remaining) != len(snapshot.items):
            await self.sessions.replace(remaining, snapshot.version)
            logger.info(f"Session {session_id} logged out")

    async def get_active_user(self, session_id: str) -> Optional[User]:
        """Resolve a session pointer to its user, or None."""
        sessions = await self.sessions.all()
        entry = next((s for s in sessions if s.id == session_id), None)
        if entry is None:
            return None
        return await self.get_user_by_id(entry.user_id)
