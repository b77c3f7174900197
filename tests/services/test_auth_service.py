"""
Service tests for users, credentials and sessions.
"""

import pytest

from procurement_hub.core.auth import verify_password
from procurement_hub.core.collection_store import USERS, CollectionStore
from procurement_hub.core.exceptions import (
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialError,
    UserNotFoundError,
)
from procurement_hub.models.schemas import UserRole
from procurement_hub.services.auth_service import BOOTSTRAP_USER_ID, AuthService


class TestBootstrap:
    """Tests for the bootstrap admin and legacy role migration."""

    @pytest.mark.asyncio
    async def test_empty_store_materializes_admin(self, db_session):
        users = await AuthService(db_session).list_users()

        assert len(users) == 1
        admin = users[0]
        assert admin.id == BOOTSTRAP_USER_ID
        assert admin.username == "axel"
        assert admin.role == UserRole.ADMIN
        assert verify_password("0000", admin.password_hash)

    @pytest.mark.asyncio
    async def test_bootstrap_admin_can_log_in(self, db_session):
        result = await AuthService(db_session).login("axel", "0000")

        assert result.user.is_admin
        assert result.session is not None

    @pytest.mark.asyncio
    async def test_legacy_users_get_roles(self, db_session):
        """Test records without a role are upgraded on read."""
        await CollectionStore(db_session).replace(
            USERS,
            [
                {"id": "1", "username": "axel", "email": "axel@example.com"},
                {"id": "2", "username": "bob", "email": "bob@example.com"},
            ],
            0,
        )

        users = {u.username: u for u in await AuthService(db_session).list_users()}

        assert users["axel"].role == UserRole.ADMIN
        assert users["bob"].role == UserRole.ANALYST


class TestCreateUser:
    """Tests for registration and provisioning."""

    @pytest.mark.asyncio
    async def test_register_opens_session(self, db_session):
        auth = AuthService(db_session)
        result = await auth.register("new@example.com", "newbie", "pw1234", "New", "User")

        assert result.user.role == UserRole.ANALYST
        assert result.session is not None
        active = await auth.get_active_user(result.session.id)
        assert active.id == result.user.id

    @pytest.mark.asyncio
    async def test_admin_provisioning_leaves_sessions_alone(self, db_session):
        """Test creating a user for someone else does not log anyone in."""
        auth = AuthService(db_session)
        admin_login = await auth.login("axel", "0000")

        result = await auth.create_user("p@example.com", "prov", "pw1234")

        assert result.session is None
        active = await auth.get_active_user(admin_login.session.id)
        assert active.username == "axel"
        assert len(await auth.sessions.all()) == 1

    @pytest.mark.asyncio
    async def test_duplicate_username(self, db_session, test_user):
        with pytest.raises(DuplicateUsernameError):
            await AuthService(db_session).create_user("fresh@example.com", "tester", "pw")

    @pytest.mark.asyncio
    async def test_duplicate_email_case_insensitive(self, db_session, test_user):
        """Test emails differing only in case collide."""
        with pytest.raises(DuplicateEmailError):
            await AuthService(db_session).create_user("TEST@example.com", "someone", "pw")

    @pytest.mark.asyncio
    async def test_rejected_create_writes_nothing(self, db_session, test_user):
        auth = AuthService(db_session)
        before = await auth.list_users()

        with pytest.raises(DuplicateUsernameError):
            await auth.create_user("x@example.com", "tester", "pw")

        assert await auth.list_users() == before


class TestLogin:
    """Tests for login and logout."""

    @pytest.mark.asyncio
    async def test_wrong_password(self, db_session, test_user):
        with pytest.raises(InvalidCredentialError):
            await AuthService(db_session).login("tester", "nope")

    @pytest.mark.asyncio
    async def test_unknown_username(self, db_session):
        with pytest.raises(InvalidCredentialError):
            await AuthService(db_session).login("ghost", "0000")

    @pytest.mark.asyncio
    async def test_username_is_exact(self, db_session, test_user):
        with pytest.raises(InvalidCredentialError):
            await AuthService(db_session).login("TESTER", "testpassword123")

    @pytest.mark.asyncio
    async def test_logout_clears_session(self, db_session, test_user):
        auth = AuthService(db_session)
        result = await auth.login("tester", "testpassword123")

        await auth.logout(result.session.id)

        assert await auth.get_active_user(result.session.id) is None


class TestProfile:
    """Tests for profile and password changes."""

    @pytest.mark.asyncio
    async def test_update_profile(self, db_session, test_user):
        updated = await AuthService(db_session).update_profile(
            test_user.id, first_name="Tess", email="tess@example.com"
        )

        assert updated.first_name == "Tess"
        assert updated.email == "tess@example.com"
        assert updated.username == "tester"

    @pytest.mark.asyncio
    async def test_resubmitting_own_values_is_allowed(self, db_session, test_user):
        updated = await AuthService(db_session).update_profile(
            test_user.id, username="tester", email="test@example.com"
        )
        assert updated.username == "tester"

    @pytest.mark.asyncio
    async def test_update_profile_collision(self, db_session, test_user, other_user):
        with pytest.raises(DuplicateUsernameError):
            await AuthService(db_session).update_profile(test_user.id, username="other")

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, db_session):
        with pytest.raises(UserNotFoundError):
            await AuthService(db_session).update_profile("missing", first_name="X")

    @pytest.mark.asyncio
    async def test_change_password(self, db_session, test_user):
        auth = AuthService(db_session)
        await auth.change_password(test_user.id, "testpassword123", "brandnew")

        result = await auth.login("tester", "brandnew")
        assert result.user.id == test_user.id

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, db_session, test_user):
        with pytest.raises(InvalidCredentialError) as exc_info:
            await AuthService(db_session).change_password(test_user.id, "wrong", "brandnew")

        assert exc_info.value.user_message == "Invalid current password."


class TestDeleteUser:
    @pytest.mark.asyncio
    async def test_delete_user_drops_sessions(self, db_session, test_user):
        auth = AuthService(db_session)
        result = await auth.login("tester", "testpassword123")

        assert await auth.delete_user(test_user.id) is True
        assert await auth.get_user_by_id(test_user.id) is None
        assert await auth.get_active_user(result.session.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_user(self, db_session):
        assert await AuthService(db_session).delete_user("missing") is False

    @pytest.mark.asyncio
    async def test_search_users(self, db_session, test_user, other_user):
        names = [u.username for u in await AuthService(db_session).search_users("OTH")]
        assert names == ["other"]
