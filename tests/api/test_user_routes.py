"""
API tests for user administration, colleagues, settings and health.
"""

import pytest
from fastapi import status


class TestUserAdmin:
    """Tests for /api/users."""

    @pytest.mark.asyncio
    async def test_list_requires_admin(self, test_client, auth_headers):
        response = await test_client.get("/api/users/", headers=auth_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_admin_lists_users(self, test_client, admin_headers, test_user):
        response = await test_client.get("/api/users/", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert {u["username"] for u in response.json()} == {"axel", "tester"}

    @pytest.mark.asyncio
    async def test_admin_creates_user_without_switching_session(
        self, test_client, admin_headers
    ):
        """Test provisioning keeps the admin logged in as themselves."""
        response = await test_client.post(
            "/api/users/",
            headers=admin_headers,
            json={"email": "new@example.com", "username": "newbie", "password": "pw1234"},
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["role"] == "analyst"

        me = await test_client.get("/api/auth/me", headers=admin_headers)
        assert me.json()["username"] == "axel"

    @pytest.mark.asyncio
    async def test_admin_create_duplicate_email(self, test_client, admin_headers, test_user):
        response = await test_client.post(
            "/api/users/",
            headers=admin_headers,
            json={"email": "test@example.com", "username": "dupe", "password": "pw1234"},
        )
        assert response.status_code == status.HTTP_409_CONFLICT

        users = await test_client.get("/api/users/", headers=admin_headers)
        assert len(users.json()) == 2

    @pytest.mark.asyncio
    async def test_admin_cannot_delete_self(self, test_client, admin_headers, admin_user):
        response = await test_client.delete(
            f"/api/users/{admin_user.id}", headers=admin_headers
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_admin_deletes_user(self, test_client, admin_headers, test_user):
        response = await test_client.delete(f"/api/users/{test_user.id}", headers=admin_headers)
        assert response.status_code == status.HTTP_200_OK

        missing = await test_client.delete(f"/api/users/{test_user.id}", headers=admin_headers)
        assert missing.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_search(self, test_client, auth_headers, other_user):
        response = await test_client.get(
            "/api/users/search", headers=auth_headers, params={"q": "oth"}
        )
        assert [u["username"] for u in response.json()] == ["other"]


class TestColleagueRoutes:
    """Tests for /api/colleagues."""

    @pytest.mark.asyncio
    async def test_add_list_remove(self, test_client, auth_headers, other_user):
        added = await test_client.post(
            "/api/colleagues/", headers=auth_headers, json={"username": "other"}
        )
        assert added.status_code == status.HTTP_201_CREATED

        listed = await test_client.get("/api/colleagues/", headers=auth_headers)
        assert [c["userId"] for c in listed.json()] == [other_user.id]

        removed = await test_client.delete(
            f"/api/colleagues/{other_user.id}", headers=auth_headers
        )
        assert removed.status_code == status.HTTP_200_OK

        again = await test_client.delete(
            f"/api/colleagues/{other_user.id}", headers=auth_headers
        )
        assert again.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_rejections(self, test_client, auth_headers, other_user):
        unknown = await test_client.post(
            "/api/colleagues/", headers=auth_headers, json={"username": "ghost"}
        )
        self_add = await test_client.post(
            "/api/colleagues/", headers=auth_headers, json={"username": "tester"}
        )

        assert unknown.status_code == status.HTTP_404_NOT_FOUND
        assert self_add.status_code == status.HTTP_400_BAD_REQUEST
        assert self_add.json()["detail"] == "You cannot add yourself as a colleague."


class TestSettingsRoutes:
    """Tests for /api/settings."""

    @pytest.mark.asyncio
    async def test_analyst_forbidden(self, test_client, auth_headers):
        response = await test_client.get("/api/settings/", headers=auth_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_save_and_reset(self, test_client, admin_headers):
        current = (await test_client.get("/api/settings/", headers=admin_headers)).json()
        default_role = current["globalRole"]

        saved = await test_client.put(
            "/api/settings/",
            headers=admin_headers,
            json={**current, "globalRole": "Strict buyer"},
        )
        assert saved.json()["globalRole"] == "Strict buyer"

        reset = await test_client.post("/api/settings/reset", headers=admin_headers)
        assert reset.json()["globalRole"] == default_role


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/api/health/")
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready(self, test_client):
        response = await test_client.get("/api/health/ready")

        assert response.json() == {
            "status": "ready",
            "checks": {"api": "ready", "database": "ready"},
        }
