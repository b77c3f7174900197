"""
API tests for library endpoints.
Tests upload analysis, publish/save/delete transitions and views.
"""

import pytest
from fastapi import status

from procurement_hub.core.exceptions import AnalysisFailure

PDF = ("offer.pdf", b"%PDF-1.4 test", "application/pdf")


async def upload(client, headers, **form):
    return await client.post(
        "/api/library/analyze", headers=headers, files={"file": PDF}, data=form
    )


class TestAnalyzeEndpoint:
    """Tests for POST /api/library/analyze."""

    @pytest.mark.asyncio
    async def test_analyze_creates_record(self, test_client, auth_headers, test_user):
        response = await upload(test_client, auth_headers)

        assert response.status_code == status.HTTP_201_CREATED
        record = response.json()["record"]
        assert record["ownerId"] == test_user.id
        assert record["vendorName"] == "Acme Corp"
        assert record["fileName"] == "offer.pdf"
        assert response.json()["memoId"] is None

    @pytest.mark.asyncio
    async def test_analyze_with_memo(self, test_client, auth_headers):
        response = await upload(
            test_client, auth_headers, memoTitle="Notes", memoBody="Follow up on SLA"
        )
        record_id = response.json()["record"]["id"]

        memos = await test_client.get(f"/api/memos/records/{record_id}", headers=auth_headers)

        assert [m["id"] for m in memos.json()] == [response.json()["memoId"]]

    @pytest.mark.asyncio
    async def test_analyze_with_repeated_memo(self, test_client, auth_headers):
        """Test a second upload with the same memo still stores its record."""
        first = await upload(test_client, auth_headers, memoBody="Follow up on SLA")
        second = await upload(test_client, auth_headers, memoBody="Follow up on SLA")

        assert second.status_code == status.HTTP_201_CREATED
        assert second.json()["memoId"] is None
        personal = await test_client.get("/api/library/personal", headers=auth_headers)
        assert {r["id"] for r in personal.json()} == {
            first.json()["record"]["id"],
            second.json()["record"]["id"],
        }

    @pytest.mark.asyncio
    async def test_analyze_unsupported_type(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/library/analyze",
            headers=auth_headers,
            files={"file": ("tool.exe", b"MZ", "application/x-msdownload")},
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_gateway_failure_message(
        self, test_client, auth_headers, fake_gateway, gateway_failure
    ):
        """Test gateway failures surface their category message and status."""
        fake_gateway.error = gateway_failure(AnalysisFailure.SERVICE_UNAVAILABLE)

        response = await upload(test_client, auth_headers)

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["detail"].startswith("Service Unavailable")
        personal = await test_client.get("/api/library/personal", headers=auth_headers)
        assert personal.json() == []

    @pytest.mark.asyncio
    async def test_requires_auth(self, test_client):
        response = await test_client.post("/api/library/analyze", files={"file": PDF})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestLibraryTransitions:
    """Tests for publish, save and delete."""

    @pytest.mark.asyncio
    async def test_publish_and_save_scenario(
        self, test_client, auth_headers, other_headers, test_user, other_user
    ):
        record_id = (await upload(test_client, auth_headers)).json()["record"]["id"]

        published = await test_client.post(
            f"/api/library/personal/{record_id}/publish", headers=auth_headers
        )
        assert published.status_code == status.HTTP_200_OK
        assert published.json()["uploader"]["id"] == test_user.id
        assert published.json()["isPublished"] is True

        mine = await test_client.get("/api/library/personal", headers=auth_headers)
        assert mine.json() == []

        saved = await test_client.post(
            f"/api/library/collective/{record_id}/save", headers=other_headers
        )
        assert saved.json()["ownerId"] == other_user.id

        collective = await test_client.get("/api/library/collective", headers=other_headers)
        assert [r["id"] for r in collective.json()] == [record_id]

    @pytest.mark.asyncio
    async def test_collective_delete_permissions(
        self, test_client, auth_headers, other_headers, admin_headers
    ):
        record_id = (await upload(test_client, auth_headers)).json()["record"]["id"]
        await test_client.post(f"/api/library/personal/{record_id}/publish", headers=auth_headers)

        denied = await test_client.delete(
            f"/api/library/collective/{record_id}", headers=other_headers
        )
        assert denied.status_code == status.HTTP_403_FORBIDDEN

        allowed = await test_client.delete(
            f"/api/library/collective/{record_id}", headers=admin_headers
        )
        assert allowed.status_code == status.HTTP_200_OK

        gone = await test_client.get(
            f"/api/library/collective/{record_id}", headers=auth_headers
        )
        assert gone.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_personal(self, test_client, auth_headers):
        record_id = (await upload(test_client, auth_headers)).json()["record"]["id"]

        response = await test_client.delete(
            f"/api/library/personal/{record_id}", headers=auth_headers
        )

        assert response.status_code == status.HTTP_200_OK
        missing = await test_client.get(
            f"/api/library/personal/{record_id}", headers=auth_headers
        )
        assert missing.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_publish_group(self, test_client, auth_headers):
        first = (await upload(test_client, auth_headers)).json()["record"]["id"]
        second = (await upload(test_client, auth_headers)).json()["record"]["id"]

        response = await test_client.post(
            "/api/library/personal/publish-group",
            headers=auth_headers,
            json={"recordIds": [first, "missing", second]},
        )

        data = response.json()
        assert data["published"] == [first, second]
        assert list(data["failed"]) == ["missing"]

    @pytest.mark.asyncio
    async def test_publish_vendor(self, test_client, auth_headers):
        await upload(test_client, auth_headers)

        response = await test_client.post(
            "/api/library/personal/vendors/acme corp/publish", headers=auth_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert len(response.json()["published"]) == 1


class TestLibraryViews:
    """Tests for vendor groups and compare."""

    @pytest.mark.asyncio
    async def test_vendor_groups(self, test_client, auth_headers):
        await upload(test_client, auth_headers)
        await upload(test_client, auth_headers)

        response = await test_client.get(
            "/api/library/vendors", headers=auth_headers, params={"scope": "personal"}
        )

        groups = response.json()
        assert len(groups) == 1
        assert groups[0]["key"] == "acme corp"
        assert groups[0]["proposalCount"] == 2
        assert groups[0]["avgScore"] == 80

    @pytest.mark.asyncio
    async def test_vendor_groups_bad_scope(self, test_client, auth_headers):
        response = await test_client.get(
            "/api/library/vendors", headers=auth_headers, params={"scope": "all"}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_compare(self, test_client, auth_headers):
        ids = [(await upload(test_client, auth_headers)).json()["record"]["id"] for _ in range(2)]

        response = await test_client.post(
            "/api/library/compare", headers=auth_headers, json={"recordIds": ids}
        )

        assert [r["id"] for r in response.json()] == ids

    @pytest.mark.asyncio
    async def test_compare_too_many(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/library/compare",
            headers=auth_headers,
            json={"recordIds": ["a", "b", "c", "d"]},
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
