"""
Service tests for the upload -> gateway -> record flow.
"""

import pytest

from procurement_hub.core.exceptions import AnalysisError, AnalysisFailure, ValidationError
from procurement_hub.services.analysis_service import (
    QUICK_MEMO_LABEL,
    AnalysisService,
    FileTooLargeError,
    validate_upload,
)
from procurement_hub.services.library_service import LibraryService
from procurement_hub.services.memo_service import MemoService


class TestValidateUpload:
    def test_accepts_pdf(self):
        validate_upload("offer.pdf", "application/pdf", 1024)

    def test_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            validate_upload("offer.docx", "application/msword", 1024)

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            validate_upload("offer.pdf", "application/pdf", 0)

    def test_rejects_oversized(self):
        with pytest.raises(FileTooLargeError) as exc_info:
            validate_upload("offer.pdf", "application/pdf", 21 * 1024 * 1024)

        assert exc_info.value.status_code == 413


class TestAnalyzeUpload:
    """Tests for AnalysisService.analyze_upload."""

    @pytest.mark.asyncio
    async def test_creates_personal_record(self, db_session, test_user, fake_gateway):
        outcome = await AnalysisService(db_session, fake_gateway).analyze_upload(
            test_user.id, "offer.pdf", "application/pdf", b"%PDF-1.4"
        )

        assert outcome.memo is None
        assert fake_gateway.calls == [("offer.pdf", "application/pdf", 8)]
        personal = await LibraryService(db_session).list_personal(test_user.id)
        assert [r.id for r in personal] == [outcome.record.id]

    @pytest.mark.asyncio
    async def test_attaches_quick_memo(self, db_session, test_user, fake_gateway):
        outcome = await AnalysisService(db_session, fake_gateway).analyze_upload(
            test_user.id,
            "offer.pdf",
            "application/pdf",
            b"%PDF-1.4",
            memo_title="First look",
            memo_body="Check the warranty",
        )

        assert outcome.memo.linked_record_id == outcome.record.id
        assert outcome.memo.labels == [QUICK_MEMO_LABEL]
        memos = await MemoService(db_session).list_by_linked_record(
            outcome.record.id, test_user.id
        )
        assert [m.title for m in memos] == ["First look"]

    @pytest.mark.asyncio
    async def test_duplicate_quick_memo_keeps_record(self, db_session, test_user, fake_gateway):
        """Test a repeated memo body is skipped while both uploads are stored."""
        service = AnalysisService(db_session, fake_gateway)
        first = await service.analyze_upload(
            test_user.id, "a.pdf", "application/pdf", b"%PDF-1.4", memo_body="Check SLA"
        )
        second = await service.analyze_upload(
            test_user.id, "b.pdf", "application/pdf", b"%PDF-1.4", memo_body="Check SLA"
        )
        await db_session.commit()

        assert first.memo is not None
        assert second.memo is None
        personal = await LibraryService(db_session).list_personal(test_user.id)
        assert {r.id for r in personal} == {first.record.id, second.record.id}
        memos = await MemoService(db_session).list_memos(test_user.id)
        assert [m.id for m in memos] == [first.memo.id]

    @pytest.mark.asyncio
    async def test_gateway_failure_stores_nothing(
        self, db_session, test_user, fake_gateway, gateway_failure
    ):
        fake_gateway.error = gateway_failure(AnalysisFailure.RATE_LIMITED)

        with pytest.raises(AnalysisError) as exc_info:
            await AnalysisService(db_session, fake_gateway).analyze_upload(
                test_user.id, "offer.pdf", "application/pdf", b"%PDF-1.4"
            )

        assert exc_info.value.category == AnalysisFailure.RATE_LIMITED
        assert await LibraryService(db_session).list_personal(test_user.id) == []

    @pytest.mark.asyncio
    async def test_invalid_upload_skips_gateway(self, db_session, test_user, fake_gateway):
        with pytest.raises(ValidationError):
            await AnalysisService(db_session, fake_gateway).analyze_upload(
                test_user.id, "offer.exe", "application/x-msdownload", b"MZ"
            )

        assert fake_gateway.calls == []
