"""
Analysis service: upload -> gateway -> new Personal record.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.config import settings
from procurement_hub.core.analysis_gateway import AnalysisGateway
from procurement_hub.core.exceptions import DuplicateMemoError, ValidationError
from procurement_hub.models.schemas import AnalysisRecord, Memo
from procurement_hub.services.library_service import LibraryService
from procurement_hub.services.memo_service import MemoService
from procurement_hub.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

QUICK_MEMO_LABEL = "quick-memo"


class FileTooLargeError(ValidationError):
    status_code = 413
    default_user_message = "File exceeds the maximum upload size."


@dataclass
class AnalysisOutcome:
    record: AnalysisRecord
    memo: Optional[Memo] = None


def validate_upload(file_name: Optional[str], mime_type: Optional[str], size: int) -> None:
    """Reject files the gateway cannot take."""
    if not file_name:
        raise ValidationError("Upload without file name", user_message="A file is required.")
    if mime_type not in settings.allowed_mime_types:
        raise ValidationError(
            f"Unsupported MIME type {mime_type}",
            user_message="Unsupported file type. Upload a PDF, image or text file.",
        )
    if size == 0:
        raise ValidationError("Empty upload", user_message="The uploaded file is empty.")
    if size > settings.max_file_size:
        raise FileTooLargeError(
            f"Upload of {size} bytes exceeds {settings.max_file_size}",
            user_message=(
                f"File size exceeds maximum limit of "
                f"{settings.max_file_size // (1024 * 1024)}MB"
            ),
        )


class AnalysisService:
    """Runs an analysis and files the result in the uploader's Personal library."""

    def __init__(self, session: AsyncSession, gateway: AnalysisGateway):
        self.session = session
        self.gateway = gateway
        self.library = LibraryService(session)
        self.memos = MemoService(session)
        self.settings = SettingsService(session)

    async def analyze_upload(
        self,
        owner_id: str,
        file_name: str,
        mime_type: str,
        content: bytes,
        memo_title: Optional[str] = None,
        memo_body: Optional[str] = None,
    ) -> AnalysisOutcome:
        """
        Analyze an uploaded proposal and store it.

        Steps:
        1. Validate type and size
        2. Call the gateway with the active settings blob
        3. Create the Personal record
        4. Optionally attach a quick memo linked to the new record; a memo
           that duplicates an existing one is skipped and the record kept

        Raises:
            ValidationError: If the upload is rejected
            AnalysisError: If the gateway fails; nothing is stored
        """
        validate_upload(file_name, mime_type, len(content))

        app_settings = await self.settings.get_settings()
        result = await self.gateway.analyze(content, mime_type, file_name, app_settings)

        record = await self.library.create_record(owner_id, file_name, result)

        memo = None
        if memo_body and memo_body.strip():
            try:
                memo = await self.memos.create_quick_memo(
                    owner_id=owner_id,
                    record_id=record.id,
                    body=memo_body,
                    title=memo_title,
                    label=QUICK_MEMO_LABEL,
                )
            except DuplicateMemoError as e:
                logger.info(f"Skipped quick memo for record {record.id}: {e}")
        return AnalysisOutcome(record=record, memo=memo)
