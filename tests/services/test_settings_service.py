"""
Service tests for the analysis settings blob.
"""

import pytest

from procurement_hub.core.collection_store import SETTINGS, CollectionStore
from procurement_hub.services.settings_service import DEFAULT_SETTINGS, SettingsService


class TestSettingsService:
    @pytest.mark.asyncio
    async def test_defaults_when_unset(self, db_session):
        assert await SettingsService(db_session).get_settings() == DEFAULT_SETTINGS

    @pytest.mark.asyncio
    async def test_save_and_reset(self, db_session):
        service = SettingsService(db_session)
        custom = DEFAULT_SETTINGS.model_copy(update={"global_role": "Strict buyer"})

        await service.save_settings(custom)
        assert (await service.get_settings()).global_role == "Strict buyer"

        await service.reset_settings()
        assert await service.get_settings() == DEFAULT_SETTINGS

    @pytest.mark.asyncio
    async def test_partial_blob_merged_over_defaults(self, db_session):
        """Test stored keys win and missing keys fall back to defaults."""
        await CollectionStore(db_session).replace(SETTINGS, {"prompt_rfq": "Short RFQ"}, 0)

        loaded = await SettingsService(db_session).get_settings()

        assert loaded.prompt_rfq == "Short RFQ"
        assert loaded.prompt_summary == DEFAULT_SETTINGS.prompt_summary
