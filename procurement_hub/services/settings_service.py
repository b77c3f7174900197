"""
Settings service: the flat configuration blob read by the analysis gateway.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_hub.core.collection_store import SETTINGS, CollectionStore
from procurement_hub.models.schemas import AppSettings

logger = logging.getLogger(__name__)


DEFAULT_SETTINGS = AppSettings(
    ai_model="",
    global_role=(
        "You are the scoring engine of an enterprise procurement platform. "
        "Generate an INITIAL INTERNAL SCORE for supplier proposals. The score is for "
        "internal use only, not a final decision, and supports human procurement "
        "professionals.\n"
        "External information is supporting insight only: never present external "
        "findings as verified facts, state uncertainty and limitations, and separate "
        "document-based facts from externally sourced information.\n"
        'Never invent data. If data is not found, mark it as "Not Provided".'
    ),
    scoring_weights=(
        "GLOBAL SCORING WEIGHTS (TOTAL = 100%)\n"
        "1. Price & Commercial Terms - 30%: lower total cost and clear pricing score "
        "higher; missing pricing details are heavily penalized.\n"
        "2. Technical Compliance & Specifications - 25%: completeness, mandatory "
        "requirements, certifications.\n"
        "3. Delivery & Operational Readiness - 15%: lead time, onboarding readiness, "
        "service clarity.\n"
        "4. Warranty & After-Sales Support - 15%: warranty length and scope, SLA.\n"
        "5. Vendor Credibility & Risk Indicators - 15%: website, company presence, "
        "address plausibility, red flags.\n"
        "Each category gets a 0-100 sub-score; the final score is the weighted "
        "integer total between 0 and 100."
    ),
    prompt_summary=(
        "Write a concise executive summary of the proposal for a procurement briefing: "
        "scope, commercial headline, key risks."
    ),
    prompt_gaps=(
        "List information a buyer needs that the proposal does not provide "
        "(pricing breakdown, delivery terms, warranty, certifications, validity)."
    ),
    prompt_ambiguities=(
        "Quote statements that are vague or open to interpretation and explain why "
        "each needs clarification."
    ),
    prompt_email=(
        "Draft a polite clarification email to the vendor covering every gap and "
        "ambiguity found."
    ),
    prompt_rfq=(
        "Draft a structured request for quotation asking the vendor to resubmit "
        "missing items in a comparable format."
    ),
    prompt_credibility=(
        "Assess vendor credibility from the document: website, LinkedIn presence, "
        "phone, address consistency, social presence. Give a Low/Medium/High risk "
        "indicator and list the limitations of the check."
    ),
    prompt_history=(
        "Produce a short audit log describing what was analyzed and which "
        "assumptions were made."
    ),
)


class SettingsService:
    """Get, save and reset the settings blob."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = CollectionStore(session)

    async def get_settings(self) -> AppSettings:
        """Stored settings merged over the defaults."""
        snapshot = await self.store.load(SETTINGS)
        if not isinstance(snapshot.payload, dict):
            return DEFAULT_SETTINGS.model_copy()
        merged = {**DEFAULT_SETTINGS.model_dump(), **snapshot.payload}
        return AppSettings.model_validate(merged)

    async def save_settings(self, new_settings: AppSettings) -> AppSettings:
        snapshot = await self.store.load(SETTINGS)
        await self.store.replace(SETTINGS, new_settings.model_dump(mode="json"), snapshot.version)
        logger.info("Analysis settings saved")
        return new_settings

    async def reset_settings(self) -> AppSettings:
        """Drop stored overrides by writing the defaults back."""
        return await self.save_settings(DEFAULT_SETTINGS.model_copy())
