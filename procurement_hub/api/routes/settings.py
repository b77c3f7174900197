"""
Analysis settings endpoints (admin role).
"""

from fastapi import APIRouter
from pydantic import BaseModel

from procurement_hub.api.deps import AdminUserDep, SessionDep
from procurement_hub.models.schemas import AppSettings
from procurement_hub.services.settings_service import SettingsService

router = APIRouter()


class SettingsPayload(BaseModel):
    """Settings blob as exchanged with the UI."""

    aiModel: str = ""
    globalRole: str = ""
    scoringWeights: str = ""
    promptSummary: str = ""
    promptGaps: str = ""
    promptAmbiguities: str = ""
    promptEmail: str = ""
    promptRfq: str = ""
    promptCredibility: str = ""
    promptHistory: str = ""


def format_settings(app_settings: AppSettings) -> SettingsPayload:
    return SettingsPayload(
        aiModel=app_settings.ai_model,
        globalRole=app_settings.global_role,
        scoringWeights=app_settings.scoring_weights,
        promptSummary=app_settings.prompt_summary,
        promptGaps=app_settings.prompt_gaps,
        promptAmbiguities=app_settings.prompt_ambiguities,
        promptEmail=app_settings.prompt_email,
        promptRfq=app_settings.prompt_rfq,
        promptCredibility=app_settings.prompt_credibility,
        promptHistory=app_settings.prompt_history,
    )


@router.get("/", response_model=SettingsPayload)
async def get_settings(admin: AdminUserDep, session: SessionDep):
    return format_settings(await SettingsService(session).get_settings())


@router.put("/", response_model=SettingsPayload)
async def save_settings(request: SettingsPayload, admin: AdminUserDep, session: SessionDep):
    saved = await SettingsService(session).save_settings(
        AppSettings(
            ai_model=request.aiModel,
            global_role=request.globalRole,
            scoring_weights=request.scoringWeights,
            prompt_summary=request.promptSummary,
            prompt_gaps=request.promptGaps,
            prompt_ambiguities=request.promptAmbiguities,
            prompt_email=request.promptEmail,
            prompt_rfq=request.promptRfq,
            prompt_credibility=request.promptCredibility,
            prompt_history=request.promptHistory,
        )
    )
    return format_settings(saved)


@router.post("/reset", response_model=SettingsPayload)
async def reset_settings(admin: AdminUserDep, session: SessionDep):
    """Restore the built-in prompts and weights."""
    return format_settings(await SettingsService(session).reset_settings())
