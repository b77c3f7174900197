"""
Analysis gateway: sends a proposal document to the LLM and returns a
validated ``AnalysisResult``.

The gateway owns failure classification. Whatever goes wrong upstream is
logged in full and re-expressed as one ``AnalysisError`` whose category maps
to a stable user-facing message.
"""

import base64
import json
import logging
import re
from typing import Any, Optional

import openai
from pydantic import ValidationError as PydanticValidationError

from procurement_hub.config import get_settings
from procurement_hub.core.exceptions import AnalysisError, AnalysisFailure
from procurement_hub.models.schemas import AnalysisResult, AppSettings

logger = logging.getLogger(__name__)

JSON_STRUCTURE_INSTRUCTION = """
You must strictly output ONLY valid JSON.
Required top-level keys:
- summary: (string) matches Executive Summary instructions.
- extracted_fields: array of objects { name, value, unit, page_ref }.
- gaps: array of strings matches Gap Analysis instructions.
- ambiguities: array of objects { text_snippet, reason, page_ref }.
- draft_email: { subject, body }.
- draft_rfq: { subject, body }.
- score: integer 0-100 (the weighted total).
- scoring_breakdown: array of objects { category, score, weight, reasoning }.
- score_explanation: array of strings (summary of the scoring logic).
- vendor_check_inputs: { website, registered_name, linkedin }.
- vendor_identification: { vendor_name, confidence_level (High|Medium|Low), evidence: [{ text_snippet, page_ref }] }.
- vendor_credibility_summary: { website, linkedin, phone, address, social_presence
  (each { found, value, notes }), risk_indicator (Low|Medium|High), limitations }.
- history_log: (string) matches History Log instructions.

If you cannot find a required field, include it in gaps. Always include page_ref where data was found.
"""

USER_PROMPT = """
Analyze the uploaded supplier proposal document.
1. Identify the vendor.
2. Perform the credibility check (website, LinkedIn, phone, address).
3. Perform the standard procurement analysis (gaps, scoring, drafts).
Ensure strict adherence to the JSON structure.
"""

_FENCE_START = re.compile(r"^```(?:json)?\s*")
_FENCE_END = re.compile(r"\s*```$")


def build_system_instruction(app_settings: AppSettings) -> str:
    """Assemble the system instruction from the settings blob."""
    return f"""
{JSON_STRUCTURE_INSTRUCTION}

{app_settings.global_role}

{app_settings.scoring_weights}

--- FIELD SPECIFIC INSTRUCTIONS ---

VENDOR IDENTIFICATION:
Extract the most likely company name from logos, headers, footers, legal entity
names or contact sections. Choose the primary issuer of the proposal. If the vendor
cannot be confidently identified, state "Unclear".

SCORING BREAKDOWN:
For each category defined in the global weights, assign a raw score (0-100),
include the weight used (e.g. 0.3 for 30%) and a short reasoning. The top level
"score" must be the weighted average of these items.

EXECUTIVE SUMMARY:
{app_settings.prompt_summary}

GAPS ANALYSIS:
{app_settings.prompt_gaps}

AMBIGUITIES:
{app_settings.prompt_ambiguities}

EMAIL DRAFT:
{app_settings.prompt_email}

RFQ DRAFT:
{app_settings.prompt_rfq}

VENDOR CREDIBILITY CHECK:
{app_settings.prompt_credibility}

HISTORY LOG / AUDIT:
{app_settings.prompt_history}
"""


def build_document_part(content: bytes, mime_type: str, file_name: str) -> dict[str, Any]:
    """Encode the uploaded document as a chat content part."""
    if mime_type == "text/plain":
        return {"type": "text", "text": content.decode("utf-8", errors="replace")}

    data_url = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"
    if mime_type.startswith("image/"):
        return {"type": "image_url", "image_url": {"url": data_url}}
    return {"type": "file", "file": {"filename": file_name, "file_data": data_url}}


def parse_analysis(text: str) -> AnalysisResult:
    """
    Parse model output into an AnalysisResult.

    Markdown code fences are stripped first; models sometimes wrap JSON in
    them despite instructions.

    Raises:
        AnalysisError: OUTPUT_FORMAT when the text is not valid JSON or misses
            required fields
    """
    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip()))
    try:
        return AnalysisResult.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.error(f"Unparseable analysis output ({len(cleaned)} chars): {e}")
        raise AnalysisError(f"Invalid analysis output: {e}", AnalysisFailure.OUTPUT_FORMAT) from e


def classify_failure(error: Exception) -> AnalysisFailure:
    """Map a low-level client error onto a failure category."""
    if isinstance(error, AnalysisError):
        return error.category
    if isinstance(error, openai.RateLimitError):
        return AnalysisFailure.RATE_LIMITED
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AnalysisFailure.BAD_CREDENTIAL
    if isinstance(error, openai.APIConnectionError):
        return AnalysisFailure.NETWORK
    if isinstance(error, openai.BadRequestError):
        if getattr(error, "code", None) == "content_policy_violation":
            return AnalysisFailure.CONTENT_BLOCKED
        return AnalysisFailure.BAD_REQUEST
    if isinstance(error, openai.APIStatusError):
        if error.status_code == 429:
            return AnalysisFailure.RATE_LIMITED
        if error.status_code in (401, 403):
            return AnalysisFailure.BAD_CREDENTIAL
        if error.status_code >= 500:
            return AnalysisFailure.SERVICE_UNAVAILABLE
        if error.status_code in (400, 413, 415, 422):
            return AnalysisFailure.BAD_REQUEST

    message = str(error).lower()
    if "safety" in message or "content_filter" in message:
        return AnalysisFailure.CONTENT_BLOCKED
    if "recitation" in message:
        return AnalysisFailure.RECITATION_BLOCKED
    if "429" in message or "quota" in message or "exhausted" in message:
        return AnalysisFailure.RATE_LIMITED
    if "503" in message or "unavailable" in message:
        return AnalysisFailure.SERVICE_UNAVAILABLE
    if "fetch failed" in message or "network" in message:
        return AnalysisFailure.NETWORK
    if "api key" in message:
        return AnalysisFailure.BAD_CREDENTIAL
    if "400" in message:
        return AnalysisFailure.BAD_REQUEST
    return AnalysisFailure.UNKNOWN


class AnalysisGateway:
    """
    Request/response wrapper around the OpenAI chat completions API.

    Usage:
        gateway = AnalysisGateway()
        result = await gateway.analyze(content, "application/pdf", "offer.pdf", app_settings)
    """

    def __init__(self, client: Optional[openai.AsyncOpenAI] = None):
        self._client = client

    @property
    def client(self) -> openai.AsyncOpenAI:
        """Lazy-load the OpenAI client."""
        if self._client is None:
            settings = get_settings()
            if not settings.openai_api_key:
                raise AnalysisError(
                    "OPENAI_API_KEY is not configured", AnalysisFailure.BAD_CREDENTIAL
                )
            self._client = openai.AsyncOpenAI(api_key=settings.openai_api_key)
        return self._client

    async def analyze(
        self,
        content: bytes,
        mime_type: str,
        file_name: str,
        app_settings: AppSettings,
    ) -> AnalysisResult:
        """
        Analyze one document.

        Args:
            content: Raw file bytes
            mime_type: MIME type of the file
            file_name: Original file name
            app_settings: Active settings blob (prompts, weights, model)

        Returns:
            Validated AnalysisResult

        Raises:
            AnalysisError: With the failure category of whatever went wrong
        """
        settings = get_settings()
        model = app_settings.ai_model or settings.openai_model

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": build_system_instruction(app_settings)},
                    {
                        "role": "user",
                        "content": [
                            build_document_part(content, mime_type, file_name),
                            {"type": "text", "text": USER_PROMPT},
                        ],
                    },
                ],
                response_format={"type": "json_object"},
                max_tokens=settings.analysis_max_output_tokens,
            )
        except AnalysisError:
            raise
        except Exception as e:
            category = classify_failure(e)
            logger.exception(f"Analysis request for {file_name} failed ({category.value})")
            raise AnalysisError(str(e), category) from e

        if not response.choices:
            raise AnalysisError("No choices returned", AnalysisFailure.EMPTY_RESPONSE)

        choice = response.choices[0]
        text = choice.message.content
        if choice.finish_reason == "content_filter" or getattr(choice.message, "refusal", None):
            logger.error(f"Analysis of {file_name} blocked by content filter")
            raise AnalysisError("Output blocked by content filter", AnalysisFailure.CONTENT_BLOCKED)

        if not text:
            if choice.finish_reason == "length":
                raise AnalysisError("Output truncated", AnalysisFailure.OUTPUT_FORMAT)
            raise AnalysisError(
                f"Empty response (finish_reason={choice.finish_reason})",
                AnalysisFailure.EMPTY_RESPONSE,
            )

        result = parse_analysis(text)
        logger.info(f"Analyzed {file_name}: score {result.score}")
        return result


_gateway: Optional[AnalysisGateway] = None


def get_analysis_gateway() -> AnalysisGateway:
    """Shared gateway instance (FastAPI dependency)."""
    global _gateway
    if _gateway is None:
        _gateway = AnalysisGateway()
    return _gateway
