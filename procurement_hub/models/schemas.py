"""
Pydantic models for the persisted entities and the analysis payload.
"""

import time
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


def epoch_ms() -> int:
    """Current time as epoch milliseconds, the timestamp unit of every entity."""
    return int(time.time() * 1000)


# ============ Identity Schemas ============

class UserRole(str, Enum):
    """Roles a user can hold."""

    ADMIN = "admin"
    ANALYST = "analyst"


class User(BaseModel):
    """User identity record."""

    id: str = Field(..., description="Stable, immutable identifier")
    username: str = Field(..., description="Unique login name")
    email: str = Field(..., description="Unique email address")
    first_name: str = ""
    last_name: str = ""
    password_hash: Optional[str] = Field(None, description="bcrypt hash of the secret")
    role: Optional[UserRole] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class OTPEntry(BaseModel):
    """Live password-reset code for one email."""

    email: str
    code: str = Field(..., pattern=r"^\d{6}$")
    expires_at: int = Field(..., description="Expiry as epoch milliseconds")


class SessionEntry(BaseModel):
    """Active session pointer."""

    id: str
    user_id: str
    created_at: int


class Colleague(BaseModel):
    """Directed edge from an owner to another user."""

    user_id: str
    username: str
    added_at: int


class ColleagueList(BaseModel):
    """Adjacency list of one owner."""

    owner_id: str
    colleagues: List[Colleague] = Field(default_factory=list)


# ============ Analysis Payload Schemas ============

PageRef = Optional[Union[int, str]]


class ExtractedField(BaseModel):
    name: str
    value: str
    unit: Optional[str] = None
    page_ref: PageRef = None


class Ambiguity(BaseModel):
    text_snippet: str
    reason: str
    page_ref: PageRef = None


class DraftMessage(BaseModel):
    subject: str
    body: str


class VendorCheckInputs(BaseModel):
    website: Optional[str] = None
    registered_name: Optional[str] = None
    linkedin: Optional[str] = None


class VendorCredibilityItem(BaseModel):
    found: bool
    value: Optional[str] = None
    notes: str = ""


class VendorCredibilityAnalysis(BaseModel):
    website: VendorCredibilityItem
    linkedin: VendorCredibilityItem
    phone: Optional[VendorCredibilityItem] = None
    address: VendorCredibilityItem
    social_presence: Optional[VendorCredibilityItem] = None
    risk_indicator: str = Field("Medium", pattern="^(Low|Medium|High)$")
    limitations: List[str] = Field(default_factory=list)


class EvidenceItem(BaseModel):
    text_snippet: str
    page_ref: PageRef = None


class VendorIdentification(BaseModel):
    vendor_name: str
    confidence_level: str = Field("Low", pattern="^(High|Medium|Low)$")
    evidence: List[EvidenceItem] = Field(default_factory=list)


class ScoringCategory(BaseModel):
    category: str
    score: float = Field(..., ge=0, le=100)
    weight: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""


class AnalysisResult(BaseModel):
    """Structured output of the analysis gateway."""

    summary: str
    extracted_fields: List[ExtractedField] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    ambiguities: List[Ambiguity] = Field(default_factory=list)
    draft_email: DraftMessage
    draft_rfq: DraftMessage
    score: float = Field(..., ge=0, le=100)
    scoring_breakdown: Optional[List[ScoringCategory]] = None
    score_explanation: List[str] = Field(default_factory=list)
    vendor_check_inputs: VendorCheckInputs = Field(default_factory=VendorCheckInputs)
    vendor_identification: Optional[VendorIdentification] = None
    vendor_credibility_summary: Optional[Union[VendorCredibilityAnalysis, str]] = None
    history_log: Optional[str] = None


# ============ Library Schemas ============

class UploaderInfo(BaseModel):
    """Provenance attached when a record is published."""

    id: str
    first_name: str
    last_name: str = ""


class AnalysisRecord(BaseModel):
    """A library item wrapping one analysis payload."""

    id: str = Field(..., description="Stable across partitions, never reused")
    timestamp: int = Field(..., description="Creation time as epoch milliseconds")
    file_name: str
    vendor_name: str
    score: float
    data: dict[str, Any] = Field(default_factory=dict, description="Opaque analysis payload")
    data_version: int = 1
    owner_id: str
    uploader: Optional[UploaderInfo] = None
    is_published: Optional[bool] = None


class VendorGroup(BaseModel):
    """Derived, read-only per-vendor projection."""

    key: str
    name: str
    proposal_count: int
    avg_score: int
    last_interaction: int
    latest_data: dict[str, Any]
    records: List[AnalysisRecord]


# ============ Memo Schemas ============

class Memo(BaseModel):
    """Free-text note, optionally linked to one analysis record."""

    id: str
    title: str
    body: str
    labels: List[str] = Field(default_factory=list)
    linked_record_id: Optional[str] = None
    created_at: int
    updated_at: int
    owner_id: str


# ============ Settings Schemas ============

class AppSettings(BaseModel):
    """Flat configuration blob consumed read-only by the analysis gateway."""

    ai_model: str = ""
    global_role: str = ""
    scoring_weights: str = ""
    prompt_summary: str = ""
    prompt_gaps: str = ""
    prompt_ambiguities: str = ""
    prompt_email: str = ""
    prompt_rfq: str = ""
    prompt_credibility: str = ""
    prompt_history: str = ""
