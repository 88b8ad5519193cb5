"""Pydantic schemas for the web API.

Request/response models for glossary, certifications, reflections,
techniques, live reset sessions, insights and form validation.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


# =============================================================================
# GLOSSARY SCHEMAS
# =============================================================================


class GlossaryTermCreate(BaseModel):
    """Request body for adding a glossary term."""

    term: str = Field(..., max_length=200)
    definition: str = Field(..., max_length=2000)
    context: str | None = Field(default=None, max_length=2000)
    domain: str | None = Field(default=None, max_length=100)
    category: str | None = Field(default=None, max_length=100)
    source: str | None = Field(default=None, max_length=200)


class GlossaryTermResponse(BaseModel):
    """Response for a glossary term."""

    id: str
    term: str
    definition: str
    context: str | None = None
    domain: str | None = None
    category: str | None = None
    source: str | None = None
    proficiency_level: float
    proficiency_label: str
    confidence_score: float
    accuracy_percent: int | None = None
    last_reviewed: str | None = None
    next_review_date: str | None = None
    review_count: int
    correct_count: int
    created_at: str


class GlossaryListResponse(BaseModel):
    """Response for a list of glossary terms."""

    terms: list[GlossaryTermResponse]
    count: int
    domains: list[str] = Field(default_factory=list)


class ReviewRequest(BaseModel):
    """Request body for recording a review."""

    correct: bool


class ReviewResponse(BaseModel):
    """Result of a review."""

    term: GlossaryTermResponse
    correct: bool
    days_until_next: int


class GlossaryStatsResponse(BaseModel):
    total: int
    due_for_review: int
    mastered: int


# =============================================================================
# CERTIFICATION SCHEMAS
# =============================================================================


class CertificationCreate(BaseModel):
    """Request body for adding a certification."""

    cert_type: str = Field(..., min_length=1, max_length=100)
    cert_number: str | None = Field(default=None, max_length=100)
    credential_level: str | None = Field(default=None, max_length=100)
    issue_date: date | None = None
    expiration_date: date | None = None
    ceu_hours_required: float = Field(default=8.0, ge=0)
    ceu_hours_completed: float = Field(default=0.0, ge=0)
    notes: str | None = Field(default=None, max_length=2000)


class ExpirationStatusResponse(BaseModel):
    level: str
    label: str


class CertificationResponse(BaseModel):
    """Certification with computed expiration/progress fields."""

    id: str
    cert_type: str
    cert_number: str | None = None
    credential_level: str | None = None
    issue_date: str | None = None
    expiration_date: str | None = None
    ceu_hours_required: float
    ceu_hours_completed: float
    notes: str | None = None
    created_at: str
    days_until_expiration: int | None = None
    status: ExpirationStatusResponse
    ceu_progress: float


class CertificationListResponse(BaseModel):
    certifications: list[CertificationResponse]
    count: int


class CompletionCreate(BaseModel):
    """Request body for recording a CEU completion."""

    program_title: str = Field(..., min_length=1, max_length=200)
    ceu_awarded: float = Field(..., ge=0)
    category: str = Field(default="general", max_length=50)
    program_code: str | None = Field(default=None, max_length=50)
    ps_subcategory: str | None = Field(default=None, max_length=50)
    certification_id: str | None = None


class CompletionResponse(BaseModel):
    id: str
    program_title: str
    ceu_awarded: float
    category: str
    program_code: str | None = None
    ps_subcategory: str | None = None
    certification_id: str | None = None
    completed_at: str
    certificate_number: str


class CompletionListResponse(BaseModel):
    completions: list[CompletionResponse]
    count: int


class CEUSummaryResponse(BaseModel):
    total_ceus: float
    completions: int
    active_certifications: int
    required_per_cycle: float


# =============================================================================
# REFLECTION SCHEMAS
# =============================================================================


class ReflectionCreate(BaseModel):
    """Request body for saving a reflection."""

    entry_kind: str = Field(..., max_length=100)
    data: dict[str, Any] = Field(default_factory=dict)


class ReflectionResponse(BaseModel):
    id: str
    entry_kind: str
    data: dict[str, Any]
    created_at: str


class ReflectionListResponse(BaseModel):
    reflections: list[ReflectionResponse]
    count: int


class KindCount(BaseModel):
    kind: str
    count: int


class ReflectionStatsResponse(BaseModel):
    total: int
    weekly: int
    monthly: int
    streak_days: int
    last_reflection_at: str | None = None
    top_kinds: list[KindCount] = Field(default_factory=list)


# =============================================================================
# TECHNIQUE / RESET SESSION SCHEMAS
# =============================================================================


class QuestionResponse(BaseModel):
    id: str
    prompt: str
    options: list[str]


class TechniqueResponse(BaseModel):
    id: str
    name: str
    category: str
    description: str
    paces: list[str]
    default_pace: str
    durations: list[str]
    default_duration: str
    questions: list[QuestionResponse]


class TechniqueListResponse(BaseModel):
    techniques: list[TechniqueResponse]
    count: int


class ResetSessionCreate(BaseModel):
    """Request body for opening a reset session.

    Duration and pace default to the user's last choice for the technique,
    then to the technique's defaults.
    """

    technique_id: str
    duration_key: str | None = None
    pace: str | None = None


class FlowStateResponse(BaseModel):
    technique_id: str
    phase: str
    running: bool
    duration_key: str
    duration_seconds: int
    pace: str
    elapsed: int
    remaining: int
    remaining_display: str
    progress_percent: float
    breath_phase: str
    breath_cycle: int
    breath_message: str


class ResetSessionResponse(BaseModel):
    session_id: str
    user_id: str
    created_at: str
    status: str
    state: FlowStateResponse


class FlowEventResponse(BaseModel):
    event_type: str
    data: dict[str, Any] = Field(default_factory=dict)


class SessionActionResponse(BaseModel):
    """Session state after an action, plus the events it produced."""

    session: ResetSessionResponse
    events: list[FlowEventResponse]


class ConfigureRequest(BaseModel):
    duration_key: str | None = None
    pace: str | None = None


class PaceRequest(BaseModel):
    pace: str | None = None


class AdvanceRequest(BaseModel):
    seconds: int = Field(default=1, ge=1, le=600)


class ReflectionSubmitRequest(BaseModel):
    """Answers to the technique's reflection questions."""

    answers: dict[str, str] = Field(default_factory=dict)
    effectiveness: int | None = None
    stress_before: int | None = None
    stress_after: int | None = None


class ReflectionSubmitResponse(BaseModel):
    session: ResetSessionResponse
    record: dict[str, Any]
    reset_log_id: str
    reflection_id: str | None = None


class SkippedResetCreate(BaseModel):
    """Request body for logging a skipped reset."""

    technique_id: str
    reason: str | None = Field(default=None, max_length=500)


# =============================================================================
# INSIGHT SCHEMAS
# =============================================================================


class EmotionLogCreate(BaseModel):
    emotion: str = Field(..., max_length=50)
    intensity: int
    context: dict[str, Any] = Field(default_factory=dict)


class AssignmentCreate(BaseModel):
    assignment_type: str = Field(..., min_length=1, max_length=50)
    duration_minutes: int = Field(..., ge=0)
    difficulty: str = "moderate"
    emotion_after: str | None = None
    completed: bool = True


class LogCreatedResponse(BaseModel):
    id: str


class InsightsSummaryResponse(BaseModel):
    reflections: ReflectionStatsResponse
    activity_streak_days: int
    resets: dict[str, Any]
    emotions: dict[str, Any]
    assignments: dict[str, Any]


class NudgeActionResponse(BaseModel):
    label: str
    target: str | None = None


class NudgeResponse(BaseModel):
    id: str
    rule_id: str
    priority: str
    type: str
    title: str
    message: str
    action: NudgeActionResponse | None = None
    dismissible: bool
    created_at: str
    expires_at: str | None = None


class NudgeListResponse(BaseModel):
    nudges: list[NudgeResponse]
    new: int
    recommendations: list[str]


# =============================================================================
# VALIDATION SCHEMAS
# =============================================================================


class ValidateRequest(BaseModel):
    value: Any = None


class ValidateResponse(BaseModel):
    field: str
    valid: bool
    error: str | None = None
    value: Any = None
    strength: str | None = None
