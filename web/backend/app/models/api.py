"""Pydantic models for API request/response serialization.

These models mirror the engine dataclasses and use camelCase on the wire.
POST bodies are a discriminated union keyed on ``action``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Analysis models
# ---------------------------------------------------------------------------


class DetectorResultResponse(_WireModel):
    """Mirrors acme.moderation.models.DetectorResult."""

    category: str
    score: float
    matched_evidence: list[str] = Field(default_factory=list)
    error: Optional[str] = None
    hard_block: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    duration_ms: float = 0.0


class AnalysisResultResponse(_WireModel):
    """Mirrors acme.moderation.models.AnalysisResult."""

    scores: dict[str, float]
    overall_severity: str
    recommended_action: str
    triggered_categories: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    flag_reason: str = ""
    moderation_tags: list[str] = Field(default_factory=list)
    detector_results: list[DetectorResultResponse] = Field(default_factory=list)
    faults: list[str] = Field(default_factory=list)


class ModerationOutcomeResponse(_WireModel):
    """Mirrors acme.moderation.models.ModerationOutcome."""

    content_id: str
    action: str
    allowed: bool
    analysis_result: AnalysisResultResponse
    queue_entry_id: Optional[str] = None


class BulkItemResponse(_WireModel):
    index: int
    content_id: str
    status: str
    action: Optional[str] = None
    queue_entry_id: Optional[str] = None
    result: Optional[AnalysisResultResponse] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Queue / history models
# ---------------------------------------------------------------------------


class QueueEntryResponse(_WireModel):
    """Mirrors acme.moderation.models.QueueEntry."""

    id: str
    content_id: str
    content_type: str
    status: str
    severity: str
    created_at: str
    reviewed_at: Optional[str] = None
    reviewer_id: Optional[str] = None
    decision: Optional[str] = None
    reason: Optional[str] = None
    author_id: str = ""
    content: str = ""
    flag_reason: str = ""
    confidence: float = 0.0
    moderation_tags: list[str] = Field(default_factory=list)
    recommended_action: str = "flag"
    analysis: dict[str, Any] = Field(default_factory=dict)
    updated_at: str = ""


class HistoryEntryResponse(_WireModel):
    """Mirrors acme.moderation.models.ModerationHistoryEntry."""

    id: str
    content_id: str
    action: str
    actor: str
    timestamp: str
    reason: str = ""
    content_type: str = "post"
    severity: str = "low"
    automated: bool = False
    queue_entry_id: Optional[str] = None
    moderation_tags: list[str] = Field(default_factory=list)


class StatsResponse(_WireModel):
    """Mirrors acme.moderation.models.ModerationStatsSnapshot."""

    total: int = 0
    automated: int = 0
    manual: int = 0
    action_breakdown: dict[str, int] = Field(default_factory=dict)
    severity_breakdown: dict[str, int] = Field(default_factory=dict)
    queue_stats: dict[str, int] = Field(default_factory=dict)
    automation_rate: float = 0.0


class SettingsResponse(_WireModel):
    enabled_detectors: list[str] = Field(default_factory=list)
    flag_threshold: float


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class QueueEnvelope(BaseModel):
    queue: list[QueueEntryResponse]


class StatsEnvelope(BaseModel):
    stats: StatsResponse


class SettingsEnvelope(BaseModel):
    settings: SettingsResponse


class HistoryEnvelope(BaseModel):
    history: list[HistoryEntryResponse]


class AnalyzeEnvelope(BaseModel):
    result: AnalysisResultResponse


class ModerateEnvelope(BaseModel):
    result: ModerationOutcomeResponse


class BulkEnvelope(BaseModel):
    results: list[BulkItemResponse]


class SuccessEnvelope(BaseModel):
    success: bool = True


class CleanupEnvelope(_WireModel):
    cleaned_count: int


# ---------------------------------------------------------------------------
# POST request bodies
# ---------------------------------------------------------------------------


class AnalyzeOptionsRequest(_WireModel):
    detectors: Optional[list[str]] = None
    force: bool = False
    flag_threshold: Optional[float] = None


class AnalyzeRequest(_WireModel):
    action: Literal["analyze"]
    content: str = Field(min_length=1)
    options: Optional[AnalyzeOptionsRequest] = None


class ModerateRequest(_WireModel):
    action: Literal["moderate"]
    content: str = Field(min_length=1)
    content_type: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    content_id: Optional[str] = None


class DecisionRequest(_WireModel):
    action: Literal["decision"]
    queue_id: str = Field(min_length=1)
    decision: str = Field(min_length=1)
    reason: Optional[str] = None


class BulkModerateRequest(_WireModel):
    action: Literal["bulk-moderate"]
    contents: list[Any]


class UpdateSettingsRequest(_WireModel):
    action: Literal["update-settings"]
    settings: dict[str, Any]


class CleanupRequest(_WireModel):
    action: Literal["cleanup"]
    older_than_days: float = Field(default=30, ge=0, allow_inf_nan=False)


ModerationPostRequest = Annotated[
    Union[
        AnalyzeRequest,
        ModerateRequest,
        DecisionRequest,
        BulkModerateRequest,
        UpdateSettingsRequest,
        CleanupRequest,
    ],
    Field(discriminator="action"),
]

POST_ACTIONS = frozenset(
    {"analyze", "moderate", "decision", "bulk-moderate", "update-settings", "cleanup"}
)
