"""Data models for the content moderation engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

SYSTEM_ACTOR = "system"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    return utcnow().isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, treating naive values as UTC."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ContentType(str, Enum):
    post = "post"
    reply = "reply"
    profile = "profile"


class Category(str, Enum):
    """Violation categories, one per detector."""

    toxicity = "toxicity"
    spam = "spam"
    profanity = "profanity"
    threat = "threat"
    pii = "pii"


ALL_CATEGORIES: frozenset[str] = frozenset(c.value for c in Category)


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class RecommendedAction(str, Enum):
    approve = "approve"
    flag = "flag"
    block = "block"


class QueueStatus(str, Enum):
    pending = "pending"
    reviewed = "reviewed"
    escalated = "escalated"
    resolved = "resolved"


# Entries in these states still represent an open or undecided violation.
LIVE_STATUSES = frozenset({QueueStatus.pending, QueueStatus.reviewed, QueueStatus.escalated})
# Cleanup may only ever touch these.
CLOSED_STATUSES = frozenset({QueueStatus.reviewed, QueueStatus.resolved})


class Decision(str, Enum):
    """A reviewer's verdict on a queue entry."""

    approve = "approve"
    block = "block"
    escalate = "escalate"


class Outcome(str, Enum):
    """Terminal decision recorded on a resolved queue entry."""

    approved = "approved"
    blocked = "blocked"


class HistoryAction(str, Enum):
    flagged = "flagged"
    blocked = "blocked"
    approved = "approved"
    escalated = "escalated"


# ---------------------------------------------------------------------------
# Content and analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentRecord:
    """A piece of user content submitted for moderation. Never mutated."""

    id: str
    content_type: ContentType
    text: str
    author_id: str
    submitted_at: str = ""


@dataclass
class DetectorResult:
    """Output of a single detector run."""

    category: str
    score: float = 0.0
    matched_evidence: list[str] = field(default_factory=list)
    error: Optional[str] = None
    hard_block: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0

    @property
    def faulted(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "score": self.score,
            "matchedEvidence": list(self.matched_evidence),
            "error": self.error,
            "hardBlock": self.hard_block,
            "metadata": dict(self.metadata),
            "durationMs": round(self.duration_ms, 3),
        }


@dataclass
class AnalysisOptions:
    """Per-call overrides for the analysis pipeline.

    ``detectors`` narrows the set of detectors to run.  With ``force`` set the
    requested detectors run even when disabled in the settings.
    ``flag_threshold`` overrides the configured threshold for this call only.
    """

    detectors: Optional[set[str]] = None
    force: bool = False
    flag_threshold: Optional[float] = None


@dataclass
class AnalysisResult:
    """Aggregate verdict over one piece of content."""

    scores: dict[str, float]
    overall_severity: Severity
    recommended_action: RecommendedAction
    triggered_categories: set[str] = field(default_factory=set)
    confidence: float = 0.0
    flag_reason: str = ""
    moderation_tags: list[str] = field(default_factory=list)
    detector_results: list[DetectorResult] = field(default_factory=list)
    faults: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scores": dict(self.scores),
            "overallSeverity": self.overall_severity.value,
            "recommendedAction": self.recommended_action.value,
            "triggeredCategories": sorted(self.triggered_categories),
            "confidence": self.confidence,
            "flagReason": self.flag_reason,
            "moderationTags": list(self.moderation_tags),
            "detectorResults": [r.to_dict() for r in self.detector_results],
            "faults": list(self.faults),
        }


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


DEFAULT_FLAG_THRESHOLD = 0.6


@dataclass
class ModerationSettings:
    enabled_detectors: set[str] = field(default_factory=lambda: set(ALL_CATEGORIES))
    flag_threshold: float = DEFAULT_FLAG_THRESHOLD

    def copy(self) -> ModerationSettings:
        return ModerationSettings(set(self.enabled_detectors), self.flag_threshold)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabledDetectors": sorted(self.enabled_detectors),
            "flagThreshold": self.flag_threshold,
        }


# ---------------------------------------------------------------------------
# Queue and history
# ---------------------------------------------------------------------------


@dataclass
class QueueEntry:
    """A unit of human-review work tied to one content item."""

    id: str
    content_id: str
    content_type: ContentType
    status: QueueStatus
    severity: Severity
    created_at: str
    reviewed_at: Optional[str] = None
    reviewer_id: Optional[str] = None
    decision: Optional[Outcome] = None
    reason: Optional[str] = None
    author_id: str = ""
    content: str = ""
    flag_reason: str = ""
    confidence: float = 0.0
    moderation_tags: list[str] = field(default_factory=list)
    recommended_action: RecommendedAction = RecommendedAction.flag
    analysis: dict[str, Any] = field(default_factory=dict)
    updated_at: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.content_type, str):
            self.content_type = ContentType(self.content_type)
        if isinstance(self.status, str):
            self.status = QueueStatus(self.status)
        if isinstance(self.severity, str):
            self.severity = Severity(self.severity)
        if isinstance(self.decision, str):
            self.decision = Outcome(self.decision)
        if isinstance(self.recommended_action, str):
            self.recommended_action = RecommendedAction(self.recommended_action)
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contentId": self.content_id,
            "contentType": self.content_type.value,
            "status": self.status.value,
            "severity": self.severity.value,
            "createdAt": self.created_at,
            "reviewedAt": self.reviewed_at,
            "reviewerId": self.reviewer_id,
            "decision": self.decision.value if self.decision else None,
            "reason": self.reason,
            "authorId": self.author_id,
            "content": self.content,
            "flagReason": self.flag_reason,
            "confidence": self.confidence,
            "moderationTags": list(self.moderation_tags),
            "recommendedAction": self.recommended_action.value,
            "analysis": self.analysis,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> QueueEntry:
        return cls(
            id=d["id"],
            content_id=d["contentId"],
            content_type=d.get("contentType", "post"),
            status=d.get("status", "pending"),
            severity=d.get("severity", "low"),
            created_at=d.get("createdAt", ""),
            reviewed_at=d.get("reviewedAt"),
            reviewer_id=d.get("reviewerId"),
            decision=d.get("decision"),
            reason=d.get("reason"),
            author_id=d.get("authorId", ""),
            content=d.get("content", ""),
            flag_reason=d.get("flagReason", ""),
            confidence=d.get("confidence", 0.0),
            moderation_tags=d.get("moderationTags", []),
            recommended_action=d.get("recommendedAction", "flag"),
            analysis=d.get("analysis", {}),
            updated_at=d.get("updatedAt", ""),
        )


@dataclass(frozen=True)
class ModerationHistoryEntry:
    """Append-only audit record of something that happened to a content item."""

    id: str
    content_id: str
    action: HistoryAction
    actor: str
    timestamp: str
    reason: str = ""
    content_type: str = ContentType.post.value
    severity: str = Severity.low.value
    queue_entry_id: Optional[str] = None
    moderation_tags: tuple[str, ...] = ()

    @property
    def automated(self) -> bool:
        return self.actor == SYSTEM_ACTOR

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contentId": self.content_id,
            "action": HistoryAction(self.action).value,
            "actor": self.actor,
            "timestamp": self.timestamp,
            "reason": self.reason,
            "contentType": self.content_type,
            "severity": self.severity,
            "automated": self.automated,
            "queueEntryId": self.queue_entry_id,
            "moderationTags": list(self.moderation_tags),
        }

    @classmethod
    def from_dict(cls, d: dict) -> ModerationHistoryEntry:
        return cls(
            id=d["id"],
            content_id=d["contentId"],
            action=HistoryAction(d["action"]),
            actor=d["actor"],
            timestamp=d["timestamp"],
            reason=d.get("reason", ""),
            content_type=d.get("contentType", ContentType.post.value),
            severity=d.get("severity", Severity.low.value),
            queue_entry_id=d.get("queueEntryId"),
            moderation_tags=tuple(d.get("moderationTags", ())),
        )


# ---------------------------------------------------------------------------
# Results of engine operations
# ---------------------------------------------------------------------------


@dataclass
class ModerationOutcome:
    """What the policy engine decided for one submission."""

    content_id: str
    action: RecommendedAction
    analysis: AnalysisResult
    queue_entry_id: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.action != RecommendedAction.block

    def to_dict(self) -> dict[str, Any]:
        return {
            "contentId": self.content_id,
            "action": self.action.value,
            "allowed": self.allowed,
            "analysisResult": self.analysis.to_dict(),
            "queueEntryId": self.queue_entry_id,
        }


@dataclass
class BulkItemResult:
    index: int
    content_id: str
    status: str  # "success" | "error" | "cancelled"
    outcome: Optional[ModerationOutcome] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "index": self.index,
            "contentId": self.content_id,
            "status": self.status,
        }
        if self.outcome is not None:
            d["action"] = self.outcome.action.value
            d["queueEntryId"] = self.outcome.queue_entry_id
            d["result"] = self.outcome.analysis.to_dict()
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass
class ModerationStatsSnapshot:
    total: int = 0
    automated: int = 0
    manual: int = 0
    action_breakdown: dict[str, int] = field(
        default_factory=lambda: {"approved": 0, "blocked": 0, "flagged": 0}
    )
    severity_breakdown: dict[str, int] = field(
        default_factory=lambda: {"low": 0, "medium": 0, "high": 0}
    )
    queue_stats: dict[str, int] = field(
        default_factory=lambda: {"pending": 0, "escalated": 0, "totalInQueue": 0}
    )
    automation_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "automated": self.automated,
            "manual": self.manual,
            "actionBreakdown": dict(self.action_breakdown),
            "severityBreakdown": dict(self.severity_breakdown),
            "queueStats": dict(self.queue_stats),
            "automationRate": self.automation_rate,
        }
