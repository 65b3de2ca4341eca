"""Policy engine: the publish-path entry point.

``moderate_before_publish`` analyses a submission with the current settings
and, unless the verdict is ``approve``, records a queue entry and a history
entry for it.  The engine classifies; whether flagged content is visible is
the caller's decision.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from acme.moderation.errors import InternalError, ModerationError, ValidationError
from acme.moderation.models import (
    SYSTEM_ACTOR,
    AnalysisResult,
    ContentType,
    HistoryAction,
    ModerationHistoryEntry,
    ModerationOutcome,
    QueueEntry,
    QueueStatus,
    RecommendedAction,
    Severity,
    new_id,
    utcnow_iso,
)
from acme.moderation.pipeline import AnalysisPipeline
from acme.stores import HistoryStore, QueueStore

logger = logging.getLogger(__name__)

# Fields refreshed when a pending entry is re-analysed.
_SNAPSHOT_FIELDS = (
    "severity",
    "content",
    "flag_reason",
    "confidence",
    "moderation_tags",
    "recommended_action",
    "analysis",
    "updated_at",
)


def parse_content_type(value: Any) -> ContentType:
    try:
        return ContentType(value)
    except ValueError:
        allowed = ", ".join(c.value for c in ContentType)
        raise ValidationError(f"contentType must be one of: {allowed}") from None


class PolicyEngine:
    def __init__(
        self,
        pipeline: AnalysisPipeline,
        queue: QueueStore,
        history: HistoryStore,
    ) -> None:
        self._pipeline = pipeline
        self._queue = queue
        self._history = history

    def moderate_before_publish(
        self,
        content: str,
        content_type: ContentType | str,
        author_id: str,
        content_id: Optional[str] = None,
    ) -> ModerationOutcome:
        """Classify a submission and queue it for review when needed.

        Calling this twice for the same *content_id* never creates a second
        live queue entry: the pending entry's analysis snapshot is refreshed
        instead.  Raises ``ValidationError`` on bad input and
        ``InternalError`` when the engine cannot reach a verdict, so the
        caller can block on doubt.
        """
        ctype = parse_content_type(content_type)
        if not author_id:
            raise ValidationError("userId is required")

        settings = self._pipeline.settings_store.get()
        try:
            analysis = self._pipeline.analyze(content, settings=settings)
        except ModerationError:
            raise
        except Exception as e:
            logger.exception("Analysis failed for content %s", content_id)
            raise InternalError("Content analysis failed") from e

        content_id = content_id or new_id("content")
        action = analysis.recommended_action
        if action == RecommendedAction.approve:
            return ModerationOutcome(content_id=content_id, action=action, analysis=analysis)

        entry = self._record(content_id, ctype, author_id, content, analysis)
        return ModerationOutcome(
            content_id=content_id,
            action=action,
            analysis=analysis,
            queue_entry_id=entry.id,
        )

    def _record(
        self,
        content_id: str,
        content_type: ContentType,
        author_id: str,
        content: str,
        analysis: AnalysisResult,
    ) -> QueueEntry:
        now = utcnow_iso()
        blocked = analysis.recommended_action == RecommendedAction.block
        severity = Severity.high if blocked else analysis.overall_severity
        fresh = QueueEntry(
            id=new_id("mq"),
            content_id=content_id,
            content_type=content_type,
            status=QueueStatus.pending,
            severity=severity,
            created_at=now,
            author_id=author_id,
            content=content,
            flag_reason=analysis.flag_reason,
            confidence=analysis.confidence,
            moderation_tags=list(analysis.moderation_tags),
            recommended_action=analysis.recommended_action,
            analysis=analysis.to_dict(),
        )
        previous: dict[str, Any] = {}

        def refresh(existing: QueueEntry) -> Optional[dict[str, Any]]:
            if existing.status != QueueStatus.pending:
                return None
            previous.update({f: getattr(existing, f) for f in _SNAPSHOT_FIELDS})
            return {f: getattr(fresh, f) for f in _SNAPSHOT_FIELDS}

        entry, created = self._queue.create_or_update(fresh, refresh)

        try:
            self._history.append(
                ModerationHistoryEntry(
                    id=new_id("mh"),
                    content_id=content_id,
                    action=HistoryAction.blocked if blocked else HistoryAction.flagged,
                    actor=SYSTEM_ACTOR,
                    timestamp=now,
                    reason=analysis.flag_reason,
                    content_type=content_type.value,
                    severity=severity.value,
                    queue_entry_id=entry.id,
                    moderation_tags=tuple(analysis.moderation_tags),
                )
            )
        except Exception as e:
            if created:
                self._queue.delete(entry.id)
            elif previous:
                self._queue.compare_and_set(entry.id, QueueStatus.pending, previous)
            logger.error("History write failed for content %s, queue change reverted", content_id)
            if isinstance(e, ModerationError):
                raise
            raise InternalError("Could not record moderation history") from e

        logger.info(
            "%s queue entry %s for content %s (action=%s severity=%s)",
            "Created" if created else "Reused",
            entry.id,
            content_id,
            analysis.recommended_action.value,
            severity.value,
        )
        return entry
