"""Decision processor: the only writer of terminal queue outcomes.

Transitions:

    pending / reviewed / escalated --approve--> resolved (decision=approved)
    pending / reviewed / escalated --block----> resolved (decision=blocked)
    pending / reviewed ------------escalate---> escalated

Each transition is a compare-and-set on the status the processor read, so
of two concurrent decisions on the same entry at most one wins.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from acme.moderation.errors import (
    ConflictError,
    InternalError,
    ModerationError,
    NotFoundError,
    ValidationError,
)
from acme.moderation.models import (
    Decision,
    HistoryAction,
    ModerationHistoryEntry,
    Outcome,
    QueueEntry,
    QueueStatus,
    new_id,
    utcnow_iso,
)
from acme.stores import HistoryStore, QueueStore

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[Decision, tuple[QueueStatus, Optional[Outcome], HistoryAction]] = {
    Decision.approve: (QueueStatus.resolved, Outcome.approved, HistoryAction.approved),
    Decision.block: (QueueStatus.resolved, Outcome.blocked, HistoryAction.blocked),
    Decision.escalate: (QueueStatus.escalated, None, HistoryAction.escalated),
}

_REVERTIBLE = ("status", "decision", "reviewer_id", "reviewed_at", "reason", "updated_at")


def parse_decision(value: Any) -> Decision:
    try:
        return Decision(value)
    except ValueError:
        allowed = ", ".join(d.value for d in Decision)
        raise ValidationError(f"decision must be one of: {allowed}") from None


class DecisionProcessor:
    def __init__(self, queue: QueueStore, history: HistoryStore) -> None:
        self._queue = queue
        self._history = history

    def process(
        self,
        queue_id: str,
        decision: Decision | str,
        reviewer_id: str,
        reason: Optional[str] = None,
    ) -> QueueEntry:
        """Apply a reviewer's decision to a queue entry.

        Raises ``NotFoundError`` for an unknown *queue_id* and
        ``ConflictError`` when the entry is already resolved (or already
        escalated, for an escalation) or another decision won the race.
        """
        verdict = parse_decision(decision)
        if not queue_id:
            raise ValidationError("Queue ID and decision required")
        if not reviewer_id:
            raise ValidationError("A reviewer identity is required")

        entry = self._queue.get(queue_id)
        if entry is None:
            raise NotFoundError("Queue item not found")
        if entry.status == QueueStatus.resolved:
            raise ConflictError(f"Queue item {queue_id} is already resolved")
        if verdict == Decision.escalate and entry.status == QueueStatus.escalated:
            raise ConflictError(f"Queue item {queue_id} is already escalated")

        new_status, outcome, history_action = _TRANSITIONS[verdict]
        now = utcnow_iso()
        previous = {f: getattr(entry, f) for f in _REVERTIBLE}
        updated = self._queue.compare_and_set(
            queue_id,
            entry.status,
            {
                "status": new_status,
                "decision": outcome,
                "reviewer_id": reviewer_id,
                "reviewed_at": now,
                "reason": reason,
                "updated_at": now,
            },
        )
        if updated is None:
            if self._queue.get(queue_id) is None:
                raise NotFoundError("Queue item not found")
            logger.warning("Decision on %s by %s lost a race", queue_id, reviewer_id)
            raise ConflictError(f"Queue item {queue_id} was changed by another decision")

        try:
            self._history.append(
                ModerationHistoryEntry(
                    id=new_id("mh"),
                    content_id=updated.content_id,
                    action=history_action,
                    actor=reviewer_id,
                    timestamp=now,
                    reason=reason or f"{history_action.value} by moderator",
                    content_type=updated.content_type.value,
                    severity=updated.severity.value,
                    queue_entry_id=updated.id,
                    moderation_tags=tuple(updated.moderation_tags),
                )
            )
        except Exception as e:
            self._queue.compare_and_set(queue_id, new_status, previous)
            logger.error("History write failed for decision on %s, decision reverted", queue_id)
            if isinstance(e, ModerationError):
                raise
            raise InternalError("Could not record moderation history") from e

        logger.info(
            "Queue item %s %s by %s (status=%s)",
            queue_id,
            history_action.value,
            reviewer_id,
            new_status.value,
        )
        return updated
