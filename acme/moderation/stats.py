"""Moderation statistics over a time window."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

from acme.moderation.errors import ValidationError
from acme.moderation.models import (
    CLOSED_STATUSES,
    HistoryAction,
    ModerationStatsSnapshot,
    QueueStatus,
    parse_timestamp,
    utcnow,
)
from acme.stores import HistoryStore, QueueStore

# Escalations are reported with flags: both mean "needs a human".
_ACTION_BUCKETS = {
    HistoryAction.approved: "approved",
    HistoryAction.blocked: "blocked",
    HistoryAction.flagged: "flagged",
    HistoryAction.escalated: "flagged",
}


def timeframe_from_days(days: float, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Return ``(now - days, now)``."""
    if (
        isinstance(days, bool)
        or not isinstance(days, (int, float))
        or not math.isfinite(days)
        or days < 0
    ):
        raise ValidationError("timeframe must be a non-negative number of days")
    end = now or utcnow()
    try:
        return end - timedelta(days=days), end
    except OverflowError:
        raise ValidationError(f"timeframe of {days} days is out of range") from None


class StatsAggregator:
    """Reads history and queue state; never writes."""

    def __init__(self, queue: QueueStore, history: HistoryStore) -> None:
        self._queue = queue
        self._history = history

    def compute(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ModerationStatsSnapshot:
        """Summarise moderation activity between *start* and *end* (inclusive).

        Without bounds the whole history is used.  Queue counts cover the
        entries created inside the same window.
        """
        if start is not None and end is not None and start > end:
            raise ValidationError("timeframe start must not be after its end")

        snap = ModerationStatsSnapshot()
        for entry in self._history.between(start, end):
            snap.total += 1
            if entry.automated:
                snap.automated += 1
            else:
                snap.manual += 1
            snap.action_breakdown[_ACTION_BUCKETS[HistoryAction(entry.action)]] += 1
            if entry.severity in snap.severity_breakdown:
                snap.severity_breakdown[entry.severity] += 1

        for q in self._queue.list():
            created = parse_timestamp(q.created_at)
            if start is not None and created < start:
                continue
            if end is not None and created > end:
                continue
            if q.status == QueueStatus.pending:
                snap.queue_stats["pending"] += 1
            elif q.status == QueueStatus.escalated:
                snap.queue_stats["escalated"] += 1
            if q.status not in CLOSED_STATUSES:
                snap.queue_stats["totalInQueue"] += 1

        snap.automation_rate = snap.automated / snap.total if snap.total else 0.0
        return snap
