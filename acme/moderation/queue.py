"""Read side of the review queue, plus retention cleanup."""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any, Optional

from acme.moderation.errors import ValidationError
from acme.moderation.models import (
    CLOSED_STATUSES,
    ContentType,
    ModerationHistoryEntry,
    QueueEntry,
    QueueStatus,
    Severity,
    parse_timestamp,
    utcnow,
)
from acme.stores import HistoryStore, QueueStore

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


def _parse_filter(enum_cls: type, name: str, value: Any):
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed}") from None


class QueueManager:
    def __init__(self, queue: QueueStore, history: HistoryStore) -> None:
        self._queue = queue
        self._history = history

    def get_queue(
        self,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> list[QueueEntry]:
        """Return queue entries matching every given filter, newest first."""
        status_f = _parse_filter(QueueStatus, "status", status)
        severity_f = _parse_filter(Severity, "severity", severity)
        type_f = _parse_filter(ContentType, "contentType", content_type)

        entries = self._queue.list()
        if status_f:
            entries = [e for e in entries if e.status == status_f]
        if severity_f:
            entries = [e for e in entries if e.severity == severity_f]
        if type_f:
            entries = [e for e in entries if e.content_type == type_f]

        entries.sort(key=lambda e: parse_timestamp(e.created_at), reverse=True)
        return entries

    def get_history(self, content_id: str) -> list[ModerationHistoryEntry]:
        """Return the audit trail for *content_id*, oldest first."""
        if not content_id:
            raise ValidationError("Content ID required")
        return self._history.for_content(content_id)

    def cleanup(self, older_than_days: float = DEFAULT_RETENTION_DAYS) -> int:
        """Delete reviewed/resolved entries decided more than *older_than_days* ago.

        Pending and escalated entries are never removed, however old.
        """
        if isinstance(older_than_days, bool) or not isinstance(older_than_days, (int, float)):
            raise ValidationError("olderThanDays must be a number")
        if not math.isfinite(older_than_days):
            raise ValidationError("olderThanDays must be a finite number")
        if older_than_days < 0:
            raise ValidationError("olderThanDays must not be negative")

        try:
            cutoff = utcnow() - timedelta(days=older_than_days)
        except OverflowError:
            raise ValidationError(f"olderThanDays of {older_than_days} is out of range") from None

        def expired(entry: QueueEntry) -> bool:
            if entry.status not in CLOSED_STATUSES:
                return False
            stamp = entry.reviewed_at or entry.created_at
            return parse_timestamp(stamp) < cutoff

        removed = self._queue.delete_where(expired)
        logger.info("Queue cleanup removed %d entries older than %s days", removed, older_than_days)
        return removed
