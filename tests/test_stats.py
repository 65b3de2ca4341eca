"""Tests for moderation statistics."""

from datetime import timedelta

import pytest

from acme.moderation.errors import ValidationError
from acme.moderation.models import (
    HistoryAction,
    ModerationHistoryEntry,
    QueueEntry,
    utcnow,
)
from acme.moderation.service import ModerationService
from acme.moderation.stats import StatsAggregator, timeframe_from_days
from acme.stores import InMemoryHistoryStore, InMemoryQueueStore


def _history_entry(entry_id, action, actor="system", days_ago=0, severity="medium"):
    return ModerationHistoryEntry(
        id=entry_id,
        content_id=f"c-{entry_id}",
        action=action,
        actor=actor,
        timestamp=(utcnow() - timedelta(days=days_ago)).isoformat(),
        severity=severity,
    )


def test_empty_stats():
    snap = ModerationService().get_moderation_stats()
    assert snap.total == 0
    assert snap.automation_rate == 0.0
    assert snap.action_breakdown == {"approved": 0, "blocked": 0, "flagged": 0}
    assert snap.queue_stats == {"pending": 0, "escalated": 0, "totalInQueue": 0}


def test_stats_after_moderation_activity():
    service = ModerationService()
    flagged = service.moderate_before_publish("email me at jane@example.com", "post", "u-1", "c-1")
    service.moderate_before_publish("I will kill you and hurt your family", "post", "u-2", "c-2")
    service.moderate_before_publish("what a lovely garden", "post", "u-3", "c-3")
    service.process_moderation_decision(flagged.queue_entry_id, "approve", "mod-1")

    snap = service.get_moderation_stats()
    assert snap.total == 3
    assert snap.automated == 2
    assert snap.manual == 1
    assert snap.action_breakdown == {"approved": 1, "blocked": 1, "flagged": 1}
    assert snap.severity_breakdown == {"low": 0, "medium": 2, "high": 1}
    assert snap.queue_stats == {"pending": 1, "escalated": 0, "totalInQueue": 1}
    assert snap.automation_rate == pytest.approx(2 / 3)

    assert snap.to_dict()["automationRate"] == pytest.approx(2 / 3)


def test_escalations_count_as_flagged():
    history = InMemoryHistoryStore()
    history.append(_history_entry("h1", HistoryAction.escalated, actor="mod-1"))
    snap = StatsAggregator(InMemoryQueueStore(), history).compute()
    assert snap.action_breakdown["flagged"] == 1
    assert snap.manual == 1


def test_window_excludes_older_activity():
    queue = InMemoryQueueStore()
    history = InMemoryHistoryStore()
    history.append(_history_entry("recent", HistoryAction.flagged, days_ago=1))
    history.append(_history_entry("old", HistoryAction.blocked, days_ago=10, severity="high"))
    queue.add(
        QueueEntry("mq_old", "c-old", "post", "pending", "high",
                   (utcnow() - timedelta(days=10)).isoformat())
    )
    queue.add(QueueEntry("mq_new", "c-new", "post", "escalated", "medium", utcnow().isoformat()))

    start, end = timeframe_from_days(7)
    snap = StatsAggregator(queue, history).compute(start, end)
    assert snap.total == 1
    assert snap.action_breakdown == {"approved": 0, "blocked": 0, "flagged": 1}
    assert snap.queue_stats == {"pending": 0, "escalated": 1, "totalInQueue": 1}

    everything = StatsAggregator(queue, history).compute()
    assert everything.total == 2
    assert everything.queue_stats["totalInQueue"] == 2


def test_timeframe_from_days():
    now = utcnow()
    start, end = timeframe_from_days(7, now)
    assert end == now
    assert start == now - timedelta(days=7)
    with pytest.raises(ValidationError):
        timeframe_from_days(-1)
    with pytest.raises(ValidationError, match="out of range"):
        timeframe_from_days(1_000_000)
    with pytest.raises(ValidationError):
        timeframe_from_days(float("nan"))


def test_inverted_window_rejected():
    now = utcnow()
    aggregator = StatsAggregator(InMemoryQueueStore(), InMemoryHistoryStore())
    with pytest.raises(ValidationError):
        aggregator.compute(now, now - timedelta(days=1))
