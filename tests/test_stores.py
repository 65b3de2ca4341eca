"""Tests for the queue and history stores."""

import json
import tempfile
import threading
from datetime import timedelta
from pathlib import Path

import pytest

from acme.moderation.errors import InternalError
from acme.moderation.models import (
    HistoryAction,
    ModerationHistoryEntry,
    QueueEntry,
    QueueStatus,
    utcnow,
    utcnow_iso,
)
from acme.stores import InMemoryQueueStore, JsonFileQueueStore, JsonlHistoryStore


def _entry(entry_id="mq_1", content_id="c-1", status="pending"):
    return QueueEntry(
        id=entry_id,
        content_id=content_id,
        content_type="post",
        status=status,
        severity="medium",
        created_at=utcnow_iso(),
        moderation_tags=["personal_info"],
    )


def _history(entry_id, content_id="c-1", days_ago=0):
    return ModerationHistoryEntry(
        id=entry_id,
        content_id=content_id,
        action=HistoryAction.flagged,
        actor="system",
        timestamp=(utcnow() - timedelta(days=days_ago)).isoformat(),
        moderation_tags=("personal_info",),
    )


# ── Queue stores ─────────────────────────────────────────────────────


def test_file_queue_persists_across_instances():
    with tempfile.TemporaryDirectory() as tmpdir:
        JsonFileQueueStore(tmpdir).add(_entry())

        store = JsonFileQueueStore(tmpdir)
        entry = store.get("mq_1")
        assert entry is not None
        assert entry.status == QueueStatus.pending
        assert entry.moderation_tags == ["personal_info"]
        assert [e.id for e in store.list()] == ["mq_1"]

        raw = json.loads((Path(tmpdir) / "queue.json").read_text())
        assert raw[0]["contentId"] == "c-1"


def test_duplicate_add_rejected():
    store = InMemoryQueueStore()
    store.add(_entry())
    with pytest.raises(KeyError):
        store.add(_entry())


def test_compare_and_set():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonFileQueueStore(tmpdir)
        store.add(_entry())

        assert store.compare_and_set("mq_1", QueueStatus.escalated, {"status": "resolved"}) is None
        updated = store.compare_and_set("mq_1", QueueStatus.pending, {"status": "escalated"})
        assert updated.status == QueueStatus.escalated
        assert store.get("mq_1").status == QueueStatus.escalated
        assert store.compare_and_set("mq_missing", QueueStatus.pending, {}) is None


def test_find_live_ignores_resolved():
    store = InMemoryQueueStore()
    store.add(_entry("mq_old", status="resolved"))
    assert store.find_live_by_content("c-1") is None
    store.add(_entry("mq_new"))
    assert store.find_live_by_content("c-1").id == "mq_new"


def test_create_or_update():
    store = InMemoryQueueStore()
    entry, created = store.create_or_update(_entry("mq_1"), lambda existing: None)
    assert created is True

    entry, created = store.create_or_update(
        _entry("mq_2"), lambda existing: {"content": "refreshed"}
    )
    assert created is False
    assert entry.id == "mq_1"
    assert entry.content == "refreshed"
    assert len(store.list()) == 1


def test_delete_and_delete_where():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonFileQueueStore(tmpdir)
        for i in range(3):
            store.add(_entry(f"mq_{i}", content_id=f"c-{i}"))
        assert store.delete("mq_0") is True
        assert store.delete("mq_0") is False
        assert store.delete_where(lambda e: e.id == "mq_2") == 1
        assert [e.id for e in JsonFileQueueStore(tmpdir).list()] == ["mq_1"]


def test_returned_entries_are_copies():
    store = InMemoryQueueStore()
    store.add(_entry())
    store.get("mq_1").moderation_tags.append("mutated")
    assert store.get("mq_1").moderation_tags == ["personal_info"]


def test_corrupt_queue_file_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "queue.json").write_text("[{broken")
        with pytest.raises(InternalError):
            JsonFileQueueStore(tmpdir).list()



def test_two_file_stores_share_one_queue():
    with tempfile.TemporaryDirectory() as tmpdir:
        stores = [JsonFileQueueStore(tmpdir), JsonFileQueueStore(tmpdir)]
        errors = []

        def publish(store, prefix):
            try:
                for i in range(50):
                    store.create_or_update(
                        _entry(f"mq_{prefix}_{i}", content_id=f"{prefix}-{i}"), lambda existing: None
                    )
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=publish, args=(store, f"s{n}")) for n, store in enumerate(stores)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(JsonFileQueueStore(tmpdir).list()) == 100
        assert list(Path(tmpdir).glob("*.tmp")) == []


def test_concurrent_decisions_across_file_stores_have_one_winner():
    with tempfile.TemporaryDirectory() as tmpdir:
        JsonFileQueueStore(tmpdir).add(_entry())
        stores = [JsonFileQueueStore(tmpdir) for _ in range(4)]
        results = []
        barrier = threading.Barrier(len(stores))

        def decide(store, reviewer):
            barrier.wait()
            results.append(
                store.compare_and_set(
                    "mq_1", QueueStatus.pending, {"status": "resolved", "reviewer_id": reviewer}
                )
            )

        threads = [
            threading.Thread(target=decide, args=(store, f"r{n}")) for n, store in enumerate(stores)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert JsonFileQueueStore(tmpdir).get("mq_1").reviewer_id == winners[0].reviewer_id

# ── History store ────────────────────────────────────────────────────


def test_history_persists_in_daily_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonlHistoryStore(tmpdir)
        store.append(_history("h-old", days_ago=2))
        store.append(_history("h-new"))
        store.append(_history("h-other", content_id="c-2"))

        files = sorted(p.name for p in Path(tmpdir).glob("*.jsonl"))
        assert len(files) == 2

        reloaded = JsonlHistoryStore(tmpdir)
        assert [h.id for h in reloaded.for_content("c-1")] == ["h-old", "h-new"]
        assert reloaded.for_content("c-1")[0].moderation_tags == ("personal_info",)
        assert len(reloaded.all()) == 3


def test_history_between_window():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonlHistoryStore(tmpdir)
        store.append(_history("h-old", days_ago=5))
        store.append(_history("h-new"))
        start = utcnow() - timedelta(days=1)
        assert [h.id for h in store.between(start, None)] == ["h-new"]


def test_malformed_history_line_skipped():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonlHistoryStore(tmpdir)
        store.append(_history("h-1"))
        day_file = next(Path(tmpdir).glob("*.jsonl"))
        with day_file.open("a") as fh:
            fh.write("not json\n")
        store.append(_history("h-2"))
        assert [h.id for h in store.all()] == ["h-1", "h-2"]
