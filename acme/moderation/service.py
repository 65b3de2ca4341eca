"""ModerationService -- one object wiring the engine components together.

This is the surface the CLI and the HTTP layer call.  Construct it with
``build_service`` from an ``EngineConfig``, or directly with stores for
tests and embedding.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Optional, Sequence

from acme.config import EngineConfig
from acme.moderation.bulk import DEFAULT_BULK_WORKERS, BulkRunner
from acme.moderation.decisions import DecisionProcessor
from acme.moderation.detectors import Detector, build_detectors, load_rules
from acme.moderation.models import (
    AnalysisOptions,
    AnalysisResult,
    BulkItemResult,
    ContentType,
    ModerationHistoryEntry,
    ModerationOutcome,
    ModerationSettings,
    ModerationStatsSnapshot,
    QueueEntry,
)
from acme.moderation.pipeline import AnalysisPipeline
from acme.moderation.policy import PolicyEngine
from acme.moderation.queue import DEFAULT_RETENTION_DAYS, QueueManager
from acme.moderation.settings_store import SettingsStore
from acme.moderation.stats import StatsAggregator
from acme.stores import (
    HistoryStore,
    InMemoryHistoryStore,
    InMemoryQueueStore,
    JsonFileQueueStore,
    JsonlHistoryStore,
    QueueStore,
)

logger = logging.getLogger(__name__)


class ModerationService:
    def __init__(
        self,
        queue: Optional[QueueStore] = None,
        history: Optional[HistoryStore] = None,
        settings: Optional[SettingsStore] = None,
        detectors: Optional[dict[str, Detector]] = None,
        bulk_workers: int = DEFAULT_BULK_WORKERS,
    ) -> None:
        self.queue_store = queue or InMemoryQueueStore()
        self.history_store = history or InMemoryHistoryStore()
        self.settings_store = settings or SettingsStore()

        self.pipeline = AnalysisPipeline(detectors or build_detectors(), self.settings_store)
        self.policy = PolicyEngine(self.pipeline, self.queue_store, self.history_store)
        self.queue = QueueManager(self.queue_store, self.history_store)
        self.decisions = DecisionProcessor(self.queue_store, self.history_store)
        self.bulk = BulkRunner(self.policy, max_workers=bulk_workers)
        self.stats = StatsAggregator(self.queue_store, self.history_store)

    # -- analysis and publish path -------------------------------------------

    def analyze_content(
        self, content: str, options: Optional[AnalysisOptions] = None
    ) -> AnalysisResult:
        """Dry-run analysis: no queue or history side effects."""
        return self.pipeline.analyze(content, options)

    def moderate_before_publish(
        self,
        content: str,
        content_type: ContentType | str,
        author_id: str,
        content_id: Optional[str] = None,
    ) -> ModerationOutcome:
        return self.policy.moderate_before_publish(content, content_type, author_id, content_id)

    def bulk_moderate(
        self, contents: Sequence[Any], cancel: Optional[threading.Event] = None
    ) -> list[BulkItemResult]:
        return self.bulk.run(contents, cancel=cancel)

    # -- queue ---------------------------------------------------------------

    def get_moderation_queue(
        self,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> list[QueueEntry]:
        return self.queue.get_queue(status=status, severity=severity, content_type=content_type)

    def get_moderation_history(self, content_id: str) -> list[ModerationHistoryEntry]:
        return self.queue.get_history(content_id)

    def process_moderation_decision(
        self,
        queue_id: str,
        decision: str,
        reviewer_id: str,
        reason: Optional[str] = None,
    ) -> QueueEntry:
        return self.decisions.process(queue_id, decision, reviewer_id, reason)

    def cleanup_old_queue_items(self, older_than_days: float = DEFAULT_RETENTION_DAYS) -> int:
        return self.queue.cleanup(older_than_days)

    # -- stats and settings --------------------------------------------------

    def get_moderation_stats(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ModerationStatsSnapshot:
        return self.stats.compute(start, end)

    def get_moderation_settings(self) -> ModerationSettings:
        return self.settings_store.get()

    def update_moderation_settings(self, update: dict[str, Any]) -> ModerationSettings:
        return self.settings_store.update(update)


def build_service(config: EngineConfig) -> ModerationService:
    """Create a service backed by the stores *config* selects."""
    detectors = build_detectors(load_rules(config.rules_path))
    if config.storage == "memory":
        queue: QueueStore = InMemoryQueueStore()
        history: HistoryStore = InMemoryHistoryStore()
        settings = SettingsStore()
    else:
        queue = JsonFileQueueStore(config.data_dir / "queue")
        history = JsonlHistoryStore(config.data_dir / "history")
        settings = SettingsStore(config.data_dir / "settings.json")
    logger.debug("Moderation service using %s storage at %s", config.storage, config.data_dir)
    return ModerationService(
        queue=queue,
        history=history,
        settings=settings,
        detectors=detectors,
        bulk_workers=config.bulk_workers,
    )
