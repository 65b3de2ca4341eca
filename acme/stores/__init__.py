"""Storage interfaces for queue entries and moderation history."""

from acme.stores.history_store import HistoryStore, InMemoryHistoryStore, JsonlHistoryStore
from acme.stores.queue_store import InMemoryQueueStore, JsonFileQueueStore, QueueStore

__all__ = [
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonlHistoryStore",
    "QueueStore",
    "InMemoryQueueStore",
    "JsonFileQueueStore",
]
