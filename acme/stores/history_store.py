"""Append-only moderation history.

History entries are never updated or deleted.  The file-backed store
writes newline-delimited JSON in daily files under ``~/.acme/history/``.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

from acme.moderation.errors import InternalError
from acme.moderation.models import ModerationHistoryEntry, parse_timestamp

logger = logging.getLogger(__name__)


def _in_window(
    entry: ModerationHistoryEntry,
    start: Optional[datetime],
    end: Optional[datetime],
) -> bool:
    ts = parse_timestamp(entry.timestamp)
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True


class HistoryStore(ABC):
    """Interface for the moderation audit trail."""

    @abstractmethod
    def append(self, entry: ModerationHistoryEntry) -> ModerationHistoryEntry:
        """Record *entry*."""

    @abstractmethod
    def all(self) -> list[ModerationHistoryEntry]:
        """Return every entry in chronological order."""

    def for_content(self, content_id: str) -> list[ModerationHistoryEntry]:
        """Return the entries for *content_id*, oldest first."""
        return [e for e in self.all() if e.content_id == content_id]

    def between(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[ModerationHistoryEntry]:
        """Return the entries with ``start <= timestamp <= end``."""
        return [e for e in self.all() if _in_window(e, start, end)]


class InMemoryHistoryStore(HistoryStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[ModerationHistoryEntry] = []

    def append(self, entry: ModerationHistoryEntry) -> ModerationHistoryEntry:
        with self._lock:
            self._entries.append(entry)
        return entry

    def all(self) -> list[ModerationHistoryEntry]:
        with self._lock:
            entries = list(self._entries)
        entries.sort(key=lambda e: parse_timestamp(e.timestamp))
        return entries


class JsonlHistoryStore(HistoryStore):
    """File-based JSONL history, one file per UTC day."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._lock = threading.Lock()
        self._base_dir = Path(base_dir) if base_dir else Path.home() / ".acme" / "history"
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _log_file_for(self, entry: ModerationHistoryEntry) -> Path:
        day = parse_timestamp(entry.timestamp).strftime("%Y-%m-%d")
        return self._base_dir / f"{day}.jsonl"

    def append(self, entry: ModerationHistoryEntry) -> ModerationHistoryEntry:
        line = json.dumps(entry.to_dict()) + "\n"
        with self._lock:
            try:
                with self._log_file_for(entry).open("a", encoding="utf-8") as fh:
                    fh.write(line)
            except OSError as e:
                raise InternalError(f"Cannot write moderation history: {e}") from e
        return entry

    def all(self) -> list[ModerationHistoryEntry]:
        entries: list[ModerationHistoryEntry] = []
        with self._lock:
            paths = sorted(self._base_dir.glob("*.jsonl"))
            for path in paths:
                try:
                    text = path.read_text(encoding="utf-8")
                except OSError as e:
                    raise InternalError(f"Cannot read moderation history {path}: {e}") from e
                for lineno, line in enumerate(text.splitlines(), start=1):
                    if not line.strip():
                        continue
                    try:
                        entries.append(ModerationHistoryEntry.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, ValueError):
                        logger.warning("Skipping malformed history line %s:%d", path.name, lineno)
        entries.sort(key=lambda e: parse_timestamp(e.timestamp))
        return entries
