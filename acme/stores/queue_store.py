"""Queue entry storage.

``QueueStore`` is the interface the engine talks to.  Every method is atomic
with respect to the others, which is what gives decisions their
compare-and-set semantics and keeps the "one live entry per content id"
rule under concurrent publishers.

Two implementations are provided: an in-memory store and a JSON file store
(``queue.json``, a list of entry dicts).
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from filelock import FileLock

from acme.moderation.errors import InternalError
from acme.moderation.models import LIVE_STATUSES, QueueEntry, QueueStatus


class QueueStore(ABC):
    """Interface for queue entry persistence."""

    @abstractmethod
    def add(self, entry: QueueEntry) -> QueueEntry:
        """Insert a new entry."""

    @abstractmethod
    def get(self, entry_id: str) -> Optional[QueueEntry]:
        """Return the entry with *entry_id*, or None."""

    @abstractmethod
    def find_live_by_content(self, content_id: str) -> Optional[QueueEntry]:
        """Return the live (not resolved) entry for *content_id*, if any."""

    @abstractmethod
    def list(self) -> list[QueueEntry]:
        """Return every entry."""

    @abstractmethod
    def create_or_update(
        self,
        entry: QueueEntry,
        update: Callable[[QueueEntry], Optional[dict[str, Any]]],
    ) -> tuple[QueueEntry, bool]:
        """Insert *entry* unless a live entry for the same content exists.

        When one exists, ``update(existing)`` returns the field changes to
        apply to it (or None for no change).  Returns ``(entry, created)``.
        """

    @abstractmethod
    def compare_and_set(
        self,
        entry_id: str,
        expected_status: QueueStatus,
        changes: dict[str, Any],
    ) -> Optional[QueueEntry]:
        """Apply *changes* only if the entry's status is still *expected_status*.

        Returns the updated entry, or None when the entry is missing or its
        status moved on.
        """

    @abstractmethod
    def delete(self, entry_id: str) -> bool:
        """Remove an entry.  Returns True if it existed."""

    @abstractmethod
    def delete_where(self, predicate: Callable[[QueueEntry], bool]) -> int:
        """Remove every entry matching *predicate*.  Returns the count."""


class _RowQueueStore(QueueStore):
    """Implements the interface over a list of serialised rows."""

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            yield

    @abstractmethod
    def _read_rows(self) -> list[dict]:
        ...

    @abstractmethod
    def _write_rows(self, rows: list[dict]) -> None:
        ...

    @staticmethod
    def _apply(row: dict, changes: dict[str, Any]) -> dict:
        entry = QueueEntry.from_dict(row)
        for key, value in changes.items():
            if not hasattr(entry, key):
                raise AttributeError(f"QueueEntry has no field '{key}'")
            setattr(entry, key, value)
        entry.__post_init__()
        return entry.to_dict()

    def add(self, entry: QueueEntry) -> QueueEntry:
        with self._locked():
            rows = self._read_rows()
            if any(r["id"] == entry.id for r in rows):
                raise KeyError(f"Queue entry '{entry.id}' already exists")
            rows.append(entry.to_dict())
            self._write_rows(rows)
        return QueueEntry.from_dict(entry.to_dict())

    def get(self, entry_id: str) -> Optional[QueueEntry]:
        with self._locked():
            for r in self._read_rows():
                if r["id"] == entry_id:
                    return QueueEntry.from_dict(r)
        return None

    def _live_index(self, rows: list[dict], content_id: str) -> Optional[int]:
        for i, r in enumerate(rows):
            if r["contentId"] == content_id and QueueStatus(r["status"]) in LIVE_STATUSES:
                return i
        return None

    def find_live_by_content(self, content_id: str) -> Optional[QueueEntry]:
        with self._locked():
            rows = self._read_rows()
            i = self._live_index(rows, content_id)
            return QueueEntry.from_dict(rows[i]) if i is not None else None

    def list(self) -> list[QueueEntry]:
        with self._locked():
            return [QueueEntry.from_dict(r) for r in self._read_rows()]

    def create_or_update(self, entry, update):
        with self._locked():
            rows = self._read_rows()
            i = self._live_index(rows, entry.content_id)
            if i is None:
                rows.append(entry.to_dict())
                self._write_rows(rows)
                return QueueEntry.from_dict(rows[-1]), True
            changes = update(QueueEntry.from_dict(rows[i]))
            if changes:
                rows[i] = self._apply(rows[i], changes)
                self._write_rows(rows)
            return QueueEntry.from_dict(rows[i]), False

    def compare_and_set(self, entry_id, expected_status, changes):
        with self._locked():
            rows = self._read_rows()
            for i, r in enumerate(rows):
                if r["id"] != entry_id:
                    continue
                if r["status"] != QueueStatus(expected_status).value:
                    return None
                rows[i] = self._apply(r, changes)
                self._write_rows(rows)
                return QueueEntry.from_dict(rows[i])
        return None

    def delete(self, entry_id: str) -> bool:
        with self._locked():
            rows = self._read_rows()
            kept = [r for r in rows if r["id"] != entry_id]
            if len(kept) == len(rows):
                return False
            self._write_rows(kept)
            return True

    def delete_where(self, predicate) -> int:
        with self._locked():
            rows = self._read_rows()
            kept = [r for r in rows if not predicate(QueueEntry.from_dict(r))]
            removed = len(rows) - len(kept)
            if removed:
                self._write_rows(kept)
            return removed


class InMemoryQueueStore(_RowQueueStore):
    def __init__(self) -> None:
        super().__init__()
        self._rows: list[dict] = []

    def _read_rows(self) -> list[dict]:
        return copy.deepcopy(self._rows)

    def _write_rows(self, rows: list[dict]) -> None:
        self._rows = copy.deepcopy(rows)


class JsonFileQueueStore(_RowQueueStore):
    """File-backed queue.

    Storage path: ``~/.acme/queue/`` with:
    - ``queue.json`` -- list of queue entry dicts
    - ``queue.json.lock`` -- held across each read-modify-write so that
      several processes can share one data directory
    """

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        super().__init__()
        if base_dir is None:
            self._base = Path.home() / ".acme" / "queue"
        else:
            self._base = Path(base_dir)
        self._base.mkdir(parents=True, exist_ok=True)
        self._queue_path = self._base / "queue.json"
        self._file_lock = FileLock(str(self._base / "queue.json.lock"))

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock, self._file_lock:
            yield

    def _read_rows(self) -> list[dict]:
        if not self._queue_path.exists():
            return []
        try:
            data = json.loads(self._queue_path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            # Overwriting an unreadable queue would drop open entries.
            raise InternalError(f"Cannot read queue file {self._queue_path}: {e}") from e
        return data if isinstance(data, list) else []

    def _write_rows(self, rows: list[dict]) -> None:
        with tempfile.NamedTemporaryFile(
            "w", dir=self._base, prefix="queue_", suffix=".tmp", delete=False
        ) as tmp:
            tmp.write(json.dumps(rows, indent=2, default=str))
            tmp_path = tmp.name
        try:
            os.replace(tmp_path, self._queue_path)
        except OSError:
            os.unlink(tmp_path)
            raise
