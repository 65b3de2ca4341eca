"""Bulk runner: push many submissions through the policy engine.

Work is spread over a fixed-size thread pool.  Every input produces exactly
one result, in input order, tagged ``success``, ``error`` or ``cancelled``.
A failing item never fails the batch and leaves nothing behind in the
queue or history (the policy engine rolls back its own writes).
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Sequence

from acme.moderation.errors import ModerationError, ValidationError
from acme.moderation.models import BulkItemResult, ContentRecord
from acme.moderation.policy import PolicyEngine, parse_content_type

logger = logging.getLogger(__name__)

DEFAULT_BULK_WORKERS = 4


def coerce_record(item: Any) -> ContentRecord:
    """Build a ``ContentRecord`` from a record or a wire-format dict.

    Accepts both the record field names (``id``, ``text``, ``authorId``) and
    the publish-call names (``contentId``, ``content``, ``userId``).
    """
    if isinstance(item, ContentRecord):
        return item
    if not isinstance(item, dict):
        raise ValidationError("Each item must be an object")
    content_id = item.get("id") or item.get("contentId")
    text = item.get("text", item.get("content"))
    author_id = item.get("authorId") or item.get("userId")
    if not content_id:
        raise ValidationError("contentId is required")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Content is required")
    if not author_id:
        raise ValidationError("userId is required")
    return ContentRecord(
        id=str(content_id),
        content_type=parse_content_type(item.get("contentType", "post")),
        text=text,
        author_id=str(author_id),
        submitted_at=item.get("submittedAt", ""),
    )


def _item_id(item: Any) -> str:
    if isinstance(item, ContentRecord):
        return item.id
    if isinstance(item, dict):
        return str(item.get("id") or item.get("contentId") or "")
    return ""


class BulkRunner:
    def __init__(self, policy: PolicyEngine, max_workers: int = DEFAULT_BULK_WORKERS) -> None:
        if max_workers < 1:
            raise ValidationError("max_workers must be at least 1")
        self._policy = policy
        self.max_workers = max_workers

    def _run_one(
        self,
        index: int,
        item: Any,
        cancel: Optional[threading.Event],
    ) -> BulkItemResult:
        content_id = _item_id(item)
        if cancel is not None and cancel.is_set():
            return BulkItemResult(index=index, content_id=content_id, status="cancelled")
        try:
            record = coerce_record(item)
            outcome = self._policy.moderate_before_publish(
                record.text, record.content_type, record.author_id, record.id
            )
        except ModerationError as e:
            logger.warning("Bulk item %d (%s) failed: %s", index, content_id, e.message)
            return BulkItemResult(index=index, content_id=content_id, status="error", error=e.message)
        except Exception as e:
            logger.exception("Bulk item %d (%s) failed unexpectedly", index, content_id)
            return BulkItemResult(
                index=index, content_id=content_id, status="error", error=f"{type(e).__name__}: {e}"
            )
        return BulkItemResult(index=index, content_id=record.id, status="success", outcome=outcome)

    def run(
        self,
        items: Sequence[Any],
        cancel: Optional[threading.Event] = None,
    ) -> list[BulkItemResult]:
        """Moderate *items* and return one result per item, in order.

        Setting *cancel* stops items that have not started yet; items already
        being processed run to completion.
        """
        if not isinstance(items, (list, tuple)):
            raise ValidationError("Contents array required")
        if not items:
            return []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self._run_one, i, item, cancel) for i, item in enumerate(items)
            ]
            results = [f.result() for f in futures]

        failed = sum(1 for r in results if r.status == "error")
        cancelled = sum(1 for r in results if r.status == "cancelled")
        logger.info(
            "Bulk moderation finished: %d items, %d failed, %d cancelled",
            len(results),
            failed,
            cancelled,
        )
        return results
