"""Moderation router -- one resource family, dispatched on ``action``.

``GET /moderation?action=...`` reads queue, stats, settings and history.
``POST /moderation`` with ``{"action": ..., ...}`` runs analysis,
moderation, decisions, bulk moderation, settings updates and cleanup.

POST bodies are validated into one request model per action and then
dispatched through an explicit handler table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

import pydantic
from fastapi import APIRouter, Body, Depends, Query
from pydantic import TypeAdapter

from acme.config import EngineConfig
from acme.moderation.errors import ValidationError
from acme.moderation.models import AnalysisOptions
from acme.moderation.service import ModerationService, build_service
from acme.moderation.stats import timeframe_from_days
from web.backend.app.error_handlers import format_validation_errors
from web.backend.app.middleware.auth import Reviewer, get_config, get_current_reviewer
from web.backend.app.models.api import (
    POST_ACTIONS,
    AnalysisResultResponse,
    AnalyzeEnvelope,
    AnalyzeRequest,
    BulkEnvelope,
    BulkItemResponse,
    BulkModerateRequest,
    CleanupEnvelope,
    CleanupRequest,
    DecisionRequest,
    HistoryEntryResponse,
    HistoryEnvelope,
    ModerateEnvelope,
    ModerateRequest,
    ModerationOutcomeResponse,
    ModerationPostRequest,
    QueueEntryResponse,
    QueueEnvelope,
    SettingsEnvelope,
    SettingsResponse,
    StatsEnvelope,
    StatsResponse,
    SuccessEnvelope,
    UpdateSettingsRequest,
)

router = APIRouter(tags=["moderation"])

_post_request = TypeAdapter(ModerationPostRequest)


# ---------------------------------------------------------------------------
# Service singleton
# ---------------------------------------------------------------------------

_service: ModerationService | None = None


def get_service(config: EngineConfig = Depends(get_config)) -> ModerationService:
    """Return the process-wide ModerationService, building it on first use."""
    global _service
    if _service is None:
        _service = build_service(config)
    return _service


# ---------------------------------------------------------------------------
# GET actions
# ---------------------------------------------------------------------------


@dataclass
class _ReadParams:
    status: Optional[str] = None
    severity: Optional[str] = None
    content_type: Optional[str] = None
    timeframe: Optional[str] = None
    content_id: Optional[str] = None


def _parse_days(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValidationError("timeframe must be a number of days") from None


def _read_queue(service: ModerationService, params: _ReadParams):
    entries = service.get_moderation_queue(
        status=params.status,
        severity=params.severity,
        content_type=params.content_type,
    )
    return QueueEnvelope(queue=[QueueEntryResponse.model_validate(e.to_dict()) for e in entries])


def _read_stats(service: ModerationService, params: _ReadParams):
    start = end = None
    if params.timeframe:
        start, end = timeframe_from_days(_parse_days(params.timeframe))
    snapshot = service.get_moderation_stats(start, end)
    return StatsEnvelope(stats=StatsResponse.model_validate(snapshot.to_dict()))


def _read_settings(service: ModerationService, params: _ReadParams):
    settings = service.get_moderation_settings()
    return SettingsEnvelope(settings=SettingsResponse.model_validate(settings.to_dict()))


def _read_history(service: ModerationService, params: _ReadParams):
    if not params.content_id:
        raise ValidationError("Content ID required")
    entries = service.get_moderation_history(params.content_id)
    return HistoryEnvelope(
        history=[HistoryEntryResponse.model_validate(e.to_dict()) for e in entries]
    )


_GET_HANDLERS: dict[str, Callable[[ModerationService, _ReadParams], Any]] = {
    "queue": _read_queue,
    "stats": _read_stats,
    "settings": _read_settings,
    "history": _read_history,
}


@router.get("/moderation", summary="Read moderation queue, stats, settings or history")
def moderation_get(
    action: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    content_type: Optional[str] = Query(None, alias="contentType"),
    timeframe: Optional[str] = Query(None),
    content_id: Optional[str] = Query(None, alias="contentId"),
    reviewer: Reviewer = Depends(get_current_reviewer),
    service: ModerationService = Depends(get_service),
):
    handler = _GET_HANDLERS.get(action or "")
    if handler is None:
        raise ValidationError("Invalid action")
    params = _ReadParams(
        status=status or None,
        severity=severity or None,
        content_type=content_type or None,
        timeframe=timeframe or None,
        content_id=content_id or None,
    )
    return handler(service, params)


# ---------------------------------------------------------------------------
# POST actions
# ---------------------------------------------------------------------------


def _analyze(request: AnalyzeRequest, reviewer: Reviewer, service: ModerationService):
    options = None
    if request.options is not None:
        detectors = request.options.detectors
        options = AnalysisOptions(
            detectors=set(detectors) if detectors is not None else None,
            force=request.options.force,
            flag_threshold=request.options.flag_threshold,
        )
    result = service.analyze_content(request.content, options)
    return AnalyzeEnvelope(result=AnalysisResultResponse.model_validate(result.to_dict()))


def _moderate(request: ModerateRequest, reviewer: Reviewer, service: ModerationService):
    outcome = service.moderate_before_publish(
        request.content,
        request.content_type,
        request.user_id,
        request.content_id,
    )
    return ModerateEnvelope(result=ModerationOutcomeResponse.model_validate(outcome.to_dict()))


def _decide(request: DecisionRequest, reviewer: Reviewer, service: ModerationService):
    service.process_moderation_decision(
        request.queue_id,
        request.decision,
        reviewer.id,
        request.reason,
    )
    return SuccessEnvelope()


def _bulk_moderate(request: BulkModerateRequest, reviewer: Reviewer, service: ModerationService):
    results = service.bulk_moderate(request.contents)
    return BulkEnvelope(results=[BulkItemResponse.model_validate(r.to_dict()) for r in results])


def _update_settings(request: UpdateSettingsRequest, reviewer: Reviewer, service: ModerationService):
    service.update_moderation_settings(request.settings)
    return SuccessEnvelope()


def _cleanup(request: CleanupRequest, reviewer: Reviewer, service: ModerationService):
    cleaned = service.cleanup_old_queue_items(request.older_than_days)
    return CleanupEnvelope(cleaned_count=cleaned)


_POST_HANDLERS: dict[type, Callable[[Any, Reviewer, ModerationService], Any]] = {
    AnalyzeRequest: _analyze,
    ModerateRequest: _moderate,
    DecisionRequest: _decide,
    BulkModerateRequest: _bulk_moderate,
    UpdateSettingsRequest: _update_settings,
    CleanupRequest: _cleanup,
}


@router.post("/moderation", summary="Run a moderation action")
def moderation_post(
    body: Any = Body(None),
    reviewer: Reviewer = Depends(get_current_reviewer),
    service: ModerationService = Depends(get_service),
):
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    if body.get("action") not in POST_ACTIONS:
        raise ValidationError("Invalid action")
    try:
        request = _post_request.validate_python(body)
    except pydantic.ValidationError as e:
        raise ValidationError(format_validation_errors(e.errors())) from None
    return _POST_HANDLERS[type(request)](request, reviewer, service)
