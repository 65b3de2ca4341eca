"""Analysis pipeline: run detectors over one text and aggregate the scores.

Aggregation rules:

- severity is ``high`` if any score reaches ``HIGH_SEVERITY_SCORE`` or the
  spam detector raised its hard-block signal, ``medium`` if any score
  reaches the flag threshold, ``low`` otherwise;
- the action is ``block`` when severity is high *and* the cause is a threat
  score in the high band or a spam hard block, ``flag`` when any category
  reaches the flag threshold, ``approve`` otherwise;
- if every detector that ran faulted, the item is flagged for a human
  instead of being approved on no evidence.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from acme.moderation.detectors import Detector
from acme.moderation.errors import DetectorFault, ValidationError
from acme.moderation.models import (
    ALL_CATEGORIES,
    AnalysisOptions,
    AnalysisResult,
    Category,
    DetectorResult,
    ModerationSettings,
    RecommendedAction,
    Severity,
)
from acme.moderation.settings_store import SettingsStore, validate_threshold

logger = logging.getLogger(__name__)

HIGH_SEVERITY_SCORE = 0.8

# Advisory tags attached to results, independent of the flag threshold.
_TAG_THRESHOLDS: dict[str, tuple[str, float]] = {
    Category.toxicity.value: ("toxic_language", 0.3),
    Category.spam.value: ("potential_spam", 0.4),
    Category.profanity.value: ("profanity", 0.3),
    Category.threat.value: ("potential_threat", 0.2),
    Category.pii.value: ("personal_info", 0.3),
}

_REASON_LABELS: dict[str, str] = {
    Category.toxicity.value: "toxic language",
    Category.spam.value: "spam content",
    Category.profanity.value: "inappropriate language",
    Category.threat.value: "potential threat",
    Category.pii.value: "personal information",
}

_CATEGORY_ORDER = [c.value for c in Category]


def run_detector(detector: Detector, text: str) -> DetectorResult:
    """Run one detector, timing it and absorbing any failure into the result."""
    start = time.perf_counter()
    try:
        result = detector.detect(text)
        result.score = max(0.0, min(float(result.score), 1.0))
    except Exception as e:
        if isinstance(e, DetectorFault):
            fault = e
        else:
            fault = DetectorFault(detector.category, f"{type(e).__name__}: {e}")
        logger.warning("Detector '%s' failed: %s", detector.category, fault.message)
        result = DetectorResult(category=detector.category, score=0.0, error=fault.message)
    result.duration_ms = (time.perf_counter() - start) * 1000
    return result


def aggregate(results: list[DetectorResult], flag_threshold: float) -> AnalysisResult:
    """Fold detector results into a single ``AnalysisResult``."""
    scores = {r.category: r.score for r in results}
    faults = [r.category for r in results if r.faulted]
    hard_block = any(r.hard_block for r in results if not r.faulted)
    max_score = max(scores.values(), default=0.0)

    triggered = {c for c, s in scores.items() if s >= flag_threshold}
    if hard_block:
        triggered.add(Category.spam.value)

    if max_score >= HIGH_SEVERITY_SCORE or hard_block:
        severity = Severity.high
    elif triggered:
        severity = Severity.medium
    else:
        severity = Severity.low

    threat_high = scores.get(Category.threat.value, 0.0) >= HIGH_SEVERITY_SCORE
    all_faulted = bool(results) and len(faults) == len(results)

    if severity == Severity.high and (threat_high or hard_block):
        action = RecommendedAction.block
    elif triggered or all_faulted:
        action = RecommendedAction.flag
    else:
        action = RecommendedAction.approve

    tags = [
        tag
        for category, (tag, limit) in _TAG_THRESHOLDS.items()
        if scores.get(category, 0.0) > limit
    ]
    if faults:
        tags.append("detector_fault")

    reason = ""
    if action != RecommendedAction.approve:
        labels = [_REASON_LABELS[c] for c in _CATEGORY_ORDER if c in triggered]
        verb = "Blocked" if action == RecommendedAction.block else "Flagged"
        if labels:
            reason = f"{verb} for: {', '.join(labels)}"
        elif all_faulted:
            reason = "All detectors failed; manual review required"
        else:
            reason = f"{verb} by automated system"

    return AnalysisResult(
        scores=scores,
        overall_severity=severity,
        recommended_action=action,
        triggered_categories=triggered,
        confidence=min(max_score * 1.2, 1.0),
        flag_reason=reason,
        moderation_tags=tags,
        detector_results=results,
        faults=faults,
    )


class AnalysisPipeline:
    """Runs the enabled detectors over a text and aggregates the result."""

    def __init__(self, detectors: dict[str, Detector], settings: SettingsStore) -> None:
        self._detectors = detectors
        self._settings = settings

    @property
    def settings_store(self) -> SettingsStore:
        return self._settings

    def _select(self, settings: ModerationSettings, options: AnalysisOptions) -> list[str]:
        requested = options.detectors
        if requested is not None:
            unknown = set(requested) - ALL_CATEGORIES
            if unknown:
                raise ValidationError(f"Unknown detector categories: {sorted(unknown)}")
        if options.force:
            wanted = set(requested) if requested is not None else set(ALL_CATEGORIES)
        else:
            wanted = set(settings.enabled_detectors)
            if requested is not None:
                wanted &= set(requested)
        return [c for c in _CATEGORY_ORDER if c in wanted and c in self._detectors]

    def analyze(
        self,
        text: str,
        options: Optional[AnalysisOptions] = None,
        settings: Optional[ModerationSettings] = None,
    ) -> AnalysisResult:
        """Score *text* with the selected detectors.

        *settings* lets a caller pin the snapshot it already read; by
        default the current settings are read from the store.
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Content is required")
        options = options or AnalysisOptions()
        settings = settings or self._settings.get()
        threshold = (
            validate_threshold(options.flag_threshold)
            if options.flag_threshold is not None
            else settings.flag_threshold
        )

        results = [run_detector(self._detectors[c], text) for c in self._select(settings, options)]
        return aggregate(results, threshold)
