"""Tests for the analysis pipeline and score aggregation."""

import pytest

from acme.moderation.detectors import Detector, build_detectors
from acme.moderation.errors import DetectorFault, ValidationError
from acme.moderation.models import (
    ALL_CATEGORIES,
    AnalysisOptions,
    DetectorResult,
    ModerationSettings,
    RecommendedAction,
    Severity,
)
from acme.moderation.pipeline import AnalysisPipeline, aggregate
from acme.moderation.settings_store import SettingsStore

THREAT = "I will kill you and hurt your family"
SPAM = "deals at http://a.com http://b.com http://c.com"
PII = "email me at jane@example.com"


class _Broken(Detector):
    def __init__(self, category):
        self.category = category

    def detect(self, text):
        raise RuntimeError("rules unavailable")


def _pipeline(settings=None, detectors=None):
    store = SettingsStore(initial=settings or ModerationSettings())
    return AnalysisPipeline(detectors or build_detectors(), store)


# ── Verdicts ─────────────────────────────────────────────────────────


def test_clean_text_is_approved():
    result = _pipeline().analyze("Have a wonderful day, everyone!")
    assert result.recommended_action == RecommendedAction.approve
    assert result.overall_severity == Severity.low
    assert result.triggered_categories == set()
    assert result.flag_reason == ""
    assert result.confidence == 0.0
    assert set(result.scores) == ALL_CATEGORIES


def test_high_threat_is_blocked():
    result = _pipeline().analyze(THREAT)
    assert result.recommended_action == RecommendedAction.block
    assert result.overall_severity == Severity.high
    assert "threat" in result.triggered_categories
    assert result.flag_reason == "Blocked for: potential threat"


def test_spam_hard_block_is_blocked():
    result = _pipeline().analyze(SPAM)
    assert result.recommended_action == RecommendedAction.block
    assert result.overall_severity == Severity.high
    assert any(r.hard_block for r in result.detector_results)


def test_twenty_capitals_is_a_soft_spam_warning():
    shouting = "A" * 20
    result = _pipeline().analyze(shouting)
    spam = next(r for r in result.detector_results if r.category == "spam")
    assert spam.hard_block is False
    assert "all_caps" in spam.metadata["detectedPatterns"]
    assert result.scores["spam"] == pytest.approx(0.75)
    assert result.recommended_action == RecommendedAction.flag
    assert result.overall_severity == Severity.medium

    relaxed = _pipeline(ModerationSettings(flag_threshold=0.8)).analyze(shouting)
    assert relaxed.recommended_action == RecommendedAction.approve


def test_four_urls_is_blocked_as_spam():
    result = _pipeline().analyze(
        "visit http://a.com http://b.com http://c.com http://d.com"
    )
    spam = next(r for r in result.detector_results if r.category == "spam")
    assert spam.metadata["isSpam"] is True
    assert spam.metadata["urlCount"] == 4
    assert result.recommended_action == RecommendedAction.block
    assert "spam" in result.triggered_categories


def test_profanity_is_high_severity_but_only_flagged():
    result = _pipeline().analyze("this is shit")
    assert result.overall_severity == Severity.high
    assert result.recommended_action == RecommendedAction.flag
    assert result.flag_reason == "Flagged for: inappropriate language"


def test_pii_at_threshold_is_flagged_medium():
    result = _pipeline().analyze(PII)
    assert result.recommended_action == RecommendedAction.flag
    assert result.overall_severity == Severity.medium
    assert result.triggered_categories == {"pii"}
    assert "personal_info" in result.moderation_tags


def test_empty_content_rejected():
    with pytest.raises(ValidationError, match="Content is required"):
        _pipeline().analyze("")
    with pytest.raises(ValidationError):
        _pipeline().analyze("   \n\t")


def test_detector_timing_recorded():
    result = _pipeline().analyze(PII)
    assert len(result.detector_results) == len(ALL_CATEGORIES)
    assert all(r.duration_ms >= 0 for r in result.detector_results)


# ── Options and settings ─────────────────────────────────────────────


def test_threshold_override_applies_to_one_call():
    pipeline = _pipeline()
    relaxed = pipeline.analyze(PII, AnalysisOptions(flag_threshold=0.9))
    assert relaxed.recommended_action == RecommendedAction.approve
    assert pipeline.analyze(PII).recommended_action == RecommendedAction.flag


def test_invalid_threshold_override_rejected():
    with pytest.raises(ValidationError):
        _pipeline().analyze(PII, AnalysisOptions(flag_threshold=1.5))


def test_disabled_detector_does_not_run():
    settings = ModerationSettings(enabled_detectors=set(ALL_CATEGORIES) - {"pii"})
    result = _pipeline(settings).analyze(PII)
    assert "pii" not in result.scores
    assert result.recommended_action == RecommendedAction.approve


def test_requested_detectors_narrow_the_run():
    result = _pipeline().analyze(SPAM, AnalysisOptions(detectors={"spam"}))
    assert set(result.scores) == {"spam"}


def test_requested_detectors_cannot_enable_without_force():
    settings = ModerationSettings(enabled_detectors={"spam"})
    pipeline = _pipeline(settings)

    without = pipeline.analyze(PII, AnalysisOptions(detectors={"pii"}))
    assert set(without.scores) == set()

    forced = pipeline.analyze(PII, AnalysisOptions(detectors={"pii"}, force=True))
    assert set(forced.scores) == {"pii"}
    assert forced.recommended_action == RecommendedAction.flag


def test_unknown_requested_detector_rejected():
    with pytest.raises(ValidationError, match="Unknown detector"):
        _pipeline().analyze(PII, AnalysisOptions(detectors={"sarcasm"}))


# ── Fault isolation ──────────────────────────────────────────────────


def test_faulting_detector_is_isolated():
    detectors = build_detectors()
    detectors["toxicity"] = _Broken("toxicity")
    result = _pipeline(detectors=detectors).analyze(PII)

    assert result.faults == ["toxicity"]
    assert result.scores["toxicity"] == 0.0
    assert "detector_fault" in result.moderation_tags
    assert result.recommended_action == RecommendedAction.flag
    broken = next(r for r in result.detector_results if r.category == "toxicity")
    assert broken.faulted
    assert "rules unavailable" in broken.error


def test_all_detectors_faulted_is_flagged_not_approved():
    detectors = {c: _Broken(c) for c in ALL_CATEGORIES}
    result = _pipeline(detectors=detectors).analyze("hello")
    assert sorted(result.faults) == sorted(ALL_CATEGORIES)
    assert result.recommended_action == RecommendedAction.flag
    assert result.flag_reason == "All detectors failed; manual review required"


# ── Aggregation ──────────────────────────────────────────────────────


def test_aggregate_threat_in_high_band_blocks():
    result = aggregate([DetectorResult("threat", 0.85)], 0.6)
    assert result.overall_severity == Severity.high
    assert result.recommended_action == RecommendedAction.block


def test_aggregate_high_toxicity_only_flags():
    result = aggregate([DetectorResult("toxicity", 0.9), DetectorResult("threat", 0.3)], 0.6)
    assert result.overall_severity == Severity.high
    assert result.recommended_action == RecommendedAction.flag


def test_aggregate_below_threshold_approves():
    result = aggregate([DetectorResult("toxicity", 0.59)], 0.6)
    assert result.overall_severity == Severity.low
    assert result.recommended_action == RecommendedAction.approve


def test_aggregate_confidence():
    result = aggregate([DetectorResult("pii", 0.6)], 0.6)
    assert result.confidence == pytest.approx(0.72)
    assert aggregate([DetectorResult("pii", 1.0)], 0.6).confidence == 1.0


def test_detector_fault_is_recorded_not_raised():
    class _Faulting(Detector):
        category = "spam"

        def detect(self, text):
            raise DetectorFault(self.category, "pattern timeout")

    detectors = build_detectors()
    detectors["spam"] = _Faulting()
    result = _pipeline(detectors=detectors).analyze("hello")
    assert result.faults == ["spam"]
    assert result.recommended_action == RecommendedAction.approve
    assert result.detector_results[1].error == "pattern timeout"
