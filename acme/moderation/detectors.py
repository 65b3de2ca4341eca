"""Heuristic detectors, one per violation category.

Each detector maps text to a ``DetectorResult`` holding a score in [0, 1]
and the evidence that produced it.  Detectors compile their rules once at
construction and keep no mutable state afterwards, so a single instance can
be shared across threads.

The rules themselves (denylists, regexes, weights and thresholds) are data,
loaded from ``rules.yaml`` next to this module or from an override file.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Optional

import yaml

from acme.moderation.errors import ValidationError
from acme.moderation.models import ALL_CATEGORIES, Category, DetectorResult

DEFAULT_RULES_PATH = Path(__file__).with_name("rules.yaml")

_URL_PATTERN = re.compile(r"https?://[^\s]+", re.IGNORECASE)
_SYMBOL_PATTERN = re.compile(r"""[!@#$%^&*()_+=\[\]{}|;':",./<>?~`]""")


def load_rules(path: str | Path | None = None) -> dict[str, Any]:
    """Load detector rules from YAML.  Defaults to the packaged rule file."""
    rules_path = Path(path) if path else DEFAULT_RULES_PATH
    try:
        with open(rules_path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot load detector rules from {rules_path}: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError(f"Detector rules in {rules_path} must be a mapping")
    unknown = set(data) - ALL_CATEGORIES
    if unknown:
        raise ValidationError(f"Unknown detector categories in rules: {sorted(unknown)}")
    return data


def redact(word: str) -> str:
    """Keep the first and last character, star out the rest."""
    if len(word) > 2:
        return word[0] + "*" * (len(word) - 2) + word[-1]
    return "*" * len(word)


def _word_pattern(word: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


class Detector:
    """Base class.  Subclasses implement ``detect``."""

    category: str = ""

    def detect(self, text: str) -> DetectorResult:
        raise NotImplementedError

    def __call__(self, text: str) -> DetectorResult:
        return self.detect(text)


class ProfanityDetector(Detector):
    """Word-boundary match against a denylist.  Any hit scores 1.0."""

    category = Category.profanity.value

    def __init__(self, rules: dict[str, Any]) -> None:
        terms = rules.get("terms", [])
        self._patterns: list[tuple[str, re.Pattern[str]]] = [
            (t.lower(), _word_pattern(t)) for t in terms
        ]

    def detect(self, text: str) -> DetectorResult:
        matched: list[str] = []
        redacted = text
        for term, pattern in self._patterns:
            if pattern.search(text):
                matched.append(term)
                redacted = pattern.sub(lambda m: redact(m.group(0)), redacted)
        return DetectorResult(
            category=self.category,
            score=1.0 if matched else 0.0,
            matched_evidence=matched,
            metadata={"redactedText": redacted} if matched else {},
        )


class SpamDetector(Detector):
    """Union of spam heuristics.

    Three or more URLs is a hard block signal and scores 1.0.  Everything
    else is a soft warning worth ``warning_weight`` each, capped below the
    high-severity band so soft signals alone never block.
    """

    category = Category.spam.value

    def __init__(self, rules: dict[str, Any]) -> None:
        self.warning_weight = float(rules.get("warning_weight", 0.25))
        self.max_warning_score = float(rules.get("max_warning_score", 0.75))
        self.caps_min_length = int(rules.get("caps_min_length", 20))
        self.url_limit = int(rules.get("url_limit", 3))
        self.phrase_min_span = int(rules.get("phrase_min_span", 6))
        self.diversity_min_words = int(rules.get("diversity_min_words", 10))
        self.diversity_min_ratio = float(rules.get("diversity_min_ratio", 0.3))
        self.symbol_max_ratio = float(rules.get("symbol_max_ratio", 0.3))

        run = int(rules.get("repeated_char_run", 5))
        self._repeated_chars = re.compile(rf"(\S)\1{{{run - 1},}}")
        max_len = int(rules.get("phrase_max_length", 10))
        repeats = int(rules.get("phrase_min_repeats", 3))
        self._repeated_phrase = re.compile(rf"(.{{1,{max_len}}}?)\1{{{repeats - 1},}}", re.DOTALL)
        self._all_caps = re.compile(r"[A-Z\s!?.,']+")
        self._promotional = [
            re.compile(p, re.IGNORECASE) for p in rules.get("promotional_patterns", [])
        ]
        self._investment = [
            re.compile(p, re.IGNORECASE) for p in rules.get("investment_patterns", [])
        ]

    def _find_repeated_phrase(self, text: str) -> Optional[str]:
        for m in self._repeated_phrase.finditer(text):
            unit = m.group(1)
            if any(ch.isalnum() for ch in unit) and len(m.group(0)) >= self.phrase_min_span:
                return m.group(0)
        return None

    def detect(self, text: str) -> DetectorResult:
        stripped = text.strip()
        warnings: list[str] = []
        patterns: list[str] = []
        evidence: list[str] = []

        m = self._repeated_chars.search(stripped)
        if m:
            warnings.append("Excessive repeated characters detected")
            patterns.append("repeated_chars")
            evidence.append(m.group(0))

        if (
            len(stripped) >= self.caps_min_length
            and self._all_caps.fullmatch(stripped)
            and any(ch.isalpha() for ch in stripped)
        ):
            warnings.append("Excessive use of capital letters detected")
            patterns.append("all_caps")

        urls = _URL_PATTERN.findall(stripped)
        hard_block = len(urls) >= self.url_limit
        if hard_block:
            patterns.append("multiple_urls")
            evidence.extend(urls)

        phrase = self._find_repeated_phrase(stripped)
        if phrase:
            warnings.append("Repeated phrases detected")
            patterns.append("repeated_phrases")
            evidence.append(phrase)

        words = stripped.split()
        if len(words) > self.diversity_min_words:
            unique = len({w.lower() for w in words})
            if unique / len(words) < self.diversity_min_ratio:
                warnings.append("Low word diversity detected")
                patterns.append("low_diversity")

        for pattern in self._promotional:
            pm = pattern.search(stripped)
            if pm:
                warnings.append("Promotional language detected")
                patterns.append("promotional_language")
                evidence.append(pm.group(0))
                break

        for pattern in self._investment:
            im = pattern.search(stripped)
            if im:
                warnings.append("Investment or crypto language detected")
                patterns.append("investment_language")
                evidence.append(im.group(0))
                break

        symbols = len(_SYMBOL_PATTERN.findall(stripped))
        if stripped and symbols / len(stripped) > self.symbol_max_ratio:
            warnings.append("Excessive symbols detected")
            patterns.append("excessive_symbols")

        if hard_block:
            score = 1.0
        else:
            score = min(len(warnings) * self.warning_weight, self.max_warning_score)

        return DetectorResult(
            category=self.category,
            score=score,
            matched_evidence=evidence,
            hard_block=hard_block,
            metadata={
                "isSpam": hard_block,
                "warnings": warnings,
                "detectedPatterns": patterns,
                "urlCount": len(urls),
            },
        )


class PatternDetector(Detector):
    """Adds ``weight`` per regex match, plus optional keyword bonuses."""

    def __init__(self, rules: dict[str, Any]) -> None:
        self.weight = float(rules.get("weight", 0.3))
        raw = rules.get("patterns", [])
        if isinstance(raw, dict):
            items = list(raw.items())
        else:
            items = [(p, p) for p in raw]
        self._patterns: list[tuple[str, re.Pattern[str]]] = [
            (label, re.compile(p, re.IGNORECASE)) for label, p in items
        ]

    def _bonus(self, text: str, evidence: list[str]) -> float:
        return 0.0

    def detect(self, text: str) -> DetectorResult:
        score = 0.0
        evidence: list[str] = []
        labels: list[str] = []
        for label, pattern in self._patterns:
            for m in pattern.finditer(text):
                score += self.weight
                evidence.append(m.group(0))
                if label not in labels:
                    labels.append(label)
        score += self._bonus(text, evidence)
        return DetectorResult(
            category=self.category,
            score=min(score, 1.0),
            matched_evidence=evidence,
            metadata={"matchedPatterns": labels} if labels else {},
        )


class _KeywordBonusMixin:
    @staticmethod
    def _count_words(text: str, words: list[str]) -> list[str]:
        return [w for w in words if _word_pattern(w).search(text)]


class ToxicityDetector(_KeywordBonusMixin, PatternDetector):
    category = Category.toxicity.value

    def __init__(self, rules: dict[str, Any]) -> None:
        super().__init__(rules)
        self.negative_words = list(rules.get("negative_words", []))
        self.negative_word_limit = int(rules.get("negative_word_limit", 2))
        self.negative_word_bonus = float(rules.get("negative_word_bonus", 0.2))
        self.caps_ratio = float(rules.get("caps_ratio", 0.7))
        self.caps_min_length = int(rules.get("caps_min_length", 20))
        self.caps_bonus = float(rules.get("caps_bonus", 0.1))

    def _bonus(self, text: str, evidence: list[str]) -> float:
        bonus = 0.0
        negative = self._count_words(text, self.negative_words)
        if len(negative) > self.negative_word_limit:
            bonus += self.negative_word_bonus
            evidence.extend(negative)
        if text:
            caps = sum(1 for ch in text if ch.isupper()) / len(text)
            if caps > self.caps_ratio and len(text) > self.caps_min_length:
                bonus += self.caps_bonus
        return bonus


class ThreatDetector(_KeywordBonusMixin, PatternDetector):
    category = Category.threat.value

    def __init__(self, rules: dict[str, Any]) -> None:
        super().__init__(rules)
        self.violence_words = list(rules.get("violence_words", []))
        self.violence_word_limit = int(rules.get("violence_word_limit", 1))
        self.violence_bonus = float(rules.get("violence_bonus", 0.3))

    def _bonus(self, text: str, evidence: list[str]) -> float:
        violent = self._count_words(text, self.violence_words)
        if len(violent) > self.violence_word_limit:
            evidence.extend(violent)
            return self.violence_bonus
        return 0.0


class PiiDetector(PatternDetector):
    category = Category.pii.value


_DETECTOR_CLASSES: dict[str, type[Detector]] = {
    Category.profanity.value: ProfanityDetector,
    Category.spam.value: SpamDetector,
    Category.toxicity.value: ToxicityDetector,
    Category.threat.value: ThreatDetector,
    Category.pii.value: PiiDetector,
}


def build_detectors(rules: Optional[dict[str, Any]] = None) -> dict[str, Detector]:
    """Instantiate one detector per category from *rules*."""
    if rules is None:
        rules = load_rules()
    try:
        return {
            category: cls(rules.get(category) or {})
            for category, cls in _DETECTOR_CLASSES.items()
        }
    except (re.error, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid detector rules: {e}") from e
