"""Mutable moderation settings, optionally persisted as JSON.

The store is handed to the analysis pipeline and policy engine explicitly.
Each analysis reads a snapshot of the settings at call time, so an update
affects subsequent analyses only.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from acme.moderation.errors import ValidationError
from acme.moderation.models import ALL_CATEGORIES, ModerationSettings

logger = logging.getLogger(__name__)

THRESHOLD_KEY = "flagThreshold"
ENABLED_KEY = "enabledDetectors"


def validate_threshold(value: Any) -> float:
    """Return *value* as a float in (0, 1] or raise ``ValidationError``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{THRESHOLD_KEY} must be a number, got {value!r}")
    value = float(value)
    if not 0.0 < value <= 1.0:
        raise ValidationError(f"{THRESHOLD_KEY} must be within (0, 1], got {value}")
    return value


def apply_update(current: ModerationSettings, update: dict[str, Any]) -> ModerationSettings:
    """Validate *update* against *current* and return the resulting settings.

    Recognised keys are the detector category names (boolean on/off),
    ``flagThreshold`` and ``enabledDetectors`` (full list of categories).
    Nothing is applied unless every key and value is valid.
    """
    if not isinstance(update, dict):
        raise ValidationError("Settings must be an object")
    unknown = set(update) - ALL_CATEGORIES - {THRESHOLD_KEY, ENABLED_KEY}
    if unknown:
        raise ValidationError(
            f"Unknown settings keys: {sorted(unknown)}",
            details={"unknownKeys": sorted(unknown)},
        )

    result = current.copy()

    if ENABLED_KEY in update:
        enabled = update[ENABLED_KEY]
        if not isinstance(enabled, (list, tuple, set)):
            raise ValidationError(f"{ENABLED_KEY} must be a list of detector categories")
        bad = {str(c) for c in enabled} - ALL_CATEGORIES
        if bad:
            raise ValidationError(f"Unknown detector categories: {sorted(bad)}")
        result.enabled_detectors = {str(c) for c in enabled}

    for category in ALL_CATEGORIES & set(update):
        flag = update[category]
        if not isinstance(flag, bool):
            raise ValidationError(f"Setting '{category}' must be true or false")
        if flag:
            result.enabled_detectors.add(category)
        else:
            result.enabled_detectors.discard(category)

    if THRESHOLD_KEY in update:
        result.flag_threshold = validate_threshold(update[THRESHOLD_KEY])

    return result


class SettingsStore:
    """Holds the current ``ModerationSettings``.

    With *path* set, settings are loaded from and saved to that JSON file;
    otherwise they live in memory only.
    """

    def __init__(
        self,
        path: Optional[str | Path] = None,
        initial: Optional[ModerationSettings] = None,
    ) -> None:
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._settings = initial.copy() if initial else self._load()

    def _load(self) -> ModerationSettings:
        if self._path is None or not self._path.exists():
            return ModerationSettings()
        try:
            data = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError):
            logger.warning("Unreadable settings file %s, using defaults", self._path)
            return ModerationSettings()
        try:
            return apply_update(ModerationSettings(), data if isinstance(data, dict) else {})
        except ValidationError as e:
            logger.warning("Invalid settings file %s (%s), using defaults", self._path, e.message)
            return ModerationSettings()

    def _save(self, settings: ModerationSettings) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(settings.to_dict(), indent=2))

    def get(self) -> ModerationSettings:
        """Return a snapshot copy of the current settings."""
        with self._lock:
            return self._settings.copy()

    def update(self, update: dict[str, Any]) -> ModerationSettings:
        """Validate and apply *update* atomically.  Returns the new settings."""
        with self._lock:
            new_settings = apply_update(self._settings, update)
            self._save(new_settings)
            self._settings = new_settings
        logger.info(
            "Moderation settings updated: enabled=%s threshold=%.2f",
            sorted(new_settings.enabled_detectors),
            new_settings.flag_threshold,
        )
        return new_settings.copy()
