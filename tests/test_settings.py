"""Tests for moderation settings."""

import json
import tempfile
from pathlib import Path

import pytest

from acme.moderation.errors import ValidationError
from acme.moderation.models import ALL_CATEGORIES, RecommendedAction
from acme.moderation.service import ModerationService
from acme.moderation.settings_store import SettingsStore


def test_defaults():
    settings = SettingsStore().get()
    assert settings.enabled_detectors == set(ALL_CATEGORIES)
    assert settings.flag_threshold == 0.6
    assert settings.to_dict() == {
        "enabledDetectors": sorted(ALL_CATEGORIES),
        "flagThreshold": 0.6,
    }


def test_toggle_categories_and_threshold():
    store = SettingsStore()
    updated = store.update({"spam": False, "pii": True, "flagThreshold": 0.4})
    assert "spam" not in updated.enabled_detectors
    assert "pii" in updated.enabled_detectors
    assert updated.flag_threshold == 0.4
    assert store.get().flag_threshold == 0.4


def test_enabled_detectors_list_round_trips():
    store = SettingsStore()
    store.update({"enabledDetectors": ["toxicity", "threat"]})
    body = store.get().to_dict()
    assert body["enabledDetectors"] == ["threat", "toxicity"]

    store.update(body)
    assert store.get().enabled_detectors == {"threat", "toxicity"}


@pytest.mark.parametrize(
    "update",
    [
        {"bogus": True},
        {"flagThreshold": 0},
        {"flagThreshold": 1.5},
        {"flagThreshold": "high"},
        {"flagThreshold": True},
        {"spam": "yes"},
        {"enabledDetectors": ["spam", "sarcasm"]},
        {"enabledDetectors": "spam"},
    ],
)
def test_invalid_updates_rejected(update):
    with pytest.raises(ValidationError):
        SettingsStore().update(update)


def test_invalid_update_applies_nothing():
    store = SettingsStore()
    with pytest.raises(ValidationError, match="Unknown settings keys"):
        store.update({"spam": False, "flagThreshold": 0.3, "bogus": 1})
    settings = store.get()
    assert "spam" in settings.enabled_detectors
    assert settings.flag_threshold == 0.6


def test_get_returns_a_copy():
    store = SettingsStore()
    store.get().enabled_detectors.clear()
    assert store.get().enabled_detectors == set(ALL_CATEGORIES)


def test_settings_persist_to_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "settings.json"
        SettingsStore(path).update({"profanity": False, "flagThreshold": 0.7})

        saved = json.loads(path.read_text())
        assert saved["flagThreshold"] == 0.7
        assert "profanity" not in saved["enabledDetectors"]

        reloaded = SettingsStore(path).get()
        assert reloaded.flag_threshold == 0.7
        assert "profanity" not in reloaded.enabled_detectors


def test_unreadable_settings_file_falls_back_to_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "settings.json"
        path.write_text("{not json")
        assert SettingsStore(path).get().flag_threshold == 0.6


def test_update_affects_later_analyses():
    service = ModerationService()
    text = "email me at jane@example.com"
    assert service.analyze_content(text).recommended_action == RecommendedAction.flag

    service.update_moderation_settings({"pii": False})
    assert service.analyze_content(text).recommended_action == RecommendedAction.approve
