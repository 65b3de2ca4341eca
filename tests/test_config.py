"""Tests for engine configuration loading."""

import tempfile
from pathlib import Path

import pytest
import yaml

from acme.config import EngineConfig, load_config, parse_api_tokens
from acme.moderation.errors import ValidationError
from acme.moderation.service import build_service
from acme.stores import InMemoryQueueStore, JsonFileQueueStore


def _config_file(tmpdir, data=None):
    path = Path(tmpdir) / "config.yaml"
    path.write_text(yaml.dump(data) if data else "")
    return path


def test_defaults_from_empty_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(_config_file(tmpdir), environ={})
        assert config.storage == "file"
        assert config.bulk_workers == 4
        assert config.log_level == "INFO"
        assert config.api_tokens == {}
        assert config.rules_path is None


def test_file_values_then_env_overrides():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _config_file(tmpdir, {"storage": "memory", "bulk_workers": 2, "log_level": "warning"})
        config = load_config(path, environ={"ACME_BULK_WORKERS": "8", "ACME_DATA_DIR": tmpdir})
        assert config.storage == "memory"
        assert config.bulk_workers == 8
        assert config.log_level == "WARNING"
        assert config.data_dir == Path(tmpdir)


def test_config_path_from_env():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _config_file(tmpdir, {"storage": "memory"})
        config = load_config(environ={"ACME_CONFIG": str(path)})
        assert config.storage == "memory"


def test_api_tokens_from_env():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(
            _config_file(tmpdir), environ={"ACME_API_TOKENS": "t1:alice, t2:bob"}
        )
        assert config.api_tokens == {"t1": "alice", "t2": "bob"}


def test_malformed_token_rejected():
    with pytest.raises(ValidationError, match="Malformed API token"):
        parse_api_tokens("t1alice")


def test_invalid_values_rejected():
    with pytest.raises(ValidationError, match="storage"):
        EngineConfig(storage="postgres")
    with pytest.raises(ValidationError):
        EngineConfig(bulk_workers=0)
    with pytest.raises(ValidationError):
        EngineConfig(bulk_workers="many")


def test_invalid_log_level_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ValidationError, match="log_level"):
            load_config(_config_file(tmpdir), environ={"ACME_LOG_LEVEL": "VERBOSE"})


def test_unknown_file_key_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _config_file(tmpdir, {"storage": "memory", "colour": "blue"})
        with pytest.raises(ValidationError, match="Unknown config keys"):
            load_config(path, environ={})


def test_missing_explicit_file_rejected():
    with pytest.raises(ValidationError, match="Cannot read config file"):
        load_config("/nonexistent/acme.yaml", environ={})


def test_build_service_selects_storage():
    with tempfile.TemporaryDirectory() as tmpdir:
        memory = build_service(EngineConfig(data_dir=tmpdir, storage="memory"))
        assert isinstance(memory.queue_store, InMemoryQueueStore)

        files = build_service(EngineConfig(data_dir=tmpdir, storage="file"))
        assert isinstance(files.queue_store, JsonFileQueueStore)
        files.update_moderation_settings({"flagThreshold": 0.5})
        assert (Path(tmpdir) / "settings.json").exists()
        assert (Path(tmpdir) / "queue").is_dir()
        assert (Path(tmpdir) / "history").is_dir()
