"""Engine configuration.

Defaults are overlaid first by an optional YAML file (``$ACME_CONFIG`` or
``~/.acme/config.yaml``) and then by ``ACME_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from acme.moderation.bulk import DEFAULT_BULK_WORKERS
from acme.moderation.errors import ValidationError

DEFAULT_DATA_DIR = Path.home() / ".acme"
STORAGE_BACKENDS = ("memory", "file")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class EngineConfig:
    data_dir: Path = DEFAULT_DATA_DIR
    storage: str = "file"  # "memory" | "file"
    bulk_workers: int = DEFAULT_BULK_WORKERS
    rules_path: Optional[Path] = None
    api_tokens: dict[str, str] = field(default_factory=dict)  # token -> reviewer id
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir).expanduser()
        if self.rules_path is not None:
            self.rules_path = Path(self.rules_path).expanduser()
        if self.storage not in STORAGE_BACKENDS:
            raise ValidationError(
                f"storage must be one of {', '.join(STORAGE_BACKENDS)}, got '{self.storage}'"
            )
        try:
            self.bulk_workers = int(self.bulk_workers)
        except (TypeError, ValueError):
            raise ValidationError(f"bulk_workers must be an integer, got {self.bulk_workers!r}") from None
        if self.bulk_workers < 1:
            raise ValidationError("bulk_workers must be at least 1")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValidationError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{self.log_level}'"
            )


def parse_api_tokens(raw: str) -> dict[str, str]:
    """Parse ``token:reviewer,token2:reviewer2``."""
    tokens: dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        token, sep, reviewer = pair.partition(":")
        if not sep or not token or not reviewer:
            raise ValidationError(f"Malformed API token entry '{pair}', expected token:reviewer")
        tokens[token.strip()] = reviewer.strip()
    return tokens


_ENV_KEYS = {
    "ACME_DATA_DIR": "data_dir",
    "ACME_STORAGE": "storage",
    "ACME_BULK_WORKERS": "bulk_workers",
    "ACME_RULES_PATH": "rules_path",
    "ACME_LOG_LEVEL": "log_level",
}


def _read_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError(f"Config file {path} must contain a mapping")
    unknown = set(data) - set(EngineConfig.__dataclass_fields__)
    if unknown:
        raise ValidationError(f"Unknown config keys in {path}: {sorted(unknown)}")
    return data


def load_config(
    path: Optional[str | Path] = None,
    environ: Optional[dict[str, str]] = None,
) -> EngineConfig:
    """Build an ``EngineConfig`` from file and environment."""
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if path is None and env.get("ACME_CONFIG"):
        path = env["ACME_CONFIG"]
    config_path = Path(path).expanduser() if path else DEFAULT_DATA_DIR / "config.yaml"
    if path or config_path.exists():
        values.update(_read_file(config_path))

    for env_key, attr in _ENV_KEYS.items():
        if env.get(env_key):
            values[attr] = env[env_key]
    if env.get("ACME_API_TOKENS"):
        values["api_tokens"] = parse_api_tokens(env["ACME_API_TOKENS"])

    return EngineConfig(**values)
