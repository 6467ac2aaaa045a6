"""
Deployment configuration.

Values come from an optional JSON file, then SHEET_TRACKER_* environment
variables. YAML is rejected rather than half-parsed.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from sheet_tracker.builder import DEFAULT_TOTAL_MODELS, TableShape
from sheet_tracker.errors import ConfigError
from sheet_tracker.models import VOCABULARIES, StatusVocabulary
from sheet_tracker.progress import (
    DEFAULT_TARGET_CATEGORIES,
    DEFAULT_TARGET_COUNTRIES,
    DEFAULT_TARGET_MODELS,
    Targets,
)

DEFAULT_CANONICAL_STEPS = (
    "Asset Collection",
    "Content Creation",
    "Internal Review",
    "Localization",
    "QA",
    "Publishing",
)
DEFAULT_CONFIG_PATH = "sheet-tracker.json"
ENV_PREFIX = "SHEET_TRACKER_"
ENV_KEYS = ("source", "proxy_url", "shape", "vocabulary")
YAML_SUFFIXES = {".yml", ".yaml"}


@dataclass(frozen=True)
class TrackerConfig:
    source: str = ""
    proxy_url: str = ""
    shape: str = TableShape.LONG.value
    vocabulary: str = "english"
    canonical_steps: tuple[str, ...] = DEFAULT_CANONICAL_STEPS
    default_total_models: int = DEFAULT_TOTAL_MODELS
    target_categories: int = DEFAULT_TARGET_CATEGORIES
    target_countries: int = DEFAULT_TARGET_COUNTRIES
    target_models: int = DEFAULT_TARGET_MODELS
    timeout_seconds: float = 60.0
    max_bytes: int = 20 * 1024 * 1024

    @property
    def table_shape(self) -> TableShape:
        return TableShape(self.shape)

    @property
    def status_vocabulary(self) -> StatusVocabulary:
        return VOCABULARIES[self.vocabulary]

    @property
    def targets(self) -> Targets:
        return Targets(
            categories=self.target_categories,
            countries=self.target_countries,
            models=self.target_models,
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["canonical_steps"] = list(self.canonical_steps)
        return payload


CONFIG_FIELDS = {item.name for item in fields(TrackerConfig)}


def validate(config: TrackerConfig) -> TrackerConfig:
    try:
        TableShape(config.shape)
    except ValueError:
        raise ConfigError(f"Unknown shape '{config.shape}'. Expected one of: long, wide") from None
    if config.vocabulary not in VOCABULARIES:
        raise ConfigError(
            f"Unknown vocabulary '{config.vocabulary}'. Expected one of: {', '.join(sorted(VOCABULARIES))}"
        )
    for name in ("default_total_models", "target_categories", "target_countries", "target_models", "max_bytes"):
        value = getattr(config, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ConfigError(f"'{name}' must be a non-negative integer, got {value!r}")
    if not isinstance(config.timeout_seconds, (int, float)) or config.timeout_seconds <= 0:
        raise ConfigError(f"'timeout_seconds' must be positive, got {config.timeout_seconds!r}")
    return config


def from_mapping(payload: Mapping[str, Any], base: TrackerConfig | None = None) -> TrackerConfig:
    unknown = sorted(set(payload) - CONFIG_FIELDS)
    if unknown:
        raise ConfigError(f"Unknown config key(s): {', '.join(unknown)}")
    values = dict(payload)
    if "canonical_steps" in values:
        steps = values["canonical_steps"]
        if not isinstance(steps, (list, tuple)) or not all(isinstance(step, str) for step in steps):
            raise ConfigError("'canonical_steps' must be a list of step names")
        values["canonical_steps"] = tuple(steps)
    return validate(replace(base or TrackerConfig(), **values))


def read_config_file(path: Path) -> dict[str, Any]:
    if path.suffix.lower() in YAML_SUFFIXES:
        raise ConfigError("YAML config is not supported yet. Use a .json config file.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file is not valid JSON: {path} ({exc.msg})") from None
    if not isinstance(payload, dict):
        raise ConfigError(f"Config file must contain a JSON object: {path}")
    return payload


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    environ = os.environ if environ is None else environ
    overrides = {}
    for key in ENV_KEYS:
        value = environ.get(ENV_PREFIX + key.upper())
        if value:
            overrides[key] = value
    return overrides


def load_config(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> TrackerConfig:
    config = TrackerConfig()
    if path is not None:
        config = from_mapping(read_config_file(Path(path)), config)
    elif Path(DEFAULT_CONFIG_PATH).exists():
        config = from_mapping(read_config_file(Path(DEFAULT_CONFIG_PATH)), config)
    return from_mapping(env_overrides(environ), config)


def starter_config_text() -> str:
    payload = TrackerConfig(
        source="https://docs.google.com/spreadsheets/d/<sheet-id>/edit#gid=0",
    ).to_dict()
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
