"""Configuration loader handling YAML settings with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

SETTINGS_PATH = Path("config/settings.yaml")
ENV_PREFIX = "LONGFLAG_"

DEFAULT_THRESHOLD = 1.0
DEFAULT_METHOD = "first_last"


@dataclass
class Settings:
    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, *keys: str, default: Any = None) -> Any:
        cursor: Any = self.raw
        for key in keys:
            if isinstance(cursor, dict) and key in cursor:
                cursor = cursor[key]
            else:
                return default
        return cursor

    @property
    def threshold(self) -> float:
        return float(self.get("evaluate", "threshold", default=DEFAULT_THRESHOLD))

    @property
    def method(self) -> str:
        return str(self.get("evaluate", "method", default=DEFAULT_METHOD))

    @property
    def output_dir(self) -> Path:
        return Path(self.get("output", "dir", default="longflag_output"))

    @property
    def telemetry_enabled(self) -> bool:
        return bool(self.get("telemetry", "enabled", default=True))

    @property
    def telemetry_dir(self) -> Path:
        return Path(self.get("telemetry", "dir", default=str(self.output_dir)))


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Settings file {path} must contain a mapping at the top level")
    return loaded


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Nest ``LONGFLAG_EVALUATE__THRESHOLD=2`` style variables into ``{"evaluate": {"threshold": 2}}``."""
    overrides: Dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        *parents, leaf = key[len(ENV_PREFIX) :].lower().split("__")
        cursor = overrides
        for segment in parents:
            cursor = cursor.setdefault(segment, {})
        cursor[leaf] = _coerce(value)
    return overrides


def _merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def load_settings(path: Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    settings_path = path or SETTINGS_PATH
    raw = _merge(_read_yaml(settings_path), _env_overrides(os.environ if environ is None else environ))
    return Settings(raw=raw)
