"""
config.py

Typed configuration loading and validation for maniamap.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If MANIAMAP_CONFIG_PATH is set, that file is used.
- Otherwise maniamap searches these paths in order and uses the first one that exists:
  1) ./maniamap_config.json (current working directory)
  2) <user config dir>/maniamap/maniamap_config.json
  3) <user config dir>/maniamap/config.json
- When no file exists, built-in defaults are used.

Example config file (maniamap_config.json)
{
  "loader": {
    "max_workers": 4,
    "chart_extension": ".osu"
  },
  "logging": {
    "level": "INFO",
    "format": "%(asctime)s %(levelname)s %(name)s: %(message)s"
  }
}
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class LoaderConfig(BaseModel):
    max_workers: int = Field(default=1, ge=1, le=64, description="Worker threads used to parse difficulties.")
    chart_extension: str = Field(default=".osu", description="File extension of chart files inside a set.")

    @field_validator("chart_extension")
    @classmethod
    def normalize_chart_extension(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if not normalized:
            raise ValueError("chart_extension must not be empty")
        if not normalized.startswith("."):
            normalized = "." + normalized
        return normalized


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="CRITICAL, ERROR, WARNING, INFO or DEBUG")
    format: str = Field(default="%(asctime)s %(levelname)s %(name)s: %(message)s", description="logging format string")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError("level must be one of: " + ", ".join(sorted(_LOG_LEVELS)))
        return normalized


class AppConfig(BaseModel):
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("maniamap", appauthor=False))
    return [
        Path.cwd() / "maniamap_config.json",
        config_directory / "maniamap_config.json",
        config_directory / "config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("MANIAMAP_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Cannot read maniamap config {config_path}: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"maniamap config {config_path} is not valid JSON: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"maniamap config {config_path} must hold a JSON object")

    return parsed


def _as_int_or_none(value_text: str) -> Optional[int]:
    try:
        return int(value_text)
    except ValueError:
        return None


# Environment variable -> (config section, key, converter). A converter returning None skips the override.
_ENVIRONMENT_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "MANIAMAP_MAX_WORKERS": ("loader", "max_workers", _as_int_or_none),
    "MANIAMAP_CHART_EXTENSION": ("loader", "chart_extension", str),
    "MANIAMAP_LOG_LEVEL": ("logging", "level", str),
    "MANIAMAP_LOG_FORMAT": ("logging", "format", str),
}


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Layer MANIAMAP_* environment variables over the file values. Blank variables are ignored."""
    updated_config = dict(config_dict)

    for env_name, (section_name, key_name, converter) in _ENVIRONMENT_OVERRIDES.items():
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            continue
        value = converter(value_text)
        if value is None:
            continue
        section = updated_config.get(section_name)
        section = dict(section) if isinstance(section, dict) else {}
        section[key_name] = value
        updated_config[section_name] = section

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        source_text = str(resolved_path) if resolved_path is not None else "defaults and environment"
        raise ValueError(f"Config validation failed for {source_text}:\n{exception}") from exception

    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(), ensure_ascii=False, indent=2)


def main() -> int:
    try:
        config, resolved_path = load_config()
    except Exception as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": json.loads(to_json(config)),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
