"""Configuration loading utilities with JSON and YAML support."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from namjukes.core.config.models import AppConfig

logger = logging.getLogger(__name__)

_DEFAULT_APP_CONFIG_PATH = Path("namjukes.yaml")

# (section, field) -> environment variables consulted in order when the value is unset
_ENV_FALLBACKS: dict[tuple[str, str], tuple[str, ...]] = {
    ("scan", "api_key"): ("NAMJUKES_SCAN_API_KEY", "SUPABASE_KEY"),
    ("catalog", "supabase_url"): ("SUPABASE_URL",),
    ("catalog", "supabase_key"): ("SUPABASE_KEY",),
    ("catalog", "access_token"): ("NAMJUKES_ACCESS_TOKEN",),
    ("gateway", "api_key"): ("LOVABLE_API_KEY", "OPENAI_API_KEY"),
}


def detect_format(file_path: Path | str) -> str:
    """Detect config file format from extension.

    Raises:
        ValueError: If format cannot be determined

    Example:
        >>> detect_format("namjukes.yml")
        'yaml'
    """
    suffix = Path(file_path).suffix.lower()
    if suffix == ".json":
        return "json"
    elif suffix in [".yaml", ".yml"]:
        return "yaml"
    else:
        raise ValueError(f"Unsupported config format: {suffix}")


def load_config(path: str | Path) -> dict[str, Any]:
    """Load and return raw configuration dictionary.

    Raises:
        FileNotFoundError: If config file does not exist
        ValueError: If format is not supported or file content is invalid
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    fmt = detect_format(path)

    if fmt == "json":
        try:
            with path.open("r", encoding="utf-8") as f:
                content = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    else:
        try:
            with path.open("r", encoding="utf-8") as f:
                # safe_load returns None for empty files
                content = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(content, dict):
        raise ValueError(f"Config root in {path} must be a mapping")
    return content


def _apply_env_fallbacks(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill unset secrets from the environment."""
    # An empty YAML section ("scan:") loads as None
    merged = {
        key: dict(value) if isinstance(value, dict) else ({} if value is None else value)
        for key, value in raw.items()
    }
    for (section, field), env_names in _ENV_FALLBACKS.items():
        values = merged.setdefault(section, {})
        if not isinstance(values, dict) or values.get(field):
            continue
        for env_name in env_names:
            value = os.environ.get(env_name)
            if value:
                values[field] = value
                logger.debug("Using %s for %s.%s", env_name, section, field)
                break
    return merged


def load_app_config(path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration.

    A missing file at the default path yields defaults; a missing explicit path is an error.
    Secrets left unset in the file are read from the environment.

    Raises:
        FileNotFoundError: If an explicit path does not exist
        ValidationError: If config is invalid
    """
    if path is not None:
        raw = load_config(path)
    elif _DEFAULT_APP_CONFIG_PATH.exists():
        raw = load_config(_DEFAULT_APP_CONFIG_PATH)
    else:
        raw = {}

    return AppConfig.model_validate(_apply_env_fallbacks(raw))
