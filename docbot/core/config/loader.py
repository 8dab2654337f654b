"""Configuration loader — YAML file, keyword overrides, env override."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from docbot.core.config.schema import Config

# Looked up in the working directory when no path is given.
DEFAULT_FILES = ("docbot.yaml", "config.yaml")


def load_config(config_path: str | Path | None = None, **overrides: Any) -> Config:
    """
    Load configuration.

    File lookup: explicit ``config_path``, then ``DOCBOT_CONFIG``, then the
    first of ``DEFAULT_FILES`` present in cwd. An explicit path or
    ``DOCBOT_CONFIG`` that does not exist is an error.

    ``overrides`` are nested dicts merged over the file section by section,
    e.g. ``load_config(agent={"max_iterations": 8})``.

    Values priority (handled by pydantic-settings):
        env vars  >  .env file  >  overrides  >  YAML  >  defaults
    """
    path = _resolve_path(config_path)
    data = _load_yaml(path) if path else {}
    if path:
        logger.debug(f"Config loaded from {path}")
    return Config(**_merge(data, overrides))


def _resolve_path(config_path: str | Path | None) -> Path | None:
    explicit = config_path or os.environ.get("DOCBOT_CONFIG")
    if explicit:
        path = Path(explicit)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        return path
    for name in DEFAULT_FILES:
        candidate = Path(name)
        if candidate.exists():
            return candidate
    return None


def _load_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def _merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged
