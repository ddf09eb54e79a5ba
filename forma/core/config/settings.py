"""
Project-level settings loader.

Reads an optional YAML/JSON settings file and overlays it on the built-in
defaults, so styling behaviour can be tuned per project without code changes.

Settings file format (YAML or JSON):
    styling_defaults:
      dedupe_classes: true
      record_provenance: false
    variant_order: [variant, size, tone, state, theme]
    warn_on_overlap: true
    dedupe_extensions: true
    styles_dir: styles

Environment variable:
    FORMA_CONFIG_FILE: path to the settings file (optional).
    Default search path: <project_root>/forma.yaml
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

_log = logging.getLogger("forma.config")

DEFAULT_VARIANT_ORDER: List[str] = ["variant", "size", "tone", "state", "theme"]


class FormaSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    styling_defaults: Dict[str, Any] = Field(default_factory=dict)
    variant_order: List[str] = Field(default_factory=lambda: list(DEFAULT_VARIANT_ORDER))
    warn_on_overlap: bool = True
    dedupe_extensions: bool = True
    styles_dir: Optional[str] = None


def load_settings(path: Optional[Path] = None) -> FormaSettings:
    """
    Load settings from a YAML or JSON file.

    Returns defaults if the file is absent, not readable, or malformed
    so the caller never has to handle a settings failure.
    """
    resolved = _resolve_path(path)
    if resolved is None or not resolved.exists():
        return FormaSettings()

    try:
        raw_text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        _log.warning("Cannot read settings file %s: %s", resolved, exc)
        return FormaSettings()

    data = parse_mapping_text(raw_text, source=str(resolved))
    if data is None:
        return FormaSettings()

    try:
        settings = FormaSettings(**data)
    except ValidationError as exc:
        _log.warning("Invalid settings in %s: %s", resolved, exc)
        return FormaSettings()

    _log.info("Loaded settings from %s", resolved)
    return settings


def parse_mapping_text(raw_text: str, *, source: str) -> Optional[Dict[str, Any]]:
    """Parse JSON first, then YAML. Returns None (with a warning) unless the result is a mapping."""
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            _log.warning("Failed to parse %s as JSON or YAML: %s", source, exc)
            return None

    if data is None:
        return {}
    if not isinstance(data, dict):
        _log.warning("%s must contain a mapping, got %s", source, type(data).__name__)
        return None
    return data


def _resolve_path(path: Optional[Path]) -> Optional[Path]:
    """Determine the settings file path from argument or env var or default."""
    if path is not None:
        return Path(path)
    env_path = os.getenv("FORMA_CONFIG_FILE", "").strip()
    if env_path:
        return Path(env_path)
    # forma/core/config/settings.py -> parents[3] = repo root
    project_root = Path(__file__).resolve().parents[3]
    return project_root / "forma.yaml"
