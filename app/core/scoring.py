from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

DEFAULT_SCORING_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "scoring.yaml"


def scoring_config_path() -> Path:
    override = (os.getenv("SCORING_CONFIG_PATH") or "").strip()
    return Path(override) if override else DEFAULT_SCORING_CONFIG_PATH


@lru_cache(maxsize=1)
def _load(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(f"Failed to read scoring config '{path}': {exc}") from exc

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Invalid YAML in scoring config '{path}': {exc}") from exc

    if not isinstance(parsed, dict):
        raise RuntimeError(f"Invalid scoring config '{path}': expected a top-level mapping.")
    return parsed


def get_scoring_config() -> dict[str, Any]:
    """Thresholds, fallback vocabulary and upload limits from app/config/scoring.yaml."""
    return _load(scoring_config_path())


def clear_scoring_config_cache() -> None:
    _load.cache_clear()


def get_scoring_value(path: str, default: Any = None) -> Any:
    """Dot-path lookup, e.g. 'notifications.hr_score_threshold'."""
    if not path:
        return default

    current: Any = get_scoring_config()
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current
