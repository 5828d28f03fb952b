from __future__ import annotations

from dataclasses import dataclass, fields, asdict, replace
import json
import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Matching
    min_chars: int = int(os.getenv("AUTOLINK_MIN_CHARS", "3"))
    enable_fuzzy_matching: bool = _env_bool("AUTOLINK_FUZZY", True)
    min_fuzzy_score: int = int(os.getenv("AUTOLINK_MIN_FUZZY_SCORE", "18"))
    case_sensitive: bool = _env_bool("AUTOLINK_CASE_SENSITIVE", False)

    # Insertion / preview
    insert_alias: bool = _env_bool("AUTOLINK_INSERT_ALIAS", True)
    include_folder_in_preview: bool = _env_bool("AUTOLINK_SHOW_FOLDER", True)

    # Phrase capture / result size
    max_phrase_words: int = int(os.getenv("AUTOLINK_MAX_PHRASE_WORDS", "6"))
    max_suggestions: int = int(os.getenv("AUTOLINK_MAX_SUGGESTIONS", "20"))

    debug_logging: bool = _env_bool("AUTOLINK_DEBUG", False)
    suppress_when_other_suggestions_open: bool = _env_bool("AUTOLINK_SUPPRESS_FOREIGN", True)

    # Timing (seconds) and scan bound
    reindex_delay: float = float(os.getenv("AUTOLINK_REINDEX_DELAY", "0.12"))
    manual_trigger_window: float = 0.25
    max_scan_chars: int = 120


SETTINGS = Settings()

# Ranges the settings sliders allow
SETTING_LIMITS: Dict[str, Tuple[int, int]] = {
    "min_chars": (1, 10),
    "min_fuzzy_score": (1, 80),
    "max_phrase_words": (1, 12),
    "max_suggestions": (5, 50),
}


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on", "0", "false", "no", "off"):
            return value.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(value, int):
            return bool(value)
        raise ValueError(f"{name} expects a boolean, got {value!r}")
    if isinstance(default, int):
        if isinstance(value, bool):
            raise ValueError(f"{name} expects a number, got {value!r}")
        coerced = int(value)
        if name in SETTING_LIMITS:
            lo, hi = SETTING_LIMITS[name]
            coerced = max(lo, min(hi, coerced))
        return coerced
    if isinstance(default, float):
        if isinstance(value, bool):
            raise ValueError(f"{name} expects a number, got {value!r}")
        coerced = float(value)
        # delays and windows are durations
        if not math.isfinite(coerced) or coerced < 0:
            raise ValueError(f"{name} expects a finite number >= 0, got {value!r}")
        return coerced
    return value


def merge_settings(defaults: Settings, loaded: Mapping[str, Any] | None) -> Settings:
    """Shallow-merge a persisted key/value blob over the defaults.

    Unknown keys are dropped and values that cannot be coerced keep the default,
    so a damaged blob never prevents startup.
    """
    if not loaded:
        return defaults
    known = {f.name for f in fields(Settings)}
    changes: Dict[str, Any] = {}
    for key, value in loaded.items():
        if key not in known:
            logger.debug("settings.ignore_unknown key=%s", key)
            continue
        default = getattr(defaults, key)
        try:
            changes[key] = _coerce(key, value, default)
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning("Invalid value for setting %s, keeping default: %s", key, e)
    return replace(defaults, **changes)


def load_settings(path: str | os.PathLike, defaults: Settings = SETTINGS) -> Settings:
    p = Path(path)
    if not p.exists():
        return defaults
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read settings from %s, using defaults: %s", p, e)
        return defaults
    if not isinstance(data, dict):
        logger.warning("Settings file %s does not hold an object, using defaults", p)
        return defaults
    return merge_settings(defaults, data)


def save_settings(settings: Settings, path: str | os.PathLike) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = p.with_name(p.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(asdict(settings), f, indent=2)
    os.replace(tmp_path, p)
