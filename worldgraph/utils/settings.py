# Translator settings for WorldGraph
#
# Responsibilities:
# - Resolve translator knobs from explicit overrides, environment and config files
# - In-memory caching with thread-safety; reload on demand
# - Invalid values never raise: they fall back to defaults with a warning
# - Cross-platform config path resolution (Windows/macOS/Linux)
#
# Environment variables supported:
#   WORLDGRAPH_MAX_DEPTH        (int, recursion cap for both transforms)
#   WORLDGRAPH_CURVE_PRECISION  (int, decimals kept when blending curves)
#   WORLDGRAPH_ID_SEED          (int, reproducible $NodeId tokens when set)
#   WORLDGRAPH_LOG_LEVEL        (DEBUG/INFO/WARNING/ERROR)
#
# Optional config file (JSON) search order:
#   1) %APPDATA%/WorldGraph/config.json (Windows)
#   2) ~/.config/worldgraph/config.json (Linux/XDG default)
#   3) ~/Library/Application Support/WorldGraph/config.json (macOS)
#   4) ~/.worldgraph/config.json (legacy fallback)

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "WORLDGRAPH_"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_SETTINGS_LOCK = threading.Lock()
_SETTINGS_CACHE: Dict[str, Any] = {"settings": None}


@dataclass(frozen=True)
class TranslatorSettings:
    max_depth: int = 512
    curve_precision: int = 3
    id_seed: Optional[int] = None
    log_level: str = "INFO"


_DEFAULTS = TranslatorSettings()


def _config_paths() -> List[str]:
    paths: List[str] = []
    # Windows
    appdata = os.environ.get("APPDATA")
    if appdata:
        paths.append(os.path.join(appdata, "WorldGraph", "config.json"))
    # Linux (XDG)
    home = os.path.expanduser("~")
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", os.path.join(home, ".config"))
    paths.append(os.path.join(xdg_config_home, "worldgraph", "config.json"))
    # macOS
    paths.append(os.path.join(home, "Library", "Application Support", "WorldGraph", "config.json"))
    # Legacy fallback
    paths.append(os.path.join(home, ".worldgraph", "config.json"))
    return paths


def _load_config_file() -> Dict[str, Any]:
    for path in _config_paths():
        try:
            if os.path.isfile(path):
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        return data
                    logger.warning(f"Ignoring config file {path}: top level is not an object")
        except (OSError, ValueError) as ex:
            logger.warning(f"Failed reading config file {path}: {ex}")
    return {}


def _env_values() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for f in fields(TranslatorSettings):
        raw = os.environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None and raw.strip() != "":
            values[f.name] = raw.strip()
    return values


def _coerce_int(name: str, raw: Any, minimum: int) -> Optional[int]:
    if isinstance(raw, bool):
        logger.warning(f"Invalid {name}={raw!r}; using default")
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name}={raw!r}; using default")
        return None
    if value < minimum:
        logger.warning(f"{name}={value} is below {minimum}; using default")
        return None
    return value


def _coerce(name: str, raw: Any) -> Any:
    """Validate one raw setting; returns None when the default should be kept."""
    if name == "max_depth":
        return _coerce_int(name, raw, 1)
    if name == "curve_precision":
        return _coerce_int(name, raw, 0)
    if name == "id_seed":
        if raw is None:
            return None
        return _coerce_int(name, raw, 0)
    if name == "log_level":
        level = str(raw).strip().upper()
        if level not in LOG_LEVELS:
            logger.warning(f"Invalid log_level={raw!r}; using default")
            return None
        return level
    logger.debug(f"Ignoring unknown setting {name!r}")
    return None


def _merge(base: TranslatorSettings, layer: Dict[str, Any]) -> TranslatorSettings:
    known = {f.name for f in fields(TranslatorSettings)}
    updates: Dict[str, Any] = {}
    for name, raw in layer.items():
        if name not in known:
            continue
        value = _coerce(name, raw)
        if value is not None:
            updates[name] = value
    return replace(base, **updates) if updates else base


def _resolve() -> TranslatorSettings:
    # Lowest precedence first; later layers overwrite
    settings = _merge(_DEFAULTS, _load_config_file())
    settings = _merge(settings, _env_values())
    return settings


def get_settings(**overrides: Any) -> TranslatorSettings:
    """
    Return translator settings with precedence:
      1) explicit keyword overrides
      2) WORLDGRAPH_* environment variables
      3) first readable config file
      4) defaults
    The env/config layers are cached; overrides are applied per call.
    """
    with _SETTINGS_LOCK:
        cached = _SETTINGS_CACHE.get("settings")
    if cached is None:
        cached = _resolve()
        with _SETTINGS_LOCK:
            _SETTINGS_CACHE["settings"] = cached
        logger.debug(f"Translator settings loaded: {cached}")
    if overrides:
        return _merge(cached, overrides)
    return cached


def reload_settings() -> TranslatorSettings:
    """Drop the cache and re-read environment and config files."""
    with _SETTINGS_LOCK:
        _SETTINGS_CACHE["settings"] = None
    return get_settings()


__all__ = [
    "TranslatorSettings",
    "get_settings",
    "reload_settings",
]
