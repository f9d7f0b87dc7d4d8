# WorldGraph format detection
#
# Decides which transformer a file-import or file-export caller should run.
# A native tree is recognised purely by a $NodeId at its root.
#
# Public API:
# - is_native_format(content) -> bool
# - is_biome_file(content, file_path="") -> bool
# - is_settings_file(content, file_path="") -> bool
# - normalize_import(content) -> internal tree
# - normalize_export(content, editor_nodes=None, file_path="") -> native tree

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from ..translation.biome import lower_biome_wrapper, raise_biome_wrapper
from ..translation.lowering import lower
from ..translation.raising import raise_asset

logger = logging.getLogger(__name__)

SETTINGS_KEYS = (
    "CustomConcurrency",
    "BufferCapacityFactor",
    "TargetViewDistance",
    "TargetPlayerCount",
    "StatsCheckpoints",
)


def _normalized_path(file_path: Optional[str]) -> str:
    return (file_path or "").lower().replace("\\", "/")


def is_native_format(content: Any) -> bool:
    return isinstance(content, dict) and "$NodeId" in content


def is_biome_file(content: Mapping[str, Any], file_path: Optional[str] = "") -> bool:
    """Untyped wrapper with a Terrain section, or any untyped file under biomes/."""
    if "Type" in content:
        return False
    if "Terrain" in content:
        return True
    return "/biomes/" in _normalized_path(file_path)


def is_settings_file(content: Mapping[str, Any], file_path: Optional[str] = "") -> bool:
    """Untyped settings.json under settings/, or any untyped file with 2+ known settings keys."""
    if "Type" in content:
        return False
    path = _normalized_path(file_path)
    if path.endswith("settings.json") and "/settings/" in path:
        return True
    return sum(1 for key in SETTINGS_KEYS if key in content) >= 2


def normalize_import(content: Dict[str, Any]) -> Dict[str, Any]:
    """Native content raised to the internal format; internal content returned as is."""
    if not is_native_format(content):
        return content
    if "Type" in content:
        return raise_asset(content).tree
    return raise_biome_wrapper(content).tree


def normalize_export(
    content: Dict[str, Any],
    editor_nodes: Optional[Iterable[Mapping[str, Any]]] = None,
    file_path: Optional[str] = "",
) -> Dict[str, Any]:
    """Typed assets and biome wrappers are lowered; settings and other flat files pass through."""
    if "Type" in content:
        return lower(content, editor_nodes=editor_nodes)
    if is_biome_file(content, file_path):
        return lower_biome_wrapper(content, editor_nodes=editor_nodes)
    logger.debug("Untyped content exported unchanged")
    return content


__all__ = [
    "is_native_format",
    "is_biome_file",
    "is_settings_file",
    "normalize_import",
    "normalize_export",
]
