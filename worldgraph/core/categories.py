# WorldGraph Category Resolver
#
# Every node in either representation belongs to exactly one sub-schema
# ("category"). Internal tags spell it as a "Category:" prefix (omitted for
# density); native trees encode it in the $NodeId prefix or dotted suffix.
#
# Resolution order (first hit wins):
#   1) the immediate parent field name (FIELD_TO_CATEGORY)
#   2) the colon prefix of the tag ("Material:Constant")
#   3) reverse path only: substrings of the native $NodeId
#   4) density
#
# Public API:
# - Category (enum)
# - NodeTag / parse_tag(tag, parent_field=None, native_id=None) -> NodeTag
# - resolve_category(parent_field, tag, native_id=None) -> Category
# - category_from_native_id(native_id) -> Category | None

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class Category(Enum):
    """Node sub-schemas shared by the internal and native formats."""
    DENSITY = "density"
    CURVE = "curve"
    MATERIAL = "material"
    PATTERN = "pattern"
    POSITION = "position"
    PROP = "prop"
    SCANNER = "scanner"
    ASSIGNMENT = "assignment"
    VECTOR = "vector"
    ENVIRONMENT = "environment"
    TINT = "tint"
    BLOCK_MASK = "blockMask"
    DIRECTIONALITY = "directionality"
    # Layer entries of a depth-layered material; a material sub-schema with its own id prefix
    MATERIAL_LAYER = "sadLayer"


FIELD_TO_CATEGORY: Dict[str, Category] = {
    "Density": Category.DENSITY,
    "DensityFunction": Category.DENSITY,
    "FieldFunction": Category.DENSITY,
    "Input": Category.DENSITY,
    "InputA": Category.DENSITY,
    "InputB": Category.DENSITY,
    "Inputs": Category.DENSITY,
    "Condition": Category.DENSITY,
    "TrueInput": Category.DENSITY,
    "FalseInput": Category.DENSITY,
    "Factor": Category.DENSITY,
    "Offset": Category.DENSITY,
    "WarpSource": Category.DENSITY,
    "WarpVector": Category.DENSITY,
    "Amplitude": Category.DENSITY,
    "YProvider": Category.DENSITY,
    "MaterialProvider": Category.MATERIAL,
    "Solid": Category.MATERIAL,
    "Empty": Category.MATERIAL,
    "Low": Category.MATERIAL,
    "High": Category.MATERIAL,
    "Material": Category.MATERIAL,
    "Queue": Category.MATERIAL,
    "Curve": Category.CURVE,
    "Pattern": Category.PATTERN,
    "SubPattern": Category.PATTERN,
    "Floor": Category.PATTERN,
    "Ceiling": Category.PATTERN,
    "Surface": Category.PATTERN,
    "Positions": Category.POSITION,
    "PositionProvider": Category.POSITION,
    "Scanner": Category.SCANNER,
    "ChildScanner": Category.SCANNER,
    "Prop": Category.PROP,
    "Assignments": Category.ASSIGNMENT,
    "Top": Category.ASSIGNMENT,
    "Bottom": Category.ASSIGNMENT,
    "VectorProvider": Category.VECTOR,
    "Vector": Category.VECTOR,
    "NewYAxis": Category.VECTOR,
    "Layers": Category.MATERIAL_LAYER,
    "BlockMask": Category.BLOCK_MASK,
    "Directionality": Category.DIRECTIONALITY,
    "EnvironmentProvider": Category.ENVIRONMENT,
    "TintProvider": Category.TINT,
}

TAG_PREFIX_TO_CATEGORY: Dict[str, Category] = {
    "material": Category.MATERIAL,
    "curve": Category.CURVE,
    "pattern": Category.PATTERN,
    "position": Category.POSITION,
    "scanner": Category.SCANNER,
    "prop": Category.PROP,
    "assignment": Category.ASSIGNMENT,
    "vector": Category.VECTOR,
    "environment": Category.ENVIRONMENT,
    "tint": Category.TINT,
    "blockmask": Category.BLOCK_MASK,
    "directionality": Category.DIRECTIONALITY,
}

# First match wins: "CurveMapper.Density" is density, not curve
NATIVE_ID_MARKERS: Tuple[Tuple[str, Category], ...] = (
    ("DensityNode", Category.DENSITY),
    (".Density", Category.DENSITY),
    ("MaterialProvider", Category.MATERIAL),
    ("SADMP", Category.MATERIAL_LAYER),
    ("CurvePoint", Category.CURVE),
    ("Curve", Category.CURVE),
    (".Pattern", Category.PATTERN),
    (".Scanner", Category.SCANNER),
    (".Assignments", Category.ASSIGNMENT),
    ("Positions", Category.POSITION),
    ("VectorProvider", Category.VECTOR),
    ("Point3D", Category.VECTOR),
    (".Directionality", Category.DIRECTIONALITY),
    (".EnvironmentProvider", Category.ENVIRONMENT),
    (".TintProvider", Category.TINT),
    (".BlockMask", Category.BLOCK_MASK),
    ("Prop", Category.PROP),
)


@dataclass(frozen=True)
class NodeTag:
    """A node's tag parsed once into (category, operation name)."""
    category: Category
    name: str
    raw: str


def split_tag(tag: str) -> Tuple[Optional[str], str]:
    """'Material:Constant' -> ('material', 'Constant'); 'Sum' -> (None, 'Sum')."""
    if not isinstance(tag, str):
        return None, ""
    prefix, sep, name = tag.partition(":")
    if not sep:
        return None, tag
    return prefix.strip().lower(), name


def category_from_native_id(native_id: Optional[str]) -> Optional[Category]:
    if not isinstance(native_id, str) or not native_id:
        return None
    for marker, category in NATIVE_ID_MARKERS:
        if marker in native_id:
            return category
    return None


def resolve_category(
    parent_field: Optional[str],
    tag: str,
    native_id: Optional[str] = None,
) -> Category:
    """Resolve a node's category; see module header for the order."""
    if parent_field and parent_field in FIELD_TO_CATEGORY:
        return FIELD_TO_CATEGORY[parent_field]
    prefix, _ = split_tag(tag)
    if prefix is not None and prefix in TAG_PREFIX_TO_CATEGORY:
        return TAG_PREFIX_TO_CATEGORY[prefix]
    from_id = category_from_native_id(native_id)
    if from_id is not None:
        return from_id
    return Category.DENSITY


def parse_tag(
    tag: str,
    parent_field: Optional[str] = None,
    native_id: Optional[str] = None,
) -> NodeTag:
    _, name = split_tag(tag)
    category = resolve_category(parent_field, tag, native_id)
    return NodeTag(category=category, name=name, raw=tag if isinstance(tag, str) else "")


__all__ = [
    "Category",
    "NodeTag",
    "FIELD_TO_CATEGORY",
    "TAG_PREFIX_TO_CATEGORY",
    "split_tag",
    "category_from_native_id",
    "resolve_category",
    "parse_tag",
]
