# WorldGraph Identity & Metadata Layer
#
# Responsibilities:
# - Synthetic $NodeId generation with the exact per-(category, native type) prefix rule
# - Recursive removal of native bookkeeping keys on import
# - Comment annotations with a fixed grammar: Concept(Key=value, Key=value)
# - Immutable metadata fragments folded by the reverse transformer
#
# Public API:
# - NodeIdGenerator(seed=None).new(prefix) -> str
# - node_id_prefix(category, native_type) -> str
# - strip_metadata(value) -> value
# - format_comment(concept, **params) -> str / parse_comment(text) -> (concept, params) | None
# - MetadataFragment, ImportMetadata

from __future__ import annotations

import random
import re
import threading
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .categories import Category
from .tables import CONCAT_PROP_TYPES, DOTTED_DENSITY_TYPES

# Fixed identifiers for records that are not operation nodes
CURVE_POINT_ID = "CurvePoint"
MATERIAL_LEAF_ID = "Material"
BIOME_ID = "Biome"
TERRAIN_ID = "Terrain"
POINT3D_ID = "Point3D"
MATERIAL_DELIMITER_ID = "DelimiterFieldFunctionMP"
POSITION_DELIMITER_ID = "DelimiterFieldFunctionPP"
WEIGHTED_PREFAB_ID = "WeightedPath.Prefab.Prop"
COLUMN_BLOCK_ID = "Block.Column.Prop"
MESH_POINT_GENERATOR_ID = "MeshPointGenerator"
SPACE_AND_DEPTH_LAYER_ID = "ConstantThickness.Layer"
GRADIENT_NORMALIZER_ID = "Normalizer.Density"

COMMENT_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\((.*)\)$")
_NUMBER_PATTERN = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")


class NodeIdGenerator:
    """
    Thread-safe $NodeId factory.

    Tokens are uuid4 strings. With a seed, tokens come from a private
    random.Random so the same tree lowers to the same identifiers.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._lock = threading.Lock()
        self._rng = random.Random(seed) if seed is not None else None

    def token(self) -> str:
        if self._rng is None:
            return str(uuid.uuid4())
        with self._lock:
            bits = self._rng.getrandbits(128)
        return str(uuid.UUID(int=bits, version=4))

    def new(self, prefix: str) -> str:
        return f"{prefix}-{self.token()}"


def node_id_prefix(category: Category, native_type: str) -> str:
    """Identifier prefix for a node of `native_type` in `category`."""
    if category is Category.DENSITY or category is Category.VECTOR:
        if native_type in DOTTED_DENSITY_TYPES:
            return f"{native_type}.Density"
        return f"{native_type}DensityNode"
    if category is Category.MATERIAL:
        return f"{native_type}MaterialProvider"
    if category is Category.MATERIAL_LAYER:
        return f"{native_type}SADMP"
    if category is Category.CURVE:
        return f"{native_type}Curve"
    if category is Category.POSITION:
        return f"{native_type}Positions"
    if category is Category.PROP:
        if native_type in CONCAT_PROP_TYPES:
            return f"{native_type}Prop"
        return f"{native_type}.Prop"
    dotted = {
        Category.PATTERN: "Pattern",
        Category.SCANNER: "Scanner",
        Category.ASSIGNMENT: "Assignments",
        Category.DIRECTIONALITY: "Directionality",
        Category.ENVIRONMENT: "EnvironmentProvider",
        Category.TINT: "TintProvider",
        Category.BLOCK_MASK: "BlockMask",
    }
    return f"{native_type}.{dotted[category]}"


def is_bookkeeping_key(key: str) -> bool:
    """True for native/editor keys that never belong to an internal node."""
    return key == "Skip" or key.startswith("$")


def strip_metadata(value: Any) -> Any:
    """Return a copy of `value` with every $-key and Skip removed at any depth."""
    if isinstance(value, list):
        return [strip_metadata(item) for item in value]
    if isinstance(value, dict):
        return {k: strip_metadata(v) for k, v in value.items() if not is_bookkeeping_key(k)}
    return value


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_comment(concept: str, **params: Any) -> str:
    """format_comment("Conditional", Threshold=0.5) -> "Conditional(Threshold=0.5)"."""
    body = ", ".join(f"{k}={_format_value(v)}" for k, v in params.items())
    return f"{concept}({body})"


def _parse_value(raw: str) -> Any:
    raw = raw.strip()
    if raw in ("true", "false"):
        return raw == "true"
    if _NUMBER_PATTERN.match(raw):
        try:
            return int(raw)
        except ValueError:
            return float(raw)
    return raw


def parse_comment(text: Any) -> Optional[Tuple[str, Dict[str, Any]]]:
    """Inverse of format_comment; None when `text` does not follow the grammar."""
    if not isinstance(text, str):
        return None
    m = COMMENT_PATTERN.match(text.strip())
    if not m:
        return None
    concept, body = m.group(1), m.group(2).strip()
    params: Dict[str, Any] = {}
    if body:
        for part in body.split(","):
            key, sep, raw = part.partition("=")
            if not sep or not key.strip():
                return None
            params[key.strip()] = _parse_value(raw)
    return concept, params


@dataclass(frozen=True)
class MetadataFragment:
    """Comments gathered from one sub-tree, keyed by the node's $NodeId."""
    comments: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def empty(cls) -> "MetadataFragment":
        return _EMPTY_FRAGMENT

    @classmethod
    def for_node(cls, node: Mapping[str, Any]) -> "MetadataFragment":
        node_id = node.get("$NodeId")
        comment = node.get("$Comment")
        if isinstance(node_id, str) and node_id and isinstance(comment, str) and comment:
            return cls(MappingProxyType({node_id: comment}))
        return _EMPTY_FRAGMENT

    def merge(self, other: "MetadataFragment") -> "MetadataFragment":
        if not other.comments:
            return self
        if not self.comments:
            return other
        combined = dict(self.comments)
        combined.update(other.comments)
        return MetadataFragment(MappingProxyType(combined))


_EMPTY_FRAGMENT = MetadataFragment()


def fold_fragments(*fragments: MetadataFragment) -> MetadataFragment:
    result = _EMPTY_FRAGMENT
    for frag in fragments:
        result = result.merge(frag)
    return result


@dataclass
class ImportMetadata:
    """Side channel returned next to an imported tree."""
    comments: Dict[str, str] = field(default_factory=dict)
    node_editor_metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_fragment(
        cls,
        fragment: MetadataFragment,
        node_editor_metadata: Optional[Dict[str, Any]] = None,
    ) -> "ImportMetadata":
        return cls(comments=dict(fragment.comments), node_editor_metadata=node_editor_metadata)


__all__ = [
    "NodeIdGenerator",
    "node_id_prefix",
    "is_bookkeeping_key",
    "strip_metadata",
    "format_comment",
    "parse_comment",
    "MetadataFragment",
    "fold_fragments",
    "ImportMetadata",
    "CURVE_POINT_ID",
    "MATERIAL_LEAF_ID",
    "BIOME_ID",
    "TERRAIN_ID",
    "POINT3D_ID",
    "MATERIAL_DELIMITER_ID",
    "POSITION_DELIMITER_ID",
    "WEIGHTED_PREFAB_ID",
    "COLUMN_BLOCK_ID",
    "MESH_POINT_GENERATOR_ID",
    "SPACE_AND_DEPTH_LAYER_ID",
    "GRADIENT_NORMALIZER_ID",
]
