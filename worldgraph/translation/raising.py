# WorldGraph Raiser: native asset format -> internal asset graph
#
# Responsibilities:
# - Resolve each node's category (parent field, then $NodeId markers, then density)
# - Try compound collapsers before any plain rename, since a collapsed wrapper
#   and its fields no longer exist afterwards
# - Reverse the per-type field adjustments and redistribute Inputs[] onto named fields
# - Strip $NodeId / Skip / $Comment everywhere, unwrap material leaves to strings,
#   promote bare {X, Y, Z} records to constant vector nodes
# - Return comments and the root editor metadata as a side channel, never embedded
#
# Public API:
# - Raiser(max_depth=None)
# - Raiser.raise_asset(tree) -> RaiseResult
# - raise_asset(tree) -> RaiseResult

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from ..core.categories import Category, NodeTag, parse_tag
from ..core.errors import TranslationDepthError
from ..core.identity import (
    ImportMetadata,
    MetadataFragment,
    is_bookkeeping_key,
    strip_metadata,
)
from ..core.tables import (
    AXIS_OVERRIDE_FIELDS,
    BOUND_FIELD_IMPORT,
    BOUND_TYPES,
    CATEGORY_TYPE_IMPORT,
    COLUMN_LINEAR_DEFAULTS,
    DOMAIN_WARP_DEFAULTS,
    EDITOR_METADATA_KEY,
    NATIVE_INPUT_LAYOUT,
    NOISE_SCALE_FIELDS,
    PREFAB_DEFAULTS,
    RANGE_FLATTENING,
    VECTOR_FLATTENING,
    input_layout,
    internal_type_for,
    invert_scale,
)
from ..utils.settings import get_settings
from .collapsers import COMPOUND_COLLAPSERS
from .curves import raise_curve_points
from .shapes import count_nodes, is_material_leaf, is_node, is_number, is_point3d

logger = logging.getLogger(__name__)

Node = Dict[str, Any]
Raised = Tuple[Any, MetadataFragment]
FieldRestorer = Callable[["Raiser", Node, NodeTag, str], Node]

_DEFAULT_UP_AXIS = {"X": 0, "Y": 1, "Z": 0}


@dataclass
class RaiseResult:
    """Internal tree plus the import side channel. Unpacks as (tree, metadata)."""
    tree: Any
    metadata: ImportMetadata = field(default_factory=ImportMetadata)

    def __iter__(self) -> Iterator[Any]:
        yield self.tree
        yield self.metadata


# ---------------------------------------------------------------------------
# Per-type field restoration (inverse of the lowering adjusters)
# ---------------------------------------------------------------------------

def _restore_noise(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = dict(fields)
    scale_fields = NOISE_SCALE_FIELDS[tag.name]
    if scale_fields[0] in out:
        out["Frequency"] = invert_scale(out[scale_fields[0]])
    for name in scale_fields:
        out.pop(name, None)
    if "Persistence" in out:
        out["Gain"] = out.pop("Persistence")
    return out


def _restore_bounds(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = {k: v for k, v in fields.items() if k not in BOUND_FIELD_IMPORT}
    for native, name in BOUND_FIELD_IMPORT.items():
        if native in fields:
            out[name] = fields[native]
    return out


def _restore_ranges(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = dict(fields)
    for range_key, flat in RANGE_FLATTENING.items():
        rng = {sub: out.pop(flat_key) for sub, flat_key in flat.items() if flat_key in out}
        if rng:
            out[range_key] = rng
    return out


def _restore_vector(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    vector_field, axes = VECTOR_FLATTENING[(internal, tag.category)]
    present = [a for a in axes if a in fields]
    # Scale has no neutral default per axis; the others treat a missing axis as 0
    if not present or (internal == "ScaledPosition" and len(present) != 3):
        return fields
    out = {k: v for k, v in fields.items() if k not in axes}
    out[vector_field] = {c: fields.get(a, 0) for c, a in zip(("x", "y", "z"), axes)}
    return out


def _restore_rotator(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = dict(fields)
    if "SpinAngle" in out:
        out["AngleDegrees"] = out.pop("SpinAngle")
    axis = out.get("NewYAxis")
    if is_point3d(axis) and {k: axis.get(k) for k in _DEFAULT_UP_AXIS} == _DEFAULT_UP_AXIS:
        del out["NewYAxis"]
    return out


def _restore_domain_warp(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = {k: v for k, v in fields.items() if DOMAIN_WARP_DEFAULTS.get(k, object()) != v}
    if "WarpFactor" in out:
        out["Amplitude"] = out.pop("WarpFactor")
    return out


def _restore_linear_transform(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = dict(fields)
    if "Value" in out:
        out["Scale"] = out.pop("Value")
    out.setdefault("Offset", 0)
    return out


def _restore_override(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    if "Value" not in fields:
        return fields
    out = dict(fields)
    out[AXIS_OVERRIDE_FIELDS[tag.name]] = out.pop("Value")
    return out


def _restore_cache(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    return {k: v for k, v in fields.items() if k not in ("Capacity", "ExportAs")}


def _restore_column_linear(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = {k: v for k, v in fields.items() if COLUMN_LINEAR_DEFAULTS.get(k, object()) != v}
    if "MinY" in out or "MaxY" in out:
        out["Range"] = {"Min": out.pop("MinY", None), "Max": out.pop("MaxY", None)}
    out.setdefault("StepSize", 1)
    return out


def _restore_prefab(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = {k: v for k, v in fields.items() if PREFAB_DEFAULTS.get(k, object()) != v}
    paths = out.get("WeightedPrefabPaths")
    if not isinstance(paths, list):
        return out
    paths = strip_metadata(paths)
    if len(paths) == 1 and isinstance(paths[0], dict) and set(paths[0]) == {"Path", "Weight"} and paths[0]["Weight"] == 1:
        del out["WeightedPrefabPaths"]
        out["Path"] = paths[0]["Path"]
    else:
        out["WeightedPrefabPaths"] = paths
    return out


def _restore_column_prop(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    blocks = fields.get("ColumnBlocks")
    if not isinstance(blocks, list) or len(blocks) != 1 or not isinstance(blocks[0], dict):
        return fields
    out = {k: v for k, v in fields.items() if k != "ColumnBlocks"}
    out["Height"] = blocks[0].get("Y")
    out["Material"] = blocks[0].get("Material")
    return out


def _restore_box_prop(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = dict(fields)
    if "Range" in out:
        out["Size"] = out.pop("Range")
    return out


def _restore_mesh2d(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = {k: v for k, v in fields.items() if k not in ("PointGenerator", "PointsY")}
    generator = fields.get("PointGenerator")
    if isinstance(generator, dict):
        if "ScaleX" in generator:
            out["Resolution"] = generator["ScaleX"]
        if "Jitter" in generator:
            out["Jitter"] = generator["Jitter"]
    return out


def _restore_density_based(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = dict(fields)
    if "FieldFunction" in out:
        out["DensityFunction"] = out.pop("FieldFunction")
    if "Positions" in out:
        out["PositionProvider"] = out.pop("Positions")
    delimiters = out.pop("Delimiters", None)
    if isinstance(delimiters, list) and delimiters and isinstance(delimiters[0], dict):
        out["Threshold"] = delimiters[0].get("Min", 0)
    return out


def _restore_uniform(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    return {k: v for k, v in fields.items() if k not in ("Seed", "Pattern")}


def _restore_cell_positions(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    out = dict(fields)
    for key in ("ReturnType", "DistanceFunction"):
        if isinstance(out.get(key), dict):
            out[key] = out[key].get("Type")
    if "Curve" in out:
        out["ReturnCurve"] = out.pop("Curve")
    return out


def _restore_environment_default(rs: "Raiser", fields: Node, tag: NodeTag, internal: str) -> Node:
    return {k: v for k, v in fields.items() if k != "Environment"}


_NATIVE_RESTORERS: Dict[str, Tuple[FieldRestorer, ...]] = {
    **{name: (_restore_noise,) for name in NOISE_SCALE_FIELDS},
    **{name: (_restore_bounds,) for name in BOUND_TYPES},
    **{name: (_restore_override,) for name in AXIS_OVERRIDE_FIELDS},
    "Normalizer": (_restore_ranges,),
    "Cache": (_restore_cache,),
}

_TAG_RESTORERS: Dict[Tuple[Category, str], Tuple[FieldRestorer, ...]] = {
    **{(c, n): (_restore_vector,) for n, c in VECTOR_FLATTENING},
    (Category.DENSITY, "RotatedPosition"): (_restore_rotator,),
    (Category.DENSITY, "DomainWarp2D"): (_restore_domain_warp,),
    (Category.DENSITY, "LinearTransform"): (_restore_linear_transform,),
    (Category.SCANNER, "ColumnLinear"): (_restore_column_linear,),
    (Category.PROP, "Prefab"): (_restore_prefab,),
    (Category.PROP, "Column"): (_restore_column_prop,),
    (Category.PROP, "Box"): (_restore_box_prop,),
    (Category.POSITION, "Mesh2D"): (_restore_mesh2d,),
    (Category.POSITION, "DensityBased"): (_restore_density_based,),
    (Category.POSITION, "PositionsCellNoise"): (_restore_cell_positions,),
    (Category.DIRECTIONALITY, "Uniform"): (_restore_uniform,),
    (Category.ENVIRONMENT, "Default"): (_restore_environment_default,),
}


def _restorers_for(tag: NodeTag, internal: str) -> Iterable[FieldRestorer]:
    yield from _NATIVE_RESTORERS.get(tag.name, ())
    yield from _TAG_RESTORERS.get((tag.category, internal), ())


def _has_input(node: Node) -> bool:
    inputs = node.get("Inputs")
    return "Input" in node or (isinstance(inputs, list) and len(inputs) > 0)


class Raiser:
    """Recursive native -> internal rewrite returning (node, MetadataFragment) pairs."""

    def __init__(self, max_depth: Optional[int] = None) -> None:
        self.max_depth = get_settings().max_depth if max_depth is None else max_depth

    # -----------------
    # Entry point
    # -----------------
    def raise_asset(self, tree: Any) -> RaiseResult:
        editor_metadata = None
        if isinstance(tree, dict) and isinstance(tree.get(EDITOR_METADATA_KEY), dict):
            editor_metadata = strip_metadata(tree[EDITOR_METADATA_KEY])

        if isinstance(tree, str):
            raised: Any = {"Type": "Constant", "Material": tree}
            frag = MetadataFragment.empty()
        elif is_material_leaf(tree):
            raised = {"Type": "Constant", "Material": tree.get("Solid")}
            frag = MetadataFragment.empty()
        else:
            raised, frag = self.raise_child(tree, None, -1)

        metadata = ImportMetadata.from_fragment(frag, node_editor_metadata=editor_metadata)
        root_type = raised.get("Type") if isinstance(raised, dict) else type(raised).__name__
        logger.info(
            f"Raised {root_type} ({count_nodes(raised)} internal nodes, "
            f"{len(metadata.comments)} comments)"
        )
        return RaiseResult(tree=raised, metadata=metadata)

    # -----------------
    # Node dispatch
    # -----------------
    def raise_node(
        self,
        node: Node,
        parent_field: Optional[str] = None,
        depth: int = 0,
        category: Optional[Category] = None,
    ) -> Raised:
        self.check_depth(depth, parent_field)
        frag = MetadataFragment.for_node(node)
        tag = parse_tag(node.get("Type"), parent_field, node.get("$NodeId"))
        if category is not None and category is not tag.category:
            tag = NodeTag(category=category, name=tag.name, raw=tag.raw)

        collapser = COMPOUND_COLLAPSERS.get((tag.category, tag.name))
        if collapser is not None:
            result = collapser(self, node, tag, parent_field, depth)
            if result is not None:
                logger.debug(f"{collapser.__name__} collapsed {tag.name} ({tag.category.value})")
                return result[0], frag.merge(result[1])

        internal = self.internal_name(node, tag)
        fields = {k: v for k, v in node.items() if k != "Type" and not is_bookkeeping_key(k)}
        if internal == "Square":
            fields.pop("Exponent", None)
        for restore in _restorers_for(tag, internal):
            fields = restore(self, fields, tag, internal)

        out: Node = {"Type": internal}
        if tag.category is Category.DENSITY and isinstance(fields.get("Inputs"), list):
            named, f = self._unpack_inputs(fields.pop("Inputs"), tag, internal, depth)
            out.update(named)
            frag = frag.merge(f)

        rest, f = self.raise_fields(fields, depth)
        out.update(rest)
        return out, frag.merge(f)

    def internal_name(self, node: Node, tag: NodeTag) -> str:
        """Internal operation name for a native node, deciding the per-node special cases."""
        native = tag.name
        if native == "Cube":
            return "CubeMath" if _has_input(node) else "Cube"
        if native == "Pow":
            exponent = node.get("Exponent")
            return "Square" if exponent is None or (is_number(exponent) and exponent == 2) else "Pow"
        renamed = CATEGORY_TYPE_IMPORT.get((tag.category, native))
        if renamed is not None:
            if tag.category is Category.ENVIRONMENT and node.get("Environment", "default") != "default":
                return native
            return renamed
        return internal_type_for(native)

    # -----------------
    # Inputs[] distribution
    # -----------------
    def _unpack_inputs(self, inputs: List[Any], tag: NodeTag, internal: str, depth: int) -> Tuple[Node, MetadataFragment]:
        frag = MetadataFragment.empty()
        raised: List[Any] = []
        for item in inputs:
            value, f = self.raise_child(item, "Input", depth, Category.DENSITY)
            raised.append(value)
            frag = frag.merge(f)

        handles = () if internal == "Sum" else (input_layout(internal) or NATIVE_INPUT_LAYOUT.get(tag.name, ()))
        out: Node = {}
        for handle, value in zip(handles, raised):
            out[handle] = value
        overflow = raised[len(handles):]
        if overflow:
            out["Inputs"] = overflow
        return out, frag

    # -----------------
    # Fields
    # -----------------
    def raise_fields(self, fields: Node, depth: int) -> Tuple[Node, MetadataFragment]:
        out: Node = {}
        frag = MetadataFragment.empty()
        for key, value in fields.items():
            if is_bookkeeping_key(key):
                continue
            out[key], f = self.raise_field(key, value, depth)
            frag = frag.merge(f)
        return out, frag

    def raise_field(self, key: str, value: Any, depth: int) -> Raised:
        if key == "Points" and isinstance(value, list):
            return strip_metadata(raise_curve_points(value)), MetadataFragment.empty()
        return self.raise_child(value, key, depth)

    def raise_child(
        self,
        value: Any,
        field_name: Optional[str],
        depth: int,
        category: Optional[Category] = None,
    ) -> Raised:
        """Raise any value found in a field: nodes, leaves, vectors, records and lists."""
        if is_material_leaf(value):
            solid = value.get("Solid")
            return (solid if isinstance(solid, str) else strip_metadata(value)), MetadataFragment.empty()
        if is_point3d(value):
            vec = {"x": value.get("X", 0), "y": value.get("Y", 0), "z": value.get("Z", 0)}
            return {"Type": "Constant", "Value": vec}, MetadataFragment.empty()
        if is_node(value):
            return self.raise_node(value, field_name, depth + 1, category)
        if isinstance(value, list):
            items: List[Any] = []
            frag = MetadataFragment.empty()
            for item in value:
                raised, f = self.raise_child(item, field_name, depth, category)
                items.append(raised)
                frag = frag.merge(f)
            return items, frag
        if isinstance(value, dict):
            return self.raise_fields(value, depth)
        return value, MetadataFragment.empty()

    def check_depth(self, depth: int, where: Optional[str]) -> None:
        if depth > self.max_depth:
            raise TranslationDepthError(depth, self.max_depth, path=where or "$")


def raise_asset(tree: Any) -> RaiseResult:
    """Import one native asset tree into the internal format."""
    return Raiser().raise_asset(tree)


__all__ = [
    "Raiser",
    "RaiseResult",
    "raise_asset",
]
