# WorldGraph Lowerer: internal asset graph -> native asset format
#
# Responsibilities:
# - Resolve each node's category once, then either delegate to a compound
#   expander or apply the table-driven rename, field adjustments and Inputs[] packing
# - Fresh $NodeId for every generated node; Skip: false where the category carries it
# - Editor node positions emitted as $NodeEditorMetadata on the root
# - Never mutates its input; passed-through values are deep-copied
#
# Public API:
# - Lowerer(id_seed=None, max_depth=None, curve_precision=None)
# - Lowerer.lower(tree, editor_nodes=None, parent_field=None) -> dict
# - lower(tree, editor_nodes=None, parent_field=None) -> dict

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..core.categories import Category, NodeTag, parse_tag
from ..core.errors import TranslationDepthError
from ..core.identity import (
    COLUMN_BLOCK_ID,
    CURVE_POINT_ID,
    MATERIAL_LEAF_ID,
    MESH_POINT_GENERATOR_ID,
    POINT3D_ID,
    POSITION_DELIMITER_ID,
    WEIGHTED_PREFAB_ID,
    NodeIdGenerator,
    node_id_prefix,
)
from ..core.tables import (
    AXIS_OVERRIDE_FIELDS,
    BOUND_FIELD_EXPORT,
    BOUND_TYPES,
    CATEGORY_TYPE_EXPORT,
    COLUMN_LINEAR_DEFAULTS,
    DEFAULT_SEED,
    DOMAIN_WARP_DEFAULTS,
    FALLBACK_MATERIAL,
    FRAMEWORK_TYPES,
    INTERNAL_TO_NATIVE_TYPES,
    MESH2D_DEFAULTS,
    NATIVE_INPUT_LAYOUT,
    NATIVE_TO_INTERNAL_TYPES,
    NOISE_SCALE_FIELDS,
    POSITION_GATE_UPPER,
    PREFAB_DEFAULTS,
    RANGE_FLATTENING,
    SKIP_CATEGORIES,
    VECTOR_FLATTENING,
    input_layout,
    invert_scale,
)
from ..utils.settings import get_settings
from .curves import lower_curve_points
from .expanders import COMPOUND_EXPANDERS
from .shapes import count_nodes, is_bare_vector, is_node, is_number

logger = logging.getLogger(__name__)

Node = Dict[str, Any]
FieldAdjuster = Callable[["Lowerer", Node, NodeTag, str], Node]


# ---------------------------------------------------------------------------
# Per-type field adjustments
# ---------------------------------------------------------------------------

def _adjust_noise(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    if "Frequency" in out:
        scale = invert_scale(out.pop("Frequency"))
        for name in NOISE_SCALE_FIELDS[native_type]:
            out[name] = scale
    if "Gain" in out:
        out["Persistence"] = out.pop("Gain")
    if is_number(out.get("Seed")):
        out["Seed"] = str(out["Seed"])
    # No native noise codec has an amplitude
    out.pop("Amplitude", None)
    return out


def _adjust_bounds(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = {k: v for k, v in fields.items() if k not in BOUND_FIELD_EXPORT}
    for internal, native in BOUND_FIELD_EXPORT.items():
        if internal in fields:
            out[native] = fields[internal]
    return out


def _adjust_ranges(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    for range_key, flat in RANGE_FLATTENING.items():
        rng = out.get(range_key)
        if not isinstance(rng, dict):
            continue
        for sub_key, flat_key in flat.items():
            if sub_key in rng:
                out[flat_key] = rng[sub_key]
        del out[range_key]
    return out


def _adjust_vector(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    vector_field, (fx, fy, fz) = VECTOR_FLATTENING[(tag.name, tag.category)]
    vec = fields.get(vector_field)
    if not is_bare_vector(vec):
        return fields
    out = dict(fields)
    del out[vector_field]
    out[fx] = vec.get("x", 0)
    out[fy] = vec.get("y", 0)
    out[fz] = vec.get("z", 0)
    return out


def _adjust_rotator(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    if "AngleDegrees" not in fields:
        return fields
    out = dict(fields)
    out["SpinAngle"] = out.pop("AngleDegrees")
    # A connected vector node wins over the default up axis
    out.setdefault("NewYAxis", {"x": 0, "y": 1, "z": 0})
    return out


def _adjust_domain_warp(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    if "Amplitude" in out:
        out["WarpFactor"] = out.pop("Amplitude")
    for key, default in DOMAIN_WARP_DEFAULTS.items():
        out.setdefault(key, default)
    return out


def _adjust_linear_transform(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    if "Scale" in out:
        out["Value"] = out.pop("Scale")
    # Nonzero offsets never get here; the compound rule splits them into a Sum
    out.pop("Offset", None)
    return out


def _adjust_square(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    out["Exponent"] = 2
    return out


def _adjust_override(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    internal_key = AXIS_OVERRIDE_FIELDS[native_type]
    if internal_key not in fields:
        return fields
    out = dict(fields)
    out["Value"] = out.pop(internal_key)
    return out


def _adjust_cache(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    out.setdefault("Capacity", 1)
    return out


def _adjust_column_linear(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    rng = out.get("Range")
    if isinstance(rng, dict):
        out["MinY"] = rng.get("Min")
        out["MaxY"] = rng.get("Max")
        del out["Range"]
    # Native scanners visit every Y
    out.pop("StepSize", None)
    for key, default in COLUMN_LINEAR_DEFAULTS.items():
        out.setdefault(key, default)
    return out


def _adjust_prefab(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    paths = out.get("WeightedPrefabPaths")
    if isinstance(paths, list):
        out["WeightedPrefabPaths"] = [
            {"$NodeId": lw.new_id(WEIGHTED_PREFAB_ID), **copy.deepcopy(entry)}
            if isinstance(entry, dict) else copy.deepcopy(entry)
            for entry in paths
        ]
    elif isinstance(out.get("Path"), str):
        path = out.pop("Path")
        out["WeightedPrefabPaths"] = [
            {"$NodeId": lw.new_id(WEIGHTED_PREFAB_ID), "Path": path, "Weight": 1},
        ]
    else:
        return out
    for key, default in PREFAB_DEFAULTS.items():
        out.setdefault(key, default)
    return out


def _adjust_column_prop(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    if "Height" not in fields or "Material" not in fields:
        return fields
    out = dict(fields)
    height = out.pop("Height")
    material = out.pop("Material")
    if isinstance(material, str):
        material = lw.material_leaf(material)
    else:
        material = copy.deepcopy(material)
    out["ColumnBlocks"] = [
        {"$NodeId": lw.new_id(COLUMN_BLOCK_ID), "Y": height, "Material": material},
    ]
    return out


def _adjust_box_prop(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    if "Size" in out:
        out["Range"] = out.pop("Size")
    return out


def _adjust_mesh2d(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    spacing = out.pop("Resolution", None)
    jitter = out.pop("Jitter", None)
    if spacing is None:
        spacing = MESH2D_DEFAULTS["Resolution"]
    if jitter is None:
        jitter = MESH2D_DEFAULTS["Jitter"]
    out["PointGenerator"] = {
        "$NodeId": lw.new_id(MESH_POINT_GENERATOR_ID),
        "Type": "Mesh",
        "Jitter": jitter,
        "ScaleX": spacing,
        "ScaleY": spacing,
        "ScaleZ": spacing,
        "Seed": DEFAULT_SEED,
    }
    out.setdefault("PointsY", 0)
    return out


def _adjust_density_based(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    if "DensityFunction" in out:
        out["FieldFunction"] = out.pop("DensityFunction")
    if "PositionProvider" in out:
        out["Positions"] = out.pop("PositionProvider")
    elif "Positions" not in out:
        out["Positions"] = {"Type": "Mesh2D", **MESH2D_DEFAULTS}
    if "Threshold" in out:
        out["Delimiters"] = [
            {
                "$NodeId": lw.new_id(POSITION_DELIMITER_ID),
                "Min": out.pop("Threshold"),
                "Max": POSITION_GATE_UPPER,
            },
        ]
    return out


def _adjust_uniform(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    out.setdefault("Seed", DEFAULT_SEED)
    out.setdefault("Pattern", {"Type": "Floor"})
    return out


def _adjust_cell_positions(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    if "ReturnCurve" not in fields:
        return fields
    out = dict(fields)
    out["Curve"] = out.pop("ReturnCurve")
    return out


def _adjust_environment_default(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    out.setdefault("Environment", "default")
    return out


def _adjust_tint_gradient(lw: "Lowerer", fields: Node, tag: NodeTag, native_type: str) -> Node:
    out = dict(fields)
    if "From" in out:
        out["Color"] = out.pop("From")
    out.pop("To", None)
    logger.debug("Tint Gradient lowered to Constant; To color dropped")
    return out


_NATIVE_ADJUSTERS: Dict[str, Tuple[FieldAdjuster, ...]] = {
    **{name: (_adjust_noise,) for name in NOISE_SCALE_FIELDS},
    **{name: (_adjust_bounds,) for name in BOUND_TYPES},
    **{name: (_adjust_override,) for name in AXIS_OVERRIDE_FIELDS},
    "Normalizer": (_adjust_ranges,),
    "Cache": (_adjust_cache,),
}

_TAG_ADJUSTERS: Dict[Tuple[Category, str], Tuple[FieldAdjuster, ...]] = {
    **{(c, n): (_adjust_vector,) for n, c in VECTOR_FLATTENING},
    (Category.DENSITY, "RotatedPosition"): (_adjust_rotator,),
    (Category.DENSITY, "DomainWarp2D"): (_adjust_domain_warp,),
    (Category.DENSITY, "DomainWarp3D"): (_adjust_domain_warp,),
    (Category.DENSITY, "LinearTransform"): (_adjust_linear_transform,),
    (Category.DENSITY, "Square"): (_adjust_square,),
    (Category.SCANNER, "ColumnLinear"): (_adjust_column_linear,),
    (Category.PROP, "Prefab"): (_adjust_prefab,),
    (Category.PROP, "Column"): (_adjust_column_prop,),
    (Category.PROP, "Box"): (_adjust_box_prop,),
    (Category.POSITION, "Mesh2D"): (_adjust_mesh2d,),
    (Category.POSITION, "DensityBased"): (_adjust_density_based,),
    (Category.POSITION, "FieldFunction"): (_adjust_density_based,),
    (Category.POSITION, "PositionsCellNoise"): (_adjust_cell_positions,),
    (Category.DIRECTIONALITY, "Uniform"): (_adjust_uniform,),
    (Category.ENVIRONMENT, "Default"): (_adjust_environment_default,),
    (Category.ENVIRONMENT, "Constant"): (_adjust_environment_default,),
    (Category.TINT, "Gradient"): (_adjust_tint_gradient,),
}


def _adjusters_for(tag: NodeTag, native_type: str) -> Iterable[FieldAdjuster]:
    yield from _NATIVE_ADJUSTERS.get(native_type, ())
    yield from _TAG_ADJUSTERS.get((tag.category, tag.name), ())


def build_editor_metadata(editor_nodes: Iterable[Mapping[str, Any]]) -> Node:
    """$NodeEditorMetadata block from editor nodes ({"id", "position": {"x", "y"}})."""
    positions: Dict[str, Dict[str, Any]] = {}
    for n in editor_nodes:
        node_id = n.get("id") if isinstance(n, Mapping) else None
        pos = n.get("position") if isinstance(n, Mapping) else None
        if not isinstance(node_id, str) or not isinstance(pos, Mapping):
            logger.debug(f"Skipping editor node without id/position: {n!r}")
            continue
        positions[node_id] = {"x": pos.get("x", 0), "y": pos.get("y", 0)}
    return {
        "Positions": positions,
        "Groups": [],
        "FloatingNodes": [],
        "Links": [],
        "Comments": [],
    }


class Lowerer:
    """Recursive internal -> native rewrite. One instance may be reused across calls."""

    def __init__(
        self,
        id_seed: Optional[int] = None,
        max_depth: Optional[int] = None,
        curve_precision: Optional[int] = None,
    ) -> None:
        if id_seed is None or max_depth is None or curve_precision is None:
            settings = get_settings()
            id_seed = settings.id_seed if id_seed is None else id_seed
            max_depth = settings.max_depth if max_depth is None else max_depth
            curve_precision = settings.curve_precision if curve_precision is None else curve_precision
        self.ids = NodeIdGenerator(id_seed)
        self.max_depth = max_depth
        self.curve_precision = curve_precision

    # -----------------
    # Entry point
    # -----------------
    def lower(
        self,
        tree: Any,
        editor_nodes: Optional[Iterable[Mapping[str, Any]]] = None,
        parent_field: Optional[str] = None,
    ) -> Node:
        if not is_node(tree):
            logger.warning("Root is not a typed node; exporting a Constant 0 placeholder")
            tree = {"Type": "Constant", "Value": 0}
        out = self.lower_node(tree, parent_field)
        if editor_nodes:
            out["$NodeEditorMetadata"] = build_editor_metadata(editor_nodes)
        logger.info(f"Lowered {tree.get('Type')} -> {out.get('Type')} ({count_nodes(out)} native nodes)")
        return out

    # -----------------
    # Node dispatch
    # -----------------
    def lower_node(
        self,
        node: Node,
        parent_field: Optional[str] = None,
        depth: int = 0,
        category: Optional[Category] = None,
    ) -> Node:
        self.check_depth(depth, parent_field)
        tag = parse_tag(node.get("Type"), parent_field)
        if category is not None and category is not tag.category:
            tag = NodeTag(category=category, name=tag.name, raw=tag.raw)

        if tag.name == "Constant" and (tag.category is Category.VECTOR or is_bare_vector(node.get("Value"))):
            return self.point3d(node.get("Value"))

        expander = COMPOUND_EXPANDERS.get((tag.category, tag.name))
        if expander is not None:
            result = expander(self, node, tag, parent_field, depth)
            if result is not None:
                logger.debug(f"{expander.__name__} lowered {tag.raw} ({tag.category.value})")
                return result
        return self._lower_plain(node, tag, depth)

    def _lower_plain(self, node: Node, tag: NodeTag, depth: int) -> Node:
        native_type = CATEGORY_TYPE_EXPORT.get((tag.category, tag.name)) or INTERNAL_TO_NATIVE_TYPES.get(tag.name, tag.name)
        if native_type == tag.name and tag.name not in NATIVE_TO_INTERNAL_TYPES:
            logger.debug(f"No rename for {tag.name!r}; emitting it unchanged")

        framework = native_type in FRAMEWORK_TYPES
        out: Node = {}
        if not framework:
            out["$NodeId"] = self.new_id(node_id_prefix(tag.category, native_type))
        out["Type"] = native_type
        if tag.category in SKIP_CATEGORIES and not framework:
            out["Skip"] = False

        fields = {k: v for k, v in node.items() if k != "Type" and not k.startswith("$")}
        for adjust in _adjusters_for(tag, native_type):
            fields = adjust(self, fields, tag, native_type)

        if tag.category is Category.DENSITY:
            inputs, fields = self._pack_inputs(fields, tag, native_type, depth)
            if inputs:
                out["Inputs"] = inputs

        self.lower_fields(fields, out, depth)
        return out

    # -----------------
    # Inputs[] packing
    # -----------------
    def _pack_inputs(self, fields: Node, tag: NodeTag, native_type: str, depth: int) -> Tuple[List[Any], Node]:
        if tag.name == "Sum":
            if "InputA" in fields or "InputB" in fields:
                rest = {k: v for k, v in fields.items() if k not in ("InputA", "InputB")}
                flat: List[Any] = []
                for key in ("InputA", "InputB"):
                    if key in fields:
                        self._collect_sum_terms(fields[key], flat, depth + 1)
                return flat, rest
            if isinstance(fields.get("Inputs"), list):
                rest = {k: v for k, v in fields.items() if k != "Inputs"}
                return [self.lower_child(v, "Input", depth) for v in fields["Inputs"]], rest
            return [], fields

        handles = input_layout(tag.name) or NATIVE_INPUT_LAYOUT.get(native_type, ())
        if not handles:
            return [], fields
        slots: List[Tuple[int, Any]] = []
        rest: Node = {}
        for key, value in fields.items():
            if key in handles:
                if value is not None:
                    slots.append((handles.index(key), self.lower_child(value, key, depth, Category.DENSITY)))
            else:
                rest[key] = value
        slots.sort(key=lambda s: s[0])
        return [v for _, v in slots], rest

    def _collect_sum_terms(self, term: Any, flat: List[Any], depth: int) -> None:
        self.check_depth(depth, "InputA")
        if is_node(term) and term.get("Type") == "Sum" and set(term) == {"Type", "InputA", "InputB"}:
            self._collect_sum_terms(term["InputA"], flat, depth + 1)
            self._collect_sum_terms(term["InputB"], flat, depth + 1)
            return
        if term is None:
            return
        flat.append(self.lower_child(term, "Input", depth, Category.DENSITY))

    # -----------------
    # Fields
    # -----------------
    def lower_fields(self, fields: Mapping[str, Any], out: Node, depth: int) -> Node:
        for key, value in fields.items():
            if key == "Type" or key.startswith("$"):
                continue
            out[key] = self.lower_field(key, value, depth)
        return out

    def lower_field(self, key: str, value: Any, depth: int) -> Any:
        if key == "Points" and isinstance(value, list):
            return lower_curve_points(value, lambda: self.new_id(CURVE_POINT_ID))
        if key == "Material" and isinstance(value, str):
            return self.material_leaf(value)
        if key == "PointGenerator":
            return copy.deepcopy(value)
        if key in ("NewYAxis", "Vector") and is_bare_vector(value):
            return self.point3d(value)
        if is_node(value):
            return self.lower_node(value, key, depth + 1)
        # Lists are lowered only when they start with a node; anything else is copied as is
        if isinstance(value, list) and value and is_node(value[0]):
            return [self.lower_child(item, key, depth) for item in value]
        return copy.deepcopy(value)

    def lower_child(self, value: Any, field: str, depth: int, category: Optional[Category] = None) -> Any:
        if is_node(value):
            return self.lower_node(value, field, depth + 1, category)
        return copy.deepcopy(value)

    # -----------------
    # Builders shared with the compound expanders
    # -----------------
    def new_id(self, prefix: str) -> str:
        return self.ids.new(prefix)

    def check_depth(self, depth: int, where: Optional[str]) -> None:
        if depth > self.max_depth:
            raise TranslationDepthError(depth, self.max_depth, path=where or "$")

    def skeleton(self, category: Category, native_type: str, skip: Optional[bool] = None) -> Node:
        out: Node = {"$NodeId": self.new_id(node_id_prefix(category, native_type)), "Type": native_type}
        if skip is None:
            skip = category in SKIP_CATEGORIES
        if skip:
            out["Skip"] = False
        return out

    def point3d(self, value: Any) -> Node:
        vec = value if isinstance(value, dict) else {}
        return {
            "$NodeId": self.new_id(POINT3D_ID),
            "X": vec.get("x", 0),
            "Y": vec.get("y", 0),
            "Z": vec.get("z", 0),
        }

    def material_leaf(self, name: str) -> Node:
        return {"$NodeId": self.new_id(MATERIAL_LEAF_ID), "Solid": name}

    def constant_material(self, name: str, skip: Optional[bool] = None) -> Node:
        out = self.skeleton(Category.MATERIAL, "Constant", skip)
        out["Material"] = self.material_leaf(name)
        return out

    def density_constant(self, value: Any) -> Node:
        out = self.skeleton(Category.DENSITY, "Constant")
        out["Value"] = value
        return out

    def lower_density(self, value: Any, field: str, depth: int) -> Node:
        if is_node(value):
            return self.lower_node(value, field, depth + 1, Category.DENSITY)
        logger.warning(f"Missing density input {field!r}; using Constant 0")
        return self.density_constant(0)

    def lower_material(self, value: Any, depth: int, field: str = "Material") -> Any:
        """Material slot: strings become leaf records, nodes lower in material context."""
        if isinstance(value, str):
            return self.material_leaf(value)
        if is_node(value):
            return self.lower_node(value, field, depth + 1, Category.MATERIAL)
        if value is None:
            logger.warning(f"Missing material in {field!r}; using {FALLBACK_MATERIAL!r}")
            return self.material_leaf(FALLBACK_MATERIAL)
        return copy.deepcopy(value)

    def lower_material_provider(self, value: Any, depth: int, field: str = "Material", skip: Optional[bool] = None) -> Node:
        """Provider slot: strings become Constant providers, nodes lower in material context."""
        if isinstance(value, str):
            return self.constant_material(value, skip)
        if is_node(value):
            return self.lower_node(value, field, depth + 1, Category.MATERIAL)
        logger.warning(f"Missing material provider in {field!r}; using {FALLBACK_MATERIAL!r}")
        return self.constant_material(FALLBACK_MATERIAL, skip)


def lower(
    tree: Any,
    editor_nodes: Optional[Iterable[Mapping[str, Any]]] = None,
    parent_field: Optional[str] = None,
) -> Node:
    """Export one internal asset tree to the native format."""
    return Lowerer().lower(tree, editor_nodes=editor_nodes, parent_field=parent_field)


__all__ = [
    "Lowerer",
    "lower",
    "build_editor_metadata",
]
