# WorldGraph compound expanders
#
# Internal concepts with no native primitive are lowered into a small native
# sub-tree. Each expander receives the Lowerer, the internal node, its parsed
# tag, the enclosing field name and the current depth. Returning None declines
# the node and the plain table-driven path runs instead.
#
# Round-trip behaviour per rule:
#   Conditional (density)      exact, recovered through a $Comment annotation
#   Conditional (material)     exact, queue rebuilt into a nested chain
#   Conditional (prop)         lossy, only TrueInput survives
#   HeightGradient             lossy, looks like any hand-written queue
#   GradientDensity            exact
#   LinearTransform + Offset   one-directional
#   SpaceAndDepth              exact
#   Cluster                    exact
#   Blend curve                lossy, resampled into one manual curve
#   SimplexRidgeNoise2D/3D     exact

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from ..core.categories import Category, NodeTag, split_tag
from ..core.identity import (
    GRADIENT_NORMALIZER_ID,
    MATERIAL_DELIMITER_ID,
    SPACE_AND_DEPTH_LAYER_ID,
    format_comment,
)
from ..core.tables import (
    CLUSTER_DEFAULTS,
    CONDITIONAL_STEEPNESS,
    DEFAULT_DEPTH_THRESHOLD,
    DEFAULT_WORLD_HEIGHT,
    HEIGHT_BAND_DEFAULT,
    HEIGHT_GATE_UPPER,
    MATERIAL_GATE_UPPER,
    MAX_LAYER_DEPTH,
    RIDGE_NOISE_BASES,
    SPACE_AND_DEPTH_CONTEXT,
)
from .curves import blend_curves
from .shapes import is_node, is_number

if TYPE_CHECKING:
    from .lowering import Lowerer

logger = logging.getLogger(__name__)

Node = Dict[str, Any]
Expander = Callable[["Lowerer", Node, NodeTag, Optional[str], int], Optional[Node]]


def _user_fields(node: Node, *consumed: str) -> Node:
    skip = set(consumed) | {"Type"}
    return {k: v for k, v in node.items() if k not in skip and not k.startswith("$")}


def expand_density_conditional(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Node:
    """
    Conditional -> Mix[FalseInput, TrueInput, step]

    step = Clamp(WallA=1, WallB=0, (Condition - Threshold) * 10000), so the
    mix factor snaps to 0 below the threshold and to 1 above it.
    """
    threshold = node.get("Threshold", 0)
    if not is_number(threshold):
        logger.warning(f"Conditional Threshold {threshold!r} is not numeric; using 0")
        threshold = 0

    condition = lw.lower_density(node.get("Condition"), "Condition", depth)
    true_branch = lw.lower_density(node.get("TrueInput"), "TrueInput", depth)
    false_branch = lw.lower_density(node.get("FalseInput"), "FalseInput", depth)

    shifted = lw.skeleton(Category.DENSITY, "Sum")
    shifted["Inputs"] = [condition, lw.density_constant(-threshold)]

    steep = lw.skeleton(Category.DENSITY, "Multiplier")
    steep["Inputs"] = [shifted, lw.density_constant(CONDITIONAL_STEEPNESS)]

    step = lw.skeleton(Category.DENSITY, "Clamp")
    step["WallA"] = 1
    step["WallB"] = 0
    step["Inputs"] = [steep]

    mix = lw.skeleton(Category.DENSITY, "Mix")
    mix["$Comment"] = format_comment("Conditional", Threshold=threshold)
    mix["Inputs"] = [false_branch, true_branch, step]
    return mix


def expand_material_chain(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Node:
    """
    Nested material Conditionals -> Queue of field-gated entries + fallback.

    Conditional(T=0.7, noise1, A, Conditional(T=0.45, noise2, B, D)) becomes
    Queue[FieldFunction(noise1, [{From: 0.7, To: 1000, A}]),
          FieldFunction(noise2, [{From: 0.45, To: 1000, B}]),
          D]
    """
    levels: List[Tuple[Node, Any, Any]] = []
    current: Any = node
    level_depth = depth
    while is_node(current) and split_tag(current.get("Type"))[1] == "Conditional":
        lw.check_depth(level_depth, "FalseInput")
        condition = current.get("Condition")
        threshold = current.get("Threshold")
        true_branch = current.get("TrueInput")
        if is_node(condition) and true_branch is not None and is_number(threshold):
            levels.append((condition, threshold, true_branch))
        else:
            logger.warning(f"Dropping incomplete material Conditional (Threshold={threshold!r})")
        current = current.get("FalseInput")
        level_depth += 1

    queue: List[Any] = []
    for condition, threshold, true_branch in levels:
        gate = lw.skeleton(Category.MATERIAL, "FieldFunction", skip=True)
        gate["FieldFunction"] = lw.lower_node(condition, "FieldFunction", level_depth + 1, Category.DENSITY)
        gate["Delimiters"] = [
            {
                "$NodeId": lw.new_id(MATERIAL_DELIMITER_ID),
                "From": threshold,
                "To": MATERIAL_GATE_UPPER,
                "Material": lw.lower_material(true_branch, level_depth),
            },
        ]
        queue.append(gate)
    queue.append(lw.lower_material_provider(current, level_depth, field="Queue", skip=True))

    out = lw.skeleton(Category.MATERIAL, "Queue", skip=True)
    out["Queue"] = queue
    return out


def expand_field_function_materials(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Node]:
    """FieldFunction with Materials[] + DelimiterRanges[] -> native Delimiters[]."""
    materials = node.get("Materials")
    if not isinstance(materials, list):
        return None
    ranges = node.get("DelimiterRanges")
    if not isinstance(ranges, list):
        ranges = []

    out = lw.skeleton(Category.MATERIAL, "FieldFunction", skip=True)
    if is_node(node.get("FieldFunction")):
        out["FieldFunction"] = lw.lower_node(node["FieldFunction"], "FieldFunction", depth + 1, Category.DENSITY)

    delimiters: List[Node] = []
    for i, material in enumerate(materials):
        rng = ranges[i] if i < len(ranges) and isinstance(ranges[i], dict) else {}
        delimiters.append({
            "$NodeId": lw.new_id(MATERIAL_DELIMITER_ID),
            "From": rng.get("From", 0),
            "To": rng.get("To", MATERIAL_GATE_UPPER),
            "Material": lw.lower_material(material, depth),
        })
    out["Delimiters"] = delimiters

    rest = _user_fields(node, "FieldFunction", "Materials", "DelimiterRanges")
    lw.lower_fields(rest, out, depth)
    return out


def expand_height_gradient(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Node:
    """HeightGradient -> Queue[FieldFunction(YValue, From=midpoint), Low]."""
    rng = node.get("Range") if isinstance(node.get("Range"), dict) else {}
    low_y = rng.get("Min", HEIGHT_BAND_DEFAULT[0])
    high_y = rng.get("Max", HEIGHT_BAND_DEFAULT[1])
    if not is_number(low_y) or not is_number(high_y):
        logger.warning(f"HeightGradient Range {rng!r} is not numeric; using {HEIGHT_BAND_DEFAULT}")
        low_y, high_y = HEIGHT_BAND_DEFAULT
    midpoint = (low_y + high_y) / 2

    high = node.get("High")
    if isinstance(high, str) or is_node(high):
        high_material = lw.lower_material(high, depth)
    else:
        high_material = lw.lower_material_provider(None, depth, field="High", skip=True)

    gate = lw.skeleton(Category.MATERIAL, "FieldFunction", skip=True)
    gate["FieldFunction"] = lw.skeleton(Category.DENSITY, "YValue")
    gate["Delimiters"] = [
        {
            "$NodeId": lw.new_id(MATERIAL_DELIMITER_ID),
            "From": midpoint,
            "To": HEIGHT_GATE_UPPER,
            "Material": high_material,
        },
    ]

    out = lw.skeleton(Category.MATERIAL, "Queue", skip=True)
    out["Queue"] = [gate, lw.lower_material_provider(node.get("Low"), depth, field="Low", skip=True)]
    return out


def expand_gradient_density(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Node:
    """GradientDensity(FromY, ToY) -> Normalizer(FromMin=ToY, FromMax=FromY, 0..1, [YValue])."""
    from_y = node.get("FromY", 0)
    to_y = node.get("ToY", DEFAULT_WORLD_HEIGHT)
    out: Node = {"$NodeId": lw.new_id(GRADIENT_NORMALIZER_ID), "Type": "Normalizer", "Skip": False}
    out["FromMin"] = to_y
    out["FromMax"] = from_y
    out["ToMin"] = 0.0
    out["ToMax"] = 1.0
    out["Inputs"] = [lw.skeleton(Category.DENSITY, "YValue")]
    return out


def expand_linear_offset(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Node]:
    """LinearTransform(Scale, Offset != 0) -> Sum[AmplitudeConstant(Scale), Constant(Offset)]."""
    offset = node.get("Offset")
    if not is_number(offset) or offset == 0:
        return None
    scaled = lw.skeleton(Category.DENSITY, "AmplitudeConstant")
    scaled["Value"] = node.get("Scale", 1)
    if is_node(node.get("Input")):
        scaled["Inputs"] = [lw.lower_node(node["Input"], "Input", depth + 1, Category.DENSITY)]
    out = lw.skeleton(Category.DENSITY, "Sum")
    out["Inputs"] = [scaled, lw.density_constant(offset)]
    return out


def expand_space_and_depth(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Node:
    """SpaceAndDepth(DepthThreshold, Empty, Solid) -> two ConstantThickness layers."""
    threshold = node.get("DepthThreshold")
    if not is_number(threshold):
        threshold = DEFAULT_DEPTH_THRESHOLD

    out = lw.skeleton(Category.MATERIAL, "SpaceAndDepth", skip=True)
    lw.lower_fields(_user_fields(node, "DepthThreshold", "Empty", "Solid"), out, depth)
    out["LayerContext"] = SPACE_AND_DEPTH_CONTEXT
    out["MaxExpectedDepth"] = MAX_LAYER_DEPTH
    out["Layers"] = [
        {
            "$NodeId": lw.new_id(SPACE_AND_DEPTH_LAYER_ID),
            "Type": "ConstantThickness",
            "Thickness": threshold,
            "Material": lw.lower_material(node.get("Empty"), depth),
        },
        {
            "$NodeId": lw.new_id(SPACE_AND_DEPTH_LAYER_ID),
            "Type": "ConstantThickness",
            "Thickness": MAX_LAYER_DEPTH - threshold,
            "Material": lw.lower_material(node.get("Solid"), depth),
        },
    ]
    return out


def expand_cluster(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Node:
    """Cluster(Props[]) -> Cluster(WeightedProps[{Weight: 1.0, ColumnProp}])."""
    out = lw.skeleton(Category.PROP, "Cluster")
    props = node.get("Props")
    if isinstance(props, list):
        out["WeightedProps"] = [
            {"Weight": 1.0, "ColumnProp": lw.lower_child(prop, "Prop", depth, Category.PROP)}
            for prop in props
        ]
    rest = _user_fields(node, "Props")
    for key, default in CLUSTER_DEFAULTS.items():
        rest.setdefault(key, default)
    lw.lower_fields(rest, out, depth)
    return out


def expand_prop_conditional(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Node]:
    true_branch = node.get("TrueInput")
    if not is_node(true_branch):
        return None
    logger.debug("Prop Conditional reduced to its TrueInput; Condition and FalseInput dropped")
    return lw.lower_node(true_branch, "Prop", depth + 1, Category.PROP)


def expand_blend_curve(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Node:
    return lw.lower_node(blend_curves(node, lw.curve_precision), field, depth + 1, Category.CURVE)


def expand_ridge_noise(lw: "Lowerer", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Node:
    """SimplexRidgeNoise -> Abs[SimplexNoise]; every noise field moves to the inner node."""
    inner = dict(node)
    inner["Type"] = RIDGE_NOISE_BASES[tag.name]
    out = lw.skeleton(tag.category, "Abs")
    out["Inputs"] = [lw.lower_node(inner, field, depth + 1, tag.category)]
    return out


COMPOUND_EXPANDERS: Dict[Tuple[Category, str], Expander] = {
    (Category.DENSITY, "Conditional"): expand_density_conditional,
    (Category.MATERIAL, "Conditional"): expand_material_chain,
    (Category.PROP, "Conditional"): expand_prop_conditional,
    (Category.MATERIAL, "FieldFunction"): expand_field_function_materials,
    (Category.MATERIAL, "HeightGradient"): expand_height_gradient,
    (Category.DENSITY, "GradientDensity"): expand_gradient_density,
    (Category.DENSITY, "LinearTransform"): expand_linear_offset,
    (Category.MATERIAL, "SpaceAndDepth"): expand_space_and_depth,
    (Category.PROP, "Cluster"): expand_cluster,
    (Category.CURVE, "Blend"): expand_blend_curve,
    **{(Category.DENSITY, ridge): expand_ridge_noise for ridge in RIDGE_NOISE_BASES},
}


__all__ = ["COMPOUND_EXPANDERS", "Expander"]
