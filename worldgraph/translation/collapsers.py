# WorldGraph compound collapsers
#
# Reverse counterparts of the compound expanders. A collapser inspects a native
# node before any plain type rename runs and, when the node has the exact shape
# its expander produces, folds the whole sub-tree back into one internal node.
# Returning None leaves the node to the plain table-driven path.
#
# Not collapsed (lossy or one-directional on purpose):
#   height-banded material queue, Sum-wrapped linear offset, prop Conditional,
#   blend curves

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from ..core.categories import Category, NodeTag
from ..core.identity import MetadataFragment, is_bookkeeping_key, parse_comment
from ..core.tables import (
    CLUSTER_DEFAULTS,
    DEFAULT_DEPTH_THRESHOLD,
    DEFAULT_WORLD_HEIGHT,
    FALLBACK_MATERIAL,
    RIDGE_NOISE_FROM_BASE,
    SPACE_AND_DEPTH_CONTEXT,
)
from .shapes import is_node

if TYPE_CHECKING:
    from .raising import Raiser

logger = logging.getLogger(__name__)

Node = Dict[str, Any]
Raised = Tuple[Any, MetadataFragment]
Collapser = Callable[["Raiser", Node, NodeTag, Optional[str], int], Optional[Raised]]


def _own_fields(node: Node, *ignored: str) -> Node:
    skip = set(ignored) | {"Type"}
    return {k: v for k, v in node.items() if k not in skip and not is_bookkeeping_key(k)}


def _single_input(node: Node) -> Optional[Node]:
    inputs = node.get("Inputs")
    if isinstance(inputs, list) and len(inputs) == 1 and is_node(inputs[0]):
        return inputs[0]
    return None


def _material_provider(value: Any) -> Any:
    """Bare material names in provider slots become Constant providers."""
    if isinstance(value, str):
        return {"Type": "Constant", "Material": value}
    if value is None:
        return {"Type": "Constant", "Material": FALLBACK_MATERIAL}
    return value


def collapse_ridge_noise(rs: "Raiser", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Raised]:
    """Abs[SimplexNoise] -> SimplexRidgeNoise."""
    child = _single_input(node)
    if child is None or child.get("Type") not in RIDGE_NOISE_FROM_BASE or _own_fields(node, "Inputs"):
        return None
    raised, frag = rs.raise_node(child, "Input", depth + 1, Category.DENSITY)
    ridge = {"Type": RIDGE_NOISE_FROM_BASE[child["Type"]]}
    ridge.update((k, v) for k, v in raised.items() if k != "Type")
    return ridge, frag


def collapse_gradient_density(rs: "Raiser", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Raised]:
    """Normalizer(0..1)[YValue] -> GradientDensity."""
    child = _single_input(node)
    if child is None or child.get("Type") != "YValue" or _own_fields(child):
        return None
    fields = _own_fields(node, "Inputs")
    if set(fields) - {"FromMin", "FromMax", "ToMin", "ToMax"}:
        return None
    if fields.get("ToMin", 0) != 0 or fields.get("ToMax", 1) != 1:
        return None
    out = {
        "Type": "GradientDensity",
        "FromY": fields.get("FromMax", 0),
        "ToY": fields.get("FromMin", DEFAULT_WORLD_HEIGHT),
    }
    return out, MetadataFragment.empty()


def collapse_density_conditional(rs: "Raiser", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Raised]:
    """
    Mix annotated "Conditional(Threshold=t)" -> Conditional.

    The condition sits at Inputs[2] -> Clamp -> Multiplier -> Sum -> Inputs[0].
    """
    parsed = parse_comment(node.get("$Comment"))
    if parsed is None or parsed[0] != "Conditional" or "Threshold" not in parsed[1]:
        return None
    inputs = node.get("Inputs")
    if not isinstance(inputs, list) or len(inputs) < 3:
        return None

    condition: Any = None
    clamp = inputs[2]
    multiplier = _single_input(clamp) if is_node(clamp) else None
    if multiplier is not None and isinstance(multiplier.get("Inputs"), list) and multiplier["Inputs"]:
        shifted = multiplier["Inputs"][0]
        if is_node(shifted) and isinstance(shifted.get("Inputs"), list) and shifted["Inputs"]:
            condition = shifted["Inputs"][0]
    if not is_node(condition):
        logger.warning("Conditional Mix without a recoverable condition; using Constant 0")

    false_branch, false_frag = rs.raise_child(inputs[0], "FalseInput", depth)
    true_branch, true_frag = rs.raise_child(inputs[1], "TrueInput", depth)
    if is_node(condition):
        cond, cond_frag = rs.raise_node(condition, "Condition", depth + 1, Category.DENSITY)
    else:
        cond, cond_frag = {"Type": "Constant", "Value": 0}, MetadataFragment.empty()

    out = {
        "Type": "Conditional",
        "Condition": cond,
        "Threshold": parsed[1]["Threshold"],
        "TrueInput": true_branch,
        "FalseInput": false_branch,
    }
    return out, cond_frag.merge(true_frag).merge(false_frag)


def _is_gate(entry: Any) -> bool:
    if not is_node(entry) or entry.get("Type") != "FieldFunction":
        return False
    delimiters = entry.get("Delimiters")
    return isinstance(delimiters, list) and len(delimiters) == 1 and isinstance(delimiters[0], dict)


def collapse_material_chain(rs: "Raiser", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Raised]:
    """Queue[gate, gate, ..., fallback] -> nested material Conditional, innermost first."""
    queue = node.get("Queue")
    if not isinstance(queue, list) or len(queue) < 2:
        return None
    gates, fallback = queue[:-1], queue[-1]
    if not all(_is_gate(g) for g in gates):
        return None

    raised_fallback, frag = rs.raise_child(fallback, "Material", depth)
    chain = _material_provider(raised_fallback)
    for gate in reversed(gates):
        delimiter = gate["Delimiters"][0]
        if is_node(gate.get("FieldFunction")):
            condition, cond_frag = rs.raise_node(gate["FieldFunction"], "Condition", depth + 1, Category.DENSITY)
        else:
            condition, cond_frag = {"Type": "Constant", "Value": 0}, MetadataFragment.empty()
        true_branch, true_frag = rs.raise_child(delimiter.get("Material"), "Material", depth)
        chain = {
            "Type": "Conditional",
            "Condition": condition,
            "Threshold": delimiter.get("From", 0),
            "TrueInput": _material_provider(true_branch),
            "FalseInput": chain,
        }
        frag = frag.merge(MetadataFragment.for_node(gate)).merge(cond_frag).merge(true_frag)
    logger.debug(f"Material queue of {len(queue)} entries rebuilt as a {len(gates)}-level Conditional chain")
    return chain, frag


def collapse_field_function_materials(rs: "Raiser", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Raised]:
    """FieldFunction with Delimiters[{From, To, Material}] -> Materials[] + DelimiterRanges[]."""
    delimiters = node.get("Delimiters")
    if not isinstance(delimiters, list):
        return None
    out: Node = {"Type": "FieldFunction"}
    frag = MetadataFragment.empty()
    if is_node(node.get("FieldFunction")):
        out["FieldFunction"], f = rs.raise_node(node["FieldFunction"], "FieldFunction", depth + 1, Category.DENSITY)
        frag = frag.merge(f)

    materials: List[Any] = []
    ranges: List[Node] = []
    for entry in delimiters:
        if not isinstance(entry, dict):
            continue
        material, f = rs.raise_child(entry.get("Material"), "Material", depth)
        materials.append(material)
        ranges.append({"From": entry.get("From", 0), "To": entry.get("To")})
        frag = frag.merge(f)
    out["Materials"] = materials
    out["DelimiterRanges"] = ranges

    rest, f = rs.raise_fields(_own_fields(node, "FieldFunction", "Delimiters"), depth)
    out.update(rest)
    return out, frag.merge(f)


def collapse_space_and_depth(rs: "Raiser", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Raised]:
    """Two ConstantThickness layers -> SpaceAndDepth(DepthThreshold, Empty, Solid)."""
    layers = node.get("Layers")
    if not isinstance(layers, list) or len(layers) != 2 or not all(isinstance(l, dict) for l in layers):
        return None
    empty, empty_frag = rs.raise_child(layers[0].get("Material"), "Empty", depth)
    solid, solid_frag = rs.raise_child(layers[1].get("Material"), "Solid", depth)
    out: Node = {
        "Type": "SpaceAndDepth",
        "DepthThreshold": layers[0].get("Thickness", DEFAULT_DEPTH_THRESHOLD),
        "Empty": empty,
        "Solid": solid,
    }
    fields = _own_fields(node, "Layers", "MaxExpectedDepth")
    if fields.get("LayerContext") == SPACE_AND_DEPTH_CONTEXT:
        del fields["LayerContext"]
    rest, frag = rs.raise_fields(fields, depth)
    out.update(rest)
    return out, empty_frag.merge(solid_frag).merge(frag)


def collapse_cluster(rs: "Raiser", node: Node, tag: NodeTag, field: Optional[str], depth: int) -> Optional[Raised]:
    """Cluster(WeightedProps[{Weight, ColumnProp}]) -> Cluster(Props[])."""
    weighted = node.get("WeightedProps")
    if isinstance(weighted, dict):
        weighted = list(weighted.values())
    if not isinstance(weighted, list):
        return None

    props: List[Any] = []
    frag = MetadataFragment.empty()
    for entry in weighted:
        if not isinstance(entry, dict):
            continue
        prop, f = rs.raise_child(entry.get("ColumnProp"), "Prop", depth)
        props.append(prop)
        frag = frag.merge(f)

    fields = _own_fields(node, "WeightedProps")
    for key, default in CLUSTER_DEFAULTS.items():
        if fields.get(key) == default:
            del fields[key]
    out: Node = {"Type": "Cluster", "Props": props}
    rest, f = rs.raise_fields(fields, depth)
    out.update(rest)
    return out, frag.merge(f)


COMPOUND_COLLAPSERS: Dict[Tuple[Category, str], Collapser] = {
    (Category.DENSITY, "Abs"): collapse_ridge_noise,
    (Category.DENSITY, "Normalizer"): collapse_gradient_density,
    (Category.DENSITY, "Mix"): collapse_density_conditional,
    (Category.MATERIAL, "Queue"): collapse_material_chain,
    (Category.MATERIAL, "FieldFunction"): collapse_field_function_materials,
    (Category.MATERIAL, "SpaceAndDepth"): collapse_space_and_depth,
    (Category.PROP, "Cluster"): collapse_cluster,
}


__all__ = ["COMPOUND_COLLAPSERS", "Collapser"]
