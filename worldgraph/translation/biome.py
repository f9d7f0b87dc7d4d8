# WorldGraph biome wrapper translation
#
# A biome file is an untyped wrapper bundling several typed trees:
#   Terrain.Density          density tree
#   MaterialProvider         material tree (natively wrapped in Solidity{Solid, Empty})
#   Props[]                  {Positions, Assignments, Prop, ...} records
#   EnvironmentProvider / TintProvider
# plus plain biome fields (Name, ...) that pass through.
#
# The Solidity Empty branch carries the biome's fluid. Internally it is the
# pair FluidLevel / FluidMaterial; any other Empty branch is kept verbatim as
# _originalEmptyBranch so re-export reproduces it.
#
# Public API:
# - lower_biome_wrapper(wrapper, editor_nodes=None) -> dict
# - raise_biome_wrapper(native_wrapper) -> RaiseResult

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..core.categories import Category, resolve_category
from ..core.identity import (
    BIOME_ID,
    MATERIAL_LEAF_ID,
    TERRAIN_ID,
    ImportMetadata,
    MetadataFragment,
    is_bookkeeping_key,
    node_id_prefix,
    strip_metadata,
)
from ..core.tables import EDITOR_METADATA_KEY, EMPTY_MATERIAL, SKIP_CATEGORIES
from .lowering import Lowerer, build_editor_metadata
from .raising import Raiser, RaiseResult
from .shapes import is_node

logger = logging.getLogger(__name__)

Node = Dict[str, Any]
EditorNodes = Union[Iterable[Mapping[str, Any]], Mapping[str, Iterable[Mapping[str, Any]]]]

ORIGINAL_EMPTY_KEY = "_originalEmptyBranch"
FLUID_KEYS = ("FluidLevel", "FluidMaterial")
PROP_FIELDS: Tuple[Tuple[str, str, Category], ...] = (
    ("Positions", "PositionProvider", Category.POSITION),
    ("Assignments", "Assignments", Category.ASSIGNMENT),
    ("Prop", "Prop", Category.PROP),
)


class BiomeLowerer:
    """Exports one biome wrapper; all identifiers come from one Lowerer."""

    def __init__(self, lowerer: Optional[Lowerer] = None) -> None:
        self.lw = lowerer or Lowerer()

    def lower(self, wrapper: Mapping[str, Any], editor_nodes: Optional[EditorNodes] = None) -> Node:
        lw = self.lw
        out: Node = {"$NodeId": lw.new_id(BIOME_ID)}
        for key, value in wrapper.items():
            if key in FLUID_KEYS or key == ORIGINAL_EMPTY_KEY or key.startswith("$"):
                continue
            if key == "Terrain" and isinstance(value, dict):
                out[key] = self._lower_terrain(value)
            elif key == "MaterialProvider" and is_node(value):
                out[key] = self._lower_material_provider(value, wrapper)
            elif key == "Props" and isinstance(value, list):
                out[key] = [self._lower_prop_entry(entry) for entry in value]
            elif key == "EnvironmentProvider" and is_node(value):
                out[key] = lw.lower_node(value, key, 1, Category.ENVIRONMENT)
            elif key == "TintProvider" and is_node(value):
                out[key] = lw.lower_node(value, key, 1, Category.TINT)
            else:
                out[key] = copy.deepcopy(value)

        nodes = _flatten_editor_nodes(editor_nodes)
        if nodes:
            out[EDITOR_METADATA_KEY] = build_editor_metadata(nodes)
        logger.info(f"Lowered biome {wrapper.get('Name')!r} ({len(out.get('Props') or [])} props)")
        return out

    def _lower_terrain(self, terrain: Node) -> Node:
        out: Node = {"$NodeId": self.lw.new_id(TERRAIN_ID)}
        for key, value in terrain.items():
            if key.startswith("$"):
                continue
            if key == "Density" and is_node(value):
                out[key] = self.lw.lower_node(value, "Density", 2, Category.DENSITY)
            else:
                out[key] = copy.deepcopy(value)
        return out

    def _lower_material_provider(self, provider: Node, wrapper: Mapping[str, Any]) -> Node:
        lw = self.lw
        solid = lw.lower_node(provider, "MaterialProvider", 2, Category.MATERIAL)
        out = lw.skeleton(Category.MATERIAL, "Solidity")
        out["Solid"] = solid
        out["Empty"] = self._empty_branch(wrapper)
        return out

    def _empty_branch(self, wrapper: Mapping[str, Any]) -> Node:
        lw = self.lw
        preserved = wrapper.get(ORIGINAL_EMPTY_KEY)
        if is_node(preserved):
            return self.reidentify(preserved, "Empty")

        level = wrapper.get("FluidLevel")
        fluid = wrapper.get("FluidMaterial")
        if level is not None and fluid:
            constant = lw.skeleton(Category.MATERIAL, "Constant")
            constant["Material"] = {"$NodeId": lw.new_id(MATERIAL_LEAF_ID), "Fluid": fluid}
            branch = lw.skeleton(Category.MATERIAL, "SimpleHorizontal")
            branch["TopY"] = level
            branch["BottomY"] = 0
            branch["Material"] = constant
            return branch

        queue = lw.skeleton(Category.MATERIAL, "Queue")
        queue["Queue"] = [lw.constant_material(EMPTY_MATERIAL)]
        return queue

    def _lower_prop_entry(self, entry: Any) -> Any:
        if not isinstance(entry, dict):
            return copy.deepcopy(entry)
        out: Node = {}
        lowered = {key: (field, category) for key, field, category in PROP_FIELDS}
        for key, value in entry.items():
            if key in lowered and is_node(value):
                field, category = lowered[key]
                out[key] = self.lw.lower_node(value, field, 2, category)
            else:
                out[key] = copy.deepcopy(value)
        return out

    def reidentify(self, value: Any, parent_field: Optional[str] = None) -> Any:
        """Give a previously stripped native sub-tree fresh identifiers."""
        if isinstance(value, list):
            return [self.reidentify(item, parent_field) for item in value]
        if not isinstance(value, dict):
            return value
        out: Node = {}
        if is_node(value):
            category = resolve_category(parent_field, value["Type"])
            out["$NodeId"] = self.lw.new_id(node_id_prefix(category, value["Type"]))
            if category in SKIP_CATEGORIES:
                out["Skip"] = False
        elif "Solid" in value or "Fluid" in value:
            out["$NodeId"] = self.lw.new_id(MATERIAL_LEAF_ID)
        for key, item in value.items():
            if not is_bookkeeping_key(key):
                out[key] = self.reidentify(item, key)
        return out


def _flatten_editor_nodes(editor_nodes: Optional[EditorNodes]) -> List[Mapping[str, Any]]:
    if not editor_nodes:
        return []
    if isinstance(editor_nodes, Mapping):
        # Per-section node lists
        return [n for section in editor_nodes.values() for n in section]
    return list(editor_nodes)


def _fluid_from(branch: Any) -> Optional[Tuple[Any, Any]]:
    if not is_node(branch) or branch.get("Type") != "SimpleHorizontal" or "TopY" not in branch:
        return None
    constant = branch.get("Material")
    if not is_node(constant) or constant.get("Type") != "Constant":
        return None
    leaf = constant.get("Material")
    if isinstance(leaf, dict) and "Fluid" in leaf:
        return branch["TopY"], leaf["Fluid"]
    return None


def extract_fluid(empty_branch: Any) -> Optional[Tuple[Any, Any]]:
    """(FluidLevel, FluidMaterial) from a Solidity Empty branch, or None."""
    direct = _fluid_from(empty_branch)
    if direct is not None:
        return direct
    if is_node(empty_branch) and empty_branch.get("Type") == "Queue" and isinstance(empty_branch.get("Queue"), list):
        for entry in empty_branch["Queue"]:
            found = _fluid_from(entry)
            if found is not None:
                return found
    return None


def is_boilerplate_empty(branch: Any) -> bool:
    """Queue[Constant{Solid: "Empty"}], the branch exported when a biome has no fluid."""
    if not is_node(branch) or branch.get("Type") != "Queue":
        return False
    queue = branch.get("Queue")
    if not isinstance(queue, list) or len(queue) != 1:
        return False
    entry = queue[0]
    if not is_node(entry) or entry.get("Type") != "Constant":
        return False
    leaf = entry.get("Material")
    return isinstance(leaf, dict) and leaf.get("Solid") == EMPTY_MATERIAL


class BiomeRaiser:
    """Imports one native biome wrapper; comments fold into one fragment."""

    def __init__(self, raiser: Optional[Raiser] = None) -> None:
        self.rs = raiser or Raiser()

    def raise_wrapper(self, wrapper: Mapping[str, Any]) -> RaiseResult:
        editor_metadata = None
        if isinstance(wrapper.get(EDITOR_METADATA_KEY), dict):
            editor_metadata = strip_metadata(wrapper[EDITOR_METADATA_KEY])

        frag = MetadataFragment.empty()
        out: Node = {}
        for key, value in wrapper.items():
            if is_bookkeeping_key(key):
                continue
            if key == "Terrain" and isinstance(value, dict):
                out[key], f = self._raise_terrain(value)
            elif key == "MaterialProvider" and is_node(value):
                f = self._raise_material_provider(value, out)
            elif key == "Props" and isinstance(value, list):
                out[key], f = self._raise_props(value)
            elif key in ("EnvironmentProvider", "TintProvider") and is_node(value):
                out[key], f = self.rs.raise_node(value, key, 1)
            else:
                out[key], f = strip_metadata(value), MetadataFragment.empty()
            frag = frag.merge(f)

        metadata = ImportMetadata.from_fragment(frag, node_editor_metadata=editor_metadata)
        logger.info(f"Raised biome {out.get('Name')!r} ({len(metadata.comments)} comments)")
        return RaiseResult(tree=out, metadata=metadata)

    def _raise_terrain(self, terrain: Node) -> Tuple[Node, MetadataFragment]:
        out: Node = {}
        frag = MetadataFragment.empty()
        for key, value in terrain.items():
            if is_bookkeeping_key(key):
                continue
            if key == "Density" and is_node(value):
                out[key], frag = self.rs.raise_node(value, "Density", 2, Category.DENSITY)
            else:
                out[key] = strip_metadata(value)
        return out, frag

    def _raise_material_provider(self, provider: Node, out: Node) -> MetadataFragment:
        if provider.get("Type") != "Solidity" or not is_node(provider.get("Solid")):
            out["MaterialProvider"], frag = self.rs.raise_node(provider, "MaterialProvider", 1, Category.MATERIAL)
            return frag

        out["MaterialProvider"], frag = self.rs.raise_node(provider["Solid"], "MaterialProvider", 2, Category.MATERIAL)
        empty = provider.get("Empty")
        fluid = extract_fluid(empty)
        if fluid is not None:
            out["FluidLevel"], out["FluidMaterial"] = fluid
        # A queue holding the fluid may carry other entries; keep it whole
        if empty is not None and not is_boilerplate_empty(empty) and _fluid_from(empty) is None:
            out[ORIGINAL_EMPTY_KEY] = strip_metadata(empty)
        return frag

    def _raise_props(self, props: List[Any]) -> Tuple[List[Any], MetadataFragment]:
        frag = MetadataFragment.empty()
        raised: List[Any] = []
        for entry in props:
            if not isinstance(entry, dict):
                raised.append(strip_metadata(entry))
                continue
            out: Node = {}
            for key, value in entry.items():
                if is_bookkeeping_key(key):
                    continue
                if key in ("Positions", "Assignments", "Prop") and is_node(value):
                    out[key], f = self.rs.raise_node(value, key, 2)
                    frag = frag.merge(f)
                else:
                    out[key] = strip_metadata(value)
            raised.append(out)
        return raised, frag


def lower_biome_wrapper(wrapper: Mapping[str, Any], editor_nodes: Optional[EditorNodes] = None) -> Node:
    """Export an internal biome wrapper to the native format."""
    return BiomeLowerer().lower(wrapper, editor_nodes=editor_nodes)


def raise_biome_wrapper(native_wrapper: Mapping[str, Any]) -> RaiseResult:
    """Import a native biome wrapper; see module header for the Empty branch rules."""
    return BiomeRaiser().raise_wrapper(native_wrapper)


__all__ = [
    "BiomeLowerer",
    "BiomeRaiser",
    "lower_biome_wrapper",
    "raise_biome_wrapper",
    "extract_fluid",
    "is_boilerplate_empty",
]
