import pytest

from worldgraph.core.errors import ExportLintError
from worldgraph.translation.lowering import Lowerer
from worldgraph.utils.export_lint import (
    ExportIssue,
    assert_clean_export,
    collect_export_issues,
    lint_export,
)


def _biome(**overrides):
    tree = {
        "$NodeId": "Biome-1",
        "Name": "Forest",
        "Terrain": {"$NodeId": "Terrain-1", "Density": {"$NodeId": "ConstantDensityNode-1", "Type": "Constant", "Value": 1}},
    }
    tree.update(overrides)
    return tree

# -------------------------
# Clean trees
# -------------------------

def test_lowered_tree_is_clean():
    tree = {
        "Type": "Sum",
        "Inputs": [{"Type": "Constant", "Value": 1}, {"Type": "Clamp", "Min": 0, "Max": 1, "Input": {"Type": "CoordinateY"}}],
    }
    assert lint_export(Lowerer(id_seed=2).lower(tree)) == []

def test_clean_biome():
    assert lint_export(_biome(), "Server/WorldGen/Biomes/forest.json") == []

def test_assert_clean_export_passes():
    assert_clean_export(_biome())


# -------------------------
# Node checks
# -------------------------

def test_null_values_reported_with_path():
    tree = {"$NodeId": "SumDensityNode-1", "Type": "Sum", "Inputs": [{"Type": "Constant", "Value": None}]}
    assert lint_export(tree) == ["root.Inputs[0].Value: null or undefined value"]

def test_empty_type_reported():
    issues = collect_export_issues({"Type": "Abs", "Input": {"Type": ""}})
    assert [(i.path, i.code) for i in issues] == [("root.Input", "type")]

def test_empty_material_string():
    tree = {"Type": "Constant", "Material": {"$NodeId": "Material-1", "Solid": ""}}
    assert lint_export(tree) == ["root.Material.Solid: empty material string"]

def test_bookkeeping_keys_are_not_checked():
    assert lint_export({"Type": "Constant", "Value": 0, "$Comment": None}) == []

def test_non_object_asset():
    assert lint_export([1, 2]) == ["root: Asset must be an object, got: list"]


# -------------------------
# File-level checks
# -------------------------

def test_biome_missing_sections():
    warnings = lint_export({"Name": "", "Terrain": {}})
    assert "Biome missing Name field" in warnings
    assert "Biome missing Terrain.Density" in warnings

def test_biome_detected_by_path():
    warnings = lint_export({"$NodeId": "Biome-1"}, "assets\\Biomes\\desert.json")
    assert warnings == ["Biome missing Name field", "Biome missing Terrain.Density"]

def test_noise_range_requirements():
    warnings = lint_export({"Type": "NoiseRange", "Biomes": []})
    assert warnings == ["NoiseRange missing DefaultBiome", "NoiseRange missing Density"]


# -------------------------
# Gate
# -------------------------

def test_assert_clean_export_lists_issues():
    with pytest.raises(ExportLintError) as exc:
        assert_clean_export({"Type": "Constant", "Value": None})
    msg = str(exc.value)
    assert msg.startswith("Export lint failed:")
    assert "- root.Value: null or undefined value (null)" in msg

def test_issue_str():
    assert str(ExportIssue("", "Biome missing Name field", "required")) == "Biome missing Name field (required)"
