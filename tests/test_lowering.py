import copy

import pytest

from worldgraph.core.errors import TranslationDepthError
from worldgraph.translation.lowering import Lowerer, build_editor_metadata, lower


def _const(value):
    return {"Type": "Constant", "Value": value}


def _lower(tree, **kwargs):
    return Lowerer(id_seed=1).lower(tree, **kwargs)

# -------------------------
# Identity & bookkeeping
# -------------------------

def test_density_constant_gets_id_and_skip():
    out = _lower(_const(42))
    assert out["Type"] == "Constant"
    assert out["Value"] == 42
    assert out["Skip"] is False
    assert out["$NodeId"].startswith("ConstantDensityNode-")

def test_input_is_not_mutated():
    tree = {"Type": "Sum", "InputA": _const(1), "InputB": {"Type": "Negate", "Input": _const(2)}}
    before = copy.deepcopy(tree)
    _lower(tree)
    assert tree == before

def test_seeded_lowering_is_reproducible():
    tree = {"Type": "Product", "Inputs": [_const(1), _const(2)]}
    assert Lowerer(id_seed=5).lower(tree) == Lowerer(id_seed=5).lower(tree)

def test_all_ids_unique_within_tree():
    tree = {"Type": "Sum", "Inputs": [_const(i) for i in range(20)]}
    out = _lower(tree)
    ids = [out["$NodeId"]] + [n["$NodeId"] for n in out["Inputs"]]
    assert len(set(ids)) == len(ids)

def test_internal_editor_keys_never_exported():
    out = _lower({"Type": "Constant", "Value": 1, "$DisconnectedTrees": [], "$Position": {"x": 1}})
    assert "$DisconnectedTrees" not in out
    assert "$Position" not in out

def test_non_node_root_becomes_placeholder():
    out = lower("nonsense")
    assert out["Type"] == "Constant"
    assert out["Value"] == 0


# -------------------------
# Renames and field adjustments
# -------------------------

@pytest.mark.parametrize(
    "internal, native",
    [
        ("Product", "Multiplier"),
        ("Negate", "Inverter"),
        ("CoordinateY", "YValue"),
        ("VoronoiNoise2D", "CellNoise2D"),
        ("SquareRoot", "Sqrt"),
        ("FractalNoise2D", "SimplexNoise2D"),
    ],
)
def test_type_renames(internal, native):
    assert _lower({"Type": internal})["Type"] == native

def test_unknown_type_passes_through():
    out = _lower({"Type": "BrandNewThing", "Knob": 3})
    assert out["Type"] == "BrandNewThing"
    assert out["Knob"] == 3

def test_clamp_bounds_are_swapped():
    out = _lower({"Type": "Clamp", "Min": 0, "Max": 1})
    assert out["WallA"] == 1
    assert out["WallB"] == 0
    assert "Min" not in out and "Max" not in out

@pytest.mark.parametrize(
    "noise, fields",
    [
        ("SimplexNoise2D", ("Scale",)),
        ("SimplexNoise3D", ("ScaleXZ", "ScaleY")),
        ("VoronoiNoise2D", ("ScaleX", "ScaleZ")),
        ("VoronoiNoise3D", ("ScaleX", "ScaleY", "ScaleZ")),
    ],
)
def test_noise_frequency_becomes_scale(noise, fields):
    out = _lower({"Type": noise, "Frequency": 0.25, "Gain": 0.5, "Seed": 3, "Amplitude": 2})
    for f in fields:
        assert out[f] == pytest.approx(4.0)
    assert out["Persistence"] == 0.5
    assert out["Seed"] == "3"
    assert "Frequency" not in out and "Amplitude" not in out and "Gain" not in out

def test_zero_frequency_lowers_to_unit_scale():
    out = _lower({"Type": "SimplexNoise2D", "Frequency": 0})
    assert out["Scale"] == 1

def test_normalizer_ranges_flatten():
    out = _lower({
        "Type": "Normalizer",
        "SourceRange": {"Min": -1, "Max": 1},
        "TargetRange": {"Min": 0, "Max": 10},
        "Input": _const(0),
    })
    assert (out["FromMin"], out["FromMax"], out["ToMin"], out["ToMax"]) == (-1, 1, 0, 10)
    assert len(out["Inputs"]) == 1

def test_scaled_position_vector_flattens():
    out = _lower({"Type": "ScaledPosition", "Scale": {"x": 1, "y": 2, "z": 3}})
    assert out["Type"] == "Scale"
    assert (out["ScaleX"], out["ScaleY"], out["ScaleZ"]) == (1, 2, 3)

def test_rotator_gets_default_axis():
    out = _lower({"Type": "RotatedPosition", "AngleDegrees": 90})
    assert out["SpinAngle"] == 90
    axis = out["NewYAxis"]
    assert (axis["X"], axis["Y"], axis["Z"]) == (0, 1, 0)
    assert axis["$NodeId"].startswith("Point3D-")

def test_linear_transform_without_offset():
    out = _lower({"Type": "LinearTransform", "Scale": 3, "Offset": 0, "Input": _const(1)})
    assert out["Type"] == "AmplitudeConstant"
    assert out["Value"] == 3
    assert "Offset" not in out

def test_square_injects_exponent():
    out = _lower({"Type": "Square", "Input": _const(2)})
    assert out["Type"] == "Pow"
    assert out["Exponent"] == 2

def test_override_value():
    out = _lower({"Type": "YOverride", "OverrideY": 64, "Input": _const(0)})
    assert out["Value"] == 64

def test_cache_capacity():
    assert _lower({"Type": "CacheOnce", "Input": _const(0)})["Capacity"] == 1

def test_vector_constant_becomes_point3d():
    out = _lower({"Type": "Constant", "Value": {"x": 1, "y": 2, "z": 3}})
    assert "Type" not in out
    assert (out["X"], out["Y"], out["Z"]) == (1, 2, 3)

def test_vector_provider_uses_density_prefix():
    out = _lower({"Type": "Normalize"}, parent_field="VectorProvider")
    assert out["$NodeId"].startswith("NormalizeDensityNode-")
    assert "Skip" not in out

def test_list_not_starting_with_node_is_copied():
    inner = _const(2)
    out = _lower({"Type": "Abs", "Labels": [1, inner]})
    assert out["Labels"] == [1, {"Type": "Constant", "Value": 2}]
    assert out["Labels"][1] is not inner
    assert "$NodeId" not in out["Labels"][1]


# -------------------------
# Inputs[] packing
# -------------------------

def test_named_fields_pack_in_layout_order():
    out = _lower({
        "Type": "Blend",
        "Factor": _const(3),
        "InputB": _const(2),
        "InputA": _const(1),
    })
    assert out["Type"] == "Mix"
    assert [i["Value"] for i in out["Inputs"]] == [1, 2, 3]

def test_binary_sum_tree_flattens_left_to_right():
    tree = {
        "Type": "Sum",
        "InputA": {"Type": "Sum", "InputA": _const(1), "InputB": _const(2)},
        "InputB": {"Type": "Sum", "InputA": _const(3), "InputB": _const(4)},
    }
    out = _lower(tree)
    assert [i["Value"] for i in out["Inputs"]] == [1, 2, 3, 4]

def test_sum_with_extra_fields_is_not_flattened():
    inner = {"Type": "Sum", "InputA": _const(1), "InputB": _const(2), "Label": "x"}
    out = _lower({"Type": "Sum", "InputA": inner, "InputB": _const(3)})
    assert len(out["Inputs"]) == 2
    assert out["Inputs"][0]["Type"] == "Sum"

def test_sum_inputs_list_kept():
    out = _lower({"Type": "Sum", "Inputs": [_const(1), _const(2), _const(3)]})
    assert [i["Value"] for i in out["Inputs"]] == [1, 2, 3]


# -------------------------
# Category-sensitive dispatch
# -------------------------

def test_constant_in_density_context():
    out = _lower({"Type": "Constant", "Value": 0.5}, parent_field="Density")
    assert out["Value"] == 0.5
    assert out["$NodeId"].startswith("ConstantDensityNode-")

def test_constant_in_material_context():
    out = _lower({"Type": "Constant", "Material": "stone"}, parent_field="MaterialProvider")
    assert out["$NodeId"].startswith("ConstantMaterialProvider-")
    assert "Skip" not in out
    assert out["Material"]["Solid"] == "stone"
    assert out["Material"]["$NodeId"].startswith("Material-")

def test_constant_in_environment_context():
    out = _lower({"Type": "Constant"}, parent_field="EnvironmentProvider")
    assert out["$NodeId"].startswith("Constant.EnvironmentProvider-")
    assert out["Environment"] == "default"

def test_environment_default_renamed():
    out = _lower({"Type": "Default"}, parent_field="EnvironmentProvider")
    assert out["Type"] == "Constant"
    assert out["Environment"] == "default"

def test_tint_gradient_keeps_from_color():
    out = _lower({"Type": "Gradient", "From": "#336633", "To": "#99cc99"}, parent_field="TintProvider")
    assert out["$NodeId"].startswith("Constant.TintProvider-")
    assert out["Type"] == "Constant"
    assert out["Color"] == "#336633"
    assert "To" not in out and "From" not in out

def test_uniform_directionality():
    out = _lower({"Type": "Uniform"}, parent_field="Directionality")
    assert out["Type"] == "Random"
    assert out["Seed"] == "A"
    assert out["Pattern"]["Type"] == "Floor"
    assert out["Pattern"]["$NodeId"].startswith("Floor.Pattern-")

def test_framework_types_have_no_id():
    out = _lower({"Type": "Positions", "Positions": {"Type": "Mesh2D", "Resolution": 4}})
    assert "$NodeId" not in out and "Skip" not in out


# -------------------------
# Props, positions, scanners
# -------------------------

def test_prefab_path_becomes_weighted_list():
    out = _lower({"Type": "Prefab", "Path": "trees/oak"}, parent_field="Prop")
    paths = out["WeightedPrefabPaths"]
    assert len(paths) == 1
    assert paths[0]["Path"] == "trees/oak"
    assert paths[0]["Weight"] == 1
    assert out["LoadEntities"] is True

def test_column_prop_blocks():
    out = _lower({"Type": "Column", "Height": 3, "Material": "log"}, parent_field="Prop")
    block = out["ColumnBlocks"][0]
    assert block["Y"] == 3
    assert block["Material"]["Solid"] == "log"

def test_mesh2d_point_generator():
    out = _lower({"Type": "Mesh2D", "Resolution": 6}, parent_field="Positions")
    gen = out["PointGenerator"]
    assert (gen["ScaleX"], gen["ScaleY"], gen["ScaleZ"]) == (6, 6, 6)
    assert gen["Jitter"] == 0.4
    assert out["PointsY"] == 0

def test_density_based_positions():
    out = _lower(
        {"Type": "DensityBased", "DensityFunction": {"Type": "CoordinateY"}, "Threshold": 0.3},
        parent_field="Positions",
    )
    assert out["Type"] == "FieldFunction"
    assert out["FieldFunction"]["Type"] == "YValue"
    assert out["Delimiters"][0]["Min"] == 0.3
    assert out["Delimiters"][0]["Max"] == 1000.0
    assert out["Positions"]["Type"] == "Mesh2D"

def test_column_linear_scanner():
    out = _lower({"Type": "ColumnLinear", "Range": {"Min": 0, "Max": 64}, "StepSize": 2}, parent_field="Scanner")
    assert (out["MinY"], out["MaxY"]) == (0, 64)
    assert "StepSize" not in out
    assert out["ResultCap"] == 0

def test_curve_points_get_records():
    out = _lower({"Type": "Manual", "Points": [[0, 0], {"x": 1, "y": 2}]}, parent_field="Curve")
    assert [(p["In"], p["Out"]) for p in out["Points"]] == [(0, 0), (1, 2)]
    assert all(p["$NodeId"].startswith("CurvePoint-") for p in out["Points"])


# -------------------------
# Editor metadata & depth cap
# -------------------------

def test_editor_metadata_block():
    out = _lower(_const(1), editor_nodes=[{"id": "n1", "position": {"x": 10, "y": 20}}, {"id": 3}])
    meta = out["$NodeEditorMetadata"]
    assert meta["Positions"] == {"n1": {"x": 10, "y": 20}}
    assert meta["Links"] == [] and meta["Groups"] == []

def test_build_editor_metadata_empty():
    assert build_editor_metadata([])["Positions"] == {}

def test_depth_cap_raises():
    tree = _const(0)
    for _ in range(10):
        tree = {"Type": "Abs", "Input": tree}
    with pytest.raises(TranslationDepthError) as exc:
        Lowerer(id_seed=1, max_depth=4).lower(tree)
    assert "max_depth=4" in str(exc.value)
