import pytest

from worldgraph.core.categories import (
    Category,
    NodeTag,
    category_from_native_id,
    parse_tag,
    resolve_category,
    split_tag,
)

# -------------------------
# Tag parsing
# -------------------------

def test_split_tag_with_and_without_prefix():
    assert split_tag("Material:Constant") == ("material", "Constant")
    assert split_tag("Sum") == (None, "Sum")

def test_split_tag_non_string_is_empty():
    assert split_tag(None) == (None, "")

def test_parse_tag_defaults_to_density():
    tag = parse_tag("Sum")
    assert tag == NodeTag(category=Category.DENSITY, name="Sum", raw="Sum")

def test_parse_tag_uses_prefix():
    tag = parse_tag("Curve:Manual")
    assert tag.category is Category.CURVE
    assert tag.name == "Manual"
    assert tag.raw == "Curve:Manual"


# -------------------------
# Resolution order
# -------------------------

@pytest.mark.parametrize(
    "parent_field, expected",
    [
        ("MaterialProvider", Category.MATERIAL),
        ("Density", Category.DENSITY),
        ("EnvironmentProvider", Category.ENVIRONMENT),
        ("Positions", Category.POSITION),
        ("Directionality", Category.DIRECTIONALITY),
        ("Layers", Category.MATERIAL_LAYER),
    ],
)
def test_parent_field_decides_category(parent_field, expected):
    assert resolve_category(parent_field, "Constant") is expected

def test_parent_field_wins_over_prefix():
    assert resolve_category("Density", "Material:Constant") is Category.DENSITY

def test_prefix_wins_over_native_id():
    assert resolve_category(None, "Curve:Manual", "ConstantDensityNode-1") is Category.CURVE

def test_unknown_field_falls_back_to_native_id():
    assert resolve_category("Whatever", "Constant", "ConstantMaterialProvider-1") is Category.MATERIAL


# -------------------------
# Native identifier markers
# -------------------------

@pytest.mark.parametrize(
    "native_id, expected",
    [
        ("SumDensityNode-abc", Category.DENSITY),
        ("CurveMapper.Density-abc", Category.DENSITY),
        ("QueueMaterialProvider-abc", Category.MATERIAL),
        ("ManualCurve-abc", Category.CURVE),
        ("Floor.Pattern-abc", Category.PATTERN),
        ("Random.Directionality-abc", Category.DIRECTIONALITY),
        ("Constant.EnvironmentProvider-abc", Category.ENVIRONMENT),
        ("Cluster.Prop-abc", Category.PROP),
        ("BoxProp-abc", Category.PROP),
        ("Point3D-abc", Category.VECTOR),
    ],
)
def test_category_from_native_id(native_id, expected):
    assert category_from_native_id(native_id) is expected

def test_category_from_native_id_unknown():
    assert category_from_native_id("Biome-abc") is None
    assert category_from_native_id(None) is None
