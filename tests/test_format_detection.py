import pytest

from worldgraph.utils.format_detection import (
    is_biome_file,
    is_native_format,
    is_settings_file,
    normalize_export,
    normalize_import,
)

# -------------------------
# Detection
# -------------------------

@pytest.mark.parametrize(
    "content, expected",
    [
        ({"$NodeId": "SumDensityNode-1", "Type": "Sum"}, True),
        ({"$NodeId": "Biome-1", "Name": "x"}, True),
        ({"Type": "Sum"}, False),
        ([], False),
        ("text", False),
    ],
)
def test_is_native_format(content, expected):
    assert is_native_format(content) is expected

def test_biome_by_terrain_section():
    assert is_biome_file({"Name": "x", "Terrain": {}})

def test_biome_by_path():
    assert is_biome_file({"Name": "x"}, "Server\\Biomes\\x.json")
    assert not is_biome_file({"Name": "x"}, "Server/Other/x.json")

def test_typed_asset_is_never_a_biome():
    assert not is_biome_file({"Type": "Sum", "Terrain": {}}, "biomes/x.json")

def test_settings_by_path():
    assert is_settings_file({}, "pack/Settings/Settings.json")
    assert not is_settings_file({}, "pack/other/settings.json")

def test_settings_by_keys():
    assert is_settings_file({"CustomConcurrency": 4, "TargetViewDistance": 12})
    assert not is_settings_file({"CustomConcurrency": 4})
    assert not is_settings_file({"Type": "Sum", "CustomConcurrency": 4, "TargetViewDistance": 12})


# -------------------------
# Normalisation
# -------------------------

def test_import_typed_asset():
    native = {
        "$NodeId": "MultiplierDensityNode-1",
        "Type": "Multiplier",
        "Skip": False,
        "Inputs": [{"$NodeId": "XValueDensityNode-1", "Type": "XValue", "Skip": False}],
    }
    assert normalize_import(native) == {"Type": "Product", "Inputs": [{"Type": "CoordinateX"}]}

def test_import_biome_wrapper():
    native = {"$NodeId": "Biome-1", "Name": "x", "Terrain": {"$NodeId": "Terrain-1"}}
    assert normalize_import(native) == {"Name": "x", "Terrain": {}}

def test_import_internal_content_unchanged():
    content = {"Type": "Sum"}
    assert normalize_import(content) is content

def test_export_typed_asset():
    out = normalize_export({"Type": "Product"})
    assert out["Type"] == "Multiplier"
    assert out["$NodeId"].startswith("MultiplierDensityNode-")

def test_export_biome():
    out = normalize_export({"Name": "x"}, file_path="pack/biomes/x.json")
    assert out["$NodeId"].startswith("Biome-")
    assert out["Name"] == "x"

def test_export_settings_unchanged():
    content = {"CustomConcurrency": 4, "TargetViewDistance": 12}
    assert normalize_export(content, file_path="pack/settings/settings.json") is content
