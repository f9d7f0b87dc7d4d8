# WorldGraph Mapping Tables
#
# Static, hand-maintained tables consulted by both transformers. Derived from
# real engine biome files; nothing here is computed at call time except the
# reverse views built once at import.
#
# Tables:
# - INTERNAL_TO_NATIVE_TYPES / NATIVE_TO_INTERNAL_TYPES  (operation renames)
# - NAMED_INPUT_LAYOUT / NATIVE_INPUT_LAYOUT             (named fields <-> Inputs[])
# - BOUND_FIELD_EXPORT / BOUND_FIELD_IMPORT              (Min/Max <-> WallB/WallA)
# - RANGE_FLATTENING                                     (nested ranges <-> flat fields)
# - VECTOR_FLATTENING                                    (3-vector field <-> FieldX/Y/Z)
# - SKIP_CATEGORIES, DOTTED_DENSITY_TYPES, FRAMEWORK_TYPES
# - format constants (depth, world height, step steepness, gate bounds)

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Tuple

from .categories import Category

# ---------------------------------------------------------------------------
# Operation renames
# ---------------------------------------------------------------------------

INTERNAL_TO_NATIVE_TYPES: Mapping[str, str] = MappingProxyType({
    "Product": "Multiplier",
    "Negate": "Inverter",
    "CurveFunction": "CurveMapper",
    "CacheOnce": "Cache",
    "ImportedValue": "Imported",
    "Blend": "Mix",
    "MinFunction": "Min",
    "MaxFunction": "Max",
    "CoordinateX": "XValue",
    "CoordinateY": "YValue",
    "CoordinateZ": "ZValue",
    "VoronoiNoise2D": "CellNoise2D",
    "VoronoiNoise3D": "CellNoise3D",
    "SquareRoot": "Sqrt",
    "DomainWarp2D": "FastGradientWarp",
    "DomainWarp3D": "FastGradientWarp",
    "ScaledPosition": "Scale",
    "TranslatedPosition": "Slider",
    "RotatedPosition": "Rotator",
    "LinearTransform": "AmplitudeConstant",
    "BlendCurve": "MultiMix",
    "Square": "Pow",
    "CubeMath": "Cube",
    # Fractal variants collapse onto the plain simplex codec (octave count carries the difference)
    "FractalNoise2D": "SimplexNoise2D",
    "FractalNoise3D": "SimplexNoise3D",
})


def _invert_types() -> Dict[str, str]:
    inverted: Dict[str, str] = {}
    for internal, native in INTERNAL_TO_NATIVE_TYPES.items():
        # First entry wins; collisions are resolved explicitly below
        inverted.setdefault(native, internal)
    # Canonical picks for many-to-one renames
    inverted["FastGradientWarp"] = "DomainWarp2D"
    inverted.pop("SimplexNoise2D", None)
    inverted.pop("SimplexNoise3D", None)
    # Native Cube is both the x^3 math op and a shape; decided per node on import
    inverted.pop("Cube", None)
    return inverted


NATIVE_TO_INTERNAL_TYPES: Mapping[str, str] = MappingProxyType(_invert_types())

# ---------------------------------------------------------------------------
# Named fields <-> positional Inputs[]
# ---------------------------------------------------------------------------

_SINGLE_INPUT = (
    "Negate", "CurveFunction", "CacheOnce", "Abs", "SquareRoot", "CubeMath",
    "CubeRoot", "Inverse", "Modulo", "Clamp", "SmoothClamp", "Normalizer",
    "LinearTransform", "FlatCache", "DomainWarp2D", "DomainWarp3D",
    "ScaledPosition", "TranslatedPosition", "RotatedPosition",
    "MirroredPosition", "QuantizedPosition", "SurfaceDensity", "TerrainMask",
    "BeardDensity", "ColumnDensity", "CaveDensity", "Debug", "Passthrough",
    "Wrap", "SplineFunction", "Square", "SumSelf", "Exported", "ImportedValue",
    "YOverride", "XOverride", "ZOverride", "Floor", "Ceiling",
    "AmplitudeConstant", "Pow", "SmoothCeiling", "SmoothFloor", "Anchor",
    "PositionsPinch", "PositionsTwist", "GradientDensity", "Gradient",
    "YGradient", "ClampToIndex", "DoubleNormalizer", "OffsetConstant", "Cache2D",
)


def _build_named_layout() -> Dict[str, Tuple[str, ...]]:
    layout: Dict[str, Tuple[str, ...]] = {name: ("Input",) for name in _SINGLE_INPUT}
    layout.update({
        "Offset": ("Input", "Offset"),
        "GradientWarp": ("Input", "WarpSource"),
        "VectorWarp": ("Input", "WarpVector"),
        "Amplitude": ("Input", "Amplitude"),
        "YSampled": ("Input", "YProvider"),
        "Blend": ("InputA", "InputB", "Factor"),
        "BlendCurve": ("InputA", "InputB", "Factor"),
        "Interpolate": ("InputA", "InputB", "Factor"),
        "Conditional": ("Condition", "TrueInput", "FalseInput"),
        "RangeChoice": ("Condition", "TrueInput", "FalseInput"),
    })
    return layout


# Keyed by internal operation name. Operations absent here keep Inputs[] as a list.
NAMED_INPUT_LAYOUT: Mapping[str, Tuple[str, ...]] = MappingProxyType(_build_named_layout())


def _build_native_layout() -> Dict[str, Tuple[str, ...]]:
    layout: Dict[str, Tuple[str, ...]] = {}
    for internal, handles in NAMED_INPUT_LAYOUT.items():
        layout.setdefault(INTERNAL_TO_NATIVE_TYPES.get(internal, internal), handles)
    return layout


# Keyed by native operation name (first internal owner wins on collisions)
NATIVE_INPUT_LAYOUT: Mapping[str, Tuple[str, ...]] = MappingProxyType(_build_native_layout())


def input_layout(name: str) -> Tuple[str, ...]:
    """Positional field layout for an internal operation, or () when it has none."""
    return NAMED_INPUT_LAYOUT.get(name, ())


# ---------------------------------------------------------------------------
# Field renames
# ---------------------------------------------------------------------------

# Swapped on purpose: the engine's WallA is the upper wall
BOUND_FIELD_EXPORT: Mapping[str, str] = MappingProxyType({"Min": "WallB", "Max": "WallA"})
BOUND_FIELD_IMPORT: Mapping[str, str] = MappingProxyType({"WallA": "Max", "WallB": "Min"})
BOUND_TYPES: FrozenSet[str] = frozenset({"Clamp", "SmoothClamp"})

RANGE_FLATTENING: Mapping[str, Mapping[str, str]] = MappingProxyType({
    "SourceRange": MappingProxyType({"Min": "FromMin", "Max": "FromMax"}),
    "TargetRange": MappingProxyType({"Min": "ToMin", "Max": "ToMax"}),
})

# (internal operation, category) -> (internal {x,y,z} field, native scalar fields)
VECTOR_FLATTENING: Mapping[Tuple[str, Category], Tuple[str, Tuple[str, str, str]]] = MappingProxyType({
    ("ScaledPosition", Category.DENSITY): ("Scale", ("ScaleX", "ScaleY", "ScaleZ")),
    ("TranslatedPosition", Category.DENSITY): ("Translation", ("SlideX", "SlideY", "SlideZ")),
    ("Offset", Category.POSITION): ("Offset", ("OffsetX", "OffsetY", "OffsetZ")),
})

AXIS_OVERRIDE_FIELDS: Mapping[str, str] = MappingProxyType({
    "XOverride": "OverrideX",
    "YOverride": "OverrideY",
    "ZOverride": "OverrideZ",
})

# ---------------------------------------------------------------------------
# Noise
# ---------------------------------------------------------------------------

# native type -> flat scale fields receiving 1/Frequency
NOISE_SCALE_FIELDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "SimplexNoise2D": ("Scale",),
    "SimplexNoise3D": ("ScaleXZ", "ScaleY"),
    "CellNoise2D": ("ScaleX", "ScaleZ"),
    "CellNoise3D": ("ScaleX", "ScaleY", "ScaleZ"),
})


def invert_scale(value: object) -> float:
    """Frequency <-> scale; zero and non-numeric inputs map to 1."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value == 0:
        return 1
    return 1 / value


RIDGE_NOISE_BASES: Mapping[str, str] = MappingProxyType({
    "SimplexRidgeNoise2D": "SimplexNoise2D",
    "SimplexRidgeNoise3D": "SimplexNoise3D",
})
RIDGE_NOISE_FROM_BASE: Mapping[str, str] = MappingProxyType(
    {base: ridge for ridge, base in RIDGE_NOISE_BASES.items()}
)

# ---------------------------------------------------------------------------
# Identity rules
# ---------------------------------------------------------------------------

SKIP_CATEGORIES: FrozenSet[Category] = frozenset({
    Category.DENSITY,
    Category.POSITION,
    Category.SCANNER,
    Category.PATTERN,
    Category.PROP,
})

# Density types identified as "<Type>.Density-<token>" instead of "<Type>DensityNode-<token>"
DOTTED_DENSITY_TYPES: FrozenSet[str] = frozenset({
    "CurveMapper", "Cache", "BaseHeight", "Imported", "Exported",
    "Mix", "YOverride", "YValue", "Scale", "Rotator", "Slider",
    "FastGradientWarp", "Pow", "Sqrt", "MultiMix", "Gradient",
})

# Prop types identified as "<Type>Prop-<token>" instead of "<Type>.Prop-<token>"
CONCAT_PROP_TYPES: FrozenSet[str] = frozenset({"Box"})

# Container assets that the engine reads without identifiers or Skip
FRAMEWORK_TYPES: FrozenSet[str] = frozenset({"Positions", "DecimalConstants"})

EDITOR_METADATA_KEY = "$NodeEditorMetadata"

# ---------------------------------------------------------------------------
# Format constants
# ---------------------------------------------------------------------------

DEFAULT_SEED = "A"
DEFAULT_WORLD_HEIGHT = 320
MAX_LAYER_DEPTH = 16
DEFAULT_DEPTH_THRESHOLD = 2
CONDITIONAL_STEEPNESS = 10000
MATERIAL_GATE_UPPER = 1000
HEIGHT_GATE_UPPER = 10000
POSITION_GATE_UPPER = 1000.0
HEIGHT_BAND_DEFAULT: Tuple[int, int] = (0, 256)
FALLBACK_MATERIAL = "Air"
EMPTY_MATERIAL = "Empty"

DOMAIN_WARP_DEFAULTS: Mapping[str, object] = MappingProxyType({
    "WarpScale": 1.0,
    "WarpOctaves": 1,
    "WarpLacunarity": 2.0,
    "WarpPersistence": 0.5,
    "Seed": DEFAULT_SEED,
})

COLUMN_LINEAR_DEFAULTS: Mapping[str, object] = MappingProxyType({
    "ResultCap": 0,
    "TopDownOrder": False,
    "RelativeToPosition": False,
    "BaseHeightName": "",
})

PREFAB_DEFAULTS: Mapping[str, object] = MappingProxyType({
    "LegacyPath": False,
    "LoadEntities": True,
    "MoldingDirection": "NONE",
    "MoldingChildren": False,
})

CLUSTER_DEFAULTS: Mapping[str, object] = MappingProxyType({
    "Range": 3,
    "Seed": DEFAULT_SEED,
})

MESH2D_DEFAULTS: Mapping[str, float] = MappingProxyType({
    "Resolution": 8,
    "Jitter": 0.4,
})

SPACE_AND_DEPTH_CONTEXT = "DEPTH_INTO_FLOOR"


# Renames that only hold inside one category
CATEGORY_TYPE_EXPORT: Mapping[Tuple[Category, str], str] = MappingProxyType({
    (Category.DIRECTIONALITY, "Uniform"): "Random",
    (Category.POSITION, "DensityBased"): "FieldFunction",
    (Category.ENVIRONMENT, "Default"): "Constant",
    (Category.TINT, "Gradient"): "Constant",
})

CATEGORY_TYPE_IMPORT: Mapping[Tuple[Category, str], str] = MappingProxyType({
    (Category.DIRECTIONALITY, "Random"): "Uniform",
    (Category.POSITION, "FieldFunction"): "DensityBased",
    (Category.ENVIRONMENT, "Constant"): "Default",
    (Category.DENSITY, "Switch"): "Conditional",
})


def native_type_for(internal_name: str) -> str:
    return INTERNAL_TO_NATIVE_TYPES.get(internal_name, internal_name)


def internal_type_for(native_name: str) -> str:
    return NATIVE_TO_INTERNAL_TYPES.get(native_name, native_name)


__all__: List[str] = [
    "INTERNAL_TO_NATIVE_TYPES",
    "NATIVE_TO_INTERNAL_TYPES",
    "NAMED_INPUT_LAYOUT",
    "NATIVE_INPUT_LAYOUT",
    "input_layout",
    "BOUND_FIELD_EXPORT",
    "BOUND_FIELD_IMPORT",
    "BOUND_TYPES",
    "RANGE_FLATTENING",
    "VECTOR_FLATTENING",
    "AXIS_OVERRIDE_FIELDS",
    "NOISE_SCALE_FIELDS",
    "invert_scale",
    "RIDGE_NOISE_BASES",
    "RIDGE_NOISE_FROM_BASE",
    "SKIP_CATEGORIES",
    "DOTTED_DENSITY_TYPES",
    "CONCAT_PROP_TYPES",
    "FRAMEWORK_TYPES",
    "CATEGORY_TYPE_EXPORT",
    "CATEGORY_TYPE_IMPORT",
    "native_type_for",
    "internal_type_for",
]
