import pytest

from worldgraph.translation.curves import (
    IDENTITY_POINTS,
    blend_curves,
    lower_curve_points,
    raise_curve_points,
    sample,
)


def _counter():
    state = {"n": 0}

    def new_id():
        state["n"] += 1
        return f"CurvePoint-{state['n']}"

    return new_id

# -------------------------
# Point records
# -------------------------

def test_lower_accepts_pairs_and_records():
    out = lower_curve_points([[0, 1], {"x": 2, "y": 3}, {"In": 4, "Out": 5}], _counter())
    assert out == [
        {"$NodeId": "CurvePoint-1", "In": 0, "Out": 1},
        {"$NodeId": "CurvePoint-2", "In": 2, "Out": 3},
        {"$NodeId": "CurvePoint-3", "In": 4, "Out": 5},
    ]

def test_lower_keeps_unrecognised_points():
    assert lower_curve_points(["x", [1, 2, 3]], _counter()) == ["x", [1, 2, 3]]

def test_raise_produces_xy_records():
    out = raise_curve_points([{"$NodeId": "p", "In": 0.5, "Out": 2}, {"In": 1}])
    assert out == [{"x": 0.5, "y": 2}, {"x": 1, "y": 0}]


# -------------------------
# Sampling
# -------------------------

@pytest.mark.parametrize(
    "x, expected",
    [(-1, 0), (0, 0), (0.25, 0.5), (0.5, 1), (0.75, 0.5), (1, 0), (2, 0)],
)
def test_sample_is_piecewise_linear_and_clamped(x, expected):
    points = [(0, 0), (0.5, 1), (1, 0)]
    assert sample(points, x) == pytest.approx(expected)

def test_sample_empty_curve():
    assert sample([], 0.3) == 0


# -------------------------
# Blend curves
# -------------------------

def test_blend_averages_on_union_of_x():
    curve = {
        "Type": "Blend",
        "InputA": {"Type": "Manual", "Points": [[0, 0], [1, 1]]},
        "InputB": {"Type": "Manual", "Points": [{"x": 0, "y": 0}, {"x": 0.5, "y": 1}, {"x": 1, "y": 1}]},
    }
    assert blend_curves(curve) == {"Type": "Manual", "Points": [[0, 0], [0.5, 0.75], [1, 1]]}

def test_blend_rounds_to_precision():
    curve = {
        "Type": "Blend",
        "InputA": {"Type": "Manual", "Points": [[0, 0], [3, 1]]},
        "InputB": {"Type": "Manual", "Points": [[0, 0], [1, 0], [3, 0]]},
    }
    out = blend_curves(curve, precision=2)
    assert out["Points"][1] == [1, 0.17]

def test_blend_without_both_inputs_is_identity():
    out = blend_curves({"Type": "Blend", "InputA": {"Type": "Manual", "Points": [[0, 1]]}})
    assert out == {"Type": "Manual", "Points": IDENTITY_POINTS}
