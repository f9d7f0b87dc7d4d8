# WorldGraph curve helpers
#
# - Curve points: internal [x, y] pairs or {x, y} records <-> native {In, Out} records
# - Blend curves: the native format has no blend primitive, so two manual curves
#   are resampled into one by averaging their values on the union of x positions

from __future__ import annotations

import bisect
import logging
from typing import Any, Callable, Dict, List, Sequence, Tuple

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

IDENTITY_POINTS: List[List[float]] = [[0, 0], [1, 1]]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def lower_curve_points(points: Sequence[Any], new_id: Callable[[], str]) -> List[Any]:
    out: List[Any] = []
    for pt in points:
        if isinstance(pt, (list, tuple)) and len(pt) == 2:
            out.append({"$NodeId": new_id(), "In": pt[0], "Out": pt[1]})
        elif isinstance(pt, dict) and ("x" in pt or "In" in pt):
            x = pt.get("x", pt.get("In", 0))
            y = pt.get("y", pt.get("Out", 0))
            out.append({"$NodeId": new_id(), "In": x, "Out": y})
        else:
            out.append(pt)
    return out


def raise_curve_points(points: Sequence[Any]) -> List[Any]:
    out: List[Any] = []
    for pt in points:
        if isinstance(pt, dict) and "In" in pt:
            out.append({"x": pt.get("In", 0), "y": pt.get("Out", 0)})
        else:
            out.append(pt)
    return out


def _pairs(points: Any) -> List[Point]:
    pairs: List[Point] = []
    if not isinstance(points, list):
        return pairs
    for pt in points:
        if isinstance(pt, (list, tuple)) and len(pt) == 2 and _is_number(pt[0]) and _is_number(pt[1]):
            pairs.append((pt[0], pt[1]))
        elif isinstance(pt, dict) and _is_number(pt.get("x")) and _is_number(pt.get("y")):
            pairs.append((pt["x"], pt["y"]))
    return pairs


def sample(points: Sequence[Point], x: float) -> float:
    """Piecewise-linear value of `points` at x, clamped to the end values."""
    if not points:
        return 0
    if x <= points[0][0]:
        return points[0][1]
    if x >= points[-1][0]:
        return points[-1][1]
    xs = [p[0] for p in points]
    i = bisect.bisect_right(xs, x) - 1
    x0, y0 = points[i]
    x1, y1 = points[i + 1]
    if x1 == x0:
        return y0
    t = (x - x0) / (x1 - x0)
    return y0 + t * (y1 - y0)


def blend_curves(curve: Dict[str, Any], precision: int = 3) -> Dict[str, Any]:
    """
    Flatten a Blend curve into a single Manual curve.

    Every x owned by either input is kept; each input contributes its own y
    there, or its interpolated value when it has no point at that x. The two
    values are averaged and rounded to `precision` decimals.
    """
    input_a = curve.get("InputA")
    input_b = curve.get("InputB")
    if not isinstance(input_a, dict) or not isinstance(input_b, dict):
        logger.warning("Blend curve without both inputs; emitting identity curve")
        return {"Type": "Manual", "Points": [list(p) for p in IDENTITY_POINTS]}

    points_a = _pairs(input_a.get("Points"))
    points_b = _pairs(input_b.get("Points"))
    own_a = dict(points_a)
    own_b = dict(points_b)
    sorted_a = sorted(points_a)
    sorted_b = sorted(points_b)

    merged: List[List[float]] = []
    for x in sorted(set(own_a) | set(own_b)):
        ya = own_a[x] if x in own_a else sample(sorted_a, x)
        yb = own_b[x] if x in own_b else sample(sorted_b, x)
        merged.append([x, round((ya + yb) / 2, precision)])

    logger.debug(f"Blend curve resampled to {len(merged)} points")
    return {"Type": "Manual", "Points": merged}


__all__ = [
    "lower_curve_points",
    "raise_curve_points",
    "sample",
    "blend_curves",
]
