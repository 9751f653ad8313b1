"""Residual equations and analytic gradients for every constraint kind.

Each equation receives the coordinates of the constraint's points as a
``(k, 2)`` array (in the order the constraint lists them) and the resolved
scalar value, and returns ``(values, grads)`` where ``grads[i, j, :]`` is the
partial derivative of residual ``i`` with respect to point ``j``.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, Tuple

import numpy as np

from ..constraints import ConstraintKind
from ..logging_utils import apply_debug_logging
from .math_utils import (
    _DENOM_EPS,
    _cross_2d,
    _dot_2d,
    _norm,
    _perp,
    _sign,
    signed_line_distance,
    wrap_angle,
)

logger = logging.getLogger(__name__)

Equation = Callable[[np.ndarray, float], Tuple[np.ndarray, np.ndarray]]


def _blank(rows: int, points: int) -> Tuple[np.ndarray, np.ndarray]:
    return np.zeros(rows, dtype=float), np.zeros((rows, points, 2), dtype=float)


def _coincident(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    values, grads = _blank(2, 2)
    values[:] = pts[1] - pts[0]
    grads[0, 0, 0] = -1.0
    grads[0, 1, 0] = 1.0
    grads[1, 0, 1] = -1.0
    grads[1, 1, 1] = 1.0
    return values, grads


def _horizontal(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    values, grads = _blank(1, 2)
    values[0] = pts[1, 1] - pts[0, 1]
    grads[0, 0, 1] = -1.0
    grads[0, 1, 1] = 1.0
    return values, grads


def _vertical(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    values, grads = _blank(1, 2)
    values[0] = pts[1, 0] - pts[0, 0]
    grads[0, 0, 0] = -1.0
    grads[0, 1, 0] = 1.0
    return values, grads


def _distance(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    # squared form stays smooth when the points meet
    values, grads = _blank(1, 2)
    diff = pts[1] - pts[0]
    values[0] = _dot_2d(diff, diff) - value * value
    grads[0, 1] = 2.0 * diff
    grads[0, 0] = -2.0 * diff
    return values, grads


def _fixed(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    # the anchor is passed as a trailing pseudo-point by the compiler
    values, grads = _blank(2, 2)
    values[:] = pts[0] - pts[1]
    grads[0, 0, 0] = 1.0
    grads[1, 0, 1] = 1.0
    grads[0, 1, 0] = -1.0
    grads[1, 1, 1] = -1.0
    return values, grads


def _directions(pts: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    return pts[1] - pts[0], pts[3] - pts[2]


def _parallel(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    values, grads = _blank(1, 4)
    d1, d2 = _directions(pts)
    values[0] = _cross_2d(d1, d2)
    g_d1 = _perp(d2)
    g_d2 = np.array([-d1[1], d1[0]], dtype=float)
    grads[0, 0] = -g_d1
    grads[0, 1] = g_d1
    grads[0, 2] = -g_d2
    grads[0, 3] = g_d2
    return values, grads


def _perpendicular(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    values, grads = _blank(1, 4)
    d1, d2 = _directions(pts)
    values[0] = _dot_2d(d1, d2)
    grads[0, 0] = -d2
    grads[0, 1] = d2
    grads[0, 2] = -d1
    grads[0, 3] = d1
    return values, grads


def _equal_length(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    values, grads = _blank(1, 4)
    d1, d2 = _directions(pts)
    values[0] = _dot_2d(d1, d1) - _dot_2d(d2, d2)
    grads[0, 0] = -2.0 * d1
    grads[0, 1] = 2.0 * d1
    grads[0, 2] = 2.0 * d2
    grads[0, 3] = -2.0 * d2
    return values, grads


def _angle(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    values, grads = _blank(1, 4)
    d1, d2 = _directions(pts)
    cross = _cross_2d(d1, d2)
    dot = _dot_2d(d1, d2)
    values[0] = wrap_angle(math.atan2(cross, dot) - value)
    denom = cross * cross + dot * dot
    if denom <= _DENOM_EPS:
        return values, grads
    # d(atan2(c, t)) = (t dc - c dt) / (c^2 + t^2)
    g_d1 = (dot * _perp(d2) - cross * d2) / denom
    g_d2 = (dot * np.array([-d1[1], d1[0]], dtype=float) - cross * d1) / denom
    grads[0, 0] = -g_d1
    grads[0, 1] = g_d1
    grads[0, 2] = -g_d2
    grads[0, 3] = g_d2
    return values, grads


def _radius(pts: np.ndarray, center: int, rim_slot: int, value: float) -> Tuple[float, np.ndarray]:
    """Radius of the referenced circle and its gradient over ``pts``."""

    grad = np.zeros((len(pts), 2), dtype=float)
    if len(pts) <= rim_slot:
        return value, grad
    spoke = pts[rim_slot] - pts[center]
    radius = _norm(spoke)
    if radius > _DENOM_EPS:
        unit = spoke / radius
        grad[rim_slot] += unit
        grad[center] -= unit
    return radius, grad


def _tangent(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    k = len(pts)
    values, grads = _blank(1, k)
    dist, d_c, d_a, d_b = signed_line_distance(pts[2], pts[0], pts[1])
    radius, r_grad = _radius(pts, 2, 3, value)
    sign = _sign(dist)
    values[0] = abs(dist) - radius
    grads[0, 0] = sign * d_a
    grads[0, 1] = sign * d_b
    grads[0, 2] = sign * d_c
    grads[0] -= r_grad
    return values, grads


def _on_line(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    # signed so the zero set is crossed smoothly
    values, grads = _blank(1, 3)
    dist, d_p, d_a, d_b = signed_line_distance(pts[0], pts[1], pts[2])
    values[0] = dist
    grads[0, 0] = d_p
    grads[0, 1] = d_a
    grads[0, 2] = d_b
    return values, grads


def _on_circle(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    k = len(pts)
    values, grads = _blank(1, k)
    spoke = pts[0] - pts[1]
    dist = _norm(spoke)
    radius, r_grad = _radius(pts, 1, 2, value)
    values[0] = dist - radius
    if dist > _DENOM_EPS:
        unit = spoke / dist
        grads[0, 0] += unit
        grads[0, 1] -= unit
    grads[0] -= r_grad
    return values, grads


def _midpoint(pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    values, grads = _blank(2, 3)
    values[:] = pts[0] - 0.5 * (pts[1] + pts[2])
    for axis in range(2):
        grads[axis, 0, axis] = 1.0
        grads[axis, 1, axis] = -0.5
        grads[axis, 2, axis] = -0.5
    return values, grads


EQUATIONS: Dict[ConstraintKind, Equation] = {
    ConstraintKind.COINCIDENT: _coincident,
    ConstraintKind.HORIZONTAL: _horizontal,
    ConstraintKind.VERTICAL: _vertical,
    ConstraintKind.DISTANCE: _distance,
    ConstraintKind.FIXED: _fixed,
    ConstraintKind.PARALLEL: _parallel,
    ConstraintKind.PERPENDICULAR: _perpendicular,
    ConstraintKind.EQUAL_LENGTH: _equal_length,
    ConstraintKind.TANGENT: _tangent,
    ConstraintKind.ANGLE: _angle,
    ConstraintKind.ON_LINE: _on_line,
    ConstraintKind.ON_CIRCLE: _on_circle,
    ConstraintKind.MIDPOINT: _midpoint,
}


def evaluate(kind: ConstraintKind, pts: np.ndarray, value: float) -> Tuple[np.ndarray, np.ndarray]:
    """Return the residual values and analytic gradients of one constraint."""

    return EQUATIONS[kind](np.asarray(pts, dtype=float), float(value))


def numeric_gradients(
    kind: ConstraintKind, pts: np.ndarray, value: float, step: float = 1e-6
) -> np.ndarray:
    """Central-difference gradients, shaped like the analytic ones.

    Only meant for checking the analytic Jacobians in tests.
    """

    base = np.asarray(pts, dtype=float)
    values, _ = evaluate(kind, base, value)
    grads = np.zeros((values.size, base.shape[0], 2), dtype=float)
    for j in range(base.shape[0]):
        for axis in range(2):
            plus = base.copy()
            minus = base.copy()
            plus[j, axis] += step
            minus[j, axis] -= step
            f_plus, _ = evaluate(kind, plus, value)
            f_minus, _ = evaluate(kind, minus, value)
            grads[:, j, axis] = (f_plus - f_minus) / (2.0 * step)
    return grads


apply_debug_logging(globals(), logger=logger, skip={"evaluate", "_blank", "_radius"})


__all__ = ["EQUATIONS", "Equation", "evaluate", "numeric_gradients"]
