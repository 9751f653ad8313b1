from __future__ import annotations

import math
from typing import Tuple

import numpy as np

_DENOM_EPS = 1e-12


def _cross_2d(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[1] - a[1] * b[0])


def _dot_2d(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[0] + a[1] * b[1])


def _norm_sq(vec: np.ndarray) -> float:
    return float(np.dot(vec, vec))


def _norm(vec: np.ndarray) -> float:
    return math.sqrt(max(_norm_sq(vec), 0.0))


def _perp(vec: np.ndarray) -> np.ndarray:
    """Gradient of ``cross(a, vec)`` with respect to ``a``: ``(vec_y, -vec_x)``."""

    return np.array([vec[1], -vec[0]], dtype=float)


def _sign(value: float) -> float:
    return -1.0 if value < 0.0 else 1.0


def wrap_angle(angle: float) -> float:
    """Wrap ``angle`` into ``(-pi, pi]``."""

    wrapped = math.fmod(angle, 2.0 * math.pi)
    if wrapped <= -math.pi:
        wrapped += 2.0 * math.pi
    elif wrapped > math.pi:
        wrapped -= 2.0 * math.pi
    return wrapped


def signed_line_distance(
    p: np.ndarray, a: np.ndarray, b: np.ndarray
) -> Tuple[float, np.ndarray, np.ndarray, np.ndarray]:
    """Signed distance from ``p`` to the line ``a``-``b`` and its gradients.

    Returns ``(dist, d_p, d_a, d_b)``.  When ``a`` and ``b`` coincide the line
    is undefined and the Euclidean distance to ``a`` is used instead.
    """

    d = b - a
    w = p - a
    length = _norm(d)
    if length <= _DENOM_EPS:
        dist = _norm(w)
        if dist <= _DENOM_EPS:
            zero = np.zeros(2, dtype=float)
            return 0.0, zero, zero.copy(), zero.copy()
        unit = w / dist
        return dist, unit, -unit, np.zeros(2, dtype=float)

    s = _cross_2d(d, w)
    # s = dx*wy - dy*wx
    ds_dp = np.array([-d[1], d[0]], dtype=float)
    ds_db = _perp(w)
    ds_da = -ds_dp - ds_db
    unit = d / length
    dist = s / length
    d_p = ds_dp / length
    d_b = ds_db / length - dist * unit / length
    d_a = ds_da / length + dist * unit / length
    return dist, d_p, d_a, d_b


__all__ = [
    "_DENOM_EPS",
    "_cross_2d",
    "_dot_2d",
    "_norm",
    "_norm_sq",
    "_perp",
    "_sign",
    "signed_line_distance",
    "wrap_angle",
]
