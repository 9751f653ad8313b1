"""Geometry records referencing points by handle, and their queries.

Every shape is a single tagged record; the per-kind behaviour (hit test,
snapping, bounds) dispatches on ``shape.kind``.  Coordinates are never copied
into a shape: queries read them through the point store.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, List, Literal, Tuple

from . import constants
from .points import Handle, PointStore
from .validate import ValidationError

ShapeKind = Literal["segment", "circle", "arc", "point"]
Point2D = Tuple[float, float]
BBox = Tuple[float, float, float, float]
SnapPoint = Tuple[float, float, str]

TWO_PI = 2.0 * math.pi
_FULL_TURN_EPS = 1e-12


@dataclass
class Shape:
    sid: int
    kind: ShapeKind
    points: Tuple[Handle, ...]
    radius: float = 0.0
    start_angle: float = 0.0
    end_angle: float = 0.0
    pixel_size: float = 4.0
    flags: int = constants.FLAG_VISIBLE

    @property
    def visible(self) -> bool:
        return bool(self.flags & constants.FLAG_VISIBLE)

    @property
    def construction(self) -> bool:
        return bool(self.flags & constants.FLAG_CONSTRUCTION)

    @property
    def sweep(self) -> float:
        return self.end_angle - self.start_angle


def normalize_arc_angles(start: float, end: float, shortest: bool = False) -> Tuple[float, float]:
    """Return ``(start, end)`` with ``start`` in ``[0, 2pi)`` and ``start < end <= start + 2pi``.

    A non-positive sweep gets ``2pi`` added, so ``start == end`` yields a full
    turn.  With ``shortest`` the minor arc between the two angles is kept; a
    full turn is left alone.
    """

    if not (math.isfinite(start) and math.isfinite(end)):
        raise ValidationError("arc angles must be finite")
    start = math.fmod(start, TWO_PI)
    if start < 0.0:
        start += TWO_PI
    sweep = math.fmod(end - start, TWO_PI)
    if sweep <= 0.0:
        sweep += TWO_PI
    if shortest and math.pi < sweep < TWO_PI:
        start = math.fmod(start + sweep, TWO_PI)
        sweep = TWO_PI - sweep
    return start, start + sweep


def make_segment(sid: int, store: PointStore, p1: Handle, p2: Handle, flags: int = constants.FLAG_VISIBLE) -> Shape:
    store.find(p1)
    store.find(p2)
    return Shape(sid=sid, kind="segment", points=(p1, p2), flags=flags)


def make_circle(sid: int, store: PointStore, center: Handle, radius: float, flags: int = constants.FLAG_VISIBLE) -> Shape:
    store.find(center)
    _check_radius(radius)
    return Shape(sid=sid, kind="circle", points=(center,), radius=float(radius), flags=flags)


def make_arc(
    sid: int,
    store: PointStore,
    center: Handle,
    radius: float,
    start_angle: float,
    end_angle: float,
    *,
    shortest: bool = False,
    flags: int = constants.FLAG_VISIBLE,
) -> Shape:
    store.find(center)
    _check_radius(radius)
    start, end = normalize_arc_angles(float(start_angle), float(end_angle), shortest=shortest)
    return Shape(
        sid=sid,
        kind="arc",
        points=(center,),
        radius=float(radius),
        start_angle=start,
        end_angle=end,
        flags=flags,
    )


def make_entity_point(
    sid: int, store: PointStore, point: Handle, pixel_size: float = 4.0, flags: int = constants.FLAG_VISIBLE
) -> Shape:
    store.find(point)
    return Shape(sid=sid, kind="point", points=(point,), pixel_size=float(pixel_size), flags=flags)


def _check_radius(radius: float) -> None:
    if not math.isfinite(radius) or radius < 0.0:
        raise ValidationError(f"radius must be a finite non-negative number (got {radius!r})")


# -- shared helpers -----------------------------------------------------------


def distance_to_segment(px: float, py: float, a: Point2D, b: Point2D) -> float:
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    len_sq = dx * dx + dy * dy
    if len_sq == 0.0:
        return math.hypot(px - a[0], py - a[1])
    t = ((px - a[0]) * dx + (py - a[1]) * dy) / len_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (a[0] + t * dx), py - (a[1] + t * dy))


def angle_in_sweep(angle: float, start: float, end: float) -> bool:
    """Return ``True`` when ``angle`` lies on the CCW sweep from ``start`` to ``end``."""

    sweep = end - start
    if sweep >= TWO_PI - _FULL_TURN_EPS:
        return True
    offset = math.fmod(angle - start, TWO_PI)
    if offset < 0.0:
        offset += TWO_PI
    return offset <= sweep


def _on_circle(center: Point2D, radius: float, angle: float) -> Point2D:
    return center[0] + radius * math.cos(angle), center[1] + radius * math.sin(angle)


def arc_endpoints(store: PointStore, shape: Shape) -> Tuple[Point2D, Point2D]:
    center = store.position(shape.points[0])
    return (
        _on_circle(center, shape.radius, shape.start_angle),
        _on_circle(center, shape.radius, shape.end_angle),
    )


# -- queries ------------------------------------------------------------------


def length(store: PointStore, shape: Shape) -> float:
    if shape.kind == "segment":
        a = store.position(shape.points[0])
        b = store.position(shape.points[1])
        return math.hypot(b[0] - a[0], b[1] - a[1])
    if shape.kind == "circle":
        return TWO_PI * shape.radius
    if shape.kind == "arc":
        return shape.radius * shape.sweep
    return 0.0


def midpoint(store: PointStore, shape: Shape) -> Point2D:
    if shape.kind == "segment":
        a = store.position(shape.points[0])
        b = store.position(shape.points[1])
        return (a[0] + b[0]) * 0.5, (a[1] + b[1]) * 0.5
    if shape.kind == "arc":
        center = store.position(shape.points[0])
        return _on_circle(center, shape.radius, 0.5 * (shape.start_angle + shape.end_angle))
    return store.position(shape.points[0])


def tangent_at(store: PointStore, shape: Shape, x: float, y: float) -> Point2D:
    """Unit tangent at the location on ``shape`` closest to ``(x, y)``.

    Circles and arcs return the counter-clockwise direction.  Degenerate
    shapes return ``(0.0, 0.0)``.
    """

    if shape.kind == "segment":
        a = store.position(shape.points[0])
        b = store.position(shape.points[1])
        dx = b[0] - a[0]
        dy = b[1] - a[1]
        norm = math.hypot(dx, dy)
        if norm == 0.0:
            return 0.0, 0.0
        return dx / norm, dy / norm
    if shape.kind in ("circle", "arc"):
        if shape.radius == 0.0:
            return 0.0, 0.0
        cx, cy = store.position(shape.points[0])
        angle = math.atan2(y - cy, x - cx)
        if shape.kind == "arc" and not angle_in_sweep(angle, shape.start_angle, shape.end_angle):
            start, end = arc_endpoints(store, shape)
            if math.hypot(x - start[0], y - start[1]) <= math.hypot(x - end[0], y - end[1]):
                angle = shape.start_angle
            else:
                angle = shape.end_angle
        return -math.sin(angle), math.cos(angle)
    return 0.0, 0.0


def bounding_box(store: PointStore, shape: Shape) -> BBox:
    if shape.kind == "segment":
        a = store.position(shape.points[0])
        b = store.position(shape.points[1])
        return min(a[0], b[0]), min(a[1], b[1]), max(a[0], b[0]), max(a[1], b[1])
    if shape.kind == "circle":
        cx, cy = store.position(shape.points[0])
        r = shape.radius
        return cx - r, cy - r, cx + r, cy + r
    if shape.kind == "arc":
        center = store.position(shape.points[0])
        start, end = arc_endpoints(store, shape)
        xs = [start[0], end[0]]
        ys = [start[1], end[1]]
        for quarter in range(4):
            angle = quarter * 0.5 * math.pi
            if angle_in_sweep(angle, shape.start_angle, shape.end_angle):
                px, py = _on_circle(center, shape.radius, angle)
                xs.append(px)
                ys.append(py)
        return min(xs), min(ys), max(xs), max(ys)
    x, y = store.position(shape.points[0])
    return x, y, x, y


def point_distance(store: PointStore, shape: Shape, x: float, y: float) -> float:
    if shape.kind == "segment":
        return distance_to_segment(
            x, y, store.position(shape.points[0]), store.position(shape.points[1])
        )
    if shape.kind == "circle":
        cx, cy = store.position(shape.points[0])
        return abs(math.hypot(x - cx, y - cy) - shape.radius)
    if shape.kind == "arc":
        cx, cy = store.position(shape.points[0])
        d = math.hypot(x - cx, y - cy)
        if d > 0.0 and angle_in_sweep(math.atan2(y - cy, x - cx), shape.start_angle, shape.end_angle):
            return abs(d - shape.radius)
        start, end = arc_endpoints(store, shape)
        return min(math.hypot(x - start[0], y - start[1]), math.hypot(x - end[0], y - end[1]))
    px, py = store.position(shape.points[0])
    return math.hypot(x - px, y - py)


def snap_points(store: PointStore, shape: Shape) -> Iterator[SnapPoint]:
    if shape.kind == "segment":
        a = store.position(shape.points[0])
        b = store.position(shape.points[1])
        yield a[0], a[1], constants.SNAP_ENDPOINT
        yield b[0], b[1], constants.SNAP_ENDPOINT
        yield (a[0] + b[0]) * 0.5, (a[1] + b[1]) * 0.5, constants.SNAP_MIDPOINT
    elif shape.kind == "circle":
        cx, cy = store.position(shape.points[0])
        r = shape.radius
        yield cx, cy, constants.SNAP_CENTER
        yield cx + r, cy, constants.SNAP_QUADRANT
        yield cx - r, cy, constants.SNAP_QUADRANT
        yield cx, cy + r, constants.SNAP_QUADRANT
        yield cx, cy - r, constants.SNAP_QUADRANT
    elif shape.kind == "arc":
        cx, cy = store.position(shape.points[0])
        start, end = arc_endpoints(store, shape)
        mid = midpoint(store, shape)
        yield start[0], start[1], constants.SNAP_ENDPOINT
        yield end[0], end[1], constants.SNAP_ENDPOINT
        yield mid[0], mid[1], constants.SNAP_MIDPOINT
        yield cx, cy, constants.SNAP_CENTER
    else:
        px, py = store.position(shape.points[0])
        yield px, py, constants.SNAP_ENDPOINT


def merge_boxes(boxes: List[BBox]) -> BBox:
    return (
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes),
    )


__all__ = [
    "BBox",
    "Point2D",
    "Shape",
    "ShapeKind",
    "SnapPoint",
    "angle_in_sweep",
    "arc_endpoints",
    "bounding_box",
    "distance_to_segment",
    "length",
    "make_arc",
    "make_circle",
    "make_entity_point",
    "make_segment",
    "merge_boxes",
    "midpoint",
    "normalize_arc_angles",
    "point_distance",
    "snap_points",
    "tangent_at",
]
