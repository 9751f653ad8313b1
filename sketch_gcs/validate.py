"""Caller-error taxonomy and constraint insertion checks."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable, Iterable, Mapping, Optional

from .constraints import KIND_SPECS, Constraint, ConstraintKind, Handle

if TYPE_CHECKING:  # pragma: no cover
    from .geometry import Shape
    from .points import PointStore


class SketchError(Exception):
    """Base class for rejected sketch operations."""


class UnknownHandleError(SketchError, KeyError):
    """Raised for point, shape or constraint ids that do not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ValidationError(SketchError, ValueError):
    pass


class DegenerateConstraintError(ValidationError):
    """Raised when a constraint would be trivially unsatisfiable."""


class FixedPointError(SketchError):
    pass


class PointInUseError(SketchError):
    pass


_ANGLE_EPS = 1e-12


def _wrapped(angle: float) -> float:
    wrapped = math.fmod(angle, 2.0 * math.pi)
    if wrapped <= -math.pi:
        wrapped += 2.0 * math.pi
    elif wrapped > math.pi:
        wrapped -= 2.0 * math.pi
    return wrapped


def _check_value(constraint: Constraint) -> None:
    spec = KIND_SPECS[constraint.kind]
    kind = constraint.kind.label
    value = constraint.value
    if spec.value == "none":
        if value is not None:
            raise ValidationError(f"{kind} does not take a value")
        return
    if spec.value == "required" and value is None:
        raise ValidationError(f"{kind} requires a value")
    if spec.value == "radius" and value is None:
        if constraint.rim is None and constraint.shape is None:
            raise ValidationError(f"{kind} needs a radius value, a rim point or a circle")
        return
    if isinstance(value, str):
        if not value:
            raise ValidationError(f"{kind} variable name must be non-empty")
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{kind} value must be a number or a variable name")
    if not math.isfinite(float(value)):
        raise ValidationError(f"{kind} value must be finite")
    if constraint.kind == ConstraintKind.DISTANCE and float(value) <= 0.0:
        raise ValidationError(f"distance must be positive (got {float(value):g})")
    if spec.value == "radius" and float(value) < 0.0:
        raise ValidationError(f"{kind} radius must be non-negative (got {float(value):g})")


def _numeric(constraint: Constraint) -> float:
    value = constraint.value
    if value is None or isinstance(value, str):
        return math.nan
    return constraint.clamp(float(value))


def _least_radius(
    constraint: Constraint,
    center: Handle,
    find: Callable[[Handle], Handle],
    store: "PointStore",
    shapes: Mapping[int, "Shape"],
) -> float:
    """Smallest radius the constraint can reach, NaN while it hangs on a variable."""

    if constraint.value is not None:
        return _numeric(constraint)
    if constraint.shape is not None:
        shape = shapes.get(constraint.shape)
        if shape is None:
            return math.nan
        return constraint.clamp(float(shape.radius))
    rim = constraint.rim
    if rim is None or find(rim) == center:
        return constraint.clamp(0.0)
    if store.is_fixed(rim) and store.is_fixed(center):
        (rx, ry), (cx, cy) = store.position(rim), store.position(center)
        return constraint.clamp(math.hypot(rx - cx, ry - cy))
    # a free rim can always be pulled onto the center
    return constraint.clamp(0.0)


def _check_degenerate(
    constraint: Constraint,
    store: "PointStore",
    shapes: Optional[Mapping[int, "Shape"]] = None,
    find: Optional[Callable[[Handle], Handle]] = None,
) -> None:
    find = store.find if find is None else find
    shapes = {} if shapes is None else shapes
    reps = [find(h) for h in constraint.points]
    kind = constraint.kind
    label = kind.label

    if kind == ConstraintKind.DISTANCE:
        if reps[0] == reps[1]:
            raise DegenerateConstraintError(
                f"distance between point {constraint.points[0]} and itself"
            )
    elif kind == ConstraintKind.PERPENDICULAR:
        if {reps[0], reps[1]} == {reps[2], reps[3]} and reps[0] != reps[1]:
            raise DegenerateConstraintError("perpendicular direction against itself")
    elif kind == ConstraintKind.ANGLE:
        if reps[0] == reps[1]:
            return
        theta = _numeric(constraint)
        if math.isnan(theta):
            return
        if (reps[0], reps[1]) == (reps[2], reps[3]):
            if abs(_wrapped(theta)) > _ANGLE_EPS:
                raise DegenerateConstraintError("angle of a direction with itself must be 0")
        elif (reps[0], reps[1]) == (reps[3], reps[2]):
            if abs(abs(_wrapped(theta)) - math.pi) > _ANGLE_EPS:
                raise DegenerateConstraintError("angle of a reversed direction must be pi")
    elif kind == ConstraintKind.ON_CIRCLE:
        if reps[0] == reps[1]:
            radius = _least_radius(constraint, reps[1], find, store, shapes)
            if math.isnan(radius) or radius > 0.0:
                raise DegenerateConstraintError("point on circle is the circle center")
    elif kind in (ConstraintKind.TANGENT, ConstraintKind.ON_LINE):
        line = (reps[0], reps[1]) if kind == ConstraintKind.TANGENT else (reps[1], reps[2])
        if line[0] == line[1]:
            raise DegenerateConstraintError(f"{label} line endpoints coincide")
        if kind == ConstraintKind.TANGENT:
            center = reps[2]
            if center in line:
                radius = _least_radius(constraint, center, find, store, shapes)
                if math.isnan(radius) or radius > 0.0:
                    raise DegenerateConstraintError(
                        "tangent circle center lies on the line endpoint"
                    )


def check_merge(
    constraints: Iterable[Constraint],
    store: "PointStore",
    shapes: Mapping[int, "Shape"],
    a: Handle,
    b: Handle,
) -> None:
    """Raise ``DegenerateConstraintError`` if merging ``a`` and ``b`` would make
    any of ``constraints`` trivially unsatisfiable."""

    ra = store.find(a)
    rb = store.find(b)
    if ra == rb:
        return
    merged = {ra, rb}

    def find(handle: Handle) -> Handle:
        root = store.find(handle)
        return ra if root in merged else root

    for constraint in constraints:
        if not any(store.find(h) in merged for h in constraint.points):
            continue
        try:
            _check_degenerate(constraint, store, shapes, find)
        except DegenerateConstraintError as exc:
            raise DegenerateConstraintError(
                f"merging points {a} and {b} breaks constraint #{constraint.cid}: {exc}"
            ) from None


def validate_constraint(
    constraint: Constraint,
    store: "PointStore",
    shapes: Mapping[int, "Shape"],
) -> None:
    """Raise a ``SketchError`` if ``constraint`` may not be inserted."""

    spec = KIND_SPECS[constraint.kind]
    count = len(constraint.points)
    if count < spec.min_points or count > spec.max_points:
        if spec.min_points == spec.max_points:
            expected = str(spec.min_points)
        else:
            expected = f"{spec.min_points}-{spec.max_points}"
        raise ValidationError(
            f"{constraint.kind.label} expects {expected} points, got {count}"
        )
    for handle in constraint.points:
        if handle not in store:
            raise UnknownHandleError(f"unknown point handle {handle!r}")
    if constraint.shape is not None:
        shape = shapes.get(constraint.shape)
        if shape is None:
            raise UnknownHandleError(f"unknown shape id {constraint.shape!r}")
        if shape.kind not in ("circle", "arc"):
            raise ValidationError(
                f"{constraint.kind.label} needs a circle or arc, got {shape.kind}"
            )
    if constraint.minimum is not None and constraint.maximum is not None:
        if constraint.minimum > constraint.maximum:
            raise ValidationError("limit range minimum exceeds maximum")
    _check_value(constraint)
    _check_degenerate(constraint, store, shapes)


__all__ = [
    "DegenerateConstraintError",
    "FixedPointError",
    "PointInUseError",
    "SketchError",
    "UnknownHandleError",
    "ValidationError",
    "check_merge",
    "validate_constraint",
]
