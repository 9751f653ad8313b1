"""Constraint records and the per-kind registry metadata."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Tuple, Union

from . import constants

Handle = int
ConstraintValue = Union[float, str]


class ConstraintKind(IntEnum):
    COINCIDENT = constants.CONSTRAINT_COINCIDENT
    HORIZONTAL = constants.CONSTRAINT_HORIZONTAL
    VERTICAL = constants.CONSTRAINT_VERTICAL
    DISTANCE = constants.CONSTRAINT_DISTANCE
    FIXED = constants.CONSTRAINT_FIXED
    PARALLEL = constants.CONSTRAINT_PARALLEL
    PERPENDICULAR = constants.CONSTRAINT_PERPENDICULAR
    EQUAL_LENGTH = constants.CONSTRAINT_EQUAL_LENGTH
    TANGENT = constants.CONSTRAINT_TANGENT
    ANGLE = constants.CONSTRAINT_ANGLE
    ON_LINE = constants.CONSTRAINT_ON_LINE
    ON_CIRCLE = constants.CONSTRAINT_ON_CIRCLE
    MIDPOINT = constants.CONSTRAINT_MIDPOINT

    @property
    def label(self) -> str:
        return constants.CONSTRAINT_NAMES[int(self)]


@dataclass(frozen=True)
class KindSpec:
    """Arity and value requirements of a constraint kind.

    ``value`` is one of ``"none"``, ``"required"`` or ``"radius"``; the
    latter accepts the radius as a value, a rim point or a circle shape.
    """

    min_points: int
    max_points: int
    value: str
    rows: int


KIND_SPECS: Dict[ConstraintKind, KindSpec] = {
    ConstraintKind.COINCIDENT: KindSpec(2, 2, "none", 2),
    ConstraintKind.HORIZONTAL: KindSpec(2, 2, "none", 1),
    ConstraintKind.VERTICAL: KindSpec(2, 2, "none", 1),
    ConstraintKind.DISTANCE: KindSpec(2, 2, "required", 1),
    ConstraintKind.FIXED: KindSpec(1, 1, "none", 2),
    ConstraintKind.PARALLEL: KindSpec(4, 4, "none", 1),
    ConstraintKind.PERPENDICULAR: KindSpec(4, 4, "none", 1),
    ConstraintKind.EQUAL_LENGTH: KindSpec(4, 4, "none", 1),
    ConstraintKind.TANGENT: KindSpec(3, 4, "radius", 1),
    ConstraintKind.ANGLE: KindSpec(4, 4, "required", 1),
    ConstraintKind.ON_LINE: KindSpec(3, 3, "none", 1),
    ConstraintKind.ON_CIRCLE: KindSpec(2, 3, "radius", 1),
    ConstraintKind.MIDPOINT: KindSpec(3, 3, "none", 2),
}

# Number of leading points that belong to the circle-independent part; a
# point beyond these is the rim point used to derive the radius.
RIM_SLOT: Dict[ConstraintKind, int] = {
    ConstraintKind.TANGENT: 3,
    ConstraintKind.ON_CIRCLE: 2,
}


@dataclass
class Constraint:
    """A constraint over point handles.

    ``value`` holds the scalar parameter or the name of a sketch variable.
    ``shape`` names the circle/arc whose radius feeds TANGENT and ON_CIRCLE.
    ``anchor`` is the position snapshot taken when a FIXED constraint is
    inserted.
    """

    cid: int
    kind: ConstraintKind
    points: Tuple[Handle, ...]
    value: Optional[ConstraintValue] = None
    shape: Optional[int] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    anchor: Optional[Tuple[float, float]] = None
    note: Optional[str] = None

    @property
    def rows(self) -> int:
        return KIND_SPECS[self.kind].rows

    @property
    def rim(self) -> Optional[Handle]:
        slot = RIM_SLOT.get(self.kind)
        if slot is None or len(self.points) <= slot:
            return None
        return self.points[slot]

    def clamp(self, value: float) -> float:
        if self.minimum is not None and value < self.minimum:
            value = self.minimum
        if self.maximum is not None and value > self.maximum:
            value = self.maximum
        return value

    def footprint(self, find: Callable[[Handle], Handle]) -> List[Handle]:
        """Return the sorted representative handles this constraint reads."""

        return sorted({find(h) for h in self.points})

    def references(self, handles: "set[Handle]") -> bool:
        return any(h in handles for h in self.points)


def describe_constraint(constraint: Constraint) -> str:
    parts = [f"#{constraint.cid}", constraint.kind.label]
    if constraint.points:
        parts.append("points=" + ",".join(str(h) for h in constraint.points))
    if constraint.value is not None:
        if isinstance(constraint.value, str):
            parts.append(f"value={constraint.value}")
        else:
            parts.append(f"value={constraint.value:.6g}")
    if constraint.shape is not None:
        parts.append(f"shape={constraint.shape}")
    if constraint.note:
        parts.append(f"note={constraint.note}")
    return " | ".join(parts)


def coerce_kind(kind: Union[int, str, ConstraintKind]) -> ConstraintKind:
    """Map an integer id, a label or an enum member to ``ConstraintKind``."""

    if isinstance(kind, ConstraintKind):
        return kind
    if isinstance(kind, str):
        for member in ConstraintKind:
            if member.label == kind.lower() or member.name == kind.upper():
                return member
        raise ValueError(f"unknown constraint kind '{kind}'")
    return ConstraintKind(int(kind))


__all__ = [
    "Constraint",
    "ConstraintKind",
    "ConstraintValue",
    "Handle",
    "KIND_SPECS",
    "KindSpec",
    "RIM_SLOT",
    "coerce_kind",
    "describe_constraint",
]
