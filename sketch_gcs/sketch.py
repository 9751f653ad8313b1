"""Sketch scene: points, shapes and constraints plus the pickers used by tools."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from . import constants, geometry
from .constraints import Constraint, ConstraintKind, ConstraintValue, coerce_kind, describe_constraint
from .geometry import BBox, Shape
from .points import Handle, PointStore
from .solver import compile_system
from .solver.config import get_solver_options
from .solver.model import ConstraintSystem, SolveOptions, SolveReport
from .solver.solver_core import DampedLeastSquares
from .validate import (
    PointInUseError,
    UnknownHandleError,
    ValidationError,
    check_merge,
    validate_constraint,
)

logger = logging.getLogger(__name__)

KindLike = Union[int, str, ConstraintKind]
SnapCandidate = Tuple[float, float, str, int]

DEFAULT_BOUNDS: BBox = (-10.0, -10.0, 10.0, 10.0)


@dataclass
class SketchConfig:
    """Per-sketch behaviour switches.

    ``solve_options`` falls back to the process default from
    ``solver.config`` when left unset.
    """

    merge_tolerance: float = constants.MERGE_TOLERANCE
    merge_coincident: bool = True
    solve_options: Optional[SolveOptions] = None


@dataclass
class _StepSession:
    kernel: DampedLeastSquares
    system: ConstraintSystem
    snapshot: Dict[Handle, Tuple[float, float]]


def _check_finite(*values: float) -> None:
    for value in values:
        if not math.isfinite(value):
            raise ValidationError(f"coordinate must be finite (got {value!r})")


class Sketch:
    """A 2D sketch and the constraint solver that acts on it.

    Shapes and constraints keep the point handles they were created with and
    resolve them through ``find`` on every read, so merging points never
    rewrites them.
    """

    def __init__(self, config: Optional[SketchConfig] = None) -> None:
        self.config = config or SketchConfig()
        self.points = PointStore()
        self._shapes: Dict[int, Shape] = {}
        self._constraints: Dict[int, Constraint] = {}
        self._variables: Dict[str, float] = {}
        self._next_shape = 0
        self._next_constraint = 0
        self._session: Optional[_StepSession] = None
        self.last_report: Optional[SolveReport] = None

    def _touch(self) -> None:
        if self._session is not None:
            logger.debug("Dropping in-progress incremental solve after mutation")
        self._session = None

    # -- points ----------------------------------------------------------------

    def add_point(self, x: float, y: float, fixed: bool = False) -> Handle:
        _check_finite(x, y)
        self._touch()
        return self.points.create_point(x, y, fixed)

    def get_or_create_point(self, x: float, y: float, tol: Optional[float] = None) -> Handle:
        """Return a live point within ``tol`` of ``(x, y)``, creating one if none is."""

        _check_finite(x, y)
        tol = self.config.merge_tolerance if tol is None else tol
        existing = self.find_closest_point(x, y, tol)
        if existing is not None:
            return existing
        return self.add_point(x, y)

    def set_position(self, handle: Handle, x: float, y: float) -> None:
        _check_finite(x, y)
        self._touch()
        self.points.set_position(handle, x, y)

    def set_fixed(self, handle: Handle, fixed: bool = True) -> None:
        self._touch()
        self.points.set_fixed(handle, fixed)

    def union(self, a: Handle, b: Handle) -> Handle:
        """Merge the classes of ``a`` and ``b``.

        Raises ``DegenerateConstraintError``, leaving the scene untouched, when
        an existing constraint relies on the two points being distinct.
        """

        check_merge(self._constraints.values(), self.points, self._shapes, a, b)
        self._touch()
        return self.points.union(a, b)

    def remove_point(self, handle: Handle) -> List[Handle]:
        """Remove ``handle`` and every alias merged with it.

        Raises ``PointInUseError`` while any shape or constraint references the
        class.
        """

        members = set(self.points.members(handle))
        users = [s.sid for s in self._shapes.values() if any(h in members for h in s.points)]
        holders = [c.cid for c in self._constraints.values() if c.references(members)]
        if users or holders:
            raise PointInUseError(
                f"point {handle} is used by shapes {users} and constraints {holders}"
            )
        self._touch()
        return self.points.remove_point(handle)

    def prune_orphan_points(self) -> List[Handle]:
        """Remove every point class no shape or constraint refers to."""

        used = {self.points.find(h) for s in self._shapes.values() for h in s.points}
        used.update(self.points.find(h) for c in self._constraints.values() for h in c.points)
        removed: List[Handle] = []
        for rep in list(self.points.representatives()):
            if rep not in used:
                removed.extend(self.points.remove_point(rep))
        if removed:
            self._touch()
            logger.debug("Pruned orphan points %s", removed)
        return sorted(removed)

    # -- shapes ----------------------------------------------------------------

    def _register(self, shape: Shape) -> int:
        self._touch()
        self._shapes[shape.sid] = shape
        self._next_shape += 1
        logger.debug("Added %s #%d on points %s", shape.kind, shape.sid, shape.points)
        return shape.sid

    def add_segment(self, p1: Handle, p2: Handle, flags: int = constants.FLAG_VISIBLE) -> int:
        return self._register(geometry.make_segment(self._next_shape, self.points, p1, p2, flags))

    def add_segment_xy(
        self, x1: float, y1: float, x2: float, y2: float, flags: int = constants.FLAG_VISIBLE
    ) -> int:
        """Add a segment by coordinates, reusing points within the merge tolerance."""

        p1 = self.get_or_create_point(x1, y1)
        p2 = self.get_or_create_point(x2, y2)
        return self.add_segment(p1, p2, flags)

    def add_circle(self, center: Handle, radius: float, flags: int = constants.FLAG_VISIBLE) -> int:
        return self._register(
            geometry.make_circle(self._next_shape, self.points, center, radius, flags)
        )

    def add_arc(
        self,
        center: Handle,
        radius: float,
        start_angle: float,
        end_angle: float,
        *,
        shortest: bool = False,
        flags: int = constants.FLAG_VISIBLE,
    ) -> int:
        return self._register(
            geometry.make_arc(
                self._next_shape,
                self.points,
                center,
                radius,
                start_angle,
                end_angle,
                shortest=shortest,
                flags=flags,
            )
        )

    def add_entity_point(
        self, point: Handle, pixel_size: float = 4.0, flags: int = constants.FLAG_VISIBLE
    ) -> int:
        return self._register(
            geometry.make_entity_point(self._next_shape, self.points, point, pixel_size, flags)
        )

    def set_radius(self, sid: int, radius: float) -> None:
        shape = self.shape(sid)
        if shape.kind not in ("circle", "arc"):
            raise ValidationError(f"shape {sid} is a {shape.kind}, not a circle or arc")
        if not math.isfinite(radius) or radius < 0.0:
            raise ValidationError(f"radius must be a finite non-negative number (got {radius!r})")
        self._touch()
        shape.radius = float(radius)

    def set_flags(self, sid: int, flags: int) -> None:
        self.shape(sid).flags = int(flags)

    def remove_shape(self, sid: int) -> List[int]:
        """Remove a shape and the constraints that read its radius.

        Returns the ids of the dropped constraints.  The shape's points stay;
        see ``prune_orphan_points``.
        """

        self.shape(sid)
        self._touch()
        del self._shapes[sid]
        dropped = [cid for cid, c in self._constraints.items() if c.shape == sid]
        for cid in dropped:
            del self._constraints[cid]
        logger.debug("Removed shape #%d and constraints %s", sid, dropped)
        return dropped

    # -- constraints -------------------------------------------------------------

    def add_constraint(
        self,
        kind: KindLike,
        points: Sequence[Handle],
        value: Optional[ConstraintValue] = None,
        *,
        shape: Optional[int] = None,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
        note: Optional[str] = None,
    ) -> int:
        try:
            resolved_kind = coerce_kind(kind)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        constraint = Constraint(
            cid=self._next_constraint,
            kind=resolved_kind,
            points=tuple(points),
            value=value,
            shape=shape,
            minimum=minimum,
            maximum=maximum,
            note=note,
        )
        validate_constraint(constraint, self.points, self._shapes)
        merging = resolved_kind == ConstraintKind.COINCIDENT and self.config.merge_coincident
        if merging:
            check_merge(self._constraints.values(), self.points, self._shapes, *constraint.points)
        self._touch()
        if resolved_kind == ConstraintKind.FIXED:
            constraint.anchor = self.points.position(constraint.points[0])
        elif merging:
            self.points.union(*constraint.points)
        self._constraints[constraint.cid] = constraint
        self._next_constraint += 1
        logger.debug("Added constraint %s", describe_constraint(constraint))
        return constraint.cid

    def remove_constraint(self, cid: int) -> None:
        if cid not in self._constraints:
            raise UnknownHandleError(f"unknown constraint id {cid!r}")
        self._touch()
        del self._constraints[cid]

    def clear_constraints(self) -> None:
        self._touch()
        self._constraints.clear()

    # -- variables ---------------------------------------------------------------

    def set_variable(self, name: str, value: float) -> None:
        if not name:
            raise ValidationError("variable name must be non-empty")
        if isinstance(value, bool) or not math.isfinite(float(value)):
            raise ValidationError(f"variable {name!r} must be a finite number")
        self._touch()
        self._variables[name] = float(value)

    def get_variable(self, name: str) -> float:
        try:
            return self._variables[name]
        except KeyError:
            raise UnknownHandleError(f"unknown variable {name!r}") from None

    def remove_variable(self, name: str) -> None:
        self.get_variable(name)
        self._touch()
        del self._variables[name]

    def variables(self) -> Dict[str, float]:
        return dict(self._variables)

    # -- scene ---------------------------------------------------------------------

    def clear_scene(self) -> None:
        """Drop every point, shape, constraint and variable.

        Id counters keep counting, so handles from before the clear stay
        invalid.
        """

        self._touch()
        self.points.clear()
        self._shapes.clear()
        self._constraints.clear()
        self._variables.clear()
        self.last_report = None

    # -- solving -----------------------------------------------------------------

    def _options(self, options: Optional[SolveOptions]) -> SolveOptions:
        if options is not None:
            return options
        if self.config.solve_options is not None:
            return self.config.solve_options
        return get_solver_options()

    def _compile(self) -> ConstraintSystem:
        return compile_system(
            self.points, list(self._constraints.values()), self._shapes, self._variables
        )

    def _write_back(
        self,
        system: ConstraintSystem,
        x: np.ndarray,
        snapshot: Dict[Handle, Tuple[float, float]],
        aborted: bool,
    ) -> None:
        if aborted or not np.all(np.isfinite(x)):
            for handle, (px, py) in snapshot.items():
                self.points.write(handle, px, py)
            return
        coords = np.asarray(x, dtype=float).reshape(-1, 2)
        for handle, (px, py) in zip(system.free_handles, coords):
            self.points.write(handle, float(px), float(py))

    def solve(self, options: Optional[SolveOptions] = None) -> SolveReport:
        """Run the kernel to completion and write the result back.

        Fixed points are never written.  After a numeric abort every free
        point is restored to its pre-solve position.
        """

        self._session = None
        system = self._compile()
        snapshot = self.points.snapshot(system.free_handles)
        kernel = DampedLeastSquares(self._options(options))
        report = kernel.solve(system)
        self._write_back(system, kernel.x, snapshot, report.aborted)
        self.last_report = report
        logger.info(
            "Sketch solve: status=%s iterations=%d max_error=%.3e (%d constraint(s))",
            report.status,
            report.iterations,
            report.max_error,
            len(self._constraints),
        )
        return report

    def solve_step(self, options: Optional[SolveOptions] = None) -> Optional[SolveReport]:
        """Advance an incremental solve by one iteration.

        The first call starts a session; coordinates are written back after
        every step.  Returns the final report once the run ends and ``None``
        while it is still going.  Any mutation of the sketch ends the session.
        """

        if self._session is None:
            system = self._compile()
            kernel = DampedLeastSquares(self._options(options))
            kernel.start(system)
            self._session = _StepSession(kernel, system, self.points.snapshot(system.free_handles))
        session = self._session
        report = session.kernel.step()
        self._write_back(
            session.system,
            session.kernel.x,
            session.snapshot,
            report is not None and report.aborted,
        )
        if report is not None:
            self._session = None
            self.last_report = report
        return report

    @property
    def solving(self) -> bool:
        return self._session is not None

    # -- queries -------------------------------------------------------------------

    def find(self, handle: Handle) -> Handle:
        return self.points.find(handle)

    def position(self, handle: Handle) -> Tuple[float, float]:
        return self.points.position(handle)

    def is_fixed(self, handle: Handle) -> bool:
        return self.points.is_fixed(handle)

    def shape(self, sid: int) -> Shape:
        try:
            return self._shapes[sid]
        except KeyError:
            raise UnknownHandleError(f"unknown shape id {sid!r}") from None

    def shapes(self) -> List[Shape]:
        return list(self._shapes.values())

    def constraint(self, cid: int) -> Constraint:
        try:
            return self._constraints[cid]
        except KeyError:
            raise UnknownHandleError(f"unknown constraint id {cid!r}") from None

    def constraints(self) -> List[Constraint]:
        return list(self._constraints.values())

    def find_closest_point(self, x: float, y: float, tol: float) -> Optional[Handle]:
        """Closest representative strictly within ``tol``; ties go to the lower handle."""

        best: Optional[Handle] = None
        best_d = tol
        for rep in self.points.representatives():
            px, py = self.points.position(rep)
            d = math.hypot(px - x, py - y)
            if d < best_d:
                best, best_d = rep, d
        return best

    def find_closest_shape(self, x: float, y: float, tol: float) -> Optional[Tuple[str, int]]:
        """``(kind, id)`` of the closest visible shape strictly within ``tol``."""

        best: Optional[Shape] = None
        best_d = tol
        for sid in sorted(self._shapes):
            shape = self._shapes[sid]
            if not shape.visible:
                continue
            d = geometry.point_distance(self.points, shape, x, y)
            if d < best_d:
                best, best_d = shape, d
        if best is None:
            return None
        return best.kind, best.sid

    def snap_candidates(self, x: float, y: float, tol: float) -> List[SnapCandidate]:
        found: List[Tuple[float, int, SnapCandidate]] = []
        for sid in sorted(self._shapes):
            shape = self._shapes[sid]
            if not shape.visible:
                continue
            for sx, sy, kind in geometry.snap_points(self.points, shape):
                d = math.hypot(sx - x, sy - y)
                if d < tol:
                    found.append((d, sid, (sx, sy, kind, sid)))
        found.sort(key=lambda item: (item[0], item[1]))
        return [candidate for _, _, candidate in found]

    def shapes_using_point(self, handle: Handle) -> List[int]:
        rep = self.points.find(handle)
        return [
            s.sid
            for s in self._shapes.values()
            if any(self.points.find(h) == rep for h in s.points)
        ]

    def constraints_on_point(self, handle: Handle) -> List[int]:
        rep = self.points.find(handle)
        return [
            c.cid
            for c in self._constraints.values()
            if any(self.points.find(h) == rep for h in c.points)
        ]

    def constraints_on_shape(self, sid: int) -> List[int]:
        """Constraints reading the shape's radius or touching any of its points."""

        shape = self.shape(sid)
        reps = {self.points.find(h) for h in shape.points}
        return [
            c.cid
            for c in self._constraints.values()
            if c.shape == sid or any(self.points.find(h) in reps for h in c.points)
        ]

    def bounds(self) -> BBox:
        if not self._shapes:
            return DEFAULT_BOUNDS
        return geometry.merge_boxes(
            [geometry.bounding_box(self.points, s) for s in self._shapes.values()]
        )

    def residuals(self) -> Dict[int, np.ndarray]:
        """Current residual values of every constraint, keyed by constraint id."""

        system = self._compile()
        with np.errstate(all="ignore"):
            entries = system.breakdown(system.x0())
        return {int(e["id"]): np.asarray(e["values"], dtype=float) for e in entries}

    def __repr__(self) -> str:
        return (
            f"Sketch(points={len(self.points)}, shapes={len(self._shapes)}, "
            f"constraints={len(self._constraints)})"
        )


__all__ = ["DEFAULT_BOUNDS", "Sketch", "SketchConfig", "SnapCandidate"]
