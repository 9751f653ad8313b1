"""Flat, handle-based function table for hosts that cannot take exceptions.

Every call takes and returns plain ints and floats.  Caller errors leave the
sketch untouched and come back as sentinels: ``-1`` for handle and status
returning calls, NaN for coordinate getters.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from functools import wraps
from typing import Any, Callable, Dict, Optional

from . import constants
from .constraints import KIND_SPECS, coerce_kind
from .sketch import Sketch, SketchConfig
from .solver.config import get_solver_options
from .solver.model import EventHook, SolveOptions
from .validate import SketchError

logger = logging.getLogger(__name__)

_HOST_ERRORS = (SketchError, ValueError, TypeError, KeyError, IndexError, OverflowError)


def _sentinel(default: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except _HOST_ERRORS as exc:
                logger.debug("%s rejected: %s", func.__name__, exc)
                return default

        return wrapper

    return decorator


class SketchABI:
    """Adapter exposing a ``Sketch`` through the host function table."""

    EXPORTS = (
        "clear_solver",
        "clear_scene",
        "add_solver_point",
        "set_solver_point",
        "union_points",
        "find_point",
        "remove_solver_point",
        "add_solver_constraint",
        "remove_solver_constraint",
        "solve_solver",
        "get_solver_point_x",
        "get_solver_point_y",
        "get_solver_converged",
        "get_solver_iterations",
        "get_solver_max_error",
        "add_entity_segment",
        "add_entity_circle",
        "add_entity_arc",
        "add_entity_point",
        "find_closest_point",
        "find_closest_shape",
        "set_observer",
    )

    def __init__(self, sketch: Optional[Sketch] = None, options: Optional[SolveOptions] = None) -> None:
        self.sketch = sketch if sketch is not None else Sketch(SketchConfig())
        self._options = options
        self._observer: Optional[EventHook] = None

    # -- lifecycle ----------------------------------------------------------------

    def clear_solver(self) -> None:
        """Drop every constraint; points and shapes stay."""

        self.sketch.clear_constraints()

    def clear_scene(self) -> None:
        self.sketch.clear_scene()

    # -- points -------------------------------------------------------------------

    @_sentinel(constants.INVALID_HANDLE)
    def add_solver_point(self, x: float, y: float, fixed: int = 0) -> int:
        return self.sketch.add_point(float(x), float(y), bool(fixed))

    @_sentinel(constants.INVALID_HANDLE)
    def set_solver_point(self, handle: int, x: float, y: float) -> int:
        self.sketch.set_position(int(handle), float(x), float(y))
        return 0

    @_sentinel(constants.INVALID_HANDLE)
    def union_points(self, a: int, b: int) -> int:
        return self.sketch.union(int(a), int(b))

    @_sentinel(constants.INVALID_HANDLE)
    def find_point(self, handle: int) -> int:
        return self.sketch.find(int(handle))

    @_sentinel(constants.INVALID_HANDLE)
    def remove_solver_point(self, handle: int) -> int:
        self.sketch.remove_point(int(handle))
        return 0

    @_sentinel(math.nan)
    def get_solver_point_x(self, handle: int) -> float:
        return self.sketch.position(int(handle))[0]

    @_sentinel(math.nan)
    def get_solver_point_y(self, handle: int) -> float:
        return self.sketch.position(int(handle))[1]

    # -- constraints ----------------------------------------------------------------

    @_sentinel(constants.INVALID_HANDLE)
    def add_solver_constraint(
        self,
        kind: int,
        p1: int = -1,
        p2: int = -1,
        p3: int = -1,
        p4: int = -1,
        value: float = 0.0,
    ) -> int:
        """Add a constraint from fixed slots; unused point slots carry ``-1``.

        TANGENT and ON_CIRCLE read the radius from ``value`` unless a rim point
        fills the slot after the required ones.
        """

        resolved = coerce_kind(int(kind))
        points = [int(h) for h in (p1, p2, p3, p4) if int(h) != constants.INVALID_HANDLE]
        spec = KIND_SPECS[resolved]
        if spec.value == "none":
            scalar = None
        elif spec.value == "radius" and len(points) > spec.min_points:
            scalar = None
        else:
            scalar = float(value)
        return self.sketch.add_constraint(resolved, points, scalar)

    @_sentinel(constants.INVALID_HANDLE)
    def remove_solver_constraint(self, cid: int) -> int:
        self.sketch.remove_constraint(int(cid))
        return 0

    # -- solving ------------------------------------------------------------------

    def set_observer(self, callback: Optional[EventHook]) -> None:
        """Install (or clear with ``None``) the solver event callback."""

        self._observer = callback

    def _solve_options(self) -> SolveOptions:
        base = self._options or self.sketch.config.solve_options or get_solver_options()
        return dataclasses.replace(base, on_event=self._observer)

    def solve_solver(self) -> int:
        report = self.sketch.solve(self._solve_options())
        return 1 if report.converged else 0

    def get_solver_converged(self) -> int:
        report = self.sketch.last_report
        return 1 if report is not None and report.converged else 0

    def get_solver_iterations(self) -> int:
        report = self.sketch.last_report
        return report.iterations if report is not None else 0

    def get_solver_max_error(self) -> float:
        report = self.sketch.last_report
        return report.max_error if report is not None else 0.0

    # -- entities -----------------------------------------------------------------

    @_sentinel(constants.INVALID_HANDLE)
    def add_entity_segment(self, p1: int, p2: int, flags: int = constants.FLAG_VISIBLE) -> int:
        return self.sketch.add_segment(int(p1), int(p2), int(flags))

    @_sentinel(constants.INVALID_HANDLE)
    def add_entity_circle(self, center: int, radius: float, flags: int = constants.FLAG_VISIBLE) -> int:
        return self.sketch.add_circle(int(center), float(radius), int(flags))

    @_sentinel(constants.INVALID_HANDLE)
    def add_entity_arc(
        self,
        center: int,
        radius: float,
        start_angle: float,
        end_angle: float,
        flags: int = constants.FLAG_VISIBLE,
    ) -> int:
        return self.sketch.add_arc(
            int(center), float(radius), float(start_angle), float(end_angle), flags=int(flags)
        )

    @_sentinel(constants.INVALID_HANDLE)
    def add_entity_point(self, point: int, pixel_size: float = 4.0, flags: int = constants.FLAG_VISIBLE) -> int:
        return self.sketch.add_entity_point(int(point), float(pixel_size), int(flags))

    # -- pickers --------------------------------------------------------------------

    @_sentinel(constants.INVALID_HANDLE)
    def find_closest_point(self, x: float, y: float, tol: float) -> int:
        found = self.sketch.find_closest_point(float(x), float(y), float(tol))
        return constants.INVALID_HANDLE if found is None else found

    @_sentinel(constants.INVALID_HANDLE)
    def find_closest_shape(self, x: float, y: float, tol: float) -> int:
        found = self.sketch.find_closest_shape(float(x), float(y), float(tol))
        return constants.INVALID_HANDLE if found is None else found[1]

    def function_table(self) -> Dict[str, Callable[..., Any]]:
        return {name: getattr(self, name) for name in self.EXPORTS}


__all__ = ["SketchABI"]
