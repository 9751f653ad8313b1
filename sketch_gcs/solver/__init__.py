"""Solver façade: lower sketch constraints into a system and run the kernel."""

from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from ..constraints import Constraint, ConstraintKind
from ..points import PointStore
from .config import get_solver_options, set_solver_options
from .model import CompiledConstraint, ConstraintSystem, EventHook, SolveOptions, SolveReport
from .residuals import EQUATIONS, evaluate, numeric_gradients
from .solver_core import (
    STATUS_ABORTED,
    STATUS_CONVERGED,
    STATUS_DEADLINE,
    STATUS_MAX_ITERATIONS,
    STATUS_NO_VARIABLES,
    DampedLeastSquares,
)

logger = logging.getLogger(__name__)


def resolve_value(
    constraint: Constraint,
    shapes: Optional[Mapping[int, object]] = None,
    variables: Optional[Mapping[str, float]] = None,
) -> float:
    """Return the scalar a constraint is evaluated with.

    Variable names unknown to ``variables`` resolve to NaN, which the kernel
    treats as a numeric failure.  A referenced circle or arc supplies the
    radius when no explicit value is given.
    """

    value = constraint.value
    if isinstance(value, str):
        resolved = float((variables or {}).get(value, math.nan))
    elif value is not None:
        resolved = float(value)
    elif constraint.shape is not None and shapes is not None and constraint.shape in shapes:
        resolved = float(getattr(shapes[constraint.shape], "radius"))
    else:
        resolved = 0.0
    if math.isfinite(resolved):
        resolved = constraint.clamp(resolved)
    return resolved


def compile_system(
    store: PointStore,
    constraints: Sequence[Constraint],
    shapes: Optional[Mapping[int, object]] = None,
    variables: Optional[Mapping[str, float]] = None,
) -> ConstraintSystem:
    """Build the solver input for ``constraints`` against the current store."""

    reps = sorted({store.find(h) for constraint in constraints for h in constraint.points})
    local = {handle: idx for idx, handle in enumerate(reps)}
    positions = np.array([store.position(h) for h in reps], dtype=float).reshape(-1, 2)
    free = np.array([idx for idx, h in enumerate(reps) if not store.is_fixed(h)], dtype=int)

    entries = []
    row = 0
    for constraint in constraints:
        anchor = None
        if constraint.kind == ConstraintKind.FIXED:
            anchor = np.array(
                constraint.anchor
                if constraint.anchor is not None
                else store.position(constraint.points[0]),
                dtype=float,
            )
        entries.append(
            CompiledConstraint(
                cid=constraint.cid,
                kind=constraint.kind,
                locals=np.array([local[store.find(h)] for h in constraint.points], dtype=int),
                value=resolve_value(constraint, shapes, variables),
                row=row,
                rows=constraint.rows,
                anchor=anchor,
            )
        )
        row += constraint.rows

    logger.debug(
        "compile_system: %d constraint(s), %d row(s), %d point(s), %d free",
        len(entries),
        row,
        len(reps),
        len(free),
    )
    return ConstraintSystem(
        handles=np.array(reps, dtype=int),
        positions=positions,
        free=free,
        entries=entries,
        rows=row,
    )


def solve_system(
    system: ConstraintSystem, options: Optional[SolveOptions] = None
) -> Tuple[SolveReport, np.ndarray]:
    """Solve ``system`` from its stored coordinates.

    Returns the report and the final free-variable vector (the starting vector
    when the run aborted).
    """

    kernel = DampedLeastSquares(options)
    report = kernel.solve(system)
    logger.info(
        "Solved %d equation(s) in %d unknown(s): status=%s iterations=%d max_error=%.3e",
        system.rows,
        system.variables,
        report.status,
        report.iterations,
        report.max_error,
    )
    return report, kernel.x


__all__ = [
    "CompiledConstraint",
    "ConstraintSystem",
    "DampedLeastSquares",
    "EQUATIONS",
    "EventHook",
    "STATUS_ABORTED",
    "STATUS_CONVERGED",
    "STATUS_DEADLINE",
    "STATUS_MAX_ITERATIONS",
    "STATUS_NO_VARIABLES",
    "SolveOptions",
    "SolveReport",
    "compile_system",
    "evaluate",
    "get_solver_options",
    "numeric_gradients",
    "resolve_value",
    "set_solver_options",
    "solve_system",
]
