"""Core data structures for the solver pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from scipy import sparse

from ..constraints import ConstraintKind
from .residuals import evaluate

EventHook = Callable[[str, float], None]


@dataclass
class SolveOptions:
    """Kernel constants and run limits."""

    max_iterations: int = 100
    tolerance: float = 1e-6
    damping: float = 1e-3
    damping_factor: float = 10.0
    damping_min: float = 1e-9
    damping_max: float = 1e9
    deadline: Optional[float] = None
    method: str = "lm"
    sparse_threshold: int = 512
    on_event: Optional[EventHook] = None


@dataclass
class SolveReport:
    converged: bool
    iterations: int
    max_error: float
    status: str
    residual_norm: float = 0.0
    damping: float = 0.0
    breakdown: List[Dict[str, object]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.status == "aborted"


@dataclass
class CompiledConstraint:
    """A constraint lowered onto local point indices of a system."""

    cid: int
    kind: ConstraintKind
    locals: np.ndarray
    value: float
    row: int
    rows: int
    anchor: Optional[np.ndarray] = None


@dataclass
class ConstraintSystem:
    """Solver input: point coordinates, the free subset and the equations.

    ``handles`` lists every representative the constraints read, sorted by
    handle; ``positions`` holds their coordinates.  ``free`` is the sorted
    subset of local indices the solver may move; variable ``2*i`` / ``2*i+1``
    are the x / y of ``handles[free[i]]``.
    """

    handles: np.ndarray
    positions: np.ndarray
    free: np.ndarray
    entries: List[CompiledConstraint]
    rows: int
    column_of: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        self.column_of = np.full(len(self.handles), -1, dtype=int)
        for col, local in enumerate(self.free):
            self.column_of[local] = col

    @property
    def variables(self) -> int:
        return 2 * len(self.free)

    @property
    def free_handles(self) -> List[int]:
        return [int(self.handles[i]) for i in self.free]

    def x0(self) -> np.ndarray:
        return self.positions[self.free].reshape(-1).copy()

    def points_for(self, x: np.ndarray) -> np.ndarray:
        pts = self.positions.copy()
        if len(self.free):
            pts[self.free] = np.asarray(x, dtype=float).reshape(-1, 2)
        return pts

    def _entry_points(self, pts: np.ndarray, entry: CompiledConstraint) -> np.ndarray:
        block = pts[entry.locals]
        if entry.anchor is not None:
            block = np.vstack([block, entry.anchor])
        return block

    def residuals(self, x: np.ndarray) -> np.ndarray:
        pts = self.points_for(x)
        out = np.zeros(self.rows, dtype=float)
        for entry in self.entries:
            values, _ = evaluate(entry.kind, self._entry_points(pts, entry), entry.value)
            out[entry.row : entry.row + entry.rows] = values
        return out

    def _linearize(self, x: np.ndarray):
        pts = self.points_for(x)
        r = np.zeros(self.rows, dtype=float)
        triplets: List[Tuple[int, int, float]] = []
        for entry in self.entries:
            values, grads = evaluate(entry.kind, self._entry_points(pts, entry), entry.value)
            r[entry.row : entry.row + entry.rows] = values
            for j, local in enumerate(entry.locals):
                col = self.column_of[local]
                if col < 0:
                    continue
                for i in range(entry.rows):
                    triplets.append((entry.row + i, 2 * col, float(grads[i, j, 0])))
                    triplets.append((entry.row + i, 2 * col + 1, float(grads[i, j, 1])))
        return r, triplets

    def linearize(self, x: np.ndarray, out: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(r, J)`` with a dense Jacobian, reusing ``out`` if it fits."""

        r, triplets = self._linearize(x)
        shape = (self.rows, self.variables)
        if out is None or out.shape != shape:
            out = np.zeros(shape, dtype=float)
        else:
            out.fill(0.0)
        for row, col, val in triplets:
            out[row, col] += val
        return r, out

    def linearize_sparse(self, x: np.ndarray) -> Tuple[np.ndarray, sparse.csr_matrix]:
        r, triplets = self._linearize(x)
        if triplets:
            rows, cols, data = zip(*triplets)
        else:
            rows, cols, data = (), (), ()
        jac = sparse.coo_matrix(
            (np.asarray(data, dtype=float), (np.asarray(rows, dtype=int), np.asarray(cols, dtype=int))),
            shape=(self.rows, self.variables),
        ).tocsr()
        return r, jac

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        return self.linearize(x)[1]

    def breakdown(self, x: np.ndarray) -> List[Dict[str, object]]:
        pts = self.points_for(x)
        info: List[Dict[str, object]] = []
        for entry in self.entries:
            values, _ = evaluate(entry.kind, self._entry_points(pts, entry), entry.value)
            info.append(
                {
                    "id": entry.cid,
                    "kind": entry.kind.label,
                    "values": values.tolist(),
                    "max_abs": float(np.max(np.abs(values))) if values.size else 0.0,
                }
            )
        return info


__all__ = [
    "CompiledConstraint",
    "ConstraintSystem",
    "EventHook",
    "SolveOptions",
    "SolveReport",
]
