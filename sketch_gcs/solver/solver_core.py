"""Damped least-squares kernel (Levenberg-Marquardt) over a ``ConstraintSystem``."""

from __future__ import annotations

import logging
import math
import time
from typing import Optional

import numpy as np
from scipy import sparse
from scipy.linalg import LinAlgError, cho_factor, cho_solve
from scipy.optimize import least_squares
from scipy.sparse.linalg import spsolve

from ..logging_utils import apply_debug_logging
from .config import get_solver_options
from .model import ConstraintSystem, SolveOptions, SolveReport

logger = logging.getLogger(__name__)

STATUS_CONVERGED = "converged"
STATUS_MAX_ITERATIONS = "max-iterations"
STATUS_NO_VARIABLES = "no-variables"
STATUS_ABORTED = "aborted"
STATUS_DEADLINE = "deadline"


class _NumericAbort(Exception):
    """Internal signal for a non-finite value or a failed factorization."""


def _finite(values) -> bool:
    if sparse.issparse(values):
        values = values.data
    return bool(np.all(np.isfinite(values)))


def _max_abs(values: np.ndarray) -> float:
    return float(np.max(np.abs(values))) if values.size else 0.0


class DampedLeastSquares:
    """Levenberg-Marquardt iteration with an incremental interface.

    ``start`` binds a system and the initial iterate, ``step`` runs one outer
    iteration and returns a ``SolveReport`` once the run has finished, and
    ``solve`` loops ``step`` to completion.  ``x`` always holds the iterate
    the caller should write back: the best accepted one, or the starting
    point after an abort.

    The Jacobian and normal-matrix buffers live on the kernel and are reused
    between runs whose dimensions match.
    """

    def __init__(self, options: Optional[SolveOptions] = None) -> None:
        self.options = options if options is not None else get_solver_options()
        self._jac: Optional[np.ndarray] = None
        self._normal: Optional[np.ndarray] = None
        self.system: Optional[ConstraintSystem] = None
        self.report: Optional[SolveReport] = None
        self.iterations = 0
        self.damping = self.options.damping
        self.x = np.zeros(0, dtype=float)
        self._x0 = np.zeros(0, dtype=float)
        self._r: Optional[np.ndarray] = None
        self._jtj = None
        self._jtr: Optional[np.ndarray] = None
        self._started_at = 0.0
        self._hook = self.options.on_event

    # -- lifecycle ------------------------------------------------------------

    def start(self, system: ConstraintSystem) -> None:
        self.system = system
        self.report = None
        self.iterations = 0
        self.damping = self.options.damping
        self.x = system.x0()
        self._x0 = self.x.copy()
        self._r = None
        self._jtj = None
        self._jtr = None
        self._started_at = time.monotonic()
        self._hook = self.options.on_event
        logger.debug(
            "start: rows=%d variables=%d method=%s",
            system.rows,
            system.variables,
            self.options.method,
        )
        if system.rows == 0:
            self._finish(STATUS_CONVERGED, np.zeros(0, dtype=float))

    @property
    def finished(self) -> bool:
        return self.report is not None

    def solve(self, system: ConstraintSystem) -> SolveReport:
        self.start(system)
        while self.report is None:
            self.step()
        return self.report

    def step(self) -> Optional[SolveReport]:
        """Run one outer iteration; return the report when the run ends."""

        if self.system is None:
            raise RuntimeError("step() called before start()")
        if self.report is not None:
            return self.report
        try:
            with np.errstate(all="ignore"):
                if self.options.method == "trf":
                    self._run_trf()
                else:
                    self._iterate()
        except _NumericAbort as exc:
            logger.debug("step: aborted at iteration %d (%s)", self.iterations, exc)
            self.x = self._x0.copy()
            with np.errstate(all="ignore"):
                residual = self.system.residuals(self.x)
            self._finish(STATUS_ABORTED, residual)
        return self.report

    # -- Levenberg-Marquardt ----------------------------------------------------

    def _linearize(self) -> None:
        system = self.system
        if system.variables >= self.options.sparse_threshold:
            r, jac = system.linearize_sparse(self.x)
            if not (_finite(r) and _finite(jac)):
                raise _NumericAbort("non-finite residual or Jacobian")
            self._jtj = (jac.T @ jac).tocsc()
            self._jtr = jac.T @ r
        else:
            r, self._jac = system.linearize(self.x, out=self._jac)
            if not (_finite(r) and _finite(self._jac)):
                raise _NumericAbort("non-finite residual or Jacobian")
            self._jtj = self._jac.T @ self._jac
            self._jtr = self._jac.T @ r
        self._r = r

    def _solve_normal(self) -> np.ndarray:
        n = self.system.variables
        if sparse.issparse(self._jtj):
            normal = self._jtj + self.damping * sparse.identity(n, format="csc")
            delta = np.atleast_1d(spsolve(normal, -self._jtr))
        else:
            if self._normal is None or self._normal.shape != (n, n):
                self._normal = np.empty((n, n), dtype=float)
            np.copyto(self._normal, self._jtj)
            self._normal[np.diag_indices(n)] += self.damping
            try:
                factor = cho_factor(self._normal, lower=True, check_finite=False)
            except LinAlgError as exc:
                raise _NumericAbort(f"factorization failed: {exc}") from exc
            delta = cho_solve(factor, -self._jtr, check_finite=False)
        if not _finite(delta):
            raise _NumericAbort("non-finite step")
        return delta

    def _iterate(self) -> None:
        opts = self.options
        system = self.system
        self.iterations += 1

        if self._r is None:
            if system.variables == 0:
                self._r = system.residuals(self.x)
                if not _finite(self._r):
                    raise _NumericAbort("non-finite residual")
            else:
                self._linearize()
        r = self._r
        max_res = _max_abs(r)
        self._emit("iteration", max_res)
        logger.debug(
            "_iterate: k=%d max_res=%.6g lambda=%.3g", self.iterations, max_res, self.damping
        )

        if max_res <= opts.tolerance:
            self._finish(STATUS_CONVERGED, r)
            return
        if system.variables == 0:
            self._finish(STATUS_NO_VARIABLES, r)
            return
        if opts.deadline is not None and time.monotonic() - self._started_at >= opts.deadline:
            self._finish(STATUS_DEADLINE, r)
            return

        delta = self._solve_normal()
        x_try = self.x + delta
        r_try = system.residuals(x_try)
        if not _finite(r_try):
            raise _NumericAbort("non-finite residual at trial point")

        if float(np.dot(r_try, r_try)) < float(np.dot(r, r)):
            self.x = x_try
            self.damping = max(self.damping / opts.damping_factor, opts.damping_min)
            self._r = None
            self._emit("accept", self.damping)
        else:
            self.damping = min(self.damping * opts.damping_factor, opts.damping_max)
            self._emit("reject", self.damping)

        if self.iterations >= opts.max_iterations:
            final = system.residuals(self.x)
            status = STATUS_CONVERGED if _max_abs(final) <= opts.tolerance else STATUS_MAX_ITERATIONS
            self._finish(status, final)

    # -- scipy delegate ---------------------------------------------------------

    def _run_trf(self) -> None:
        opts = self.options
        system = self.system
        if system.variables == 0:
            self.iterations = 1
            r = system.residuals(self.x)
            if not _finite(r):
                raise _NumericAbort("non-finite residual")
            status = STATUS_CONVERGED if _max_abs(r) <= opts.tolerance else STATUS_NO_VARIABLES
            self._finish(status, r)
            return

        tol = max(opts.tolerance * opts.tolerance, 1e-15)
        try:
            result = least_squares(
                system.residuals,
                self.x,
                jac=system.jacobian,
                method="trf",
                max_nfev=opts.max_iterations,
                ftol=tol,
                xtol=tol,
                gtol=tol,
            )
        except (ValueError, LinAlgError) as exc:
            raise _NumericAbort(str(exc)) from exc
        if not _finite(result.x) or not _finite(result.fun):
            raise _NumericAbort("non-finite result")
        self.iterations = int(result.nfev)
        self.x = np.asarray(result.x, dtype=float)
        r = system.residuals(self.x)
        status = STATUS_CONVERGED if _max_abs(r) <= opts.tolerance else STATUS_MAX_ITERATIONS
        logger.debug("_run_trf: nfev=%d status=%s message=%s", result.nfev, status, result.message)
        self._finish(status, r)

    # -- reporting ----------------------------------------------------------------

    def _emit(self, tag: str, payload: float) -> None:
        if self._hook is None:
            return
        try:
            self._hook(tag, float(payload))
        except Exception as exc:
            logger.debug("_emit: event hook failed on %r (%s); disabled for this run", tag, exc)
            self._hook = None

    def _finish(self, status: str, residual: np.ndarray) -> None:
        system = self.system
        max_res = _max_abs(residual)
        warnings = []
        if status == STATUS_MAX_ITERATIONS:
            warnings.append(
                f"solver did not converge within tolerance {self.options.tolerance:.1e}; "
                f"max residual {max_res:.3e}"
            )
        elif status == STATUS_NO_VARIABLES:
            warnings.append("constraints are unsatisfied but every referenced point is fixed")
        elif status == STATUS_DEADLINE:
            warnings.append(f"deadline of {self.options.deadline:.3g}s expired")
        elif status == STATUS_ABORTED:
            warnings.append("numeric failure; coordinates restored")
        if system.rows and system.rows > system.variables and status == STATUS_MAX_ITERATIONS:
            warnings.append(
                f"system has {system.rows} equations for {system.variables} unknowns"
            )
        self.report = SolveReport(
            converged=status == STATUS_CONVERGED,
            iterations=self.iterations,
            max_error=max_res,
            status=status,
            residual_norm=float(math.sqrt(float(np.dot(residual, residual)))) if residual.size else 0.0,
            damping=self.damping,
            breakdown=system.breakdown(self.x),
            warnings=warnings,
        )
        self._emit(status, max_res)
        logger.debug(
            "_finish: status=%s iterations=%d max_res=%.6g", status, self.iterations, max_res
        )


apply_debug_logging(globals(), logger=logger, skip={"_finite", "_max_abs", "_emit"})


__all__ = [
    "DampedLeastSquares",
    "STATUS_ABORTED",
    "STATUS_CONVERGED",
    "STATUS_DEADLINE",
    "STATUS_MAX_ITERATIONS",
    "STATUS_NO_VARIABLES",
]
