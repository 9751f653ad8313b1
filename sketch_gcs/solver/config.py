"""Configuration helpers for solver components."""

from __future__ import annotations

import copy

from .model import SolveOptions

_SOLVER_OPTIONS = SolveOptions()


def get_solver_options() -> SolveOptions:
    return copy.deepcopy(_SOLVER_OPTIONS)


def set_solver_options(options: SolveOptions) -> None:
    global _SOLVER_OPTIONS
    _SOLVER_OPTIONS = copy.deepcopy(options)


__all__ = ["get_solver_options", "set_solver_options"]
