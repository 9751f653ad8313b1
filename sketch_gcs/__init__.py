from .points import PointStore
from .geometry import Shape, normalize_arc_angles
from .constraints import Constraint, ConstraintKind, describe_constraint
from .validate import (
    SketchError,
    UnknownHandleError,
    ValidationError,
    DegenerateConstraintError,
    FixedPointError,
    PointInUseError,
    validate_constraint,
)
from .solver import (
    compile_system,
    solve_system,
    DampedLeastSquares,
    ConstraintSystem,
    SolveOptions,
    SolveReport,
    get_solver_options,
    set_solver_options,
)
from .sketch import Sketch, SketchConfig
from .abi import SketchABI
from . import constants

__all__ = [
    'PointStore',
    'Shape',
    'normalize_arc_angles',
    'Constraint',
    'ConstraintKind',
    'describe_constraint',
    'SketchError',
    'UnknownHandleError',
    'ValidationError',
    'DegenerateConstraintError',
    'FixedPointError',
    'PointInUseError',
    'validate_constraint',
    'compile_system',
    'solve_system',
    'DampedLeastSquares',
    'ConstraintSystem',
    'SolveOptions',
    'SolveReport',
    'get_solver_options',
    'set_solver_options',
    'Sketch',
    'SketchConfig',
    'SketchABI',
    'constants',
]
