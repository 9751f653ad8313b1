"""Built-in sketches used by the CLI and as smoke scenarios."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from . import constants
from .sketch import Sketch, SketchConfig
from .solver.model import SolveOptions, SolveReport

logger = logging.getLogger(__name__)

Labels = Dict[str, int]


@dataclass
class Scenario:
    name: str
    description: str
    build: Callable[[], Tuple[Sketch, Labels]]
    expect_converged: bool = True
    check: Optional[Callable[[Sketch, Labels], bool]] = None


@dataclass
class ScenarioResult:
    name: str
    report: SolveReport
    coords: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    ok: bool = False


def _horizontal() -> Tuple[Sketch, Labels]:
    sketch = Sketch()
    a = sketch.add_point(0.0, 0.0, fixed=True)
    b = sketch.add_point(10.0, 0.5)
    sketch.add_segment(a, b)
    sketch.add_constraint(constants.CONSTRAINT_HORIZONTAL, (a, b))
    return sketch, {"A": a, "B": b}


def _distance() -> Tuple[Sketch, Labels]:
    sketch = Sketch()
    a = sketch.add_point(0.0, 0.0, fixed=True)
    b = sketch.add_point(1.0, 0.0)
    sketch.add_constraint(constants.CONSTRAINT_DISTANCE, (a, b), 5.0)
    return sketch, {"A": a, "B": b}


def _right_triangle() -> Tuple[Sketch, Labels]:
    sketch = Sketch()
    a = sketch.add_point(0.0, 0.0, fixed=True)
    b = sketch.add_point(5.0, 0.0, fixed=True)
    c = sketch.add_point(0.0, 5.0)
    sketch.add_segment(a, b)
    sketch.add_segment(b, c)
    sketch.add_segment(c, a)
    sketch.add_constraint(constants.CONSTRAINT_HORIZONTAL, (a, b))
    sketch.add_constraint(constants.CONSTRAINT_PERPENDICULAR, (a, b, b, c))
    sketch.add_constraint(constants.CONSTRAINT_DISTANCE, (b, c), 5.0)
    return sketch, {"A": a, "B": b, "C": c}


def _over_determined() -> Tuple[Sketch, Labels]:
    sketch = Sketch()
    a = sketch.add_point(0.0, 0.0, fixed=True)
    b = sketch.add_point(1.0, 0.0, fixed=True)
    sketch.add_constraint(constants.CONSTRAINT_DISTANCE, (a, b), 5.0)
    return sketch, {"A": a, "B": b}


def _coincidence() -> Tuple[Sketch, Labels]:
    sketch = Sketch()
    a = sketch.add_point(0.0, 0.0)
    b = sketch.add_point(1.0, 1.0)
    c = sketch.add_point(-3.0, 0.0)
    d = sketch.add_point(4.0, 2.0)
    sketch.add_segment(c, a)
    sketch.add_segment(b, d)
    sketch.union(a, b)
    return sketch, {"A": a, "B": b, "C": c, "D": d}


def _coincidence_check(sketch: Sketch, labels: Labels) -> bool:
    first, second = sketch.shapes()
    return sketch.find(first.points[1]) == sketch.find(second.points[0]) and sketch.position(
        labels["A"]
    ) == sketch.position(labels["B"])


def _tangent() -> Tuple[Sketch, Labels]:
    sketch = Sketch()
    p1 = sketch.add_point(0.0, 0.0, fixed=True)
    p2 = sketch.add_point(10.0, 0.0, fixed=True)
    center = sketch.add_point(5.0, 2.5)
    sketch.add_segment(p1, p2)
    circle = sketch.add_circle(center, 3.0)
    sketch.add_constraint(constants.CONSTRAINT_TANGENT, (p1, p2, center), shape=circle)
    return sketch, {"P1": p1, "P2": p2, "C": center}


SCENARIOS: Dict[str, Scenario] = {
    scenario.name: scenario
    for scenario in (
        Scenario("horizontal", "fixed A, B pulled onto A's horizontal", _horizontal),
        Scenario("distance", "B moved to distance 5 from fixed A", _distance),
        Scenario("right-triangle", "C placed at a right angle over fixed A-B", _right_triangle),
        Scenario(
            "over-determined",
            "distance between two fixed points cannot be met",
            _over_determined,
            expect_converged=False,
        ),
        Scenario(
            "coincidence",
            "segment endpoints merged through union",
            _coincidence,
            check=_coincidence_check,
        ),
        Scenario("tangent", "circle center pulled back onto tangency", _tangent),
    )
}


def run_scenario(name: str, options: Optional[SolveOptions] = None) -> ScenarioResult:
    scenario = SCENARIOS[name]
    sketch, labels = scenario.build()
    if options is not None:
        sketch.config = SketchConfig(
            merge_tolerance=sketch.config.merge_tolerance,
            merge_coincident=sketch.config.merge_coincident,
            solve_options=options,
        )
    report = sketch.solve()
    ok = report.converged == scenario.expect_converged
    if ok and scenario.check is not None:
        ok = scenario.check(sketch, labels)
    coords = {label: sketch.position(handle) for label, handle in labels.items()}
    logger.debug("Scenario %s finished ok=%s status=%s", name, ok, report.status)
    return ScenarioResult(name=name, report=report, coords=coords, ok=ok)


def run(names: Optional[List[str]] = None, options: Optional[SolveOptions] = None) -> List[ScenarioResult]:
    results = [run_scenario(name, options) for name in (names or list(SCENARIOS))]
    for result in results:
        print(f"{result.name}: {result.report.status} ok={result.ok}")
    return results


if __name__ == "__main__":
    run()
