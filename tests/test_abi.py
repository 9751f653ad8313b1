import math

import pytest

from sketch_gcs import constants
from sketch_gcs.abi import SketchABI


@pytest.fixture
def abi():
    return SketchABI()


def test_function_table_exposes_every_export(abi):
    table = abi.function_table()
    assert tuple(table) == SketchABI.EXPORTS
    assert all(callable(fn) for fn in table.values())
    assert table["add_solver_point"](1.0, 2.0, 0) == 0


def test_horizontal_round_trip(abi):
    a = abi.add_solver_point(0.0, 0.0, 1)
    b = abi.add_solver_point(10.0, 0.5, 0)
    assert abi.add_entity_segment(a, b, constants.FLAG_VISIBLE) == 0
    assert abi.add_solver_constraint(constants.CONSTRAINT_HORIZONTAL, a, b, -1, -1, 0.0) == 0

    assert abi.solve_solver() == 1
    assert abi.get_solver_converged() == 1
    assert 1 <= abi.get_solver_iterations() <= 5
    assert abi.get_solver_max_error() <= 1e-6
    assert abi.get_solver_point_x(b) == pytest.approx(10.0)
    assert abi.get_solver_point_y(b) == pytest.approx(0.0, abs=1e-6)


def test_failures_return_sentinels_without_raising(abi):
    a = abi.add_solver_point(0.0, 0.0, 1)
    b = abi.add_solver_point(1.0, 0.0, 0)

    assert abi.find_point(99) == -1
    assert abi.union_points(a, 99) == -1
    assert abi.set_solver_point(a, 5.0, 5.0) == -1
    assert abi.add_solver_point(float("nan"), 0.0, 0) == -1
    assert abi.add_solver_constraint(constants.CONSTRAINT_DISTANCE, a, a, -1, -1, 1.0) == -1
    assert abi.add_solver_constraint(constants.CONSTRAINT_DISTANCE, a, 99, -1, -1, 1.0) == -1
    assert abi.add_solver_constraint(99, a, b, -1, -1, 0.0) == -1
    assert abi.remove_solver_constraint(3) == -1
    assert abi.add_entity_circle(a, -1.0, 1) == -1
    assert math.isnan(abi.get_solver_point_x(99))
    assert math.isnan(abi.get_solver_point_y(-5))
    assert abi.sketch.constraints() == []


def test_remove_point_and_union(abi):
    a = abi.add_solver_point(0.0, 0.0, 0)
    b = abi.add_solver_point(3.0, 4.0, 0)

    assert abi.union_points(b, a) == a
    assert abi.find_point(b) == a
    assert abi.get_solver_point_x(b) == 0.0
    seg = abi.add_entity_segment(a, b, constants.FLAG_VISIBLE)
    assert seg == 0
    assert abi.remove_solver_point(a) == -1


def test_over_determined_reports_zero(abi):
    a = abi.add_solver_point(0.0, 0.0, 1)
    b = abi.add_solver_point(1.0, 0.0, 1)
    abi.add_solver_constraint(constants.CONSTRAINT_DISTANCE, a, b, -1, -1, 5.0)

    assert abi.solve_solver() == 0
    assert abi.get_solver_converged() == 0
    assert abi.get_solver_max_error() == pytest.approx(24.0)


def test_tangent_radius_from_value_or_rim(abi):
    p1 = abi.add_solver_point(0.0, 0.0, 1)
    p2 = abi.add_solver_point(10.0, 0.0, 1)
    center = abi.add_solver_point(5.0, 2.5, 0)
    assert abi.add_solver_constraint(constants.CONSTRAINT_TANGENT, p1, p2, center, -1, 3.0) == 0
    assert abi.solve_solver() == 1
    assert abi.get_solver_point_y(center) == pytest.approx(3.0, abs=1e-6)

    abi.clear_solver()
    rim = abi.add_solver_point(5.0, 4.0, 0)
    abi.set_solver_point(center, 5.0, 3.0)
    abi.union_points(center, abi.add_solver_point(5.0, 3.0, 1))
    cid = abi.add_solver_constraint(constants.CONSTRAINT_TANGENT, p1, p2, center, rim, 0.0)
    assert abi.sketch.constraint(cid).value is None
    assert abi.solve_solver() == 1
    assert abi.get_solver_point_y(rim) == pytest.approx(6.0, abs=1e-6)


def test_entities_and_pickers(abi):
    c = abi.add_solver_point(0.0, 0.0, 0)
    p = abi.add_solver_point(5.0, 5.0, 0)
    circle = abi.add_entity_circle(c, 2.0, constants.FLAG_VISIBLE)
    arc = abi.add_entity_arc(c, 4.0, 0.0, math.pi / 2, constants.FLAG_VISIBLE)
    marker = abi.add_entity_point(p, 4.0, constants.FLAG_VISIBLE | constants.FLAG_SELECTED)

    assert (circle, arc, marker) == (0, 1, 2)
    assert abi.find_closest_shape(2.1, 0.0, 0.5) == circle
    assert abi.find_closest_shape(0.0, 3.9, 0.5) == arc
    assert abi.find_closest_shape(0.0, -3.9, 0.5) == -1
    assert abi.find_closest_point(4.9, 5.0, 0.5) == p
    assert abi.find_closest_point(100.0, 0.0, 0.5) == -1


def test_observer_receives_events(abi):
    events = []
    abi.set_observer(lambda tag, payload: events.append(tag))
    a = abi.add_solver_point(0.0, 0.0, 1)
    b = abi.add_solver_point(1.0, 0.0, 0)
    abi.add_solver_constraint(constants.CONSTRAINT_DISTANCE, a, b, -1, -1, 5.0)

    assert abi.solve_solver() == 1
    assert events[0] == "iteration"
    assert events[-1] == "converged"

    abi.set_observer(None)
    events.clear()
    abi.solve_solver()
    assert events == []


def test_clear_scene_invalidates_handles(abi):
    a = abi.add_solver_point(1.0, 1.0, 0)
    abi.clear_scene()

    assert math.isnan(abi.get_solver_point_x(a))
    assert abi.add_solver_point(0.0, 0.0, 0) == a + 1
    assert abi.get_solver_iterations() == 0


def test_failing_observer_does_not_escape_the_table(abi):
    calls = []

    def observer(tag, payload):
        calls.append(tag)
        raise RuntimeError("host callback failed")

    abi.set_observer(observer)
    a = abi.add_solver_point(0.0, 0.0, 1)
    b = abi.add_solver_point(1.0, 0.0, 0)
    abi.add_solver_constraint(constants.CONSTRAINT_DISTANCE, a, b, -1, -1, 5.0)

    assert abi.solve_solver() == 1
    assert calls == ["iteration"]
    assert abi.get_solver_point_x(b) == pytest.approx(5.0, abs=1e-6)

    assert abi.solve_solver() == 1
    assert calls == ["iteration", "iteration"]


def test_union_points_rejects_merge_breaking_a_constraint(abi):
    a = abi.add_solver_point(0.0, 0.0, 0)
    b = abi.add_solver_point(3.0, 4.0, 0)
    abi.add_solver_constraint(constants.CONSTRAINT_DISTANCE, a, b, -1, -1, 5.0)

    assert abi.union_points(a, b) == -1
    assert abi.add_solver_constraint(constants.CONSTRAINT_COINCIDENT, a, b, -1, -1, 0.0) == -1
    assert abi.find_point(b) == b
