import numpy as np
import pytest

from sketch_gcs.points import PointStore
from sketch_gcs.validate import FixedPointError, SketchError, UnknownHandleError


def test_handles_are_dense_and_never_reused():
    store = PointStore()
    assert [store.create_point(i, 0.0) for i in range(3)] == [0, 1, 2]

    store.remove_point(1)
    assert store.create_point(5.0, 5.0) == 3

    store.clear()
    assert len(store) == 0
    assert store.create_point(0.0, 0.0) == 4


def test_union_prefers_fixed_side_and_keeps_its_coordinates():
    store = PointStore()
    a = store.create_point(0.0, 0.0)
    b = store.create_point(5.0, 5.0, fixed=True)

    rep = store.union(a, b)

    assert rep == b
    assert store.position(a) == (5.0, 5.0)
    assert store.is_fixed(a)


def test_union_without_fixed_keeps_lower_handle():
    store = PointStore()
    a = store.create_point(1.0, 2.0)
    b = store.create_point(3.0, 4.0)

    assert store.union(b, a) == a
    assert store.position(b) == (1.0, 2.0)
    assert not store.is_fixed(b)


def test_union_of_two_fixed_classes_stays_fixed():
    store = PointStore()
    a = store.create_point(0.0, 0.0, fixed=True)
    b = store.create_point(1.0, 0.0, fixed=True)

    assert store.union(a, b) == a
    assert store.is_fixed(b)
    assert store.position(b) == (0.0, 0.0)


def test_union_sizes_add_and_self_union_is_noop():
    store = PointStore()
    handles = [store.create_point(float(i), 0.0) for i in range(4)]
    store.union(handles[0], handles[1])
    store.union(handles[2], handles[3])
    rep = store.union(handles[1], handles[3])

    assert rep == handles[0]
    assert store.class_size(handles[3]) == 4
    assert store.union(handles[2], handles[1]) == rep
    assert store.class_size(rep) == 4
    assert sorted(store.members(handles[2])) == handles


def test_find_compresses_paths():
    store = PointStore()
    handles = [store.create_point(0.0, 0.0) for _ in range(4)]
    store.union(handles[0], handles[1])
    store.union(handles[2], handles[3])
    store.union(handles[1], handles[3])

    assert store.find(handles[3]) == handles[0]
    assert store._parent[handles[3]] == handles[0]


def test_representatives_and_handles():
    store = PointStore()
    a = store.create_point(0.0, 0.0)
    b = store.create_point(1.0, 0.0)
    c = store.create_point(2.0, 0.0)
    store.union(a, c)

    assert list(store.handles()) == [a, b, c]
    assert list(store.representatives()) == [a, b]
    assert c in store
    assert 17 not in store


def test_set_position_on_fixed_class_is_rejected():
    store = PointStore()
    a = store.create_point(0.0, 0.0, fixed=True)
    b = store.create_point(1.0, 1.0)
    store.union(a, b)

    with pytest.raises(FixedPointError):
        store.set_position(b, 3.0, 3.0)
    assert store.position(b) == (0.0, 0.0)

    store.set_fixed(b, False)
    store.set_position(b, 3.0, 3.0)
    assert store.position(a) == (3.0, 3.0)


@pytest.mark.parametrize("handle", [-1, 3, "0", None, False, True])
def test_unknown_handles_raise(handle):
    store = PointStore()
    store.create_point(0.0, 0.0)

    with pytest.raises(UnknownHandleError):
        store.find(handle)


def test_numpy_integer_handles_are_accepted():
    store = PointStore()
    a = store.create_point(0.0, 0.0)
    b = store.create_point(1.0, 2.0)

    handles = np.array([a, b], dtype=np.int64)
    assert store.find(handles[1]) == b
    assert type(store.find(handles[1])) is int
    assert store.position(handles[1]) == (1.0, 2.0)
    assert handles[0] in store
    assert True not in store


def test_unknown_handle_error_is_key_error_and_sketch_error():
    store = PointStore()
    with pytest.raises(KeyError):
        store.position(0)
    with pytest.raises(SketchError):
        store.position(0)


def test_remove_point_drops_whole_class():
    store = PointStore()
    a = store.create_point(0.0, 0.0)
    b = store.create_point(1.0, 0.0)
    c = store.create_point(2.0, 0.0)
    store.union(a, b)

    removed = store.remove_point(b)

    assert sorted(removed) == [a, b]
    assert a not in store and b not in store
    assert c in store
    assert len(store) == 1
    with pytest.raises(UnknownHandleError):
        store.position(a)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_random_unions_keep_find_idempotent_and_positions_shared(seed):
    rng = np.random.default_rng(seed)
    store = PointStore()
    handles = [
        store.create_point(float(x), float(y), fixed=bool(f))
        for x, y, f in zip(rng.normal(size=20), rng.normal(size=20), rng.random(20) < 0.2)
    ]
    sizes = {h: 1 for h in handles}

    for _ in range(30):
        a, b = (int(v) for v in rng.integers(0, len(handles), size=2))
        ra, rb = store.find(a), store.find(b)
        expected = sizes[ra] + sizes[rb] if ra != rb else sizes[ra]
        rep = store.union(a, b)
        sizes[rep] = expected
        assert store.position(a) == store.position(b)
        assert store.class_size(a) == expected

        h = int(rng.integers(0, len(handles)))
        if not store.is_fixed(h):
            store.set_position(h, float(rng.normal()), float(rng.normal()))

    for h in handles:
        rep = store.find(h)
        assert store.find(rep) == rep
        assert store.position(rep) == store.position(h)
    assert sum(store.class_size(r) for r in store.representatives()) == len(handles)
