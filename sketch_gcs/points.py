"""Point store with union-find over stable integer handles."""

from __future__ import annotations

import logging
import numbers
from typing import Dict, Iterator, List, Tuple

from .validate import FixedPointError, UnknownHandleError

logger = logging.getLogger(__name__)


def _is_handle(value: object) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


Handle = int


class PointStore:
    """Owns point coordinates and merges coincident points.

    Handles are dense integers assigned on creation and never reused.  A
    merged (subordinate) handle keeps forwarding to its representative through
    the parent array; its coordinate slot becomes a tombstone.  Coordinates are
    only authoritative on representatives.
    """

    def __init__(self) -> None:
        self._parent: List[Handle] = []
        self._x: List[float] = []
        self._y: List[float] = []
        self._fixed: List[bool] = []
        self._alive: List[bool] = []
        self._size: List[int] = []
        self._count = 0

    # -- lifecycle -----------------------------------------------------------

    def create_point(self, x: float, y: float, fixed: bool = False) -> Handle:
        handle = len(self._parent)
        self._parent.append(handle)
        self._x.append(float(x))
        self._y.append(float(y))
        self._fixed.append(bool(fixed))
        self._alive.append(True)
        self._size.append(1)
        self._count += 1
        logger.debug("Created point %d at (%.6g, %.6g) fixed=%s", handle, x, y, fixed)
        return handle

    def remove_point(self, handle: Handle) -> List[Handle]:
        """Remove the whole class of ``handle`` and return the removed handles.

        Reference checks against geometry and constraints are the caller's
        job; the store only knows about coordinates.
        """

        members = self.members(handle)
        for member in members:
            self._alive[member] = False
            self._parent[member] = member
            self._size[member] = 0
        self._count -= len(members)
        logger.debug("Removed point class %s", members)
        return members

    def clear(self) -> None:
        """Drop every point.  The handle counter keeps counting."""

        for handle in range(len(self._parent)):
            self._alive[handle] = False
            self._parent[handle] = handle
            self._size[handle] = 0
        self._count = 0

    # -- union-find ------------------------------------------------------------

    def _check(self, handle: Handle) -> None:
        if not _is_handle(handle) or handle < 0 or handle >= len(self._parent):
            raise UnknownHandleError(f"unknown point handle {handle!r}")
        if not self._alive[handle]:
            raise UnknownHandleError(f"point handle {handle} was removed")

    def find(self, handle: Handle) -> Handle:
        self._check(handle)
        handle = int(handle)
        root = handle
        parent = self._parent
        while parent[root] != root:
            root = parent[root]
        while parent[handle] != root:
            parent[handle], handle = root, parent[handle]
        return root

    def union(self, a: Handle, b: Handle) -> Handle:
        """Merge the classes of ``a`` and ``b`` and return the representative.

        A fixed class always wins; otherwise the lower handle does.  The loser's
        fixed flag is OR'd into the winner and its coordinates are discarded.
        """

        ra = self.find(a)
        rb = self.find(b)
        if ra == rb:
            return ra
        fa = self._fixed[ra]
        fb = self._fixed[rb]
        if fa != fb:
            winner, loser = (ra, rb) if fa else (rb, ra)
        else:
            winner, loser = (ra, rb) if ra < rb else (rb, ra)
        self._parent[loser] = winner
        self._size[winner] += self._size[loser]
        self._size[loser] = 0
        self._fixed[winner] = self._fixed[winner] or self._fixed[loser]
        logger.debug(
            "Merged point %d into %d (class size %d)", loser, winner, self._size[winner]
        )
        return winner

    def same_class(self, a: Handle, b: Handle) -> bool:
        return self.find(a) == self.find(b)

    def members(self, handle: Handle) -> List[Handle]:
        root = self.find(handle)
        return [
            h
            for h in range(len(self._parent))
            if self._alive[h] and self.find(h) == root
        ]

    def class_size(self, handle: Handle) -> int:
        return self._size[self.find(handle)]

    # -- coordinates -----------------------------------------------------------

    def position(self, handle: Handle) -> Tuple[float, float]:
        root = self.find(handle)
        return self._x[root], self._y[root]

    def set_position(self, handle: Handle, x: float, y: float) -> None:
        root = self.find(handle)
        if self._fixed[root]:
            raise FixedPointError(f"point {handle} is fixed")
        self._x[root] = float(x)
        self._y[root] = float(y)

    def write(self, handle: Handle, x: float, y: float) -> None:
        """Write a representative's coordinates without the fixed check.

        Used by the solver for points it already knows to be free.
        """

        self._x[handle] = float(x)
        self._y[handle] = float(y)

    def is_fixed(self, handle: Handle) -> bool:
        return self._fixed[self.find(handle)]

    def set_fixed(self, handle: Handle, fixed: bool) -> None:
        self._fixed[self.find(handle)] = bool(fixed)

    def is_alive(self, handle: Handle) -> bool:
        return 0 <= handle < len(self._alive) and self._alive[handle]

    # -- iteration -------------------------------------------------------------

    def handles(self) -> Iterator[Handle]:
        return (h for h in range(len(self._parent)) if self._alive[h])

    def representatives(self) -> Iterator[Handle]:
        return (
            h
            for h in range(len(self._parent))
            if self._alive[h] and self._parent[h] == h
        )

    def snapshot(self, handles: List[Handle]) -> Dict[Handle, Tuple[float, float]]:
        return {h: (self._x[h], self._y[h]) for h in handles}

    def __len__(self) -> int:
        return self._count

    def __contains__(self, handle: object) -> bool:
        return _is_handle(handle) and self.is_alive(handle)


__all__ = ["Handle", "PointStore"]
