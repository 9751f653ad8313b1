"""Constants shared with the host; values must stay bit-exact."""

from __future__ import annotations

from typing import Dict

# Entity flags
FLAG_VISIBLE = 1
FLAG_SELECTED = 2
FLAG_CONSTRUCTION = 4
FLAG_HOVER = 8
FLAG_FIXED = 16
FLAG_PREVIEW = 32

# Constraint type ids
CONSTRAINT_COINCIDENT = 0
CONSTRAINT_HORIZONTAL = 1
CONSTRAINT_VERTICAL = 2
CONSTRAINT_DISTANCE = 3
CONSTRAINT_FIXED = 4
CONSTRAINT_PARALLEL = 5
CONSTRAINT_PERPENDICULAR = 6
CONSTRAINT_EQUAL_LENGTH = 7
CONSTRAINT_TANGENT = 8
CONSTRAINT_ANGLE = 9
CONSTRAINT_ON_LINE = 10
CONSTRAINT_ON_CIRCLE = 11
CONSTRAINT_MIDPOINT = 12

CONSTRAINT_NAMES: Dict[int, str] = {
    CONSTRAINT_COINCIDENT: "coincident",
    CONSTRAINT_HORIZONTAL: "horizontal",
    CONSTRAINT_VERTICAL: "vertical",
    CONSTRAINT_DISTANCE: "distance",
    CONSTRAINT_FIXED: "fixed",
    CONSTRAINT_PARALLEL: "parallel",
    CONSTRAINT_PERPENDICULAR: "perpendicular",
    CONSTRAINT_EQUAL_LENGTH: "equal_length",
    CONSTRAINT_TANGENT: "tangent",
    CONSTRAINT_ANGLE: "angle",
    CONSTRAINT_ON_LINE: "on_line",
    CONSTRAINT_ON_CIRCLE: "on_circle",
    CONSTRAINT_MIDPOINT: "midpoint",
}

# Snap point kinds
SNAP_ENDPOINT = "endpoint"
SNAP_MIDPOINT = "midpoint"
SNAP_CENTER = "center"
SNAP_QUADRANT = "quadrant"

# Sentinel returned by handle-producing ABI calls on failure
INVALID_HANDLE = -1

# Points closer than this (world units) are reused by get_or_create_point
MERGE_TOLERANCE = 1e-4

__all__ = [
    "FLAG_VISIBLE",
    "FLAG_SELECTED",
    "FLAG_CONSTRUCTION",
    "FLAG_HOVER",
    "FLAG_FIXED",
    "FLAG_PREVIEW",
    "CONSTRAINT_COINCIDENT",
    "CONSTRAINT_HORIZONTAL",
    "CONSTRAINT_VERTICAL",
    "CONSTRAINT_DISTANCE",
    "CONSTRAINT_FIXED",
    "CONSTRAINT_PARALLEL",
    "CONSTRAINT_PERPENDICULAR",
    "CONSTRAINT_EQUAL_LENGTH",
    "CONSTRAINT_TANGENT",
    "CONSTRAINT_ANGLE",
    "CONSTRAINT_ON_LINE",
    "CONSTRAINT_ON_CIRCLE",
    "CONSTRAINT_MIDPOINT",
    "CONSTRAINT_NAMES",
    "SNAP_ENDPOINT",
    "SNAP_MIDPOINT",
    "SNAP_CENTER",
    "SNAP_QUADRANT",
    "INVALID_HANDLE",
    "MERGE_TOLERANCE",
]
