"""
Closed 2D perimeter rings for horizontal cross-sections.

A ring is an (N, 2) float array of points in the XY plane, ordered
counter-clockwise when seen from +Z, without a repeated closing point.
"""
import math
from typing import Tuple

import numpy as np
from shapely.geometry import Polygon

DEFAULT_CORNER_SEGMENTS = 8
HOLE_SEGMENTS = 20


def rounded_rect_ring(
    width: float,
    depth: float,
    radius: float,
    corner_segments: int = DEFAULT_CORNER_SEGMENTS,
) -> np.ndarray:
    """Rounded rectangle centred on the origin.

    Four quarter-arc fillets of ``corner_segments`` points each, starting with
    the bottom-right (+x, -y) corner. Consecutive corners are joined by the
    implicit straight edge between the last point of one arc and the first
    point of the next. The radius is clamped to half the smaller side.

    Returns:
        (4 * corner_segments, 2) array.
    """
    if corner_segments < 1:
        raise ValueError("corner_segments must be >= 1")
    hw = width / 2.0
    hd = depth / 2.0
    r = max(0.0, min(radius, hw, hd))

    corners = (
        (hw - r, -(hd - r), -math.pi / 2),  # bottom-right
        (hw - r, hd - r, 0.0),  # top-right
        (-(hw - r), hd - r, math.pi / 2),  # top-left
        (-(hw - r), -(hd - r), math.pi),  # bottom-left
    )
    t = np.arange(corner_segments, dtype=float) / corner_segments
    arcs = []
    for cx, cy, a0 in corners:
        angles = a0 + (math.pi / 2) * t
        arcs.append(np.column_stack((cx + r * np.cos(angles), cy + r * np.sin(angles))))
    return np.vstack(arcs)


def circle_ring(
    radius: float,
    segments: int = HOLE_SEGMENTS,
    center: Tuple[float, float] = (0.0, 0.0),
) -> np.ndarray:
    """Uniformly sampled circle, first point on the +x axis."""
    angles = np.arange(segments, dtype=float) * (2.0 * math.pi / segments)
    return np.column_stack((
        center[0] + radius * np.cos(angles),
        center[1] + radius * np.sin(angles),
    ))


def hexagon_ring(cx: float, cy: float, radius: float) -> np.ndarray:
    """Pointy-top hexagon with circumradius ``radius`` (first vertex at 30 deg)."""
    angles = math.pi / 6 + np.arange(6, dtype=float) * (math.pi / 3)
    return np.column_stack((cx + radius * np.cos(angles), cy + radius * np.sin(angles)))


def ring_area(ring: np.ndarray) -> float:
    """Signed shoelace area; positive for counter-clockwise rings."""
    x = ring[:, 0]
    y = ring[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


def ring_polygon(ring: np.ndarray) -> Polygon:
    return Polygon([(float(x), float(y)) for x, y in ring])


def ring_with_z(ring: np.ndarray, z: float) -> np.ndarray:
    """Lift a 2D ring to 3D at elevation z."""
    return np.column_stack((ring, np.full(len(ring), float(z))))
