"""
Stacked-profile mesh builder.

Turns an ordered stack of rounded-rectangle cross-sections ("levels") into a
closed triangle mesh: quad strips between adjacent rings, flat caps on top and
bottom, and optional magnet/fastener bores punched up through the bottom cap.
This is the only place pocket and counterbore geometry is generated.

Subtraction is never done with solid booleans. Holes are expressed as 2D
polygon-with-holes caps (triangulated with Shapely's constrained Delaunay
triangulation, which inserts no new vertices) plus explicit inward-facing
tubes, so every hole edge is shared by exactly two triangles.

Winding: outward surfaces are counter-clockwise seen from outside; tube walls
of pockets and bores face the bore axis.
"""
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
import shapely
import trimesh
from shapely.geometry import Polygon

from gridbox.contracts import HoleSpec, Level
from gridbox.rings import (
    DEFAULT_CORNER_SEGMENTS,
    HOLE_SEGMENTS,
    circle_ring,
    ring_with_z,
    rounded_rect_ring,
)

logger = logging.getLogger(__name__)

_KEY_DIGITS = 9


class _MeshBuffer:
    """Append-only vertex/face arena for one mesh build."""

    def __init__(self):
        self._vertices: List[np.ndarray] = []
        self._faces: List[np.ndarray] = []
        self._count = 0

    def add_vertices(self, points: np.ndarray) -> int:
        points = np.asarray(points, dtype=float).reshape((-1, 3))
        base = self._count
        self._vertices.append(points)
        self._count += len(points)
        return base

    def add_faces(self, faces: np.ndarray, base: int = 0) -> None:
        faces = np.asarray(faces, dtype=np.int64).reshape((-1, 3))
        self._faces.append(faces + base)

    def to_trimesh(self) -> trimesh.Trimesh:
        vertices = np.vstack(self._vertices) if self._vertices else np.zeros((0, 3))
        faces = np.vstack(self._faces) if self._faces else np.zeros((0, 3), dtype=np.int64)
        return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


# ─── Polygon-with-holes triangulation ────────────────────────────────────────


def triangulate_polygon(polygon: Polygon) -> Tuple[np.ndarray, np.ndarray]:
    """Triangulate a polygon (holes allowed) without inserting vertices.

    Returns:
        (vertices (n, 2) float, faces (m, 3) int) with every face wound
        counter-clockwise.
    """
    if polygon.is_empty:
        return np.zeros((0, 2)), np.zeros((0, 3), dtype=np.int64)

    triangles = shapely.constrained_delaunay_triangles(polygon)
    index = {}
    vertices: List[Tuple[float, float]] = []
    faces: List[List[int]] = []
    for tri in triangles.geoms:
        face = []
        for x, y in list(tri.exterior.coords)[:3]:
            key = (round(x, _KEY_DIGITS), round(y, _KEY_DIGITS))
            idx = index.get(key)
            if idx is None:
                idx = len(vertices)
                index[key] = idx
                vertices.append((x, y))
            face.append(idx)
        faces.append(face)

    verts = np.asarray(vertices, dtype=float).reshape((-1, 2))
    tris = np.asarray(faces, dtype=np.int64).reshape((-1, 3))
    if len(tris):
        a = verts[tris[:, 0]]
        b = verts[tris[:, 1]]
        c = verts[tris[:, 2]]
        cross = (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (b[:, 1] - a[:, 1]) * (c[:, 0] - a[:, 0])
        flip = cross < 0
        tris[flip] = tris[flip][:, ::-1]
    return verts, tris


def extrude_polygon(polygon: Polygon, height: float) -> trimesh.Trimesh:
    """Closed prism from a polygon with holes, extruded along +Z from z=0."""
    if height <= 0:
        raise ValueError(f"Extrusion height must be positive, got {height}")
    vertices, faces = triangulate_polygon(polygon)
    if len(faces) == 0:
        raise ValueError("Cannot extrude an empty polygon")
    return trimesh.creation.extrude_triangulation(vertices, faces, height)


def polygon_with_holes(outline: np.ndarray, holes: Sequence[np.ndarray]) -> Polygon:
    return Polygon(
        [(float(x), float(y)) for x, y in outline],
        holes=[[(float(x), float(y)) for x, y in h] for h in holes],
    )


# ─── Strip / cap primitives ──────────────────────────────────────────────────


def _strip_faces(n: int, inward: bool = False) -> np.ndarray:
    """Faces joining ring block [0, n) to ring block [n, 2n)."""
    i = np.arange(n)
    nxt = (i + 1) % n
    a, b, c, d = i, nxt, n + nxt, n + i
    if inward:
        tris = np.stack([np.column_stack((a, c, b)), np.column_stack((a, d, c))], axis=1)
    else:
        tris = np.stack([np.column_stack((a, b, c)), np.column_stack((a, c, d))], axis=1)
    return tris.reshape((-1, 3))


def _add_strip(buf: _MeshBuffer, lower: np.ndarray, z0: float, upper: np.ndarray, z1: float,
               inward: bool = False) -> None:
    base = buf.add_vertices(ring_with_z(lower, z0))
    buf.add_vertices(ring_with_z(upper, z1))
    buf.add_faces(_strip_faces(len(lower), inward=inward), base)


def _add_fan(buf: _MeshBuffer, ring: np.ndarray, z: float, facing_up: bool) -> None:
    n = len(ring)
    cx, cy = ring.mean(axis=0)
    center = buf.add_vertices(np.array([[cx, cy, z]]))
    base = buf.add_vertices(ring_with_z(ring, z))
    i = np.arange(n)
    nxt = (i + 1) % n
    centers = np.full(n, center)
    if facing_up:
        faces = np.column_stack((centers, base + i, base + nxt))
    else:
        faces = np.column_stack((centers, base + nxt, base + i))
    buf.add_faces(faces)


def _add_polygon_cap(buf: _MeshBuffer, polygon: Polygon, z: float, facing_up: bool) -> None:
    vertices, faces = triangulate_polygon(polygon)
    base = buf.add_vertices(np.column_stack((vertices, np.full(len(vertices), float(z)))))
    if not facing_up:
        faces = faces[:, ::-1]
    buf.add_faces(faces, base)


def _add_annulus(buf: _MeshBuffer, outer: np.ndarray, inner: np.ndarray, z: float,
                 facing_up: bool) -> None:
    """Band between two rings of equal length, point i matched to point i."""
    if len(outer) != len(inner):
        raise ValueError("Annulus rings must have the same number of points")
    n = len(outer)
    base = buf.add_vertices(ring_with_z(outer, z))
    buf.add_vertices(ring_with_z(inner, z))
    i = np.arange(n)
    nxt = (i + 1) % n
    o0, o1, i0, i1 = i, nxt, n + i, n + nxt
    if facing_up:
        tris = np.stack([np.column_stack((o0, o1, i1)), np.column_stack((o0, i1, i0))], axis=1)
    else:
        tris = np.stack([np.column_stack((o0, i1, o1)), np.column_stack((o0, i0, i1))], axis=1)
    buf.add_faces(tris.reshape((-1, 3)), base)


# ─── Builders ────────────────────────────────────────────────────────────────


def _level_rings(levels: Sequence[Level], corner_segments: int) -> List[np.ndarray]:
    if len(levels) < 2:
        raise ValueError("A stacked profile needs at least two levels")
    rings = [
        rounded_rect_ring(lv.width, lv.depth, lv.corner_radius, corner_segments)
        for lv in levels
    ]
    counts = {len(r) for r in rings}
    if len(counts) != 1:
        raise ValueError(f"All levels must share a point count, got {sorted(counts)}")
    for lower, upper in zip(levels, levels[1:]):
        if upper.z < lower.z:
            raise ValueError("Levels must be ordered by ascending z")
    if levels[-1].z <= levels[0].z:
        raise ValueError("Profile has zero height")
    return rings


def _top_bore_radius(hole: HoleSpec) -> Optional[float]:
    """Radius of the bore that reaches the top plane, if any."""
    if hole.pocket_depth is None:
        return hole.radius
    return hole.concentric_radius


def build_profile_mesh(
    levels: Sequence[Level],
    corner_segments: int = DEFAULT_CORNER_SEGMENTS,
    holes: Optional[Sequence[HoleSpec]] = None,
) -> trimesh.Trimesh:
    """Build a closed solid from stacked rounded-rectangle levels.

    Args:
        levels: Cross-sections ordered bottom to top, scene units.
        corner_segments: Arc samples per corner (all rings share it).
        holes: Bores punched up through the bottom cap. A hole with a
            ``pocket_depth`` is a blind pocket closed by a floor at that
            depth, continued by a ``concentric_radius`` through-bore to the
            top plane when given. A hole without a pocket depth runs straight
            through at its own radius.

    Returns:
        trimesh.Trimesh (unprocessed, vertices not merged).
    """
    rings = _level_rings(levels, corner_segments)
    holes = list(holes or [])
    buf = _MeshBuffer()
    bot_z = float(levels[0].z)
    top_z = float(levels[-1].z)

    for r in range(len(rings) - 1):
        _add_strip(buf, rings[r], levels[r].z, rings[r + 1], levels[r + 1].z)

    # Top cap
    top_bores = [(h, _top_bore_radius(h)) for h in holes if _top_bore_radius(h)]
    if not top_bores:
        _add_fan(buf, rings[-1], top_z, facing_up=True)
    else:
        cutouts = [circle_ring(radius, HOLE_SEGMENTS, (h.x, h.y)) for h, radius in top_bores]
        _add_polygon_cap(buf, polygon_with_holes(rings[-1], cutouts), top_z, facing_up=True)

    # Bottom cap
    if not holes:
        _add_fan(buf, rings[0], bot_z, facing_up=False)
        return buf.to_trimesh()

    cutouts = [circle_ring(h.radius, HOLE_SEGMENTS, (h.x, h.y)) for h in holes]
    _add_polygon_cap(buf, polygon_with_holes(rings[0], cutouts), bot_z, facing_up=False)

    for hole, mouth in zip(holes, cutouts):
        if hole.pocket_depth is None:
            _add_strip(buf, mouth, bot_z, mouth, top_z, inward=True)
            continue

        floor_z = bot_z + hole.pocket_depth
        _add_strip(buf, mouth, bot_z, mouth, floor_z, inward=True)
        if hole.concentric_radius:
            bore = circle_ring(hole.concentric_radius, HOLE_SEGMENTS, (hole.x, hole.y))
            _add_annulus(buf, mouth, bore, floor_z, facing_up=False)
            _add_strip(buf, bore, floor_z, bore, top_z, inward=True)
        else:
            _add_fan(buf, mouth, floor_z, facing_up=False)

    mesh = buf.to_trimesh()
    logger.debug(
        "Built profile mesh: %d levels, %d holes, %d faces",
        len(levels), len(holes), len(mesh.faces),
    )
    return mesh


def build_shell_profile_mesh(
    outer_levels: Sequence[Level],
    inner_levels: Sequence[Level],
    corner_segments: int = DEFAULT_CORNER_SEGMENTS,
) -> trimesh.Trimesh:
    """Build a closed annular shell: an outer stacked skin around an inner cavity.

    The outer skin faces outward, the cavity skin faces the cavity, and the
    bottom and top are closed by bands between the outer and inner rings of
    the first and last levels.
    """
    outer = _level_rings(outer_levels, corner_segments)
    inner = _level_rings(inner_levels, corner_segments)
    if len(outer[0]) != len(inner[0]):
        raise ValueError("Outer and inner rings must share a point count")
    if outer_levels[0].z != inner_levels[0].z or outer_levels[-1].z != inner_levels[-1].z:
        raise ValueError("Outer and inner profiles must span the same heights")

    buf = _MeshBuffer()
    for r in range(len(outer) - 1):
        _add_strip(buf, outer[r], outer_levels[r].z, outer[r + 1], outer_levels[r + 1].z)
    for r in range(len(inner) - 1):
        _add_strip(buf, inner[r], inner_levels[r].z, inner[r + 1], inner_levels[r + 1].z,
                   inward=True)
    _add_annulus(buf, outer[0], inner[0], outer_levels[0].z, facing_up=False)
    _add_annulus(buf, outer[-1], inner[-1], outer_levels[-1].z, facing_up=True)
    return buf.to_trimesh()
