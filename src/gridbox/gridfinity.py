"""
Gridfinity foot, stacking lip and baseplate frame.

Dimensions follow the Gridfinity base profile:
35.6 mm base, 0.7 mm 45° chamfer to 37.0 mm, 1.8 mm vertical,
2.25 mm 45° chamfer to the 41.5 mm top with a 4 mm fillet; 4.75 mm total.

All builders return meshes in scene units with z=0 on their own bottom face,
centred on the origin in XY.
"""
import logging
from typing import List

import trimesh

from gridbox.contracts import HoleSpec, Level
from gridbox.profile_mesh import build_profile_mesh, build_shell_profile_mesh, extrude_polygon, polygon_with_holes
from gridbox.rings import DEFAULT_CORNER_SEGMENTS, rounded_rect_ring
from gridbox.units import mm_to_scene

logger = logging.getLogger(__name__)

GRID_PITCH_MM = 42.0

# Foot profile (z, size, corner radius), mm
FOOT_LEVELS_MM = (
    (0.0, 35.6, 1.05),
    (0.7, 37.0, 1.75),
    (2.5, 37.0, 1.75),
    (4.75, 41.5, 4.0),
)
FOOT_HEIGHT_MM = FOOT_LEVELS_MM[-1][0]
FOOT_VERTICAL_MM = FOOT_LEVELS_MM[2][0] - FOOT_LEVELS_MM[1][0]  # 1.8

HOLE_CLEARANCE_MM = 0.25  # radial
MAGNET_RADIUS_MM = 3.0  # 6 mm magnet
MAGNET_POCKET_DEPTH_MM = 2.4
SCREW_RADIUS_MM = 1.2  # M2.4-ish screw
MAGNET_OFFSET_MM = 13.0

# Stacking lip: cavity insets (total, both sides) from the outer wall, mm
LIP_HEIGHT_MM = 4.4
LIP_OUTER_RADIUS_MM = 4.0
LIP_CAVITY_MM = (
    # z, inset, corner radius
    (0.0, 6.4, 1.05),
    (0.7, 5.0, 1.75),
    (0.7 + 1.45, 5.0, 1.75),
    (LIP_HEIGHT_MM, 0.5, 4.0),
)
LIP_VERTICAL_MM = LIP_CAVITY_MM[2][0] - LIP_CAVITY_MM[1][0]  # 1.45
LIP_MATING_CLEARANCE_MM = FOOT_HEIGHT_MM - LIP_HEIGHT_MM  # 0.35

# Baseplate frame
FRAME_HEIGHT_MM = 5.0
FRAME_OPENING_MM = 41.5
FRAME_OPENING_RADIUS_MM = 4.0


def foot_levels() -> List[Level]:
    return [
        Level(z=mm_to_scene(z), width=mm_to_scene(size), depth=mm_to_scene(size),
              corner_radius=mm_to_scene(r))
        for z, size, r in FOOT_LEVELS_MM
    ]


def magnet_holes() -> List[HoleSpec]:
    """Four counterbored magnet pockets at (±13, ±13) mm."""
    off = mm_to_scene(MAGNET_OFFSET_MM)
    pocket_r = mm_to_scene(MAGNET_RADIUS_MM + HOLE_CLEARANCE_MM)
    screw_r = mm_to_scene(SCREW_RADIUS_MM + HOLE_CLEARANCE_MM)
    depth = mm_to_scene(MAGNET_POCKET_DEPTH_MM)
    return [
        HoleSpec(x=sx * off, y=sy * off, radius=pocket_r, pocket_depth=depth,
                 concentric_radius=screw_r)
        for sx, sy in ((-1, -1), (1, -1), (-1, 1), (1, 1))
    ]


def build_foot_mesh(with_magnets: bool = True) -> trimesh.Trimesh:
    """One foot for a single 42 mm grid cell."""
    holes = magnet_holes() if with_magnets else None
    return build_profile_mesh(foot_levels(), DEFAULT_CORNER_SEGMENTS, holes)


def lip_cavity_levels(outer_w: float, outer_d: float) -> List[Level]:
    return [
        Level(z=mm_to_scene(z), width=outer_w - mm_to_scene(inset),
              depth=outer_d - mm_to_scene(inset), corner_radius=mm_to_scene(r))
        for z, inset, r in LIP_CAVITY_MM
    ]


def build_lip_mesh(outer_w: float, outer_d: float) -> trimesh.Trimesh:
    """Stacking lip: straight outer wall around a cavity that receives a foot.

    Args:
        outer_w: Bin outer width, scene units.
        outer_d: Bin outer depth, scene units.
    """
    cavity = lip_cavity_levels(outer_w, outer_d)
    r = mm_to_scene(LIP_OUTER_RADIUS_MM)
    outer = [Level(z=lv.z, width=outer_w, depth=outer_d, corner_radius=r) for lv in cavity]
    return build_shell_profile_mesh(outer, cavity, DEFAULT_CORNER_SEGMENTS)


def build_frame_mesh(grid_width: int, grid_depth: int) -> trimesh.Trimesh:
    """Flat baseplate with one rounded-square opening per grid cell.

    The plate covers the nominal footprint (grid count x 42 mm) so every
    opening keeps a 0.25 mm rim on the outside.
    """
    if grid_width < 1 or grid_depth < 1:
        raise ValueError("Frame needs at least one cell in each direction")
    pitch = mm_to_scene(GRID_PITCH_MM)
    width = grid_width * pitch
    depth = grid_depth * pitch
    opening = mm_to_scene(FRAME_OPENING_MM)
    radius = mm_to_scene(FRAME_OPENING_RADIUS_MM)

    outline = rounded_rect_ring(width, depth, 0.0, 1)
    cells = []
    for i in range(grid_width):
        for j in range(grid_depth):
            cx = -width / 2 + (i + 0.5) * pitch
            cy = -depth / 2 + (j + 0.5) * pitch
            ring = rounded_rect_ring(opening, opening, radius, DEFAULT_CORNER_SEGMENTS)
            ring[:, 0] += cx
            ring[:, 1] += cy
            cells.append(ring)

    mesh = extrude_polygon(polygon_with_holes(outline, cells), mm_to_scene(FRAME_HEIGHT_MM))
    logger.debug("Built %dx%d frame: %d faces", grid_width, grid_depth, len(mesh.faces))
    return mesh
