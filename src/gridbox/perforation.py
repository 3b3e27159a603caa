"""
Hexagonal perforation of flat wall panels.

Tiles pointy-top hexagonal cutouts over a rectangular panel so the removed
area approaches a requested void fraction. The panel lives in its own 2D
frame: x across the width centred on 0, y up the height from 0.
"""
import logging
import math
from dataclasses import dataclass
from typing import List

import numpy as np
from shapely.geometry import Polygon

from gridbox.profile_mesh import polygon_with_holes
from gridbox.rings import hexagon_ring

logger = logging.getLogger(__name__)

MIN_INFILL = 0.01
MAX_INFILL = 0.99
MARGIN_PER_THICKNESS = 1.5
SQRT3 = math.sqrt(3.0)


def hex_area(radius: float) -> float:
    """Area of a regular hexagon with the given circumradius."""
    return 1.5 * SQRT3 * radius * radius


def hex_lattice_spacing(hole_radius: float, infill: float) -> float:
    """Centre-to-centre spacing giving a void fraction of ``1 - infill``."""
    f = min(MAX_INFILL, max(MIN_INFILL, infill))
    return hole_radius * math.sqrt(3.0 / (1.0 - f))


@dataclass
class PerforatedPanel:
    """A rectangular panel outline and the hexagons punched through it."""

    width: float
    height: float
    thickness: float
    hole_radius: float
    spacing: float
    rows: int
    cols: int
    centers: np.ndarray  # (n, 2), row-major

    @property
    def margin(self) -> float:
        return MARGIN_PER_THICKNESS * self.thickness

    @property
    def hole_count(self) -> int:
        return len(self.centers)

    def outline_ring(self) -> np.ndarray:
        hw = self.width / 2.0
        return np.array([(-hw, 0.0), (hw, 0.0), (hw, self.height), (-hw, self.height)])

    def cutout_rings(self) -> List[np.ndarray]:
        return [hexagon_ring(cx, cy, self.hole_radius) for cx, cy in self.centers]

    def net_polygon(self) -> Polygon:
        """Outline with every hexagon as an interior ring."""
        return polygon_with_holes(self.outline_ring(), self.cutout_rings())

    def usable_area(self) -> float:
        avail_w = max(0.0, self.width - 2 * self.margin)
        avail_h = max(0.0, self.height - 2 * self.margin)
        return avail_w * avail_h

    def void_fraction(self) -> float:
        """Removed area over the usable (margin-free) area."""
        usable = self.usable_area()
        if usable <= 0:
            return 0.0
        return self.hole_count * hex_area(self.hole_radius) / usable


def perforate_panel(
    width: float,
    height: float,
    thickness: float,
    hole_radius: float,
    infill: float,
) -> PerforatedPanel:
    """Lay out a hexagonal close-packed hole pattern on a panel.

    Args:
        width: Panel width.
        height: Panel height.
        thickness: Panel thickness; 1.5x of it is kept solid on every side.
        hole_radius: Hexagon circumradius.
        infill: Fraction of material kept (0-1); clamped to [0.01, 0.99].

    Returns:
        PerforatedPanel. Rows are ``height`` spans of ``spacing * sqrt(3)/2``;
        odd rows shift by half a spacing and drop their last column. Cells
        whose centre leaves the usable span, or whose hexagon would cross
        the panel edge, are skipped.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Panel must have positive size, got {width} x {height}")
    if hole_radius <= 0:
        raise ValueError(f"Hole radius must be positive, got {hole_radius}")

    spacing = hex_lattice_spacing(hole_radius, infill)
    pitch = spacing * SQRT3 / 2.0
    margin = MARGIN_PER_THICKNESS * thickness
    avail_w = width - 2 * margin
    avail_h = height - 2 * margin
    cols = int(avail_w // spacing) if avail_w > 0 else 0
    rows = int(avail_h // pitch) if avail_h > 0 else 0

    if cols <= 0 or rows <= 0:
        logger.debug("Panel %.4f x %.4f too small for any perforation", width, height)
        return PerforatedPanel(width, height, thickness, hole_radius, spacing,
                               max(rows, 0), max(cols, 0), np.zeros((0, 2)))

    start_x = -width / 2.0 + margin + hole_radius
    start_y = margin + hole_radius
    row_idx, col_idx = np.meshgrid(np.arange(rows), np.arange(cols), indexing="ij")
    odd = row_idx % 2 == 1
    cx = start_x + col_idx * spacing + np.where(odd, spacing / 2.0, 0.0)
    cy = start_y + row_idx * pitch

    keep = ~(odd & (col_idx == cols - 1))
    keep &= (cx <= width / 2.0 - margin) & (cy <= height - margin)
    half_w = hole_radius * SQRT3 / 2.0
    keep &= (cx - half_w > -width / 2.0) & (cx + half_w < width / 2.0)
    keep &= (cy - hole_radius > 0.0) & (cy + hole_radius < height)

    centers = np.column_stack((cx[keep], cy[keep]))
    return PerforatedPanel(width, height, thickness, hole_radius, spacing, rows, cols, centers)
