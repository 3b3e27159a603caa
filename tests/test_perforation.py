"""Tests for hexagonal wall perforation."""
import math

import numpy as np
import pytest

from gridbox.perforation import (
    MARGIN_PER_THICKNESS,
    PerforatedPanel,
    hex_area,
    hex_lattice_spacing,
    perforate_panel,
)
from gridbox.units import mm_to_scene

# 0.25 in hole plus 0.25 mm radial clearance, in scene units (inches)
HOLE_RADIUS = 0.125 + mm_to_scene(0.25)


@pytest.fixture
def wall_panel() -> PerforatedPanel:
    """3.5 x 2 in panel, 0.08 in thick, 0.25 in holes at 50% infill."""
    return perforate_panel(3.5, 2.0, 0.08, HOLE_RADIUS, 0.5)


class TestLattice:
    def test_spacing_formula(self):
        assert hex_lattice_spacing(1.0, 0.5) == pytest.approx(math.sqrt(6))

    def test_infill_clamped(self):
        assert hex_lattice_spacing(1.0, 1.0) == hex_lattice_spacing(1.0, 0.99)
        assert hex_lattice_spacing(1.0, -1.0) == hex_lattice_spacing(1.0, 0.01)

    def test_full_cell_void_fraction(self):
        """One hexagon per rhombic cell of area s^2 * sqrt(3) / 2."""
        for f in (0.2, 0.5, 0.8):
            s = hex_lattice_spacing(0.3, f)
            assert hex_area(0.3) / (s * s * math.sqrt(3) / 2) == pytest.approx(1 - f)


class TestWallPanel:
    """The default box side wall."""

    def test_grid_dimensions(self, wall_panel):
        assert wall_panel.cols == 9
        assert wall_panel.rows == 6

    def test_hole_count_drops_last_column_of_offset_rows(self, wall_panel):
        rows, cols = wall_panel.rows, wall_panel.cols
        assert rows > 0 and cols > 0
        assert wall_panel.hole_count == rows * cols - rows // 2
        assert wall_panel.hole_count == 51

    def test_holes_inside_margin_band(self, wall_panel):
        margin = MARGIN_PER_THICKNESS * wall_panel.thickness
        cx, cy = wall_panel.centers[:, 0], wall_panel.centers[:, 1]
        assert np.all(cx >= -wall_panel.width / 2 + margin)
        assert np.all(cx <= wall_panel.width / 2 - margin)
        assert np.all(cy >= margin)
        assert np.all(cy <= wall_panel.height - margin)

    def test_odd_rows_offset_by_half_spacing(self, wall_panel):
        centers = wall_panel.centers
        row0 = centers[np.isclose(centers[:, 1], centers[0, 1])]
        row1 = centers[np.isclose(centers[:, 1], centers[0, 1] + wall_panel.spacing * math.sqrt(3) / 2)]
        assert len(row0) == wall_panel.cols
        assert len(row1) == wall_panel.cols - 1
        assert row1[0, 0] - row0[0, 0] == pytest.approx(wall_panel.spacing / 2)

    def test_net_polygon(self, wall_panel):
        net = wall_panel.net_polygon()
        assert net.is_valid
        assert len(net.interiors) == wall_panel.hole_count
        expected = 3.5 * 2.0 - wall_panel.hole_count * hex_area(HOLE_RADIUS)
        assert net.area == pytest.approx(expected)

    def test_cutouts_do_not_overlap(self, wall_panel):
        rings = wall_panel.cutout_rings()
        assert len(rings) == wall_panel.hole_count
        d = np.linalg.norm(wall_panel.centers[:, None, :] - wall_panel.centers[None, :, :], axis=2)
        np.fill_diagonal(d, np.inf)
        # hexagons are disjoint when centres are further apart than 2 * inradius
        assert d.min() > HOLE_RADIUS * math.sqrt(3)


class TestEdgeCases:
    def test_panel_too_small(self):
        panel = perforate_panel(0.2, 0.2, 0.08, 0.1, 0.5)
        assert panel.hole_count == 0
        assert panel.net_polygon().area == pytest.approx(0.04)
        assert panel.void_fraction() == 0.0

    def test_thick_margin_leaves_no_room(self):
        panel = perforate_panel(1.0, 1.0, 1.0, 0.05, 0.5)
        assert panel.hole_count == 0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            perforate_panel(0.0, 1.0, 0.1, 0.1, 0.5)
        with pytest.raises(ValueError):
            perforate_panel(1.0, 1.0, 0.1, 0.0, 0.5)


class TestDensity:
    """Realised void fraction tracks the requested infill."""

    def test_void_fraction_matches_infill(self):
        rng = np.random.default_rng(42)
        for _ in range(25):
            f = float(rng.uniform(0.1, 0.9))
            r = float(rng.uniform(1.0, 2.0))
            panel = perforate_panel(1000.0, 1000.0, 2.0, r, f)
            assert panel.void_fraction() == pytest.approx(1 - f, rel=0.05)

    @pytest.mark.parametrize("infill", [0.25, 0.5, 0.75])
    def test_more_infill_fewer_holes(self, infill):
        sparse = perforate_panel(20.0, 20.0, 0.1, 0.2, infill)
        dense = perforate_panel(20.0, 20.0, 0.1, 0.2, infill + 0.1)
        assert dense.hole_count < sparse.hole_count
