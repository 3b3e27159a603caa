"""Tests for the stacked-profile mesh builder and polygon extrusion."""
import math

import numpy as np
import pytest
from shapely.geometry import Polygon, box

from gridbox.contracts import HoleSpec, Level
from gridbox.profile_mesh import (
    build_profile_mesh,
    build_shell_profile_mesh,
    extrude_polygon,
    triangulate_polygon,
)
from gridbox.rings import HOLE_SEGMENTS, circle_ring, ring_area, rounded_rect_ring


def _circle_area(radius: float, segments: int = HOLE_SEGMENTS) -> float:
    """Area of the sampled polygonal circle."""
    return 0.5 * segments * radius * radius * math.sin(2 * math.pi / segments)


def _closed(mesh):
    mesh.merge_vertices()
    return mesh


def _prism_levels(height=1.0, size=2.0, radius=0.25):
    return [
        Level(z=0.0, width=size, depth=size, corner_radius=radius),
        Level(z=height, width=size, depth=size, corner_radius=radius),
    ]


class TestTriangulation:
    def test_square_with_hole(self):
        poly = box(0, 0, 4, 4).difference(box(1, 1, 2, 2))
        verts, faces = triangulate_polygon(poly)
        assert len(verts) == 8
        tri = verts[faces]
        cross = (
            (tri[:, 1, 0] - tri[:, 0, 0]) * (tri[:, 2, 1] - tri[:, 0, 1])
            - (tri[:, 1, 1] - tri[:, 0, 1]) * (tri[:, 2, 0] - tri[:, 0, 0])
        )
        assert np.all(cross > 0)
        assert 0.5 * cross.sum() == pytest.approx(15.0)

    def test_no_vertices_inserted(self):
        outline = rounded_rect_ring(3.0, 2.0, 0.4)
        hole = circle_ring(0.3, center=(0.5, 0.2))
        poly = Polygon(outline, holes=[hole])
        verts, _ = triangulate_polygon(poly)
        assert len(verts) == len(outline) + len(hole)

    def test_empty_polygon(self):
        verts, faces = triangulate_polygon(Polygon())
        assert verts.shape == (0, 2)
        assert faces.shape == (0, 3)


class TestExtrudePolygon:
    def test_volume(self):
        poly = box(0, 0, 4, 4).difference(box(1, 1, 2, 2))
        mesh = extrude_polygon(poly, 0.5)
        assert mesh.is_watertight
        assert mesh.volume == pytest.approx(15.0 * 0.5)
        assert mesh.bounds[0][2] == pytest.approx(0.0)
        assert mesh.bounds[1][2] == pytest.approx(0.5)

    def test_rejects_bad_input(self):
        with pytest.raises(ValueError):
            extrude_polygon(box(0, 0, 1, 1), 0.0)
        with pytest.raises(ValueError):
            extrude_polygon(Polygon(), 1.0)


class TestBuildProfileMesh:
    """Closed solids from stacked levels."""

    def test_prism_is_closed_and_outward(self):
        mesh = _closed(build_profile_mesh(_prism_levels()))
        assert mesh.is_watertight
        assert mesh.is_winding_consistent
        area = ring_area(rounded_rect_ring(2.0, 2.0, 0.25))
        assert mesh.volume == pytest.approx(area * 1.0)

    def test_face_count(self):
        n = 4 * 8
        mesh = build_profile_mesh(_prism_levels())
        # two triangles per strip quad plus two fans
        assert len(mesh.faces) == 2 * n + 2 * n

    def test_chamfered_stack(self):
        levels = [
            Level(z=0.0, width=1.0, depth=1.0, corner_radius=0.1),
            Level(z=0.2, width=1.2, depth=1.2, corner_radius=0.2),
            Level(z=0.8, width=1.2, depth=1.2, corner_radius=0.2),
        ]
        mesh = _closed(build_profile_mesh(levels))
        assert mesh.is_watertight
        assert mesh.is_winding_consistent
        assert mesh.volume > 0
        np.testing.assert_allclose(mesh.bounds[:, 2], [0.0, 0.8])

    def test_through_hole(self):
        hole = HoleSpec(x=0.3, y=-0.2, radius=0.2)
        mesh = _closed(build_profile_mesh(_prism_levels(), holes=[hole]))
        assert mesh.is_watertight
        assert mesh.is_winding_consistent
        area = ring_area(rounded_rect_ring(2.0, 2.0, 0.25)) - _circle_area(0.2)
        assert mesh.volume == pytest.approx(area)

    def test_blind_pocket(self):
        hole = HoleSpec(x=0.0, y=0.0, radius=0.3, pocket_depth=0.4)
        solid = build_profile_mesh(_prism_levels())
        pocketed = _closed(build_profile_mesh(_prism_levels(), holes=[hole]))
        assert pocketed.is_watertight
        assert pocketed.is_winding_consistent
        assert solid.volume - pocketed.volume == pytest.approx(_circle_area(0.3) * 0.4)

    def test_counterbore(self):
        hole = HoleSpec(x=0.0, y=0.0, radius=0.3, pocket_depth=0.4, concentric_radius=0.1)
        solid = build_profile_mesh(_prism_levels())
        bored = _closed(build_profile_mesh(_prism_levels(), holes=[hole]))
        assert bored.is_watertight
        assert bored.is_winding_consistent
        removed = _circle_area(0.3) * 0.4 + _circle_area(0.1) * 0.6
        assert solid.volume - bored.volume == pytest.approx(removed)

    def test_pocket_walls_face_the_bore_axis(self):
        hole = HoleSpec(x=0.0, y=0.0, radius=0.3, pocket_depth=0.4)
        mesh = build_profile_mesh(_prism_levels(), holes=[hole])
        centers = mesh.triangles_center
        normals = mesh.face_normals
        radial = np.linalg.norm(centers[:, :2], axis=1)
        tube = (radial < 0.31) & (centers[:, 2] > 0.01) & (centers[:, 2] < 0.39)
        assert tube.any()
        # inward: normal opposes the radial direction
        dots = np.einsum("ij,ij->i", normals[tube, :2], centers[tube, :2])
        assert np.all(dots < 0)

    def test_rejects_single_level(self):
        with pytest.raises(ValueError):
            build_profile_mesh(_prism_levels()[:1])

    def test_rejects_descending_levels(self):
        levels = list(reversed(_prism_levels()))
        with pytest.raises(ValueError):
            build_profile_mesh(levels)


class TestShellProfileMesh:
    def test_closed_shell(self):
        outer = _prism_levels(height=0.5, size=3.0, radius=0.3)
        inner = [
            Level(z=0.0, width=2.0, depth=2.0, corner_radius=0.1),
            Level(z=0.5, width=2.6, depth=2.6, corner_radius=0.3),
        ]
        mesh = _closed(build_shell_profile_mesh(outer, inner))
        assert mesh.is_watertight
        assert mesh.is_winding_consistent
        assert 0 < mesh.volume < ring_area(rounded_rect_ring(3.0, 3.0, 0.3)) * 0.5

    def test_rejects_height_mismatch(self):
        outer = _prism_levels(height=0.5, size=3.0)
        inner = _prism_levels(height=0.4, size=2.0)
        with pytest.raises(ValueError):
            build_shell_profile_mesh(outer, inner)
