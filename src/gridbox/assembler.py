"""
Part assembler: Layout -> positioned mesh instances.

Every rebuild produces a fresh PartSet. Meshes are kept in their local frame
and carry a 4x4 placement; the foot mesh is built once and shared by every
foot instance. The box body sits left of the origin and the lid, laid flat,
sits to the right, so both print from the same plate.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

import numpy as np
import trimesh
from shapely.geometry import box as shapely_box

from gridbox.contracts import BoxConfig, CompartmentAxis, Layout, LidType
from gridbox.gridfinity import GRID_PITCH_MM, build_foot_mesh, build_frame_mesh, build_lip_mesh
from gridbox.layout import GEOMETRY_OVERLAP
from gridbox.perforation import perforate_panel
from gridbox.profile_mesh import extrude_polygon
from gridbox.units import mm_to_scene

logger = logging.getLogger(__name__)

PLATE_GAP_MM = 30.0
HEX_CLEARANCE_MM = 0.25  # radial clearance added to the hex hole size
SLIDE_TAB_WIDTH_RATIO = 0.2


class MaterialClass(Enum):
    """STRUCTURAL parts are printed; LID_PREVIEW parts are only shown."""
    STRUCTURAL = "structural"
    LID_PREVIEW = "lid_preview"


@dataclass
class PartInstance:
    """A mesh placed in the scene."""

    name: str
    mesh: Optional[trimesh.Trimesh]
    transform: np.ndarray = field(default_factory=lambda: np.eye(4))
    material: MaterialClass = MaterialClass.STRUCTURAL
    visible: bool = True

    def world_mesh(self) -> trimesh.Trimesh:
        if self.mesh is None:
            raise ValueError(f"Part {self.name!r} has been released")
        mesh = self.mesh.copy()
        mesh.apply_transform(self.transform)
        return mesh

    def world_triangles(self) -> np.ndarray:
        """(n, 3, 3) triangle corners with the placement applied."""
        if self.mesh is None:
            raise ValueError(f"Part {self.name!r} has been released")
        tris = self.mesh.vertices[self.mesh.faces]
        flat = tris.reshape((-1, 3))
        world = trimesh.transformations.transform_points(flat, self.transform)
        return world.reshape((-1, 3, 3))


@dataclass
class PartSet:
    """All instances produced by one assembler run."""

    parts: List[PartInstance] = field(default_factory=list)
    released: bool = False

    def add(self, part: PartInstance) -> PartInstance:
        self.parts.append(part)
        return part

    def __iter__(self) -> Iterator[PartInstance]:
        return iter(self.parts)

    def __len__(self) -> int:
        return len(self.parts)

    def names(self) -> List[str]:
        return [p.name for p in self.parts]

    def by_material(self, material: MaterialClass) -> List[PartInstance]:
        return [p for p in self.parts if p.material is material]

    def face_count(self, material: Optional[MaterialClass] = None) -> int:
        return sum(
            len(p.mesh.faces)
            for p in self.parts
            if p.mesh is not None and (material is None or p.material is material)
        )

    def release(self) -> None:
        """Drop every mesh so the set can be discarded before a rebuild."""
        for part in self.parts:
            part.mesh = None
        self.parts.clear()
        self.released = True


def _translation(x: float, y: float, z: float) -> np.ndarray:
    return trimesh.transformations.translation_matrix([x, y, z])


def _rotation(angle: float, axis) -> np.ndarray:
    return trimesh.transformations.rotation_matrix(angle, axis)


def _box_part(name, extents, center, material=MaterialClass.STRUCTURAL) -> PartInstance:
    mesh = trimesh.creation.box(extents=extents)
    return PartInstance(name=name, mesh=mesh, transform=_translation(*center), material=material)


def assemble_parts(config: BoxConfig, layout: Layout) -> PartSet:
    """Build every part for a layout.

    Args:
        config: The configuration the layout was computed from.
        layout: Output of calculate_layout(config).

    Returns:
        PartSet; lid parts are tagged LID_PREVIEW.
    """
    parts = PartSet()
    gap = mm_to_scene(PLATE_GAP_MM)
    box_x = -(layout.outer_width / 2 + gap)

    if config.is_gridfinity and not config.is_gridfinity_bin:
        frame = build_frame_mesh(config.grid_width, config.grid_depth)
        parts.add(PartInstance("frame", frame, _translation(box_x, 0.0, 0.0)))
        logger.debug("Assembled frame: %d faces", parts.face_count())
        return parts

    seg = layout.segments
    if seg.feet is not None:
        _add_feet(parts, config, box_x, seg.feet.z_min)
    _add_floor(parts, layout, box_x)
    if config.holes_enabled:
        _add_perforated_walls(parts, config, layout, box_x)
    else:
        _add_solid_walls(parts, layout, box_x)
    if layout.compartment_walls:
        _add_dividers(parts, config, layout, box_x)
    if seg.rail is not None:
        _add_rails(parts, config, layout, box_x)
    if seg.lip is not None:
        lip = build_lip_mesh(layout.outer_width, layout.outer_depth)
        parts.add(PartInstance("lip", lip, _translation(box_x, 0.0, seg.lip.z_min)))
    if layout.lid is not None:
        _add_lid(parts, config, layout, layout.outer_width / 2 + gap)

    logger.debug("Assembled %d parts, %d faces", len(parts), parts.face_count())
    return parts


# ─── Body ────────────────────────────────────────────────────────────────────


def _add_feet(parts: PartSet, config: BoxConfig, box_x: float, z: float) -> None:
    """Feet sit on the nominal 42 mm grid, independent of the outer shrink."""
    pitch = mm_to_scene(GRID_PITCH_MM)
    foot = build_foot_mesh(with_magnets=True)
    start_x = -(config.grid_width * pitch) / 2 + pitch / 2
    start_y = -(config.grid_depth * pitch) / 2 + pitch / 2
    for i in range(config.grid_width):
        for j in range(config.grid_depth):
            parts.add(PartInstance(
                f"foot_{i}_{j}", foot,
                _translation(box_x + start_x + i * pitch, start_y + j * pitch, z),
            ))


def _add_floor(parts: PartSet, layout: Layout, box_x: float) -> None:
    floor = layout.segments.floor
    z0 = max(0.0, floor.z_min - GEOMETRY_OVERLAP)
    h = floor.z_max - z0
    if h <= 0:
        return
    parts.add(_box_part(
        "floor", (layout.outer_width, layout.outer_depth, h), (box_x, 0.0, z0 + h / 2),
    ))


def _wall_span(layout: Layout):
    wall = layout.segments.wall
    z0 = wall.z_min - GEOMETRY_OVERLAP
    return z0, wall.z_max - z0


def _add_solid_walls(parts: PartSet, layout: Layout, box_x: float) -> None:
    if layout.inner_width >= layout.outer_width or layout.inner_depth >= layout.outer_depth:
        logger.debug("No room for walls between outer and inner footprint")
        return
    z0, h = _wall_span(layout)
    ow, od = layout.outer_width / 2, layout.outer_depth / 2
    iw, idp = layout.inner_width / 2, layout.inner_depth / 2
    ring = shapely_box(-ow, -od, ow, od).difference(shapely_box(-iw, -idp, iw, idp))
    parts.add(PartInstance("walls", extrude_polygon(ring, h), _translation(box_x, 0.0, z0)))


def _add_perforated_walls(parts: PartSet, config: BoxConfig, layout: Layout, box_x: float) -> None:
    """Four flat perforated panels; the side panels fit between front and back."""
    z0, h = _wall_span(layout)
    t = config.wall.to_scene()
    if t <= 0:
        return
    radius = config.hole_size.to_scene() / 2 + mm_to_scene(HEX_CLEARANCE_MM)
    ow, od = layout.outer_width, layout.outer_depth

    # Panels are drawn in (across, up) and extruded along local +Z; Rx(90)
    # stands them up with the extrusion pointing to world -Y.
    stand = _rotation(math.pi / 2, [1, 0, 0])
    turn = _rotation(math.pi / 2, [0, 0, 1])

    front = perforate_panel(ow, h, t, radius, config.infill)
    fb_mesh = extrude_polygon(front.net_polygon(), t)
    parts.add(PartInstance("wall_front", fb_mesh, _translation(box_x, od / 2, z0) @ stand))
    parts.add(PartInstance("wall_back", fb_mesh, _translation(box_x, -od / 2 + t, z0) @ stand))

    side_w = od - 2 * t
    if side_w <= 0:
        return
    side = perforate_panel(side_w, h, t, radius, config.infill)
    lr_mesh = extrude_polygon(side.net_polygon(), t)
    parts.add(PartInstance("wall_left", lr_mesh, _translation(box_x - ow / 2, 0.0, z0) @ turn @ stand))
    parts.add(PartInstance("wall_right", lr_mesh, _translation(box_x + ow / 2 - t, 0.0, z0) @ turn @ stand))
    logger.debug(
        "Perforated walls: %d front/back holes, %d side holes", front.hole_count, side.hole_count,
    )


def _add_dividers(parts: PartSet, config: BoxConfig, layout: Layout, box_x: float) -> None:
    """One-cell dividers on the nominal grid lines, clipped to the outer footprint."""
    pitch = mm_to_scene(GRID_PITCH_MM)
    t = config.wall.to_scene()
    z0, h = _wall_span(layout)
    if t <= 0:
        return
    half_w, half_d = layout.outer_width / 2, layout.outer_depth / 2
    origin_x = -(config.grid_width * pitch) / 2
    origin_y = -(config.grid_depth * pitch) / 2

    for wall in layout.compartment_walls:
        if wall.axis is CompartmentAxis.X:
            x = origin_x + wall.position * pitch
            y0 = max(-half_d, origin_y + wall.segment * pitch)
            y1 = min(half_d, origin_y + (wall.segment + 1) * pitch)
            extents, center = (t, y1 - y0, h), (box_x + x, (y0 + y1) / 2, z0 + h / 2)
        else:
            y = origin_y + wall.position * pitch
            x0 = max(-half_w, origin_x + wall.segment * pitch)
            x1 = min(half_w, origin_x + (wall.segment + 1) * pitch)
            extents, center = (x1 - x0, t, h), (box_x + (x0 + x1) / 2, y, z0 + h / 2)
        name = f"divider_{wall.axis.value}_{wall.position}_{wall.segment}"
        parts.add(_box_part(name, extents, center))


def _add_rails(parts: PartSet, config: BoxConfig, layout: Layout, box_x: float) -> None:
    """Slide-lid rails: a half-wall spacer the lid rides in, then a full-wall cap."""
    ow, od = layout.outer_width, layout.outer_depth
    wall = config.wall.to_scene()
    rail = layout.segments.rail
    for label, seg, thick in (("spacer", rail.spacer, wall / 2), ("cap", rail.cap, wall)):
        h = seg.height
        zc = seg.z_min + h / 2
        if h <= 0 or thick <= 0:
            continue
        parts.add(_box_part(f"rail_{label}_left", (thick, od, h), (box_x - ow / 2 + thick / 2, 0.0, zc)))
        parts.add(_box_part(f"rail_{label}_right", (thick, od, h), (box_x + ow / 2 - thick / 2, 0.0, zc)))
        if ow > 2 * thick:
            parts.add(_box_part(
                f"rail_{label}_back", (ow - 2 * thick, thick, h), (box_x, -od / 2 + thick / 2, zc),
            ))


# ─── Lid ─────────────────────────────────────────────────────────────────────


def _add_lid(parts: PartSet, config: BoxConfig, layout: Layout, lid_x: float) -> None:
    lid = layout.lid
    t = lid.thickness
    if t <= 0 or lid.width <= 0 or lid.depth <= 0:
        return
    preview = MaterialClass.LID_PREVIEW

    if lid.kind is LidType.STEP:
        parts.add(_box_part("lid_plate", (lid.width, lid.depth, t), (lid_x, 0.0, t / 2), preview))
        if lid.insert_depth > 0:
            shrink = 2 * config.wall.to_scene() + config.tolerance.to_scene()
            iw = layout.outer_width - shrink
            idp = layout.outer_depth - shrink
            if iw > 0 and idp > 0:
                parts.add(_box_part(
                    "lid_insert", (iw, idp, lid.insert_depth),
                    (lid_x, 0.0, t + lid.insert_depth / 2), preview,
                ))
        return

    parts.add(_box_part("lid_plate", (lid.width, lid.depth, t), (lid_x, 0.0, t / 2), preview))
    parts.add(_box_part(
        "lid_tab", (layout.outer_width * SLIDE_TAB_WIDTH_RATIO, t, 2 * t),
        (lid_x, lid.depth / 2 - t, 1.5 * t), preview,
    ))
