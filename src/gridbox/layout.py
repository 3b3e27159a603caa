"""
Constraint and layout engine.

Turns one BoxConfig snapshot into a Layout: horizontal footprint, a
contiguous vertical stack of segments, lid placement, validated compartment
dividers, and the manufacturability diagnostics found along the way.

All arithmetic runs on integer internal units; values cross into floating
scene units exactly once, when the Layout is built. Manufacturability
problems never raise: they are reported as errors (model is not valid) or
per-field warnings, and offending extents are clamped so the geometry stage
always receives positive sizes.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from gridbox.contracts import (
    BoxConfig,
    CompartmentAxis,
    CompartmentWall,
    ConfigField,
    Diagnostic,
    DiagnosticCode,
    Layout,
    LidPlacement,
    LidType,
    MeasurementMode,
    RailSegments,
    Segment,
    StackSegments,
)
from gridbox.units import Quantity, mm

logger = logging.getLogger(__name__)

# Gridfinity system dimensions
GRID_PITCH = mm(42)
GRID_UNIT_HEIGHT = mm(7)
GRID_CLEARANCE = mm(0.5)  # total shrink for bin-to-bin clearance
FOOT_HEIGHT = mm(4.75)  # 0.7 + 1.8 + 2.25
LIP_HEIGHT = mm(4.4)

RAIL_CAP_HEIGHT = mm(2.0)
MIN_EXTENT = Quantity(10_000)  # 0.1 mm

# Small vertical overlap (scene units) the assembler gives stacked parts so
# coincident faces fuse when sliced.
GEOMETRY_OVERLAP = 0.002

MSG_WALLS_TOO_THICK = "Walls are too thick for the defined width/depth."
MSG_GRID_HEIGHT_TOO_LOW = "Gridfinity Unit count too low for feet+floor height."
MSG_HEIGHT_TOO_SHORT = "External height is too short for the floor and lid components."


@dataclass
class LayoutLimits:
    """Printability thresholds behind the warnings."""

    min_wall: Quantity = field(default_factory=lambda: mm(0.8))
    min_floor: Quantity = field(default_factory=lambda: mm(0.8))
    min_lid_thickness: Quantity = field(default_factory=lambda: mm(0.4))
    min_hole_size: Quantity = field(default_factory=lambda: mm(2))
    min_infill: float = 0.25
    max_build_dimension: Quantity = field(default_factory=lambda: mm(250))

    @property
    def max_build_mm(self) -> float:
        return self.max_build_dimension.to_mm()


def calculate_layout(config: BoxConfig, limits: Optional[LayoutLimits] = None) -> Layout:
    """Derive the build plan for a configuration.

    Pure and deterministic: the same config always yields an equal Layout.

    Args:
        config: Current parameters.
        limits: Warning thresholds (defaults to LayoutLimits()).

    Returns:
        Layout with ``valid`` False when any error was recorded.
    """
    if limits is None:
        limits = LayoutLimits()

    errors: List[Diagnostic] = []
    warnings: Dict[ConfigField, Diagnostic] = {}

    for diag in _check_thin_sections(config, limits):
        warnings[diag.config_field] = diag
    for diag in _check_lid(config, limits):
        warnings[diag.config_field] = diag
    for diag in _check_perforation(config, limits):
        warnings[diag.config_field] = diag

    # ─── Horizontal footprint ────────────────────────────────────────────
    outer_w, outer_d, inner_w, inner_d = _footprint(config)

    width_field = ConfigField.GRID_WIDTH if config.is_gridfinity else ConfigField.WIDTH
    depth_field = ConfigField.GRID_DEPTH if config.is_gridfinity else ConfigField.DEPTH
    for diag in (
        _check_build_dimension(outer_w, width_field, limits),
        _check_build_dimension(outer_d, depth_field, limits),
    ):
        if diag is not None:
            warnings[diag.config_field] = diag

    if inner_w.iu <= 0 or inner_d.iu <= 0:
        errors.append(_error(
            DiagnosticCode.WALLS_TOO_THICK, MSG_WALLS_TOO_THICK, ConfigField.WALL,
            value=min(inner_w, inner_d), limit=Quantity.zero(),
        ))
    inner_w = max(inner_w, MIN_EXTENT)
    inner_d = max(inner_d, MIN_EXTENT)
    outer_w = max(outer_w, inner_w)
    outer_d = max(outer_d, inner_d)

    # ─── Vertical stack ──────────────────────────────────────────────────
    cursor = Quantity.zero()
    feet_seg = None
    if config.is_gridfinity_bin:
        feet_seg = _segment(cursor, FOOT_HEIGHT)
        cursor = FOOT_HEIGHT

    floor_seg = _segment(cursor, cursor + config.floor)
    cursor = cursor + config.floor

    body_height = None
    slide = config.lid_enabled and config.lid_type is LidType.SLIDE and not config.is_gridfinity
    step = config.lid_enabled and config.lid_type is LidType.STEP and not config.is_gridfinity

    if config.is_gridfinity:
        stacking_height = GRID_UNIT_HEIGHT * config.grid_height
        wall_height = stacking_height - cursor
        if wall_height < MIN_EXTENT:
            errors.append(_error(
                DiagnosticCode.GRID_HEIGHT_TOO_LOW, MSG_GRID_HEIGHT_TOO_LOW,
                ConfigField.GRID_HEIGHT, value=wall_height, limit=MIN_EXTENT,
            ))
            wall_height = MIN_EXTENT
        diag = _check_build_dimension(stacking_height, ConfigField.GRID_HEIGHT, limits)
        if diag is not None:
            warnings[diag.config_field] = diag
        body_height = stacking_height.to_scene()
    elif config.measurement_mode is MeasurementMode.INTERNAL:
        wall_height = config.height
        if step:
            wall_height = wall_height + config.lip_depth
        wall_height = max(wall_height, MIN_EXTENT)
    else:
        non_wall = cursor
        if slide:
            non_wall = non_wall + config.lid_thickness + config.tolerance + RAIL_CAP_HEIGHT
        elif step:
            non_wall = non_wall + config.lid_thickness
        wall_height = config.height - non_wall
        if wall_height.iu <= 0:
            errors.append(_error(
                DiagnosticCode.HEIGHT_TOO_SHORT, MSG_HEIGHT_TOO_SHORT, ConfigField.HEIGHT,
                value=wall_height, limit=Quantity.zero(),
            ))
        wall_height = max(wall_height, MIN_EXTENT)
        diag = _check_build_dimension(config.height, ConfigField.HEIGHT, limits)
        if diag is not None:
            warnings[diag.config_field] = diag

    wall_seg = _segment(cursor, cursor + wall_height)
    cursor = cursor + wall_height

    # ─── Top features ────────────────────────────────────────────────────
    lip_seg = None
    lid_seg = None
    rail = None
    lid = None
    if config.is_gridfinity:
        lip_seg = _segment(cursor, cursor + LIP_HEIGHT)
        cursor = cursor + LIP_HEIGHT
    elif slide:
        spacer_height = config.lid_thickness + config.tolerance
        spacer = _segment(cursor, cursor + spacer_height)
        lid = LidPlacement(
            kind=LidType.SLIDE,
            segment=_segment(cursor, cursor + config.lid_thickness),
            thickness=config.lid_thickness.to_scene(),
            width=(outer_w - config.wall - config.tolerance).to_scene(),
            depth=(outer_d - config.tolerance).to_scene(),
        )
        cursor = cursor + spacer_height
        cap = _segment(cursor, cursor + RAIL_CAP_HEIGHT)
        cursor = cursor + RAIL_CAP_HEIGHT
        rail = RailSegments(spacer=spacer, cap=cap)
    elif step:
        lid_seg = _segment(cursor, cursor + config.lid_thickness)
        lid = LidPlacement(
            kind=LidType.STEP,
            segment=lid_seg,
            thickness=config.lid_thickness.to_scene(),
            width=outer_w.to_scene(),
            depth=outer_d.to_scene(),
            insert_depth=config.lip_depth.to_scene(),
        )
        cursor = cursor + config.lid_thickness

    if not config.is_gridfinity and config.measurement_mode is MeasurementMode.INTERNAL:
        diag = _check_build_dimension(cursor, ConfigField.HEIGHT, limits)
        if diag is not None:
            warnings[diag.config_field] = diag

    dividers, divider_warning = _validate_compartments(config)
    if divider_warning is not None:
        warnings[divider_warning.config_field] = divider_warning

    layout = Layout(
        outer_width=outer_w.to_scene(),
        outer_depth=outer_d.to_scene(),
        inner_width=inner_w.to_scene(),
        inner_depth=inner_d.to_scene(),
        total_height=cursor.to_scene(),
        inner_height=wall_seg.z_max - floor_seg.z_max,
        segments=StackSegments(
            floor=floor_seg, wall=wall_seg, feet=feet_seg, rail=rail, lip=lip_seg, lid=lid_seg,
        ),
        body_height=body_height,
        lid=lid,
        compartment_walls=dividers,
        errors=tuple(errors),
        warnings=warnings,
    )
    logger.debug(
        "Layout %.4f x %.4f x %.4f: %d errors, %d warnings",
        layout.outer_width, layout.outer_depth, layout.total_height,
        len(layout.errors), len(layout.warnings),
    )
    return layout


def check_stack_order(layout: Layout) -> List[str]:
    """Check the vertical stack is ordered, contiguous and starts on the bed.

    Returns:
        Human-readable violations (empty = well formed).
    """
    problems: List[str] = []
    chain = layout.segments.ordered()
    if chain and chain[0][1].z_min != 0.0:
        problems.append(f"{chain[0][0]} starts at {chain[0][1].z_min}, not on the bed")
    for name, seg in chain:
        if seg.z_max < seg.z_min:
            problems.append(f"{name} is inverted ({seg.z_min} > {seg.z_max})")
    for (prev_name, prev), (name, seg) in zip(chain, chain[1:]):
        if prev.z_max != seg.z_min:
            problems.append(f"{name} starts at {seg.z_min}, {prev_name} ends at {prev.z_max}")
    if chain and chain[-1][1].z_max != layout.total_height:
        problems.append(f"stack ends at {chain[-1][1].z_max}, total height is {layout.total_height}")

    rail = layout.segments.rail
    if layout.lid is not None and rail is not None:
        if layout.lid.segment.z_min != rail.spacer.z_min:
            problems.append("slide lid does not start at the rail spacer")
        if layout.lid.segment.z_max > rail.spacer.z_max:
            problems.append("slide lid is thicker than the rail spacer")
    return problems


# ─── Footprint ───────────────────────────────────────────────────────────────


def _footprint(config: BoxConfig) -> Tuple[Quantity, Quantity, Quantity, Quantity]:
    """(outer_w, outer_d, inner_w, inner_d) before clamping."""
    wall2 = config.wall * 2
    if config.is_gridfinity:
        outer_w = GRID_PITCH * config.grid_width - GRID_CLEARANCE
        outer_d = GRID_PITCH * config.grid_depth - GRID_CLEARANCE
        return outer_w, outer_d, outer_w - wall2, outer_d - wall2
    if config.measurement_mode is MeasurementMode.INTERNAL:
        return config.width + wall2, config.depth + wall2, config.width, config.depth
    zero = Quantity.zero()
    return (
        config.width,
        config.depth,
        max(zero, config.width - wall2),
        max(zero, config.depth - wall2),
    )


def _segment(start: Quantity, end: Quantity) -> Segment:
    return Segment(z_min=start.to_scene(), z_max=end.to_scene())


def _error(code, message, config_field, value: Quantity, limit: Quantity) -> Diagnostic:
    return Diagnostic(
        code=code,
        severity="error",
        message=message,
        config_field=config_field,
        value=value.to_mm(),
        limit=limit.to_mm(),
    )


def _warning(code, message, config_field, value: float, limit: float) -> Diagnostic:
    return Diagnostic(
        code=code,
        severity="warning",
        message=message,
        config_field=config_field,
        value=value,
        limit=limit,
    )


# ─── Individual checks ───────────────────────────────────────────────────────


def _check_thin_sections(config: BoxConfig, limits: LayoutLimits) -> List[Diagnostic]:
    found = []
    if config.wall < limits.min_wall:
        found.append(_warning(
            DiagnosticCode.THIN_WALL, "Fragile (< 0.8mm)", ConfigField.WALL,
            config.wall.to_mm(), limits.min_wall.to_mm(),
        ))
    if config.floor < limits.min_floor:
        found.append(_warning(
            DiagnosticCode.THIN_FLOOR, "Risk of warping (< 0.8mm)", ConfigField.FLOOR,
            config.floor.to_mm(), limits.min_floor.to_mm(),
        ))
    return found


def _check_lid(config: BoxConfig, limits: LayoutLimits) -> List[Diagnostic]:
    """Lid fit checks; Gridfinity bins never carry a lid."""
    if not config.lid_enabled or config.is_gridfinity:
        return []
    found = []
    if config.tolerance.iu == 0:
        found.append(_warning(
            DiagnosticCode.ZERO_TOLERANCE, "0 tolerance: Force fit?", ConfigField.TOLERANCE,
            0.0, 0.0,
        ))
    if config.lid_thickness < limits.min_lid_thickness:
        found.append(_warning(
            DiagnosticCode.THIN_LID, "Too thin (< 0.4mm)", ConfigField.LID_THICKNESS,
            config.lid_thickness.to_mm(), limits.min_lid_thickness.to_mm(),
        ))
    return found


def _check_perforation(config: BoxConfig, limits: LayoutLimits) -> List[Diagnostic]:
    if not config.holes_enabled:
        return []
    found = []
    if config.hole_size < limits.min_hole_size:
        found.append(_warning(
            DiagnosticCode.SMALL_HOLES, "Too small (< 2mm)", ConfigField.HOLE_SIZE,
            config.hole_size.to_mm(), limits.min_hole_size.to_mm(),
        ))
    if config.infill < limits.min_infill:
        found.append(_warning(
            DiagnosticCode.LOW_INFILL, "Weak structure (< 25%)", ConfigField.INFILL,
            config.infill, limits.min_infill,
        ))
    return found


def _check_build_dimension(
    value: Quantity,
    config_field: ConfigField,
    limits: LayoutLimits,
) -> Optional[Diagnostic]:
    if value <= limits.max_build_dimension:
        return None
    return _warning(
        DiagnosticCode.EXCEEDS_BUILD_VOLUME,
        f"Exceeds {limits.max_build_mm:g}mm",
        config_field,
        value.to_mm(),
        limits.max_build_mm,
    )


def _validate_compartments(
    config: BoxConfig,
) -> Tuple[Tuple[CompartmentWall, ...], Optional[Diagnostic]]:
    """Keep dividers that sit on an internal grid line of a Gridfinity bin."""
    if not config.compartment_walls:
        return (), None

    kept: List[CompartmentWall] = []
    dropped = 0
    for wall in config.compartment_walls:
        if wall in kept:
            continue
        if not config.is_gridfinity_bin:
            dropped += 1
            continue
        if wall.axis is CompartmentAxis.X:
            lines, cells = config.grid_width, config.grid_depth
        else:
            lines, cells = config.grid_depth, config.grid_width
        if 1 <= wall.position < lines and 0 <= wall.segment < cells:
            kept.append(wall)
        else:
            dropped += 1

    if not dropped:
        return tuple(kept), None
    logger.debug("Dropped %d compartment walls outside the grid", dropped)
    diag = _warning(
        DiagnosticCode.INVALID_COMPARTMENT,
        f"{dropped} compartment wall(s) outside the grid were ignored",
        ConfigField.COMPARTMENT_WALLS,
        float(dropped),
        0.0,
    )
    return tuple(kept), diag
