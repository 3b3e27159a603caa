"""Contracts shared by the layout engine, geometry builders and exporters."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from gridbox.units import Quantity, inch


class MeasurementMode(Enum):
    """Whether width/depth/height describe the usable cavity or the envelope."""
    INTERNAL = "internal"
    EXTERNAL = "external"


class ApplicationMode(Enum):
    INCH = "in"
    MM = "mm"
    GRIDFINITY = "gridfinity"


class GridfinityPart(Enum):
    BIN = "bin"
    FRAME = "frame"


class LidType(Enum):
    STEP = "step"
    SLIDE = "slide"


class CompartmentAxis(Enum):
    """Orientation of a divider.

    X: the divider lies on a grid line of constant x and runs along depth.
    Y: the divider lies on a grid line of constant y and runs along width.
    """
    X = "x"
    Y = "y"


class ConfigField(Enum):
    """Configuration fields that diagnostics can be attached to."""
    WIDTH = "width"
    DEPTH = "depth"
    HEIGHT = "height"
    WALL = "wall"
    FLOOR = "floor"
    LID_THICKNESS = "lid_thickness"
    LIP_DEPTH = "lip_depth"
    TOLERANCE = "tolerance"
    HOLE_SIZE = "hole_size"
    INFILL = "infill"
    GRID_WIDTH = "grid_width"
    GRID_DEPTH = "grid_depth"
    GRID_HEIGHT = "grid_height"
    COMPARTMENT_WALLS = "compartment_walls"


class DiagnosticCode(Enum):
    # warnings
    THIN_WALL = "thin_wall"
    THIN_FLOOR = "thin_floor"
    ZERO_TOLERANCE = "zero_tolerance"
    THIN_LID = "thin_lid"
    SMALL_HOLES = "small_holes"
    LOW_INFILL = "low_infill"
    EXCEEDS_BUILD_VOLUME = "exceeds_build_volume"
    INVALID_COMPARTMENT = "invalid_compartment"
    # errors
    WALLS_TOO_THICK = "walls_too_thick"
    GRID_HEIGHT_TOO_LOW = "grid_height_too_low"
    HEIGHT_TOO_SHORT = "height_too_short"


@dataclass(frozen=True)
class Diagnostic:
    """A single manufacturability finding."""

    code: DiagnosticCode
    severity: str  # "error" or "warning"
    message: str
    config_field: Optional[ConfigField] = None
    value: float = 0.0  # mm
    limit: float = 0.0  # mm


@dataclass(frozen=True)
class CompartmentWall:
    """One grid-cell-long divider snapped to an internal 42 mm grid line."""

    axis: CompartmentAxis
    position: int  # grid line index, 1..count-1
    segment: int  # cell index along the divider


_QUANTITY_FIELDS = (
    "width", "depth", "height", "wall", "floor",
    "lid_thickness", "lip_depth", "tolerance", "hole_size",
)


@dataclass(frozen=True)
class BoxConfig:
    """Everything the user can edit. Replaced wholesale on every edit."""

    measurement_mode: MeasurementMode = MeasurementMode.INTERNAL
    application_mode: ApplicationMode = ApplicationMode.INCH
    gridfinity_part: GridfinityPart = GridfinityPart.BIN

    width: Quantity = field(default_factory=lambda: inch(3.5))
    depth: Quantity = field(default_factory=lambda: inch(5.5))
    height: Quantity = field(default_factory=lambda: inch(2.5))
    wall: Quantity = field(default_factory=lambda: inch(0.08))
    floor: Quantity = field(default_factory=lambda: inch(0.08))
    lid_thickness: Quantity = field(default_factory=lambda: inch(0.08))
    lip_depth: Quantity = field(default_factory=lambda: inch(0.15))  # step-lid insert depth
    tolerance: Quantity = field(default_factory=lambda: inch(0.01))
    hole_size: Quantity = field(default_factory=lambda: inch(0.25))
    infill: float = 0.5

    grid_width: int = 2
    grid_depth: int = 3
    grid_height: int = 6

    lid_enabled: bool = False
    lid_type: LidType = LidType.STEP
    holes_enabled: bool = False
    compartment_walls: Tuple[CompartmentWall, ...] = ()

    def __post_init__(self):
        for name in _QUANTITY_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, Quantity):
                raise TypeError(f"{name} must be a Quantity, got {type(value).__name__}")
            if value.iu < 0:
                raise ValueError(f"{name} must not be negative ({value!r})")
        if not 0.0 <= self.infill <= 1.0:
            raise ValueError(f"infill must be within [0, 1], got {self.infill}")
        for name in ("grid_width", "grid_depth", "grid_height"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be a positive integer")
        if not isinstance(self.compartment_walls, tuple):
            object.__setattr__(self, "compartment_walls", tuple(self.compartment_walls))

    @property
    def is_gridfinity(self) -> bool:
        return self.application_mode is ApplicationMode.GRIDFINITY

    @property
    def is_gridfinity_bin(self) -> bool:
        return self.is_gridfinity and self.gridfinity_part is GridfinityPart.BIN

    def to_dict(self) -> Dict[str, object]:
        """Plain snapshot for logging: Quantities in mm, enums by value."""
        out: Dict[str, object] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Quantity):
                out[f.name] = value.to_mm()
            elif isinstance(value, Enum):
                out[f.name] = value.value
            elif f.name == "compartment_walls":
                out[f.name] = [(w.axis.value, w.position, w.segment) for w in value]
            else:
                out[f.name] = value
        return out


# ─── Layout ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Segment:
    """Half-open vertical interval [z_min, z_max) in scene units."""

    z_min: float
    z_max: float

    @property
    def height(self) -> float:
        return self.z_max - self.z_min


@dataclass(frozen=True)
class RailSegments:
    """Slide-lid rail: a spacer the lid slides in, capped by a retaining rail."""

    spacer: Segment
    cap: Segment

    @property
    def z_min(self) -> float:
        return self.spacer.z_min

    @property
    def z_max(self) -> float:
        return self.cap.z_max


@dataclass(frozen=True)
class LidPlacement:
    """Where the lid sits on the body and how big it is (scene units)."""

    kind: LidType
    segment: Segment
    thickness: float
    width: float
    depth: float
    insert_depth: float = 0.0


@dataclass(frozen=True)
class StackSegments:
    floor: Segment
    wall: Segment
    feet: Optional[Segment] = None
    rail: Optional[RailSegments] = None
    lip: Optional[Segment] = None
    lid: Optional[Segment] = None

    def ordered(self) -> List[Tuple[str, Segment]]:
        """Cursor-advancing segments from the bed upwards.

        A slide lid overlaps the rail spacer and is not part of the chain.
        """
        chain: List[Tuple[str, Segment]] = []
        if self.feet is not None:
            chain.append(("feet", self.feet))
        chain.append(("floor", self.floor))
        chain.append(("wall", self.wall))
        if self.rail is not None:
            chain.append(("rail_spacer", self.rail.spacer))
            chain.append(("rail_cap", self.rail.cap))
        elif self.lip is not None:
            chain.append(("lip", self.lip))
        elif self.lid is not None:
            chain.append(("lid", self.lid))
        return chain


@dataclass(frozen=True)
class Layout:
    """Validated build plan derived from one BoxConfig snapshot."""

    outer_width: float
    outer_depth: float
    inner_width: float
    inner_depth: float
    total_height: float
    inner_height: float
    segments: StackSegments
    body_height: Optional[float] = None
    lid: Optional[LidPlacement] = None
    compartment_walls: Tuple[CompartmentWall, ...] = ()
    errors: Tuple[Diagnostic, ...] = ()
    warnings: Mapping[ConfigField, Diagnostic] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return len(self.errors) == 0

    @property
    def error_messages(self) -> List[str]:
        return [e.message for e in self.errors]

    @property
    def warning_messages(self) -> Dict[str, str]:
        return {key.value: w.message for key, w in self.warnings.items()}


# ─── Geometry descriptors ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Level:
    """One horizontal rounded-rectangle cross-section at elevation z."""

    z: float
    width: float
    depth: float
    corner_radius: float


@dataclass(frozen=True)
class HoleSpec:
    """A bore in the bottom face of a profile.

    With ``pocket_depth`` the hole is a blind pocket; adding
    ``concentric_radius`` continues it as a narrower through-bore up to the
    top plane (counterbore).
    """

    x: float
    y: float
    radius: float
    pocket_depth: Optional[float] = None
    concentric_radius: Optional[float] = None
