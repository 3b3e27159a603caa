"""
Fixed-point dimensional units.

Every configured dimension is stored as an integer count of internal units
(IU), 100,000 IU per millimetre (10 nm resolution). One inch is exactly
2,540,000 IU, so switching the display between inches and millimetres never
resizes anything.

Floating "scene" units (1 scene unit = 1 inch) only appear at the geometry
emission boundary, through the single conversion below.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

INCH_TO_MM = 25.4
IU_PER_MM = 100_000
IU_PER_INCH = round(IU_PER_MM * INCH_TO_MM)
IU_PER_SCENE_UNIT = IU_PER_INCH
MM_PER_SCENE_UNIT = IU_PER_SCENE_UNIT / IU_PER_MM  # 25.4

Number = Union[int, float]


def _round_half_away(value: float) -> int:
    if value >= 0:
        return int(value + 0.5)
    return -int(-value + 0.5)


@dataclass(frozen=True, order=True)
class Quantity:
    """An exact length in internal units.

    Arithmetic only mixes Quantities with Quantities (or scales by an
    integer), so a float never sneaks into a stored dimension.
    """

    iu: int

    def __post_init__(self):
        if isinstance(self.iu, bool) or not isinstance(self.iu, int):
            raise TypeError(f"Quantity needs an integer IU count, got {self.iu!r}")

    # ─── Constructors ────────────────────────────────────────────────────

    @classmethod
    def from_mm(cls, value: Number) -> "Quantity":
        return cls(_round_half_away(value * IU_PER_MM))

    @classmethod
    def from_inch(cls, value: Number) -> "Quantity":
        return cls(_round_half_away(value * IU_PER_INCH))

    @classmethod
    def from_scene(cls, value: Number) -> "Quantity":
        return cls(_round_half_away(value * IU_PER_SCENE_UNIT))

    @classmethod
    def zero(cls) -> "Quantity":
        return cls(0)

    # ─── Conversions ─────────────────────────────────────────────────────

    def to_mm(self) -> float:
        return self.iu / IU_PER_MM

    def to_inch(self) -> float:
        return self.iu / IU_PER_INCH

    def to_scene(self) -> float:
        return iu_to_scene(self.iu)

    # ─── Arithmetic ──────────────────────────────────────────────────────

    def __add__(self, other: "Quantity") -> "Quantity":
        if not isinstance(other, Quantity):
            return NotImplemented
        return Quantity(self.iu + other.iu)

    def __sub__(self, other: "Quantity") -> "Quantity":
        if not isinstance(other, Quantity):
            return NotImplemented
        return Quantity(self.iu - other.iu)

    def __neg__(self) -> "Quantity":
        return Quantity(-self.iu)

    def __abs__(self) -> "Quantity":
        return Quantity(abs(self.iu))

    def __mul__(self, factor: int) -> "Quantity":
        if isinstance(factor, bool) or not isinstance(factor, int):
            raise TypeError("Quantity can only be scaled by an int")
        return Quantity(self.iu * factor)

    __rmul__ = __mul__

    def __floordiv__(self, divisor: int) -> "Quantity":
        if isinstance(divisor, bool) or not isinstance(divisor, int):
            raise TypeError("Quantity can only be divided by an int")
        return Quantity(self.iu // divisor)

    def __bool__(self) -> bool:
        return self.iu != 0

    def __repr__(self) -> str:
        return f"Quantity({self.iu} IU = {self.to_mm():g} mm)"


def mm(value: Number) -> Quantity:
    return Quantity.from_mm(value)


def inch(value: Number) -> Quantity:
    return Quantity.from_inch(value)


def iu_to_scene(iu: int) -> float:
    """The one IU -> scene-unit conversion."""
    return iu / IU_PER_SCENE_UNIT


def mm_to_scene(value_mm: float) -> float:
    return value_mm / MM_PER_SCENE_UNIT


def scene_to_mm(value: float) -> float:
    return value * MM_PER_SCENE_UNIT
