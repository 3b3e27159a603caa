"""
Shared test fixtures for the box and Gridfinity generator tests.
"""
import sys
from pathlib import Path

import numpy as np
import pytest
import trimesh

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gridbox.contracts import (
    ApplicationMode,
    BoxConfig,
    GridfinityPart,
    LidType,
    MeasurementMode,
)
from gridbox.units import inch, mm


@pytest.fixture
def default_config():
    """The out-of-the-box configuration: 3.5 x 5.5 x 2.5 in internal box."""
    return BoxConfig()


@pytest.fixture
def gridfinity_bin_config():
    """A 2 x 3 x 6U Gridfinity bin."""
    return BoxConfig(
        application_mode=ApplicationMode.GRIDFINITY,
        gridfinity_part=GridfinityPart.BIN,
        grid_width=2,
        grid_depth=3,
        grid_height=6,
    )


@pytest.fixture
def unit_cube():
    """A 1 x 1 x 1 scene-unit cube (12 triangles, outward winding)."""
    return trimesh.creation.box(extents=[1.0, 1.0, 1.0])


def _pick(rng: np.random.Generator, enum_cls):
    members = list(enum_cls)
    return members[int(rng.integers(len(members)))]


def make_random_config(rng: np.random.Generator) -> BoxConfig:
    """A structurally valid configuration with arbitrary (possibly bad) dimensions."""
    return BoxConfig(
        measurement_mode=_pick(rng, MeasurementMode),
        application_mode=_pick(rng, ApplicationMode),
        gridfinity_part=_pick(rng, GridfinityPart),
        width=mm(float(rng.uniform(0.0, 300.0))),
        depth=mm(float(rng.uniform(0.0, 300.0))),
        height=mm(float(rng.uniform(0.0, 300.0))),
        wall=mm(float(rng.uniform(0.0, 6.0))),
        floor=mm(float(rng.uniform(0.0, 8.0))),
        lid_thickness=mm(float(rng.uniform(0.0, 4.0))),
        lip_depth=inch(float(rng.uniform(0.0, 0.3))),
        tolerance=mm(float(rng.uniform(0.0, 0.5))),
        hole_size=mm(float(rng.uniform(0.5, 10.0))),
        infill=float(rng.uniform(0.0, 1.0)),
        grid_width=int(rng.integers(1, 8)),
        grid_depth=int(rng.integers(1, 8)),
        grid_height=int(rng.integers(1, 40)),
        lid_enabled=bool(rng.integers(0, 2)),
        lid_type=_pick(rng, LidType),
        holes_enabled=bool(rng.integers(0, 2)),
    )


@pytest.fixture
def random_configs():
    """Fifty seeded random configurations."""
    rng = np.random.default_rng(42)
    return [make_random_config(rng) for _ in range(50)]
