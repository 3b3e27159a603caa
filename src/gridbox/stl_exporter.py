"""
ASCII STL exporter.

Writes the printable parts of a PartSet as one ASCII STL solid in
millimetres. Lid preview parts are left out by default.
"""
import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from gridbox.assembler import MaterialClass, PartInstance
from gridbox.units import MM_PER_SCENE_UNIT

logger = logging.getLogger(__name__)

FALLBACK_NORMAL = np.array([0.0, 0.0, 1.0])
_DEGENERATE_LENGTH = 1e-12


@dataclass
class STLExportConfig:
    """Configuration for STL export."""

    solid_name: str = "exported"
    materials: Tuple[MaterialClass, ...] = (MaterialClass.STRUCTURAL,)
    float_format: str = "{:.6f}"
    scale: float = MM_PER_SCENE_UNIT  # scene units -> mm


def exportable_parts(
    parts: Iterable[PartInstance],
    config: Optional[STLExportConfig] = None,
) -> List[PartInstance]:
    """Visible parts of an exported material that still hold a mesh."""
    if config is None:
        config = STLExportConfig()
    return [
        p for p in parts
        if p.visible and p.mesh is not None and p.material in config.materials
    ]


def facet_normals(triangles: np.ndarray) -> np.ndarray:
    """Unit normals of (n, 3, 3) triangles; degenerate ones point +Z."""
    e1 = triangles[:, 1] - triangles[:, 0]
    e2 = triangles[:, 2] - triangles[:, 0]
    normals = np.cross(e1, e2)
    lengths = np.linalg.norm(normals, axis=1)
    good = lengths > _DEGENERATE_LENGTH
    out = np.tile(FALLBACK_NORMAL, (len(triangles), 1))
    out[good] = normals[good] / lengths[good, None]
    return out


def collect_triangles(
    parts: Iterable[PartInstance],
    config: Optional[STLExportConfig] = None,
) -> np.ndarray:
    """All exported triangles in world space, scaled to mm, shape (n, 3, 3)."""
    if config is None:
        config = STLExportConfig()
    chunks = [p.world_triangles() for p in exportable_parts(parts, config)]
    if not chunks:
        return np.zeros((0, 3, 3))
    return np.concatenate(chunks, axis=0) * config.scale


def parts_to_stl(
    parts: Iterable[PartInstance],
    config: Optional[STLExportConfig] = None,
) -> str:
    """Serialise parts to an ASCII STL string.

    Normals are computed from the scaled triangle itself, not taken from the
    mesh, so they always agree with the emitted winding.
    """
    if config is None:
        config = STLExportConfig()
    triangles = collect_triangles(parts, config)
    normals = facet_normals(triangles)
    fmt = config.float_format

    def vec(v) -> str:
        return " ".join(fmt.format(float(c)) for c in v)

    lines = [f"solid {config.solid_name}"]
    for tri, n in zip(triangles, normals):
        lines.append(f"facet normal {vec(n)}")
        lines.append("outer loop")
        for corner in tri:
            lines.append(f"vertex {vec(corner)}")
        lines.append("endloop")
        lines.append("endfacet")
    lines.append(f"endsolid {config.solid_name}")
    return "\n".join(lines) + "\n"


def write_stl(
    parts: Iterable[PartInstance],
    filepath: str,
    config: Optional[STLExportConfig] = None,
) -> str:
    """
    Export parts to an ASCII STL file.

    Args:
        parts: Assembled part instances.
        filepath: Output .stl path.
        config: Export options.

    Returns:
        Path to created STL file.
    """
    if config is None:
        config = STLExportConfig()
    parts = list(parts)
    selected = exportable_parts(parts, config)
    if not selected:
        raise ValueError("No exportable parts: nothing to write")

    text = parts_to_stl(selected, config)
    os.makedirs(os.path.dirname(filepath) or ".", exist_ok=True)
    with open(filepath, "w") as f:
        f.write(text)

    n_facets = sum(len(p.mesh.faces) for p in selected)
    logger.info(
        "Exported STL: %s (%d parts, %d facets, %d skipped)",
        filepath, len(selected), n_facets, len(parts) - len(selected),
    )
    return filepath


def count_facets(stl_text: str) -> int:
    """Number of facet blocks in an ASCII STL string."""
    return sum(1 for line in stl_text.splitlines() if line.startswith("facet normal"))
