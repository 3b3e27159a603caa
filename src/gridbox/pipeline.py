"""Recompute pass: config -> layout -> parts -> optional STL export."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from gridbox.assembler import PartSet, assemble_parts
from gridbox.contracts import ApplicationMode, BoxConfig, Layout
from gridbox.layout import calculate_layout
from gridbox.stl_exporter import STLExportConfig, write_stl
from gridbox.units import scene_to_mm

logger = logging.getLogger(__name__)


class ExportRefusedError(RuntimeError):
    """Raised when exporting a layout with errors and the pipeline forbids it."""


@dataclass
class PipelineConfig:
    export_stl: bool = True
    refuse_invalid_export: bool = False
    stl: STLExportConfig = field(default_factory=STLExportConfig)


@dataclass
class BuildResult:
    config: BoxConfig
    layout: Layout
    parts: PartSet
    stl_path: Optional[str] = None
    elapsed_s: float = 0.0

    @property
    def valid(self) -> bool:
        return self.layout.valid

    def summary(self) -> Dict[str, object]:
        return {
            "valid": self.layout.valid,
            "errors": self.layout.error_messages,
            "warnings": self.layout.warning_messages,
            "outer_mm": [
                round(scene_to_mm(self.layout.outer_width), 3),
                round(scene_to_mm(self.layout.outer_depth), 3),
                round(scene_to_mm(self.layout.total_height), 3),
            ],
            "parts": len(self.parts),
            "faces": self.parts.face_count(),
            "stl_path": self.stl_path,
            "elapsed_s": round(self.elapsed_s, 4),
        }


def _check_export_allowed(layout: Layout, pipeline_config: PipelineConfig) -> None:
    if layout.valid:
        return
    if pipeline_config.refuse_invalid_export:
        raise ExportRefusedError(
            "Refusing to export an invalid model: " + "; ".join(layout.error_messages)
        )
    logger.warning("Exporting a model with %d layout errors", len(layout.errors))


def export_filename(config: BoxConfig) -> str:
    """Download name for the current model, e.g. ``box_3.50x5.50in.stl``."""
    if config.is_gridfinity:
        return f"gridfinity_{config.grid_width}x{config.grid_depth}x{config.grid_height}U.stl"
    if config.application_mode is ApplicationMode.MM:
        w = f"{config.width.to_mm():.0f}"
        d = f"{config.depth.to_mm():.0f}"
    else:
        w = f"{config.width.to_inch():.2f}"
        d = f"{config.depth.to_inch():.2f}"
    return f"box_{w}x{d}{config.application_mode.value}.stl"


def run_pass(
    config: BoxConfig,
    export_path: Optional[str] = None,
    pipeline_config: Optional[PipelineConfig] = None,
) -> BuildResult:
    """Run one full rebuild for a configuration.

    Args:
        config: Current parameters.
        export_path: Where to write the STL; no export when None.
        pipeline_config: Export policy.

    Returns:
        BuildResult holding the layout and the freshly assembled parts.
    """
    if pipeline_config is None:
        pipeline_config = PipelineConfig()

    started = time.perf_counter()
    logger.debug("Rebuilding from config: %s", config.to_dict())
    layout = calculate_layout(config)
    for err in layout.errors:
        logger.warning("Layout error (%s): %s", err.code.value, err.message)

    parts = assemble_parts(config, layout)
    result = BuildResult(config=config, layout=layout, parts=parts)

    if export_path is not None and pipeline_config.export_stl:
        _check_export_allowed(layout, pipeline_config)
        result.stl_path = write_stl(parts, export_path, pipeline_config.stl)

    result.elapsed_s = time.perf_counter() - started
    logger.info(
        "Rebuilt model: %d parts, %d faces, valid=%s (%.3fs)",
        len(parts), parts.face_count(), layout.valid, result.elapsed_s,
    )
    return result


class GeneratorSession:
    """Holds the current build and releases it before every rebuild."""

    def __init__(self, pipeline_config: Optional[PipelineConfig] = None):
        self.pipeline_config = pipeline_config or PipelineConfig()
        self.current: Optional[BuildResult] = None
        self.rebuilds = 0

    def update(self, config: BoxConfig) -> BuildResult:
        if self.current is not None:
            self.current.parts.release()
            self.current = None
        self.current = run_pass(config, pipeline_config=self.pipeline_config)
        self.rebuilds += 1
        return self.current

    def export(self, filepath: str) -> str:
        """Write the current build to ``filepath``."""
        if self.current is None:
            raise ValueError("Nothing has been built yet")
        _check_export_allowed(self.current.layout, self.pipeline_config)
        self.current.stl_path = write_stl(self.current.parts, filepath, self.pipeline_config.stl)
        return self.current.stl_path
