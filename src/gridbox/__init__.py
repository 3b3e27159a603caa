"""Public API for the parametric box and Gridfinity generator."""

from gridbox.assembler import MaterialClass, PartInstance, PartSet, assemble_parts
from gridbox.contracts import (
    ApplicationMode,
    BoxConfig,
    CompartmentAxis,
    CompartmentWall,
    ConfigField,
    Diagnostic,
    DiagnosticCode,
    GridfinityPart,
    Layout,
    LidType,
    MeasurementMode,
)
from gridbox.layout import calculate_layout, check_stack_order
from gridbox.pipeline import (
    BuildResult,
    ExportRefusedError,
    GeneratorSession,
    PipelineConfig,
    export_filename,
    run_pass,
)
from gridbox.stl_exporter import STLExportConfig, parts_to_stl, write_stl
from gridbox.units import Quantity, inch, mm

__all__ = [
    "ApplicationMode",
    "BoxConfig",
    "BuildResult",
    "CompartmentAxis",
    "CompartmentWall",
    "ConfigField",
    "Diagnostic",
    "DiagnosticCode",
    "ExportRefusedError",
    "GeneratorSession",
    "GridfinityPart",
    "Layout",
    "LidType",
    "MaterialClass",
    "MeasurementMode",
    "PartInstance",
    "PartSet",
    "PipelineConfig",
    "Quantity",
    "STLExportConfig",
    "assemble_parts",
    "calculate_layout",
    "check_stack_order",
    "export_filename",
    "inch",
    "mm",
    "parts_to_stl",
    "run_pass",
    "write_stl",
]
