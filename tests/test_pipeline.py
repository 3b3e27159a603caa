"""Tests for the rebuild pipeline and generator session."""
import logging

import pytest

from gridbox.contracts import ApplicationMode, BoxConfig, GridfinityPart, MeasurementMode
from gridbox.pipeline import (
    BuildResult,
    ExportRefusedError,
    GeneratorSession,
    PipelineConfig,
    export_filename,
    run_pass,
)
from gridbox.stl_exporter import count_facets
from gridbox.units import mm


@pytest.fixture
def invalid_config():
    """External box whose walls leave no room inside."""
    return BoxConfig(
        measurement_mode=MeasurementMode.EXTERNAL,
        width=mm(1),
        depth=mm(50),
        wall=mm(2),
    )


class TestRunPass:
    def test_builds_without_export(self, default_config):
        result = run_pass(default_config)
        assert isinstance(result, BuildResult)
        assert result.valid
        assert result.stl_path is None
        assert result.parts.names() == ["floor", "walls"]
        assert result.elapsed_s >= 0.0

    def test_exports_stl(self, tmp_path, default_config):
        path = tmp_path / "box.stl"
        result = run_pass(default_config, export_path=str(path))
        assert result.stl_path == str(path)
        assert count_facets(path.read_text()) == result.parts.face_count()

    def test_export_disabled(self, tmp_path, default_config):
        path = tmp_path / "box.stl"
        result = run_pass(default_config, str(path), PipelineConfig(export_stl=False))
        assert result.stl_path is None
        assert not path.exists()

    def test_invalid_model_still_exported_by_default(self, tmp_path, invalid_config, caplog):
        path = tmp_path / "bad.stl"
        with caplog.at_level(logging.WARNING, logger="gridbox.pipeline"):
            result = run_pass(invalid_config, export_path=str(path))
        assert not result.valid
        assert path.exists()
        assert "walls_too_thick" in caplog.text

    def test_invalid_model_refused(self, tmp_path, invalid_config):
        path = tmp_path / "bad.stl"
        with pytest.raises(ExportRefusedError, match="too thick"):
            run_pass(invalid_config, str(path), PipelineConfig(refuse_invalid_export=True))
        assert not path.exists()

    def test_refusal_does_not_block_preview(self, invalid_config):
        result = run_pass(invalid_config, pipeline_config=PipelineConfig(refuse_invalid_export=True))
        assert not result.valid
        assert len(result.parts) > 0


class TestSummary:
    def test_default_box(self, default_config):
        summary = run_pass(default_config).summary()
        assert summary["valid"] is True
        assert summary["errors"] == []
        assert summary["warnings"] == {}
        assert summary["outer_mm"] == pytest.approx([92.964, 143.764, 65.532])
        assert summary["parts"] == 2
        assert summary["faces"] > 0

    def test_invalid_box(self, invalid_config):
        summary = run_pass(invalid_config).summary()
        assert summary["valid"] is False
        assert summary["errors"] == ["Walls are too thick for the defined width/depth."]


class TestExportFilename:
    def test_inch_box(self, default_config):
        assert export_filename(default_config) == "box_3.50x5.50in.stl"

    def test_mm_box(self):
        config = BoxConfig(application_mode=ApplicationMode.MM, width=mm(100), depth=mm(150))
        assert export_filename(config) == "box_100x150mm.stl"

    def test_gridfinity_bin(self, gridfinity_bin_config):
        assert export_filename(gridfinity_bin_config) == "gridfinity_2x3x6U.stl"

    def test_gridfinity_frame(self):
        config = BoxConfig(
            application_mode=ApplicationMode.GRIDFINITY,
            gridfinity_part=GridfinityPart.FRAME,
            grid_width=4,
            grid_depth=4,
        )
        assert export_filename(config).startswith("gridfinity_4x4x")


class TestGeneratorSession:
    def test_update_releases_previous_build(self, default_config, gridfinity_bin_config):
        session = GeneratorSession()
        first = session.update(default_config)
        kept = list(first.parts)
        second = session.update(gridfinity_bin_config)
        assert session.current is second
        assert session.rebuilds == 2
        assert first.parts.released
        assert all(p.mesh is None for p in kept)
        assert not second.parts.released

    def test_update_never_exports(self, tmp_path, default_config):
        session = GeneratorSession()
        result = session.update(default_config)
        assert result.stl_path is None
        assert list(tmp_path.iterdir()) == []

    def test_export_current(self, tmp_path, gridfinity_bin_config):
        session = GeneratorSession()
        session.update(gridfinity_bin_config)
        path = session.export(str(tmp_path / export_filename(gridfinity_bin_config)))
        assert session.current.stl_path == path
        with open(path) as f:
            assert count_facets(f.read()) == session.current.parts.face_count()

    def test_export_before_build(self, tmp_path):
        with pytest.raises(ValueError):
            GeneratorSession().export(str(tmp_path / "x.stl"))

    def test_export_refused(self, tmp_path, invalid_config):
        session = GeneratorSession(PipelineConfig(refuse_invalid_export=True))
        session.update(invalid_config)
        with pytest.raises(ExportRefusedError):
            session.export(str(tmp_path / "bad.stl"))
