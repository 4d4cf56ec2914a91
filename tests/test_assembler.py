"""Tests for the import pipeline: sample document, diagnostics, strict mode and failures."""

from __future__ import annotations

import pytest

from e2k_codec import parser
from e2k_codec.assembler import ImportResult, import_e2k, load_e2k_file
from e2k_codec.config import CodecSettings
from e2k_codec.diagnostics import ParseDiagnostics
from e2k_codec.errors import MalformedSection, OrchestrationFailure, UnresolvedReference
from e2k_codec.ids import IdAllocator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _import(text: str, **settings) -> ImportResult:
    return import_e2k(text, settings=CodecSettings(**settings), ids=IdAllocator())


def _level_names(result: ImportResult) -> dict:
    return {level.id: level.name for level in result.model.layout.levels}


# ---------------------------------------------------------------------------
# Sample document
# ---------------------------------------------------------------------------


class TestSampleImport:
    def test_clean_diagnostics(self, imported: ImportResult):
        assert imported.diagnostics.is_clean

    def test_metadata(self, imported: ImportResult):
        meta = imported.model.metadata
        assert (meta.units.force, meta.units.length) == ("KIP", "IN")
        assert meta.project_info.program == "ETABS"
        assert meta.project_info.title1 == "Acme Structural"
        assert meta.project_info.project_name == "Imported from E2K"

    def test_entity_counts(self, imported: ImportResult):
        model = imported.model
        assert set(model.properties.materials) == {"A992Fy50", "4000Psi"}
        assert set(model.properties.frame_properties) == {"W14X30", "WT5X8.5", "C24X24"}
        assert set(model.properties.floor_properties) == {"Slab1", "Deck1"}
        assert set(model.properties.wall_properties) == {"Wall1"}
        assert [grid.name for grid in model.layout.grids] == ["A", "B", "1"]
        assert len(model.topology.points) == 4
        assert len(model.topology.line_assignments) == 4
        assert len(model.topology.area_assignments) == 3

    def test_levels(self, imported: ImportResult):
        levels = imported.model.layout.levels
        assert [(lv.name, lv.elevation) for lv in levels] == [("2", 312), ("1", 168), ("Base", 0)]
        assert [ft.name for ft in imported.model.layout.floor_types] == ["1"]
        assert levels[0].floor_type_id == levels[1].floor_type_id

    def test_elements(self, imported: ImportResult):
        elements = imported.model.elements
        assert len(elements.beams) == 2
        assert len(elements.columns) == 1
        assert len(elements.braces) == 1
        assert len(elements.walls) == 1
        assert len(elements.floors) == 2
        assert elements.openings == []
        assert len(elements.joints) == 1

    def test_joist_flag_follows_release(self, imported: ImportResult):
        names = _level_names(imported)
        joists = {names[beam.level_id]: beam.is_joist for beam in imported.model.elements.beams}
        assert joists == {"2": False, "1": True}
        story1_beam = next(b for b in imported.model.elements.beams if names[b.level_id] == "1")
        assert story1_beam.modifiers.i33 == 0.5

    def test_element_modifiers_are_copies(self, imported: ImportResult):
        names = _level_names(imported)
        beam = next(b for b in imported.model.elements.beams if names[b.level_id] == "1")
        record = imported.model.topology.line_assignments[("B1", "Story1")]
        assert beam.modifiers == record.modifiers
        assert beam.modifiers is not record.modifiers
        beam.modifiers.i33 = 0.25
        assert record.modifiers.i33 == 0.5

    def test_deck_gage(self, imported: ImportResult):
        assert imported.model.properties.floor_properties["Deck1"].deck.gage == 22

    def test_column_spans_level_below(self, imported: ImportResult):
        names = _level_names(imported)
        column = imported.model.elements.columns[0]
        assert (names[column.base_level_id], names[column.top_level_id]) == ("Base", "1")
        assert column.orientation == 90
        assert column.is_lateral is True
        assert column.frame_properties_id == imported.model.properties.frame_properties["C24X24"].id

    def test_wall_uses_two_distinct_points(self, imported: ImportResult):
        wall = imported.model.elements.walls[0]
        assert wall.points == [(0, 0), (360, 0)]
        assert wall.wall_properties_id == imported.model.properties.wall_properties["Wall1"].id

    def test_floor_links(self, imported: ImportResult):
        model = imported.model
        names = _level_names(imported)
        floors = {names[f.level_id]: f for f in model.elements.floors}
        assert floors["2"].floor_properties_id == model.properties.floor_properties["Deck1"].id
        assert floors["1"].floor_properties_id == model.properties.floor_properties["Slab1"].id
        assert floors["1"].diaphragm_id == model.properties.diaphragms["D1"].id
        assert floors["1"].surface_load_id == model.loads.surface_loads["Office"].id
        assert floors["2"].surface_load_id is None

    def test_joint_on_base(self, imported: ImportResult):
        joint = imported.model.elements.joints[0]
        assert joint.point == (0, 0, 0)
        assert joint.restraint == "UX UY UZ RX RY RZ"

    def test_unmodelled_sections_kept_verbatim(self, imported: ImportResult):
        raw = imported.model.raw_sections
        assert set(raw) == {"MASS SOURCE", "LOAD CASES"}
        assert raw["LOAD CASES"].startswith('  LOADCASE "Dead"')


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class TestDiagnostics:
    def test_unknown_story_is_reported(self, sample_text: str):
        text = sample_text.replace(
            '$ AREA ASSIGNS', '  LINEASSIGN  "B1"  "Story9"  SECTION "W14X30"\n\n$ AREA ASSIGNS')
        result = _import(text)
        refs = [(r.kind, r.name) for r in result.diagnostics.unresolved_references]
        assert refs == [("level", "Story9")]
        assert len(result.model.elements.beams) == 2

    def test_malformed_line_is_skipped(self, sample_text: str):
        text = sample_text.replace('  POINT "4"  0  240', '  POINT "4"  0  240\n  POINT "5"  x  y')
        result = _import(text)
        assert result.diagnostics.skipped_count == 1
        assert result.diagnostics.skipped_lines[0].section == "POINT COORDINATES"
        assert "5" not in result.model.topology.points

    def test_counts_by_section(self):
        diagnostics = ParseDiagnostics()
        diagnostics.skip("POINT COORDINATES", 3, '  POINT "5"  x  y\n')
        diagnostics.skip("POINT COORDINATES", 4, 'POINT "6"')
        diagnostics.unresolved("material", "A36", referenced_from="W8X10", section="FRAME SECTIONS")
        diagnostics.unresolved("level", "Story9")
        assert diagnostics.skipped_lines[0].text == 'POINT "5"  x  y'
        assert diagnostics.by_section() == {"POINT COORDINATES": 2, "FRAME SECTIONS": 1, "?": 1}
        assert (diagnostics.skipped_count, diagnostics.unresolved_count) == (2, 2)

    def test_empty_text(self):
        result = _import("")
        assert result.diagnostics.is_clean
        assert result.model.layout.levels == []
        assert result.model.raw_sections == {}


class TestStrictMode:
    def test_malformed_line_raises(self, sample_text: str):
        text = sample_text.replace('  POINT "4"  0  240', '  POINT "4"  0  240\n  POINT "5"  x  y')
        with pytest.raises(MalformedSection) as excinfo:
            _import(text, strict=True)
        assert excinfo.value.section == "POINT COORDINATES"

    def test_unresolved_reference_raises(self, sample_text: str):
        text = sample_text.replace('SECTION "WT5X8.5"', 'SECTION "WT9X99"')
        with pytest.raises(UnresolvedReference) as excinfo:
            _import(text, strict=True)
        assert excinfo.value.name == "WT9X99"

    def test_clean_document_passes(self, sample_text: str):
        assert _import(sample_text, strict=True).diagnostics.is_clean


# ---------------------------------------------------------------------------
# Failures and file access
# ---------------------------------------------------------------------------


class TestOrchestrationFailure:
    def test_stage_and_cause(self, sample_text: str, monkeypatch: pytest.MonkeyPatch):
        def boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(parser, "parse_materials", boom)
        with pytest.raises(OrchestrationFailure) as excinfo:
            _import(sample_text)
        assert excinfo.value.stage == "materials"
        assert str(excinfo.value) == "Error importing from E2K: boom"
        assert isinstance(excinfo.value.__cause__, RuntimeError)


class TestLoadFile:
    def test_reads_file(self, tmp_path, sample_text: str):
        path = tmp_path / "sample.e2k"
        path.write_text(sample_text, encoding="utf-8")
        result = load_e2k_file(path, settings=CodecSettings(), ids=IdAllocator())
        assert len(result.model.elements.beams) == 2

    def test_tolerates_stray_bytes(self, tmp_path, sample_text: str):
        path = tmp_path / "sample.e2k"
        path.write_bytes(sample_text.encode("utf-8") + b"\xff\xfe")
        result = load_e2k_file(str(path), settings=CodecSettings(), ids=IdAllocator())
        assert "MASS SOURCE" in result.model.raw_sections

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_e2k_file(tmp_path / "missing.e2k", settings=CodecSettings())
