"""Tests for model -> E2K text: number formatting, section bodies and the full document."""

from __future__ import annotations

import math
from datetime import datetime

import pytest

from e2k_codec.assembler import ImportResult, import_e2k
from e2k_codec.config import CodecSettings
from e2k_codec.diffing import compare_models
from e2k_codec.errors import OrchestrationFailure
from e2k_codec.ids import IdAllocator
from e2k_codec.model import (
    FloorProperties, Level, LoadDefinition, StructuralModel, SurfaceLoad, WallProperties,
)
from e2k_codec.sections import SECTION_ORDER, split_sections
from e2k_codec.serializer import (
    FOOTER,
    export_e2k,
    format_number,
    save_e2k_file,
    serialize_deck_properties,
    serialize_load_cases,
    serialize_load_patterns,
    serialize_stories,
    serialize_surface_loads,
    serialize_wall_properties,
)


SAVED_AT = datetime(2024, 1, 2, 10, 0, 0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _export(model: StructuralModel, **kwargs) -> str:
    kwargs.setdefault("settings", CodecSettings())
    return export_e2k(model, saved_at=SAVED_AT, **kwargs)


def _reimport(text: str) -> ImportResult:
    return import_e2k(text, settings=CodecSettings(), ids=IdAllocator())


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


class TestFormatNumber:
    @pytest.mark.parametrize(
        "value, expected",
        [(12.0, "12"), (12, "12"), (0.1, "0.1"), (-0.0, "0"), (6.5e-06, "6.5e-06"), (3604.997, "3604.997")],
    )
    def test_shortest_text(self, value, expected: str):
        assert format_number(value) == expected

    @pytest.mark.parametrize(
        "value, precision, expected",
        [(1.23456, 2, "1.23"), (2.5, 3, "2.5"), (3.0, 2, "3"), (-0.0001, 2, "0"), (7.0, 0, "7")],
    )
    def test_fixed_precision(self, value: float, precision: int, expected: str):
        assert format_number(value, precision) == expected

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_rejected(self, value: float):
        with pytest.raises(ValueError):
            format_number(value)


# ---------------------------------------------------------------------------
# Section bodies
# ---------------------------------------------------------------------------


class TestSectionBodies:
    def test_stories_top_down(self):
        levels = [
            Level(name="Base", elevation=0.0, source_name="Base"),
            Level(name="2", elevation=300.0, height=144.0, similar_to="Story1"),
            Level(name="1", elevation=156.0, height=156.0, is_master_story=True, source_name="Story1"),
        ]
        assert serialize_stories(levels, format_number).splitlines() == [
            '  STORY "Story2"  HEIGHT 144  SIMILARTO "Story1"',
            '  STORY "Story1"  HEIGHT 156  MASTERSTORY "Yes"',
            '  STORY "Base"  ELEV 0',
        ]

    def test_stories_keep_absolute_elevations(self):
        levels = [
            Level(name="Roof", elevation=300.0, similar_to="L2", source_name="Roof"),
            Level(name="L2", elevation=150.0, source_name="L2"),
            Level(name="Base", elevation=-6.0, is_master_story=True, source_name="Base"),
        ]
        assert serialize_stories(levels, format_number).splitlines() == [
            '  STORY "Roof"  ELEV 300  SIMILARTO "L2"',
            '  STORY "L2"  ELEV 150',
            '  STORY "Base"  ELEV -6  MASTERSTORY "Yes"',
        ]

    def test_wall_modifiers_are_fixed(self):
        walls = [WallProperties(name="W1", material="4000Psi", thickness=10, f11=0.35)]
        lines = serialize_wall_properties(walls, format_number).splitlines()
        assert lines[0] == '  SHELLPROP "W1"  PROPTYPE  "Wall"  MATERIAL "4000Psi"  MODELINGTYPE "ShellThin"  WALLTHICKNESS 10'
        assert lines[1] == '  SHELLPROP "W1"  F11MOD 0.5 F22MOD 0.5 M11MOD 0.01 M22MOD 0.01'

    def test_deck_defaults_fill_missing_values(self):
        deck = FloorProperties(name="D", kind="UnfilledDeck", material="4000Psi")
        line = serialize_deck_properties([deck], format_number)
        assert 'DECKTYPE "Unfilled"' in line
        assert 'CONCMATERIAL "4000Psi"' in line
        assert 'DECKMATERIAL ""' in line
        assert "DECKSLABDEPTH 3.5" in line
        assert "DECKRIBSPACING 12" in line
        assert "SHEARSTUDFU 65000" in line

    def test_slabs_not_written_as_decks(self):
        assert serialize_deck_properties([FloorProperties(name="S", kind="Slab")], format_number) == ""

    def test_surface_load_defaults_for_missing_side(self):
        loads = [SurfaceLoad(name="Roof", dead_pattern="SDL", dead_value=0.02)]
        assert serialize_surface_loads(loads, format_number).splitlines() == [
            '  SHELLUNIFORMLOADSET "Roof"  LOADPAT "SDL"  VALUE 0.02',
            '  SHELLUNIFORMLOADSET "Roof"  LOADPAT "LIVE"  VALUE 0.2777778',
        ]

    def test_load_patterns(self):
        patterns = [
            LoadDefinition(name="T", type="Thermal"),
            LoadDefinition(name="EQX", type="Seismic", seismic_code="ASCE 7-16", seismic_direction="X"),
        ]
        assert serialize_load_patterns(patterns, format_number).splitlines() == [
            '  LOADPATTERN "T"  TYPE  "Temperature"  SELFWEIGHT  0',
            '  LOADPATTERN "EQX"  TYPE  "Seismic"  SELFWEIGHT  0',
            '  SEISMIC "EQX"  "ASCE 7-16"  DIR "X"',
        ]

    def test_default_load_cases(self):
        lines = serialize_load_cases([LoadDefinition(name="Dead", type="Dead")]).splitlines()
        assert lines[0].startswith('  LOADCASE "Modal"')
        assert lines[1:] == [
            '  LOADCASE "Dead"  TYPE  "Linear Static"  INITCOND  "PRESET"',
            '  LOADCASE "Dead"  LOADPAT  "Dead"  SF  1',
        ]


# ---------------------------------------------------------------------------
# Full document
# ---------------------------------------------------------------------------


class TestExport:
    def test_preamble_and_footer(self, imported: ImportResult):
        text = _export(imported.model)
        assert text.startswith("$ File Imported_from_E2K.e2k saved 01/02/2024 10:00:00\n\n")
        assert text.endswith("\n\n" + FOOTER + "\n")
        assert text.count(FOOTER) == 1

    def test_sections_in_canonical_order(self, imported: ImportResult):
        names = list(split_sections(_export(imported.model)))
        assert names[-1] == "END OF MODEL FILE"
        known = [name for name in names if name in SECTION_ORDER]
        assert known == sorted(known, key=SECTION_ORDER.index)
        unknown = names[len(known):-1]
        assert set(unknown) == {"SHELL UNIFORM LOAD SETS", "SHELL OBJECT LOADS"}

    def test_raw_sections_reemitted(self, imported: ImportResult):
        sections = split_sections(_export(imported.model))
        assert sections["MASS SOURCE"] == imported.model.raw_sections["MASS SOURCE"].strip()
        assert sections["LOAD CASES"].startswith('LOADCASE "Dead"')
        assert 'LOADCASE "Modal"' not in sections["LOAD CASES"]

    def test_generated_load_cases_without_raw_section(self, imported: ImportResult):
        imported.model.raw_sections.pop("LOAD CASES")
        sections = split_sections(_export(imported.model))
        assert sections["LOAD CASES"].startswith('LOADCASE "Modal"')

    def test_empty_model_has_metadata_only(self):
        names = list(split_sections(_export(StructuralModel())))
        assert names == ["PROGRAM INFORMATION", "CONTROLS", "PROJECT INFORMATION", "LOG", "END OF MODEL FILE"]

    def test_company_name_fallback(self):
        text = _export(StructuralModel(), settings=CodecSettings(company_name="Acme"))
        sections = split_sections(text)
        assert 'TITLE1  "Acme"' in sections["CONTROLS"]
        assert 'COMPANYNAME "Acme"' in sections["PROJECT INFORMATION"]

    def test_number_precision(self, imported: ImportResult):
        imported.model.topology.points["2"].x = 360.123456
        text = _export(imported.model, settings=CodecSettings(number_precision=2))
        assert 'POINT "2"  360.12  0' in text

    def test_custom_section_overrides_generated(self, imported: ImportResult):
        custom = '$ GRIDS\nGRID "G1"  LABEL "Z"  DIR "Y"  COORD 12\n'
        text = _export(imported.model, custom=custom)
        sections = split_sections(text)
        assert sections["GRIDS"] == 'GRID "G1"  LABEL "Z"  DIR "Y"  COORD 12'
        assert text.startswith("$ File ")
        assert text.count(FOOTER) == 1

    def test_non_finite_value_fails_in_serialize(self, imported: ImportResult):
        imported.model.topology.points["1"].x = float("nan")
        with pytest.raises(OrchestrationFailure) as excinfo:
            _export(imported.model)
        assert excinfo.value.stage == "serialize"
        assert str(excinfo.value).startswith("Error exporting to E2K: ")
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_save_file(self, imported: ImportResult, tmp_path):
        path = save_e2k_file(imported.model, tmp_path / "out.e2k", settings=CodecSettings())
        assert path.exists()
        assert _reimport(path.read_text(encoding="utf-8")).diagnostics.is_clean


class TestRoundTrip:
    def test_only_wall_modifiers_change(self, imported: ImportResult):
        second = _reimport(_export(imported.model))
        assert second.diagnostics.is_clean

        diff = compare_models(imported.model, second.model)
        assert diff.added == []
        assert diff.removed == []
        assert [(m.object_type, m.key) for m in diff.modified] == [("wall_property", "Wall1")]
        assert {c.field for c in diff.modified[0].changes} == {"f11", "f22", "m11", "m22"}

    def test_second_round_trip_is_stable(self, imported: ImportResult):
        second = _reimport(_export(imported.model))
        third = _reimport(_export(second.model))
        assert compare_models(second.model, third.model).is_empty

    def test_elements_rebuilt(self, imported: ImportResult):
        elements = _reimport(_export(imported.model)).model.elements
        assert (len(elements.beams), len(elements.columns), len(elements.walls), len(elements.floors)) == (2, 1, 1, 2)

    def test_absolute_story_elevations(self, sample_text: str):
        text = (
            sample_text
            .replace('STORY "Story2"  HEIGHT 144  SIMILARTO "Story1"', 'STORY "Story2"  ELEV 312  SIMILARTO "Story1"')
            .replace('STORY "Story1"  HEIGHT 168  MASTERSTORY "Yes"', 'STORY "Story1"  ELEV 168  MASTERSTORY "Yes"')
        )
        first = _reimport(text)
        assert [lv.height for lv in first.model.layout.levels] == [None, None, None]
        second = _reimport(_export(first.model))
        diff = compare_models(first.model, second.model)
        assert [(m.object_type, m.key) for m in diff.modified] == [("wall_property", "Wall1")]

    def test_steel_section_with_unknown_material(self, sample_text: str):
        text = sample_text.replace(
            'SHAPE "WT5X8.5"', 'SHAPE "WT5X8.5"\n  FRAMESECTION  "MC8X20"  MATERIAL "Gr50"  SHAPE "MC8X20"')
        first = _reimport(text)
        second = _reimport(_export(first.model))
        channel = second.model.properties.frame_properties["MC8X20"]
        assert (channel.kind, channel.steel_shape) == ("Steel", "MC")
        assert channel.dimensions == {}
