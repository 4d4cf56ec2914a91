"""Tests for comparing two structural models."""

from __future__ import annotations

import copy

from e2k_codec.assembler import ImportResult, import_e2k
from e2k_codec.config import CodecSettings
from e2k_codec.diffing import compare_models
from e2k_codec.ids import IdAllocator
from e2k_codec.model import Material


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _copy(result: ImportResult):
    return copy.deepcopy(result.model)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestCompareModels:
    def test_identical(self, imported: ImportResult):
        assert compare_models(imported.model, _copy(imported)).is_empty

    def test_ids_are_ignored(self, imported: ImportResult, sample_text: str):
        again = import_e2k(sample_text, settings=CodecSettings(), ids=IdAllocator())
        assert again.model.properties.materials["A992Fy50"].id != imported.model.properties.materials["A992Fy50"].id
        assert compare_models(imported.model, again.model).is_empty

    def test_modified_field(self, imported: ImportResult):
        new = _copy(imported)
        new.properties.materials["A992Fy50"].Fy = 55
        diff = compare_models(imported.model, new)
        assert len(diff.modified) == 1
        modified = diff.modified[0]
        assert (modified.object_type, modified.key) == ("material", "A992Fy50")
        assert [(c.field, c.old, c.new) for c in modified.changes] == [("Fy", 50, 55)]

    def test_numeric_tolerance(self, imported: ImportResult):
        new = _copy(imported)
        new.properties.materials["A992Fy50"].Fy = 50.0004
        assert compare_models(imported.model, new).is_empty
        assert not compare_models(imported.model, new, numeric_tol={"Fy": 1e-6}).is_empty

    def test_added_and_removed(self, imported: ImportResult):
        new = _copy(imported)
        new.properties.materials["A36"] = Material(name="A36", kind="Steel", Fy=36, id="MAT-x")
        new.layout.levels = new.layout.levels[:-1]
        diff = compare_models(imported.model, new)
        assert [(a.object_type, a.key) for a in diff.added] == [("material", "A36")]
        assert "id" not in diff.added[0].new_data
        assert diff.added[0].new_data["Fy"] == 36
        assert [(r.object_type, r.key) for r in diff.removed] == [("level", "Base")]

    def test_assignment_keys(self, imported: ImportResult):
        new = _copy(imported)
        new.topology.line_assignments[("B1", "Story1")].modifiers.i33 = 0.35
        diff = compare_models(imported.model, new)
        assert [(m.object_type, m.key) for m in diff.modified] == [("line_assignment", "B1/Story1")]
        assert diff.modified[0].changes[0].field == "modifiers"

    def test_nested_deck_change(self, imported: ImportResult):
        new = _copy(imported)
        new.properties.floor_properties["Deck1"].deck.rib_spacing = 6
        diff = compare_models(imported.model, new)
        assert [(m.key, [c.field for c in m.changes]) for m in diff.modified] == [("Deck1", ["deck"])]

    def test_raw_section_lines(self, imported: ImportResult):
        new = _copy(imported)
        new.raw_sections["MASS SOURCE"] += '\n  MASSSOURCE  "MsSrc2"'
        del new.raw_sections["LOAD CASES"]
        diff = compare_models(imported.model, new)
        assert [(r.object_type, r.key) for r in diff.removed] == [("raw_section", "LOAD CASES")]
        changes = diff.modified[0].changes
        assert (diff.modified[0].key, changes[0].field) == ("MASS SOURCE", "lines_added")
        assert changes[0].new == ['MASSSOURCE  "MsSrc2"']
