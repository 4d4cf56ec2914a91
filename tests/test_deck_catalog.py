"""Tests for the manufactured deck catalogue and its fallback chain."""

from __future__ import annotations

from e2k_codec.deck_catalog import (
    DECK_PROFILES,
    find_best_match,
    find_by_depth,
    find_by_type,
    match_score,
    resolve_deck_profile,
)
from e2k_codec.model import DeckProperties


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestLookups:
    def test_find_by_type_is_case_insensitive(self):
        profile = find_by_type("vulcraft 3vl")
        assert profile is not None
        assert profile.deck_type == "VULCRAFT 3VL"
        assert profile.rib_width_bottom == 12 - 7.25
        assert find_by_type("Unknown Deck") is None
        assert find_by_type(None) is None

    def test_find_by_depth_prefers_vulcraft_on_ties(self):
        profile = find_by_depth(2.0)
        assert profile.deck_type == "VULCRAFT 2VL"

    def test_find_by_depth_outside_tolerance(self):
        assert find_by_depth(5.0) is None
        assert find_by_depth(None) is None

    def test_generic_flat_slab_never_matched_by_geometry(self):
        assert any(p.manufacturer == "Generic" for p in DECK_PROFILES)
        assert find_best_match(0.0001, 0.0001, 1.0) is None

    def test_match_score(self):
        vulcraft = find_by_type("VULCRAFT 3VL")
        verco = find_by_type("VERCO W3 Formlok")
        assert match_score(vulcraft, 3.0, 12, 7.25) == -1
        assert match_score(verco, 3.0, 12, 7.25) == 1.25

    def test_best_match_threshold(self):
        assert find_best_match(3.0, 12, 7.25).deck_type == "VULCRAFT 3VL"
        assert find_best_match(3.0, 12, 7.25, threshold=-2) is None


# ---------------------------------------------------------------------------
# Fallback chain
# ---------------------------------------------------------------------------


class TestResolveDeckProfile:
    def test_geometry_wins_over_type_and_depth(self):
        deck = DeckProperties(rib_depth=3.0, rib_spacing=12, rib_width_top=7.25)
        profile, strategy = resolve_deck_profile(deck, declared_type="VERCO W3 Formlok")
        assert strategy == "geometry"
        assert profile.deck_type == "VULCRAFT 3VL"

    def test_type_when_no_geometry(self):
        profile, strategy = resolve_deck_profile(DeckProperties(), declared_type="ASC 2WH")
        assert (profile.deck_type, strategy) == ("ASC 2WH", "type")

    def test_type_when_geometry_scores_too_high(self):
        deck = DeckProperties(rib_depth=4.5, rib_spacing=24)
        profile, strategy = resolve_deck_profile(deck, declared_type="ASC NH")
        assert (profile.deck_type, strategy) == ("ASC NH", "type")

    def test_depth_alone(self):
        profile, strategy = resolve_deck_profile(DeckProperties(rib_depth=1.5))
        assert strategy == "depth"
        assert profile.deck_type == "VULCRAFT 1.5VL"

    def test_no_match(self):
        assert resolve_deck_profile(DeckProperties(rib_depth=10.0), declared_type="Deck1") == (None, None)
        assert resolve_deck_profile(DeckProperties()) == (None, None)
