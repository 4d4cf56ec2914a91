"""
Catalogue of standard manufactured steel deck profiles and matching of
parsed deck properties against it.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .model import DeckProperties

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeckProfile:
    deck_type: str              # "VULCRAFT 3VL"
    rib_depth: float
    rib_width_top: float
    rib_spacing: float
    manufacturer: str

    @property
    def rib_width_bottom(self) -> float:
        return self.rib_spacing - self.rib_width_top


DECK_PROFILES: Tuple[DeckProfile, ...] = (
    DeckProfile("VULCRAFT 3VL", 3.0, 7.25, 12, "VULCRAFT"),
    DeckProfile("VULCRAFT 2VL", 2.0, 7.0, 12, "VULCRAFT"),
    DeckProfile("VULCRAFT 1.5VL", 1.5, 2.625, 6, "VULCRAFT"),
    DeckProfile("VULCRAFT 1.5VLR", 1.5, 3.875, 6, "VULCRAFT"),
    DeckProfile("VERCO W3 Formlok", 3.0, 6, 12, "VERCO"),
    DeckProfile("VERCO W2 Formlok", 2.0625, 6, 12, "VERCO"),
    DeckProfile("VERCO B Formlok", 1.5, 2.125, 6, "VERCO"),
    DeckProfile("VERCO BR Formlok", 1.5, 3.875, 6, "VERCO"),
    DeckProfile("VERCO N3 Formlok", 3.0, 3.125, 8, "VERCO"),
    DeckProfile("ASC 2WH", 2.125, 6, 12, "ASC"),
    DeckProfile("ASC 3WxH", 3.0, 6, 12, "ASC"),
    DeckProfile("ASC BH", 1.5, 2.141, 6, "ASC"),
    DeckProfile("ASC NH", 3.0, 3.125, 8, "ASC"),
    DeckProfile("NewMillennium 3.0CD", 3, 6, 12, "NewMillennium"),
    DeckProfile("NewMillennium 2.0CD", 2, 6, 12, "NewMillennium"),
    DeckProfile("NewMillennium 1.5CD", 1.5, 2.063, 6, "NewMillennium"),
    DeckProfile("USD 3.0 LokFloor", 3, 6, 12, "USD"),
    DeckProfile("USD 2.0 LokFloor", 2, 6, 12, "USD"),
    DeckProfile("USD 1.5 LokFloor", 1.5, 6, 12, "USD"),
    DeckProfile("USD 1.5 B-Lok", 1.5, 2.25, 6, "USD"),
    DeckProfile("Flat Slab", 0.0001, 1.0, 0.0001, "Generic"),
)

PREFERRED_MANUFACTURER = "VULCRAFT"


def _manufactured(profiles=DECK_PROFILES) -> List[DeckProfile]:
    return [p for p in profiles if p.manufacturer != "Generic"]


def find_by_type(deck_type: Optional[str], profiles=DECK_PROFILES) -> Optional[DeckProfile]:
    """Case-insensitive exact match on the profile name."""
    if not deck_type:
        return None
    wanted = deck_type.strip().lower()
    for profile in profiles:
        if profile.deck_type.lower() == wanted:
            return profile
    return None


def find_by_depth(rib_depth: Optional[float], tolerance: float = 0.25,
                  profiles=DECK_PROFILES) -> Optional[DeckProfile]:
    """Closest rib depth within tolerance; ties go to the preferred manufacturer."""
    if rib_depth is None:
        return None
    candidates = [p for p in _manufactured(profiles) if abs(p.rib_depth - rib_depth) <= tolerance]
    if not candidates:
        return None
    candidates.sort(key=lambda p: (abs(p.rib_depth - rib_depth), p.manufacturer != PREFERRED_MANUFACTURER))
    return candidates[0]


def match_score(profile: DeckProfile, rib_depth: float,
                rib_spacing: Optional[float] = None, rib_width_top: Optional[float] = None) -> float:
    """
    Lower is better. Depth differences weigh 10, spacing 2, top width 1;
    the preferred manufacturer gets one point off.
    """
    score = abs(profile.rib_depth - rib_depth) * 10
    if rib_spacing is not None and rib_spacing > 0:
        score += abs(profile.rib_spacing - rib_spacing) * 2
    if rib_width_top is not None and rib_width_top > 0:
        score += abs(profile.rib_width_top - rib_width_top)
    if profile.manufacturer == PREFERRED_MANUFACTURER:
        score -= 1
    return score


def find_best_match(rib_depth: Optional[float], rib_spacing: Optional[float] = None,
                    rib_width_top: Optional[float] = None, threshold: float = 5.0,
                    profiles=DECK_PROFILES) -> Optional[DeckProfile]:
    if rib_depth is None:
        return None
    scored = [(match_score(p, rib_depth, rib_spacing, rib_width_top), p) for p in _manufactured(profiles)]
    if not scored:
        return None
    best_score, best = min(scored, key=lambda item: item[0])
    return best if best_score < threshold else None


def resolve_deck_profile(
    deck: DeckProperties,
    declared_type: Optional[str] = None,
    *,
    threshold: float = 5.0,
    depth_tolerance: float = 0.25,
) -> Tuple[Optional[DeckProfile], Optional[str]]:
    """
    Find the catalogue profile for a parsed deck.

    Tries, in order: best fit on rib geometry, the declared type name, rib depth
    alone. Returns (profile, strategy) with strategy one of "geometry", "type",
    "depth", or (None, None) when nothing matches.
    """
    has_geometry = deck.rib_depth is not None and (
        deck.rib_spacing is not None or deck.rib_width_top is not None
    )
    if has_geometry:
        profile = find_best_match(deck.rib_depth, deck.rib_spacing, deck.rib_width_top, threshold)
        if profile is not None:
            return profile, "geometry"

    profile = find_by_type(declared_type)
    if profile is not None:
        return profile, "type"

    profile = find_by_depth(deck.rib_depth, depth_tolerance)
    if profile is not None:
        return profile, "depth"

    logger.debug("No catalogue deck for rib depth %s", deck.rib_depth)
    return None, None
