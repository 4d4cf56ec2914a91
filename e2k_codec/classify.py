"""
Name-based classification rules.

Each rule list is evaluated top to bottom and the first matching predicate
decides the result, so the order of entries is part of the contract: more
specific designations (WT, ST, MC, HP) sit above the shorter prefixes they
would otherwise be mistaken for (W, C).
"""
import re
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")
Predicate = Callable[[str], bool]
Rule = Tuple[Predicate, T]


def first_match(rules: Sequence[Rule], value: str, default: T) -> T:
    for predicate, result in rules:
        if predicate(value):
            return result
    return default


def startswith(prefix: str) -> Predicate:
    prefix = prefix.upper()
    return lambda value: value.upper().startswith(prefix)


def designation(prefix: str) -> Predicate:
    """Prefix directly followed by a digit, as in W14X30 or L4X4X.5."""
    pattern = re.compile(rf"^{re.escape(prefix)}\d", re.IGNORECASE)
    return lambda value: bool(pattern.match(value.strip()))


def contains(token: str) -> Predicate:
    token = token.upper()
    return lambda value: token in value.upper()


def equals(token: str) -> Predicate:
    token = token.upper()
    return lambda value: value.strip().upper() == token


# --- Steel vs concrete (used when the material name does not resolve) ---
# Evaluated against "shape|name|material".

def any_part(predicate: Predicate) -> Predicate:
    return lambda value: any(predicate(part) for part in value.split("|"))


# Specific designations ahead of the shorter prefixes they start with
STEEL_DESIGNATIONS = ("WT", "ST", "MC", "HP", "W", "HSS", "PIPE", "C", "L")

FRAME_KIND_RULES: List[Rule] = [
    *[(any_part(designation(prefix)), "Steel") for prefix in STEEL_DESIGNATIONS],
    (contains("STEEL"), "Steel"),
    (contains("A992"), "Steel"),
]


def infer_frame_kind(shape: Optional[str], name: Optional[str], material: Optional[str] = None) -> str:
    key = "|".join(part or "" for part in (shape, name, material))
    return first_match(FRAME_KIND_RULES, key, "Concrete")


# --- Steel shape sub-type ---

STEEL_SHAPE_RULES: List[Rule] = [
    # ETABS generic shape descriptors
    (equals("Steel I/Wide Flange"), "W"),
    (equals("I/Wide Flange"), "W"),
    (equals("HSS/Tube"), "HSS"),
    (equals("Tube"), "HSS"),
    (equals("Pipe"), "PIPE"),
    (equals("Channel"), "C"),
    (equals("Angle"), "L"),
    (equals("Tee"), "WT"),
    # Section designations, specific before general
    (startswith("WT"), "WT"),
    (startswith("ST"), "ST"),
    (startswith("MC"), "MC"),
    (startswith("HP"), "HP"),
    (startswith("HSS"), "HSS"),
    (startswith("PIPE"), "PIPE"),
    (startswith("W"), "W"),
    (startswith("C"), "C"),
    (startswith("L"), "L"),
]


def classify_steel_shape(value: Optional[str]) -> str:
    return first_match(STEEL_SHAPE_RULES, value or "", "W")


# --- Concrete shape sub-type ---

CONCRETE_SHAPE_RULES: List[Rule] = [
    (contains("RECTANGULAR"), "Rectangular"),
    (contains("CIRCULAR"), "Circular"),
    (contains("CIRCLE"), "Circular"),
    (contains("T-SHAPED"), "TShaped"),
    (contains("TEE"), "TShaped"),
    (contains("L-SHAPED"), "LShaped"),
    (contains("L-SECTION"), "LShaped"),
]


def classify_concrete_shape(value: Optional[str]) -> str:
    return first_match(CONCRETE_SHAPE_RULES, value or "", "Custom")


# --- Beams ---

JOIST_RELEASE_RULES: List[Rule] = [
    (contains("M2I M2J M3I M3J"), True),
    (contains("PINNED"), True),
]

JOIST_SECTION_RULES: List[Rule] = [
    (contains("JOIST"), True),
    (contains("COMP"), True),
]


def is_joist(release: Optional[str], section: Optional[str]) -> bool:
    return (first_match(JOIST_RELEASE_RULES, release or "", False)
            or first_match(JOIST_SECTION_RULES, section or "", False))


# --- Load patterns ---

LIVE_PATTERN_RULES: List[Rule] = [
    (contains("LIVE"), True),
    (equals("LL"), True),
    (contains("REDUCIBLE"), True),
]


def is_live_pattern(name: str) -> bool:
    return first_match(LIVE_PATTERN_RULES, name, False)


LOAD_TYPES = {
    "dead": "Dead",
    "superdead": "Dead",
    "live": "Live",
    "reducible live": "Live",
    "snow": "Snow",
    "wind": "Wind",
    "seismic": "Seismic",
    "quake": "Seismic",
    "temperature": "Thermal",
    "thermal": "Thermal",
}


def normalize_load_type(value: str) -> str:
    """Map an ETABS pattern type to Dead/Live/Snow/Wind/Seismic/Thermal, else Other."""
    return LOAD_TYPES.get(value.strip().lower(), "Other")


# --- Deck gage from sheet thickness (in) ---

GAGE_TABLE: List[Tuple[float, int]] = [
    (0.06, 16),
    (0.048, 18),
    (0.036, 20),
    (0.03, 22),
    (0.027, 24),
    (0.024, 26),
    (0.02, 28),
]


def gage_for_thickness(thickness: float) -> int:
    for minimum, gage in GAGE_TABLE:
        if thickness >= minimum:
            return gage
    return 30
