"""
Entity parsers for E2K sections.

Every parse_* function takes the body text of its section(s) plus any
already-built name tables it needs, and returns entities keyed by source name.
A later line with the same name replaces the earlier entity. Lines that match
none of a parser's grammars are skipped and recorded in the diagnostics.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, TypeVar

from .classify import (
    classify_concrete_shape, classify_steel_shape, first_match, gage_for_thickness,
    STEEL_SHAPE_RULES, infer_frame_kind, is_live_pattern, normalize_load_type,
)
from .deck_catalog import resolve_deck_profile
from .diagnostics import ParseDiagnostics
from .ids import IdAllocator
from .model import (
    AreaAssignment, AreaConnectivity, DeckProperties, Diaphragm, FloorProperties, FloorType,
    FrameProperties, Grid, Level, LineAssignment, LineConnectivity, LoadCombination,
    LoadComboTerm, LoadDefinition, Material, Point, PointAssignment, ProjectInfo, SurfaceLoad,
    Units, WallProperties,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Bare decimal token with optional sign and exponent: 29000, -1.5, .25, 8.68E-05
NUM = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[Ee][+-]?\d+)?"


@dataclass
class ParseContext:
    """Shared per-import state: id source, diagnostics sink and lookup mode."""
    ids: IdAllocator = field(default_factory=IdAllocator)
    diagnostics: ParseDiagnostics = field(default_factory=ParseDiagnostics)
    case_insensitive: bool = False
    # id(table) -> (size when built, lower-cased name -> key)
    _folded: Dict[int, Tuple[int, Dict[str, str]]] = field(default_factory=dict, init=False, repr=False)

    def _folded_keys(self, table: Mapping[str, T]) -> Dict[str, str]:
        cached = self._folded.get(id(table))
        if cached is None or cached[0] != len(table):
            index: Dict[str, str] = {}
            for key in table:
                index.setdefault(key.lower(), key)
            cached = (len(table), index)
            self._folded[id(table)] = cached
        return cached[1]

    def lookup(self, table: Mapping[str, T], name: Optional[str]) -> Optional[T]:
        if not name:
            return None
        if name in table:
            return table[name]
        if not self.case_insensitive:
            return None
        key = self._folded_keys(table).get(name.lower())
        if key is None or key not in table:
            # table changed since the index was built
            self._folded.pop(id(table), None)
            key = self._folded_keys(table).get(name.lower())
        return table[key] if key is not None else None

    def resolve(
        self,
        table: Mapping[str, T],
        name: Optional[str],
        kind: str,
        referenced_from: Optional[str] = None,
        section: Optional[str] = None,
    ) -> Optional[T]:
        """lookup() that records a miss as an unresolved reference."""
        value = self.lookup(table, name)
        if value is None and name:
            self.diagnostics.unresolved(kind, name, referenced_from=referenced_from, section=section)
        return value


# --- Line helpers ---

def iter_lines(text: Optional[str]) -> Iterator[Tuple[int, str]]:
    """Yield (line_number, stripped_line) for non-blank lines."""
    for number, raw in enumerate((text or "").splitlines(), 1):
        line = raw.strip()
        if line:
            yield number, line


def keyword_of(line: str) -> str:
    return line.split(None, 1)[0].upper()


def extract_quoted_string(s: str) -> Optional[str]:
    """Extract first quoted string from a line."""
    match = re.search(r'"([^"]*)"', s)
    return match.group(1) if match else None


def extract_quoted_strings(s: str) -> List[str]:
    return re.findall(r'"([^"]*)"', s)


def _unquoted(s: str) -> str:
    # Blank out quoted text so keywords inside names are not picked up
    return re.sub(r'"[^"]*"', '""', s)


def extract_numeric_value(s: str, key: str) -> Optional[float]:
    """Extract numeric value after a key word."""
    pattern = rf"\b{re.escape(key)}\s+({NUM})(?![\w.])"
    match = re.search(pattern, _unquoted(s), re.IGNORECASE)
    if match:
        try:
            return float(match.group(1))
        except ValueError:
            return None
    return None


def extract_keyword_string(s: str, key: str) -> Optional[str]:
    """Extract the quoted value after a key word: KEY "value"."""
    match = re.search(rf'\b{re.escape(key)}\s+"([^"]*)"', s, re.IGNORECASE)
    return match.group(1) if match else None


def _choice(value: Optional[str], options: Tuple[str, ...], default: str) -> str:
    if value:
        for option in options:
            if option.lower() == value.strip().lower():
                return option
    return default


# --- Metadata ---

def parse_units(controls_text: Optional[str]) -> Units:
    """Parse UNITS "force" "length" "temperature" from CONTROLS."""
    units = Units()
    for _, line in iter_lines(controls_text):
        match = re.match(r'^UNITS\s+"([^"]+)"\s+"([^"]+)"\s+"([^"]+)"', line, re.IGNORECASE)
        if match:
            units = Units(force=match.group(1), length=match.group(2), temperature=match.group(3))
    return units


def parse_project_info(
    program_text: Optional[str],
    controls_text: Optional[str],
    project_text: Optional[str],
) -> ProjectInfo:
    """Collect project metadata from PROGRAM INFORMATION, CONTROLS and PROJECT INFORMATION."""
    info = ProjectInfo()

    for _, line in iter_lines(program_text):
        match = re.match(r'^PROGRAM\s+"([^"]+)"(?:\s+VERSION\s+"([^"]+)")?', line, re.IGNORECASE)
        if match:
            info.program = match.group(1)
            info.program_version = match.group(2)

    for _, line in iter_lines(controls_text):
        keyword = keyword_of(line)
        if keyword == "TITLE1":
            info.title1 = extract_quoted_string(line)
        elif keyword == "TITLE2":
            info.title2 = extract_quoted_string(line)

    for _, line in iter_lines(project_text):
        company = extract_keyword_string(line, "COMPANYNAME")
        if company:
            info.company_name = company
        model_name = extract_keyword_string(line, "MODELNAME")
        if model_name:
            info.project_name = model_name

    return info


# --- Properties ---

MATERIAL_PRIMARY = re.compile(r'^MATERIAL\s+"([^"]+)"\s+TYPE\s+"([^"]+)"(?:\s+GRADE\s+"([^"]*)")?', re.IGNORECASE)
MATERIAL_ELASTIC = re.compile(
    rf'^MATERIAL\s+"([^"]+)"\s+SYMTYPE\s+"([^"]+)"(?:\s+E\s+({NUM}))?(?:\s+U\s+({NUM}))?(?:\s+A\s+({NUM}))?',
    re.IGNORECASE,
)
MATERIAL_STEEL = re.compile(rf'^MATERIAL\s+"([^"]+)"\s+FY\s+({NUM})(?:\s+FU\s+({NUM}))?', re.IGNORECASE)
MATERIAL_CONCRETE = re.compile(rf'^MATERIAL\s+"([^"]+)"\s+FC\s+({NUM})', re.IGNORECASE)


def parse_materials(text: Optional[str], ctx: Optional[ParseContext] = None) -> Dict[str, Material]:
    """
    Parse MATERIAL PROPERTIES.

    A primary line (TYPE/GRADE) creates the material; SYMTYPE/E/U/A lines and
    FY/FU (steel) or FC (concrete) lines only update a material whose primary
    line came first. Orphan secondary lines, and strength lines that do not fit
    the material kind, are dropped and reported.
    """
    ctx = ctx or ParseContext()
    section = "MATERIAL PROPERTIES"
    materials: Dict[str, Material] = {}

    for number, line in iter_lines(text):
        if keyword_of(line) != "MATERIAL":
            continue

        match = MATERIAL_PRIMARY.match(line)
        if match:
            name = match.group(1)
            kind = "Steel" if match.group(2).strip().lower() == "steel" else "Concrete"
            materials[name] = Material(
                name=name,
                kind=kind,
                grade=match.group(3),
                weight_per_volume=extract_numeric_value(line, "WEIGHTPERVOLUME"),
                id=ctx.ids.generate("material"),
            )
            continue

        name = extract_quoted_string(line)
        material = materials.get(name) if name else None

        match = MATERIAL_ELASTIC.match(line)
        if match:
            if material is None:
                ctx.diagnostics.skip(section, number, line, "no primary MATERIAL line")
                continue
            material.symmetry = _choice(match.group(2), ("Orthotropic", "Anisotropic"), "Isotropic")
            if match.group(3) is not None:
                material.E = float(match.group(3))
            if match.group(4) is not None:
                material.poisson = float(match.group(4))
            if match.group(5) is not None:
                material.thermal_coefficient = float(match.group(5))
            continue

        match = MATERIAL_STEEL.match(line)
        if match:
            if material is None:
                ctx.diagnostics.skip(section, number, line, "no primary MATERIAL line")
            elif material.kind == "Steel":
                material.Fy = float(match.group(2))
                if match.group(3) is not None:
                    material.Fu = float(match.group(3))
            else:
                ctx.diagnostics.skip(section, number, line, "strength line does not match material kind")
            continue

        match = MATERIAL_CONCRETE.match(line)
        if match:
            if material is None:
                ctx.diagnostics.skip(section, number, line, "no primary MATERIAL line")
            elif material.kind == "Concrete":
                material.fc = float(match.group(2))
            else:
                ctx.diagnostics.skip(section, number, line, "strength line does not match material kind")
            continue

        ctx.diagnostics.skip(section, number, line, "unsupported MATERIAL record")

    logger.debug("Parsed %d materials", len(materials))
    return materials


FRAMESECTION_LINE = re.compile(r'^FRAMESECTION\s+"([^"]+)"\s+MATERIAL\s+"([^"]*)"\s+SHAPE\s+"([^"]+)"(.*)$', re.IGNORECASE)

# Dimension token -> semantic name
DIMENSION_NAMES: Dict[str, str] = {
    "D": "depth",
    "B": "width",
    "TF": "flangeThickness",
    "TW": "webThickness",
    "T": "thickness",
    "T1": "thickness1",
    "T2": "thickness2",
    "OD": "diameter",
}


def parse_dimensions(rest: str) -> Dict[str, float]:
    """Map every `TOKEN number` pair to a dimension; unknown tokens are kept lower-cased."""
    dims: Dict[str, float] = {}
    for token, value in re.findall(rf"\b([A-Za-z][A-Za-z0-9]*)\s+({NUM})(?![\w.])", _unquoted(rest)):
        key = DIMENSION_NAMES.get(token.upper(), token.lower())
        dims[key] = float(value)
    return dims


def parse_frame_sections(
    text: Optional[str],
    materials: Mapping[str, Material],
    ctx: Optional[ParseContext] = None,
) -> Dict[str, FrameProperties]:
    """
    Parse FRAME SECTIONS.

    The material decides steel vs concrete when it resolves; otherwise the
    shape/name heuristic in classify.infer_frame_kind does.
    """
    ctx = ctx or ParseContext()
    section = "FRAME SECTIONS"
    frames: Dict[str, FrameProperties] = {}

    for number, line in iter_lines(text):
        if keyword_of(line) != "FRAMESECTION":
            continue
        match = FRAMESECTION_LINE.match(line)
        if not match:
            ctx.diagnostics.skip(section, number, line, "unsupported FRAMESECTION record")
            continue

        name, material_name, shape, rest = match.groups()
        material = ctx.resolve(materials, material_name, "material", referenced_from=name, section=section)
        kind = material.kind if material else infer_frame_kind(shape, name, material_name)

        frame = FrameProperties(
            name=name,
            material=material_name or None,
            kind=kind,
            shape=shape,
            dimensions=parse_dimensions(rest),
            material_id=material.id if material else None,
            id=ctx.ids.generate("frame_properties"),
        )
        if kind == "Steel":
            # Descriptor or designation in SHAPE first, then the section name
            frame.steel_shape = first_match(STEEL_SHAPE_RULES, shape, None) or classify_steel_shape(name)
        else:
            frame.concrete_shape = classify_concrete_shape(shape)
        frames[name] = frame

    logger.debug("Parsed %d frame sections", len(frames))
    return frames


SHELLPROP_LINE = re.compile(r'^SHELLPROP\s+"([^"]+)"\s+PROPTYPE\s+"([^"]+)"', re.IGNORECASE)

MODELING_TYPES = ("ShellThin", "ShellThick", "Membrane", "Layered")
SLAB_TYPES = ("Slab", "Drop", "Stiff", "Ribbed", "Waffle", "Mat", "Footing")

# DECK token -> DeckProperties field
DECK_NUMBERS: Dict[str, str] = {
    "DECKSLABDEPTH": "slab_depth",
    "DECKRIBDEPTH": "rib_depth",
    "DECKRIBWIDTHTOP": "rib_width_top",
    "DECKRIBWIDTHBOTTOM": "rib_width_bottom",
    "DECKRIBSPACING": "rib_spacing",
    "DECKSHEARTHICKNESS": "shear_thickness",
    "DECKUNITWEIGHT": "unit_weight",
    "SHEARSTUDDIAM": "stud_diameter",
    "SHEARSTUDHEIGHT": "stud_height",
    "SHEARSTUDFU": "stud_fu",
}


def _deck_kind(token: Optional[str]) -> Tuple[str, str]:
    """DECKTYPE token -> (FloorProperties.kind, DeckProperties.deck_type)."""
    value = (token or "").upper()
    if "UNFILLED" in value:
        return "UnfilledDeck", "Unfilled"
    if "SOLID" in value:
        return "SolidSlabDeck", "Filled"
    return "FilledDeck", "Filled"


def parse_floor_properties(
    slab_text: Optional[str],
    deck_text: Optional[str],
    materials: Mapping[str, Material],
    ctx: Optional[ParseContext] = None,
    *,
    deck_match_threshold: float = 5.0,
    deck_depth_tolerance: float = 0.25,
) -> Dict[str, FloorProperties]:
    """Parse SLAB PROPERTIES and DECK PROPERTIES into one name-keyed collection."""
    ctx = ctx or ParseContext()
    floors: Dict[str, FloorProperties] = {}

    for number, line in iter_lines(slab_text):
        if keyword_of(line) != "SHELLPROP":
            continue
        match = SHELLPROP_LINE.match(line)
        if not match or match.group(2).lower() != "slab":
            ctx.diagnostics.skip("SLAB PROPERTIES", number, line, "unsupported SHELLPROP record")
            continue

        name = match.group(1)
        material_name = extract_keyword_string(line, "MATERIAL")
        material = ctx.resolve(materials, material_name, "material", referenced_from=name,
                               section="SLAB PROPERTIES")
        floors[name] = FloorProperties(
            name=name,
            kind="Slab",
            thickness=extract_numeric_value(line, "SLABTHICKNESS"),
            material=material_name,
            modeling_type=_choice(extract_keyword_string(line, "MODELINGTYPE"), MODELING_TYPES, "ShellThin"),
            slab_type=_choice(extract_keyword_string(line, "SLABTYPE"), SLAB_TYPES, "Slab"),
            material_id=material.id if material else None,
            id=ctx.ids.generate("floor_properties"),
        )

    for number, line in iter_lines(deck_text):
        if keyword_of(line) != "SHELLPROP":
            continue
        match = SHELLPROP_LINE.match(line)
        if not match or match.group(2).lower() != "deck":
            ctx.diagnostics.skip("DECK PROPERTIES", number, line, "unsupported SHELLPROP record")
            continue

        name = match.group(1)
        kind, deck_type = _deck_kind(extract_keyword_string(line, "DECKTYPE"))
        deck = DeckProperties(
            deck_type=deck_type,
            concrete_material=extract_keyword_string(line, "CONCMATERIAL"),
            deck_material=extract_keyword_string(line, "DECKMATERIAL"),
        )
        for token, attr in DECK_NUMBERS.items():
            setattr(deck, attr, extract_numeric_value(line, token))
        if deck.shear_thickness is not None:
            deck.gage = gage_for_thickness(deck.shear_thickness)

        material = ctx.resolve(materials, deck.concrete_material, "material", referenced_from=name,
                               section="DECK PROPERTIES")
        if deck.deck_material:
            ctx.resolve(materials, deck.deck_material, "material", referenced_from=name,
                        section="DECK PROPERTIES")

        profile, strategy = resolve_deck_profile(
            deck, declared_type=name,
            threshold=deck_match_threshold, depth_tolerance=deck_depth_tolerance,
        )
        floors[name] = FloorProperties(
            name=name,
            kind=kind,
            thickness=deck.slab_depth,
            material=deck.concrete_material,
            deck=deck,
            deck_profile=profile.deck_type if profile else None,
            deck_match=strategy,
            material_id=material.id if material else None,
            id=ctx.ids.generate("floor_properties"),
        )

    logger.debug("Parsed %d floor properties", len(floors))
    return floors


WALL_MODIFIERS = re.compile(
    rf'^SHELLPROP\s+"([^"]+)"\s+F11MOD\s+({NUM})\s+F22MOD\s+({NUM})\s+M11MOD\s+({NUM})\s+M22MOD\s+({NUM})',
    re.IGNORECASE,
)


def parse_wall_properties(
    text: Optional[str],
    materials: Mapping[str, Material],
    ctx: Optional[ParseContext] = None,
) -> Dict[str, WallProperties]:
    """Parse WALL PROPERTIES: a PROPTYPE "Wall" line plus an optional modifier line."""
    ctx = ctx or ParseContext()
    section = "WALL PROPERTIES"
    walls: Dict[str, WallProperties] = {}

    for number, line in iter_lines(text):
        if keyword_of(line) != "SHELLPROP":
            continue

        match = SHELLPROP_LINE.match(line)
        if match and match.group(2).lower() == "wall":
            name = match.group(1)
            thickness = extract_numeric_value(line, "WALLTHICKNESS")
            if thickness is None:
                ctx.diagnostics.skip(section, number, line, "wall without WALLTHICKNESS")
                continue
            material_name = extract_keyword_string(line, "MATERIAL")
            material = ctx.resolve(materials, material_name, "material", referenced_from=name, section=section)
            walls[name] = WallProperties(
                name=name,
                material=material_name,
                thickness=thickness,
                modeling_type=_choice(extract_keyword_string(line, "MODELINGTYPE"), MODELING_TYPES, "ShellThin"),
                material_id=material.id if material else None,
                id=ctx.ids.generate("wall_properties"),
            )
            continue

        match = WALL_MODIFIERS.match(line)
        if match and match.group(1) in walls:
            wall = walls[match.group(1)]
            wall.f11, wall.f22, wall.m11, wall.m22 = (float(v) for v in match.groups()[1:])
            continue

        reason = "no primary wall SHELLPROP line" if match else "unsupported SHELLPROP record"
        ctx.diagnostics.skip(section, number, line, reason)

    logger.debug("Parsed %d wall properties", len(walls))
    return walls


DIAPHRAGM_LINE = re.compile(r'^DIAPHRAGM\s+"([^"]+)"\s+TYPE\s+"?([A-Z\-]+)"?', re.IGNORECASE)

DIAPHRAGM_TYPES = {
    "RIGID": "Rigid",
    "SEMIRIGID": "Semi-Rigid",
    "SEMI-RIGID": "Semi-Rigid",
    "FLEXIBLE": "Flexible",
}


def parse_diaphragms(text: Optional[str], ctx: Optional[ParseContext] = None) -> Dict[str, Diaphragm]:
    """Parse DIAPHRAGM NAMES."""
    ctx = ctx or ParseContext()
    diaphragms: Dict[str, Diaphragm] = {}
    for number, line in iter_lines(text):
        if keyword_of(line) != "DIAPHRAGM":
            continue
        match = DIAPHRAGM_LINE.match(line)
        if not match:
            ctx.diagnostics.skip("DIAPHRAGM NAMES", number, line)
            continue
        name = match.group(1)
        diaphragms[name] = Diaphragm(
            name=name,
            type=DIAPHRAGM_TYPES.get(match.group(2).upper(), "Rigid"),
            id=ctx.ids.generate("diaphragm"),
        )
    return diaphragms


# --- Model layout ---

STORY_LINE = re.compile(rf'^STORY\s+"([^"]+)"\s+(HEIGHT|ELEV)\s+({NUM})', re.IGNORECASE)

DEFAULT_FLOOR_TYPE = "typical"


def normalize_story_name(name: str) -> str:
    """'Story3' -> '3'; other names are kept."""
    if name[:5].lower() == "story" and len(name) > 5:
        return name[5:]
    return name


def parse_stories(
    text: Optional[str],
    ctx: Optional[ParseContext] = None,
) -> Tuple[Dict[str, Level], Dict[str, FloorType]]:
    """
    Parse STORIES - IN SEQUENCE FROM TOP into levels and floor types.

    Stories are listed top-down. ELEV gives an absolute elevation; HEIGHT
    stacks on the story below. Floor types come from MASTERSTORY/SIMILARTO,
    with a single default floor type when the file declares none.
    """
    ctx = ctx or ParseContext()
    section = "STORIES - IN SEQUENCE FROM TOP"
    rows: List[Tuple[str, str, float, bool, Optional[str]]] = []

    for number, line in iter_lines(text):
        if keyword_of(line) != "STORY":
            continue
        match = STORY_LINE.match(line)
        if not match:
            ctx.diagnostics.skip(section, number, line)
            continue
        is_master = (extract_keyword_string(line, "MASTERSTORY") or "").lower() == "yes"
        rows.append((match.group(1), match.group(2).upper(), float(match.group(3)),
                     is_master, extract_keyword_string(line, "SIMILARTO")))

    # Elevations, bottom-up
    elevations: Dict[str, float] = {}
    running = 0.0
    for story, mode, value, _, _ in reversed(rows):
        running = value if mode == "ELEV" else running + value
        elevations[story] = running

    floor_types: Dict[str, FloorType] = {}
    for story, _, _, is_master, _ in rows:
        if is_master:
            name = normalize_story_name(story)
            floor_types[name] = FloorType(name=name, id=ctx.ids.generate("floor_type"))
    if not floor_types:
        floor_types[DEFAULT_FLOOR_TYPE] = FloorType(name=DEFAULT_FLOOR_TYPE, id=ctx.ids.generate("floor_type"))

    def floor_type_for(story: str, is_master: bool, similar_to: Optional[str]) -> Optional[str]:
        if is_master:
            return floor_types[normalize_story_name(story)].id
        if similar_to:
            master = floor_types.get(normalize_story_name(similar_to))
            if master is not None:
                return master.id
            ctx.diagnostics.unresolved("story", similar_to, referenced_from=story, section=section)
        default = floor_types.get(DEFAULT_FLOOR_TYPE)
        return default.id if default else None

    levels: Dict[str, Level] = {}
    for story, mode, value, is_master, similar_to in rows:
        name = normalize_story_name(story)
        levels[name] = Level(
            name=name,
            elevation=elevations[story],
            height=value if mode == "HEIGHT" else None,
            floor_type_id=floor_type_for(story, is_master, similar_to),
            is_master_story=is_master,
            similar_to=similar_to,
            source_name=story,
            id=ctx.ids.generate("level"),
        )

    logger.debug("Parsed %d levels, %d floor types", len(levels), len(floor_types))
    return levels, floor_types


GRID_LINE = re.compile(rf'^GRID\s+"([^"]+)"\s+LABEL\s+"([^"]+)"\s+DIR\s+"([XY])"\s+COORD\s+({NUM})', re.IGNORECASE)


def parse_grids(text: Optional[str], ctx: Optional[ParseContext] = None, extent: float = 1000.0) -> Dict[str, Grid]:
    """
    Parse GRIDS. DIR "X" grids are lines of constant x, DIR "Y" of constant y,
    running from -extent to +extent along the other axis.
    """
    ctx = ctx or ParseContext()
    grids: Dict[str, Grid] = {}
    for number, line in iter_lines(text):
        keyword = keyword_of(line)
        if keyword == "GRIDSYSTEM":
            continue
        if keyword != "GRID":
            continue
        match = GRID_LINE.match(line)
        if not match:
            ctx.diagnostics.skip("GRIDS", number, line)
            continue

        system, label, direction, coord = match.groups()
        direction = direction.upper()
        c = float(coord)
        if direction == "X":
            start, end = (c, -extent), (c, extent)
        else:
            start, end = (-extent, c), (extent, c)
        grids[label] = Grid(
            name=label,
            direction=direction,
            coordinate=c,
            start=start,
            end=end,
            grid_system=system,
            bubble_location=_choice(extract_keyword_string(line, "BUBBLELOC"), ("Start", "End", "Both"), "End"),
            visible=(extract_keyword_string(line, "VISIBLE") or "Yes").lower() != "no",
            id=ctx.ids.generate("grid"),
        )
    return grids


# --- Topology ---

POINT_LINE = re.compile(rf'^POINT\s+"([^"]+)"\s+({NUM})\s+({NUM})(?:\s+({NUM}))?', re.IGNORECASE)


def parse_points(text: Optional[str], ctx: Optional[ParseContext] = None) -> Dict[str, Point]:
    """Parse POINT COORDINATES. z defaults to 0."""
    ctx = ctx or ParseContext()
    points: Dict[str, Point] = {}
    for number, line in iter_lines(text):
        if keyword_of(line) != "POINT":
            continue
        match = POINT_LINE.match(line)
        if not match:
            ctx.diagnostics.skip("POINT COORDINATES", number, line)
            continue
        name, x, y, z = match.groups()
        points[name] = Point(
            name=name, x=float(x), y=float(y), z=float(z) if z is not None else 0.0,
            id=ctx.ids.generate("point"),
        )
    logger.debug("Parsed %d points", len(points))
    return points


LINE_LINE = re.compile(r'^LINE\s+"([^"]+)"\s+(BEAM|COLUMN|BRACE)\s+"([^"]+)"\s+"([^"]+)"\s+(-?\d+)', re.IGNORECASE)


def parse_line_connectivities(
    text: Optional[str],
    points: Mapping[str, Point],
    ctx: Optional[ParseContext] = None,
) -> Dict[str, LineConnectivity]:
    """Parse LINE CONNECTIVITIES: LINE "id" BEAM|COLUMN|BRACE "p1" "p2" n."""
    ctx = ctx or ParseContext()
    section = "LINE CONNECTIVITIES"
    lines: Dict[str, LineConnectivity] = {}
    for number, line in iter_lines(text):
        if keyword_of(line) != "LINE":
            continue
        match = LINE_LINE.match(line)
        if not match:
            ctx.diagnostics.skip(section, number, line)
            continue
        name, category, p1, p2, angle = match.groups()
        for point in (p1, p2):
            ctx.resolve(points, point, "point", referenced_from=name, section=section)
        lines[name] = LineConnectivity(
            name=name,
            category=category.capitalize(),
            point1=p1,
            point2=p2,
            angle=int(angle),
            id=ctx.ids.generate("line_connectivity"),
        )
    return lines


AREA_LINE = re.compile(r'^AREA\s+"([^"]+)"\s+(FLOOR|PANEL|AREA)\s+(\d+)\s+(.*)$', re.IGNORECASE)

AREA_CATEGORIES = {"FLOOR": "Floor", "PANEL": "Wall", "AREA": "Opening"}


def parse_area_connectivities(
    text: Optional[str],
    points: Mapping[str, Point],
    ctx: Optional[ParseContext] = None,
) -> Dict[str, AreaConnectivity]:
    """Parse AREA CONNECTIVITIES: AREA "id" FLOOR|PANEL|AREA n "p1" ... "pn" ..."""
    ctx = ctx or ParseContext()
    section = "AREA CONNECTIVITIES"
    areas: Dict[str, AreaConnectivity] = {}
    for number, line in iter_lines(text):
        if keyword_of(line) != "AREA":
            continue
        match = AREA_LINE.match(line)
        if not match:
            ctx.diagnostics.skip(section, number, line)
            continue
        name, category, count, rest = match.groups()
        ring = extract_quoted_strings(rest)[:int(count)]
        if len(ring) < int(count):
            ctx.diagnostics.skip(section, number, line, f"expected {count} points, found {len(ring)}")
            continue
        for point in ring:
            ctx.resolve(points, point, "point", referenced_from=name, section=section)
        areas[name] = AreaConnectivity(
            name=name,
            category=AREA_CATEGORIES[category.upper()],
            points=ring,
            id=ctx.ids.generate("area_connectivity"),
        )
    return areas


ASSIGN_KEY = r'^{keyword}\s+"([^"]+)"\s+"([^"]+)"'

# LINEASSIGN token -> FrameModifiers field
FRAME_MODIFIER_TOKENS: Dict[str, str] = {
    "PROPMODA": "area",
    "PROPMODA2": "a22",
    "PROPMODA3": "a33",
    "PROPMODT": "torsion",
    "PROPMODI22": "i22",
    "PROPMODI33": "i33",
    "PROPMODM": "mass",
    "PROPMODW": "weight",
}


def parse_line_assigns(
    text: Optional[str],
    frame_properties: Mapping[str, FrameProperties],
    line_connectivities: Optional[Mapping[str, LineConnectivity]] = None,
    ctx: Optional[ParseContext] = None,
) -> Dict[Tuple[str, str], LineAssignment]:
    """
    Parse LINE ASSIGNS into records keyed by (line, story).

    SECTION establishes a record; RELEASE, ISLATERAL, ANG, CARDINALPT and the
    PROPMOD* tokens are each picked up on their own and merged into the record
    for the same (line, story). One line id gets one record per story.
    """
    ctx = ctx or ParseContext()
    section_name = "LINE ASSIGNS"
    key_pattern = re.compile(ASSIGN_KEY.format(keyword="LINEASSIGN"), re.IGNORECASE)
    assignments: Dict[Tuple[str, str], LineAssignment] = {}

    for number, line in iter_lines(text):
        if keyword_of(line) != "LINEASSIGN":
            continue
        match = key_pattern.match(line)
        if not match:
            ctx.diagnostics.skip(section_name, number, line)
            continue

        key = (match.group(1), match.group(2))
        section = extract_keyword_string(line, "SECTION")
        record = assignments.get(key)
        if record is None:
            if section is None:
                ctx.diagnostics.skip(section_name, number, line, "no SECTION for new assignment")
                continue
            if line_connectivities is not None:
                ctx.resolve(line_connectivities, key[0], "line", referenced_from=key[1], section=section_name)
            record = assignments[key] = LineAssignment(line_name=key[0], story=key[1], section=section)

        if section is not None:
            record.section = section
            frame = ctx.resolve(frame_properties, section, "frame_properties",
                                referenced_from=key[0], section=section_name)
            record.section_id = frame.id if frame else None

        release = extract_keyword_string(line, "RELEASE")
        if release is not None:
            record.release = release
        lateral = extract_keyword_string(line, "ISLATERAL")
        if lateral is not None:
            record.is_lateral = lateral.lower() == "yes"
        angle = extract_numeric_value(line, "ANG")
        if angle is None:
            angle = extract_numeric_value(line, "ANGLE")
        if angle is not None:
            record.angle = angle
        cardinal = extract_numeric_value(line, "CARDINALPT")
        if cardinal is not None:
            record.cardinal_point = int(cardinal)
        for token, attr in FRAME_MODIFIER_TOKENS.items():
            value = extract_numeric_value(line, token)
            if value is not None:
                setattr(record.modifiers, attr, value)

    logger.debug("Parsed %d line assignments", len(assignments))
    return assignments


def parse_area_assigns(
    text: Optional[str],
    floor_properties: Mapping[str, FloorProperties],
    wall_properties: Mapping[str, WallProperties],
    diaphragms: Mapping[str, Diaphragm],
    area_connectivities: Optional[Mapping[str, AreaConnectivity]] = None,
    ctx: Optional[ParseContext] = None,
    *,
    object_loads_text: Optional[str] = None,
) -> Dict[Tuple[str, str], AreaAssignment]:
    """
    Parse AREA ASSIGNS (and UNIFLOADSET lines of SHELL OBJECT LOADS).

    Each of SECTION, DIAPH/DIAPHRAGM, OBJMESHTYPE, CARDINALPOINT, OPENING and
    the load set fills one field of the (area, story) record, which is
    created the first time any of them is seen.
    """
    ctx = ctx or ParseContext()
    section_name = "AREA ASSIGNS"
    key_pattern = re.compile(ASSIGN_KEY.format(keyword="AREAASSIGN"), re.IGNORECASE)
    assignments: Dict[Tuple[str, str], AreaAssignment] = {}

    def record_for(key: Tuple[str, str], section: str) -> AreaAssignment:
        record = assignments.get(key)
        if record is None:
            if area_connectivities is not None:
                ctx.resolve(area_connectivities, key[0], "area", referenced_from=key[1], section=section)
            record = assignments[key] = AreaAssignment(area_name=key[0], story=key[1])
        return record

    for number, line in iter_lines(text):
        if keyword_of(line) != "AREAASSIGN":
            continue
        match = key_pattern.match(line)
        if not match:
            ctx.diagnostics.skip(section_name, number, line)
            continue
        key = (match.group(1), match.group(2))

        prop = extract_keyword_string(line, "SECTION")
        diaphragm = extract_keyword_string(line, "DIAPH") or extract_keyword_string(line, "DIAPHRAGM")
        mesh = extract_keyword_string(line, "OBJMESHTYPE")
        cardinal = extract_keyword_string(line, "CARDINALPOINT")
        opening = extract_keyword_string(line, "OPENING")
        if all(v is None for v in (prop, diaphragm, mesh, cardinal, opening)):
            ctx.diagnostics.skip(section_name, number, line, "no supported AREAASSIGN field")
            continue

        record = record_for(key, section_name)
        if prop is not None:
            record.section = prop
            record.section_id = _resolve_area_property(
                ctx, key[0], prop, floor_properties, wall_properties, area_connectivities)
        if diaphragm is not None:
            record.diaphragm = diaphragm
            found = ctx.resolve(diaphragms, diaphragm, "diaphragm", referenced_from=key[0], section=section_name)
            record.diaphragm_id = found.id if found else None
        if mesh is not None:
            record.mesh_type = mesh
        if cardinal is not None:
            record.cardinal_point = cardinal
        if opening is not None:
            record.is_opening = opening.lower() == "yes"

    load_pattern = re.compile(r'^AREALOAD\s+"([^"]+)"\s+"([^"]+)"\s+TYPE\s+"UNIFLOADSET"\s+"([^"]+)"', re.IGNORECASE)
    for number, line in iter_lines(object_loads_text):
        if keyword_of(line) != "AREALOAD":
            continue
        match = load_pattern.match(line)
        if not match:
            ctx.diagnostics.skip("SHELL OBJECT LOADS", number, line, "unsupported AREALOAD record")
            continue
        record = record_for((match.group(1), match.group(2)), "SHELL OBJECT LOADS")
        record.load_set = match.group(3)

    logger.debug("Parsed %d area assignments", len(assignments))
    return assignments


def _resolve_area_property(
    ctx: ParseContext,
    area_name: str,
    prop: str,
    floor_properties: Mapping[str, FloorProperties],
    wall_properties: Mapping[str, WallProperties],
    area_connectivities: Optional[Mapping[str, AreaConnectivity]],
) -> Optional[str]:
    area = ctx.lookup(area_connectivities or {}, area_name)
    if area is not None and area.category == "Wall":
        tables = [("wall_properties", wall_properties)]
    elif area is not None and area.category == "Floor":
        tables = [("floor_properties", floor_properties)]
    else:
        tables = [("floor_properties", floor_properties), ("wall_properties", wall_properties)]

    for _, table in tables:
        found = ctx.lookup(table, prop)
        if found is not None:
            return found.id
    ctx.diagnostics.unresolved(tables[0][0], prop, referenced_from=area_name, section="AREA ASSIGNS")
    return None


def parse_point_assigns(
    text: Optional[str],
    points: Mapping[str, Point],
    ctx: Optional[ParseContext] = None,
) -> Dict[Tuple[str, str], PointAssignment]:
    """Parse POINT ASSIGNS: POINTASSIGN "p" "story" RESTRAINT "UX UY UZ ..."."""
    ctx = ctx or ParseContext()
    section = "POINT ASSIGNS"
    key_pattern = re.compile(ASSIGN_KEY.format(keyword="POINTASSIGN"), re.IGNORECASE)
    assignments: Dict[Tuple[str, str], PointAssignment] = {}
    for number, line in iter_lines(text):
        if keyword_of(line) != "POINTASSIGN":
            continue
        match = key_pattern.match(line)
        if not match:
            ctx.diagnostics.skip(section, number, line)
            continue
        key = (match.group(1), match.group(2))
        record = assignments.get(key)
        if record is None:
            ctx.resolve(points, key[0], "point", referenced_from=key[1], section=section)
            record = assignments[key] = PointAssignment(point_name=key[0], story=key[1])
        restraint = extract_keyword_string(line, "RESTRAINT")
        if restraint is not None:
            record.restraint = restraint
    return assignments


# --- Loads ---

LOADPATTERN_LINE = re.compile(rf'^LOADPATTERN\s+"([^"]+)"\s+TYPE\s+"([^"]+)"(?:\s+SELFWEIGHT\s+({NUM}))?', re.IGNORECASE)
SEISMIC_LINE = re.compile(r'^SEISMIC\s+"([^"]+)"\s+"([^"]+)"', re.IGNORECASE)


def parse_load_patterns(text: Optional[str], ctx: Optional[ParseContext] = None) -> Dict[str, LoadDefinition]:
    """Parse LOAD PATTERNS; a SEISMIC line turns its pattern into a Seismic one."""
    ctx = ctx or ParseContext()
    section = "LOAD PATTERNS"
    patterns: Dict[str, LoadDefinition] = {}
    for number, line in iter_lines(text):
        keyword = keyword_of(line)
        if keyword == "LOADPATTERN":
            match = LOADPATTERN_LINE.match(line)
            if not match:
                ctx.diagnostics.skip(section, number, line)
                continue
            name = match.group(1)
            patterns[name] = LoadDefinition(
                name=name,
                type=normalize_load_type(match.group(2)),
                self_weight=float(match.group(3)) if match.group(3) is not None else 0.0,
                id=ctx.ids.generate("load_definition"),
            )
        elif keyword == "SEISMIC":
            match = SEISMIC_LINE.match(line)
            pattern = patterns.get(match.group(1)) if match else None
            if pattern is None:
                ctx.diagnostics.skip(section, number, line, "no LOADPATTERN for SEISMIC line")
                continue
            pattern.type = "Seismic"
            pattern.seismic_code = match.group(2)
            pattern.seismic_direction = extract_keyword_string(line, "DIR")
    return patterns


COMBO_TYPE_LINE = re.compile(r'^COMBO\s+"([^"]+)"\s+TYPE\s+"([^"]+)"', re.IGNORECASE)
COMBO_TERM_LINE = re.compile(rf'^COMBO\s+"([^"]+)"\s+(?:LOADCASE|LOADCOMBO)\s+"([^"]+)"\s+SF\s+({NUM})', re.IGNORECASE)


def parse_load_combinations(
    text: Optional[str],
    load_definitions: Mapping[str, LoadDefinition],
    ctx: Optional[ParseContext] = None,
) -> Dict[str, LoadCombination]:
    """Parse LOAD COMBINATIONS: COMBO "n" TYPE "t" and COMBO "n" LOADCASE "lc" SF v lines."""
    ctx = ctx or ParseContext()
    section = "LOAD COMBINATIONS"
    combos: Dict[str, LoadCombination] = {}
    for number, line in iter_lines(text):
        if keyword_of(line) != "COMBO":
            continue

        match = COMBO_TYPE_LINE.match(line)
        if match:
            name = match.group(1)
            combos[name] = LoadCombination(name=name, combo_type=match.group(2),
                                           id=ctx.ids.generate("load_combination"))
            continue

        match = COMBO_TERM_LINE.match(line)
        if match:
            combo = combos.get(match.group(1))
            if combo is None:
                ctx.diagnostics.skip(section, number, line, "no COMBO TYPE line")
                continue
            term_name = match.group(2)
            # Terms may name other combinations as well as load patterns
            load = ctx.lookup(load_definitions, term_name)
            if load is None and ctx.lookup(combos, term_name) is None:
                ctx.diagnostics.unresolved("load_definition", term_name, referenced_from=combo.name, section=section)
            combo.terms.append(LoadComboTerm(
                name=term_name,
                factor=float(match.group(3)),
                load_definition_id=load.id if load else None,
            ))
            continue

        ctx.diagnostics.skip(section, number, line, "unsupported COMBO record")
    return combos


LOADSET_LINE = re.compile(rf'^SHELLUNIFORMLOADSET\s+"([^"]+)"\s+LOADPAT\s+"([^"]+)"\s+VALUE\s+({NUM})', re.IGNORECASE)


def parse_surface_loads(
    text: Optional[str],
    load_definitions: Mapping[str, LoadDefinition],
    floor_types: Mapping[str, FloorType],
    ctx: Optional[ParseContext] = None,
) -> Dict[str, SurfaceLoad]:
    """
    Parse SHELL UNIFORM LOAD SETS, one SurfaceLoad per load set.

    Patterns named like live load (live, ll, reducible) fill the live slot,
    everything else the dead slot.
    """
    ctx = ctx or ParseContext()
    section = "SHELL UNIFORM LOAD SETS"
    default_layout = next(iter(floor_types.values()), None)
    loads: Dict[str, SurfaceLoad] = {}
    for number, line in iter_lines(text):
        if keyword_of(line) != "SHELLUNIFORMLOADSET":
            continue
        match = LOADSET_LINE.match(line)
        if not match:
            ctx.diagnostics.skip(section, number, line)
            continue
        set_name, pattern_name, value = match.groups()
        load = loads.get(set_name)
        if load is None:
            load = loads[set_name] = SurfaceLoad(
                name=set_name,
                layout_type_id=default_layout.id if default_layout else None,
                id=ctx.ids.generate("surface_load"),
            )
        definition = ctx.resolve(load_definitions, pattern_name, "load_definition",
                                 referenced_from=set_name, section=section)
        definition_id = definition.id if definition else None
        if is_live_pattern(pattern_name):
            load.live_pattern, load.live_value, load.live_load_id = pattern_name, float(value), definition_id
        else:
            load.dead_pattern, load.dead_value, load.dead_load_id = pattern_name, float(value), definition_id
    return loads
