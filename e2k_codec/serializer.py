"""
Model -> E2K text.

Each serialize_* function turns one entity collection into the body of its
section, one record per line, with no knowledge of where that section ends up
in the document. export_e2k() collects the bodies, orders them and optionally
merges hand-written sections on top.
"""
import logging
import math
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .config import CodecSettings, get_settings
from .errors import OrchestrationFailure
from .merger import merge_documents
from .model import (
    AreaAssignment, AreaConnectivity, Diaphragm, FloorProperties, FrameProperties, Grid, Level,
    LineAssignment, LineConnectivity, LoadCombination, LoadDefinition, Material, Point,
    PointAssignment, StructuralModel, SurfaceLoad, WallProperties,
)
from .parser import DECK_NUMBERS
from .sections import assemble_document

logger = logging.getLogger(__name__)

NumberFormat = Callable[[float], str]

FOOTER = "$ END OF MODEL FILE"


# --- Numbers and tokens ---

def format_number(value: Union[int, float], precision: Optional[int] = None) -> str:
    """
    Decimal text for a number.

    With precision None the shortest text that reads back as the same float
    is written (12.0 -> "12", 0.1 -> "0.1"). With an integer precision at most
    that many decimals are written and trailing zeros dropped.
    """
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot write non-finite number {value!r}")
    if precision is None:
        if value.is_integer() and abs(value) < 1e16:
            text = str(int(value))
        else:
            text = repr(value)
    else:
        text = f"{value:.{precision}f}"
        if "." in text:
            text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def quote(value: Optional[str]) -> str:
    return f'"{value or ""}"'


def _join(*parts: str) -> str:
    return "  " + "  ".join(part for part in parts if part)


# --- Metadata ---

def serialize_program_information(program: str, version: str) -> str:
    return f"\tPROGRAM  {quote(program)}  VERSION {quote(version)}"


def serialize_controls(model: StructuralModel, settings: CodecSettings) -> str:
    units = model.metadata.units
    info = model.metadata.project_info
    lines = [f"\tUNITS  {quote(units.force)}  {quote(units.length)}  {quote(units.temperature)}"]
    title1 = info.title1 or settings.company_name
    if title1:
        lines.append(f"\tTITLE1  {quote(title1)}")
    if info.title2:
        lines.append(f"\tTITLE2  {quote(info.title2)}")
    lines.append("\tPREFERENCE  MERGETOL 0.1")
    lines.append('\tRLLF  METHOD "ASCE7-10"  USEDEFAULTMIN "YES"')
    return "\n".join(lines)


def serialize_project_information(model: StructuralModel, settings: CodecSettings) -> str:
    info = model.metadata.project_info
    company = info.company_name or settings.company_name
    parts = ["PROJECTINFO"]
    if company:
        parts.append(f"COMPANYNAME {quote(company)}")
    parts.append(f"MODELNAME {quote(info.project_name)}")
    return "  " + "    ".join(parts)


def serialize_log(file_stem: str, version: str, saved_at: datetime) -> str:
    return "\n".join([
        "  STARTCOMMENTS",
        f"ETABS Nonlinear {version} File saved as {file_stem}.EDB at {saved_at:%m/%d/%Y %H:%M:%S}",
        "  ENDCOMMENTS",
        "  END",
    ])


# --- Layout ---

def serialize_stories(levels: Iterable[Level], fmt: NumberFormat) -> str:
    """Top-down STORY lines: HEIGHT for levels read as heights, ELEV otherwise."""
    ordered = sorted(levels, key=lambda lv: lv.elevation, reverse=True)
    lines: List[str] = []
    for i, level in enumerate(ordered):
        lowest = i == len(ordered) - 1
        name = level.source_name or (level.name if lowest else f"Story{level.name}")
        parts = [f"STORY {quote(name)}"]
        if level.height is None:
            parts.append(f"ELEV {fmt(level.elevation)}")
        else:
            below = 0.0 if lowest else ordered[i + 1].elevation
            parts.append(f"HEIGHT {fmt(level.elevation - below)}")
        if level.is_master_story:
            parts.append('MASTERSTORY "Yes"')
        if level.similar_to:
            parts.append(f"SIMILARTO {quote(level.similar_to)}")
        lines.append(_join(*parts))
    return "\n".join(lines)



def serialize_grids(grids: Iterable[Grid], fmt: NumberFormat) -> str:
    grids = list(grids)
    systems: List[str] = []
    for grid in grids:
        if grid.grid_system not in systems:
            systems.append(grid.grid_system)

    lines = [f'\tGRIDSYSTEM {quote(system)}  TYPE "CARTESIAN"  BUBBLESIZE 60' for system in systems]
    for grid in grids:
        lines.append(
            f'\tGRID {quote(grid.grid_system)}  LABEL {quote(grid.name)}  DIR {quote(grid.direction)}  '
            f'COORD {fmt(grid.coordinate)}  VISIBLE {quote("Yes" if grid.visible else "No")}  '
            f'BUBBLELOC {quote(grid.bubble_location)}'
        )
    return "\n".join(lines)


DIAPHRAGM_TOKENS = {"Rigid": "RIGID", "Semi-Rigid": "SEMIRIGID", "Flexible": "FLEXIBLE"}


def serialize_diaphragms(diaphragms: Iterable[Diaphragm]) -> str:
    return "\n".join(
        f"  DIAPHRAGM {quote(d.name)}    TYPE {DIAPHRAGM_TOKENS.get(d.type, 'RIGID')}"
        for d in diaphragms
    )


# --- Properties ---

def serialize_materials(materials: Iterable[Material], fmt: NumberFormat) -> str:
    lines: List[str] = []
    for m in materials:
        primary = [f"MATERIAL {quote(m.name)}", f"TYPE {quote(m.kind)}"]
        if m.grade is not None:
            primary.append(f"GRADE {quote(m.grade)}")
        if m.weight_per_volume is not None:
            primary.append(f"WEIGHTPERVOLUME {fmt(m.weight_per_volume)}")
        lines.append("\t" + "  ".join(primary))

        if m.E is not None or m.poisson is not None or m.thermal_coefficient is not None \
                or m.symmetry != "Isotropic":
            elastic = [f"MATERIAL {quote(m.name)}", f"SYMTYPE {quote(m.symmetry)}"]
            if m.E is not None:
                elastic.append(f"E {fmt(m.E)}")
            if m.poisson is not None:
                elastic.append(f"U {fmt(m.poisson)}")
            if m.thermal_coefficient is not None:
                elastic.append(f"A {fmt(m.thermal_coefficient)}")
            lines.append("\t" + "  ".join(elastic))

        if m.kind == "Steel" and m.Fy is not None:
            strength = f"\tMATERIAL {quote(m.name)}  FY {fmt(m.Fy)}"
            if m.Fu is not None:
                strength += f"  FU {fmt(m.Fu)}"
            lines.append(strength)
        elif m.kind == "Concrete" and m.fc is not None:
            lines.append(f"\tMATERIAL {quote(m.name)}  FC {fmt(m.fc)}")
    return "\n".join(lines)


# semantic dimension name -> FRAMESECTION token, in output order
DIMENSION_TOKENS: Tuple[Tuple[str, str], ...] = (
    ("depth", "D"),
    ("width", "B"),
    ("flangeThickness", "TF"),
    ("webThickness", "TW"),
    ("thickness", "T"),
    ("thickness1", "T1"),
    ("thickness2", "T2"),
    ("diameter", "OD"),
)

CONCRETE_SHAPE_TOKENS = {
    "Rectangular": "Concrete Rectangular",
    "Circular": "Concrete Circle",
    "TShaped": "Concrete Tee",
    "LShaped": "Concrete L-Shaped",
    "Custom": "Concrete Rectangular",
}

DEFAULT_CONCRETE_DIMENSIONS: Dict[str, Dict[str, float]] = {
    "Rectangular": {"depth": 18.0, "width": 18.0},
    "Circular": {"depth": 16.0},
    "Custom": {"depth": 18.0, "width": 18.0},
}


def _frame_shape(frame: FrameProperties) -> str:
    if frame.shape:
        return frame.shape
    if frame.kind == "Steel":
        # catalogue section: the section name is the shape
        return frame.name
    return CONCRETE_SHAPE_TOKENS.get(frame.concrete_shape or "Custom", "Concrete Rectangular")


def _dimension_parts(dims: Mapping[str, float], fmt: NumberFormat) -> List[str]:
    known = dict(DIMENSION_TOKENS)
    parts = [f"{token} {fmt(dims[key])}" for key, token in DIMENSION_TOKENS if key in dims]
    parts.extend(f"{key.upper()} {fmt(value)}" for key, value in dims.items() if key not in known)
    return parts


def serialize_frame_sections(frames: Iterable[FrameProperties], fmt: NumberFormat) -> str:
    lines: List[str] = []
    for frame in frames:
        dims = frame.dimensions
        if not dims and frame.kind == "Concrete":
            dims = DEFAULT_CONCRETE_DIMENSIONS.get(frame.concrete_shape or "Custom", {})
        parts = [
            f"FRAMESECTION  {quote(frame.name)}",
            f"MATERIAL {quote(frame.material)}",
            f"SHAPE {quote(_frame_shape(frame))}",
            *_dimension_parts(dims, fmt),
        ]
        lines.append(_join(*parts))
    return "\n".join(lines)


def serialize_slab_properties(floors: Iterable[FloorProperties], fmt: NumberFormat) -> str:
    lines: List[str] = []
    for floor in floors:
        if floor.kind != "Slab":
            continue
        parts = [
            f"SHELLPROP  {quote(floor.name)}",
            'PROPTYPE  "Slab"',
            f"MATERIAL {quote(floor.material)}",
            f"MODELINGTYPE {quote(floor.modeling_type)}",
            f"SLABTYPE {quote(floor.slab_type)}",
        ]
        if floor.thickness is not None:
            parts.append(f"SLABTHICKNESS {fmt(floor.thickness)}")
        lines.append(_join(*parts))
    return "\n".join(lines)


# Written when a deck leaves the value out
DECK_DEFAULTS: Dict[str, float] = {
    "slab_depth": 3.5,
    "rib_depth": 3.0,
    "rib_width_top": 7.0,
    "rib_width_bottom": 5.0,
    "rib_spacing": 12.0,
    "shear_thickness": 0.035,
    "unit_weight": 0.01597222,
    "stud_diameter": 0.75,
    "stud_height": 6.0,
    "stud_fu": 65000.0,
}

DECK_TYPE_TOKENS = {"FilledDeck": "Filled", "UnfilledDeck": "Unfilled", "SolidSlabDeck": "Solid Slab"}


def serialize_deck_properties(floors: Iterable[FloorProperties], fmt: NumberFormat) -> str:
    lines: List[str] = []
    for floor in floors:
        if floor.kind == "Slab":
            continue
        deck = floor.deck
        values: Dict[str, Optional[float]] = {attr: getattr(deck, attr) if deck else None
                                              for attr in DECK_NUMBERS.values()}
        if values["slab_depth"] is None:
            values["slab_depth"] = floor.thickness
        parts = [
            f"SHELLPROP  {quote(floor.name)}",
            'PROPTYPE  "Deck"',
            f"DECKTYPE {quote(DECK_TYPE_TOKENS.get(floor.kind, 'Filled'))}",
            f"CONCMATERIAL {quote(deck.concrete_material if deck and deck.concrete_material else floor.material)}",
            f"DECKMATERIAL {quote(deck.deck_material if deck else None)}",
        ]
        for token, attr in DECK_NUMBERS.items():
            value = values[attr]
            parts.append(f"{token} {fmt(DECK_DEFAULTS[attr] if value is None else value)}")
        lines.append(_join(*parts))
    return "\n".join(lines)


# Fixed cracked-wall modifiers written for every wall property
WALL_MODIFIERS = "F11MOD 0.5 F22MOD 0.5 M11MOD 0.01 M22MOD 0.01"


def serialize_wall_properties(walls: Iterable[WallProperties], fmt: NumberFormat) -> str:
    lines: List[str] = []
    for wall in walls:
        lines.append(_join(
            f"SHELLPROP {quote(wall.name)}",
            'PROPTYPE  "Wall"',
            f"MATERIAL {quote(wall.material)}",
            f"MODELINGTYPE {quote(wall.modeling_type)}",
            f"WALLTHICKNESS {fmt(wall.thickness)}",
        ))
        lines.append(f"  SHELLPROP {quote(wall.name)}  {WALL_MODIFIERS}")
    return "\n".join(lines)


# --- Topology ---

def serialize_points(points: Iterable[Point], fmt: NumberFormat) -> str:
    lines = []
    for p in points:
        line = f"  POINT {quote(p.name)}  {fmt(p.x)}  {fmt(p.y)}"
        if p.z:
            line += f"  {fmt(p.z)}"
        lines.append(line)
    return "\n".join(lines)


def serialize_line_connectivities(lines: Iterable[LineConnectivity]) -> str:
    return "\n".join(
        f"  LINE  {quote(ln.name)}  {ln.category.upper()}  {quote(ln.point1)}  {quote(ln.point2)}  {ln.angle}"
        for ln in lines
    )


AREA_CATEGORY_TOKENS = {"Floor": "FLOOR", "Wall": "PANEL", "Opening": "AREA"}


def serialize_area_connectivities(areas: Iterable[AreaConnectivity]) -> str:
    lines = []
    for area in areas:
        ring = "  ".join(quote(p) for p in area.points)
        offsets = "  ".join("0" for _ in area.points)
        lines.append(
            f"  AREA {quote(area.name)}  {AREA_CATEGORY_TOKENS[area.category]}  "
            f"{len(area.points)}  {ring}  {offsets}"
        )
    return "\n".join(lines)


def serialize_point_assigns(assignments: Iterable[PointAssignment]) -> str:
    lines = []
    for a in assignments:
        line = f"  POINTASSIGN  {quote(a.point_name)}  {quote(a.story)}"
        if a.restraint:
            line += f"  RESTRAINT {quote(a.restraint)}"
        lines.append(line)
    return "\n".join(lines)


# FrameModifiers field -> LINEASSIGN token
MODIFIER_TOKENS: Tuple[Tuple[str, str], ...] = (
    ("area", "PROPMODA"),
    ("a22", "PROPMODA2"),
    ("a33", "PROPMODA3"),
    ("torsion", "PROPMODT"),
    ("i22", "PROPMODI22"),
    ("i33", "PROPMODI33"),
    ("mass", "PROPMODM"),
    ("weight", "PROPMODW"),
)


def serialize_line_assigns(assignments: Iterable[LineAssignment], fmt: NumberFormat) -> str:
    lines = []
    for a in assignments:
        parts = [f"LINEASSIGN  {quote(a.line_name)}  {quote(a.story)}", f"SECTION {quote(a.section)}"]
        if a.angle is not None:
            parts.append(f"ANG {fmt(a.angle)}")
        if a.cardinal_point is not None:
            parts.append(f"CARDINALPT {a.cardinal_point}")
        if a.release:
            parts.append(f"RELEASE {quote(a.release)}")
        if a.is_lateral:
            parts.append('ISLATERAL "YES"')
        for attr, token in MODIFIER_TOKENS:
            value = getattr(a.modifiers, attr)
            if value != 1.0:
                parts.append(f"{token} {fmt(value)}")
        parts.append('MAXSTASPC 24  AUTOMESH "YES"  MESHATINTERSECTIONS "YES"')
        lines.append(_join(*parts))
    return "\n".join(lines)


def serialize_area_assigns(assignments: Iterable[AreaAssignment]) -> str:
    lines = []
    for a in assignments:
        parts: List[str] = []
        if a.section is not None:
            parts.append(f"SECTION {quote(a.section)}")
        if a.mesh_type != "DEFAULT":
            parts.append(f"OBJMESHTYPE {quote(a.mesh_type)}")
        if a.cardinal_point != "MIDDLE":
            parts.append(f"CARDINALPOINT {quote(a.cardinal_point)}")
        if a.diaphragm:
            parts.append(f'DIAPHRAGM {quote(a.diaphragm)}  AUTOMESH "YES"')
        if a.is_opening:
            parts.append('OPENING "Yes"')
        if not parts:
            # load-set only records live in SHELL OBJECT LOADS
            continue
        lines.append(_join(f"AREAASSIGN  {quote(a.area_name)}  {quote(a.story)}", *parts))
    return "\n".join(lines)


def serialize_shell_object_loads(assignments: Iterable[AreaAssignment]) -> str:
    return "\n".join(
        f'  AREALOAD  {quote(a.area_name)}  {quote(a.story)}  TYPE "UNIFLOADSET"  {quote(a.load_set)}'
        for a in assignments if a.load_set
    )


# --- Loads ---

LOAD_TYPE_TOKENS = {"Thermal": "Temperature"}


def serialize_load_patterns(patterns: Iterable[LoadDefinition], fmt: NumberFormat) -> str:
    lines = []
    for p in patterns:
        token = LOAD_TYPE_TOKENS.get(p.type, p.type)
        lines.append(f"  LOADPATTERN {quote(p.name)}  TYPE  {quote(token)}  SELFWEIGHT  {fmt(p.self_weight)}")
        if p.type == "Seismic" and p.seismic_code:
            line = f"  SEISMIC {quote(p.name)}  {quote(p.seismic_code)}"
            if p.seismic_direction:
                line += f"  DIR {quote(p.seismic_direction)}"
            lines.append(line)
    return "\n".join(lines)


def serialize_load_combinations(combos: Iterable[LoadCombination], fmt: NumberFormat) -> str:
    lines = []
    for combo in combos:
        lines.append(f"  COMBO {quote(combo.name)}  TYPE {quote(combo.combo_type)}")
        for term in combo.terms:
            lines.append(f"  COMBO {quote(combo.name)}  LOADCASE {quote(term.name)}  SF {fmt(term.factor)}")
    return "\n".join(lines)


def serialize_load_cases(patterns: Iterable[LoadDefinition]) -> str:
    """Default load cases: one modal case and one linear static case per pattern."""
    lines = ['  LOADCASE "Modal"  TYPE  "Modal - Eigen"  INITCOND  "PRESET"']
    for p in patterns:
        lines.append(f'  LOADCASE {quote(p.name)}  TYPE  "Linear Static"  INITCOND  "PRESET"')
        lines.append(f"  LOADCASE {quote(p.name)}  LOADPAT  {quote(p.name)}  SF  1")
    return "\n".join(lines)


# Written when a load set lacks one side
DEFAULT_DEAD = ("SDL", 0.1388889)
DEFAULT_LIVE = ("LIVE", 0.2777778)


def serialize_surface_loads(loads: Iterable[SurfaceLoad], fmt: NumberFormat) -> str:
    lines = []
    for load in loads:
        dead = (load.dead_pattern, load.dead_value) if load.dead_pattern else DEFAULT_DEAD
        live = (load.live_pattern, load.live_value) if load.live_pattern else DEFAULT_LIVE
        for pattern, value in (dead, live):
            lines.append(
                f"  SHELLUNIFORMLOADSET {quote(load.name)}  LOADPAT {quote(pattern)}  "
                f"VALUE {fmt(value if value is not None else 0.0)}"
            )
    return "\n".join(lines)


# --- Document ---

def serialize_sections(model: StructuralModel, settings: CodecSettings,
                       saved_at: datetime) -> Dict[str, str]:
    """Every section body the model produces, keyed by section name. Empty bodies are left out."""
    fmt = partial(format_number, precision=settings.number_precision)
    info = model.metadata.project_info
    props = model.properties
    topo = model.topology
    loads = model.loads

    sections: Dict[str, str] = dict(model.raw_sections)
    generated = {
        "PROGRAM INFORMATION": serialize_program_information(
            info.program or settings.program_name, info.program_version or settings.program_version),
        "CONTROLS": serialize_controls(model, settings),
        "STORIES - IN SEQUENCE FROM TOP": serialize_stories(model.layout.levels, fmt),
        "GRIDS": serialize_grids(model.layout.grids, fmt),
        "DIAPHRAGM NAMES": serialize_diaphragms(props.diaphragms.values()),
        "MATERIAL PROPERTIES": serialize_materials(props.materials.values(), fmt),
        "FRAME SECTIONS": serialize_frame_sections(props.frame_properties.values(), fmt),
        "SLAB PROPERTIES": serialize_slab_properties(props.floor_properties.values(), fmt),
        "DECK PROPERTIES": serialize_deck_properties(props.floor_properties.values(), fmt),
        "WALL PROPERTIES": serialize_wall_properties(props.wall_properties.values(), fmt),
        "POINT COORDINATES": serialize_points(topo.points.values(), fmt),
        "LINE CONNECTIVITIES": serialize_line_connectivities(topo.line_connectivities.values()),
        "AREA CONNECTIVITIES": serialize_area_connectivities(topo.area_connectivities.values()),
        "POINT ASSIGNS": serialize_point_assigns(topo.point_assignments.values()),
        "LINE ASSIGNS": serialize_line_assigns(topo.line_assignments.values(), fmt),
        "AREA ASSIGNS": serialize_area_assigns(topo.area_assignments.values()),
        "SHELL OBJECT LOADS": serialize_shell_object_loads(topo.area_assignments.values()),
        "LOAD PATTERNS": serialize_load_patterns(loads.load_definitions.values(), fmt),
        "LOAD COMBINATIONS": serialize_load_combinations(loads.load_combinations.values(), fmt),
        "SHELL UNIFORM LOAD SETS": serialize_surface_loads(loads.surface_loads.values(), fmt),
        "PROJECT INFORMATION": serialize_project_information(model, settings),
        "LOG": serialize_log(_file_stem(model), info.program_version or settings.program_version, saved_at),
    }
    if "LOAD CASES" not in sections and loads.load_definitions:
        generated["LOAD CASES"] = serialize_load_cases(loads.load_definitions.values())

    for name, body in generated.items():
        if body:
            sections[name] = body
        else:
            sections.pop(name, None)
    return sections


def _file_stem(model: StructuralModel) -> str:
    return model.metadata.project_info.project_name.replace(" ", "_")


def export_e2k(
    model: StructuralModel,
    *,
    custom: Optional[str] = None,
    settings: Optional[CodecSettings] = None,
    saved_at: Optional[datetime] = None,
) -> str:
    """
    Write a model as E2K text.

    Sections are emitted in canonical order between a "$ File ..." preamble
    and the END OF MODEL FILE footer. When custom E2K text is given its
    sections replace the generated ones of the same name.
    """
    settings = settings or get_settings()
    saved_at = saved_at or datetime.now()
    stage = "serialize"
    try:
        sections = serialize_sections(model, settings, saved_at)

        stage = "assemble"
        preamble = f"$ File {_file_stem(model)}.e2k saved {saved_at:%m/%d/%Y %H:%M:%S}"
        document = assemble_document(sections, header=preamble)

        if custom:
            stage = "merge"
            document = merge_documents(document, custom)
        text = document.rstrip("\n") + "\n\n" + FOOTER + "\n"
    except Exception as exc:
        logger.exception("E2K export failed during %s", stage)
        raise OrchestrationFailure(f"Error exporting to E2K: {exc}", stage=stage) from exc

    logger.info("Exported E2K with %d sections", len(sections))
    return text


def save_e2k_file(model: StructuralModel, path: Union[str, Path], *, custom: Optional[str] = None,
                  settings: Optional[CodecSettings] = None) -> Path:
    """Export the model and write it to path as UTF-8."""
    path = Path(path)
    text = export_e2k(model, custom=custom, settings=settings)
    path.write_text(text, encoding="utf-8")
    logger.info("Saved %s", path)
    return path
