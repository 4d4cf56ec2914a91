"""
Core data model for E2K import/export.

Entities parsed from the text keep their source name next to a generated id;
cross-references are stored both by name (as written in the file) and by id
(as resolved against an earlier-stage table, None when unresolved).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict, List, Tuple, Literal


MaterialKind = Literal["Steel", "Concrete"]
SymmetryType = Literal["Isotropic", "Orthotropic", "Anisotropic"]
SteelShape = Literal["W", "HSS", "PIPE", "C", "L", "WT", "ST", "MC", "HP"]
ConcreteShape = Literal["Rectangular", "Circular", "TShaped", "LShaped", "Custom"]
FloorKind = Literal["Slab", "FilledDeck", "UnfilledDeck", "SolidSlabDeck"]
ModelingType = Literal["ShellThin", "ShellThick", "Membrane", "Layered"]
SlabType = Literal["Slab", "Drop", "Stiff", "Ribbed", "Waffle", "Mat", "Footing"]
DiaphragmType = Literal["Rigid", "Semi-Rigid", "Flexible"]
LineCategory = Literal["Beam", "Column", "Brace"]
AreaCategory = Literal["Floor", "Wall", "Opening"]
BubbleLocation = Literal["Start", "End", "Both"]


# --- Geometry / metadata ---

@dataclass
class Point:
    name: str                   # "12"
    x: float
    y: float
    z: float = 0.0
    id: Optional[str] = None


@dataclass
class Units:
    force: str = "LB"
    length: str = "IN"
    temperature: str = "F"


@dataclass
class ProjectInfo:
    project_name: str = "Imported from E2K"
    company_name: Optional[str] = None
    title1: Optional[str] = None
    title2: Optional[str] = None
    program: Optional[str] = None       # "ETABS"
    program_version: Optional[str] = None  # "21.2.0"


@dataclass
class Metadata:
    project_info: ProjectInfo = field(default_factory=ProjectInfo)
    units: Units = field(default_factory=Units)


# --- Model layout ---

@dataclass
class FloorType:
    name: str                   # "typical"
    id: Optional[str] = None


@dataclass
class Level:
    name: str                   # "3" (the "Story" prefix is dropped)
    elevation: float
    height: Optional[float] = None     # as declared, None for ELEV stories
    floor_type_id: Optional[str] = None
    is_master_story: bool = False
    similar_to: Optional[str] = None   # story name as written, "Story4"
    source_name: Optional[str] = None  # story name as written, "Story3"
    id: Optional[str] = None


@dataclass
class Grid:
    name: str                   # "A", "1"
    direction: Literal["X", "Y"]
    coordinate: float
    start: Tuple[float, float] = (0.0, 0.0)
    end: Tuple[float, float] = (0.0, 0.0)
    grid_system: str = "G1"
    bubble_location: BubbleLocation = "End"
    visible: bool = True
    id: Optional[str] = None


# --- Properties ---

@dataclass
class Material:
    name: str                  # "A992Fy50"
    kind: MaterialKind
    grade: Optional[str] = None
    symmetry: SymmetryType = "Isotropic"
    E: Optional[float] = None
    poisson: Optional[float] = None          # U
    thermal_coefficient: Optional[float] = None  # A
    weight_per_volume: Optional[float] = None
    # Steel only:
    Fy: Optional[float] = None
    Fu: Optional[float] = None
    # Concrete only:
    fc: Optional[float] = None
    id: Optional[str] = None


@dataclass
class FrameProperties:
    name: str                  # "W14X90"
    material: Optional[str]    # Material.name as written
    kind: MaterialKind
    shape: Optional[str] = None          # SHAPE token as written
    steel_shape: Optional[SteelShape] = None
    concrete_shape: Optional[ConcreteShape] = None
    # depth, width, flangeThickness, webThickness, thickness, diameter, ...
    dimensions: Dict[str, float] = field(default_factory=dict)
    material_id: Optional[str] = None
    id: Optional[str] = None


@dataclass
class DeckProperties:
    """
    Deck sub-properties of a floor property. Every numeric field stays None
    when absent from the text.
    """
    deck_type: Literal["Filled", "Unfilled"] = "Filled"
    concrete_material: Optional[str] = None
    deck_material: Optional[str] = None
    slab_depth: Optional[float] = None
    rib_depth: Optional[float] = None
    rib_width_top: Optional[float] = None
    rib_width_bottom: Optional[float] = None
    rib_spacing: Optional[float] = None
    shear_thickness: Optional[float] = None
    unit_weight: Optional[float] = None
    stud_diameter: Optional[float] = None
    stud_height: Optional[float] = None
    stud_fu: Optional[float] = None
    gage: Optional[int] = None           # from shear_thickness


@dataclass
class FloorProperties:
    name: str                  # "Slab1", "3VLI20 + 3.25 LW"
    kind: FloorKind
    thickness: Optional[float] = None
    material: Optional[str] = None
    modeling_type: ModelingType = "ShellThin"
    slab_type: SlabType = "Slab"
    deck: Optional[DeckProperties] = None
    deck_profile: Optional[str] = None        # DeckProfile.deck_type of the matched catalogue entry
    deck_match: Optional[Literal["geometry", "type", "depth"]] = None
    material_id: Optional[str] = None
    id: Optional[str] = None


@dataclass
class WallProperties:
    name: str                  # "W12"
    material: Optional[str]
    thickness: float
    modeling_type: ModelingType = "ShellThin"
    f11: float = 1.0
    f22: float = 1.0
    m11: float = 1.0
    m22: float = 1.0
    material_id: Optional[str] = None
    id: Optional[str] = None


@dataclass
class Diaphragm:
    name: str                  # "D1"
    type: DiaphragmType = "Rigid"
    id: Optional[str] = None


# --- Topology: connectivity and assignment records ---

@dataclass
class FrameModifiers:
    area: float = 1.0          # PROPMODA
    a22: float = 1.0           # PROPMODA2
    a33: float = 1.0           # PROPMODA3
    torsion: float = 1.0       # PROPMODT
    i22: float = 1.0           # PROPMODI22
    i33: float = 1.0           # PROPMODI33
    mass: float = 1.0          # PROPMODM
    weight: float = 1.0        # PROPMODW


@dataclass
class LineConnectivity:
    name: str                  # "B12"
    category: LineCategory
    point1: str                # Point.name
    point2: str
    angle: int = 0             # trailing integer of the LINE record
    id: Optional[str] = None


@dataclass
class LineAssignment:
    """
    LINEASSIGN record. Key: (line_name, story).
    """
    line_name: str
    story: str
    section: str
    release: Optional[str] = None
    is_lateral: bool = False
    angle: Optional[float] = None
    cardinal_point: Optional[int] = None
    modifiers: FrameModifiers = field(default_factory=FrameModifiers)
    section_id: Optional[str] = None


@dataclass
class AreaConnectivity:
    name: str                  # "F3"
    category: AreaCategory
    points: List[str] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class AreaAssignment:
    """
    AREAASSIGN / AREALOAD record, built up field by field. Key: (area_name, story).
    """
    area_name: str
    story: str
    section: Optional[str] = None
    diaphragm: Optional[str] = None
    mesh_type: str = "DEFAULT"
    cardinal_point: str = "MIDDLE"
    load_set: Optional[str] = None
    is_opening: bool = False
    section_id: Optional[str] = None
    diaphragm_id: Optional[str] = None


@dataclass
class PointAssignment:
    point_name: str
    story: str
    restraint: Optional[str] = None    # "UX UY UZ RX RY RZ"


# --- Loads ---

@dataclass
class LoadDefinition:
    name: str                  # "DEAD", "LL", "EQX"
    type: str                  # "Dead", "Live", "Seismic", ...
    self_weight: float = 0.0
    seismic_code: Optional[str] = None
    seismic_direction: Optional[str] = None
    id: Optional[str] = None


@dataclass
class LoadComboTerm:
    name: str                  # load pattern/case name
    factor: float
    load_definition_id: Optional[str] = None


@dataclass
class LoadCombination:
    name: str
    combo_type: str = "Linear Add"
    terms: List[LoadComboTerm] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class SurfaceLoad:
    name: str                  # load set name, "0 TYPICAL"
    dead_pattern: Optional[str] = None
    dead_value: Optional[float] = None
    live_pattern: Optional[str] = None
    live_value: Optional[float] = None
    dead_load_id: Optional[str] = None
    live_load_id: Optional[str] = None
    layout_type_id: Optional[str] = None      # FloorType.id
    id: Optional[str] = None


# --- Placed elements ---

@dataclass
class Beam:
    start: Tuple[float, float]
    end: Tuple[float, float]
    level_id: Optional[str]
    frame_properties_id: Optional[str] = None
    is_lateral: bool = False
    is_joist: bool = False
    source: Optional[str] = None           # LineConnectivity.name
    modifiers: FrameModifiers = field(default_factory=FrameModifiers)
    id: Optional[str] = None


@dataclass
class Column:
    start: Tuple[float, float]
    end: Tuple[float, float]
    base_level_id: Optional[str]
    top_level_id: Optional[str]
    frame_properties_id: Optional[str] = None
    orientation: float = 0.0
    is_lateral: bool = False
    source: Optional[str] = None
    modifiers: FrameModifiers = field(default_factory=FrameModifiers)
    id: Optional[str] = None


@dataclass
class Brace:
    start: Tuple[float, float]
    end: Tuple[float, float]
    base_level_id: Optional[str]
    top_level_id: Optional[str]
    frame_properties_id: Optional[str] = None
    source: Optional[str] = None
    modifiers: FrameModifiers = field(default_factory=FrameModifiers)
    id: Optional[str] = None


@dataclass
class Wall:
    points: List[Tuple[float, float]]
    base_level_id: Optional[str]
    top_level_id: Optional[str]
    wall_properties_id: Optional[str] = None
    source: Optional[str] = None
    id: Optional[str] = None


@dataclass
class Floor:
    points: List[Tuple[float, float]]
    level_id: Optional[str]
    floor_properties_id: Optional[str] = None
    diaphragm_id: Optional[str] = None
    surface_load_id: Optional[str] = None
    source: Optional[str] = None
    id: Optional[str] = None


@dataclass
class Opening:
    points: List[Tuple[float, float]]
    level_id: Optional[str]
    source: Optional[str] = None
    id: Optional[str] = None


@dataclass
class Joint:
    point: Tuple[float, float, float]
    level_id: Optional[str]
    restraint: Optional[str] = None
    source: Optional[str] = None
    id: Optional[str] = None


# --- Containers ---

@dataclass
class ModelLayout:
    levels: List[Level] = field(default_factory=list)
    floor_types: List[FloorType] = field(default_factory=list)
    grids: List[Grid] = field(default_factory=list)


@dataclass
class Properties:
    materials: Dict[str, Material] = field(default_factory=dict)
    frame_properties: Dict[str, FrameProperties] = field(default_factory=dict)
    floor_properties: Dict[str, FloorProperties] = field(default_factory=dict)
    wall_properties: Dict[str, WallProperties] = field(default_factory=dict)
    diaphragms: Dict[str, Diaphragm] = field(default_factory=dict)


@dataclass
class Loads:
    load_definitions: Dict[str, LoadDefinition] = field(default_factory=dict)
    load_combinations: Dict[str, LoadCombination] = field(default_factory=dict)
    surface_loads: Dict[str, SurfaceLoad] = field(default_factory=dict)


@dataclass
class Topology:
    """Connectivity and assignment records, as parsed."""
    points: Dict[str, Point] = field(default_factory=dict)
    line_connectivities: Dict[str, LineConnectivity] = field(default_factory=dict)
    area_connectivities: Dict[str, AreaConnectivity] = field(default_factory=dict)
    # key: (line_name, story) / (area_name, story) / (point_name, story)
    line_assignments: Dict[Tuple[str, str], LineAssignment] = field(default_factory=dict)
    area_assignments: Dict[Tuple[str, str], AreaAssignment] = field(default_factory=dict)
    point_assignments: Dict[Tuple[str, str], PointAssignment] = field(default_factory=dict)


@dataclass
class Elements:
    beams: List[Beam] = field(default_factory=list)
    columns: List[Column] = field(default_factory=list)
    braces: List[Brace] = field(default_factory=list)
    walls: List[Wall] = field(default_factory=list)
    floors: List[Floor] = field(default_factory=list)
    openings: List[Opening] = field(default_factory=list)
    joints: List[Joint] = field(default_factory=list)


# --- Model root ---

@dataclass
class StructuralModel:
    metadata: Metadata = field(default_factory=Metadata)
    layout: ModelLayout = field(default_factory=ModelLayout)
    properties: Properties = field(default_factory=Properties)
    loads: Loads = field(default_factory=Loads)
    topology: Topology = field(default_factory=Topology)
    elements: Elements = field(default_factory=Elements)

    # Sections read but not modelled, kept verbatim for re-export
    raw_sections: Dict[str, str] = field(default_factory=dict)
