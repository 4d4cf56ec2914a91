"""
E2K import: run the section parsers in dependency order and assemble the
structural model.

Order: materials -> frame/floor/wall properties -> diaphragms ->
stories/grids/points -> line/area connectivity -> assignments -> loads ->
placed elements. Each stage only reads tables built by earlier stages.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from .config import CodecSettings, get_settings
from .diagnostics import ParseDiagnostics
from .elements import build_elements
from .errors import OrchestrationFailure
from .ids import IdAllocator
from .model import Metadata, ModelLayout, Properties, Loads, StructuralModel, Topology
from . import parser
from .sections import split_preamble, split_sections

logger = logging.getLogger(__name__)

# Sections read into entities; everything else is kept verbatim in raw_sections
MODELLED_SECTIONS = frozenset({
    "PROGRAM INFORMATION",
    "CONTROLS",
    "STORIES - IN SEQUENCE FROM TOP",
    "GRIDS",
    "DIAPHRAGM NAMES",
    "MATERIAL PROPERTIES",
    "FRAME SECTIONS",
    "SLAB PROPERTIES",
    "DECK PROPERTIES",
    "WALL PROPERTIES",
    "POINT COORDINATES",
    "LINE CONNECTIVITIES",
    "AREA CONNECTIVITIES",
    "POINT ASSIGNS",
    "LINE ASSIGNS",
    "AREA ASSIGNS",
    "LOAD PATTERNS",
    "LOAD COMBINATIONS",
    "SHELL UNIFORM LOAD SETS",
    "SHELL OBJECT LOADS",
    "PROJECT INFORMATION",
    "LOG",
    "END OF MODEL FILE",
})


@dataclass
class ImportResult:
    model: StructuralModel
    diagnostics: ParseDiagnostics


def import_e2k(
    text: str,
    *,
    settings: Optional[CodecSettings] = None,
    ids: Optional[IdAllocator] = None,
) -> ImportResult:
    """
    Parse E2K text into a StructuralModel.

    Malformed lines and unresolved references do not stop the import; they are
    listed in the returned diagnostics (and raised afterwards when
    settings.strict is set). Any other exception aborts the import as an
    OrchestrationFailure naming the stage it happened in.
    """
    settings = settings or get_settings()
    ctx = parser.ParseContext(
        ids=ids or IdAllocator(),
        case_insensitive=settings.case_insensitive_refs,
    )

    pipeline = _Pipeline()
    try:
        sections = pipeline.run("split", split_sections, text)
        model = _assemble(sections, ctx, settings, pipeline)
        pipeline.stage = "raw_sections"
        _, verbatim = split_preamble(text)
        model.raw_sections = {
            name: body for name, body in verbatim.items()
            if name.upper() not in MODELLED_SECTIONS
        }
    except Exception as exc:
        logger.exception("E2K import failed during %s", pipeline.stage)
        raise OrchestrationFailure(f"Error importing from E2K: {exc}", stage=pipeline.stage) from exc

    logger.debug("Issued ids: %s", dict(ctx.ids.counts))
    diagnostics = ctx.diagnostics
    logger.info(
        "Imported E2K: %d materials, %d levels, %d beams, %d columns, %d walls, %d floors",
        len(model.properties.materials), len(model.layout.levels), len(model.elements.beams),
        len(model.elements.columns), len(model.elements.walls), len(model.elements.floors),
    )
    if not diagnostics.is_clean:
        logger.warning(
            "E2K import finished with %d skipped lines and %d unresolved references",
            diagnostics.skipped_count, diagnostics.unresolved_count,
        )
        if settings.strict:
            diagnostics.raise_for_strict()

    return ImportResult(model=model, diagnostics=diagnostics)


class _Pipeline:
    """Runs import steps in order, remembering the one in progress."""

    def __init__(self):
        self.stage: Optional[str] = None

    def run(self, stage: str, func, *args, **kwargs):
        self.stage = stage
        logger.debug("Import stage: %s", stage)
        return func(*args, **kwargs)


def _assemble(
    sections: Dict[str, str],
    ctx: parser.ParseContext,
    settings: CodecSettings,
    pipeline: _Pipeline,
) -> StructuralModel:
    run = pipeline.run
    get = sections.get

    metadata = Metadata(
        project_info=run("project_info", parser.parse_project_info,
                         get("PROGRAM INFORMATION"), get("CONTROLS"), get("PROJECT INFORMATION")),
        units=run("units", parser.parse_units, get("CONTROLS")),
    )

    materials = run("materials", parser.parse_materials, get("MATERIAL PROPERTIES"), ctx)
    frame_properties = run("frame_properties", parser.parse_frame_sections,
                           get("FRAME SECTIONS"), materials, ctx)
    floor_properties = run(
        "floor_properties", parser.parse_floor_properties,
        get("SLAB PROPERTIES"), get("DECK PROPERTIES"), materials, ctx,
        deck_match_threshold=settings.deck_match_threshold,
        deck_depth_tolerance=settings.deck_depth_tolerance,
    )
    wall_properties = run("wall_properties", parser.parse_wall_properties,
                          get("WALL PROPERTIES"), materials, ctx)
    diaphragms = run("diaphragms", parser.parse_diaphragms, get("DIAPHRAGM NAMES"), ctx)

    levels, floor_types = run("stories", parser.parse_stories, get("STORIES - IN SEQUENCE FROM TOP"), ctx)
    grids = run("grids", parser.parse_grids, get("GRIDS"), ctx, settings.grid_extent)
    points = run("points", parser.parse_points, get("POINT COORDINATES"), ctx)

    line_connectivities = run("line_connectivities", parser.parse_line_connectivities,
                              get("LINE CONNECTIVITIES"), points, ctx)
    area_connectivities = run("area_connectivities", parser.parse_area_connectivities,
                              get("AREA CONNECTIVITIES"), points, ctx)

    line_assignments = run("line_assignments", parser.parse_line_assigns,
                           get("LINE ASSIGNS"), frame_properties, line_connectivities, ctx)
    area_assignments = run(
        "area_assignments", parser.parse_area_assigns,
        get("AREA ASSIGNS"), floor_properties, wall_properties, diaphragms, area_connectivities, ctx,
        object_loads_text=get("SHELL OBJECT LOADS"),
    )
    point_assignments = run("point_assignments", parser.parse_point_assigns, get("POINT ASSIGNS"), points, ctx)

    load_definitions = run("load_patterns", parser.parse_load_patterns, get("LOAD PATTERNS"), ctx)
    load_combinations = run("load_combinations", parser.parse_load_combinations,
                            get("LOAD COMBINATIONS"), load_definitions, ctx)
    surface_loads = run("surface_loads", parser.parse_surface_loads,
                        get("SHELL UNIFORM LOAD SETS"), load_definitions, floor_types, ctx)

    topology = Topology(
        points=points,
        line_connectivities=line_connectivities,
        area_connectivities=area_connectivities,
        line_assignments=line_assignments,
        area_assignments=area_assignments,
        point_assignments=point_assignments,
    )
    layout = ModelLayout(
        levels=list(levels.values()),
        floor_types=list(floor_types.values()),
        grids=list(grids.values()),
    )
    elements = run("elements", build_elements, topology, layout.levels, surface_loads, ctx)

    return StructuralModel(
        metadata=metadata,
        layout=layout,
        properties=Properties(
            materials=materials,
            frame_properties=frame_properties,
            floor_properties=floor_properties,
            wall_properties=wall_properties,
            diaphragms=diaphragms,
        ),
        loads=Loads(
            load_definitions=load_definitions,
            load_combinations=load_combinations,
            surface_loads=surface_loads,
        ),
        topology=topology,
        elements=elements,
    )


def load_e2k_file(
    path: Union[str, Path],
    *,
    settings: Optional[CodecSettings] = None,
    ids: Optional[IdAllocator] = None,
) -> ImportResult:
    """
    Read an .e2k file and import it.

    Args:
        path: Path to .e2k file

    Returns:
        ImportResult with the model and its parse diagnostics
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"E2K file not found: {path}")

    # Read file; tolerate stray bytes from older exports
    content = path.read_text(encoding="utf-8", errors="ignore")
    logger.debug("Read %d characters from %s", len(content), path)
    return import_e2k(content, settings=settings, ids=ids)
