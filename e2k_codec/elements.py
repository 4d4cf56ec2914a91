"""
Placed geometry: join connectivity records, their per-story assignments and
point coordinates into beams, columns, braces, walls, floors, openings and joints.
"""
import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .classify import is_joist
from .model import (
    AreaAssignment, AreaConnectivity, Beam, Brace, Column, Elements, Floor, Joint, Level,
    LineAssignment, LineConnectivity, Opening, Point, SurfaceLoad, Topology, Wall,
)
from .parser import ParseContext, normalize_story_name

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LevelIndex:
    """Story-name lookup over the parsed levels, ordered by elevation."""

    def __init__(self, levels: Sequence[Level]):
        self.ordered: List[Level] = sorted(levels, key=lambda lv: lv.elevation)
        self._by_name: Dict[str, Level] = {}
        for level in self.ordered:
            for key in (level.name, f"Story{level.name}", level.source_name):
                if key:
                    self._by_name[key.lower()] = level

    def find(self, story: Optional[str]) -> Optional[Level]:
        if not story:
            return None
        return (self._by_name.get(story.lower())
                or self._by_name.get(normalize_story_name(story).lower()))

    def below(self, level: Level) -> Level:
        """Next lower level, or the level itself when it is the lowest."""
        index = self.ordered.index(level)
        return self.ordered[index - 1] if index > 0 else level


def _group_by_element(assignments: Mapping[Tuple[str, str], T]) -> Dict[str, List[T]]:
    grouped: Dict[str, List[T]] = {}
    for (element, _), record in assignments.items():
        grouped.setdefault(element, []).append(record)
    return grouped


def _plan(point: Point) -> Tuple[float, float]:
    return (point.x, point.y)


def build_line_elements(
    connectivities: Mapping[str, LineConnectivity],
    assignments: Mapping[Tuple[str, str], LineAssignment],
    points: Mapping[str, Point],
    levels: LevelIndex,
    ctx: ParseContext,
    elements: Elements,
) -> None:
    """One beam/column/brace per (line, story) assignment."""
    section = "LINE ASSIGNS"
    by_line = _group_by_element(assignments)

    for name, line in connectivities.items():
        p1, p2 = ctx.lookup(points, line.point1), ctx.lookup(points, line.point2)
        if p1 is None or p2 is None:
            # already reported by the connectivity parser
            continue

        records = by_line.get(name)
        if not records:
            _add_line_element(elements, ctx, line, p1, p2, None, None, None)
            continue

        for record in records:
            level = levels.find(record.story)
            if level is None:
                ctx.diagnostics.unresolved("level", record.story, referenced_from=name, section=section)
                continue
            _add_line_element(elements, ctx, line, p1, p2, record, level, levels.below(level))


def _add_line_element(
    elements: Elements,
    ctx: ParseContext,
    line: LineConnectivity,
    p1: Point,
    p2: Point,
    record: Optional[LineAssignment],
    level: Optional[Level],
    base: Optional[Level],
) -> None:
    section_id = record.section_id if record else None
    lateral = record.is_lateral if record else False
    level_id = level.id if level else None
    base_id = base.id if base else None

    if line.category == "Beam":
        beam = Beam(
            start=_plan(p1), end=_plan(p2), level_id=level_id,
            frame_properties_id=section_id, is_lateral=lateral,
            is_joist=is_joist(record.release, record.section) if record else False,
            source=line.name, id=ctx.ids.generate("beam"),
        )
        if record:
            beam.modifiers = replace(record.modifiers)
        elements.beams.append(beam)
    elif line.category == "Column":
        column = Column(
            start=_plan(p1), end=_plan(p2), base_level_id=base_id, top_level_id=level_id,
            frame_properties_id=section_id,
            orientation=record.angle if record and record.angle is not None else 0.0,
            is_lateral=lateral, source=line.name, id=ctx.ids.generate("column"),
        )
        if record:
            column.modifiers = replace(record.modifiers)
        elements.columns.append(column)
    else:
        brace = Brace(
            start=_plan(p1), end=_plan(p2), base_level_id=base_id, top_level_id=level_id,
            frame_properties_id=section_id, source=line.name, id=ctx.ids.generate("brace"),
        )
        if record:
            brace.modifiers = replace(record.modifiers)
        elements.braces.append(brace)


def build_area_elements(
    connectivities: Mapping[str, AreaConnectivity],
    assignments: Mapping[Tuple[str, str], AreaAssignment],
    points: Mapping[str, Point],
    surface_loads: Mapping[str, SurfaceLoad],
    levels: LevelIndex,
    ctx: ParseContext,
    elements: Elements,
) -> None:
    """Floors, walls and openings, one per (area, story) assignment."""
    section = "AREA ASSIGNS"
    by_area = _group_by_element(assignments)

    for name, area in connectivities.items():
        ring = [ctx.lookup(points, p) for p in area.points]
        if any(p is None for p in ring):
            continue

        records = by_area.get(name)
        if not records:
            _add_area_element(elements, ctx, area, ring, None, None, None, surface_loads)
            continue

        for record in records:
            level = levels.find(record.story)
            if level is None:
                ctx.diagnostics.unresolved("level", record.story, referenced_from=name, section=section)
                continue
            _add_area_element(elements, ctx, area, ring, record, level, levels.below(level), surface_loads)


def _add_area_element(
    elements: Elements,
    ctx: ParseContext,
    area: AreaConnectivity,
    ring: List[Point],
    record: Optional[AreaAssignment],
    level: Optional[Level],
    base: Optional[Level],
    surface_loads: Mapping[str, SurfaceLoad],
) -> None:
    plan = [_plan(p) for p in ring]
    level_id = level.id if level else None

    if area.category == "Opening" or (record and record.is_opening):
        elements.openings.append(Opening(points=plan, level_id=level_id, source=area.name,
                                         id=ctx.ids.generate("opening")))
        return

    if area.category == "Wall":
        distinct: List[Tuple[float, float]] = []
        for xy in plan:
            if xy not in distinct:
                distinct.append(xy)
        if len(distinct) < 2:
            ctx.diagnostics.unresolved("wall_geometry", area.name, referenced_from=area.name,
                                       section="AREA CONNECTIVITIES")
            return
        elements.walls.append(Wall(
            points=distinct[:2],
            base_level_id=base.id if base else None,
            top_level_id=level_id,
            wall_properties_id=record.section_id if record else None,
            source=area.name,
            id=ctx.ids.generate("wall"),
        ))
        return

    if len(plan) < 3:
        ctx.diagnostics.unresolved("floor_geometry", area.name, referenced_from=area.name,
                                   section="AREA CONNECTIVITIES")
        return
    surface_load = None
    if record and record.load_set:
        surface_load = ctx.resolve(surface_loads, record.load_set, "surface_load",
                                   referenced_from=area.name, section="SHELL OBJECT LOADS")
    elements.floors.append(Floor(
        points=plan,
        level_id=level_id,
        floor_properties_id=record.section_id if record else None,
        diaphragm_id=record.diaphragm_id if record else None,
        surface_load_id=surface_load.id if surface_load else None,
        source=area.name,
        id=ctx.ids.generate("floor"),
    ))


def build_joints(topology: Topology, levels: LevelIndex, ctx: ParseContext, elements: Elements) -> None:
    """Restrained points from POINT ASSIGNS."""
    for (name, story), record in topology.point_assignments.items():
        point = ctx.lookup(topology.points, name)
        if point is None:
            continue
        level = levels.find(story)
        if level is None:
            ctx.diagnostics.unresolved("level", story, referenced_from=name, section="POINT ASSIGNS")
            continue
        elements.joints.append(Joint(
            point=(point.x, point.y, level.elevation),
            level_id=level.id,
            restraint=record.restraint,
            source=name,
            id=ctx.ids.generate("joint"),
        ))


def build_elements(
    topology: Topology,
    levels: Sequence[Level],
    surface_loads: Mapping[str, SurfaceLoad],
    ctx: ParseContext,
) -> Elements:
    """Assemble every placed element of the model."""
    index = LevelIndex(levels)
    elements = Elements()
    build_line_elements(topology.line_connectivities, topology.line_assignments,
                        topology.points, index, ctx, elements)
    build_area_elements(topology.area_connectivities, topology.area_assignments,
                        topology.points, surface_loads, index, ctx, elements)
    build_joints(topology, index, ctx, elements)

    logger.debug(
        "Built %d beams, %d columns, %d braces, %d walls, %d floors, %d openings, %d joints",
        len(elements.beams), len(elements.columns), len(elements.braces), len(elements.walls),
        len(elements.floors), len(elements.openings), len(elements.joints),
    )
    return elements
