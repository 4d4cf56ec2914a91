"""
Diff engine: compare two StructuralModel instances collection by collection.

Generated ids differ on every import, so objects are matched by name (or by
their (element, story) key for assignments) and id-valued fields are ignored.
"""
from dataclasses import dataclass, asdict, fields, is_dataclass
from typing import Any, Dict, List, Mapping, Optional

from .model import StructuralModel


@dataclass
class FieldChange:
    field: str
    old: Any
    new: Any


@dataclass
class ObjectAdded:
    object_type: str           # "material", "level", "line_assignment", ...
    key: str                   # e.g. material name
    new_data: Dict[str, Any]   # serialized snapshot


@dataclass
class ObjectRemoved:
    object_type: str
    key: str
    old_data: Dict[str, Any]


@dataclass
class ObjectModified:
    object_type: str
    key: str
    changes: List[FieldChange]


@dataclass
class ModelDiff:
    """
    Changes grouped by kind.
    """
    added: List[ObjectAdded]
    removed: List[ObjectRemoved]
    modified: List[ObjectModified]

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)


DEFAULT_TOLERANCES: Dict[str, float] = {
    "elevation": 1e-3,
    "coord": 1e-3,
    "E": 1e-3,
    "Fy": 1e-3,
    "fc": 1e-3,
}


def _is_id_field(name: str) -> bool:
    return name == "id" or name.endswith("_id") or name.endswith("_ids")


def _key_str(key: Any) -> str:
    # Convert tuple keys to string for serialization
    return "/".join(str(k) for k in key) if isinstance(key, tuple) else str(key)


def _snapshot(obj: Any) -> Dict[str, Any]:
    if is_dataclass(obj):
        return {k: v for k, v in asdict(obj).items() if not _is_id_field(k)}
    return {"value": str(obj)}


def _values_equal(old: Any, new: Any, tol: float) -> bool:
    if isinstance(old, bool) or isinstance(new, bool):
        return old == new
    if isinstance(old, (int, float)) and isinstance(new, (int, float)):
        return abs(old - new) <= tol
    if is_dataclass(old) and is_dataclass(new):
        return not _compare_objects(old, new, {"coord": tol})
    if isinstance(old, (list, tuple)) and isinstance(new, (list, tuple)):
        return len(old) == len(new) and all(_values_equal(a, b, tol) for a, b in zip(old, new))
    if isinstance(old, dict) and isinstance(new, dict):
        return old.keys() == new.keys() and all(_values_equal(old[k], new[k], tol) for k in old)
    return old == new


def _compare_objects(old_obj: Any, new_obj: Any, numeric_tol: Mapping[str, float]) -> List[FieldChange]:
    """Compare two dataclass objects field by field, skipping id fields."""
    changes = []
    for f in fields(old_obj):
        if _is_id_field(f.name):
            continue
        old_val = getattr(old_obj, f.name, None)
        new_val = getattr(new_obj, f.name, None)
        tol = numeric_tol.get(f.name, numeric_tol.get("coord", 1e-3))
        if not _values_equal(old_val, new_val, tol):
            changes.append(FieldChange(field=f.name, old=old_val, new=new_val))
    return changes


def _diff_collection(
    object_type: str,
    old_dict: Mapping[Any, Any],
    new_dict: Mapping[Any, Any],
    numeric_tol: Mapping[str, float],
    diff: ModelDiff,
) -> None:
    for key, obj in new_dict.items():
        if key not in old_dict:
            diff.added.append(ObjectAdded(object_type=object_type, key=_key_str(key), new_data=_snapshot(obj)))
    for key, obj in old_dict.items():
        if key not in new_dict:
            diff.removed.append(ObjectRemoved(object_type=object_type, key=_key_str(key), old_data=_snapshot(obj)))
            continue
        changes = _compare_objects(obj, new_dict[key], numeric_tol)
        if changes:
            diff.modified.append(ObjectModified(object_type=object_type, key=_key_str(key), changes=changes))


def _by_name(items) -> Dict[str, Any]:
    return {item.name: item for item in items}


def _diff_raw_sections(old: Mapping[str, str], new: Mapping[str, str], diff: ModelDiff) -> None:
    for name in new:
        if name not in old:
            diff.added.append(ObjectAdded(object_type="raw_section", key=name,
                                          new_data={"line_count": len(new[name].splitlines())}))
    for name, body in old.items():
        if name not in new:
            diff.removed.append(ObjectRemoved(object_type="raw_section", key=name,
                                              old_data={"line_count": len(body.splitlines())}))
            continue
        old_lines = {line.strip() for line in body.splitlines() if line.strip()}
        new_lines = {line.strip() for line in new[name].splitlines() if line.strip()}
        if old_lines == new_lines:
            continue
        changes = []
        if new_lines - old_lines:
            changes.append(FieldChange(field="lines_added", old=None, new=sorted(new_lines - old_lines)))
        if old_lines - new_lines:
            changes.append(FieldChange(field="lines_removed", old=sorted(old_lines - new_lines), new=None))
        diff.modified.append(ObjectModified(object_type="raw_section", key=name, changes=changes))


def compare_models(
    old: StructuralModel,
    new: StructuralModel,
    *,
    numeric_tol: Optional[Dict[str, float]] = None,
) -> ModelDiff:
    """
    Compare two models and return a ModelDiff.

    - numeric_tol: optional mapping from field name to absolute tolerance;
      differences within tolerance count as unchanged. "coord" is the
      fallback for fields without their own entry.
    - placed elements are not compared: they are derived from topology,
      which is.
    """
    tol = dict(DEFAULT_TOLERANCES)
    if numeric_tol:
        tol.update(numeric_tol)

    diff = ModelDiff(added=[], removed=[], modified=[])
    collections = [
        ("level", _by_name(old.layout.levels), _by_name(new.layout.levels)),
        ("grid", _by_name(old.layout.grids), _by_name(new.layout.grids)),
        ("material", old.properties.materials, new.properties.materials),
        ("frame_section", old.properties.frame_properties, new.properties.frame_properties),
        ("floor_property", old.properties.floor_properties, new.properties.floor_properties),
        ("wall_property", old.properties.wall_properties, new.properties.wall_properties),
        ("diaphragm", old.properties.diaphragms, new.properties.diaphragms),
        ("point", old.topology.points, new.topology.points),
        ("line", old.topology.line_connectivities, new.topology.line_connectivities),
        ("area", old.topology.area_connectivities, new.topology.area_connectivities),
        ("line_assignment", old.topology.line_assignments, new.topology.line_assignments),
        ("area_assignment", old.topology.area_assignments, new.topology.area_assignments),
        ("point_assignment", old.topology.point_assignments, new.topology.point_assignments),
        ("load_pattern", old.loads.load_definitions, new.loads.load_definitions),
        ("load_combo", old.loads.load_combinations, new.loads.load_combinations),
        ("surface_load", old.loads.surface_loads, new.loads.surface_loads),
    ]
    for object_type, old_items, new_items in collections:
        _diff_collection(object_type, old_items, new_items, tol, diff)

    _diff_raw_sections(old.raw_sections, new.raw_sections, diff)
    return diff
