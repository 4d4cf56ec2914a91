"""
Identifier generation for imported entities.

Ids look like ``MAT-1f3a09c2``: a category prefix plus eight hex digits of a
fresh uuid4, so two parses of the same text never share ids. Each import gets
its own allocator; collisions are only checked within it, and a per-category
counter tracks how many ids it issued.
"""
import uuid
from collections import Counter
from typing import Dict, Set


# Category -> prefix
PREFIXES: Dict[str, str] = {
    # Properties
    "material": "MAT",
    "wall_properties": "WP",
    "floor_properties": "FP",
    "frame_properties": "FRP",
    "diaphragm": "DIA",
    # Layout
    "grid": "GR",
    "level": "LV",
    "floor_type": "FT",
    # Topology
    "point": "PT",
    "line_connectivity": "LN",
    "area_connectivity": "AR",
    # Elements
    "beam": "BM",
    "column": "COL",
    "wall": "WL",
    "floor": "FL",
    "brace": "BR",
    "joint": "JT",
    "opening": "OP",
    # Loads
    "load_definition": "LD",
    "surface_load": "SL",
    "load_combination": "LC",
}


class IdAllocator:
    """Hands out unique ids per category for one import."""

    def __init__(self):
        self._issued: Set[str] = set()
        self.counts: Counter = Counter()

    def generate(self, category: str) -> str:
        try:
            prefix = PREFIXES[category]
        except KeyError:
            raise ValueError(f"Unknown id category: {category!r}") from None

        while True:
            new_id = f"{prefix}-{uuid.uuid4().hex[:8]}"
            if new_id not in self._issued:
                break
        self._issued.add(new_id)
        self.counts[category] += 1
        return new_id
