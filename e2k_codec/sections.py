"""
Section-level handling of E2K text: splitting into named sections, the
canonical section order, and assembling sections back into a document.
"""
import re
import sys
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple

logger = logging.getLogger(__name__)

# "$ POINT COORDINATES", "$ STORIES - IN SEQUENCE FROM TOP", "$ PIER/SPANDREL NAMES"
SECTION_HEADER = re.compile(r"^\$ ([A-Z][A-Z0-9 _/\-]+)", re.MULTILINE)

# Canonical output order. Names not listed here sort after all of these.
SECTION_ORDER: Tuple[str, ...] = (
    "PROGRAM INFORMATION",
    "CONTROLS",
    "STORIES - IN SEQUENCE FROM TOP",
    "GRIDS",
    "DIAPHRAGM NAMES",
    "MATERIAL PROPERTIES",
    "REBAR DEFINITIONS",
    "FRAME SECTIONS",
    "CONCRETE SECTIONS",
    "TENDON SECTIONS",
    "SLAB PROPERTIES",
    "DECK PROPERTIES",
    "WALL PROPERTIES",
    "LINK PROPERTIES",
    "PANEL ZONE PROPERTIES",
    "PIER/SPANDREL NAMES",
    "POINT COORDINATES",
    "LINE CONNECTIVITIES",
    "AREA CONNECTIVITIES",
    "GROUPS",
    "POINT ASSIGNS",
    "LINE ASSIGNS",
    "AREA ASSIGNS",
    "LOAD PATTERNS",
    "LOAD COMBINATIONS",
    "ANALYSIS OPTIONS",
    "MASS SOURCE",
    "FUNCTIONS",
    "GENERALIZED DISPLACEMENTS",
    "LOAD CASES",
    "STEEL DESIGN PREFERENCES",
    "STEEL DESIGN OVERWRITES",
    "CONCRETE DESIGN PREFERENCES",
    "COMPOSITE DESIGN PREFERENCES",
    "COMPOSITE COLUMN DESIGN PREFERENCES",
    "WALL DESIGN PREFERENCES",
    "CONCRETE SLAB DESIGN PREFERENCES",
    "DIMENSION LINES",
    "DEVELOPED ELEVATIONS",
    "TABLE SETS",
    "PROJECT INFORMATION",
    "LOG",
)

UNKNOWN_SECTION_INDEX = sys.maxsize

_ORDER_LOOKUP: Dict[str, int] = {name.upper(): i for i, name in enumerate(SECTION_ORDER)}


@dataclass
class Section:
    name: str                   # "POINT COORDINATES"
    raw_text: str               # body without the header line


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def iter_section_blocks(text: str) -> Iterator[Tuple[str, int, int]]:
    """
    Yield (name, body_start, body_end) offsets for every section header in text.

    The body starts right after the header match and runs to the start of the
    next header, or to the end of the document for the last section.
    """
    matches = list(SECTION_HEADER.finditer(text))
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        yield match.group(1).strip(), match.end(), end


def iter_sections(text: str) -> Iterator[Section]:
    text = normalize_newlines(text or "")
    for name, start, end in iter_section_blocks(text):
        yield Section(name=name, raw_text=text[start:end].strip())


def split_sections(text: str) -> Dict[str, str]:
    """
    Split raw E2K text into an ordered mapping {section_name: trimmed body}.

    Example:
        "$ POINT COORDINATES"
        '  POINT "1"  0 0'
        "$ LINE CONNECTIVITIES"
        '  LINE "B1" BEAM "1" "2" 0'

    Returns:
        {"POINT COORDINATES": 'POINT "1"  0 0', "LINE CONNECTIVITIES": ...}

    Empty or header-less text gives an empty mapping. A repeated section name
    keeps its first position and the last body.
    """
    sections: Dict[str, str] = {}
    for section in iter_sections(text):
        sections[section.name] = section.raw_text
    logger.debug("Split %d sections", len(sections))
    return sections


def split_preamble(text: str) -> Tuple[str, Dict[str, str]]:
    """
    Split text into (preamble, sections), keeping each body's indentation.

    The preamble is everything before the first header, verbatim. Bodies only
    lose their leading and trailing blank lines.
    """
    text = normalize_newlines(text or "")
    sections: Dict[str, str] = {}
    preamble = text
    for i, (name, start, end) in enumerate(iter_section_blocks(text)):
        if i == 0:
            header_start = text.rfind("\n", 0, start) + 1
            preamble = text[:header_start]
        body = text[start:end]
        # the header line's remainder belongs to the header
        newline = body.find("\n")
        body = body[newline + 1:] if newline >= 0 else ""
        sections[name] = _trim_blank_lines(body)
    return preamble.rstrip(), sections


def _trim_blank_lines(body: str) -> str:
    lines = body.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(line.rstrip() for line in lines)


# --- Section order table ---

def order_index(name: str) -> int:
    """Position of a section in the canonical order (case-insensitive), or UNKNOWN_SECTION_INDEX."""
    return _ORDER_LOOKUP.get(name.strip().upper(), UNKNOWN_SECTION_INDEX)


def sort_section_names(names: Iterable[str]) -> List[str]:
    """Known names in canonical order, then unknown names in the order given."""
    # sorted() is stable, so unknown names keep their relative order
    return sorted(names, key=order_index)


# --- Document assembly ---

def format_section(name: str, body: str) -> str:
    body = body.strip("\n")
    return f"$ {name}\n{body}" if body else f"$ {name}"


def assemble_document(sections: Mapping[str, str], header: str = "", footer: str = "") -> str:
    """
    Join header, sections in canonical order, and footer into one document.

    Each section is written as "$ NAME" followed by its body; consecutive
    blocks are separated by exactly one blank line.
    """
    parts: List[str] = []
    if header.strip():
        parts.append(header.strip("\n"))
    for name in sort_section_names(sections):
        parts.append(format_section(name, sections[name]))
    if footer.strip():
        parts.append(footer.strip("\n"))
    if not parts:
        return ""
    return "\n\n".join(parts) + "\n"
