"""
Overlay hand-written E2K sections onto a generated document.

Merging works on whole sections: a custom section replaces the generated
section of the same name, and everything is re-emitted in canonical order.
"""
import enum
import logging
from typing import Dict, Optional

from .sections import assemble_document, iter_sections, sort_section_names, split_preamble

logger = logging.getLogger(__name__)


class MergeState(enum.Enum):
    IDLE = "idle"
    PARSING_CUSTOM = "parsing_custom"
    MERGING = "merging"
    DONE = "done"


def normalize_custom_body(body: str) -> str:
    """Drop blank lines and make sure the first line is tab-indented."""
    lines = [line for line in body.split("\n") if line.strip()]
    if lines and not lines[0].startswith("\t"):
        lines[0] = "\t" + lines[0]
    return "\n".join(lines)


class SectionMerger:
    """
    Single-use merger: Idle -> ParsingCustom -> Merging -> Done.

    Call reset() to use the same instance for another pair of documents.
    """

    def __init__(self):
        self.state = MergeState.IDLE
        self.custom_sections: Dict[str, str] = {}
        self.result: Optional[str] = None

    def reset(self) -> None:
        self.state = MergeState.IDLE
        self.custom_sections = {}
        self.result = None

    def merge(self, generated: str, custom: Optional[str]) -> str:
        if self.state is not MergeState.IDLE:
            raise RuntimeError(f"SectionMerger is {self.state.value}; call reset() before merging again")

        self.state = MergeState.PARSING_CUSTOM
        self.custom_sections = {
            section.name: normalize_custom_body(section.raw_text)
            for section in iter_sections(custom or "")
        }
        if not self.custom_sections:
            logger.debug("No custom sections, returning generated document unchanged")
            self.result = generated
            self.state = MergeState.DONE
            return generated

        self.state = MergeState.MERGING
        preamble, merged = split_preamble(generated)
        for name, body in self.custom_sections.items():
            action = "overrides" if name in merged else "adds"
            logger.debug("Custom section %s %s", name, action)
            merged[name] = body

        ordered = {name: merged[name] for name in sort_section_names(merged)}
        self.result = assemble_document(ordered, header=preamble)
        self.state = MergeState.DONE
        return self.result


def merge_documents(generated: str, custom: Optional[str]) -> str:
    """Merge custom into generated with a fresh SectionMerger."""
    return SectionMerger().merge(generated, custom)
