"""
Parse diagnostics: what an import skipped or could not resolve.

Parsers keep going past bad lines and missing references; every such event is
recorded here so a partial model can be told apart from a complete one.
"""
from collections import Counter
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from .errors import MalformedSection, UnresolvedReference


class SkippedLine(BaseModel):
    section: str
    line_number: int = Field(..., description="1-based line number inside the section body")
    text: str
    reason: str = "no grammar matched"


class UnresolvedRef(BaseModel):
    kind: str = Field(..., description="Table the name was looked up in, e.g. 'material'")
    name: str
    referenced_from: Optional[str] = None
    section: Optional[str] = None


class ParseDiagnostics(BaseModel):
    skipped_lines: List[SkippedLine] = Field(default_factory=list)
    unresolved_references: List[UnresolvedRef] = Field(default_factory=list)

    def skip(self, section: str, line_number: int, text: str, reason: str = "no grammar matched") -> None:
        self.skipped_lines.append(
            SkippedLine(section=section, line_number=line_number, text=text.strip(), reason=reason)
        )

    def unresolved(
        self,
        kind: str,
        name: str,
        referenced_from: Optional[str] = None,
        section: Optional[str] = None,
    ) -> None:
        self.unresolved_references.append(
            UnresolvedRef(kind=kind, name=name, referenced_from=referenced_from, section=section)
        )

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_lines)

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved_references)

    @property
    def is_clean(self) -> bool:
        return not self.skipped_lines and not self.unresolved_references

    def by_section(self) -> Dict[str, int]:
        """Number of diagnostics entries per section name."""
        counts: Counter = Counter()
        for line in self.skipped_lines:
            counts[line.section] += 1
        for ref in self.unresolved_references:
            counts[ref.section or "?"] += 1
        return dict(counts)

    def raise_for_strict(self) -> None:
        """Raise the first recorded problem as an exception."""
        if self.skipped_lines:
            first = self.skipped_lines[0]
            raise MalformedSection(first.section, first.line_number, first.text, first.reason)
        if self.unresolved_references:
            ref = self.unresolved_references[0]
            raise UnresolvedReference(ref.kind, ref.name, ref.referenced_from)
