"""
Exceptions raised by the E2K codec.

Malformed lines and unresolved references are normally only recorded in the
parse diagnostics; the matching exceptions are raised in strict mode.
"""
from typing import Optional


class E2KError(Exception):
    """Base class for all codec errors."""


class MalformedSection(E2KError):
    """A line in a section does not match any grammar of its parser."""

    def __init__(self, section: str, line_number: int, text: str, reason: str = ""):
        self.section = section
        self.line_number = line_number
        self.text = text
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Malformed line {line_number} in ${section}{detail}: {text!r}")


class UnresolvedReference(E2KError):
    """A named reference was not found in the table it points to."""

    def __init__(self, kind: str, name: str, referenced_from: Optional[str] = None):
        self.kind = kind
        self.name = name
        self.referenced_from = referenced_from
        where = f" (referenced from {referenced_from})" if referenced_from else ""
        super().__init__(f"Unresolved {kind} reference {name!r}{where}")


class OrchestrationFailure(E2KError):
    """
    An unexpected exception aborted an import or export.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        self.stage = stage
        super().__init__(message)
