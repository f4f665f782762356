"""Domain enumerations for textile-ls."""

from __future__ import annotations

from enum import Enum


class LinkKind(str, Enum):
    """Where a resolved link points."""

    EXTERNAL = "external"
    INTERNAL = "internal"
    REFERENCE = "reference"


class DiagnosticSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"
    HINT = "hint"

    @property
    def rank(self) -> int:
        """Lower is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    DiagnosticSeverity.ERROR: 0,
    DiagnosticSeverity.WARNING: 1,
    DiagnosticSeverity.INFORMATION: 2,
    DiagnosticSeverity.HINT: 3,
}


class DiagnosticLevel(str, Enum):
    """User-facing validation level for one family of link checks.

    ``ignore`` turns the check off entirely.
    """

    IGNORE = "ignore"
    WARNING = "warning"
    ERROR = "error"

    def to_severity(self) -> DiagnosticSeverity | None:
        if self is DiagnosticLevel.ERROR:
            return DiagnosticSeverity.ERROR
        if self is DiagnosticLevel.WARNING:
            return DiagnosticSeverity.WARNING
        return None


class FoldingRangeKind(str, Enum):
    REGION = "region"
    COMMENT = "comment"


class SymbolKind(str, Enum):
    STRING = "string"


class TokenKind(str, Enum):
    """Shape of a tokenizer node: text leaf or tagged container."""

    LEAF = "leaf"
    CONTAINER = "container"


class ReferenceKind(str, Enum):
    LINK = "link"
    HEADER = "header"


class CompletionItemKind(str, Enum):
    """What a path completion inserts."""

    HEADER = "header"
    REFERENCE = "reference"
    FILE = "file"
    FOLDER = "folder"
