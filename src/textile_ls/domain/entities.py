"""Domain entities for textile-ls.

Values are frozen Pydantic models.  Positions are zero-based, ranges are
half-open on the end character.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from textile_ls.domain.enums import (
    CompletionItemKind,
    DiagnosticSeverity,
    FoldingRangeKind,
    LinkKind,
    ReferenceKind,
    SymbolKind,
)
from textile_ls.domain.uri import DocumentUri


class _Value(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Text coordinates
# ---------------------------------------------------------------------------


class Position(_Value):
    """A zero-based ``(line, character)`` pair, ordered line-major."""

    line: int
    character: int

    def translate(self, line_delta: int = 0, character_delta: int = 0) -> Position:
        return Position(line=self.line + line_delta, character=self.character + character_delta)

    def key(self) -> tuple[int, int]:
        return (self.line, self.character)

    def is_before(self, other: Position) -> bool:
        return self.key() < other.key()

    def is_before_or_equal(self, other: Position) -> bool:
        return self.key() <= other.key()


class Range(_Value):
    start: Position
    end: Position

    @classmethod
    def of(cls, start_line: int, start_char: int, end_line: int, end_char: int) -> Range:
        return cls(
            start=Position(line=start_line, character=start_char),
            end=Position(line=end_line, character=end_char),
        )

    def contains(self, position: Position) -> bool:
        return self.start.is_before_or_equal(position) and position.is_before_or_equal(self.end)

    def contains_range(self, other: Range) -> bool:
        return self.contains(other.start) and self.contains(other.end)

    def intersects(self, other: Range) -> bool:
        return not (other.end.is_before(self.start) or self.end.is_before(other.start))


class Location(_Value):
    uri: DocumentUri
    range: Range


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


class ExternalHref(_Value):
    """A link that leaves the workspace (web URL, mail address, editor deep link)."""

    kind: Literal[LinkKind.EXTERNAL] = LinkKind.EXTERNAL
    uri: str


class InternalHref(_Value):
    """A link to a workspace resource.

    ``path`` never carries a fragment; the target heading lives in
    ``fragment`` (empty if the link has none).
    """

    kind: Literal[LinkKind.INTERNAL] = LinkKind.INTERNAL
    path: DocumentUri
    fragment: str = ""


class ReferenceHref(_Value):
    """A link whose href names a link definition in the same document."""

    kind: Literal[LinkKind.REFERENCE] = LinkKind.REFERENCE
    ref: str


LinkHref = Annotated[
    Union[ExternalHref, InternalHref, ReferenceHref],
    Field(discriminator="kind"),
]

DefinitionHref = Annotated[Union[ExternalHref, InternalHref], Field(discriminator="kind")]


class TextileLinkSource(_Value):
    """Where a link appears in its document."""

    resource: DocumentUri
    range: Range
    href_range: Range
    fragment_range: Range | None = None
    href_text: str
    path_text: str


class LinkReference(_Value):
    text: str
    range: Range


class TextileInlineLink(_Value):
    kind: Literal["link"] = "link"
    source: TextileLinkSource
    href: LinkHref


class TextileLinkDefinition(_Value):
    kind: Literal["definition"] = "definition"
    source: TextileLinkSource
    ref: LinkReference
    href: DefinitionHref


TextileLink = Annotated[
    Union[TextileInlineLink, TextileLinkDefinition],
    Field(discriminator="kind"),
]


class DocumentLink(_Value):
    """A host-neutral clickable link."""

    range: Range
    target: str | None = None
    position: Position | None = None
    tooltip: str | None = None


# ---------------------------------------------------------------------------
# Table of contents
# ---------------------------------------------------------------------------


class TocEntry(_Value):
    slug: str
    text: str
    level: int = Field(ge=1, le=6)
    line: int
    section_location: Location
    header_location: Location
    header_text_location: Location


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class Diagnostic(_Value):
    """A problem report.

    Diagnostics with ``link`` set report a link target that does not exist
    and can be silenced by adding ``link`` to the ignore list.
    """

    range: Range
    message: str
    severity: DiagnosticSeverity
    source: str = "textile"
    code: str | None = None
    link: str | None = None


class DiagnosticOptions(_Value):
    """Effective validation settings for one resource.

    ``validate_file_link_fragments`` falls back to ``validate_own_headers``
    when unset.
    """

    enabled: bool = False
    validate_references: DiagnosticSeverity | None = None
    validate_own_headers: DiagnosticSeverity | None = None
    validate_file_paths: DiagnosticSeverity | None = None
    validate_file_link_fragments: DiagnosticSeverity | None = None
    ignore_links: tuple[str, ...] = ()

    @property
    def file_link_fragment_severity(self) -> DiagnosticSeverity | None:
        if self.validate_file_link_fragments is not None:
            return self.validate_file_link_fragments
        return self.validate_own_headers


class DiagnosticState(_Value):
    diagnostics: tuple[Diagnostic, ...] = ()
    links: tuple[TextileLink, ...] = ()
    config: DiagnosticOptions = DiagnosticOptions()


class CodeAction(_Value):
    title: str
    kind: str
    diagnostics: tuple[Diagnostic, ...] = ()
    command: str
    arguments: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Outline
# ---------------------------------------------------------------------------


class FoldingRange(_Value):
    start: int
    end: int
    kind: FoldingRangeKind | None = None


class DocumentSymbol(_Value):
    name: str
    kind: SymbolKind = SymbolKind.STRING
    range: Range
    selection_range: Range
    children: tuple[DocumentSymbol, ...] = ()


class SymbolInformation(_Value):
    name: str
    kind: SymbolKind = SymbolKind.STRING
    location: Location


# ---------------------------------------------------------------------------
# References and completions
# ---------------------------------------------------------------------------


class TextileLinkReference(_Value):
    """A link that points at the same target as the trigger location."""

    kind: Literal[ReferenceKind.LINK] = ReferenceKind.LINK
    is_trigger_location: bool
    is_definition: bool
    location: Location
    link: TextileLink


class TextileHeaderReference(_Value):
    """A heading that links point at.

    ``location`` spans the whole heading line (``h2. Title``) and
    ``header_text_location`` just its text (``Title``).
    """

    kind: Literal[ReferenceKind.HEADER] = ReferenceKind.HEADER
    is_trigger_location: bool
    is_definition: bool
    location: Location
    header_text: str
    header_text_location: Location


TextileReference = Annotated[
    Union[TextileLinkReference, TextileHeaderReference],
    Field(discriminator="kind"),
]


class CompletionItem(_Value):
    """A path, heading or link-definition suggestion for a link being typed.

    ``range`` is the text the suggestion replaces.
    """

    label: str
    kind: CompletionItemKind
    insert_text: str
    range: Range
