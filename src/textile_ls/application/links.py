"""Link extraction and href resolution.

- :class:`NoLinkRanges` - regions (code blocks, comments, ``@code@`` spans)
  where link syntax is ignored;
- :func:`resolve_link` - turns an href into an external, internal or no
  target;
- :class:`TextileLinkComputer` - extracts every link of a document;
- :class:`TextileLinkProvider` - per-document cached links plus
  host-neutral clickable links.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence
from urllib.parse import unquote

import structlog

from textile_ls.application.cache import DocumentInfoCache
from textile_ls.domain.entities import (
    DocumentLink,
    ExternalHref,
    InternalHref,
    LinkReference,
    Position,
    Range,
    ReferenceHref,
    TextileInlineLink,
    TextileLink,
    TextileLinkDefinition,
    TextileLinkSource,
)
from textile_ls.domain.exceptions import LinkResolutionError
from textile_ls.domain.ports import TextDocument, TextileParser, TextileWorkspace
from textile_ls.domain.uri import EDITOR_SCHEMES, DocumentUri, Schemes
from textile_ls.infrastructure.concurrency import NEVER_CANCELLED, CancellationToken
from textile_ls.infrastructure.parsing.link_patterns import (
    RawMatch,
    extract_images,
    extract_inline_code_spans,
    extract_link_definitions,
    extract_quoted_links,
)
from textile_ls.infrastructure.parsing.tokens import collect

logger = structlog.get_logger(__name__)

NO_LINK_TAGS = frozenset({"code", "pre", "!"})

KNOWN_EXTERNAL_SCHEMES: tuple[str, ...] = (
    Schemes.HTTP,
    Schemes.HTTPS,
    Schemes.FILE,
    Schemes.UNTITLED,
    Schemes.MAILTO,
    Schemes.DATA,
    Schemes.FTP,
    Schemes.VSCODE,
    Schemes.VSCODE_INSIDERS,
)

_URI_LIKE_RE = re.compile(r"^[a-z\-][a-z\-]+:", re.IGNORECASE)


# ---------------------------------------------------------------------------
# No-link ranges
# ---------------------------------------------------------------------------


class NoLinkRanges:
    """Where link syntax must not be detected."""

    def __init__(
        self,
        multiline: Sequence[tuple[int, int]],
        inline: dict[int, list[Range]],
    ) -> None:
        # Inclusive (start_line, end_line) intervals of code blocks and comments
        self.multiline = tuple(multiline)
        # Inline code spans, indexed under every line they touch
        self.inline = inline

    @classmethod
    def compute(cls, parser: TextileParser, document: TextDocument) -> NoLinkRanges:
        tokens = parser.tokenize(document)
        multiline = [
            (token.line, token.end_line)
            for token in collect(tokens, lambda token: token.tag in NO_LINK_TAGS)
            if token.line is not None and token.end_line is not None
        ]

        inline: dict[int, list[Range]] = {}
        for start, end in extract_inline_code_spans(document.get_text()):
            span = Range(start=document.position_at(start), end=document.position_at(end))
            for line in range(span.start.line, span.end.line + 1):
                inline.setdefault(line, []).append(span)

        return cls(multiline, inline)

    def contains(self, position: Position) -> bool:
        if any(start <= position.line <= end for start, end in self.multiline):
            return True
        return any(span.contains(position) for span in self.inline.get(position.line, ()))

    def concat_inline(self, ranges: Iterable[Range]) -> NoLinkRanges:
        inline = {line: list(spans) for line, spans in self.inline.items()}
        for span in ranges:
            for line in range(span.start.line, span.end.line + 1):
                inline.setdefault(line, []).append(span)
        return NoLinkRanges(self.multiline, inline)


# ---------------------------------------------------------------------------
# Href resolution
# ---------------------------------------------------------------------------


def _scheme_of(link: str, schemes: Iterable[str]) -> str | None:
    lowered = link.lower()
    for scheme in schemes:
        if lowered.startswith(scheme + ":"):
            return scheme
    return None


def _strict_unquote(text: str) -> str:
    try:
        return unquote(text, errors="strict")
    except UnicodeDecodeError as exc:
        raise LinkResolutionError("Malformed percent-encoding in link", details={"link": text}) from exc


def resolve_link(
    document: TextDocument,
    link: str,
    workspace: TextileWorkspace,
    editor_scheme: str = Schemes.VSCODE,
) -> ExternalHref | InternalHref | None:
    """Resolve *link* as written in *document*.

    Returns None when a workspace root is needed but unknown.  Raises
    :class:`LinkResolutionError` for hrefs that cannot be decoded.
    """
    scheme = _scheme_of(link, (*KNOWN_EXTERNAL_SCHEMES, editor_scheme))
    if scheme is not None:
        if scheme in EDITOR_SCHEMES:
            # Point editor deep links at the editor that is actually running
            return ExternalHref(uri=editor_scheme + link[len(scheme):])
        return ExternalHref(uri=link)

    if _URI_LIKE_RE.match(link):
        return ExternalHref(uri=link)

    rest, _, raw_fragment = link.partition("#")
    raw_path = rest.split("?", 1)[0]
    path = _strict_unquote(raw_path)
    fragment = _strict_unquote(raw_fragment)

    resource: DocumentUri | None
    if not path:
        resource = document.uri
    elif path.startswith("/") or document.uri.scheme == Schemes.UNTITLED:
        root = _workspace_root(document, workspace)
        resource = root.join_path(path) if root is not None else None
    else:
        resource = document.uri.dirname().join_path(path)

    if resource is None:
        return None
    return InternalHref(path=resource.with_fragment(""), fragment=fragment)


def _workspace_root(document: TextDocument, workspace: TextileWorkspace) -> DocumentUri | None:
    folder = workspace.workspace_folder_for(document.uri)
    if folder is not None:
        return folder
    folders = workspace.workspace_folders
    return folders[0] if folders else None


# ---------------------------------------------------------------------------
# Link definitions
# ---------------------------------------------------------------------------


class LinkDefinitionSet:
    """Link definitions of a document by name.  A later definition wins."""

    def __init__(self, links: Iterable[TextileLink]) -> None:
        self._map: dict[str, TextileLinkDefinition] = {}
        for link in links:
            if isinstance(link, TextileLinkDefinition):
                self._map[link.ref.text] = link

    def __iter__(self) -> Iterator[TextileLinkDefinition]:
        return iter(self._map.values())

    def __len__(self) -> int:
        return len(self._map)

    def lookup(self, ref: str) -> TextileLinkDefinition | None:
        return self._map.get(ref)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _make_source(document: TextDocument, raw: RawMatch) -> TextileLinkSource:
    href_start = raw.href_offset
    href_end = href_start + len(raw.href_text)
    fragment_index = raw.href_text.find("#")

    fragment_range: Range | None = None
    path_text = raw.href_text
    if fragment_index >= 0:
        fragment_range = Range(
            start=document.position_at(href_start + fragment_index + 1),
            end=document.position_at(href_end),
        )
        path_text = raw.href_text[:fragment_index]

    return TextileLinkSource(
        resource=document.uri,
        range=Range(
            start=document.position_at(raw.offset),
            end=document.position_at(raw.offset + len(raw.full_text)),
        ),
        href_range=Range(start=document.position_at(href_start), end=document.position_at(href_end)),
        fragment_range=fragment_range,
        href_text=raw.href_text,
        path_text=path_text,
    )


class TextileLinkComputer:
    """Stateless link extractor."""

    def __init__(
        self,
        parser: TextileParser,
        workspace: TextileWorkspace,
        editor_scheme: str = Schemes.VSCODE,
    ) -> None:
        self._parser = parser
        self._workspace = workspace
        self._editor_scheme = editor_scheme

    async def get_all_links(
        self,
        document: TextDocument,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> list[TextileLink]:
        no_link_ranges = NoLinkRanges.compute(self._parser, document)
        if token.is_cancellation_requested:
            return []

        text = document.get_text()
        links: list[TextileLink] = [
            *self._inline_links(document, text, no_link_ranges),
            *self._link_definitions(document, text, no_link_ranges),
        ]
        definitions = LinkDefinitionSet(links)
        links = [self._to_reference_link(link, definitions) for link in links]
        links.sort(key=lambda link: link.source.range.start.key())
        return links

    def _resolve(self, document: TextDocument, raw: RawMatch) -> ExternalHref | InternalHref | None:
        try:
            return resolve_link(document, raw.href_text, self._workspace, self._editor_scheme)
        except LinkResolutionError as exc:
            logger.debug("links.unresolvable", resource=str(document.uri), href=raw.href_text, error=exc.message)
            return None

    def _inline_links(
        self,
        document: TextDocument,
        text: str,
        no_link_ranges: NoLinkRanges,
    ) -> Iterator[TextileInlineLink]:
        for raw in (*extract_quoted_links(text), *extract_images(text)):
            if no_link_ranges.contains(document.position_at(raw.href_offset)):
                continue
            href = self._resolve(document, raw)
            if href is None:
                continue
            yield TextileInlineLink(source=_make_source(document, raw), href=href)

    def _link_definitions(
        self,
        document: TextDocument,
        text: str,
        no_link_ranges: NoLinkRanges,
    ) -> Iterator[TextileLinkDefinition]:
        for raw in extract_link_definitions(text):
            if no_link_ranges.contains(document.position_at(raw.offset)):
                continue
            href = self._resolve(document, raw)
            if href is None:
                continue
            ref_start = raw.offset + 1
            yield TextileLinkDefinition(
                source=_make_source(document, raw),
                ref=LinkReference(
                    text=raw.ref or "",
                    range=Range(
                        start=document.position_at(ref_start),
                        end=document.position_at(ref_start + len(raw.ref or "")),
                    ),
                ),
                href=href,
            )

    @staticmethod
    def _to_reference_link(link: TextileLink, definitions: LinkDefinitionSet) -> TextileLink:
        if (
            isinstance(link, TextileInlineLink)
            and isinstance(link.href, InternalHref)
            and definitions.lookup(link.source.href_text) is not None
        ):
            return TextileInlineLink(source=link.source, href=ReferenceHref(ref=link.source.href_text))
        return link


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextileDocumentLinks:
    links: tuple[TextileLink, ...] = ()
    definitions: LinkDefinitionSet = field(default_factory=lambda: LinkDefinitionSet(()))


class TextileLinkProvider:
    """Links per document, cached until the document changes."""

    def __init__(
        self,
        parser: TextileParser,
        workspace: TextileWorkspace,
        editor_scheme: str = Schemes.VSCODE,
    ) -> None:
        self.link_computer = TextileLinkComputer(parser, workspace, editor_scheme)
        self._cache: DocumentInfoCache[TextileDocumentLinks] = DocumentInfoCache(workspace, self._compute)

    async def _compute(self, document: TextDocument) -> TextileDocumentLinks:
        links = await self.link_computer.get_all_links(document)
        return TextileDocumentLinks(links=tuple(links), definitions=LinkDefinitionSet(links))

    async def get_all_links(
        self,
        document: TextDocument,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> list[TextileLink]:
        """Uncached extraction, honouring *token*."""
        return await self.link_computer.get_all_links(document, token)

    async def get_links(self, document: TextDocument) -> TextileDocumentLinks:
        return await self._cache.get_for_document(document)

    async def provide_document_links(self, document: TextDocument) -> list[DocumentLink]:
        result = await self.get_links(document)
        links: list[DocumentLink] = []
        for link in result.links:
            converted = self._to_document_link(link, result.definitions)
            if converted is not None:
                links.append(converted)
        return links

    @staticmethod
    def _to_document_link(link: TextileLink, definitions: LinkDefinitionSet) -> DocumentLink | None:
        source = link.source
        href = link.href
        if isinstance(href, ExternalHref):
            return DocumentLink(range=source.href_range, target=href.uri, tooltip="Follow link")
        if isinstance(href, InternalHref):
            return DocumentLink(
                range=source.href_range,
                target=str(href.path.with_fragment(href.fragment)),
                tooltip="Follow link",
            )
        definition = definitions.lookup(href.ref)
        if definition is None:
            return None
        return DocumentLink(
            range=source.href_range,
            position=definition.source.href_range.start,
            tooltip="Go to link definition",
        )

    def dispose(self) -> None:
        self._cache.dispose()
