"""Document and workspace symbols built from tables of contents."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from textile_ls.application.cache import WorkspaceCache
from textile_ls.application.toc import TableOfContentsProvider
from textile_ls.domain.entities import DocumentSymbol, SymbolInformation, TocEntry
from textile_ls.domain.enums import SymbolKind
from textile_ls.domain.ports import TextDocument, TextileWorkspace

logger = structlog.get_logger(__name__)


def symbol_name(entry: TocEntry) -> str:
    return f"h{entry.level}. {entry.text}"


@dataclass
class _Node:
    """Mutable tree node used while nesting headings."""

    level: int
    entry: TocEntry | None = None
    parent: _Node | None = None
    children: list[_Node] = field(default_factory=list)

    def freeze(self) -> DocumentSymbol:
        if self.entry is None:
            raise ValueError("The root node has no heading")
        section = self.entry.section_location.range
        return DocumentSymbol(
            name=symbol_name(self.entry),
            kind=SymbolKind.STRING,
            range=section,
            selection_range=section,
            children=tuple(child.freeze() for child in self.children),
        )


class DocumentSymbolProvider:
    def __init__(self, toc_provider: TableOfContentsProvider) -> None:
        self._toc_provider = toc_provider

    async def provide_document_symbol_information(self, document: TextDocument) -> list[SymbolInformation]:
        """Flat list of headings, one symbol per entry."""
        logger.debug("symbols.document_information", resource=str(document.uri))
        toc = await self._toc_provider.get_for_document(document)
        return [
            SymbolInformation(name=symbol_name(entry), kind=SymbolKind.STRING, location=entry.section_location)
            for entry in toc.entries
        ]

    async def provide_document_symbols(self, document: TextDocument) -> list[DocumentSymbol]:
        """Headings nested under the closest preceding heading of a lower level."""
        toc = await self._toc_provider.get_for_document(document)
        root = _Node(level=0)
        parent = root
        for entry in toc.entries:
            while entry.level <= parent.level and parent.parent is not None:
                parent = parent.parent
            node = _Node(level=entry.level, entry=entry, parent=parent)
            parent.children.append(node)
            parent = node
        return [child.freeze() for child in root.children]


class WorkspaceSymbolProvider:
    """Heading symbols of every Textile document in the workspace."""

    def __init__(self, workspace: TextileWorkspace, symbol_provider: DocumentSymbolProvider) -> None:
        self._cache: WorkspaceCache[list[SymbolInformation]] = WorkspaceCache(
            workspace,
            symbol_provider.provide_document_symbol_information,
        )

    async def provide_workspace_symbols(self, query: str) -> list[SymbolInformation]:
        needle = query.lower()
        symbols = [symbol for per_document in await self._cache.get_all() for symbol in per_document]
        return [symbol for symbol in symbols if needle in symbol.name.lower()]

    def dispose(self) -> None:
        self._cache.dispose()
