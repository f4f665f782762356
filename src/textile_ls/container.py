"""Dependency wiring for textile-ls.

:func:`create_container` builds every service for one workspace root:
settings, event bus, editor host, filesystem workspace, tokenizer,
language-feature providers (links, headings, references, completions)
and the diagnostics manager.  The CLI and the REST API both work
through a :class:`Container`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from textile_ls.application.diagnostics import DiagnosticComputer
from textile_ls.application.folding import FoldingProvider
from textile_ls.application.links import TextileLinkProvider
from textile_ls.application.manager import DiagnosticManager
from textile_ls.application.path_completion import PathCompletionProvider
from textile_ls.application.quick_fix import AddToIgnoreLinksQuickFix
from textile_ls.application.references import ReferencesProvider
from textile_ls.application.symbols import DocumentSymbolProvider, WorkspaceSymbolProvider
from textile_ls.application.toc import TableOfContentsProvider
from textile_ls.config.settings import Settings, get_settings
from textile_ls.domain.entities import Diagnostic
from textile_ls.domain.exceptions import WorkspaceError
from textile_ls.domain.ports import TextDocument
from textile_ls.domain.uri import DocumentUri
from textile_ls.infrastructure.config.diagnostic_configuration import SettingsDiagnosticConfiguration
from textile_ls.infrastructure.documents import InMemoryDocument
from textile_ls.infrastructure.events.bus import InMemoryEventBus
from textile_ls.infrastructure.host.memory import MemoryDiagnosticReporter, MemoryEditorHost
from textile_ls.infrastructure.parsing.textile import TextileTokenizer
from textile_ls.infrastructure.workspace.filesystem import FilesystemTextileWorkspace

logger = structlog.get_logger(__name__)


@dataclass
class Container:
    """Holds all wired services for one workspace."""

    root: Path
    settings: Settings
    bus: InMemoryEventBus
    host: MemoryEditorHost
    reporter: MemoryDiagnosticReporter
    workspace: FilesystemTextileWorkspace
    parser: TextileTokenizer
    configuration: SettingsDiagnosticConfiguration
    link_provider: TextileLinkProvider
    toc_provider: TableOfContentsProvider
    diagnostic_computer: DiagnosticComputer
    diagnostic_manager: DiagnosticManager
    quick_fix: AddToIgnoreLinksQuickFix
    document_symbols: DocumentSymbolProvider
    workspace_symbols: WorkspaceSymbolProvider
    folding: FoldingProvider
    references: ReferencesProvider
    path_completion: PathCompletionProvider

    def resolve_uri(self, path: str | Path) -> DocumentUri:
        """URI of *path*, taken relative to the workspace root unless absolute."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        return DocumentUri.file(candidate.resolve())

    async def load_document(self, path: str | Path) -> TextDocument:
        resource = self.resolve_uri(path)
        document = await self.workspace.get_or_load_textile_document(resource)
        if document is None:
            raise WorkspaceError("Not a readable Textile document", details={"path": str(path)})
        return document

    def open_text(self, resource: DocumentUri, text: str) -> TextDocument:
        """Open *text* in the editor host as the content of *resource*."""
        current = self.host.get_open_document(resource)
        if current is None:
            # Above any copy already read from disk
            disk_version = self.workspace.loaded_version(resource)
            document = InMemoryDocument(resource, text, version=(disk_version or 0) + 1)
            self.host.open(document)
            return document
        document = InMemoryDocument(resource, text, version=current.version + 1)
        self.host.edit(document)
        return document

    async def check_workspace(self) -> dict[DocumentUri, list[Diagnostic]]:
        """Validate every Textile document of the workspace."""
        results: dict[DocumentUri, list[Diagnostic]] = {}
        for document in await self.workspace.get_all_textile_documents():
            state = await self.diagnostic_manager.recompute_diagnostic_state(document)
            results[document.uri] = list(state.diagnostics)
        logger.info(
            "workspace.checked",
            documents=len(results),
            diagnostics=sum(len(found) for found in results.values()),
        )
        return results

    def dispose(self) -> None:
        self.diagnostic_manager.dispose()
        self.workspace_symbols.dispose()
        self.references.dispose()
        self.link_provider.dispose()
        self.toc_provider.dispose()
        self.workspace.dispose()


def create_container(root: str | Path, settings: Settings | None = None) -> Container:
    """Wire every service for the workspace rooted at *root*."""
    settings = settings or get_settings()
    root = Path(root).resolve()

    bus = InMemoryEventBus()
    host = MemoryEditorHost(bus)
    reporter = MemoryDiagnosticReporter()
    workspace = FilesystemTextileWorkspace(root, bus, settings, host=host)
    parser = TextileTokenizer()
    configuration = SettingsDiagnosticConfiguration(settings, workspace, bus)

    link_provider = TextileLinkProvider(parser, workspace, settings.editor_uri_scheme)
    toc_provider = TableOfContentsProvider(parser, workspace)
    computer = DiagnosticComputer(
        workspace,
        link_provider,
        toc_provider,
        file_link_concurrency=settings.file_link_concurrency,
    )
    manager = DiagnosticManager(workspace, computer, configuration, reporter, host, bus, settings)
    document_symbols = DocumentSymbolProvider(toc_provider)

    logger.debug("container.created", root=str(root))
    return Container(
        root=root,
        settings=settings,
        bus=bus,
        host=host,
        reporter=reporter,
        workspace=workspace,
        parser=parser,
        configuration=configuration,
        link_provider=link_provider,
        toc_provider=toc_provider,
        diagnostic_computer=computer,
        diagnostic_manager=manager,
        quick_fix=AddToIgnoreLinksQuickFix(configuration),
        document_symbols=document_symbols,
        workspace_symbols=WorkspaceSymbolProvider(workspace, document_symbols),
        folding=FoldingProvider(parser, toc_provider),
        references=ReferencesProvider(workspace, link_provider, toc_provider),
        path_completion=PathCompletionProvider(workspace, link_provider, toc_provider),
    )
