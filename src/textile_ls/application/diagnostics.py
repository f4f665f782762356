"""Link validation for a single Textile document.

Three independent checks run concurrently:

- links to headers of the document itself;
- ``"text":name`` references without a matching ``[name]`` definition;
- links to other files, and to headers inside those files.

A failure in one check is logged and leaves the other checks' results
intact.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Iterable, Iterator, Sequence

import structlog

from textile_ls.application.links import LinkDefinitionSet, TextileLinkProvider
from textile_ls.application.toc import TableOfContentsProvider
from textile_ls.domain.entities import (
    Diagnostic,
    DiagnosticOptions,
    InternalHref,
    Range,
    ReferenceHref,
    TextileLink,
    TextileLinkSource,
)
from textile_ls.domain.enums import DiagnosticSeverity
from textile_ls.domain.ports import TextDocument, TextileWorkspace
from textile_ls.domain.uri import TEXTILE_FILE_EXTENSIONS, DocumentUri
from textile_ls.infrastructure.concurrency import NEVER_CANCELLED, CancellationToken, Limiter
from textile_ls.infrastructure.parsing.globs import matches_any

logger = structlog.get_logger(__name__)


class DiagnosticCode:
    NO_SUCH_REFERENCE = "link.no-such-reference"
    NO_SUCH_HEADER_IN_OWN_FILE = "link.no-such-header-in-own-file"
    NO_SUCH_FILE = "link.no-such-file"
    NO_SUCH_HEADER_IN_FILE = "link.no-such-header-in-file"


@dataclass
class ComputedDiagnostics:
    diagnostics: list[Diagnostic]
    links: list[TextileLink]


# ---------------------------------------------------------------------------
# File link map
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileLinkData:
    source: TextileLinkSource
    fragment: str


@dataclass
class FileLinks:
    """Every link of a document that targets *path*."""

    path: DocumentUri
    links: list[FileLinkData] = field(default_factory=list)


class FileLinkMap:
    """Internal links grouped by target file."""

    def __init__(self, links: Iterable[TextileLink]) -> None:
        self._files: dict[DocumentUri, FileLinks] = {}
        for link in links:
            if not isinstance(link.href, InternalHref):
                continue
            entry = self._files.setdefault(link.href.path, FileLinks(path=link.href.path))
            entry.links.append(FileLinkData(source=link.source, fragment=link.href.fragment))

    @property
    def size(self) -> int:
        return len(self._files)

    def entries(self) -> Iterator[FileLinks]:
        return iter(self._files.values())


async def try_find_document(workspace: TextileWorkspace, resource: DocumentUri) -> TextDocument | None:
    """Find the Textile document *resource* points at.

    Extension-less paths are retried with each Textile file extension, so
    ``"x":other`` finds ``other.textile``.
    """
    document = await workspace.get_or_load_textile_document(resource)
    if document is not None or resource.suffix:
        return document
    for extension in TEXTILE_FILE_EXTENSIONS:
        document = await workspace.get_or_load_textile_document(resource.with_path(resource.path + extension))
        if document is not None:
            return document
    return None


def _refers_to(target: DocumentUri, document: TextDocument) -> bool:
    if target == document.uri:
        return True
    return any(target.with_path(target.path + extension) == document.uri for extension in TEXTILE_FILE_EXTENSIONS)


# ---------------------------------------------------------------------------
# Computer
# ---------------------------------------------------------------------------


class DiagnosticComputer:
    """Computes link diagnostics for one document at a time."""

    def __init__(
        self,
        workspace: TextileWorkspace,
        link_provider: TextileLinkProvider,
        toc_provider: TableOfContentsProvider,
        file_link_concurrency: int = 10,
    ) -> None:
        self._workspace = workspace
        self._link_provider = link_provider
        self._toc_provider = toc_provider
        self._file_link_concurrency = file_link_concurrency

    async def get_diagnostics(
        self,
        document: TextDocument,
        options: DiagnosticOptions,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> ComputedDiagnostics:
        links = await self._link_provider.get_all_links(document, token)
        if token.is_cancellation_requested:
            return ComputedDiagnostics(diagnostics=[], links=links)

        results = await asyncio.gather(
            self._isolated("file_links", document, self._validate_file_links(document, options, links, token)),
            self._isolated("references", document, self._validate_reference_links(options, links)),
            self._isolated("own_headers", document, self._validate_own_header_links(document, options, links, token)),
        )
        diagnostics = [diagnostic for stage in results for diagnostic in stage]
        logger.debug(
            "diagnostics.computed",
            resource=str(document.uri),
            links=len(links),
            diagnostics=len(diagnostics),
        )
        return ComputedDiagnostics(diagnostics=diagnostics, links=links)

    @staticmethod
    async def _isolated(
        stage: str,
        document: TextDocument,
        validation: Awaitable[list[Diagnostic]],
    ) -> list[Diagnostic]:
        try:
            return await validation
        except Exception:
            logger.exception("diagnostics.stage_failed", stage=stage, resource=str(document.uri))
            return []

    # -- own headers --------------------------------------------------------

    async def _validate_own_header_links(
        self,
        document: TextDocument,
        options: DiagnosticOptions,
        links: Sequence[TextileLink],
        token: CancellationToken,
    ) -> list[Diagnostic]:
        severity = options.validate_own_headers
        if severity is None:
            return []

        toc = await self._toc_provider.get_for_document(document)
        if token.is_cancellation_requested:
            return []

        diagnostics: list[Diagnostic] = []
        for link in links:
            href = link.href
            if not isinstance(href, InternalHref) or not href.fragment or not _refers_to(href.path, document):
                continue
            if toc.lookup(href.fragment) is not None:
                continue
            if self.is_ignored_link(options, link.source.href_text):
                continue
            diagnostics.append(_link_diagnostic(
                link.source.href_range,
                f"No header found: '{href.fragment}'",
                severity,
                DiagnosticCode.NO_SUCH_HEADER_IN_OWN_FILE,
                link.source.href_text,
            ))
        return diagnostics

    # -- references ---------------------------------------------------------

    async def _validate_reference_links(
        self,
        options: DiagnosticOptions,
        links: Sequence[TextileLink],
    ) -> list[Diagnostic]:
        severity = options.validate_references
        if severity is None:
            return []

        definitions = LinkDefinitionSet(links)
        return [
            Diagnostic(
                range=link.source.href_range,
                message=f"No link definition found: '{link.href.ref}'",
                severity=severity,
                code=DiagnosticCode.NO_SUCH_REFERENCE,
            )
            for link in links
            if isinstance(link.href, ReferenceHref) and definitions.lookup(link.href.ref) is None
        ]

    # -- files --------------------------------------------------------------

    async def _validate_file_links(
        self,
        document: TextDocument,
        options: DiagnosticOptions,
        links: Sequence[TextileLink],
        token: CancellationToken,
    ) -> list[Diagnostic]:
        severity = options.validate_file_paths
        if severity is None:
            return []

        link_map = FileLinkMap(links)
        if link_map.size == 0:
            return []

        limiter = Limiter(self._file_link_concurrency)
        diagnostics: list[Diagnostic] = []

        async def validate(entry: FileLinks) -> None:
            if token.is_cancellation_requested:
                return
            diagnostics.extend(await self._validate_file(document, options, severity, entry))

        await asyncio.gather(*(
            limiter.queue(lambda entry=entry: validate(entry))
            for entry in link_map.entries()
        ))
        return diagnostics

    async def _validate_file(
        self,
        document: TextDocument,
        options: DiagnosticOptions,
        severity: DiagnosticSeverity,
        entry: FileLinks,
    ) -> list[Diagnostic]:
        target = await try_find_document(self._workspace, entry.path)
        if target is not None and target.uri == document.uri:
            # Covered by the own-header check
            return []

        if target is None:
            if await self._path_exists(entry.path):
                return []
            message = f"File does not exist at path: {entry.path.fs_path}"
            return [
                _link_diagnostic(
                    link.source.href_range, message, severity,
                    DiagnosticCode.NO_SUCH_FILE, link.source.path_text,
                )
                for link in entry.links
                if not self.is_ignored_link(options, link.source.path_text)
            ]

        fragment_severity = options.file_link_fragment_severity
        fragment_links = [link for link in entry.links if link.fragment]
        if fragment_severity is None or not fragment_links:
            return []

        toc = await self._toc_provider.get_for_document(target)
        return [
            _link_diagnostic(
                link.source.href_range,
                f"Header does not exist in file: {link.fragment}",
                fragment_severity,
                DiagnosticCode.NO_SUCH_HEADER_IN_FILE,
                link.source.href_text,
            )
            for link in fragment_links
            if toc.lookup(link.fragment) is None
            and not self.is_ignored_link(options, link.source.path_text)
            and not self.is_ignored_link(options, link.source.href_text)
        ]

    async def _path_exists(self, resource: DocumentUri) -> bool:
        try:
            return await self._workspace.path_exists(resource)
        except OSError as exc:
            logger.warning("diagnostics.stat_failed", resource=str(resource), error=str(exc))
            return False

    @staticmethod
    def is_ignored_link(options: DiagnosticOptions, link: str) -> bool:
        return matches_any(link, options.ignore_links)


def _link_diagnostic(
    range: Range,
    message: str,
    severity: DiagnosticSeverity,
    code: str,
    link: str,
) -> Diagnostic:
    return Diagnostic(range=range, message=message, severity=severity, code=code, link=link)
