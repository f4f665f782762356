"""Find-all-references and go-to-definition.

References are computed from the position of the cursor:

- on a heading line: the heading plus every link to it;
- on a link definition name (``[name]``) or a reference link: the
  definition and every link using the name, within the document;
- on a link fragment (``#section``): the target heading plus every link
  to that heading;
- on any other internal link: every link to the same file, fragments
  ignored;
- on an external link: every link to the same URL.

A definition is the first reference flagged ``is_definition``.
"""

from __future__ import annotations

from typing import Iterable, Iterator

import structlog

from textile_ls.application.cache import WorkspaceCache
from textile_ls.application.links import TextileLinkProvider
from textile_ls.application.toc import TableOfContentsProvider
from textile_ls.domain.entities import (
    ExternalHref,
    InternalHref,
    Location,
    Position,
    Range,
    ReferenceHref,
    TextileHeaderReference,
    TextileLink,
    TextileLinkDefinition,
    TextileLinkReference,
    TextileReference,
    TocEntry,
)
from textile_ls.domain.ports import TextDocument, TextileWorkspace
from textile_ls.domain.uri import TEXTILE_FILE_EXTENSIONS, DocumentUri, looks_like_textile_path
from textile_ls.infrastructure.concurrency import NEVER_CANCELLED, CancellationToken
from textile_ls.infrastructure.parsing.slugify import slugify

logger = structlog.get_logger(__name__)


async def try_resolve_link_path(resource: DocumentUri, workspace: TextileWorkspace) -> DocumentUri | None:
    """*resource* if it exists, else the Textile file an extension-less path names."""
    if await workspace.path_exists(resource):
        return resource
    if resource.suffix:
        return None
    for extension in TEXTILE_FILE_EXTENSIONS:
        candidate = resource.with_path(resource.path + extension)
        if await workspace.path_exists(candidate):
            return candidate
    return None


def _links_to(href: InternalHref, resource: DocumentUri) -> bool:
    if href.path == resource:
        return True
    if href.path.suffix:
        return False
    return any(href.path.with_path(href.path.path + extension) == resource for extension in TEXTILE_FILE_EXTENSIONS)


def _same_slug(left: str, right: str) -> bool:
    return slugify(left).value == slugify(right).value


def _path_range(link: TextileLink) -> Range:
    """The href range without its ``#fragment``."""
    fragment_range = link.source.fragment_range
    if fragment_range is None:
        return link.source.href_range
    return Range(start=link.source.href_range.start, end=fragment_range.start.translate(character_delta=-1))


def _is_at(link: TextileLink, resource: DocumentUri, range: Range) -> bool:
    return link.source.resource == resource and link.source.href_range == range


class ReferencesProvider:
    """Headers and links that refer to the same target."""

    def __init__(
        self,
        workspace: TextileWorkspace,
        link_provider: TextileLinkProvider,
        toc_provider: TableOfContentsProvider,
    ) -> None:
        self._workspace = workspace
        self._link_provider = link_provider
        self._toc_provider = toc_provider
        self._link_cache: WorkspaceCache[tuple[TextileLink, ...]] = WorkspaceCache(workspace, self._links_of)

    async def _links_of(self, document: TextDocument) -> tuple[TextileLink, ...]:
        return (await self._link_provider.get_links(document)).links

    async def _workspace_links(self, document: TextDocument | None = None) -> list[TextileLink]:
        """Links of every workspace document, with *document*'s own links taken fresh."""
        links = [link for per_document in await self._link_cache.get_all() for link in per_document]
        if document is None:
            return links
        own = await self._links_of(document)
        return [link for link in links if link.source.resource != document.uri] + list(own)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def get_references_at_position(
        self,
        document: TextDocument,
        position: Position,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> list[TextileReference]:
        logger.debug("references.at_position", resource=str(document.uri), line=position.line)
        toc = await self._toc_provider.get_for_document(document)
        if token.is_cancellation_requested:
            return []

        for entry in toc.entries:
            if entry.line == position.line:
                return await self._references_to_header(document, entry)
        return await self._references_to_link_at_position(document, position, token)

    async def get_references_to_file(
        self,
        resource: DocumentUri,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> list[TextileLinkReference]:
        """Every link in the workspace that points at *resource*."""
        logger.debug("references.to_file", resource=str(resource))
        links = await self._workspace_links()
        if token.is_cancellation_requested:
            return []
        return list(self._find_links_to_file(resource, links, None))

    async def provide_references(
        self,
        document: TextDocument,
        position: Position,
        include_declaration: bool = True,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> list[Location]:
        references = await self.get_references_at_position(document, position, token)
        return [ref.location for ref in references if include_declaration or not ref.is_definition]

    async def provide_definition(
        self,
        document: TextDocument,
        position: Position,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> Location | None:
        """Location of the link definition a reference link or definition name uses."""
        for ref in await self.get_references_at_position(document, position, token):
            if isinstance(ref, TextileLinkReference) and ref.is_definition:
                return ref.location
        return None

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------

    async def _references_to_header(self, document: TextDocument, header: TocEntry) -> list[TextileReference]:
        references: list[TextileReference] = [_header_reference(header, is_trigger_location=True)]
        for link in await self._workspace_links(document):
            href = link.href
            if (
                isinstance(href, InternalHref)
                and _links_to(href, document.uri)
                and slugify(href.fragment).value == header.slug
            ):
                references.append(TextileLinkReference(
                    is_trigger_location=False,
                    is_definition=False,
                    location=Location(uri=link.source.resource, range=link.source.href_range),
                    link=link,
                ))
        return references

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    async def _references_to_link_at_position(
        self,
        document: TextDocument,
        position: Position,
        token: CancellationToken,
    ) -> list[TextileReference]:
        own_links = await self._links_of(document)
        for link in own_links:
            if isinstance(link, TextileLinkDefinition) and link.ref.range.contains(position):
                return list(self._references_to_link_definition(own_links, link.ref.text, document.uri, link.ref.range))
            if link.source.href_range.contains(position):
                return await self._references_to_link(document, own_links, link, position, token)
        return []

    async def _references_to_link(
        self,
        document: TextDocument,
        own_links: Iterable[TextileLink],
        source_link: TextileLink,
        position: Position,
        token: CancellationToken,
    ) -> list[TextileReference]:
        href = source_link.href
        source = source_link.source
        if isinstance(href, ReferenceHref):
            return list(self._references_to_link_definition(own_links, href.ref, source.resource, source.href_range))

        links = await self._workspace_links(document)
        if token.is_cancellation_requested:
            return []

        if isinstance(href, ExternalHref):
            return [
                TextileLinkReference(
                    is_trigger_location=_is_at(link, source.resource, source.href_range),
                    is_definition=False,
                    location=Location(uri=link.source.resource, range=link.source.href_range),
                    link=link,
                )
                for link in links
                if isinstance(link.href, ExternalHref) and link.href.uri == href.uri
            ]

        resolved = await try_resolve_link_path(href.path, self._workspace)
        if token.is_cancellation_requested:
            return []

        on_fragment = source.fragment_range is not None and source.fragment_range.contains(position)
        if resolved is None or not href.fragment or not on_fragment or not self._is_textile_path(resolved):
            # Only the file is compared; fragments are ignored
            return list(self._find_links_to_file(resolved or href.path, links, source_link))

        references: list[TextileReference] = []
        toc = await self._toc_provider.get(resolved)
        entry = toc.lookup(href.fragment)
        if entry is not None:
            references.append(_header_reference(entry, is_trigger_location=False))

        for link in links:
            other = link.href
            if isinstance(other, InternalHref) and _links_to(other, resolved) and _same_slug(other.fragment, href.fragment):
                references.append(TextileLinkReference(
                    is_trigger_location=_is_at(link, source.resource, source.href_range),
                    is_definition=False,
                    location=Location(uri=link.source.resource, range=link.source.href_range),
                    link=link,
                ))
        return references

    def _is_textile_path(self, resource: DocumentUri) -> bool:
        return self._workspace.has_textile_document(resource) or looks_like_textile_path(resource)

    @staticmethod
    def _find_links_to_file(
        resource: DocumentUri,
        links: Iterable[TextileLink],
        source_link: TextileLink | None,
    ) -> Iterator[TextileLinkReference]:
        for link in links:
            href = link.href
            if not isinstance(href, InternalHref) or not _links_to(href, resource):
                continue
            # A "#fragment" link inside the file itself does not reference the file
            if link.source.href_text.startswith("#") and link.source.resource == resource:
                continue
            yield TextileLinkReference(
                is_trigger_location=source_link is not None
                and _is_at(link, source_link.source.resource, source_link.source.href_range),
                is_definition=False,
                location=Location(uri=link.source.resource, range=_path_range(link)),
                link=link,
            )

    @staticmethod
    def _references_to_link_definition(
        links: Iterable[TextileLink],
        ref: str,
        resource: DocumentUri,
        trigger_range: Range,
    ) -> Iterator[TextileReference]:
        for link in links:
            if isinstance(link, TextileLinkDefinition):
                name = link.ref.text
                is_trigger = link.ref.range == trigger_range
            elif isinstance(link.href, ReferenceHref):
                name = link.href.ref
                is_trigger = link.source.href_range == trigger_range
            else:
                continue
            if name != ref or link.source.resource != resource:
                continue
            yield TextileLinkReference(
                is_trigger_location=is_trigger,
                is_definition=isinstance(link, TextileLinkDefinition),
                location=Location(uri=resource, range=_path_range(link)),
                link=link,
            )

    def dispose(self) -> None:
        self._link_cache.dispose()


def _header_reference(entry: TocEntry, is_trigger_location: bool) -> TextileHeaderReference:
    return TextileHeaderReference(
        is_trigger_location=is_trigger_location,
        is_definition=True,
        location=entry.header_location,
        header_text=entry.text,
        header_text_location=entry.header_text_location,
    )
