"""Completions for the href of a link being typed.

Triggered inside ``"text":href``, ``!image!:href`` and ``[name]href``.
Depending on what has been typed so far the suggestions are headings of
the current document (``#``), headings of another document
(``other.textile#``), link definition names, or the entries of the
directory the partial path points into.  Hrefs with a URL scheme get no
suggestions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from textile_ls.application.diagnostics import try_find_document
from textile_ls.application.links import TextileLinkProvider, resolve_link
from textile_ls.application.toc import TableOfContentsProvider
from textile_ls.domain.entities import CompletionItem, InternalHref, Position, Range
from textile_ls.domain.enums import CompletionItemKind
from textile_ls.domain.exceptions import LinkResolutionError
from textile_ls.domain.ports import TextDocument, TextileWorkspace
from textile_ls.infrastructure.concurrency import NEVER_CANCELLED, CancellationToken

logger = structlog.get_logger(__name__)

# Link syntax ending at the cursor; group 1 is the href typed so far
_LINK_PREFIX_RE = re.compile(r'"[^"\n]*":(\S*)$')
_IMAGE_PREFIX_RE = re.compile(r"!(?!\s)[^!\n]*!:(\S*)$")
_DEFINITION_PREFIX_RE = re.compile(r"^\[[^\]\s]+\](\S*)$")

# Rest of the href after the cursor
_HREF_SUFFIX_RE = re.compile(r"^[^\s#\]]*")
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")


@dataclass(frozen=True)
class _Context:
    href: str  # up to the cursor
    href_start: Position
    href_end: Position  # past the cursor, up to whitespace or "#"
    is_definition: bool


def _completion_context(document: TextDocument, position: Position) -> _Context | None:
    line = document.line_at(position.line)
    prefix = line[:position.character]
    suffix = line[position.character:]

    is_definition = False
    match = _LINK_PREFIX_RE.search(prefix) or _IMAGE_PREFIX_RE.search(prefix)
    if match is None:
        match = _DEFINITION_PREFIX_RE.search(prefix)
        is_definition = match is not None
    if match is None:
        return None

    href = match.group(1)
    suffix_match = _HREF_SUFFIX_RE.match(suffix)
    suffix_length = suffix_match.end() if suffix_match else 0
    return _Context(
        href=href,
        href_start=Position(line=position.line, character=position.character - len(href)),
        href_end=Position(line=position.line, character=position.character + suffix_length),
        is_definition=is_definition,
    )


def _encode(name: str) -> str:
    return name.replace("%", "%25").replace(" ", "%20")


class PathCompletionProvider:
    def __init__(
        self,
        workspace: TextileWorkspace,
        link_provider: TextileLinkProvider,
        toc_provider: TableOfContentsProvider,
    ) -> None:
        self._workspace = workspace
        self._link_provider = link_provider
        self._toc_provider = toc_provider

    async def provide_completion_items(
        self,
        document: TextDocument,
        position: Position,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> list[CompletionItem]:
        context = _completion_context(document, position)
        if context is None or _SCHEME_RE.match(context.href):
            return []
        logger.debug("completion.requested", resource=str(document.uri), href=context.href)

        if context.href.startswith("#"):
            return await self._header_items(document, context.href_start, context.href_end)

        path, hash_sign, _ = context.href.partition("#")
        if hash_sign:
            target = await self._resolve_document(document, path)
            if target is None or token.is_cancellation_requested:
                return []
            fragment_start = context.href_start.translate(character_delta=len(path))
            return await self._header_items(target, fragment_start, context.href_end)

        items: list[CompletionItem] = []
        if not context.href:
            items.extend(await self._header_items(document, context.href_start, context.href_end))
            if not context.is_definition:
                items.extend(await self._definition_items(document, context.href_start, context.href_end))
        if token.is_cancellation_requested:
            return []
        items.extend(await self._path_items(document, context))
        return items

    async def _header_items(self, document: TextDocument, start: Position, end: Position) -> list[CompletionItem]:
        toc = await self._toc_provider.get_for_document(document)
        replace = Range(start=start, end=end)
        return [
            CompletionItem(
                label=f"#{entry.slug}",
                kind=CompletionItemKind.HEADER,
                insert_text=f"#{entry.slug}",
                range=replace,
            )
            for entry in toc.entries
        ]

    async def _definition_items(self, document: TextDocument, start: Position, end: Position) -> list[CompletionItem]:
        definitions = (await self._link_provider.get_links(document)).definitions
        replace = Range(start=start, end=end)
        return [
            CompletionItem(
                label=definition.ref.text,
                kind=CompletionItemKind.REFERENCE,
                insert_text=definition.ref.text,
                range=replace,
            )
            for definition in definitions
        ]

    async def _path_items(self, document: TextDocument, context: _Context) -> list[CompletionItem]:
        directory_text, slash, partial = context.href.rpartition("/")
        directory = document.uri.dirname()
        if slash:
            try:
                target = resolve_link(document, directory_text + "/", self._workspace)
            except LinkResolutionError:
                return []
            if not isinstance(target, InternalHref):
                return []
            directory = target.path

        replace = Range(
            start=context.href_start.translate(character_delta=len(context.href) - len(partial)),
            end=context.href_end,
        )
        items: list[CompletionItem] = []
        for name, is_directory in await self._workspace.read_directory(directory):
            if name.startswith("."):
                continue
            label = name + "/" if is_directory else name
            items.append(CompletionItem(
                label=label,
                kind=CompletionItemKind.FOLDER if is_directory else CompletionItemKind.FILE,
                insert_text=_encode(label),
                range=replace,
            ))
        return items

    async def _resolve_document(self, document: TextDocument, path: str) -> TextDocument | None:
        if not path:
            return document
        try:
            target = resolve_link(document, path, self._workspace)
        except LinkResolutionError:
            return None
        if not isinstance(target, InternalHref):
            return None
        return await try_find_document(self._workspace, target.path)
