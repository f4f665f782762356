"""Caches of per-document derived data.

``DocumentInfoCache`` computes lazily per document version and drops an
entry as soon as its document changes or is deleted.  ``WorkspaceCache``
holds a value for every Textile document in the workspace and keeps it
current from workspace events.

Concurrent requests for the same entry share one computation.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

import structlog

from textile_ls.domain.events import DocumentChanged, DocumentCreated, DocumentDeleted
from textile_ls.domain.ports import TextDocument, TextileWorkspace
from textile_ls.domain.uri import DocumentUri

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class _Lazy(Generic[T]):
    """A computation started on first access and shared afterwards."""

    def __init__(self, document: TextDocument, compute: Callable[[TextDocument], Awaitable[T]]) -> None:
        self.document = document
        self._compute = compute
        self._future: asyncio.Future[T] | None = None

    @property
    def has_value(self) -> bool:
        return self._future is not None

    def value(self) -> asyncio.Future[T]:
        if self._future is None:
            self._future = asyncio.ensure_future(self._compute(self.document))
        return self._future


class DocumentInfoCache(Generic[T]):
    """Per-document values keyed by URI and version."""

    def __init__(
        self,
        workspace: TextileWorkspace,
        compute: Callable[[TextDocument], Awaitable[T]],
    ) -> None:
        self._workspace = workspace
        self._compute = compute
        self._entries: dict[DocumentUri, tuple[int, _Lazy[T]]] = {}

        workspace.events.subscribe(DocumentChanged, self._on_changed)
        workspace.events.subscribe(DocumentDeleted, self._on_deleted)

    async def get(self, resource: DocumentUri) -> T | None:
        """Value for *resource*, loading the document if needed."""
        document = await self._workspace.get_or_load_textile_document(resource)
        if document is None:
            return None
        return await self.get_for_document(document)

    async def get_for_document(self, document: TextDocument) -> T:
        entry = self._entries.get(document.uri)
        if entry is None or entry[0] != document.version:
            entry = (document.version, _Lazy(document, self._compute))
            self._entries[document.uri] = entry

        lazy = entry[1]
        future = lazy.value()
        try:
            return await asyncio.shield(future)
        except Exception:
            # Let the next request recompute instead of replaying the failure
            if self._entries.get(document.uri) is entry:
                del self._entries[document.uri]
            raise

    def entries(self) -> list[DocumentUri]:
        return list(self._entries)

    def _on_changed(self, event: DocumentChanged) -> None:
        self._entries.pop(event.document.uri, None)

    def _on_deleted(self, event: DocumentDeleted) -> None:
        self._entries.pop(event.uri, None)

    def dispose(self) -> None:
        self._workspace.events.unsubscribe(DocumentChanged, self._on_changed)
        self._workspace.events.unsubscribe(DocumentDeleted, self._on_deleted)
        self._entries.clear()


class WorkspaceCache(Generic[T]):
    """Values for every Textile document of the workspace.

    The workspace is listed once, on the first ``get_all``; callers that
    arrive while that listing is running wait for it instead of starting
    their own.
    """

    def __init__(
        self,
        workspace: TextileWorkspace,
        compute: Callable[[TextDocument], Awaitable[T]],
    ) -> None:
        self._workspace = workspace
        self._compute = compute
        self._cache: dict[DocumentUri, _Lazy[T]] = {}
        self._populating: asyncio.Future[None] | None = None
        self._populated = False

    async def get_all(self) -> list[T]:
        if not self._populated:
            await self._ensure_populated()

        return list(await asyncio.gather(*(lazy.value() for lazy in list(self._cache.values()))))

    async def _ensure_populated(self) -> None:
        if self._populating is None:
            self._populating = asyncio.ensure_future(self._populate())
        populating = self._populating
        try:
            await asyncio.shield(populating)
        except Exception:
            if self._populating is populating:
                self._populating = None
            raise

    async def _populate(self) -> None:
        documents = await self._workspace.get_all_textile_documents()
        for document in documents:
            self._update(document)
        self._populated = True
        events = self._workspace.events
        events.subscribe(DocumentChanged, self._on_changed)
        events.subscribe(DocumentCreated, self._on_created)
        events.subscribe(DocumentDeleted, self._on_deleted)
        logger.debug("workspace_cache.populated", documents=len(documents))

    def _update(self, document: TextDocument) -> None:
        self._cache[document.uri] = _Lazy(document, self._compute)

    def _on_changed(self, event: DocumentChanged) -> None:
        self._update(event.document)

    def _on_created(self, event: DocumentCreated) -> None:
        self._update(event.document)

    def _on_deleted(self, event: DocumentDeleted) -> None:
        self._cache.pop(event.uri, None)

    def dispose(self) -> None:
        if self._populated:
            events = self._workspace.events
            events.unsubscribe(DocumentChanged, self._on_changed)
            events.unsubscribe(DocumentCreated, self._on_created)
            events.unsubscribe(DocumentDeleted, self._on_deleted)
        self._populated = False
        self._populating = None
        self._cache.clear()
