"""Keeps the diagnostics of open Textile documents current.

Edits are debounced; only the latest computation per document may
publish.  Documents linking to a file are revalidated when that file is
created, deleted or changed, and a configuration change rebuilds every
visible document's diagnostics from scratch.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable

import structlog

from textile_ls.application.diagnostics import DiagnosticComputer
from textile_ls.config.settings import Settings, get_settings
from textile_ls.domain.entities import DiagnosticState, InternalHref, TextileLink
from textile_ls.domain.events import (
    ConfigurationChanged,
    DiagnosticsPublished,
    DocumentChanged,
    DocumentClosed,
    DocumentOpened,
    FileCreated,
    FileDeleted,
)
from textile_ls.domain.ports import (
    DiagnosticConfiguration,
    DiagnosticReporter,
    EditorHost,
    EventBus,
    TextDocument,
    TextileWorkspace,
)
from textile_ls.domain.uri import TEXTILE_FILE_EXTENSIONS, DocumentUri, looks_like_textile_path
from textile_ls.infrastructure.concurrency import (
    NEVER_CANCELLED,
    CancellationToken,
    CancellationTokenSource,
    Delayer,
)
from textile_ls.infrastructure.documents import TEXTILE_LANGUAGE_ID

logger = structlog.get_logger(__name__)


def is_textile_file(document: TextDocument) -> bool:
    return document.language_id == TEXTILE_LANGUAGE_ID or looks_like_textile_path(document.uri)


# ---------------------------------------------------------------------------
# In-flight requests
# ---------------------------------------------------------------------------


class InflightDiagnosticRequests:
    """At most one running computation per resource.

    Triggering a resource cancels its previous computation's token before
    the new one starts.
    """

    def __init__(self) -> None:
        self._inflight: dict[DocumentUri, tuple[CancellationTokenSource, asyncio.Task[None]]] = {}
        # Cancelled computations keep running until they notice their token
        self._running: set[asyncio.Task[None]] = set()

    def trigger(
        self,
        resource: DocumentUri,
        compute: Callable[[CancellationToken], Awaitable[None]],
    ) -> asyncio.Task[None]:
        self.cancel(resource)

        source = CancellationTokenSource()
        task: asyncio.Task[None] = asyncio.ensure_future(compute(source.token))
        entry = (source, task)
        self._inflight[resource] = entry
        self._running.add(task)

        def on_done(done: asyncio.Task[None]) -> None:
            self._running.discard(done)
            if self._inflight.get(resource) is entry:
                del self._inflight[resource]
            source.dispose()
            if not done.cancelled() and done.exception() is not None:
                logger.error(
                    "diagnostics.request_failed",
                    resource=str(resource),
                    exc_info=done.exception(),
                )

        task.add_done_callback(on_done)
        return task

    def cancel(self, resource: DocumentUri) -> None:
        entry = self._inflight.pop(resource, None)
        if entry is not None:
            entry[0].cancel()

    def clear(self) -> None:
        for source, _ in self._inflight.values():
            source.cancel()
        self._inflight.clear()

    def __contains__(self, resource: DocumentUri) -> bool:
        return resource in self._inflight

    async def wait_idle(self) -> None:
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)


# ---------------------------------------------------------------------------
# Link watcher
# ---------------------------------------------------------------------------


class LinkWatcher:
    """Tracks which documents link to which files.

    *on_linked_changed* receives the documents that link to a file that
    was created, deleted or changed.
    """

    def __init__(
        self,
        bus: EventBus,
        on_linked_changed: Callable[[set[DocumentUri]], None],
    ) -> None:
        self._bus = bus
        self._on_linked_changed = on_linked_changed
        # target path -> documents linking to it
        self._watchers: dict[DocumentUri, set[DocumentUri]] = {}

        bus.subscribe(FileCreated, self._on_file_created)
        bus.subscribe(FileDeleted, self._on_file_deleted)
        bus.subscribe(DocumentChanged, self._on_document_changed)

    def update_links_for_document(self, resource: DocumentUri, links: Iterable[TextileLink]) -> None:
        targets = {
            link.href.path
            for link in links
            if isinstance(link.href, InternalHref) and link.href.path != resource
        }
        self._remove(resource)
        for target in targets:
            self._watchers.setdefault(target, set()).add(resource)

    def delete_document(self, resource: DocumentUri) -> None:
        self._remove(resource)

    def watched_paths(self) -> set[DocumentUri]:
        return set(self._watchers)

    def _remove(self, resource: DocumentUri) -> None:
        for target in list(self._watchers):
            documents = self._watchers[target]
            documents.discard(resource)
            if not documents:
                del self._watchers[target]

    def _referring(self, resource: DocumentUri) -> set[DocumentUri]:
        resource = resource.with_fragment("")
        referring: set[DocumentUri] = set()
        for target, documents in self._watchers.items():
            if target == resource or any(
                target.with_path(target.path + extension) == resource
                for extension in TEXTILE_FILE_EXTENSIONS
            ):
                referring |= documents
        return referring

    def _fire(self, resource: DocumentUri) -> None:
        referring = self._referring(resource)
        if referring:
            self._on_linked_changed(referring)

    def _on_file_created(self, event: FileCreated) -> None:
        self._fire(event.uri)

    def _on_file_deleted(self, event: FileDeleted) -> None:
        self._fire(event.uri)

    def _on_document_changed(self, event: DocumentChanged) -> None:
        self._fire(event.document.uri)

    def dispose(self) -> None:
        self._bus.unsubscribe(FileCreated, self._on_file_created)
        self._bus.unsubscribe(FileDeleted, self._on_file_deleted)
        self._bus.unsubscribe(DocumentChanged, self._on_document_changed)
        self._watchers.clear()


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class DiagnosticManager:
    """Publishes link diagnostics for the documents open in the editor."""

    def __init__(
        self,
        workspace: TextileWorkspace,
        computer: DiagnosticComputer,
        configuration: DiagnosticConfiguration,
        reporter: DiagnosticReporter,
        host: EditorHost,
        bus: EventBus,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._workspace = workspace
        self._computer = computer
        self._configuration = configuration
        self._reporter = reporter
        self._host = host
        self._bus = bus

        self._delayer: Delayer[None] = Delayer(settings.diagnostic_debounce_seconds)
        self._pending: set[DocumentUri] = set()
        self._inflight = InflightDiagnosticRequests()
        self._link_watcher = LinkWatcher(bus, self._on_linked_files_changed)
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._bus.subscribe(DocumentOpened, self._on_document_opened)
        self._bus.subscribe(DocumentChanged, self._on_document_changed)
        self._bus.subscribe(DocumentClosed, self._on_document_closed)
        self._bus.subscribe(ConfigurationChanged, self._on_configuration_changed)
        self.rebuild()

    @property
    def link_watcher(self) -> LinkWatcher:
        return self._link_watcher

    # -- triggering ---------------------------------------------------------

    def trigger_diagnostics(self, document: TextDocument) -> None:
        self._inflight.cancel(document.uri)
        if not is_textile_file(document):
            return
        self._pending.add(document.uri)
        self._delayer.trigger(self.recompute_pending_diagnostics)

    def rebuild(self) -> None:
        """Forget every diagnostic and revalidate the visible documents."""
        self._reporter.clear()
        self._pending.clear()
        self._inflight.clear()

        visible = self._host.visible_resources()
        documents = [
            document
            for document in self._host.open_documents()
            if document.uri in visible and is_textile_file(document)
        ]
        logger.info("diagnostics.rebuild", documents=len(documents))
        for document in documents:
            self.trigger_diagnostics(document)

    async def recompute_pending_diagnostics(self) -> None:
        pending = list(self._pending)
        self._pending.clear()

        for resource in pending:
            document = self._host.get_open_document(resource)
            if document is not None:
                self._inflight.trigger(resource, self._make_request(document))

    def _make_request(self, document: TextDocument) -> Callable[[CancellationToken], Awaitable[None]]:
        async def compute(token: CancellationToken) -> None:
            state = await self.recompute_diagnostic_state(document, token)
            if token.is_cancellation_requested:
                logger.debug("diagnostics.discarded", resource=str(document.uri))
                return
            config = state.config
            watch = config.enabled and config.validate_file_paths is not None
            self._link_watcher.update_links_for_document(document.uri, state.links if watch else ())
            self._publish(document.uri, state)

        return compute

    async def recompute_diagnostic_state(
        self,
        document: TextDocument,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> DiagnosticState:
        config = self._configuration.get_options(document.uri)
        if not config.enabled:
            return DiagnosticState(config=config)
        computed = await self._computer.get_diagnostics(document, config, token)
        return DiagnosticState(
            diagnostics=tuple(computed.diagnostics),
            links=tuple(computed.links),
            config=config,
        )

    def _publish(self, resource: DocumentUri, state: DiagnosticState) -> None:
        self._reporter.set(resource, state.diagnostics)
        self._bus.publish(DiagnosticsPublished(resource, state.diagnostics))
        logger.debug("diagnostics.published", resource=str(resource), diagnostics=len(state.diagnostics))

    async def wait_pending_work(self) -> None:
        """Wait until no debounce is armed and nothing is computing."""
        while True:
            completion = self._delayer.completion
            if completion is not None and not completion.done():
                await asyncio.wait([completion])
                continue
            if self._pending:
                # Pending work without an armed timer, e.g. after a rebuild raced a recompute
                await self.recompute_pending_diagnostics()
                continue
            await self._inflight.wait_idle()
            completion = self._delayer.completion
            if (completion is None or completion.done()) and not self._pending:
                return

    # -- event handlers -----------------------------------------------------

    def _on_document_opened(self, event: DocumentOpened) -> None:
        self.trigger_diagnostics(event.document)

    def _on_document_changed(self, event: DocumentChanged) -> None:
        if self._host.get_open_document(event.document.uri) is not None:
            self.trigger_diagnostics(event.document)

    def _on_document_closed(self, event: DocumentClosed) -> None:
        self._pending.discard(event.uri)
        self._inflight.cancel(event.uri)
        self._link_watcher.delete_document(event.uri)
        self._reporter.delete(event.uri)

    def _on_configuration_changed(self, event: ConfigurationChanged) -> None:
        self.rebuild()

    def _on_linked_files_changed(self, resources: set[DocumentUri]) -> None:
        for resource in resources:
            document = self._host.get_open_document(resource)
            if document is not None:
                self.trigger_diagnostics(document)

    def dispose(self) -> None:
        if self._started:
            self._bus.unsubscribe(DocumentOpened, self._on_document_opened)
            self._bus.unsubscribe(DocumentChanged, self._on_document_changed)
            self._bus.unsubscribe(DocumentClosed, self._on_document_closed)
            self._bus.unsubscribe(ConfigurationChanged, self._on_configuration_changed)
            self._started = False
        self._delayer.dispose()
        self._inflight.clear()
        self._link_watcher.dispose()
        self._pending.clear()
