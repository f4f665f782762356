"""In-memory editor host and diagnostic collection.

``MemoryEditorHost`` tracks which documents are open and visible and
publishes open/change/close events.  ``MemoryDiagnosticReporter`` is a
dict-backed diagnostic collection.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from textile_ls.domain.entities import Diagnostic
from textile_ls.domain.events import DocumentChanged, DocumentClosed, DocumentOpened
from textile_ls.domain.ports import EventBus, TextDocument
from textile_ls.domain.uri import DocumentUri


class MemoryEditorHost:
    """Open documents and visible tabs of an editor."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._open: dict[DocumentUri, TextDocument] = {}
        self._hidden: set[DocumentUri] = set()
        bus.subscribe(DocumentChanged, self._on_changed)

    def open_documents(self) -> list[TextDocument]:
        return list(self._open.values())

    def get_open_document(self, resource: DocumentUri) -> TextDocument | None:
        return self._open.get(resource.with_fragment(""))

    def visible_resources(self) -> set[DocumentUri]:
        return {uri for uri in self._open if uri not in self._hidden}

    def open(self, document: TextDocument, visible: bool = True) -> None:
        self._open[document.uri] = document
        if visible:
            self._hidden.discard(document.uri)
        else:
            self._hidden.add(document.uri)
        self._bus.publish(DocumentOpened(document))

    def open_all(self, documents: Iterable[TextDocument]) -> None:
        for document in documents:
            self.open(document)

    def edit(self, document: TextDocument) -> None:
        """Replace the text of an open document."""
        self._bus.publish(DocumentChanged(document))

    def close(self, resource: DocumentUri) -> None:
        self._open.pop(resource, None)
        self._hidden.discard(resource)
        self._bus.publish(DocumentClosed(resource))

    def hide(self, resource: DocumentUri) -> None:
        self._hidden.add(resource)

    def _on_changed(self, event: DocumentChanged) -> None:
        if event.document.uri in self._open:
            self._open[event.document.uri] = event.document


class MemoryDiagnosticReporter:
    """Diagnostic collection kept in a dict."""

    def __init__(self) -> None:
        self._diagnostics: dict[DocumentUri, tuple[Diagnostic, ...]] = {}

    def set(self, resource: DocumentUri, diagnostics: Sequence[Diagnostic]) -> None:
        self._diagnostics[resource] = tuple(diagnostics)

    def delete(self, resource: DocumentUri) -> None:
        self._diagnostics.pop(resource, None)

    def clear(self) -> None:
        self._diagnostics.clear()

    def get(self, resource: DocumentUri) -> tuple[Diagnostic, ...]:
        """Diagnostics for *resource*, ordered by position."""
        return tuple(sorted(
            self._diagnostics.get(resource, ()),
            key=lambda diagnostic: diagnostic.range.start.key(),
        ))

    def resources(self) -> list[DocumentUri]:
        return list(self._diagnostics)
