"""In-memory workspace.

Implements the ``TextileWorkspace`` port over a dict of documents.  Edits
go through :meth:`create_document`, :meth:`update_document` and
:meth:`delete_document`, which publish the matching events on the bus.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from textile_ls.domain.events import (
    DocumentChanged,
    DocumentCreated,
    DocumentDeleted,
    FileCreated,
    FileDeleted,
)
from textile_ls.domain.exceptions import WorkspaceError
from textile_ls.domain.ports import EventBus, TextDocument
from textile_ls.domain.uri import DocumentUri
from textile_ls.infrastructure.events.bus import InMemoryEventBus


class InMemoryTextileWorkspace:
    """Workspace whose Textile documents live in memory.

    *files* lists non-Textile resources (images, PDFs...) that exist but
    are never parsed.
    """

    def __init__(
        self,
        documents: Iterable[TextDocument] = (),
        bus: EventBus | None = None,
        folders: Sequence[DocumentUri] = (),
        files: Iterable[DocumentUri] = (),
    ) -> None:
        self._documents: dict[DocumentUri, TextDocument] = {doc.uri: doc for doc in documents}
        self._files: set[DocumentUri] = set(files)
        self._folders = list(folders)
        self._events = bus or InMemoryEventBus()

    @property
    def workspace_folders(self) -> Sequence[DocumentUri]:
        return tuple(self._folders)

    @property
    def events(self) -> EventBus:
        return self._events

    def values(self) -> list[TextDocument]:
        return list(self._documents.values())

    def workspace_folder_for(self, resource: DocumentUri) -> DocumentUri | None:
        matches = [folder for folder in self._folders if resource.is_relative_to(folder)]
        if not matches:
            return None
        return max(matches, key=lambda folder: len(folder.path))

    async def get_all_textile_documents(self) -> list[TextDocument]:
        return self.values()

    def has_textile_document(self, resource: DocumentUri) -> bool:
        return resource.with_fragment("") in self._documents

    async def get_or_load_textile_document(self, resource: DocumentUri) -> TextDocument | None:
        return self._documents.get(resource.with_fragment(""))

    async def path_exists(self, resource: DocumentUri) -> bool:
        resource = resource.with_fragment("")
        return resource in self._documents or resource in self._files

    async def read_directory(self, resource: DocumentUri) -> list[tuple[str, bool]]:
        """Entries below *resource*, derived from the known documents and files."""
        prefix = resource.path.rstrip("/") + "/"
        entries: dict[str, bool] = {}
        for known in (*self._documents, *self._files):
            if known.scheme != resource.scheme or not known.path.startswith(prefix):
                continue
            name, separator, _ = known.path[len(prefix):].partition("/")
            entries[name] = entries.get(name, False) or bool(separator)
        return sorted(entries.items())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_document(self, document: TextDocument) -> None:
        if document.uri in self._documents:
            raise WorkspaceError(
                "Document already exists",
                details={"uri": str(document.uri)},
            )
        self._documents[document.uri] = document
        self._events.publish(DocumentCreated(document))
        self._events.publish(FileCreated(document.uri))

    def update_document(self, document: TextDocument) -> None:
        self._documents[document.uri] = document
        self._events.publish(DocumentChanged(document))

    def delete_document(self, resource: DocumentUri) -> None:
        self._documents.pop(resource, None)
        self._events.publish(DocumentDeleted(resource))
        self._events.publish(FileDeleted(resource))

    def add_file(self, resource: DocumentUri) -> None:
        self._files.add(resource)
        self._events.publish(FileCreated(resource))

    def remove_file(self, resource: DocumentUri) -> None:
        self._files.discard(resource)
        self._events.publish(FileDeleted(resource))
