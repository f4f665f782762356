"""Filesystem-backed workspace.

Implements the ``TextileWorkspace`` port over a directory tree::

    <root>/
    ├── .textile-ls.json       (optional per-workspace settings)
    ├── index.textile
    └── docs/**/*.textile

Documents open in the editor host take precedence over what is on disk.
Blocking filesystem calls run in worker threads; the initial scan reads
a bounded number of files at a time.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

import structlog

from textile_ls.config.settings import Settings
from textile_ls.domain.events import (
    DocumentChanged,
    DocumentCreated,
    DocumentDeleted,
    DocumentOpened,
    FileCreated,
    FileDeleted,
)
from textile_ls.domain.exceptions import WorkspaceError
from textile_ls.domain.ports import EditorHost, EventBus, TextDocument
from textile_ls.domain.uri import TEXTILE_FILE_EXTENSIONS, DocumentUri, Schemes, looks_like_textile_path
from textile_ls.infrastructure.concurrency import Limiter
from textile_ls.infrastructure.documents import InMemoryDocument

logger = structlog.get_logger(__name__)

EXCLUDED_DIRECTORIES = frozenset({"node_modules", ".git"})


class FilesystemTextileWorkspace:
    """Textile documents found under a root directory."""

    def __init__(
        self,
        root: str | Path,
        bus: EventBus,
        settings: Settings,
        host: EditorHost | None = None,
    ) -> None:
        self._root = Path(root).resolve()
        self._events = bus
        self._settings = settings
        self._host = host
        self._documents: dict[DocumentUri, TextDocument] = {}
        self._versions: dict[DocumentUri, int] = {}

        if host is not None:
            bus.subscribe(DocumentOpened, self._on_document_opened)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def workspace_folders(self) -> Sequence[DocumentUri]:
        return (DocumentUri.file(self._root),)

    @property
    def events(self) -> EventBus:
        return self._events

    def workspace_folder_for(self, resource: DocumentUri) -> DocumentUri | None:
        folder = DocumentUri.file(self._root)
        return folder if resource.is_relative_to(folder) else None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def get_all_textile_documents(self) -> list[TextDocument]:
        if not self._root.is_dir():
            raise WorkspaceError("Workspace root is not a directory", details={"root": str(self._root)})

        paths = await asyncio.to_thread(self._find_textile_files)
        limiter = Limiter(self._settings.workspace_scan_concurrency)
        results = await asyncio.gather(*(
            limiter.queue(lambda path=path: self.get_or_load_textile_document(DocumentUri.file(path)))
            for path in paths
        ))
        documents = [doc for doc in results if doc is not None]
        logger.info("workspace.scanned", root=str(self._root), documents=len(documents))
        return documents

    def _find_textile_files(self) -> list[Path]:
        found: list[Path] = []
        for extension in TEXTILE_FILE_EXTENSIONS:
            for path in self._root.rglob(f"*{extension}"):
                relative = path.relative_to(self._root)
                if any(part in EXCLUDED_DIRECTORIES for part in relative.parts):
                    continue
                if path.is_file():
                    found.append(path)
        return sorted(found)

    def has_textile_document(self, resource: DocumentUri) -> bool:
        resource = resource.with_fragment("")
        if self._open_document(resource) is not None or resource in self._documents:
            return True
        return looks_like_textile_path(resource) and Path(resource.fs_path).is_file()

    async def get_or_load_textile_document(self, resource: DocumentUri) -> TextDocument | None:
        resource = resource.with_fragment("")
        opened = self._open_document(resource)
        if opened is not None:
            return opened
        if resource.scheme != Schemes.FILE or not looks_like_textile_path(resource):
            return None
        if resource in self._documents:
            return self._documents[resource]

        try:
            text = await asyncio.to_thread(Path(resource.fs_path).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("workspace.read_failed", resource=str(resource), error=str(exc))
            return None

        document = InMemoryDocument(resource, text, version=self._versions.get(resource, 1))
        self._documents[resource] = document
        return document

    def loaded_version(self, resource: DocumentUri) -> int | None:
        """Version of the disk copy read for *resource*, if any."""
        document = self._documents.get(resource.with_fragment(""))
        return document.version if document is not None else None

    async def path_exists(self, resource: DocumentUri) -> bool:
        resource = resource.with_fragment("")
        if self._open_document(resource) is not None:
            return True
        if resource.scheme != Schemes.FILE:
            return False
        try:
            await asyncio.to_thread(Path(resource.fs_path).stat)
        except (OSError, ValueError):
            return False
        return True

    async def read_directory(self, resource: DocumentUri) -> list[tuple[str, bool]]:
        """``(name, is_directory)`` pairs for the entries of *resource*."""
        if resource.scheme != Schemes.FILE:
            return []
        try:
            return await asyncio.to_thread(self._list_directory, Path(resource.fs_path))
        except OSError as exc:
            logger.debug("workspace.list_failed", resource=str(resource), error=str(exc))
            return []

    @staticmethod
    def _list_directory(path: Path) -> list[tuple[str, bool]]:
        return sorted(
            (entry.name, entry.is_dir())
            for entry in path.iterdir()
            if entry.name not in EXCLUDED_DIRECTORIES
        )

    def _open_document(self, resource: DocumentUri) -> TextDocument | None:
        if self._host is None:
            return None
        return self._host.get_open_document(resource)

    # ------------------------------------------------------------------
    # Change notifications (fed by a file watcher or the CLI)
    # ------------------------------------------------------------------

    async def notify_file_created(self, resource: DocumentUri) -> None:
        self._events.publish(FileCreated(resource))
        if looks_like_textile_path(resource):
            document = await self.get_or_load_textile_document(resource)
            if document is not None:
                self._events.publish(DocumentCreated(document))

    async def notify_file_changed(self, resource: DocumentUri) -> None:
        if not looks_like_textile_path(resource):
            return
        self._documents.pop(resource, None)
        self._versions[resource] = self._versions.get(resource, 1) + 1
        document = await self.get_or_load_textile_document(resource)
        if document is not None:
            self._events.publish(DocumentChanged(document))

    def notify_file_deleted(self, resource: DocumentUri) -> None:
        self._documents.pop(resource, None)
        if looks_like_textile_path(resource):
            self._events.publish(DocumentDeleted(resource))
        self._events.publish(FileDeleted(resource))

    def _on_document_opened(self, event: DocumentOpened) -> None:
        # The editor buffer replaces whatever was read from disk
        if self._documents.pop(event.document.uri, None) is not None:
            self._events.publish(DocumentChanged(event.document))

    def dispose(self) -> None:
        if self._host is not None:
            self._events.unsubscribe(DocumentOpened, self._on_document_opened)
