"""Port definitions (hexagonal architecture).

Each Protocol defines a boundary that infrastructure adapters must satisfy.
The application layer depends only on these Protocols, never on concrete
editor, filesystem or parser implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Protocol, Sequence, runtime_checkable

from textile_ls.domain.entities import Diagnostic, DiagnosticOptions, Position, Range
from textile_ls.domain.uri import DocumentUri

if TYPE_CHECKING:
    from textile_ls.infrastructure.parsing.tokens import Token


# ---------------------------------------------------------------------------
# Document ports
# ---------------------------------------------------------------------------


@runtime_checkable
class TextDocument(Protocol):
    """A versioned text buffer."""

    @property
    def uri(self) -> DocumentUri: ...

    @property
    def version(self) -> int: ...

    @property
    def language_id(self) -> str: ...

    @property
    def line_count(self) -> int: ...

    def get_text(self, range: Range | None = None) -> str: ...
    def position_at(self, offset: int) -> Position: ...
    def offset_at(self, position: Position) -> int: ...
    def line_at(self, line: int) -> str: ...


@runtime_checkable
class TextileParser(Protocol):
    """Turns a document into a block-level token tree."""

    def tokenize(self, document: TextDocument) -> list[Token]: ...


# ---------------------------------------------------------------------------
# Workspace port
# ---------------------------------------------------------------------------


@runtime_checkable
class TextileWorkspace(Protocol):
    """Access to the Textile documents and files of the open workspace."""

    @property
    def workspace_folders(self) -> Sequence[DocumentUri]: ...

    @property
    def events(self) -> EventBus: ...

    def workspace_folder_for(self, resource: DocumentUri) -> DocumentUri | None: ...
    async def get_all_textile_documents(self) -> list[TextDocument]: ...
    def has_textile_document(self, resource: DocumentUri) -> bool: ...
    async def get_or_load_textile_document(self, resource: DocumentUri) -> TextDocument | None: ...
    async def path_exists(self, resource: DocumentUri) -> bool: ...
    async def read_directory(self, resource: DocumentUri) -> list[tuple[str, bool]]: ...


# ---------------------------------------------------------------------------
# Configuration and host ports
# ---------------------------------------------------------------------------


@runtime_checkable
class DiagnosticConfiguration(Protocol):
    """Effective validation settings, resolved per resource."""

    def get_options(self, resource: DocumentUri) -> DiagnosticOptions: ...
    def update_ignore_links(self, resource: DocumentUri, links: Iterable[str]) -> None: ...


@runtime_checkable
class DiagnosticReporter(Protocol):
    """The host's diagnostic collection."""

    def set(self, resource: DocumentUri, diagnostics: Sequence[Diagnostic]) -> None: ...
    def delete(self, resource: DocumentUri) -> None: ...
    def clear(self) -> None: ...
    def get(self, resource: DocumentUri) -> tuple[Diagnostic, ...]: ...


@runtime_checkable
class EditorHost(Protocol):
    """What the editor currently shows."""

    def open_documents(self) -> list[TextDocument]: ...
    def get_open_document(self, resource: DocumentUri) -> TextDocument | None: ...
    def visible_resources(self) -> set[DocumentUri]: ...


# ---------------------------------------------------------------------------
# Event bus port
# ---------------------------------------------------------------------------


@runtime_checkable
class EventBus(Protocol):
    """Publish/subscribe in-memory event bus."""

    def publish(self, event: Any) -> None: ...
    def subscribe(self, event_type: type, handler: Any) -> None: ...
    def unsubscribe(self, event_type: type, handler: Any) -> None: ...
