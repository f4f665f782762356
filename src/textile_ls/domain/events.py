"""Domain events for textile-ls.

All events are frozen dataclasses published on the in-memory event bus.
Editor events (open/change/close) and workspace events (create/delete)
are kept apart: a document can change on disk without ever being open.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from textile_ls.domain.uri import DocumentUri

if TYPE_CHECKING:
    from textile_ls.domain.entities import Diagnostic
    from textile_ls.domain.ports import TextDocument


# ---------------------------------------------------------------------------
# Document lifecycle events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentOpened:
    """A document was opened in the editor."""

    document: TextDocument


@dataclass(frozen=True)
class DocumentChanged:
    """A document's text changed (editor edit or file write)."""

    document: TextDocument


@dataclass(frozen=True)
class DocumentClosed:
    """A document was closed in the editor."""

    uri: DocumentUri


@dataclass(frozen=True)
class DocumentCreated:
    """A Textile document appeared in the workspace."""

    document: TextDocument


@dataclass(frozen=True)
class DocumentDeleted:
    """A Textile document was removed from the workspace."""

    uri: DocumentUri


# ---------------------------------------------------------------------------
# Filesystem events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileCreated:
    """Any file (Textile or not) was created."""

    uri: DocumentUri


@dataclass(frozen=True)
class FileDeleted:
    """Any file (Textile or not) was deleted."""

    uri: DocumentUri


# ---------------------------------------------------------------------------
# Configuration and output events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigurationChanged:
    """Validation settings changed.

    ``resource`` is the workspace folder whose overrides changed, or None
    when the global settings changed.
    """

    resource: DocumentUri | None = None


@dataclass(frozen=True)
class DiagnosticsPublished:
    uri: DocumentUri
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)
