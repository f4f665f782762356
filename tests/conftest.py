"""Shared fixtures.

Documents live under the ``/workspace`` folder of an in-memory workspace
unless a test builds its own.
"""

from __future__ import annotations

from typing import Callable

import pytest
import structlog

from textile_ls.domain.uri import DocumentUri
from textile_ls.infrastructure.documents import InMemoryDocument
from textile_ls.infrastructure.events.bus import InMemoryEventBus
from textile_ls.infrastructure.parsing.textile import TextileTokenizer
from textile_ls.infrastructure.workspace.memory import InMemoryTextileWorkspace

WORKSPACE_ROOT = DocumentUri.file("/workspace")


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo logging configuration done by CLI invocations."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def workspace_root() -> DocumentUri:
    return WORKSPACE_ROOT


@pytest.fixture
def bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def parser() -> TextileTokenizer:
    return TextileTokenizer()


@pytest.fixture
def make_document() -> Callable[..., InMemoryDocument]:
    """Build a document at ``/workspace/<name>``."""

    def factory(name: str, text: str, version: int = 1) -> InMemoryDocument:
        return InMemoryDocument(WORKSPACE_ROOT.join_path(name), text, version=version)

    return factory


@pytest.fixture
def make_workspace(bus: InMemoryEventBus) -> Callable[..., InMemoryTextileWorkspace]:
    def factory(*documents: InMemoryDocument, files: tuple[DocumentUri, ...] = ()) -> InMemoryTextileWorkspace:
        return InMemoryTextileWorkspace(documents, bus=bus, folders=[WORKSPACE_ROOT], files=files)

    return factory
