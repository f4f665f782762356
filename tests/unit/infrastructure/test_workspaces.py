"""Tests for the in-memory and filesystem workspaces."""

from pathlib import Path

import pytest

from textile_ls.config.settings import Settings
from textile_ls.domain.events import (
    DocumentChanged,
    DocumentCreated,
    DocumentDeleted,
    FileCreated,
    FileDeleted,
)
from textile_ls.domain.exceptions import WorkspaceError
from textile_ls.domain.uri import DocumentUri
from textile_ls.infrastructure.documents import InMemoryDocument
from textile_ls.infrastructure.events.bus import InMemoryEventBus
from textile_ls.infrastructure.host.memory import MemoryEditorHost
from textile_ls.infrastructure.workspace.filesystem import FilesystemTextileWorkspace
from textile_ls.infrastructure.workspace.memory import InMemoryTextileWorkspace


def _record(bus, *event_types):
    received = []
    for event_type in event_types:
        bus.subscribe(event_type, received.append)
    return received


class TestInMemoryTextileWorkspace:
    @pytest.mark.asyncio
    async def test_lookup_ignores_fragment(self, make_document, make_workspace):
        doc = make_document("a.textile", "h1. A")
        workspace = make_workspace(doc)

        assert workspace.has_textile_document(doc.uri.with_fragment("a"))
        assert await workspace.get_or_load_textile_document(doc.uri.with_fragment("a")) is doc
        assert await workspace.get_all_textile_documents() == [doc]

    @pytest.mark.asyncio
    async def test_path_exists_covers_files(self, workspace_root, make_workspace):
        image = workspace_root.join_path("image.png")
        workspace = make_workspace(files=(image,))

        assert await workspace.path_exists(image)
        assert not await workspace.path_exists(workspace_root.join_path("other.png"))

    @pytest.mark.asyncio
    async def test_read_directory(self, workspace_root, make_document, make_workspace):
        workspace = make_workspace(
            make_document("a.textile", ""),
            make_document("sub/b.textile", ""),
            files=(workspace_root.join_path("sub", "deep", "c.png"),),
        )

        assert await workspace.read_directory(workspace_root) == [("a.textile", False), ("sub", True)]
        assert await workspace.read_directory(workspace_root.join_path("sub")) == [
            ("b.textile", False),
            ("deep", True),
        ]
        assert await workspace.read_directory(workspace_root.join_path("missing")) == []

    def test_workspace_folder_for_picks_innermost(self, workspace_root, bus):
        nested = workspace_root.join_path("sub")
        workspace = InMemoryTextileWorkspace(bus=bus, folders=[workspace_root, nested])

        assert workspace.workspace_folder_for(nested.join_path("a.textile")) == nested
        assert workspace.workspace_folder_for(workspace_root.join_path("a.textile")) == workspace_root
        assert workspace.workspace_folder_for(DocumentUri.file("/elsewhere/a.textile")) is None

    def test_mutations_publish_events(self, bus, make_document, make_workspace):
        received = _record(bus, DocumentCreated, FileCreated, DocumentChanged, DocumentDeleted, FileDeleted)
        workspace = make_workspace()
        doc = make_document("a.textile", "x")

        workspace.create_document(doc)
        workspace.update_document(doc.with_text("y"))
        workspace.delete_document(doc.uri)

        assert [type(event) for event in received] == [
            DocumentCreated, FileCreated, DocumentChanged, DocumentDeleted, FileDeleted,
        ]
        assert not workspace.has_textile_document(doc.uri)

    def test_create_existing_document_fails(self, make_document, make_workspace):
        doc = make_document("a.textile", "x")
        workspace = make_workspace(doc)
        with pytest.raises(WorkspaceError):
            workspace.create_document(doc)


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    (tmp_path / "docs").mkdir()
    (tmp_path / "index.textile").write_text("h1. Index", encoding="utf-8")
    (tmp_path / "docs" / "a.textile").write_text("h1. A", encoding="utf-8")
    (tmp_path / "docs" / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "skip.textile").write_text("h1. Skip", encoding="utf-8")
    return tmp_path


def _workspace(root: Path, bus=None, host=None) -> FilesystemTextileWorkspace:
    return FilesystemTextileWorkspace(root, bus or InMemoryEventBus(), Settings(), host=host)


class TestFilesystemTextileWorkspace:
    @pytest.mark.asyncio
    async def test_scan_skips_excluded_directories(self, tree):
        workspace = _workspace(tree)
        documents = await workspace.get_all_textile_documents()
        names = sorted(doc.uri.name for doc in documents)
        assert names == ["a.textile", "index.textile"]

    @pytest.mark.asyncio
    async def test_scan_missing_root(self, tmp_path):
        workspace = _workspace(tmp_path / "missing")
        with pytest.raises(WorkspaceError):
            await workspace.get_all_textile_documents()

    @pytest.mark.asyncio
    async def test_load_document(self, tree):
        workspace = _workspace(tree)
        uri = DocumentUri.file(workspace.root / "docs" / "a.textile")

        document = await workspace.get_or_load_textile_document(uri.with_fragment("x"))

        assert document is not None
        assert document.get_text() == "h1. A"
        assert workspace.has_textile_document(uri)

    @pytest.mark.asyncio
    async def test_load_non_textile_returns_none(self, tree):
        workspace = _workspace(tree)
        uri = DocumentUri.file(workspace.root / "docs" / "image.png")
        assert await workspace.get_or_load_textile_document(uri) is None

    @pytest.mark.asyncio
    async def test_undecodable_file_returns_none(self, tree):
        (tree / "bad.textile").write_bytes(b"\xff\xfe\xfa")
        workspace = _workspace(tree)
        uri = DocumentUri.file(workspace.root / "bad.textile")
        assert await workspace.get_or_load_textile_document(uri) is None

    @pytest.mark.asyncio
    async def test_path_exists(self, tree):
        workspace = _workspace(tree)
        assert await workspace.path_exists(DocumentUri.file(workspace.root / "docs" / "image.png"))
        assert await workspace.path_exists(DocumentUri.file(workspace.root / "docs"))
        assert not await workspace.path_exists(DocumentUri.file(workspace.root / "nope.png"))
        assert not await workspace.path_exists(DocumentUri.untitled("Untitled-1"))

    @pytest.mark.asyncio
    async def test_read_directory(self, tree):
        workspace = _workspace(tree)

        assert await workspace.read_directory(DocumentUri.file(workspace.root)) == [
            ("docs", True),
            ("index.textile", False),
        ]
        assert await workspace.read_directory(DocumentUri.file(workspace.root / "docs")) == [
            ("a.textile", False),
            ("image.png", False),
        ]
        assert await workspace.read_directory(DocumentUri.file(workspace.root / "missing")) == []

    @pytest.mark.asyncio
    async def test_open_documents_take_precedence(self, tree):
        bus = InMemoryEventBus()
        host = MemoryEditorHost(bus)
        workspace = _workspace(tree, bus=bus, host=host)
        uri = DocumentUri.file(workspace.root / "index.textile")
        opened = InMemoryDocument(uri, "h1. Unsaved", version=5)
        host.open(opened)

        assert await workspace.get_or_load_textile_document(uri) is opened

    @pytest.mark.asyncio
    async def test_opening_a_loaded_document_reports_change(self, tree):
        bus = InMemoryEventBus()
        received = _record(bus, DocumentChanged)
        host = MemoryEditorHost(bus)
        workspace = _workspace(tree, bus=bus, host=host)
        uri = DocumentUri.file(workspace.root / "index.textile")
        await workspace.get_or_load_textile_document(uri)

        opened = InMemoryDocument(uri, "h1. Unsaved")
        host.open(opened)
        host.open(InMemoryDocument(DocumentUri.file(workspace.root / "other.textile"), ""))

        assert [event.document for event in received] == [opened]
        workspace.dispose()

    @pytest.mark.asyncio
    async def test_notify_file_changed_reloads(self, tree):
        bus = InMemoryEventBus()
        received = _record(bus, DocumentChanged)
        workspace = _workspace(tree, bus=bus)
        uri = DocumentUri.file(workspace.root / "index.textile")
        first = await workspace.get_or_load_textile_document(uri)

        (tree / "index.textile").write_text("h1. Changed", encoding="utf-8")
        await workspace.notify_file_changed(uri)

        [event] = received
        assert event.document.get_text() == "h1. Changed"
        assert event.document.version == first.version + 1

    @pytest.mark.asyncio
    async def test_notify_file_created(self, tree):
        bus = InMemoryEventBus()
        received = _record(bus, FileCreated, DocumentCreated)
        workspace = _workspace(tree, bus=bus)
        (tree / "new.textile").write_text("h1. New", encoding="utf-8")

        await workspace.notify_file_created(DocumentUri.file(workspace.root / "new.textile"))

        assert [type(event) for event in received] == [FileCreated, DocumentCreated]

    def test_notify_file_deleted(self, tree):
        bus = InMemoryEventBus()
        received = _record(bus, DocumentDeleted, FileDeleted)
        workspace = _workspace(tree, bus=bus)

        workspace.notify_file_deleted(DocumentUri.file(workspace.root / "docs" / "image.png"))
        workspace.notify_file_deleted(DocumentUri.file(workspace.root / "index.textile"))

        assert [type(event) for event in received] == [FileDeleted, DocumentDeleted, FileDeleted]
