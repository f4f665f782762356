"""Tests for textile_ls.application.cache."""

import asyncio

import pytest

from textile_ls.application.cache import DocumentInfoCache, WorkspaceCache
from textile_ls.domain.events import DocumentChanged
from textile_ls.infrastructure.workspace.memory import InMemoryTextileWorkspace


class _CountingCompute:
    def __init__(self, fail_first: bool = False):
        self.calls = 0
        self._fail_first = fail_first

    async def __call__(self, document):
        self.calls += 1
        await asyncio.sleep(0)
        if self._fail_first and self.calls == 1:
            raise RuntimeError("transient")
        return f"{document.uri.name}@{document.version}"


class _SlowListingWorkspace(InMemoryTextileWorkspace):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.listings = 0

    async def get_all_textile_documents(self):
        self.listings += 1
        await asyncio.sleep(0)
        return await super().get_all_textile_documents()


class TestDocumentInfoCache:
    @pytest.mark.asyncio
    async def test_concurrent_requests_share_computation(self, make_document, make_workspace):
        doc = make_document("a.textile", "")
        compute = _CountingCompute()
        cache = DocumentInfoCache(make_workspace(doc), compute)

        results = await asyncio.gather(cache.get_for_document(doc), cache.get_for_document(doc))

        assert results == ["a.textile@1", "a.textile@1"]
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_new_version_recomputes(self, make_document, make_workspace):
        doc = make_document("a.textile", "")
        compute = _CountingCompute()
        cache = DocumentInfoCache(make_workspace(doc), compute)

        await cache.get_for_document(doc)
        assert await cache.get_for_document(doc.with_text("x")) == "a.textile@2"
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_change_and_delete_drop_entries(self, make_document, make_workspace):
        doc = make_document("a.textile", "")
        workspace = make_workspace(doc)
        cache = DocumentInfoCache(workspace, _CountingCompute())
        await cache.get_for_document(doc)
        assert cache.entries() == [doc.uri]

        workspace.update_document(doc.with_text("x"))
        assert cache.entries() == []

        await cache.get(doc.uri)
        workspace.delete_document(doc.uri)
        assert cache.entries() == []

    @pytest.mark.asyncio
    async def test_get_missing_resource(self, make_workspace, workspace_root):
        cache = DocumentInfoCache(make_workspace(), _CountingCompute())
        assert await cache.get(workspace_root.join_path("missing.textile")) is None

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, make_document, make_workspace):
        doc = make_document("a.textile", "")
        compute = _CountingCompute(fail_first=True)
        cache = DocumentInfoCache(make_workspace(doc), compute)

        with pytest.raises(RuntimeError):
            await cache.get_for_document(doc)

        assert await cache.get_for_document(doc) == "a.textile@1"
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_dispose_unsubscribes(self, make_document, make_workspace):
        doc = make_document("a.textile", "")
        workspace = make_workspace(doc)
        cache = DocumentInfoCache(workspace, _CountingCompute())

        cache.dispose()
        await cache.get_for_document(doc)
        workspace.update_document(doc.with_text("x"))

        assert cache.entries() == [doc.uri]


class TestWorkspaceCache:
    @pytest.mark.asyncio
    async def test_values_follow_workspace(self, make_document, make_workspace):
        first = make_document("a.textile", "")
        workspace = make_workspace(first)
        cache = WorkspaceCache(workspace, _CountingCompute())

        assert await cache.get_all() == ["a.textile@1"]

        workspace.create_document(make_document("b.textile", ""))
        workspace.update_document(first.with_text("x"))
        assert sorted(await cache.get_all()) == ["a.textile@2", "b.textile@1"]

        workspace.delete_document(first.uri)
        assert await cache.get_all() == ["b.textile@1"]
        cache.dispose()

    @pytest.mark.asyncio
    async def test_values_are_computed_once(self, make_document, make_workspace):
        compute = _CountingCompute()
        cache = WorkspaceCache(make_workspace(make_document("a.textile", "")), compute)

        await cache.get_all()
        await cache.get_all()

        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_populate_once(self, make_document, workspace_root, bus, monkeypatch):
        doc = make_document("a.textile", "")
        workspace = _SlowListingWorkspace([doc], bus=bus, folders=[workspace_root])
        subscribed = []
        subscribe = bus.subscribe
        monkeypatch.setattr(
            bus, "subscribe", lambda event_type, handler: (subscribed.append(event_type), subscribe(event_type, handler))
        )
        compute = _CountingCompute()
        cache = WorkspaceCache(workspace, compute)

        results = await asyncio.gather(cache.get_all(), cache.get_all())

        assert results == [["a.textile@1"], ["a.textile@1"]]
        assert workspace.listings == 1
        assert compute.calls == 1
        assert subscribed.count(DocumentChanged) == 1

        workspace.update_document(doc.with_text("x"))
        assert await cache.get_all() == ["a.textile@2"]
        assert compute.calls == 2
        cache.dispose()
