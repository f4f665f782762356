"""Tests for textile_ls.application.path_completion."""

import pytest

from textile_ls.application.links import TextileLinkProvider
from textile_ls.application.path_completion import PathCompletionProvider
from textile_ls.application.toc import TableOfContentsProvider
from textile_ls.domain.entities import Position, Range
from textile_ls.domain.enums import CompletionItemKind

CURSOR = "$$CURSOR$$"


async def _complete(parser, make_document, make_workspace, name, text, *others):
    line_number = next(index for index, line in enumerate(text.split("\n")) if CURSOR in line)
    character = text.split("\n")[line_number].index(CURSOR)
    doc = make_document(name, text.replace(CURSOR, ""))
    workspace = make_workspace(doc, *others)
    provider = PathCompletionProvider(
        workspace,
        TextileLinkProvider(parser, workspace),
        TableOfContentsProvider(parser, workspace),
    )
    items = await provider.provide_completion_items(doc, Position(line=line_number, character=character))
    return sorted(items, key=lambda item: item.label)


def _labels(items):
    return [item.label for item in items]


class TestPathCompletion:
    @pytest.mark.asyncio
    async def test_nothing_outside_links(self, parser, make_document, make_workspace):
        items = await _complete(parser, make_document, make_workspace, "new.textile", f"plain {CURSOR}text")
        assert items == []

    @pytest.mark.asyncio
    async def test_anchors(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f'"":#{CURSOR}\n\nh1. A b C\n\nh1. x y Z',
        )

        assert _labels(items) == ["#a-b-c", "#x-y-z"]
        assert items[0].range == Range.of(0, 3, 0, 4)
        assert items[0].kind == CompletionItemKind.HEADER

    @pytest.mark.asyncio
    async def test_no_suggestions_for_urls(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f'"":http:{CURSOR}\n\nh1. http',
        )
        assert items == []

    @pytest.mark.asyncio
    async def test_empty_href_offers_everything(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f'"":{CURSOR}\n\nh1. A b C\n\n[ref-1]http://www.example.com',
            make_document("a.textile", ""),
            make_document("sub/foo.textile", ""),
        )

        assert _labels(items) == ["#a-b-c", "a.textile", "new.textile", "ref-1", "sub/"]
        kinds = {item.label: item.kind for item in items}
        assert kinds["ref-1"] == CompletionItemKind.REFERENCE
        assert kinds["sub/"] == CompletionItemKind.FOLDER

    @pytest.mark.asyncio
    async def test_relative_paths(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f'"":./{CURSOR}\n\nh1. A b C',
            make_document("a.textile", ""),
            make_document("sub/foo.textile", ""),
        )

        assert _labels(items) == ["a.textile", "new.textile", "sub/"]
        assert items[0].range == Range.of(0, 5, 0, 5)

    @pytest.mark.asyncio
    async def test_absolute_paths_from_subfolder(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "sub/new.textile",
            f'"":/{CURSOR}',
            make_document("a.textile", ""),
            make_document("b.textile", ""),
        )

        assert _labels(items) == ["a.textile", "b.textile", "sub/"]

    @pytest.mark.asyncio
    async def test_partial_name_is_replaced(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f'"":./sub/fo{CURSOR}o.textile more',
            make_document("sub/foo.textile", ""),
        )

        [item] = items
        assert item.range == Range.of(0, 9, 0, 20)

    @pytest.mark.asyncio
    async def test_anchors_in_other_file(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "sub/new.textile",
            f'"":/b.textile#{CURSOR}',
            make_document("b.textile", 'h1. b\n\n"./a":./a\n\nh1. header1'),
        )

        assert _labels(items) == ["#b", "#header1"]
        assert items[0].range == Range.of(0, 13, 0, 14)

    @pytest.mark.asyncio
    async def test_anchors_in_missing_file(self, parser, make_document, make_workspace):
        items = await _complete(parser, make_document, make_workspace, "new.textile", f'"":/none.textile#{CURSOR}')
        assert items == []

    @pytest.mark.asyncio
    async def test_link_definitions_complete_headers_and_paths(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f"h1. a B c\n\n[ref-1]{CURSOR}",
            make_document("a.textile", ""),
        )

        assert _labels(items) == ["#a-b-c", "a.textile", "new.textile"]

    @pytest.mark.asyncio
    async def test_image_links(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f"!!:{CURSOR}\n\nh1. A b C",
        )

        assert _labels(items) == ["#a-b-c", "new.textile"]

    @pytest.mark.asyncio
    async def test_spaces_are_encoded(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f'"":./sub/{CURSOR}',
            make_document("sub/file with space.textile", ""),
        )

        [item] = items
        assert item.label == "file with space.textile"
        assert item.insert_text == "file%20with%20space.textile"

    @pytest.mark.asyncio
    async def test_encoded_directory(self, parser, make_document, make_workspace):
        items = await _complete(
            parser, make_document, make_workspace, "new.textile",
            f'"":./sub%20with%20space/{CURSOR}',
            make_document("sub with space/file.textile", ""),
        )

        assert [(item.label, item.insert_text) for item in items] == [("file.textile", "file.textile")]
