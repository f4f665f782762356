"""Folding ranges for Textile documents.

Three sources, concatenated in this order:

- regions: ``###. region`` / ``###. endregion`` (or the same words in an
  HTML comment), matched like brackets;
- header sections, from the table of contents;
- multi-line blocks: list items, ``pre``/``bc``, ``div``, ``bq`` and
  comments.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from textile_ls.application.toc import TableOfContentsProvider
from textile_ls.domain.entities import FoldingRange
from textile_ls.domain.enums import FoldingRangeKind
from textile_ls.domain.ports import TextDocument, TextileParser
from textile_ls.infrastructure.parsing.tokens import RECURSE, Token, VisitAction, collect, walk

RANGE_LIMIT = 5000

COMMENT_TAG = "!"
FOLDABLE_TAGS = frozenset({"li", "pre", "div", "blockquote", COMMENT_TAG})

_REGION_START_RE = re.compile(r"^\s*#?region\b")
_REGION_END_RE = re.compile(r"^\s*#?endregion\b")


def _marker_text(token: Token) -> str | None:
    if token.tag != COMMENT_TAG or not token.children or not token.children[0].is_leaf:
        return None
    return token.children[0].text


def is_region_start(token: Token) -> bool:
    text = _marker_text(token)
    return text is not None and bool(_REGION_START_RE.match(text))


def is_region_end(token: Token) -> bool:
    text = _marker_text(token)
    return text is not None and bool(_REGION_END_RE.match(text))


def is_region_marker(token: Token) -> bool:
    return is_region_start(token) or is_region_end(token)


def is_foldable(token: Token) -> bool:
    if token.tag == COMMENT_TAG:
        return not is_region_marker(token)
    return token.tag in FOLDABLE_TAGS


def _is_blank_line(document: TextDocument, line: int) -> bool:
    return not document.line_at(line).strip()


@dataclass
class _Block:
    start: int
    end: int | None  # exclusive; None until a later token closes the block
    depth: int
    is_comment: bool


class _BlockCollector:
    """Visitor recording foldable blocks in document order.

    Blocks without a known last line (list items) are closed by the next
    token that starts a line at the same or a shallower depth.
    """

    def __init__(self) -> None:
        self.blocks: list[_Block] = []
        self._open = 0

    def visit(self, token: Token, depth: int) -> VisitAction:
        start = token.line
        if start is None:
            return RECURSE

        self.close_open_blocks(depth, start)
        if is_foldable(token):
            end = token.end_line
            if end is None:
                self._open += 1
            self.blocks.append(_Block(
                start=start,
                end=None if end is None else end + 1,
                depth=depth,
                is_comment=token.tag == COMMENT_TAG,
            ))
        return RECURSE

    def close_open_blocks(self, depth: int, end: int) -> None:
        index = len(self.blocks) - 1
        while index >= 0 and self._open > 0 and self.blocks[index].depth >= depth:
            block = self.blocks[index]
            if block.end is None:
                block.end = end
                self._open -= 1
            if block.depth == depth:
                break
            index -= 1


class FoldingProvider:
    def __init__(self, parser: TextileParser, toc_provider: TableOfContentsProvider) -> None:
        self._parser = parser
        self._toc_provider = toc_provider

    async def provide_folding_ranges(self, document: TextDocument) -> list[FoldingRange]:
        ranges = [
            *self._region_ranges(document),
            *await self._header_ranges(document),
            *self._block_ranges(document),
        ]
        return ranges[:RANGE_LIMIT]

    def _region_ranges(self, document: TextDocument) -> list[FoldingRange]:
        markers = [
            (token.line, is_region_start(token))
            for token in collect(self._parser.tokenize(document), is_region_marker)
            if token.line is not None
        ]

        ranges: list[FoldingRange] = []
        stack: list[int] = []
        for line, is_start in markers:
            if is_start:
                stack.append(line)
            elif stack:
                ranges.append(FoldingRange(start=stack.pop(), end=line, kind=FoldingRangeKind.REGION))
            # An end marker without an open region is ignored
        return ranges

    async def _header_ranges(self, document: TextDocument) -> list[FoldingRange]:
        toc = await self._toc_provider.get_for_document(document)
        ranges: list[FoldingRange] = []
        for entry in toc.entries:
            end = entry.section_location.range.end.line
            if _is_blank_line(document, end) and end >= entry.line + 1:
                end -= 1
            ranges.append(FoldingRange(start=entry.line, end=end))
        return ranges

    def _block_ranges(self, document: TextDocument) -> list[FoldingRange]:
        collector = _BlockCollector()
        walk(self._parser.tokenize(document), collector)
        collector.close_open_blocks(0, document.line_count)

        ranges: list[FoldingRange] = []
        for block in collector.blocks:
            end = (document.line_count if block.end is None else block.end) - 1
            if _is_blank_line(document, end) and end >= block.start + 1:
                end -= 1
            ranges.append(FoldingRange(
                start=block.start,
                end=end,
                kind=FoldingRangeKind.COMMENT if block.is_comment else None,
            ))
        return ranges
