"""Table of contents of a Textile document.

Headings come from ``h1``..``h6`` block tokens; their text is read back
from the source line with the block signature stripped::

    h2(#intro). Getting started   ->   "Getting started", slug "getting-started"

A heading's section runs from its line to the line before the next
heading of the same or a higher level, or to the end of the document.
"""

from __future__ import annotations

import re
from typing import Sequence

from textile_ls.application.cache import DocumentInfoCache
from textile_ls.domain.entities import Location, Position, Range, TocEntry
from textile_ls.domain.ports import TextDocument, TextileParser, TextileWorkspace
from textile_ls.domain.uri import DocumentUri
from textile_ls.infrastructure.parsing.slugify import slugify
from textile_ls.infrastructure.parsing.textile import BLOCK_ATTRIBUTES
from textile_ls.infrastructure.parsing.tokens import collect

_HEADER_TAG_RE = re.compile(r"^h([1-6])$")
_HEADER_PREFIX_RE = re.compile(rf"^\s*h[1-6]{BLOCK_ATTRIBUTES}\.\s*")


def header_level(tag: str) -> int:
    """Heading level of *tag*; 7 for anything that is not a heading."""
    match = _HEADER_TAG_RE.match(tag)
    return int(match.group(1)) if match else 7


def header_text(line: str) -> str:
    prefix = _HEADER_PREFIX_RE.match(line)
    return line[prefix.end() if prefix else 0:].strip()


class TableOfContents:
    """Ordered heading entries of one document."""

    def __init__(self, entries: Sequence[TocEntry]) -> None:
        self.entries: tuple[TocEntry, ...] = tuple(entries)

    @classmethod
    def create(cls, parser: TextileParser, document: TextDocument) -> TableOfContents:
        return cls(cls._build(parser, document))

    @staticmethod
    def _build(parser: TextileParser, document: TextDocument) -> list[TocEntry]:
        tokens = parser.tokenize(document)
        headings = collect(tokens, lambda token: header_level(token.tag) < 7 and token.line is not None)

        slug_counts: dict[str, int] = {}
        entries: list[TocEntry] = []
        for token in headings:
            line_number = token.line
            if line_number is None:
                continue
            line = document.line_at(line_number)
            text = header_text(line)

            slug = slugify(text)
            if slug.value in slug_counts:
                slug_counts[slug.value] += 1
                slug = slugify(f"{slug.value}-{slug_counts[slug.value]}")
            else:
                slug_counts[slug.value] = 0

            prefix = _HEADER_PREFIX_RE.match(line)
            header_range = Range.of(line_number, 0, line_number, len(line))
            entries.append(TocEntry(
                slug=slug.value,
                text=text,
                level=header_level(token.tag),
                line=line_number,
                section_location=Location(uri=document.uri, range=header_range),
                header_location=Location(uri=document.uri, range=header_range),
                header_text_location=Location(
                    uri=document.uri,
                    range=Range.of(line_number, prefix.end() if prefix else 0, line_number, len(line)),
                ),
            ))

        # Widen each section to the line before the next heading of level <= its own
        sections: list[TocEntry] = []
        for index, entry in enumerate(entries):
            end_line = document.line_count - 1
            for following in entries[index + 1:]:
                if following.level <= entry.level:
                    end_line = following.line - 1
                    break
            section = Range(
                start=entry.header_location.range.start,
                end=Position(line=end_line, character=len(document.line_at(end_line))),
            )
            sections.append(entry.model_copy(update={
                "section_location": Location(uri=document.uri, range=section),
            }))
        return sections

    def lookup(self, fragment: str) -> TocEntry | None:
        slug = slugify(fragment).value
        for entry in self.entries:
            if entry.slug == slug:
                return entry
        return None


class TableOfContentsProvider:
    """Tables of contents, cached per document version."""

    def __init__(self, parser: TextileParser, workspace: TextileWorkspace) -> None:
        self._parser = parser
        self._cache: DocumentInfoCache[TableOfContents] = DocumentInfoCache(workspace, self._compute)

    async def _compute(self, document: TextDocument) -> TableOfContents:
        return TableOfContents.create(self._parser, document)

    async def get(self, resource: DocumentUri) -> TableOfContents:
        toc = await self._cache.get(resource)
        return toc if toc is not None else TableOfContents(())

    async def get_for_document(self, document: TextDocument) -> TableOfContents:
        return await self._cache.get_for_document(document)

    def dispose(self) -> None:
        self._cache.dispose()
