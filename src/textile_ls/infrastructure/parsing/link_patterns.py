"""Raw link syntax matching for Textile text.

Handles three syntaxes:
- ``"text":href`` and ``["text":href]`` - quoted links
- ``!src(alt)!`` and ``!src!:href``     - images, optionally linked
- ``[name]href`` at the start of a line  - link definitions

Each family yields uniform :class:`RawMatch` records; resolving the href
and turning offsets into positions is the caller's job.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

# Punctuation allowed to trail a link without being part of it
_TRAILING_PUNCTUATION = r"[!-.:-@\[\\\]-`{-~]"

_QUOTED_LINK_RE = re.compile(
    r'("(?!\s)((?:[^"]|"(?![\s:])[^\n"]+"(?!:))+)":)'
    r"((?:[^\s()]|\([^\s()]+\)|[()])+?)"
    rf"(?={_TRAILING_PUNCTUATION}+(?:\Z|\s)|\Z|\s)"
    r'|(\["([^\n]+?)":)((?:\[[a-z0-9]*\]|[^\]])+)\]'
)

_IMAGE_RE = re.compile(
    r"(!(?!\s)((?:\([^)]+\)|\{[^}]+\}|\[[^\[\]]+\]|(?:<>|<|>|=)|[()]+)*(?:\.[^\n\S]|\.(?:[^./]))?)"
    r"([^!\s]+?) ?(?:\(((?:[^()]|\([^()]+\))+)\))?!)"
    rf"(?::([^\s]+?(?={_TRAILING_PUNCTUATION}(?:\Z|\s)|\s|\Z)))?"
)

_DEFINITION_RE = re.compile(
    r"^(\[([^\]]+)\])((?:https?://|[.]{0,2}/|#)\S+)(?:\s*(?=\n)|$)",
    re.MULTILINE,
)

INLINE_CODE_RE = re.compile(
    r"(?:^|[^@])(@+)(?:.+?|.*?(?:(?:\r?\n).+?)*?)(?:\r?\n)?\1(?:$|[^@])",
    re.MULTILINE,
)


@dataclass(frozen=True)
class RawMatch:
    """One href occurrence found in the text."""

    offset: int          # start of the whole match
    prefix_length: int   # distance from offset to the href
    href_text: str       # the href exactly as written
    full_text: str       # the whole match
    ref: str | None = None  # definition name, for ``[name]href``

    @property
    def href_offset(self) -> int:
        return self.offset + self.prefix_length


def extract_quoted_links(text: str) -> Iterator[RawMatch]:
    """Yield ``"text":href`` and ``["text":href]`` matches."""
    for match in _QUOTED_LINK_RE.finditer(text):
        if match.group(1) and match.group(3):
            yield RawMatch(match.start(), len(match.group(1)), match.group(3), match.group(0))
        if match.group(4) and match.group(6):
            yield RawMatch(match.start(), len(match.group(4)), match.group(6), match.group(0))


def extract_images(text: str) -> Iterator[RawMatch]:
    """Yield the source of every image, then its link target if it has one."""
    for match in _IMAGE_RE.finditer(text):
        modifiers = match.group(2) or ""
        yield RawMatch(match.start(), len(modifiers) + 1, match.group(3), match.group(0))
        if match.group(5):
            yield RawMatch(match.start(), len(match.group(1)) + 1, match.group(5), match.group(0))


def extract_link_definitions(text: str) -> Iterator[RawMatch]:
    """Yield ``[name]target`` definitions anchored at a line start."""
    for match in _DEFINITION_RE.finditer(text):
        yield RawMatch(
            match.start(),
            len(match.group(1)),
            match.group(3).strip(),
            match.group(0),
            ref=match.group(2),
        )


def extract_inline_code_spans(text: str) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` offsets of ``@code@`` spans."""
    for match in INLINE_CODE_RE.finditer(text):
        yield match.start(), match.end()
