"""In-memory text document.

Implements the ``TextDocument`` port.  Instances are immutable: an edit
produces a new document with a higher version.
"""

from __future__ import annotations

import bisect
import re

from textile_ls.domain.entities import Position, Range
from textile_ls.domain.uri import DocumentUri, looks_like_textile_path

_EOL_RE = re.compile(r"\r\n|\r|\n")

TEXTILE_LANGUAGE_ID = "textile"


class InMemoryDocument:
    """A text buffer with line/offset conversion."""

    def __init__(
        self,
        uri: DocumentUri,
        text: str,
        version: int = 1,
        language_id: str | None = None,
    ) -> None:
        self._uri = uri
        self._text = text
        self._version = version
        if language_id is None:
            language_id = TEXTILE_LANGUAGE_ID if looks_like_textile_path(uri) else "plaintext"
        self._language_id = language_id

        # (start offset, end offset excluding the line break) per line
        self._line_starts: list[int] = [0]
        self._line_ends: list[int] = []
        for match in _EOL_RE.finditer(text):
            self._line_ends.append(match.start())
            self._line_starts.append(match.end())
        self._line_ends.append(len(text))

    def __repr__(self) -> str:
        return f"InMemoryDocument({str(self._uri)!r}, version={self._version})"

    @property
    def uri(self) -> DocumentUri:
        return self._uri

    @property
    def version(self) -> int:
        return self._version

    @property
    def language_id(self) -> str:
        return self._language_id

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def with_text(self, text: str) -> InMemoryDocument:
        return InMemoryDocument(self._uri, text, self._version + 1, self._language_id)

    def get_text(self, range: Range | None = None) -> str:
        if range is None:
            return self._text
        return self._text[self.offset_at(range.start):self.offset_at(range.end)]

    def line_at(self, line: int) -> str:
        line = max(0, min(line, self.line_count - 1))
        return self._text[self._line_starts[line]:self._line_ends[line]]

    def position_at(self, offset: int) -> Position:
        offset = max(0, min(offset, len(self._text)))
        line = bisect.bisect_right(self._line_starts, offset) - 1
        character = min(offset, self._line_ends[line]) - self._line_starts[line]
        return Position(line=line, character=character)

    def offset_at(self, position: Position) -> int:
        if position.line < 0:
            return 0
        if position.line >= self.line_count:
            return len(self._text)
        start = self._line_starts[position.line]
        end = self._line_ends[position.line]
        return max(start, min(start + position.character, end))
