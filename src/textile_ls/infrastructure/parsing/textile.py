"""Block-level Textile tokenizer.

Produces the block structure the language features need (headings,
paragraphs, quotes, code and pre blocks, comments, lists, tables and raw
HTML blocks) with their source lines.  Inline markup is kept as text.

Blocks start after a blank line (or at the top of the document).  List
lines, HTML comments and HTML block tags also interrupt a running
paragraph.  Extended blocks (``bc..``) run across blank lines until the
next block signature.  A leading YAML front-matter block is skipped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from textile_ls.domain.ports import TextDocument
from textile_ls.domain.uri import DocumentUri
from textile_ls.infrastructure.parsing.tokens import Token

logger = structlog.get_logger(__name__)

_EOL_RE = re.compile(r"\r\n|\r|\n")

# Attribute modifiers: (class#id) {style} [lang] and alignment/padding
BLOCK_ATTRIBUTES = r"(?:\([^)\n]*\)|\{[^}\n]*\}|\[[^\]\n]*\]|<>|<|>|=|\(+|\)+)*"

_BLOCK_RE = re.compile(
    r"^(?P<sig>h[1-6]|p|bq|bc|pre|notextile|###|fn\d+)"
    rf"(?P<attrs>{BLOCK_ATTRIBUTES})"
    r"(?P<ext>\.\.?)(?:\s+|$)(?P<rest>.*)$"
)
_LIST_RE = re.compile(rf"^(?P<marker>[*#]+)(?:{BLOCK_ATTRIBUTES})\s+(?P<rest>.*)$")
_TABLE_RE = re.compile(r"^\s*(?:table" + BLOCK_ATTRIBUTES + r"\.\s*$|\|)")
_COMMENT_OPEN_RE = re.compile(r"^\s*<!--")
_HTML_BLOCK_RE = re.compile(r"^\s*<(?P<tag>pre|code|div|blockquote|notextile)(?:\s[^>]*)?>", re.IGNORECASE)
_FRONT_MATTER_FENCE = "---"

_SIGNATURE_TAGS = {
    "p": "p",
    "bq": "blockquote",
    "bc": "pre",
    "pre": "pre",
    "notextile": "notextile",
    "###": "!",
}


def split_lines(text: str) -> list[str]:
    return _EOL_RE.split(text)


def _is_blank(line: str) -> bool:
    return not line.strip()


def _interrupts_paragraph(line: str) -> bool:
    return bool(
        _LIST_RE.match(line)
        or _COMMENT_OPEN_RE.match(line)
        or _HTML_BLOCK_RE.match(line)
    )


def _front_matter_end(lines: list[str]) -> int:
    """Return the index of the first line after a front-matter block, or 0."""
    if not lines or lines[0].rstrip() != _FRONT_MATTER_FENCE:
        return 0
    for index in range(1, len(lines)):
        if lines[index].rstrip() in (_FRONT_MATTER_FENCE, "..."):
            return index + 1
    return 0


class _BlockScanner:
    def __init__(self, lines: list[str]) -> None:
        self.lines = lines
        self.tokens: list[Token] = []

    def run(self, start: int) -> list[Token]:
        index = start
        while index < len(self.lines):
            line = self.lines[index]
            if _is_blank(line):
                index += 1
                continue
            index = self._block(index)
        return self.tokens

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _block(self, index: int) -> int:
        line = self.lines[index]
        if _COMMENT_OPEN_RE.match(line):
            return self._html_comment(index)
        html = _HTML_BLOCK_RE.match(line)
        if html:
            return self._html_block(index, html.group("tag").lower())
        signature = _BLOCK_RE.match(line)
        if signature:
            return self._signature_block(index, signature)
        if _LIST_RE.match(line):
            return self._list(index)
        if _TABLE_RE.match(line):
            return self._table(index)
        return self._paragraph(index)

    def _last_content_line(self, start: int, stop: int) -> int:
        """Last non-blank line in ``[start, stop)``."""
        end = stop - 1
        while end > start and _is_blank(self.lines[end]):
            end -= 1
        return end

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _paragraph(self, index: int) -> int:
        stop = index + 1
        while (
            stop < len(self.lines)
            and not _is_blank(self.lines[stop])
            and not _interrupts_paragraph(self.lines[stop])
        ):
            stop += 1
        text = "\n".join(self.lines[index:stop])
        self.tokens.append(Token.block("p", index, stop - 1, [Token.leaf(text)]))
        return stop

    def _signature_block(self, index: int, match: re.Match[str]) -> int:
        signature = match.group("sig")
        extended = match.group("ext") == ".."
        first_line = match.group("rest")

        stop = index + 1
        if extended:
            while stop < len(self.lines):
                if (
                    _is_blank(self.lines[stop])
                    and stop + 1 < len(self.lines)
                    and _BLOCK_RE.match(self.lines[stop + 1])
                ):
                    break
                stop += 1
        else:
            while stop < len(self.lines) and not _is_blank(self.lines[stop]):
                stop += 1

        end = self._last_content_line(index, stop)
        content = "\n".join([first_line, *self.lines[index + 1:end + 1]])
        self.tokens.append(self._make_signature_token(signature, index, end, content))
        return stop

    @staticmethod
    def _make_signature_token(signature: str, start: int, end: int, content: str) -> Token:
        if signature[0] == "h":
            return Token.block(signature, start, end, [Token.leaf(content)])
        if signature.startswith("fn"):
            return Token.block("p", start, end, [Token.leaf(content)], id=signature, **{"class": "footnote"})

        tag = _SIGNATURE_TAGS[signature]
        if signature == "bq":
            return Token.block(tag, start, end, [Token(tag="p", children=(Token.leaf(content),))])
        if signature == "bc":
            return Token.block(tag, start, end, [Token(tag="code", children=(Token.leaf(content),))])
        return Token.block(tag, start, end, [Token.leaf(content)])

    def _html_comment(self, index: int) -> int:
        line = self.lines[index]
        opening = line.index("<!--") + 4
        stop = index
        chunks: list[str] = []
        remainder = line[opening:]
        while True:
            close = remainder.find("-->")
            if close >= 0:
                chunks.append(remainder[:close])
                break
            chunks.append(remainder)
            stop += 1
            if stop >= len(self.lines):
                stop -= 1
                break
            remainder = self.lines[stop]
        self.tokens.append(Token.block("!", index, stop, [Token.leaf("\n".join(chunks))]))
        return stop + 1

    def _html_block(self, index: int, tag: str) -> int:
        closing = re.compile(rf"</{tag}\s*>", re.IGNORECASE)
        stop = index
        while stop < len(self.lines) and not closing.search(self.lines[stop]):
            stop += 1
        if stop >= len(self.lines):
            stop = self._last_content_line(index, len(self.lines))
        text = "\n".join(self.lines[index:stop + 1])
        self.tokens.append(Token.block(tag, index, stop, [Token.leaf(text)]))
        return stop + 1

    def _table(self, index: int) -> int:
        stop = index
        rows: list[Token] = []
        while stop < len(self.lines) and not _is_blank(self.lines[stop]):
            line = self.lines[stop]
            if line.lstrip().startswith("|"):
                rows.append(Token.block("tr", stop, stop, [Token.leaf(line)]))
            stop += 1
        self.tokens.append(Token.block("table", index, stop - 1, rows))
        return stop

    def _list(self, index: int) -> int:
        stop = index
        while stop < len(self.lines) and not _is_blank(self.lines[stop]):
            stop += 1
        self.tokens.append(_ListBuilder(self.lines, index, stop).build())
        return stop


@dataclass
class _ListItem:
    depth: int
    ordered: bool
    line: int
    text: list[str]


class _ListBuilder:
    """Nests ``*``/``#`` items by marker depth.

    List items only know their first line; how far an item extends is up to
    whoever consumes the tree.
    """

    def __init__(self, lines: list[str], start: int, stop: int) -> None:
        self.lines = lines
        self.start = start
        self.stop = stop

    def build(self) -> Token:
        items: list[_ListItem] = []
        for index in range(self.start, self.stop):
            match = _LIST_RE.match(self.lines[index])
            if match:
                marker = match.group("marker")
                items.append(_ListItem(len(marker), marker.endswith("#"), index, [match.group("rest")]))
            elif items:
                items[-1].text.append(self.lines[index].strip())
        token, _ = self._build_level(items, 0, items[0].depth)
        return token

    def _build_level(self, items: list[_ListItem], position: int, depth: int) -> tuple[Token, int]:
        first = items[position]
        children: list[Token] = []
        while position < len(items) and items[position].depth >= depth:
            item = items[position]
            if item.depth > depth and children:
                nested, position = self._build_level(items, position, item.depth)
                last = children[-1]
                children[-1] = Token(tag=last.tag, attributes=last.attributes, children=(*last.children, nested))
                continue
            children.append(Token(
                tag="li",
                attributes={"data-line": str(item.line)},
                children=(Token.leaf("\n".join(item.text)),),
            ))
            position += 1

        end = items[position - 1].line
        while end + 1 < self.stop and not _LIST_RE.match(self.lines[end + 1]):
            end += 1
        tag = "ol" if first.ordered else "ul"
        return Token.block(tag, first.line, end, children), position


def tokenize_text(text: str) -> list[Token]:
    """Tokenize Textile source text into block tokens."""
    lines = split_lines(text)
    return _BlockScanner(lines).run(_front_matter_end(lines))


class TextileTokenizer:
    """Tokenizer with a per-document cache keyed by version and text.

    Editor buffers and disk copies of one resource may share a version
    number, so a cached entry is reused only when the text matches too.

    Implements the ``TextileParser`` port.
    """

    def __init__(self) -> None:
        self._cache: dict[DocumentUri, tuple[int, str, list[Token]]] = {}

    def tokenize(self, document: TextDocument) -> list[Token]:
        text = document.get_text()
        cached = self._cache.get(document.uri)
        if cached is not None and cached[0] == document.version and cached[1] == text:
            return cached[2]

        tokens = tokenize_text(text)
        self._cache[document.uri] = (document.version, text, tokens)
        logger.debug("tokenizer.tokenized", resource=str(document.uri), blocks=len(tokens))
        return tokens

    def clean_cache(self) -> None:
        self._cache.clear()
