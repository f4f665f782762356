"""Typed token tree produced by the Textile tokenizer.

A :class:`Token` is either a text leaf or a tagged container with string
attributes and children.  Block containers carry their first and last
source line in the ``data-line`` / ``data-line-end`` attributes.

Tree rewrites go through :func:`walk` with a :class:`Visitor`; the input
tree is never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Protocol, Union

from textile_ls.domain.enums import TokenKind
from textile_ls.domain.exceptions import TokenizeError

LINE_ATTRIBUTE = "data-line"
END_LINE_ATTRIBUTE = "data-line-end"


@dataclass(frozen=True)
class Token:
    tag: str = ""
    kind: TokenKind = TokenKind.CONTAINER
    attributes: dict[str, str] = field(default_factory=dict)
    children: tuple[Token, ...] = ()
    text: str = ""

    @classmethod
    def leaf(cls, text: str) -> Token:
        return cls(kind=TokenKind.LEAF, text=text)

    @classmethod
    def block(
        cls,
        tag: str,
        start_line: int,
        end_line: int,
        children: Iterable[Token] = (),
        **attributes: str,
    ) -> Token:
        attrs = {LINE_ATTRIBUTE: str(start_line), END_LINE_ATTRIBUTE: str(end_line)}
        attrs.update(attributes)
        return cls(tag=tag, attributes=attrs, children=tuple(children))

    @property
    def is_leaf(self) -> bool:
        return self.kind is TokenKind.LEAF

    @property
    def line(self) -> int | None:
        return _int_attribute(self.attributes.get(LINE_ATTRIBUTE))

    @property
    def end_line(self) -> int | None:
        return _int_attribute(self.attributes.get(END_LINE_ATTRIBUTE))

    def text_content(self) -> str:
        if self.is_leaf:
            return self.text
        return "".join(child.text_content() for child in self.children)


def _int_attribute(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Visitor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Keep:
    """Keep the token as is and do not descend into it."""


@dataclass(frozen=True)
class Recurse:
    """Keep the token and visit its children."""


@dataclass(frozen=True)
class Replace:
    """Substitute the token (and do not descend into the replacement)."""

    token: Token


VisitAction = Union[Keep, Recurse, Replace]

KEEP = Keep()
RECURSE = Recurse()


class Visitor(Protocol):
    def visit(self, token: Token, depth: int) -> VisitAction: ...


def walk(tokens: Iterable[Token], visitor: Visitor, depth: int = 0) -> list[Token]:
    """Return a new token list rewritten by *visitor*."""
    result: list[Token] = []
    for token in tokens:
        action = visitor.visit(token, depth)
        if isinstance(action, Replace):
            result.append(action.token)
        elif isinstance(action, Recurse) and token.children:
            result.append(replace(token, children=tuple(walk(token.children, visitor, depth + 1))))
        else:
            result.append(token)
    return result


def collect(tokens: Iterable[Token], predicate: Callable[[Token], bool]) -> list[Token]:
    """Depth-first, pre-order list of every token matching *predicate*."""
    found: list[Token] = []
    stack = list(reversed(list(tokens)))
    while stack:
        token = stack.pop()
        if predicate(token):
            found.append(token)
        stack.extend(reversed(token.children))
    return found


# ---------------------------------------------------------------------------
# JsonML ingestion
# ---------------------------------------------------------------------------


def from_jsonml(node: Any) -> Token:
    """Convert a JsonML node (``[tag, {attrs}?, *children]`` or a string)."""
    if isinstance(node, str):
        return Token.leaf(node)
    if not isinstance(node, (list, tuple)) or not node or not isinstance(node[0], str):
        raise TokenizeError("Malformed JsonML node", details={"node": repr(node)[:80]})

    tag = node[0]
    rest = list(node[1:])
    attributes: dict[str, str] = {}
    if rest and isinstance(rest[0], dict):
        attributes = {str(k): str(v) for k, v in rest.pop(0).items()}
    return Token(
        tag=tag,
        attributes=attributes,
        children=tuple(from_jsonml(child) for child in rest),
    )
