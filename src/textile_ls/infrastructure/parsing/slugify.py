"""Heading slugs used as link fragments.

GitHub-style: the heading is trimmed and lower-cased, whitespace runs
become ``-``, known punctuation (ASCII and CJK) is removed, leading and
trailing hyphens are dropped, and the result is percent-encoded the way a
browser encodes a URI.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(
    r"[\]\[!'#$%&()*+,./:;<=>?@\\^_{|}~`"
    r"。，、；：？！…—·ˉ¨‘’“”々～‖∶＂＇｀｜〃〔〕〈〉《》「」『』．〖〗【】（）［］｛｝]"
)
_LEADING_HYPHENS_RE = re.compile(r"^-+")
_TRAILING_HYPHENS_RE = re.compile(r"-+$")

# Characters a browser leaves untouched when encoding a whole URI
_URI_SAFE = ";,/?:@&=+$!*'()#"


@dataclass(frozen=True)
class Slug:
    value: str

    def __str__(self) -> str:
        return self.value


def slugify(heading: str) -> Slug:
    text = heading.strip().lower()
    text = _WHITESPACE_RE.sub("-", text)
    text = _PUNCTUATION_RE.sub("", text)
    text = _LEADING_HYPHENS_RE.sub("", text)
    text = _TRAILING_HYPHENS_RE.sub("", text)
    return Slug(quote(text, safe=_URI_SAFE))
