"""Glob matching for the ignore-links list.

Patterns follow the usual shell-glob conventions used by editor settings:

- ``**`` spans any number of path segments, including none;
- ``*`` matches within one segment;
- ``?`` matches one non-separator character;
- ``[abc]`` / ``[!abc]`` character classes;
- ``{a,b}`` alternatives.

``fnmatch`` lets ``*`` cross ``/``, so patterns are translated to regular
expressions here instead.  Compiled patterns are cached per process.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

import structlog

logger = structlog.get_logger(__name__)


def is_match(text: str, glob: str) -> bool:
    """Return True if the whole of *text* matches *glob*."""
    return _compile(glob).fullmatch(text) is not None


def matches_any(text: str, globs: Iterable[str]) -> bool:
    return any(is_match(text, glob) for glob in globs)


@lru_cache(maxsize=512)
def _compile(glob: str) -> re.Pattern[str]:
    try:
        return re.compile(_translate(glob), re.DOTALL)
    except re.error as exc:
        logger.warning("globs.invalid_pattern", glob=glob, error=str(exc))
        return re.compile(re.escape(glob), re.DOTALL)


def _translate(glob: str) -> str:
    parts: list[str] = []
    brace_depth = 0
    i = 0
    n = len(glob)
    while i < n:
        char = glob[i]
        if char == "*":
            if glob.startswith("**", i):
                at_segment_start = i == 0 or glob[i - 1] == "/"
                end = i + 2
                if at_segment_start and end < n and glob[end] == "/":
                    parts.append("(?:.*/)?")
                    i = end + 1
                    continue
                if at_segment_start and end == n:
                    parts.append(".*")
                    i = end
                    continue
                # "a**b" behaves like a single star
                parts.append("[^/]*")
                i = end
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            # A "]" right after the opening bracket is part of the class
            first = i + 2 if glob[i + 1:i + 2] in ("!", "^") else i + 1
            close = glob.find("]", first + 1)
            if close < 0:
                parts.append(re.escape(char))
            else:
                body = glob[i + 1:close]
                negate = body[:1] in ("!", "^")
                if negate:
                    body = body[1:]
                body = "".join("\\" + c if c in "\\[]^" else c for c in body)
                parts.append(f"[{'^' if negate else ''}{body}]")
                i = close
        elif char == "{":
            brace_depth += 1
            parts.append("(?:")
        elif char == "}" and brace_depth:
            brace_depth -= 1
            parts.append(")")
        elif char == "," and brace_depth:
            parts.append("|")
        elif char == "\\" and i + 1 < n:
            i += 1
            parts.append(re.escape(glob[i]))
        else:
            parts.append(re.escape(char))
        i += 1

    if brace_depth:
        # Unbalanced braces are matched literally
        return re.escape(glob)
    return "".join(parts)
