"""Resource identity for documents and link targets.

A :class:`DocumentUri` is a small immutable ``(scheme, path, fragment)``
triple.  It is hashable so it can key caches, in-flight request tables and
watch tables directly.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, replace
from pathlib import PurePath
from urllib.parse import quote, unquote


class Schemes:
    """URI schemes the engine knows about."""

    FILE = "file"
    UNTITLED = "untitled"
    HTTP = "http"
    HTTPS = "https"
    MAILTO = "mailto"
    DATA = "data"
    FTP = "ftp"
    VSCODE = "vscode"
    VSCODE_INSIDERS = "vscode-insiders"


# Deep-link schemes of the editor host (stable and pre-release channels).
EDITOR_SCHEMES: tuple[str, ...] = (Schemes.VSCODE, Schemes.VSCODE_INSIDERS)

TEXTILE_FILE_EXTENSIONS: tuple[str, ...] = (".textile",)

_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")


@dataclass(frozen=True, order=True)
class DocumentUri:
    """An immutable resource identifier."""

    scheme: str
    path: str
    fragment: str = ""

    @classmethod
    def file(cls, path: str | PurePath) -> DocumentUri:
        """Build a ``file`` URI from a filesystem path."""
        text = PurePath(path).as_posix() if isinstance(path, PurePath) else path.replace("\\", "/")
        if not text.startswith("/"):
            text = "/" + text
        return cls(Schemes.FILE, posixpath.normpath(text))

    @classmethod
    def untitled(cls, name: str) -> DocumentUri:
        return cls(Schemes.UNTITLED, name)

    @classmethod
    def parse(cls, value: str) -> DocumentUri:
        """Parse ``scheme:path#fragment``.  Bare paths are treated as files."""
        match = _SCHEME_RE.match(value)
        if match is None or len(match.group(1)) == 1:
            # No scheme, or a Windows drive letter
            rest, _, fragment = value.partition("#")
            uri = cls.file(unquote(rest))
            return uri.with_fragment(unquote(fragment))

        scheme = match.group(1).lower()
        rest = value[match.end():]
        rest, _, fragment = rest.partition("#")
        if rest.startswith("//"):
            # Drop the authority component; only local resources are modelled
            authority_end = rest.find("/", 2)
            rest = rest[authority_end:] if authority_end >= 0 else "/"
        return cls(scheme, unquote(rest), unquote(fragment))

    def __str__(self) -> str:
        if self.scheme == Schemes.FILE:
            text = "file://" + quote(self.path)
        else:
            text = f"{self.scheme}:{quote(self.path, safe='/:@')}"
        if self.fragment:
            text += "#" + quote(self.fragment, safe="")
        return text

    # ------------------------------------------------------------------
    # Derived URIs
    # ------------------------------------------------------------------

    def with_fragment(self, fragment: str) -> DocumentUri:
        return replace(self, fragment=fragment)

    def with_path(self, path: str) -> DocumentUri:
        return replace(self, path=path)

    def with_scheme(self, scheme: str) -> DocumentUri:
        return replace(self, scheme=scheme)

    def join_path(self, *parts: str) -> DocumentUri:
        """Append *parts* to the path and normalise ``.``/``..`` segments.

        Leading slashes on *parts* do not reset the path: ``join_path("/a")``
        on ``/root`` yields ``/root/a``.
        """
        segments = [self.path or "/", *(part.lstrip("/") for part in parts)]
        joined = posixpath.normpath(posixpath.join(*segments))
        if joined.startswith("//"):
            joined = "/" + joined.lstrip("/")
        return replace(self, path=joined, fragment="")

    def dirname(self) -> DocumentUri:
        return replace(self, path=posixpath.dirname(self.path), fragment="")

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def suffix(self) -> str:
        return posixpath.splitext(self.name)[1]

    @property
    def fs_path(self) -> str:
        return self.path

    def is_relative_to(self, other: DocumentUri) -> bool:
        """Return True if this URI lives at or below *other*."""
        if self.scheme != other.scheme:
            return False
        base = other.path.rstrip("/")
        return self.path == base or self.path.startswith(base + "/")


def looks_like_textile_path(uri: DocumentUri) -> bool:
    return uri.suffix.lower() in TEXTILE_FILE_EXTENSIONS
