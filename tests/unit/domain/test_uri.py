"""Tests for textile_ls.domain.uri."""

from pathlib import PurePosixPath

from textile_ls.domain.uri import DocumentUri, Schemes, looks_like_textile_path


class TestDocumentUriConstruction:
    def test_file_from_string(self):
        uri = DocumentUri.file("/a/b/../c.textile")
        assert uri.scheme == Schemes.FILE
        assert uri.path == "/a/c.textile"

    def test_file_from_pure_path(self):
        uri = DocumentUri.file(PurePosixPath("/a/b.textile"))
        assert uri.path == "/a/b.textile"

    def test_relative_file_path_is_rooted(self):
        assert DocumentUri.file("a/b.textile").path == "/a/b.textile"

    def test_untitled(self):
        uri = DocumentUri.untitled("Untitled-1")
        assert uri.scheme == Schemes.UNTITLED
        assert str(uri) == "untitled:Untitled-1"


class TestDocumentUriParse:
    def test_parse_file_uri(self):
        uri = DocumentUri.parse("file:///workspace/doc.textile#intro")
        assert uri == DocumentUri("file", "/workspace/doc.textile", "intro")

    def test_parse_decodes_percent_escapes(self):
        uri = DocumentUri.parse("file:///workspace/my%20doc.textile")
        assert uri.path == "/workspace/my doc.textile"

    def test_parse_bare_path(self):
        assert DocumentUri.parse("/workspace/doc.textile") == DocumentUri.file("/workspace/doc.textile")

    def test_parse_other_scheme(self):
        uri = DocumentUri.parse("untitled:Untitled-1")
        assert uri.scheme == "untitled"
        assert uri.path == "Untitled-1"

    def test_str_round_trip(self):
        uri = DocumentUri("file", "/workspace/my doc.textile", "a b")
        assert str(uri) == "file:///workspace/my%20doc.textile#a%20b"
        assert DocumentUri.parse(str(uri)) == uri


class TestDocumentUriPaths:
    def test_join_path_normalises(self):
        base = DocumentUri.file("/workspace/docs")
        assert base.join_path("../other.textile").path == "/workspace/other.textile"

    def test_join_path_ignores_leading_slash(self):
        base = DocumentUri.file("/workspace")
        assert base.join_path("/a/b.textile").path == "/workspace/a/b.textile"

    def test_join_path_drops_fragment(self):
        base = DocumentUri("file", "/workspace", "frag")
        assert base.join_path("a").fragment == ""

    def test_dirname(self):
        assert DocumentUri.file("/workspace/doc.textile").dirname().path == "/workspace"

    def test_name_and_suffix(self):
        uri = DocumentUri.file("/workspace/doc.textile")
        assert uri.name == "doc.textile"
        assert uri.suffix == ".textile"

    def test_is_relative_to(self):
        root = DocumentUri.file("/workspace")
        assert DocumentUri.file("/workspace/a.textile").is_relative_to(root)
        assert root.is_relative_to(root)
        assert not DocumentUri.file("/workspace2/a.textile").is_relative_to(root)
        assert not DocumentUri.untitled("/workspace/a").is_relative_to(root)

    def test_hashable(self):
        uris = {DocumentUri.file("/a.textile"), DocumentUri.file("/a.textile")}
        assert len(uris) == 1


class TestLooksLikeTextilePath:
    def test_textile_suffix(self):
        assert looks_like_textile_path(DocumentUri.file("/a/b.textile"))
        assert looks_like_textile_path(DocumentUri.file("/a/B.TEXTILE"))

    def test_other_suffix(self):
        assert not looks_like_textile_path(DocumentUri.file("/a/b.md"))
        assert not looks_like_textile_path(DocumentUri.file("/a/b"))
