"""Tests for the textile-ls command line."""

import json

import pytest
from click.testing import CliRunner

from textile_ls.api.cli import cli

INDEX = "\n".join([
    "h1. Index",
    "",
    '"a":/docs/a.textile',
    '"b":/missing.textile',
    '"c":#nope',
])


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "index.textile").write_text(INDEX, encoding="utf-8")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "a.textile").write_text("h1. A\n\nh2. Details", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("not textile", encoding="utf-8")
    return tmp_path


def _invoke(*args):
    return CliRunner().invoke(cli, ["--log-level", "warning", *args])


class TestCheck:
    def test_reports_problems_and_fails(self, tree):
        result = _invoke("check", str(tree), "--file-links", "error", "--header-links", "warning")

        assert result.exit_code == 1
        lines = result.stdout.strip().splitlines()
        assert lines[0].startswith("index.textile:4:5: error: File does not exist at path: ")
        assert lines[0].endswith("missing.textile")
        assert lines[1] == "index.textile:5:5: warning: No header found: 'nope'"
        assert lines[-1] == "2 problem(s) in 2 document(s)"

    def test_warnings_pass_default_threshold(self, tree):
        result = _invoke("check", str(tree), "--file-links", "warning", "--header-links", "warning")

        assert result.exit_code == 0
        assert "2 problem(s) in 2 document(s)" in result.stdout

    def test_fail_on_warning(self, tree):
        result = _invoke("check", str(tree), "--header-links", "warning", "--fail-on", "warning")

        assert result.exit_code == 1
        assert "1 problem(s) in 2 document(s)" in result.stdout

    def test_ignored_checks_report_nothing(self, tree):
        result = _invoke("check", str(tree))

        assert result.exit_code == 0
        assert result.stdout.strip() == "0 problem(s) in 2 document(s)"

    def test_json_format(self, tree):
        result = _invoke(
            "check", str(tree), "--format", "json", "--file-links", "error", "--header-links", "error",
        )

        assert result.exit_code == 1
        [entry] = json.loads(result.stdout)
        assert entry["uri"].endswith("/index.textile")
        assert [d["code"] for d in entry["diagnostics"]] == [
            "link.no-such-file",
            "link.no-such-header-in-own-file",
        ]

    def test_missing_root(self, tmp_path):
        result = _invoke("check", str(tmp_path / "nowhere"))
        assert result.exit_code == 2


class TestDocumentCommands:
    def test_links(self, tree):
        result = _invoke("links", str(tree / "index.textile"))

        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("3:5")
        assert "/docs/a.textile" in lines[0]

    def test_links_json(self, tree):
        result = _invoke("links", str(tree / "index.textile"), "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [link["source"]["href_text"] for link in data] == [
            "/docs/a.textile",
            "/missing.textile",
            "#nope",
        ]

    def test_toc(self, tree):
        result = _invoke("toc", str(tree / "docs" / "a.textile"))

        assert result.exit_code == 0
        assert result.stdout.splitlines() == [
            "A  #a  (line 1)",
            "  Details  #details  (line 3)",
        ]

    def test_folding(self, tree):
        result = _invoke("folding", str(tree / "index.textile"))

        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["1-5"]

    def test_not_a_textile_document(self, tree):
        result = _invoke("toc", str(tree / "notes.txt"))

        assert result.exit_code == 1
        assert "Error: Not a readable Textile document" in result.output


class TestWorkspaceCommands:
    def test_symbols(self, tree):
        result = _invoke("symbols", str(tree))

        assert result.exit_code == 0
        assert result.stdout.splitlines() == [
            "docs/a.textile:1  h1. A",
            "docs/a.textile:3  h2. Details",
            "index.textile:1  h1. Index",
        ]

    def test_symbols_query(self, tree):
        result = _invoke("symbols", str(tree), "detail")

        assert result.stdout.splitlines() == ["docs/a.textile:3  h2. Details"]

    def test_ignore_link_persists_and_silences_check(self, tree):
        result = _invoke("ignore-link", str(tree), "/missing.textile")

        assert result.exit_code == 0
        assert "Ignoring links matching: /missing.textile" in result.stdout
        saved = json.loads((tree / ".textile-ls.json").read_text(encoding="utf-8"))
        assert saved == {"validate_ignore_links": ["/missing.textile"]}

        check = _invoke("check", str(tree), "--file-links", "error")
        assert check.exit_code == 0
        assert "0 problem(s)" in check.stdout


class TestNavigation:
    def test_references_to_heading(self, tree):
        result = _invoke("references", str(tree / "docs" / "a.textile"), "3", "1", "--root", str(tree))

        assert result.exit_code == 0
        assert result.stdout.strip().splitlines() == ["docs/a.textile:3:1"]

    def test_references_to_file_link(self, tree):
        result = _invoke("references", str(tree / "index.textile"), "3", "6", "--root", str(tree))

        assert result.exit_code == 0
        assert result.stdout.strip().splitlines() == ["index.textile:3:5"]

    def test_definition(self, tree):
        (tree / "refs.textile").write_text('"x":ref\n\n[ref]/docs/a.textile', encoding="utf-8")

        result = _invoke("definition", str(tree / "refs.textile"), "1", "6")

        assert result.exit_code == 0
        assert result.stdout.strip() == "refs.textile:3:6"

    def test_no_definition(self, tree):
        result = _invoke("definition", str(tree / "index.textile"), "1", "1")

        assert result.exit_code == 1
        assert "Error: No link definition at this position" in result.output

    def test_file_references(self, tree):
        result = _invoke("file-references", str(tree / "docs" / "a.textile"), "--root", str(tree))

        assert result.exit_code == 0
        assert result.stdout.strip().splitlines() == ["index.textile:3:5  /docs/a.textile"]

    def test_complete(self, tree):
        (tree / "draft.textile").write_text('"x":/docs/', encoding="utf-8")

        result = _invoke("complete", str(tree / "draft.textile"), "1", "11")

        assert result.exit_code == 0
        [line] = result.stdout.strip().splitlines()
        assert line.split() == ["file", "a.textile"]
