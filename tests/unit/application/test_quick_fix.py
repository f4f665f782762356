"""Tests for textile_ls.application.quick_fix."""

from textile_ls.application.quick_fix import (
    ADD_TO_IGNORE_LINKS_COMMAND,
    QUICK_FIX_KIND,
    AddToIgnoreLinksQuickFix,
)
from textile_ls.domain.entities import Diagnostic, DiagnosticOptions, Range
from textile_ls.domain.enums import DiagnosticSeverity
from textile_ls.domain.events import ConfigurationChanged
from textile_ls.infrastructure.config.diagnostic_configuration import MemoryDiagnosticConfiguration


def _diagnostic(link=None):
    return Diagnostic(
        range=Range.of(0, 0, 0, 5),
        message="problem",
        severity=DiagnosticSeverity.WARNING,
        link=link,
    )


class TestAddToIgnoreLinksQuickFix:
    def test_one_action_per_link_diagnostic(self, make_document):
        doc = make_document("a.textile", "")
        broken = _diagnostic(link="/missing.textile")
        quick_fix = AddToIgnoreLinksQuickFix(MemoryDiagnosticConfiguration(DiagnosticOptions()))

        [action] = quick_fix.provide_code_actions(doc, [broken, _diagnostic()])

        assert action.title == "Exclude '/missing.textile' from link validation."
        assert action.kind == QUICK_FIX_KIND
        assert action.command == ADD_TO_IGNORE_LINKS_COMMAND
        assert action.arguments == (str(doc.uri), "/missing.textile")
        assert action.diagnostics == (broken,)

    def test_no_diagnostics(self, make_document):
        quick_fix = AddToIgnoreLinksQuickFix(MemoryDiagnosticConfiguration(DiagnosticOptions()))
        assert quick_fix.provide_code_actions(make_document("a.textile", ""), []) == []

    def test_execute_updates_configuration(self, bus, make_document):
        received = []
        bus.subscribe(ConfigurationChanged, received.append)
        configuration = MemoryDiagnosticConfiguration(DiagnosticOptions(), bus)
        doc = make_document("a.textile", "")

        AddToIgnoreLinksQuickFix(configuration).execute(doc.uri, "/missing.textile")

        assert configuration.get_options(doc.uri).ignore_links == ("/missing.textile",)
        assert len(received) == 1
