"""Quick fix that silences a broken-link diagnostic by ignoring its link."""

from __future__ import annotations

from typing import Iterable

import structlog

from textile_ls.domain.entities import CodeAction, Diagnostic
from textile_ls.domain.ports import DiagnosticConfiguration, TextDocument
from textile_ls.domain.uri import DocumentUri

logger = structlog.get_logger(__name__)

ADD_TO_IGNORE_LINKS_COMMAND = "_textile.addToIgnoreLinks"
QUICK_FIX_KIND = "quickfix"


class AddToIgnoreLinksQuickFix:
    def __init__(self, configuration: DiagnosticConfiguration) -> None:
        self._configuration = configuration

    def provide_code_actions(
        self,
        document: TextDocument,
        diagnostics: Iterable[Diagnostic],
    ) -> list[CodeAction]:
        """One action per diagnostic that reports a missing link target."""
        return [
            CodeAction(
                title=f"Exclude '{diagnostic.link}' from link validation.",
                kind=QUICK_FIX_KIND,
                diagnostics=(diagnostic,),
                command=ADD_TO_IGNORE_LINKS_COMMAND,
                arguments=(str(document.uri), diagnostic.link),
            )
            for diagnostic in diagnostics
            if diagnostic.link is not None
        ]

    def execute(self, resource: DocumentUri, path: str) -> None:
        """Add *path* to the ignored links of *resource*'s workspace folder."""
        self._configuration.update_ignore_links(resource, [path])
        logger.info("quick_fix.link_ignored", resource=str(resource), link=path)
