"""textile-ls REST API (FastAPI).

Every endpoint takes a document, given by workspace-relative ``path`` or
as inline ``text`` (optionally with the ``path`` it should be treated as),
and returns the language feature for it.

Endpoints:
  POST /v1/links        document links and raw link list
  POST /v1/diagnostics  link validation results and quick fixes
  POST /v1/toc          table of contents
  POST /v1/folding      folding ranges
  POST /v1/symbols      document symbols, or workspace symbols by query
  POST /v1/references   references to the heading or link at a position
  POST /v1/definition   link definition used at a position
  POST /v1/file-references
                        links in the workspace that point at a file
  POST /v1/completions  link target suggestions at a position
  GET  /v1/health       liveness and workspace root
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field, model_validator

from textile_ls import __version__
from textile_ls.container import Container
from textile_ls.domain.entities import (
    CodeAction,
    CompletionItem,
    Diagnostic,
    DocumentLink,
    DocumentSymbol,
    FoldingRange,
    Location,
    Position,
    SymbolInformation,
    TocEntry,
)
from textile_ls.domain.exceptions import TextileLSError
from textile_ls.domain.ports import TextDocument
from textile_ls.domain.uri import DocumentUri

# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

app = FastAPI(
    title="textile-ls API",
    version=__version__,
    description="Link validation and navigation for Textile documents.",
)


def _get_container() -> Container:
    """Dependency injection: resolve the global container.

    Override ``app.dependency_overrides[_get_container]`` in tests.
    """
    if not hasattr(app.state, "container"):
        raise HTTPException(503, "Workspace not loaded. Start server with --root.")
    return app.state.container


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class DocumentRequest(BaseModel):
    path: str | None = None
    text: str | None = None

    @model_validator(mode="after")
    def _path_or_text(self) -> DocumentRequest:
        if self.path is None and self.text is None:
            raise ValueError("Either 'path' or 'text' is required")
        return self


class PositionRequest(DocumentRequest):
    """A document plus a zero-based position in it."""

    line: int = Field(ge=0)
    character: int = Field(ge=0)


class ReferencesRequest(PositionRequest):
    include_declaration: bool = True


class FileReferencesRequest(BaseModel):
    path: str


class SymbolsRequest(BaseModel):
    path: str | None = None
    text: str | None = None
    query: str | None = None


class LinksResponse(BaseModel):
    uri: str
    document_links: list[DocumentLink]
    links: list[dict[str, Any]]


class DiagnosticsResponse(BaseModel):
    uri: str
    diagnostics: list[Diagnostic]
    code_actions: list[CodeAction]
    total_diagnostics: int


class TocResponse(BaseModel):
    uri: str
    entries: list[TocEntry]


class FoldingResponse(BaseModel):
    uri: str
    ranges: list[FoldingRange]


class SymbolsResponse(BaseModel):
    document_symbols: list[DocumentSymbol] = Field(default_factory=list)
    workspace_symbols: list[SymbolInformation] = Field(default_factory=list)


class LocationsResponse(BaseModel):
    uri: str
    locations: list[Location]


class DefinitionResponse(BaseModel):
    uri: str
    definition: Location | None = None


class CompletionResponse(BaseModel):
    uri: str
    items: list[CompletionItem]


class HealthResponse(BaseModel):
    status: str
    version: str
    root: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _resolve_document(container: Container, path: str | None, text: str | None) -> TextDocument:
    if text is not None:
        resource = container.resolve_uri(path) if path else DocumentUri.untitled("request.textile")
        return container.open_text(resource, text)
    if path is None:
        raise HTTPException(422, "Either 'path' or 'text' is required")
    try:
        return await container.load_document(path)
    except TextileLSError as e:
        raise HTTPException(404, e.message)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/v1/health", response_model=HealthResponse)
def health(container: Container = Depends(_get_container)):
    return HealthResponse(status="ok", version=__version__, root=str(container.root))


@app.post("/v1/links", response_model=LinksResponse)
async def document_links(
    body: DocumentRequest,
    container: Container = Depends(_get_container),
):
    document = await _resolve_document(container, body.path, body.text)
    result = await container.link_provider.get_links(document)
    return LinksResponse(
        uri=str(document.uri),
        document_links=await container.link_provider.provide_document_links(document),
        links=[link.model_dump(mode="json") for link in result.links],
    )


@app.post("/v1/diagnostics", response_model=DiagnosticsResponse)
async def diagnostics(
    body: DocumentRequest,
    container: Container = Depends(_get_container),
):
    """Validate the links of one document with the workspace's settings."""
    document = await _resolve_document(container, body.path, body.text)
    state = await container.diagnostic_manager.recompute_diagnostic_state(document)
    return DiagnosticsResponse(
        uri=str(document.uri),
        diagnostics=list(state.diagnostics),
        code_actions=container.quick_fix.provide_code_actions(document, state.diagnostics),
        total_diagnostics=len(state.diagnostics),
    )


@app.post("/v1/toc", response_model=TocResponse)
async def table_of_contents(
    body: DocumentRequest,
    container: Container = Depends(_get_container),
):
    document = await _resolve_document(container, body.path, body.text)
    toc = await container.toc_provider.get_for_document(document)
    return TocResponse(uri=str(document.uri), entries=list(toc.entries))


@app.post("/v1/folding", response_model=FoldingResponse)
async def folding_ranges(
    body: DocumentRequest,
    container: Container = Depends(_get_container),
):
    document = await _resolve_document(container, body.path, body.text)
    ranges = await container.folding.provide_folding_ranges(document)
    return FoldingResponse(uri=str(document.uri), ranges=ranges)


@app.post("/v1/symbols", response_model=SymbolsResponse)
async def symbols(
    body: SymbolsRequest,
    container: Container = Depends(_get_container),
):
    """Document symbols when a document is given, else workspace symbols matching ``query``."""
    if body.path is None and body.text is None:
        try:
            found = await container.workspace_symbols.provide_workspace_symbols(body.query or "")
        except TextileLSError as e:
            raise HTTPException(500, e.message)
        return SymbolsResponse(workspace_symbols=found)

    document = await _resolve_document(container, body.path, body.text)
    return SymbolsResponse(document_symbols=await container.document_symbols.provide_document_symbols(document))


@app.post("/v1/references", response_model=LocationsResponse)
async def references(
    body: ReferencesRequest,
    container: Container = Depends(_get_container),
):
    document = await _resolve_document(container, body.path, body.text)
    locations = await container.references.provide_references(
        document,
        Position(line=body.line, character=body.character),
        include_declaration=body.include_declaration,
    )
    return LocationsResponse(uri=str(document.uri), locations=locations)


@app.post("/v1/definition", response_model=DefinitionResponse)
async def definition(
    body: PositionRequest,
    container: Container = Depends(_get_container),
):
    document = await _resolve_document(container, body.path, body.text)
    found = await container.references.provide_definition(
        document, Position(line=body.line, character=body.character),
    )
    return DefinitionResponse(uri=str(document.uri), definition=found)


@app.post("/v1/file-references", response_model=LocationsResponse)
async def file_references(
    body: FileReferencesRequest,
    container: Container = Depends(_get_container),
):
    """Links anywhere in the workspace that point at ``path``."""
    resource = container.resolve_uri(body.path)
    try:
        found = await container.references.get_references_to_file(resource)
    except TextileLSError as e:
        raise HTTPException(500, e.message)
    return LocationsResponse(uri=str(resource), locations=[reference.location for reference in found])


@app.post("/v1/completions", response_model=CompletionResponse)
async def completions(
    body: PositionRequest,
    container: Container = Depends(_get_container),
):
    document = await _resolve_document(container, body.path, body.text)
    items = await container.path_completion.provide_completion_items(
        document, Position(line=body.line, character=body.character),
    )
    return CompletionResponse(uri=str(document.uri), items=items)
