"""textile-ls command line.

Commands:
  check ROOT         validate links of every Textile document
  links FILE         list the links of a document
  toc FILE           print a document's table of contents
  symbols ROOT       search heading symbols across the workspace
  folding FILE       print folding ranges
  references FILE LINE COLUMN
                     list references to a heading or link
  definition FILE LINE COLUMN
                     show the link definition a reference uses
  file-references FILE
                     list links pointing at a file
  complete FILE LINE COLUMN
                     suggest link targets at a position
  ignore-link ROOT   add a glob to the workspace's ignored links
  serve              run the REST API
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from textile_ls import __version__
from textile_ls.config.logging import configure_logging
from textile_ls.config.settings import Settings, get_settings
from textile_ls.container import create_container
from textile_ls.domain.entities import (
    CompletionItem,
    Diagnostic,
    ExternalHref,
    InternalHref,
    Location,
    Position,
    ReferenceHref,
    TextileLink,
)
from textile_ls.domain.enums import DiagnosticLevel, DiagnosticSeverity
from textile_ls.domain.exceptions import TextileLSError

_LEVELS = click.Choice([level.value for level in DiagnosticLevel])


@click.group()
@click.version_option(version=__version__, prog_name="textile-ls")
@click.option("--log-level", default=None, help="Override TEXTILE_LOG_LEVEL")
@click.option("--log-json", is_flag=True, default=False, help="Render logs as JSON")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_json: bool) -> None:
    """Textile link validation and navigation."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, json=log_json or settings.log_json)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"] if ctx.obj and "settings" in ctx.obj else get_settings()


def _file_root(file: str) -> Path:
    return Path(file).resolve().parent


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


def _format_diagnostic(root: Path, path: str, diagnostic: Diagnostic) -> str:
    relative = Path(path).relative_to(root) if Path(path).is_relative_to(root) else Path(path)
    start = diagnostic.range.start
    return f"{relative}:{start.line + 1}:{start.character + 1}: {diagnostic.severity.value}: {diagnostic.message}"


@cli.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text", help="Output format")
@click.option("--fail-on", type=click.Choice(["error", "warning"]), default="error", help="Lowest severity that fails the run")
@click.option("--reference-links", type=_LEVELS, default=None, help="Level for undefined references")
@click.option("--header-links", type=_LEVELS, default=None, help="Level for missing headers")
@click.option("--file-links", type=_LEVELS, default=None, help="Level for missing files")
@click.pass_context
def check(
    ctx: click.Context,
    root: str,
    output_format: str,
    fail_on: str,
    reference_links: str | None,
    header_links: str | None,
    file_links: str | None,
) -> None:
    """Validate the links of every Textile document under ROOT."""
    update: dict[str, object] = {"validate_enabled": True}
    if reference_links:
        update["validate_reference_links"] = DiagnosticLevel(reference_links)
    if header_links:
        update["validate_header_links"] = DiagnosticLevel(header_links)
    if file_links:
        update["validate_file_links"] = DiagnosticLevel(file_links)
    settings = _settings(ctx).model_copy(update=update)

    container = create_container(root, settings)
    try:
        results = asyncio.run(container.check_workspace())
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    threshold = DiagnosticSeverity(fail_on).rank
    failed = False
    if output_format == "json":
        payload = [
            {
                "uri": str(uri),
                "diagnostics": [diagnostic.model_dump(mode="json") for diagnostic in diagnostics],
            }
            for uri, diagnostics in sorted(results.items(), key=lambda item: str(item[0]))
            if diagnostics
        ]
        click.echo(json.dumps(payload, indent=2))
    else:
        for uri, diagnostics in sorted(results.items(), key=lambda item: str(item[0])):
            for diagnostic in diagnostics:
                click.echo(_format_diagnostic(container.root, uri.fs_path, diagnostic))

    total = 0
    for diagnostics in results.values():
        total += len(diagnostics)
        failed = failed or any(diagnostic.severity.rank <= threshold for diagnostic in diagnostics)
    if output_format == "text":
        click.echo(f"{total} problem(s) in {len(results)} document(s)")
    if failed:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Single-document commands
# ---------------------------------------------------------------------------


def _describe_href(link: TextileLink) -> str:
    href = link.href
    if isinstance(href, ExternalHref):
        return href.uri
    if isinstance(href, InternalHref):
        return str(href.path.with_fragment(href.fragment))
    if isinstance(href, ReferenceHref):
        return f"[{href.ref}]"
    raise TypeError(f"Unknown href: {href!r}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
@click.pass_context
def links(ctx: click.Context, file: str, as_json: bool) -> None:
    """List the links found in FILE."""
    container = create_container(_file_root(file), _settings(ctx))

    async def run() -> list[TextileLink]:
        document = await container.load_document(Path(file).resolve())
        return list((await container.link_provider.get_links(document)).links)

    try:
        found = asyncio.run(run())
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    if as_json:
        click.echo(json.dumps([link.model_dump(mode="json") for link in found], indent=2))
        return
    for link in found:
        start = link.source.href_range.start
        click.echo(f"{start.line + 1}:{start.character + 1}  {link.kind:<10}  {link.source.href_text}  ->  {_describe_href(link)}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def toc(ctx: click.Context, file: str) -> None:
    """Print the table of contents of FILE."""
    container = create_container(_file_root(file), _settings(ctx))

    async def run():
        document = await container.load_document(Path(file).resolve())
        return await container.toc_provider.get_for_document(document)

    try:
        table = asyncio.run(run())
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    for entry in table.entries:
        indent = "  " * (entry.level - 1)
        click.echo(f"{indent}{entry.text}  #{entry.slug}  (line {entry.line + 1})")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def folding(ctx: click.Context, file: str) -> None:
    """Print the folding ranges of FILE."""
    container = create_container(_file_root(file), _settings(ctx))

    async def run():
        document = await container.load_document(Path(file).resolve())
        return await container.folding.provide_folding_ranges(document)

    try:
        ranges = asyncio.run(run())
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    for folding_range in ranges:
        kind = f"  {folding_range.kind.value}" if folding_range.kind else ""
        click.echo(f"{folding_range.start + 1}-{folding_range.end + 1}{kind}")


# ---------------------------------------------------------------------------
# Navigation commands
# ---------------------------------------------------------------------------


def _position(line: int, column: int) -> Position:
    return Position(line=line - 1, character=column - 1)


def _describe_location(container, location: Location) -> str:
    path = Path(location.uri.fs_path)
    relative = path.relative_to(container.root) if path.is_relative_to(container.root) else path
    start = location.range.start
    return f"{relative}:{start.line + 1}:{start.character + 1}"


_ROOT_OPTION = click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Workspace root (defaults to the file's directory)",
)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("line", type=click.IntRange(min=1))
@click.argument("column", type=click.IntRange(min=1))
@_ROOT_OPTION
@click.option("--no-declaration", is_flag=True, default=False, help="Leave out headings and link definitions")
@click.pass_context
def references(
    ctx: click.Context,
    file: str,
    line: int,
    column: int,
    root: str | None,
    no_declaration: bool,
) -> None:
    """List references to the heading or link at LINE:COLUMN of FILE."""
    container = create_container(root or _file_root(file), _settings(ctx))

    async def run() -> list[Location]:
        document = await container.load_document(Path(file).resolve())
        return await container.references.provide_references(
            document, _position(line, column), include_declaration=not no_declaration,
        )

    try:
        found = asyncio.run(run())
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    for location in found:
        click.echo(_describe_location(container, location))


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("line", type=click.IntRange(min=1))
@click.argument("column", type=click.IntRange(min=1))
@click.pass_context
def definition(ctx: click.Context, file: str, line: int, column: int) -> None:
    """Show the link definition used at LINE:COLUMN of FILE."""
    container = create_container(_file_root(file), _settings(ctx))

    async def run() -> Location | None:
        document = await container.load_document(Path(file).resolve())
        return await container.references.provide_definition(document, _position(line, column))

    try:
        found = asyncio.run(run())
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    if found is None:
        _fail("No link definition at this position")
        return
    click.echo(_describe_location(container, found))


@cli.command("file-references")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@_ROOT_OPTION
@click.pass_context
def file_references(ctx: click.Context, file: str, root: str | None) -> None:
    """List every link in the workspace that points at FILE."""
    container = create_container(root or _file_root(file), _settings(ctx))
    try:
        found = asyncio.run(container.references.get_references_to_file(container.resolve_uri(Path(file).resolve())))
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    for reference in found:
        click.echo(f"{_describe_location(container, reference.location)}  {reference.link.source.href_text}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("line", type=click.IntRange(min=1))
@click.argument("column", type=click.IntRange(min=1))
@_ROOT_OPTION
@click.pass_context
def complete(ctx: click.Context, file: str, line: int, column: int, root: str | None) -> None:
    """Suggest link targets for the href being typed at LINE:COLUMN of FILE."""
    container = create_container(root or _file_root(file), _settings(ctx))

    async def run() -> list[CompletionItem]:
        document = await container.load_document(Path(file).resolve())
        return await container.path_completion.provide_completion_items(document, _position(line, column))

    try:
        items = asyncio.run(run())
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    for item in items:
        click.echo(f"{item.kind.value:<10}  {item.label}")


# ---------------------------------------------------------------------------
# Workspace commands
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.argument("query", default="")
@click.pass_context
def symbols(ctx: click.Context, root: str, query: str) -> None:
    """Search heading symbols of every document under ROOT."""
    container = create_container(root, _settings(ctx))
    try:
        found = asyncio.run(container.workspace_symbols.provide_workspace_symbols(query))
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()

    for symbol in sorted(found, key=lambda s: (str(s.location.uri), s.location.range.start.key())):
        path = Path(symbol.location.uri.fs_path)
        relative = path.relative_to(container.root) if path.is_relative_to(container.root) else path
        click.echo(f"{relative}:{symbol.location.range.start.line + 1}  {symbol.name}")


@cli.command("ignore-link")
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.argument("pattern")
@click.pass_context
def ignore_link(ctx: click.Context, root: str, pattern: str) -> None:
    """Add PATTERN to the ignored links of the workspace at ROOT."""
    container = create_container(root, _settings(ctx))
    try:
        container.quick_fix.execute(container.resolve_uri("."), pattern)
    except TextileLSError as exc:
        _fail(exc.message)
        return
    finally:
        container.dispose()
    click.echo(f"Ignoring links matching: {pattern}")


@cli.command()
@click.option("--root", type=click.Path(exists=True, file_okay=False), default=".", help="Workspace root")
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, root: str, host: str | None, port: int | None) -> None:
    """Run the REST API for the workspace at ROOT."""
    import uvicorn

    from textile_ls.api.server import app

    settings = _settings(ctx)
    app.state.container = create_container(root, settings)
    uvicorn.run(app, host=host or settings.api_host, port=port or settings.api_port)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
