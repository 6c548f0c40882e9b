"""Command-line interface for inspecting MO catalogs."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from mocatalog.catalog import Catalog
from mocatalog.config import CatalogConfig
from mocatalog.format import CONTEXT_SEPARATOR, PLURAL_SEPARATOR

app = typer.Typer(
    name="mocatalog",
    help="Inspect compiled MO translation catalogs",
    add_completion=False,
)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Inspect compiled MO translation catalogs."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


def _open_catalog(file: Path, cache: bool = True) -> Catalog:
    catalog = Catalog.from_file(file, CatalogConfig(cache=cache, preload=True))
    if catalog.short_circuit:
        typer.echo(f"Error: Not a readable catalog: {catalog.error}", err=True)
        raise typer.Exit(1)
    return catalog


@app.command(name="info")
def info_cmd(
    file: Annotated[Path, typer.Argument(help="Path to the .mo file")],
) -> None:
    """Show the catalog header, charset and plural rule."""
    catalog = _open_catalog(file)
    header = catalog.header
    plurals = catalog.plurals

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("File", str(file))
    table.add_row("Byte order", header.byteorder.value)
    table.add_row("Revision", f"{header.major_revision}.{header.minor_revision}")
    table.add_row("Entries", f"{header.total:,}")
    table.add_row("Originals offset", str(header.originals_offset))
    table.add_row("Translations offset", str(header.translations_offset))
    table.add_row("Charset", catalog.charset)
    table.add_row("Plural forms", str(plurals.nplurals))
    rule = plurals.rule.formula
    if plurals.is_default:
        rule += " (default)"
    table.add_row("Plural rule", rule)

    Console().print(table)


@app.command(name="lookup")
def lookup_cmd(
    file: Annotated[Path, typer.Argument(help="Path to the .mo file")],
    msgid: Annotated[str, typer.Argument(help="Message to look up")],
    context: Annotated[
        Optional[str],
        typer.Option("--context", "-c", help="Message context (msgctxt)"),
    ] = None,
    plural: Annotated[
        Optional[str],
        typer.Option("--plural", "-p", help="Plural form of the message"),
    ] = None,
    count: Annotated[
        int,
        typer.Option("--count", "-n", help="Count used to select the plural form"),
    ] = 1,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Binary-search the file instead of caching it"),
    ] = False,
) -> None:
    """Translate a single message."""
    catalog = _open_catalog(file, cache=not no_cache)

    if plural is not None and context is not None:
        result = catalog.npgettext(context, msgid, plural, count)
    elif plural is not None:
        result = catalog.ngettext(msgid, plural, count)
    elif context is not None:
        result = catalog.pgettext(context, msgid)
    else:
        result = catalog.translate(msgid)

    typer.echo(result)


@app.command(name="dump")
def dump_cmd(
    file: Annotated[Path, typer.Argument(help="Path to the .mo file")],
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-l", help="Show at most this many entries"),
    ] = None,
) -> None:
    """List the entries of a catalog."""
    catalog = _open_catalog(file)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Context", style="dim")
    table.add_column("Message", style="cyan")
    table.add_column("Translation")

    entries = list(catalog.items())
    shown = entries if limit is None else entries[:limit]
    for key, value in shown:
        context, _, message = key.rpartition(CONTEXT_SEPARATOR)
        table.add_row(
            context,
            message.replace(PLURAL_SEPARATOR, " | "),
            value.replace(PLURAL_SEPARATOR, " | "),
        )

    console = Console()
    console.print(table)
    console.print(f"{len(shown)} of {len(entries)} entries shown")


if __name__ == "__main__":
    app()
