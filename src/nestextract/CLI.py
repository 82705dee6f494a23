"""nestextract CLI entrypoint.

This module provides the `extract` click command which recursively walks a
local file, a URL or stdin and lists every leaf stream found inside it,
with its size and a short preview of its bytes. Nothing is written to disk.

Usage example (from shell):
    nestextract bundle.tar.gz --errors --preview 32
    curl -s https://example.com/logs.tar.xz | nestextract - --name logs.tar.xz

Every option can also be set through an environment variable named
``NESTEXTRACT_<OPTION>``, e.g. ``NESTEXTRACT_SEPARATOR=/``.
"""

import logging
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .ArchiveEngine import SNIFF_SIZE
from .Errors import EndOfEntries, NestedArchiveError
from .FileIO import open_input
from .Filestream import DEFAULT_SEPARATOR
from .Session import ExtractionSession

# Create a single console instance for the CLI UI (rich console handles colors/formatting)
console = Console()

CHUNK_SIZE = 128 * 1024  # 128 KB


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _drain(stream, preview: int) -> tuple[bytes, int]:
    """Read ``stream`` to the end, returning its first ``preview`` bytes and total size."""
    head = stream.read(preview) if preview else b""
    size = len(head)
    while chunk := stream.read(CHUNK_SIZE):
        size += len(chunk)
    return head, size


@click.command(context_settings=dict(help_option_names=["-h", "--help"],
                                     auto_envvar_prefix="NESTEXTRACT"))
@click.argument("source", type=str)
@click.option("--name", "-n", type=str, default=None,
              help="Name of the input, defaults to the file name of SOURCE")
@click.option("--separator", "-s", type=str, default=DEFAULT_SEPARATOR, show_default=True,
              help="Separator between name segments")
@click.option("--password", "-p", type=str, default=None, help="Password for encrypted archives")
@click.option("--errors/--no-errors", "show_errors", default=False,
              help="Also list streams that could not be extracted")
@click.option("--preview", type=click.IntRange(min=0), default=48, show_default=True,
              help="Number of leading bytes to show for each leaf")
@click.option("--sniff-size", type=click.IntRange(min=262), default=SNIFF_SIZE, hidden=True)
@click.option("--verbose", "-v", is_flag=True, help="Log format detection and codec failures")
def extract(source: str, name: str, separator: str, password: str, show_errors: bool,
            preview: int, sniff_size: int, verbose: bool):
    """List the leaf streams nested in SOURCE.

    SOURCE is a local path, an http(s) URL, or - for stdin. Archives and
    compressed streams are unpacked recursively; each remaining stream is
    shown under its hierarchical name.
    """
    configure_logging(verbose)
    if name is None:
        name = "stdin" if source == "-" else Path(source.split("?", 1)[0]).name or source

    try:
        handle = open_input(source)
    except (OSError, httpx.HTTPError) as e:
        raise click.ClickException(str(e)) from e

    table = Table(title=f"Contents of {name}")
    table.add_column("Name", justify="left", overflow="fold")
    table.add_column("Size", justify="right")
    table.add_column("Status", justify="left")
    table.add_column("Preview", justify="left", overflow="fold")

    leaves = failures = 0
    try:
        with ExtractionSession(handle, name, separator=separator, password=password,
                               sniff_size=sniff_size) as session:
            with console.status("Extracting..."):
                for fs in session.iter_with_errors():
                    # a clean end of a tar/rar listing is not worth reporting
                    if type(fs.error) is EndOfEntries:
                        continue
                    if fs.error is None:
                        head, size = _drain(fs.handle, preview)
                        table.add_row(escape(fs.name), str(size), "[green]ok[/green]", escape(repr(head)))
                        leaves += 1
                        continue
                    failures += 1
                    if not show_errors:
                        continue
                    if isinstance(fs.error, NestedArchiveError):
                        head, size = _drain(fs.handle, preview)
                        table.add_row(escape(fs.name), str(size), f"[yellow]{escape(str(fs.error))}[/yellow]", escape(repr(head)))
                    else:
                        table.add_row(escape(fs.name), "", f"[red]{escape(str(fs.error))}[/red]", "")
    finally:
        if source != "-":
            handle.close()

    console.print(table)
    console.print(f"{leaves} leaves, {failures} not extracted.")
