"""docindex CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from docindex.cli.ingest import ingest_cmd
from docindex.cli.list import list_cmd
from docindex.cli.remove import remove_cmd
from docindex.cli.rename import rename_cmd
from docindex.cli.search import search_cmd
from docindex.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docindex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docindex {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docindex",
    help=(
        "docindex — local document ingestion and semantic search.\n\n"
        "  docindex ingest  Extract, chunk and embed files into the index.\n"
        "  docindex search  Find the passages closest to a question."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """docindex — local document ingestion and semantic search."""


app.command("ingest")(ingest_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("list")(list_cmd)
app.command("remove")(remove_cmd)
app.command("rename")(rename_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docindex version."""
    typer.echo(f"docindex {_installed_version()}")


if __name__ == "__main__":
    app()
