"""docindex remove — delete a document and everything derived from it.

Removes, in order: vectors, chunks, the stored original file, the document
row. Removing an unknown id is not an error.

Usage:
  docindex remove 3f2c...
  docindex remove 3f2c... --yes
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from docindex.cli.context import DataDir, open_service
from docindex.cli.errors import err_document_not_found

console = Console()


def remove_cmd(
    document_id: Annotated[str, typer.Argument(help="Document id to remove.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    data_dir: DataDir = None,
) -> None:
    """Remove a document and all its data from the index."""
    with open_service(data_dir) as svc:
        doc = svc.get(document_id)
        if doc is None:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(0)

        chunks = svc.chunks.count_by_document(document_id)
        embedded = svc.vectors.count_by_document(document_id)
        console.print(f"\nRemove document: [bold]{escape(doc.name)}[/] [dim]({document_id})[/]")
        console.print(f"  Chunks: {chunks}  |  Vectors: {embedded}  |  Status: {doc.status.value}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        svc.delete(document_id)

    console.print(f"\n[green]✓[/] Removed: {escape(doc.name)}")
