"""docindex rename — change a document's display name."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from docindex.cli.context import DataDir, open_service
from docindex.cli.errors import err_document_not_found
from docindex.errors import InputError

console = Console()


def rename_cmd(
    document_id: Annotated[str, typer.Argument(help="Document id.")],
    name: Annotated[str, typer.Argument(help="New display name.")],
    data_dir: DataDir = None,
) -> None:
    """Rename a document."""
    with open_service(data_dir) as svc:
        try:
            renamed = svc.rename(document_id, name)
        except InputError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1)

    if not renamed:
        console.print(err_document_not_found(document_id))
        raise typer.Exit(1)
    console.print(f"[green]✓[/] Renamed to: {escape(name.strip())}")
