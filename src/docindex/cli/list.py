"""docindex list — table of documents, optionally scoped."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docindex.cli.context import DataDir, open_service

console = Console()


def list_cmd(
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Only documents of this project."),
    ] = None,
    task: Annotated[
        str | None,
        typer.Option("--task", "-t", help="Only documents of this task."),
    ] = None,
    data_dir: DataDir = None,
) -> None:
    """List documents in the index."""
    with open_service(data_dir) as svc:
        docs = svc.list_documents(project_id=project, task_id=task)

    if not docs:
        console.print("[yellow]No documents.[/]")
        return

    table = Table(title=f"Documents ({len(docs)})")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Project")
    table.add_column("Task")
    for doc in docs:
        table.add_row(
            doc.id,
            escape(doc.name),
            doc.file_type,
            doc.status.value,
            doc.project_id or "",
            doc.task_id or "",
        )
    console.print(table)
