"""docindex search — semantic search over completed documents."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docindex.cli.context import DataDir, open_service
from docindex.cli.errors import err_empty_query, err_no_api_key
from docindex.errors import EmbeddingUnavailable, EmptyQuery, InputError

console = Console()

_PREVIEW_CHARS = 160


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Only search documents of this project."),
    ] = None,
    task: Annotated[
        str | None,
        typer.Option("--task", "-t", help="Only search documents of this task."),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Maximum hits (default: retrieval.limit, 3)."),
    ] = None,
    min_relevance: Annotated[
        float | None,
        typer.Option("--min-relevance", help="Drop hits at or below this relevance."),
    ] = None,
    full: Annotated[
        bool,
        typer.Option("--full", help="Print whole chunks instead of a preview."),
    ] = False,
    data_dir: DataDir = None,
) -> None:
    """Search the document index."""
    with open_service(data_dir) as svc:
        embedder = svc.retriever.embedder
        try:
            embedder.check_credentials()
        except EmbeddingUnavailable:
            console.print(err_no_api_key(embedder.provider))
            raise typer.Exit(1)

        try:
            hits = asyncio.run(
                svc.search(
                    query,
                    project_id=project,
                    task_id=task,
                    limit=limit,
                    min_relevance=min_relevance,
                )
            )
        except EmptyQuery:
            console.print(err_empty_query())
            raise typer.Exit(1)
        except InputError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1)

    if not hits:
        console.print("[yellow]No matching passages.[/]")
        return

    table = Table(title=f"Results for “{query}”", show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Relevance", justify="right")
    table.add_column("Document")
    table.add_column("Passage")
    for rank, hit in enumerate(hits, start=1):
        text = escape(hit.content if full else _preview(hit.content))
        table.add_row(
            str(rank),
            f"{hit.relevance:.3f}",
            f"{escape(hit.document_name)}\n[dim]chunk {hit.chunk_index}[/]",
            text,
        )
    console.print(table)


def _preview(content: str) -> str:
    flat = " ".join(content.split())
    if len(flat) <= _PREVIEW_CHARS:
        return flat
    return flat[: _PREVIEW_CHARS - 1].rstrip() + "…"
