"""docindex status — index overview, or the processing state of one document."""

from __future__ import annotations

from collections import Counter
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from docindex.cli.context import DataDir, open_service
from docindex.cli.errors import err_document_not_found
from docindex.db.models import Document, ProcessingStatus
from docindex.service import DocumentService

console = Console()

_STATUS_STYLE = {
    ProcessingStatus.PENDING: "dim",
    ProcessingStatus.PROCESSING: "cyan",
    ProcessingStatus.COMPLETED: "green",
    ProcessingStatus.FAILED: "red",
}


def status_cmd(
    document_id: Annotated[
        str | None,
        typer.Argument(help="Document id; omit for an index overview."),
    ] = None,
    data_dir: DataDir = None,
) -> None:
    """Show the index overview or one document's processing status."""
    with open_service(data_dir) as svc:
        if document_id is None:
            _show_overview(svc)
            return

        doc = svc.get(document_id)
        if doc is None:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(1)
        _show_document(svc, doc)


def _show_overview(svc: DocumentService) -> None:
    docs = svc.list_documents()
    counts = Counter(d.status for d in docs)
    parts = [
        f"[{_STATUS_STYLE[s]}]{s.value}[/]: [bold]{counts.get(s, 0)}[/]"
        for s in ProcessingStatus
    ]
    lines = [
        f"Documents: [bold]{len(docs)}[/]",
        "  |  ".join(parts),
        f"Vector table: {svc.vectors.table} ({svc.vectors.dimensions} dims)",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Document Index[/]", expand=False))


def _show_document(svc: DocumentService, doc: Document) -> None:
    style = _STATUS_STYLE[doc.status]
    chunks = svc.chunks.count_by_document(doc.id)
    embedded = svc.vectors.count_by_document(doc.id)
    lines = [
        f"Name:     [bold]{escape(doc.name)}[/]",
        f"Type:     {doc.file_type}  ({doc.file_size:,} bytes)",
        f"Status:   [{style}]{doc.status.value}[/]",
        f"Chunks:   {chunks}  |  Embedded: {embedded}",
    ]
    if doc.project_id or doc.task_id:
        lines.append(f"Scope:    project={doc.project_id or '-'}  task={doc.task_id or '-'}")
    if doc.error:
        lines.append(f"Error:    [red]{escape(doc.error)}[/]")
    if doc.created_at:
        lines.append(f"Added:    {doc.created_at}")
    console.print(Panel("\n".join(lines), title=f"[bold]{doc.id}[/]", expand=False))
