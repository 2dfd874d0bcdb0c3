"""docindex ingest — add files to the document index.

Directories are expanded to the supported files they contain (``--recursive``
for subdirectories). Each file goes through extract → chunk → embed; a file
that is rejected or fails is reported and the rest still run.

Usage:
  docindex ingest report.pdf notes.md --project acme
  docindex ingest ./inbox --recursive --task T-12
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from docindex.cli.context import DataDir, open_service
from docindex.cli.errors import err_no_api_key, err_unsupported_format, err_upload_failed
from docindex.errors import EmbeddingUnavailable
from docindex.ingest.extractors import SUPPORTED_EXTENSIONS
from docindex.service import DocumentService

console = Console()


def ingest_cmd(
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to ingest."),
    ],
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Project id to attach the documents to."),
    ] = None,
    task: Annotated[
        str | None,
        typer.Option("--task", "-t", help="Task id to attach the documents to."),
    ] = None,
    recursive: Annotated[
        bool,
        typer.Option("--recursive", "-r", help="Recurse into subdirectories."),
    ] = False,
    data_dir: DataDir = None,
) -> None:
    """Ingest files into the document index."""
    files, skipped = _expand_paths(paths, recursive=recursive)
    for path in skipped:
        console.print(err_unsupported_format(str(path), sorted(SUPPORTED_EXTENSIONS)))

    if not files:
        console.print("[yellow]No supported files to ingest.[/]")
        raise typer.Exit(1 if skipped else 0)

    ingested = 0
    with open_service(data_dir, must_exist=False) as svc:
        _warn_missing_credentials(svc)
        for path in files:
            if _ingest_one(svc, path, project, task):
                ingested += 1

    failures = len(files) - ingested + len(skipped)
    console.print(f"\n[bold]{ingested}[/] ingested, [bold]{failures}[/] failed")
    if failures:
        raise typer.Exit(1)


def _ingest_one(svc: DocumentService, path: Path, project: str | None, task: str | None) -> bool:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task(f"Ingesting {path.name}…", total=None)
        result = asyncio.run(svc.upload(path, project_id=project, task_id=task))

    if not result.success:
        console.print(err_upload_failed(str(path), result.error or "unknown error"))
        return False

    chunks = svc.chunks.count_by_document(result.document_id)
    embedded = svc.vectors.count_by_document(result.document_id)
    line = f"[green]✓[/] {escape(str(path))}  [dim]{result.document_id}[/]  {chunks} chunks"
    if embedded < chunks:
        line += f"  [yellow]({chunks - embedded} without embedding)[/]"
    console.print(line)
    return True


def _warn_missing_credentials(svc: DocumentService) -> None:
    embedder = svc.retriever.embedder
    try:
        embedder.check_credentials()
    except EmbeddingUnavailable:
        console.print(err_no_api_key(embedder.provider))
        console.print("[yellow]  Documents will be stored without embeddings.[/]")


def _expand_paths(paths: list[Path], *, recursive: bool) -> tuple[list[Path], list[Path]]:
    """Return (supported files, unsupported files) in argument order.

    Missing paths are passed through so the upload reports them.
    """
    files: list[Path] = []
    skipped: list[Path] = []
    for path in paths:
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(
                p for p in sorted(path.glob(pattern))
                if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
            )
        elif path.exists() and path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            skipped.append(path)
        else:
            files.append(path)
    return files, skipped
