"""Shared command setup: config → logging → DocumentService."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from docindex.cli.errors import err_config, err_dimension_mismatch, err_no_data_dir
from docindex.config import DocIndexConfig, load_config
from docindex.errors import ConfigError, DimensionMismatch
from docindex.logging import configure_logging
from docindex.service import DocumentService

console = Console()


def load_cli_config(data_dir: Path | None = None) -> DocIndexConfig:
    """Load config, apply the ``--data-dir`` override, and configure logging."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if data_dir is not None:
        cfg.storage.data_dir = data_dir
    configure_logging(cfg.logging.level, json_output=cfg.logging.json)
    return cfg


def open_service(data_dir: Path | None = None, *, must_exist: bool = True) -> DocumentService:
    """Open the document index, exiting with code 1 on setup errors.

    With *must_exist*, a missing database is reported instead of created.
    """
    cfg = load_cli_config(data_dir)
    if must_exist and not cfg.storage.db_path.exists():
        console.print(err_no_data_dir(str(cfg.storage.data_dir)))
        raise typer.Exit(1)
    try:
        return DocumentService.from_config(cfg)
    except DimensionMismatch as exc:
        console.print(err_dimension_mismatch(exc.expected, exc.actual, cfg.embedding.model))
        raise typer.Exit(1) from exc


# Reusable --data-dir option for every command.
DataDir = Annotated[
    Path | None,
    typer.Option(
        "--data-dir",
        "-d",
        help="Index directory (default: storage.data_dir from config, .docindex).",
    ),
]
