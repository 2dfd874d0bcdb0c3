"""docindex rich error messages.

Every error shown to the user names what went wrong and the action that fixes
it.

Usage:
    from docindex.cli.errors import err_document_not_found
    console.print(err_document_not_found(doc_id))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

from docindex.ingest.embedding_client import api_key_env_var


def err_no_api_key(provider: str) -> str:
    """No API key for the embedding *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = api_key_env_var(provider) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_config(message: str) -> str:
    """Config file rejected by the loader."""
    return (
        f"[red]Error:[/] Invalid configuration: {escape(message)}\n"
        "  Fix the value in docindex.yaml or ~/.docindex/config.yaml and retry."
    )


def err_no_data_dir(data_dir: str) -> str:
    """No docindex database under *data_dir*."""
    return (
        f"[red]Error:[/] No document index found in '{data_dir}'.\n"
        "  Run:  docindex ingest <file>  to create one."
    )


def err_document_not_found(document_id: str) -> str:
    return (
        f"[yellow]Document not found:[/] '{escape(document_id)}'.\n"
        "  Run:  docindex list  to see all documents."
    )


def err_upload_failed(path: str, error: str) -> str:
    """An ingestion finished in the 'failed' state or was rejected."""
    return (
        f"[red]✗[/] {escape(path)}: {escape(error)}\n"
        "  Fix the file (or install the missing tool) and run:  docindex ingest again."
    )


def err_unsupported_format(path: str, supported: list[str]) -> str:
    return (
        f"[red]Error:[/] Unsupported file type: '{escape(path)}'\n"
        f"  Use one of: {', '.join(supported)}"
    )


def err_empty_query() -> str:
    return (
        "[red]Error:[/] Search query is empty.\n"
        "  Use:  docindex search \"what you are looking for\""
    )


def err_dimension_mismatch(expected: int, actual: int, model: str) -> str:
    """Configured dimensions differ from the existing vector table."""
    return (
        f"[red]Error:[/] Embedding dimension mismatch for '{model}'.\n"
        f"  Index uses:  {expected}\n"
        f"  Config has:  {actual}\n"
        "  Set embedding.dimensions to match, or use a fresh --data-dir and re-ingest."
    )
