"""Tests for docindex remove."""

from __future__ import annotations


def test_remove_no_index_exits_1(cli) -> None:
    result = cli.invoke("remove", "abc", "--yes")
    assert result.exit_code == 1
    assert "No document index" in result.output


def test_remove_unknown_document_exits_0(cli, fake_provider) -> None:
    cli.ingest("a.txt", "a")
    result = cli.invoke("remove", "nope", "--yes")
    assert result.exit_code == 0
    assert "Document not found" in result.output


def test_remove_with_yes_deletes_everything(cli, fake_provider) -> None:
    doc_id = cli.ingest("a.txt", "Budget.")
    doc_dir = cli.data_dir / "documents" / doc_id
    assert doc_dir.is_dir()

    result = cli.invoke("remove", doc_id, "--yes")

    assert result.exit_code == 0, result.output
    assert "Removed: a.txt" in result.output
    assert cli.documents() == []
    assert not doc_dir.exists()

    search = cli.invoke("search", "budget")
    assert "No matching passages" in search.output


def test_remove_prompt_declined_keeps_document(cli, fake_provider) -> None:
    doc_id = cli.ingest("a.txt", "a")

    result = cli.invoke("remove", doc_id, input="n\n")

    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert [d.id for d in cli.documents()] == [doc_id]


def test_remove_prompt_accepted(cli, fake_provider) -> None:
    doc_id = cli.ingest("a.txt", "a")

    result = cli.invoke("remove", doc_id, input="y\n")

    assert result.exit_code == 0
    assert "Chunks: 1" in result.output
    assert cli.documents() == []
