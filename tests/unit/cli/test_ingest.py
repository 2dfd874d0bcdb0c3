"""Tests for docindex ingest."""

from __future__ import annotations

from docindex.db.models import ProcessingStatus


# ---------------------------------------------------------------------------
# Single files
# ---------------------------------------------------------------------------


def test_ingest_creates_index_and_document(cli, fake_provider) -> None:
    path = cli.write("notes.md", "Budget review on Monday.")

    result = cli.invoke("ingest", str(path), "--project", "p1", "--task", "t1")

    assert result.exit_code == 0, result.output
    assert "1 ingested, 0 failed" in result.output
    assert (cli.data_dir / "docindex.db").is_file()
    [doc] = cli.documents()
    assert doc.name == "notes.md"
    assert doc.status is ProcessingStatus.COMPLETED
    assert (doc.project_id, doc.task_id) == ("p1", "t1")
    assert fake_provider.await_count == 1


def test_ingest_missing_file_fails(cli, fake_provider) -> None:
    result = cli.invoke("ingest", str(cli.root / "missing.txt"))

    assert result.exit_code == 1
    assert "0 ingested, 1 failed" in result.output
    assert cli.documents() == []


def test_ingest_unsupported_file_is_skipped(cli, fake_provider) -> None:
    archive = cli.root / "data.zip"
    archive.write_bytes(b"PK\x03\x04")

    result = cli.invoke("ingest", str(archive))

    assert result.exit_code == 1
    assert "Unsupported file type" in result.output
    assert "No supported files" in result.output


def test_ingest_mixed_batch_reports_failures(cli, fake_provider) -> None:
    good = cli.write("good.txt", "Holiday plan.")
    archive = cli.root / "data.zip"
    archive.write_bytes(b"PK")

    result = cli.invoke("ingest", str(good), str(archive))

    assert result.exit_code == 1
    assert "1 ingested, 1 failed" in result.output
    assert [d.name for d in cli.documents()] == ["good.txt"]


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


def test_ingest_directory_non_recursive(cli, fake_provider) -> None:
    inbox = cli.root / "inbox"
    (inbox / "sub").mkdir(parents=True)
    (inbox / "a.txt").write_text("a", encoding="utf-8")
    (inbox / "skip.bin").write_bytes(b"\x00")
    (inbox / "sub" / "b.md").write_text("b", encoding="utf-8")

    result = cli.invoke("ingest", str(inbox))

    assert result.exit_code == 0, result.output
    assert sorted(d.name for d in cli.documents()) == ["a.txt"]


def test_ingest_directory_recursive(cli, fake_provider) -> None:
    inbox = cli.root / "inbox"
    (inbox / "sub").mkdir(parents=True)
    (inbox / "a.txt").write_text("a", encoding="utf-8")
    (inbox / "sub" / "b.md").write_text("b", encoding="utf-8")

    result = cli.invoke("ingest", str(inbox), "--recursive")

    assert result.exit_code == 0, result.output
    assert "2 ingested, 0 failed" in result.output
    assert sorted(d.name for d in cli.documents()) == ["a.txt", "b.md"]


def test_ingest_empty_directory_exits_0(cli, fake_provider) -> None:
    (cli.root / "empty").mkdir()
    result = cli.invoke("ingest", str(cli.root / "empty"))
    assert result.exit_code == 0
    assert "No supported files" in result.output


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def test_ingest_without_api_key_stores_unembedded(cli, fake_provider, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    path = cli.write("notes.txt", "Budget.")

    result = cli.invoke("ingest", str(path))

    assert result.exit_code == 0, result.output
    assert "OPENAI_API_KEY" in result.output
    assert "without embedding" in result.output
    fake_provider.assert_not_awaited()
    [doc] = cli.documents()
    assert doc.status is ProcessingStatus.COMPLETED
