"""Tests for docindex list."""

from __future__ import annotations

from docindex.db.connection import Database
from docindex.db.schema import initialize


def test_list_empty_index(cli) -> None:
    conn = Database(cli.data_dir / "docindex.db").connect()
    initialize(conn)
    conn.close()

    result = cli.invoke("list")

    assert result.exit_code == 0
    assert "No documents." in result.output


def test_list_all_and_scoped(cli, fake_provider) -> None:
    cli.ingest("a.txt", "a", "--project", "p1")
    cli.ingest("b.txt", "b", "--project", "p2", "--task", "t9")

    everything = cli.invoke("list")
    assert everything.exit_code == 0, everything.output
    assert "Documents (2)" in everything.output

    scoped = cli.invoke("list", "--project", "p1")
    assert "Documents (1)" in scoped.output
    assert "a.txt" in scoped.output
    assert "b.txt" not in scoped.output

    by_task = cli.invoke("list", "--task", "t9")
    assert "b.txt" in by_task.output
    assert "a.txt" not in by_task.output


def test_list_no_index_exits_1(cli) -> None:
    result = cli.invoke("list")
    assert result.exit_code == 1
