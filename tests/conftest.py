"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from docindex.db.connection import Database
from docindex.db.schema import initialize
from docindex.db.vectors import VectorStore

TEST_DIMS = 4


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "docindex.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def vec_store(tmp_db):
    """4-dimensional vector store on tmp_db."""
    return VectorStore(tmp_db, "test_model", TEST_DIMS)
