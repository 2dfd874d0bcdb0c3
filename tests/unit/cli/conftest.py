"""Fixtures for CLI tests: an isolated working directory and a fake provider."""

from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import structlog
import yaml
from typer.testing import CliRunner

from docindex.cli.main import app
from docindex.db.connection import Database
from docindex.db.documents import DocumentStore

_AXES = ("budget", "holiday", "invoice")


def _keyword_vector(text: str) -> list[float]:
    lowered = text.lower()
    vec = [1.0 if w in lowered else 0.0 for w in _AXES]
    vec.append(0.0 if any(vec) else 1.0)
    return vec


async def _fake_aembedding(**kwargs):
    return SimpleNamespace(data=[{"embedding": _keyword_vector(kwargs["input"][0])}])


class CliHarness:
    """Runs commands against one temporary data directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.data_dir = root / "idx"
        self.runner = CliRunner()

    def invoke(self, *args: str, **kwargs):
        return self.runner.invoke(app, [*args, "--data-dir", str(self.data_dir)], **kwargs)

    def write(self, name: str, text: str) -> Path:
        path = self.root / name
        path.write_text(text, encoding="utf-8")
        return path

    def ingest(self, name: str, text: str, *extra: str) -> str:
        """Ingest one text file and return its document id."""
        result = self.invoke("ingest", str(self.write(name, text)), *extra)
        assert result.exit_code == 0, result.output
        return next(d.id for d in self.documents() if d.name == name)

    def documents(self):
        with Database(self.data_dir / "docindex.db") as conn:
            return DocumentStore(conn).list_all()


@pytest.fixture(autouse=True)
def _reset_logging():
    """Commands bind log output to the runner's stderr; drop it afterwards."""
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def cli(tmp_path: Path, monkeypatch) -> CliHarness:
    """Working directory with a 4-dim docindex.yaml and an OpenAI key set."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("docindex.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("DOCINDEX_EMBEDDING_MODEL", "DOCINDEX_DATA_DIR", "DOCINDEX_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    (tmp_path / "docindex.yaml").write_text(
        yaml.dump({"embedding": {"dimensions": 4}, "logging": {"level": "WARNING"}}),
        encoding="utf-8",
    )
    return CliHarness(tmp_path)


@pytest.fixture
def fake_provider():
    with patch(
        "docindex.ingest.embedding_client.litellm.aembedding",
        new=AsyncMock(side_effect=_fake_aembedding),
    ) as mock:
        yield mock
