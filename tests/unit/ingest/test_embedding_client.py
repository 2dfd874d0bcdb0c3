"""Tests for EmbeddingClient (litellm.aembedding mocked)."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from docindex.errors import EmbeddingFailed, EmbeddingUnavailable
from docindex.ingest.embedding_client import (
    EmbeddingClient,
    api_key_env_var,
    provider_of,
    resolve_api_key,
)

_AEMBED = "docindex.ingest.embedding_client.litellm.aembedding"


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _response(vector: list[float]):
    resp = MagicMock()
    resp.data = [{"embedding": vector}]
    return resp


@pytest.fixture(autouse=True)
def _openai_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")


# ------------------------------------------------------------------
# Provider / credential resolution
# ------------------------------------------------------------------


@pytest.mark.parametrize("model,provider", [
    ("openai/text-embedding-3-small", "openai"),
    ("ollama/nomic-embed-text", "ollama"),
    ("text-embedding-3-small", "openai"),
])
def test_provider_of(model, provider):
    assert provider_of(model) == provider


def test_api_key_env_var():
    assert api_key_env_var("openai") == "OPENAI_API_KEY"
    assert api_key_env_var("ollama") is None
    assert api_key_env_var("acme") == "ACME_API_KEY"


def test_resolve_api_key_prefers_explicit():
    assert resolve_api_key("openai/x", "sk-explicit") == "sk-explicit"


def test_resolve_api_key_from_env():
    assert resolve_api_key("openai/x") == "sk-test"


def test_resolve_api_key_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    with pytest.raises(EmbeddingUnavailable, match="OPENAI_API_KEY") as exc_info:
        resolve_api_key("openai/x")
    assert exc_info.value.provider_name == "openai"


def test_resolve_api_key_not_needed_for_ollama(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    assert resolve_api_key("ollama/nomic-embed-text") is None


# ------------------------------------------------------------------
# embed()
# ------------------------------------------------------------------


async def test_embed_returns_vector():
    client = EmbeddingClient(dimensions=3)
    with patch(_AEMBED, new=AsyncMock(return_value=_response([0.1, 0.2, 0.3]))) as mock:
        vector = await client.embed("hello")
    assert vector == [0.1, 0.2, 0.3]
    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "openai/text-embedding-3-small"
    assert kwargs["input"] == ["hello"]
    assert kwargs["api_key"] == "sk-test"


async def test_embed_truncates_input():
    client = EmbeddingClient(dimensions=3, max_chars=10)
    with patch(_AEMBED, new=AsyncMock(return_value=_response([0.0, 0.0, 0.0]))) as mock:
        await client.embed("x" * 50)
    assert mock.call_args.kwargs["input"] == ["x" * 10]


async def test_embed_accepts_attribute_style_items():
    resp = SimpleNamespace(data=[SimpleNamespace(embedding=[1, 2, 3])])
    client = EmbeddingClient(dimensions=3)
    with patch(_AEMBED, new=AsyncMock(return_value=resp)):
        assert await client.embed("hi") == [1.0, 2.0, 3.0]


async def test_embed_wrong_dimensions():
    client = EmbeddingClient(dimensions=4)
    with patch(_AEMBED, new=AsyncMock(return_value=_response([0.1, 0.2]))):
        with pytest.raises(EmbeddingFailed, match="2 dimensions"):
            await client.embed("hello")


async def test_embed_empty_response():
    resp = MagicMock()
    resp.data = []
    client = EmbeddingClient(dimensions=3)
    with patch(_AEMBED, new=AsyncMock(return_value=resp)):
        with pytest.raises(EmbeddingFailed, match="no vector"):
            await client.embed("hello")


async def test_embed_provider_error():
    client = EmbeddingClient(dimensions=3)
    with patch(_AEMBED, new=AsyncMock(side_effect=Exception("429 rate limited"))):
        with pytest.raises(EmbeddingFailed, match="429") as exc_info:
            await client.embed("hello")
    assert exc_info.value.provider_name == "openai"


async def test_embed_timeout():
    async def _slow(**kwargs):
        await asyncio.sleep(5)

    client = EmbeddingClient(dimensions=3, timeout=0.01)
    with patch(_AEMBED, new=_slow):
        with pytest.raises(EmbeddingFailed, match=r"after 0.03s \(0.01s per attempt, 2 retries"):
            await client.embed("hello")


async def test_embed_deadline_leaves_room_for_retries():
    async def _retrying(**kwargs):
        # Longer than one attempt, as a first try plus a retry would take.
        await asyncio.sleep(kwargs["timeout"] * 1.5)
        return _response([0.1, 0.2, 0.3])

    client = EmbeddingClient(dimensions=3, timeout=0.05, num_retries=2)
    with patch(_AEMBED, new=_retrying):
        assert await client.embed("hello") == [0.1, 0.2, 0.3]


async def test_embed_without_retries_uses_single_attempt_deadline():
    async def _slow(**kwargs):
        await asyncio.sleep(5)

    client = EmbeddingClient(dimensions=3, timeout=0.02, num_retries=0)
    with patch(_AEMBED, new=_slow):
        with pytest.raises(EmbeddingFailed, match=r"after 0.02s \(0.02s per attempt, 0 retries\)"):
            await client.embed("hello")


async def test_embed_without_credentials(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    client = EmbeddingClient(dimensions=3)
    with patch(_AEMBED, new=AsyncMock()) as mock:
        with pytest.raises(EmbeddingUnavailable):
            await client.embed("hello")
    mock.assert_not_called()


async def test_embed_ollama_sends_no_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    client = EmbeddingClient(model="ollama/nomic-embed-text", dimensions=3)
    with patch(_AEMBED, new=AsyncMock(return_value=_response([0.0, 0.0, 1.0]))) as mock:
        await client.embed("hello")
    assert "api_key" not in mock.call_args.kwargs


def test_check_credentials(monkeypatch):
    EmbeddingClient().check_credentials()
    monkeypatch.delenv("OPENAI_API_KEY")
    with pytest.raises(EmbeddingUnavailable):
        EmbeddingClient().check_credentials()
