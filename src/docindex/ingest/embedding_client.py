"""LiteLLM embedding client: text in, fixed-length vector out, or a typed failure.

Input is truncated to ``max_chars`` before sending. Every provider failure
(HTTP error, rate limit, network, timeout, malformed response) surfaces as
:class:`EmbeddingFailed`; a missing credential as :class:`EmbeddingUnavailable`.
Callers decide how much of that is fatal.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

import litellm

from docindex.errors import EmbeddingFailed, EmbeddingUnavailable

litellm.suppress_debug_info = True

DEFAULT_MODEL = "openai/text-embedding-3-small"
MAX_INPUT_CHARS = 8_000

# Provider prefix → environment variable holding its key (None: no key needed).
_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,
}


def provider_of(model: str) -> str:
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env_var(provider: str) -> str | None:
    """Environment variable holding the key for *provider*, or None if it needs none."""
    return _PROVIDER_ENV.get(provider.lower(), f"{provider.upper()}_API_KEY")


def resolve_api_key(model: str, api_key: str | None = None) -> str | None:
    """Return the credential to use for *model*.

    An explicit *api_key* wins; otherwise the provider's environment variable.

    Raises:
        EmbeddingUnavailable: If the provider needs a key and none is available.
    """
    if api_key:
        return api_key
    provider = provider_of(model)
    env_var = api_key_env_var(provider)
    if env_var is None:
        return None
    value = os.getenv(env_var)
    if not value:
        raise EmbeddingUnavailable(
            f"No API key for embedding provider '{provider}'. Set {env_var}.",
            provider,
        )
    return value


class EmbeddingClient:
    """Async wrapper around ``litellm.aembedding``.

    Args:
        model: LiteLLM model string (provider/model format).
        dimensions: Expected vector length; other lengths are rejected.
        api_key: Caller-held credential; falls back to the provider env var.
        max_chars: Input truncation budget.
        timeout: Seconds allowed per attempt.
        num_retries: LiteLLM retries on transient errors. The overall deadline
            is ``timeout * (num_retries + 1)`` so retries are not cut short.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        dimensions: int = 1536,
        api_key: str | None = None,
        max_chars: int = MAX_INPUT_CHARS,
        timeout: float = 30.0,
        num_retries: int = 2,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.max_chars = max_chars
        self.timeout = timeout
        self.num_retries = num_retries
        self._api_key = api_key

    @property
    def provider(self) -> str:
        return provider_of(self.model)

    def check_credentials(self) -> None:
        """Raise EmbeddingUnavailable early if no credential can be found."""
        resolve_api_key(self.model, self._api_key)

    async def embed(self, text: str) -> list[float]:
        """Embed *text* (truncated to ``max_chars``).

        Raises:
            EmbeddingUnavailable: No credential for the provider.
            EmbeddingFailed: Provider error, timeout, or wrong vector length.
        """
        api_key = resolve_api_key(self.model, self._api_key)
        kwargs: dict[str, Any] = {
            "model": self.model,
            "input": [text[: self.max_chars]],
            "num_retries": self.num_retries,
            "timeout": self.timeout,
        }
        if api_key:
            kwargs["api_key"] = api_key

        deadline = self.timeout * (self.num_retries + 1)
        try:
            response = await asyncio.wait_for(litellm.aembedding(**kwargs), timeout=deadline)
        except asyncio.TimeoutError as exc:
            raise EmbeddingFailed(
                f"Embedding request timed out after {deadline:g}s "
                f"({self.timeout:g}s per attempt, {self.num_retries} retries)",
                self.provider,
            ) from exc
        except Exception as exc:
            raise EmbeddingFailed(f"Embedding request failed: {exc}", self.provider) from exc

        vector = _first_vector(response)
        if vector is None:
            raise EmbeddingFailed("Embedding response contained no vector", self.provider)
        if len(vector) != self.dimensions:
            raise EmbeddingFailed(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}",
                self.provider,
            )
        return [float(x) for x in vector]


def _first_vector(response: Any) -> list[float] | None:
    data = getattr(response, "data", None)
    if not data:
        return None
    item = data[0]
    if isinstance(item, dict):
        return item.get("embedding")
    return getattr(item, "embedding", None)
