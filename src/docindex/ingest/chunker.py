"""Paragraph chunker with word-based overlap.

Strategy:
- Normalise ``\\r\\n`` to ``\\n`` and collapse runs of 3+ newlines to one
  blank line.
- Split on blank lines into paragraphs and accumulate them greedily.
- When the next paragraph would push the buffer over ``chunk_size`` tokens,
  close the buffer and seed the next one with the last few words of the
  closed chunk (``overlap`` tokens' worth, sized at ``chars_per_word``
  characters per word).
- The last non-empty buffer is always emitted.

A single paragraph larger than ``chunk_size`` is never split; it becomes one
oversized chunk and the embedding client truncates what it sends.

Token counts come from a pluggable :class:`TokenEstimator`. The default
counts ``ceil(len(text) / 4)``; it is an approximation, not a tokenizer.

``token_count`` is measured on the stripped chunk content, not on the working
buffer with its trailing ``"\\n\\n"``, so it can sit up to one token below the
estimate the overflow check used when the chunk was closed.
"""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

_BLANK_RUN_RE = re.compile(r"\n{3,}")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\n+")
_PARAGRAPH_SEP = "\n\n"


class TokenEstimator(ABC):
    """Approximates how many model tokens a piece of text costs.

    ``chars_per_token`` is the average the estimator assumes; the chunker uses
    it to convert a token-denominated overlap into a word count.
    """

    chars_per_token: float = 4

    @abstractmethod
    def count(self, text: str) -> int:
        """Return the estimated token count of *text*."""

    def count_chars(self, length: int) -> int:
        """Estimated tokens for *length* characters of typical text."""
        return math.ceil(length / self.chars_per_token)


class CharRatioEstimator(TokenEstimator):
    """``ceil(len(text) / chars_per_token)``, 4 characters per token by default."""

    def __init__(self, chars_per_token: int = 4) -> None:
        if chars_per_token < 1:
            raise ValueError("chars_per_token must be >= 1")
        self.chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        return self.count_chars(len(text))


@dataclass(frozen=True)
class TextChunk:
    """One passage produced by the chunker (not yet persisted)."""

    index: int
    content: str
    token_count: int


def normalize_text(text: str) -> str:
    """Unify line endings, collapse 3+ newlines to a blank line, and strip."""
    return _BLANK_RUN_RE.sub(_PARAGRAPH_SEP, text.replace("\r\n", "\n")).strip()


class ParagraphChunker:
    """Greedy paragraph packer.

    Args:
        chunk_size: Target chunk size in estimated tokens (default 500).
        overlap: Tokens of trailing context carried into the next chunk (default 50).
        chars_per_word: Average word length used to turn *overlap* into words.
        estimator: Token estimator; defaults to :class:`CharRatioEstimator`.
    """

    def __init__(
        self,
        chunk_size: int = 500,
        overlap: int = 50,
        chars_per_word: int = 5,
        estimator: TokenEstimator | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if overlap < 0:
            raise ValueError("overlap must be >= 0")
        if chars_per_word < 1:
            raise ValueError("chars_per_word must be >= 1")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.chars_per_word = chars_per_word
        self.estimator = estimator or CharRatioEstimator()

    @property
    def overlap_words(self) -> int:
        """Words carried over between chunks (40 with the defaults)."""
        return math.ceil(self.overlap * self.estimator.chars_per_token / self.chars_per_word)

    def chunk(self, text: str) -> list[TextChunk]:
        """Split *text* into ordered passages. Empty or blank input yields ``[]``."""
        cleaned = normalize_text(text)
        if not cleaned:
            return []

        contents: list[str] = []
        buffer = ""
        for paragraph in _PARAGRAPH_SPLIT_RE.split(cleaned):
            if buffer and self._overflows(buffer, paragraph):
                contents.append(buffer.strip())
                buffer = self._overlap_tail(buffer)
            buffer += paragraph + _PARAGRAPH_SEP

        if buffer.strip():
            contents.append(buffer.strip())

        return [
            TextChunk(index=i, content=c, token_count=self.estimator.count(c))
            for i, c in enumerate(contents)
        ]

    def _overflows(self, buffer: str, paragraph: str) -> bool:
        return self.estimator.count_chars(len(buffer) + len(paragraph)) > self.chunk_size

    def _overlap_tail(self, closed: str) -> str:
        """Seed for the next buffer: the last words of the closed chunk."""
        n = self.overlap_words
        if n == 0:
            return ""
        words = closed.split()[-n:]
        return " ".join(words) + _PARAGRAPH_SEP if words else ""
