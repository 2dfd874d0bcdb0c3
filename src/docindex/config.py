"""docindex configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DOCINDEX_EMBEDDING_MODEL, DOCINDEX_DATA_DIR, DOCINDEX_LOG_LEVEL)
  3. Per-project docindex.yaml  (working directory)
  4. Global ~/.docindex/config.yaml  (defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; the embedding credential is passed
by the caller or read from the provider's environment variable.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from docindex.errors import ConfigError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docindex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docindex.yaml"

MAX_FILE_BYTES: int = 50 * 1024 * 1024

# api_key, api-key, api_secret, *_token, token, *_secret, secret, password, credential(s).
# Does NOT match chunk_size, max_chars, etc.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["storage", "embedding", "chunking", "extraction", "retrieval", "logging"]
)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Local storage (docindex.yaml: storage:).

    Attributes:
        data_dir: Root directory holding ``docindex.db`` and ``documents/``.
        max_file_bytes: Ingestion size ceiling; larger files are rejected.
    """

    data_dir: Path = field(default_factory=lambda: Path(".docindex"))
    max_file_bytes: int = MAX_FILE_BYTES

    @property
    def db_path(self) -> Path:
        return self.data_dir / "docindex.db"

    @property
    def documents_dir(self) -> Path:
        return self.data_dir / "documents"


@dataclass
class EmbeddingCfg:
    """Embedding provider (docindex.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    max_chars: int = 8_000
    timeout: float = 30.0
    concurrency: int = 1
    num_retries: int = 2


@dataclass
class ChunkingCfg:
    """Paragraph chunker sizing (docindex.yaml: chunking:).

    ``chunk_size`` and ``overlap`` are in estimated tokens.
    """

    chunk_size: int = 500
    overlap: int = 50
    chars_per_token: int = 4
    chars_per_word: int = 5


@dataclass
class ExtractionCfg:
    """Text extraction (docindex.yaml: extraction:)."""

    ocr_timeout: float = 120.0
    ocr_language: str = "eng"


@dataclass
class RetrievalCfg:
    """Search defaults (docindex.yaml: retrieval:)."""

    limit: int = 3
    min_relevance: float | None = None


@dataclass
class LoggingCfg:
    """Log output (docindex.yaml: logging:)."""

    level: str = "INFO"
    json: bool = False


@dataclass
class DocIndexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    extraction: ExtractionCfg = field(default_factory=ExtractionCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: DocIndexConfig) -> None:
    """Reject values the pipeline cannot work with."""
    positive = {
        "storage.max_file_bytes": cfg.storage.max_file_bytes,
        "embedding.dimensions": cfg.embedding.dimensions,
        "embedding.max_chars": cfg.embedding.max_chars,
        "embedding.concurrency": cfg.embedding.concurrency,
        "embedding.timeout": cfg.embedding.timeout,
        "chunking.chunk_size": cfg.chunking.chunk_size,
        "chunking.chars_per_token": cfg.chunking.chars_per_token,
        "chunking.chars_per_word": cfg.chunking.chars_per_word,
        "extraction.ocr_timeout": cfg.extraction.ocr_timeout,
        "retrieval.limit": cfg.retrieval.limit,
    }
    for name, value in positive.items():
        if value <= 0:
            raise ConfigError(f"{name} must be > 0, got {value!r}")
    if cfg.chunking.overlap < 0:
        raise ConfigError(f"chunking.overlap must be >= 0, got {cfg.chunking.overlap!r}")
    if cfg.embedding.num_retries < 0:
        raise ConfigError(
            f"embedding.num_retries must be >= 0, got {cfg.embedding.num_retries!r}"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DocIndexConfig:
    """Build a *DocIndexConfig* from a merged raw YAML dict."""
    cfg = DocIndexConfig()

    try:
        if "storage" in data:
            s = data["storage"] or {}
            cfg.storage = StorageCfg(
                data_dir=Path(s.get("data_dir", cfg.storage.data_dir)).expanduser(),
                max_file_bytes=int(s.get("max_file_bytes", cfg.storage.max_file_bytes)),
            )

        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
                max_chars=int(e.get("max_chars", cfg.embedding.max_chars)),
                timeout=float(e.get("timeout", cfg.embedding.timeout)),
                concurrency=int(e.get("concurrency", cfg.embedding.concurrency)),
                num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
            )

        if "chunking" in data:
            c = data["chunking"] or {}
            cfg.chunking = ChunkingCfg(
                chunk_size=int(c.get("chunk_size", cfg.chunking.chunk_size)),
                overlap=int(c.get("overlap", cfg.chunking.overlap)),
                chars_per_token=int(c.get("chars_per_token", cfg.chunking.chars_per_token)),
                chars_per_word=int(c.get("chars_per_word", cfg.chunking.chars_per_word)),
            )

        if "extraction" in data:
            x = data["extraction"] or {}
            cfg.extraction = ExtractionCfg(
                ocr_timeout=float(x.get("ocr_timeout", cfg.extraction.ocr_timeout)),
                ocr_language=str(x.get("ocr_language", cfg.extraction.ocr_language)),
            )

        if "retrieval" in data:
            r = data["retrieval"] or {}
            threshold = r.get("min_relevance", cfg.retrieval.min_relevance)
            cfg.retrieval = RetrievalCfg(
                limit=int(r.get("limit", cfg.retrieval.limit)),
                min_relevance=float(threshold) if threshold is not None else None,
            )

        if "logging" in data:
            lg = data["logging"] or {}
            cfg.logging = LoggingCfg(
                level=str(lg.get("level", cfg.logging.level)).upper(),
                json=bool(lg.get("json", cfg.logging.json)),
            )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: DocIndexConfig) -> DocIndexConfig:
    """Apply DOCINDEX_* environment variable overrides."""
    if model := os.environ.get("DOCINDEX_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if data_dir := os.environ.get("DOCINDEX_DATA_DIR"):
        cfg.storage.data_dir = Path(data_dir).expanduser()
    if level := os.environ.get("DOCINDEX_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocIndexConfig:
    """Load and return a merged *DocIndexConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docindex.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a value
            is malformed or out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg
