"""Groundwork configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (GROUNDWORK_EMBEDDING_MODEL, GROUNDWORK_LOG_LEVEL)
  3. Per-project groundwork.yaml  (next to .groundwork.db)
  4. Global ~/.groundwork/config.yaml  (defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; provider keys (OPENAI_API_KEY,
FIRECRAWL_API_KEY, JINA_API_KEY) are read from the environment only.
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

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".groundwork"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "groundwork.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_context_tokens or rrf_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections. Unknown keys produce a warning.
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "chunking", "retrieval", "scraper", "logging"]
)

_RETRIEVAL_MODES: frozenset[str] = frozenset(["hybrid", "vector", "keyword"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (groundwork.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 100


@dataclass
class ChunkingCfg:
    """Chunker defaults (groundwork.yaml: chunking:).

    Attributes:
        max_chunk_size: Upper bound on chunk length in characters.
        chunk_overlap: Characters of the previous chunk carried forward when
            overlap injection is enabled.
        min_chunk_size: Chunks shorter than this are dropped.
        qa_min_chunk_size: Minimum used for Q&A-pair chunking, where short
            answers are still meaningful.
        preserve_entities: Refuse split points near detected entities.
        entity_padding: Characters around an entity in which no split is safe.
        add_overlap: Run the overlap-injection pass after chunking.
    """

    max_chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100
    qa_min_chunk_size: int = 10
    preserve_entities: bool = True
    entity_padding: int = 50
    add_overlap: bool = False


@dataclass
class RetrievalCfg:
    """Retrieval pipeline configuration (groundwork.yaml: retrieval:)."""

    top_k: int = 5
    mode: str = "hybrid"  # hybrid | vector | keyword
    rrf_k: int = 60
    candidate_multiplier: int = 4
    max_context_tokens: int = 8_192


@dataclass
class ScraperCfg:
    """Page fetch configuration (groundwork.yaml: scraper:)."""

    timeout: int = 30
    max_bytes: int = 5 * 1024 * 1024
    max_redirects: int = 3
    wait_for_selector: str | None = None
    firecrawl_url: str = "https://api.firecrawl.dev"


@dataclass
class LoggingCfg:
    """Logging configuration (groundwork.yaml: logging:)."""

    level: str = "WARNING"


@dataclass
class GroundworkConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    scraper: ScraperCfg = field(default_factory=ScraperCfg)
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


def _validate(cfg: GroundworkConfig) -> None:
    """Raise ConfigError for out-of-range numeric values."""
    ch = cfg.chunking
    if ch.max_chunk_size < 1:
        raise ConfigError(f"chunking.max_chunk_size must be >= 1, got {ch.max_chunk_size}")
    if not 0 <= ch.min_chunk_size <= ch.max_chunk_size:
        raise ConfigError(
            f"chunking.min_chunk_size must be between 0 and max_chunk_size "
            f"({ch.max_chunk_size}), got {ch.min_chunk_size}"
        )
    if ch.chunk_overlap < 0 or ch.entity_padding < 0:
        raise ConfigError("chunking.chunk_overlap and chunking.entity_padding must be >= 0")

    r = cfg.retrieval
    if r.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {r.top_k}")
    if r.rrf_k < 1:
        raise ConfigError(f"retrieval.rrf_k must be >= 1, got {r.rrf_k}")
    if r.mode not in _RETRIEVAL_MODES:
        raise ConfigError(
            f"retrieval.mode must be one of {sorted(_RETRIEVAL_MODES)}, got '{r.mode}'"
        )

    if cfg.embedding.batch_size < 1:
        raise ConfigError(
            f"embedding.batch_size must be >= 1, got {cfg.embedding.batch_size}"
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


def _cfg_from_dict(data: dict[str, Any]) -> GroundworkConfig:
    """Build a *GroundworkConfig* from a merged raw YAML dict."""
    cfg = GroundworkConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        d = cfg.chunking
        cfg.chunking = ChunkingCfg(
            max_chunk_size=int(c.get("max_chunk_size", d.max_chunk_size)),
            chunk_overlap=int(c.get("chunk_overlap", d.chunk_overlap)),
            min_chunk_size=int(c.get("min_chunk_size", d.min_chunk_size)),
            qa_min_chunk_size=int(c.get("qa_min_chunk_size", d.qa_min_chunk_size)),
            preserve_entities=bool(c.get("preserve_entities", d.preserve_entities)),
            entity_padding=int(c.get("entity_padding", d.entity_padding)),
            add_overlap=bool(c.get("add_overlap", d.add_overlap)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        d = cfg.retrieval
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", d.top_k)),
            mode=str(r.get("mode", d.mode)),
            rrf_k=int(r.get("rrf_k", d.rrf_k)),
            candidate_multiplier=int(r.get("candidate_multiplier", d.candidate_multiplier)),
            max_context_tokens=int(r.get("max_context_tokens", d.max_context_tokens)),
        )

    if "scraper" in data:
        s = data["scraper"] or {}
        d = cfg.scraper
        cfg.scraper = ScraperCfg(
            timeout=int(s.get("timeout", d.timeout)),
            max_bytes=int(s.get("max_bytes", d.max_bytes)),
            max_redirects=int(s.get("max_redirects", d.max_redirects)),
            wait_for_selector=s.get("wait_for_selector") or d.wait_for_selector,
            firecrawl_url=str(s.get("firecrawl_url", d.firecrawl_url)),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(level=str(lg.get("level", cfg.logging.level)).upper())

    return cfg


def _apply_env_overrides(cfg: GroundworkConfig) -> GroundworkConfig:
    """Apply GROUNDWORK_* environment variable overrides (layer 2)."""
    if model := os.environ.get("GROUNDWORK_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if level := os.environ.get("GROUNDWORK_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> GroundworkConfig:
    """Load and return a merged *GroundworkConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *groundwork.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *GroundworkConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            numeric value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg
