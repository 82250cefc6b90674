"""docent configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DOCENT_EMBEDDING_MODEL, DOCENT_GENERATION_MODEL,
                             DOCENT_LOG_LEVEL)
  3. Per-project docent.yaml  (working directory)
  4. Global ~/.docent/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
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

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docent"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "docent.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret, secret,
# password, passwd, credential(s). Does NOT match max_tokens or token_budget.
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
    ["embedding", "generation", "ingest", "retrieval", "history", "logging"]
)

INDEX_KINDS: frozenset[str] = frozenset(["linear", "sqlite-vec"])


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
    """Embedding model configuration (docent.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"


@dataclass
class GenerationCfg:
    """Answer generation configuration (docent.yaml: generation:)."""

    model: str = "openai/gpt-4o"
    temperature: float = 0.2
    max_tokens: int = 800


@dataclass
class IngestCfg:
    """Ingestion pipeline configuration (docent.yaml: ingest:).

    Attributes:
        max_chunk_size: Maximum characters per chunk (single oversized sentences excepted).
        min_content_length: Normalized text shorter than this fails the source.
        concurrency: Embedding worker threads; 1 keeps calls strictly sequential.
        retry_attempts: Total attempts per chunk embedding (1 = no retry).
        retry_base_delay: First backoff delay in seconds; doubles per attempt.
        retry_max_delay: Upper bound for a single backoff delay in seconds.
    """

    max_chunk_size: int = 1000
    min_content_length: int = 10
    concurrency: int = 1
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0


@dataclass
class RetrievalCfg:
    """Retrieval configuration (docent.yaml: retrieval:).

    ``fallback_thresholds`` are tried in order after ``min_similarity`` yields
    nothing; only values below ``min_similarity`` are used.
    """

    limit: int = 3
    min_similarity: float = 0.5
    fallback_thresholds: list[float] = field(default_factory=lambda: [0.3, 0.0])
    index: str = "linear"  # linear | sqlite-vec
    token_budget: int = 6_000


@dataclass
class HistoryCfg:
    """Conversation history window (docent.yaml: history:)."""

    limit: int = 10


@dataclass
class LoggingCfg:
    """Log output settings (docent.yaml: logging:)."""

    level: str = "WARNING"
    json: bool = False


@dataclass
class DocentConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    history: HistoryCfg = field(default_factory=HistoryCfg)
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


def validate(cfg: DocentConfig) -> DocentConfig:
    """Raise ConfigError if any value in *cfg* is out of range."""
    ing = cfg.ingest
    if ing.max_chunk_size < 1:
        raise ConfigError(f"ingest.max_chunk_size must be >= 1, got {ing.max_chunk_size}")
    if ing.min_content_length < 0:
        raise ConfigError(
            f"ingest.min_content_length must be >= 0, got {ing.min_content_length}"
        )
    if ing.concurrency < 1:
        raise ConfigError(f"ingest.concurrency must be >= 1, got {ing.concurrency}")
    if ing.retry_attempts < 1:
        raise ConfigError(f"ingest.retry_attempts must be >= 1, got {ing.retry_attempts}")
    if ing.retry_base_delay < 0 or ing.retry_max_delay < 0:
        raise ConfigError("ingest.retry_base_delay and retry_max_delay must be >= 0")

    ret = cfg.retrieval
    if ret.limit < 1:
        raise ConfigError(f"retrieval.limit must be >= 1, got {ret.limit}")
    for value in (ret.min_similarity, *ret.fallback_thresholds):
        if not -1.0 <= value <= 1.0:
            raise ConfigError(f"similarity thresholds must be within [-1, 1], got {value}")
    if ret.index not in INDEX_KINDS:
        raise ConfigError(
            f"retrieval.index must be one of {', '.join(sorted(INDEX_KINDS))}, got '{ret.index}'"
        )

    if cfg.history.limit < 0:
        raise ConfigError(f"history.limit must be >= 0, got {cfg.history.limit}")
    return cfg


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


def _cfg_from_dict(data: dict[str, Any]) -> DocentConfig:
    """Build a *DocentConfig* from a merged raw YAML dict."""
    cfg = DocentConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(model=str(e.get("model", cfg.embedding.model)))

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
        )

    if "ingest" in data:
        i = data["ingest"] or {}
        d = cfg.ingest
        cfg.ingest = IngestCfg(
            max_chunk_size=int(i.get("max_chunk_size", d.max_chunk_size)),
            min_content_length=int(i.get("min_content_length", d.min_content_length)),
            concurrency=int(i.get("concurrency", d.concurrency)),
            retry_attempts=int(i.get("retry_attempts", d.retry_attempts)),
            retry_base_delay=float(i.get("retry_base_delay", d.retry_base_delay)),
            retry_max_delay=float(i.get("retry_max_delay", d.retry_max_delay)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        d = cfg.retrieval
        cfg.retrieval = RetrievalCfg(
            limit=int(r.get("limit", d.limit)),
            min_similarity=float(r.get("min_similarity", d.min_similarity)),
            fallback_thresholds=[
                float(t) for t in r.get("fallback_thresholds", d.fallback_thresholds)
            ],
            index=str(r.get("index", d.index)),
            token_budget=int(r.get("token_budget", d.token_budget)),
        )

    if "history" in data:
        h = data["history"] or {}
        cfg.history = HistoryCfg(limit=int(h.get("limit", cfg.history.limit)))

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)),
            json=bool(lg.get("json", cfg.logging.json)),
        )

    return cfg


def _apply_env_overrides(cfg: DocentConfig) -> DocentConfig:
    """Apply DOCENT_* environment variable overrides (layer 2)."""
    if model := os.environ.get("DOCENT_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("DOCENT_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if level := os.environ.get("DOCENT_LOG_LEVEL"):
        cfg.logging.level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocentConfig:
    """Load and return a merged, validated *DocentConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docent.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or any
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    cfg = _apply_env_overrides(cfg)
    return validate(cfg)


PROJECT_TEMPLATE = """\
# docent project configuration.
# NEVER store API keys here; use environment variables:
#   export OPENAI_API_KEY=sk-...

embedding:
  model: openai/text-embedding-3-small

generation:
  model: openai/gpt-4o
  temperature: 0.2
  max_tokens: 800

ingest:
  max_chunk_size: 1000
  min_content_length: 10
  concurrency: 1
  retry_attempts: 3

retrieval:
  limit: 3
  min_similarity: 0.5
  fallback_thresholds: [0.3, 0.0]
  index: linear   # linear | sqlite-vec

history:
  limit: 10
"""


def write_project_config(directory: Path) -> Path | None:
    """Write a *docent.yaml* template into *directory* unless one exists.

    Returns:
        The path written, or None if the file was already present.
    """
    target = directory / PROJECT_CONFIG_NAME
    if target.exists():
        return None
    target.write_text(PROJECT_TEMPLATE, encoding="utf-8")
    return target
