"""
Runtime settings for Paper Stream.

All values come from environment variables with module-level defaults, so a
process can be configured without code changes:

    PAPER_STREAM_CACHE_DIR          Durable cache directory
    PAPER_STREAM_CACHE_TTL          Cache entry lifetime in seconds (1800)
    PAPER_STREAM_CACHE_MAX_ENTRIES  Memory tier capacity (1000)
    PAPER_STREAM_MAX_RESULTS        Papers returned per aggregate call (50)
    PAPER_STREAM_ADAPTER_TIMEOUT    Per-source fetch bound in seconds (15)
    PAPER_STREAM_SERVE_FROM_CACHE   Serve /api/papers through the cache (false)
    PAPER_STREAM_SCHEDULER          Run the periodic cache refresh (true)
    PAPER_STREAM_REFRESH_INTERVAL   Seconds between refreshes (1800)
    PAPER_STREAM_WARMUP_TAGS        "tag,tag;tag" - tag sets to keep warm
    PAPER_STREAM_SOURCES            Enabled sources (arxiv,openalex,semantic_scholar)
    PAPER_STREAM_CONTACT_EMAIL      Contact address sent to polite-pool APIs
    SEMANTIC_SCHOLAR_API_KEY        Optional Semantic Scholar key
    PAPER_STREAM_LOG_LEVEL          Logging level (INFO)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

DEFAULT_CACHE_DIR = os.path.expanduser("~/.paper-stream/cache")
DEFAULT_CACHE_TTL_SECONDS = 30 * 60
DEFAULT_CACHE_MAX_ENTRIES = 1000
DEFAULT_MAX_RESULTS = 50
DEFAULT_ADAPTER_TIMEOUT = 15.0
DEFAULT_REFRESH_INTERVAL = 30 * 60
DEFAULT_WARMUP_DELAY = 5.0
DEFAULT_WARMUP_TAGS = "machine learning;artificial intelligence"
DEFAULT_SOURCES = "arxiv,openalex,semantic_scholar"
DEFAULT_CONTACT_EMAIL = "paper-stream@example.com"
DEFAULT_PORT = 3000

_TRUE_VALUES = ("1", "true", "yes", "on")


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def parse_tag_sets(value: str) -> tuple[tuple[str, ...], ...]:
    """Parse ``"a,b;c"`` into ``(("a", "b"), ("c",))``; blank sets are dropped."""
    tag_sets = []
    for chunk in value.split(";"):
        tags = tuple(t.strip().lower() for t in chunk.split(",") if t.strip())
        if tags:
            tag_sets.append(tags)
    return tuple(tag_sets)


def _parse_list(value: str) -> tuple[str, ...]:
    return tuple(v.strip().lower() for v in value.split(",") if v.strip())


@dataclass(frozen=True)
class Settings:
    """Immutable process configuration."""

    cache_dir: Path = field(default_factory=lambda: Path(DEFAULT_CACHE_DIR))
    cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    max_results: int = DEFAULT_MAX_RESULTS
    adapter_timeout: float | None = DEFAULT_ADAPTER_TIMEOUT
    serve_from_cache: bool = False
    scheduler_enabled: bool = True
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    warmup_delay: float = DEFAULT_WARMUP_DELAY
    warmup_tag_sets: tuple[tuple[str, ...], ...] = parse_tag_sets(DEFAULT_WARMUP_TAGS)
    warmup_include_preprints: bool = True
    enabled_sources: tuple[str, ...] = _parse_list(DEFAULT_SOURCES)
    contact_email: str = DEFAULT_CONTACT_EMAIL
    semantic_scholar_api_key: str | None = None
    fallback_latency: float = 0.5
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        return cls(
            cache_dir=Path(os.path.expanduser(env.get("PAPER_STREAM_CACHE_DIR", DEFAULT_CACHE_DIR))),
            cache_ttl=float(env.get("PAPER_STREAM_CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS)),
            cache_max_entries=int(env.get("PAPER_STREAM_CACHE_MAX_ENTRIES", DEFAULT_CACHE_MAX_ENTRIES)),
            max_results=int(env.get("PAPER_STREAM_MAX_RESULTS", DEFAULT_MAX_RESULTS)),
            adapter_timeout=float(env.get("PAPER_STREAM_ADAPTER_TIMEOUT", DEFAULT_ADAPTER_TIMEOUT)),
            serve_from_cache=_as_bool(env.get("PAPER_STREAM_SERVE_FROM_CACHE"), False),
            scheduler_enabled=_as_bool(env.get("PAPER_STREAM_SCHEDULER"), True),
            refresh_interval=float(env.get("PAPER_STREAM_REFRESH_INTERVAL", DEFAULT_REFRESH_INTERVAL)),
            warmup_tag_sets=parse_tag_sets(env.get("PAPER_STREAM_WARMUP_TAGS", DEFAULT_WARMUP_TAGS)),
            enabled_sources=_parse_list(env.get("PAPER_STREAM_SOURCES", DEFAULT_SOURCES)),
            contact_email=env.get("PAPER_STREAM_CONTACT_EMAIL", DEFAULT_CONTACT_EMAIL),
            semantic_scholar_api_key=env.get("SEMANTIC_SCHOLAR_API_KEY") or None,
            log_level=env.get("PAPER_STREAM_LOG_LEVEL", "INFO").upper(),
        )

    def with_overrides(self, **changes: Any) -> Settings:
        """Copy with selected fields replaced (None values are ignored)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
