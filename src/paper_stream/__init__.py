"""
Paper Stream - Newest Papers Across Scholarly Sources

Aggregates recent papers for a set of topic tags from arXiv, OpenAlex and
Semantic Scholar, deduplicates and orders them newest first, and serves them
over HTTP with a two-tier cache.

Usage:
    from paper_stream import PaperAggregator, build_default_registry, Settings

    aggregator = PaperAggregator(build_default_registry(Settings()))
    papers = await aggregator.aggregate(["graph neural networks"], last_update="2024-01-15")

    for paper in papers:
        print(f"{paper.published_date} [{paper.source.value}] {paper.title}")

Features:
    - Concurrent fan-out, tolerant of individual source failures
    - Fallback corpus when every source is unavailable
    - Cross-source deduplication by title, arXiv id and DOI
    - Incremental ("diff") results since a client's last update
    - Memory + durable JSON cache with periodic warm-up
"""

from .application.aggregation import AggregationResult, AggregationStats, PaperAggregator
from .infrastructure.cache import CacheStore, cache_key
from .infrastructure.sources import SourceRegistry, build_default_registry
from .models import Paper, PaperSource
from .settings import Settings

__version__ = "1.0.0"

__all__ = [
    # Models
    "Paper",
    "PaperSource",
    # Aggregation
    "PaperAggregator",
    "AggregationResult",
    "AggregationStats",
    # Sources
    "SourceRegistry",
    "build_default_registry",
    # Cache
    "CacheStore",
    "cache_key",
    # Configuration
    "Settings",
]
