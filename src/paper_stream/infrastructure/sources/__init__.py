"""
Paper Sources

Adapters for the upstream scholarly APIs plus the local fallback corpus.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                   PaperAggregator                        │
    └───────────────────────────┬─────────────────────────────┘
                                │
    ┌───────────────────────────▼─────────────────────────────┐
    │                   SourceRegistry                         │
    │  ┌──────────────┬──────────────┬──────────────────────┐ │
    │  │    arXiv     │   OpenAlex   │   Semantic Scholar   │ │
    │  │ (Atom, 1 req)│ (JSON, 3 tag)│    (JSON, 2 tags)    │ │
    │  └──────────────┴──────────────┴──────────────────────┘ │
    │  ┌─────────────────────────────────────────────────────┐│
    │  │        Fallback (fixed corpus, last resort)         ││
    │  └─────────────────────────────────────────────────────┘│
    └─────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from paper_stream.models import PaperSource

from .arxiv import ArxivSource
from .base import SourceAdapter
from .base_client import BaseAPIClient
from .fallback import FALLBACK_CORPUS, FallbackSource
from .openalex import OpenAlexSource
from .semantic_scholar import SemanticScholarSource

if TYPE_CHECKING:
    from paper_stream.settings import Settings

logger = logging.getLogger(__name__)

# Names accepted in PAPER_STREAM_SOURCES, in dispatch order
SOURCE_NAMES: dict[str, PaperSource] = {
    "arxiv": PaperSource.ARXIV,
    "openalex": PaperSource.OPENALEX,
    "semantic_scholar": PaperSource.SEMANTIC_SCHOLAR,
}


class SourceRegistry:
    """
    The closed set of real adapters, keyed by PaperSource, plus the fallback.

    Iteration order of ``real_adapters()`` is registration order, which is
    also the order papers are collected in before deduplication.
    """

    def __init__(
        self,
        adapters: Mapping[PaperSource, SourceAdapter],
        fallback: SourceAdapter | None = None,
    ):
        if PaperSource.FALLBACK in adapters:
            raise ValueError("The fallback source cannot be registered as a real adapter")
        self._adapters = dict(adapters)
        self._fallback = fallback or FallbackSource()

    def real_adapters(self) -> list[SourceAdapter]:
        return list(self._adapters.values())

    @property
    def fallback(self) -> SourceAdapter:
        return self._fallback

    def get(self, source: PaperSource) -> SourceAdapter | None:
        if source is PaperSource.FALLBACK:
            return self._fallback
        return self._adapters.get(source)

    def __contains__(self, source: object) -> bool:
        return source in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    async def aclose(self) -> None:
        """Close every adapter's HTTP resources; one failure does not stop the rest."""
        adapters = [*self._adapters.values(), self._fallback]
        results = await asyncio.gather(*(a.aclose() for a in adapters), return_exceptions=True)
        for adapter, result in zip(adapters, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to close {adapter.name}: {result}")


def enabled_sources(names: tuple[str, ...] | list[str]) -> list[PaperSource]:
    """Map configured names to PaperSource values; unknown names are logged and ignored."""
    sources = []
    for name in names:
        source = SOURCE_NAMES.get(name.strip().lower())
        if source is None:
            logger.warning(f"Unknown source in configuration: {name!r}")
            continue
        if source not in sources:
            sources.append(source)
    return sources


def build_default_registry(settings: Settings) -> SourceRegistry:
    """Wire the real adapters enabled in ``settings`` plus the fallback corpus."""
    enabled = set(enabled_sources(settings.enabled_sources))
    adapters: dict[PaperSource, SourceAdapter] = {}

    # Fixed dispatch order regardless of configuration order
    if PaperSource.ARXIV in enabled:
        adapters[PaperSource.ARXIV] = ArxivSource()
    if PaperSource.OPENALEX in enabled:
        adapters[PaperSource.OPENALEX] = OpenAlexSource(email=settings.contact_email)
    if PaperSource.SEMANTIC_SCHOLAR in enabled:
        adapters[PaperSource.SEMANTIC_SCHOLAR] = SemanticScholarSource(
            api_key=settings.semantic_scholar_api_key
        )

    logger.info(f"Source registry: {', '.join(a.name for a in adapters.values()) or 'fallback only'}")
    return SourceRegistry(adapters, FallbackSource(latency=settings.fallback_latency))


__all__ = [
    "FALLBACK_CORPUS",
    "SOURCE_NAMES",
    "ArxivSource",
    "BaseAPIClient",
    "FallbackSource",
    "OpenAlexSource",
    "SemanticScholarSource",
    "SourceAdapter",
    "SourceRegistry",
    "build_default_registry",
    "enabled_sources",
]
