"""
PaperAggregator - fan-out across all sources and merge the results.

Flow for one call:
    1. Fetch from every real adapter concurrently (settled, bounded by a
       per-adapter timeout; one failure never cancels the others)
    2. No papers, or no adapter succeeded -> the fallback adapter is the
       sole source
    3. Deduplicate -> sort newest first -> diff filter -> cap

Example:
    >>> aggregator = PaperAggregator(registry)
    >>> papers = await aggregator.aggregate(["quantum computing"], last_update="2024-01-15")
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from paper_stream.infrastructure.sources import SourceAdapter, SourceRegistry
from paper_stream.models import Paper
from paper_stream.settings import DEFAULT_ADAPTER_TIMEOUT, DEFAULT_MAX_RESULTS
from paper_stream.shared.async_utils import gather_settled, with_timeout
from paper_stream.shared.exceptions import AllSourcesFailedError, InvalidRequestError, is_retryable_error

from .merge import (
    AggregationStats,
    cap_results,
    deduplicate_papers,
    filter_since,
    sort_by_published_date,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationResult:
    papers: list[Paper]
    stats: AggregationStats


class PaperAggregator:
    """
    Aggregates papers from the registry's sources.

    Holds no per-request state; a single instance serves concurrent calls.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        *,
        adapter_timeout: float | None = DEFAULT_ADAPTER_TIMEOUT,
        max_results: int = DEFAULT_MAX_RESULTS,
    ):
        """
        Args:
            registry: Real adapters plus the fallback
            adapter_timeout: Upper bound for one adapter's fetch, None for no bound
            max_results: Cap applied after sorting and diff filtering
        """
        self._registry = registry
        self._adapter_timeout = adapter_timeout
        self._max_results = max_results

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    async def aggregate(
        self,
        tags: Sequence[str],
        include_preprints: bool = True,
        last_update: str | None = None,
    ) -> list[Paper]:
        """Return the newest unique papers for ``tags``, at most ``max_results``."""
        result = await self.aggregate_with_stats(tags, include_preprints, last_update)
        return result.papers

    async def aggregate_with_stats(
        self,
        tags: Sequence[str],
        include_preprints: bool = True,
        last_update: str | None = None,
    ) -> AggregationResult:
        """
        Same as ``aggregate`` but also returns per-call statistics.

        Raises:
            InvalidRequestError: ``tags`` is empty
        """
        tags = [t for t in tags if t]
        if not tags:
            raise InvalidRequestError("Tags parameter is required", param_name="tags")

        stats = AggregationStats()
        try:
            collected = await self._collect(tags, include_preprints, stats)
        except AllSourcesFailedError as e:
            logger.info(f"{e}; using fallback corpus")
            stats.used_fallback = True
            collected = await self._registry.fallback.fetch(tags, include_preprints)

        stats.total_input = len(collected)
        stats.count_sources(collected)

        unique = deduplicate_papers(collected)
        stats.unique_papers = len(unique)
        stats.duplicates_removed = stats.total_input - stats.unique_papers

        papers = cap_results(
            filter_since(sort_by_published_date(unique), last_update),
            self._max_results,
        )

        source_info = "fallback corpus" if stats.used_fallback else f"{stats.successful_sources} external sources"
        logger.info(f"Aggregated {len(papers)} papers from {source_info}")
        logger.debug(f"Aggregation stats: {stats.to_dict()}")
        return AggregationResult(papers=papers, stats=stats)

    async def _collect(
        self,
        tags: Sequence[str],
        include_preprints: bool,
        stats: AggregationStats,
    ) -> list[Paper]:
        """
        Fetch from all real adapters and concatenate in registry order.

        Raises:
            AllSourcesFailedError: nothing collected, or no adapter succeeded
        """
        adapters = self._registry.real_adapters()
        outcomes = await gather_settled(
            *(self._fetch_one(adapter, tags, include_preprints) for adapter in adapters)
        )

        collected: list[Paper] = []
        errors: list[Exception] = []
        for adapter, outcome in zip(adapters, outcomes):
            if outcome.ok:
                stats.successful_sources += 1
                collected.extend(outcome.value or [])
            else:
                stats.failed_sources += 1
                errors.append(outcome.error)
                level = logging.WARNING if is_retryable_error(outcome.error) else logging.ERROR
                logger.log(level, f"Error fetching from {adapter.name}: {outcome.error}")

        if not collected or stats.successful_sources == 0:
            raise AllSourcesFailedError(len(adapters), stats.successful_sources, errors=errors)
        return collected

    async def _fetch_one(
        self,
        adapter: SourceAdapter,
        tags: Sequence[str],
        include_preprints: bool,
    ) -> list[Paper]:
        logger.debug(f"Fetching from {adapter.name}...")
        return await with_timeout(
            adapter.fetch(tags, include_preprints),
            self._adapter_timeout,
            source=adapter.name,
        )
