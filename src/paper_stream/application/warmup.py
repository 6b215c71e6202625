"""
Cache warm-up and periodic refresh.

CacheWarmer keeps a handful of popular tag sets fresh in the cache;
RefreshScheduler runs it on an APScheduler interval plus once shortly after
startup.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from paper_stream.application.aggregation import PaperAggregator
from paper_stream.infrastructure.cache import CacheStore
from paper_stream.settings import DEFAULT_REFRESH_INTERVAL, DEFAULT_WARMUP_DELAY

logger = logging.getLogger(__name__)


class CacheWarmer:
    """Sweeps expired entries and re-aggregates the configured tag sets."""

    def __init__(
        self,
        cache: CacheStore,
        aggregator: PaperAggregator,
        tag_sets: Sequence[Sequence[str]] = (),
        *,
        include_preprints: bool = True,
    ):
        self._cache = cache
        self._aggregator = aggregator
        self._tag_sets = [tuple(tags) for tags in tag_sets if tags]
        self._include_preprints = include_preprints
        self.last_refresh: datetime | None = None

    @property
    def tag_sets(self) -> list[tuple[str, ...]]:
        return list(self._tag_sets)

    async def refresh(self) -> int:
        """
        Run one refresh cycle.

        Returns:
            Number of tag sets whose cache entry was rewritten
        """
        removed = await self._cache.sweep_expired()
        if removed:
            logger.info(f"Cache sweep removed {removed} expired records")

        refreshed = 0
        for tags in self._tag_sets:
            key = self._cache.key(tags, self._include_preprints)
            try:
                papers = await self._aggregator.aggregate(tags, self._include_preprints)
            except Exception as e:
                logger.warning(f"Cache refresh failed for {key}: {e}")
                continue
            await self._cache.set(key, papers)
            refreshed += 1

        self.last_refresh = datetime.now(UTC)
        logger.info(f"Cache update completed ({refreshed}/{len(self._tag_sets)} tag sets)")
        return refreshed


class RefreshScheduler:
    """
    Long-running refresh driver.

    - Interval job: ``warmer.refresh`` every ``interval`` seconds
    - One-shot warm-up ``warmup_delay`` seconds after start
    - start()/shutdown() are idempotent
    """

    JOB_REFRESH = "cache_refresh"
    JOB_WARMUP = "cache_warmup"

    def __init__(
        self,
        warmer: CacheWarmer,
        *,
        interval: float = DEFAULT_REFRESH_INTERVAL,
        warmup_delay: float = DEFAULT_WARMUP_DELAY,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self._warmer = warmer
        self._interval = interval
        self._warmup_delay = warmup_delay
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    def start(self) -> None:
        """Start the scheduler (idempotent). Needs a running event loop."""
        if self._started:
            return

        logger.info(f"Starting refresh scheduler (every {self._interval:.0f}s)")
        self._register_jobs()
        self.scheduler.start()
        self._started = True

    def shutdown(self) -> None:
        """Stop without waiting for a running refresh."""
        if not self._started:
            return

        logger.info("Stopping refresh scheduler")
        self.scheduler.shutdown(wait=False)
        self._started = False

    def job_ids(self) -> list[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    # --------------------------------------------------
    # Job registration
    # --------------------------------------------------

    def _register_jobs(self) -> None:
        self.scheduler.add_job(
            self._warmer.refresh,
            trigger=IntervalTrigger(seconds=self._interval),
            id=self.JOB_REFRESH,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )
        self.scheduler.add_job(
            self._warmer.refresh,
            trigger=DateTrigger(run_date=datetime.now(UTC) + timedelta(seconds=self._warmup_delay)),
            id=self.JOB_WARMUP,
            replace_existing=True,
            misfire_grace_time=300,
        )
