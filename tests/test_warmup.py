"""Tests for CacheWarmer and RefreshScheduler."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from paper_stream.application.aggregation import PaperAggregator
from paper_stream.application.warmup import CacheWarmer, RefreshScheduler
from paper_stream.models import PaperSource

from conftest import FakeSource, make_paper, make_registry


@pytest.fixture
def aggregator():
    arxiv = FakeSource(PaperSource.ARXIV, [make_paper("Warm paper", "2024-02-01")])
    return PaperAggregator(make_registry(arxiv))


# ============================================================
# CacheWarmer
# ============================================================


class TestCacheWarmer:
    async def test_refresh_sets_each_tag_set(self, cache_store, aggregator):
        warmer = CacheWarmer(cache_store, aggregator, [("nlp",), ("vision", "robotics")])

        assert await warmer.refresh() == 2

        for tags in (["nlp"], ["robotics", "vision"]):
            cached = await cache_store.get(cache_store.key(tags, True))
            assert [p.title for p in cached] == ["Warm paper"]
        assert warmer.last_refresh is not None

    async def test_include_preprints_flag_in_key(self, cache_store, aggregator):
        warmer = CacheWarmer(cache_store, aggregator, [("nlp",)], include_preprints=False)
        await warmer.refresh()
        assert await cache_store.get(cache_store.key(["nlp"], False)) is not None
        assert await cache_store.get(cache_store.key(["nlp"], True)) is None

    async def test_one_failure_does_not_stop_others(self, cache_store):
        agg = MagicMock()
        agg.aggregate = AsyncMock(side_effect=[RuntimeError("boom"), [make_paper("Second")]])
        warmer = CacheWarmer(cache_store, agg, [("first",), ("second",)])

        assert await warmer.refresh() == 1
        assert await cache_store.get(cache_store.key(["second"], True)) is not None

    async def test_refresh_sweeps_first(self, cache_store, clock, aggregator):
        await cache_store.set("papers_stale_true", [make_paper("Stale")])
        clock.advance(1800)

        await CacheWarmer(cache_store, aggregator, []).refresh()
        assert not cache_store._path_for("papers_stale_true").exists()

    def test_blank_tag_sets_dropped(self, cache_store, aggregator):
        warmer = CacheWarmer(cache_store, aggregator, [("a",), ()])
        assert warmer.tag_sets == [("a",)]


# ============================================================
# RefreshScheduler
# ============================================================


class TestRefreshScheduler:
    async def test_start_registers_jobs(self, cache_store, aggregator):
        scheduler = RefreshScheduler(CacheWarmer(cache_store, aggregator), interval=60, warmup_delay=5)
        scheduler.start()
        try:
            assert scheduler.running
            assert set(scheduler.job_ids()) == {RefreshScheduler.JOB_REFRESH, RefreshScheduler.JOB_WARMUP}
        finally:
            scheduler.shutdown()
        assert not scheduler.running

    async def test_start_and_shutdown_idempotent(self, cache_store, aggregator):
        backend = MagicMock()
        scheduler = RefreshScheduler(CacheWarmer(cache_store, aggregator), scheduler=backend)

        scheduler.start()
        scheduler.start()
        backend.start.assert_called_once()
        assert backend.add_job.call_count == 2

        scheduler.shutdown()
        scheduler.shutdown()
        backend.shutdown.assert_called_once_with(wait=False)

    def test_shutdown_before_start_is_noop(self, cache_store, aggregator):
        backend = MagicMock()
        RefreshScheduler(CacheWarmer(cache_store, aggregator), scheduler=backend).shutdown()
        backend.shutdown.assert_not_called()
