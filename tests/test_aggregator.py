"""Tests for PaperAggregator - fan-out, fallback, merge pipeline."""

import asyncio

import pytest

from paper_stream.application.aggregation import PaperAggregator
from paper_stream.infrastructure.sources import FALLBACK_CORPUS, FallbackSource
from paper_stream.models import PaperSource
from paper_stream.shared.exceptions import InvalidRequestError

from conftest import FakeSource, make_paper, make_registry, unavailable


def aggregator_for(*sources, fallback=None, **kwargs):
    return PaperAggregator(make_registry(*sources, fallback=fallback), **kwargs)


# ============================================================
# Fan-out
# ============================================================


class TestFanOut:
    async def test_every_adapter_called_with_same_arguments(self):
        arxiv = FakeSource(PaperSource.ARXIV, [make_paper("A")])
        openalex = FakeSource(PaperSource.OPENALEX, [make_paper("B", source=PaperSource.OPENALEX)])

        await aggregator_for(arxiv, openalex).aggregate(["ml", "nlp"], include_preprints=False)

        assert arxiv.calls == [(("ml", "nlp"), False)]
        assert openalex.calls == [(("ml", "nlp"), False)]

    async def test_partial_failure_keeps_other_results(self):
        arxiv = FakeSource(PaperSource.ARXIV, error=unavailable(PaperSource.ARXIV))
        openalex = FakeSource(PaperSource.OPENALEX, [make_paper("Survives", source=PaperSource.OPENALEX)])

        result = await aggregator_for(arxiv, openalex).aggregate_with_stats(["ml"])

        assert [p.title for p in result.papers] == ["Survives"]
        assert result.stats.successful_sources == 1
        assert result.stats.failed_sources == 1
        assert result.stats.used_fallback is False

    async def test_unexpected_exception_counts_as_failure(self):
        broken = FakeSource(PaperSource.ARXIV, error=KeyError("title"))
        healthy = FakeSource(PaperSource.OPENALEX, [make_paper("Ok", source=PaperSource.OPENALEX)])

        result = await aggregator_for(broken, healthy).aggregate_with_stats(["ml"])
        assert result.stats.failed_sources == 1
        assert [p.title for p in result.papers] == ["Ok"]

    async def test_adapters_run_concurrently(self):
        slow = [FakeSource(s, [make_paper(s.value, source=s)], delay=0.2) for s in
                (PaperSource.ARXIV, PaperSource.OPENALEX, PaperSource.SEMANTIC_SCHOLAR)]

        loop = asyncio.get_running_loop()
        started = loop.time()
        await aggregator_for(*slow).aggregate(["ml"])
        assert loop.time() - started < 0.5

    async def test_hanging_adapter_times_out(self):
        hanging = FakeSource(PaperSource.ARXIV, [make_paper("Late")], delay=5)
        fast = FakeSource(PaperSource.OPENALEX, [make_paper("Fast", source=PaperSource.OPENALEX)])

        result = await aggregator_for(hanging, fast, adapter_timeout=0.05).aggregate_with_stats(["ml"])
        assert [p.title for p in result.papers] == ["Fast"]
        assert result.stats.failed_sources == 1

    async def test_empty_tags_rejected(self):
        with pytest.raises(InvalidRequestError):
            await aggregator_for().aggregate([])


# ============================================================
# Fallback policy
# ============================================================


class TestFallback:
    async def test_all_adapters_fail(self):
        sources = [FakeSource(s, error=unavailable(s)) for s in
                   (PaperSource.ARXIV, PaperSource.OPENALEX, PaperSource.SEMANTIC_SCHOLAR)]

        result = await aggregator_for(*sources).aggregate_with_stats(["machine learning"])

        assert result.papers
        assert result.stats.used_fallback is True
        assert all(p.source is PaperSource.FALLBACK for p in result.papers)

    async def test_success_with_no_papers_uses_fallback(self):
        empty = FakeSource(PaperSource.ARXIV, [])
        result = await aggregator_for(empty).aggregate_with_stats(["transformers"])
        assert result.stats.used_fallback is True
        assert result.papers

    async def test_fallback_replaces_collected_papers(self):
        fallback = FakeSource(PaperSource.ARXIV, [make_paper("From fallback", source=PaperSource.FALLBACK)])
        empty = FakeSource(PaperSource.OPENALEX, [])

        papers = await aggregator_for(empty, fallback=fallback).aggregate(["x"])
        assert [p.title for p in papers] == ["From fallback"]

    async def test_no_real_adapters(self):
        papers = await aggregator_for().aggregate(["learning"])
        assert {p.title for p in papers} <= {p.title for p in FALLBACK_CORPUS}
        assert papers

    async def test_fallback_not_used_when_sources_succeed(self):
        fallback = FakeSource(PaperSource.ARXIV, [make_paper("Should not appear")])
        real = FakeSource(PaperSource.OPENALEX, [make_paper("Real", source=PaperSource.OPENALEX)])

        await aggregator_for(real, fallback=fallback).aggregate(["x"])
        assert fallback.calls == []


# ============================================================
# Merge pipeline
# ============================================================


class TestPipeline:
    async def test_cross_source_duplicates_removed(self):
        arxiv = FakeSource(PaperSource.ARXIV, [make_paper("Deep Learning", arxiv_id="1")])
        s2 = FakeSource(
            PaperSource.SEMANTIC_SCHOLAR,
            [make_paper("deep   learning!", source=PaperSource.SEMANTIC_SCHOLAR, arxiv_id="2")],
        )

        result = await aggregator_for(arxiv, s2).aggregate_with_stats(["dl"])
        assert len(result.papers) == 1
        assert result.papers[0].source is PaperSource.ARXIV
        assert result.stats.duplicates_removed == 1

    async def test_sorted_newest_first(self):
        arxiv = FakeSource(PaperSource.ARXIV, [make_paper("Old", "2023-01-01"), make_paper("Undated", "")])
        openalex = FakeSource(PaperSource.OPENALEX, [make_paper("New", "2024-05-01", PaperSource.OPENALEX)])

        papers = await aggregator_for(arxiv, openalex).aggregate(["x"])
        assert [p.title for p in papers] == ["New", "Old", "Undated"]

    async def test_last_update_filters(self):
        arxiv = FakeSource(PaperSource.ARXIV, [make_paper("Jan", "2024-01-01"), make_paper("Feb", "2024-02-01")])

        papers = await aggregator_for(arxiv).aggregate(["x"], last_update="2024-01-15")
        assert [p.title for p in papers] == ["Feb"]

    async def test_unparsable_last_update_ignored(self):
        arxiv = FakeSource(PaperSource.ARXIV, [make_paper("Jan", "2024-01-01")])
        papers = await aggregator_for(arxiv).aggregate(["x"], last_update="whenever")
        assert [p.title for p in papers] == ["Jan"]

    async def test_capped_to_most_recent_fifty(self):
        papers_in = [make_paper(f"Paper {i:02d}", f"2024-01-{(i % 28) + 1:02d}T{i % 24:02d}:00:00") for i in range(80)]
        arxiv = FakeSource(PaperSource.ARXIV, papers_in)

        papers = await aggregator_for(arxiv).aggregate(["x"])

        assert len(papers) == 50
        expected = sorted(papers_in, key=lambda p: p.published_date, reverse=True)[:50]
        assert {p.title for p in papers} == {p.title for p in expected}

    async def test_max_results_configurable(self):
        arxiv = FakeSource(PaperSource.ARXIV, [make_paper(f"P{i}") for i in range(10)])
        papers = await aggregator_for(arxiv, max_results=3).aggregate(["x"])
        assert len(papers) == 3

    async def test_fallback_filtered_by_last_update(self):
        down = FakeSource(PaperSource.ARXIV, error=unavailable(PaperSource.ARXIV))
        agg = aggregator_for(down, fallback=FallbackSource(latency=0))

        papers = await agg.aggregate(["transformers"], last_update="2024-03-09")
        assert [p.published_date for p in papers] == ["2024-03-15", "2024-03-10"]
