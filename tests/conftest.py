"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Sequence
from pathlib import Path

import pytest

from paper_stream.infrastructure.cache import CacheStore
from paper_stream.infrastructure.sources import FallbackSource, SourceAdapter, SourceRegistry
from paper_stream.models import Paper, PaperSource
from paper_stream.shared.exceptions import SourceUnavailableError

# ============================================================
# Environment Fixtures
# ============================================================


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_store(temp_dir, clock):
    """CacheStore on a temp directory with a 30 minute TTL and a fake clock."""
    return CacheStore(temp_dir / "cache", ttl=1800, clock=clock)


# ============================================================
# Paper Factories
# ============================================================


def make_paper(
    title: str = "Test Paper",
    published_date: str = "2024-01-01",
    source: PaperSource = PaperSource.ARXIV,
    **kwargs,
) -> Paper:
    return Paper(
        title=title,
        abstract=kwargs.pop("abstract", f"Abstract of {title}"),
        authors=kwargs.pop("authors", ("Jane Doe",)),
        published_date=published_date,
        url=kwargs.pop("url", "https://example.com/paper"),
        source=source,
        **kwargs,
    )


@pytest.fixture
def paper_factory():
    return make_paper


@pytest.fixture
def sample_papers():
    return [
        make_paper("Graph Neural Networks at Scale", "2024-02-01", arxiv_id="2402.00001"),
        make_paper("Diffusion Models for Audio", "2024-01-01", PaperSource.OPENALEX, doi="10.1/abc"),
        make_paper("Sparse Attention Revisited", "2023-12-15", PaperSource.SEMANTIC_SCHOLAR),
    ]


# ============================================================
# Fake Sources
# ============================================================


class FakeSource(SourceAdapter):
    """Adapter returning canned papers, raising, or hanging."""

    def __init__(
        self,
        source: PaperSource,
        papers: Sequence[Paper] = (),
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self._source = source
        self.papers = list(papers)
        self.error = error
        self.delay = delay
        self.calls: list[tuple[tuple[str, ...], bool]] = []
        self.closed = False

    @property
    def source(self) -> PaperSource:  # type: ignore[override]
        return self._source

    async def fetch(self, tags, include_preprints):
        self.calls.append((tuple(tags), include_preprints))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.papers)

    async def aclose(self):
        self.closed = True


def unavailable(source: PaperSource) -> SourceUnavailableError:
    return SourceUnavailableError(source.value, "connection refused")


def make_registry(*sources: FakeSource, fallback: SourceAdapter | None = None) -> SourceRegistry:
    return SourceRegistry(
        {s.source: s for s in sources},
        fallback or FallbackSource(latency=0),
    )
