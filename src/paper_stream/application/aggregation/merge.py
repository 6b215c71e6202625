"""
Merge steps applied to the combined output of all sources.

Order matters and is fixed: dedup -> sort -> diff filter -> cap.

Deduplication:
    First seen wins. A record is dropped when its normalized title, its
    arXiv id, or its DOI has already been seen. The three sets are checked
    independently, so a record that shares only an id with an earlier
    record is dropped even if the titles differ, and vice versa.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from paper_stream.models import Paper, filter_published_after
from paper_stream.shared.dates import parse_timestamp, sort_key

logger = logging.getLogger(__name__)


@dataclass
class AggregationStats:
    """Statistics from one aggregation call."""

    total_input: int = 0
    unique_papers: int = 0
    duplicates_removed: int = 0
    successful_sources: int = 0
    failed_sources: int = 0
    used_fallback: bool = False
    by_source: dict[str, int] = field(default_factory=dict)

    def count_sources(self, papers: Iterable[Paper]) -> None:
        for paper in papers:
            name = paper.source.value
            self.by_source[name] = self.by_source.get(name, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_input": self.total_input,
            "unique_papers": self.unique_papers,
            "duplicates_removed": self.duplicates_removed,
            "successful_sources": self.successful_sources,
            "failed_sources": self.failed_sources,
            "used_fallback": self.used_fallback,
            "by_source": self.by_source,
        }


def deduplicate_papers(papers: Iterable[Paper]) -> list[Paper]:
    """Drop later duplicates by normalized title, arXiv id, or DOI."""
    seen_titles: set[str] = set()
    seen_arxiv_ids: set[str] = set()
    seen_dois: set[str] = set()

    unique = []
    for paper in papers:
        title = paper.normalized_title
        if title in seen_titles:
            continue
        if paper.arxiv_id and paper.arxiv_id in seen_arxiv_ids:
            continue
        if paper.doi and paper.doi in seen_dois:
            continue

        seen_titles.add(title)
        if paper.arxiv_id:
            seen_arxiv_ids.add(paper.arxiv_id)
        if paper.doi:
            seen_dois.add(paper.doi)
        unique.append(paper)
    return unique


def sort_by_published_date(papers: Iterable[Paper]) -> list[Paper]:
    """Newest first; unknown dates last. Ties keep their input order."""
    return sorted(papers, key=lambda p: sort_key(p.published_date), reverse=True)


def filter_since(papers: Sequence[Paper], last_update: str | None) -> list[Paper]:
    """
    Keep papers published strictly after ``last_update``.

    An absent or unparsable ``last_update`` leaves the list unfiltered.
    """
    if not last_update:
        return list(papers)
    since = parse_timestamp(last_update)
    if since is None:
        logger.warning(f"Ignoring unparsable lastUpdate {last_update!r}")
        return list(papers)
    return filter_published_after(papers, since)


def cap_results(papers: Sequence[Paper], max_results: int) -> list[Paper]:
    return list(papers[:max_results])
