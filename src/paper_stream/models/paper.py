"""
Paper - Normalized Paper Model for Multi-Source Aggregation

Every source adapter produces Paper records; the aggregator, the cache and
the HTTP layer only ever see this shape.

Architecture Decision:
    We use frozen dataclasses instead of Pydantic for the domain record:
    1. Immutable value semantics once constructed
    2. Lightweight - serialization is a plain dict round trip
    The HTTP layer declares its own Pydantic response models.

Wire format (API bodies and durable cache records) uses camelCase keys:
    title, abstract, authors, publishedDate, url, source, isPreprint,
    arxivId, doi

Example:
    >>> paper = Paper(
    ...     title="Deep Learning!",
    ...     published_date="2024-02-01",
    ...     source=PaperSource.ARXIV,
    ...     arxiv_id="2402.00001",
    ... )
    >>> paper.normalized_title
    'deep learning'
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from paper_stream.shared.dates import parse_timestamp

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


class PaperSource(str, Enum):
    """The closed set of providers a Paper can come from."""
    ARXIV = "arXiv"
    OPENALEX = "OpenAlex"
    SEMANTIC_SCHOLAR = "Semantic Scholar"
    FALLBACK = "fallback"


def normalize_title(title: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    lowered = _PUNCTUATION.sub("", title.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


@dataclass(frozen=True, slots=True)
class Paper:
    """One paper's metadata, as returned by any source."""

    title: str
    abstract: str = ""
    authors: tuple[str, ...] = field(default_factory=tuple)
    published_date: str = ""
    url: str = ""
    source: PaperSource = PaperSource.FALLBACK
    is_preprint: bool = False
    arxiv_id: str | None = None
    doi: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValueError("Paper title must be a non-empty string")
        # Accept any iterable of names, store an immutable tuple
        if not isinstance(self.authors, tuple):
            object.__setattr__(self, "authors", tuple(self.authors))
        if not isinstance(self.source, PaperSource):
            object.__setattr__(self, "source", PaperSource(self.source))
        # Empty identifiers are the same as absent ones
        if not self.arxiv_id:
            object.__setattr__(self, "arxiv_id", None)
        if not self.doi:
            object.__setattr__(self, "doi", None)

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire format."""
        return {
            "title": self.title,
            "abstract": self.abstract,
            "authors": list(self.authors),
            "publishedDate": self.published_date,
            "url": self.url,
            "source": self.source.value,
            "isPreprint": self.is_preprint,
            "arxivId": self.arxiv_id,
            "doi": self.doi,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Paper:
        """
        Rebuild a Paper from the wire format.

        Raises:
            KeyError: title missing
            ValueError: blank title or unknown source
            TypeError: data is not a mapping
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")
        authors = data.get("authors") or []
        if not isinstance(authors, list):
            raise TypeError("authors must be a list")
        return cls(
            title=data["title"],
            abstract=data.get("abstract") or "",
            authors=tuple(str(a) for a in authors),
            published_date=data.get("publishedDate") or "",
            url=data.get("url") or "",
            source=PaperSource(data.get("source", PaperSource.FALLBACK.value)),
            is_preprint=bool(data.get("isPreprint", False)),
            arxiv_id=data.get("arxivId"),
            doi=data.get("doi"),
        )


def filter_published_after(papers: Iterable[Paper], since: datetime) -> list[Paper]:
    """
    Keep papers published strictly after ``since``.

    Papers whose date is empty or unparsable never pass the filter.
    """
    kept = []
    for paper in papers:
        published = parse_timestamp(paper.published_date)
        if published is not None and published > since:
            kept.append(paper)
    return kept
