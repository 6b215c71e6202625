"""Domain models shared across sources, aggregation and cache."""

from .paper import Paper, PaperSource, filter_published_after, normalize_title

__all__ = [
    "Paper",
    "PaperSource",
    "filter_published_after",
    "normalize_title",
]
