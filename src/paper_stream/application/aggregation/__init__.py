"""
Paper aggregation.

Fan-out to every real source, fallback on total failure, then
dedup -> sort -> diff -> cap.
"""

from .aggregator import AggregationResult, PaperAggregator
from .merge import (
    AggregationStats,
    cap_results,
    deduplicate_papers,
    filter_since,
    sort_by_published_date,
)

__all__ = [
    "AggregationResult",
    "AggregationStats",
    "PaperAggregator",
    "cap_results",
    "deduplicate_papers",
    "filter_since",
    "sort_by_published_date",
]
