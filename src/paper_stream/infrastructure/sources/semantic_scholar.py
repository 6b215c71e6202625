"""
Semantic Scholar Source

Cross-domain search via the Semantic Scholar Graph API.

API Documentation: https://api.semanticscholar.org/api-docs/

Notes:
- Only the first 2 tags are queried, one request each
- An API key (x-api-key) raises the rate limit but is optional
- arXiv / DOI identifiers come from externalIds
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from paper_stream.infrastructure.sources.base import SourceAdapter
from paper_stream.infrastructure.sources.base_client import BaseAPIClient
from paper_stream.models import Paper, PaperSource

logger = logging.getLogger(__name__)

S2_SEARCH_URL = "https://api.semanticscholar.org/graph/v1/paper/search"

# Only what a Paper needs
DEFAULT_FIELDS = [
    "title",
    "abstract",
    "authors",
    "publicationDate",
    "url",
    "venue",
    "isOpenAccess",
    "externalIds",
]

MAX_TAGS = 2
LIMIT = 10
TAG_PAUSE = 0.2


class SemanticScholarSource(BaseAPIClient, SourceAdapter):
    """
    Semantic Scholar paper search adapter.

    Usage:
        source = SemanticScholarSource(api_key=os.environ.get("SEMANTIC_SCHOLAR_API_KEY"))
        papers = await source.fetch(["protein folding"], include_preprints=True)
    """

    source = PaperSource.SEMANTIC_SCHOLAR
    _service_name = "Semantic Scholar"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 30.0,
        tag_pause: float = TAG_PAUSE,
    ):
        """
        Args:
            api_key: Optional S2 API key (higher rate limit)
            timeout: Request timeout in seconds
            tag_pause: Seconds to wait after each per-tag request
        """
        headers = {"Accept": "application/json", "User-Agent": "paper-stream/1.0"}
        if api_key:
            headers["x-api-key"] = api_key
        self._tag_pause = tag_pause
        super().__init__(timeout=timeout, min_interval=0.5, headers=headers)

    async def fetch(self, tags: Sequence[str], include_preprints: bool) -> list[Paper]:
        async def search_tag(tag: str) -> list[Paper]:
            return await self._search(tag, include_preprints)

        return await self._fetch_per_tag(list(tags)[:MAX_TAGS], search_tag, self._tag_pause)

    async def _search(self, tag: str, include_preprints: bool) -> list[Paper]:
        params = {
            "query": tag,
            "limit": LIMIT,
            "sort": "publicationDate:desc",
            "fields": ",".join(DEFAULT_FIELDS),
        }
        logger.debug(f"Semantic Scholar search: {tag}")
        data = await self._make_request(S2_SEARCH_URL, params=params)

        papers = []
        for raw in (data or {}).get("data") or []:
            try:
                paper = self._normalize_paper(raw)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Semantic Scholar: skipping malformed record: {e}")
                continue
            if include_preprints or not paper.is_preprint:
                papers.append(paper)
        return papers

    @staticmethod
    def _normalize_paper(paper: dict[str, Any]) -> Paper:
        """Normalize a Semantic Scholar record into a Paper."""
        external_ids = paper.get("externalIds") or {}
        authors = [a.get("name") for a in paper.get("authors") or [] if a.get("name")]
        venue = paper.get("venue") or ""

        return Paper(
            title=(paper.get("title") or "").strip() or "Untitled",
            abstract=paper.get("abstract") or "",
            authors=tuple(authors),
            published_date=paper.get("publicationDate") or "",
            url=paper.get("url") or "",
            source=PaperSource.SEMANTIC_SCHOLAR,
            is_preprint="arxiv" in venue.lower(),
            arxiv_id=external_ids.get("ArXiv"),
            doi=external_ids.get("DOI"),
        )

    async def aclose(self) -> None:
        await self.close()
