"""
OpenAlex Source

Open scholarly metadata via the OpenAlex works API.

API Documentation: https://docs.openalex.org/

Notes:
- No API key; a contact email puts requests in the polite pool
- Only the first 3 tags are queried, one request each
- Abstracts arrive as inverted indices and are rebuilt here
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from paper_stream.infrastructure.sources.base import SourceAdapter
from paper_stream.infrastructure.sources.base_client import BaseAPIClient
from paper_stream.models import Paper, PaperSource
from paper_stream.settings import DEFAULT_CONTACT_EMAIL

logger = logging.getLogger(__name__)

OA_WORKS_URL = "https://api.openalex.org/works"
DOI_PREFIX = "https://doi.org/"

MAX_TAGS = 3
PER_PAGE = 10
TAG_PAUSE = 0.1


class OpenAlexSource(BaseAPIClient, SourceAdapter):
    """
    OpenAlex works adapter.

    Usage:
        source = OpenAlexSource(email="you@example.org")
        papers = await source.fetch(["graph neural networks"], include_preprints=False)
    """

    source = PaperSource.OPENALEX
    _service_name = "OpenAlex"

    def __init__(
        self,
        email: str | None = None,
        timeout: float = 30.0,
        tag_pause: float = TAG_PAUSE,
    ):
        self._email = email or DEFAULT_CONTACT_EMAIL
        self._tag_pause = tag_pause
        super().__init__(
            timeout=timeout,
            min_interval=0.1,
            headers={
                "User-Agent": f"paper-stream/1.0 (mailto:{self._email})",
                "Accept": "application/json",
            },
        )

    async def fetch(self, tags: Sequence[str], include_preprints: bool) -> list[Paper]:
        async def search_tag(tag: str) -> list[Paper]:
            return await self._search(tag, include_preprints)

        return await self._fetch_per_tag(list(tags)[:MAX_TAGS], search_tag, self._tag_pause)

    async def _search(self, tag: str, include_preprints: bool) -> list[Paper]:
        params = {
            "search": tag,
            "sort": "publication_date:desc",
            "per_page": PER_PAGE,
            "mailto": self._email,
        }
        logger.debug(f"OpenAlex search: {tag}")
        data = await self._make_request(OA_WORKS_URL, params=params)

        papers = []
        for work in (data or {}).get("results") or []:
            try:
                paper = self._normalize_work(work)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"OpenAlex: skipping malformed work: {e}")
                continue
            if include_preprints or not paper.is_preprint:
                papers.append(paper)
        return papers

    def _normalize_work(self, work: dict[str, Any]) -> Paper:
        """Normalize an OpenAlex work into a Paper."""
        doi = work.get("doi") or ""
        if doi.startswith(DOI_PREFIX):
            doi = doi[len(DOI_PREFIX):]

        authors = []
        for authorship in work.get("authorships") or []:
            name = (authorship.get("author") or {}).get("display_name")
            if name:
                authors.append(name)

        url = f"{DOI_PREFIX}{doi}" if doi else ""
        if not url:
            location = work.get("primary_location") or {}
            url = location.get("landing_page_url") or work.get("id") or ""

        return Paper(
            title=(
                (work.get("title") or "").strip()
                or (work.get("display_name") or "").strip()
                or "Untitled"
            ),
            abstract=self._get_abstract(work),
            authors=tuple(authors),
            published_date=work.get("publication_date") or "",
            url=url,
            source=PaperSource.OPENALEX,
            is_preprint=work.get("type") == "preprint",
            doi=doi or None,
        )

    @staticmethod
    def _get_abstract(work: dict[str, Any]) -> str:
        """
        Rebuild the abstract from OpenAlex's inverted index.

        Format: {"word": [positions], ...}
        """
        abstract_index = work.get("abstract_inverted_index")
        if not isinstance(abstract_index, dict) or not abstract_index:
            return ""

        word_positions = []
        for word, positions in abstract_index.items():
            for pos in positions or []:
                if isinstance(pos, int):
                    word_positions.append((pos, word))

        word_positions.sort(key=lambda x: x[0])
        return " ".join(word for _, word in word_positions)

    async def aclose(self) -> None:
        await self.close()
