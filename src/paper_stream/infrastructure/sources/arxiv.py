"""
arXiv Source

Searches the arXiv Atom API for the newest submissions matching any tag.

API Documentation: https://info.arxiv.org/help/api/user-manual.html

Notes:
- One request per fetch: all tags OR-ed into a single query
- Every arXiv record is a preprint
- Atom is parsed with defusedxml (prevents XML entity attacks)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

import defusedxml.ElementTree as ET  # Security: prevent XML attacks

from paper_stream.infrastructure.sources.base import SourceAdapter
from paper_stream.infrastructure.sources.base_client import BaseAPIClient
from paper_stream.models import Paper, PaperSource
from paper_stream.shared.exceptions import SourceUnavailableError

logger = logging.getLogger(__name__)

ARXIV_API_URL = "http://export.arxiv.org/api/query"
ARXIV_MAX_RESULTS = 20

ATOM_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}

_WHITESPACE = re.compile(r"\s+")


def _clean(text: str | None) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


class ArxivSource(BaseAPIClient, SourceAdapter):
    """arXiv API adapter."""

    source = PaperSource.ARXIV
    _service_name = "arXiv"

    def __init__(self, timeout: float = 30.0, max_results: int = ARXIV_MAX_RESULTS):
        super().__init__(
            timeout=timeout,
            min_interval=0.0,
            headers={"User-Agent": "paper-stream/1.0"},
        )
        self._max_results = max_results

    @staticmethod
    def build_query(tags: Sequence[str]) -> str:
        """``all:"tag one" OR all:"tag two"``"""
        return " OR ".join(f'all:"{tag}"' for tag in tags)

    async def fetch(self, tags: Sequence[str], include_preprints: bool) -> list[Paper]:
        if not include_preprints:
            # Nothing on arXiv survives a "no preprints" filter
            return []

        params = {
            "search_query": self.build_query(tags),
            "start": 0,
            "max_results": self._max_results,
            "sortBy": "submittedDate",
            "sortOrder": "descending",
        }
        logger.info(f"arXiv search: {params['search_query']}")

        xml_text = await self._make_request(ARXIV_API_URL, params=params, expect_json=False)
        return self.parse_atom(xml_text)[: self._max_results]

    def parse_atom(self, xml_text: str) -> list[Paper]:
        """
        Parse an Atom feed into Papers.

        Raises:
            SourceUnavailableError: the document is not valid XML
        """
        try:
            root = ET.fromstring(xml_text)
        except (ET.ParseError, ValueError) as e:
            raise SourceUnavailableError(self._service_name, f"malformed Atom feed: {e}") from e

        papers = []
        for entry in root.findall("atom:entry", ATOM_NS):
            paper = self._parse_entry(entry)
            if paper is not None:
                papers.append(paper)
        return papers

    def _parse_entry(self, entry) -> Paper | None:
        title = _clean(entry.findtext("atom:title", default="", namespaces=ATOM_NS))
        summary = _clean(entry.findtext("atom:summary", default="", namespaces=ATOM_NS))
        if not title or not summary:
            return None

        entry_id = (entry.findtext("atom:id", default="", namespaces=ATOM_NS) or "").strip()
        arxiv_id = entry_id.rstrip("/").rsplit("/", 1)[-1] if entry_id else None

        published = (entry.findtext("atom:published", default="", namespaces=ATOM_NS) or "").strip()

        authors = []
        for author in entry.findall("atom:author", ATOM_NS):
            name = _clean(author.findtext("atom:name", default="", namespaces=ATOM_NS))
            if name:
                authors.append(name)

        doi = _clean(entry.findtext("arxiv:doi", default="", namespaces=ATOM_NS)) or None

        return Paper(
            title=title,
            abstract=summary,
            authors=tuple(authors),
            published_date=published[:10],
            url=entry_id,
            source=PaperSource.ARXIV,
            is_preprint=True,
            arxiv_id=arxiv_id,
            doi=doi,
        )

    async def aclose(self) -> None:
        await self.close()
