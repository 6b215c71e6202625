"""
Source adapter contract.

Every adapter:
1. Accepts a non-empty sequence of lowercase tags and the preprint flag
2. May limit how many tags it queries and how many results it keeps
3. Applies its own preprint filtering before returning
4. Returns normalized Paper records tagged with its PaperSource
5. Raises SourceUnavailableError when it cannot produce results at all
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import ClassVar

from paper_stream.models import Paper, PaperSource
from paper_stream.shared.exceptions import SourceUnavailableError

logger = logging.getLogger(__name__)


class SourceAdapter(ABC):
    """Abstract base class for paper sources."""

    source: ClassVar[PaperSource]

    @property
    def name(self) -> str:
        return self.source.value

    @abstractmethod
    async def fetch(self, tags: Sequence[str], include_preprints: bool) -> list[Paper]:
        """
        Fetch papers matching any of ``tags``.

        Raises:
            SourceUnavailableError: network failure, malformed response,
                rate limit, or every sub-request failed
        """

    async def aclose(self) -> None:
        """Release network resources. Adapters without any keep the default."""

    async def _fetch_per_tag(
        self,
        tags: Sequence[str],
        fetch_one: Callable[[str], Awaitable[list[Paper]]],
        pause: float = 0.0,
    ) -> list[Paper]:
        """
        Run one sub-request per tag, sequentially, pausing ``pause`` seconds after each.

        A failing tag is logged and skipped. Only when every tag failed is the
        adapter as a whole considered unavailable.
        """
        papers: list[Paper] = []
        failures: list[SourceUnavailableError] = []

        for tag in tags:
            try:
                papers.extend(await fetch_one(tag))
            except SourceUnavailableError as e:
                logger.warning(f"{self.name}: request for tag {tag!r} failed: {e}")
                failures.append(e)
            if pause > 0:
                await asyncio.sleep(pause)

        if tags and len(failures) == len(tags):
            raise SourceUnavailableError(
                self.name, f"all {len(tags)} tag requests failed"
            ) from failures[-1]
        return papers

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} source={self.name!r}>"
