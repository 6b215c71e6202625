"""Tests for OpenAlexSource."""

from unittest.mock import AsyncMock, patch

import pytest

from paper_stream.infrastructure.sources.openalex import OA_WORKS_URL, OpenAlexSource
from paper_stream.models import PaperSource
from paper_stream.settings import DEFAULT_CONTACT_EMAIL
from paper_stream.shared.exceptions import SourceUnavailableError


@pytest.fixture
def source():
    s = OpenAlexSource(email="test@example.com", tag_pause=0)
    s._last_request_time = 0
    s._min_interval = 0
    return s


def work(**overrides):
    data = {
        "id": "https://openalex.org/W123",
        "title": "Test Paper",
        "publication_date": "2024-02-10",
        "type": "article",
        "doi": "https://doi.org/10.1234/test",
        "authorships": [
            {"author": {"display_name": "John Doe"}},
            {"author": {}},
            {"author": {"display_name": "Jane Roe"}},
        ],
        "abstract_inverted_index": {"Graphs": [0], "are": [1], "everywhere.": [2]},
        "primary_location": {"landing_page_url": "https://publisher.example.com/W123"},
    }
    data.update(overrides)
    return data


# ============================================================
# Init
# ============================================================


class TestInit:
    async def test_defaults(self):
        s = OpenAlexSource()
        assert s._email == DEFAULT_CONTACT_EMAIL
        assert s.name == "OpenAlex"

    async def test_context_manager(self):
        async with OpenAlexSource() as s:
            assert s is not None


# ============================================================
# Normalization
# ============================================================


class TestNormalizeWork:
    def test_fields(self, source):
        p = source._normalize_work(work())
        assert p.title == "Test Paper"
        assert p.doi == "10.1234/test"
        assert p.url == "https://doi.org/10.1234/test"
        assert p.authors == ("John Doe", "Jane Roe")
        assert p.abstract == "Graphs are everywhere."
        assert p.published_date == "2024-02-10"
        assert p.source is PaperSource.OPENALEX
        assert p.is_preprint is False
        assert p.arxiv_id is None

    def test_preprint_type(self, source):
        assert source._normalize_work(work(type="preprint")).is_preprint is True

    def test_no_doi_uses_landing_page(self, source):
        p = source._normalize_work(work(doi=None))
        assert p.doi is None
        assert p.url == "https://publisher.example.com/W123"

    def test_missing_title(self, source):
        p = source._normalize_work(work(title=None, display_name=None))
        assert p.title == "Untitled"

    def test_blank_title_falls_back(self, source):
        assert source._normalize_work(work(title="   ", display_name="Shown Name")).title == "Shown Name"
        assert source._normalize_work(work(title="  ", display_name=" ")).title == "Untitled"

    def test_abstract_out_of_order_positions(self):
        index = {"world": [1], "hello": [0, 2]}
        assert OpenAlexSource._get_abstract({"abstract_inverted_index": index}) == "hello world hello"

    def test_no_abstract(self):
        assert OpenAlexSource._get_abstract({"abstract_inverted_index": None}) == ""


# ============================================================
# fetch
# ============================================================


class TestFetch:
    @patch.object(OpenAlexSource, "_make_request")
    async def test_first_three_tags_only(self, mock_req, source):
        mock_req.return_value = {"results": []}
        await source.fetch(["a", "b", "c", "d"], include_preprints=True)

        assert mock_req.call_count == 3
        searched = [c.kwargs["params"]["search"] for c in mock_req.call_args_list]
        assert searched == ["a", "b", "c"]
        params = mock_req.call_args.kwargs["params"]
        assert mock_req.call_args[0][0] == OA_WORKS_URL
        assert params["sort"] == "publication_date:desc"
        assert params["per_page"] == 10
        assert params["mailto"] == "test@example.com"

    @patch.object(OpenAlexSource, "_make_request")
    async def test_preprints_filtered(self, mock_req, source):
        mock_req.return_value = {
            "results": [work(title="Journal"), work(title="Preprint", type="preprint", doi=None)]
        }
        without = await source.fetch(["x"], include_preprints=False)
        with_pp = await source.fetch(["x"], include_preprints=True)
        assert [p.title for p in without] == ["Journal"]
        assert [p.title for p in with_pp] == ["Journal", "Preprint"]

    @patch.object(OpenAlexSource, "_make_request")
    async def test_one_failing_tag_skipped(self, mock_req, source):
        mock_req.side_effect = [
            SourceUnavailableError("OpenAlex", "HTTP 500"),
            {"results": [work()]},
        ]
        papers = await source.fetch(["a", "b"], include_preprints=True)
        assert [p.title for p in papers] == ["Test Paper"]

    @patch.object(OpenAlexSource, "_make_request")
    async def test_malformed_work_does_not_drop_other_tags(self, mock_req, source):
        mock_req.side_effect = [
            {"results": [work(title="From first tag")]},
            {"results": [work(title="   ", display_name=None), work(title=42), work(title="Good")]},
        ]
        papers = await source.fetch(["x", "y"], include_preprints=True)
        assert [p.title for p in papers] == ["From first tag", "Untitled", "Good"]

    @patch.object(OpenAlexSource, "_make_request")
    async def test_all_tags_failing_raises(self, mock_req, source):
        mock_req.side_effect = SourceUnavailableError("OpenAlex", "HTTP 500")
        with pytest.raises(SourceUnavailableError, match="all 2 tag requests failed"):
            await source.fetch(["a", "b"], include_preprints=True)

    @patch.object(OpenAlexSource, "_make_request")
    async def test_missing_results_key(self, mock_req, source):
        mock_req.return_value = {"meta": {}}
        assert await source.fetch(["a"], include_preprints=True) == []

    @patch("paper_stream.infrastructure.sources.base.asyncio.sleep", new_callable=AsyncMock)
    @patch.object(OpenAlexSource, "_make_request")
    async def test_pause_between_tags(self, mock_req, mock_sleep):
        s = OpenAlexSource()
        mock_req.return_value = {"results": []}
        await s.fetch(["a", "b"], include_preprints=True)
        mock_sleep.assert_awaited_with(0.1)
        assert mock_sleep.await_count == 2
