"""Unit tests for the mobileview response parser."""

from datetime import UTC, datetime

import pytest

from tests.helpers.mobileview import (
    SAMPLE_SECTIONS,
    api_error_payload,
    mobileview_payload,
)
from wikifetch.article.errors import ArticleErrorClass, ArticleFetchError
from wikifetch.article.models import ArticleTitle
from wikifetch.article.parser import mobileview_params, parse_mobileview


@pytest.fixture
def title() -> ArticleTitle:
    return ArticleTitle(site="en.wikipedia.org", text="Barack Obama")


class TestMobileviewParams:
    """Tests for request parameter construction."""

    def test_requests_all_sections(self, title: ArticleTitle) -> None:
        params = mobileview_params(title)

        assert params["action"] == "mobileview"
        assert params["format"] == "json"
        assert params["page"] == "Barack Obama"
        assert params["sections"] == "all"
        assert "text" in params["prop"].split("|")
        assert "anchor" in params["sectionprop"].split("|")


class TestParseMobileview:
    """Tests for successful parsing."""

    def test_parses_metadata(self, title: ArticleTitle) -> None:
        article = parse_mobileview(mobileview_payload(), title)

        assert article.title == title
        assert article.article_id == 534366
        assert article.display_title == "Barack Obama"
        assert article.language_count == 212
        assert article.editable is True
        assert article.protection == {"edit": ["autoconfirmed"]}
        assert article.last_modified_by == "ExampleEditor"
        assert article.last_modified == datetime(2015, 6, 1, 12, 34, 56, tzinfo=UTC)
        assert article.redirected_from is None

    def test_parses_sections_in_order(self, title: ArticleTitle) -> None:
        article = parse_mobileview(mobileview_payload(), title)

        assert [s.index for s in article.sections] == [0, 1, 2, 3]
        assert article.sections[0].is_lead
        education = article.sections[2]
        assert education.line == "Education"
        assert education.level == 3
        assert education.toc_level == 2
        assert education.number == "1.1"
        assert education.anchor == "Education"
        assert education.from_title == "Barack_Obama"
        assert "Harvard" in education.text

    def test_empty_protection_list(self, title: ArticleTitle) -> None:
        """Test that the API's [] for no protection becomes an empty dict."""
        article = parse_mobileview(mobileview_payload(protection=[]), title)

        assert article.protection == {}

    def test_redirect_uses_target_title(self, title: ArticleTitle) -> None:
        requested = ArticleTitle(site="en.wikipedia.org", text="Obama")

        article = parse_mobileview(
            mobileview_payload(redirected="Barack Obama"), requested
        )

        assert article.title == title
        assert article.redirected_from == "Obama"

    def test_bad_timestamp_is_ignored(self, title: ArticleTitle) -> None:
        article = parse_mobileview(mobileview_payload(lastmodified="yesterday"), title)

        assert article.last_modified is None


class TestParseErrors:
    """Tests for error mapping."""

    def _error(self, body: bytes, title: ArticleTitle) -> ArticleFetchError:
        with pytest.raises(ArticleFetchError) as exc_info:
            parse_mobileview(body, title)
        return exc_info.value

    def test_missing_title(self, title: ArticleTitle) -> None:
        error = self._error(
            api_error_payload("missingtitle", "The page you specified doesn't exist"),
            title,
        )

        assert error.error_class == ArticleErrorClass.DATA_NOT_FOUND
        assert error.api_code == "missingtitle"
        assert error.title == title.key

    def test_other_api_error(self, title: ArticleTitle) -> None:
        error = self._error(api_error_payload("internal_api_error", "Boom"), title)

        assert error.error_class == ArticleErrorClass.API_ERROR
        assert error.message == "Boom"

    def test_invalid_json(self, title: ArticleTitle) -> None:
        error = self._error(b"<html>not json</html>", title)

        assert error.error_class == ArticleErrorClass.PARSE

    def test_non_object_document(self, title: ArticleTitle) -> None:
        error = self._error(b"[1, 2, 3]", title)

        assert error.error_class == ArticleErrorClass.PARSE

    def test_missing_mobileview(self, title: ArticleTitle) -> None:
        error = self._error(b'{"query": {}}', title)

        assert error.error_class == ArticleErrorClass.PARSE

    def test_no_sections(self, title: ArticleTitle) -> None:
        error = self._error(mobileview_payload(sections=[]), title)

        assert error.error_class == ArticleErrorClass.DATA_NOT_FOUND

    def test_non_contiguous_sections(self, title: ArticleTitle) -> None:
        sections = [SAMPLE_SECTIONS[0], SAMPLE_SECTIONS[2]]

        error = self._error(mobileview_payload(sections=sections), title)

        assert error.error_class == ArticleErrorClass.PARSE
