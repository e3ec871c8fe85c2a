"""Parse MediaWiki ``action=mobileview`` responses into articles."""

import json
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError

from wikifetch.article.errors import ArticleErrorClass, ArticleFetchError
from wikifetch.article.models import Article, ArticleTitle, Section


logger = structlog.get_logger()

MOBILEVIEW_PROPS = (
    "sections",
    "text",
    "lastmodified",
    "lastmodifiedby",
    "languagecount",
    "id",
    "protection",
    "editable",
    "displaytitle",
    "description",
)

SECTION_PROPS = ("toclevel", "line", "anchor", "level", "number", "fromtitle", "index")


def mobileview_params(title: ArticleTitle) -> dict[str, str]:
    """Query parameters requesting every section of ``title``."""
    return {
        "action": "mobileview",
        "format": "json",
        "page": title.text,
        "sections": "all",
        "prop": "|".join(MOBILEVIEW_PROPS),
        "sectionprop": "|".join(SECTION_PROPS),
        "noheadings": "true",
        "redirect": "yes",
    }


def parse_mobileview(
    body: bytes,
    requested: ArticleTitle,
) -> Article:
    """Build an Article from a mobileview response body.

    Args:
        body: Raw response body.
        requested: Title that was asked for.

    Returns:
        The parsed article. When the API followed a redirect, its title is
        the redirect target and ``redirected_from`` holds the requested text.

    Raises:
        ArticleFetchError: PARSE for malformed documents, DATA_NOT_FOUND or
            API_ERROR for API error objects and empty pages.
    """
    try:
        document = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ArticleFetchError(
            ArticleErrorClass.PARSE,
            f"Response is not valid JSON: {e}",
            title=requested.key,
        ) from e

    if not isinstance(document, dict):
        raise ArticleFetchError(
            ArticleErrorClass.PARSE,
            "Response is not a JSON object",
            title=requested.key,
        )

    error = document.get("error")
    if isinstance(error, dict):
        raise ArticleFetchError.from_api_error(
            str(error.get("code", "unknown")),
            str(error.get("info", "")),
            title=requested.key,
        )

    view = document.get("mobileview")
    if not isinstance(view, dict):
        raise ArticleFetchError(
            ArticleErrorClass.PARSE,
            "Response has no mobileview object",
            title=requested.key,
        )

    raw_sections = view.get("sections")
    if not isinstance(raw_sections, list) or not raw_sections:
        raise ArticleFetchError(
            ArticleErrorClass.DATA_NOT_FOUND,
            "Article has no sections",
            title=requested.key,
        )

    title = requested
    redirected_from: str | None = None
    redirected = view.get("redirected")
    if isinstance(redirected, str) and redirected:
        title = ArticleTitle.from_string(requested.site, redirected)
        redirected_from = requested.text
        logger.debug(
            "article_redirected",
            component="parser",
            requested=requested.key,
            target=title.key,
        )

    try:
        return Article(
            title=title,
            article_id=_as_int(view.get("id")),
            display_title=view.get("displaytitle"),
            last_modified=_parse_timestamp(view.get("lastmodified")),
            last_modified_by=_editor_name(view.get("lastmodifiedby")),
            language_count=_as_int(view.get("languagecount")) or 0,
            editable=bool(view.get("editable", False)),
            # The API encodes "no protection" as an empty list
            protection=view.get("protection") or {},
            description=view.get("description"),
            redirected_from=redirected_from,
            sections=[
                _parse_section(position, raw)
                for position, raw in enumerate(raw_sections)
            ],
        )
    except (ValidationError, TypeError, ValueError) as e:
        raise ArticleFetchError(
            ArticleErrorClass.PARSE,
            f"Malformed mobileview document: {e}",
            title=requested.key,
        ) from e


def _parse_section(position: int, raw: Any) -> Section:
    if not isinstance(raw, dict):
        msg = f"Section {position} is not an object"
        raise TypeError(msg)
    section_id = _as_int(raw.get("id"))
    return Section(
        index=position if section_id is None else section_id,
        level=_as_int(raw.get("level")),
        toc_level=_as_int(raw.get("toclevel")),
        line=raw.get("line"),
        anchor=raw.get("anchor"),
        number=_as_str(raw.get("number")),
        from_title=raw.get("fromtitle"),
        text=raw.get("text") or "",
    )


def _as_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _editor_name(value: Any) -> str | None:
    if isinstance(value, dict):
        name = value.get("name")
        return str(name) if name else None
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse MediaWiki ISO-8601 timestamps such as ``2015-06-01T12:00:00Z``."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("invalid_timestamp", component="parser", value=value)
        return None
