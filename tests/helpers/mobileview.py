"""Canned MediaWiki mobileview responses for tests."""

import json
from typing import Any


SAMPLE_SECTIONS: list[dict[str, Any]] = [
    {"id": 0, "text": "<p><b>Barack Obama</b> is an American politician.</p>"},
    {
        "id": 1,
        "toclevel": 1,
        "level": "2",
        "line": "Early life and career",
        "number": "1",
        "index": "1",
        "fromtitle": "Barack_Obama",
        "anchor": "Early_life_and_career",
        "text": "<p>Obama was born in Honolulu.</p>",
    },
    {
        "id": 2,
        "toclevel": 2,
        "level": "3",
        "line": "Education",
        "number": "1.1",
        "index": "2",
        "fromtitle": "Barack_Obama",
        "anchor": "Education",
        "text": "<p>Columbia University and Harvard Law School.</p>",
    },
    {
        "id": 3,
        "toclevel": 1,
        "level": "2",
        "line": "Presidency",
        "number": "2",
        "index": "3",
        "fromtitle": "Barack_Obama",
        "anchor": "Presidency",
        "text": "<p>He served two terms.</p>",
    },
]


def mobileview_document(
    sections: list[dict[str, Any]] | None = None,
    redirected: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a mobileview response document."""
    view: dict[str, Any] = {
        "lastmodified": "2015-06-01T12:34:56Z",
        "lastmodifiedby": {"name": "ExampleEditor", "gender": "unknown"},
        "id": 534366,
        "languagecount": 212,
        "displaytitle": "Barack Obama",
        "protection": {"edit": ["autoconfirmed"]},
        "editable": True,
        "description": "44th President of the United States",
        "sections": SAMPLE_SECTIONS if sections is None else sections,
    }
    if redirected is not None:
        view["redirected"] = redirected
    view.update(extra)
    return {"mobileview": view}


def mobileview_payload(
    sections: list[dict[str, Any]] | None = None,
    redirected: str | None = None,
    **extra: Any,
) -> bytes:
    """Serialized mobileview response body."""
    return json.dumps(mobileview_document(sections, redirected, **extra)).encode()


def api_error_payload(code: str, info: str) -> bytes:
    """Serialized API error response body."""
    return json.dumps({"error": {"code": code, "info": info}}).encode()


def large_mobileview_payload(min_bytes: int = 64 * 1024) -> bytes:
    """A mobileview body big enough to stream in several chunks."""
    filler = "x" * min_bytes
    sections = [dict(SAMPLE_SECTIONS[0], text=f"<p>{filler}</p>"), *SAMPLE_SECTIONS[1:]]
    return mobileview_payload(sections)
