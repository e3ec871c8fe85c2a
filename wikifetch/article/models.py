"""Domain models for articles, their titles and sections."""

import re
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_SITE = "en.wikipedia.org"

_WHITESPACE = re.compile(r"\s+")


def normalize_title_text(text: str) -> str:
    """Normalize a page title the way MediaWiki displays it.

    Underscores become spaces, runs of whitespace collapse, and the first
    character is upper-cased.
    """
    text = _WHITESPACE.sub(" ", text.replace("_", " ")).strip()
    if not text:
        return text
    return text[0].upper() + text[1:]


class ArticleTitle(BaseModel):
    """Identifies one article on one wiki.

    Text is normalized on construction, so ``ArticleTitle(text="foo_bar")``
    and ``ArticleTitle(text="Foo bar")`` compare equal. Empty text is
    allowed here so that the fetcher can report it through completion.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    site: Annotated[str, Field(min_length=1)] = DEFAULT_SITE
    text: str
    fragment: str | None = None

    @field_validator("site")
    @classmethod
    def normalize_site(cls, v: str) -> str:
        """Lower-case the host and drop any trailing slash."""
        return v.strip().lower().rstrip("/")

    @field_validator("text")
    @classmethod
    def normalize_text(cls, v: str) -> str:
        return normalize_title_text(v)

    @field_validator("fragment")
    @classmethod
    def normalize_fragment(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().replace(" ", "_")
        return v or None

    @classmethod
    def from_string(cls, site: str, value: str) -> "ArticleTitle":
        """Parse ``Title#Fragment`` into a title.

        Args:
            site: Wiki host name.
            value: Title text, optionally followed by ``#fragment``.
        """
        text, _, fragment = value.partition("#")
        return cls(site=site, text=text, fragment=fragment or None)

    @property
    def is_empty(self) -> bool:
        return not self.text

    @property
    def dataset_text(self) -> str:
        """Title text in underscore form, as used in URLs."""
        return self.text.replace(" ", "_")

    @property
    def key(self) -> str:
        """Stable storage key: ``site/Title_text``."""
        return f"{self.site}/{self.dataset_text}"

    def __str__(self) -> str:
        if self.fragment:
            return f"{self.text}#{self.fragment}"
        return self.text


class Section(BaseModel):
    """One section of an article. Index 0 is the lead section."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    index: Annotated[int, Field(ge=0)]
    level: int | None = None
    toc_level: int | None = None
    line: str | None = None
    anchor: str | None = None
    number: str | None = None
    from_title: str | None = None
    text: str = ""

    @property
    def is_lead(self) -> bool:
        return self.index == 0


class Article(BaseModel):
    """An article with all of its sections and page metadata."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: ArticleTitle
    article_id: int | None = None
    display_title: str | None = None
    last_modified: datetime | None = None
    last_modified_by: str | None = None
    language_count: Annotated[int, Field(ge=0)] = 0
    editable: bool = False
    protection: dict[str, Any] = Field(default_factory=dict)
    description: str | None = None
    redirected_from: str | None = None
    sections: list[Section] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_section_indices(self) -> "Article":
        """Sections must be ordered with contiguous indices starting at 0."""
        for position, section in enumerate(self.sections):
            if section.index != position:
                msg = (
                    f"Section at position {position} has index {section.index}; "
                    "indices must be contiguous from 0"
                )
                raise ValueError(msg)
        return self

    @property
    def lead_section(self) -> Section | None:
        return self.sections[0] if self.sections else None

    def section_for_anchor(self, anchor: str) -> Section | None:
        """Find the section whose anchor matches, e.g. a title fragment."""
        for section in self.sections:
            if section.anchor == anchor:
                return section
        return None
