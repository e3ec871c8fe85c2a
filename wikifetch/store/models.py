"""Data models for the article data store."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class HttpCacheEntry(BaseModel):
    """Revalidation headers remembered for a stored article."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title_key: str = Field(min_length=1, description="Storage key of the article")
    etag: str | None = Field(default=None, description="ETag from the last 200")
    last_modified: str | None = Field(
        default=None, description="Last-Modified from the last 200"
    )
    last_status: int | None = Field(default=None, description="Last HTTP status")
    last_fetch_at: datetime = Field(description="When the article was last fetched")

    def conditional_headers(self) -> dict[str, str]:
        """Headers that make the next request conditional."""
        headers: dict[str, str] = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        return headers


class StoredTitle(BaseModel):
    """Summary row returned when listing stored articles."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    site: str
    text: str
    section_count: int = Field(ge=0)
    saved_at: datetime
