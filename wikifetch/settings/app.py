"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from wikifetch.article.models import DEFAULT_SITE
from wikifetch.fetch.config import FetchConfig
from wikifetch.fetch.constants import DEFAULT_MAX_WORKERS, DEFAULT_USER_AGENT
from wikifetch.fetch.models import RetryPolicy


class AppSettings(BaseSettings):
    """Centralized environment configuration (``WIKIFETCH_*`` variables)."""

    model_config = SettingsConfigDict(
        env_prefix="WIKIFETCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: Path = Field(default=Path("data/articles.sqlite"))
    site: str = DEFAULT_SITE
    user_agent: str = DEFAULT_USER_AGENT
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1, le=64)
    timeout_seconds: float = Field(default=30.0, ge=0.1, le=300.0)
    max_retries: int = Field(default=3, ge=0, le=10)
    log_level: str = "INFO"
    api_scheme: Literal["http", "https"] = "https"

    def to_fetch_config(self) -> FetchConfig:
        """Build the fetch configuration these settings describe."""
        return FetchConfig(
            user_agent=self.user_agent,
            default_timeout_seconds=self.timeout_seconds,
            max_workers=self.max_workers,
            retry_policy=RetryPolicy(max_retries=self.max_retries),
            api_scheme=self.api_scheme,
        )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
