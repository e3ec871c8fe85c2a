"""Configuration models for the HTTP fetch layer."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wikifetch.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_USER_AGENT,
)
from wikifetch.fetch.models import RetryPolicy


class FetchConfig(BaseModel):
    """Configuration for the HTTP fetch layer.

    Central configuration for all HTTP fetch operations including
    timeouts, retry policy, and the worker pool used by the manager.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )
    default_timeout_seconds: Annotated[float, Field(ge=0.1, le=300.0)] = 30.0
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=200 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    max_workers: Annotated[int, Field(ge=1, le=64)] = DEFAULT_MAX_WORKERS
    api_scheme: Literal["http", "https"] = "https"
    extra_headers: dict[str, str] = Field(
        default_factory=dict, description="Headers added to every request"
    )

    @field_validator("extra_headers")
    @classmethod
    def validate_no_auth_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no credentials are stored in config."""
        forbidden = {"authorization", "cookie", "x-api-key"}
        for key in v:
            if key.lower() in forbidden:
                msg = (
                    f"Header '{key}' must not be stored in config; "
                    "use environment variables"
                )
                raise ValueError(msg)
        return v
