"""HTTP fetch layer with retries, streaming progress and cancellation.

This module provides HTTP fetch operations with:
- Configurable retry policy with exponential backoff
- Maximum response size enforcement
- Download progress and cooperative cancellation
- Header redaction for security
- Metrics collection for observability
- A worker-pool request manager for asynchronous fetchers
"""

from wikifetch.fetch.client import DownloadProgress, HttpFetcher
from wikifetch.fetch.config import FetchConfig
from wikifetch.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)
from wikifetch.fetch.manager import ManagerClosedError, RequestOperationManager
from wikifetch.fetch.metrics import FetchMetrics
from wikifetch.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
    RetryPolicy,
)
from wikifetch.fetch.redact import redact_headers, redact_url_credentials


__all__ = [
    # Client
    "HttpFetcher",
    "DownloadProgress",
    # Manager
    "RequestOperationManager",
    "ManagerClosedError",
    # Config
    "FetchConfig",
    # Models
    "FetchResult",
    "FetchError",
    "FetchErrorClass",
    "RetryPolicy",
    "ResponseSizeExceededError",
    # Constants
    "HTTP_STATUS_OK_MIN",
    "HTTP_STATUS_OK_MAX",
    "HTTP_STATUS_NOT_MODIFIED",
    "HTTP_STATUS_TOO_MANY_REQUESTS",
    "DEFAULT_MAX_RESPONSE_SIZE_BYTES",
    "DEFAULT_CHUNK_SIZE",
    "MAX_RETRY_AFTER_SECONDS",
    # Metrics
    "FetchMetrics",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]
