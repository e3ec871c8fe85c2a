"""HTTP client with retries, size limits, streaming progress and cancellation."""

import threading
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from io import BytesIO

import httpx
import structlog

from wikifetch.fetch.config import FetchConfig
from wikifetch.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)
from wikifetch.fetch.metrics import FetchMetrics
from wikifetch.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    RequestCancelledError,
    ResponseSizeExceededError,
)
from wikifetch.fetch.redact import redact_headers, redact_url_credentials


logger = structlog.get_logger()

# Called with (bytes_received, expected_total); expected_total is None when
# the server sent no Content-Length.
DownloadProgress = Callable[[int, int | None], None]


class HttpFetcher:
    """Blocking HTTP GET client with retries and failure isolation.

    Provides HTTP GET operations with:
    - Configurable retry policy with exponential backoff
    - Retry-After handling for 429 responses
    - Maximum response size enforcement
    - Streaming download progress
    - Cooperative cancellation through a threading.Event
    - Header redaction for logging
    - Metrics collection

    A single instance is safe to share between threads; the underlying
    httpx.Client pools connections.
    """

    def __init__(
        self,
        config: FetchConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP fetcher.

        Args:
            config: Fetch configuration.
            transport: Optional transport, mainly for tests.
        """
        self._config = config
        self._metrics = FetchMetrics.get_instance()
        self._client = httpx.Client(
            timeout=config.default_timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )
        self._log = logger.bind(component="fetch")

    @property
    def config(self) -> FetchConfig:
        """Get the fetch configuration."""
        return self._config

    def close(self) -> None:
        """Close pooled connections."""
        self._client.close()

    def fetch(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        extra_headers: Mapping[str, str] | None = None,
        on_progress: DownloadProgress | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FetchResult:
        """Fetch a URL with retry support.

        Args:
            url: The URL to fetch.
            params: Query parameters.
            extra_headers: Additional headers to include.
            on_progress: Receives byte counts while the body streams in.
            cancel_event: When set, the request is abandoned at the next
                checkpoint and a CANCELLED error is returned.

        Returns:
            FetchResult with status, body, and error information.
        """
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(url=redact_url_credentials(url))

        headers = self._build_headers(extra_headers)

        result = self._execute_with_retry(
            url=url,
            params=dict(params or {}),
            headers=headers,
            on_progress=on_progress,
            cancel_event=cancel_event,
            log=log,
        )

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)

        log.info(
            "fetch_complete",
            status_code=result.status_code,
            not_modified=result.cache_hit,
            bytes=result.body_size,
            duration_ms=round(duration_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )

        return result

    def _build_headers(
        self,
        extra_headers: Mapping[str, str] | None,
    ) -> dict[str, str]:
        headers: dict[str, str] = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
        }
        headers.update(self._config.extra_headers)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _execute_with_retry(
        self,
        url: str,
        params: dict[str, str],
        headers: dict[str, str],
        on_progress: DownloadProgress | None,
        cancel_event: threading.Event | None,
        log: structlog.stdlib.BoundLogger,
    ) -> FetchResult:
        """Execute request with retry logic.

        Returns:
            FetchResult from the last attempt.
        """
        policy = self._config.retry_policy
        last_error: FetchError | None = None

        for attempt in range(policy.max_retries + 1):
            if attempt > 0:
                delay_ms = policy.get_delay_ms(attempt - 1)
                self._metrics.record_retry()
                log.debug(
                    "retry_attempt",
                    attempt=attempt,
                    delay_ms=delay_ms,
                    max_retries=policy.max_retries,
                )
                if _wait(cancel_event, delay_ms / 1000.0):
                    return self._cancelled_result(url)

            if cancel_event is not None and cancel_event.is_set():
                return self._cancelled_result(url)

            result = self._execute_single(
                url=url,
                params=params,
                headers=headers,
                on_progress=on_progress,
                cancel_event=cancel_event,
                log=log,
                attempt=attempt,
            )

            if result.error is None or not policy.should_retry(result.error, attempt):
                if result.error is not None:
                    if result.error.error_class == FetchErrorClass.CANCELLED:
                        self._metrics.record_cancelled()
                    else:
                        self._metrics.record_failure(result.error.error_class)
                return result

            last_error = result.error

            if result.error.error_class == FetchErrorClass.RATE_LIMITED:
                retry_after = result.error.retry_after
                if retry_after and retry_after > 0:
                    log.info(
                        "rate_limited",
                        retry_after=retry_after,
                        attempt=attempt,
                    )
                    if _wait(cancel_event, min(retry_after, MAX_RETRY_AFTER_SECONDS)):
                        return self._cancelled_result(url)

        self._metrics.record_failure(
            last_error.error_class if last_error else FetchErrorClass.UNKNOWN
        )
        return FetchResult(
            status_code=last_error.status_code or 0 if last_error else 0,
            final_url=url,
            error=last_error,
        )

    def _execute_single(
        self,
        url: str,
        params: dict[str, str],
        headers: dict[str, str],
        on_progress: DownloadProgress | None,
        cancel_event: threading.Event | None,
        log: structlog.stdlib.BoundLogger,
        attempt: int,
    ) -> FetchResult:
        """Execute a single HTTP request.

        Returns:
            FetchResult from the request. Transport failures are converted
            into FetchError values rather than raised.
        """
        log = log.bind(attempt=attempt, headers=redact_headers(headers))
        log.debug("request_started")

        try:
            with self._client.stream(
                "GET", url, params=params, headers=headers
            ) as response:
                response_headers = dict(response.headers)
                final_url = str(response.url)

                expected: int | None = None
                content_length = response.headers.get("content-length")
                if content_length and content_length.isdigit():
                    expected = int(content_length)
                    if expected > self._config.max_response_size_bytes:
                        return FetchResult(
                            status_code=response.status_code,
                            final_url=final_url,
                            headers=response_headers,
                            error=FetchError(
                                error_class=FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
                                message=(
                                    f"Response size {expected} exceeds limit "
                                    f"{self._config.max_response_size_bytes}"
                                ),
                                status_code=response.status_code,
                            ),
                        )

                if response.status_code == HTTP_STATUS_NOT_MODIFIED:
                    self._metrics.record_request(response.status_code, 0)
                    self._metrics.record_not_modified()
                    return FetchResult(
                        status_code=HTTP_STATUS_NOT_MODIFIED,
                        final_url=final_url,
                        headers=response_headers,
                        cache_hit=True,
                    )

                error = self._classify_http_error(
                    response.status_code, response.headers
                )
                # Error pages are not download progress
                body = self._read_body(
                    response,
                    expected,
                    on_progress if error is None else None,
                    cancel_event,
                )
                self._metrics.record_request(response.status_code, len(body))

                return FetchResult(
                    status_code=response.status_code,
                    final_url=final_url,
                    headers=response_headers,
                    body_bytes=body,
                    error=error,
                )

        except RequestCancelledError:
            log.info("request_cancelled")
            return self._cancelled_result(url)

        except ResponseSizeExceededError as e:
            return self._error_result(url, FetchErrorClass.RESPONSE_SIZE_EXCEEDED, str(e))

        except httpx.TimeoutException as e:
            return self._error_result(
                url, FetchErrorClass.NETWORK_TIMEOUT, f"Request timed out: {e}"
            )

        except httpx.TransportError as e:
            return self._error_result(
                url, FetchErrorClass.CONNECTION_ERROR, f"Connection failed: {e}"
            )

        except Exception as e:  # noqa: BLE001
            log.warning("request_unexpected_error", error=str(e))
            return self._error_result(
                url, FetchErrorClass.UNKNOWN, f"Unexpected error: {e}"
            )

    def _read_body(
        self,
        response: httpx.Response,
        expected: int | None,
        on_progress: DownloadProgress | None,
        cancel_event: threading.Event | None,
    ) -> bytes:
        """Read response body with size limit, progress and cancellation.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
            RequestCancelledError: If cancel_event is set mid-stream.
        """
        buffer = BytesIO()
        total_read = 0
        max_size = self._config.max_response_size_bytes

        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelledError
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            buffer.write(chunk)
            if on_progress is not None:
                on_progress(total_read, expected)

        return buffer.getvalue()

    def _classify_http_error(
        self,
        status_code: int,
        headers: httpx.Headers,
    ) -> FetchError | None:
        """Classify an HTTP status code as an error, or None for 2xx."""
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None

        if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
            return FetchError(
                error_class=FetchErrorClass.RATE_LIMITED,
                message="Rate limited (429 Too Many Requests)",
                status_code=status_code,
                retry_after=parse_retry_after(headers.get("retry-after")),
            )

        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                error_class=FetchErrorClass.HTTP_4XX,
                message=f"Client error ({status_code})",
                status_code=status_code,
            )

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
            return FetchError(
                error_class=FetchErrorClass.HTTP_5XX,
                message=f"Server error ({status_code})",
                status_code=status_code,
            )

        return FetchError(
            error_class=FetchErrorClass.UNKNOWN,
            message=f"Unexpected status ({status_code})",
            status_code=status_code,
        )

    @staticmethod
    def _error_result(
        url: str, error_class: FetchErrorClass, message: str
    ) -> FetchResult:
        return FetchResult(
            status_code=0,
            final_url=url,
            error=FetchError(error_class=error_class, message=message),
        )

    @classmethod
    def _cancelled_result(cls, url: str) -> FetchResult:
        return cls._error_result(url, FetchErrorClass.CANCELLED, "Request cancelled")


def parse_retry_after(value: str | None) -> int | None:
    """Parse a Retry-After header value.

    Args:
        value: Header value (seconds or HTTP date).

    Returns:
        Seconds to wait, or None if not parseable.
    """
    if not value:
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(value)
    except (ValueError, TypeError):
        return None
    delta = dt - datetime.now(UTC)
    return max(0, int(delta.total_seconds()))


def _wait(cancel_event: threading.Event | None, seconds: float) -> bool:
    """Sleep for the given time; return True if cancelled meanwhile."""
    if cancel_event is None:
        time.sleep(seconds)
        return False
    return cancel_event.wait(seconds)
