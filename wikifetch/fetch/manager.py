"""Request operation manager: runs HTTP work on a worker pool."""

import threading
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TypeVar

import httpx
import structlog

from wikifetch.fetch.client import DownloadProgress, HttpFetcher
from wikifetch.fetch.config import FetchConfig
from wikifetch.fetch.models import FetchResult


logger = structlog.get_logger()

T = TypeVar("T")

API_PATH = "/w/api.php"


class ManagerClosedError(RuntimeError):
    """Raised when work is submitted to a manager that has been shut down."""


class RequestOperationManager:
    """Executes HTTP requests for fetchers on a bounded thread pool.

    Fetchers hand the manager a unit of work with ``submit`` and perform
    the actual GET from inside that work with ``get``. The manager owns
    the pooled HttpFetcher and the executor; shut it down when done.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config: Fetch configuration; defaults are used when omitted.
            transport: Optional httpx transport, mainly for tests.
        """
        self._config = config or FetchConfig()
        self._http = HttpFetcher(self._config, transport=transport)
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="wikifetch",
        )
        self._closed = False
        self._lock = threading.Lock()
        self._log = logger.bind(
            component="manager", max_workers=self._config.max_workers
        )

    @property
    def config(self) -> FetchConfig:
        """Get the fetch configuration."""
        return self._config

    @property
    def is_closed(self) -> bool:
        return self._closed

    def build_url(self, site: str, path: str = API_PATH) -> str:
        """Compose an endpoint URL for a wiki host.

        Args:
            site: Host name such as ``en.wikipedia.org``.
            path: Absolute path on that host.

        Returns:
            The full URL using the configured scheme.
        """
        return f"{self._config.api_scheme}://{site}{path}"

    def submit(self, work: Callable[[], T]) -> "Future[T]":
        """Schedule work on the pool.

        Raises:
            ManagerClosedError: If the manager has been shut down.
        """
        with self._lock:
            if self._closed:
                raise ManagerClosedError("Request manager has been shut down")
            return self._executor.submit(work)

    def get(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        on_progress: DownloadProgress | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FetchResult:
        """Perform a blocking GET. Meant to be called from submitted work."""
        return self._http.fetch(
            url,
            params=params,
            extra_headers=headers,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and release pooled connections.

        Args:
            wait: Block until already-submitted work has finished.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._log.info("manager_shutdown", wait=wait)
        self._executor.shutdown(wait=wait)
        self._http.close()

    def __enter__(self) -> "RequestOperationManager":
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.shutdown()
