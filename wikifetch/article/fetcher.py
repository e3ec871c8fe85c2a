"""Fetch every section of an article and save it into a data store."""

import sqlite3
import threading
from collections.abc import Mapping
from concurrent.futures import Future
from typing import Protocol

import structlog

from wikifetch.article.base import FetcherBase
from wikifetch.article.errors import ArticleErrorClass, ArticleFetchError
from wikifetch.article.models import Article, ArticleTitle
from wikifetch.article.operation import (
    ArticleFetcherCompletion,
    ArticleFetcherProgress,
    ArticleOperation,
)
from wikifetch.article.parser import mobileview_params, parse_mobileview
from wikifetch.fetch.client import DownloadProgress
from wikifetch.fetch.manager import ManagerClosedError
from wikifetch.fetch.models import FetchResult
from wikifetch.store.errors import StoreError


logger = structlog.get_logger()

# Share of the progress range covered by the download; the rest is
# reported once the article is parsed and saved.
DOWNLOAD_PROGRESS_WEIGHT = 0.9


class ArticleDataStore(Protocol):
    """What the fetcher needs from a data store."""

    def save_article(
        self,
        article: Article,
        *,
        etag: str | None = None,
        last_modified: str | None = None,
        status_code: int | None = None,
    ) -> None: ...

    def article_for_title(self, title: ArticleTitle) -> Article | None: ...

    def revalidation_headers(self, title: ArticleTitle) -> dict[str, str]: ...


class RequestManager(Protocol):
    """What the fetcher needs from the HTTP manager."""

    def build_url(self, site: str) -> str: ...

    def submit(self, work: "_Work") -> Future[None]: ...

    def get(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        on_progress: DownloadProgress | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FetchResult: ...


class _Work(Protocol):
    def __call__(self) -> None: ...


class ArticleFetcher(FetcherBase):
    """Fetches an article's sections through a request manager.

    ``fetch_sections`` returns immediately with an ArticleOperation; the
    request runs on the manager's worker pool. Progress and completion
    callbacks are invoked on that worker thread. The only exception is a
    manager that refuses new work, in which case completion fires on the
    calling thread before ``fetch_sections`` returns.
    """

    def fetch_sections(
        self,
        title: ArticleTitle,
        data_store: ArticleDataStore,
        manager: RequestManager,
        on_progress: ArticleFetcherProgress,
        on_completion: ArticleFetcherCompletion,
    ) -> ArticleOperation:
        """Start fetching all sections of ``title``.

        Args:
            title: Article to fetch.
            data_store: Destination for the fetched article.
            manager: Performs the HTTP work.
            on_progress: Called with fractions in [0.0, 1.0], never decreasing.
            on_completion: Called exactly once with ``(article, None)`` or
                ``(None, error)``.

        Returns:
            Cancelable handle for the request.

        Raises:
            TypeError: If a required argument is missing.
        """
        if not isinstance(title, ArticleTitle):
            msg = f"title must be an ArticleTitle, not {type(title).__name__}"
            raise TypeError(msg)
        for name, value in (
            ("data_store", data_store),
            ("manager", manager),
            ("on_progress", on_progress),
            ("on_completion", on_completion),
        ):
            if value is None:
                msg = f"{name} is required"
                raise TypeError(msg)

        operation = ArticleOperation(title, on_progress, on_completion)
        self._track(operation)

        try:
            manager.submit(lambda: self._run(operation, data_store, manager))
        except ManagerClosedError as e:
            operation.fail(
                ArticleFetchError(ArticleErrorClass.NETWORK, str(e), title=title.key)
            )
        except Exception as e:  # noqa: BLE001
            self._log.warning("fetch_submit_failed", title=title.key, error=str(e))
            operation.fail(
                ArticleFetchError(
                    ArticleErrorClass.NETWORK,
                    f"Manager refused the request: {e}",
                    title=title.key,
                )
            )

        self._log.debug("fetch_scheduled", title=title.key)
        return operation

    def _run(
        self,
        operation: ArticleOperation,
        data_store: ArticleDataStore,
        manager: RequestManager,
    ) -> None:
        """Worker-side body of one fetch. Always finishes the operation."""
        if not operation.begin():
            return

        log = self._log.bind(title=operation.title.key)
        try:
            article = self._fetch(operation, data_store, manager)
        except ArticleFetchError as e:
            operation.fail(e)
            return
        except Exception as e:  # noqa: BLE001
            log.exception("fetch_unexpected_error")
            operation.fail(
                ArticleFetchError(
                    ArticleErrorClass.UNKNOWN,
                    f"Unexpected error: {e}",
                    title=operation.title.key,
                )
            )
            return

        log.info(
            "article_fetched",
            sections=len(article.sections),
            stored_as=article.title.key,
        )
        operation.succeed(article)

    def _fetch(
        self,
        operation: ArticleOperation,
        data_store: ArticleDataStore,
        manager: RequestManager,
    ) -> Article:
        title = operation.title
        if title.is_empty:
            raise ArticleFetchError(
                ArticleErrorClass.INVALID_TITLE,
                "Title is empty",
                title=title.key,
            )

        def download_progress(received: int, expected: int | None) -> None:
            if expected:
                fraction = min(1.0, received / expected)
                operation.report_progress(fraction * DOWNLOAD_PROGRESS_WEIGHT)

        url = manager.build_url(title.site)
        params = mobileview_params(title)

        result = manager.get(
            url,
            params=params,
            headers=data_store.revalidation_headers(title),
            on_progress=download_progress,
            cancel_event=operation.cancel_event,
        )
        operation.raise_if_cancelled()

        if result.cache_hit:
            stored = data_store.article_for_title(title)
            if stored is not None:
                self._log.info("article_not_modified", title=title.key)
                operation.report_progress(1.0)
                return stored
            # Stored copy disappeared since the headers were read
            result = manager.get(
                url,
                params=params,
                on_progress=download_progress,
                cancel_event=operation.cancel_event,
            )
            operation.raise_if_cancelled()

        if result.error is not None:
            raise ArticleFetchError.from_fetch_error(result.error, title=title.key)

        operation.report_progress(DOWNLOAD_PROGRESS_WEIGHT)
        article = parse_mobileview(result.body_bytes, title)
        operation.raise_if_cancelled()

        try:
            data_store.save_article(
                article,
                etag=result.header("etag"),
                last_modified=result.header("last-modified"),
                status_code=result.status_code,
            )
        except (StoreError, sqlite3.Error) as e:
            raise ArticleFetchError(
                ArticleErrorClass.STORE,
                f"Could not save article: {e}",
                title=title.key,
            ) from e

        operation.report_progress(1.0)
        return article
