"""Cancelable handle for an in-flight article fetch.

Delivery rules enforced here:

- the completion callback fires exactly once, with exactly one of
  ``article`` / ``error`` set;
- progress values are clamped to [0.0, 1.0], never decrease, and are never
  delivered after completion or after ``cancel()`` has returned;
- once ``cancel()`` returns True the operation finishes with a
  FETCH_CANCELLED error, whatever the network outcome.

All callbacks run on the manager worker thread executing the operation.
"""

import threading
from collections.abc import Callable
from concurrent.futures import Future

import structlog

from wikifetch.article.errors import ArticleFetchError
from wikifetch.article.models import Article, ArticleTitle
from wikifetch.article.state_machine import OperationState, OperationStateMachine


logger = structlog.get_logger()

ArticleFetcherProgress = Callable[[float], None]
ArticleFetcherCompletion = Callable[[Article | None, ArticleFetchError | None], None]


class ArticleOperation:
    """Handle returned by ``ArticleFetcher.fetch_sections``."""

    def __init__(
        self,
        title: ArticleTitle,
        on_progress: ArticleFetcherProgress,
        on_completion: ArticleFetcherCompletion,
    ) -> None:
        self._title = title
        self._on_progress = on_progress
        self._on_completion = on_completion
        self._lock = threading.RLock()
        self._machine = OperationStateMachine(title.key)
        self._cancel_event = threading.Event()
        self._future: Future[Article] = Future()
        self._last_progress: float | None = None
        self._finish_listeners: list[Callable[[ArticleOperation], None]] = []
        self._log = logger.bind(component="article_fetcher", title=title.key)

    @property
    def title(self) -> ArticleTitle:
        return self._title

    @property
    def state(self) -> OperationState:
        with self._lock:
            return self._machine.state

    @property
    def future(self) -> "Future[Article]":
        """Future resolved after the completion callback has run."""
        return self._future

    @property
    def cancel_event(self) -> threading.Event:
        """Event handed to the HTTP layer so it can abandon the request."""
        return self._cancel_event

    @property
    def is_cancelled(self) -> bool:
        """True once cancellation was requested or has completed."""
        return self._cancel_event.is_set()

    @property
    def is_finished(self) -> bool:
        with self._lock:
            return self._machine.is_terminal()

    @property
    def last_progress(self) -> float | None:
        return self._last_progress

    def cancel(self) -> bool:
        """Request cancellation.

        Returns:
            True if this call cancelled an unfinished operation, False if it
            had already finished or was already cancelled.
        """
        with self._lock:
            if self._machine.is_terminal() or self._cancel_event.is_set():
                return False
            self._cancel_event.set()
        self._log.info("fetch_cancel_requested")
        return True

    def result(self, timeout: float | None = None) -> Article:
        """Block until the operation finishes.

        Returns:
            The fetched article.

        Raises:
            ArticleFetchError: If the fetch failed or was cancelled.
            TimeoutError: If ``timeout`` elapsed first.
        """
        return self._future.result(timeout=timeout)

    def add_finish_listener(self, listener: Callable[["ArticleOperation"], None]) -> None:
        """Register a hook that runs right before the completion callback."""
        with self._lock:
            self._finish_listeners.append(listener)

    # ===== Worker side =====

    def begin(self) -> bool:
        """Move to RUNNING.

        Returns:
            False if the operation was cancelled before it started; it is
            then already finished.
        """
        with self._lock:
            if self._machine.is_terminal():
                return False
            if self._cancel_event.is_set():
                cancelled = True
            else:
                self._machine.transition(OperationState.RUNNING)
                cancelled = False
        if cancelled:
            self.fail(ArticleFetchError.cancelled(self._title.key))
            return False
        return True

    def raise_if_cancelled(self) -> None:
        """Raise FETCH_CANCELLED if cancellation was requested."""
        if self._cancel_event.is_set():
            raise ArticleFetchError.cancelled(self._title.key)

    def report_progress(self, value: float) -> None:
        """Deliver a progress value, enforcing range and ordering."""
        value = min(1.0, max(0.0, float(value)))
        with self._lock:
            if self._machine.is_terminal() or self._cancel_event.is_set():
                return
            if self._last_progress is not None and value <= self._last_progress:
                return
            self._last_progress = value
            try:
                self._on_progress(value)
            except Exception as e:  # noqa: BLE001
                self._log.error("callback_failed", callback="progress", error=str(e))

    def succeed(self, article: Article) -> None:
        self._finish(article, None)

    def fail(self, error: ArticleFetchError) -> None:
        self._finish(None, error)

    def _finish(self, article: Article | None, error: ArticleFetchError | None) -> None:
        with self._lock:
            if self._machine.is_terminal():
                self._log.warning(
                    "duplicate_completion_ignored",
                    state=self._machine.state.name,
                )
                return

            if self._cancel_event.is_set() and not (error and error.is_cancelled):
                article, error = None, ArticleFetchError.cancelled(self._title.key)

            if error is not None:
                to_state = (
                    OperationState.CANCELLED
                    if error.is_cancelled
                    else OperationState.FAILED
                )
                if to_state == OperationState.CANCELLED:
                    self._cancel_event.set()
            else:
                to_state = OperationState.SUCCEEDED
            self._machine.transition(to_state)
            listeners = list(self._finish_listeners)

        for listener in listeners:
            listener(self)

        if error is not None:
            self._log.info("fetch_failed", **error.to_dict())
        try:
            self._on_completion(article, error)
        except Exception as e:  # noqa: BLE001
            self._log.error("callback_failed", callback="completion", error=str(e))

        if error is not None:
            self._future.set_exception(error)
        else:
            self._future.set_result(article)
