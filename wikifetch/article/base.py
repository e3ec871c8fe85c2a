"""Shared bookkeeping for fetchers that hand out cancelable operations."""

import threading

import structlog

from wikifetch.article.models import ArticleTitle
from wikifetch.article.operation import ArticleOperation


logger = structlog.get_logger()


class FetcherBase:
    """Tracks in-flight operations by title.

    At most one operation per title is tracked; registering a new one
    cancels the previous operation for the same title. Operations drop out
    of the registry when they finish.
    """

    def __init__(self) -> None:
        self._operations: dict[str, ArticleOperation] = {}
        self._registry_lock = threading.Lock()
        self._log = logger.bind(component=type(self).__name__)

    def is_fetching(self, title: ArticleTitle) -> bool:
        """Whether an unfinished operation exists for ``title``."""
        with self._registry_lock:
            operation = self._operations.get(title.key)
        return operation is not None and not operation.is_finished

    def operation_for_title(self, title: ArticleTitle) -> ArticleOperation | None:
        with self._registry_lock:
            return self._operations.get(title.key)

    def cancel_fetch(self, title: ArticleTitle) -> bool:
        """Cancel the in-flight fetch for ``title``.

        Returns:
            True if an unfinished operation was cancelled.
        """
        with self._registry_lock:
            operation = self._operations.get(title.key)
        if operation is None:
            return False
        return operation.cancel()

    def cancel_all_fetches(self) -> int:
        """Cancel every tracked operation.

        Returns:
            Number of operations that were actually cancelled.
        """
        with self._registry_lock:
            operations = list(self._operations.values())
        cancelled = sum(1 for operation in operations if operation.cancel())
        self._log.info("cancel_all_fetches", cancelled=cancelled)
        return cancelled

    def _track(self, operation: ArticleOperation) -> None:
        key = operation.title.key
        with self._registry_lock:
            previous = self._operations.get(key)
            self._operations[key] = operation
        if previous is not None and previous.cancel():
            self._log.info("superseded_fetch_cancelled", title=key)
        operation.add_finish_listener(self._untrack)

    def _untrack(self, operation: ArticleOperation) -> None:
        with self._registry_lock:
            if self._operations.get(operation.title.key) is operation:
                del self._operations[operation.title.key]
