"""Integration tests for fetch_sections over real HTTP to a local server."""

import tempfile
import threading
from collections.abc import Generator
from pathlib import Path

import pytest

from tests.helpers.callbacks import Recorder, wait_finished
from tests.helpers.mobileview import large_mobileview_payload, mobileview_payload
from tests.helpers.wiki_server import WikiState, running_wiki
from wikifetch.article.errors import ArticleErrorClass
from wikifetch.article.fetcher import ArticleFetcher
from wikifetch.article.models import ArticleTitle
from wikifetch.fetch.config import FetchConfig
from wikifetch.fetch.manager import RequestOperationManager
from wikifetch.fetch.metrics import FetchMetrics
from wikifetch.fetch.models import RetryPolicy
from wikifetch.store.store import ArticleStore


@pytest.fixture
def store() -> Generator[ArticleStore]:
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ArticleStore(Path(tmpdir) / "articles.sqlite")
        store.connect()
        yield store
        store.close()


@pytest.fixture
def manager() -> Generator[RequestOperationManager]:
    """Manager talking plain HTTP with fast retries."""
    FetchMetrics.reset()
    config = FetchConfig(
        api_scheme="http",
        default_timeout_seconds=5.0,
        retry_policy=RetryPolicy(max_retries=2, base_delay_ms=0, jitter_factor=0),
    )
    with RequestOperationManager(config) as manager:
        yield manager


class TestFetchSectionsOverHttp:
    """End-to-end fetches against the local API stand-in."""

    def test_fetch_and_store(
        self, store: ArticleStore, manager: RequestOperationManager
    ) -> None:
        state = WikiState(pages={"Barack Obama": large_mobileview_payload()})
        recorder = Recorder()

        with running_wiki(state) as site:
            title = ArticleTitle(site=site, text="Barack_Obama")
            operation = ArticleFetcher().fetch_sections(
                title, store, manager, recorder.on_progress, recorder.on_completion
            )
            wait_finished(operation)

        assert recorder.error is None
        article = recorder.article
        assert article is not None
        assert [s.line for s in article.sections[1:]] == [
            "Early life and career",
            "Education",
            "Presidency",
        ]
        assert store.get_article(title) == article
        assert recorder.progress[-1] == 1.0
        assert recorder.progress == sorted(set(recorder.progress))
        assert state.requests == [{"page": "Barack Obama", "if_none_match": ""}]

    def test_second_fetch_revalidates(
        self, store: ArticleStore, manager: RequestOperationManager
    ) -> None:
        """Test that a stored article is revalidated with its ETag."""
        state = WikiState(pages={"Barack Obama": mobileview_payload()}, etag='"rev-42"')
        fetcher = ArticleFetcher()
        first, second = Recorder(), Recorder()

        with running_wiki(state) as site:
            title = ArticleTitle(site=site, text="Barack Obama")
            wait_finished(
                fetcher.fetch_sections(
                    title, store, manager, first.on_progress, first.on_completion
                )
            )
            wait_finished(
                fetcher.fetch_sections(
                    title, store, manager, second.on_progress, second.on_completion
                )
            )

        assert [r["if_none_match"] for r in state.requests] == ["", '"rev-42"']
        assert second.article == first.article
        assert FetchMetrics.get_instance().http_not_modified_total == 1

    def test_server_errors_are_retried(
        self, store: ArticleStore, manager: RequestOperationManager
    ) -> None:
        """Test that progress tracks only the download that succeeded."""
        state = WikiState(pages={"Barack Obama": large_mobileview_payload()}, failures=2)
        recorder = Recorder()

        with running_wiki(state) as site:
            title = ArticleTitle(site=site, text="Barack Obama")
            wait_finished(
                ArticleFetcher().fetch_sections(
                    title, store, manager, recorder.on_progress, recorder.on_completion
                )
            )

        assert len(state.requests) == 3
        assert recorder.article is not None
        assert FetchMetrics.get_instance().http_retry_total == 2
        assert len(recorder.progress) > 2
        assert recorder.progress[0] < 0.5
        assert recorder.progress == sorted(set(recorder.progress))
        assert recorder.progress[-1] == 1.0

    def test_missing_page(
        self, store: ArticleStore, manager: RequestOperationManager
    ) -> None:
        state = WikiState(pages={})
        recorder = Recorder()

        with running_wiki(state) as site:
            title = ArticleTitle(site=site, text="No such article")
            wait_finished(
                ArticleFetcher().fetch_sections(
                    title, store, manager, recorder.on_progress, recorder.on_completion
                )
            )

        assert recorder.error is not None
        assert recorder.error.error_class == ArticleErrorClass.DATA_NOT_FOUND
        assert store.list_titles() == []

    def test_unreachable_host(
        self, store: ArticleStore, manager: RequestOperationManager
    ) -> None:
        """Test that a refused connection fails with NETWORK and no progress."""
        with running_wiki(WikiState(pages={})) as site:
            pass
        recorder = Recorder()

        wait_finished(
            ArticleFetcher().fetch_sections(
                ArticleTitle(site=site, text="Barack Obama"),
                store,
                manager,
                recorder.on_progress,
                recorder.on_completion,
            )
        )

        assert recorder.error is not None
        assert recorder.error.error_class == ArticleErrorClass.NETWORK
        assert recorder.progress == []

    def test_cancel_during_download(
        self, store: ArticleStore, manager: RequestOperationManager
    ) -> None:
        """Test that no progress arrives after cancel() returns."""
        state = WikiState(
            pages={"Barack Obama": large_mobileview_payload(256 * 1024)},
            chunk_delay=0.02,
        )
        recorder = Recorder()
        first_progress = threading.Event()

        def on_progress(value: float) -> None:
            recorder.on_progress(value)
            first_progress.set()

        with running_wiki(state) as site:
            title = ArticleTitle(site=site, text="Barack Obama")
            operation = ArticleFetcher().fetch_sections(
                title, store, manager, on_progress, recorder.on_completion
            )
            assert first_progress.wait(5)
            assert operation.cancel() is True
            delivered = len(recorder.progress)
            wait_finished(operation)

        assert len(recorder.progress) == delivered
        assert recorder.error is not None
        assert recorder.error.is_cancelled
        assert not store.has_article(title)
