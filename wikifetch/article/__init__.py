"""Article section fetching.

This module provides:
- ArticleFetcher: asynchronous fetch of every section of an article
- ArticleOperation: cancelable handle with exactly-once completion
- Domain models for titles, articles and sections
- The mobileview response parser and the article error taxonomy
"""

from wikifetch.article.base import FetcherBase
from wikifetch.article.errors import ArticleErrorClass, ArticleFetchError
from wikifetch.article.fetcher import (
    DOWNLOAD_PROGRESS_WEIGHT,
    ArticleDataStore,
    ArticleFetcher,
    RequestManager,
)
from wikifetch.article.models import DEFAULT_SITE, Article, ArticleTitle, Section
from wikifetch.article.operation import (
    ArticleFetcherCompletion,
    ArticleFetcherProgress,
    ArticleOperation,
)
from wikifetch.article.parser import mobileview_params, parse_mobileview
from wikifetch.article.state_machine import (
    OperationState,
    OperationStateError,
    OperationStateMachine,
)


__all__ = [
    # Fetcher
    "ArticleFetcher",
    "FetcherBase",
    "ArticleDataStore",
    "RequestManager",
    "DOWNLOAD_PROGRESS_WEIGHT",
    # Operation
    "ArticleOperation",
    "ArticleFetcherProgress",
    "ArticleFetcherCompletion",
    "OperationState",
    "OperationStateError",
    "OperationStateMachine",
    # Models
    "Article",
    "ArticleTitle",
    "Section",
    "DEFAULT_SITE",
    # Parsing
    "mobileview_params",
    "parse_mobileview",
    # Errors
    "ArticleErrorClass",
    "ArticleFetchError",
]
