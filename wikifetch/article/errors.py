"""Error types delivered through article fetch completion."""

from enum import Enum

from wikifetch.fetch.models import FetchError, FetchErrorClass


class ArticleErrorClass(str, Enum):
    """Classification of article fetch failures.

    - INVALID_TITLE: Title text was empty
    - FETCH_CANCELLED: Operation was cancelled before it finished
    - NETWORK: Transport failure after retries (timeout, connection, 5xx, 429)
    - HTTP: Non-retryable HTTP status
    - DATA_NOT_FOUND: The wiki has no such page, or it has no sections
    - API_ERROR: The API answered with some other error object
    - PARSE: Response body was not the expected JSON document
    - STORE: Writing the article to the data store failed
    - UNKNOWN: Unexpected failure inside the fetcher
    """

    INVALID_TITLE = "INVALID_TITLE"
    FETCH_CANCELLED = "FETCH_CANCELLED"
    NETWORK = "NETWORK"
    HTTP = "HTTP"
    DATA_NOT_FOUND = "DATA_NOT_FOUND"
    API_ERROR = "API_ERROR"
    PARSE = "PARSE"
    STORE = "STORE"
    UNKNOWN = "UNKNOWN"


# API error codes that mean "no such page"
MISSING_PAGE_CODES = frozenset({"missingtitle", "invalidtitle", "nosuchpageid"})

_TRANSPORT_CLASSES = {
    FetchErrorClass.NETWORK_TIMEOUT: ArticleErrorClass.NETWORK,
    FetchErrorClass.CONNECTION_ERROR: ArticleErrorClass.NETWORK,
    FetchErrorClass.HTTP_5XX: ArticleErrorClass.NETWORK,
    FetchErrorClass.RATE_LIMITED: ArticleErrorClass.NETWORK,
    FetchErrorClass.HTTP_4XX: ArticleErrorClass.HTTP,
    FetchErrorClass.RESPONSE_SIZE_EXCEEDED: ArticleErrorClass.HTTP,
    FetchErrorClass.CANCELLED: ArticleErrorClass.FETCH_CANCELLED,
    FetchErrorClass.UNKNOWN: ArticleErrorClass.NETWORK,
}


class ArticleFetchError(Exception):
    """Structured failure of an article fetch.

    Never raised out of ``fetch_sections``; it is handed to the completion
    callback and raised from ``ArticleOperation.result()``.
    """

    def __init__(
        self,
        error_class: ArticleErrorClass,
        message: str,
        title: str | None = None,
        status_code: int | None = None,
        fetch_error: FetchError | None = None,
        api_code: str | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            title: Storage key of the article being fetched.
            status_code: HTTP status code if one was received.
            fetch_error: Underlying transport error, if any.
            api_code: MediaWiki API error code, if any.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.title = title
        self.status_code = status_code
        self.fetch_error = fetch_error
        self.api_code = api_code

    @property
    def is_cancelled(self) -> bool:
        return self.error_class == ArticleErrorClass.FETCH_CANCELLED

    @classmethod
    def cancelled(cls, title: str | None = None) -> "ArticleFetchError":
        return cls(ArticleErrorClass.FETCH_CANCELLED, "Fetch cancelled", title=title)

    @classmethod
    def from_fetch_error(
        cls, error: FetchError, title: str | None = None
    ) -> "ArticleFetchError":
        """Map a transport-level error onto the article taxonomy."""
        return cls(
            _TRANSPORT_CLASSES.get(error.error_class, ArticleErrorClass.NETWORK),
            error.message,
            title=title,
            status_code=error.status_code,
            fetch_error=error,
        )

    @classmethod
    def from_api_error(
        cls, code: str, info: str, title: str | None = None
    ) -> "ArticleFetchError":
        """Map a MediaWiki ``error`` object onto the article taxonomy."""
        error_class = (
            ArticleErrorClass.DATA_NOT_FOUND
            if code in MISSING_PAGE_CODES
            else ArticleErrorClass.API_ERROR
        )
        return cls(error_class, info or code, title=title, api_code=code)

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging."""
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "title": self.title,
            "status_code": self.status_code,
            "api_code": self.api_code,
        }
