"""Exceptions for the article data store.

Infrastructure errors (database issues) are kept apart from domain errors
(missing records) under a common base class.
"""


class StoreError(Exception):
    """Base exception for all data store errors."""


class ConnectionError(StoreError):  # noqa: A001
    """Raised when the database connection is missing or unusable."""

    def __init__(self, message: str = "Database not connected") -> None:
        super().__init__(message)


class ArticleNotFoundError(StoreError):
    """Raised when a requested article is not stored."""

    def __init__(self, title_key: str) -> None:
        """Initialize the error with the missing title key.

        Args:
            title_key: Storage key of the article that was not found.
        """
        self.title_key = title_key
        super().__init__(f"Article not found: {title_key}")


class MigrationError(StoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
