"""SQLite data store for fetched articles.

This module provides persistent storage for:
- Articles and their ordered sections
- HTTP revalidation headers (ETag / Last-Modified) per article
- Schema migrations with version tracking
"""

from wikifetch.store.errors import (
    ArticleNotFoundError,
    ConnectionError,
    MigrationError,
    StoreError,
)
from wikifetch.store.migrations import CURRENT_VERSION, MigrationManager
from wikifetch.store.models import HttpCacheEntry, StoredTitle
from wikifetch.store.store import ArticleStore


__all__ = [
    # Store
    "ArticleStore",
    # Models
    "HttpCacheEntry",
    "StoredTitle",
    # Migrations
    "CURRENT_VERSION",
    "MigrationManager",
    # Errors
    "StoreError",
    "ConnectionError",
    "ArticleNotFoundError",
    "MigrationError",
]
