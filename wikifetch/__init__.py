"""Fetch MediaWiki article sections over HTTP into a local data store."""

__version__ = "0.1.0"
