"""Structured logging setup."""

from wikifetch.observability.logging import configure_logging


__all__ = ["configure_logging"]
