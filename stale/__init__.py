"""Stale engine: content freshness detection service."""

__version__ = "0.1.0"
