"""Exception types used across the engine.

Date parsing never raises: unparseable input comes back as ``None``.
"""

from __future__ import annotations


class StaleError(Exception):
    """Base class for engine errors."""


class ExtractorError(StaleError):
    """A single extractor failed; the pipeline logs it and moves on."""


class FetchError(StaleError):
    """Remote fetch failed (timeout, transport, status, content type)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason


class StorageError(StaleError):
    """The persisted store could not be read or written."""


class LicenseAuthorityError(StaleError):
    """The license authority did not give a usable answer."""
