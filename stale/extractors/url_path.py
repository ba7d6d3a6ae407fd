"""Dates embedded in URL paths, e.g. /2024/03/15/some-slug."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse

from stale.extractors.base import DateCandidate, DateSource, Extractor, register_extractor
from stale.extractors.document import Document
from stale.utils.dates import MIN_YEAR, is_plausible, safe_date

PATH_DATE_RE = re.compile(r"/((?:19|20)\d{2})/(\d{1,2})(?:/(\d{1,2}))?(?=/|$)")


def date_from_url(url: str, now=None):
    """First /YYYY/MM[/DD] segment in the path as a UTC datetime, or None."""
    if not url:
        return None
    path = urlparse(url).path or ""
    for m in PATH_DATE_RE.finditer(path):
        year, month = int(m.group(1)), int(m.group(2))
        day = int(m.group(3)) if m.group(3) else 1
        if year < MIN_YEAR or not 1 <= month <= 12:
            continue
        value = safe_date(year, month, day)
        if value is not None and is_plausible(value, now):
            return value
    return None


@register_extractor
class UrlPathExtractor(Extractor):
    name = "url-path"
    source = DateSource.URL_PATH
    confidence = 0.55

    def extract(self, document: Document) -> Optional[DateCandidate]:
        return self.candidate(date_from_url(document.url, document.observed_at), None)
