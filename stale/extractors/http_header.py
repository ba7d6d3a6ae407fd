"""Last-Modified response header. Weak: often the CDN's or cache's own time."""

from __future__ import annotations

from typing import Optional

from stale.extractors.base import DateCandidate, DateSource, Extractor, register_extractor
from stale.extractors.document import Document
from stale.utils.dates import parse_date


@register_extractor
class HttpHeaderExtractor(Extractor):
    name = "http-header"
    source = DateSource.HTTP_HEADER
    confidence = 0.40

    def extract(self, document: Document, last_modified: Optional[str] = None) -> Optional[DateCandidate]:
        raw = last_modified or document.last_modified
        if not raw:
            return None
        return self.candidate(None, parse_date(raw, document.observed_at))
