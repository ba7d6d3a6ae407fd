"""<meta> tag dates (article:published_time, DC.date, og:updated_time, ...)."""

from __future__ import annotations

from typing import Iterable, Optional

from stale.extractors.base import DateCandidate, DateSource, Extractor, register_extractor
from stale.extractors.document import Document
from stale.utils.dates import parse_date

# Priority order
PUBLISHED_KEYS = (
    "article:published_time",
    "datePublished",
    "pubdate",
    "publishdate",
    "date",
    "DC.date.created",
    "DC.date",
    "sailthru.date",
    "og:article:published_time",
)

MODIFIED_KEYS = (
    "article:modified_time",
    "dateModified",
    "og:updated_time",
    "DC.date.modified",
    "last-modified",
    "revised",
)


def _first_date(document: Document, keys: Iterable[str]):
    for key in keys:
        value = document.meta_content(key)
        if value:
            parsed = parse_date(value, document.observed_at)
            if parsed:
                return parsed
    return None


@register_extractor
class MetaExtractor(Extractor):
    name = "meta"
    source = DateSource.STRUCTURED_METADATA
    confidence = 0.95

    def extract(self, document: Document) -> Optional[DateCandidate]:
        published = _first_date(document, PUBLISHED_KEYS)
        modified = _first_date(document, MODIFIED_KEYS)
        return self.candidate(published, modified)
