"""JSON-LD / Schema.org dates.

Walks every ld+json block recursively (including @graph wrappers and nested
objects such as `mainEntity`) and keeps the first published and the first
modified date found.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional, Tuple

from stale.extractors.base import DateCandidate, DateSource, Extractor, register_extractor
from stale.extractors.document import Document
from stale.utils.dates import parse_date

logger = logging.getLogger(__name__)

PUBLISHED_KEYS = ("datePublished", "dateCreated", "uploadDate")
MODIFIED_KEYS = ("dateModified", "lastReviewed")
MAX_DEPTH = 8

Found = Tuple[Optional[datetime], Optional[datetime]]


def _first_key(obj: dict, keys, now: datetime) -> Optional[datetime]:
    for key in keys:
        value = obj.get(key)
        if value:
            parsed = parse_date(value, now) if isinstance(value, (str, int, float)) else None
            if parsed:
                return parsed
    return None


def find_dates(obj: Any, now: datetime, depth: int = 0) -> Found:
    """Depth-first search for (published, modified); first found wins per field."""
    if depth > MAX_DEPTH or not isinstance(obj, (dict, list)):
        return None, None

    published: Optional[datetime] = None
    modified: Optional[datetime] = None

    if isinstance(obj, list):
        for item in obj:
            p, m = find_dates(item, now, depth + 1)
            published = published or p
            modified = modified or m
            if published and modified:
                break
        return published, modified

    published = _first_key(obj, PUBLISHED_KEYS, now)
    modified = _first_key(obj, MODIFIED_KEYS, now)
    if published and modified:
        return published, modified

    for value in obj.values():
        if isinstance(value, (dict, list)):
            p, m = find_dates(value, now, depth + 1)
            published = published or p
            modified = modified or m
            if published and modified:
                break

    return published, modified


@register_extractor
class JsonLdExtractor(Extractor):
    name = "json-ld"
    source = DateSource.LINKED_DATA
    confidence = 0.95

    def extract(self, document: Document) -> Optional[DateCandidate]:
        published: Optional[datetime] = None
        modified: Optional[datetime] = None

        for blob in document.jsonld_blocks():
            try:
                data = json.loads(blob)
            except (json.JSONDecodeError, ValueError):
                logger.debug("Skipping malformed JSON-LD block on %s", document.url or "<document>")
                continue
            p, m = find_dates(data, document.observed_at)
            published = published or p
            modified = modified or m
            if published and modified:
                break

        return self.candidate(published, modified)
