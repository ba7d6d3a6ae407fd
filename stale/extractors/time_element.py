"""<time datetime="..."> elements, scanned in order of how likely they are to
be the article's own date."""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional, Tuple

from bs4.element import Tag

from stale.extractors.base import DateCandidate, DateSource, Extractor, register_extractor
from stale.extractors.document import Document
from stale.utils.dates import parse_date

PRIORITY_SELECTORS = (
    "article time[datetime]",
    "header time[datetime]",
    ".post-meta time[datetime]",
    ".entry-date time[datetime]",
    ".byline time[datetime]",
    '[class*="publish"] time[datetime]',
    '[class*="date"] time[datetime]',
    '[class*="time"] time[datetime]',
    "main time[datetime]",
    "time[datetime]",
)

MODIFIED_HINT = re.compile(r"\b(updated|modified|edited|revised)\b", re.IGNORECASE)


def is_modified_context(el: Tag) -> bool:
    """True when the element's parent reads like an "Updated ..." line."""
    parent = el.parent
    if parent is None:
        return False
    text = parent.get_text(" ", strip=True)
    classes = parent.get("class") or []
    cls = " ".join(classes) if isinstance(classes, list) else str(classes)
    return bool(MODIFIED_HINT.search(text) or MODIFIED_HINT.search(cls))


@register_extractor
class TimeElementExtractor(Extractor):
    name = "time-element"
    source = DateSource.INLINE_TIME_MARKUP
    confidence = 0.85

    def collect(self, document: Document) -> List[Tuple[datetime, bool]]:
        found: List[Tuple[datetime, bool]] = []
        seen = set()
        for selector in PRIORITY_SELECTORS:
            for el in document.select(selector):
                if id(el) in seen:
                    continue
                seen.add(id(el))
                parsed = parse_date(el.get("datetime"), document.observed_at)
                if parsed:
                    found.append((parsed, is_modified_context(el)))
        return found

    def extract(self, document: Document) -> Optional[DateCandidate]:
        found = self.collect(document)
        if not found:
            return None

        published = next((d for d, is_mod in found if not is_mod), None)
        modified = next((d for d, is_mod in found if is_mod), None)

        # Two or more times and no explicit "updated": a later one is the update
        if modified is None and published is not None and len(found) >= 2:
            modified = next((d for d, _ in found if d > published), None)

        if published is None and modified is not None:
            published, modified = modified, None

        return self.candidate(published, modified)
