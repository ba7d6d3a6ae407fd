"""Last-resort date extraction from visible text in metadata-like containers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from stale.extractors.base import DateCandidate, DateSource, Extractor, register_extractor
from stale.extractors.document import Document
from stale.utils.dates import parse_date

CONTAINER_SELECTORS = (
    "article header",
    ".post-meta",
    ".entry-meta",
    ".article-meta",
    ".byline",
    '[class*="date"]',
    '[class*="publish"]',
    '[class*="author"]',
    "header",
    "article",
    ".post-header",
    ".article-header",
    "#footer-info-lastmod",
    "#lastmod",
    '[id*="lastmod"]',
    'footer [class*="date"]',
    'footer [class*="modified"]',
    "main",
)

MAX_BLOCK_CHARS = 2000
CONTEXT_BEFORE = 50
CONTEXT_AFTER = 20
DEDUP_WINDOW = timedelta(days=1)

DATE_PATTERNS = (
    re.compile(r"\b[^\W\d_]{3,9}\s+\d{1,2},?\s+\d{4}\b"),
    re.compile(r"\b\d{1,2}\s+[^\W\d_]{3,9}\s+\d{4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d+\s+(?:minute|hour|day|week|month|year)s?\s+ago\b", re.IGNORECASE),
    re.compile(r"\byesterday\b", re.IGNORECASE),
)

PUBLISHED_CONTEXT = re.compile(r"\b(published|posted|written|created|date)\b", re.IGNORECASE)
MODIFIED_CONTEXT = re.compile(r"\b(updated|modified|edited|revised|last\s+modified)\b", re.IGNORECASE)


@dataclass
class TextMatch:
    date: datetime
    is_modified: bool
    raw: str


def _keeps_scanning(selector: str) -> bool:
    return selector.startswith("#") or selector.startswith("footer")


def extract_from_text(text: str, now: datetime) -> List[TextMatch]:
    """All plausible dates in `text`, labelled by their surrounding words.

    Dates within a day of an earlier match are dropped.
    """
    results: List[TextMatch] = []
    for pattern in DATE_PATTERNS:
        for m in pattern.finditer(text):
            parsed = parse_date(m.group(0), now)
            if parsed is None:
                continue
            start = max(0, m.start() - CONTEXT_BEFORE)
            context = text[start:m.end() + CONTEXT_AFTER]
            is_modified = bool(MODIFIED_CONTEXT.search(context)) and not PUBLISHED_CONTEXT.search(context)
            results.append(TextMatch(parsed, is_modified, m.group(0)))

    unique: List[TextMatch] = []
    for r in results:
        if not any(abs(u.date - r.date) < DEDUP_WINDOW for u in unique):
            unique.append(r)
    return unique


@register_extractor
class HeuristicExtractor(Extractor):
    name = "heuristic"
    source = DateSource.HEURISTIC_TEXT
    confidence = 0.50

    def extract(self, document: Document) -> Optional[DateCandidate]:
        matches: List[TextMatch] = []

        for selector in CONTAINER_SELECTORS:
            for el in document.select(selector):
                text = el.get_text(" ")
                if len(text) > MAX_BLOCK_CHARS:
                    continue
                matches.extend(extract_from_text(text, document.observed_at))
            if matches and not _keeps_scanning(selector):
                break

        published: Optional[datetime] = None
        modified: Optional[datetime] = None
        for match in matches:
            if match.is_modified and modified is None:
                modified = match.date
            elif not match.is_modified and published is None:
                published = match.date
            if published and modified:
                break

        return self.candidate(published, modified)
