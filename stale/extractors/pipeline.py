"""Runs the page extractors and reconciles their candidates into one answer.

Merge rules:
  * highest confidence wins (stable for ties, in extractor order);
  * every other candidate whose published date lies within
    `corroboration_window` of the winner's adds `corroboration_boost`,
    capped at 1.0;
  * if the winner has no modified date, the first modified date among the
    remaining candidates (in confidence order) is adopted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Sequence

from stale.extractors.base import DateCandidate, Extractor, get_extractor
from stale.extractors.document import Document
from stale.extractors.http_header import HttpHeaderExtractor

logger = logging.getLogger(__name__)

PAGE_EXTRACTORS = ("meta", "json-ld", "time-element", "heuristic", "url-path")

# Reduced pass used when fetching a remote page in the background
DEEP_FETCH_EXTRACTORS = ("meta", "json-ld", "time-element", "url-path")


def run_isolated(extractor: Extractor, document: Document) -> Optional[DateCandidate]:
    try:
        return extractor.extract(document)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Extractor %s failed on %s: %s", extractor.name, document.url or "<document>", exc)
        return None


def adopt_modified(best: DateCandidate, others: Sequence[DateCandidate]) -> DateCandidate:
    if best.modified is not None:
        return best
    for c in others:
        if c.modified is not None:
            return best.with_changes(modified=c.modified)
    return best


@dataclass
class ExtractionPipeline:
    extractor_names: Sequence[str] = PAGE_EXTRACTORS
    corroboration_window: timedelta = timedelta(hours=48)
    corroboration_boost: float = 0.05
    backfill_modified: bool = True
    extractors: List[Extractor] = field(init=False)

    def __post_init__(self) -> None:
        self.extractors = [get_extractor(name) for name in self.extractor_names]
        self.header_extractor = HttpHeaderExtractor()

    def collect(self, document: Document, last_modified: Optional[str] = None) -> List[DateCandidate]:
        """Non-null candidates in extractor order, header candidate last."""
        candidates: List[DateCandidate] = []
        for extractor in self.extractors:
            result = run_isolated(extractor, document)
            if result is not None and result.has_date:
                candidates.append(result)

        if last_modified or document.last_modified:
            try:
                header = self.header_extractor.extract(document, last_modified)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Header extractor failed on %s: %s", document.url or "<document>", exc)
                header = None
            if header is not None:
                candidates.append(header)
        return candidates

    def merge(self, candidates: Sequence[DateCandidate]) -> Optional[DateCandidate]:
        if not candidates:
            return None

        ranked = sorted(candidates, key=lambda c: c.confidence, reverse=True)
        best, rest = ranked[0], ranked[1:]

        confidence = best.confidence
        if best.published is not None:
            for other in rest:
                if other.published is None:
                    continue
                if abs(other.published - best.published) < self.corroboration_window:
                    confidence = min(1.0, confidence + self.corroboration_boost)

        merged = best.with_changes(confidence=confidence)
        if self.backfill_modified:
            merged = adopt_modified(merged, rest)
        return merged

    def run(self, document: Document, last_modified: Optional[str] = None) -> Optional[DateCandidate]:
        return self.merge(self.collect(document, last_modified))


def first_match(document: Document, extractor_names: Sequence[str] = DEEP_FETCH_EXTRACTORS) -> Optional[DateCandidate]:
    """Reduced pass: first extractor (then the Last-Modified header) that finds
    a date wins, with `modified` backfilled from the later ones."""
    found: List[DateCandidate] = []
    for name in extractor_names:
        result = run_isolated(get_extractor(name), document)
        if result is not None and result.has_date:
            found.append(result)
    header = HttpHeaderExtractor().extract(document)
    if header is not None:
        found.append(header)

    if not found:
        return None
    return adopt_modified(found[0], found[1:])
