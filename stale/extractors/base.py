"""Extractor abstraction shared by every date strategy.

Each strategy looks at one kind of signal (meta tags, JSON-LD, <time>
elements, visible text, URL path, HTTP headers) and reports at most one
candidate with a fixed confidence reflecting how reliable that signal
usually is. The pipeline merges candidates; extractors never see each other.

Adding a strategy means subclassing `Extractor` and registering it:

    @register_extractor
    class MyExtractor(Extractor):
        name = "my-signal"
        source = DateSource.HEURISTIC_TEXT
        confidence = 0.5

        def extract(self, document):
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Type

from stale.errors import ExtractorError
from stale.extractors.document import Document
from stale.utils.dates import to_iso


class DateSource(str, Enum):
    STRUCTURED_METADATA = "structured-metadata"
    LINKED_DATA = "linked-data"
    INLINE_TIME_MARKUP = "inline-time-markup"
    HEURISTIC_TEXT = "heuristic-text"
    HTTP_HEADER = "http-header"
    URL_PATH = "url-path"
    SEARCH_SNIPPET = "search-snippet"
    NONE = "none"


@dataclass(frozen=True)
class DateCandidate:
    published: Optional[datetime]
    modified: Optional[datetime]
    confidence: float
    source: DateSource

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")

    @property
    def has_date(self) -> bool:
        return self.published is not None or self.modified is not None

    def with_changes(self, **changes) -> "DateCandidate":
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, object]:
        return {
            "published": to_iso(self.published),
            "modified": to_iso(self.modified),
            "confidence": round(self.confidence, 4),
            "source": self.source.value,
        }


class Extractor(ABC):
    name: str = ""
    source: DateSource = DateSource.NONE
    confidence: float = 0.0

    @abstractmethod
    def extract(self, document: Document) -> Optional[DateCandidate]:
        raise NotImplementedError

    def candidate(
        self, published: Optional[datetime], modified: Optional[datetime]
    ) -> Optional[DateCandidate]:
        if published is None and modified is None:
            return None
        return DateCandidate(published, modified, self.confidence, self.source)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name} confidence={self.confidence}>"


_REGISTRY: Dict[str, Type[Extractor]] = {}


def register_extractor(cls: Type[Extractor]) -> Type[Extractor]:
    if not cls.name:
        raise ValueError(f"{cls.__name__} must define a name")
    _REGISTRY[cls.name] = cls
    return cls


def get_extractor(name: str) -> Extractor:
    try:
        return _REGISTRY[name]()
    except KeyError:
        raise ExtractorError(f"Unknown extractor: {name}. Available: {sorted(_REGISTRY)}") from None


def available_extractors() -> List[str]:
    return sorted(_REGISTRY)
