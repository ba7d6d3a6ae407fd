"""Date extraction strategies.

Importing this package registers every page extractor.
"""

from stale.extractors import heuristic, http_header, jsonld, meta, time_element, url_path  # noqa: F401
from stale.extractors.base import (
    DateCandidate,
    DateSource,
    Extractor,
    available_extractors,
    get_extractor,
    register_extractor,
)
from stale.extractors.document import Document
from stale.extractors.pipeline import ExtractionPipeline, first_match
from stale.extractors.snippet import extract_from_snippet

__all__ = [
    "DateCandidate",
    "DateSource",
    "Document",
    "ExtractionPipeline",
    "Extractor",
    "available_extractors",
    "extract_from_snippet",
    "first_match",
    "get_extractor",
    "register_extractor",
]
