"""Read-only view of a page for the extractors.

Wraps a BeautifulSoup tree together with the page URL, the response headers
(lowercased) and the instant the page was observed, which anchors relative
dates ("3 days ago") and the future-date guard.
"""

from __future__ import annotations

from datetime import datetime
from functools import cached_property
from typing import Dict, List, Mapping, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from stale.utils.dates import ensure_utc, utcnow


class Document:
    def __init__(
        self,
        soup: BeautifulSoup,
        url: str = "",
        headers: Optional[Mapping[str, str]] = None,
        observed_at: Optional[datetime] = None,
    ) -> None:
        self.soup = soup
        self.url = url or ""
        self.headers: Dict[str, str] = {k.lower(): v for k, v in (headers or {}).items()}
        self.observed_at = ensure_utc(observed_at or utcnow())

    @classmethod
    def from_html(
        cls,
        html: str,
        url: str = "",
        headers: Optional[Mapping[str, str]] = None,
        observed_at: Optional[datetime] = None,
    ) -> "Document":
        return cls(BeautifulSoup(html or "", "html.parser"), url, headers, observed_at)

    def select(self, selector: str) -> List[Tag]:
        return self.soup.select(selector)

    @cached_property
    def meta_index(self) -> Dict[str, str]:
        """Lowercased name/property/itemprop -> content (first occurrence wins)."""
        index: Dict[str, str] = {}
        for tag in self.soup.find_all("meta"):
            content = (tag.get("content") or "").strip()
            if not content:
                continue
            for attr in ("name", "property", "itemprop"):
                key = (tag.get(attr) or "").strip().lower()
                if key and key not in index:
                    index[key] = content
        return index

    def meta_content(self, key: str) -> Optional[str]:
        return self.meta_index.get(key.lower())

    def jsonld_blocks(self) -> List[str]:
        blocks: List[str] = []
        for script in self.soup.find_all("script", attrs={"type": "application/ld+json"}):
            text = script.string or script.get_text() or ""
            if text.strip():
                blocks.append(text)
        return blocks

    @property
    def last_modified(self) -> Optional[str]:
        return self.headers.get("last-modified")
