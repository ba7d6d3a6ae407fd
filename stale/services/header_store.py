"""Short-lived memory of `Last-Modified` headers seen for main-frame responses.

The host records a header when a page's response arrives; the page analysis
that follows a moment later looks it up. Entries expire after five minutes.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from stale.utils.dates import utcnow

DEFAULT_HEADER_TTL = timedelta(minutes=5)


class HeaderDateStore:
    def __init__(self, ttl: timedelta = DEFAULT_HEADER_TTL, clock: Callable[[], datetime] = utcnow):
        self.ttl = ttl
        self.clock = clock
        self._items: Dict[str, Tuple[str, datetime]] = {}

    def record(self, url: str, value: str) -> None:
        if not url or not value:
            return
        self.purge()
        self._items[url] = (value, self.clock())

    def get(self, url: str) -> Optional[str]:
        item = self._items.get(url)
        if item is None:
            return None
        value, seen_at = item
        if self.clock() - seen_at > self.ttl:
            self._items.pop(url, None)
            return None
        return value

    def purge(self) -> int:
        now = self.clock()
        stale = [u for u, (_, seen_at) in self._items.items() if now - seen_at > self.ttl]
        for u in stale:
            del self._items[u]
        return len(stale)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
