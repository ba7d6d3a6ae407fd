"""URL-keyed cache of extraction results.

Entries are immutable snapshots, one per normalized URL, with two TTLs:
positive entries (a date was found) live `ttl`, negative entries ("no date
found", source ``none``) carry their own shorter `negative_ttl`. A periodic
`prune()` enforces the hard age and size bounds independently of the TTLs.

Storage errors never reach the caller: reads come back as None, writes as
False, pruning as 0.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from stale.config import Settings, get_settings
from stale.db.models import CacheEntryRow
from stale.db.session import session_scope
from stale.extractors.base import DateCandidate, DateSource
from stale.utils.dates import ensure_utc, parse_date, to_iso, utcnow

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """Cache key for `url`: scheme and host lowercased, query and fragment
    dropped, trailing slash removed (except for the root path)."""
    raw = (url or "").strip()
    parts = urlsplit(raw)
    if not parts.scheme or not parts.netloc:
        return raw
    path = parts.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


@dataclass(frozen=True)
class CacheEntry:
    url: str
    published: Optional[datetime]
    modified: Optional[datetime]
    confidence: float
    source: str
    cached_at: Optional[datetime] = None
    negative_ttl: Optional[timedelta] = None

    @property
    def is_negative(self) -> bool:
        return self.source == DateSource.NONE.value

    @property
    def has_date(self) -> bool:
        return self.published is not None or self.modified is not None

    def with_changes(self, **changes) -> "CacheEntry":
        return replace(self, **changes)

    @classmethod
    def from_candidate(cls, url: str, candidate: DateCandidate) -> "CacheEntry":
        return cls(
            url=url,
            published=candidate.published,
            modified=candidate.modified,
            confidence=candidate.confidence,
            source=candidate.source.value,
        )

    @classmethod
    def negative(cls, url: str, negative_ttl: Optional[timedelta] = None) -> "CacheEntry":
        return cls(url=url, published=None, modified=None, confidence=0.0,
                   source=DateSource.NONE.value, negative_ttl=negative_ttl)

    @classmethod
    def from_dict(cls, url: str, data: Mapping[str, Any]) -> "CacheEntry":
        """Build from the camelCase wire shape (`published`, `modified`,
        `confidence`, `source`, optional `negativeTTL` seconds)."""
        published = parse_date(data.get("published"))
        modified = parse_date(data.get("modified"))
        confidence = float(data.get("confidence") or 0.0)
        ttl = data.get("negativeTTL")
        return cls(
            url=url,
            published=published,
            modified=modified,
            confidence=min(1.0, max(0.0, confidence)),
            source=str(data.get("source") or DateSource.NONE.value),
            negative_ttl=timedelta(seconds=float(ttl)) if ttl else None,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "published": to_iso(self.published),
            "modified": to_iso(self.modified),
            "confidence": round(self.confidence, 4),
            "source": self.source,
            "cachedAt": to_iso(self.cached_at),
            "negativeTTL": int(self.negative_ttl.total_seconds()) if self.negative_ttl else None,
        }

    def as_candidate(self) -> Optional[DateCandidate]:
        if self.is_negative or not self.has_date:
            return None
        try:
            source = DateSource(self.source)
        except ValueError:
            source = DateSource.NONE
        return DateCandidate(self.published, self.modified, self.confidence, source)


def _row_to_entry(row: CacheEntryRow) -> CacheEntry:
    return CacheEntry(
        url=row.url,
        published=ensure_utc(row.published) if row.published else None,
        modified=ensure_utc(row.modified) if row.modified else None,
        confidence=float(row.confidence or 0.0),
        source=row.source or DateSource.NONE.value,
        cached_at=ensure_utc(row.cached_at),
        negative_ttl=timedelta(seconds=row.negative_ttl_seconds) if row.negative_ttl_seconds else None,
    )


class CacheStore:
    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = settings or get_settings()
        self.session_factory = session_factory
        self.clock = clock
        self.ttl = settings.cache_ttl
        self.negative_ttl = settings.negative_ttl
        self.max_age = settings.cache_max_age
        self.max_entries = settings.cache_max_entries

    # ---- expiry ----
    def ttl_for(self, entry: CacheEntry) -> timedelta:
        if entry.is_negative:
            return entry.negative_ttl or self.negative_ttl
        return self.ttl

    def is_expired(self, entry: CacheEntry, now: Optional[datetime] = None) -> bool:
        if entry.cached_at is None:
            return True
        now = ensure_utc(now or self.clock())
        return now - entry.cached_at > self.ttl_for(entry)

    # ---- sync API ----
    def get_sync(self, url: str) -> Optional[CacheEntry]:
        key = normalize_url(url)
        try:
            with session_scope(self.session_factory) as s:
                row = s.get(CacheEntryRow, key)
                if row is None:
                    return None
                entry = _row_to_entry(row)
                if self.is_expired(entry):
                    s.delete(row)
                    return None
                return entry
        except SQLAlchemyError as e:
            logger.warning("cache get failed for %s: %s", key, e)
            return None

    def set_sync(self, url: str, entry: CacheEntry) -> bool:
        key = normalize_url(url)
        if not entry.is_negative and not entry.has_date:
            # A "positive" snapshot without any date is really a miss
            entry = CacheEntry.negative(key, entry.negative_ttl)
        cached_at = ensure_utc(entry.cached_at or self.clock())
        negative_ttl = None
        if entry.is_negative:
            negative_ttl = int((entry.negative_ttl or self.negative_ttl).total_seconds())

        row = CacheEntryRow(
            url=key,
            published=ensure_utc(entry.published) if entry.published else None,
            modified=ensure_utc(entry.modified) if entry.modified else None,
            confidence=float(entry.confidence),
            source=entry.source,
            cached_at=cached_at,
            negative_ttl_seconds=negative_ttl,
        )
        try:
            with session_scope(self.session_factory) as s:
                s.merge(row)
            return True
        except SQLAlchemyError as e:
            logger.warning("cache set failed for %s: %s", key, e)
            return False

    def set_negative_sync(self, url: str) -> bool:
        return self.set_sync(url, CacheEntry.negative(normalize_url(url), self.negative_ttl))

    def prune_sync(self) -> int:
        """Drop entries past the hard max age, then the oldest ones beyond the cap."""
        now = self.clock()
        cutoff = ensure_utc(now) - self.max_age
        removed = 0
        try:
            with session_scope(self.session_factory) as s:
                res = s.execute(delete(CacheEntryRow).where(CacheEntryRow.cached_at < cutoff))
                removed += res.rowcount or 0

                total = s.execute(select(func.count()).select_from(CacheEntryRow)).scalar_one()
                overflow = total - self.max_entries
                if overflow > 0:
                    oldest = s.execute(
                        select(CacheEntryRow.url).order_by(CacheEntryRow.cached_at.asc()).limit(overflow)
                    ).scalars().all()
                    res = s.execute(delete(CacheEntryRow).where(CacheEntryRow.url.in_(oldest)))
                    removed += res.rowcount or 0
        except SQLAlchemyError as e:
            logger.warning("cache prune failed: %s", e)
            return 0
        if removed:
            logger.info("Cache prune removed %s entries", removed)
        return removed

    def count_sync(self) -> int:
        try:
            with session_scope(self.session_factory) as s:
                return int(s.execute(select(func.count()).select_from(CacheEntryRow)).scalar_one())
        except SQLAlchemyError as e:
            logger.warning("cache count failed: %s", e)
            return 0

    def clear_sync(self) -> int:
        try:
            with session_scope(self.session_factory) as s:
                res = s.execute(delete(CacheEntryRow))
                return res.rowcount or 0
        except SQLAlchemyError as e:
            logger.warning("cache clear failed: %s", e)
            return 0

    # ---- async API ----
    async def get(self, url: str) -> Optional[CacheEntry]:
        return await asyncio.to_thread(self.get_sync, url)

    async def set(self, url: str, entry: CacheEntry) -> bool:
        return await asyncio.to_thread(self.set_sync, url, entry)

    async def set_negative(self, url: str) -> bool:
        return await asyncio.to_thread(self.set_negative_sync, url)

    async def prune(self) -> int:
        return await asyncio.to_thread(self.prune_sync)

    async def count(self) -> int:
        return await asyncio.to_thread(self.count_sync)

    async def clear(self) -> int:
        return await asyncio.to_thread(self.clear_sync)
