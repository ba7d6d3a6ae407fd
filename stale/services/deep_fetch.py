"""
Background ("deep") date lookup for pages the caller has not loaded.

Purpose
-------
Many search results can point at the same URL at once. `DeepFetcher`:
- answers from the cache when it can (negative entries included),
- runs at most one remote fetch per normalized URL; concurrent callers await
  the same task,
- bounds each fetch by a wall-clock timeout and reads only the first
  `max_bytes` of the body (the dates live in the head),
- caches the outcome: a positive entry on success, a negative one on any
  failure, so a dead URL is retried at most once per negative TTL.

It never raises for network problems; callers get None.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional

import httpx

from stale.config import FETCH_HEADERS, Settings, get_settings
from stale.errors import FetchError
from stale.extractors import Document, first_match
from stale.services.cache import CacheEntry, CacheStore, normalize_url
from stale.utils.dates import utcnow

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class DeepFetcher:
    def __init__(
        self,
        cache: CacheStore,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = settings or get_settings()
        self.cache = cache
        self.client = client
        self.clock = clock
        self.timeout = settings.fetch_timeout_seconds
        self.max_bytes = settings.fetch_max_bytes
        self._semaphore = asyncio.Semaphore(max(1, settings.fetch_concurrency))
        self._in_flight: Dict[str, asyncio.Task] = {}

    def in_flight(self) -> int:
        return len(self._in_flight)

    async def fetch_date_from_url(self, url: str) -> Optional[CacheEntry]:
        """Cached or freshly extracted entry for `url`, or None when no date is known."""
        key = normalize_url(url)
        if not key:
            return None

        # Check-and-insert with no await in between
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._lookup(key, url))
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))

        # A waiter that gets cancelled must not cancel the shared fetch
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _lookup(self, key: str, url: str) -> Optional[CacheEntry]:
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug("Deep fetch cache hit for %s (negative=%s)", key, cached.is_negative)
            return None if cached.is_negative else cached

        candidate = None
        async with self._semaphore:
            try:
                document = await asyncio.wait_for(self._download(url), timeout=self.timeout)
                candidate = first_match(document)
            except asyncio.TimeoutError:
                logger.warning("Deep fetch timed out after %ss: %s", self.timeout, url)
            except FetchError as e:
                logger.warning("Deep fetch failed: %s", e)

        if candidate is None or not candidate.has_date:
            await self.cache.set_negative(key)
            return None

        entry = CacheEntry.from_candidate(key, candidate).with_changes(cached_at=self.clock())
        await self.cache.set(key, entry)
        return entry

    async def _download(self, url: str) -> Document:
        if self.client is not None:
            return await self._stream(self.client, url)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._stream(client, url)

    async def _stream(self, client: httpx.AsyncClient, url: str) -> Document:
        try:
            async with client.stream(
                "GET", url, headers=FETCH_HEADERS, follow_redirects=True, timeout=self.timeout
            ) as resp:
                if not 200 <= resp.status_code < 300:
                    raise FetchError(url, f"HTTP {resp.status_code}")
                content_type = resp.headers.get("content-type", "").lower()
                if not any(t in content_type for t in HTML_CONTENT_TYPES):
                    raise FetchError(url, f"unsupported content type {content_type or 'none'}")

                body = bytearray()
                async for chunk in resp.aiter_bytes():
                    body.extend(chunk)
                    if len(body) >= self.max_bytes:
                        break

                encoding = resp.charset_encoding or "utf-8"
                headers = dict(resp.headers)
                final_url = str(resp.url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

        try:
            html = bytes(body[: self.max_bytes]).decode(encoding, errors="replace")
        except LookupError:
            html = bytes(body[: self.max_bytes]).decode("utf-8", errors="replace")
        return Document.from_html(html, url=final_url, headers=headers, observed_at=self.clock())
