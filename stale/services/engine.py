"""Engine: owns the services and answers every request.

`Engine.handle()` takes a raw dict (or a request model) and always returns a
JSON-serializable dict. Failures come back as ``{"error": ..., "type": ...}``;
read requests also carry their default payload so callers can degrade to an
"unknown" state instead of breaking.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from stale.config import DEFAULT_PREFERENCES, Settings, get_settings
from stale.errors import LicenseAuthorityError, StorageError
from stale.extractors import DateCandidate, Document, ExtractionPipeline, extract_from_snippet
from stale.services import messages as m
from stale.services.cache import CacheEntry, CacheStore, normalize_url
from stale.services.deep_fetch import DeepFetcher
from stale.services.freshness import Thresholds, classify
from stale.services.header_store import HeaderDateStore
from stale.services.kv_store import KeyValueStore
from stale.services.license import DEFAULT_LICENSE, LicenseAuthority, LicenseService
from stale.services.quota import QuotaService
from stale.services.scheduler import Scheduler, until_next_utc_midnight
from stale.utils.dates import utcnow

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "preferences"

QUOTA_RESET_INTERVAL = timedelta(hours=24)
CACHE_CLEANUP_DELAY = timedelta(minutes=10)
CACHE_CLEANUP_INTERVAL = timedelta(hours=6)
LICENSE_CHECK_DELAY = timedelta(minutes=1)
LICENSE_CHECK_INTERVAL = timedelta(hours=12)

Handler = Callable[[Any], Awaitable[Dict[str, Any]]]


def error_response(message: str, kind: str, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": message, "type": kind}
    payload.update(extra)
    return payload


class Engine:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_factory: Optional[sessionmaker] = None,
        client: Optional[httpx.AsyncClient] = None,
        authority: Optional[LicenseAuthority] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.clock = clock

        self.kv = KeyValueStore(session_factory, clock=clock)
        self.cache = CacheStore(session_factory, self.settings, clock=clock)
        self.quota = QuotaService(self.kv, self.settings.free_daily_limit, clock=clock)
        self.license = LicenseService(
            self.kv,
            authority or LicenseAuthority(
                self.settings.license_verify_url, client=client, timeout=self.settings.license_timeout_seconds
            ),
            clock=clock,
        )
        self.headers = HeaderDateStore(clock=clock)
        self.fetcher = DeepFetcher(self.cache, client=client, settings=self.settings, clock=clock)
        self.pipeline = ExtractionPipeline()
        self.scheduler: Optional[Scheduler] = None

        self._handlers: Dict[type, Handler] = {
            m.CheckQuota: self._check_quota,
            m.IncrementQuota: self._increment_quota,
            m.GetCache: self._get_cache,
            m.SetCache: self._set_cache,
            m.FetchDateFromUrl: self._fetch_date_from_url,
            m.GetLicense: self._get_license,
            m.SetLicense: self._set_license,
            m.VerifyLicense: self._verify_license,
            m.GetPreferences: self._get_preferences,
            m.SetPreferences: self._set_preferences,
            m.ToggleEnabled: self._toggle_enabled,
            m.GetHttpDate: self._get_http_date,
            m.RecordHttpDate: self._record_http_date,
            m.AnalyzePage: self._analyze_page,
            m.AnalyzeSnippet: self._analyze_snippet,
        }
        missing = [t.__name__ for t in m.REQUEST_TYPES if t not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler for request types: {missing}")

        # Payload returned alongside a storage error, per request type
        self._fallbacks: Dict[type, Callable[[], Dict[str, Any]]] = {
            m.CheckQuota: self._default_quota,
            m.GetCache: lambda: {"entry": None},
            m.FetchDateFromUrl: lambda: {"entry": None},
            m.GetLicense: lambda: dict(DEFAULT_LICENSE),
            m.GetPreferences: self._default_preferences,
            m.GetHttpDate: lambda: {"date": None},
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    async def handle(self, request: Any) -> Dict[str, Any]:
        """Answer one request. Never raises."""
        try:
            req = m.parse_request(request)
        except ValidationError as e:
            kind = request.get("type") if isinstance(request, dict) else None
            if not any(kind == t.model_fields["type"].default for t in m.REQUEST_TYPES):
                return error_response("Unknown message type", "invalid_request")
            return error_response(f"Invalid {kind} request: {e.error_count()} error(s)", "invalid_request",
                                  details=e.errors(include_url=False, include_context=False))

        handler = self._handlers[type(req)]
        try:
            return await handler(req)
        except StorageError as e:
            fallback = self._fallbacks.get(type(req))
            extra = fallback() if fallback else {}
            return error_response(str(e), "storage", **extra)
        except ValueError as e:
            return error_response(str(e), "invalid_request")
        except Exception as e:  # noqa: BLE001
            logger.exception("Unhandled error for %s", req.type)
            return error_response(str(e) or type(e).__name__, "internal")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _default_quota(self) -> Dict[str, Any]:
        limit = self.settings.free_daily_limit
        return {"used": 0, "limit": limit, "remaining": limit, "isPaid": False, "allowed": True}

    def _default_preferences(self) -> Dict[str, Any]:
        prefs = dict(DEFAULT_PREFERENCES)
        prefs["thresholds"] = dict(self.settings.thresholds)
        return prefs

    async def preferences(self) -> Dict[str, Any]:
        stored = await self.kv.get_one(PREFERENCES_KEY)
        prefs = self._default_preferences()
        if stored:
            prefs.update(stored)
        return prefs

    async def thresholds(self) -> Thresholds:
        """Thresholds from preferences; defaults when storage is unavailable."""
        try:
            prefs = await self.preferences()
            return Thresholds.from_mapping(prefs.get("thresholds"))
        except (StorageError, ValueError) as e:
            logger.warning("Falling back to default thresholds: %s", e)
            return Thresholds.from_mapping(self.settings.thresholds)

    async def _describe(self, candidate: Optional[DateCandidate]) -> Dict[str, Any]:
        thresholds = await self.thresholds()
        now = self.clock()
        if candidate is None:
            info = classify(None, None, thresholds, now)
        else:
            info = classify(candidate.published, candidate.modified, thresholds, now)
        return {
            "date": candidate.as_dict() if candidate else None,
            "freshness": info.as_dict(),
        }

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------
    async def _check_quota(self, req: m.CheckQuota) -> Dict[str, Any]:
        return await self.quota.check()

    async def _increment_quota(self, req: m.IncrementQuota) -> Dict[str, Any]:
        return {"used": await self.quota.increment()}

    # ------------------------------------------------------------------
    # Cache / deep fetch
    # ------------------------------------------------------------------
    async def _get_cache(self, req: m.GetCache) -> Dict[str, Any]:
        entry = await self.cache.get(req.url)
        return {"entry": entry.as_dict() if entry else None}

    async def _set_cache(self, req: m.SetCache) -> Dict[str, Any]:
        key = normalize_url(req.url)
        entry = CacheEntry.from_dict(key, req.entry.model_dump(by_alias=True))
        return {"ok": await self.cache.set(key, entry)}

    async def _fetch_date_from_url(self, req: m.FetchDateFromUrl) -> Dict[str, Any]:
        entry = await self.fetcher.fetch_date_from_url(req.url)
        return {"entry": entry.as_dict() if entry else None}

    # ------------------------------------------------------------------
    # License
    # ------------------------------------------------------------------
    async def _get_license(self, req: m.GetLicense) -> Dict[str, Any]:
        return await self.license.get()

    async def _set_license(self, req: m.SetLicense) -> Dict[str, Any]:
        state = await self.license.set(req.is_paid, req.purchase_date, req.email)
        return {"ok": True, "license": state}

    async def _verify_license(self, req: m.VerifyLicense) -> Dict[str, Any]:
        try:
            state = await self.license.verify(req.email)
        except LicenseAuthorityError as e:
            logger.warning("License verification failed: %s", e)
            return error_response(str(e), "license_authority", license=await self.license.get())
        return {"ok": True, "license": state}

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------
    async def _get_preferences(self, req: m.GetPreferences) -> Dict[str, Any]:
        return await self.preferences()

    async def _set_preferences(self, req: m.SetPreferences) -> Dict[str, Any]:
        merged = await self.preferences()
        merged.update(req.prefs)
        # Reject bad thresholds before they reach storage
        merged["thresholds"] = Thresholds.from_mapping(merged.get("thresholds")).as_dict()
        await self.kv.set({PREFERENCES_KEY: merged})
        return {"ok": True, "preferences": merged}

    async def _toggle_enabled(self, req: m.ToggleEnabled) -> Dict[str, Any]:
        prefs = await self.preferences()
        prefs["enabled"] = req.enabled
        await self.kv.set({PREFERENCES_KEY: prefs})
        return {"enabled": prefs["enabled"]}

    # ------------------------------------------------------------------
    # Header dates
    # ------------------------------------------------------------------
    async def _get_http_date(self, req: m.GetHttpDate) -> Dict[str, Any]:
        return {"date": self.headers.get(req.url)}

    async def _record_http_date(self, req: m.RecordHttpDate) -> Dict[str, Any]:
        self.headers.record(req.url, req.date)
        return {"ok": True}

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    async def _analyze_page(self, req: m.AnalyzePage) -> Dict[str, Any]:
        cached = None
        if req.use_cache and req.url:
            cached = await self.cache.get(req.url)
        if cached is not None and not cached.is_negative:
            result = await self._describe(cached.as_candidate())
            result["cached"] = True
            return result

        last_modified = req.last_modified or (self.headers.get(req.url) if req.url else None)
        now = self.clock()
        candidate = await asyncio.to_thread(self._run_pipeline, req.html, req.url, last_modified, now)

        if candidate is not None and req.url:
            await self.cache.set(req.url, CacheEntry.from_candidate(normalize_url(req.url), candidate))

        result = await self._describe(candidate)
        result["cached"] = False
        return result

    def _run_pipeline(self, html: str, url: str, last_modified: Optional[str], now: datetime) -> Optional[DateCandidate]:
        document = Document.from_html(html, url=url, observed_at=now)
        return self.pipeline.run(document, last_modified)

    async def _analyze_snippet(self, req: m.AnalyzeSnippet) -> Dict[str, Any]:
        candidate = extract_from_snippet(req.text, self.clock())
        if candidate is None and req.url:
            cached = await self.cache.get(req.url)
            if cached is not None:
                candidate = cached.as_candidate()
        result = await self._describe(candidate)
        result["needsDeepFetch"] = candidate is None and bool(req.url)
        return result

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    async def cleanup_cache(self) -> int:
        return await self.cache.prune()

    async def reset_quota(self) -> None:
        try:
            await self.quota.reset()
        except StorageError as e:
            logger.warning("Scheduled quota reset failed: %s", e)

    async def revalidate_license(self) -> None:
        try:
            await self.license.revalidate()
        except StorageError as e:
            logger.warning("Scheduled license revalidation failed: %s", e)

    def register_jobs(self, scheduler: Scheduler) -> None:
        self.scheduler = scheduler
        scheduler.add_recurring(
            "quota-reset", self.reset_quota, until_next_utc_midnight(self.clock()), QUOTA_RESET_INTERVAL
        )
        scheduler.add_recurring("cache-cleanup", self.cleanup_cache, CACHE_CLEANUP_DELAY, CACHE_CLEANUP_INTERVAL)
        scheduler.add_recurring(
            "license-revalidate", self.revalidate_license, LICENSE_CHECK_DELAY, LICENSE_CHECK_INTERVAL
        )

    def shutdown(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown()
            self.scheduler = None
        self.headers.clear()
