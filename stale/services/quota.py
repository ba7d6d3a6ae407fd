"""Daily usage quota for non-paying users.

State lives under the ``quota`` key: ``{count, dailyLimit, resetDate}`` with
``resetDate`` a UTC ``YYYY-MM-DD``. Every read resets a stale day, and a
scheduled job resets at UTC midnight as a backstop. Increment is a plain
read-modify-write; the quota is a soft cap.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from stale.services.kv_store import KeyValueStore
from stale.utils.dates import utcnow

logger = logging.getLogger(__name__)

QUOTA_KEY = "quota"
LICENSE_KEY = "license"
DEFAULT_DAILY_LIMIT = 10


def today_string(now: datetime) -> str:
    return now.date().isoformat()


class QuotaService:
    def __init__(
        self,
        store: KeyValueStore,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.daily_limit = daily_limit
        self.clock = clock

    def _fresh(self) -> Dict[str, Any]:
        return {"count": 0, "dailyLimit": self.daily_limit, "resetDate": today_string(self.clock())}

    def _normalize(self, raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not raw:
            return self._fresh()
        return {
            "count": int(raw.get("count", 0) or 0),
            "dailyLimit": self.daily_limit,
            "resetDate": raw.get("resetDate") or today_string(self.clock()),
        }

    async def _load(self) -> Dict[str, Any]:
        """Current quota, reset and persisted first if the day has rolled over."""
        data = await self.store.get([QUOTA_KEY])
        quota = self._normalize(data.get(QUOTA_KEY))
        today = today_string(self.clock())
        if quota["resetDate"] != today or QUOTA_KEY not in data:
            quota["count"] = 0
            quota["resetDate"] = today
            await self.store.set({QUOTA_KEY: quota})
        return quota

    async def check(self) -> Dict[str, Any]:
        quota = await self._load()
        license_state = await self.store.get_one(LICENSE_KEY) or {}
        is_paid = bool(license_state.get("isPaid", False))
        used, limit = quota["count"], quota["dailyLimit"]
        return {
            "used": used,
            "limit": limit,
            "remaining": max(0, limit - used),
            "isPaid": is_paid,
            "allowed": is_paid or used < limit,
        }

    async def increment(self) -> int:
        quota = await self._load()
        quota["count"] += 1
        await self.store.set({QUOTA_KEY: quota})
        return quota["count"]

    async def reset(self) -> Dict[str, Any]:
        data = await self.store.get([QUOTA_KEY])
        quota = self._normalize(data.get(QUOTA_KEY))
        quota["count"] = 0
        quota["resetDate"] = today_string(self.clock())
        await self.store.set({QUOTA_KEY: quota})
        logger.info("Quota reset for %s", quota["resetDate"])
        return quota
