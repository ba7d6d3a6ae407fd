"""Paid-license state and its verification against a remote authority.

The local ``license`` key mirrors the last verdict received. A failed
verification (network, non-2xx, bad payload, no authority configured) leaves
that mirror exactly as it was: paid users are not revoked and free users are
not upgraded because of a transient outage.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import httpx

from stale.errors import LicenseAuthorityError
from stale.services.kv_store import KeyValueStore
from stale.utils.dates import to_iso, utcnow

logger = logging.getLogger(__name__)

LICENSE_KEY = "license"
DEFAULT_LICENSE: Dict[str, Any] = {"isPaid": False, "purchaseDate": None}


class LicenseAuthority:
    """Client for ``POST {email} -> {isPaid, purchaseDate}``."""

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.url = (url or "").strip()
        self.client = client
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def _post(self, email: str) -> httpx.Response:
        if self.client is not None:
            return await self.client.post(self.url, json={"email": email}, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await client.post(self.url, json={"email": email})

    async def verify(self, email: str) -> Dict[str, Any]:
        if not self.configured:
            raise LicenseAuthorityError("license authority is not configured")
        try:
            resp = await self._post(email)
        except httpx.HTTPError as e:
            raise LicenseAuthorityError(f"license authority unreachable: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise LicenseAuthorityError(f"license authority returned HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as e:
            raise LicenseAuthorityError("license authority returned a malformed body") from e
        if not isinstance(body, dict) or not isinstance(body.get("isPaid"), bool):
            raise LicenseAuthorityError("license authority response lacks isPaid")

        purchase = body.get("purchaseDate")
        return {"isPaid": body["isPaid"], "purchaseDate": purchase if isinstance(purchase, str) else None}


class LicenseService:
    def __init__(
        self,
        store: KeyValueStore,
        authority: Optional[LicenseAuthority] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.authority = authority or LicenseAuthority("")
        self.clock = clock

    async def get(self) -> Dict[str, Any]:
        state = await self.store.get_one(LICENSE_KEY)
        return dict(state) if state else dict(DEFAULT_LICENSE)

    async def set(self, is_paid: bool, purchase_date: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Any]:
        current = await self.get()
        if purchase_date is None and is_paid:
            purchase_date = self.clock().date().isoformat()
        state = dict(current)
        state.update({"isPaid": bool(is_paid), "purchaseDate": purchase_date})
        if email:
            state["email"] = email
        await self.store.set({LICENSE_KEY: state})
        return state

    async def verify(self, email: str) -> Dict[str, Any]:
        """Ask the authority about `email` and persist its verdict.

        Raises LicenseAuthorityError with local state untouched when no
        usable verdict comes back.
        """
        email = (email or "").strip()
        if "@" not in email:
            raise LicenseAuthorityError("a valid email is required")

        verdict = await self.authority.verify(email)
        state = {
            "isPaid": verdict["isPaid"],
            "purchaseDate": verdict["purchaseDate"],
            "email": email,
            "verifiedAt": to_iso(self.clock()),
        }
        await self.store.set({LICENSE_KEY: state})
        logger.info("License verified for %s: isPaid=%s", email, state["isPaid"])
        return state

    async def revalidate(self) -> Optional[Dict[str, Any]]:
        """Periodic re-check of the stored email; failures keep the last known state."""
        current = await self.get()
        email = current.get("email")
        if not email:
            return None
        try:
            return await self.verify(email)
        except LicenseAuthorityError as e:
            logger.warning("License revalidation failed for %s: %s", email, e)
            return None
