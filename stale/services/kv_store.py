"""Small persisted key-value store (quota, license, preferences).

Values are JSON documents in the `kv_items` table. The async methods run the
blocking SQLAlchemy work in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from stale.db.models import KeyValueItem
from stale.db.session import session_scope
from stale.errors import StorageError
from stale.utils.dates import utcnow

logger = logging.getLogger(__name__)


class KeyValueStore:
    def __init__(self, session_factory: Optional[sessionmaker] = None, clock: Callable = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    # ---- sync API ----
    def get_sync(self, keys: Iterable[str]) -> Dict[str, Any]:
        wanted = list(keys)
        if not wanted:
            return {}
        try:
            with session_scope(self.session_factory) as s:
                rows = s.execute(select(KeyValueItem).where(KeyValueItem.key.in_(wanted))).scalars().all()
                return {row.key: row.value for row in rows}
        except SQLAlchemyError as e:
            logger.warning("kv get failed for %s: %s", wanted, e)
            raise StorageError(f"kv get failed: {e}") from e

    def set_sync(self, mapping: Mapping[str, Any]) -> None:
        if not mapping:
            return
        now = self.clock()
        try:
            with session_scope(self.session_factory) as s:
                for key, value in mapping.items():
                    row = s.get(KeyValueItem, key)
                    if row is None:
                        s.add(KeyValueItem(key=key, value=value, updated_at=now))
                    else:
                        row.value = value
                        row.updated_at = now
        except SQLAlchemyError as e:
            logger.warning("kv set failed for %s: %s", list(mapping), e)
            raise StorageError(f"kv set failed: {e}") from e

    # ---- async API ----
    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await asyncio.to_thread(self.get_sync, list(keys))

    async def set(self, mapping: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self.set_sync, dict(mapping))

    async def get_one(self, key: str, default: Any = None) -> Any:
        found = await self.get([key])
        return found.get(key, default)
