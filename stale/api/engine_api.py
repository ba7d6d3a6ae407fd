from __future__ import annotations

import asyncio
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from stale.db.session import ping
from stale.extractors import available_extractors
from stale.services.engine import Engine

router = APIRouter(prefix="/engine", tags=["engine"])


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


@router.post("/request")
async def engine_request(
    payload: Dict[str, Any] = Body(..., examples=[{"type": "CHECK_QUOTA"}]),
    engine: Engine = Depends(get_engine),
) -> Dict[str, Any]:
    """Single entry point for every request kind; always answers 200 with a body."""
    return await engine.handle(payload)


@router.get("/health")
async def engine_health(engine: Engine = Depends(get_engine)) -> Dict[str, Any]:
    return {
        "ok": True,
        "service": "stale-engine",
        "db": await asyncio.to_thread(ping),
        "inFlight": engine.fetcher.in_flight(),
        "cacheEntries": await engine.cache.count(),
        "extractors": available_extractors(),
    }
