from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI

from stale.api import get_routers
from stale.config import Settings, get_settings
from stale.db.session import init_db, ping
from stale.services.engine import Engine
from stale.services.scheduler import AsyncIOSchedulerAdapter, Scheduler

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    scheduler: Optional[Scheduler] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Stale Engine",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.engine = engine or Engine(settings)

    for router in get_routers():
        app.include_router(router)

    @app.on_event("startup")
    async def _startup() -> None:
        """Initialize the database and start periodic maintenance."""
        init_db()
        if settings.enable_scheduler:
            sched = scheduler or AsyncIOSchedulerAdapter()
            app.state.engine.register_jobs(sched)
            if isinstance(sched, AsyncIOSchedulerAdapter):
                sched.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        app.state.engine.shutdown()

    @app.get("/")
    def root() -> dict:
        routes: List[str] = ["/engine/request", "/engine/health"]
        return {
            "service": "Stale Engine",
            "routers": routes,
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health")
    def health() -> dict:
        return {"ok": True, "db": ping()}

    return app


app = create_app()
