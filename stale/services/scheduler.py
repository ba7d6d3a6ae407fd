"""Periodic job scheduling.

The engine only needs "run this coroutine after a delay, then every N", so it
depends on the small `Scheduler` protocol below. Production uses APScheduler's
AsyncIOScheduler; tests use `ManualScheduler` and fire jobs by hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from stale.utils.dates import utcnow

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Awaitable[Any]]


class Scheduler(Protocol):
    def add_recurring(
        self, name: str, callback: JobCallback, initial_delay: timedelta, interval: timedelta
    ) -> None:
        ...

    def shutdown(self) -> None:
        ...


def next_utc_midnight(now: Optional[datetime] = None) -> datetime:
    now = now or utcnow()
    today = datetime(now.year, now.month, now.day, tzinfo=timezone.utc)
    return today + timedelta(days=1)


def until_next_utc_midnight(now: Optional[datetime] = None) -> timedelta:
    now = now or utcnow()
    return next_utc_midnight(now) - now


class AsyncIOSchedulerAdapter:
    """`Scheduler` backed by APScheduler's AsyncIOScheduler."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None, clock: Callable[[], datetime] = utcnow):
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.clock = clock

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Scheduler started")

    def add_recurring(
        self, name: str, callback: JobCallback, initial_delay: timedelta, interval: timedelta
    ) -> None:
        trigger = IntervalTrigger(
            seconds=int(interval.total_seconds()),
            start_date=self.clock() + initial_delay,
            timezone=timezone.utc,
        )
        self._scheduler.add_job(
            callback,
            trigger=trigger,
            id=name,
            name=name,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.info("Scheduled job %s (first in %s, every %s)", name, initial_delay, interval)

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")


@dataclass
class ScheduledJob:
    name: str
    callback: JobCallback
    initial_delay: timedelta
    interval: timedelta


class ManualScheduler:
    """In-memory `Scheduler`; jobs run only when `fire()` is called."""

    def __init__(self) -> None:
        self.jobs: Dict[str, ScheduledJob] = {}
        self.stopped = False

    def add_recurring(
        self, name: str, callback: JobCallback, initial_delay: timedelta, interval: timedelta
    ) -> None:
        self.jobs[name] = ScheduledJob(name, callback, initial_delay, interval)

    async def fire(self, name: str) -> Any:
        return await self.jobs[name].callback()

    def shutdown(self) -> None:
        self.stopped = True
