"""Runtime configuration for the Stale engine.

Everything is read from the environment (and `.env` via python-dotenv) once,
then cached. Tests build their own `Settings(...)` directly instead of
mutating the environment.

ENV:
- DATABASE_URL: SQLAlchemy URL. Defaults to SQLite ./data/stale.db
- SQL_ECHO: echo SQL statements ("1"/"true")
- STALE_CACHE_TTL_HOURS / STALE_NEGATIVE_TTL_HOURS: positive / negative TTLs
- STALE_CACHE_MAX_AGE_DAYS / STALE_CACHE_MAX_ENTRIES: hard cache bounds
- STALE_FREE_DAILY_LIMIT: quota for non-paying users
- STALE_FETCH_TIMEOUT_SECONDS / STALE_FETCH_MAX_BYTES / STALE_FETCH_CONCURRENCY
- STALE_LICENSE_VERIFY_URL: license authority endpoint (empty = disabled)
- STALE_ENABLE_SCHEDULER: start periodic maintenance jobs on app startup
- LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache
from typing import Dict

from dotenv import load_dotenv


DEFAULT_DATABASE_URL = "sqlite:///./data/stale.db"

DEFAULT_THRESHOLDS: Dict[str, int] = {"green": 6, "yellow": 18, "orange": 36}

DEFAULT_PREFERENCES: Dict[str, object] = {
    "enabled": True,
    "showBadgeOnPages": True,
    "showBadgeOnSerp": True,
    "thresholds": dict(DEFAULT_THRESHOLDS),
    "badgePosition": "top-right",
    "badgeOpacity": 0.85,
}

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

FETCH_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


@dataclass
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    sql_echo: bool = False

    cache_ttl: timedelta = timedelta(hours=24)
    negative_ttl: timedelta = timedelta(hours=6)
    cache_max_age: timedelta = timedelta(days=7)
    cache_max_entries: int = 5000

    free_daily_limit: int = 10

    fetch_timeout_seconds: float = 8.0
    fetch_max_bytes: int = 100_000
    fetch_concurrency: int = 3

    license_verify_url: str = ""
    license_timeout_seconds: float = 10.0

    enable_scheduler: bool = True
    log_level: str = "INFO"

    thresholds: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            sql_echo=_env_bool("SQL_ECHO", False),
            cache_ttl=timedelta(hours=_env_float("STALE_CACHE_TTL_HOURS", 24)),
            negative_ttl=timedelta(hours=_env_float("STALE_NEGATIVE_TTL_HOURS", 6)),
            cache_max_age=timedelta(days=_env_float("STALE_CACHE_MAX_AGE_DAYS", 7)),
            cache_max_entries=_env_int("STALE_CACHE_MAX_ENTRIES", 5000),
            free_daily_limit=_env_int("STALE_FREE_DAILY_LIMIT", 10),
            fetch_timeout_seconds=_env_float("STALE_FETCH_TIMEOUT_SECONDS", 8.0),
            fetch_max_bytes=_env_int("STALE_FETCH_MAX_BYTES", 100_000),
            fetch_concurrency=max(1, _env_int("STALE_FETCH_CONCURRENCY", 3)),
            license_verify_url=os.getenv("STALE_LICENSE_VERIFY_URL", "").strip(),
            enable_scheduler=_env_bool("STALE_ENABLE_SCHEDULER", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once)."""
    return Settings.from_env()
