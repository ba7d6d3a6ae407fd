import os, sys, tempfile
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Keep the module-level engine away from ./data and the scheduler off
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), f'stale-test-{os.getpid()}.db')}"
)
os.environ.setdefault("STALE_ENABLE_SCHEDULER", "0")

from datetime import datetime, timedelta, timezone

import pytest

from stale.config import Settings
from stale.db.session import init_db, make_engine, make_session_factory
from stale.services.cache import CacheStore
from stale.services.kv_store import KeyValueStore
from stale.services.scheduler import ManualScheduler

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'stale.db'}"


@pytest.fixture
def settings(db_url):
    return Settings(database_url=db_url, enable_scheduler=False)


@pytest.fixture
def session_factory(db_url):
    """Session factory bound to a throwaway SQLite file with tables created."""
    eng = make_engine(db_url)
    init_db(eng)
    try:
        yield make_session_factory(eng)
    finally:
        eng.dispose()


@pytest.fixture
def kv(session_factory, clock):
    return KeyValueStore(session_factory, clock=clock)


@pytest.fixture
def cache(session_factory, settings, clock):
    return CacheStore(session_factory, settings, clock=clock)


@pytest.fixture
def manual_scheduler():
    return ManualScheduler()
