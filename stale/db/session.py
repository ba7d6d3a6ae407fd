"""Database engine and session setup.

This module provides:
- SQLAlchemy Engine configured from DATABASE_URL (defaults to SQLite ./data/stale.db)
- SessionLocal factory
- init_db() to create tables and ensure SQLite folders/PRAGMAs
- session_scope() transactional helper used by the storage services
- reconfigure_database() for tests or switching databases at runtime
"""
from __future__ import annotations

import atexit
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stale.config import get_settings
from stale.db.models import Base

logger = logging.getLogger(__name__)


def make_engine(url: str, *, echo: bool = False) -> Engine:
    is_sqlite = url.startswith("sqlite")

    engine_kwargs = {
        "future": True,
        "echo": echo,
        "pool_pre_ping": True,
    }
    if is_sqlite:
        # Storage calls run in worker threads (asyncio.to_thread)
        engine_kwargs["connect_args"] = {"check_same_thread": False}

    eng = create_engine(url, **engine_kwargs)

    if is_sqlite:

        @event.listens_for(eng, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[unused-ignore]
            cur = dbapi_connection.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL")
                cur.execute("PRAGMA synchronous=NORMAL")
                cur.execute("PRAGMA busy_timeout=5000")
            finally:
                cur.close()

    # If SQLite file path points to a nested folder, ensure parent exists
    if is_sqlite and url.startswith("sqlite:///") and ":memory:" not in url:
        db_path = url.replace("sqlite:///", "", 1)
        Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)

    return eng


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(
        bind=eng,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


_settings = get_settings()
DATABASE_URL: str = _settings.database_url
engine: Engine = make_engine(DATABASE_URL, echo=_settings.sql_echo)
SessionLocal = make_session_factory(engine)


def _dispose_current_engine() -> None:
    """Dispose the active engine so pooled connections close at shutdown."""
    try:
        engine.dispose()
    except Exception:
        logger.debug("engine dispose failed", exc_info=True)


atexit.register(_dispose_current_engine)


def reconfigure_database(url: Optional[str] = None, *, echo: bool = False) -> None:
    """Rebuild the global engine/session using a new URL.
    Useful for tests or pointing the app at another database.
    """
    global engine, DATABASE_URL
    if url is not None:
        DATABASE_URL = url
    _dispose_current_engine()
    engine = make_engine(DATABASE_URL, echo=echo)
    SessionLocal.configure(bind=engine)


def init_db(eng: Optional[Engine] = None) -> None:
    """Create tables if they don't exist."""
    target = eng or engine
    Base.metadata.create_all(bind=target)
    logger.info("Database initialized: %s", target.url.render_as_string(hide_password=True))


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ping(eng: Optional[Engine] = None) -> bool:
    """Lightweight connectivity check (SELECT 1). Returns True if OK, False otherwise."""
    try:
        with (eng or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("DB ping failed")
        return False
