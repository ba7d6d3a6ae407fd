import sqlite3

import pytest
from sqlalchemy import create_engine, inspect, text

from stale.db import session as db
from stale.db.models import KeyValueItem


def test_sqlite_parent_dir_is_created(tmp_path):
    db_path = tmp_path / "nested" / "deeper" / "stale.db"
    eng = db.make_engine(f"sqlite:///{db_path}")
    try:
        assert db_path.parent.is_dir()
        with eng.connect() as conn:
            assert conn.execute(text("SELECT 1")).scalar() == 1
            assert conn.exec_driver_sql("PRAGMA journal_mode").scalar().lower() == "wal"
        assert db_path.exists()
    finally:
        eng.dispose()


def test_init_db_creates_tables(tmp_path):
    db_path = tmp_path / "stale.db"
    eng = db.make_engine(f"sqlite:///{db_path}")
    try:
        db.init_db(eng)
        assert {"kv_items", "cache_entries"} <= set(inspect(eng).get_table_names())
        assert db.ping(eng) is True
    finally:
        eng.dispose()

    # Validate using raw sqlite3 to be independent of SQLAlchemy
    con = sqlite3.connect(db_path)
    try:
        names = {r[0] for r in con.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert "cache_entries" in names
    finally:
        con.close()


def test_session_scope_commits_and_rolls_back(session_factory, clock):
    with db.session_scope(session_factory) as s:
        s.add(KeyValueItem(key="a", value={"n": 1}, updated_at=clock()))

    with pytest.raises(RuntimeError):
        with db.session_scope(session_factory) as s:
            s.add(KeyValueItem(key="b", value={"n": 2}, updated_at=clock()))
            s.flush()
            raise RuntimeError("boom")

    with db.session_scope(session_factory) as s:
        assert s.get(KeyValueItem, "a").value == {"n": 1}
        assert s.get(KeyValueItem, "b") is None


def test_ping_reports_failure(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    # Parent path is a file, so sqlite cannot open the database
    eng = create_engine(f"sqlite:///{blocker / 'stale.db'}")
    try:
        assert db.ping(eng) is False
    finally:
        eng.dispose()


def test_reconfigure_database_switches_and_restores(tmp_path):
    original = db.DATABASE_URL
    other = f"sqlite:///{tmp_path / 'other.db'}"
    try:
        db.reconfigure_database(other)
        assert db.DATABASE_URL == other
        assert str(db.engine.url) == other
        db.init_db()
        with db.session_scope() as s:
            assert s.execute(text("SELECT COUNT(*) FROM kv_items")).scalar_one() == 0
    finally:
        db.reconfigure_database(original)
    assert db.DATABASE_URL == original
