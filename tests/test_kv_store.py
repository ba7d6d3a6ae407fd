import pytest

from stale.db.session import make_engine, make_session_factory
from stale.errors import StorageError
from stale.services.kv_store import KeyValueStore


@pytest.mark.asyncio
async def test_set_get_and_overwrite(kv):
    assert await kv.get(["quota"]) == {}

    await kv.set({"quota": {"count": 1}, "license": {"isPaid": False}})
    assert await kv.get(["quota", "license", "missing"]) == {
        "quota": {"count": 1},
        "license": {"isPaid": False},
    }

    await kv.set({"quota": {"count": 2}})
    assert await kv.get_one("quota") == {"count": 2}
    assert await kv.get_one("missing", {"x": 1}) == {"x": 1}


@pytest.mark.asyncio
async def test_storage_errors_are_wrapped(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    store = KeyValueStore(make_session_factory(eng))
    try:
        with pytest.raises(StorageError):
            await store.get(["quota"])
        with pytest.raises(StorageError):
            await store.set({"quota": {}})
    finally:
        eng.dispose()
