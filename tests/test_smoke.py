import importlib

MODULES = [
    "stale.config",
    "stale.errors",
    "stale.db.models",
    "stale.db.session",
    "stale.extractors",
    "stale.extractors.pipeline",
    "stale.extractors.snippet",
    "stale.services.cache",
    "stale.services.deep_fetch",
    "stale.services.engine",
    "stale.services.freshness",
    "stale.services.header_store",
    "stale.services.kv_store",
    "stale.services.license",
    "stale.services.messages",
    "stale.services.quota",
    "stale.services.scheduler",
    "stale.utils.dates",
    "stale.api",
    "stale.main",
]


def test_import_all_modules():
    failed = []
    for name in MODULES:
        try:
            importlib.import_module(name)
        except Exception as e:
            failed.append((name, str(e)))
    assert not failed, f"Failed imports: {failed}"


def test_every_request_type_has_a_handler():
    from stale.services.engine import Engine
    from stale.services.messages import REQUEST_TYPES

    engine = Engine()
    assert set(REQUEST_TYPES) == set(engine._handlers)
