import json

import httpx
import pytest

from stale.errors import LicenseAuthorityError
from stale.services.license import LicenseAuthority, LicenseService

AUTHORITY_URL = "https://license.example.com/verify"


def service(kv, clock, handler=None, url=AUTHORITY_URL):
    calls = []

    def record(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record)) if handler else None
    return LicenseService(kv, LicenseAuthority(url, client=client), clock=clock), calls


@pytest.mark.asyncio
async def test_default_license(kv, clock):
    svc, _ = service(kv, clock)
    assert await svc.get() == {"isPaid": False, "purchaseDate": None}


@pytest.mark.asyncio
async def test_set_defaults_purchase_date_when_paid(kv, clock):
    svc, _ = service(kv, clock)
    state = await svc.set(True)
    assert state == {"isPaid": True, "purchaseDate": "2024-06-15"}

    state = await svc.set(False, email="a@example.com")
    assert state["isPaid"] is False
    assert state["purchaseDate"] is None
    assert state["email"] == "a@example.com"


@pytest.mark.asyncio
async def test_verify_persists_verdict(kv, clock):
    svc, calls = service(
        kv, clock, lambda r: httpx.Response(200, json={"isPaid": True, "purchaseDate": "2024-02-01"})
    )
    state = await svc.verify(" user@example.com ")
    assert calls == [{"email": "user@example.com"}]
    assert state == {
        "isPaid": True,
        "purchaseDate": "2024-02-01",
        "email": "user@example.com",
        "verifiedAt": "2024-06-15T12:00:00+00:00",
    }
    assert await svc.get() == state


def _connect_error(request):
    raise httpx.ConnectError("down", request=request)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        lambda r: httpx.Response(500, json={"error": "boom"}),
        lambda r: httpx.Response(200, content=b"<html>not json</html>"),
        lambda r: httpx.Response(200, json={"isPaid": "yes"}),
        _connect_error,
    ],
    ids=["http-500", "not-json", "bad-isPaid", "unreachable"],
)
async def test_failed_verification_keeps_local_state(kv, clock, handler):
    svc, _ = service(kv, clock, handler)
    before = await svc.set(True, "2023-01-01", email="user@example.com")

    with pytest.raises(LicenseAuthorityError):
        await svc.verify("user@example.com")
    assert await svc.get() == before


@pytest.mark.asyncio
async def test_unconfigured_authority(kv, clock):
    svc, _ = service(kv, clock, url="")
    with pytest.raises(LicenseAuthorityError):
        await svc.verify("user@example.com")


@pytest.mark.asyncio
@pytest.mark.parametrize("email", ["", "   ", "not-an-email"])
async def test_invalid_email_never_reaches_authority(kv, clock, email):
    svc, calls = service(kv, clock, lambda r: httpx.Response(200, json={"isPaid": True}))
    with pytest.raises(LicenseAuthorityError):
        await svc.verify(email)
    assert calls == []


@pytest.mark.asyncio
async def test_revalidate(kv, clock):
    verdicts = iter([{"isPaid": True, "purchaseDate": "2024-02-01"}, {"isPaid": False}])
    svc, calls = service(kv, clock, lambda r: httpx.Response(200, json=next(verdicts)))

    # Nothing stored yet
    assert await svc.revalidate() is None
    assert calls == []

    await svc.verify("user@example.com")
    state = await svc.revalidate()
    assert state["isPaid"] is False
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_revalidate_failure_is_quiet(kv, clock):
    svc, _ = service(kv, clock, lambda r: httpx.Response(503))
    before = await svc.set(True, "2023-01-01", email="user@example.com")
    assert await svc.revalidate() is None
    assert await svc.get() == before
