import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from location_lookup import UNKNOWN, enrich, lookup_country
from locations import Location
from session import GenerationResult


@pytest.fixture
async def lookup_server():
    async def handler(request):
        ip = request.query.get("ip")
        if ip == "10.0.0.99":
            return web.Response(status=500)
        if ip == "10.0.0.98":
            return web.json_response({})
        return web.json_response({"ip": ip, "country_name": "Germany"})

    app = web.Application()
    app.router.add_get("/", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    yield str(server.make_url("/"))
    await server.close()


async def test_lookup_country_success(lookup_server):
    async with aiohttp.ClientSession() as session:
        info = await lookup_country(session, "10.0.0.1", url=lookup_server)
    assert info == {"country_name": "Germany"}


@pytest.mark.parametrize("ip", ["10.0.0.99", "10.0.0.98"])
async def test_lookup_country_unknown_on_bad_response(lookup_server, ip):
    async with aiohttp.ClientSession() as session:
        info = await lookup_country(session, ip, url=lookup_server)
    assert info == {"country_name": UNKNOWN}


async def test_lookup_country_unreachable():
    async with aiohttp.ClientSession() as session:
        info = await lookup_country(session, "10.0.0.1", url="http://127.0.0.1:9/", timeout=1.0)
    assert info["country_name"] == UNKNOWN


async def test_enrich_ipv4_uses_lookup_and_keeps_order():
    async def fake_lookup(session, ip):
        if ip.endswith(".3"):
            raise RuntimeError("lookup failed")
        return {"country_name": f"C-{ip}"}

    addresses = ("10.0.0.1", "10.0.0.2", "10.0.0.3")
    result = GenerationResult(version=4, location_id="de", addresses=addresses)
    enriched = await enrich(result, None, lookup=fake_lookup)

    assert [e["address"] for e in enriched] == list(addresses)
    assert enriched[0]["country_name"] == "C-10.0.0.1"
    assert enriched[2]["country_name"] == UNKNOWN
    assert result.addresses == addresses


async def test_enrich_ipv6_uses_location_country():
    async def never_called(session, ip):
        raise AssertionError("IPv6 must not be looked up")

    location = Location(id="ae-dubai", name="UAE (Dubai)")
    result = GenerationResult(version=6, location_id="ae-dubai", addresses=("2001:db8:2:0:0:0:0:1",))
    enriched = await enrich(result, location, lookup=never_called)
    assert enriched == [{"address": "2001:db8:2:0:0:0:0:1", "country_name": "UAE"}]
