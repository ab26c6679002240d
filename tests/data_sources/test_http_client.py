"""
Resilient Fetch Client Tests.

============================================================
PURPOSE
============================================================
Failover behaviour of the shared HTTP client.

TEST CATEGORIES:
- Pass-through: ok and application-error responses
- Geo-block failover: 403 / 451 against alternate hosts
- Network failover: connection errors and timeouts
- Live server: real requests against local aiohttp servers
- Helpers: URL host replacement

============================================================
"""

import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aiohttp import test_utils, web

from data_sources.exceptions import FetchError
from data_sources.http_client import FetchResponse, ResilientFetchClient, replace_host


PRIMARY = "https://fapi.binance.com/fapi/v1/premiumIndex?symbol=BTCUSDT"
ALTERNATES = {"fapi.binance.com": ["fapi1.binance.com", "fapi2.binance.com"]}


def response(status: int, url: str = PRIMARY, body: bytes = b"[]") -> FetchResponse:
    return FetchResponse(status=status, url=url, body=body)


def requested_urls(mock: AsyncMock) -> list[str]:
    return [call.args[0] for call in mock.call_args_list]


@pytest.fixture
def client() -> ResilientFetchClient:
    return ResilientFetchClient(timeout=1.0, alternate_domains=ALTERNATES)


# ============================================================
# PASS-THROUGH TESTS
# ============================================================

class TestPassThrough:
    """Responses that must not trigger failover."""

    @pytest.mark.asyncio
    async def test_ok_response_returned(self, client):
        """Test a 200 is returned after one attempt."""
        with patch.object(client, "_request_once", AsyncMock(return_value=response(200))) as mock:
            result = await client.fetch(PRIMARY)

        assert result.ok
        assert mock.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 429, 500, 502, 503])
    async def test_application_errors_never_retried(self, client, status):
        """Test ordinary 4xx/5xx are returned untouched."""
        with patch.object(client, "_request_once", AsyncMock(return_value=response(status))) as mock:
            result = await client.fetch(PRIMARY)

        assert result.status == status
        assert mock.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_forwarded(self, client):
        """Test the per-call timeout overrides the default."""
        with patch.object(client, "_request_once", AsyncMock(return_value=response(200))) as mock:
            await client.fetch(PRIMARY, timeout=0.5)

        assert mock.call_args.args[5] == 0.5


# ============================================================
# GEO-BLOCK FAILOVER TESTS
# ============================================================

class TestGeoBlockFailover:
    """403/451 responses fail over to alternate hosts."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [403, 451])
    async def test_first_ok_alternate_wins(self, client, status):
        """Test alternates are tried in order until one succeeds."""
        mock = AsyncMock(side_effect=[
            response(status),
            response(403),
            response(200, url="https://fapi2.binance.com/fapi/v1/premiumIndex?symbol=BTCUSDT"),
        ])
        with patch.object(client, "_request_once", mock):
            result = await client.fetch(PRIMARY)

        assert result.ok
        assert requested_urls(mock) == [
            PRIMARY,
            "https://fapi1.binance.com/fapi/v1/premiumIndex?symbol=BTCUSDT",
            "https://fapi2.binance.com/fapi/v1/premiumIndex?symbol=BTCUSDT",
        ]

    @pytest.mark.asyncio
    async def test_stops_at_first_success(self, client):
        """Test no further alternates are tried after a success."""
        mock = AsyncMock(side_effect=[response(403), response(200)])
        with patch.object(client, "_request_once", mock):
            await client.fetch(PRIMARY)

        assert mock.call_count == 2

    @pytest.mark.asyncio
    async def test_original_response_when_all_alternates_fail(self, client):
        """Test the original geo-block is propagated when nothing recovers."""
        mock = AsyncMock(side_effect=[
            response(451),
            aiohttp.ClientConnectionError("refused"),
            response(500),
        ])
        with patch.object(client, "_request_once", mock):
            result = await client.fetch(PRIMARY)

        assert result.status == 451
        assert mock.call_count == 3

    @pytest.mark.asyncio
    async def test_host_without_alternates(self, client):
        """Test a geo-block on an unknown host is returned after one attempt."""
        url = "https://api.example.com/v1/data"
        mock = AsyncMock(return_value=response(403, url=url))
        with patch.object(client, "_request_once", mock):
            result = await client.fetch(url)

        assert result.status == 403
        assert mock.call_count == 1


# ============================================================
# NETWORK FAILOVER TESTS
# ============================================================

class TestNetworkFailover:
    """Connection errors and timeouts fail over to alternate hosts."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        aiohttp.ClientConnectionError("reset"),
        asyncio.TimeoutError(),
        OSError("unreachable"),
    ])
    async def test_recovers_via_alternate(self, client, error):
        """Test a network failure is recovered by an alternate host."""
        mock = AsyncMock(side_effect=[error, response(200)])
        with patch.object(client, "_request_once", mock):
            result = await client.fetch(PRIMARY)

        assert result.ok
        assert requested_urls(mock)[1].startswith("https://fapi1.binance.com/")

    @pytest.mark.asyncio
    async def test_raises_when_everything_unreachable(self, client):
        """Test FetchError carries the original network error."""
        original = aiohttp.ClientConnectionError("refused")
        mock = AsyncMock(side_effect=[original, asyncio.TimeoutError(), OSError("down")])
        with patch.object(client, "_request_once", mock):
            with pytest.raises(FetchError) as exc_info:
                await client.fetch(PRIMARY)

        assert exc_info.value.original_error is original
        assert exc_info.value.request_url == PRIMARY
        assert mock.call_count == 3

    @pytest.mark.asyncio
    async def test_alternate_application_error_not_accepted(self, client):
        """Test a non-ok alternate does not count as recovery."""
        mock = AsyncMock(side_effect=[OSError("down"), response(404), response(502)])
        with patch.object(client, "_request_once", mock):
            with pytest.raises(FetchError):
                await client.fetch(PRIMARY)


# ============================================================
# LIVE SERVER TESTS
# ============================================================

class Venue:
    """Local HTTP endpoint answering a fixed status, optionally slowly."""

    def __init__(self, status: int = 200, delay: float = 0.0):
        self.status = status
        self.delay = delay
        self.requests = []

    async def handle(self, request: web.Request) -> web.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.json_response({"venue": request.host}, status=self.status)

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/data", self.handle)
        return app


def host_of(server: test_utils.TestServer) -> str:
    return f"{server.host}:{server.port}"


class TestLiveServer:
    """Real requests through aiohttp against local servers."""

    @pytest.mark.asyncio
    async def test_body_and_headers(self):
        """Test the body survives the connection and headers are merged."""
        venue = Venue()
        async with test_utils.TestServer(venue.app()) as server:
            async with ResilientFetchClient(timeout=2.0, alternate_domains={}) as client:
                result = await client.fetch(
                    str(server.make_url("/data")),
                    params={"symbol": "BTCUSDT"},
                    headers={"X-Api-Key": "demo"},
                )

        assert result.ok
        assert result.json() == {"venue": host_of(server)}
        request = venue.requests[0]
        assert request.query["symbol"] == "BTCUSDT"
        assert request.headers["X-Api-Key"] == "demo"
        assert request.headers["User-Agent"].startswith("Mozilla/5.0")

    @pytest.mark.asyncio
    async def test_slow_server_times_out(self):
        """Test a hung request is cancelled at the timeout."""
        venue = Venue(delay=0.5)
        async with test_utils.TestServer(venue.app()) as server:
            async with ResilientFetchClient(timeout=0.05, alternate_domains={}) as client:
                loop = asyncio.get_running_loop()
                started = loop.time()
                with pytest.raises(FetchError) as exc_info:
                    await client.fetch(str(server.make_url("/data")))
                elapsed = loop.time() - started

        assert elapsed < 0.4
        assert isinstance(exc_info.value.original_error, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_geo_block_recovered_by_alternate(self):
        """Test a 403 host is bypassed through its alternate host."""
        blocked, mirror = Venue(status=403), Venue()
        async with test_utils.TestServer(blocked.app()) as primary, \
                test_utils.TestServer(mirror.app()) as alternate:
            alternates = {host_of(primary): [host_of(alternate)]}
            async with ResilientFetchClient(timeout=2.0, alternate_domains=alternates) as client:
                result = await client.fetch(str(primary.make_url("/data")))

        assert result.status == 200
        assert result.json() == {"venue": host_of(alternate)}
        assert len(blocked.requests) == 1
        assert len(mirror.requests) == 1

    @pytest.mark.asyncio
    async def test_server_error_not_retried(self):
        """Test a 500 is returned without touching the alternate host."""
        failing, mirror = Venue(status=500), Venue()
        async with test_utils.TestServer(failing.app()) as primary, \
                test_utils.TestServer(mirror.app()) as alternate:
            alternates = {host_of(primary): [host_of(alternate)]}
            async with ResilientFetchClient(timeout=2.0, alternate_domains=alternates) as client:
                result = await client.fetch(str(primary.make_url("/data")))

        assert result.status == 500
        assert len(failing.requests) == 1
        assert mirror.requests == []


# ============================================================
# HELPER TESTS
# ============================================================

class TestHelpers:
    """Tests for URL helpers and response accessors."""

    def test_replace_host_keeps_path_and_query(self):
        """Test only the network location changes."""
        assert replace_host(PRIMARY, "fapi3.binance.com") == (
            "https://fapi3.binance.com/fapi/v1/premiumIndex?symbol=BTCUSDT"
        )

    def test_alternates_for(self, client):
        """Test alternates are looked up by host."""
        assert client.alternates_for(PRIMARY) == ("fapi1.binance.com", "fapi2.binance.com")
        assert client.alternates_for("https://api.example.com/x") == ()

    def test_default_alternate_table(self):
        """Test the built-in table covers the main CEX hosts."""
        client = ResilientFetchClient()
        assert client.alternates_for("https://api.bybit.com/v5/market/tickers") == ("api.bytick.com",)

    def test_response_json_and_flags(self):
        """Test FetchResponse accessors."""
        result = FetchResponse(status=451, url=PRIMARY, body=b'{"a": 1}')

        assert result.json() == {"a": 1}
        assert result.is_geo_blocked
        assert not result.ok
