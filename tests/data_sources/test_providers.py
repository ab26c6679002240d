"""
Exchange Adapter Tests.

============================================================
PURPOSE
============================================================
Mapping of provider payloads into normalized records.

TEST CATEGORIES:
- Binance: funding, tickers, batched open interest
- Bybit: envelope checks and interval fields
- Hyperliquid: inactive markets and delistings
- Kraken: absolute-to-relative funding conversion, open interest, tickers
- gTrade: velocity funding and group asset classes
- Registry: adapter sets per data kind

============================================================
"""

import asyncio

import pytest

from core.config import AggregatorConfig
from data_sources.exceptions import AdapterError, FetchError
from data_sources.models import AssetClass, DataKind
from data_sources.providers import (
    AsterSource,
    BinanceSource,
    BybitSource,
    GTradeSource,
    HyperliquidSource,
    KrakenSource,
    build_adapters,
)
from data_sources.providers.gtrade import pair_symbol
from data_sources.providers.kraken import relative_funding_rate
from data_sources.velocity_funding import VelocityFundingModel


# ============================================================
# BINANCE TESTS
# ============================================================

BINANCE_24H = [
    {"symbol": "BTCUSDT", "lastPrice": "50000", "priceChangePercent": "2.5",
     "highPrice": "51000", "lowPrice": "48000", "volume": "1000", "quoteVolume": "50000000"},
    {"symbol": "ETHUSDT", "lastPrice": "3000", "priceChangePercent": "-1.0",
     "highPrice": "3100", "lowPrice": "2900", "volume": "5000", "quoteVolume": "15000000"},
    {"symbol": "SOLUSDT", "lastPrice": "100", "priceChangePercent": "0",
     "highPrice": "110", "lowPrice": "90", "volume": "20000", "quoteVolume": "2000000"},
    {"symbol": "DOGEUSDT", "lastPrice": "0.1", "priceChangePercent": "1",
     "highPrice": "0.11", "lowPrice": "0.09", "volume": "9000000", "quoteVolume": "900000"},
    {"symbol": "XRPUSDT", "lastPrice": "0.5", "priceChangePercent": "1",
     "highPrice": "0.6", "lowPrice": "0.4", "volume": "1000000", "quoteVolume": "500000"},
    {"symbol": "BTCUSDC", "lastPrice": "50000", "quoteVolume": "99999999999"},
]


class TestBinance:
    """Binance USDT-M adapter."""

    @pytest.mark.asyncio
    async def test_funding(self, fake_client):
        """Test premiumIndex rows map to percent funding."""
        fake_client.routes["premiumIndex"] = [
            {"symbol": "BTCUSDT", "lastFundingRate": "0.0001", "markPrice": "50000.5",
             "indexPrice": "50001", "nextFundingTime": 1735718400000},
            {"symbol": "TSLAUSDT", "lastFundingRate": "-0.0002", "markPrice": "250",
             "indexPrice": "250", "nextFundingTime": 1735718400000},
            {"symbol": "BTCUSD_PERP", "lastFundingRate": "0.0001"},
            {"symbol": "ETHUSDT", "lastFundingRate": None},
        ]

        records = await BinanceSource().fetch_funding(fake_client)

        assert [r.symbol for r in records] == ["BTC", "TSLA"]
        btc, tsla = records
        assert btc.funding_rate == pytest.approx(0.01)
        assert btc.exchange == "Binance"
        assert btc.asset_class == AssetClass.CRYPTO
        assert btc.mark_price == 50000.5
        assert btc.next_funding_time == 1735718400000
        assert tsla.asset_class == AssetClass.STOCKS

    @pytest.mark.asyncio
    async def test_tickers_usdt_only(self, fake_client):
        """Test non-USDT symbols are skipped."""
        fake_client.routes["ticker/24hr"] = BINANCE_24H

        records = await BinanceSource().fetch_tickers(fake_client)

        assert len(records) == 5
        assert records[0].last_price == 50000.0
        assert records[0].price_change_percent_24h == 2.5
        assert records[0].quote_volume_24h == 50_000_000.0

    @pytest.mark.asyncio
    async def test_open_interest_top_n_by_volume(self, fake_client):
        """Test only the top symbols by quote volume are queried."""
        requested = []

        async def open_interest(url, **kwargs):
            requested.append(kwargs["params"]["symbol"])
            return {"symbol": kwargs["params"]["symbol"], "openInterest": "10"}

        fake_client.routes["ticker/24hr"] = BINANCE_24H
        fake_client.routes["openInterest"] = open_interest

        records = await BinanceSource(open_interest_top_n=2).fetch_open_interest(fake_client)

        assert sorted(requested) == ["BTCUSDT", "ETHUSDT"]
        values = {r.symbol: r.open_interest_value for r in records}
        assert values == {"BTC": 500_000.0, "ETH": 30_000.0}

    @pytest.mark.asyncio
    async def test_open_interest_batches_and_skips_failures(self, fake_client):
        """Test batches never exceed the batch size and failed symbols drop out."""
        in_flight = 0
        peak = 0

        async def open_interest(url, **kwargs):
            nonlocal in_flight, peak
            symbol = kwargs["params"]["symbol"]
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            if symbol == "SOLUSDT":
                raise FetchError("HTTP 500", status_code=500)
            return {"symbol": symbol, "openInterest": "2"}

        fake_client.routes["ticker/24hr"] = BINANCE_24H
        fake_client.routes["openInterest"] = open_interest

        source = BinanceSource(open_interest_top_n=100, open_interest_batch_size=2)
        records = await source.fetch_open_interest(fake_client)

        assert peak <= 2
        assert {r.symbol for r in records} == {"BTC", "ETH", "DOGE", "XRP"}

    @pytest.mark.asyncio
    async def test_unexpected_payload(self, fake_client):
        """Test a non-list premiumIndex payload is an adapter fault."""
        fake_client.routes["premiumIndex"] = {"code": -1121, "msg": "Invalid symbol."}

        with pytest.raises(AdapterError):
            await BinanceSource().fetch_funding(fake_client)


# ============================================================
# BYBIT TESTS
# ============================================================

def bybit_envelope(rows, ret_code=0):
    return {"retCode": ret_code, "retMsg": "OK", "result": {"category": "linear", "list": rows}}


class TestBybit:
    """Bybit V5 adapter."""

    @pytest.mark.asyncio
    async def test_funding_interval_from_payload(self, fake_client):
        """Test fundingIntervalHour is carried on the record."""
        fake_client.routes["bybit"] = bybit_envelope([
            {"symbol": "BTCUSDT", "fundingRate": "0.0001", "markPrice": "50000",
             "indexPrice": "50000", "nextFundingTime": "1735718400000", "fundingIntervalHour": "4"},
            {"symbol": "ETHUSDT", "fundingRate": ""},
        ])

        records = await BybitSource().fetch_funding(fake_client)

        assert len(records) == 1
        assert records[0].interval_hours == 4
        assert records[0].next_funding_time == 1735718400000

    @pytest.mark.asyncio
    async def test_tickers_percent_change(self, fake_client):
        """Test price24hPcnt is a fraction converted to percent."""
        fake_client.routes["bybit"] = bybit_envelope([
            {"symbol": "BTCUSDT", "lastPrice": "50000", "price24hPcnt": "0.025",
             "turnover24h": "1000000"},
        ])

        records = await BybitSource().fetch_tickers(fake_client)

        assert records[0].price_change_percent_24h == pytest.approx(2.5)
        assert records[0].quote_volume_24h == 1_000_000.0

    @pytest.mark.asyncio
    async def test_error_ret_code(self, fake_client):
        """Test a non-zero retCode is an adapter fault."""
        fake_client.routes["bybit"] = bybit_envelope([], ret_code=10001)

        with pytest.raises(AdapterError, match="retCode=10001"):
            await BybitSource().fetch_open_interest(fake_client)

    @pytest.mark.asyncio
    async def test_http_error(self, fake_client, make_response):
        """Test a non-ok response surfaces as FetchError."""
        fake_client.routes["bybit"] = make_response({"error": "down"}, status=503)

        with pytest.raises(FetchError) as exc_info:
            await BybitSource().fetch_funding(fake_client)

        assert exc_info.value.status_code == 503


# ============================================================
# HYPERLIQUID TESTS
# ============================================================

class TestHyperliquid:
    """Hyperliquid info API adapter."""

    PAYLOAD = [
        {"universe": [{"name": "BTC"}, {"name": "ETH"}, {"name": "OLD", "isDelisted": True}]},
        [
            {"funding": "0.0000125", "markPx": "50000", "oraclePx": "50010",
             "openInterest": "100", "prevDayPx": "49000", "dayNtlVlm": "1000000"},
            {"funding": "0", "markPx": "3000", "openInterest": "0", "prevDayPx": "3000"},
            {"funding": "0.001", "markPx": "1", "openInterest": "5"},
        ],
    ]

    @pytest.mark.asyncio
    async def test_funding_skips_zero_and_delisted(self, fake_client):
        """Test inactive and delisted markets are skipped."""
        fake_client.routes["hyperliquid"] = self.PAYLOAD

        records = await HyperliquidSource().fetch_funding(fake_client)

        assert [r.symbol for r in records] == ["BTC"]
        assert records[0].funding_rate == pytest.approx(0.00125)
        assert records[0].interval_hours == 1

    @pytest.mark.asyncio
    async def test_posts_info_request(self, fake_client):
        """Test the info endpoint is called with a POST body."""
        fake_client.routes["hyperliquid"] = self.PAYLOAD

        await HyperliquidSource().fetch_tickers(fake_client)

        kwargs = fake_client.fetch.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["json_body"] == {"type": "metaAndAssetCtxs"}

    @pytest.mark.asyncio
    async def test_open_interest_value(self, fake_client):
        """Test OI value is contracts times mark price."""
        fake_client.routes["hyperliquid"] = self.PAYLOAD

        records = await HyperliquidSource().fetch_open_interest(fake_client)

        assert [(r.symbol, r.open_interest_value) for r in records] == [("BTC", 5_000_000.0)]


# ============================================================
# KRAKEN TESTS
# ============================================================

class TestKraken:
    """Kraken Futures adapter."""

    def test_relative_funding_rate(self):
        """Test absolute funding is divided by mark and scaled to 8h."""
        assert relative_funding_rate(0.5, 50000, 2.0) == pytest.approx(0.002)
        assert relative_funding_rate(0.5, 0, 2.0) == 0.0

    @pytest.mark.asyncio
    async def test_funding(self, fake_client):
        """Test only PF_ USD perpetuals with a mark price are kept."""
        fake_client.routes["kraken"] = {
            "result": "success",
            "tickers": [
                {"symbol": "PF_XBTUSD", "fundingRate": 0.5, "markPrice": 50000, "indexPrice": 49990},
                {"symbol": "PF_SPYXUSD", "fundingRate": 0.01, "markPrice": 500},
                {"symbol": "PI_XBTUSD", "fundingRate": 0.5, "markPrice": 50000},
                {"symbol": "PF_ETHUSD", "markPrice": 3000},
                {"symbol": "PF_SOLUSD", "fundingRate": 0.1, "markPrice": 0},
            ],
        }

        records = await KrakenSource().fetch_funding(fake_client)

        assert [(r.symbol, r.asset_class) for r in records] == [
            ("BTC", AssetClass.CRYPTO),
            ("SPY", AssetClass.STOCKS),
        ]
        assert records[0].funding_rate == pytest.approx(0.002)

    @pytest.mark.asyncio
    async def test_custom_multiplier(self, fake_client):
        """Test the interval multiplier is configurable."""
        fake_client.routes["kraken"] = {
            "result": "success",
            "tickers": [{"symbol": "PF_XBTUSD", "fundingRate": 0.5, "markPrice": 50000}],
        }

        records = await KrakenSource(interval_multiplier=1.0).fetch_funding(fake_client)

        assert records[0].funding_rate == pytest.approx(0.001)

    @pytest.mark.asyncio
    async def test_open_interest_and_tickers(self, fake_client):
        """Test the same tickers feed open interest and 24h stats."""
        fake_client.routes["kraken"] = {
            "result": "success",
            "tickers": [
                {"symbol": "PF_XBTUSD", "last": 50000, "markPrice": 49990, "openInterest": 20,
                 "open24h": 40000, "high24h": 51000, "low24h": 39000, "vol24h": 3},
                {"symbol": "PF_ETHUSD", "markPrice": 3000, "openInterest": 0},
            ],
        }
        source = KrakenSource()

        open_interest = await source.fetch_open_interest(fake_client)
        tickers = await source.fetch_tickers(fake_client)

        assert [(r.symbol, r.open_interest_value) for r in open_interest] == [("BTC", 1_000_000.0)]
        btc, eth = tickers
        assert btc.price_change_percent_24h == pytest.approx(25.0)
        assert btc.quote_volume_24h == pytest.approx(150_000.0)
        assert (eth.last_price, eth.price_change_percent_24h) == (3000.0, 0.0)

    @pytest.mark.asyncio
    async def test_error_result(self, fake_client):
        """Test a non-success envelope is an adapter fault."""
        fake_client.routes["kraken"] = {"result": "error", "error": "apiLimitExceeded"}

        with pytest.raises(AdapterError):
            await KrakenSource().fetch_funding(fake_client)


# ============================================================
# GTRADE TESTS
# ============================================================

def gtrade_collateral(rates, oi_collateral, price=1.0):
    """One collateral block; balanced token OI so rates do not drift."""
    return {
        "symbol": "USDC",
        "prices": {"collateralPriceUsd": price},
        "pairOis": [
            {"oiLongToken": 10, "oiShortToken": 10,
             "oiLongCollateral": oi_collateral, "oiShortCollateral": oi_collateral}
            for _ in rates
        ],
        "fundingFees": {
            "pairParams": [
                {"skewCoefficientPerYear": 1, "absoluteVelocityPerYearCap": 1,
                 "absoluteRatePerSecondCap": 1, "thetaThresholdUsd": 0}
                for _ in rates
            ],
            "pairData": [
                {"lastFundingRatePerSecondP": rate, "lastFundingUpdateTs": 1735689600}
                for rate in rates
            ],
        },
    }


class TestGTrade:
    """gTrade velocity funding adapter."""

    def test_pair_symbol(self):
        """Test USD-quoted pairs drop the quote."""
        assert pair_symbol({"from": "BTC", "to": "USD"}) == "BTC"
        assert pair_symbol({"from": "USD", "to": "JPY"}) == "USDJPY"

    @pytest.mark.asyncio
    async def test_funding(self, fake_client, clock):
        """Test rates, asset classes and dormant pairs."""
        fake_client.routes["gains.trade"] = {
            "pairs": [
                {"from": "BTC", "to": "USD", "groupIndex": 0},
                {"from": "USD", "to": "JPY", "groupIndex": 1},
                {"from": "ABC", "to": "USD", "groupIndex": 2},
                {"from": "XAU", "to": "USD", "groupIndex": 6},
                {"from": "DOGE", "to": "USD", "groupIndex": 0},
            ],
            "collaterals": [
                gtrade_collateral([1e-6, -2e-6, 1e-6, 1e-6, 0.0], oi_collateral=1000),
                gtrade_collateral([5e-6], oi_collateral=1),
            ],
        }
        source = GTradeSource(VelocityFundingModel(clock=clock))

        records = await source.fetch_funding(fake_client)

        by_symbol = {r.symbol: r for r in records}
        assert list(by_symbol) == ["BTC", "USDJPY", "ABC", "XAU"]
        assert by_symbol["BTC"].funding_rate == pytest.approx(0.0288)
        assert by_symbol["BTC"].mark_price == pytest.approx(100.0)
        assert by_symbol["USDJPY"].funding_rate == pytest.approx(-0.0576)
        assert by_symbol["USDJPY"].asset_class == AssetClass.FOREX
        assert by_symbol["ABC"].asset_class == AssetClass.STOCKS
        assert by_symbol["XAU"].asset_class == AssetClass.COMMODITIES

    @pytest.mark.asyncio
    async def test_group_asset_classes(self, fake_client, clock):
        """Test stock tiers, indices, energy and EM forex groups."""
        fake_client.routes["gains.trade"] = {
            "pairs": [
                {"from": "STX", "to": "USD", "groupIndex": 4},
                {"from": "NDX", "to": "USD", "groupIndex": 5},
                {"from": "CORN", "to": "USD", "groupIndex": 7},
                {"from": "USD", "to": "THB", "groupIndex": 9},
                {"from": "PEPE", "to": "USD", "groupIndex": 11},
            ],
            "collaterals": [gtrade_collateral([1e-6] * 5, oi_collateral=1000)],
        }
        source = GTradeSource(VelocityFundingModel(clock=clock))

        records = await source.fetch_funding(fake_client)

        assert {r.symbol: r.asset_class for r in records} == {
            "STX": AssetClass.STOCKS,
            "NDX": AssetClass.STOCKS,
            "CORN": AssetClass.COMMODITIES,
            "USDTHB": AssetClass.FOREX,
            "PEPE": AssetClass.CRYPTO,
        }

    @pytest.mark.asyncio
    async def test_missing_pairs(self, fake_client, clock):
        """Test a payload without pairs is an adapter fault."""
        fake_client.routes["gains.trade"] = {"collaterals": []}

        with pytest.raises(AdapterError, match="Missing pairs"):
            await GTradeSource(VelocityFundingModel(clock=clock)).fetch_funding(fake_client)


# ============================================================
# REGISTRY TESTS
# ============================================================

class TestBuildAdapters:
    """Adapter sets per data kind."""

    @pytest.mark.parametrize("kind,expected", [
        (DataKind.FUNDING, 14),
        (DataKind.OPEN_INTEREST, 11),
        (DataKind.TICKERS, 10),
    ])
    def test_counts(self, kind, expected, clock):
        """Test every kind gets its venues."""
        adapters = build_adapters(kind, AggregatorConfig(), clock)

        assert len(adapters) == expected
        assert len({a.name for a in adapters}) == expected

    def test_registration_order(self, clock):
        """Test the merge order starts with the large CEXs."""
        names = [a.name for a in build_adapters(DataKind.OPEN_INTEREST, AggregatorConfig(), clock)]

        assert names == [
            "Binance", "Bybit", "OKX", "Bitget", "Hyperliquid", "dYdX",
            "Gate.io", "MEXC", "Kraken", "BingX", "Phemex",
        ]

    def test_unsupported_kind(self):
        """Test asking a funding-only venue for tickers fails."""
        with pytest.raises(ValueError):
            AsterSource().adapter_for(DataKind.TICKERS)
