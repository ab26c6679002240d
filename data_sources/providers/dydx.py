"""
dYdX v4 - Indexer adapter.

/v4/perpetualMarkets returns {"markets": {"BTC-USD": {...}}}. Funding is
the predicted next hourly rate. Several dYdX crypto tickers collide with
equity tickers, so the classifier never assigns stocks for this source.
"""

from typing import Any

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import (
    DataKind,
    FundingRecord,
    OpenInterestRecord,
    TickerRecord,
)
from normalizers.symbol_classifier import classify


class DydxSource(ExchangeSource):
    """dYdX v4 perpetual markets."""

    name = "dYdX"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    URL = "https://indexer.dydx.trade/v4/perpetualMarkets"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = []
        for ticker, market in await self._fetch(client):
            rate = parse_float(market.get("nextFundingRate")) * 100
            if not finite((rate,)):
                continue
            oracle = parse_float(market.get("oraclePrice"), 0.0)
            classified = classify(ticker, self.name)
            records.append(FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                funding_rate=rate,
                mark_price=oracle,
                index_price=oracle,
                interval_hours=1,
            ))
        return records

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for ticker, market in await self._fetch(client):
            open_interest = parse_float(market.get("openInterest"))
            price = parse_float(market.get("oraclePrice"))
            if not finite((open_interest, price)):
                continue
            classified = classify(ticker, self.name)
            records.append(OpenInterestRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                open_interest=open_interest,
                open_interest_value=open_interest * price,
            ))
        return records

    async def fetch_tickers(self, client: ResilientFetchClient) -> list[TickerRecord]:
        records = []
        for ticker, market in await self._fetch(client):
            price = parse_float(market.get("oraclePrice"))
            if not finite((price,)):
                continue
            # priceChange24H is absolute
            change = parse_float(market.get("priceChange24H"), 0.0)
            previous = price - change
            volume = parse_float(market.get("volume24H"), 0.0)
            classified = classify(ticker, self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=price,
                price_change_percent_24h=change / previous * 100 if previous > 0 else 0.0,
                volume_24h=volume,
                quote_volume_24h=volume,
            ))
        return records

    async def _fetch(self, client: ResilientFetchClient) -> list[tuple[str, dict[str, Any]]]:
        data = await fetch_json(client, self.URL, self.name)
        ensure(
            isinstance(data, dict) and isinstance(data.get("markets"), dict),
            "Missing markets",
            self.name,
            data,
        )
        return [
            (ticker, market)
            for ticker, market in data["markets"].items()
            if ticker.endswith("-USD") and market.get("status", "ACTIVE") == "ACTIVE"
        ]
