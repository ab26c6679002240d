"""
MEXC - Contract API adapter.

/api/v1/contract/ticker lists every perpetual with funding, open
interest (holdVol) and 24h statistics. riseFallRate is a fraction.
"""

from typing import Any

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import DataKind, FundingRecord, OpenInterestRecord, TickerRecord
from data_sources.providers.funding_venues import funding_record
from normalizers.symbol_classifier import classify


class MexcSource(ExchangeSource):
    """MEXC USDT perpetual contracts."""

    name = "MEXC"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    URL = "https://contract.mexc.com/api/v1/contract/ticker"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = (
            funding_record(
                item["symbol"],
                self.name,
                item.get("fundingRate"),
                item.get("fairPrice"),
                item.get("indexPrice"),
                item.get("nextSettlementTime"),
            )
            for item in await self._fetch(client)
            if item.get("fundingRate") is not None
        )
        return [r for r in records if r is not None]

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for item in await self._fetch(client):
            open_interest = parse_float(item.get("holdVol"), 0.0)
            price = parse_float(item.get("lastPrice"), 0.0)
            if open_interest <= 0 or not finite((open_interest, price)):
                continue
            classified = classify(item["symbol"], self.name)
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
        for item in await self._fetch(client):
            last_price = parse_float(item.get("lastPrice"), 0.0)
            if not finite((last_price,)) or last_price <= 0:
                continue
            change = parse_float(item.get("riseFallRate"), 0.0) * 100
            classified = classify(item["symbol"], self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=last_price,
                price_change_percent_24h=change if finite((change,)) else 0.0,
                high_24h=parse_float(item.get("high24Price"), 0.0),
                low_24h=parse_float(item.get("low24Price"), 0.0),
                volume_24h=parse_float(item.get("volume24"), 0.0),
                quote_volume_24h=parse_float(item.get("amount24"), 0.0),
            ))
        return records

    async def _fetch(self, client: ResilientFetchClient) -> list[dict[str, Any]]:
        data = await fetch_json(client, self.URL, self.name)
        ensure(
            isinstance(data, dict) and data.get("success") and isinstance(data.get("data"), list),
            "Unsuccessful ticker response",
            self.name,
            data,
        )
        return [item for item in data["data"] if str(item.get("symbol", "")).endswith("_USDT")]
