"""
Bitget - V2 mix market adapter.

/api/v2/mix/market/tickers?productType=USDT-FUTURES carries funding,
holding amount (open interest in base units) and 24h fields.
Envelope: {"code": "00000", "data": [...]}.
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


class BitgetSource(ExchangeSource):
    """Bitget USDT-M futures."""

    name = "Bitget"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    URL = "https://api.bitget.com/api/v2/mix/market/tickers"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = []
        for item in await self._fetch(client):
            rate = parse_float(item.get("fundingRate")) * 100
            if not finite((rate,)):
                continue
            next_time = parse_float(item.get("nextFundingTime"))
            classified = classify(item["symbol"], self.name)
            records.append(FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                funding_rate=rate,
                mark_price=parse_float(item.get("markPrice"), 0.0),
                index_price=parse_float(item.get("indexPrice"), 0.0),
                next_funding_time=int(next_time) if finite((next_time,)) else None,
            ))
        return records

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for item in await self._fetch(client):
            open_interest = parse_float(item.get("holdingAmount"))
            price = parse_float(item.get("lastPr"))
            if not finite((open_interest, price)):
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
            last_price = parse_float(item.get("lastPr"))
            if not finite((last_price,)):
                continue
            classified = classify(item["symbol"], self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=last_price,
                price_change_percent_24h=parse_float(item.get("change24h"), 0.0) * 100,
                high_24h=parse_float(item.get("high24h"), 0.0),
                low_24h=parse_float(item.get("low24h"), 0.0),
                volume_24h=parse_float(item.get("baseVolume"), 0.0),
                quote_volume_24h=parse_float(item.get("quoteVolume"), 0.0),
            ))
        return records

    async def _fetch(self, client: ResilientFetchClient) -> list[dict[str, Any]]:
        data = await fetch_json(client, self.URL, self.name, params={"productType": "USDT-FUTURES"})
        ensure(
            isinstance(data, dict) and data.get("code") == "00000",
            f"code={data.get('code') if isinstance(data, dict) else None}",
            self.name,
            data,
        )
        return [t for t in data.get("data") or [] if str(t.get("symbol", "")).endswith("USDT")]
