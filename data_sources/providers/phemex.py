"""
Phemex - Market data v2 adapter.

/md/v2/ticker/24hr/all returns every USDT perpetual with real-valued
fields: *Rp prices, *Rr rates, *Rv values and *Rq quantities.
"""

from typing import Any

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import DataKind, FundingRecord, OpenInterestRecord, TickerRecord
from data_sources.providers.funding_venues import funding_record
from normalizers.symbol_classifier import classify


def _last_price(item: dict[str, Any]) -> float:
    return parse_float(item.get("closeRp"), 0.0) or parse_float(item.get("markPriceRp"), 0.0)


class PhemexSource(ExchangeSource):
    """Phemex USDT perpetuals."""

    name = "Phemex"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    URL = "https://api.phemex.com/md/v2/ticker/24hr/all"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = (
            funding_record(
                item["symbol"],
                self.name,
                item.get("fundingRateRr"),
                item.get("markPriceRp"),
                item.get("indexPriceRp"),
            )
            for item in await self._fetch(client)
            if item.get("fundingRateRr") is not None
        )
        return [r for r in records if r is not None]

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for item in await self._fetch(client):
            open_interest = parse_float(item.get("openInterestRv"), 0.0)
            price = _last_price(item)
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
            last_price = _last_price(item)
            if not finite((last_price,)) or last_price <= 0:
                continue
            open_price = parse_float(item.get("openRp"), 0.0) or last_price
            classified = classify(item["symbol"], self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=last_price,
                price_change_percent_24h=(last_price - open_price) / open_price * 100,
                high_24h=parse_float(item.get("highRp"), 0.0),
                low_24h=parse_float(item.get("lowRp"), 0.0),
                volume_24h=parse_float(item.get("volumeRq"), 0.0),
                quote_volume_24h=parse_float(item.get("turnoverRv"), 0.0),
            ))
        return records

    async def _fetch(self, client: ResilientFetchClient) -> list[dict[str, Any]]:
        data = await fetch_json(client, self.URL, self.name)
        rows = data.get("result") if isinstance(data, dict) else None
        ensure(isinstance(rows, list), "Missing result list", self.name, data)
        return [item for item in rows if str(item.get("symbol", "")).endswith("USDT")]
