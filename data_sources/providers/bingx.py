"""
BingX - Perpetual swap v2 adapter.

Endpoints used:
- /openApi/swap/v2/quote/premiumIndex - Funding
- /openApi/swap/v2/quote/ticker - 24h tickers with open interest

NC* symbols are synthetic commodity/forex/index/stock markets; the
classifier resolves them.
"""

from typing import Any

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import DataKind, FundingRecord, OpenInterestRecord, TickerRecord
from data_sources.providers.funding_venues import funding_record
from normalizers.symbol_classifier import classify


class BingXSource(ExchangeSource):
    """BingX USDT perpetuals."""

    name = "BingX"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    BASE_URL = "https://open-api.bingx.com"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = (
            funding_record(
                item["symbol"],
                self.name,
                item.get("lastFundingRate"),
                item.get("markPrice"),
                item.get("indexPrice"),
                item.get("nextFundingTime"),
            )
            for item in await self._get(client, "/openApi/swap/v2/quote/premiumIndex")
            if item.get("lastFundingRate") not in (None, "")
        )
        return [r for r in records if r is not None]

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for item in await self._get(client, "/openApi/swap/v2/quote/ticker"):
            open_interest = parse_float(item.get("openInterest"), 0.0)
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
        for item in await self._get(client, "/openApi/swap/v2/quote/ticker"):
            last_price = parse_float(item.get("lastPrice"), 0.0)
            if not finite((last_price,)) or last_price <= 0:
                continue
            classified = classify(item["symbol"], self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=last_price,
                price_change_percent_24h=parse_float(item.get("priceChangePercent"), 0.0),
                high_24h=parse_float(item.get("highPrice"), 0.0),
                low_24h=parse_float(item.get("lowPrice"), 0.0),
                volume_24h=parse_float(item.get("volume"), 0.0),
                quote_volume_24h=parse_float(item.get("quoteVolume"), 0.0),
            ))
        return records

    async def _get(self, client: ResilientFetchClient, path: str) -> list[dict[str, Any]]:
        data = await fetch_json(client, f"{self.BASE_URL}{path}", self.name)
        ensure(
            isinstance(data, dict) and data.get("code") == 0 and isinstance(data.get("data"), list),
            f"code={data.get('code') if isinstance(data, dict) else None} on {path}",
            self.name,
            data,
        )
        return [item for item in data["data"] if str(item.get("symbol", "")).endswith("-USDT")]
