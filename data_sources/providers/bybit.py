"""
Bybit - V5 public market adapter.

One endpoint (/v5/market/tickers?category=linear) carries funding, open
interest and 24h ticker fields for every linear perpetual.
"""

import logging
from typing import Any, Optional

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import (
    DataKind,
    FundingRecord,
    OpenInterestRecord,
    TickerRecord,
)
from normalizers.symbol_classifier import classify


logger = logging.getLogger(__name__)


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class BybitSource(ExchangeSource):
    """Bybit USDT linear perpetuals."""

    name = "Bybit"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    URL = "https://api.bybit.com/v5/market/tickers"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = []
        for item in await self._fetch_linear(client):
            if item.get("fundingRate") in (None, ""):
                continue
            rate = parse_float(item["fundingRate"]) * 100
            if not finite((rate,)):
                continue
            classified = classify(item["symbol"], self.name)
            records.append(FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                funding_rate=rate,
                mark_price=parse_float(item.get("markPrice"), 0.0),
                index_price=parse_float(item.get("indexPrice"), 0.0),
                next_funding_time=_optional_int(item.get("nextFundingTime")),
                interval_hours=_optional_int(item.get("fundingIntervalHour")) or 8,
            ))
        return records

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for item in await self._fetch_linear(client):
            open_interest = parse_float(item.get("openInterest"))
            value = parse_float(item.get("openInterestValue"))
            if not finite((open_interest, value)):
                continue
            classified = classify(item["symbol"], self.name)
            records.append(OpenInterestRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                open_interest=open_interest,
                open_interest_value=value,
            ))
        return records

    async def fetch_tickers(self, client: ResilientFetchClient) -> list[TickerRecord]:
        records = []
        for item in await self._fetch_linear(client):
            last_price = parse_float(item.get("lastPrice"))
            if not finite((last_price,)):
                continue
            classified = classify(item["symbol"], self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=last_price,
                price_change_percent_24h=parse_float(item.get("price24hPcnt"), 0.0) * 100,
                high_24h=parse_float(item.get("highPrice24h"), 0.0),
                low_24h=parse_float(item.get("lowPrice24h"), 0.0),
                volume_24h=parse_float(item.get("volume24h"), 0.0),
                quote_volume_24h=parse_float(item.get("turnover24h"), 0.0),
            ))
        return records

    async def _fetch_linear(self, client: ResilientFetchClient) -> list[dict[str, Any]]:
        data = await fetch_json(client, self.URL, self.name, params={"category": "linear"})
        ensure(
            isinstance(data, dict) and data.get("retCode") == 0,
            f"retCode={data.get('retCode') if isinstance(data, dict) else None}",
            self.name,
            data,
        )
        items = (data.get("result") or {}).get("list") or []
        return [t for t in items if str(t.get("symbol", "")).endswith("USDT")]
