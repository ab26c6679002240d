"""
Hyperliquid - Info API adapter.

POST /info {"type": "metaAndAssetCtxs"} returns [meta, contexts] where
contexts[i] belongs to meta.universe[i]. Funding settles hourly.
"""

from typing import Any, Iterator

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import (
    DataKind,
    FundingRecord,
    OpenInterestRecord,
    TickerRecord,
)
from normalizers.symbol_classifier import classify


class HyperliquidSource(ExchangeSource):
    """Hyperliquid perpetuals."""

    name = "Hyperliquid"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    URL = "https://api.hyperliquid.xyz/info"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = []
        for coin, ctx in await self._fetch(client):
            rate = parse_float(ctx.get("funding")) * 100
            # zero funding marks an inactive market
            if not finite((rate,)) or rate == 0:
                continue
            classified = classify(coin, self.name)
            records.append(FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                funding_rate=rate,
                mark_price=parse_float(ctx.get("markPx"), 0.0),
                index_price=parse_float(ctx.get("oraclePx"), 0.0),
                interval_hours=1,
            ))
        return records

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for coin, ctx in await self._fetch(client):
            open_interest = parse_float(ctx.get("openInterest"))
            value = open_interest * parse_float(ctx.get("markPx"))
            if not finite((value,)) or value <= 0:
                continue
            classified = classify(coin, self.name)
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
        for coin, ctx in await self._fetch(client):
            mark = parse_float(ctx.get("markPx"))
            if not finite((mark,)) or mark <= 0:
                continue
            prev = parse_float(ctx.get("prevDayPx"))
            change = (mark - prev) / prev * 100 if finite((prev,)) and prev > 0 else 0.0
            volume = parse_float(ctx.get("dayNtlVlm"), 0.0)
            classified = classify(coin, self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=mark,
                price_change_percent_24h=change,
                volume_24h=volume,
                quote_volume_24h=volume,
            ))
        return records

    async def _fetch(self, client: ResilientFetchClient) -> list[tuple[str, dict[str, Any]]]:
        data = await fetch_json(
            client, self.URL, self.name, method="POST", json_body={"type": "metaAndAssetCtxs"}
        )
        ensure(
            isinstance(data, list) and len(data) == 2 and isinstance(data[0], dict),
            "Unexpected metaAndAssetCtxs payload",
            self.name,
            data,
        )
        return list(_pairs(data[0].get("universe") or [], data[1] or []))


def _pairs(universe: list[dict[str, Any]], contexts: list[dict[str, Any]]) -> Iterator[tuple[str, dict[str, Any]]]:
    for asset, ctx in zip(universe, contexts):
        if asset.get("isDelisted") or not asset.get("name"):
            continue
        yield asset["name"], ctx
