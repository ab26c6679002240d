"""
Gate.io - Futures v4 adapter.

/api/v4/futures/usdt/contracts lists every USDT contract with funding,
position size and prices. Tokenized equities are listed as xStocks
(AAPLX_USDT). Position size is in contracts; quanto_multiplier converts
to base units.
"""

from typing import Any

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import DataKind, FundingRecord, OpenInterestRecord
from normalizers.symbol_classifier import classify


class GateioSource(ExchangeSource):
    """Gate.io USDT-settled perpetual contracts."""

    name = "Gate.io"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST)

    URL = "https://api.gateio.ws/api/v4/futures/usdt/contracts"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = []
        for item in await self._fetch(client):
            raw_rate = item.get("funding_rate")
            if raw_rate in (None, ""):
                raw_rate = item.get("funding_rate_indicative")
            rate = parse_float(raw_rate) * 100
            if not finite((rate,)):
                continue
            next_apply = parse_float(item.get("funding_next_apply"), 0.0)
            interval = parse_float(item.get("funding_interval"), 28800.0)
            classified = classify(item["name"], self.name)
            records.append(FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                funding_rate=rate,
                mark_price=parse_float(item.get("mark_price"), 0.0),
                index_price=parse_float(item.get("index_price"), 0.0),
                next_funding_time=int(next_apply * 1000) if next_apply else None,
                interval_hours=max(1, int(interval // 3600)),
            ))
        return records

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for item in await self._fetch(client):
            contracts = parse_float(item.get("position_size"), 0.0)
            multiplier = parse_float(item.get("quanto_multiplier"), 1.0) or 1.0
            price = parse_float(item.get("last_price"), 0.0) or parse_float(item.get("mark_price"), 0.0)
            open_interest = contracts * multiplier
            value = open_interest * price
            if not finite((value,)) or value <= 0:
                continue
            classified = classify(item["name"], self.name)
            records.append(OpenInterestRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                open_interest=open_interest,
                open_interest_value=value,
            ))
        return records

    async def _fetch(self, client: ResilientFetchClient) -> list[dict[str, Any]]:
        data = await fetch_json(client, self.URL, self.name)
        ensure(isinstance(data, list), "Unexpected contracts payload", self.name, data)
        return [
            c for c in data
            if str(c.get("name", "")).endswith("_USDT") and not c.get("in_delisting")
        ]
