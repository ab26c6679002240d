"""
OKX - V5 public API adapter.

Endpoints used:
- /api/v5/public/instruments - USDT swap listing
- /api/v5/public/funding-rate - Funding rate, one instrument per call
- /api/v5/public/open-interest - Bulk open interest
- /api/v5/market/tickers - Bulk tickers (also prices OI)

Envelope: {"code": "0", "data": [...]}; any other code is a source fault.
"""

import logging
from typing import Any, Optional

from data_sources.base import (
    ExchangeSource,
    ensure,
    fetch_json,
    finite,
    gather_in_batches,
    parse_float,
)
from data_sources.http_client import ResilientFetchClient
from data_sources.models import (
    DataKind,
    FundingRecord,
    OpenInterestRecord,
    TickerRecord,
)
from normalizers.symbol_classifier import classify


logger = logging.getLogger(__name__)

SWAP_SUFFIX = "-USDT-SWAP"


class OKXSource(ExchangeSource):
    """OKX USDT-margined perpetual swaps."""

    name = "OKX"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    BASE_URL = "https://www.okx.com"

    def __init__(
        self,
        funding_instrument_limit: int = 50,
        batch_size: int = 25,
        sub_request_timeout: Optional[float] = 5.0,
    ) -> None:
        self._funding_limit = funding_instrument_limit
        self._batch_size = batch_size
        self._sub_request_timeout = sub_request_timeout

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        instruments = await self._get(client, "/api/v5/public/instruments", {"instType": "SWAP"})
        inst_ids = [
            inst["instId"] for inst in instruments
            if str(inst.get("instId", "")).endswith(SWAP_SUFFIX)
        ][:self._funding_limit]

        async def fetch_one(inst_id: str) -> Optional[FundingRecord]:
            rows = await self._get(
                client,
                "/api/v5/public/funding-rate",
                {"instId": inst_id},
                timeout=self._sub_request_timeout,
            )
            if not rows:
                return None
            row = rows[0]
            rate = parse_float(row.get("fundingRate")) * 100
            if not finite((rate,)):
                return None
            next_time = parse_float(row.get("nextFundingTime"))
            classified = classify(inst_id, self.name)
            return FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                funding_rate=rate,
                next_funding_time=int(next_time) if finite((next_time,)) else None,
            )

        return await gather_in_batches(inst_ids, fetch_one, self._batch_size, self.name)

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        rows = await self._get(client, "/api/v5/public/open-interest", {"instType": "SWAP"})
        prices = {
            t["instId"]: parse_float(t.get("last"), 0.0)
            for t in await self._get(client, "/api/v5/market/tickers", {"instType": "SWAP"})
        }

        records = []
        for item in rows:
            inst_id = str(item.get("instId", ""))
            if not inst_id.endswith(SWAP_SUFFIX):
                continue
            # oiCcy is in base currency, oi in contracts
            open_interest = parse_float(item.get("oiCcy"))
            if not finite((open_interest,)):
                continue
            value = parse_float(item.get("oiUsd"))
            if not finite((value,)):
                value = open_interest * prices.get(inst_id, 0.0)
            classified = classify(inst_id, self.name)
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
        for item in await self._get(client, "/api/v5/market/tickers", {"instType": "SWAP"}):
            inst_id = str(item.get("instId", ""))
            if not inst_id.endswith(SWAP_SUFFIX):
                continue
            last_price = parse_float(item.get("last"))
            open_24h = parse_float(item.get("open24h"))
            if not finite((last_price,)):
                continue
            change = (last_price - open_24h) / open_24h * 100 if open_24h else 0.0
            classified = classify(inst_id, self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=last_price,
                price_change_percent_24h=change if finite((change,)) else 0.0,
                high_24h=parse_float(item.get("high24h"), 0.0),
                low_24h=parse_float(item.get("low24h"), 0.0),
                volume_24h=parse_float(item.get("volCcy24h"), 0.0),
                quote_volume_24h=parse_float(item.get("volCcy24h"), 0.0) * last_price,
            ))
        return records

    async def _get(
        self,
        client: ResilientFetchClient,
        path: str,
        params: dict[str, Any],
        timeout: Optional[float] = None,
    ) -> list[dict[str, Any]]:
        data = await fetch_json(
            client, f"{self.BASE_URL}{path}", self.name, params=params, timeout=timeout
        )
        ensure(
            isinstance(data, dict) and data.get("code") == "0",
            f"code={data.get('code') if isinstance(data, dict) else None} on {path}",
            self.name,
            data,
        )
        return data.get("data") or []
