"""
Binance Futures - Public API adapter.

Endpoints used:
- /fapi/v1/premiumIndex - Funding rate, mark and index price
- /fapi/v1/ticker/24hr - 24h tickers (also ranks symbols for OI)
- /fapi/v1/openInterest - Open interest, one symbol per call

No authentication required.
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


class BinanceSource(ExchangeSource):
    """
    Binance USDT-margined perpetuals.

    Open interest has no bulk endpoint: the top symbols by quote volume
    are queried one by one, in batches, to stay inside the rate limit
    (2400 weight/minute).
    """

    name = "Binance"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    BASE_URL = "https://fapi.binance.com"

    def __init__(
        self,
        open_interest_top_n: int = 100,
        open_interest_batch_size: int = 25,
        sub_request_timeout: Optional[float] = 5.0,
    ) -> None:
        self._top_n = open_interest_top_n
        self._batch_size = open_interest_batch_size
        self._sub_request_timeout = sub_request_timeout

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        data = await fetch_json(client, f"{self.BASE_URL}/fapi/v1/premiumIndex", self.name)
        ensure(isinstance(data, list), "Unexpected premiumIndex payload", self.name, data)

        records = []
        for item in data:
            raw = item.get("symbol", "")
            if not raw.endswith("USDT") or item.get("lastFundingRate") is None:
                continue
            rate = parse_float(item["lastFundingRate"]) * 100
            if not finite((rate,)):
                continue
            classified = classify(raw, self.name)
            records.append(FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                funding_rate=rate,
                mark_price=parse_float(item.get("markPrice"), 0.0),
                index_price=parse_float(item.get("indexPrice"), 0.0),
                next_funding_time=item.get("nextFundingTime"),
            ))
        return records

    async def fetch_tickers(self, client: ResilientFetchClient) -> list[TickerRecord]:
        records = []
        for item in await self._fetch_24h(client):
            last_price = parse_float(item.get("lastPrice"))
            if not finite((last_price,)):
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

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        tickers = await self._fetch_24h(client)
        tickers.sort(key=lambda t: parse_float(t.get("quoteVolume"), 0.0), reverse=True)
        top = tickers[:self._top_n]

        async def fetch_one(ticker: dict[str, Any]) -> Optional[OpenInterestRecord]:
            data = await fetch_json(
                client,
                f"{self.BASE_URL}/fapi/v1/openInterest",
                self.name,
                params={"symbol": ticker["symbol"]},
                timeout=self._sub_request_timeout,
            )
            open_interest = parse_float(data.get("openInterest"))
            price = parse_float(ticker.get("lastPrice"))
            if not finite((open_interest, price)):
                return None
            classified = classify(ticker["symbol"], self.name)
            return OpenInterestRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                open_interest=open_interest,
                open_interest_value=open_interest * price,
            )

        records = await gather_in_batches(top, fetch_one, self._batch_size, self.name)
        logger.debug(f"[{self.name}] open interest for {len(records)}/{len(top)} symbols")
        return records

    async def _fetch_24h(self, client: ResilientFetchClient) -> list[dict[str, Any]]:
        data = await fetch_json(client, f"{self.BASE_URL}/fapi/v1/ticker/24hr", self.name)
        ensure(isinstance(data, list), "Unexpected ticker payload", self.name, data)
        return [t for t in data if str(t.get("symbol", "")).endswith("USDT")]
