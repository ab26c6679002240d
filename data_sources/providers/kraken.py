"""
Kraken Futures - Tickers endpoint adapter.

One /derivatives/api/v3/tickers call serves funding, open interest and
24h tickers for the PF_ perpetuals.

Kraken publishes funding as an ABSOLUTE amount per contract unit, not a
relative rate. It is converted to percent with fundingRate / markPrice,
then scaled to the 8h convention by a configurable multiplier (Kraken
settles every 4h, so the default is 2). The multiplier is inferred from
venue behaviour, not documented, so implausible results are logged.
"""

import logging
from typing import Any

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import DataKind, FundingRecord, OpenInterestRecord, TickerRecord
from normalizers.symbol_classifier import classify


logger = logging.getLogger(__name__)

# Percent per 8h beyond which a converted rate is reported as suspicious
PLAUSIBLE_RATE_LIMIT = 5.0


def relative_funding_rate(absolute_rate: float, mark_price: float, multiplier: float) -> float:
    """Convert an absolute per-unit funding amount to percent per 8h."""
    if mark_price <= 0:
        return 0.0
    return absolute_rate / mark_price * multiplier * 100


class KrakenSource(ExchangeSource):
    """Kraken multi-collateral perpetuals (PF_ symbols)."""

    name = "Kraken"
    KINDS = (DataKind.FUNDING, DataKind.OPEN_INTEREST, DataKind.TICKERS)

    URL = "https://futures.kraken.com/derivatives/api/v3/tickers"

    def __init__(self, interval_multiplier: float = 2.0) -> None:
        self._multiplier = interval_multiplier

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        records = []
        implausible = []
        for raw, item in await self._fetch(client):
            if item.get("fundingRate") is None:
                continue
            mark_price = parse_float(item.get("markPrice"), 0.0)
            if mark_price <= 0:
                continue
            rate = relative_funding_rate(parse_float(item["fundingRate"]), mark_price, self._multiplier)
            if not finite((rate,)):
                continue
            if abs(rate) > PLAUSIBLE_RATE_LIMIT:
                implausible.append(raw)

            classified = classify(raw, self.name)
            records.append(FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                funding_rate=rate,
                mark_price=mark_price,
                index_price=parse_float(item.get("indexPrice"), 0.0),
            ))

        if implausible:
            logger.warning(
                f"[{self.name}] {len(implausible)} rates above {PLAUSIBLE_RATE_LIMIT}% per 8h "
                f"with multiplier {self._multiplier}: {', '.join(implausible[:5])}"
            )
        return records

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[OpenInterestRecord]:
        records = []
        for raw, item in await self._fetch(client):
            # openInterest is in base units
            open_interest = parse_float(item.get("openInterest"), 0.0)
            price = parse_float(item.get("last"), 0.0) or parse_float(item.get("markPrice"), 0.0)
            if open_interest <= 0 or not finite((open_interest, price)):
                continue
            classified = classify(raw, self.name)
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
        for raw, item in await self._fetch(client):
            last_price = parse_float(item.get("last"), 0.0) or parse_float(item.get("markPrice"), 0.0)
            if not finite((last_price,)) or last_price <= 0:
                continue
            open_24h = parse_float(item.get("open24h"), 0.0) or last_price
            volume = parse_float(item.get("vol24h"), 0.0)
            classified = classify(raw, self.name)
            records.append(TickerRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=classified.asset_class,
                last_price=last_price,
                price_change_percent_24h=(last_price - open_24h) / open_24h * 100,
                high_24h=parse_float(item.get("high24h"), 0.0),
                low_24h=parse_float(item.get("low24h"), 0.0),
                volume_24h=volume,
                quote_volume_24h=volume * last_price,
            ))
        return records

    async def _fetch(self, client: ResilientFetchClient) -> list[tuple[str, dict[str, Any]]]:
        """USD-margined PF_ tickers as (symbol, ticker) pairs."""
        data = await fetch_json(client, self.URL, self.name)
        ensure(
            isinstance(data, dict) and data.get("result") == "success" and isinstance(data.get("tickers"), list),
            f"result={data.get('result') if isinstance(data, dict) else None}",
            self.name,
            data,
        )
        return [
            (str(item["symbol"]), item)
            for item in data["tickers"]
            if str(item.get("symbol", "")).startswith("PF_") and str(item["symbol"]).endswith("USD")
        ]
