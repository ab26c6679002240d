"""
Funding-only venues.

Each of these exchanges exposes funding through one bulk endpoint and is
used only for the funding endpoint. funding_record() is shared with the
other single-endpoint venues (MEXC, BingX, Phemex).

- Aster:   /fapi/v1/premiumIndex (Binance-compatible)
- Lighter: /api/v1/funding-rates (hourly)
"""

from typing import Any, Optional

from data_sources.base import ExchangeSource, ensure, fetch_json, finite, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import AssetClass, DataKind, FundingRecord
from normalizers.symbol_classifier import classify


def funding_record(
    raw_symbol: str,
    exchange: str,
    rate_fraction: Any,
    mark_price: Any = None,
    index_price: Any = None,
    next_funding_time: Any = None,
    interval_hours: int = 8,
) -> Optional[FundingRecord]:
    """Build a record from a fractional rate, or None if it is not a number."""
    rate = parse_float(rate_fraction) * 100
    if not finite((rate,)):
        return None
    next_time = parse_float(next_funding_time)
    classified = classify(raw_symbol, exchange)
    return FundingRecord(
        symbol=classified.symbol,
        exchange=exchange,
        asset_class=classified.asset_class,
        funding_rate=rate,
        mark_price=parse_float(mark_price, 0.0),
        index_price=parse_float(index_price, 0.0),
        next_funding_time=int(next_time) if finite((next_time,)) and next_time > 0 else None,
        interval_hours=interval_hours,
    )


class AsterSource(ExchangeSource):
    """Aster DEX perpetuals, including SHIELD stock hedges."""

    name = "Aster"
    KINDS = (DataKind.FUNDING,)

    URL = "https://fapi.asterdex.com/fapi/v1/premiumIndex"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        data = await fetch_json(client, self.URL, self.name)
        ensure(isinstance(data, list), "Unexpected premiumIndex payload", self.name, data)
        records = (
            funding_record(
                item["symbol"],
                self.name,
                item.get("lastFundingRate"),
                item.get("markPrice"),
                item.get("indexPrice"),
                item.get("nextFundingTime"),
            )
            for item in data
            if item.get("symbol") and item.get("lastFundingRate") is not None
        )
        return [r for r in records if r is not None]


class LighterSource(ExchangeSource):
    """Lighter order-book DEX. Funding settles hourly."""

    name = "Lighter"
    KINDS = (DataKind.FUNDING,)

    URL = "https://mainnet.zklighter.elliot.ai/api/v1/funding-rates"

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        data = await fetch_json(client, self.URL, self.name)
        rows = data.get("funding_rates") if isinstance(data, dict) else data
        ensure(isinstance(rows, list), "Unexpected funding-rates payload", self.name, data)

        records = []
        for item in rows:
            # the endpoint also mirrors other venues' rates
            if item.get("exchange") != "lighter" or not item.get("symbol"):
                continue
            record = funding_record(item["symbol"], self.name, item.get("rate"), interval_hours=1)
            # forex markets are excluded; zero marks an inactive market
            if record is None or record.funding_rate == 0 or record.asset_class == AssetClass.FOREX:
                continue
            records.append(record)
        return records

