"""
Data Source Models - Normalized derivatives data structures.

Provides strict typing for records produced by every exchange adapter,
plus the per-adapter health telemetry returned with each aggregation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class AssetClass(Enum):
    """Asset class of a canonical symbol."""
    CRYPTO = "crypto"
    STOCKS = "stocks"
    FOREX = "forex"
    COMMODITIES = "commodities"


class HealthStatus(Enum):
    """Outcome of a single adapter run."""
    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"


class DataKind(Enum):
    """Logical data kinds served by the aggregator."""
    FUNDING = "funding"
    OPEN_INTEREST = "openinterest"
    TICKERS = "tickers"


@dataclass(frozen=True)
class ClassifiedSymbol:
    """Canonical symbol and asset class for a raw exchange symbol."""
    symbol: str
    asset_class: AssetClass


@dataclass(frozen=True)
class NormalizedRecord:
    """
    Normalized record - STRICT schema.

    `symbol` is always canonical (BTC, EURUSD, XAU) regardless of how the
    exchange spells it. Raw provider payloads never travel past the adapter.
    """
    symbol: str
    exchange: str
    asset_class: AssetClass

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the record within one fetch cycle."""
        return (self.symbol, self.exchange)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "symbol": self.symbol,
            "exchange": self.exchange,
            "assetClass": self.asset_class.value,
        }


@dataclass(frozen=True)
class FundingRecord(NormalizedRecord):
    """Funding rate in percent per `interval_hours` (the venue's own settlement interval)."""
    funding_rate: float
    mark_price: float = 0.0
    index_price: float = 0.0
    next_funding_time: Optional[int] = None
    interval_hours: int = 8

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "fundingRate": self.funding_rate,
            "markPrice": self.mark_price,
            "indexPrice": self.index_price,
            "nextFundingTime": self.next_funding_time,
            "fundingInterval": self.interval_hours,
        })
        return data


@dataclass(frozen=True)
class OpenInterestRecord(NormalizedRecord):
    """Open interest in base units and in USD."""
    open_interest: float
    open_interest_value: float

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "openInterest": self.open_interest,
            "openInterestValue": self.open_interest_value,
        })
        return data


@dataclass(frozen=True)
class TickerRecord(NormalizedRecord):
    """24h ticker snapshot."""
    last_price: float
    price_change_percent_24h: float = 0.0
    high_24h: float = 0.0
    low_24h: float = 0.0
    volume_24h: float = 0.0
    quote_volume_24h: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "lastPrice": self.last_price,
            "priceChangePercent24h": self.price_change_percent_24h,
            "high24h": self.high_24h,
            "low24h": self.low_24h,
            "volume24h": self.volume_24h,
            "quoteVolume24h": self.quote_volume_24h,
        })
        return data


@dataclass(frozen=True)
class SourceHealth:
    """Per-adapter outcome of one fetch cycle."""
    name: str
    status: HealthStatus
    count: int
    latency_ms: int
    error: Optional[str] = None

    def is_ok(self) -> bool:
        """Check if the adapter produced records."""
        return self.status == HealthStatus.OK

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "count": self.count,
            "latencyMs": self.latency_ms,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class AggregationResult:
    """Merged records and the full health array of one orchestrator run."""
    data: list[NormalizedRecord] = field(default_factory=list)
    health: list[SourceHealth] = field(default_factory=list)

    @property
    def active_sources(self) -> int:
        """Number of adapters that returned records."""
        return sum(1 for h in self.health if h.status == HealthStatus.OK)

    def all_failed(self) -> bool:
        """Check if every adapter errored."""
        return bool(self.health) and all(
            h.status == HealthStatus.ERROR for h in self.health
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "data": [record.to_dict() for record in self.data],
            "health": [h.to_dict() for h in self.health],
        }
