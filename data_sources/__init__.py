"""
Data Sources Package - Multi-source derivatives aggregation.

Fans out to many exchange adapters concurrently, isolates their
failures, and merges normalized records with per-adapter health.

Features:
- Resilient HTTP with geo-block / network domain failover
- One health entry per adapter per run, success or not
- Deterministic registration-order merge
- Strict record types at the adapter edge

Quick Start:
    from data_sources import AggregationOrchestrator, DataKind, ResilientFetchClient
    from data_sources.providers import register_default_adapters

    async def funding():
        async with AggregationOrchestrator(ResilientFetchClient()) as orchestrator:
            register_default_adapters(orchestrator)
            result = await orchestrator.run_kind(DataKind.FUNDING)

            for health in result.health:
                print(f"{health.name}: {health.status.value} ({health.count})")

Adding New Providers:
    1. Create a class extending ExchangeSource
    2. Implement fetch_funding() / fetch_open_interest() / fetch_tickers()
       and list the kinds in KINDS
    3. Add it to data_sources.providers.build_sources()
"""

from data_sources.base import (
    ExchangeSource,
    FunctionAdapter,
    SourceAdapter,
    adapter,
    fetch_json,
    gather_in_batches,
)
from data_sources.exceptions import (
    AdapterError,
    CacheProducerError,
    ConfigurationError,
    DataSourceError,
    FetchError,
    NormalizationError,
)
from data_sources.http_client import FetchResponse, ResilientFetchClient
from data_sources.models import (
    AggregationResult,
    AssetClass,
    ClassifiedSymbol,
    DataKind,
    FundingRecord,
    HealthStatus,
    NormalizedRecord,
    OpenInterestRecord,
    SourceHealth,
    TickerRecord,
)
from data_sources.orchestrator import AggregationOrchestrator
from data_sources.velocity_funding import (
    VelocityFundingModel,
    VelocityPairParams,
    VelocityPairState,
)


__version__ = "1.0.0"

__all__ = [
    # Base
    "ExchangeSource",
    "FunctionAdapter",
    "SourceAdapter",
    "adapter",
    "fetch_json",
    "gather_in_batches",

    # HTTP
    "FetchResponse",
    "ResilientFetchClient",

    # Models
    "AggregationResult",
    "AssetClass",
    "ClassifiedSymbol",
    "DataKind",
    "FundingRecord",
    "HealthStatus",
    "NormalizedRecord",
    "OpenInterestRecord",
    "SourceHealth",
    "TickerRecord",

    # Exceptions
    "AdapterError",
    "CacheProducerError",
    "ConfigurationError",
    "DataSourceError",
    "FetchError",
    "NormalizationError",

    # Orchestration
    "AggregationOrchestrator",

    # Velocity funding
    "VelocityFundingModel",
    "VelocityPairParams",
    "VelocityPairState",
]
