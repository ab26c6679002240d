"""
Providers package - Exchange adapter implementations.

Registration order below is the merge order of aggregated results.
"""

import logging
from typing import Optional

from core.clock import ClockProtocol
from core.config import AggregatorConfig, get_config
from data_sources.base import ExchangeSource, SourceAdapter
from data_sources.models import DataKind
from data_sources.orchestrator import AggregationOrchestrator
from data_sources.providers.binance import BinanceSource
from data_sources.providers.bingx import BingXSource
from data_sources.providers.bitget import BitgetSource
from data_sources.providers.bybit import BybitSource
from data_sources.providers.dydx import DydxSource
from data_sources.providers.funding_venues import AsterSource, LighterSource
from data_sources.providers.gateio import GateioSource
from data_sources.providers.gtrade import GTradeSource
from data_sources.providers.hyperliquid import HyperliquidSource
from data_sources.providers.kraken import KrakenSource
from data_sources.providers.mexc import MexcSource
from data_sources.providers.okx import OKXSource
from data_sources.providers.phemex import PhemexSource
from data_sources.velocity_funding import VelocityFundingModel


logger = logging.getLogger(__name__)


def build_sources(
    config: Optional[AggregatorConfig] = None,
    clock: Optional[ClockProtocol] = None,
) -> list[ExchangeSource]:
    """Instantiate every supported venue from configuration."""
    config = config or get_config()
    providers = config.providers
    sub_timeout = config.http.sub_request_timeout_seconds

    return [
        BinanceSource(
            open_interest_top_n=providers.open_interest_top_n,
            open_interest_batch_size=providers.open_interest_batch_size,
            sub_request_timeout=sub_timeout,
        ),
        BybitSource(),
        OKXSource(batch_size=providers.open_interest_batch_size, sub_request_timeout=sub_timeout),
        BitgetSource(),
        HyperliquidSource(),
        DydxSource(),
        AsterSource(),
        LighterSource(),
        GateioSource(),
        MexcSource(),
        KrakenSource(interval_multiplier=providers.kraken_interval_multiplier),
        BingXSource(),
        PhemexSource(),
        GTradeSource(VelocityFundingModel(
            interval_seconds=providers.velocity_interval_seconds,
            min_rate=providers.velocity_min_rate,
            clock=clock,
        )),
    ]


def build_adapters(
    kind: DataKind,
    config: Optional[AggregatorConfig] = None,
    clock: Optional[ClockProtocol] = None,
) -> list[SourceAdapter]:
    """Adapters serving one data kind, in registration order."""
    return [
        source.adapter_for(kind)
        for source in build_sources(config, clock)
        if source.supports(kind)
    ]


def register_default_adapters(
    orchestrator: AggregationOrchestrator,
    config: Optional[AggregatorConfig] = None,
    clock: Optional[ClockProtocol] = None,
) -> None:
    """Register every venue for every kind it serves."""
    sources = build_sources(config, clock)
    for kind in DataKind:
        orchestrator.register_all(
            kind, [source.adapter_for(kind) for source in sources if source.supports(kind)]
        )
    logger.info(f"Registered adapters: {orchestrator.get_stats()}")


__all__ = [
    "AsterSource",
    "BinanceSource",
    "BingXSource",
    "BitgetSource",
    "BybitSource",
    "DydxSource",
    "GateioSource",
    "GTradeSource",
    "HyperliquidSource",
    "KrakenSource",
    "LighterSource",
    "MexcSource",
    "OKXSource",
    "PhemexSource",
    "build_adapters",
    "build_sources",
    "register_default_adapters",
]
