"""
Normalizers Package - Canonical symbols and asset classes.

Quick Start:
    from normalizers import classify

    classify("AAPLX_USDT", "gateio")    # ClassifiedSymbol("AAPL", STOCKS)
    classify("NCFXEUR2USD", "bingx")    # ClassifiedSymbol("EURUSD", FOREX)
"""

from normalizers.asset_sets import (
    CANONICAL_FOREX,
    FOREX_BASES,
    KNOWN_COMMODITIES,
    KNOWN_FOREX,
    KNOWN_STOCKS,
)
from normalizers.symbol_classifier import (
    SOURCE_RULES,
    classify,
    is_crypto_symbol,
    source_key,
)


__all__ = [
    "CANONICAL_FOREX",
    "FOREX_BASES",
    "KNOWN_COMMODITIES",
    "KNOWN_FOREX",
    "KNOWN_STOCKS",
    "SOURCE_RULES",
    "classify",
    "is_crypto_symbol",
    "source_key",
]
