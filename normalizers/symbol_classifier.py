"""
Normalizers - Symbol Classifier.

============================================================
RESPONSIBILITY
============================================================
Maps a raw per-exchange symbol to its canonical symbol and
asset class.

- Each source has its own dialect (quote suffixes, category
  prefixes, tokenized-equity tickers, reversed forex pairs)
- The dialect is an ordered rule table, not a chain of
  conditionals
- Anything a source table leaves unresolved goes through the
  generic classifier: stocks -> forex -> commodities -> crypto

============================================================
DESIGN PRINCIPLES
============================================================
- Pure function of (raw_symbol, source_id)
- No network calls, no mutable state
- dYdX never checks stocks: CVX, DIS etc. are crypto tokens there

============================================================
"""

from typing import Mapping

from data_sources.models import AssetClass, ClassifiedSymbol
from normalizers.asset_sets import (
    BINGX_COMMODITY_MAP,
    BINGX_INDEX_MAP,
    KNOWN_COMMODITIES,
    KNOWN_STOCKS,
    KRAKEN_ASSET_MAP,
    STOCK_PREFIXES,
    STOCK_SUFFIX_SYMBOLS,
)
from normalizers.rules import (
    Always,
    CategoryPrefix,
    FlagDefault,
    ForexPair,
    MatchSet,
    Rename,
    ReplaceFirst,
    ResidualSuffix,
    Rule,
    StripPrefix,
    StripSuffix,
    SuffixClass,
    SymbolState,
    run_rules,
)


SHIELD_FLAG = "shield"

_STOCKS = MatchSet(KNOWN_STOCKS, AssetClass.STOCKS)
_COMMODITIES = MatchSet(KNOWN_COMMODITIES, AssetClass.COMMODITIES)

GENERIC_RULES: tuple[Rule, ...] = (
    _STOCKS,
    ForexPair(),
    _COMMODITIES,
    Always(AssetClass.CRYPTO),
)


# =========================================================
# PER-SOURCE RULE TABLES
# =========================================================

# Gate.io xStocks: AAPLX_USDT, TSLAX_USDT
GATEIO_RULES: tuple[Rule, ...] = (
    StripSuffix(("_USDT",)),
    ResidualSuffix("X", KNOWN_STOCKS, AssetClass.STOCKS),
)

# Aster: TSLAUSDT, SHIELDTSLAUSDT (hedge variant), EURUSDUSDT
ASTER_RULES: tuple[Rule, ...] = (
    StripPrefix(("SHIELD",), flag=SHIELD_FLAG),
    StripSuffix(("USDT", "USDC")),
    _STOCKS,
    _COMMODITIES,
    ForexPair(),
    FlagDefault(SHIELD_FLAG, AssetClass.STOCKS),
    Always(AssetClass.CRYPTO),
)

# Phemex: TSLAUSDT, XAUUSDT
PHEMEX_RULES: tuple[Rule, ...] = (
    StripSuffix(("USDT",)),
    _STOCKS,
    _COMMODITIES,
    ForexPair(),
    Always(AssetClass.CRYPTO),
)

# dYdX: BTC-USD, EUR-USD, PAXG-USD
DYDX_RULES: tuple[Rule, ...] = (
    StripSuffix(("-USD",)),
    ForexPair(expand_bare_base=True),
    _COMMODITIES,
    Always(AssetClass.CRYPTO),
)

# BingX: category prefix -> denomination suffix -> residual suffix
BINGX_RULES: tuple[Rule, ...] = (
    StripSuffix(("-USDT",)),
    CategoryPrefix(
        ("NCCO",),
        AssetClass.COMMODITIES,
        (StripSuffix(("2USD",)), Rename(BINGX_COMMODITY_MAP)),
    ),
    CategoryPrefix(
        ("NCFX",),
        AssetClass.FOREX,
        (StripSuffix(("2USD",)), ReplaceFirst("2"), ForexPair(expand_bare_base=True)),
    ),
    CategoryPrefix(
        ("NCSI",),
        AssetClass.STOCKS,
        (StripSuffix(("2USD",)), Rename(BINGX_INDEX_MAP)),
    ),
    CategoryPrefix(
        STOCK_PREFIXES,
        AssetClass.STOCKS,
        (StripSuffix(("2USD",)),),
    ),
    SuffixClass("2USD", AssetClass.STOCKS),
    ResidualSuffix("X", KNOWN_STOCKS, AssetClass.STOCKS),
    _STOCKS,
    _COMMODITIES,
    Always(AssetClass.CRYPTO),
)

# Kraken Futures: PF_XBTUSD, PF_SPYXUSD, PF_EURUSD
KRAKEN_RULES: tuple[Rule, ...] = (
    StripPrefix(("PF_", "PI_")),
    StripSuffix(("USD",)),
    Rename(KRAKEN_ASSET_MAP),
    ResidualSuffix("X", KNOWN_STOCKS, AssetClass.STOCKS),
    ForexPair(expand_bare_base=True),
)

# gTrade: pair names are already BASE or BASEQUOTE
GTRADE_RULES: tuple[Rule, ...] = (
    StripSuffix(("/USD",)),
    ReplaceFirst("/"),
    ForexPair(expand_bare_base=True),
)

SOURCE_RULES: Mapping[str, tuple[Rule, ...]] = {
    "binance": (StripSuffix(("USDT",)),),
    "bybit": (StripSuffix(("USDT",)),),
    "bitget": (StripSuffix(("USDT",)),),
    "okx": (StripSuffix(("-USDT-SWAP",)),),
    "mexc": (StripSuffix(("_USDT",)),),
    "gateio": GATEIO_RULES,
    "aster": ASTER_RULES,
    "phemex": PHEMEX_RULES,
    "dydx": DYDX_RULES,
    "bingx": BINGX_RULES,
    "kraken": KRAKEN_RULES,
    "gtrade": GTRADE_RULES,
    "lighter": (),
    "hyperliquid": (),
}


def source_key(source_id: str) -> str:
    """Normalize a source id or display name ('Gate.io' -> 'gateio')."""
    return source_id.lower().replace(".", "").replace(" ", "").replace("-", "")


def classify(raw_symbol: str, source_id: str) -> ClassifiedSymbol:
    """
    Classify a raw exchange symbol.

    Args:
        raw_symbol: Symbol exactly as the exchange spells it
        source_id: Source id or display name

    Returns:
        ClassifiedSymbol with canonical symbol and asset class
    """
    raw = raw_symbol.strip().upper()
    rules = SOURCE_RULES.get(source_key(source_id), ())

    result = run_rules(rules, SymbolState(raw))
    if isinstance(result, ClassifiedSymbol):
        return result

    return run_rules(GENERIC_RULES, result)


def is_crypto_symbol(symbol: str) -> bool:
    """
    Check that a venue symbol is not a tokenized equity listed as crypto.

    Catches BingX NCSK*/ACNSTOCK* tickers and *X stock derivatives.
    """
    upper = symbol.upper()
    if upper.startswith(STOCK_PREFIXES):
        return False
    return upper not in STOCK_SUFFIX_SYMBOLS
