"""
Normalizers - Canonical symbol sets.

Membership in these sets decides the asset class of a canonical symbol.
All sets are frozen; the classifier never mutates them.
"""

# Stocks, ETFs and indices traded as perps on DEX/CEX venues
KNOWN_STOCKS = frozenset({
    # Big tech
    "AAPL", "AMZN", "GOOGL", "GOOG", "META", "MSFT", "NFLX", "NVDA", "TSLA",
    # Fintech / crypto-adjacent
    "COIN", "HOOD", "MSTR", "SQ", "PYPL", "RIOT", "MARA", "CLSK", "CIFR",
    # Semiconductors
    "AMD", "INTC", "ARM", "AVGO", "QCOM", "TSM", "MRVL", "MU",
    # Other mega-cap / popular
    "PLTR", "UBER", "ABNB", "SNOW", "CRM", "ORCL", "SHOP", "NET", "BA",
    "DIS", "JPM", "V", "MA", "WMT", "KO", "PEP", "JNJ", "PFE", "LLY",
    "UNH", "BRK", "XOM", "CVX", "PG", "NKE", "MCD", "HD", "COST",
    "CSCO", "ACN", "ASML", "RDDT", "APP", "IBM", "GME", "GE", "RACE", "CRCL", "WDC",
    # ETFs / indices
    "SPY", "SPX", "QQQ", "IWM", "DIA", "ARKK",
})

# Market-convention forex pairs, no separators
CANONICAL_FOREX = frozenset({
    # Majors
    "EURUSD", "GBPUSD", "USDJPY", "USDCHF", "AUDUSD", "USDCAD", "NZDUSD",
    # Crosses
    "EURGBP", "EURJPY", "EURCHF", "EURAUD", "EURCAD", "EURNZD",
    "GBPJPY", "GBPCHF", "GBPAUD", "GBPCAD", "GBPNZD",
    "AUDJPY", "AUDCHF", "AUDNZD", "AUDCAD",
    "NZDJPY", "NZDCHF", "NZDCAD",
    "CADJPY", "CADCHF", "CHFJPY",
    # Emerging markets
    "USDKRW", "USDMXN", "USDBRL", "USDTRY", "USDZAR", "USDSGD", "USDHKD",
    "USDSEK", "USDNOK", "USDPLN", "USDCZK", "USDHUF", "USDTWD", "USDINR",
    "USDDKK", "USDILS",
    # Exotic crosses
    "EURSGD", "GBPSGD",
})

# Reversed spellings some venues list (XXX/USD instead of USD/XXX)
REVERSED_FOREX = frozenset({
    "TRYUSD", "JPYUSD", "CHFUSD", "MXNUSD", "KRWUSD", "SGDUSD",
    "HKDUSD", "SEKUSD", "NOKUSD", "PLNUSD", "CZKUSD", "HUFUSD",
    "CADUSD", "ZARUSD", "BRLUSD", "TWDUSD", "INRUSD",
})

KNOWN_FOREX = CANONICAL_FOREX | REVERSED_FOREX

# Non-USD currencies that may appear alone as a pair's base
FOREX_BASES = frozenset({
    "EUR", "GBP", "JPY", "CHF", "AUD", "CAD", "NZD",
    "SEK", "NOK", "PLN", "CZK", "HUF", "TRY", "ZAR",
    "SGD", "HKD", "KRW", "MXN", "BRL", "TWD", "INR",
    "DKK", "ILS",
})

KNOWN_COMMODITIES = frozenset({
    # Precious metals
    "XAU", "XAG", "XPT", "XPD",
    # Base metals
    "XCU", "HG",
    # Energy
    "WTI", "BRENT", "NATGAS", "UKOIL", "USOIL",
    # Tokenized gold
    "PAXG",
})

# BingX NCCO commodity names
BINGX_COMMODITY_MAP = {
    "GOLD": "XAU", "SILVER": "XAG", "OILWTI": "WTI", "OILBRENT": "BRENT",
    "NATURALGAS": "NATGAS", "COPPER": "XCU", "PALLADIUM": "XPD", "XAG": "XAG",
    "ALUMINIUM": "ALU", "COCOA": "COCOA", "COFFEE": "COFFEE", "GASOLINE": "GASOLINE",
    "HEATINGOIL": "HEATINGOIL", "LEAD": "LEAD", "NICKEL": "NICKEL",
    "SOYBEANS": "SOYBEANS", "ZINC": "ZINC",
}

# BingX NCSI index names
BINGX_INDEX_MAP = {
    "SP500": "SPX", "NASDAQ100": "QQQ", "DOWJONES": "DIA",
    "RUSSELL2000": "IWM", "NIKKEI225": "NIKKEI",
}

# Kraken uses ISO-style codes for a few assets
KRAKEN_ASSET_MAP = {
    "XBT": "BTC",
    "XDG": "DOGE",
}

# Tokenized-equity tickers some venues list next to crypto perps
STOCK_PREFIXES = ("NCSK", "ACNSTOCK")
STOCK_SUFFIX_SYMBOLS = frozenset({
    "AAPLX", "NVDAX", "SPYX", "CRCLX", "METAX", "WMTX", "GOOGX", "AMZX",
    "MSFTX", "TSLAX", "COINX", "HOODDX", "ARMX", "INTCX", "PLTRX", "MRVLX",
})
