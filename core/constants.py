"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines system-wide constants shared by the HTTP client,
the adapters and the funding model.

============================================================
"""

SYSTEM_NAME = "derivatives-aggregator"
SYSTEM_VERSION = "1.0.0"

# ============================================================
# TIME CONSTANTS
# ============================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Default settlement interval; also the target of Kraken and gTrade conversions
FUNDING_INTERVAL_HOURS = 8
FUNDING_INTERVAL_SECONDS = FUNDING_INTERVAL_HOURS * SECONDS_PER_HOUR

# ============================================================
# HTTP
# ============================================================

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
}

# Alternate hosts tried in order when a host answers 403/451 or is unreachable
ALTERNATE_DOMAINS: dict[str, tuple[str, ...]] = {
    "fapi.binance.com": ("fapi1.binance.com", "fapi2.binance.com", "fapi3.binance.com"),
    "api.binance.com": ("api1.binance.com", "api2.binance.com", "api3.binance.com"),
    "api.bybit.com": ("api.bytick.com",),
    "www.okx.com": ("aws.okx.com",),
    "api.gateio.ws": ("fx-api.gateio.ws",),
}
