"""
Allowlist Cache - Top-N symbols by market capitalization.

Used as a noise gate for crypto records: symbols outside the top N by
market cap are dropped from responses. The gate fails open: an empty set
means "no filtering", never "block everything".

Lifecycle:
- Populated lazily on first use
- Refreshed when older than the TTL (30 min by default)
- A refresh that fails or looks truncated keeps the previous set
"""

import logging
import re
from typing import Any, Iterable, Optional

from core.clock import ClockProtocol, get_clock
from core.config import AllowlistConfig
from data_sources.base import fetch_json
from data_sources.exceptions import DataSourceError, NormalizationError
from data_sources.http_client import ResilientFetchClient


logger = logging.getLogger(__name__)

SOURCE_NAME = "allowlist"

# 1000PEPE, 1000000MOG
_MULTIPLIER_PREFIX = re.compile(r"^1000+(?=[A-Z])")


def base_symbol(symbol: str) -> str:
    """Strip a contract-size multiplier prefix (1000PEPE, kPEPE) from a ticker."""
    upper = symbol.upper()
    stripped = _MULTIPLIER_PREFIX.sub("", upper, count=1)
    if stripped != upper:
        return stripped
    # kPEPE reaches here upper-cased by the classifier
    if len(upper) > 3 and upper[0] == "K":
        return upper[1:]
    return upper


def is_allowed(symbol: str, symbols: Iterable[str]) -> bool:
    """
    Check a canonical symbol against an allowlist snapshot.

    An empty snapshot allows everything.
    """
    allowed = symbols if isinstance(symbols, (set, frozenset)) else frozenset(symbols)
    if not allowed:
        return True
    return symbol.upper() in allowed or base_symbol(symbol) in allowed


class AllowlistCache:
    """
    Time-cached set of top-N symbols by market cap.

    Usage:
        allowlist = AllowlistCache(config.allowlist, client)
        symbols = await allowlist.get_top_symbols()
        crypto = [r for r in records if is_allowed(r.symbol, symbols)]
    """

    def __init__(
        self,
        config: Optional[AllowlistConfig] = None,
        client: Optional[ResilientFetchClient] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = config or AllowlistConfig()
        self._client = client or ResilientFetchClient()
        self._clock = clock or get_clock()
        self._symbols: frozenset[str] = frozenset()
        self._timestamp: Optional[float] = None
        self._warned_no_key = False

    @property
    def symbols(self) -> frozenset[str]:
        """Current snapshot without refreshing."""
        return self._symbols

    @property
    def timestamp(self) -> Optional[float]:
        """Clock time of the last successful refresh."""
        return self._timestamp

    def is_fresh(self) -> bool:
        """Check if the snapshot is younger than the TTL."""
        if self._timestamp is None:
            return False
        return self._clock.timestamp() - self._timestamp < self._config.ttl_seconds

    async def get_top_symbols(self) -> frozenset[str]:
        """
        Get the allowlist, refreshing it when stale.

        Returns:
            Upper-case symbols, or an empty set when the gate is disabled
        """
        if self.is_fresh():
            return self._symbols

        if not self._config.api_key:
            if not self._warned_no_key:
                logger.warning(f"[{SOURCE_NAME}] No market-cap API key configured, filtering disabled")
                self._warned_no_key = True
            return self._symbols

        try:
            symbols = await self._fetch_ranked()
        except DataSourceError as e:
            logger.warning(f"[{SOURCE_NAME}] Refresh failed, keeping {len(self._symbols)} symbols: {e}")
            return self._symbols

        if len(symbols) < self._config.min_size:
            logger.warning(
                f"[{SOURCE_NAME}] Refresh returned {len(symbols)} symbols "
                f"(< {self._config.min_size}), keeping previous set"
            )
            return self._symbols

        self._symbols = symbols
        self._timestamp = self._clock.timestamp()
        logger.info(f"[{SOURCE_NAME}] Loaded {len(symbols)} symbols")
        return self._symbols

    async def _fetch_ranked(self) -> frozenset[str]:
        """Fetch pages of the market-cap ranking until top_n is covered."""
        headers = {self._config.api_key_header: self._config.api_key}
        per_page = self._config.page_size
        pages = -(-self._config.top_n // per_page)

        symbols: list[str] = []
        for page in range(1, pages + 1):
            params = {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": per_page,
                "page": page,
                "sparkline": "false",
            }
            data = await fetch_json(
                self._client,
                self._config.api_url,
                SOURCE_NAME,
                params=params,
                headers=headers,
            )
            symbols.extend(_parse_symbols(data))

        return frozenset(symbols[:self._config.top_n])


def _parse_symbols(data: Any) -> list[str]:
    if not isinstance(data, list):
        raise NormalizationError(
            message="Expected a list of coins",
            source_name=SOURCE_NAME,
            raw_data=data,
        )
    return [
        str(coin["symbol"]).upper()
        for coin in data
        if isinstance(coin, dict) and coin.get("symbol")
    ]
