"""
Aggregator HTTP API.

============================================================
PURPOSE
============================================================
Serves aggregated derivatives data over HTTP.

ENDPOINTS:
- GET /api/funding
- GET /api/openinterest
- GET /api/tickers
- GET /api/health

QUERY PARAMETERS (data endpoints):
- assetClass: crypto | stocks | forex | commodities | all (default crypto)
- symbol:     canonical symbol filter, comma-separated
- limit / offset: pagination over the filtered records

PRINCIPLES:
- ALL endpoints are READ-ONLY
- Total upstream failure is HTTP 200 with data: [] and error health
- X-Cache reports HIT / MISS / STALE

============================================================
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from aiohttp import web

from caching.allowlist import AllowlistCache, is_allowed
from caching.response_cache import CachedResult, CacheStatus, ResponseCache
from core.clock import ClockProtocol, get_clock
from core.config import AggregatorConfig, get_config
from data_sources.exceptions import CacheProducerError
from data_sources.models import (
    AggregationResult,
    AssetClass,
    DataKind,
    HealthStatus,
    NormalizedRecord,
    SourceHealth,
)
from data_sources.orchestrator import AggregationOrchestrator
from normalizers.symbol_classifier import is_crypto_symbol


logger = logging.getLogger(__name__)

ALL_ASSET_CLASSES = "all"
DEFAULT_ASSET_CLASS = AssetClass.CRYPTO.value
VALID_ASSET_CLASSES = frozenset([ALL_ASSET_CLASSES] + [a.value for a in AssetClass])
MAX_LIMIT = 5000


# ============================================================
# JSON ENCODER
# ============================================================

class AggregatorEncoder(json.JSONEncoder):
    """JSON encoder for aggregator payloads."""

    def default(self, obj):
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        return super().default(obj)


def json_response(
    data: Any,
    status: int = 200,
    headers: Optional[dict[str, str]] = None,
) -> web.Response:
    """Create JSON response."""
    return web.Response(
        text=json.dumps(data, cls=AggregatorEncoder),
        status=status,
        content_type="application/json",
        headers=headers,
    )


class BadRequest(ValueError):
    """Invalid query parameter."""


# ============================================================
# FILTERING
# ============================================================

def parse_asset_class(value: Optional[str]) -> str:
    asset_class = (value or DEFAULT_ASSET_CLASS).lower()
    if asset_class not in VALID_ASSET_CLASSES:
        raise BadRequest(f"Invalid assetClass '{value}'")
    return asset_class


def parse_symbols(value: Optional[str]) -> frozenset[str]:
    if not value:
        return frozenset()
    return frozenset(s.strip().upper() for s in value.split(",") if s.strip())


def parse_non_negative_int(value: Optional[str], name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except ValueError:
        raise BadRequest(f"Invalid {name} '{value}'") from None
    if number < 0:
        raise BadRequest(f"{name} must be non-negative")
    return number


def filter_records(
    records: Iterable[NormalizedRecord],
    asset_class: str,
    allowlist: frozenset[str],
    symbols: frozenset[str] = frozenset(),
) -> list[NormalizedRecord]:
    """
    Apply asset-class, allowlist and symbol filters.

    The allowlist gates crypto records only; other classes always pass it.
    Tokenized-equity tickers that reached the crypto class are kept out of
    the crypto view.
    """
    result = []
    for record in records:
        if symbols and record.symbol not in symbols:
            continue
        is_crypto = record.asset_class == AssetClass.CRYPTO and is_crypto_symbol(record.symbol)
        if asset_class == ALL_ASSET_CLASSES:
            if is_crypto and not is_allowed(record.symbol, allowlist):
                continue
        elif asset_class == DEFAULT_ASSET_CLASS:
            if not is_crypto or not is_allowed(record.symbol, allowlist):
                continue
        elif record.asset_class.value != asset_class:
            continue
        result.append(record)
    return result


def paginate(records: Sequence[Any], limit: Optional[int], offset: Optional[int]) -> list[Any]:
    start = offset or 0
    if limit is None:
        return list(records[start:])
    return list(records[start:start + min(limit, MAX_LIMIT)])


def should_cache(result: Any) -> bool:
    """Never let an all-error aggregation replace a good cached one."""
    return not (isinstance(result, AggregationResult) and result.all_failed())


# ============================================================
# API HANDLERS
# ============================================================

class AggregatorAPI:
    """
    HTTP API for aggregated derivatives data.

    ALL endpoints are READ-ONLY.
    """

    def __init__(
        self,
        orchestrator: AggregationOrchestrator,
        response_cache: ResponseCache,
        allowlist: AllowlistCache,
        config: Optional[AggregatorConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._cache = response_cache
        self._allowlist = allowlist
        self._config = config or get_config()
        self._clock = clock or get_clock()

    # --------------------------------------------------------
    # DATA ENDPOINTS
    # --------------------------------------------------------

    async def get_funding(self, request: web.Request) -> web.Response:
        """GET /api/funding"""
        return await self._serve_kind(DataKind.FUNDING, request)

    async def get_open_interest(self, request: web.Request) -> web.Response:
        """GET /api/openinterest"""
        return await self._serve_kind(DataKind.OPEN_INTEREST, request)

    async def get_tickers(self, request: web.Request) -> web.Response:
        """GET /api/tickers"""
        return await self._serve_kind(DataKind.TICKERS, request)

    async def _serve_kind(self, kind: DataKind, request: web.Request) -> web.Response:
        try:
            asset_class = parse_asset_class(request.query.get("assetClass"))
            symbols = parse_symbols(request.query.get("symbol"))
            limit = parse_non_negative_int(request.query.get("limit"), "limit")
            offset = parse_non_negative_int(request.query.get("offset"), "offset")
        except BadRequest as e:
            return json_response({"error": str(e)}, status=400)

        cached, allowlist = await asyncio.gather(
            self._aggregate(kind),
            self._allowlist.get_top_symbols(),
        )
        result: AggregationResult = cached.value

        filtered = filter_records(result.data, asset_class, allowlist, symbols)
        page = paginate(filtered, limit, offset)

        endpoint = self._config.cache.for_kind(kind)
        headers = {
            "Cache-Control": endpoint.cache_control(stale=cached.is_stale),
            "X-Cache": cached.status.value,
        }
        body = {
            "data": [record.to_dict() for record in page],
            "health": [h.to_dict() for h in result.health],
            "meta": {
                "totalExchanges": len(result.health),
                "activeExchanges": result.active_sources,
                "totalEntries": len(filtered),
                "assetClass": asset_class,
                "timestamp": self._clock.timestamp_ms(),
            },
        }
        if limit is not None or offset is not None:
            body["meta"]["limit"] = limit
            body["meta"]["offset"] = offset or 0
        return json_response(body, headers=headers)

    async def _aggregate(self, kind: DataKind) -> CachedResult:
        """Cached orchestrator run; never raises."""
        ttl = self._config.cache.for_kind(kind).ttl_seconds
        try:
            return await self._cache.get_or_fetch(
                kind.value, ttl, lambda: self._orchestrator.run_kind(kind)
            )
        except CacheProducerError as e:
            logger.error(f"[api] {kind.value} aggregation failed with nothing cached: {e}")
            return CachedResult(self._degraded(kind, e), CacheStatus.MISS)

    def _degraded(self, kind: DataKind, error: CacheProducerError) -> AggregationResult:
        message = str(error.original_error or error)
        return AggregationResult(
            data=[],
            health=[
                SourceHealth(adapter.name, HealthStatus.ERROR, 0, 0, message)
                for adapter in self._orchestrator.adapters_for(kind)
            ],
        )

    # --------------------------------------------------------
    # HEALTH
    # --------------------------------------------------------

    async def health(self, request: web.Request) -> web.Response:
        """
        GET /api/health

        Per-endpoint summary of source health through the same cache the
        data endpoints use.
        """
        kinds = list(DataKind)
        results = await asyncio.gather(*(self._aggregate(kind) for kind in kinds))
        routes = {kind.value: summarize(cached) for kind, cached in zip(kinds, results)}

        statuses = {summary["status"] for summary in routes.values()}
        if statuses == {"down"}:
            overall = "down"
        elif statuses == {"ok"}:
            overall = "ok"
        else:
            overall = "degraded"

        return json_response(
            {
                "status": overall,
                "routes": routes,
                "allowlist": {
                    "symbols": len(self._allowlist.symbols),
                    "fresh": self._allowlist.is_fresh(),
                },
                "cache": self._cache.get_stats(),
                "timestamp": self._clock.timestamp_ms(),
            },
            headers={"Cache-Control": "no-store"},
        )


def summarize(cached: CachedResult) -> dict[str, Any]:
    """Health summary of one cached aggregation."""
    result: AggregationResult = cached.value
    total = len(result.health)
    active = result.active_sources
    errors = [h.to_dict() for h in result.health if h.status == HealthStatus.ERROR]

    if total and active == 0:
        status = "down"
    elif errors:
        status = "degraded"
    else:
        status = "ok"

    return {
        "status": status,
        "activeExchanges": active,
        "totalExchanges": total,
        "entries": len(result.data),
        "cache": cached.status.value,
        "errors": errors,
    }


# ============================================================
# APPLICATION
# ============================================================

def create_app(
    orchestrator: AggregationOrchestrator,
    response_cache: ResponseCache,
    allowlist: AllowlistCache,
    config: Optional[AggregatorConfig] = None,
    clock: Optional[ClockProtocol] = None,
) -> web.Application:
    """
    Create the aggregator application.

    The orchestrator's HTTP client is closed on application cleanup.
    """
    api = AggregatorAPI(orchestrator, response_cache, allowlist, config, clock)
    app = web.Application()

    app.router.add_get("/api/funding", api.get_funding)
    app.router.add_get("/api/openinterest", api.get_open_interest)
    app.router.add_get("/api/tickers", api.get_tickers)
    app.router.add_get("/api/health", api.health)

    async def close_client(app: web.Application) -> None:
        await orchestrator.close()

    app.on_cleanup.append(close_client)
    return app
