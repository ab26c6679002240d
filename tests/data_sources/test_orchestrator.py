"""
Aggregation Orchestrator Tests.

============================================================
PURPOSE
============================================================
Fan-out / fan-in behaviour over registered adapters.

TEST CATEGORIES:
- Failure isolation: one health entry per adapter, never raises
- Merge: registration order and de-duplication
- Registry: replace, unregister, stats
- Deadlines: per-adapter timeout

============================================================
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from data_sources.base import FunctionAdapter, adapter
from data_sources.exceptions import FetchError
from data_sources.models import (
    AssetClass,
    DataKind,
    FundingRecord,
    HealthStatus,
)
from data_sources.orchestrator import AggregationOrchestrator


def funding(symbol: str, exchange: str, rate: float = 0.01) -> FundingRecord:
    return FundingRecord(
        symbol=symbol,
        exchange=exchange,
        asset_class=AssetClass.CRYPTO,
        funding_rate=rate,
    )


def returning(name: str, records: list) -> FunctionAdapter:
    async def run(client):
        return records
    return FunctionAdapter(name, run)


def raising(name: str, error: Exception) -> FunctionAdapter:
    async def run(client):
        raise error
    return FunctionAdapter(name, run)


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def orchestrator(client) -> AggregationOrchestrator:
    return AggregationOrchestrator(client)


# ============================================================
# FAILURE ISOLATION TESTS
# ============================================================

class TestFailureIsolation:
    """Adapter failures become health entries."""

    @pytest.mark.asyncio
    async def test_mixed_outcomes(self, orchestrator):
        """Test ok, error and empty adapters in one run."""
        records = [funding(symbol, "A") for symbol in ("BTC", "ETH", "SOL", "XRP", "DOGE")]
        orchestrator.register_all(DataKind.FUNDING, [
            returning("A", records),
            raising("B", Exception("timeout")),
            returning("C", []),
        ])

        result = await orchestrator.run_kind(DataKind.FUNDING)

        assert len(result.data) == 5
        assert [h.name for h in result.health] == ["A", "B", "C"]
        a, b, c = result.health
        assert (a.status, a.count) == (HealthStatus.OK, 5)
        assert (b.status, b.count, b.error) == (HealthStatus.ERROR, 0, "timeout")
        assert (c.status, c.count) == (HealthStatus.EMPTY, 0)
        assert c.error is None
        assert result.active_sources == 1
        assert not result.all_failed()

    @pytest.mark.asyncio
    async def test_total_failure_never_raises(self, orchestrator):
        """Test all-error runs return empty data."""
        orchestrator.register(DataKind.TICKERS, raising("A", FetchError("HTTP 500", status_code=500)))
        orchestrator.register(DataKind.TICKERS, raising("B", ValueError()))

        result = await orchestrator.run_kind(DataKind.TICKERS)

        assert result.data == []
        assert result.all_failed()
        assert result.health[0].error == "HTTP 500"
        assert result.health[1].error == "ValueError"

    @pytest.mark.asyncio
    async def test_region_block_flagged(self, orchestrator, caplog):
        """Test a region block is named in health and detailed in the debug log."""
        blocked = FetchError("HTTP 451", status_code=451, request_url="https://api.bybit.com/v5/x")
        orchestrator.register(DataKind.FUNDING, raising("Bybit", blocked))

        with caplog.at_level(logging.DEBUG, logger="data_sources.orchestrator"):
            result = await orchestrator.run_kind(DataKind.FUNDING)

        assert result.health[0].error == "HTTP 451 (region blocked)"
        assert "'status_code': 451" in caplog.text
        assert "https://api.bybit.com/v5/x" in caplog.text

    @pytest.mark.asyncio
    async def test_no_adapters(self, orchestrator):
        """Test an empty registry yields an empty, non-failed result."""
        result = await orchestrator.run_kind(DataKind.OPEN_INTEREST)

        assert result.data == []
        assert result.health == []
        assert not result.all_failed()

    @pytest.mark.asyncio
    async def test_none_treated_as_empty(self, orchestrator):
        """Test an adapter returning None is reported empty."""
        orchestrator.register(DataKind.FUNDING, returning("A", None))

        result = await orchestrator.run_kind(DataKind.FUNDING)

        assert result.health[0].status == HealthStatus.EMPTY

    @pytest.mark.asyncio
    async def test_adapters_receive_shared_client(self, orchestrator, client):
        """Test every adapter is called with the orchestrator's client."""
        seen = []

        @adapter("Capture")
        async def capture(passed_client):
            seen.append(passed_client)
            return []

        orchestrator.register(DataKind.FUNDING, capture)
        await orchestrator.run_kind(DataKind.FUNDING)

        assert seen == [client]


# ============================================================
# MERGE TESTS
# ============================================================

class TestMerge:
    """Merging output of several adapters."""

    @pytest.mark.asyncio
    async def test_registration_order_wins_over_completion_order(self, orchestrator):
        """Test the merge follows registration, not finish time."""
        async def slow(client):
            await asyncio.sleep(0.05)
            return [funding("BTC", "Slow")]

        orchestrator.register(DataKind.FUNDING, FunctionAdapter("Slow", slow))
        orchestrator.register(DataKind.FUNDING, returning("Fast", [funding("BTC", "Fast")]))

        result = await orchestrator.run_kind(DataKind.FUNDING)

        assert [r.exchange for r in result.data] == ["Slow", "Fast"]
        assert [h.name for h in result.health] == ["Slow", "Fast"]

    @pytest.mark.asyncio
    async def test_duplicate_keys_keep_first(self, orchestrator):
        """Test (symbol, exchange) duplicates are dropped."""
        orchestrator.register(DataKind.FUNDING, returning("A", [
            funding("BTC", "A", 0.01),
            funding("BTC", "A", 0.02),
            funding("ETH", "A"),
        ]))

        result = await orchestrator.run_kind(DataKind.FUNDING)

        assert len(result.data) == 2
        assert result.data[0].funding_rate == 0.01
        # Health counts what the adapter returned
        assert result.health[0].count == 3

    @pytest.mark.asyncio
    async def test_same_symbol_different_exchange_kept(self, orchestrator):
        """Test the key includes the exchange."""
        orchestrator.register(DataKind.FUNDING, returning("A", [funding("BTC", "A")]))
        orchestrator.register(DataKind.FUNDING, returning("B", [funding("BTC", "B")]))

        result = await orchestrator.run_kind(DataKind.FUNDING)

        assert {r.key for r in result.data} == {("BTC", "A"), ("BTC", "B")}

    @pytest.mark.asyncio
    async def test_runs_concurrently(self, orchestrator):
        """Test adapters overlap in time."""
        running = 0
        peak = 0

        async def tracked(client):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return []

        for name in ("A", "B", "C"):
            orchestrator.register(DataKind.FUNDING, FunctionAdapter(name, tracked))

        await orchestrator.run_kind(DataKind.FUNDING)

        assert peak == 3


# ============================================================
# DEADLINE TESTS
# ============================================================

class TestAdapterTimeout:
    """Per-adapter deadline."""

    @pytest.mark.asyncio
    async def test_slow_adapter_reported_as_timeout(self, client):
        """Test an adapter past the deadline is an error entry."""
        orchestrator = AggregationOrchestrator(client, adapter_timeout=0.01)

        async def hang(client):
            await asyncio.sleep(1)
            return [funding("BTC", "Hang")]

        orchestrator.register(DataKind.FUNDING, FunctionAdapter("Hang", hang))
        orchestrator.register(DataKind.FUNDING, returning("Quick", [funding("ETH", "Quick")]))

        result = await orchestrator.run_kind(DataKind.FUNDING)

        hang_health, quick_health = result.health
        assert hang_health.status == HealthStatus.ERROR
        assert hang_health.error == "timeout after 0.01s"
        assert quick_health.status == HealthStatus.OK
        assert [r.symbol for r in result.data] == ["ETH"]


# ============================================================
# REGISTRY TESTS
# ============================================================

class TestRegistry:
    """Registration bookkeeping."""

    def test_register_same_name_replaces_in_place(self, orchestrator):
        """Test re-registering keeps the original position."""
        orchestrator.register(DataKind.FUNDING, returning("A", []))
        orchestrator.register(DataKind.FUNDING, returning("B", []))
        replacement = returning("A", [funding("BTC", "A")])
        orchestrator.register(DataKind.FUNDING, replacement)

        adapters = orchestrator.adapters_for(DataKind.FUNDING)
        assert [a.name for a in adapters] == ["A", "B"]
        assert adapters[0] is replacement

    def test_unregister(self, orchestrator):
        """Test unregistering by name."""
        orchestrator.register(DataKind.TICKERS, returning("A", []))

        removed = orchestrator.unregister(DataKind.TICKERS, "A")

        assert removed.name == "A"
        assert orchestrator.adapters_for(DataKind.TICKERS) == []
        assert orchestrator.unregister(DataKind.TICKERS, "A") is None

    def test_kinds_are_independent(self, orchestrator):
        """Test registration is per data kind."""
        orchestrator.register(DataKind.FUNDING, returning("A", []))

        stats = orchestrator.get_stats()

        assert stats == {"funding": ["A"], "openinterest": [], "tickers": []}

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self, client):
        """Test leaving the context closes the shared client."""
        async with AggregationOrchestrator(client):
            pass

        client.close.assert_awaited_once()
