"""
Aggregation Orchestrator - Fan-out / fan-in over all registered adapters.

Provides:
- Adapter registration per data kind
- Concurrent execution with per-adapter failure isolation
- One health entry per adapter per run, success or not
- Deterministic merge in registration order
"""

import asyncio
import logging
import time
from typing import Any, Optional, Sequence

from data_sources.base import SourceAdapter
from data_sources.exceptions import DataSourceError, FetchError
from data_sources.http_client import ResilientFetchClient
from data_sources.models import (
    AggregationResult,
    DataKind,
    HealthStatus,
    NormalizedRecord,
    SourceHealth,
)


logger = logging.getLogger(__name__)


class AggregationOrchestrator:
    """
    Central registry and runner for source adapters.

    Features:
    - Register adapters per data kind
    - Run every adapter of a kind concurrently
    - Isolate failures: an adapter error is a health entry, never an exception
    - Never raises from run_all()

    Usage:
        orchestrator = AggregationOrchestrator(client)
        orchestrator.register(DataKind.FUNDING, binance_funding)
        orchestrator.register(DataKind.FUNDING, bybit_funding)

        result = await orchestrator.run_kind(DataKind.FUNDING)
        for health in result.health:
            print(health.name, health.status.value, health.count)
    """

    def __init__(
        self,
        client: Optional[ResilientFetchClient] = None,
        adapter_timeout: Optional[float] = None,
    ) -> None:
        self._client = client or ResilientFetchClient()
        self._adapter_timeout = adapter_timeout
        self._adapters: dict[DataKind, list[SourceAdapter]] = {kind: [] for kind in DataKind}

    @property
    def client(self) -> ResilientFetchClient:
        return self._client

    def register(self, kind: DataKind, adapter: SourceAdapter) -> None:
        """
        Register an adapter for a data kind.

        Registration order is the merge order of run results. Registering a
        name twice replaces the earlier adapter in place.
        """
        adapters = self._adapters[kind]
        for i, existing in enumerate(adapters):
            if existing.name == adapter.name:
                logger.warning(f"Adapter '{adapter.name}' already registered for {kind.value}, replacing")
                adapters[i] = adapter
                return
        adapters.append(adapter)
        logger.debug(f"Registered adapter '{adapter.name}' for {kind.value}")

    def register_all(self, kind: DataKind, adapters: Sequence[SourceAdapter]) -> None:
        """Register several adapters in order."""
        for adapter in adapters:
            self.register(kind, adapter)

    def unregister(self, kind: DataKind, name: str) -> Optional[SourceAdapter]:
        """Unregister an adapter by name."""
        adapters = self._adapters[kind]
        for i, existing in enumerate(adapters):
            if existing.name == name:
                logger.info(f"Unregistered adapter '{name}' from {kind.value}")
                return adapters.pop(i)
        return None

    def adapters_for(self, kind: DataKind) -> list[SourceAdapter]:
        """List adapters of a kind in registration order."""
        return self._adapters[kind].copy()

    async def run_kind(self, kind: DataKind) -> AggregationResult:
        """Run every adapter registered for a data kind."""
        return await self.run_all(self._adapters[kind])

    async def run_all(self, adapters: Sequence[SourceAdapter]) -> AggregationResult:
        """
        Run adapters concurrently and merge their output.

        Args:
            adapters: Adapters in registration order

        Returns:
            AggregationResult whose health has exactly len(adapters) entries

        Note:
            Never raises - total failure is an empty data list with
            all-error health
        """
        outcomes = await asyncio.gather(*(self._run_one(adapter) for adapter in adapters))

        data: list[NormalizedRecord] = []
        health: list[SourceHealth] = []
        seen: set[tuple[str, str]] = set()

        for records, entry in outcomes:
            health.append(entry)
            for record in records:
                if record.key in seen:
                    continue
                seen.add(record.key)
                data.append(record)

        result = AggregationResult(data=data, health=health)
        if result.all_failed():
            logger.error(f"All {len(adapters)} sources failed")
        else:
            logger.info(
                f"Aggregated {len(data)} records from "
                f"{result.active_sources}/{len(adapters)} sources"
            )
        return result

    async def _run_one(
        self,
        adapter: SourceAdapter,
    ) -> tuple[list[NormalizedRecord], SourceHealth]:
        """Run a single adapter, converting any failure into a health entry."""
        start_time = time.monotonic()
        try:
            if self._adapter_timeout is not None:
                records = await asyncio.wait_for(adapter(self._client), self._adapter_timeout)
            else:
                records = await adapter(self._client)
        except asyncio.TimeoutError:
            latency_ms = _elapsed_ms(start_time)
            message = f"timeout after {self._adapter_timeout}s"
            logger.warning(f"[{adapter.name}] Failed: {message}")
            return [], SourceHealth(adapter.name, HealthStatus.ERROR, 0, latency_ms, message)
        except Exception as e:
            latency_ms = _elapsed_ms(start_time)
            message = str(e) or e.__class__.__name__
            if isinstance(e, FetchError) and e.is_geo_blocked():
                message = f"{message} (region blocked)"
            logger.warning(f"[{adapter.name}] Failed: {message}")
            if isinstance(e, DataSourceError):
                logger.debug(f"[{adapter.name}] Failure detail: {e.to_dict()}")
            return [], SourceHealth(adapter.name, HealthStatus.ERROR, 0, latency_ms, message)

        latency_ms = _elapsed_ms(start_time)
        records = list(records or [])
        status = HealthStatus.OK if records else HealthStatus.EMPTY
        if not records:
            logger.info(f"[{adapter.name}] Empty response")
        return records, SourceHealth(adapter.name, status, len(records), latency_ms)

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        return {
            kind.value: [adapter.name for adapter in adapters]
            for kind, adapters in self._adapters.items()
        }

    async def close(self) -> None:
        """Close the shared fetch client."""
        await self._client.close()

    async def __aenter__(self) -> "AggregationOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)
