"""
Source Adapter - Interface every exchange integration implements.

An adapter is a named async callable taking the shared fetch client and
returning normalized records. Adapters MUST:
- perform all HTTP through the ResilientFetchClient
- return [] for "no data" and raise only for unrecoverable faults
- never mutate shared state
- map provider payloads into the strict record types before returning
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, TypeVar

from data_sources.exceptions import AdapterError, FetchError, NormalizationError
from data_sources.http_client import ResilientFetchClient
from data_sources.models import DataKind, NormalizedRecord


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

AdapterFunction = Callable[[ResilientFetchClient], Awaitable[list[NormalizedRecord]]]


class SourceAdapter(ABC):
    """
    Abstract base class for all source adapters.

    Subclasses implement fetch_records(); the orchestrator calls the
    adapter instance directly and owns timing and error isolation.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name used in health telemetry."""
        pass

    @abstractmethod
    async def fetch_records(self, client: ResilientFetchClient) -> list[NormalizedRecord]:
        """
        Fetch and normalize records from the provider.

        Args:
            client: Shared fetch client

        Returns:
            Normalized records, possibly empty

        Raises:
            DataSourceError: On unrecoverable provider faults
        """
        pass

    async def __call__(self, client: ResilientFetchClient) -> list[NormalizedRecord]:
        return await self.fetch_records(client)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


class FunctionAdapter(SourceAdapter):
    """Adapter backed by a plain coroutine function."""

    def __init__(self, name: str, func: AdapterFunction) -> None:
        self._name = name
        self._func = func

    @property
    def name(self) -> str:
        return self._name

    async def fetch_records(self, client: ResilientFetchClient) -> list[NormalizedRecord]:
        return await self._func(client)


def adapter(name: str) -> Callable[[AdapterFunction], FunctionAdapter]:
    """Decorator turning a coroutine function into a named adapter."""
    def wrap(func: AdapterFunction) -> FunctionAdapter:
        return FunctionAdapter(name, func)
    return wrap


class ExchangeSource:
    """
    One venue serving one or more data kinds.

    Subclasses override the fetch_* methods they support and list the
    kinds in KINDS. Each kind is exposed to the orchestrator as its own
    named adapter so health is tracked per venue per endpoint.
    """

    name: str = ""
    KINDS: tuple[DataKind, ...] = ()

    async def fetch_funding(self, client: ResilientFetchClient) -> list[NormalizedRecord]:
        raise NotImplementedError

    async def fetch_open_interest(self, client: ResilientFetchClient) -> list[NormalizedRecord]:
        raise NotImplementedError

    async def fetch_tickers(self, client: ResilientFetchClient) -> list[NormalizedRecord]:
        raise NotImplementedError

    def supports(self, kind: DataKind) -> bool:
        return kind in self.KINDS

    def adapter_for(self, kind: DataKind) -> SourceAdapter:
        """Wrap the fetch method for a kind as a named adapter."""
        if not self.supports(kind):
            raise ValueError(f"{self.name} does not serve {kind.value}")
        method = {
            DataKind.FUNDING: self.fetch_funding,
            DataKind.OPEN_INTEREST: self.fetch_open_interest,
            DataKind.TICKERS: self.fetch_tickers,
        }[kind]
        return FunctionAdapter(self.name, method)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


# =========================================================
# HELPERS SHARED BY PROVIDERS
# =========================================================


async def fetch_json(
    client: ResilientFetchClient,
    url: str,
    source_name: str,
    **kwargs: Any,
) -> Any:
    """
    Fetch a URL and decode JSON, raising on any non-ok response.

    A non-ok response here has already been through domain failover, so it
    is treated as total source failure.
    """
    response = await client.fetch(url, **kwargs)
    if not response.ok:
        raise FetchError(
            message=f"HTTP {response.status}",
            source_name=source_name,
            status_code=response.status,
            response_body=response.text()[:1000],
            request_url=url,
        )
    try:
        return response.json()
    except ValueError as e:
        raise NormalizationError(
            message="Response is not valid JSON",
            source_name=source_name,
            raw_data=response.text()[:200],
            original_error=e,
        ) from e


def ensure(condition: bool, message: str, source_name: str, raw: Any = None) -> None:
    """Raise AdapterError when a provider envelope is unusable."""
    if not condition:
        context = {"raw": str(raw)[:200]} if raw is not None else None
        raise AdapterError(message=message, source_name=source_name, context=context)


async def gather_in_batches(
    items: Sequence[T],
    func: Callable[[T], Awaitable[Optional[R]]],
    batch_size: int,
    source_name: str = "",
) -> list[R]:
    """
    Run func over items in fixed-size groups, awaiting each group before
    issuing the next. Failed or empty items are skipped.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    results: list[R] = []
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        outcomes = await asyncio.gather(*(func(item) for item in batch), return_exceptions=True)
        for item, outcome in zip(batch, outcomes):
            if isinstance(outcome, Exception):
                logger.debug(f"[{source_name}] sub-request {item!r} failed: {outcome}")
            elif isinstance(outcome, BaseException):
                raise outcome
            elif outcome is not None:
                results.append(outcome)
    return results


def parse_float(value: Any, default: float = math.nan) -> float:
    """Parse a provider number (str/int/float/None) into a float."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def finite(values: Iterable[float]) -> bool:
    """Check that every value is a finite number."""
    return all(math.isfinite(v) for v in values)
