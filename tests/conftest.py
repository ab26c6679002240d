"""
Shared fixtures for aggregator tests.
"""

import json
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.clock import MockClock
from data_sources.http_client import FetchResponse


@pytest.fixture
def clock() -> MockClock:
    """Deterministic clock starting at 2025-01-01 UTC."""
    return MockClock()


@pytest.fixture
def make_response() -> Callable[..., FetchResponse]:
    """Factory for fully-read HTTP responses."""

    def factory(payload: Any = None, status: int = 200, url: str = "https://example.com") -> FetchResponse:
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        return FetchResponse(status=status, url=url, body=body)

    return factory


@pytest.fixture
def fake_client(make_response) -> MagicMock:
    """
    Fetch client stand-in that routes by URL substring.

    Populate fake_client.routes with {substring: payload or FetchResponse
    or exception}; unmatched URLs answer 404.
    """
    client = MagicMock()
    client.routes = {}
    client.close = AsyncMock()

    async def fetch(url: str, **kwargs: Any) -> FetchResponse:
        for fragment, outcome in client.routes.items():
            if fragment in url:
                if isinstance(outcome, Exception):
                    raise outcome
                if callable(outcome):
                    outcome = await outcome(url, **kwargs)
                if isinstance(outcome, FetchResponse):
                    return outcome
                return make_response(outcome, url=url)
        return make_response({"error": "not found"}, status=404, url=url)

    client.fetch = AsyncMock(side_effect=fetch)
    return client
