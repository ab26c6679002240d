"""
Resilient Fetch Client - Single HTTP call with timeout and domain failover.

Every adapter performs its HTTP through this client. A call is bounded by a
hard timeout; when a provider answers 403/451 (region block) or cannot be
reached at all, the same path is retried against the provider's alternate
hosts in order. Ordinary 4xx/5xx responses are returned untouched.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from core.constants import ALTERNATE_DOMAINS, DEFAULT_HEADERS
from data_sources.exceptions import GEO_BLOCK_STATUSES, FetchError


logger = logging.getLogger(__name__)

NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


@dataclass(frozen=True)
class FetchResponse:
    """Fully-read HTTP response, safe to use after the connection closed."""
    status: int
    url: str
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Check for a 2xx status."""
        return 200 <= self.status < 300

    @property
    def is_geo_blocked(self) -> bool:
        """Check for a region-block status."""
        return self.status in GEO_BLOCK_STATUSES

    def text(self) -> str:
        """Decode the body as UTF-8."""
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parse the body as JSON."""
        return json.loads(self.body)


def replace_host(url: str, host: str) -> str:
    """Swap the network location of a URL, keeping path and query."""
    parts = urlsplit(url)
    return urlunsplit(parts._replace(netloc=host))


class ResilientFetchClient:
    """
    HTTP client shared by all adapters of one aggregation run.

    Features:
    - Hard per-call timeout (cancels the in-flight request)
    - Geo-block / network failover across alternate hosts
    - No retry for application errors
    - No caching

    Usage:
        async with ResilientFetchClient() as client:
            response = await client.fetch("https://fapi.binance.com/fapi/v1/premiumIndex")
            if response.ok:
                data = response.json()
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        alternate_domains: Optional[Mapping[str, Sequence[str]]] = None,
        headers: Optional[Mapping[str, str]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._timeout = timeout
        self._alternate_domains = {
            host: tuple(alts)
            for host, alts in (alternate_domains if alternate_domains is not None else ALTERNATE_DOMAINS).items()
        }
        self._headers = dict(DEFAULT_HEADERS)
        if headers:
            self._headers.update(headers)
        self._session = session
        self._owns_session = session is None

    @property
    def timeout(self) -> float:
        return self._timeout

    def alternates_for(self, url: str) -> tuple[str, ...]:
        """Alternate hosts configured for the host of a URL."""
        host = urlsplit(url).netloc
        return self._alternate_domains.get(host, ())

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        json_body: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> FetchResponse:
        """
        Perform one HTTP call with failover.

        Args:
            url: Absolute URL
            method: HTTP method
            params: Query parameters
            json_body: JSON request body
            headers: Extra headers (merged over the defaults)
            timeout: Per-attempt timeout in seconds

        Returns:
            FetchResponse of the first successful attempt, or the original
            response when a region block could not be bypassed

        Raises:
            FetchError: If the host and every alternate are unreachable
        """
        timeout = timeout if timeout is not None else self._timeout

        try:
            response = await self._request_once(url, method, params, json_body, headers, timeout)
        except NETWORK_ERRORS as e:
            logger.warning(f"[http] {method} {url} failed: {e!r}")
            recovered = await self._try_alternates(url, method, params, json_body, headers, timeout)
            if recovered is not None:
                return recovered
            raise FetchError(
                message=f"Connection error: {e!r}",
                request_url=url,
                original_error=e,
            ) from e

        if not response.is_geo_blocked:
            return response

        logger.warning(f"[http] {url} answered {response.status}, trying alternate hosts")
        recovered = await self._try_alternates(url, method, params, json_body, headers, timeout)
        return recovered if recovered is not None else response

    async def _try_alternates(
        self,
        url: str,
        method: str,
        params: Optional[Mapping[str, Any]],
        json_body: Optional[Any],
        headers: Optional[Mapping[str, str]],
        timeout: float,
    ) -> Optional[FetchResponse]:
        """Retry against each alternate host in order; first ok response wins."""
        for host in self.alternates_for(url):
            alternate_url = replace_host(url, host)
            try:
                response = await self._request_once(
                    alternate_url, method, params, json_body, headers, timeout
                )
            except NETWORK_ERRORS as e:
                logger.debug(f"[http] alternate {alternate_url} failed: {e!r}")
                continue

            if response.ok:
                logger.info(f"[http] recovered {url} via {host}")
                return response
            logger.debug(f"[http] alternate {alternate_url} answered {response.status}")

        return None

    async def _request_once(
        self,
        url: str,
        method: str,
        params: Optional[Mapping[str, Any]],
        json_body: Optional[Any],
        headers: Optional[Mapping[str, str]],
        timeout: float,
    ) -> FetchResponse:
        """Single attempt; the body is read before the connection is released."""
        session = await self._get_session()
        merged_headers = dict(self._headers)
        if headers:
            merged_headers.update(headers)

        start_time = time.monotonic()
        async with session.request(
            method,
            url,
            params=params,
            json=json_body,
            headers=merged_headers,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            body = await response.read()
            logger.debug(
                f"[http] {method} {url} -> {response.status} "
                f"in {(time.monotonic() - start_time) * 1000:.1f}ms"
            )
            return FetchResponse(
                status=response.status,
                url=str(response.url),
                body=body,
                headers=dict(response.headers),
            )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "ResilientFetchClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
