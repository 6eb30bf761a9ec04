"""
HttpClient - Async HTTP adapter for the company lookup backend.

Responsibilities:
- Base URL, fixed timeout and default JSON headers
- A unique request id header on every call, plus start-time latency logging
- Classification of every transport/HTTP failure into an ApiError
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping

import httpx
from loguru import logger

from company_lookup.constants import DEFAULT_HEADERS, REQUEST_ID_HEADER
from company_lookup.services.cache import make_cache_key
from company_lookup.services.errors import ApiError, ErrorKind, ErrorRecord, to_api_error
from company_lookup.utils import generate_request_id


def _normalize_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(v) for v in value)
    return str(value)


def normalize_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Drop unset parameters and render the rest as query-string values."""
    if not params:
        return {}
    return {
        key: _normalize_value(value)
        for key, value in sorted(params.items())
        if value is not None
    }


@dataclass(frozen=True)
class RequestDescriptor:
    """What to request, and whether (and for how long) to cache it."""

    endpoint: str
    params: dict[str, str] = field(default_factory=dict)
    cacheable: bool = True
    ttl: timedelta | None = None
    method: str = "GET"

    @classmethod
    def build(
        cls,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        cacheable: bool = True,
        ttl: timedelta | None = None,
    ) -> "RequestDescriptor":
        return cls(
            endpoint=endpoint,
            params=normalize_params(params),
            cacheable=cacheable,
            ttl=ttl,
        )

    @property
    def cache_key(self) -> str:
        return make_cache_key(self.endpoint, self.params)


@dataclass
class ClientStats:
    """Request counters."""

    requests: int = 0
    failures: int = 0
    total_time: float = 0.0

    @property
    def average_ms(self) -> float:
        if self.requests == 0:
            return 0.0
        return self.total_time / self.requests * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests": self.requests,
            "failures": self.failures,
            "average_ms": round(self.average_ms, 2),
        }


class HttpClient:
    """
    Thin async HTTP adapter.

    Usage:
        async with HttpClient("http://localhost:8000/api/v1") as http:
            body = await http.get_json(RequestDescriptor.build("/search", {"q": "tesla"}))
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        debug: bool = False,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = {**DEFAULT_HEADERS, **(headers or {})}
        self._transport = transport
        self._debug = debug
        self._stats = ClientStats()

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
                headers=self._headers,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._http_client

    async def send(self, descriptor: RequestDescriptor) -> httpx.Response:
        """
        Issue the request described by ``descriptor``.

        Returns:
            The 2xx response

        Raises:
            ApiError: classified transport or HTTP failure
        """
        client = await self._get_http_client()
        request_id = generate_request_id()
        method = descriptor.method
        path = descriptor.endpoint
        started = time.perf_counter()

        if self._debug:
            logger.debug(f"API Request: {method} {path} [{request_id}] params={descriptor.params}")

        try:
            # httpx limits each phase separately; this caps the whole call
            response = await asyncio.wait_for(
                client.request(
                    method,
                    path,
                    params=descriptor.params or None,
                    headers={REQUEST_ID_HEADER: request_id},
                ),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            duration_ms = self._record(started, failed=True)
            error = to_api_error(e)
            status = error.status_code or "Network"
            logger.warning(
                f"API Error: {status} {method} {path} ({duration_ms:.0f}ms) "
                f"[{request_id}] {error.kind.value}: {error}"
            )
            raise error

        duration_ms = self._record(started, failed=False)
        logger.info(
            f"API Response: {response.status_code} {method} {path} "
            f"({duration_ms:.0f}ms) [{request_id}]"
        )
        return response

    async def get_json(self, descriptor: RequestDescriptor) -> dict[str, Any]:
        """Issue the request and decode its JSON object body."""
        response = await self.send(descriptor)
        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(
                ErrorRecord(
                    kind=ErrorKind.UNKNOWN_ERROR,
                    message="The server returned a response that is not valid JSON.",
                    status_code=response.status_code,
                    cause=e,
                )
            ) from e

        if not isinstance(body, dict):
            raise ApiError(
                ErrorRecord(
                    kind=ErrorKind.UNKNOWN_ERROR,
                    message="Unexpected response format.",
                    status_code=response.status_code,
                )
            )
        return body

    def _record(self, started: float, failed: bool) -> float:
        elapsed = time.perf_counter() - started
        self._stats.requests += 1
        self._stats.total_time += elapsed
        if failed:
            self._stats.failures += 1
        return elapsed * 1000

    def get_stats(self) -> ClientStats:
        return self._stats

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug(f"HttpClient closed ({self._stats.requests} requests)")

    async def __aenter__(self) -> "HttpClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
