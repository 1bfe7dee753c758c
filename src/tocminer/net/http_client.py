"""
HTTP transport used by every strategy, provider and session.

The core only depends on the ``Fetcher`` protocol; ``HttpFetcher`` is the
aiohttp implementation shipped with the package. Network failures and
timeouts surface as ``FetchError``. Non-2xx responses are returned as-is so
callers can decide what a given status means for them.
"""

from __future__ import annotations

import asyncio
import json
import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable
from urllib.parse import urlparse

import aiohttp
import structlog

from tocminer.config.config import FetchConfig
from tocminer.errors import FetchError
from tocminer.observability.metrics import METRICS

logger = structlog.get_logger(__name__)

RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})


@dataclass(frozen=True, slots=True)
class FetchResponse:
    """Response from a single fetch."""

    status: int
    body: bytes
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    set_cookies: tuple[str, ...] = ()
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON. Raises ``ValueError`` when it is not JSON."""
        return json.loads(self.text)


@runtime_checkable
class Fetcher(Protocol):
    """Anything that can GET a URL."""

    async def fetch(
        self, url: str, headers: Optional[Mapping[str, str]] = None, *, timeout: Optional[float] = None
    ) -> FetchResponse:
        """Fetch ``url``.

        Raises:
            FetchError: on network failure or timeout.
        """
        ...


class HttpFetcher:
    """aiohttp-backed ``Fetcher`` with a per-request timeout and optional status retries."""

    def __init__(self, config: Optional[FetchConfig] = None) -> None:
        self.config = config if config is not None else FetchConfig()
        self.session: Optional[aiohttp.ClientSession] = None
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            connector = aiohttp.TCPConnector(limit=self.config.connection_limit)
            # Cookies are owned by SessionContext, not by the transport.
            self.session = aiohttp.ClientSession(
                connector=connector,
                cookie_jar=aiohttp.DummyCookieJar(),
                headers={"User-Agent": self.config.user_agent},
            )
            self._is_initialized = True
            logger.debug("HTTP fetcher session initialized")

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None
        self._is_initialized = False
        logger.debug("HTTP fetcher closed")

    async def __aenter__(self) -> "HttpFetcher":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter: roughly 1s, 2s, 4s."""
        return 2 ** (attempt - 1) * random.uniform(0.8, 1.2)

    async def fetch(
        self, url: str, headers: Optional[Mapping[str, str]] = None, *, timeout: Optional[float] = None
    ) -> FetchResponse:
        if not self._is_initialized:
            await self.initialize()
        assert self.session is not None

        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise FetchError(url, "malformed URL")

        timeout = timeout if timeout is not None else self.config.timeout
        max_retries = self.config.max_retries
        start_time = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            try:
                async with asyncio.timeout(timeout):
                    async with self.session.get(url, headers=dict(headers or {}), allow_redirects=True) as response:
                        if response.status in RETRYABLE_STATUSES and attempt <= max_retries:
                            logger.info("Retrying request", url=url, status=response.status, attempt=attempt)
                            retry = True
                        else:
                            retry = False
                            body = await response.read()
                            status = response.status
                            final_url = str(response.url)
                            response_headers = {k: v for k, v in response.headers.items()}
                            set_cookies = tuple(response.headers.getall("Set-Cookie", []))
            except asyncio.TimeoutError as e:
                logger.warning("Request timed out", url=url, attempt=attempt, timeout=timeout)
                if attempt <= max_retries:
                    await asyncio.sleep(self._calculate_backoff_delay(attempt))
                    continue
                raise FetchError(url, f"timed out after {timeout}s") from e
            except aiohttp.ClientError as e:
                logger.warning("Request failed", url=url, attempt=attempt, error=str(e))
                if attempt <= max_retries:
                    await asyncio.sleep(self._calculate_backoff_delay(attempt))
                    continue
                raise FetchError(url, str(e) or type(e).__name__) from e

            if retry:
                await asyncio.sleep(self._calculate_backoff_delay(attempt))
                continue
            break

        elapsed = time.monotonic() - start_time
        METRICS["fetch_responses"].labels(status_class=f"{status // 100}xx").inc()
        METRICS["fetch_latency_seconds"].observe(elapsed)
        logger.debug("Fetched", url=url, status=status, attempts=attempt, elapsed_ms=int(elapsed * 1000))

        return FetchResponse(
            status=status,
            body=body,
            url=final_url,
            headers=response_headers,
            set_cookies=set_cookies,
            elapsed_ms=int(elapsed * 1000),
        )


def require_ok(response: FetchResponse) -> FetchResponse:
    """Raise ``FetchError`` for a non-2xx response."""
    if not response.ok:
        raise FetchError(response.url, f"HTTP {response.status}", status=response.status)
    return response


__all__: List[str] = ["Fetcher", "FetchResponse", "HttpFetcher", "RETRYABLE_STATUSES", "require_ok"]
