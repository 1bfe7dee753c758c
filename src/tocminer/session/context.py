"""
Cookie-jar session that replays a believable browsing path.

Some catalogue pages only return their contents when the request carries
the cookies handed out on the home page and a referrer from the site's own
search page. ``SessionContext`` keeps that state for one logical lookup.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, Optional
from urllib.parse import quote

import structlog

from tocminer.config.config import FetchConfig
from tocminer.errors import FetchError, SessionError
from tocminer.net.http_client import Fetcher, FetchResponse, require_ok
from tocminer.observability.metrics import METRICS

logger = structlog.get_logger(__name__)

BROWSER_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"

SEARCH_PATH = "/NL/contents/search.do"
DETAIL_PATH = "/NL/contents/detail.do"


def parse_set_cookie(header: str) -> tuple[str, str] | None:
    """Return ``(name, value)`` from a Set-Cookie header, ignoring attributes."""
    pair = header.split(";", 1)[0]
    name, sep, value = pair.partition("=")
    name, value = name.strip(), value.strip()
    if not sep or not name or not value:
        return None
    return name, value


@dataclass(frozen=True, slots=True)
class SessionStats:
    cookie_count: int
    established: bool
    user_agent: str
    requests: int


class SessionContext:
    """Cookie jar, header builder and multi-hop navigation for one site."""

    def __init__(self, fetcher: Fetcher, base_url: str, config: Optional[FetchConfig] = None) -> None:
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.config = config if config is not None else FetchConfig()
        self.cookies: Dict[str, str] = {}
        self.established = False
        self._handshake_lock = asyncio.Lock()
        # A failed handshake is not retried until clear_failure() or reset().
        self.failure: Optional[SessionError] = None
        self._requests = 0
        self.logger = logger.bind(component="session", base_url=self.base_url)

    @property
    def is_active(self) -> bool:
        return self.established and bool(self.cookies)

    def merge_cookies(self, set_cookie_headers: Iterable[str]) -> None:
        for header in set_cookie_headers:
            parsed = parse_set_cookie(header)
            if parsed is not None:
                name, value = parsed
                self.cookies[name] = value

    def cookie_header(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self.cookies.items())

    def build_headers(self, referrer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept": BROWSER_ACCEPT,
            "Accept-Language": self.config.accept_language,
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "same-origin" if referrer else "none",
        }
        if referrer:
            headers["Referer"] = referrer
        cookie = self.cookie_header()
        if cookie:
            headers["Cookie"] = cookie
        return headers

    async def _get(self, url: str, referrer: Optional[str]) -> FetchResponse:
        self._requests += 1
        response = await self.fetcher.fetch(url, self.build_headers(referrer))
        self.merge_cookies(response.set_cookies)
        return response

    async def establish_session(self) -> None:
        """Visit the site root to collect baseline cookies.

        Concurrent callers share one handshake. After a failure, later calls
        fail straight away without contacting the site.

        Raises:
            SessionError: when the root page cannot be fetched or is not 200.
        """
        if self.established:
            return
        async with self._handshake_lock:
            if self.established:
                return
            if self.failure is not None:
                raise SessionError(self.base_url, f"earlier handshake failed ({self.failure.reason})")
            self.logger.info("Establishing session")
            try:
                response = await self._get(self.base_url, None)
            except FetchError as e:
                self.failure = SessionError(self.base_url, e.reason)
                METRICS["session_handshakes"].labels(outcome="failed").inc()
                raise self.failure from e
            if response.status != 200:
                self.failure = SessionError(self.base_url, f"HTTP {response.status}")
                METRICS["session_handshakes"].labels(outcome="failed").inc()
                raise self.failure
            self.established = True
            METRICS["session_handshakes"].labels(outcome="established").inc()
            self.logger.info("Session established", cookie_count=len(self.cookies))

    async def authenticated_request(self, url: str, referrer: Optional[str] = None) -> FetchResponse:
        """GET ``url`` with the session's cookies, establishing the session first if needed.

        Raises:
            SessionError: if the lazy handshake fails.
            FetchError: if this request fails or returns a non-2xx status.
        """
        if not self.established:
            await self.establish_session()
        self.logger.debug("Authenticated request", url=url, referrer=referrer)
        return require_ok(await self._get(url, referrer))

    async def navigate_to_detail(self, control_no: str, title: str) -> FetchResponse:
        """Replay home, search page, search results, detail page. Returns the detail response."""
        search_url = f"{self.base_url}{SEARCH_PATH}"
        await self.authenticated_request(search_url, self.base_url)

        results_url = f"{search_url}?srchTarget=total&kwd={quote(title)}"
        await self.authenticated_request(results_url, search_url)

        detail_url = self.detail_url(control_no)
        response = await self.authenticated_request(detail_url, results_url)
        self.logger.info("Reached detail page", control_no=control_no, size=len(response.body))
        return response

    def detail_url(self, control_no: str) -> str:
        return f"{self.base_url}{DETAIL_PATH}?viewKey={quote(control_no)}"

    def clear_failure(self) -> None:
        self.failure = None

    def reset(self) -> None:
        self.cookies.clear()
        self.established = False
        self.failure = None
        self.logger.info("Session reset")

    def stats(self) -> SessionStats:
        return SessionStats(
            cookie_count=len(self.cookies),
            established=self.established,
            user_agent=self.config.user_agent,
            requests=self._requests,
        )
