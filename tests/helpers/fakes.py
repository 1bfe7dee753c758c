"""
In-memory stand-ins for the network and for extraction strategies.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from tocminer.errors import FetchError
from tocminer.extractor.models import BookTarget, Candidate
from tocminer.net.http_client import FetchResponse

Route = Union[FetchResponse, Exception]


def html_response(url: str, body: str, status: int = 200, set_cookies: Sequence[str] = ()) -> FetchResponse:
    return FetchResponse(
        status=status,
        body=body.encode("utf-8"),
        url=url,
        headers={"Content-Type": "text/html; charset=utf-8"},
        set_cookies=tuple(set_cookies),
        elapsed_ms=1,
    )


def json_response(url: str, payload: Any, status: int = 200) -> FetchResponse:
    return FetchResponse(
        status=status,
        body=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
        url=url,
        headers={"Content-Type": "application/json"},
        set_cookies=(),
        elapsed_ms=1,
    )


class FakeFetcher:
    """
    ``Fetcher`` answering from a URL table.

    Unknown URLs answer 404. A route may also be an exception to raise.
    Every call is recorded as ``(url, headers)``.
    """

    def __init__(self, routes: Optional[Mapping[str, Route]] = None) -> None:
        self.routes: Dict[str, Route] = dict(routes or {})
        self.calls: List[Tuple[str, Dict[str, str]]] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def add_html(self, url: str, body: str, **kwargs: Any) -> None:
        self.routes[url] = html_response(url, body, **kwargs)

    def add_json(self, url: str, payload: Any, **kwargs: Any) -> None:
        self.routes[url] = json_response(url, payload, **kwargs)

    async def fetch(
        self, url: str, headers: Optional[Mapping[str, str]] = None, *, timeout: Optional[float] = None
    ) -> FetchResponse:
        self.calls.append((url, dict(headers or {})))
        route = self.routes.get(url)
        if route is None:
            return html_response(url, "not found", status=404)
        if isinstance(route, Exception):
            raise route
        return route

    def called(self, prefix: str) -> List[str]:
        return [url for url, _ in self.calls if url.startswith(prefix)]


class FakeExtractor:
    """Plain ``Extractor`` returning a fixed candidate after an optional delay."""

    def __init__(
        self,
        name: str,
        text: Optional[str] = None,
        *,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        source: Optional[str] = None,
        score_as: Optional[str] = None,
    ) -> None:
        self.name = name
        self.text = text
        self.delay = delay
        self.error = error
        self.source = source or f"https://example.test/{name}"
        self.score_as = score_as or name
        self.calls = 0

    async def attempt(self, target: BookTarget) -> Optional[Candidate]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.text is None:
            return None
        return Candidate(text=self.text, source_method=self.score_as, raw_metadata={"source": self.source})


class FixedScorer:
    """Scorer returning a preset confidence per method."""

    def __init__(self, scores: Mapping[str, float], default: float = 0.5) -> None:
        self.scores = dict(scores)
        self.default = default

    def score(self, text: str, method: str) -> float:
        return self.scores.get(method, self.default)


def fetch_failure(url: str) -> FetchError:
    return FetchError(url, "connection refused")
