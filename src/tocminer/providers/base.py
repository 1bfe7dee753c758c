"""
Bookstore site scrapers used by the multi-source aggregator.

Each provider is an ``Extractor``: it searches a site by ISBN and then by
cleaned title, follows the first search hit matching one of its link
selectors, and reads the contents block from the first matching contents
selector. The selectors are site data held in a ``SiteProfile``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import ClassVar, Optional, Sequence
from urllib.parse import quote, urljoin

from selectolax.lexbor import LexborHTMLParser

from tocminer.config.config import FetchConfig
from tocminer.errors import FetchError
from tocminer.extractor.models import BookTarget, Candidate
from tocminer.extractor.normalize import Pass, clean_scraped, drop_lines_containing
from tocminer.extractor.strategies.base import BaseStrategy, NoCandidate
from tocminer.net.http_client import Fetcher

_TITLE_CLEANUP = re.compile(r"[^\w\s]")

MIN_SCRAPED_LENGTH = 50


def clean_title(title: str) -> str:
    return _TITLE_CLEANUP.sub("", title).strip()


@dataclass(frozen=True, slots=True)
class SiteProfile:
    name: str
    base_url: str
    # Search URL template with a {query} placeholder.
    search_url: str
    link_selectors: tuple[str, ...]
    toc_selectors: tuple[str, ...]
    # When set, a detail link must contain one of these substrings.
    detail_url_markers: tuple[str, ...] = ()
    # Expand/collapse widget labels that leak into scraped text.
    widget_labels: tuple[str, ...] = ()


class SiteScraper(BaseStrategy):
    """Scrape one bookstore site described by ``profile``."""

    profile: ClassVar[SiteProfile]

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        fetch_config: Optional[FetchConfig] = None,
        proxy_url: Optional[str] = None,
        min_length: int = MIN_SCRAPED_LENGTH,
    ) -> None:
        super().__init__(fetcher)
        self.fetch_config = fetch_config if fetch_config is not None else FetchConfig()
        self.proxy_url = proxy_url
        self.min_length = min_length
        self.extra_passes: Sequence[Pass] = (
            (drop_lines_containing(self.profile.widget_labels),) if self.profile.widget_labels else ()
        )

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.fetch_config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": self.fetch_config.accept_language,
        }

    async def fetch_html(self, url: str) -> str:
        """Fetch a page directly or through the configured pass-through proxy."""
        if not self.proxy_url:
            return (await self._get(url, self.headers)).text
        response = await self._get(self.proxy_url + quote(url, safe=""), self.headers)
        return decode_proxy_payload(response.text)

    def find_detail_url(self, html: str) -> Optional[str]:
        tree = LexborHTMLParser(html)
        for selector in self.profile.link_selectors:
            node = tree.css_first(selector)
            if node is None:
                continue
            href = node.attributes.get("href")
            if not href:
                continue
            url = urljoin(self.profile.base_url + "/", href)
            if self.profile.detail_url_markers and not any(m in url for m in self.profile.detail_url_markers):
                continue
            return url
        return None

    def clean(self, raw: str) -> str:
        return clean_scraped(raw, self.extra_passes)

    def extract_toc(self, tree: LexborHTMLParser) -> Optional[str]:
        for selector in self.profile.toc_selectors:
            node = tree.css_first(selector)
            if node is None:
                continue
            text = self.clean(node.text(separator="\n"))
            if len(text) > self.min_length:
                return text
        return self.fallback_toc(tree)

    def fallback_toc(self, tree: LexborHTMLParser) -> Optional[str]:
        """Site-specific last resort after the contents selectors."""
        return None

    async def _extract(self, target: BookTarget) -> Candidate:
        queries = [q for q in (target.normalized_isbn, clean_title(target.title)) if q]
        if not queries:
            raise NoCandidate("requires isbn or title")

        last_error: Optional[FetchError] = None
        for query in queries:
            search_url = self.profile.search_url.format(query=quote(query))
            try:
                detail_url = self.find_detail_url(await self.fetch_html(search_url))
                if detail_url is None:
                    self.logger.debug("No search hit", query=query)
                    continue
                text = self.extract_toc(LexborHTMLParser(await self.fetch_html(detail_url)))
            except FetchError as e:
                # An ISBN search failing should not stop the title search.
                self.logger.debug("Search failed", query=query, error=str(e))
                last_error = e
                continue
            if text:
                return self.candidate(text, detail_url)
        if last_error is not None:
            raise last_error
        raise NoCandidate(f"no contents found on {self.profile.name}")


def decode_proxy_payload(body: str) -> str:
    """Unwrap an ``{"contents": ...}`` proxy response; other bodies pass through."""
    try:
        payload = json.loads(body)
    except ValueError:
        return body
    if isinstance(payload, dict) and isinstance(payload.get("contents"), str):
        return payload["contents"]
    return body
