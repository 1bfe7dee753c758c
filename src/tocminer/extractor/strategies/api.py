"""
Strategies that query the catalogue's JSON/text endpoints.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional
from urllib.parse import quote

from tocminer.errors import FetchError
from tocminer.extractor.models import BookTarget, Candidate
from tocminer.extractor.rules import (
    SEARCH_HIT_LIST_ALIASES,
    SEARCH_HIT_TITLE_ALIASES,
    SEARCH_HIT_TOC_ALIASES,
    TOC_FIELD_ALIASES,
    find_in_tree,
    lookup,
    lookup_list,
)

from .base import JSON_ACCEPT, BaseStrategy, NoCandidate

# {key} is only filled in when an API key is configured; templates using it are skipped otherwise.
TOC_ENDPOINTS: tuple[str, ...] = (
    "/NL/search/openApi/tocData.do?key={key}&controlNo={cn}",
    "/api/contents/tableOfContents?viewKey={cn}",
    "/seoji/contents/api/toc?CN={cn}&format=json",
    "/api/v1/contents/{cn}/toc.json",
    "/contents/api/detail?id={cn}&include=toc",
)

SEARCH_ENDPOINT = "/NL/search/openApi/search.do?key={key}&kwd={query}&apiType=json&pageSize=10"

_TITLE_NOISE = re.compile(r"[^\w]+")


def is_similar_title(wanted: str, found: Optional[str], min_ratio: float = 0.7) -> bool:
    """Exact match after normalization, or containment covering at least ``min_ratio``."""
    if not wanted or not found:
        return False
    a = _TITLE_NOISE.sub("", wanted).lower()
    b = _TITLE_NOISE.sub("", found).lower()
    if not a or not b:
        return False
    if a == b:
        return True
    shorter, longer = sorted((a, b), key=len)
    return shorter in longer and len(shorter) / len(longer) >= min_ratio


class DirectApiStrategy(BaseStrategy):
    """Table-of-contents API endpoints answering JSON or plain text."""

    name = "direct_api"
    requires = ("control_no",)

    def _urls(self, control_no: str) -> list[str]:
        urls = []
        for template in TOC_ENDPOINTS:
            if "{key}" in template and not self.library.api_key:
                continue
            urls.append(self.base_url + template.format(key=quote(self.library.api_key), cn=quote(control_no)))
        return urls

    async def _extract(self, target: BookTarget) -> Candidate:
        urls = self._urls(target.control_no or "")
        for url in urls:
            try:
                response = await self._get(url, JSON_ACCEPT)
            except FetchError as e:
                self.logger.debug("API endpoint failed", url=url, error=str(e))
                continue
            if not response.body:
                continue
            try:
                data = response.json()
            except ValueError:
                text = self.accept(response.text)
                if text:
                    return self.candidate(text, url, score_as="direct_api_text", format="text")
                continue
            text = find_in_tree(data, TOC_FIELD_ALIASES, self.accept)
            if text:
                return self.candidate(text, url, format="json")
        raise NoCandidate(f"no contents from {len(urls)} API endpoint(s)")


class SearchResultsStrategy(BaseStrategy):
    """Search API: pick the hit whose title matches, then look up its contents fields."""

    name = "search_results"
    requires = ("title",)
    needs_api_key = True

    def _hits(self, data: Any) -> list[Mapping[str, Any]]:
        if not isinstance(data, Mapping):
            return []
        return [hit for hit in lookup_list(data, SEARCH_HIT_LIST_ALIASES) if isinstance(hit, Mapping)]

    async def _extract(self, target: BookTarget) -> Candidate:
        query = " ".join(part for part in (target.title, target.author) if part)
        url = self.base_url + SEARCH_ENDPOINT.format(key=quote(self.library.api_key), query=quote(query))
        response = await self._get(url, JSON_ACCEPT)
        try:
            data = response.json()
        except ValueError as e:
            raise NoCandidate("search response is not JSON") from e

        hits = self._hits(data)
        matching = [hit for hit in hits if is_similar_title(target.title, lookup(hit, SEARCH_HIT_TITLE_ALIASES))]
        for hit in matching:
            for alias in SEARCH_HIT_TOC_ALIASES:
                text = self.accept(lookup(hit, (alias,)))
                if text:
                    return self.candidate(text, url, field=alias)
        raise NoCandidate(f"{len(hits)} hit(s), {len(matching)} with a matching title, none with contents")
