"""
Strategies that parse catalogue detail pages as HTML.
"""

from __future__ import annotations

import re
from typing import Iterator
from urllib.parse import quote

from selectolax.lexbor import LexborHTMLParser

from tocminer.extractor.models import BookTarget, Candidate

from .base import BaseStrategy, NoCandidate

DETAIL_PATH = "/NL/contents/detail.do?viewKey={cn}"

# Stage 1: blocks the page labels as contents.
LABELLED_SELECTORS: tuple[str, ...] = (
    'table[class*="toc"]',
    'table[class*="contents"]',
    'table[class*="목차"]',
    'table[id*="toc"]',
    'div[class*="toc"]',
    'div[id*="toc"]',
    'div[class*="목차"]',
    'div[class*="contents"]',
    'ul[class*="toc"]',
    'ol[class*="toc"]',
    'ul[class*="contents"]',
    'ol[class*="contents"]',
)

ROW_LABELS = frozenset({"목차", "차례", "contents", "table of contents"})

# Stage 2: a contents heading followed closely by a block.
_HEADED_BLOCK = re.compile(
    r"(?:목차|차례|Contents)[\s\S]{0,100}?<(table|div|ul|ol)\b[^>]*>([\s\S]{100,2000}?)</\1>",
    re.IGNORECASE,
)

# Stage 3: three or more consecutive chapter or numbered entries anywhere in the markup.
_MARKER_RUNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:(?:제\s*)?\d+\s*[장부절편][^<\n]{2,80}?(?:\n|<br\s*/?>|</[a-z0-9]+>)\s*){3,}", re.IGNORECASE),
    re.compile(r"(?:\d+\.\s*[가-힣][^<\n]{2,80}?(?:\n|<br\s*/?>|</[a-z0-9]+>)\s*){3,}", re.IGNORECASE),
)


def labelled_fragments(html: str) -> Iterator[str]:
    """Contents blocks identified by class/id, then label/value table rows."""
    tree = LexborHTMLParser(html)
    for selector in LABELLED_SELECTORS:
        for node in tree.css(selector):
            if node.html:
                yield node.html
    for row in tree.css("tr"):
        cells = row.css("th, td")
        if len(cells) >= 2 and cells[0].text(strip=True).lower() in ROW_LABELS:
            if cells[1].html:
                yield cells[1].html


def headed_fragments(html: str) -> Iterator[str]:
    for match in _HEADED_BLOCK.finditer(html):
        yield match.group(2)


def marker_run_fragments(html: str) -> Iterator[str]:
    for pattern in _MARKER_RUNS:
        for match in pattern.finditer(html):
            yield match.group(0)


def staged_fragments(html: str) -> Iterator[tuple[str, str]]:
    """All candidate fragments of a detail page, most specific stage first."""
    for fragment in labelled_fragments(html):
        yield "labelled", fragment
    for fragment in headed_fragments(html):
        yield "headed", fragment
    for fragment in marker_run_fragments(html):
        yield "marker_run", fragment


class TargetedHtmlStrategy(BaseStrategy):
    """Staged parse of the detail page: labelled blocks, headed blocks, chapter-marker runs."""

    name = "targeted_html"
    requires = ("control_no",)

    async def _extract(self, target: BookTarget) -> Candidate:
        url = self.base_url + DETAIL_PATH.format(cn=quote(target.control_no or ""))
        response = await self._get(url)
        if not response.body:
            raise NoCandidate("empty detail page")

        for stage, fragment in staged_fragments(response.text):
            text = self.accept(fragment)
            if text:
                return self.candidate(text, url, stage=stage)
        raise NoCandidate("no contents block on detail page")


URL_PATTERNS: tuple[str, ...] = (
    "/NL/contents/detail.do?viewKey={cn}",
    "/NL/contents/search.do?viewKey={cn}&viewType=AH1&tab=toc",
    "/NL/contents/search.do?viewKey={cn}&viewType=AH2",
    "/NL/contents/search.do?viewKey={cn}&viewType=AH3",
    "/NL/contents/detail.do?viewKey={cn}&section=toc",
    "/library/detail/{cn}",
    "/book/detail/{cn}",
    "/contents/{cn}/toc",
    "/search/detail?cn={cn}",
    "/detail?viewKey={cn}&type=toc",
)


class UrlPatternsStrategy(BaseStrategy):
    """Scan guessed detail-page URLs for a labelled contents block."""

    name = "url_patterns"
    requires = ("control_no",)

    def __init__(self, *args, patterns: tuple[str, ...] = URL_PATTERNS, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.patterns = patterns

    async def _extract(self, target: BookTarget) -> Candidate:
        cn = quote(target.control_no or "")
        urls = [self.base_url + pattern.format(cn=cn) for pattern in self.patterns]
        found = await self._try_urls(urls, lambda r: self.first_accepted(labelled_fragments(r.text)))
        if found is None:
            raise NoCandidate(f"none of {len(urls)} URL patterns had contents")
        text, url = found
        return self.candidate(text, url)
