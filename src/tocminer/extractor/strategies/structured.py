"""
Strategies reading machine-readable data embedded in the detail page.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterator
from urllib.parse import quote

from selectolax.lexbor import LexborHTMLParser

from tocminer.extractor.models import BookTarget, Candidate
from tocminer.extractor.rules import TOC_FIELD_ALIASES, find_in_tree

from .base import BaseStrategy, NoCandidate
from .html import DETAIL_PATH

_INLINE_ASSIGNMENTS = (
    re.compile(r"var\s+bookData\s*=\s*(\{[\s\S]*?\});"),
    re.compile(r"window\.bookInfo\s*=\s*(\{[\s\S]*?\});"),
)


def embedded_json(html: str) -> Iterator[Any]:
    """Yield every decodable JSON document embedded in ``html``."""
    tree = LexborHTMLParser(html)
    raw_blocks: list[str] = []
    for node in tree.css('script[type="application/ld+json"]'):
        raw_blocks.append(node.text())
    for node in tree.css('script[type="application/json"]'):
        if "book" in (node.attributes.get("id") or "").lower():
            raw_blocks.append(node.text())
    for node in tree.css("script"):
        if (node.attributes.get("type") or "text/javascript") != "text/javascript":
            continue
        script = node.text()
        for pattern in _INLINE_ASSIGNMENTS:
            raw_blocks.extend(match.group(1) for match in pattern.finditer(script))

    for raw in raw_blocks:
        try:
            yield json.loads(raw)
        except ValueError:
            continue


class JsonLdStrategy(BaseStrategy):
    """JSON-LD and other structured JSON embedded in the detail page."""

    name = "json_ld"
    requires = ("control_no",)

    async def _extract(self, target: BookTarget) -> Candidate:
        url = self.base_url + DETAIL_PATH.format(cn=quote(target.control_no or ""))
        response = await self._get(url)

        documents = 0
        for document in embedded_json(response.text):
            documents += 1
            text = find_in_tree(document, TOC_FIELD_ALIASES, self.accept)
            if text:
                return self.candidate(text, url)
        if documents == 0:
            raise NoCandidate("no structured data on detail page")
        raise NoCandidate(f"no contents field in {documents} structured document(s)")


# (selector, attribute, required substring or None)
META_SOURCES: tuple[tuple[str, str, str | None], ...] = (
    ('meta[name="toc"]', "content", None),
    ('meta[name="tableOfContents"]', "content", None),
    ('meta[name="contents"]', "content", None),
    ('meta[property="book:contents"]', "content", None),
    ('meta[property="book:content"]', "content", None),
    ('meta[property="book:structure"]', "content", None),
    ('meta[property="book:outline"]', "content", None),
    ("[data-toc]", "data-toc", None),
    ("[data-contents]", "data-contents", None),
    ('meta[name="description"]', "content", "목차"),
    ('meta[property="og:description"]', "content", "목차"),
)


def metadata_values(html: str) -> Iterator[str]:
    tree = LexborHTMLParser(html)
    for selector, attribute, needle in META_SOURCES:
        for node in tree.css(selector):
            value = node.attributes.get(attribute)
            if not value:
                continue
            if needle is not None and needle not in value:
                continue
            yield value


class MetadataStrategy(BaseStrategy):
    """Meta tags, Open Graph descriptions and data-toc attributes."""

    name = "metadata"
    requires = ("control_no",)

    async def _extract(self, target: BookTarget) -> Candidate:
        url = self.base_url + DETAIL_PATH.format(cn=quote(target.control_no or ""))
        response = await self._get(url)
        text = self.first_accepted(metadata_values(response.text))
        if not text:
            raise NoCandidate("no contents in page metadata")
        return self.candidate(text, url)
