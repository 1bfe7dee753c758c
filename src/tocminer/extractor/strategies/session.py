"""
Strategies that need a replayed browser session to reach their content.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional
from urllib.parse import quote

from tocminer.config.config import LibraryConfig
from tocminer.errors import FetchError
from tocminer.extractor.models import BookTarget, Candidate
from tocminer.extractor.rules import TOC_URL_ALIASES, lookup, lookup_list
from tocminer.extractor.validator import Validator
from tocminer.net.http_client import Fetcher
from tocminer.session.context import SessionContext

from .base import BaseStrategy, NoCandidate

ISBN_LOOKUP = "/seoji/SearchApi.do?key={key}&target=isbn&isbn={isbn}"

TXT_ENDPOINTS: tuple[str, ...] = (
    "/NL/contents/contentsFileDownload.do?viewKey={cn}&fileType=txt",
    "/seoji/contents/ContentsTxtDownload.do?CN={cn}",
    "/NL/search/openApi/tocText.do?key={key}&controlNo={cn}",
)

_SECTION_HEADER = re.compile(r"^(?:목차|차례|contents?)$", re.IGNORECASE)
_SHORT_HEADER = re.compile(r"목차|차례")
_ENTRY_START = re.compile(r"^(?:제\s*\d+\s*[장절편부]|들어가는\s*[글말]|나가는\s*글|\d+\s*장\s|\d+[.\s-])")
_SECTION_END = (
    re.compile(r"^(?:서문|머리말|본문|\(1\)|chapter\s*1\b|제\s*1\s*[절항])", re.IGNORECASE),
    re.compile(r"^(?:참고\s*문헌|bibliography|색인|index|부록|appendix)", re.IGNORECASE),
)
_TXT_NOISE = re.compile(r"^(?:page|페이지|\d+|출처|source)$", re.IGNORECASE)

MAX_SECTION_LINES = 100


def decode_text(body: bytes) -> str:
    """Decode a downloaded text file; catalogue exports are UTF-8 or CP949."""
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        return body.decode("cp949", errors="replace")


def extract_txt_section(text: str) -> str:
    """Cut the contents section out of a plain-text export.

    The section starts after a "목차"/"Contents" heading, or at the first
    entry-shaped line within the first 50 lines, and ends at body or
    back-matter markers, or after ``MAX_SECTION_LINES`` lines.
    """
    lines = [line.strip() for line in text.split("\n") if line.strip()]

    start: Optional[int] = None
    for i, line in enumerate(lines):
        if _SECTION_HEADER.match(line) or (_SHORT_HEADER.search(line) and len(line) < 20):
            start = i + 1
            break
    if start is None:
        for i, line in enumerate(lines[:50]):
            if _ENTRY_START.match(line):
                start = i
                break
    if start is None:
        return ""

    end = min(len(lines), start + MAX_SECTION_LINES)
    for i in range(start + 1, end):
        if any(marker.match(lines[i]) for marker in _SECTION_END):
            end = i
            break

    section = [line for line in lines[start:end] if 2 < len(line) < 200 and not _TXT_NOISE.match(line)]
    return "\n".join(section)


class SessionStrategy(BaseStrategy):
    """Base for strategies that go through a ``SessionContext``."""

    def __init__(
        self,
        fetcher: Fetcher,
        library: Optional[LibraryConfig] = None,
        validator: Optional[Validator] = None,
        *,
        session: Optional[SessionContext] = None,
    ) -> None:
        super().__init__(fetcher, library, validator)
        self.session = session if session is not None else SessionContext(fetcher, self.base_url)

    async def _referrer(self, target: BookTarget) -> str:
        """Walk to the detail page when possible so later hops carry a believable referrer."""
        if target.control_no:
            detail = await self.session.navigate_to_detail(target.control_no, target.title)
            return detail.url
        return self.base_url


class SessionTocUrlStrategy(SessionStrategy):
    """Look up the contents URL in ISBN metadata and fetch it through the session."""

    name = "session_toc_url"
    requires = ("isbn",)
    needs_api_key = True

    async def _toc_url(self, isbn: str) -> str:
        url = self.base_url + ISBN_LOOKUP.format(key=quote(self.library.api_key), isbn=quote(isbn))
        response = await self.session.authenticated_request(url)
        try:
            data: Any = response.json()
        except ValueError as e:
            raise NoCandidate("ISBN lookup did not return JSON") from e
        docs = lookup_list(data, ("docs",)) if isinstance(data, Mapping) else []
        if not docs or not isinstance(docs[0], Mapping):
            raise NoCandidate("ISBN lookup returned no records")
        toc_url = lookup(docs[0], TOC_URL_ALIASES)
        if not toc_url:
            raise NoCandidate("record has no contents URL")
        return toc_url.strip()

    async def _extract(self, target: BookTarget) -> Candidate:
        toc_url = await self._toc_url(target.normalized_isbn or "")
        referrer = await self._referrer(target)
        response = await self.session.authenticated_request(toc_url, referrer)

        body = decode_text(response.body)
        text = self.accept(body) or self.accept(extract_txt_section(body))
        if not text:
            raise NoCandidate("contents URL did not hold a valid table of contents")
        return self.candidate(text, toc_url)


class SessionTxtStrategy(SessionStrategy):
    """Plain-text contents downloads, requested with the detail page as referrer."""

    name = "session_txt"
    requires = ("control_no",)

    def _urls(self, control_no: str) -> list[str]:
        urls = []
        for template in TXT_ENDPOINTS:
            if "{key}" in template and not self.library.api_key:
                continue
            urls.append(self.base_url + template.format(key=quote(self.library.api_key), cn=quote(control_no)))
        return urls

    async def _extract(self, target: BookTarget) -> Candidate:
        referrer = await self._referrer(target)
        urls = self._urls(target.control_no or "")
        for url in urls:
            try:
                response = await self.session.authenticated_request(url, referrer)
            except FetchError as e:
                self.logger.debug("TXT download failed", url=url, error=str(e))
                continue
            text = self.accept(extract_txt_section(decode_text(response.body)))
            if text:
                return self.candidate(text, url)
        raise NoCandidate(f"no contents in {len(urls)} text download(s)")
