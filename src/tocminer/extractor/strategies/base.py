"""
Shared plumbing for extraction strategies.

Every strategy subclasses ``BaseStrategy`` and implements ``_extract``.
``run`` owns the boundary: it times the attempt, checks the target has the
fields the strategy needs, and converts every failure into an
``AttemptReport`` with a reason instead of an exception.
"""

from __future__ import annotations

import time
from typing import Any, Callable, ClassVar, Iterable, Mapping, Optional, Sequence

import structlog

from tocminer.config.config import LibraryConfig
from tocminer.errors import FetchError, SessionError
from tocminer.extractor import normalize
from tocminer.extractor.models import ERROR, NO_CANDIDATE, BookTarget, Candidate
from tocminer.extractor.protocols import AttemptReport
from tocminer.extractor.validator import DEFAULT_VALIDATOR, Validator
from tocminer.net.http_client import Fetcher, FetchResponse, require_ok

logger = structlog.get_logger(__name__)

JSON_ACCEPT = {"Accept": "application/json, text/plain, */*"}


class NoCandidate(Exception):
    """Raised inside ``_extract`` when a strategy finishes without usable text."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class BaseStrategy:
    """Common behaviour for strategies that fetch and parse catalogue data."""

    name: ClassVar[str] = "base"
    # BookTarget fields that must be set for the strategy to run at all.
    requires: ClassVar[tuple[str, ...]] = ()
    # Library API key needed.
    needs_api_key: ClassVar[bool] = False

    def __init__(
        self,
        fetcher: Fetcher,
        library: Optional[LibraryConfig] = None,
        validator: Optional[Validator] = None,
    ) -> None:
        self.fetcher = fetcher
        self.library = library if library is not None else LibraryConfig()
        self.validator = validator if validator is not None else DEFAULT_VALIDATOR
        self.logger = logger.bind(component="strategy", strategy=self.name)

    @property
    def base_url(self) -> str:
        return self.library.base_url

    def _missing(self, target: BookTarget) -> list[str]:
        missing = [f for f in self.requires if not getattr(target, f)]
        if self.needs_api_key and not self.library.api_key:
            missing.append("api_key")
        return missing

    async def run(self, target: BookTarget) -> AttemptReport:
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        missing = self._missing(target)
        if missing:
            reason = "requires " + ", ".join(missing)
            self.logger.debug("Strategy skipped", reason=reason)
            return AttemptReport(None, NO_CANDIDATE, elapsed(), reason)

        try:
            candidate = await self._extract(target)
        except NoCandidate as e:
            self.logger.info("No candidate", reason=e.reason, elapsed_ms=elapsed())
            return AttemptReport(None, NO_CANDIDATE, elapsed(), e.reason)
        except (FetchError, SessionError) as e:
            self.logger.warning("Strategy fetch failed", error=str(e), elapsed_ms=elapsed())
            return AttemptReport(None, ERROR, elapsed(), str(e))
        except Exception as e:
            self.logger.exception("Strategy failed unexpectedly", elapsed_ms=elapsed())
            return AttemptReport(None, ERROR, elapsed(), f"{type(e).__name__}: {e}")

        self.logger.info("Candidate found", length=len(candidate.text), elapsed_ms=elapsed())
        return AttemptReport(candidate, "accepted", elapsed())

    async def attempt(self, target: BookTarget) -> Candidate | None:
        return (await self.run(target)).candidate

    async def _extract(self, target: BookTarget) -> Candidate:
        raise NotImplementedError

    # --- helpers ---

    async def _get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchResponse:
        return require_ok(await self.fetcher.fetch(url, headers))

    async def _try_urls(
        self,
        urls: Sequence[str],
        parse: Callable[[FetchResponse], Optional[str]],
        headers: Optional[Mapping[str, str]] = None,
    ) -> tuple[str, str] | None:
        """Fetch ``urls`` in order; return ``(text, url)`` for the first one ``parse`` accepts.

        Per-URL fetch failures are logged and skipped.
        """
        for url in urls:
            try:
                response = await self._get(url, headers)
            except FetchError as e:
                self.logger.debug("URL failed", url=url, error=str(e))
                continue
            text = parse(response)
            if text:
                return text, url
        return None

    def accept(self, raw: Any) -> Optional[str]:
        """Clean ``raw`` and return it if the validator accepts it.

        Tries a light cleanup first, then a line filter that keeps only
        contents-shaped lines, so noisy fragments still get a chance.
        """
        if not isinstance(raw, str) or not raw.strip():
            return None
        for cleaner in (normalize.clean_toc, normalize.parse_toc_lines):
            text = cleaner(raw)
            if self.validator.validate(text):
                return text
        return None

    def first_accepted(self, fragments: Iterable[Any]) -> Optional[str]:
        for fragment in fragments:
            text = self.accept(fragment)
            if text:
                return text
        return None

    def candidate(self, text: str, source: str, *, score_as: Optional[str] = None, **metadata: Any) -> Candidate:
        """Build a candidate; ``score_as`` overrides the method key used for confidence weights."""
        return Candidate(text=text, source_method=score_as or self.name, raw_metadata={"source": source, **metadata})
