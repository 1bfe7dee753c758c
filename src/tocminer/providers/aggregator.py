"""
Parallel multi-provider scraping with a TTL result cache.

A lookup first consults the cache. On a miss every provider runs
concurrently, each under its own timeout, and all of them settle before
ranking: individual failures are dropped, results shorter than the length
floor or rejected by the validator are dropped, and the remainder is ranked
by confidence (ties go to the provider listed first). The winner is cached.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

import structlog

from tocminer.config.config import AggregatorConfig
from tocminer.extractor.confidence_scorer import ConfidenceScorer
from tocminer.extractor.models import ACCEPTED, ERROR, NO_CANDIDATE, REJECTED, TIMEOUT, BookTarget, ExtractionResult
from tocminer.extractor.protocols import AttemptReport, Extractor, ReportingExtractor
from tocminer.extractor.validator import DEFAULT_VALIDATOR, Validator
from tocminer.observability.metrics import METRICS

from .cache import TTLCache

if TYPE_CHECKING:
    from tocminer.monitoring.performance import PerformanceMonitor

logger = structlog.get_logger(__name__)

CACHE_METHOD = "cache"


class MultiSourceAggregator:
    """Runs bookstore providers side by side and keeps the best answer."""

    def __init__(
        self,
        providers: Sequence[Extractor],
        cache: Optional[TTLCache[ExtractionResult]] = None,
        config: Optional[AggregatorConfig] = None,
        *,
        validator: Optional[Validator] = None,
        scorer: Optional[ConfidenceScorer] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        self.providers = tuple(providers)
        self.config = config if config is not None else AggregatorConfig()
        # TTLCache defines __len__, so an empty injected cache is falsy.
        self.cache: TTLCache[ExtractionResult] = (
            cache if cache is not None else TTLCache(self.config.cache_ttl_seconds)
        )
        self.validator = validator if validator is not None else DEFAULT_VALIDATOR
        self.scorer = scorer if scorer is not None else ConfidenceScorer()
        self.monitor = monitor
        self._inflight: Dict[str, asyncio.Task[Optional[ExtractionResult]]] = {}
        self.logger = logger.bind(component="MultiSourceAggregator")

    async def scrape(self, target: BookTarget) -> Optional[ExtractionResult]:
        """Return the cached or freshly ranked best provider result, or ``None``."""
        start = time.monotonic()
        key = target.cache_key()

        cached = self.cache.get(key)
        if cached is not None:
            METRICS["cache_lookups"].labels(outcome="hit").inc()
            self.logger.info("Cache hit", key=key, provider=cached.method)
            return dataclasses.replace(
                cached,
                method=CACHE_METHOD,
                confidence=1.0,
                response_time_ms=int((time.monotonic() - start) * 1000),
            )
        METRICS["cache_lookups"].labels(outcome="miss").inc()

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._scrape_and_cache(key, target))
            self._inflight[key] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        else:
            self.logger.debug("Joining in-flight lookup", key=key)
        # Shield so one cancelled caller does not cancel the lookup for the others.
        return await asyncio.shield(task)

    async def scrape_all(self, target: BookTarget) -> List[ExtractionResult]:
        """Every acceptable provider result, best first. Nothing is cached."""
        return await self._run_providers(target)

    async def _scrape_and_cache(self, key: str, target: BookTarget) -> Optional[ExtractionResult]:
        ranked = await self._run_providers(target)
        if not ranked:
            self.logger.info("No provider produced a usable result", target=target.label)
            return None
        winner = ranked[0]
        await self.cache.set(key, winner)
        self.logger.info(
            "Selected provider result",
            target=target.label,
            provider=winner.method,
            confidence=round(winner.confidence, 3),
            candidates=len(ranked),
        )
        return winner

    async def _run_providers(self, target: BookTarget) -> List[ExtractionResult]:
        reports = await asyncio.gather(
            *(self._run_one(provider, target) for provider in self.providers),
            return_exceptions=True,
        )

        results: List[ExtractionResult] = []
        for provider, report in zip(self.providers, reports):
            if isinstance(report, BaseException):
                # _run_one already maps failures; anything here is a bug in a provider.
                self.logger.error("Provider crashed", provider=provider.name, error=repr(report))
                self._record(provider.name, ERROR, 0.0, 0, target)
                continue
            result = self._evaluate(provider.name, report, target)
            if result is not None:
                results.append(result)

        # sorted() is stable, so equal confidences keep provider order.
        return sorted(results, key=lambda r: r.confidence, reverse=True)

    async def _run_one(self, provider: Extractor, target: BookTarget) -> AttemptReport:
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        timeout = self.config.provider_timeout
        try:
            async with asyncio.timeout(timeout):
                if isinstance(provider, ReportingExtractor):
                    return await provider.run(target)
                candidate = await provider.attempt(target)
        except TimeoutError:
            return AttemptReport(None, TIMEOUT, elapsed(), f"timed out after {timeout:g}s")
        except Exception as e:
            self.logger.exception("Provider raised", provider=provider.name)
            return AttemptReport(None, ERROR, elapsed(), f"{type(e).__name__}: {e}")
        if candidate is None:
            return AttemptReport(None, NO_CANDIDATE, elapsed(), "no candidate")
        return AttemptReport(candidate, ACCEPTED, elapsed())

    def _evaluate(self, name: str, report: AttemptReport, target: BookTarget) -> Optional[ExtractionResult]:
        candidate = report.candidate
        if candidate is None:
            self.logger.debug("Provider produced nothing", provider=name, outcome=report.outcome, reason=report.reason)
            self._record(name, report.outcome, 0.0, report.elapsed_ms, target)
            return None

        text = candidate.text.strip()
        if len(text) < self.config.min_content_length:
            self.logger.info("Provider result too short", provider=name, length=len(text))
            self._record(name, REJECTED, 0.0, report.elapsed_ms, target)
            return None
        verdict = self.validator.inspect(text)
        if not verdict.accepted:
            self.logger.info("Provider result rejected", provider=name, reason=verdict.reason)
            self._record(name, REJECTED, 0.0, report.elapsed_ms, target)
            return None

        confidence = self.scorer.score(text, name)
        self._record(name, ACCEPTED, confidence, report.elapsed_ms, target)
        return ExtractionResult(
            success=True,
            content=text,
            method=name,
            confidence=confidence,
            response_time_ms=report.elapsed_ms,
            source=candidate.raw_metadata.get("source"),
            scored_as=name,
        )

    def _record(self, provider: str, outcome: str, confidence: float, elapsed_ms: int, target: BookTarget) -> None:
        METRICS["provider_results"].labels(provider=provider, outcome=outcome).inc()
        if self.monitor is not None:
            self.monitor.record(provider, outcome == ACCEPTED, confidence, elapsed_ms, label=target.label)
