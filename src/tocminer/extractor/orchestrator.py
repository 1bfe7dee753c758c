"""
Ordered fallback over the strategy registry.

For each strategy in priority order: attempt, validate, score. A result at
or above the early-exit threshold is returned immediately. Anything lower is
kept only if it beats the best so far (strict ``>``, so the earlier strategy
wins ties) and the cascade continues. When the registry is exhausted the
best-so-far result is returned, or an ``all-failed`` result that carries the
per-strategy trail.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

import structlog

from tocminer.config.config import ExtractionSettings
from tocminer.observability.metrics import METRICS

from .confidence_scorer import ConfidenceScorer
from .models import (
    ACCEPTED,
    ERROR,
    NO_CANDIDATE,
    REJECTED,
    TIMEOUT,
    BookTarget,
    Candidate,
    ExtractionResult,
    StrategyAttempt,
)
from .protocols import AttemptReport, Extractor, ReportingExtractor
from .registry import StrategyRegistry
from .validator import DEFAULT_VALIDATOR, Validator

if TYPE_CHECKING:
    from tocminer.monitoring.performance import PerformanceMonitor

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class _Best:
    method: str
    candidate: Candidate
    confidence: float


class ExtractionOrchestrator:
    """Drives the registry against one target at a time."""

    def __init__(
        self,
        registry: StrategyRegistry,
        settings: Optional[ExtractionSettings] = None,
        *,
        validator: Optional[Validator] = None,
        scorer: Optional[ConfidenceScorer] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        self.registry = registry
        self.settings = settings if settings is not None else ExtractionSettings()
        self.validator = validator if validator is not None else DEFAULT_VALIDATOR
        self.scorer = scorer if scorer is not None else ConfidenceScorer()
        self.monitor = monitor
        self.logger = logger.bind(component="ExtractionOrchestrator")

    @property
    def threshold(self) -> float:
        return self.settings.early_exit_threshold

    async def _run_one(self, extractor: Extractor, target: BookTarget) -> AttemptReport:
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        timeout = self.settings.strategy_timeout
        try:
            async with asyncio.timeout(timeout):
                if isinstance(extractor, ReportingExtractor):
                    return await extractor.run(target)
                candidate = await extractor.attempt(target)
        except TimeoutError:
            return AttemptReport(None, TIMEOUT, elapsed(), f"timed out after {timeout:g}s")
        except Exception as e:
            # Extractors must not raise; one that does is treated as a failed attempt.
            self.logger.exception("Extractor raised", strategy=extractor.name)
            return AttemptReport(None, ERROR, elapsed(), f"{type(e).__name__}: {e}")

        if candidate is None:
            return AttemptReport(None, NO_CANDIDATE, elapsed(), "no candidate")
        return AttemptReport(candidate, ACCEPTED, elapsed())

    def _record(self, attempt: StrategyAttempt, label: str) -> None:
        METRICS["strategy_attempts"].labels(method=attempt.method, outcome=attempt.outcome).inc()
        METRICS["strategy_duration_seconds"].labels(method=attempt.method).observe(attempt.elapsed_ms / 1000)
        if self.monitor is not None:
            self.monitor.record(
                attempt.method,
                attempt.outcome == ACCEPTED,
                attempt.confidence,
                attempt.elapsed_ms,
                label=label,
            )

    def _success(self, best: _Best, attempts: List[StrategyAttempt], start: float) -> ExtractionResult:
        METRICS["extraction_confidence"].labels(method=best.method).observe(best.confidence)
        return ExtractionResult(
            success=True,
            content=best.candidate.text.strip(),
            method=best.method,
            confidence=best.confidence,
            response_time_ms=int((time.monotonic() - start) * 1000),
            source=best.candidate.raw_metadata.get("source"),
            scored_as=best.candidate.source_method,
            attempts=tuple(attempts),
        )

    async def extract(self, target: BookTarget) -> ExtractionResult:
        """Run the strategies in order and return exactly one result."""
        start = time.monotonic()
        log = self.logger.bind(target=target.label)
        log.info("Starting extraction cascade", strategies=self.registry.names(), threshold=self.threshold)

        self.registry.prepare_run()
        attempts: List[StrategyAttempt] = []
        best: Optional[_Best] = None

        try:
            for extractor in self.registry:
                report = await self._run_one(extractor, target)
                name = extractor.name

                if report.candidate is None:
                    attempt = StrategyAttempt(name, report.outcome, report.reason, 0.0, report.elapsed_ms)
                    attempts.append(attempt)
                    self._record(attempt, target.label)
                    log.debug("Strategy produced nothing", strategy=name, outcome=report.outcome, reason=report.reason)
                    continue

                verdict = self.validator.inspect(report.candidate.text)
                if not verdict.accepted:
                    attempt = StrategyAttempt(name, REJECTED, verdict.reason, 0.0, report.elapsed_ms)
                    attempts.append(attempt)
                    self._record(attempt, target.label)
                    log.info("Candidate rejected", strategy=name, reason=verdict.reason)
                    continue

                confidence = self.scorer.score(report.candidate.text, report.candidate.source_method)
                attempt = StrategyAttempt(name, ACCEPTED, None, confidence, report.elapsed_ms)
                attempts.append(attempt)
                self._record(attempt, target.label)
                log.info("Candidate accepted", strategy=name, confidence=round(confidence, 3))

                current = _Best(name, report.candidate, confidence)
                if confidence >= self.threshold:
                    log.info("Early exit", strategy=name, confidence=round(confidence, 3))
                    return self._success(current, attempts, start)
                if best is None or confidence > best.confidence:
                    best = current

            if best is not None:
                log.info("Returning best result", strategy=best.method, confidence=round(best.confidence, 3))
                return self._success(best, attempts, start)

            log.warning("All strategies failed", reasons=[f"{a.method}: {a.reason or a.outcome}" for a in attempts])
            return ExtractionResult.all_failed(tuple(attempts), int((time.monotonic() - start) * 1000))
        finally:
            METRICS["extraction_duration_seconds"].observe(time.monotonic() - start)
