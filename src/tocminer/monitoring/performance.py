"""
Running statistics over extraction attempts.

Every strategy and provider attempt is recorded with its method name,
outcome, confidence and latency. The monitor keeps overall totals,
per-method breakdowns, a confidence distribution and a bounded buffer of
recent outcomes, and derives a best-method recommendation from them.
Snapshots are pydantic models serialized to JSON bytes so they survive a
restart through ``save``/``load``.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional

import structlog
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, ValidationError

from tocminer.utils.atomic import atomic_write_bytes

logger = structlog.get_logger(__name__)

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5
MIN_ATTEMPTS_FOR_BEST = 3
STALE_AFTER = timedelta(hours=24)
DEFAULT_RECENT_LIMIT = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MethodStatistics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    attempts: int = 0
    successes: int = 0
    # Means over successful attempts only.
    avg_response_time_ms: float = 0.0
    avg_confidence: float = 0.0
    last_used: AwareDatetime


class ConfidenceDistribution(BaseModel):
    model_config = ConfigDict(extra="forbid")

    high: int = 0
    medium: int = 0
    low: int = 0

    @property
    def total(self) -> int:
        return self.high + self.medium + self.low


class RecentResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timestamp: AwareDatetime
    label: Optional[str] = None
    method: str
    success: bool
    confidence: float
    response_time_ms: int


class PerformanceMetrics(BaseModel):
    """A point-in-time copy of everything the monitor tracks."""

    model_config = ConfigDict(extra="forbid")

    total_attempts: int = Field(default=0, ge=0)
    total_successes: int = Field(default=0, ge=0)
    total_response_time_ms: int = Field(default=0, ge=0)
    method_breakdown: Dict[str, MethodStatistics] = Field(default_factory=dict)
    confidence_distribution: ConfidenceDistribution = Field(default_factory=ConfidenceDistribution)
    recent_results: List[RecentResult] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MethodRate:
    method: str
    success_rate: float
    attempts: int
    avg_response_time_ms: float
    avg_confidence: float
    last_used: datetime

    @property
    def composite_score(self) -> float:
        return 0.7 * self.success_rate + 0.3 * self.avg_confidence


class PerformanceMonitor:
    """Thread-safe recorder of extraction outcomes."""

    def __init__(self, recent_limit: int = DEFAULT_RECENT_LIMIT, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.recent_limit = recent_limit
        self._clock = clock
        self._lock = threading.Lock()
        self._reset_locked()

    def _reset_locked(self) -> None:
        self._total_attempts = 0
        self._total_successes = 0
        self._total_response_time_ms = 0
        self._methods: Dict[str, MethodStatistics] = {}
        self._distribution = ConfidenceDistribution()
        self._recent: Deque[RecentResult] = deque(maxlen=self.recent_limit)

    def record(
        self,
        method: str,
        success: bool,
        confidence: float,
        response_time_ms: int,
        label: Optional[str] = None,
    ) -> None:
        now = self._clock()
        with self._lock:
            self._total_attempts += 1
            self._total_response_time_ms += response_time_ms

            stats = self._methods.get(method)
            if stats is None:
                stats = self._methods[method] = MethodStatistics(last_used=now)
            stats.attempts += 1
            stats.last_used = now

            if success:
                self._total_successes += 1
                stats.successes += 1
                n = stats.successes
                stats.avg_response_time_ms += (response_time_ms - stats.avg_response_time_ms) / n
                stats.avg_confidence += (confidence - stats.avg_confidence) / n
                if confidence >= HIGH_CONFIDENCE:
                    self._distribution.high += 1
                elif confidence >= MEDIUM_CONFIDENCE:
                    self._distribution.medium += 1
                else:
                    self._distribution.low += 1

            self._recent.append(
                RecentResult(
                    timestamp=now,
                    label=label,
                    method=method,
                    success=success,
                    confidence=confidence,
                    response_time_ms=response_time_ms,
                )
            )

    # --- views ---

    def success_rate(self) -> float:
        with self._lock:
            return self._total_successes / self._total_attempts if self._total_attempts else 0.0

    def average_response_time(self) -> float:
        with self._lock:
            return self._total_response_time_ms / self._total_attempts if self._total_attempts else 0.0

    def method_success_rates(self) -> List[MethodRate]:
        """Per-method rates, highest success rate first."""
        with self._lock:
            rates = [
                MethodRate(
                    method=method,
                    success_rate=stats.successes / stats.attempts if stats.attempts else 0.0,
                    attempts=stats.attempts,
                    avg_response_time_ms=stats.avg_response_time_ms,
                    avg_confidence=stats.avg_confidence,
                    last_used=stats.last_used,
                )
                for method, stats in self._methods.items()
            ]
        return sorted(rates, key=lambda r: r.success_rate, reverse=True)

    def best_method(self) -> Optional[str]:
        """The method with the best composite score among those tried at least three times."""
        eligible = [r for r in self.method_success_rates() if r.attempts >= MIN_ATTEMPTS_FOR_BEST]
        if not eligible:
            return None
        return max(eligible, key=lambda r: r.composite_score).method

    def get_statistics(self) -> PerformanceMetrics:
        with self._lock:
            return PerformanceMetrics(
                total_attempts=self._total_attempts,
                total_successes=self._total_successes,
                total_response_time_ms=self._total_response_time_ms,
                method_breakdown={name: stats.model_copy() for name, stats in self._methods.items()},
                confidence_distribution=self._distribution.model_copy(),
                recent_results=list(self._recent),
            )

    def recommendations(self) -> List[str]:
        advice: List[str] = []
        success_rate = self.success_rate()
        avg_ms = self.average_response_time()
        rates = self.method_success_rates()

        if success_rate < 0.5:
            advice.append("Overall success rate is below 50%. Check the API key and network connectivity.")
        elif success_rate < 0.7:
            advice.append("Consider enabling more extraction strategies to raise the success rate.")

        if avg_ms > 10_000:
            advice.append("Average response time exceeds 10 seconds. Check network conditions.")
        elif avg_ms > 5_000:
            advice.append("Move faster strategies earlier in the order to cut response time.")

        if rates:
            top = rates[0]
            if top.success_rate > 0.8:
                advice.append(f"{top.method} succeeds {top.success_rate:.1%} of the time. Prefer it.")
            now = self._clock()
            recent = [r for r in rates if now - r.last_used < STALE_AFTER]
            if len(recent) < len(rates) / 2:
                advice.append("Several strategies have not run in the last 24 hours. Check the configuration.")

        with self._lock:
            distribution = self._distribution.model_copy()
        if distribution.total and distribution.high / distribution.total < 0.3:
            advice.append("Few results reach high confidence. More precise strategies may be needed.")

        if not advice:
            advice.append("Extraction is operating normally.")
        return advice

    def generate_report(self) -> str:
        stats = self.get_statistics()
        rates = self.method_success_rates()
        best = self.best_method()

        lines = ["Table of contents extraction report", "=" * 50, ""]
        lines += [
            "Overall:",
            f"  attempts:          {stats.total_attempts}",
            f"  successes:         {stats.total_successes}",
            f"  success rate:      {self.success_rate():.1%}",
            f"  avg response time: {self.average_response_time():.0f}ms",
            "",
        ]

        dist = stats.confidence_distribution
        if dist.total:
            lines += [
                "Confidence:",
                f"  high (>=80%):   {dist.high} ({dist.high / dist.total:.1%})",
                f"  medium (50-80%): {dist.medium} ({dist.medium / dist.total:.1%})",
                f"  low (<50%):     {dist.low} ({dist.low / dist.total:.1%})",
                "",
            ]

        if rates:
            lines.append("By method:")
            for rank, rate in enumerate(rates, 1):
                lines += [
                    f"  {rank}. {rate.method}: {rate.success_rate:.1%} of {rate.attempts} attempts",
                    f"     avg response {rate.avg_response_time_ms:.0f}ms, avg confidence {rate.avg_confidence:.1%}",
                    f"     last used {rate.last_used.isoformat(timespec='seconds')}",
                ]
            lines.append("")

        if best:
            lines += [f"Recommended method: {best}", ""]

        if stats.recent_results:
            lines.append("Recent results (latest 5):")
            for result in reversed(stats.recent_results[-5:]):
                status = "ok" if result.success else "failed"
                lines.append(
                    f"  [{status}] {result.label or '-'} ({result.method}) "
                    f"confidence {result.confidence:.1%}, {result.response_time_ms}ms"
                )
            lines.append("")

        lines.append("Recommendations:")
        lines += [f"  {i}. {text}" for i, text in enumerate(self.recommendations(), 1)]
        return "\n".join(lines)

    # --- persistence ---

    def export_snapshot(self) -> bytes:
        return self.get_statistics().model_dump_json(indent=2).encode("utf-8")

    def import_snapshot(self, data: bytes) -> bool:
        """Replace the current state with ``data``; ``False`` leaves it untouched."""
        try:
            snapshot = PerformanceMetrics.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Rejected performance snapshot", errors=e.error_count())
            return False

        with self._lock:
            self._total_attempts = snapshot.total_attempts
            self._total_successes = snapshot.total_successes
            self._total_response_time_ms = snapshot.total_response_time_ms
            self._methods = dict(snapshot.method_breakdown)
            self._distribution = snapshot.confidence_distribution
            self._recent = deque(snapshot.recent_results, maxlen=self.recent_limit)
        logger.info("Imported performance snapshot", attempts=snapshot.total_attempts)
        return True

    def save(self, path: Path) -> None:
        atomic_write_bytes(Path(path), self.export_snapshot())

    def load(self, path: Path) -> bool:
        path = Path(path)
        if not path.exists():
            return False
        return self.import_snapshot(path.read_bytes())

    def reset(self) -> None:
        with self._lock:
            self._reset_locked()
