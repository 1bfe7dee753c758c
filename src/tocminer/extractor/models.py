"""
Data models for table-of-contents extraction.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from tocminer.errors import AllStrategiesExhausted

AttemptOutcome = Literal["accepted", "rejected", "no_candidate", "error", "timeout"]

ACCEPTED: AttemptOutcome = "accepted"
REJECTED: AttemptOutcome = "rejected"
NO_CANDIDATE: AttemptOutcome = "no_candidate"
ERROR: AttemptOutcome = "error"
TIMEOUT: AttemptOutcome = "timeout"

_ISBN_CHARS = re.compile(r"[^0-9Xx]")
# Spacing and decorative punctuation only; symbols such as + and # tell titles apart.
_TITLE_NOISE = re.compile(r"[\s.,:;!?'\"“”‘’()\[\]{}<>《》〈〉「」『』·~_-]+")


@dataclass(slots=True, frozen=True)
class BookTarget:
    """The identifier a lookup starts from. Any subset of fields may be known."""

    title: str = ""
    author: str | None = None
    isbn: str | None = None
    control_no: str | None = None
    publisher: str | None = None

    @property
    def normalized_isbn(self) -> str | None:
        if not self.isbn:
            return None
        digits = _ISBN_CHARS.sub("", self.isbn).upper()
        return digits or None

    @property
    def label(self) -> str:
        return self.title or self.normalized_isbn or self.control_no or "<unknown>"

    def cache_key(self) -> str:
        """Stable key: ISBN when present, else a normalized title."""
        isbn = self.normalized_isbn
        if isbn:
            return f"isbn:{isbn}"
        return "title:" + _TITLE_NOISE.sub("", unicodedata.normalize("NFKC", self.title).casefold())


@dataclass(slots=True, frozen=True)
class Candidate:
    """Unvalidated text produced by one strategy attempt."""

    text: str
    source_method: str
    raw_metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class StrategyAttempt:
    """One step of the ordered cascade, kept for diagnostics."""

    method: str
    outcome: AttemptOutcome
    reason: str | None = None
    confidence: float = 0.0
    elapsed_ms: int = 0


@dataclass(slots=True, frozen=True)
class ExtractionResult:
    """Result of an extraction call."""

    success: bool
    method: str
    confidence: float
    response_time_ms: int
    content: str | None = None
    error: str | None = None
    source: str | None = None
    attempts: tuple[StrategyAttempt, ...] = ()
    # Method key the confidence was computed under; differs from ``method`` for plain-text API answers.
    scored_as: str | None = None

    def __post_init__(self) -> None:
        """Validate the result."""
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError("Confidence must be between 0.0 and 1.0")
        if self.success and not self.content:
            raise ValueError("A successful result must carry content")

    @classmethod
    def all_failed(cls, attempts: tuple[StrategyAttempt, ...], response_time_ms: int) -> ExtractionResult:
        reasons = "; ".join(f"{a.method}: {a.reason or a.outcome}" for a in attempts)
        return cls(
            success=False,
            method="all-failed",
            confidence=0.0,
            response_time_ms=response_time_ms,
            error=f"All extraction strategies failed ({reasons})" if reasons else "No extraction strategies ran",
            attempts=attempts,
        )

    @property
    def failure_reasons(self) -> list[str]:
        return [f"{a.method}: {a.reason or a.outcome}" for a in self.attempts if a.outcome != ACCEPTED]

    def raise_for_failure(self) -> ExtractionResult:
        """Return self on success; raise AllStrategiesExhausted otherwise."""
        if not self.success:
            raise AllStrategiesExhausted(self.attempts)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "content": self.content,
            "method": self.method,
            "confidence": self.confidence,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
            "source": self.source,
            "scored_as": self.scored_as,
            "attempts": [
                {
                    "method": a.method,
                    "outcome": a.outcome,
                    "reason": a.reason,
                    "confidence": a.confidence,
                    "elapsed_ms": a.elapsed_ms,
                }
                for a in self.attempts
            ],
        }
