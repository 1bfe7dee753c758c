"""
Exception hierarchy for tocminer.

Individual strategy and provider failures never escape their own boundary;
these types exist so that boundary can tell network trouble from session
trouble, and so callers can opt into exceptions via
``ExtractionResult.raise_for_failure()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from tocminer.extractor.models import ExtractionResult, StrategyAttempt


class TocMinerError(Exception):
    """Base class for all tocminer errors."""


class ConfigError(TocMinerError):
    """Configuration file could not be loaded or validated."""


class FetchError(TocMinerError):
    """Network failure, timeout or unusable HTTP status for a URL."""

    def __init__(self, url: str, reason: str, *, status: int | None = None) -> None:
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"{reason} ({url})")


class SessionError(TocMinerError):
    """The initial session handshake failed."""

    def __init__(self, base_url: str, reason: str) -> None:
        self.base_url = base_url
        self.reason = reason
        super().__init__(f"Session handshake with {base_url} failed: {reason}")


AuthError = SessionError


class AllStrategiesExhausted(TocMinerError):
    """No strategy produced an accepted candidate."""

    def __init__(self, attempts: Sequence[StrategyAttempt]) -> None:
        self.attempts = tuple(attempts)
        self.reasons = [f"{a.method}: {a.reason or a.outcome}" for a in self.attempts]
        super().__init__("All extraction strategies failed: " + "; ".join(self.reasons))


def failure_summary(title: str, result: ExtractionResult) -> str:
    """Render a "could not find X, here is what was tried" message."""
    lines = [f'No table of contents found for "{title}".']

    if result.attempts:
        lines.append("")
        lines.append("Tried:")
        for index, attempt in enumerate(result.attempts, start=1):
            detail = attempt.reason or attempt.outcome
            lines.append(f"  {index}. {attempt.method} ({attempt.outcome}, {attempt.elapsed_ms} ms): {detail}")
    elif result.error:
        lines.append(f"Reason: {result.error}")

    lines.append("")
    lines.append(f"Total time: {result.response_time_ms} ms")
    return "\n".join(lines)
