"""
Protocols for pluggable table-of-contents extraction strategies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .models import AttemptOutcome, BookTarget, Candidate


@dataclass(frozen=True, slots=True)
class AttemptReport:
    """What one strategy produced, how long it took and, if nothing, why."""

    candidate: Candidate | None
    outcome: AttemptOutcome
    elapsed_ms: int
    reason: str | None = None


@runtime_checkable
class Extractor(Protocol):
    """One self-contained method of recovering a table of contents."""

    name: str

    async def attempt(self, target: BookTarget) -> Candidate | None:
        """Try to produce a candidate for ``target``.

        Must never raise: failures are logged and returned as ``None``.
        """
        ...


@runtime_checkable
class ReportingExtractor(Extractor, Protocol):
    """An extractor that can also explain an empty attempt."""

    async def run(self, target: BookTarget) -> AttemptReport:
        ...
