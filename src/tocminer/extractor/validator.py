"""
Structural validation of candidate tables of contents.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .rules import DEFAULT_ENGINE, RuleEngine

MIN_LENGTH = 20
MAX_LENGTH = 8000
MIN_LINES = 3
LINE_LENGTH_BAND = (10.0, 60.0)


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Why a candidate was accepted or rejected."""

    accepted: bool
    reason: str
    line_count: int = 0
    avg_line_length: float = 0.0
    strong_patterns: tuple[str, ...] = ()
    blacklist_hit: str | None = None

    def __bool__(self) -> bool:
        return self.accepted


@dataclass(slots=True)
class Validator:
    """
    Accepts text only when it is shaped like a table of contents.

    Order of checks: length bounds, blacklist, line count, strong structural
    patterns, then the line-length band. The band is waived when two or more
    distinct strong patterns are present, since terse outlines ("1장", "2장")
    and verbose numbered sub-sections both fall outside it.
    """

    engine: RuleEngine = field(default_factory=lambda: DEFAULT_ENGINE)
    min_length: int = MIN_LENGTH
    max_length: int = MAX_LENGTH
    min_lines: int = MIN_LINES
    line_length_band: tuple[float, float] = LINE_LENGTH_BAND

    def validate(self, text: str | None) -> bool:
        return self.inspect(text).accepted

    def inspect(self, text: str | None) -> ValidationReport:
        if not text:
            return ValidationReport(False, "empty")

        cleaned = text.strip()
        if len(cleaned) < self.min_length:
            return ValidationReport(False, f"too short ({len(cleaned)} < {self.min_length})")
        if len(cleaned) > self.max_length:
            return ValidationReport(False, f"too long ({len(cleaned)} > {self.max_length})")

        hit = self.engine.first_match(cleaned, "blacklist")
        if hit is not None:
            return ValidationReport(False, f"blacklisted ({hit.name})", blacklist_hit=hit.name)

        lines = [line.strip() for line in cleaned.split("\n") if len(line.strip()) > 2]
        avg = sum(len(line) for line in lines) / len(lines) if lines else 0.0
        if len(lines) < self.min_lines:
            return ValidationReport(False, f"too few lines ({len(lines)})", line_count=len(lines), avg_line_length=avg)

        strong = tuple(rule.name for rule in self.engine.matching(cleaned, "strong"))
        report = dict(line_count=len(lines), avg_line_length=avg, strong_patterns=strong)

        if not strong:
            return ValidationReport(False, "no structural pattern", **report)
        if len(strong) >= 2:
            return ValidationReport(True, "multiple structural patterns", **report)

        low, high = self.line_length_band
        if low <= avg <= high:
            return ValidationReport(True, "structural pattern with plausible line length", **report)
        return ValidationReport(False, f"average line length {avg:.1f} outside {low:g}-{high:g}", **report)


DEFAULT_VALIDATOR = Validator()


def validate(text: str | None) -> bool:
    return DEFAULT_VALIDATOR.validate(text)
