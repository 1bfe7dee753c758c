"""
Extraction Confidence Scorer

Places results from different extraction methods on a common [0, 1] scale
using structural signal strength, method reliability and length.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

from .rules import DEFAULT_ENGINE, RuleEngine

# Empirical reliability of each extraction method. Methods parsing
# machine-readable data sit above methods scraping loosely matched markup.
METHOD_WEIGHTS: Mapping[str, float] = {
    "json_ld": 0.30,
    "targeted_html": 0.30,
    "direct_api": 0.25,
    "metadata": 0.20,
    "session_toc_url": 0.20,
    "direct_api_text": 0.15,
    "session_txt": 0.15,
    "url_patterns": 0.10,
    "kyobo": 0.10,
    "aladin": 0.10,
    "yes24": 0.10,
    "search_results": 0.05,
}


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    base: float = 0.4
    # (minimum non-empty lines, bonus), checked largest first
    line_buckets: tuple[tuple[int, float], ...] = ((15, 0.25), (8, 0.15), (5, 0.10))
    pattern_increment: float = 0.08
    avg_line_band: tuple[float, float] = (15.0, 40.0)
    avg_line_bonus: float = 0.1
    # exclusive bounds
    length_window: tuple[int, int] = (500, 2000)
    length_bonus: float = 0.1
    short_threshold: int = 100
    short_penalty: float = 0.1


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    base: float
    line_bonus: float
    pattern_bonus: float
    method_weight: float
    shape_bonus: float
    length_adjustment: float
    patterns: tuple[str, ...] = ()

    @property
    def raw(self) -> float:
        return (
            self.base
            + self.line_bonus
            + self.pattern_bonus
            + self.method_weight
            + self.shape_bonus
            + self.length_adjustment
        )

    @property
    def total(self) -> float:
        return max(0.0, min(1.0, self.raw))


@dataclass(slots=True)
class ConfidenceScorer:
    """Score a validated table of contents for a given extraction method."""

    config: ScoringConfig = field(default_factory=ScoringConfig)
    method_weights: Mapping[str, float] = field(default_factory=lambda: dict(METHOD_WEIGHTS))
    engine: RuleEngine = field(default_factory=lambda: DEFAULT_ENGINE)

    def score(self, text: str, method: str) -> float:
        return self.breakdown(text, method).total

    def breakdown(self, text: str, method: str) -> ScoreBreakdown:
        cfg = self.config
        lines = [line.strip() for line in text.split("\n") if line.strip()]

        line_bonus = 0.0
        for minimum, bonus in cfg.line_buckets:
            if len(lines) >= minimum:
                line_bonus = bonus
                break

        scoring_rules = self.engine.rules("scoring")
        matched = tuple(rule.name for rule in scoring_rules if rule.matches("\n".join(lines)))
        pattern_bonus = min(len(matched), len(scoring_rules)) * cfg.pattern_increment

        shape_bonus = 0.0
        if lines:
            avg = sum(len(line) for line in lines) / len(lines)
            low, high = cfg.avg_line_band
            if low <= avg <= high:
                shape_bonus = cfg.avg_line_bonus

        length_adjustment = 0.0
        lower, upper = cfg.length_window
        if lower < len(text) < upper:
            length_adjustment += cfg.length_bonus
        if len(text) < cfg.short_threshold:
            length_adjustment -= cfg.short_penalty

        return ScoreBreakdown(
            base=cfg.base,
            line_bonus=line_bonus,
            pattern_bonus=pattern_bonus,
            method_weight=self.method_weights.get(method, 0.0),
            shape_bonus=shape_bonus,
            length_adjustment=length_adjustment,
            patterns=matched,
        )

    def describe(self, text: str, method: str) -> Dict[str, float]:
        b = self.breakdown(text, method)
        return {
            "base": b.base,
            "line_bonus": b.line_bonus,
            "pattern_bonus": b.pattern_bonus,
            "method_weight": b.method_weight,
            "shape_bonus": b.shape_bonus,
            "length_adjustment": b.length_adjustment,
            "total": b.total,
        }
