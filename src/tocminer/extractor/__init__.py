"""
Table-of-contents extraction: models, validation, scoring and the ordered
strategy cascade.
"""

from .confidence_scorer import METHOD_WEIGHTS, ConfidenceScorer, ScoreBreakdown, ScoringConfig
from .models import BookTarget, Candidate, ExtractionResult, StrategyAttempt
from .orchestrator import ExtractionOrchestrator
from .protocols import AttemptReport, Extractor
from .registry import STRATEGY_CLASSES, StrategyRegistry
from .validator import ValidationReport, Validator, validate

__all__ = [
    "AttemptReport",
    "BookTarget",
    "Candidate",
    "ConfidenceScorer",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "Extractor",
    "METHOD_WEIGHTS",
    "STRATEGY_CLASSES",
    "ScoreBreakdown",
    "ScoringConfig",
    "StrategyAttempt",
    "StrategyRegistry",
    "ValidationReport",
    "Validator",
    "validate",
]
