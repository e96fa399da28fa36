"""
Pattern Miner - learning from recorded outcomes.

Mines success patterns and anti-patterns from the ledger, keeps their
confidence calibrated against new evidence, and evolves the versioned
strategy profile the decision engine reads.
"""
from .service import PatternMiner
from .models import (
    AntiPattern,
    ConditionOperator,
    Enhancement,
    LearningCycleResult,
    Pattern,
    PatternCondition,
    StrategyProfile,
)
from .rules import (
    confidence_band,
    evaluate_condition,
    match_score,
    matches,
    recommendation_factors,
)

__all__ = [
    "PatternMiner",
    "AntiPattern",
    "ConditionOperator",
    "Enhancement",
    "LearningCycleResult",
    "Pattern",
    "PatternCondition",
    "StrategyProfile",
    "confidence_band",
    "evaluate_condition",
    "match_score",
    "matches",
    "recommendation_factors",
]
