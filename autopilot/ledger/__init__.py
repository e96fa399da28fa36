"""
Recommendation Ledger - the durable record of every decision.

Tracks recommendations, links each to at most one outcome and derives
performance metrics from the full outcome set.
"""
from .service import RecommendationLedger
from .models import (
    RECOMMENDATION_KINDS,
    GroupBreakdown,
    LearningInsights,
    LedgerEntry,
    Outcome,
    PerformanceMetrics,
    Recommendation,
    RecommendationDraft,
    StrategyComparison,
)

__all__ = [
    "RecommendationLedger",
    "RECOMMENDATION_KINDS",
    "GroupBreakdown",
    "LearningInsights",
    "LedgerEntry",
    "Outcome",
    "PerformanceMetrics",
    "Recommendation",
    "RecommendationDraft",
    "StrategyComparison",
]
