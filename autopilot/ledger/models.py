"""
Data models for the recommendation ledger.

A Recommendation is created exactly once per decision and is immutable
afterwards. Its Outcome is recorded later, keyed by the recommendation
id, so a recommendation has at most one outcome.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal


RecommendationKind = Literal["lineup", "waiver", "trade", "draft"]
RECOMMENDATION_KINDS = ("lineup", "waiver", "trade", "draft")


@dataclass
class RecommendationDraft:
    """A recommendation before the ledger assigns its id and timestamp."""
    kind: RecommendationKind
    period: int
    league_id: str
    team_id: str
    payload: dict[str, Any]
    confidence: float  # 0-100
    advisor_used: bool = False
    advisor_identity: str | None = None
    cost_estimate: float = 0.0
    data_sources: set[str] = field(default_factory=set)
    # Situational factors the pattern miner groups on
    context: dict[str, Any] = field(default_factory=dict)
    experiment_id: str | None = None
    variant: str | None = None


@dataclass
class Recommendation:
    """A tracked decision output awaiting a real-world result."""
    id: str
    created_at: str  # ISO 8601, UTC
    kind: RecommendationKind
    period: int
    league_id: str
    team_id: str
    payload: dict[str, Any]
    confidence: float
    advisor_used: bool = False
    advisor_identity: str | None = None
    cost_estimate: float = 0.0
    data_sources: set[str] = field(default_factory=set)
    context: dict[str, Any] = field(default_factory=dict)
    experiment_id: str | None = None
    variant: str | None = None

    @classmethod
    def from_draft(cls, draft: RecommendationDraft, rec_id: str, created_at: str) -> "Recommendation":
        return cls(
            id=rec_id,
            created_at=created_at,
            kind=draft.kind,
            period=draft.period,
            league_id=draft.league_id,
            team_id=draft.team_id,
            payload=dict(draft.payload),
            confidence=draft.confidence,
            advisor_used=draft.advisor_used,
            advisor_identity=draft.advisor_identity,
            cost_estimate=draft.cost_estimate,
            data_sources=set(draft.data_sources),
            context=dict(draft.context),
            experiment_id=draft.experiment_id,
            variant=draft.variant,
        )

    @property
    def created_datetime(self) -> datetime:
        return datetime.fromisoformat(self.created_at)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "created_at": self.created_at,
            "kind": self.kind,
            "period": self.period,
            "league_id": self.league_id,
            "team_id": self.team_id,
            "payload": self.payload,
            "confidence": self.confidence,
            "advisor_used": self.advisor_used,
            "advisor_identity": self.advisor_identity,
            "cost_estimate": self.cost_estimate,
            "data_sources": sorted(self.data_sources),
            "context": self.context,
            "experiment_id": self.experiment_id,
            "variant": self.variant,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Recommendation":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            created_at=data["created_at"],
            kind=data["kind"],
            period=int(data["period"]),
            league_id=data["league_id"],
            team_id=data["team_id"],
            payload=data.get("payload", {}),
            confidence=float(data["confidence"]),
            advisor_used=data.get("advisor_used", False),
            advisor_identity=data.get("advisor_identity"),
            cost_estimate=float(data.get("cost_estimate", 0.0)),
            data_sources=set(data.get("data_sources", [])),
            context=data.get("context", {}),
            experiment_id=data.get("experiment_id"),
            variant=data.get("variant"),
        )


@dataclass
class Outcome:
    """The recorded real-world result of a recommendation."""
    recommendation_id: str
    success: bool
    actual_value: float
    projected_value: float
    per_subject_breakdown: dict[str, float] = field(default_factory=dict)
    notes: str = ""
    recorded_at: str | None = None

    @property
    def accuracy(self) -> float | None:
        """actual / projected as a percentage; undefined without a projection."""
        if not self.projected_value:
            return None
        return self.actual_value / self.projected_value * 100

    @property
    def improvement(self) -> float:
        """Points gained over the projection."""
        return self.actual_value - self.projected_value

    def to_dict(self) -> dict:
        return {
            "recommendation_id": self.recommendation_id,
            "success": self.success,
            "actual_value": self.actual_value,
            "projected_value": self.projected_value,
            "accuracy": self.accuracy,
            "per_subject_breakdown": self.per_subject_breakdown,
            "notes": self.notes,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Outcome":
        return cls(
            recommendation_id=data["recommendation_id"],
            success=bool(data["success"]),
            actual_value=float(data["actual_value"]),
            projected_value=float(data["projected_value"]),
            per_subject_breakdown=data.get("per_subject_breakdown", {}),
            notes=data.get("notes", ""),
            recorded_at=data.get("recorded_at"),
        )


@dataclass
class LedgerEntry:
    """A recommendation joined with its outcome, if any."""
    recommendation: Recommendation
    outcome: Outcome | None = None

    @property
    def pending(self) -> bool:
        return self.outcome is None

    @property
    def success(self) -> bool:
        return self.outcome is not None and self.outcome.success

    @property
    def improvement(self) -> float | None:
        return self.outcome.improvement if self.outcome else None


@dataclass
class GroupBreakdown:
    """Aggregate statistics for one slice of the ledger."""
    count: int = 0
    with_outcomes: int = 0
    success_rate: float = 0.0  # percent
    average_accuracy: float = 0.0
    total_points: float = 0.0

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "with_outcomes": self.with_outcomes,
            "success_rate": round(self.success_rate, 2),
            "average_accuracy": round(self.average_accuracy, 2),
            "total_points": round(self.total_points, 2),
        }


@dataclass
class PerformanceMetrics:
    """Ledger-wide performance over a filtered population."""
    total_recommendations: int = 0
    with_outcomes: int = 0
    success_rate: float = 0.0  # percent of recommendations with outcomes
    average_accuracy: float = 0.0  # percent, over defined accuracies only
    average_confidence: float = 0.0
    total_cost: float = 0.0
    cost_per_recommendation: float = 0.0
    by_kind: dict[str, GroupBreakdown] = field(default_factory=dict)
    by_period: dict[int, GroupBreakdown] = field(default_factory=dict)
    advisor_vs_basic: dict[str, GroupBreakdown] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total_recommendations": self.total_recommendations,
            "with_outcomes": self.with_outcomes,
            "success_rate": round(self.success_rate, 2),
            "average_accuracy": round(self.average_accuracy, 2),
            "average_confidence": round(self.average_confidence, 2),
            "total_cost": round(self.total_cost, 4),
            "cost_per_recommendation": round(self.cost_per_recommendation, 4),
            "by_kind": {k: v.to_dict() for k, v in self.by_kind.items()},
            "by_period": {str(k): v.to_dict() for k, v in self.by_period.items()},
            "advisor_vs_basic": {k: v.to_dict() for k, v in self.advisor_vs_basic.items()},
        }


@dataclass
class StrategyComparison:
    """Advisor-assisted vs basic recommendations for one league and period."""
    period: int
    league_id: str
    advisor_average: float
    basic_average: float
    advisor_count: int
    basic_count: int
    improvement_pct: float
    cost_benefit: float  # points gained per unit of advisor cost
    advisor_cost: float = 0.0

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "league_id": self.league_id,
            "advisor_average": round(self.advisor_average, 2),
            "basic_average": round(self.basic_average, 2),
            "advisor_count": self.advisor_count,
            "basic_count": self.basic_count,
            "improvement_pct": round(self.improvement_pct, 2),
            "cost_benefit": round(self.cost_benefit, 4),
            "advisor_cost": round(self.advisor_cost, 4),
        }


@dataclass
class LearningInsights:
    """Summary lessons drawn from all recorded outcomes."""
    best_kinds: list[str] = field(default_factory=list)
    common_mistakes: list[str] = field(default_factory=list)
    optimal_confidence_range: tuple[float, float] = (0.0, 100.0)
    recommended_data_sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "best_kinds": self.best_kinds,
            "common_mistakes": self.common_mistakes,
            "optimal_confidence_range": list(self.optimal_confidence_range),
            "recommended_data_sources": self.recommended_data_sources,
        }
