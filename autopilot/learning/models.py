"""
Data models for pattern learning.

Patterns and anti-patterns share one typed rule representation: an
ordered list of (factor, operator, value, weight) conditions evaluated
by autopilot.learning.rules.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal


PatternStatus = Literal["active", "retired"]
RiskTolerance = Literal["conservative", "balanced", "aggressive"]


class ConditionOperator(str, Enum):
    """Comparison applied between a context factor and a condition value."""
    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    RANGE = "range"


@dataclass
class PatternCondition:
    """One typed rule clause."""
    factor: str
    operator: ConditionOperator
    value: Any
    weight: float = 1.0

    def describe(self) -> str:
        if self.operator == ConditionOperator.RANGE:
            low, high = self.value
            return f"{self.factor} in [{low}, {high}]"
        symbol = {
            ConditionOperator.EQUALS: "=",
            ConditionOperator.GREATER_THAN: ">",
            ConditionOperator.LESS_THAN: "<",
            ConditionOperator.CONTAINS: "contains",
        }[self.operator]
        return f"{self.factor} {symbol} {self.value}"

    def key(self) -> str:
        return f"{self.factor}|{self.operator.value}|{self.value}"

    def to_dict(self) -> dict:
        return {
            "factor": self.factor,
            "operator": self.operator.value,
            "value": self.value,
            "weight": self.weight,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PatternCondition":
        return cls(
            factor=data["factor"],
            operator=ConditionOperator(data["operator"]),
            value=data["value"],
            weight=float(data.get("weight", 1.0)),
        )


def conditions_key(conditions: list[PatternCondition]) -> str:
    """Order-independent identity of a condition set."""
    return "&".join(sorted(c.key() for c in conditions))


@dataclass
class Pattern:
    """
    A recurring condition set correlated with successful outcomes.

    `times_applied` is the cumulative number of resolved recommendations
    merged into `confidence`; it is the weight of the prior in the next
    merge, which keeps confidence an exact running mean over all
    evidence. `evidence_ids` prevents counting a recommendation twice.
    """
    id: str
    name: str
    description: str
    conditions: list[PatternCondition]
    confidence: float  # 0-100
    success_rate: float  # 0.0-1.0
    times_applied: int
    last_updated: str
    supporting_examples: set[str] = field(default_factory=set)
    evidence_ids: set[str] = field(default_factory=set)
    successes: int = 0
    corroborated: bool = False
    status: PatternStatus = "active"
    average_improvement: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def condition_key(self) -> str:
        return conditions_key(self.conditions)

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "conditions": [c.to_dict() for c in self.conditions],
            "confidence": self.confidence,
            "success_rate": self.success_rate,
            "times_applied": self.times_applied,
            "last_updated": self.last_updated,
            "supporting_examples": sorted(self.supporting_examples),
            "evidence_ids": sorted(self.evidence_ids),
            "successes": self.successes,
            "corroborated": self.corroborated,
            "status": self.status,
            "average_improvement": self.average_improvement,
        }

    def to_dict(self) -> dict:
        return self._base_dict()

    @staticmethod
    def _base_kwargs(data: dict) -> dict:
        return {
            "id": data["id"],
            "name": data["name"],
            "description": data.get("description", ""),
            "conditions": [PatternCondition.from_dict(c) for c in data.get("conditions", [])],
            "confidence": float(data["confidence"]),
            "success_rate": float(data.get("success_rate", 0.0)),
            "times_applied": int(data.get("times_applied", 0)),
            "last_updated": data.get("last_updated", ""),
            "supporting_examples": set(data.get("supporting_examples", [])),
            "evidence_ids": set(data.get("evidence_ids", [])),
            "successes": int(data.get("successes", 0)),
            "corroborated": data.get("corroborated", False),
            "status": data.get("status", "active"),
            "average_improvement": float(data.get("average_improvement", 0.0)),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Pattern":
        return cls(**cls._base_kwargs(data))


@dataclass
class AntiPattern(Pattern):
    """
    A recurring condition set correlated with failed outcomes.

    Here `successes` counts confirmations (the predicted failure
    happened) and `cost` is the mean points lost, never negative.
    """
    warning_signs: list[str] = field(default_factory=list)
    avoidance_rules: list[str] = field(default_factory=list)
    failure_rate: float = 0.0
    cost: float = 0.0

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "warning_signs": self.warning_signs,
            "avoidance_rules": self.avoidance_rules,
            "failure_rate": self.failure_rate,
            "cost": self.cost,
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AntiPattern":
        return cls(
            **cls._base_kwargs(data),
            warning_signs=data.get("warning_signs", []),
            avoidance_rules=data.get("avoidance_rules", []),
            failure_rate=float(data.get("failure_rate", 0.0)),
            cost=max(0.0, float(data.get("cost", 0.0))),
        )


DEFAULT_CONFIDENCE_THRESHOLDS = {"low": 60.0, "medium": 75.0, "high": 85.0}
DEFAULT_DECISION_FACTOR_WEIGHTS = {
    "expert_consensus": 0.3,
    "advisor_analysis": 0.4,
    "historical_performance": 0.2,
    "situational_factors": 0.1,
}


@dataclass
class StrategyProfile:
    """
    Decision weights and thresholds governing recommendation generation.

    Profiles are versioned and append-only; the newest version is the
    active one.
    """
    version: int = 0
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    reason: str = "default"
    confidence_thresholds: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_THRESHOLDS)
    )
    risk_tolerance: RiskTolerance = "balanced"
    decision_factor_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_DECISION_FACTOR_WEIGHTS)
    )
    pattern_weights: dict[str, float] = field(default_factory=dict)
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return f"v{self.version:04d}"

    def threshold(self, level: str) -> float:
        return self.confidence_thresholds.get(level, DEFAULT_CONFIDENCE_THRESHOLDS.get(level, 75.0))

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "created_at": self.created_at,
            "reason": self.reason,
            "confidence_thresholds": self.confidence_thresholds,
            "risk_tolerance": self.risk_tolerance,
            "decision_factor_weights": self.decision_factor_weights,
            "pattern_weights": self.pattern_weights,
            "strengths": self.strengths,
            "weaknesses": self.weaknesses,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StrategyProfile":
        return cls(
            version=int(data["version"]),
            created_at=data.get("created_at", ""),
            reason=data.get("reason", ""),
            confidence_thresholds=data.get("confidence_thresholds", dict(DEFAULT_CONFIDENCE_THRESHOLDS)),
            risk_tolerance=data.get("risk_tolerance", "balanced"),
            decision_factor_weights=data.get(
                "decision_factor_weights", dict(DEFAULT_DECISION_FACTOR_WEIGHTS)
            ),
            pattern_weights=data.get("pattern_weights", {}),
            strengths=data.get("strengths", []),
            weaknesses=data.get("weaknesses", []),
        )


@dataclass
class Enhancement:
    """Result of applying learned patterns to a pending decision."""
    original_confidence: float  # 0.0-1.0
    confidence: float  # 0.0-1.0
    applied_patterns: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rationale: list[str] = field(default_factory=list)

    @property
    def adjustment(self) -> float:
        return self.confidence - self.original_confidence


@dataclass
class LearningCycleResult:
    """Summary of one learning pass."""
    decisions_analyzed: int = 0
    patterns_found: list[str] = field(default_factory=list)
    anti_patterns_found: list[str] = field(default_factory=list)
    patterns_updated: int = 0
    patterns_retired: list[str] = field(default_factory=list)
    strategy_version: int | None = None
    advisor_fallbacks: int = 0
    skipped_reason: str | None = None

    @property
    def strategy_evolved(self) -> bool:
        return self.strategy_version is not None

    def to_dict(self) -> dict:
        return {
            "decisions_analyzed": self.decisions_analyzed,
            "patterns_found": self.patterns_found,
            "anti_patterns_found": self.anti_patterns_found,
            "patterns_updated": self.patterns_updated,
            "patterns_retired": self.patterns_retired,
            "strategy_version": self.strategy_version,
            "advisor_fallbacks": self.advisor_fallbacks,
            "skipped_reason": self.skipped_reason,
        }
