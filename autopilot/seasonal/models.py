"""
Data models for seasonal aggregation.
"""
from dataclasses import dataclass, field
from typing import Literal

from autopilot.learning import PatternCondition


Phase = Literal["early", "mid", "late", "championship"]
PHASES: tuple[Phase, ...] = ("early", "mid", "late", "championship")
PatternType = Literal["timing", "volume", "scarcity"]

DECISION_WEIGHT_KEYS = (
    "long_term_value",
    "immediate_points",
    "playoff_preparation",
    "matchup_optimization",
)

# Shift applied to the active profile's confidence thresholds per risk stance
RISK_THRESHOLD_SHIFT = {"aggressive": -5.0, "balanced": 0.0, "conservative": 5.0}


@dataclass
class PhaseBoundaries:
    """Inclusive week ranges per phase."""
    early: tuple[int, int]
    mid: tuple[int, int]
    late: tuple[int, int]
    championship: tuple[int, int]

    def ranges(self) -> dict[str, tuple[int, int]]:
        return {
            "early": self.early,
            "mid": self.mid,
            "late": self.late,
            "championship": self.championship,
        }

    def phase_for_week(self, week: int) -> Phase:
        """Weeks before the season map to early, weeks past it to championship."""
        if week <= self.early[1]:
            return "early"
        if week <= self.mid[1]:
            return "mid"
        if week <= self.late[1]:
            return "late"
        return "championship"

    def to_dict(self) -> dict:
        return {phase: list(bounds) for phase, bounds in self.ranges().items()}


@dataclass
class PhasePreset:
    """Strategy preset for one phase of the season."""
    phase: Phase
    primary_focus: list[str]
    risk_tolerance: str
    decision_weights: dict[str, float]
    key_tactics: list[str] = field(default_factory=list)
    success_metrics: list[str] = field(default_factory=list)

    def confidence_thresholds(self, base: dict[str, float]) -> dict[str, float]:
        """Profile thresholds adjusted for this phase's risk stance."""
        shift = RISK_THRESHOLD_SHIFT.get(self.risk_tolerance, 0.0)
        return {level: max(0.0, min(100.0, value + shift)) for level, value in base.items()}

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "primary_focus": self.primary_focus,
            "risk_tolerance": self.risk_tolerance,
            "decision_weights": self.decision_weights,
            "key_tactics": self.key_tactics,
            "success_metrics": self.success_metrics,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PhasePreset":
        return cls(
            phase=data["phase"],
            primary_focus=list(data.get("primary_focus", [])),
            risk_tolerance=data.get("risk_tolerance", "balanced"),
            decision_weights=dict(data.get("decision_weights", {})),
            key_tactics=list(data.get("key_tactics", [])),
            success_metrics=list(data.get("success_metrics", [])),
        )


DEFAULT_PRESETS: dict[str, dict] = {
    "early": {
        "phase": "early",
        "primary_focus": ["roster_building", "breakout_identification", "volume_opportunity"],
        "risk_tolerance": "aggressive",
        "decision_weights": {
            "long_term_value": 0.4,
            "immediate_points": 0.2,
            "playoff_preparation": 0.1,
            "matchup_optimization": 0.3,
        },
        "key_tactics": ["target_volume_players", "identify_breakouts", "exploit_overreactions"],
        "success_metrics": ["roster_improvement", "breakout_accuracy", "waiver_success"],
    },
    "mid": {
        "phase": "mid",
        "primary_focus": ["consistency_building", "playoff_positioning", "trade_optimization"],
        "risk_tolerance": "balanced",
        "decision_weights": {
            "long_term_value": 0.3,
            "immediate_points": 0.3,
            "playoff_preparation": 0.2,
            "matchup_optimization": 0.2,
        },
        "key_tactics": ["prioritize_floor", "strategic_trades", "handcuff_management"],
        "success_metrics": ["win_rate", "playoff_odds", "roster_stability"],
    },
    "late": {
        "phase": "late",
        "primary_focus": ["playoff_preparation", "schedule_optimization", "ceiling_maximization"],
        "risk_tolerance": "conservative",
        "decision_weights": {
            "long_term_value": 0.1,
            "immediate_points": 0.3,
            "playoff_preparation": 0.4,
            "matchup_optimization": 0.2,
        },
        "key_tactics": ["secure_playoffs", "schedule_analysis", "ceiling_plays"],
        "success_metrics": ["playoff_probability", "schedule_strength", "upside_accumulation"],
    },
    "championship": {
        "phase": "championship",
        "primary_focus": ["matchup_exploitation", "ceiling_maximization", "championship_focus"],
        "risk_tolerance": "aggressive",
        "decision_weights": {
            "long_term_value": 0.0,
            "immediate_points": 0.5,
            "playoff_preparation": 0.0,
            "matchup_optimization": 0.5,
        },
        "key_tactics": ["ceiling_priority", "matchup_streaming", "championship_mentality"],
        "success_metrics": ["weekly_performance", "championship_probability", "ceiling_achievement"],
    },
}


def default_presets() -> dict[str, PhasePreset]:
    return {phase: PhasePreset.from_dict(data) for phase, data in DEFAULT_PRESETS.items()}


@dataclass
class PeriodRecord:
    """Summary of one season. One record per season, updated in place."""
    season: int
    weeks_completed: int = 0
    total_decisions: int = 0
    resolved_decisions: int = 0
    success_rate: float = 0.0  # percent
    points_improvement: float = 0.0  # mean actual - projected
    key_insights: list[str] = field(default_factory=list)
    phase_breakdown: dict[str, dict] = field(default_factory=dict)
    updated_at: str = ""

    @property
    def record_id(self) -> str:
        return f"season_{self.season}"

    def to_dict(self) -> dict:
        return {
            "season": self.season,
            "weeks_completed": self.weeks_completed,
            "total_decisions": self.total_decisions,
            "resolved_decisions": self.resolved_decisions,
            "success_rate": round(self.success_rate, 2),
            "points_improvement": round(self.points_improvement, 2),
            "key_insights": self.key_insights,
            "phase_breakdown": self.phase_breakdown,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PeriodRecord":
        return cls(
            season=int(data["season"]),
            weeks_completed=int(data.get("weeks_completed", 0)),
            total_decisions=int(data.get("total_decisions", 0)),
            resolved_decisions=int(data.get("resolved_decisions", 0)),
            success_rate=float(data.get("success_rate", 0.0)),
            points_improvement=float(data.get("points_improvement", 0.0)),
            key_insights=list(data.get("key_insights", [])),
            phase_breakdown=dict(data.get("phase_breakdown", {})),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class CrossPeriodPattern:
    """A timing pattern that held across several seasons."""
    name: str
    seasons_observed: list[int]
    pattern_type: PatternType
    description: str
    conditions: list[PatternCondition]
    reliability_score: float  # 0.0-1.0
    actionable_insights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "seasons_observed": self.seasons_observed,
            "pattern_type": self.pattern_type,
            "description": self.description,
            "conditions": [c.to_dict() for c in self.conditions],
            "reliability_score": round(self.reliability_score, 3),
            "actionable_insights": self.actionable_insights,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CrossPeriodPattern":
        return cls(
            name=data["name"],
            seasons_observed=[int(s) for s in data.get("seasons_observed", [])],
            pattern_type=data.get("pattern_type", "timing"),
            description=data.get("description", ""),
            conditions=[PatternCondition.from_dict(c) for c in data.get("conditions", [])],
            reliability_score=float(data.get("reliability_score", 0.0)),
            actionable_insights=list(data.get("actionable_insights", [])),
        )


@dataclass
class RollupResult:
    """Summary of one seasonal rollup run."""
    season: int
    period: PeriodRecord
    patterns: list[CrossPeriodPattern] = field(default_factory=list)
    presets_refreshed: bool = False
    degradations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "season": self.season,
            "period": self.period.to_dict(),
            "patterns": [p.name for p in self.patterns],
            "presets_refreshed": self.presets_refreshed,
            "degradations": self.degradations,
        }
