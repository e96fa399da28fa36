"""
Data models for the advisor contract.

The advisor is asked for typed suggestion objects rather than prose;
free text survives only as the human-readable summary.
"""
from dataclasses import dataclass, field
from typing import Any, Literal


AdvisorTask = Literal[
    "lineup_analysis",
    "urgent_event",
    "pattern_assessment",
    "phase_presets",
]


@dataclass
class AdvisorRequest:
    """Structured request sent to the advisor."""
    task: AdvisorTask
    context: str
    data: dict[str, Any] = field(default_factory=dict)
    capabilities: list[str] = field(default_factory=list)
    model: str | None = None
    max_suggestions: int = 5


@dataclass
class Suggestion:
    """One concrete action proposed by the advisor."""
    verb: str  # e.g. "start", "bench", "add", "drop", "trade"
    subject: str
    alternative: str | None = None
    rationale: str = ""
    confidence: float = 0.5  # 0.0-1.0
    urgency: float = 5.0  # 0-10
    expected_points: float | None = None

    def to_dict(self) -> dict:
        return {
            "verb": self.verb,
            "subject": self.subject,
            "alternative": self.alternative,
            "rationale": self.rationale,
            "confidence": self.confidence,
            "urgency": self.urgency,
            "expected_points": self.expected_points,
        }


@dataclass
class AdvisorResponse:
    """Parsed advisor answer plus usage metadata."""
    summary: str
    suggestions: list[Suggestion] = field(default_factory=list)
    assessment: dict[str, Any] = field(default_factory=dict)
    confidence: float | None = None  # 0.0-1.0, overall
    model: str = ""
    usage: dict[str, int] | None = None
    cost: float = 0.0
    prompt_version: str = ""
    latency_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "suggestions": [s.to_dict() for s in self.suggestions],
            "assessment": self.assessment,
            "confidence": self.confidence,
            "model": self.model,
            "usage": self.usage,
            "cost": self.cost,
            "prompt_version": self.prompt_version,
            "latency_seconds": round(self.latency_seconds, 3),
        }


@dataclass
class UsageBudget:
    """
    Advisor spend for one session (one cycle, one CLI run).

    Passed explicitly into advisor calls so concurrent sessions never
    share a counter.
    """
    per_analysis_limit: float
    session_limit: float
    spent: float = 0.0
    calls: int = 0

    @property
    def remaining(self) -> float:
        return max(0.0, self.session_limit - self.spent)

    def can_afford(self, estimate: float) -> bool:
        return estimate <= self.per_analysis_limit and estimate <= self.remaining

    def charge(self, cost: float) -> None:
        self.spent += max(0.0, cost)
        self.calls += 1
