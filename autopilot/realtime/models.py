"""
Data models for the real-time decision engine.

An Event is transient; the engine either drops it or turns it into
exactly one Decision.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Literal


Severity = Literal["low", "medium", "high", "critical"]
Priority = Literal["low", "medium", "high", "critical"]
DecisionType = Literal["auto_action", "escalation", "info_only"]
DecisionStatus = Literal["executed", "escalated", "logged"]

SEVERITY_RANK = {"low": 0, "medium": 1, "high": 2, "critical": 3}


@dataclass
class Event:
    """A discrete, time-sensitive signal such as an injury report."""
    id: str
    subject_name: str
    severity: Severity
    category: str  # injury, weather, depth_chart, suspension, ...
    description: str
    source_confidence: float  # 0.0-1.0
    time_to_deadline: timedelta
    source: str = ""
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject_name": self.subject_name,
            "severity": self.severity,
            "category": self.category,
            "description": self.description,
            "source_confidence": self.source_confidence,
            "time_to_deadline_minutes": round(self.time_to_deadline.total_seconds() / 60, 2),
            "source": self.source,
            "received_at": self.received_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        received = data.get("received_at")
        return cls(
            id=str(data["id"]),
            subject_name=data["subject_name"],
            severity=str(data.get("severity", "low")).lower(),  # type: ignore
            category=data.get("category", "news"),
            description=data.get("description", ""),
            source_confidence=float(data.get("source_confidence", 0.0)),
            time_to_deadline=timedelta(minutes=float(data.get("time_to_deadline_minutes", 0))),
            source=data.get("source", ""),
            received_at=datetime.fromisoformat(received) if received else datetime.now(timezone.utc),
        )


@dataclass
class DecisionAction:
    """One roster action within a decision, in execution order."""
    verb: str
    subject: str
    alternative: str | None = None
    rationale: str = ""
    urgency_score: float = 5.0  # 0-10

    def describe(self) -> str:
        return f"{self.verb} {self.subject}"

    def to_dict(self) -> dict:
        return {
            "verb": self.verb,
            "subject": self.subject,
            "alternative": self.alternative,
            "rationale": self.rationale,
            "urgency_score": self.urgency_score,
        }


@dataclass
class ActionResult:
    """Outcome of executing one action."""
    action: DecisionAction
    success: bool
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "action": self.action.to_dict(),
            "success": self.success,
            "message": self.message,
        }


@dataclass
class Decision:
    """Structured response to one event."""
    id: str
    event_id: str
    type: DecisionType
    priority: Priority
    deadline: datetime
    affected_subjects: set[str]  # league ids whose roster holds the subject
    actions: list[DecisionAction]
    confidence: float  # 0.0-1.0
    estimated_impact: float  # points at stake
    summary: str = ""
    advisor_used: bool = False
    warnings: list[str] = field(default_factory=list)
    applied_patterns: list[str] = field(default_factory=list)
    status: DecisionStatus = "logged"
    results: list[ActionResult] = field(default_factory=list)
    recommendation_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def executed_successfully(self) -> bool:
        return bool(self.results) and all(r.success for r in self.results)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "type": self.type,
            "priority": self.priority,
            "deadline": self.deadline.isoformat(),
            "affected_subjects": sorted(self.affected_subjects),
            "actions": [a.to_dict() for a in self.actions],
            "confidence": round(self.confidence, 4),
            "estimated_impact": self.estimated_impact,
            "summary": self.summary,
            "advisor_used": self.advisor_used,
            "warnings": self.warnings,
            "applied_patterns": self.applied_patterns,
            "status": self.status,
            "results": [r.to_dict() for r in self.results],
            "recommendation_id": self.recommendation_id,
            "created_at": self.created_at.isoformat(),
        }
