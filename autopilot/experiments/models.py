"""Data models for strategy experiments."""
from dataclasses import dataclass, field
from typing import Any, Literal


ExperimentStatus = Literal["active", "concluded"]
VariantRole = Literal["control", "treatment"]
VARIANT_ROLES = ("control", "treatment")


@dataclass
class Variant:
    """One of the two competing decision strategies."""
    name: str
    description: str = ""
    use_advisor: bool = True
    advisor_model: str | None = None
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "use_advisor": self.use_advisor,
            "advisor_model": self.advisor_model,
            "parameters": self.parameters,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Variant":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            use_advisor=data.get("use_advisor", True),
            advisor_model=data.get("advisor_model"),
            parameters=data.get("parameters", {}),
        )


@dataclass
class ExperimentSpec:
    """What a caller supplies to create an experiment."""
    name: str
    control: Variant
    treatment: Variant
    allocation: float  # percent of draws assigned to treatment
    description: str = ""
    metrics: list[str] = field(default_factory=lambda: ["success_rate", "actual_value", "cost"])
    significance_level: float | None = None
    min_samples_per_variant: int | None = None


@dataclass
class VariantStats:
    """Observed performance of one variant."""
    role: VariantRole
    name: str
    executions: int = 0
    sample_size: int = 0  # executions with a recorded outcome
    successes: int = 0
    mean_value: float = 0.0
    mean_cost: float = 0.0

    @property
    def success_rate(self) -> float:
        return self.successes / self.sample_size if self.sample_size else 0.0

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "name": self.name,
            "executions": self.executions,
            "sample_size": self.sample_size,
            "successes": self.successes,
            "success_rate": round(self.success_rate, 4),
            "mean_value": round(self.mean_value, 2),
            "mean_cost": round(self.mean_cost, 4),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VariantStats":
        return cls(
            role=data["role"],
            name=data["name"],
            executions=data.get("executions", 0),
            sample_size=data.get("sample_size", 0),
            successes=data.get("successes", 0),
            mean_value=data.get("mean_value", 0.0),
            mean_cost=data.get("mean_cost", 0.0),
        )


@dataclass
class ExperimentAnalysis:
    """Statistical comparison of control vs treatment."""
    experiment_id: str
    control: VariantStats
    treatment: VariantStats
    success_rate_difference: float = 0.0  # treatment - control, percentage points
    z_score: float = 0.0
    p_value: float = 1.0
    confidence_level: float = 0.0  # percent
    winner: VariantRole | None = None
    verdict: Literal["winner", "insufficient_data"] = "insufficient_data"
    reason: str = ""

    @property
    def is_conclusive(self) -> bool:
        return self.winner is not None

    def to_dict(self) -> dict:
        return {
            "experiment_id": self.experiment_id,
            "control": self.control.to_dict(),
            "treatment": self.treatment.to_dict(),
            "success_rate_difference": round(self.success_rate_difference, 2),
            "z_score": round(self.z_score, 4),
            "p_value": round(self.p_value, 6),
            "confidence_level": round(self.confidence_level, 2),
            "winner": self.winner,
            "verdict": self.verdict,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExperimentAnalysis":
        return cls(
            experiment_id=data["experiment_id"],
            control=VariantStats.from_dict(data["control"]),
            treatment=VariantStats.from_dict(data["treatment"]),
            success_rate_difference=data.get("success_rate_difference", 0.0),
            z_score=data.get("z_score", 0.0),
            p_value=data.get("p_value", 1.0),
            confidence_level=data.get("confidence_level", 0.0),
            winner=data.get("winner"),
            verdict=data.get("verdict", "insufficient_data"),
            reason=data.get("reason", ""),
        )


@dataclass
class Experiment:
    """A controlled comparison between two decision strategies."""
    id: str
    name: str
    description: str
    control: Variant
    treatment: Variant
    allocation: float
    metrics: list[str]
    significance_level: float
    min_samples_per_variant: int
    status: ExperimentStatus = "active"
    created_at: str = ""
    concluded_at: str | None = None
    conclusion: ExperimentAnalysis | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def variant(self, role: VariantRole) -> Variant:
        if role == "control":
            return self.control
        if role == "treatment":
            return self.treatment
        raise ValueError(f"Unknown variant role: {role}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "control": self.control.to_dict(),
            "treatment": self.treatment.to_dict(),
            "allocation": self.allocation,
            "metrics": self.metrics,
            "significance_level": self.significance_level,
            "min_samples_per_variant": self.min_samples_per_variant,
            "status": self.status,
            "created_at": self.created_at,
            "concluded_at": self.concluded_at,
            "conclusion": self.conclusion.to_dict() if self.conclusion else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Experiment":
        conclusion = data.get("conclusion")
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            control=Variant.from_dict(data["control"]),
            treatment=Variant.from_dict(data["treatment"]),
            allocation=float(data["allocation"]),
            metrics=data.get("metrics", []),
            significance_level=float(data["significance_level"]),
            min_samples_per_variant=int(data["min_samples_per_variant"]),
            status=data.get("status", "active"),
            created_at=data.get("created_at", ""),
            concluded_at=data.get("concluded_at"),
            conclusion=ExperimentAnalysis.from_dict(conclusion) if conclusion else None,
        )


@dataclass
class VariantExecution:
    """Result of running one variant for one decision request."""
    experiment_id: str
    role: VariantRole
    variant_name: str
    recommendation_id: str
    execution_seconds: float
    cost: float
    confidence: float
    recorded_at: str = ""

    @property
    def id(self) -> str:
        return f"{self.experiment_id}:{self.recommendation_id}"

    def to_dict(self) -> dict:
        return {
            "experiment_id": self.experiment_id,
            "variant": self.role,
            "variant_name": self.variant_name,
            "recommendation_id": self.recommendation_id,
            "metrics": {
                "execution_seconds": round(self.execution_seconds, 3),
                "cost": self.cost,
                "confidence": self.confidence,
            },
            "recorded_at": self.recorded_at,
        }
