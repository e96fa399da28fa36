"""
Experiment Coordinator

Assigns a strategy variant per decision request, runs it, tags the
resulting recommendation and compares variants once enough outcomes
are in. Lifecycle: active -> concluded. A concluded experiment is
read-only.
"""
import inspect
import logging
import random
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import numpy as np

from autopilot.config import config
from autopilot.errors import NotFound, ValidationError
from autopilot.ledger import LedgerEntry, RecommendationDraft, RecommendationLedger
from autopilot.storage import (
    Collection,
    RecordStore,
    EXPERIMENTS,
    EXPERIMENT_RESULTS,
    get_record_store,
)
from .models import (
    VARIANT_ROLES,
    Experiment,
    ExperimentAnalysis,
    ExperimentSpec,
    VariantExecution,
    VariantRole,
    VariantStats,
)
from .stats import confidence_from_p_value, two_proportion_z_test


logger = logging.getLogger(__name__)

VariantOperation = Callable[..., RecommendationDraft | Awaitable[RecommendationDraft]]


def _mean(values: list[float]) -> float:
    return float(np.mean(values)) if values else 0.0


class ExperimentCoordinator:
    """
    Runs A/B comparisons between two decision strategies.

    Usage:
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(spec)
        role = coordinator.select_variant(exp_id)
        execution = await coordinator.execute_variant(exp_id, role, operation, context)
        analysis = coordinator.analyze(exp_id)
    """

    def __init__(
        self,
        ledger: RecommendationLedger,
        store: RecordStore | None = None,
        significance_level: float | None = None,
        min_samples_per_variant: int | None = None,
        rng: random.Random | None = None,
    ):
        store = store or get_record_store()
        self.ledger = ledger
        self._experiments = Collection(store, EXPERIMENTS)
        self._results = Collection(store, EXPERIMENT_RESULTS)
        self.significance_level = (
            significance_level if significance_level is not None
            else config.experiments.significance_level
        )
        self.min_samples_per_variant = (
            min_samples_per_variant if min_samples_per_variant is not None
            else config.experiments.min_samples_per_variant
        )
        self._rng = rng or random.Random()

    # ============ Lifecycle ============

    def create_experiment(self, spec: ExperimentSpec) -> str:
        """
        Register a new active experiment.

        Raises:
            ValidationError: If the ExperimentSpec is malformed (checked before any write)
        """
        self._validate_spec(spec)

        exp_id = f"exp_{int(time.time() * 1000)}_{secrets.token_hex(3)}"
        experiment = Experiment(
            id=exp_id,
            name=spec.name,
            description=spec.description,
            control=spec.control,
            treatment=spec.treatment,
            allocation=float(spec.allocation),
            metrics=list(spec.metrics),
            significance_level=(
                spec.significance_level if spec.significance_level is not None
                else self.significance_level
            ),
            min_samples_per_variant=(
                spec.min_samples_per_variant if spec.min_samples_per_variant is not None
                else self.min_samples_per_variant
            ),
            status="active",
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._experiments.put(exp_id, experiment.to_dict())

        logger.info(
            f"Created experiment {exp_id} '{spec.name}': "
            f"{spec.control.name} vs {spec.treatment.name} ({spec.allocation:.0f}% treatment)"
        )
        return exp_id

    def _validate_spec(self, spec: ExperimentSpec) -> None:
        if not spec.name or not spec.name.strip():
            raise ValidationError("Experiment requires a name")
        if spec.control is None or spec.treatment is None:
            raise ValidationError("Experiment requires both a control and a treatment variant")
        if not spec.control.name or not spec.treatment.name:
            raise ValidationError("Every variant requires a name")
        if spec.control.name == spec.treatment.name:
            raise ValidationError("Control and treatment variants must have distinct names")
        if isinstance(spec.allocation, bool) or not isinstance(spec.allocation, (int, float)):
            raise ValidationError(f"Allocation must be a number, got {spec.allocation!r}")
        if not 0 <= spec.allocation <= 100:
            raise ValidationError(f"Allocation must be within [0, 100], got {spec.allocation}")
        if spec.significance_level is not None and not 0 < spec.significance_level < 100:
            raise ValidationError("Significance level must be within (0, 100)")
        if spec.min_samples_per_variant is not None and spec.min_samples_per_variant < 1:
            raise ValidationError("Minimum sample size must be at least 1")

    def get_experiment(self, experiment_id: str) -> Experiment:
        data = self._experiments.get(experiment_id)
        if data is None:
            raise NotFound(f"Experiment not found: {experiment_id}")
        return Experiment.from_dict(data)

    def list_experiments(self, active_only: bool = False) -> list[Experiment]:
        experiments = [Experiment.from_dict(d) for d in self._experiments.snapshot()]
        if active_only:
            experiments = [e for e in experiments if e.is_active]
        return sorted(experiments, key=lambda e: e.created_at)

    def list_active(self) -> list[Experiment]:
        return self.list_experiments(active_only=True)

    def close_experiment(self, experiment_id: str, reason: str = "closed manually") -> Experiment:
        """Manually conclude an experiment, storing its latest analysis."""
        experiment = self.get_experiment(experiment_id)
        if not experiment.is_active:
            return experiment

        analysis = self._compute_analysis(experiment)
        analysis.reason = f"{reason}; {analysis.reason}" if analysis.reason else reason
        return self._conclude(experiment, analysis)

    def _conclude(self, experiment: Experiment, analysis: ExperimentAnalysis) -> Experiment:
        def mutate(current: dict | None) -> dict:
            stored = Experiment.from_dict(current) if current else experiment
            if not stored.is_active:
                return stored.to_dict()
            stored.status = "concluded"
            stored.concluded_at = datetime.now(timezone.utc).isoformat()
            stored.conclusion = analysis
            return stored.to_dict()

        result = Experiment.from_dict(self._experiments.update(experiment.id, mutate))
        logger.info(
            f"Experiment {experiment.id} concluded: winner={analysis.winner}, "
            f"confidence={analysis.confidence_level:.1f}%"
        )
        return result

    # ============ Assignment and execution ============

    def select_variant(self, experiment_id: str) -> VariantRole:
        """
        Weighted pseudo-random draw: treatment with probability allocation/100.

        Raises:
            ValidationError: If the experiment is concluded
        """
        experiment = self.get_experiment(experiment_id)
        if not experiment.is_active:
            raise ValidationError(f"Experiment {experiment_id} is concluded and read-only")

        return "treatment" if self._rng.random() * 100 < experiment.allocation else "control"

    async def execute_variant(
        self,
        experiment_id: str,
        role: VariantRole,
        operation: VariantOperation,
        context: dict[str, Any] | None = None,
    ) -> VariantExecution:
        """
        Run one variant's strategy and track the resulting recommendation.

        Args:
            experiment_id: Experiment to run under
            role: "control" or "treatment"
            operation: Called as operation(variant, context); returns (or
                awaits to) the RecommendationDraft produced by that strategy
            context: Request context passed through to the operation

        Returns:
            VariantExecution with the tracked recommendation id and metrics
        """
        if role not in VARIANT_ROLES:
            raise ValidationError(f"Unknown variant role: {role}")

        experiment = self.get_experiment(experiment_id)
        if not experiment.is_active:
            raise ValidationError(f"Experiment {experiment_id} is concluded and read-only")

        variant = experiment.variant(role)
        started = time.monotonic()

        draft = operation(variant, context or {})
        if inspect.isawaitable(draft):
            draft = await draft

        elapsed = time.monotonic() - started
        draft.experiment_id = experiment_id
        draft.variant = role
        rec_id = self.ledger.track(draft)

        execution = VariantExecution(
            experiment_id=experiment_id,
            role=role,
            variant_name=variant.name,
            recommendation_id=rec_id,
            execution_seconds=elapsed,
            cost=draft.cost_estimate,
            confidence=draft.confidence,
            recorded_at=datetime.now(timezone.utc).isoformat(),
        )
        self._results.put(execution.id, execution.to_dict())

        logger.debug(f"Experiment {experiment_id}: ran {role} ({variant.name}) -> {rec_id}")
        return execution

    # ============ Analysis ============

    def _variant_stats(self, role: VariantRole, name: str, entries: list[LedgerEntry]) -> VariantStats:
        resolved = [e for e in entries if e.outcome is not None]
        return VariantStats(
            role=role,
            name=name,
            executions=len(entries),
            sample_size=len(resolved),
            successes=sum(1 for e in resolved if e.outcome.success),
            mean_value=_mean([e.outcome.actual_value for e in resolved]),
            mean_cost=_mean([e.recommendation.cost_estimate for e in entries]),
        )

    def _compute_analysis(self, experiment: Experiment) -> ExperimentAnalysis:
        entries = self.ledger.entries(experiment_id=experiment.id)
        control = self._variant_stats(
            "control", experiment.control.name,
            [e for e in entries if e.recommendation.variant == "control"],
        )
        treatment = self._variant_stats(
            "treatment", experiment.treatment.name,
            [e for e in entries if e.recommendation.variant == "treatment"],
        )

        analysis = ExperimentAnalysis(
            experiment_id=experiment.id,
            control=control,
            treatment=treatment,
            success_rate_difference=(treatment.success_rate - control.success_rate) * 100,
        )

        minimum = experiment.min_samples_per_variant
        if control.sample_size < minimum or treatment.sample_size < minimum:
            analysis.reason = (
                f"Need at least {minimum} outcomes per variant "
                f"(control={control.sample_size}, treatment={treatment.sample_size})"
            )
            return analysis

        z, p_value = two_proportion_z_test(
            control.successes, control.sample_size,
            treatment.successes, treatment.sample_size,
        )
        analysis.z_score = z
        analysis.p_value = p_value
        analysis.confidence_level = confidence_from_p_value(p_value)

        if analysis.confidence_level > experiment.significance_level and z != 0:
            analysis.winner = "treatment" if z > 0 else "control"
            analysis.verdict = "winner"
            winner_stats = treatment if z > 0 else control
            loser_stats = control if z > 0 else treatment
            analysis.reason = (
                f"{winner_stats.name} wins at {analysis.confidence_level:.1f}% confidence "
                f"(value {winner_stats.mean_value:.1f} vs {loser_stats.mean_value:.1f}, "
                f"cost {winner_stats.mean_cost:.4f} vs {loser_stats.mean_cost:.4f})"
            )
        else:
            analysis.reason = (
                f"Confidence {analysis.confidence_level:.1f}% does not exceed "
                f"{experiment.significance_level:.0f}%"
            )
        return analysis

    def analyze(self, experiment_id: str) -> ExperimentAnalysis:
        """
        Compare variants with a two-proportion z-test on success rates.

        A winner is declared only when both variants reach the minimum
        sample size and confidence exceeds the significance threshold;
        the experiment then concludes. Concluded experiments return
        their stored conclusion unchanged.
        """
        experiment = self.get_experiment(experiment_id)
        if not experiment.is_active and experiment.conclusion is not None:
            return experiment.conclusion

        analysis = self._compute_analysis(experiment)
        if experiment.is_active and analysis.is_conclusive:
            self._conclude(experiment, analysis)

        return analysis
