"""
Tests for the experiment coordinator.
"""
import random

import pytest

from autopilot.errors import NotFound, ValidationError
from autopilot.experiments import (
    ExperimentCoordinator,
    ExperimentSpec,
    Variant,
    confidence_from_p_value,
    two_proportion_z_test,
)

from conftest import make_draft, resolve


class SequenceRandom(random.Random):
    """Deterministic draws spread evenly over [0, 1)."""

    def __init__(self, count: int):
        super().__init__()
        self._values = [(i + 0.5) / count for i in range(count)]
        self._index = 0

    def random(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value


def make_spec(allocation: float = 50, **kwargs) -> ExperimentSpec:
    return ExperimentSpec(
        name=kwargs.pop("name", "advisor vs rules"),
        control=kwargs.pop("control", Variant(name="rules", use_advisor=False)),
        treatment=kwargs.pop("treatment", Variant(name="advisor", use_advisor=True)),
        allocation=allocation,
        **kwargs,
    )


async def run_variant(coordinator, exp_id, role, success, actual=20.0):
    execution = await coordinator.execute_variant(
        exp_id, role, lambda variant, ctx: make_draft(advisor_used=variant.use_advisor)
    )
    resolve(coordinator.ledger, execution.recommendation_id, success, actual=actual)
    return execution


# ─── Lifecycle ─────────────────────────────────────────────


class TestLifecycle:
    """Creation, validation and closing."""

    def test_create_and_get(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(make_spec(allocation=30))

        experiment = coordinator.get_experiment(exp_id)
        assert experiment.is_active
        assert experiment.allocation == 30.0
        assert experiment.significance_level == 90.0
        assert experiment.min_samples_per_variant == 10
        assert [e.id for e in coordinator.list_active()] == [exp_id]

    @pytest.mark.parametrize("allocation", [-1, 100.5, 250])
    def test_rejects_allocation_out_of_range(self, ledger, store, allocation):
        coordinator = ExperimentCoordinator(ledger, store)
        with pytest.raises(ValidationError):
            coordinator.create_experiment(make_spec(allocation=allocation))
        assert coordinator.list_experiments() == []

    def test_rejects_duplicate_variant_names(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store)
        spec = make_spec(control=Variant(name="same"), treatment=Variant(name="same"))
        with pytest.raises(ValidationError):
            coordinator.create_experiment(spec)

    def test_unknown_experiment(self, ledger, store):
        with pytest.raises(NotFound):
            ExperimentCoordinator(ledger, store).get_experiment("exp_missing")

    def test_closed_experiment_is_read_only(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(make_spec())

        closed = coordinator.close_experiment(exp_id)

        assert closed.status == "concluded"
        assert coordinator.list_active() == []
        with pytest.raises(ValidationError):
            coordinator.select_variant(exp_id)


# ─── Assignment ────────────────────────────────────────────


class TestSelectVariant:
    """Weighted variant assignment."""

    def test_fair_split_over_twenty_draws(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store, rng=SequenceRandom(20))
        exp_id = coordinator.create_experiment(make_spec(allocation=50))

        draws = [coordinator.select_variant(exp_id) for _ in range(20)]

        assert 6 <= draws.count("treatment") <= 14

    def test_large_sample_approximates_allocation(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store, rng=random.Random(1234))
        exp_id = coordinator.create_experiment(make_spec(allocation=30))

        treatment = sum(coordinator.select_variant(exp_id) == "treatment" for _ in range(4000))

        assert 1050 <= treatment <= 1350

    @pytest.mark.parametrize("allocation,expected", [(0, "control"), (100, "treatment")])
    def test_extreme_allocations(self, ledger, store, allocation, expected):
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(make_spec(allocation=allocation))
        assert {coordinator.select_variant(exp_id) for _ in range(50)} == {expected}


# ─── Execution ─────────────────────────────────────────────


class TestExecuteVariant:
    """Running a strategy under a variant."""

    @pytest.mark.asyncio
    async def test_tags_recommendation_with_variant(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(make_spec())

        execution = await coordinator.execute_variant(
            exp_id, "treatment", lambda variant, ctx: make_draft(advisor_used=variant.use_advisor)
        )

        rec = ledger.get_recommendation(execution.recommendation_id)
        assert rec.experiment_id == exp_id
        assert rec.variant == "treatment"
        assert rec.advisor_used is True
        assert execution.variant_name == "advisor"

    @pytest.mark.asyncio
    async def test_accepts_async_operation(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(make_spec())

        async def operation(variant, ctx):
            return make_draft(payload={"week": ctx["week"]})

        execution = await coordinator.execute_variant(exp_id, "control", operation, {"week": 7})

        assert ledger.get_recommendation(execution.recommendation_id).payload == {"week": 7}

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(make_spec())
        with pytest.raises(ValidationError):
            await coordinator.execute_variant(exp_id, "both", lambda v, c: make_draft())
        assert ledger.entries() == []


# ─── Analysis ──────────────────────────────────────────────


class TestAnalyze:
    """Significance testing and winner declaration."""

    @pytest.mark.asyncio
    async def test_small_samples_are_insufficient(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(make_spec())
        for _ in range(3):
            await run_variant(coordinator, exp_id, "treatment", True)
            await run_variant(coordinator, exp_id, "control", False)

        analysis = coordinator.analyze(exp_id)

        assert analysis.verdict == "insufficient_data"
        assert analysis.winner is None
        assert analysis.treatment.sample_size == 3
        assert coordinator.get_experiment(exp_id).is_active

    @pytest.mark.asyncio
    async def test_significant_difference_declares_winner(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store)
        exp_id = coordinator.create_experiment(make_spec())
        for i in range(12):
            await run_variant(coordinator, exp_id, "treatment", i < 11, actual=24.0)
            await run_variant(coordinator, exp_id, "control", i < 2, actual=15.0)

        analysis = coordinator.analyze(exp_id)

        assert analysis.winner == "treatment"
        assert analysis.confidence_level > 90.0
        assert analysis.treatment.mean_value == 24.0
        assert coordinator.get_experiment(exp_id).status == "concluded"
        # Concluded experiments keep their stored conclusion
        assert coordinator.analyze(exp_id).winner == "treatment"

    @pytest.mark.asyncio
    async def test_equal_rates_never_win(self, ledger, store):
        coordinator = ExperimentCoordinator(ledger, store, min_samples_per_variant=5)
        exp_id = coordinator.create_experiment(make_spec())
        for i in range(10):
            await run_variant(coordinator, exp_id, "treatment", i % 2 == 0)
            await run_variant(coordinator, exp_id, "control", i % 2 == 0)

        analysis = coordinator.analyze(exp_id)

        assert analysis.winner is None
        assert analysis.success_rate_difference == 0.0


class TestStats:
    """Two-proportion z-test helpers."""

    def test_degenerate_inputs(self):
        assert two_proportion_z_test(0, 0, 5, 10) == (0.0, 1.0)
        assert two_proportion_z_test(10, 10, 10, 10) == (0.0, 1.0)

    def test_sign_follows_treatment(self):
        z, p = two_proportion_z_test(2, 20, 15, 20)
        assert z > 0
        assert 0.0 < p < 0.01

    def test_confidence_bounds(self):
        assert confidence_from_p_value(1.0) == 0.0
        assert confidence_from_p_value(0.05) == pytest.approx(95.0)
