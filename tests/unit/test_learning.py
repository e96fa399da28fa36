"""
Tests for the pattern miner.
"""
import itertools

import pytest

from autopilot.errors import NotFound
from autopilot.storage import JsonFileStore
from autopilot.ledger import LedgerEntry, Outcome, Recommendation
from autopilot.learning import (
    AntiPattern,
    ConditionOperator,
    Pattern,
    PatternCondition,
    PatternMiner,
)

from conftest import make_draft, resolve


def make_entry(rec_id: str, success: bool, context: dict | None = None, actual: float = 22.0) -> LedgerEntry:
    rec = Recommendation(
        id=rec_id,
        created_at="2025-10-05T12:00:00+00:00",
        kind="lineup",
        period=5,
        league_id="L1",
        team_id="T1",
        payload={},
        confidence=75.0,
        context=context or {"phase": "mid_season"},
    )
    return LedgerEntry(rec, Outcome(rec_id, success, actual_value=actual, projected_value=18.0))


def make_pattern(confidence: float = 80.0, times_applied: int = 10, successes: int = 8, **kwargs) -> Pattern:
    return Pattern(
        id=kwargs.pop("id", "pat_1"),
        name=kwargs.pop("name", "phase=mid_season"),
        description="Mid-season lineup calls",
        conditions=kwargs.pop("conditions", [
            PatternCondition("phase", ConditionOperator.EQUALS, "mid_season"),
        ]),
        confidence=confidence,
        success_rate=successes / times_applied if times_applied else 0.0,
        times_applied=times_applied,
        last_updated="",
        successes=successes,
        **kwargs,
    )


def make_anti_pattern(**kwargs) -> AntiPattern:
    return AntiPattern(
        id="anti_1",
        name="avoid: advisor_used=False",
        description="Rule-based lineups underperform",
        conditions=[PatternCondition("advisor_used", ConditionOperator.EQUALS, False)],
        confidence=60.0,
        success_rate=0.3,
        times_applied=10,
        last_updated="",
        successes=7,
        warning_signs=["advisor_used = False"],
        failure_rate=0.7,
        cost=4.0,
        **kwargs,
    )


@pytest.fixture
def miner(store, offline_advisor, learning_config) -> PatternMiner:
    return PatternMiner(store, offline_advisor, learning_config)


# ─── Confidence merge ──────────────────────────────────────


class TestUpdateConfidence:
    """Evidence merging keeps confidence a running mean."""

    def test_merge_lies_between_prior_and_batch(self, miner):
        pattern = make_pattern(confidence=80.0, times_applied=10)
        batch = [make_entry(f"r{i}", i < 2) for i in range(5)]  # 40% batch rate

        updated = miner.update_confidence(pattern, batch)

        assert 40.0 < updated.confidence < 80.0
        assert updated.confidence == pytest.approx((80.0 * 10 + 40.0 * 5) / 15)
        assert updated.times_applied == 15
        assert updated.corroborated

    def test_input_pattern_untouched(self, miner):
        pattern = make_pattern()
        before = pattern.to_dict()

        miner.update_confidence(pattern, [make_entry("r1", False)])

        assert pattern.to_dict() == before

    def test_batch_order_does_not_matter(self, miner):
        first = [make_entry(f"a{i}", i % 2 == 0) for i in range(4)]
        second = [make_entry(f"b{i}", i == 0) for i in range(3)]
        pattern = make_pattern(confidence=70.0, times_applied=5, successes=4)

        results = []
        for a, b in itertools.permutations([first, second]):
            results.append(miner.update_confidence(miner.update_confidence(pattern, a), b).confidence)
        combined = miner.update_confidence(pattern, first + second).confidence

        assert results[0] == pytest.approx(results[1])
        assert results[0] == pytest.approx(combined)

    def test_stored_confidence_keeps_full_precision(self, miner):
        pattern = make_pattern(confidence=71.0, times_applied=2, successes=1)
        updated = miner.update_confidence(pattern, [make_entry("r1", True)])

        restored = Pattern.from_dict(updated.to_dict())

        assert updated.confidence == (71.0 * 2 + 100.0) / 3
        assert restored.confidence == updated.confidence
        assert restored.success_rate == updated.success_rate

    def test_already_counted_evidence_is_ignored(self, miner):
        pattern = make_pattern(evidence_ids={"r1"})
        assert miner.update_confidence(pattern, [make_entry("r1", False)]) is pattern

    def test_anti_pattern_counts_failures(self, miner):
        anti = make_anti_pattern()
        updated = miner.update_confidence(anti, [make_entry(f"r{i}", False, actual=10.0) for i in range(5)])

        assert updated.confidence > anti.confidence
        assert updated.failure_rate == pytest.approx(12 / 15)
        assert updated.cost >= 0.0


# ─── Corroboration and retirement ──────────────────────────


class TestCorroborate:

    @pytest.mark.asyncio
    async def test_failing_pattern_is_retired(self, miner):
        miner._save(make_pattern(confidence=60.0, times_applied=3, successes=1))
        recent = [make_entry(f"r{i}", False, actual=12.0) for i in range(3)]

        updated = await miner.corroborate(recent)

        assert updated == 1
        assert miner.list_patterns() == []
        retired = miner.list_patterns(include_retired=True)
        assert retired[0].status == "retired"
        assert retired[0].times_applied == 6

    @pytest.mark.asyncio
    async def test_healthy_pattern_stays_active(self, miner):
        miner._save(make_pattern(confidence=70.0, times_applied=4, successes=3))
        await miner.corroborate([make_entry(f"r{i}", True) for i in range(4)])

        [pattern] = miner.list_patterns()
        assert pattern.confidence > 70.0


# ─── Enhancement ───────────────────────────────────────────


class TestEnhanceDecision:
    """Read-only application of patterns to a pending decision."""

    def test_matching_pattern_boosts_confidence(self, miner):
        miner._save(make_pattern(confidence=80.0))

        result = miner.enhance_decision(0.6, {"phase": "mid_season"})

        assert result.confidence == pytest.approx(0.68)
        assert result.applied_patterns == ["phase=mid_season"]
        assert result.warnings == []

    def test_low_confidence_pattern_is_not_applied(self, miner):
        miner._save(make_pattern(confidence=65.0))
        result = miner.enhance_decision(0.6, {"phase": "mid_season"})
        assert result.confidence == 0.6
        assert result.applied_patterns == []

    def test_anti_pattern_penalizes_and_warns(self, miner):
        miner._save(make_pattern(confidence=80.0))
        miner._save(make_anti_pattern())

        result = miner.enhance_decision(0.6, {"phase": "mid_season", "advisor_used": False})

        assert result.confidence == pytest.approx(0.48)
        assert len(result.warnings) == 1
        assert "avoid: advisor_used=False" in result.warnings[0]

    def test_confidence_is_clamped(self, miner):
        miner._save(make_anti_pattern())
        assert miner.enhance_decision(0.1, {"advisor_used": False}).confidence == 0.0

    def test_does_not_modify_patterns(self, miner):
        miner._save(make_pattern(confidence=80.0))
        before = [p.to_dict() for p in miner.list_patterns()]

        for _ in range(3):
            miner.enhance_decision(0.6, {"phase": "mid_season"})

        assert [p.to_dict() for p in miner.list_patterns()] == before


# ─── Strategy evolution ────────────────────────────────────


class TestStrategyEvolution:

    def test_good_results_do_not_evolve(self, miner):
        recent = [make_entry(f"r{i}", True, actual=24.0) for i in range(5)]
        assert miner.evolve_strategy(recent) is None
        assert miner.active_profile().version == 0

    def test_poor_results_raise_thresholds(self, miner):
        recent = [make_entry(f"r{i}", False, actual=12.0) for i in range(5)]

        profile = miner.evolve_strategy(recent, risk_tolerance_hint="aggressive")

        assert profile.version == 1
        assert profile.risk_tolerance == "conservative"
        assert profile.threshold("high") > 85.0
        assert profile.weaknesses == ["lineup_decisions"]
        assert sum(profile.decision_factor_weights.values()) == pytest.approx(1.0, abs=1e-12)
        assert miner.active_profile().version == 1

    def test_evolution_is_deterministic(self, store, offline_advisor, learning_config, tmp_path):
        recent = [make_entry(f"r{i}", i == 0, actual=15.0) for i in range(5)]
        other = PatternMiner(JsonFileStore(tmp_path / "other"), offline_advisor, learning_config)

        a = PatternMiner(store, offline_advisor, learning_config).evolve_strategy(recent)
        b = other.evolve_strategy(recent)

        assert a.confidence_thresholds == b.confidence_thresholds
        assert a.decision_factor_weights == b.decision_factor_weights

    def test_rollback_appends_copy(self, miner):
        losing = [make_entry(f"r{i}", False, actual=12.0) for i in range(5)]
        first = miner.evolve_strategy(losing)
        miner.evolve_strategy(losing)

        restored = miner.rollback_strategy(first.version)

        assert restored.version == 3
        assert restored.confidence_thresholds == first.confidence_thresholds
        assert miner.active_profile().version == 3
        assert [p.version for p in miner.list_profiles()] == [1, 2, 3]

    def test_rollback_to_unknown_version(self, miner):
        with pytest.raises(NotFound):
            miner.rollback_strategy(9)


# ─── Full cycle ────────────────────────────────────────────


class TestLearn:
    """End-to-end learning over the ledger."""

    @pytest.mark.asyncio
    async def test_skips_without_enough_history(self, miner, ledger):
        resolve(ledger, ledger.track(make_draft()), True)

        result = await miner.learn(ledger)

        assert result.skipped_reason is not None
        assert result.decisions_analyzed == 1
        assert miner.list_patterns() == []

    @pytest.mark.asyncio
    async def test_mines_patterns_and_anti_patterns(self, miner, ledger):
        for _ in range(3):
            resolve(ledger, ledger.track(make_draft(context={"phase": "early_season"})), True, 22.0, 18.0)
        for _ in range(2):
            resolve(ledger, ledger.track(make_draft(context={"phase": "late_season"})), False, 10.0, 18.0)

        result = await miner.learn(ledger)

        assert result.skipped_reason is None
        assert result.decisions_analyzed == 5
        assert result.patterns_found
        assert result.anti_patterns_found
        assert result.advisor_fallbacks >= 2
        # Advisor-only confidence stays capped until evidence corroborates it
        assert all(p.confidence <= 70.0 for p in miner.list_patterns())
        assert any("early_season" in p.name for p in miner.list_patterns())
        assert any("late_season" in p.name for p in miner.list_anti_patterns())

    @pytest.mark.asyncio
    async def test_patterns_need_three_examples(self, miner, ledger):
        for _ in range(2):
            resolve(ledger, ledger.track(make_draft(context={"phase": "early_season"})), True, 22.0, 18.0)
        for _ in range(3):
            resolve(ledger, ledger.track(make_draft(context={"phase": "late_season"})), False, 10.0, 18.0)

        result = await miner.learn(ledger)

        assert result.patterns_found == []
        assert result.anti_patterns_found
        assert result.strategy_version == 1
