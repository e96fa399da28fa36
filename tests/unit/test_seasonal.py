"""
Tests for the seasonal aggregator.
"""
import pytest

from autopilot.config import SeasonConfig
from autopilot.errors import NotFound
from autopilot.ledger import LedgerEntry, Recommendation
from autopilot.seasonal import SeasonalAggregator, derive_phase_boundaries, season_of

from conftest import make_draft, resolve


@pytest.fixture
def aggregator(ledger, offline_advisor, store, season_config) -> SeasonalAggregator:
    return SeasonalAggregator(ledger, offline_advisor, store, season_config)


def track_season(ledger, season: int, week: int, results: list[bool]) -> None:
    for success in results:
        rec_id = ledger.track(make_draft(period=week, context={"season": season}))
        resolve(ledger, rec_id, success, actual=22.0 if success else 12.0)


# ─── Phases ────────────────────────────────────────────────


class TestPhaseBoundaries:

    def test_standard_season(self):
        bounds = derive_phase_boundaries(17, 3)
        assert bounds.ranges() == {
            "early": (1, 4),
            "mid": (5, 10),
            "late": (11, 14),
            "championship": (15, 17),
        }

    @pytest.mark.parametrize("week,phase", [(0, "early"), (4, "early"), (5, "mid"), (14, "late"), (18, "championship")])
    def test_phase_for_week(self, week, phase):
        assert derive_phase_boundaries(17, 3).phase_for_week(week) == phase

    def test_phases_are_contiguous_for_short_seasons(self):
        bounds = derive_phase_boundaries(8, 2)
        ranges = list(bounds.ranges().values())
        assert ranges[0][0] == 1
        assert ranges[-1][1] == 8
        for (_, end), (start, _) in zip(ranges, ranges[1:]):
            assert start == end + 1

    def test_rejects_tiny_season(self):
        with pytest.raises(ValueError):
            derive_phase_boundaries(3, 1)


class TestPresets:

    def test_preset_follows_phase(self, aggregator):
        assert aggregator.get_preset(week=2).risk_tolerance == "aggressive"
        assert aggregator.get_preset(week=12).phase == "late"

    def test_thresholds_shift_with_risk(self, aggregator):
        base = {"low": 60.0, "medium": 75.0, "high": 85.0}
        assert aggregator.get_preset(week=12).confidence_thresholds(base) == {"low": 65.0, "medium": 80.0, "high": 90.0}
        assert aggregator.get_preset(week=7).confidence_thresholds(base) == base

    def test_default_weights_sum_to_one(self, aggregator):
        for preset in aggregator.get_presets().values():
            assert sum(preset.decision_weights.values()) == pytest.approx(1.0)


# ─── Period summaries ──────────────────────────────────────


class TestSummarizePeriod:

    def test_totals_and_phase_breakdown(self, aggregator, ledger):
        track_season(ledger, 2024, week=2, results=[True, True, True])
        track_season(ledger, 2024, week=12, results=[False])
        ledger.track(make_draft(period=13, context={"season": 2024}))  # pending

        record = aggregator.summarize_period(2024, ledger.entries())

        assert record.total_decisions == 5
        assert record.resolved_decisions == 4
        assert record.weeks_completed == 13
        assert record.success_rate == pytest.approx(75.0)
        assert record.phase_breakdown["early"]["decisions"] == 3
        assert record.phase_breakdown["late"]["success_rate"] == 0.0
        assert record.key_insights[0].startswith("Strongest phase: early")

    def test_empty_season(self, aggregator):
        record = aggregator.summarize_period(2024, [])
        assert record.total_decisions == 0
        assert record.success_rate == 0.0

    def test_season_from_creation_date(self):
        def entry(created_at: str) -> LedgerEntry:
            return LedgerEntry(Recommendation(
                id="rec_1", created_at=created_at, kind="lineup", period=1,
                league_id="L1", team_id="T1", payload={}, confidence=70.0,
            ))

        assert season_of(entry("2025-01-12T18:00:00+00:00")) == 2024
        assert season_of(entry("2025-09-14T18:00:00+00:00")) == 2025


# ─── Rollup ────────────────────────────────────────────────


class TestRollup:
    """Season rollup, cross-season patterns and preset refresh."""

    @pytest.mark.asyncio
    async def test_rerun_replaces_season_record(self, aggregator, ledger):
        track_season(ledger, 2024, week=3, results=[True, False])

        await aggregator.rollup(2024)
        track_season(ledger, 2024, week=4, results=[True])
        result = await aggregator.rollup(2024)

        assert [p.season for p in aggregator.list_periods()] == [2024]
        assert aggregator.get_period(2024).total_decisions == 3
        assert result.period.total_decisions == 3

    @pytest.mark.asyncio
    async def test_advisor_failure_keeps_presets(self, aggregator, ledger):
        track_season(ledger, 2024, week=3, results=[True])

        result = await aggregator.rollup(2024)

        assert result.presets_refreshed is False
        assert result.degradations and result.degradations[0].startswith("Kept previous phase presets")
        assert aggregator.get_preset(week=12).risk_tolerance == "conservative"

    @pytest.mark.asyncio
    async def test_cross_season_patterns(self, aggregator, ledger):
        for season in (2023, 2024):
            track_season(ledger, season, week=2, results=[True, True, True])
            await aggregator.rollup(season)

        names = [p.name for p in aggregator.list_cross_period_patterns()]

        assert "early_phase_strength" in names
        assert "early_phase_volume" in names

    @pytest.mark.asyncio
    async def test_single_season_has_no_patterns(self, aggregator, ledger):
        track_season(ledger, 2024, week=2, results=[True, True, True])
        result = await aggregator.rollup(2024)
        assert result.patterns == []

    @pytest.mark.asyncio
    async def test_advisor_refreshes_presets(self, ledger, store, season_config, advisor_factory):
        advisor = advisor_factory(assessment={"presets": {
            "late": {
                "risk_tolerance": "aggressive",
                "decision_weights": {"immediate_points": 1, "matchup_optimization": 1},
            },
            "mid": "not a preset",
        }})
        aggregator = SeasonalAggregator(ledger, advisor, store, season_config)

        result = await aggregator.rollup(2024, entries=[])

        assert result.presets_refreshed is True
        reloaded = SeasonalAggregator(ledger, advisor, store, season_config).get_preset(week=12)
        assert reloaded.risk_tolerance == "aggressive"
        assert reloaded.decision_weights["immediate_points"] == 0.5
        assert reloaded.decision_weights["long_term_value"] == 0.0
        assert aggregator.get_preset(week=7).risk_tolerance == "balanced"

    def test_unknown_period(self, aggregator):
        with pytest.raises(NotFound):
            aggregator.get_period(1999)

    def test_custom_season_length(self, ledger, offline_advisor, store):
        aggregator = SeasonalAggregator(ledger, offline_advisor, store, SeasonConfig(period_length=18, playoff_weeks=4))
        assert aggregator.boundaries.championship == (15, 18)
