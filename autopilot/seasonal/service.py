"""
Seasonal Aggregator

Folds ledger history into one record per season, derives timing
patterns that hold across seasons and keeps the phase-specific strategy
presets (early/mid/late/championship) that the decision cycle and the
pattern miner read.
"""
import logging
from datetime import datetime, timezone

import pandas as pd

from autopilot.advisor import AdvisorService, UsageBudget
from autopilot.config import SeasonConfig, config
from autopilot.errors import AdvisorFailure, NotFound
from autopilot.ledger import LedgerEntry, RecommendationLedger
from autopilot.learning import ConditionOperator, PatternCondition
from autopilot.storage import Collection, RecordStore, SEASONAL_INTELLIGENCE, get_record_store
from .models import (
    DECISION_WEIGHT_KEYS,
    PHASES,
    CrossPeriodPattern,
    PeriodRecord,
    Phase,
    PhaseBoundaries,
    PhasePreset,
    RollupResult,
    default_presets,
)
from .phases import derive_phase_boundaries
from .prompts import build_phase_presets_request


logger = logging.getLogger(__name__)

PRESETS_RECORD = "presets"
PATTERNS_RECORD = "cross_period_patterns"

# NFL seasons start in September and end in January/February
SEASON_START_MONTH = 3

MIN_PHASE_DECISIONS = 3
MIN_SEASONS_FOR_PATTERN = 2
STRONG_PHASE_RATE = 0.7
WEAK_PHASE_RATE = 0.5
CONSISTENT_PHASE_RATE = 0.6
VOLUME_SHARE = 0.4
RISK_TOLERANCES = ("conservative", "balanced", "aggressive")


def season_of(entry: LedgerEntry) -> int:
    """Season a recommendation belongs to (explicit context wins over its date)."""
    explicit = entry.recommendation.context.get("season")
    if explicit is not None:
        return int(explicit)
    created = entry.recommendation.created_datetime
    return created.year if created.month >= SEASON_START_MONTH else created.year - 1


def _normalize_decision_weights(raw: dict) -> dict[str, float] | None:
    try:
        weights = {k: max(0.0, float(raw.get(k, 0.0))) for k in DECISION_WEIGHT_KEYS}
    except (TypeError, ValueError):
        return None
    total = sum(weights.values())
    if total <= 0:
        return None
    return {k: round(v / total, 4) for k, v in weights.items()}


class SeasonalAggregator:
    """
    Long-horizon memory across seasons.

    Usage:
        aggregator = SeasonalAggregator(ledger, advisor, store)
        result = await aggregator.rollup(2025)
        preset = aggregator.get_preset(week=12)
    """

    def __init__(
        self,
        ledger: RecommendationLedger,
        advisor: AdvisorService | None = None,
        store: RecordStore | None = None,
        season_config: SeasonConfig | None = None,
    ):
        self.ledger = ledger
        self.advisor = advisor or AdvisorService()
        self.settings = season_config or config.season
        self._records = Collection(store or get_record_store(), SEASONAL_INTELLIGENCE)

    # ============ Phases and presets ============

    @property
    def boundaries(self) -> PhaseBoundaries:
        return derive_phase_boundaries(self.settings.period_length, self.settings.playoff_weeks)

    def phase_for_week(self, week: int) -> Phase:
        return self.boundaries.phase_for_week(week)

    def get_presets(self) -> dict[str, PhasePreset]:
        stored = self._records.get(PRESETS_RECORD)
        presets = default_presets()
        if stored:
            for phase, data in stored.get("phases", {}).items():
                if phase in presets:
                    presets[phase] = PhasePreset.from_dict(data)
        return presets

    def get_preset(self, week: int) -> PhasePreset:
        """Preset for the phase containing `week`."""
        return self.get_presets()[self.phase_for_week(week)]

    def _save_presets(self, presets: dict[str, PhasePreset], source: str) -> None:
        self._records.put(PRESETS_RECORD, {
            "phases": {phase: p.to_dict() for phase, p in presets.items()},
            "source": source,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        })

    # ============ Period records ============

    def list_periods(self) -> list[PeriodRecord]:
        periods = [
            PeriodRecord.from_dict(self._records.get(record_id))
            for record_id in self._records.ids()
            if record_id.startswith("season_")
        ]
        return sorted(periods, key=lambda p: p.season)

    def get_period(self, season: int) -> PeriodRecord:
        data = self._records.get(f"season_{season}")
        if data is None:
            raise NotFound(f"No record for season {season}")
        return PeriodRecord.from_dict(data)

    def _frame(self, entries: list[LedgerEntry]) -> pd.DataFrame:
        rows = []
        for entry in entries:
            rec, outcome = entry.recommendation, entry.outcome
            rows.append({
                "id": rec.id,
                "week": rec.period,
                "phase": self.phase_for_week(rec.period),
                "kind": rec.kind,
                "resolved": outcome is not None,
                "success": float(outcome.success) if outcome is not None else float("nan"),
                "improvement": entry.improvement if entry.improvement is not None else float("nan"),
            })
        return pd.DataFrame(rows, columns=["id", "week", "phase", "kind", "resolved", "success", "improvement"])

    def summarize_period(self, season: int, entries: list[LedgerEntry]) -> PeriodRecord:
        """Per-season totals and a per-phase breakdown of resolved decisions."""
        record = PeriodRecord(season=season, updated_at=datetime.now(timezone.utc).isoformat())
        frame = self._frame(entries)
        if frame.empty:
            return record

        resolved = frame[frame["resolved"]]
        record.weeks_completed = int(frame["week"].max())
        record.total_decisions = len(frame)
        record.resolved_decisions = len(resolved)
        if resolved.empty:
            return record

        record.success_rate = float(resolved["success"].mean() * 100)
        record.points_improvement = float(resolved["improvement"].mean())

        by_phase = resolved.groupby("phase").agg(
            decisions=("success", "size"),
            success_rate=("success", "mean"),
            avg_improvement=("improvement", "mean"),
        )
        record.phase_breakdown = {
            str(phase): {
                "decisions": int(row["decisions"]),
                "success_rate": round(float(row["success_rate"]), 4),
                "avg_improvement": round(float(row["avg_improvement"]), 2),
            }
            for phase, row in by_phase.iterrows()
        }

        insights = []
        if len(by_phase) > 1:
            best, worst = by_phase["success_rate"].idxmax(), by_phase["success_rate"].idxmin()
            insights.append(f"Strongest phase: {best} ({by_phase.loc[best, 'success_rate']:.0%} success)")
            insights.append(f"Weakest phase: {worst} ({by_phase.loc[worst, 'success_rate']:.0%} success)")
        by_kind = resolved.groupby("kind")["success"].agg(["size", "mean"])
        by_kind = by_kind[by_kind["size"] >= MIN_PHASE_DECISIONS]
        if not by_kind.empty:
            kind = by_kind["mean"].idxmax()
            insights.append(f"Most reliable decision type: {kind} ({by_kind.loc[kind, 'mean']:.0%} success)")
        record.key_insights = insights

        return record

    # ============ Cross-period patterns ============

    def derive_cross_period_patterns(self, periods: list[PeriodRecord]) -> list[CrossPeriodPattern]:
        """Phase-level regularities observed in at least two seasons."""
        rows = [
            {"season": p.season, "phase": phase, **stats}
            for p in periods
            for phase, stats in p.phase_breakdown.items()
        ]
        if not rows:
            return []

        frame = pd.DataFrame(rows)
        frame = frame[frame["decisions"] >= MIN_PHASE_DECISIONS]
        if frame.empty:
            return []

        season_totals = frame.groupby("season")["decisions"].transform("sum")
        frame = frame.assign(
            share=frame["decisions"] / season_totals,
            consistent=frame["success_rate"] >= CONSISTENT_PHASE_RATE,
        )

        patterns = []
        for phase, group in frame.groupby("phase"):
            seasons = sorted(int(s) for s in group["season"].unique())
            if len(seasons) < MIN_SEASONS_FOR_PATTERN:
                continue

            condition = [PatternCondition(factor="phase", operator=ConditionOperator.EQUALS, value=phase)]
            mean_rate = float(group["success_rate"].mean())
            consistency = float(group["consistent"].mean())

            if mean_rate >= STRONG_PHASE_RATE:
                patterns.append(CrossPeriodPattern(
                    name=f"{phase}_phase_strength",
                    seasons_observed=seasons,
                    pattern_type="timing",
                    description=f"Decisions in {phase} weeks succeed {mean_rate:.0%} of the time across {len(seasons)} seasons",
                    conditions=condition,
                    reliability_score=consistency,
                    actionable_insights=[f"Trust the {phase} preset; consider a more aggressive stance in {phase} weeks"],
                ))
            elif mean_rate < WEAK_PHASE_RATE:
                patterns.append(CrossPeriodPattern(
                    name=f"{phase}_phase_weakness",
                    seasons_observed=seasons,
                    pattern_type="timing",
                    description=f"Decisions in {phase} weeks succeed only {mean_rate:.0%} of the time across {len(seasons)} seasons",
                    conditions=condition,
                    reliability_score=1.0 - consistency,
                    actionable_insights=[f"Raise confidence thresholds and favor floor plays in {phase} weeks"],
                ))

            mean_share = float(group["share"].mean())
            if mean_share >= VOLUME_SHARE:
                patterns.append(CrossPeriodPattern(
                    name=f"{phase}_phase_volume",
                    seasons_observed=seasons,
                    pattern_type="volume",
                    description=f"{mean_share:.0%} of each season's decisions fall in {phase} weeks",
                    conditions=condition,
                    reliability_score=float((group["share"] >= VOLUME_SHARE).mean()),
                    actionable_insights=[f"Reserve advisor budget for {phase} weeks"],
                ))

        return patterns

    def list_cross_period_patterns(self) -> list[CrossPeriodPattern]:
        stored = self._records.get(PATTERNS_RECORD) or {}
        return [CrossPeriodPattern.from_dict(p) for p in stored.get("patterns", [])]

    # ============ Preset refresh ============

    def _merge_presets(self, current: dict[str, PhasePreset], proposed: dict) -> tuple[dict[str, PhasePreset], int]:
        merged = dict(current)
        changed = 0
        for phase in PHASES:
            raw = proposed.get(phase)
            if not isinstance(raw, dict):
                continue
            preset = PhasePreset.from_dict(current[phase].to_dict())

            focus = raw.get("primary_focus")
            if isinstance(focus, str) and focus:
                preset.primary_focus = [focus]
            elif isinstance(focus, list) and focus:
                preset.primary_focus = [str(f) for f in focus]

            if raw.get("risk_tolerance") in RISK_TOLERANCES:
                preset.risk_tolerance = raw["risk_tolerance"]

            if isinstance(raw.get("decision_weights"), dict):
                weights = _normalize_decision_weights(raw["decision_weights"])
                if weights is not None:
                    preset.decision_weights = weights

            if isinstance(raw.get("key_tactics"), list) and raw["key_tactics"]:
                preset.key_tactics = [str(t) for t in raw["key_tactics"]]

            if preset.to_dict() != current[phase].to_dict():
                changed += 1
            merged[phase] = preset
        return merged, changed

    async def refresh_presets(
        self,
        patterns: list[CrossPeriodPattern],
        periods: list[PeriodRecord],
        budget: UsageBudget | None = None,
    ) -> tuple[dict[str, PhasePreset], str | None]:
        """
        Ask the advisor to refresh the presets.

        Returns:
            (presets now in effect, degradation message or None). On any
            advisor problem the previous presets stay in effect.
        """
        current = self.get_presets()
        request = build_phase_presets_request(current, patterns, periods, self.boundaries)

        try:
            response = await self.advisor.consult(request, budget=budget)
        except AdvisorFailure as e:
            logger.warning(f"Phase preset refresh skipped: {e}")
            return current, f"Kept previous phase presets (advisor unavailable: {e})"

        proposed = response.assessment.get("presets")
        if not isinstance(proposed, dict):
            return current, "Kept previous phase presets (advisor returned no presets)"

        merged, changed = self._merge_presets(current, proposed)
        self._save_presets(merged, source="advisor")
        logger.info(f"Phase presets refreshed by advisor: {changed} phases changed")
        return merged, None

    # ============ Rollup ============

    async def rollup(
        self,
        season: int,
        budget: UsageBudget | None = None,
        entries: list[LedgerEntry] | None = None,
    ) -> RollupResult:
        """
        Fold a season into the long-horizon record.

        Re-running for a season already on record replaces that season's
        record rather than adding a second one.
        """
        if entries is None:
            entries = [e for e in self.ledger.entries() if season_of(e) == season]

        period = self.summarize_period(season, entries)
        self._records.put(period.record_id, period.to_dict())
        logger.info(
            f"Season {season}: {period.total_decisions} decisions, "
            f"{period.success_rate:.1f}% success, {period.points_improvement:+.1f} pts"
        )

        periods = self.list_periods()
        patterns = self.derive_cross_period_patterns(periods)
        self._records.put(PATTERNS_RECORD, {
            "patterns": [p.to_dict() for p in patterns],
            "updated_at": datetime.now(timezone.utc).isoformat(),
        })

        result = RollupResult(season=season, period=period, patterns=patterns)
        _, degradation = await self.refresh_presets(patterns, periods, budget=budget)
        if degradation:
            result.degradations.append(degradation)
        else:
            result.presets_refreshed = True

        return result
