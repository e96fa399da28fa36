"""
Recommendation Ledger

Durable append/update store for recommendations and their outcomes.
Every metric is recomputed from a point-in-time snapshot of the full
outcome set, never maintained incrementally.
"""
import logging
import secrets
import time
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Iterable

from autopilot.errors import NotFound, ValidationError
from autopilot.storage import (
    Collection,
    RecordStore,
    RECOMMENDATIONS,
    OUTCOMES,
    get_record_store,
)
from .models import (
    RECOMMENDATION_KINDS,
    GroupBreakdown,
    LearningInsights,
    LedgerEntry,
    Outcome,
    PerformanceMetrics,
    Recommendation,
    RecommendationDraft,
    StrategyComparison,
)


logger = logging.getLogger(__name__)

# Learning insight thresholds
BEST_KIND_SUCCESS_RATE = 80.0
BEST_KIND_MIN_OUTCOMES = 3
OVERCONFIDENCE_THRESHOLD = 90.0
MIN_DATA_SOURCES = 2
CONFIDENCE_RANGE_HALF_WIDTH = 10.0
TOP_DATA_SOURCES = 5


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _breakdown(entries: list[LedgerEntry]) -> GroupBreakdown:
    resolved = [e for e in entries if e.outcome is not None]
    accuracies = [e.outcome.accuracy for e in resolved if e.outcome.accuracy is not None]
    successes = sum(1 for e in resolved if e.outcome.success)
    return GroupBreakdown(
        count=len(entries),
        with_outcomes=len(resolved),
        success_rate=(successes / len(resolved) * 100) if resolved else 0.0,
        average_accuracy=_mean(accuracies),
        total_points=sum(e.outcome.actual_value for e in resolved),
    )


class RecommendationLedger:
    """
    Tracks every recommendation and the outcome later recorded for it.

    Usage:
        ledger = RecommendationLedger(store)
        rec_id = ledger.track(draft)
        ledger.record_outcome(Outcome(rec_id, True, 22.0, 18.0))
        metrics = ledger.get_metrics(period=5)
    """

    def __init__(self, store: RecordStore | None = None):
        store = store or get_record_store()
        self._recommendations = Collection(store, RECOMMENDATIONS)
        self._outcomes = Collection(store, OUTCOMES)

    # ============ Writes ============

    def _new_id(self) -> str:
        while True:
            rec_id = f"rec_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
            if rec_id not in self._recommendations:
                return rec_id

    def track(self, draft: RecommendationDraft) -> str:
        """
        Persist a new recommendation.

        Returns:
            The assigned recommendation id

        Raises:
            ValidationError: If the draft is malformed
            PersistenceFailure: If the durable write failed
        """
        if draft.kind not in RECOMMENDATION_KINDS:
            raise ValidationError(f"Unknown recommendation kind: {draft.kind}")
        if not 0 <= draft.confidence <= 100:
            raise ValidationError(f"Confidence must be within [0, 100], got {draft.confidence}")
        if not draft.league_id:
            raise ValidationError("Recommendation requires a league id")
        if draft.cost_estimate < 0:
            raise ValidationError("Cost estimate cannot be negative")

        rec_id = self._new_id()
        recommendation = Recommendation.from_draft(
            draft,
            rec_id=rec_id,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._recommendations.put(rec_id, recommendation.to_dict())

        logger.info(
            f"Tracked {draft.kind} recommendation {rec_id} "
            f"(period {draft.period}, confidence {draft.confidence:.0f})",
            extra={"league": draft.league_id},
        )
        return rec_id

    def record_outcome(self, outcome: Outcome) -> Outcome:
        """
        Record (or overwrite) the outcome of a recommendation.

        Recording twice for the same id replaces the stored outcome; the
        original recording time is kept.

        Raises:
            NotFound: If the recommendation id was never tracked
        """
        if not outcome.recommendation_id:
            raise ValidationError("Outcome requires a recommendation id")
        if outcome.recommendation_id not in self._recommendations:
            raise NotFound(f"Recommendation not found: {outcome.recommendation_id}")

        def merge(current: dict | None) -> dict:
            record = outcome.to_dict()
            if current and current.get("recorded_at"):
                record["recorded_at"] = current["recorded_at"]
            elif not record["recorded_at"]:
                record["recorded_at"] = datetime.now(timezone.utc).isoformat()
            return record

        stored = self._outcomes.update(outcome.recommendation_id, merge)
        logger.info(
            f"Recorded outcome for {outcome.recommendation_id}: "
            f"success={outcome.success}, actual={outcome.actual_value}, "
            f"projected={outcome.projected_value}"
        )
        return Outcome.from_dict(stored)

    # ============ Reads ============

    def get_recommendation(self, rec_id: str) -> Recommendation:
        data = self._recommendations.get(rec_id)
        if data is None:
            raise NotFound(f"Recommendation not found: {rec_id}")
        return Recommendation.from_dict(data)

    def get_outcome(self, rec_id: str) -> Outcome | None:
        data = self._outcomes.get(rec_id)
        return Outcome.from_dict(data) if data else None

    def entries(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        period: int | None = None,
        league_id: str | None = None,
        experiment_id: str | None = None,
    ) -> list[LedgerEntry]:
        """
        Snapshot of recommendations joined with their outcomes.

        Both collections are copied before filtering, so callers
        aggregating over the result never observe concurrent writes.
        """
        start_date, end_date = _as_utc(start_date), _as_utc(end_date)
        with self._recommendations.lock, self._outcomes.lock:
            rec_rows = self._recommendations.snapshot()
            outcome_rows = self._outcomes.snapshot()

        recommendations = [Recommendation.from_dict(r) for r in rec_rows]
        outcomes = {o["recommendation_id"]: Outcome.from_dict(o) for o in outcome_rows}

        result = []
        for rec in recommendations:
            created = rec.created_datetime
            if start_date and created < start_date:
                continue
            if end_date and created > end_date:
                continue
            if period is not None and rec.period != period:
                continue
            if league_id is not None and rec.league_id != league_id:
                continue
            if experiment_id is not None and rec.experiment_id != experiment_id:
                continue
            result.append(LedgerEntry(recommendation=rec, outcome=outcomes.get(rec.id)))
        return result

    def recent_with_outcomes(self, days: int = 14, now: datetime | None = None) -> list[LedgerEntry]:
        """Resolved entries created within the last `days` days."""
        now = now or datetime.now(timezone.utc)
        start = now - timedelta(days=days)
        return [e for e in self.entries(start_date=start) if e.outcome is not None]

    def get_metrics(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        period: int | None = None,
    ) -> PerformanceMetrics:
        """
        Aggregate performance over the filtered population.

        Success rate is successes / recommendations with an outcome.
        Pending recommendations count toward totals only. An empty
        population yields all-zero metrics.
        """
        entries = self.entries(start_date=start_date, end_date=end_date, period=period)
        if not entries:
            return PerformanceMetrics()

        overall = _breakdown(entries)
        total_cost = sum(e.recommendation.cost_estimate for e in entries)

        by_kind: dict[str, list[LedgerEntry]] = defaultdict(list)
        by_period: dict[int, list[LedgerEntry]] = defaultdict(list)
        for entry in entries:
            by_kind[entry.recommendation.kind].append(entry)
            by_period[entry.recommendation.period].append(entry)

        advisor = [e for e in entries if e.recommendation.advisor_used]
        basic = [e for e in entries if not e.recommendation.advisor_used]

        return PerformanceMetrics(
            total_recommendations=len(entries),
            with_outcomes=overall.with_outcomes,
            success_rate=overall.success_rate,
            average_accuracy=overall.average_accuracy,
            average_confidence=_mean([e.recommendation.confidence for e in entries]),
            total_cost=total_cost,
            cost_per_recommendation=total_cost / len(entries),
            by_kind={kind: _breakdown(group) for kind, group in by_kind.items()},
            by_period={p: _breakdown(group) for p, group in sorted(by_period.items())},
            advisor_vs_basic={"advisor": _breakdown(advisor), "basic": _breakdown(basic)},
        )

    def get_pending_outcomes(self, period: int | None = None) -> list[Recommendation]:
        """Recommendations still awaiting an outcome, newest first."""
        pending = [e.recommendation for e in self.entries(period=period) if e.pending]
        pending.sort(key=lambda r: r.created_at, reverse=True)
        return pending

    def compare_strategies(self, period: int, league_id: str) -> StrategyComparison:
        """
        Compare advisor-assisted and basic recommendations in one scope.

        Averages realized value per group; improvement is relative to the
        basic average and cost benefit is points gained per unit of
        advisor cost (0 if no cost was incurred).
        """
        entries = [
            e for e in self.entries(period=period, league_id=league_id)
            if e.outcome is not None
        ]
        advisor = [e for e in entries if e.recommendation.advisor_used]
        basic = [e for e in entries if not e.recommendation.advisor_used]

        advisor_avg = _mean([e.outcome.actual_value for e in advisor])
        basic_avg = _mean([e.outcome.actual_value for e in basic])
        advisor_cost = sum(e.recommendation.cost_estimate for e in advisor)

        improvement = (advisor_avg - basic_avg) / basic_avg * 100 if basic_avg > 0 else 0.0
        cost_benefit = (advisor_avg - basic_avg) / advisor_cost if advisor_cost > 0 else 0.0

        return StrategyComparison(
            period=period,
            league_id=league_id,
            advisor_average=advisor_avg,
            basic_average=basic_avg,
            advisor_count=len(advisor),
            basic_count=len(basic),
            improvement_pct=improvement,
            cost_benefit=cost_benefit,
            advisor_cost=advisor_cost,
        )

    def get_learning_insights(self, entries: Iterable[LedgerEntry] | None = None) -> LearningInsights:
        """Best recommendation kinds, recurring mistakes and data-source hints."""
        resolved = [e for e in (entries if entries is not None else self.entries()) if e.outcome]
        if not resolved:
            return LearningInsights()

        by_kind: dict[str, list[LedgerEntry]] = defaultdict(list)
        for entry in resolved:
            by_kind[entry.recommendation.kind].append(entry)

        best_kinds = []
        for kind, group in sorted(by_kind.items()):
            stats = _breakdown(group)
            if stats.with_outcomes >= BEST_KIND_MIN_OUTCOMES and stats.success_rate > BEST_KIND_SUCCESS_RATE:
                best_kinds.append(kind)

        failures = [e for e in resolved if not e.outcome.success]
        mistakes = []
        overconfident = [e for e in failures if e.recommendation.confidence > OVERCONFIDENCE_THRESHOLD]
        if overconfident:
            mistakes.append(
                f"Overconfidence: {len(overconfident)} failed recommendations had confidence > "
                f"{OVERCONFIDENCE_THRESHOLD:.0f}"
            )
        thin_data = [e for e in failures if len(e.recommendation.data_sources) < MIN_DATA_SOURCES]
        if thin_data:
            mistakes.append(
                f"Thin data: {len(thin_data)} failed recommendations used fewer than "
                f"{MIN_DATA_SOURCES} data sources"
            )

        successes = [e for e in resolved if e.outcome.success]
        if successes:
            center = _mean([e.recommendation.confidence for e in successes])
            confidence_range = (
                max(0.0, center - CONFIDENCE_RANGE_HALF_WIDTH),
                min(100.0, center + CONFIDENCE_RANGE_HALF_WIDTH),
            )
        else:
            confidence_range = (0.0, 100.0)

        source_counts = Counter(
            source for e in successes for source in e.recommendation.data_sources
        )
        recommended = [source for source, _ in source_counts.most_common(TOP_DATA_SOURCES)]

        return LearningInsights(
            best_kinds=best_kinds,
            common_mistakes=mistakes,
            optimal_confidence_range=confidence_range,
            recommended_data_sources=recommended,
        )
