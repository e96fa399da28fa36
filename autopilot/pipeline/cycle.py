"""
Cycle orchestration.

Entry points used by the CLI scripts:
- run_decision_cycle: per-league lineup analysis fan-out, then live events
- record_outcome_entry: link a real-world result to a recommendation
- run_learning_cycle: pattern mining, strategy evolution, experiment analysis
- run_seasonal_rollup: fold a season into the long-horizon record

Each returns the CycleContext of the run, whose successes, degradations
and errors are listed separately.
"""
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

import yaml

from autopilot.advisor import Suggestion, UsageBudget
from autopilot.config import LeagueConfig
from autopilot.cycle_logger import CycleContext, CycleType
from autopilot.data import LeagueSnapshot
from autopilot.errors import AdvisorFailure, ConfigurationError, DataUnavailable, ValidationError
from autopilot.experiments import Experiment, Variant
from autopilot.learning import StrategyProfile
from autopilot.learning.rules import confidence_band
from autopilot.ledger import Outcome, RecommendationDraft
from autopilot.logging_config import log_context
from autopilot.monitoring import CycleMetrics, process_alerts, record_cycle_metrics
from autopilot.realtime import Event
from autopilot.seasonal import PhasePreset
from .prompts import build_lineup_request
from .services import AutopilotServices


logger = logging.getLogger(__name__)

# Confidence the rule-based fallback would claim before degradation
BASELINE_CONFIDENCE = 0.75
UNAVAILABLE_STATUSES = {"OUT", "IR", "DOUBTFUL", "SUSPENSION"}
MIN_PROJECTION_EDGE = 2.0


# ─── Lineup analysis ────────────────────────────────────────


def fallback_lineup_actions(snapshot: LeagueSnapshot) -> list[Suggestion]:
    """
    Rule-based lineup changes: replace unavailable starters, and starters
    out-projected by a healthy bench player at the same position.
    """
    actions = []
    used: set[str] = set()
    bench = [p for p in snapshot.roster.bench if p.status not in UNAVAILABLE_STATUSES]

    for starter in snapshot.roster.starters:
        candidates = [p for p in bench if p.position == starter.position and p.name not in used]
        if not candidates:
            continue
        best = max(candidates, key=lambda p: p.projected_points)
        edge = best.projected_points - starter.projected_points

        if starter.status in UNAVAILABLE_STATUSES:
            reason = f"{starter.name} is {starter.status}"
            urgency = 9.0
            edge = best.projected_points
        elif edge >= MIN_PROJECTION_EDGE:
            reason = f"{best.name} projects {best.projected_points:.1f} vs {starter.projected_points:.1f}"
            urgency = 5.0
        else:
            continue

        used.add(best.name)
        actions.append(Suggestion(
            verb="bench",
            subject=starter.name,
            alternative=best.name,
            rationale=f"Rule-based fallback: {reason}",
            confidence=BASELINE_CONFIDENCE,
            urgency=urgency,
            expected_points=round(edge, 2),
        ))

    return actions


def _mean_confidence(suggestions: list[Suggestion]) -> float | None:
    if not suggestions:
        return None
    return sum(s.confidence for s in suggestions) / len(suggestions)


async def build_lineup_draft(
    services: AutopilotServices,
    snapshot: LeagueSnapshot,
    week: int,
    preset: PhasePreset,
    profile: StrategyProfile,
    variant: Variant | None = None,
    budget: UsageBudget | None = None,
) -> RecommendationDraft:
    """
    Lineup recommendation for one league.

    Uses the advisor unless the variant disables it or the advisor
    fails, in which case rule-based actions are used with degraded
    confidence.
    """
    advisor_used = False
    cost = 0.0
    projected_points = None
    try:
        if variant is not None and not variant.use_advisor:
            raise AdvisorFailure(f"Variant {variant.name} runs without the advisor")
        request = build_lineup_request(
            snapshot, week, preset, model=variant.advisor_model if variant else None
        )
        response = await services.advisor.consult(request, budget=budget)
        actions = response.suggestions
        confidence = response.confidence
        if confidence is None:
            confidence = _mean_confidence(actions) or BASELINE_CONFIDENCE
        summary = response.summary
        projected_points = response.assessment.get("projected_points")
        advisor_used = True
        cost = response.cost
    except AdvisorFailure as e:
        logger.warning(f"League {snapshot.league_id}: advisor unavailable, using rule-based lineup ({e})")
        actions = fallback_lineup_actions(snapshot)
        confidence = BASELINE_CONFIDENCE * services.config.engine.fallback_confidence_factor
        summary = f"Rule-based lineup review: {len(actions)} changes suggested"

    try:
        projected_points = float(projected_points) if projected_points is not None else None
    except (TypeError, ValueError):
        projected_points = None
    if projected_points is None:
        gain = sum(a.expected_points or 0.0 for a in actions)
        projected_points = round(snapshot.roster.projected_total + gain, 2)

    context = {
        "kind": "lineup",
        "phase": preset.phase,
        "risk_tolerance": preset.risk_tolerance,
        "advisor_used": advisor_used,
        "expert_rankings": bool(snapshot.rankings),
        "roster_source": snapshot.roster.source,
        "trigger": "decision_cycle",
    }
    enhancement = services.miner.enhance_decision(
        confidence, {**context, "confidence_band": confidence_band(confidence * 100)}, profile
    )
    thresholds = preset.confidence_thresholds(profile.confidence_thresholds)
    final_confidence = round(enhancement.confidence * 100, 2)
    met = [level for level, floor in thresholds.items() if final_confidence >= floor]

    return RecommendationDraft(
        kind="lineup",
        period=week,
        league_id=snapshot.league_id,
        team_id=snapshot.team_id,
        payload={
            "summary": summary,
            "actions": [a.to_dict() for a in actions],
            "projected_points": projected_points,
            "applied_patterns": enhancement.applied_patterns,
            "warnings": enhancement.warnings,
            "confidence_levels_met": met,
            "degradations": list(snapshot.degradations),
        },
        confidence=final_confidence,
        advisor_used=advisor_used,
        advisor_identity=services.advisor.identity if advisor_used else "rule_based",
        cost_estimate=cost,
        data_sources=snapshot.data_sources,
        context={**context, "stale_roster": snapshot.roster.stale, "strategy_version": profile.version},
    )


async def _run_league(
    services: AutopilotServices,
    league: LeagueConfig,
    week: int,
    experiment: Experiment | None,
    preset: PhasePreset,
    profile: StrategyProfile,
    budget: UsageBudget,
) -> tuple[LeagueSnapshot, str, bool]:
    """Snapshot, analysis and tracking for one league. Returns (snapshot, rec id, advisor used)."""
    with log_context(league=league.league_id):
        snapshot = await services.data_provider.fetch_snapshot(league, week=week)
        logger.info(
            f"Snapshot: {len(snapshot.roster.players)} players, "
            f"{len(snapshot.rankings)} ranked positions, source={snapshot.roster.source}"
        )

        async def operation(variant: Variant | None, context: dict) -> RecommendationDraft:
            return await build_lineup_draft(services, snapshot, week, preset, profile, variant, budget)

        if experiment is not None:
            role = services.coordinator.select_variant(experiment.id)
            execution = await services.coordinator.execute_variant(
                experiment.id, role, operation, {"league_id": league.league_id, "week": week}
            )
            rec_id = execution.recommendation_id
            logger.info(f"Tracked {rec_id} under experiment {experiment.id} ({role})")
        else:
            draft = await operation(None, {})
            rec_id = services.ledger.track(draft)
            logger.info(f"Tracked {rec_id} (confidence {draft.confidence:.1f})")

        recommendation = services.ledger.get_recommendation(rec_id)
    return snapshot, rec_id, recommendation.advisor_used


# ─── Decision cycle ─────────────────────────────────────────


def load_events(path: str | Path) -> list[Event]:
    """
    Read events from a YAML (or JSON) file holding a list of event
    objects, or a mapping with an `events` list.

    Raises:
        ValidationError: File is not a list of well-formed events
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("events") or []
    if not isinstance(data, list):
        raise ValidationError(f"{path}: expected a list of events")
    try:
        return [Event.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"{path}: malformed event ({e})") from e


async def run_decision_cycle(
    services: AutopilotServices,
    leagues: list[LeagueConfig] | None = None,
    week: int = 1,
    events: Iterable[Event] = (),
    budget: UsageBudget | None = None,
    now: datetime | None = None,
) -> CycleContext:
    """
    Run one decision cycle.

    Leagues are processed concurrently (bounded by max_concurrent_leagues);
    a failing league is recorded and never aborts its siblings. Events
    are then routed through the decision engine against the fetched
    rosters.

    Raises:
        ConfigurationError: No leagues to run
    """
    leagues = leagues if leagues is not None else services.config.leagues
    if not leagues:
        raise ConfigurationError("No leagues configured for the decision cycle")

    budget = budget or services.session_budget()
    events = list(events)
    started = datetime.now(timezone.utc)
    safety = services.config.safety

    active = services.coordinator.list_active()
    experiment = active[0] if active else None
    services.engine.experiment_id = experiment.id if experiment else None
    preset = services.seasonal.get_preset(week)
    profile = services.miner.active_profile()

    with services.cycle_logger.track(CycleType.DECISION_CYCLE, week=week) as ctx, log_context(cycle_id=ctx.id):
        logger.info(
            f"Decision cycle week {week}: {len(leagues)} leagues, {len(events)} events, "
            f"phase={preset.phase}, strategy v{profile.version}"
            + (f", experiment={experiment.id}" if experiment else "")
        )

        semaphore = asyncio.Semaphore(safety.max_concurrent_leagues)

        async def bounded(league: LeagueConfig):
            async with semaphore:
                return await asyncio.wait_for(
                    _run_league(services, league, week, experiment, preset, profile, budget),
                    timeout=safety.max_cycle_seconds,
                )

        results = await asyncio.gather(*(bounded(l) for l in leagues), return_exceptions=True)

        snapshots = []
        recommendations = {}
        advisor_fallbacks = 0
        for league, outcome in zip(leagues, results):
            if isinstance(outcome, DataUnavailable):
                logger.error(f"League {league.league_id} skipped: {outcome}")
                ctx.record_failure(league.league_id, f"Data unavailable: {outcome}")
            elif isinstance(outcome, asyncio.TimeoutError):
                ctx.record_failure(league.league_id, f"Timed out after {safety.max_cycle_seconds}s")
            elif isinstance(outcome, Exception):
                logger.error(f"League {league.league_id} failed: {type(outcome).__name__}: {outcome}")
                ctx.record_failure(league.league_id, f"{type(outcome).__name__}: {outcome}")
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                snapshot, rec_id, advisor_used = outcome
                snapshots.append(snapshot)
                recommendations[league.league_id] = rec_id
                ctx.record_success(league.league_id)
                for degradation in snapshot.degradations:
                    ctx.record_degradation(league.league_id, degradation)
                if not advisor_used:
                    advisor_fallbacks += 1
                    ctx.record_degradation(league.league_id, "Used rule-based lineup (advisor unavailable)")

        decisions = []
        auto_executed = 0
        if events:
            batch = await services.engine.process_events(
                events, rosters=[s.roster for s in snapshots], week=week, budget=budget, now=now
            )
            for decision in batch.decisions:
                decisions.append(decision.to_dict())
                ctx.record_success(f"event:{decision.event_id}")
                if decision.type == "auto_action":
                    auto_executed += 1
                if not decision.advisor_used:
                    advisor_fallbacks += 1
            for event_id, error in batch.failures:
                ctx.record_failure(f"event:{event_id}", error)
            ctx.metadata["dropped_events"] = batch.dropped

        metrics = CycleMetrics(
            cycle_id=ctx.id,
            start_time=started,
            end_time=datetime.now(timezone.utc),
            total_leagues=len(leagues),
            successful_leagues=len(snapshots),
            failed_leagues=len(leagues) - len(snapshots),
            advisor_calls=len(snapshots) + len(decisions),
            advisor_fallbacks=advisor_fallbacks,
            recommendations_tracked=len(recommendations) + auto_executed,
            decisions_generated=len(decisions),
            auto_executed=auto_executed,
        )
        record_cycle_metrics(metrics)
        health = await process_alerts(metrics, services.sink)

        ctx.metadata.update({
            "recommendations": recommendations,
            "decisions": decisions,
            "metrics": metrics.to_dict(),
            "health_alerts": health,
            "advisor_spent": round(budget.spent, 4),
            "no_league_data": not snapshots,
        })

    return ctx


# ─── Outcomes ───────────────────────────────────────────────


def record_outcome_entry(
    services: AutopilotServices,
    recommendation_id: str,
    actual_value: float,
    projected_value: float | None = None,
    success: bool | None = None,
    notes: str = "",
    per_subject_breakdown: dict[str, float] | None = None,
) -> Outcome:
    """
    Record the real-world result of a recommendation.

    The projection defaults to the one stored with the recommendation;
    success defaults to meeting or beating the projection.

    Raises:
        NotFound: Unknown recommendation id
    """
    if projected_value is None:
        recommendation = services.ledger.get_recommendation(recommendation_id)
        projected_value = float(recommendation.payload.get("projected_points") or 0.0)
    if success is None:
        success = actual_value >= projected_value

    outcome = services.ledger.record_outcome(Outcome(
        recommendation_id=recommendation_id,
        success=success,
        actual_value=actual_value,
        projected_value=projected_value,
        per_subject_breakdown=per_subject_breakdown or {},
        notes=notes,
    ))
    logger.info(
        f"Outcome for {recommendation_id}: {'success' if success else 'failure'}, "
        f"{actual_value:.1f} vs {projected_value:.1f} projected"
    )
    return outcome


# ─── Learning ───────────────────────────────────────────────


async def run_learning_cycle(
    services: AutopilotServices,
    week: int | None = None,
    budget: UsageBudget | None = None,
    now: datetime | None = None,
) -> CycleContext:
    """Mine patterns, evolve the strategy and analyze every active experiment."""
    budget = budget or services.session_budget()
    risk_hint = services.seasonal.get_preset(week).risk_tolerance if week else None

    with services.cycle_logger.track(CycleType.LEARNING_CYCLE, week=week) as ctx, log_context(cycle_id=ctx.id):
        result = await services.miner.learn(
            services.ledger, budget=budget, now=now, risk_tolerance_hint=risk_hint
        )
        ctx.metadata["learning"] = result.to_dict()
        if result.skipped_reason:
            ctx.record_degradation("learning", result.skipped_reason)
        else:
            ctx.record_success("learning")
        if result.advisor_fallbacks:
            ctx.record_degradation(
                "learning",
                f"{result.advisor_fallbacks} pattern assessments used default confidence (advisor unavailable)",
            )

        analyses = {}
        for experiment in services.coordinator.list_active():
            analysis = services.coordinator.analyze(experiment.id)
            analyses[experiment.id] = analysis.to_dict()
            ctx.record_success(f"experiment:{experiment.id}")
            logger.info(f"Experiment {experiment.id}: {analysis.verdict} ({analysis.reason})")
        ctx.metadata["experiments"] = analyses
        ctx.metadata["insights"] = services.ledger.get_learning_insights().to_dict()

    return ctx


# ─── Seasonal rollup ────────────────────────────────────────


async def run_seasonal_rollup(
    services: AutopilotServices,
    season: int,
    budget: UsageBudget | None = None,
) -> CycleContext:
    """Record a completed season and refresh the phase presets."""
    budget = budget or services.session_budget()

    with services.cycle_logger.track(CycleType.SEASONAL_ROLLUP) as ctx, log_context(cycle_id=ctx.id):
        result = await services.seasonal.rollup(season, budget=budget)
        ctx.metadata["rollup"] = result.to_dict()
        ctx.record_success(f"season:{season}")
        for degradation in result.degradations:
            ctx.record_degradation(f"season:{season}", degradation)

    return ctx
