"""
Real-Time Decision Engine

Turns time-sensitive events into urgency-tiered decisions:
- drops low-severity or low-confidence events without side effects
- resolves which managed rosters hold the affected player
- asks the advisor for concrete actions (rule-based fallback if it fails)
- auto-executes critical, high-confidence decisions and escalates the rest
"""
import asyncio
import logging
import secrets
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from autopilot.advisor import AdvisorResponse, AdvisorService, UsageBudget
from autopilot.config import EngineConfig, LeagueConfig, config
from autopilot.data import LeagueDataProvider, Roster, normalize_name, roster_contains
from autopilot.errors import AdvisorFailure, DataUnavailable
from autopilot.experiments import ExperimentCoordinator, Variant
from autopilot.ledger import RecommendationDraft, RecommendationLedger
from autopilot.learning import PatternMiner
from autopilot.learning.rules import confidence_band
from autopilot.monitoring import AlertLevel, EscalationAlert, LogSink, NotificationSink
from autopilot.storage import Collection, RecordStore, DECISIONS, get_record_store
from .executor import ActionExecutor, DryRunExecutor
from .models import (
    SEVERITY_RANK,
    ActionResult,
    Decision,
    DecisionAction,
    DecisionType,
    Event,
    Priority,
)
from .prompts import build_urgent_event_request


logger = logging.getLogger(__name__)

HIGH_PRIORITY_CONFIDENCE = 0.7
DEFAULT_IMPACT = {"critical": 8.0, "high": 5.0}
FALLBACK_IMPACT = 2.0
WAIVER_VERBS = {"add", "drop"}
REMOVAL_CATEGORIES = {"injury", "suspension", "inactive", "illness"}

TYPE_TITLES = {"lineup": "LINEUP CHANGE", "waiver": "WAIVER MOVE"}


@dataclass
class EventBatchResult:
    """What happened to each event in a batch."""
    decisions: list[Decision] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)  # event ids
    failures: list[tuple[str, str]] = field(default_factory=list)  # (event id, error)


def _new_decision_id() -> str:
    return f"dec_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


class DecisionEngine:
    """
    Event-to-decision pipeline.

    Usage:
        engine = DecisionEngine(ledger, miner, advisor, data_provider, leagues=config.leagues)
        result = await engine.process_events(events, week=5)
    """

    def __init__(
        self,
        ledger: RecommendationLedger,
        miner: PatternMiner,
        advisor: AdvisorService | None = None,
        data_provider: LeagueDataProvider | None = None,
        coordinator: ExperimentCoordinator | None = None,
        sink: NotificationSink | None = None,
        executor: ActionExecutor | None = None,
        store: RecordStore | None = None,
        leagues: list[LeagueConfig] | None = None,
        engine_config: EngineConfig | None = None,
        experiment_id: str | None = None,
    ):
        self.ledger = ledger
        self.miner = miner
        self.advisor = advisor or AdvisorService()
        self.data_provider = data_provider
        self.coordinator = coordinator
        self.sink = sink or LogSink()
        self.executor = executor or DryRunExecutor()
        self.leagues = leagues if leagues is not None else config.leagues
        self.settings = engine_config or config.engine
        self.experiment_id = experiment_id
        self._decisions = Collection(store or get_record_store(), DECISIONS)
        self.history: deque[Decision] = deque(maxlen=self.settings.history_limit)

    # ============ Classification ============

    def passes_filter(self, event: Event) -> bool:
        """Severity and source confidence must both clear their minimums."""
        minimum = SEVERITY_RANK.get(self.settings.min_severity, SEVERITY_RANK["medium"])
        if SEVERITY_RANK.get(event.severity, -1) < minimum:
            return False
        return event.source_confidence >= self.settings.min_source_confidence

    def calculate_priority(self, event: Event) -> Priority:
        critical_window = timedelta(hours=self.settings.critical_window_hours)
        if event.severity == "critical" and event.time_to_deadline < critical_window:
            return "critical"
        if event.severity == "critical":
            return "high"
        if event.severity == "high" and event.source_confidence > HIGH_PRIORITY_CONFIDENCE:
            return "high"
        return "medium"

    def calculate_deadline(self, event: Event, now: datetime) -> datetime:
        """Event time minus the safety margin."""
        margin = timedelta(minutes=self.settings.safety_margin_minutes)
        return now + event.time_to_deadline - margin

    def decision_type(self, priority: Priority, confidence: float) -> DecisionType:
        """
        `confidence` is the event's source confidence. The decision's own
        confidence (fallback-scaled, pattern-adjusted) is reported but
        never gates auto-execution.
        """
        if priority == "critical" and confidence > self.settings.auto_execute_confidence:
            return "auto_action"
        if priority in ("high", "critical"):
            return "escalation"
        return "info_only"

    @staticmethod
    def affected_rosters(event: Event, rosters: list[Roster]) -> list[Roster]:
        return [
            r for r in rosters
            if roster_contains((p.name for p in r.players), event.subject_name)
        ]

    # ============ Action generation ============

    @staticmethod
    def _best_replacement(roster: Roster, subject: str) -> str | None:
        key = normalize_name(subject)
        player = next((p for p in roster.players if normalize_name(p.name) == key), None)
        if player is None:
            return None
        candidates = [
            p for p in roster.bench
            if p.position == player.position and p.status not in ("OUT", "IR")
            and normalize_name(p.name) != key
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.projected_points).name

    def fallback_actions(self, event: Event, affected: list[Roster]) -> list[DecisionAction]:
        """Rule-based actions used when the advisor cannot be consulted."""
        removal = event.category.lower() in REMOVAL_CATEGORIES and event.severity in ("high", "critical")
        verb = "bench" if removal else "monitor"
        alternative = next(
            (alt for alt in (self._best_replacement(r, event.subject_name) for r in affected) if alt),
            None,
        )
        return [DecisionAction(
            verb=verb,
            subject=event.subject_name,
            alternative=alternative if removal else None,
            rationale=f"Rule-based fallback: {event.severity} {event.category} report ({event.description})",
            urgency_score=10.0 if event.severity == "critical" else 7.0 if event.severity == "high" else 4.0,
        )]

    async def _consult(
        self,
        event: Event,
        affected: list[Roster],
        variant: Variant | None,
        budget: UsageBudget | None,
    ) -> AdvisorResponse:
        if variant is not None and not variant.use_advisor:
            raise AdvisorFailure(f"Variant {variant.name} runs without the advisor")
        request = build_urgent_event_request(
            event, affected, model=variant.advisor_model if variant else None
        )
        response = await self.advisor.consult(request, budget=budget)
        if not response.suggestions:
            raise AdvisorFailure("Advisor returned no actionable suggestions")
        return response

    def _select_variant(self) -> tuple[str | None, Variant | None]:
        if self.coordinator is None or self.experiment_id is None:
            return None, None
        experiment = self.coordinator.get_experiment(self.experiment_id)
        if not experiment.is_active:
            return None, None
        role = self.coordinator.select_variant(self.experiment_id)
        return role, experiment.variant(role)

    # ============ Main flow ============

    async def process_event(
        self,
        event: Event,
        rosters: list[Roster],
        week: int | None = None,
        budget: UsageBudget | None = None,
        now: datetime | None = None,
    ) -> Decision | None:
        """
        Run one event through filter, roster match, decision and execution.

        Returns:
            The Decision, or None when the event was filtered out or
            matched no managed roster
        """
        if not self.passes_filter(event):
            logger.debug(
                f"Dropped event {event.id}: severity={event.severity}, "
                f"confidence={event.source_confidence:.2f}"
            )
            return None

        affected = self.affected_rosters(event, rosters)
        if not affected:
            logger.debug(f"Dropped event {event.id}: {event.subject_name} not on any managed roster")
            return None

        now = now or datetime.now(timezone.utc)
        priority = self.calculate_priority(event)
        role, variant = self._select_variant()

        advisor_used = False
        cost = 0.0
        try:
            response = await self._consult(event, affected, variant, budget)
            actions = [
                DecisionAction(
                    verb=s.verb,
                    subject=s.subject,
                    alternative=s.alternative,
                    rationale=s.rationale,
                    urgency_score=s.urgency,
                )
                for s in response.suggestions
            ]
            confidence = event.source_confidence
            impact = response.assessment.get("estimated_impact")
            summary = response.summary
            advisor_used = True
            cost = response.cost
        except AdvisorFailure as e:
            logger.warning(f"Event {event.id}: advisor unavailable, using rule-based actions ({e})")
            actions = self.fallback_actions(event, affected)
            confidence = event.source_confidence * self.settings.fallback_confidence_factor
            impact = None
            summary = f"Rule-based response to {event.severity} {event.category}: {event.description}"

        try:
            impact = float(impact) if impact is not None else None
        except (TypeError, ValueError):
            impact = None
        if impact is None:
            impact = DEFAULT_IMPACT.get(event.severity, FALLBACK_IMPACT)

        kind = "waiver" if any(a.verb in WAIVER_VERBS for a in actions) else "lineup"
        enhancement = self.miner.enhance_decision(confidence, {
            "kind": kind,
            "category": event.category,
            "severity": event.severity,
            "priority": priority,
            "advisor_used": advisor_used,
            "confidence_band": confidence_band(confidence * 100),
            "trigger": "realtime_event",
        })

        decision = Decision(
            id=_new_decision_id(),
            event_id=event.id,
            type=self.decision_type(priority, event.source_confidence),
            priority=priority,
            deadline=self.calculate_deadline(event, now),
            affected_subjects={r.league_id for r in affected},
            actions=actions,
            confidence=enhancement.confidence,
            estimated_impact=impact,
            summary=summary,
            advisor_used=advisor_used,
            warnings=enhancement.warnings,
            applied_patterns=enhancement.applied_patterns,
            created_at=now,
        )

        if decision.type == "auto_action":
            await self._execute(decision)
            decision.recommendation_id = await self._track(
                decision, event, affected[0], kind, week, cost, role
            )
            await self.sink.notify(EscalationAlert(
                level=AlertLevel.INFO,
                title=f"EXECUTED: {TYPE_TITLES[kind]}",
                message=summary,
                actions=[self._render(r.action, r.success) for r in decision.results],
                deadline=decision.deadline.isoformat(),
            ))
        else:
            decision.status = "escalated" if decision.type == "escalation" else "logged"
            await self._escalate(decision, kind)

        self._decisions.put(decision.id, decision.to_dict())
        self.history.append(decision)

        logger.info(
            f"Event {event.id} -> {decision.type} ({decision.priority} priority, "
            f"confidence {decision.confidence:.2f}, {len(decision.actions)} actions, "
            f"leagues {sorted(decision.affected_subjects)})"
        )
        return decision

    async def process_events(
        self,
        events: list[Event],
        rosters: list[Roster] | None = None,
        week: int | None = None,
        budget: UsageBudget | None = None,
        now: datetime | None = None,
    ) -> EventBatchResult:
        """
        Process a batch of events; one failing event never stops the others.

        Rosters are fetched once for all configured leagues when not given.
        """
        result = EventBatchResult()
        if not events:
            return result

        if rosters is None:
            rosters = await self.load_rosters(week)

        for event in events:
            try:
                decision = await self.process_event(event, rosters, week=week, budget=budget, now=now)
            except Exception as e:
                logger.error(f"Event {event.id} failed: {type(e).__name__}: {e}")
                result.failures.append((event.id, str(e)))
                continue

            if decision is None:
                result.dropped.append(event.id)
            else:
                result.decisions.append(decision)

        return result

    async def load_rosters(self, week: int | None = None) -> list[Roster]:
        """Current roster of every configured league; unreachable leagues are skipped."""
        if self.data_provider is None:
            raise DataUnavailable("No data provider configured for roster lookup", source="roster", retryable=False)

        results = await asyncio.gather(
            *(self.data_provider.get_roster(l.league_id, l.team_id, week=week) for l in self.leagues),
            return_exceptions=True,
        )
        rosters = []
        for league, outcome in zip(self.leagues, results):
            if isinstance(outcome, DataUnavailable):
                logger.warning(f"Roster unavailable for league {league.league_id}: {outcome}")
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                rosters.append(outcome[0])
        return rosters

    # ============ Execution policy ============

    async def _execute(self, decision: Decision) -> None:
        """Run actions one at a time, recording each result."""
        for action in decision.actions:
            try:
                result = await self.executor.execute(action, decision)
            except Exception as e:
                logger.error(f"Failed to execute {action.describe()}: {e}")
                result = ActionResult(action=action, success=False, message=str(e))
            decision.results.append(result)
        decision.status = "executed"

    async def _track(
        self,
        decision: Decision,
        event: Event,
        roster: Roster,
        kind: str,
        week: int | None,
        cost: float,
        role: str | None,
    ) -> str:
        draft = RecommendationDraft(
            kind=kind,  # type: ignore
            period=week or 0,
            league_id=roster.league_id,
            team_id=roster.team_id,
            payload={
                "decision_id": decision.id,
                "event": event.to_dict(),
                "actions": [a.to_dict() for a in decision.actions],
                "results": [r.to_dict() for r in decision.results],
            },
            confidence=round(decision.confidence * 100, 2),
            advisor_used=decision.advisor_used,
            advisor_identity=self.advisor.identity if decision.advisor_used else "rule_based",
            cost_estimate=cost,
            data_sources={event.source or "news", roster.source},
            context={
                "category": event.category,
                "severity": event.severity,
                "priority": decision.priority,
                "trigger": "realtime_event",
                "affected_leagues": len(decision.affected_subjects),
            },
        )

        if role is not None and self.coordinator is not None and self.experiment_id is not None:
            execution = await self.coordinator.execute_variant(
                self.experiment_id, role, lambda variant, context: draft  # type: ignore
            )
            return execution.recommendation_id
        return self.ledger.track(draft)

    @staticmethod
    def _render(action: DecisionAction, success: bool | None = None) -> str:
        text = action.describe()
        if action.alternative:
            text += f" (use {action.alternative})"
        if success is not None:
            text += " [ok]" if success else " [failed]"
        return text

    async def _escalate(self, decision: Decision, kind: str) -> None:
        if decision.type == "escalation":
            level = AlertLevel.CRITICAL if decision.priority == "critical" else AlertLevel.WARNING
            title = f"URGENT: {TYPE_TITLES[kind]} NEEDED"
        else:
            level = AlertLevel.INFO
            title = f"FYI: {TYPE_TITLES[kind]} MAY BE NEEDED"

        lines = [f"- {a.verb.upper()}: {a.subject} ({a.rationale})" for a in decision.actions]
        message = decision.summary
        if lines:
            message += "\n\nActions required:\n" + "\n".join(lines)
        if decision.warnings:
            message += "\n\nWarnings:\n" + "\n".join(f"- {w}" for w in decision.warnings)

        await self.sink.notify(EscalationAlert(
            level=level,
            title=title,
            message=message,
            actions=[a.describe() for a in decision.actions],
            deadline=decision.deadline.isoformat(),
        ))
