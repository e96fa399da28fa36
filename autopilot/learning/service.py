"""
Pattern Miner

Learns from resolved recommendations:
- mines success patterns and anti-patterns from recurring context factors
- keeps each pattern's confidence an exact running mean over all evidence
- retires patterns whose repeated application stops working
- evolves the versioned strategy profile when performance slips
- enhances pending decisions with matching patterns (read-only)
"""
import asyncio
import copy
import itertools
import logging
import secrets
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

import numpy as np

from autopilot.advisor import AdvisorService, UsageBudget
from autopilot.config import LearningConfig, config
from autopilot.errors import AdvisorFailure, NotFound
from autopilot.ledger import LedgerEntry, RecommendationLedger
from autopilot.storage import (
    Collection,
    RecordStore,
    PATTERNS,
    ANTI_PATTERNS,
    STRATEGY_PROFILES,
    get_record_store,
)
from .models import (
    AntiPattern,
    ConditionOperator,
    Enhancement,
    LearningCycleResult,
    Pattern,
    PatternCondition,
    StrategyProfile,
    conditions_key,
)
from .prompts import build_pattern_assessment_request
from .rules import matches, recommendation_factors


logger = logging.getLogger(__name__)

# Mining
MAX_COMBINATION_SIZE = 2
MAX_NEW_PATTERNS_PER_CYCLE = 5
DEFAULT_INITIAL_CONFIDENCE = 50.0
NON_GROUPING_FACTORS = {"confidence", "data_source_count"}

# Enhancement
HIGH_CONFIDENCE_PATTERN = 70.0
PATTERN_BOOST = 0.1
ANTI_PATTERN_PENALTY = 0.2

# Evolution
DEFAULT_PATTERN_WEIGHT = 0.5
PATTERN_AMPLIFY_FACTOR = 1.2
FACTOR_DAMPEN_FACTOR = 0.8
WEIGHT_MIN = 0.05
MAX_THRESHOLD_SHIFT = 5.0
MIN_THRESHOLD_GAP = 5.0
THRESHOLD_BOUNDS = {"low": (50.0, 85.0), "medium": (55.0, 90.0), "high": (60.0, 95.0)}
CONSERVATIVE_SUCCESS_RATE = 50.0
STRENGTH_SUCCESS_RATE = 0.8
WEAKNESS_SUCCESS_RATE = 0.6

# Which decision factor a context factor feeds
FACTOR_GROUPS = {
    "advisor_used": "advisor_analysis",
    "advisor_confidence": "advisor_analysis",
    "expert_tier": "expert_consensus",
    "expert_rank": "expert_consensus",
    "rankings_available": "expert_consensus",
    "recent_form": "historical_performance",
    "season_average": "historical_performance",
    "pattern_count": "historical_performance",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _mean(values: list[float]) -> float:
    return float(np.mean(values)) if values else 0.0


def _is_groupable(value: Any) -> bool:
    return isinstance(value, (str, bool, int)) and not isinstance(value, float)


def _pattern_name(conditions: list[PatternCondition], failure: bool = False) -> str:
    body = " + ".join(f"{c.factor}={c.value}" for c in conditions)
    return f"avoid: {body}" if failure else body


def _normalize_weights(weights: dict[str, float]) -> dict[str, float]:
    floored = {k: max(WEIGHT_MIN, v) for k, v in weights.items()}
    total = sum(floored.values())
    return {k: v / total for k, v in floored.items()}


class PatternMiner:
    """
    Mines and maintains success patterns, anti-patterns and the strategy profile.

    Usage:
        miner = PatternMiner(store, advisor)
        result = await miner.learn(ledger)
        enhancement = miner.enhance_decision(0.72, context)
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        advisor: AdvisorService | None = None,
        learning_config: LearningConfig | None = None,
    ):
        store = store or get_record_store()
        self.advisor = advisor or AdvisorService()
        self.settings = learning_config or config.learning
        self._patterns = Collection(store, PATTERNS)
        self._anti_patterns = Collection(store, ANTI_PATTERNS)
        self._profiles = Collection(store, STRATEGY_PROFILES)

    # ============ Queries ============

    def list_patterns(self, include_retired: bool = False) -> list[Pattern]:
        patterns = [Pattern.from_dict(d) for d in self._patterns.snapshot()]
        if not include_retired:
            patterns = [p for p in patterns if p.is_active]
        return sorted(patterns, key=lambda p: p.confidence, reverse=True)

    def list_anti_patterns(self, include_retired: bool = False) -> list[AntiPattern]:
        anti = [AntiPattern.from_dict(d) for d in self._anti_patterns.snapshot()]
        if not include_retired:
            anti = [p for p in anti if p.is_active]
        return sorted(anti, key=lambda p: p.cost, reverse=True)

    def _save(self, pattern: Pattern) -> None:
        target = self._anti_patterns if isinstance(pattern, AntiPattern) else self._patterns
        target.put(pattern.id, pattern.to_dict())

    # ============ Mining ============

    def _candidate_groups(
        self,
        entries: list[LedgerEntry],
        min_examples: int,
    ) -> list[tuple[list[PatternCondition], list[LedgerEntry]]]:
        """Factor combinations shared by at least `min_examples` entries, most supported first."""
        groups: dict[str, tuple[list[PatternCondition], list[LedgerEntry]]] = {}

        for entry in entries:
            factors = recommendation_factors(entry.recommendation)
            items = sorted(
                ((k, v) for k, v in factors.items()
                 if k not in NON_GROUPING_FACTORS and _is_groupable(v)),
                key=lambda kv: kv[0],
            )
            for size in range(1, MAX_COMBINATION_SIZE + 1):
                for combo in itertools.combinations(items, size):
                    conditions = [
                        PatternCondition(factor=k, operator=ConditionOperator.EQUALS, value=v)
                        for k, v in combo
                    ]
                    key = conditions_key(conditions)
                    if key not in groups:
                        groups[key] = (conditions, [])
                    groups[key][1].append(entry)

        supported = {
            key: group for key, group in groups.items()
            if len(group[1]) >= min_examples
        }

        # Drop a combination when a more specific one covers exactly the same examples
        member_sets = {
            key: frozenset(e.recommendation.id for e in group[1])
            for key, group in supported.items()
        }
        condition_sets = {
            key: {c.key() for c in group[0]}
            for key, group in supported.items()
        }
        kept = []
        for key, group in supported.items():
            subsumed = any(
                other != key
                and condition_sets[key] < condition_sets[other]
                and member_sets[key] == member_sets[other]
                for other in supported
            )
            if not subsumed:
                kept.append(group)

        kept.sort(key=lambda g: (len(g[1]), len(g[0])), reverse=True)
        return kept

    async def _assess(
        self,
        conditions: list[PatternCondition],
        examples: list[LedgerEntry],
        failure: bool,
        budget: UsageBudget | None,
    ) -> tuple[float, str, list[str], bool]:
        """
        Initial confidence from the advisor's qualitative judgment, capped
        until ledger evidence corroborates it.

        Returns:
            (confidence, description, caveats, fell_back)
        """
        cap = self.settings.initial_confidence_cap
        improvements = [e.improvement for e in examples if e.improvement is not None]
        fallback_description = (
            f"{'Failed' if failure else 'Successful'} decisions where "
            f"{' and '.join(c.describe() for c in conditions)} "
            f"(avg {_mean(improvements):+.1f} pts vs projection, {len(examples)} examples)"
        )

        try:
            response = await self.advisor.consult(
                build_pattern_assessment_request(conditions, examples, failure=failure),
                budget=budget,
            )
            raw = float(response.assessment.get("confidence", DEFAULT_INITIAL_CONFIDENCE))
            description = str(response.assessment.get("description") or fallback_description)
            caveats = [str(c) for c in response.assessment.get("caveats", []) if c]
            return min(cap, max(0.0, raw)), description, caveats, False
        except (AdvisorFailure, TypeError, ValueError) as e:
            logger.warning(f"Pattern assessment fell back to default confidence: {e}")
            return min(cap, DEFAULT_INITIAL_CONFIDENCE), fallback_description, [], True

    async def mine_patterns(
        self,
        recent: list[LedgerEntry],
        budget: UsageBudget | None = None,
        result: LearningCycleResult | None = None,
    ) -> list[Pattern]:
        """
        Extract new success patterns.

        Candidates come from successful outcomes whose improvement clears
        the significance floor; a factor combination becomes a pattern once
        it recurs in at least `min_pattern_examples` of them.
        """
        resolved = [e for e in recent if e.outcome is not None]
        candidates = [
            e for e in resolved
            if e.outcome.success and e.outcome.improvement > self.settings.success_improvement_floor
        ]
        groups = self._candidate_groups(candidates, self.settings.min_pattern_examples)
        known = {p.condition_key for p in self.list_patterns(include_retired=True)}

        created = []
        for conditions, examples in groups:
            if len(created) >= MAX_NEW_PATTERNS_PER_CYCLE:
                break
            if conditions_key(conditions) in known:
                continue
            await asyncio.sleep(0)

            confidence, description, _, fell_back = await self._assess(
                conditions, examples, failure=False, budget=budget
            )
            if result is not None and fell_back:
                result.advisor_fallbacks += 1

            evidence = [e for e in resolved if matches(conditions, recommendation_factors(e.recommendation))]
            successes = sum(1 for e in evidence if e.outcome.success)
            pattern = Pattern(
                id=f"pat_{secrets.token_hex(5)}",
                name=_pattern_name(conditions),
                description=description,
                conditions=conditions,
                confidence=confidence,
                success_rate=successes / len(evidence),
                times_applied=len(evidence),
                last_updated=_now(),
                supporting_examples={e.recommendation.id for e in examples},
                evidence_ids={e.recommendation.id for e in evidence},
                successes=successes,
                average_improvement=_mean([e.improvement for e in evidence]),
            )
            self._save(pattern)
            created.append(pattern)
            logger.info(
                f"New pattern '{pattern.name}': {len(examples)} examples, "
                f"confidence {pattern.confidence:.0f}"
            )

        return created

    async def mine_anti_patterns(
        self,
        recent: list[LedgerEntry],
        budget: UsageBudget | None = None,
        result: LearningCycleResult | None = None,
    ) -> list[AntiPattern]:
        """Extract new anti-patterns from failed or clearly negative outcomes."""
        resolved = [e for e in recent if e.outcome is not None]
        candidates = [
            e for e in resolved
            if not e.outcome.success or e.outcome.improvement < self.settings.failure_improvement_floor
        ]
        groups = self._candidate_groups(candidates, self.settings.min_anti_pattern_examples)
        known = {p.condition_key for p in self.list_anti_patterns(include_retired=True)}

        created = []
        for conditions, examples in groups:
            if len(created) >= MAX_NEW_PATTERNS_PER_CYCLE:
                break
            if conditions_key(conditions) in known:
                continue
            await asyncio.sleep(0)

            confidence, description, caveats, fell_back = await self._assess(
                conditions, examples, failure=True, budget=budget
            )
            if result is not None and fell_back:
                result.advisor_fallbacks += 1

            evidence = [e for e in resolved if matches(conditions, recommendation_factors(e.recommendation))]
            confirmations = sum(1 for e in evidence if not e.outcome.success)
            average_improvement = _mean([e.improvement for e in evidence])
            failure_rate = confirmations / len(evidence)

            anti = AntiPattern(
                id=f"anti_{secrets.token_hex(5)}",
                name=_pattern_name(conditions, failure=True),
                description=description,
                conditions=conditions,
                confidence=confidence,
                success_rate=1 - failure_rate,
                times_applied=len(evidence),
                last_updated=_now(),
                supporting_examples={e.recommendation.id for e in examples},
                evidence_ids={e.recommendation.id for e in evidence},
                successes=confirmations,
                average_improvement=average_improvement,
                warning_signs=[c.describe() for c in conditions],
                avoidance_rules=caveats or [
                    f"Require extra confirmation before acting when {' and '.join(c.describe() for c in conditions)}"
                ],
                failure_rate=failure_rate,
                cost=max(0.0, -average_improvement),
            )
            self._save(anti)
            created.append(anti)
            logger.info(
                f"New anti-pattern '{anti.name}': {len(examples)} examples, "
                f"cost {anti.cost:.1f} pts"
            )

        return created

    # ============ Confidence maintenance ============

    def update_confidence(self, pattern: Pattern, matching: list[LedgerEntry]) -> Pattern:
        """
        Merge new evidence into a pattern.

        new confidence = (prior * prior_usage + batch_rate * 100 * n) / (prior_usage + n)

        Only resolved recommendations not already counted are merged, so
        the result is a running weighted mean over all evidence ever
        seen. Returns an updated copy; the input is not modified.
        """
        fresh = [
            e for e in matching
            if e.outcome is not None and e.recommendation.id not in pattern.evidence_ids
        ]
        if not fresh:
            return pattern

        anti = isinstance(pattern, AntiPattern)
        hits = sum(1 for e in fresh if (not e.outcome.success if anti else e.outcome.success))
        n = len(fresh)
        prior_usage = pattern.times_applied
        batch_rate = hits / n

        updated = copy.deepcopy(pattern)
        total = prior_usage + n
        merged = (pattern.confidence * prior_usage + batch_rate * 100 * n) / total
        updated.confidence = max(0.0, min(100.0, merged))
        updated.times_applied = total
        updated.successes = pattern.successes + hits
        updated.average_improvement = (
            pattern.average_improvement * prior_usage + sum(e.improvement for e in fresh)
        ) / total
        updated.evidence_ids = pattern.evidence_ids | {e.recommendation.id for e in fresh}
        updated.corroborated = True
        updated.last_updated = _now()

        if anti:
            updated.failure_rate = updated.successes / total
            updated.success_rate = 1 - updated.failure_rate
            updated.cost = max(0.0, -updated.average_improvement)
        else:
            updated.success_rate = updated.successes / total

        return updated

    def _should_retire(self, pattern: Pattern) -> bool:
        if pattern.times_applied < self.settings.retire_min_applications:
            return False
        if isinstance(pattern, AntiPattern):
            return pattern.failure_rate < self.settings.retire_success_rate
        return pattern.success_rate < self.settings.retire_success_rate

    async def corroborate(
        self,
        recent: list[LedgerEntry],
        result: LearningCycleResult | None = None,
    ) -> int:
        """Merge recent evidence into every active (anti-)pattern; retire the ones that stopped working."""
        updated_count = 0
        known: list[Pattern] = [*self.list_patterns(), *self.list_anti_patterns()]

        for pattern in known:
            await asyncio.sleep(0)
            matching = [
                e for e in recent
                if matches(pattern.conditions, recommendation_factors(e.recommendation))
            ]
            updated = self.update_confidence(pattern, matching)
            if updated is pattern:
                continue

            if self._should_retire(updated):
                updated.status = "retired"
                logger.info(
                    f"Retired '{updated.name}' after {updated.times_applied} applications "
                    f"(success rate {updated.success_rate:.0%})"
                )
                if result is not None:
                    result.patterns_retired.append(updated.name)

            self._save(updated)
            updated_count += 1

        return updated_count

    # ============ Strategy profile ============

    def list_profiles(self) -> list[StrategyProfile]:
        profiles = [StrategyProfile.from_dict(d) for d in self._profiles.snapshot()]
        return sorted(profiles, key=lambda p: p.version)

    def active_profile(self) -> StrategyProfile:
        """Newest profile version, or the default profile if none was evolved yet."""
        profiles = self.list_profiles()
        return profiles[-1] if profiles else StrategyProfile()

    def _append_profile(self, profile: StrategyProfile) -> StrategyProfile:
        profile.version = self.active_profile().version + 1
        profile.created_at = _now()
        self._profiles.put(profile.id, profile.to_dict())
        return profile

    def rollback_strategy(self, version: int) -> StrategyProfile:
        """Re-activate an earlier profile by appending a copy of it as the newest version."""
        target = next((p for p in self.list_profiles() if p.version == version), None)
        if target is None:
            raise NotFound(f"Strategy profile version not found: {version}")

        restored = copy.deepcopy(target)
        restored.reason = f"rollback to v{version}"
        restored = self._append_profile(restored)
        logger.info(f"Strategy rolled back to v{version} (now v{restored.version})")
        return restored

    def _adjust_thresholds(
        self,
        thresholds: dict[str, float],
        mean_confidence: float,
        success_rate: float,
    ) -> dict[str, float]:
        # Overconfident recent decisions raise the bar, underconfident ones lower it
        gap = mean_confidence - success_rate
        shift = max(-MAX_THRESHOLD_SHIFT, min(MAX_THRESHOLD_SHIFT, gap / 2))

        adjusted = {}
        for level, (low, high) in THRESHOLD_BOUNDS.items():
            adjusted[level] = max(low, min(high, thresholds.get(level, low) + shift))

        adjusted["medium"] = min(THRESHOLD_BOUNDS["medium"][1], max(adjusted["medium"], adjusted["low"] + MIN_THRESHOLD_GAP))
        adjusted["high"] = min(THRESHOLD_BOUNDS["high"][1], max(adjusted["high"], adjusted["medium"] + MIN_THRESHOLD_GAP))
        return {k: round(v, 2) for k, v in adjusted.items()}

    def evolve_strategy(
        self,
        recent: list[LedgerEntry],
        risk_tolerance_hint: str | None = None,
    ) -> StrategyProfile | None:
        """
        Produce and persist a new strategy profile when performance slips.

        Triggers only when the recent success rate is below the evolution
        threshold or mean improvement is below the minimum points gain.

        Args:
            recent: Recent ledger entries
            risk_tolerance_hint: Phase preset's risk tolerance, used unless
                results are poor enough to force a conservative stance

        Returns:
            The new active profile, or None when no evolution was needed
        """
        resolved = [e for e in recent if e.outcome is not None]
        if not resolved:
            return None

        success_rate = sum(1 for e in resolved if e.outcome.success) / len(resolved) * 100
        mean_improvement = _mean([e.improvement for e in resolved])
        if (
            success_rate >= self.settings.evolution_success_rate
            and mean_improvement >= self.settings.evolution_min_improvement
        ):
            return None

        current = self.active_profile()
        patterns = self.list_patterns()
        anti_patterns = self.list_anti_patterns()

        active_ids = {p.id for p in patterns}
        pattern_weights = {k: v for k, v in current.pattern_weights.items() if k in active_ids}
        for pattern in patterns:
            if pattern.confidence > HIGH_CONFIDENCE_PATTERN:
                prior = pattern_weights.get(pattern.id, DEFAULT_PATTERN_WEIGHT)
                pattern_weights[pattern.id] = round(min(1.0, prior * PATTERN_AMPLIFY_FACTOR), 4)

        implicated = {
            FACTOR_GROUPS.get(c.factor, "situational_factors")
            for anti in anti_patterns
            for c in anti.conditions
        }
        factor_weights = dict(current.decision_factor_weights)
        for group in implicated:
            if group in factor_weights:
                factor_weights[group] *= FACTOR_DAMPEN_FACTOR

        if success_rate < CONSERVATIVE_SUCCESS_RATE:
            risk = "conservative"
        else:
            risk = risk_tolerance_hint or "balanced"

        by_kind: dict[str, list[LedgerEntry]] = defaultdict(list)
        for entry in resolved:
            by_kind[entry.recommendation.kind].append(entry)
        kind_rates = {
            kind: sum(1 for e in group if e.outcome.success) / len(group)
            for kind, group in by_kind.items()
        }

        profile = StrategyProfile(
            reason=f"success rate {success_rate:.0f}%, mean improvement {mean_improvement:+.1f} pts",
            confidence_thresholds=self._adjust_thresholds(
                current.confidence_thresholds,
                mean_confidence=_mean([e.recommendation.confidence for e in resolved]),
                success_rate=success_rate,
            ),
            risk_tolerance=risk,  # type: ignore
            decision_factor_weights=_normalize_weights(factor_weights),
            pattern_weights=pattern_weights,
            strengths=sorted(f"{k}_decisions" for k, r in kind_rates.items() if r > STRENGTH_SUCCESS_RATE),
            weaknesses=sorted(f"{k}_decisions" for k, r in kind_rates.items() if r < WEAKNESS_SUCCESS_RATE),
        )
        profile = self._append_profile(profile)

        logger.info(
            f"Strategy evolved to v{profile.version} ({profile.reason}); "
            f"thresholds {profile.confidence_thresholds}, risk {profile.risk_tolerance}"
        )
        return profile

    # ============ Decision enhancement ============

    def enhance_decision(
        self,
        confidence: float,
        context: dict[str, Any],
        profile: StrategyProfile | None = None,
    ) -> Enhancement:
        """
        Apply learned patterns to a pending decision.

        Every high-confidence pattern matching the context boosts the
        decision's confidence (scaled by its profile weight); every
        matching anti-pattern applies a fixed penalty and a warning.
        Reads patterns only, never writes them.

        Args:
            confidence: Decision confidence, 0.0-1.0
            context: Decision context factors
            profile: Strategy profile (defaults to the active one)
        """
        profile = profile or self.active_profile()
        applied, warnings, rationale = [], [], []
        adjustment = 0.0

        for pattern in self.list_patterns():
            if pattern.confidence <= HIGH_CONFIDENCE_PATTERN:
                continue
            if not matches(pattern.conditions, context):
                continue
            weight = profile.pattern_weights.get(pattern.id, DEFAULT_PATTERN_WEIGHT) / DEFAULT_PATTERN_WEIGHT
            adjustment += pattern.confidence / 100 * PATTERN_BOOST * weight
            applied.append(pattern.name)
            rationale.append(f"{pattern.name}: {pattern.description}")

        for anti in self.list_anti_patterns():
            if not matches(anti.conditions, context):
                continue
            adjustment -= ANTI_PATTERN_PENALTY
            sign = anti.warning_signs[0] if anti.warning_signs else anti.description
            warnings.append(f"{anti.name} (costs ~{anti.cost:.1f} pts): {sign}")

        enhanced = max(0.0, min(1.0, confidence + adjustment))
        return Enhancement(
            original_confidence=confidence,
            confidence=enhanced,
            applied_patterns=applied,
            warnings=warnings,
            rationale=rationale,
        )

    # ============ Full cycle ============

    async def learn(
        self,
        ledger: RecommendationLedger,
        budget: UsageBudget | None = None,
        now: datetime | None = None,
        risk_tolerance_hint: str | None = None,
    ) -> LearningCycleResult:
        """
        Run one learning cycle over the ledger's recent history.

        Skips when fewer than `min_decisions` resolved recommendations
        fall inside the lookback window.
        """
        recent = ledger.recent_with_outcomes(days=self.settings.lookback_days, now=now)
        result = LearningCycleResult(decisions_analyzed=len(recent))

        if len(recent) < self.settings.min_decisions:
            result.skipped_reason = (
                f"Only {len(recent)} resolved decisions in the last "
                f"{self.settings.lookback_days} days (need {self.settings.min_decisions})"
            )
            logger.info(f"Learning cycle skipped: {result.skipped_reason}")
            return result

        result.patterns_updated = await self.corroborate(recent, result)

        patterns = await self.mine_patterns(recent, budget=budget, result=result)
        result.patterns_found = [p.name for p in patterns]

        anti_patterns = await self.mine_anti_patterns(recent, budget=budget, result=result)
        result.anti_patterns_found = [p.name for p in anti_patterns]

        profile = self.evolve_strategy(recent, risk_tolerance_hint=risk_tolerance_hint)
        if profile is not None:
            result.strategy_version = profile.version

        logger.info(
            f"Learning cycle: {len(recent)} decisions, {len(patterns)} new patterns, "
            f"{len(anti_patterns)} new anti-patterns, {result.patterns_updated} updated, "
            f"{len(result.patterns_retired)} retired"
        )
        return result
