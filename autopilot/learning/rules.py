"""
Condition interpreter.

The single place where pattern conditions are evaluated against a
decision context; every component that matches patterns calls in here.
"""
from typing import Any

from autopilot.ledger import Recommendation
from .models import ConditionOperator, PatternCondition


CONFIDENCE_BANDS = (
    (85.0, "high"),
    (70.0, "medium"),
    (0.0, "low"),
)


def confidence_band(confidence: float) -> str:
    """Bucket a 0-100 confidence into low/medium/high."""
    for floor, band in CONFIDENCE_BANDS:
        if confidence >= floor:
            return band
    return "low"


def recommendation_factors(rec: Recommendation) -> dict[str, Any]:
    """Context factors of a tracked recommendation, as seen by the rules."""
    factors = dict(rec.context)
    factors.setdefault("kind", rec.kind)
    factors.setdefault("advisor_used", rec.advisor_used)
    factors.setdefault("confidence", rec.confidence)
    factors.setdefault("confidence_band", confidence_band(rec.confidence))
    factors.setdefault("data_source_count", len(rec.data_sources))
    return factors


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.strip().lower() == expected.strip().lower()
    if isinstance(actual, bool) or isinstance(expected, bool):
        return actual is expected or actual == expected
    left, right = _as_number(actual), _as_number(expected)
    if left is not None and right is not None:
        return left == right
    return actual == expected


def evaluate_condition(condition: PatternCondition, context: dict[str, Any]) -> bool:
    """True when the context satisfies one condition. Missing factors never match."""
    if condition.factor not in context:
        return False
    actual = context[condition.factor]
    op = condition.operator

    if op == ConditionOperator.EQUALS:
        return _equals(actual, condition.value)

    if op in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        left, right = _as_number(actual), _as_number(condition.value)
        if left is None or right is None:
            return False
        return left > right if op == ConditionOperator.GREATER_THAN else left < right

    if op == ConditionOperator.CONTAINS:
        if isinstance(actual, str):
            return str(condition.value).lower() in actual.lower()
        if isinstance(actual, (list, tuple, set, frozenset)):
            return any(_equals(item, condition.value) for item in actual)
        return False

    if op == ConditionOperator.RANGE:
        try:
            low, high = condition.value
        except (TypeError, ValueError):
            return False
        number, low, high = _as_number(actual), _as_number(low), _as_number(high)
        if number is None or low is None or high is None:
            return False
        return low <= number <= high

    return False


def matches(conditions: list[PatternCondition], context: dict[str, Any]) -> bool:
    """A pattern matches when every one of its conditions holds."""
    if not conditions:
        return False
    return all(evaluate_condition(c, context) for c in conditions)


def match_score(conditions: list[PatternCondition], context: dict[str, Any]) -> float:
    """Weighted share of conditions that hold (0.0-1.0)."""
    total = sum(c.weight for c in conditions)
    if total <= 0:
        return 0.0
    return sum(c.weight for c in conditions if evaluate_condition(c, context)) / total
