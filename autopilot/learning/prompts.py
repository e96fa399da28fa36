"""
Advisor requests used by the pattern miner.
"""
from autopilot.advisor import AdvisorRequest
from autopilot.ledger import LedgerEntry
from .models import PatternCondition


PROMPT_VERSION = "v1.0"

MAX_EXAMPLES_IN_PROMPT = 8


def _example_rows(examples: list[LedgerEntry]) -> list[dict]:
    rows = []
    for entry in examples[:MAX_EXAMPLES_IN_PROMPT]:
        rec, outcome = entry.recommendation, entry.outcome
        rows.append({
            "kind": rec.kind,
            "period": rec.period,
            "confidence": rec.confidence,
            "payload": rec.payload,
            "success": outcome.success if outcome else None,
            "actual": outcome.actual_value if outcome else None,
            "projected": outcome.projected_value if outcome else None,
        })
    return rows


def build_pattern_assessment_request(
    conditions: list[PatternCondition],
    examples: list[LedgerEntry],
    failure: bool = False,
) -> AdvisorRequest:
    """Ask the advisor how much to trust a candidate (anti-)pattern."""
    improvements = [e.improvement for e in examples if e.improvement is not None]
    mean_improvement = sum(improvements) / len(improvements) if improvements else 0.0
    label = "failure" if failure else "success"

    context = (
        f"Candidate {label} pattern observed in {len(examples)} recent decisions "
        f"(mean points vs projection: {mean_improvement:+.1f}). "
        f"Conditions: {'; '.join(c.describe() for c in conditions)}. "
        "Rate how likely this pattern is to repeat in future weeks."
    )

    return AdvisorRequest(
        task="pattern_assessment",
        context=context,
        data={
            "pattern_type": label,
            "conditions": [c.to_dict() for c in conditions],
            "examples": _example_rows(examples),
        },
        max_suggestions=0,
    )
