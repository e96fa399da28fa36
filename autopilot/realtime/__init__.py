"""
Real-Time Decision Engine - urgency-tiered responses to live events.
"""
from .service import DecisionEngine, EventBatchResult
from .executor import ActionExecutor, DryRunExecutor
from .models import (
    SEVERITY_RANK,
    ActionResult,
    Decision,
    DecisionAction,
    Event,
)

__all__ = [
    "DecisionEngine",
    "EventBatchResult",
    "ActionExecutor",
    "DryRunExecutor",
    "SEVERITY_RANK",
    "ActionResult",
    "Decision",
    "DecisionAction",
    "Event",
]
