"""
Action executors.

The engine never talks to a fantasy platform directly; it hands each
action to an ActionExecutor. The default executor only logs.
"""
import logging
from typing import Protocol

from .models import ActionResult, Decision, DecisionAction


logger = logging.getLogger(__name__)


class ActionExecutor(Protocol):
    async def execute(self, action: DecisionAction, decision: Decision) -> ActionResult:
        ...


class DryRunExecutor:
    """Logs the action and reports success without touching any roster."""

    def __init__(self):
        self.executed: list[DecisionAction] = []

    async def execute(self, action: DecisionAction, decision: Decision) -> ActionResult:
        leagues = ", ".join(sorted(decision.affected_subjects))
        logger.info(f"[DRY RUN] {action.describe()} in leagues: {leagues}")
        self.executed.append(action)
        return ActionResult(action=action, success=True, message="dry run")
