"""Pipeline module - service wiring and cycle entry points."""
from autopilot.pipeline.services import AutopilotServices, build_services
from autopilot.pipeline.cycle import (
    build_lineup_draft,
    fallback_lineup_actions,
    load_events,
    record_outcome_entry,
    run_decision_cycle,
    run_learning_cycle,
    run_seasonal_rollup,
)
from autopilot.pipeline.prompts import build_lineup_request

__all__ = [
    "AutopilotServices",
    "build_services",
    "build_lineup_draft",
    "fallback_lineup_actions",
    "load_events",
    "record_outcome_entry",
    "run_decision_cycle",
    "run_learning_cycle",
    "run_seasonal_rollup",
    "build_lineup_request",
]
