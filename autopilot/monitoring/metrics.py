"""
Per-cycle counters, logged as one machine-readable CYCLE_METRICS line
plus a human summary.
"""

import logging
import json
from dataclasses import dataclass, fields
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass
class CycleMetrics:
    cycle_id: str
    start_time: datetime
    end_time: datetime | None
    total_leagues: int
    successful_leagues: int
    failed_leagues: int
    advisor_calls: int = 0
    advisor_fallbacks: int = 0
    recommendations_tracked: int = 0
    decisions_generated: int = 0
    auto_executed: int = 0

    @property
    def duration_seconds(self) -> float:
        # Still-running cycles report zero
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def league_failure_rate(self) -> float:
        return self.failed_leagues / self.total_leagues if self.total_leagues else 0.0

    @property
    def advisor_fallback_rate(self) -> float:
        return self.advisor_fallbacks / self.advisor_calls if self.advisor_calls else 0.0

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["start_time"] = self.start_time.isoformat()
        data["end_time"] = self.end_time.isoformat() if self.end_time else None
        data["duration_seconds"] = self.duration_seconds
        data["league_failure_rate"] = round(self.league_failure_rate, 4)
        data["advisor_fallback_rate"] = round(self.advisor_fallback_rate, 4)
        return data


def record_cycle_metrics(metrics: CycleMetrics) -> None:
    """Emit the metrics line that log aggregators parse, then a readable summary."""
    logger.info(f"CYCLE_METRICS: {json.dumps(metrics.to_dict(), ensure_ascii=False)}")

    summary = (
        f"{metrics.successful_leagues}/{metrics.total_leagues} leagues, "
        f"{metrics.recommendations_tracked} recommendations, "
        f"{metrics.decisions_generated} decisions ({metrics.auto_executed} auto-executed)"
    )
    if metrics.advisor_calls:
        summary += f", advisor fallbacks {metrics.advisor_fallbacks}/{metrics.advisor_calls}"
    logger.info(f"Cycle {metrics.cycle_id} finished in {metrics.duration_seconds:.1f}s: {summary}")
