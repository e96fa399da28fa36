"""
Cycle Execution Logger

Tracks each decision/learning/rollup run and persists a run record, so
every cycle summary lists successes, degradations and hard failures
separately.
"""
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Generator
from uuid import uuid4

from autopilot.errors import PersistenceFailure
from autopilot.storage import Collection, RecordStore, CYCLE_RUNS, get_record_store


logger = logging.getLogger(__name__)

MAX_STORED_ERRORS = 10


class CycleType(str, Enum):
    """Types of cycle runs."""
    DECISION_CYCLE = "decision_cycle"
    EVENT_PROCESSING = "event_processing"
    LEARNING_CYCLE = "learning_cycle"
    SEASONAL_ROLLUP = "seasonal_rollup"


class ExecutionStatus(str, Enum):
    """Execution status values."""
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


@dataclass
class CycleContext:
    """Progress and summary of one cycle run."""
    id: str
    cycle_type: CycleType
    week: int | None = None
    start_time: float = field(default_factory=time.time)
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    successes: list[str] = field(default_factory=list)
    degradations: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    metadata: dict = field(default_factory=dict)

    def record_success(self, item_id: str) -> None:
        """Record a successfully processed item (league, event, ...)."""
        self.successes.append(item_id)

    def record_degradation(self, item_id: str, message: str) -> None:
        """Record a partial result: the item was processed with reduced inputs."""
        self.degradations.append({"item_id": item_id, "message": message})

    def record_failure(
        self,
        item_id: str | None = None,
        error: str | None = None,
        details: dict | None = None,
    ) -> None:
        """Record a failed item processing."""
        self.errors.append({
            "item_id": item_id,
            "error": error,
            "details": details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @property
    def successful_items(self) -> int:
        return len(self.successes)

    @property
    def failed_items(self) -> int:
        return len(self.errors)

    @property
    def total_items(self) -> int:
        return self.successful_items + self.failed_items

    @property
    def success_rate(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.successful_items / self.total_items

    @property
    def duration_seconds(self) -> int:
        return int(time.time() - self.start_time)

    @property
    def warnings(self) -> list[str]:
        """Human-readable degradations and failures."""
        lines = [f"{d['item_id']}: {d['message']}" for d in self.degradations]
        lines.extend(f"{e['item_id']}: {e['error']}" for e in self.errors)
        return lines

    def final_status(self) -> ExecutionStatus:
        if self.failed_items == 0 and self.successful_items > 0:
            return ExecutionStatus.SUCCESS
        if self.successful_items > 0 and self.failed_items > 0:
            return ExecutionStatus.PARTIAL_SUCCESS
        if self.successful_items == 0 and self.failed_items > 0:
            return ExecutionStatus.FAILED
        # Nothing processed - partial to distinguish from real success
        return ExecutionStatus.PARTIAL_SUCCESS

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cycle_type": self.cycle_type.value,
            "week": self.week,
            "status": self.status.value,
            "started_at": self.started_at,
            "duration_seconds": self.duration_seconds,
            "successes": self.successes,
            "degradations": self.degradations,
            "errors": self.errors[:MAX_STORED_ERRORS],
            "total_items": self.total_items,
            "successful_items": self.successful_items,
            "failed_items": self.failed_items,
            "metadata": self.metadata,
        }


class CycleLogger:
    """
    Persists cycle run records.

    Usage:
        cycle_logger = CycleLogger(store)
        with cycle_logger.track(CycleType.DECISION_CYCLE, week=5) as ctx:
            for league in leagues:
                try:
                    process(league)
                    ctx.record_success(league.league_id)
                except DataUnavailable as e:
                    ctx.record_failure(league.league_id, str(e))
    """

    def __init__(self, store: RecordStore | None = None):
        self._runs = Collection(store or get_record_store(), CYCLE_RUNS)

    def start(self, cycle_type: CycleType | str, week: int | None = None) -> CycleContext:
        if isinstance(cycle_type, str):
            cycle_type = CycleType(cycle_type)

        ctx = CycleContext(id=str(uuid4()), cycle_type=cycle_type, week=week)
        self._close_stale_runs(cycle_type)
        self._save(ctx)
        return ctx

    def finish(self, ctx: CycleContext, error: str | None = None) -> None:
        if error:
            ctx.errors.append({
                "item_id": None,
                "error": error,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
            ctx.status = ExecutionStatus.FAILED
        else:
            ctx.status = ctx.final_status()
        self._save(ctx)

        logger.info(
            f"{ctx.cycle_type.value} {ctx.id} finished: {ctx.status.value} "
            f"({ctx.successful_items} ok, {len(ctx.degradations)} degraded, "
            f"{ctx.failed_items} failed, {ctx.duration_seconds}s)"
        )

    @contextmanager
    def track(
        self,
        cycle_type: CycleType | str,
        week: int | None = None,
    ) -> Generator[CycleContext, None, None]:
        """Context manager for tracking a cycle run."""
        ctx = self.start(cycle_type, week)
        try:
            yield ctx
        except Exception as e:
            self.finish(ctx, error=f"{type(e).__name__}: {e}")
            raise
        self.finish(ctx)

    def _save(self, ctx: CycleContext) -> None:
        # A lost run record must not fail the cycle itself
        try:
            self._runs.put(ctx.id, ctx.to_dict())
        except PersistenceFailure as e:
            logger.error(f"Failed to persist cycle run {ctx.id}: {e}")

    def _close_stale_runs(self, cycle_type: CycleType) -> None:
        """Mark runs left 'running' by a crashed process as failed."""
        stale = {}
        for record in self._runs.snapshot():
            if record.get("cycle_type") == cycle_type.value and record.get("status") == ExecutionStatus.RUNNING.value:
                record["status"] = ExecutionStatus.FAILED.value
                record.setdefault("errors", []).append({
                    "item_id": None,
                    "error": "Replaced by new run (previous run did not complete)",
                })
                stale[record["id"]] = record
        if stale:
            try:
                self._runs.put_many(stale)
            except PersistenceFailure as e:
                logger.error(f"Failed to close stale cycle runs: {e}")

    def recent_runs(self, limit: int = 20) -> list[dict]:
        runs = sorted(self._runs.snapshot(), key=lambda r: r.get("started_at", ""), reverse=True)
        return runs[:limit]

    def recent_failures(self, limit: int = 20) -> list[dict]:
        return [
            r for r in self.recent_runs(limit=len(self._runs))
            if r.get("status") in (ExecutionStatus.FAILED.value, ExecutionStatus.PARTIAL_SUCCESS.value)
        ][:limit]
