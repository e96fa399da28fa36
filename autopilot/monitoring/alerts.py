"""
Alert notification system.

Escalation alerts from the decision engine and health alerts from
decision cycles both go through a NotificationSink. Delivery problems
are logged; they never fail the cycle that raised the alert.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import httpx

from .metrics import CycleMetrics

logger = logging.getLogger(__name__)


class AlertLevel(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# Health thresholds for a single cycle
LEAGUE_FAILURE_RATE_THRESHOLD = 0.2  # 20%
ADVISOR_FALLBACK_RATE_THRESHOLD = 0.5  # 50%
CYCLE_DURATION_THRESHOLD_SECONDS = 1800  # 30 minutes

WEBHOOK_TIMEOUT_SECONDS = 10.0


@dataclass
class EscalationAlert:
    """Payload handed to a notification sink."""
    level: AlertLevel
    title: str
    message: str
    actions: list[str] = field(default_factory=list)
    deadline: str | None = None

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "title": self.title,
            "message": self.message,
            "actions": self.actions,
            "deadline": self.deadline,
        }


class NotificationSink(Protocol):
    """Anything that can deliver an alert."""

    async def notify(self, alert: EscalationAlert) -> bool:
        ...


_LOG_LEVELS = {
    AlertLevel.INFO: logging.INFO,
    AlertLevel.WARNING: logging.WARNING,
    AlertLevel.CRITICAL: logging.CRITICAL,
}


def send_alert(message: str, level: AlertLevel) -> None:
    """Log an alert at the matching log level, tagged `[ALERT:LEVEL]`."""
    logger.log(_LOG_LEVELS[level], f"[ALERT:{level.value.upper()}] {message}")


class LogSink:
    """Default sink: writes alerts to the log."""

    def __init__(self):
        self.sent: list[EscalationAlert] = []

    async def notify(self, alert: EscalationAlert) -> bool:
        body = alert.message
        if alert.actions:
            body += " | actions: " + "; ".join(alert.actions)
        if alert.deadline:
            body += f" | deadline: {alert.deadline}"
        send_alert(f"{alert.title}: {body}", alert.level)
        self.sent.append(alert)
        return True


class WebhookSink:
    """POSTs the alert payload as JSON to a webhook URL."""

    def __init__(self, url: str, timeout: float = WEBHOOK_TIMEOUT_SECONDS, client: httpx.AsyncClient | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def notify(self, alert: EscalationAlert) -> bool:
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=alert.to_dict(), timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=alert.to_dict())
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"Webhook delivery failed for '{alert.title}': {e}")
            return False


def check_cycle_health(metrics: CycleMetrics) -> list[str]:
    """
    Check cycle metrics and return alert messages if thresholds exceeded.

    Args:
        metrics: CycleMetrics instance to check.

    Returns:
        List of alert messages for any threshold violations.
    """
    alerts = []

    if metrics.league_failure_rate > LEAGUE_FAILURE_RATE_THRESHOLD:
        alerts.append(
            f"League failure rate > {LEAGUE_FAILURE_RATE_THRESHOLD * 100:.0f}% "
            f"(actual: {metrics.league_failure_rate * 100:.1f}%)"
        )

    if metrics.advisor_fallback_rate > ADVISOR_FALLBACK_RATE_THRESHOLD:
        alerts.append(
            f"Advisor fallback rate > {ADVISOR_FALLBACK_RATE_THRESHOLD * 100:.0f}% "
            f"(actual: {metrics.advisor_fallback_rate * 100:.1f}%)"
        )

    if metrics.duration_seconds > CYCLE_DURATION_THRESHOLD_SECONDS:
        alerts.append(
            f"Cycle duration > {CYCLE_DURATION_THRESHOLD_SECONDS // 60} minutes "
            f"(actual: {metrics.duration_seconds / 60:.1f} minutes)"
        )

    if metrics.total_leagues > 0 and metrics.successful_leagues == 0:
        alerts.append(f"No league produced data ({metrics.total_leagues} configured)")

    return alerts


async def process_alerts(metrics: CycleMetrics, sink: NotificationSink | None = None) -> list[str]:
    """Check cycle health and deliver a warning alert per violation."""
    sink = sink or LogSink()
    messages = check_cycle_health(metrics)

    for message in messages:
        level = AlertLevel.CRITICAL if message.startswith("No league") else AlertLevel.WARNING
        await sink.notify(EscalationAlert(
            level=level,
            title=f"Cycle {metrics.cycle_id} health",
            message=message,
        ))

    return messages
