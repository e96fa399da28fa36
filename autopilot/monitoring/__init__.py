"""
Monitoring and alerting module for Fantasy Autopilot.

Provides cycle metrics, health checks and alert delivery.
"""

from .metrics import CycleMetrics, record_cycle_metrics
from .alerts import (
    AlertLevel,
    EscalationAlert,
    LogSink,
    NotificationSink,
    WebhookSink,
    check_cycle_health,
    process_alerts,
    send_alert,
)

__all__ = [
    "CycleMetrics",
    "record_cycle_metrics",
    "AlertLevel",
    "EscalationAlert",
    "LogSink",
    "NotificationSink",
    "WebhookSink",
    "check_cycle_health",
    "process_alerts",
    "send_alert",
]
