"""
Tests for cycle metrics, health checks and alert sinks.
"""
import json
import logging
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from autopilot.monitoring import (
    AlertLevel,
    CycleMetrics,
    EscalationAlert,
    LogSink,
    WebhookSink,
    check_cycle_health,
    process_alerts,
    record_cycle_metrics,
)


START = datetime(2025, 10, 5, 12, 0, tzinfo=timezone.utc)


def make_metrics(**kwargs) -> CycleMetrics:
    defaults = dict(
        cycle_id="run_1",
        start_time=START,
        end_time=START + timedelta(minutes=5),
        total_leagues=5,
        successful_leagues=5,
        failed_leagues=0,
        advisor_calls=4,
        advisor_fallbacks=0,
    )
    defaults.update(kwargs)
    return CycleMetrics(**defaults)


def alert(level: AlertLevel = AlertLevel.WARNING) -> EscalationAlert:
    return EscalationAlert(
        level=level,
        title="URGENT: LINEUP CHANGE NEEDED",
        message="Christian McCaffrey ruled out",
        actions=["bench Christian McCaffrey"],
        deadline="2025-10-05T16:30:00+00:00",
    )


# ─── Metrics ───────────────────────────────────────────────


class TestCycleMetrics:

    def test_rates(self):
        metrics = make_metrics(failed_leagues=1, successful_leagues=4, advisor_fallbacks=1)
        assert metrics.league_failure_rate == pytest.approx(0.2)
        assert metrics.advisor_fallback_rate == pytest.approx(0.25)
        assert metrics.duration_seconds == 300.0

    def test_empty_cycle(self):
        metrics = make_metrics(end_time=None, total_leagues=0, successful_leagues=0, advisor_calls=0)
        assert metrics.duration_seconds == 0.0
        assert metrics.league_failure_rate == 0.0
        assert metrics.advisor_fallback_rate == 0.0

    def test_structured_log_line(self, caplog):
        with caplog.at_level(logging.INFO, logger="autopilot.monitoring.metrics"):
            record_cycle_metrics(make_metrics())

        line = next(r.getMessage() for r in caplog.records if r.getMessage().startswith("CYCLE_METRICS: "))
        payload = json.loads(line.removeprefix("CYCLE_METRICS: "))
        assert payload["cycle_id"] == "run_1"
        assert payload["duration_seconds"] == 300.0


# ─── Health checks ─────────────────────────────────────────


class TestCheckCycleHealth:

    def test_healthy_cycle(self):
        assert check_cycle_health(make_metrics()) == []

    def test_failure_rate_at_threshold_is_ok(self):
        metrics = make_metrics(successful_leagues=4, failed_leagues=1)
        assert check_cycle_health(metrics) == []

    def test_league_failures(self):
        [message] = check_cycle_health(make_metrics(successful_leagues=3, failed_leagues=2))
        assert message == "League failure rate > 20% (actual: 40.0%)"

    def test_advisor_fallbacks(self):
        [message] = check_cycle_health(make_metrics(advisor_fallbacks=3))
        assert message.startswith("Advisor fallback rate > 50%")

    def test_slow_cycle(self):
        [message] = check_cycle_health(make_metrics(end_time=START + timedelta(minutes=45)))
        assert message == "Cycle duration > 30 minutes (actual: 45.0 minutes)"

    def test_no_league_data(self):
        messages = check_cycle_health(make_metrics(successful_leagues=0, failed_leagues=5))
        assert "No league produced data (5 configured)" in messages
        assert len(messages) == 2


# ─── Sinks ─────────────────────────────────────────────────


class TestLogSink:

    @pytest.mark.asyncio
    async def test_logs_at_alert_level(self, caplog):
        sink = LogSink()

        with caplog.at_level(logging.INFO, logger="autopilot.monitoring.alerts"):
            delivered = await sink.notify(alert(AlertLevel.CRITICAL))

        assert delivered is True
        assert sink.sent == [alert(AlertLevel.CRITICAL)]
        record = caplog.records[-1]
        assert record.levelno == logging.CRITICAL
        assert record.getMessage().startswith("[ALERT:CRITICAL] URGENT: LINEUP CHANGE NEEDED")
        assert "actions: bench Christian McCaffrey" in record.getMessage()


class TestWebhookSink:

    @pytest.mark.asyncio
    async def test_posts_json_payload(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            sink = WebhookSink("https://hooks.test/alerts", client=client)
            delivered = await sink.notify(alert())

        assert delivered is True
        assert received[0]["level"] == "warning"
        assert received[0]["actions"] == ["bench Christian McCaffrey"]

    @pytest.mark.asyncio
    async def test_server_error_is_not_raised(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))

        async with httpx.AsyncClient(transport=transport) as client:
            delivered = await WebhookSink("https://hooks.test/alerts", client=client).notify(alert())

        assert delivered is False

    @pytest.mark.asyncio
    async def test_connection_error_is_not_raised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            delivered = await WebhookSink("https://hooks.test/alerts", client=client).notify(alert())

        assert delivered is False


class TestProcessAlerts:

    @pytest.mark.asyncio
    async def test_one_alert_per_violation(self):
        sink = LogSink()
        metrics = make_metrics(successful_leagues=0, failed_leagues=5, advisor_fallbacks=4)

        messages = await process_alerts(metrics, sink)

        assert len(messages) == 3
        assert [a.level for a in sink.sent] == [AlertLevel.WARNING, AlertLevel.WARNING, AlertLevel.CRITICAL]
        assert all(a.title == "Cycle run_1 health" for a in sink.sent)

    @pytest.mark.asyncio
    async def test_healthy_cycle_sends_nothing(self):
        sink = LogSink()
        assert await process_alerts(make_metrics(), sink) == []
        assert sink.sent == []
