"""
Tests for log formatting and correlation context.
"""
import asyncio
import json
import logging

import pytest

from autopilot.logging_config import (
    JsonFormatter,
    TextFormatter,
    current_context,
    log_context,
    setup_logging,
)


def make_record(msg: str = "Snapshot fetched", **extra) -> logging.LogRecord:
    record = logging.LogRecord("autopilot.pipeline.cycle", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:

    def test_nested_fields_are_restored(self):
        with log_context(cycle_id="decision_cycle_1"):
            with log_context(league="123456"):
                assert current_context() == {"cycle_id": "decision_cycle_1", "league": "123456"}
            assert current_context() == {"cycle_id": "decision_cycle_1"}
        assert current_context() == {}

    def test_unknown_field(self):
        with pytest.raises(ValueError, match="Unknown log context fields"):
            with log_context(player="Bijan Robinson"):
                pass

    @pytest.mark.asyncio
    async def test_concurrent_tasks_keep_their_own_league(self):
        async def tagged(league: str) -> dict:
            with log_context(league=league):
                await asyncio.sleep(0)
                return current_context()

        with log_context(cycle_id="run"):
            results = await asyncio.gather(tagged("A"), tagged("B"))

        assert [r["league"] for r in results] == ["A", "B"]
        assert all(r["cycle_id"] == "run" for r in results)


class TestFormatters:

    def test_text_prefix(self):
        with log_context(cycle_id="run", league="123456"):
            line = TextFormatter().format(make_record())
        assert line.endswith("INFO - [run][123456] Snapshot fetched")

    def test_text_without_context(self):
        line = TextFormatter().format(make_record())
        assert line.endswith("INFO - Snapshot fetched")

    def test_json_entry(self):
        with log_context(cycle_id="run"):
            line = JsonFormatter().format(make_record(league="987654", players=15, roster=object()))

        entry = json.loads(line)
        assert entry["message"] == "Snapshot fetched"
        assert entry["cycle_id"] == "run"
        assert entry["league"] == "987654"
        assert entry["players"] == 15
        assert entry["roster"].startswith("<object")
        assert "lineno" not in entry


class TestSetupLogging:

    def test_file_and_stdout_handlers(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        root = logging.getLogger()
        saved = (root.handlers[:], root.level)

        try:
            setup_logging(log_level="warning", log_dir=tmp_path / "logs")
            assert root.level == logging.WARNING
            assert len(root.handlers) == 2
            assert all(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
            assert list((tmp_path / "logs").glob("autopilot_*.log"))
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved[0]:
                root.addHandler(handler)
            root.setLevel(saved[1])
