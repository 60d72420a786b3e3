"""Tests for mnemo.core.logging -- JSON log formatting."""

import json
import logging

import pytest

from mnemo.core.logging import StructuredFormatter, configure_logging
from mnemo.pressure.intervention import InterventionTrigger, NullNotifier
from mnemo.pressure.monitor import PressureMonitor
from mnemo.storage.kv import MemoryKVStore


@pytest.fixture
def mnemo_logger():
    logger = logging.getLogger("mnemo")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


class TestStructuredFormatter:
    def test_json_fields(self):
        record = logging.LogRecord(
            "mnemo.working", logging.WARNING, __file__, 10, "saved %d items", (3,), None
        )
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "mnemo.working"
        assert entry["msg"] == "saved 3 items"
        assert entry["ts"].endswith("Z")

    def test_session_id_copied(self):
        record = logging.LogRecord("mnemo", logging.INFO, __file__, 1, "x", (), None)
        record.session_id = "ses_1"
        assert json.loads(StructuredFormatter().format(record))["session_id"] == "ses_1"

    def test_context_fields_only_when_set(self):
        record = logging.LogRecord("mnemo", logging.INFO, __file__, 7, "x", (), None)
        record.pressure_level = "high"
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["pressure_level"] == "high"
        assert "tool" not in entry and "category" not in entry
        assert entry["where"].endswith(":7")

    def test_intervention_log_carries_session(self, caplog):
        monitor = PressureMonitor(MemoryKVStore())
        with caplog.at_level(logging.INFO, logger="mnemo"):
            InterventionTrigger(NullNotifier()).observe(monitor.sample("ses_9", 0.95))
        record = next(r for r in caplog.records if "Intervention sent" in r.getMessage())
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["session_id"] == "ses_9"
        assert entry["pressure_level"] == "high"

    def test_exception(self):
        try:
            raise RuntimeError("bad")
        except RuntimeError:
            import sys

            record = logging.LogRecord("mnemo", logging.ERROR, __file__, 1, "x", (), sys.exc_info())
        entry = json.loads(StructuredFormatter().format(record))
        assert "RuntimeError: bad" in entry["exception"]


class TestConfigureLogging:
    def test_plain_sets_level_only(self, mnemo_logger):
        before = list(mnemo_logger.handlers)
        configure_logging(structured=False, level="DEBUG")
        assert mnemo_logger.level == logging.DEBUG
        assert mnemo_logger.handlers == before

    def test_structured_installs_one_handler(self, mnemo_logger):
        configure_logging(structured=True)
        configure_logging(structured=True)
        ours = [h for h in mnemo_logger.handlers if isinstance(h.formatter, StructuredFormatter)]
        assert len(ours) == 1
        assert mnemo_logger.propagate is False
