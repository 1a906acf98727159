"""Tests for centralized logging."""

import json
import logging
import sys

import pytest

from rollgate.domain.entities.rollout import Rollout, RolloutStage
from rollgate.infrastructure.logging import (
    AUDIT_LOGGER,
    NOISY_LOGGERS,
    JSONFormatter,
    configure_logging,
    log_rollout_record,
)


class TestConfigureLogging:
    def test_default_level(self):
        configure_logging(level=logging.INFO)
        assert logging.getLogger("rollgate").level == logging.INFO

    def test_debug_level(self):
        configure_logging(level=logging.DEBUG)
        assert logging.getLogger("rollgate").level == logging.DEBUG

    def test_json_format(self):
        configure_logging(level=logging.INFO, json_format=True)
        logger = logging.getLogger("rollgate")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_human_format(self):
        configure_logging(level=logging.INFO, json_format=False)
        logger = logging.getLogger("rollgate")
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_replaces_handlers(self):
        configure_logging(level=logging.INFO)
        configure_logging(level=logging.DEBUG)
        assert len(logging.getLogger("rollgate").handlers) == 1

    def test_quiets_third_party_loggers(self):
        configure_logging(level=logging.DEBUG)
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_audit_logger_always_emits_json(self):
        configure_logging(level=logging.ERROR)
        audit = logging.getLogger(AUDIT_LOGGER)
        assert audit.level == logging.INFO
        assert audit.propagate is False
        assert isinstance(audit.handlers[0].formatter, JSONFormatter)


class TestJSONFormatter:
    def test_basic_fields(self):
        record = logging.LogRecord("rollgate.test", logging.WARNING, __file__, 1, "hi %s", ("there",), None)
        data = json.loads(JSONFormatter().format(record))
        assert data["level"] == "WARNING"
        assert data["logger"] == "rollgate.test"
        assert data["message"] == "hi there"
        assert "timestamp" in data

    def test_includes_rollout_record(self):
        record = logging.LogRecord("rollgate.audit", logging.INFO, __file__, 1, "done", (), None)
        record.rollout = {"host": "web-1", "status": "SUCCEEDED"}
        data = json.loads(JSONFormatter().format(record))
        assert data["rollout"] == {"host": "web-1", "status": "SUCCEEDED"}

    def test_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "rollgate", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]


class TestRolloutAuditRecord:
    @pytest.mark.asyncio
    async def test_finished_event_logged_as_one_record(self, caplog):
        rollout = Rollout(host="web-1", reference="v2").start_deploy().fail(
            RolloutStage.DEPLOY, "fetch of v2 failed: exit status 128"
        )
        event = rollout.domain_events[-1]

        audit = logging.getLogger(AUDIT_LOGGER)
        previous = audit.propagate
        audit.propagate = True
        try:
            with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER):
                await log_rollout_record(event)
        finally:
            audit.propagate = previous

        records = [r for r in caplog.records if r.name == AUDIT_LOGGER]
        assert len(records) == 1
        assert records[0].rollout["status"] == "FAILED"
        assert records[0].rollout["causes"] == [
            {"stage": "deploy", "cause": "fetch of v2 failed: exit status 128"}
        ]
        assert records[0].getMessage() == f"rollout {rollout.rollout_id} FAILED"
