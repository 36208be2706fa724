"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from coachctl.config.logging import configure_logging


class TestConfigureLogging:
    def test_levels(self) -> None:
        configure_logging()
        assert logging.getLogger("coachctl").level == logging.WARNING
        configure_logging(verbose=True)
        assert logging.getLogger("coachctl").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_single_handler(self) -> None:
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_json_lines(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_json=True)
        structlog.get_logger("coachctl.test").warning("gate.decided", gate="guardrail")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "gate.decided"
        assert record["gate"] == "guardrail"
        assert record["level"] == "warning"
