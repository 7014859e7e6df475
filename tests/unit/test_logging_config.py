"""Tests for the structured logging setup."""

import json
import logging

import pytest
import structlog

from rebalancer.config import LoggingConfig
from rebalancer.logging_config import (
    DECISION_LOGGER_NAME,
    TRADE_LOGGER_NAME,
    configure_logging,
    get_decision_logger,
    get_trade_logger,
)


@pytest.fixture
def log_config(tmp_path):
    root_level = logging.getLogger().level

    yield LoggingConfig(
        level="DEBUG",
        app_log=str(tmp_path / "logs" / "app.log"),
        trade_log=str(tmp_path / "logs" / "trades.log"),
        decision_log=str(tmp_path / "logs" / "decisions.log"),
    )

    for name in (None, TRADE_LOGGER_NAME, DECISION_LOGGER_NAME):
        stdlib_logger = logging.getLogger(name)
        for handler in list(stdlib_logger.handlers):
            if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
                stdlib_logger.removeHandler(handler)
                handler.close()
    logging.getLogger().setLevel(root_level)
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_creates_log_directories(self, log_config, tmp_path):
        configure_logging(log_config)

        assert (tmp_path / "logs").is_dir()

    def test_streams_write_json_lines(self, log_config, tmp_path):
        configure_logging(log_config)

        get_trade_logger().info("ledger.transaction_recorded", tx_id="abc")
        get_decision_logger().info("plan.built", swaps=[])
        for handler in logging.getLogger().handlers + logging.getLogger(TRADE_LOGGER_NAME).handlers:
            handler.flush()

        trade_lines = (tmp_path / "logs" / "trades.log").read_text().splitlines()
        decision_lines = (tmp_path / "logs" / "decisions.log").read_text().splitlines()
        assert json.loads(trade_lines[-1])["event"] == "ledger.transaction_recorded"
        assert json.loads(decision_lines[-1])["event"] == "plan.built"

        # Stream records also reach the app log
        app_events = [json.loads(line)["event"] for line in (tmp_path / "logs" / "app.log").read_text().splitlines()]
        assert "ledger.transaction_recorded" in app_events

    def test_silences_http_client_loggers(self, log_config):
        configure_logging(log_config)

        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger().level == logging.DEBUG
