"""Structured logging configuration with multiple output streams."""

import logging
import logging.handlers
from pathlib import Path

import structlog

from rebalancer.config import LoggingConfig

TRADE_LOGGER_NAME = "rebalancer.trades"
DECISION_LOGGER_NAME = "rebalancer.decisions"


def configure_logging(config: LoggingConfig) -> None:
    """Set up structured logging with console + file outputs."""
    # Log directories for every stream
    for log_path in [config.app_log, config.trade_log, config.decision_log]:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)

    # Processors shared by structlog and stdlib records
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    # Route structlog through stdlib handlers
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # JSON lines for the rotating files
    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )

    # Human-readable console output
    console_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=True),
        foreign_pre_chain=shared_processors,
    )

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper()))

    # RPC and price API URLs may carry keys
    for noisy_logger in ["urllib3", "requests"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # App log file handler
    app_handler = logging.handlers.RotatingFileHandler(
        config.app_log,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
    )
    app_handler.setFormatter(json_formatter)
    root_logger.addHandler(app_handler)

    # Ledger entries: one line per transaction append / status change
    _add_stream(TRADE_LOGGER_NAME, config.trade_log, config, json_formatter)
    # Planner output: the swap plan computed for each rebalance
    _add_stream(DECISION_LOGGER_NAME, config.decision_log, config, json_formatter)


def _add_stream(
    name: str,
    path: str,
    config: LoggingConfig,
    formatter: logging.Formatter,
) -> None:
    # Separate logger that still propagates to the app log
    stream_logger = logging.getLogger(name)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
    )
    handler.setFormatter(formatter)
    stream_logger.addHandler(handler)
    stream_logger.propagate = True


def get_trade_logger() -> structlog.stdlib.BoundLogger:
    """Get the ledger-specific logger."""
    return structlog.get_logger(TRADE_LOGGER_NAME)


def get_decision_logger() -> structlog.stdlib.BoundLogger:
    """Get the planner-specific logger."""
    return structlog.get_logger(DECISION_LOGGER_NAME)
