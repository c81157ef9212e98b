"""Structured logging configuration."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

import structlog

from agentbuy.config.settings import MonitoringConfig


def _error_file_handler(logs_path: str, monitoring: MonitoringConfig | None) -> logging.Handler:
    log_dir = Path(logs_path)
    log_dir.mkdir(parents=True, exist_ok=True)
    config = monitoring or MonitoringConfig()
    handler = RotatingFileHandler(
        log_dir / "errors.log",
        maxBytes=config.error_log_max_bytes,
        backupCount=config.error_log_backup_count,
        encoding="utf-8",
    )
    # Rejected calls log at warning; only subscriber and invariant failures land here.
    handler.setLevel(logging.ERROR)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def configure_logging(
    log_level: str = "INFO",
    logs_path: str | None = None,
    monitoring: MonitoringConfig | None = None,
) -> None:
    """Route structlog JSON lines through stdlib logging to stdout and errors.log.

    Callers may bind per-request context (actor, order id) with
    ``structlog.contextvars.bind_contextvars``; it is merged into every line.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )
    if logs_path:
        logging.getLogger().addHandler(_error_file_handler(logs_path, monitoring))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
