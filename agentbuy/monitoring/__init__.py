"""Logging, event console, order CSV log and Prometheus metrics."""

from agentbuy.monitoring.event_console import EventConsoleLogger
from agentbuy.monitoring.logging import configure_logging
from agentbuy.monitoring.metrics import Metrics
from agentbuy.monitoring.order_log import OrderLogger

__all__ = ["EventConsoleLogger", "Metrics", "OrderLogger", "configure_logging"]
