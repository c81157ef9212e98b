"""Agent pricing reports."""

from agentbuy.reports.ledger import ReportLedger

__all__ = ["ReportLedger"]
