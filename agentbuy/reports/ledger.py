"""Versioned agent reports with an append-only edit history.

The history is the record of what amount a requester was shown at any point
in time: entries are only ever appended, never rewritten or dropped.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog

from agentbuy.errors import InvalidTransition, NotFoundError, ValidationError
from agentbuy.orders.models import (
    AgentReport,
    EditHistoryEntry,
    OrderStatus,
    ReportDraft,
    utc_now,
)
from agentbuy.orders.store import OrderStore
from agentbuy.pricing.calculator import positive_decimal

ReportKey = tuple[str, Optional[str]]


class ReportLedger:
    def __init__(self, store: OrderStore) -> None:
        self._store = store
        self._reports: dict[ReportKey, AgentReport] = {}
        self._lock = threading.RLock()
        self._log = structlog.get_logger(__name__)

    def submit(
        self,
        order_id: str,
        draft: ReportDraft,
        item_id: str | None = None,
        now: datetime | None = None,
    ) -> AgentReport:
        """Create version 1 of a report. The caller has already checked the order's status."""
        now = now or utc_now()
        report = AgentReport(
            order_id=order_id,
            item_id=item_id,
            user_amount=positive_decimal(draft.user_amount, "user_amount"),
            payment_link=draft.payment_link,
            additional_media=list(draft.additional_media),
            additional_description=draft.additional_description,
            quantity=_quantity(draft.quantity),
            item_amounts=_breakdown(draft.item_amounts),
            submitted_at=now,
            updated_at=now,
        )
        if report.item_amounts and sum(report.item_amounts.values()) != report.user_amount:
            raise ValidationError(
                f"item_amounts sum to {sum(report.item_amounts.values())}, "
                f"expected user_amount {report.user_amount}"
            )
        key = (order_id, item_id)
        with self._lock:
            if key in self._reports:
                raise ValidationError(f"Report already submitted for {_label(key)}")
            self._reports[key] = report
        self._log.info(
            "report_submitted",
            order_id=order_id,
            item_id=item_id,
            user_amount=str(report.user_amount),
        )
        return copy.deepcopy(report)

    def update(
        self,
        order_id: str,
        *,
        item_id: str | None = None,
        user_amount: Any = None,
        edit_reason: str | None = None,
        payment_link: str | None = None,
        additional_media: list[str] | None = None,
        additional_description: str | None = None,
        quantity: int | None = None,
        actor_role: Any = None,
        now: datetime | None = None,
    ) -> AgentReport:
        """Edit a live report while the order still awaits an unverified payment.

        The order's status is re-read under its lock so a concurrent
        verification cannot slip in between the check and the write.
        """
        fields = (user_amount, payment_link, additional_media, additional_description, quantity)
        if all(value is None for value in fields):
            raise ValidationError("Report update changes nothing")
        new_amount = positive_decimal(user_amount, "user_amount") if user_amount is not None else None
        new_quantity = _quantity(quantity)
        now = now or utc_now()
        with self._store.locked(order_id) as order:
            if order.status != OrderStatus.AWAITING_PAYMENT or order.user_payment_verified:
                raise InvalidTransition(
                    order.status,
                    OrderStatus.AWAITING_PAYMENT,
                    actor_role,
                    "update_report",
                    order_id,
                )
            with self._lock:
                report = self._require((order_id, item_id))
                previous = report.user_amount
                if new_amount is not None and report.item_amounts and new_amount != previous:
                    # A re-priced total no longer matches the old breakdown.
                    report.item_amounts = {}
                report.edit_history.append(
                    EditHistoryEntry(
                        edited_at=now,
                        previous_amount=previous,
                        new_amount=new_amount if new_amount is not None else previous,
                        reason=edit_reason,
                    )
                )
                if new_amount is not None:
                    report.user_amount = new_amount
                if payment_link is not None:
                    report.payment_link = payment_link
                if additional_media is not None:
                    report.additional_media = list(additional_media)
                if additional_description is not None:
                    report.additional_description = additional_description
                if new_quantity is not None:
                    report.quantity = new_quantity
                report.updated_at = now
                result = copy.deepcopy(report)
        self._log.info(
            "report_edited",
            order_id=order_id,
            item_id=item_id,
            previous_amount=str(previous),
            new_amount=str(result.user_amount),
            version=result.version,
        )
        return result

    def remove_item_amount(
        self,
        order_id: str,
        item_id: str,
        now: datetime | None = None,
    ) -> AgentReport:
        """Drop one item from a single report's breakdown and lower its total.

        Callers hold the order's lock and have already validated the removal.
        """
        now = now or utc_now()
        with self._lock:
            report = self._require((order_id, None))
            if item_id not in report.item_amounts:
                raise ValidationError(
                    f"Report for {order_id} has no per-item amount for {item_id}; "
                    "the agent must re-price the bundle"
                )
            removed_amount = report.item_amounts[item_id]
            new_amount = report.user_amount - removed_amount
            if new_amount <= 0:
                raise ValidationError("Removing the item would leave a non-positive total")
            report.edit_history.append(
                EditHistoryEntry(
                    edited_at=now,
                    previous_amount=report.user_amount,
                    new_amount=new_amount,
                    reason=f"item removed: {item_id}",
                )
            )
            del report.item_amounts[item_id]
            report.user_amount = new_amount
            report.updated_at = now
            return copy.deepcopy(report)

    def get(self, order_id: str, item_id: str | None = None) -> AgentReport | None:
        with self._lock:
            report = self._reports.get((order_id, item_id))
            return copy.deepcopy(report) if report is not None else None

    def has_report(self, order_id: str, item_id: str | None = None) -> bool:
        with self._lock:
            return (order_id, item_id) in self._reports

    def reports_for(self, order_id: str) -> list[AgentReport]:
        """All reports filed against an order, the order-level report first."""
        with self._lock:
            found = [r for (oid, _), r in self._reports.items() if oid == order_id]
            found.sort(key=lambda r: (r.item_id is not None, r.item_id or ""))
            return copy.deepcopy(found)

    def _require(self, key: ReportKey) -> AgentReport:
        report = self._reports.get(key)
        if report is None:
            raise NotFoundError("report", _label(key))
        return report


def _label(key: ReportKey) -> str:
    order_id, item_id = key
    return f"{order_id}/{item_id}" if item_id else order_id


def _quantity(value: int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"quantity must be a positive integer, got {value!r}")
    return value


def _breakdown(amounts: dict[str, Any]) -> dict[str, Decimal]:
    return {
        item_id: positive_decimal(amount, f"item_amounts[{item_id}]")
        for item_id, amount in amounts.items()
    }
