"""Settlement engine: order lifecycle, report submission and agent payout."""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping, NoReturn, cast
from uuid import uuid4

import structlog

from agentbuy.config.settings import Settings
from agentbuy.errors import (
    AlreadyResolvedError,
    AuthorizationError,
    ConflictError,
    InvalidTransition,
    InvariantViolation,
    MarketplaceError,
    NotFoundError,
    QuotaExceeded,
    ValidationError,
)
from agentbuy.ledger.bus import EventBus, publish_after_commit
from agentbuy.ledger.events import EventType
from agentbuy.limits.engine import OrderLimitEngine
from agentbuy.orders.models import (
    Actor,
    AgentReport,
    AnyOrder,
    BundleItem,
    BundleOrder,
    NewItem,
    Order,
    OrderStatus,
    ReportDraft,
    ReportMode,
    Role,
    utc_now,
)
from agentbuy.orders.store import OrderStore
from agentbuy.orders.visibility import VisibilityPartitioner
from agentbuy.pricing.calculator import (
    bundle_requester_amount,
    positive_decimal,
    requester_amount,
)
from agentbuy.reports.ledger import ReportLedger
from agentbuy.rewards.credit import CreditFormula, credit_formula_from_config
from agentbuy.rewards.ledger import RewardLedger
from agentbuy.settlement import policy
from agentbuy.settlement.transitions import Action, check_status

if TYPE_CHECKING:
    from agentbuy.monitoring.metrics import Metrics

Mutator = Callable[[AnyOrder], None]


def _propagate(target: OrderStatus) -> Mutator:
    """Carry a bundle-level status change down to every active item."""

    def _apply(order: AnyOrder) -> None:
        if isinstance(order, BundleOrder):
            for item in order.active_items():
                item.status = target

    return _apply


class SettlementEngine:
    """Drives orders and bundles through their lifecycle.

    Every call checks the status guard first, then the caller's role, then the
    input. Writes go through the store's compare-and-set under the order's
    lock; domain events are published only after the write has landed.
    """

    def __init__(
        self,
        settings: Settings,
        store: OrderStore,
        reports: ReportLedger,
        rewards: RewardLedger,
        event_bus: EventBus,
        credit_formula: CreditFormula | None = None,
        limits: OrderLimitEngine | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.reports = reports
        self.rewards = rewards
        self.event_bus = event_bus
        self.visibility = VisibilityPartitioner(store)
        self.limits = limits or OrderLimitEngine(store, settings.limits)
        self.credit_formula = credit_formula or credit_formula_from_config(settings.rewards)
        self.exchange_rate: Decimal = settings.exchange.exchange_rate
        self.min_cancel_reason_length = settings.policy.min_cancel_reason_length
        self.log = structlog.get_logger(__name__)
        self._metrics: Metrics | None = None

    def set_metrics(self, metrics: Metrics) -> None:
        self._metrics = metrics

    def set_exchange_rate(self, rate: Any) -> None:
        """Adopt a new rate from the settings store. Later read paths use it."""
        self.exchange_rate = positive_decimal(rate, "exchange_rate")
        self.log.info("exchange_rate_updated", exchange_rate=str(self.exchange_rate))

    # ── Creation ──────────────────────────────────────────────

    def create_order(
        self,
        actor: Actor,
        product_name: str,
        description: str,
        media: list[str] | None = None,
    ) -> Order:
        with self._observe("create_order", None, actor):
            self._require_requester(actor, "create_order")
            _require_actor_id(actor)
            _require_text(product_name, "product_name")
            _require_text(description, "description")
            self._check_quota(actor)
            order = self.store.add(
                Order(
                    order_id=f"order_{uuid4().hex[:12]}",
                    requester_id=actor.actor_id,
                    product_name=product_name.strip(),
                    description=description,
                    media=list(media or []),
                )
            )
        self._publish(EventType.ORDER_CREATED, order, actor, product_name=order.product_name)
        return order

    def create_bundle(self, actor: Actor, items: list[NewItem]) -> BundleOrder:
        with self._observe("create_bundle", None, actor):
            self._require_requester(actor, "create_bundle")
            _require_actor_id(actor)
            if not items:
                raise ValidationError("A bundle needs at least one item")
            for item in items:
                _require_text(item.product_name, "product_name")
                _require_text(item.description, "description")
            self._check_quota(actor)
            bundle_items = [
                BundleItem(
                    item_id=f"item_{uuid4().hex[:12]}",
                    product_name=item.product_name.strip(),
                    description=item.description,
                    media=list(item.media),
                )
                for item in items
            ]
            bundle = self.store.add(
                BundleOrder(
                    order_id=f"bundle_{uuid4().hex[:12]}",
                    requester_id=actor.actor_id,
                    product_name=bundle_items[0].product_name,
                    description=f"{len(bundle_items)} items",
                    items=bundle_items,
                )
            )
        self._publish(EventType.ORDER_CREATED, bundle, actor, item_count=len(bundle_items))
        return cast(BundleOrder, bundle)

    # ── Lifecycle transitions ─────────────────────────────────

    def claim(self, order_id: str, actor: Actor) -> AnyOrder:
        """Take an unclaimed published order. Exactly one concurrent caller wins."""
        with self._observe(Action.CLAIM.value, order_id, actor):
            if actor.role != Role.AGENT:
                raise AuthorizationError(Action.CLAIM.value, actor, "agents only")
            _require_actor_id(actor)
            current = self.store.get(order_id)
            if current.status == OrderStatus.PUBLISHED and current.agent_id is None:
                applied, current = self.store.compare_and_set(
                    order_id,
                    expected={"status": OrderStatus.PUBLISHED, "agent_id": None},
                    changes={"status": OrderStatus.RESEARCHING, "agent_id": actor.actor_id},
                    mutate=_propagate(OrderStatus.RESEARCHING),
                )
                if not applied:
                    # Another agent won between the read and the write.
                    self._claim_conflict(current)
            elif current.status == OrderStatus.RESEARCHING and current.agent_id != actor.actor_id:
                self._claim_conflict(current)
            else:
                raise InvalidTransition(
                    current.status, OrderStatus.RESEARCHING, actor.role, Action.CLAIM.value, order_id
                )
        if self._metrics is not None:
            self._metrics.record_transition(OrderStatus.PUBLISHED.value, OrderStatus.RESEARCHING.value)
        self.log.info("order_claimed", order_id=order_id, agent_id=actor.actor_id)
        self._publish(EventType.ORDER_CLAIMED, current, actor, agent_id=actor.actor_id)
        return current

    def _claim_conflict(self, current: AnyOrder) -> NoReturn:
        if self._metrics is not None:
            self._metrics.claim_conflicts_total.inc()
        raise ConflictError(current.order_id, current.status, current.agent_id)

    def submit_report(self, order_id: str, actor: Actor, draft: ReportDraft) -> AnyOrder:
        """Price a single order and hand it to the requester for payment."""
        with self._observe(Action.SUBMIT_REPORT.value, order_id, actor):
            with self.store.locked(order_id) as order:
                target = self._check(Action.SUBMIT_REPORT, order, actor)
                if isinstance(order, BundleOrder):
                    raise ValidationError("Bundles are priced with submit_bundle_report")
                if draft.item_amounts:
                    raise ValidationError("item_amounts only apply to bundle reports")
                report = self.reports.submit(order_id, draft)
                updated = self._write(order, {"status": target})
        self._publish(
            EventType.REPORT_SUBMITTED,
            updated,
            actor,
            user_amount=report.user_amount,
            requester_amount=requester_amount(report, self.exchange_rate),
        )
        return updated

    def submit_bundle_report(
        self,
        bundle_id: str,
        actor: Actor,
        mode: ReportMode | str,
        report: ReportDraft | None = None,
        item_reports: Mapping[str, ReportDraft] | None = None,
    ) -> BundleOrder:
        """Price a bundle with one report for the whole bundle or one per item.

        The first submission fixes the mode. Per-item reports may arrive over
        several calls; the bundle awaits payment once every active item has one.
        """
        with self._observe(Action.SUBMIT_REPORT.value, bundle_id, actor):
            try:
                mode = ReportMode(mode)
            except ValueError as exc:
                raise ValidationError(f"Unknown report mode: {mode!r}") from exc
            with self.store.locked(bundle_id) as bundle:
                target = self._check(Action.SUBMIT_REPORT, bundle, actor)
                if not isinstance(bundle, BundleOrder):
                    raise ValidationError("submit_bundle_report needs a bundle order")
                if bundle.report_mode is not None and bundle.report_mode != mode:
                    raise ValidationError(
                        f"Bundle {bundle_id} is reported {bundle.report_mode.value}; "
                        "report modes cannot be mixed"
                    )
                active_ids = {item.item_id for item in bundle.active_items()}
                if mode == ReportMode.SINGLE:
                    updated, payload = self._submit_single(bundle, target, active_ids, report, item_reports)
                else:
                    updated, payload = self._submit_per_item(bundle, target, active_ids, report, item_reports)
        self._publish(EventType.REPORT_SUBMITTED, updated, actor, report_mode=mode, **payload)
        return cast(BundleOrder, updated)

    def _submit_single(
        self,
        bundle: BundleOrder,
        target: OrderStatus,
        active_ids: set[str],
        report: ReportDraft | None,
        item_reports: Mapping[str, ReportDraft] | None,
    ) -> tuple[AnyOrder, dict[str, Any]]:
        if report is None or item_reports:
            raise ValidationError("single mode takes exactly one bundle report")
        unknown = set(report.item_amounts) - active_ids
        if unknown:
            raise ValidationError(f"item_amounts name unknown items: {sorted(unknown)}")
        stored = self.reports.submit(bundle.order_id, report)

        def _mode(order: AnyOrder) -> None:
            cast(BundleOrder, order).report_mode = ReportMode.SINGLE

        updated = self._write(bundle, {"status": target}, mutate=_mode)
        return updated, {
            "user_amount": stored.user_amount,
            "requester_amount": requester_amount(stored, self.exchange_rate),
        }

    def _submit_per_item(
        self,
        bundle: BundleOrder,
        target: OrderStatus,
        active_ids: set[str],
        report: ReportDraft | None,
        item_reports: Mapping[str, ReportDraft] | None,
    ) -> tuple[AnyOrder, dict[str, Any]]:
        if report is not None or not item_reports:
            raise ValidationError("per_item mode takes one report per item")
        for item_id, draft in item_reports.items():
            if item_id not in active_ids:
                raise ValidationError(f"Unknown or removed item: {item_id}")
            if self.reports.has_report(bundle.order_id, item_id):
                raise ValidationError(f"Item {item_id} already has a report")
            if draft.item_amounts:
                raise ValidationError("item_amounts only apply to single bundle reports")
            positive_decimal(draft.user_amount, f"user_amount[{item_id}]")
        for item_id, draft in item_reports.items():
            self.reports.submit(bundle.order_id, draft, item_id=item_id)

        reported = {i for i in active_ids if self.reports.has_report(bundle.order_id, i)}
        complete = reported == active_ids
        new_status = target if complete else bundle.status

        def _mode(order: AnyOrder) -> None:
            bundle_order = cast(BundleOrder, order)
            bundle_order.report_mode = ReportMode.PER_ITEM
            for item in bundle_order.active_items():
                if item.item_id in reported:
                    item.status = OrderStatus.AWAITING_PAYMENT

        updated = self._write(bundle, {"status": new_status}, mutate=_mode)
        payload: dict[str, Any] = {
            "items_reported": sorted(item_reports),
            "all_items_reported": complete,
        }
        if complete:
            payload["requester_amount"] = self.requester_amount_of(updated)
        return updated, payload

    def cancel_by_agent(self, order_id: str, actor: Actor, reason: str) -> AnyOrder:
        """Agent drops an order they are still researching."""
        return self._cancel(Action.CANCEL_BY_AGENT, order_id, actor, reason, Role.AGENT)

    def verify_payment(self, order_id: str, actor: Actor) -> AnyOrder:
        """Admin attests the requester's funds arrived; the order completes."""
        with self._observe(Action.VERIFY_PAYMENT.value, order_id, actor):
            with self.store.locked(order_id) as order:
                target = self._check(Action.VERIFY_PAYMENT, order, actor)
                updated = self._write(
                    order,
                    {"status": target, "user_payment_verified": True},
                    expected={"user_payment_verified": False},
                )
        amount = self.requester_amount_of(updated)
        self._publish(EventType.PAYMENT_VERIFIED, updated, actor, requester_amount=amount)
        self._publish(EventType.ORDER_COMPLETED, updated, actor, agent_id=updated.agent_id)
        return updated

    def cancel_payment(self, order_id: str, actor: Actor, reason: str) -> AnyOrder:
        """Admin cancels an order whose payment never arrived."""
        return self._cancel(Action.CANCEL_PAYMENT, order_id, actor, reason, Role.ADMIN)

    def admin_force_cancel(self, order_id: str, actor: Actor, reason: str) -> AnyOrder:
        return self._cancel(Action.ADMIN_FORCE_CANCEL, order_id, actor, reason, Role.ADMIN)

    def requester_cancel(self, order_id: str, actor: Actor, reason: str | None = None) -> AnyOrder:
        return self._cancel(Action.REQUESTER_CANCEL, order_id, actor, reason, Role.REQUESTER)

    def _cancel(
        self,
        action: Action,
        order_id: str,
        actor: Actor,
        reason: str | None,
        by: Role,
    ) -> AnyOrder:
        with self._observe(action.value, order_id, actor):
            with self.store.locked(order_id) as order:
                target = self._check(action, order, actor)
                cleaned = (reason or "").strip()
                if by == Role.AGENT and len(cleaned) < self.min_cancel_reason_length:
                    raise ValidationError(
                        f"Cancel reason must be at least {self.min_cancel_reason_length} characters"
                    )
                if by == Role.ADMIN and not cleaned:
                    raise ValidationError("Cancel reason is required")
                updated = self._write(
                    order,
                    {"status": target, "cancel_reason": cleaned or None, "cancelled_by": by},
                )
        self._publish(
            EventType.ORDER_CANCELLED,
            updated,
            actor,
            reason=updated.cancel_reason,
            cancelled_by=by,
            action=action,
        )
        return updated

    def assign_track_code(self, order_id: str, actor: Actor, code: str) -> AnyOrder:
        """Record or overwrite the shipment tracking code of a completed order."""
        with self._observe(Action.ASSIGN_TRACK_CODE.value, order_id, actor):
            with self.store.locked(order_id) as order:
                self._check(Action.ASSIGN_TRACK_CODE, order, actor)
                _require_text(code, "track_code")
                updated = self._write(order, {"track_code": code.strip()})
        self._publish(EventType.TRACK_CODE_ASSIGNED, updated, actor, track_code=updated.track_code)
        return updated

    def credit_agent_payment(self, order_id: str, actor: Actor) -> AnyOrder:
        """Mark the agent paid for a completed order and credit their points, once."""
        with self._observe(Action.CREDIT_AGENT_PAYMENT.value, order_id, actor):
            with self.store.locked(order_id) as order:
                self._check(Action.CREDIT_AGENT_PAYMENT, order, actor)
                if order.agent_payment_paid:
                    raise AlreadyResolvedError(f"Agent already paid for {order_id}")
                if order.agent_id is None:
                    raise InvariantViolation(f"{order_id}: completed without an assigned agent")
                points = Decimal(self.credit_formula(order, self.billable_reports(order), self.exchange_rate))
                if points <= 0:
                    raise ValidationError(f"Credit formula returned non-positive points: {points}")
                applied, updated = self.store.compare_and_set(
                    order_id,
                    expected={"status": OrderStatus.COMPLETED, "agent_payment_paid": False},
                    changes={"agent_payment_paid": True},
                )
                if not applied:
                    raise AlreadyResolvedError(f"Agent already paid for {order_id}")
                balance = self.rewards.credit(order.agent_id, points, order_id)
        if self._metrics is not None:
            self._metrics.reward_points_credited_total.inc(float(points))
        self._publish(
            EventType.AGENT_PAYMENT_CREDITED,
            updated,
            actor,
            agent_id=updated.agent_id,
            points=points,
            balance=balance,
        )
        return updated

    # ── Edits without a status change ─────────────────────────

    def confirm_payment_sent(self, order_id: str, actor: Actor) -> AnyOrder:
        """Requester attests they transferred the funds; the admin verifies next."""
        with self._observe(Action.CONFIRM_PAYMENT_SENT.value, order_id, actor):
            with self.store.locked(order_id) as order:
                self._check(Action.CONFIRM_PAYMENT_SENT, order, actor)
                if order.payment_confirmed_by_requester:
                    raise AlreadyResolvedError(f"Payment for {order_id} already confirmed")
                updated = self._write(order, {"payment_confirmed_by_requester": True})
        self._publish(
            EventType.PAYMENT_CONFIRMED,
            updated,
            actor,
            requester_amount=self.requester_amount_of(updated),
        )
        return updated

    def update_report(
        self,
        order_id: str,
        actor: Actor,
        *,
        item_id: str | None = None,
        user_amount: Any = None,
        edit_reason: str | None = None,
        payment_link: str | None = None,
        additional_media: list[str] | None = None,
        additional_description: str | None = None,
        quantity: int | None = None,
    ) -> AgentReport:
        """Correct a quote before the requester's payment is verified.

        The report ledger re-checks the order's status under its lock, so an
        edit racing a verification either lands first or fails.
        """
        with self._observe(Action.UPDATE_REPORT.value, order_id, actor):
            order = self.store.get(order_id)
            self._check(Action.UPDATE_REPORT, order, actor)
            if isinstance(order, BundleOrder):
                if order.report_mode == ReportMode.PER_ITEM:
                    active = {i.item_id for i in order.active_items()}
                    if item_id not in active:
                        raise ValidationError("per_item bundles are edited one active item at a time")
                elif item_id is not None:
                    raise ValidationError("single bundle reports are edited as a whole")
            elif item_id is not None:
                raise ValidationError("Orders have no items")
            previous = self.reports.get(order_id, item_id)
            report = self.reports.update(
                order_id,
                item_id=item_id,
                user_amount=user_amount,
                edit_reason=edit_reason,
                payment_link=payment_link,
                additional_media=additional_media,
                additional_description=additional_description,
                quantity=quantity,
                actor_role=actor.role,
            )
        self._publish(
            EventType.REPORT_EDITED,
            self.store.get(order_id),
            actor,
            item_id=item_id,
            previous_amount=previous.user_amount if previous else None,
            new_amount=report.user_amount,
            reason=edit_reason,
            version=report.version,
            requester_amount=self.requester_amount_of(self.store.get(order_id)),
        )
        return report

    def remove_item(self, bundle_id: str, actor: Actor, item_id: str) -> BundleOrder:
        """Requester drops one item from a priced, still unpaid bundle."""
        with self._observe(Action.REMOVE_ITEM.value, bundle_id, actor):
            with self.store.locked(bundle_id) as bundle:
                self._check(Action.REMOVE_ITEM, bundle, actor)
                if not isinstance(bundle, BundleOrder):
                    raise ValidationError("Only bundle orders have items")
                if bundle.user_payment_verified:
                    raise InvalidTransition(
                        bundle.status, bundle.status, actor.role, Action.REMOVE_ITEM.value, bundle_id
                    )
                item = bundle.item(item_id)
                if item is None:
                    raise NotFoundError("bundle item", item_id)
                if item.removed:
                    raise AlreadyResolvedError(f"Item {item_id} already removed")
                if len(bundle.active_items()) <= 1:
                    raise ValidationError("Cannot remove the last item of a bundle")
                if bundle.report_mode == ReportMode.SINGLE:
                    self.reports.remove_item_amount(bundle_id, item_id)
                now = utc_now()

                def _remove(order: AnyOrder) -> None:
                    target = cast(BundleOrder, order).item(item_id)
                    if target is None:
                        raise InvariantViolation(f"{bundle_id}: item {item_id} vanished under lock")
                    target.removed = True
                    target.removed_at = now
                    target.status = OrderStatus.CANCELLED

                updated = self._write(
                    bundle, {}, expected={"user_payment_verified": False}, mutate=_remove
                )
        self._publish(
            EventType.BUNDLE_ITEM_REMOVED,
            updated,
            actor,
            item_id=item_id,
            requester_amount=self.requester_amount_of(updated),
        )
        return cast(BundleOrder, updated)

    def archive(self, order_id: str, actor: Actor) -> AnyOrder:
        """Hide a finished order from the caller's own view."""
        with self._observe(Action.ARCHIVE.value, order_id, actor):
            with self.store.locked(order_id) as order:
                self._check(Action.ARCHIVE, order, actor)
                if actor.role == Role.REQUESTER:
                    flags = ["archived_by_requester"]
                elif actor.role == Role.AGENT:
                    flags = ["archived_by_agent"]
                else:
                    flags = ["archived_by_requester", "archived_by_agent"]
                if all(getattr(order, flag) for flag in flags):
                    raise AlreadyResolvedError(f"Order {order_id} already archived")
                updated = self._write(order, {flag: True for flag in flags})
        self._publish(EventType.ORDER_ARCHIVED, updated, actor, archived_for=actor.role)
        return updated

    # ── Reads ─────────────────────────────────────────────────

    def get_order(self, order_id: str, actor: Actor) -> AnyOrder:
        order = self.store.get(order_id)
        if not self.visibility.can_view(order, actor.role, actor.actor_id):
            raise AuthorizationError("get_order", actor, "order not visible to caller")
        return order

    def get_report(
        self,
        order_id: str,
        actor: Actor,
        item_id: str | None = None,
    ) -> AgentReport | None:
        self.get_order(order_id, actor)
        return self.reports.get(order_id, item_id)

    def billable_reports(self, order: AnyOrder) -> list[AgentReport]:
        """The reports whose amounts make up what the requester pays."""
        if isinstance(order, BundleOrder) and order.report_mode == ReportMode.PER_ITEM:
            found = [self.reports.get(order.order_id, item.item_id) for item in order.active_items()]
            return [r for r in found if r is not None]
        report = self.reports.get(order.order_id)
        return [report] if report is not None else []

    def requester_amount_of(self, order: AnyOrder) -> int | None:
        """Requester-facing total, or None while the order is unpriced."""
        reports = self.billable_reports(order)
        if not reports:
            return None
        if isinstance(order, BundleOrder) and order.report_mode == ReportMode.PER_ITEM:
            if len(reports) != len(order.active_items()):
                return None
            return bundle_requester_amount(reports, self.exchange_rate)
        return requester_amount(reports[0], self.exchange_rate)

    # ── Internals ─────────────────────────────────────────────

    def _check(self, action: Action, order: AnyOrder, actor: Actor) -> OrderStatus:
        target = check_status(action, order, actor.role)
        policy.require(action, actor, order)
        return target

    def _write(
        self,
        order: AnyOrder,
        changes: dict[str, Any],
        expected: dict[str, Any] | None = None,
        mutate: Mutator | None = None,
    ) -> AnyOrder:
        """Compare-and-set against the snapshot the caller validated."""
        target = changes.get("status", order.status)
        moves = target != order.status

        def _apply(record: AnyOrder) -> None:
            if moves:
                _propagate(target)(record)
            if mutate is not None:
                mutate(record)

        applied, updated = self.store.compare_and_set(
            order.order_id,
            expected={"status": order.status, "version": order.version, **(expected or {})},
            changes=changes,
            mutate=_apply,
        )
        if not applied:
            raise ConflictError(order.order_id, updated.status, updated.agent_id)
        if moves and self._metrics is not None:
            self._metrics.record_transition(order.status.value, target.value)
        return updated

    def _check_quota(self, actor: Actor) -> None:
        result = self.limits.evaluate(actor.actor_id)
        if not result.approved:
            raise QuotaExceeded(result.reasons)

    @staticmethod
    def _require_requester(actor: Actor, action: str) -> None:
        if actor.role != Role.REQUESTER:
            raise AuthorizationError(action, actor, "requester only")

    @contextmanager
    def _observe(self, action: str, order_id: str | None, actor: Actor) -> Iterator[None]:
        try:
            yield
        except MarketplaceError as exc:
            self.log.warning(
                "transition_rejected",
                action=action,
                order_id=order_id,
                actor=str(actor),
                error=type(exc).__name__,
                detail=str(exc),
            )
            if self._metrics is not None:
                self._metrics.record_rejection(action, type(exc).__name__)
            raise

    def _publish(self, event_type: EventType, order: AnyOrder, actor: Actor, **payload: Any) -> None:
        body = {
            "order_id": order.order_id,
            "bundle": order.is_bundle,
            "status": order.status,
            "requester_id": order.requester_id,
            **payload,
        }
        publish_after_commit(
            self.event_bus,
            event_type,
            body,
            {"actor_role": actor.role, "actor_id": actor.actor_id},
            metrics=self._metrics,
        )


def _require_text(value: str | None, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")


def _require_actor_id(actor: Actor) -> None:
    if policy.normalize_id(actor.actor_id) is None:
        raise ValidationError("actor_id is required")
