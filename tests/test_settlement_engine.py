import threading
from decimal import Decimal

import pytest
from prometheus_client import CollectorRegistry

from agentbuy.errors import (
    AlreadyResolvedError,
    AuthorizationError,
    ConflictError,
    InvalidTransition,
    ValidationError,
)
from agentbuy.ledger import EventBus, EventLedger, EventType
from agentbuy.monitoring import Metrics
from agentbuy.orders.models import Actor, OrderStatus, ReportDraft, Role
from agentbuy.rewards import RewardStatus
from agentbuy.service import MarketplaceService

REQUESTER = Actor(Role.REQUESTER, "u1")
OTHER_REQUESTER = Actor(Role.REQUESTER, "u2")
AGENT_A = Actor(Role.AGENT, "agent-a")
AGENT_B = Actor(Role.AGENT, "agent-b")
AGENT_C = Actor(Role.AGENT, "agent-c")
ADMIN = Actor(Role.ADMIN, "admin-1")


def _new_order(market) -> str:
    return market.engine.create_order(REQUESTER, "Headphones", "wireless, black").order_id


def _claimed(market, agent=AGENT_A) -> str:
    order_id = _new_order(market)
    market.engine.claim(order_id, agent)
    return order_id


def _priced(market, amount="500") -> str:
    order_id = _claimed(market)
    market.engine.submit_report(order_id, AGENT_A, ReportDraft(user_amount=amount))
    return order_id


def _completed(market) -> str:
    order_id = _priced(market)
    market.engine.verify_payment(order_id, ADMIN)
    return order_id


def _event_types(market, order_id: str) -> list[EventType]:
    return [e.event_type for e in market.event_bus.ledger.events_for_order(order_id)]


def test_full_settlement_flow(market) -> None:
    engine = market.engine
    order = engine.create_order(REQUESTER, "Headphones", "wireless, black")
    assert order.status == OrderStatus.PUBLISHED

    claimed = engine.claim(order.order_id, AGENT_A)
    assert claimed.status == OrderStatus.RESEARCHING
    assert claimed.agent_id == "agent-a"

    priced = engine.submit_report(order.order_id, AGENT_A, ReportDraft(user_amount=500))
    assert priced.status == OrderStatus.AWAITING_PAYMENT
    assert market.requester_amount(order.order_id, REQUESTER) == 236_250

    completed = engine.verify_payment(order.order_id, ADMIN)
    assert completed.status == OrderStatus.COMPLETED
    assert completed.user_payment_verified

    paid = engine.credit_agent_payment(order.order_id, ADMIN)
    assert paid.agent_payment_paid
    credit = market.reward_balance("agent-a")
    assert credit == Decimal("1")

    request = market.request_reward(AGENT_A)
    assert request.amount == credit
    assert request.status == RewardStatus.PENDING
    assert market.reward_balance("agent-a") == Decimal("0")

    rejected = market.reject_reward(request.request_id, ADMIN)
    assert rejected.status == RewardStatus.REJECTED
    assert market.reward_balance("agent-a") == credit

    assert _event_types(market, order.order_id) == [
        EventType.ORDER_CREATED,
        EventType.ORDER_CLAIMED,
        EventType.REPORT_SUBMITTED,
        EventType.PAYMENT_VERIFIED,
        EventType.ORDER_COMPLETED,
        EventType.AGENT_PAYMENT_CREDITED,
    ]


def test_concurrent_claims_have_one_winner(market) -> None:
    order_id = _new_order(market)
    barrier = threading.Barrier(2)
    outcomes: dict[str, object] = {}

    def _claim(agent: Actor) -> None:
        barrier.wait()
        try:
            outcomes[agent.actor_id] = market.engine.claim(order_id, agent)
        except ConflictError as exc:
            outcomes[agent.actor_id] = exc

    threads = [threading.Thread(target=_claim, args=(agent,)) for agent in (AGENT_B, AGENT_C)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [k for k, v in outcomes.items() if not isinstance(v, ConflictError)]
    losers = [k for k, v in outcomes.items() if isinstance(v, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert market.store.get(order_id).agent_id == winners[0]
    assert outcomes[losers[0]].holder_id == winners[0]
    assert _event_types(market, order_id).count(EventType.ORDER_CLAIMED) == 1


def test_claim_of_own_order_is_invalid_not_conflict(market) -> None:
    order_id = _claimed(market)
    with pytest.raises(InvalidTransition):
        market.engine.claim(order_id, AGENT_A)


def test_claim_after_pricing_is_invalid(market) -> None:
    order_id = _priced(market)
    with pytest.raises(InvalidTransition):
        market.engine.claim(order_id, AGENT_B)


def test_only_agents_claim(market) -> None:
    order_id = _new_order(market)
    with pytest.raises(AuthorizationError):
        market.engine.claim(order_id, REQUESTER)
    assert market.store.get(order_id).status == OrderStatus.PUBLISHED


def test_status_is_checked_before_role(market) -> None:
    order_id = _new_order(market)
    # Wrong status and wrong caller: the status guard answers first.
    with pytest.raises(InvalidTransition):
        market.engine.verify_payment(order_id, AGENT_A)
    with pytest.raises(InvalidTransition):
        market.engine.submit_report(order_id, AGENT_B, ReportDraft(user_amount=1))


def test_submit_report_by_other_agent_denied(market) -> None:
    order_id = _claimed(market)
    with pytest.raises(AuthorizationError, match="not the assigned agent"):
        market.engine.submit_report(order_id, AGENT_B, ReportDraft(user_amount=10))
    assert market.store.get(order_id).status == OrderStatus.RESEARCHING
    assert market.reports.get(order_id) is None


def test_submit_report_rejects_non_positive_amount(market) -> None:
    order_id = _claimed(market)
    with pytest.raises(ValidationError):
        market.engine.submit_report(order_id, AGENT_A, ReportDraft(user_amount=0))
    assert market.store.get(order_id).status == OrderStatus.RESEARCHING


def test_agent_cancel_needs_a_real_reason(market) -> None:
    order_id = _claimed(market)
    with pytest.raises(ValidationError, match="at least 5 characters"):
        market.engine.cancel_by_agent(order_id, AGENT_A, "  no  ")
    cancelled = market.engine.cancel_by_agent(order_id, AGENT_A, "  out of stock ")
    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.cancel_reason == "out of stock"
    assert cancelled.cancelled_by == Role.AGENT


def test_admin_cancels_need_a_reason(market) -> None:
    order_id = _priced(market)
    with pytest.raises(ValidationError, match="reason is required"):
        market.engine.cancel_payment(order_id, ADMIN, "   ")
    cancelled = market.engine.cancel_payment(order_id, ADMIN, "no transfer after 3 days")
    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.cancelled_by == Role.ADMIN


@pytest.mark.parametrize("stage", ["published", "researching", "awaiting_payment"])
def test_admin_force_cancel_from_any_open_status(market, stage) -> None:
    order_id = {
        "published": _new_order,
        "researching": _claimed,
        "awaiting_payment": _priced,
    }[stage](market)
    cancelled = market.engine.admin_force_cancel(order_id, ADMIN, "fraud report")
    assert cancelled.status == OrderStatus.CANCELLED


def test_requester_cancel_allowed_only_when_not_being_researched(market) -> None:
    order_id = _new_order(market)
    assert market.engine.requester_cancel(order_id, REQUESTER).status == OrderStatus.CANCELLED

    researching = _claimed(market)
    with pytest.raises(InvalidTransition):
        market.engine.requester_cancel(researching, REQUESTER, "changed my mind")

    priced = _priced(market)
    with pytest.raises(AuthorizationError):
        market.engine.requester_cancel(priced, OTHER_REQUESTER)
    cancelled = market.engine.requester_cancel(priced, REQUESTER, "too expensive")
    assert cancelled.cancel_reason == "too expensive"
    assert cancelled.cancelled_by == Role.REQUESTER


def test_terminal_orders_reject_lifecycle_actions(market) -> None:
    order_id = _completed(market)
    with pytest.raises(InvalidTransition):
        market.engine.admin_force_cancel(order_id, ADMIN, "too late")
    with pytest.raises(InvalidTransition):
        market.engine.verify_payment(order_id, ADMIN)
    with pytest.raises(InvalidTransition):
        market.engine.update_report(order_id, AGENT_A, user_amount="1")


def test_track_code_by_assigned_agent_or_admin(market) -> None:
    order_id = _completed(market)
    with pytest.raises(AuthorizationError):
        market.engine.assign_track_code(order_id, AGENT_B, "CN123")
    with pytest.raises(ValidationError):
        market.engine.assign_track_code(order_id, AGENT_A, "  ")
    assert market.engine.assign_track_code(order_id, AGENT_A, " CN123 ").track_code == "CN123"
    assert market.engine.assign_track_code(order_id, ADMIN, "CN456").track_code == "CN456"


def test_track_code_requires_completed_order(market) -> None:
    order_id = _priced(market)
    with pytest.raises(InvalidTransition):
        market.engine.assign_track_code(order_id, ADMIN, "CN123")


def test_agent_payment_credited_exactly_once(market) -> None:
    order_id = _completed(market)
    market.engine.credit_agent_payment(order_id, ADMIN)
    with pytest.raises(AlreadyResolvedError):
        market.engine.credit_agent_payment(order_id, ADMIN)
    assert market.reward_balance("agent-a") == Decimal("1")
    assert market.rewards.was_credited(order_id)


def test_agent_payment_needs_completed_order(market) -> None:
    order_id = _priced(market)
    with pytest.raises(InvalidTransition):
        market.engine.credit_agent_payment(order_id, ADMIN)
    assert market.reward_balance("agent-a") == Decimal("0")


def test_commission_formula_credits_share_of_markup(settings) -> None:
    settings.rewards.credit_formula = "commission"
    market = MarketplaceService(settings, EventBus(EventLedger()))
    order_id = _completed(market)
    market.engine.credit_agent_payment(order_id, ADMIN)
    assert market.reward_balance("agent-a") == Decimal("11250")


def test_update_report_reprices_and_keeps_history(market) -> None:
    order_id = _priced(market, "500")
    report = market.engine.update_report(
        order_id, AGENT_A, user_amount="400", edit_reason="seller discount"
    )
    assert report.version == 2
    assert market.requester_amount(order_id, REQUESTER) == 189_000

    edited = market.event_bus.ledger.events_for_order(order_id)[-1]
    assert edited.event_type == EventType.REPORT_EDITED
    assert edited.payload["previous_amount"] == "500"
    assert edited.payload["new_amount"] == "400"
    assert edited.payload["requester_amount"] == 189_000


def test_update_report_only_by_assigned_agent(market) -> None:
    order_id = _priced(market)
    with pytest.raises(AuthorizationError):
        market.engine.update_report(order_id, AGENT_B, user_amount="1")
    with pytest.raises(AuthorizationError):
        market.engine.update_report(order_id, ADMIN, user_amount="1")


def test_edit_racing_verification_never_lands_after_it(market) -> None:
    order_id = _priced(market)
    barrier = threading.Barrier(2)
    errors: list[Exception] = []

    def _edit() -> None:
        barrier.wait()
        try:
            market.engine.update_report(order_id, AGENT_A, user_amount="450")
        except InvalidTransition as exc:
            errors.append(exc)

    def _verify() -> None:
        barrier.wait()
        market.engine.verify_payment(order_id, ADMIN)

    threads = [threading.Thread(target=_edit), threading.Thread(target=_verify)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    report = market.reports.get(order_id)
    order = market.store.get(order_id)
    assert order.status == OrderStatus.COMPLETED
    if errors:
        assert report.version == 1
    else:
        assert report.user_amount == Decimal("450")
        assert report.edit_history[-1].edited_at <= order.updated_at


def test_confirm_payment_sent_once(market) -> None:
    order_id = _priced(market)
    with pytest.raises(AuthorizationError):
        market.engine.confirm_payment_sent(order_id, OTHER_REQUESTER)
    confirmed = market.engine.confirm_payment_sent(order_id, REQUESTER)
    assert confirmed.payment_confirmed_by_requester
    assert confirmed.status == OrderStatus.AWAITING_PAYMENT
    with pytest.raises(AlreadyResolvedError):
        market.engine.confirm_payment_sent(order_id, REQUESTER)
    assert EventType.PAYMENT_CONFIRMED in _event_types(market, order_id)


def test_archive_is_per_role(market) -> None:
    order_id = _completed(market)
    with pytest.raises(InvalidTransition):
        market.engine.archive(_priced(market), REQUESTER)

    market.engine.archive(order_id, REQUESTER)
    assert order_id not in {o.order_id for o in market.list_orders(REQUESTER)}
    assert order_id in {o.order_id for o in market.list_orders(REQUESTER, archived=True)}
    assert order_id in {o.order_id for o in market.list_orders(AGENT_A)}

    with pytest.raises(AlreadyResolvedError):
        market.engine.archive(order_id, REQUESTER)

    archived = market.engine.archive(order_id, ADMIN)
    assert archived.archived_by_requester and archived.archived_by_agent
    assert order_id in {o.order_id for o in market.list_orders(ADMIN, archived=True)}


def test_create_order_validates_input(market) -> None:
    with pytest.raises(ValidationError, match="product_name is required"):
        market.engine.create_order(REQUESTER, "  ", "desc")
    with pytest.raises(AuthorizationError):
        market.engine.create_order(AGENT_A, "Lamp", "desk lamp")
    assert len(market.store) == 0


def test_get_order_respects_visibility(market) -> None:
    order_id = _claimed(market)
    assert market.get_order(order_id, REQUESTER).order_id == order_id
    assert market.get_order(order_id, ADMIN).order_id == order_id
    with pytest.raises(AuthorizationError):
        market.get_order(order_id, OTHER_REQUESTER)
    with pytest.raises(AuthorizationError):
        market.get_order(order_id, AGENT_B)


def test_rejections_and_transitions_are_counted(market) -> None:
    registry = CollectorRegistry()
    metrics = Metrics(registry=registry)
    market.engine.set_metrics(metrics)

    order_id = _claimed(market)
    with pytest.raises(ConflictError):
        market.engine.claim(order_id, AGENT_B)
    with pytest.raises(InvalidTransition):
        market.engine.verify_payment(order_id, ADMIN)

    assert registry.get_sample_value("claim_conflicts_total") == 1.0
    assert (
        registry.get_sample_value(
            "transition_rejections_total",
            {"action": "verify_payment", "error": "InvalidTransition"},
        )
        == 1.0
    )
    assert (
        registry.get_sample_value(
            "order_transitions_total",
            {"from_status": "published", "to_status": "researching"},
        )
        == 1.0
    )


def test_exchange_rate_change_applies_to_later_reads(market) -> None:
    order_id = _priced(market, "100")
    assert market.requester_amount(order_id, REQUESTER) == 47_250
    market.engine.set_exchange_rate("460")
    assert market.requester_amount(order_id, REQUESTER) == 48_300
    with pytest.raises(ValidationError):
        market.engine.set_exchange_rate(0)


def test_claim_lost_after_a_stale_read_is_a_conflict(market, monkeypatch) -> None:
    order_id = _new_order(market)
    stale = market.store.get(order_id)
    market.engine.claim(order_id, AGENT_A)
    market.engine.submit_report(order_id, AGENT_A, ReportDraft(user_amount="500"))

    monkeypatch.setattr(market.store, "get", lambda _order_id: stale)
    with pytest.raises(ConflictError) as excinfo:
        market.engine.claim(order_id, AGENT_B)
    assert excinfo.value.current == OrderStatus.AWAITING_PAYMENT
    assert excinfo.value.holder_id == AGENT_A.actor_id


@pytest.mark.parametrize("actor_id", ["", "   "])
def test_blank_actor_ids_are_rejected(market, actor_id) -> None:
    with pytest.raises(ValidationError, match="actor_id"):
        market.engine.create_order(Actor(Role.REQUESTER, actor_id), "Mug", "white")
    order_id = _new_order(market)
    with pytest.raises(ValidationError, match="actor_id"):
        market.engine.claim(order_id, Actor(Role.AGENT, actor_id))
    assert market.store.get(order_id).status == OrderStatus.PUBLISHED


def test_ledger_failure_does_not_mask_a_stored_transition(settings, monkeypatch) -> None:
    registry = CollectorRegistry()
    market = MarketplaceService(settings, EventBus(EventLedger()), Metrics(registry))
    order_id = _new_order(market)

    def _disk_full(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(market.event_bus.ledger, "append", _disk_full)
    claimed = market.engine.claim(order_id, AGENT_A)

    assert claimed.status == OrderStatus.RESEARCHING
    assert market.store.get(order_id).agent_id == AGENT_A.actor_id
    assert (
        registry.get_sample_value(
            "event_publish_failures_total", {"event_type": EventType.ORDER_CLAIMED.value}
        )
        == 1.0
    )
