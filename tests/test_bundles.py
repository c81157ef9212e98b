from decimal import Decimal

import pytest

from agentbuy.errors import (
    AlreadyResolvedError,
    AuthorizationError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from agentbuy.ledger import EventType
from agentbuy.orders.models import Actor, NewItem, OrderStatus, ReportDraft, ReportMode, Role

REQUESTER = Actor(Role.REQUESTER, "u1")
AGENT = Actor(Role.AGENT, "a1")
ADMIN = Actor(Role.ADMIN, "root")


def _bundle(market, count: int = 3):
    items = [NewItem(f"Item {n}", f"variant {n}") for n in range(count)]
    bundle = market.engine.create_bundle(REQUESTER, items)
    market.engine.claim(bundle.order_id, AGENT)
    return market.store.get(bundle.order_id)


def _ids(bundle) -> list[str]:
    return [item.item_id for item in bundle.items]


def _single_priced(market, breakdown: bool = True):
    bundle = _bundle(market)
    i0, i1, i2 = _ids(bundle)
    amounts = {i0: "100", i1: "200", i2: "50"} if breakdown else {}
    market.engine.submit_bundle_report(
        bundle.order_id,
        AGENT,
        ReportMode.SINGLE,
        report=ReportDraft(user_amount="350", item_amounts=amounts),
    )
    return market.store.get(bundle.order_id)


def test_bundle_creation_and_claim_move_every_item(market) -> None:
    bundle = _bundle(market)
    assert bundle.is_bundle
    assert bundle.status == OrderStatus.RESEARCHING
    assert {item.status for item in bundle.items} == {OrderStatus.RESEARCHING}
    assert bundle.report_mode is None


def test_empty_bundle_rejected(market) -> None:
    with pytest.raises(ValidationError, match="at least one item"):
        market.engine.create_bundle(REQUESTER, [])


def test_single_report_prices_the_whole_bundle(market) -> None:
    bundle = _single_priced(market)
    assert bundle.status == OrderStatus.AWAITING_PAYMENT
    assert bundle.report_mode == ReportMode.SINGLE
    assert {item.status for item in bundle.items} == {OrderStatus.AWAITING_PAYMENT}
    assert market.requester_amount(bundle.order_id, REQUESTER) == 165_375


def test_breakdown_must_name_bundle_items(market) -> None:
    bundle = _bundle(market)
    with pytest.raises(ValidationError, match="unknown items"):
        market.engine.submit_bundle_report(
            bundle.order_id,
            AGENT,
            "single",
            report=ReportDraft(user_amount="10", item_amounts={"ghost": "10"}),
        )
    assert market.store.get(bundle.order_id).status == OrderStatus.RESEARCHING


def test_per_item_reports_complete_the_bundle(market) -> None:
    bundle = _bundle(market, count=2)
    i0, i1 = _ids(bundle)

    partial = market.engine.submit_bundle_report(
        bundle.order_id, AGENT, ReportMode.PER_ITEM, item_reports={i0: ReportDraft(user_amount="100")}
    )
    assert partial.status == OrderStatus.RESEARCHING
    assert partial.item(i0).status == OrderStatus.AWAITING_PAYMENT
    assert partial.item(i1).status == OrderStatus.RESEARCHING
    assert market.requester_amount(bundle.order_id, REQUESTER) is None

    with pytest.raises(ValidationError, match="already has a report"):
        market.engine.submit_bundle_report(
            bundle.order_id, AGENT, "per_item", item_reports={i0: ReportDraft(user_amount="1")}
        )

    done = market.engine.submit_bundle_report(
        bundle.order_id, AGENT, "per_item", item_reports={i1: ReportDraft(user_amount="200")}
    )
    assert done.status == OrderStatus.AWAITING_PAYMENT
    assert {item.status for item in done.items} == {OrderStatus.AWAITING_PAYMENT}
    assert market.requester_amount(bundle.order_id, REQUESTER) == 141_750


def test_report_modes_cannot_be_mixed(market) -> None:
    bundle = _bundle(market, count=2)
    i0, _ = _ids(bundle)
    market.engine.submit_bundle_report(
        bundle.order_id, AGENT, "per_item", item_reports={i0: ReportDraft(user_amount="5")}
    )
    with pytest.raises(ValidationError, match="cannot be mixed"):
        market.engine.submit_bundle_report(
            bundle.order_id, AGENT, "single", report=ReportDraft(user_amount="5")
        )


def test_unknown_report_mode_rejected(market) -> None:
    bundle = _bundle(market)
    with pytest.raises(ValidationError, match="Unknown report mode"):
        market.engine.submit_bundle_report(bundle.order_id, AGENT, "split")


def test_plain_order_endpoint_refuses_bundles(market) -> None:
    bundle = _bundle(market)
    with pytest.raises(ValidationError):
        market.engine.submit_report(bundle.order_id, AGENT, ReportDraft(user_amount="5"))


def test_remove_item_lowers_single_report_total(market) -> None:
    bundle = _single_priced(market)
    _, _, i2 = _ids(bundle)

    updated = market.engine.remove_item(bundle.order_id, REQUESTER, i2)

    removed = updated.item(i2)
    assert removed.removed and removed.status == OrderStatus.CANCELLED
    assert removed.removed_at is not None
    assert len(updated.active_items()) == 2
    assert updated.status == OrderStatus.AWAITING_PAYMENT
    report = market.reports.get(bundle.order_id)
    assert report.user_amount == Decimal("300")
    assert report.edit_history[-1].reason == f"item removed: {i2}"
    assert market.requester_amount(bundle.order_id, REQUESTER) == 141_750

    last = market.event_bus.ledger.events_for_order(bundle.order_id)[-1]
    assert last.event_type == EventType.BUNDLE_ITEM_REMOVED
    assert last.payload["requester_amount"] == 141_750


def test_remove_item_without_breakdown_needs_repricing(market) -> None:
    bundle = _single_priced(market, breakdown=False)
    with pytest.raises(ValidationError, match="no per-item amount"):
        market.engine.remove_item(bundle.order_id, REQUESTER, _ids(bundle)[0])
    assert market.store.get(bundle.order_id).active_items() == bundle.active_items()


def test_remove_item_per_item_mode_drops_its_report_from_total(market) -> None:
    bundle = _bundle(market)
    i0, i1, i2 = _ids(bundle)
    market.engine.submit_bundle_report(
        bundle.order_id,
        AGENT,
        "per_item",
        item_reports={
            i0: ReportDraft(user_amount="100"),
            i1: ReportDraft(user_amount="200"),
            i2: ReportDraft(user_amount="50"),
        },
    )
    assert market.requester_amount(bundle.order_id, REQUESTER) == 165_375
    market.engine.remove_item(bundle.order_id, REQUESTER, i2)
    assert market.requester_amount(bundle.order_id, REQUESTER) == 141_750


def test_remove_item_guards(market) -> None:
    bundle = _single_priced(market)
    i0, i1, i2 = _ids(bundle)
    with pytest.raises(AuthorizationError):
        market.engine.remove_item(bundle.order_id, AGENT, i0)
    with pytest.raises(NotFoundError):
        market.engine.remove_item(bundle.order_id, REQUESTER, "ghost")

    market.engine.remove_item(bundle.order_id, REQUESTER, i0)
    with pytest.raises(AlreadyResolvedError):
        market.engine.remove_item(bundle.order_id, REQUESTER, i0)
    market.engine.remove_item(bundle.order_id, REQUESTER, i1)
    with pytest.raises(ValidationError, match="last item"):
        market.engine.remove_item(bundle.order_id, REQUESTER, i2)


def test_remove_item_after_verification_rejected(market) -> None:
    bundle = _single_priced(market)
    market.engine.verify_payment(bundle.order_id, ADMIN)
    with pytest.raises(InvalidTransition):
        market.engine.remove_item(bundle.order_id, REQUESTER, _ids(bundle)[0])


def test_completing_and_cancelling_bundles_carry_items(market) -> None:
    done = _single_priced(market)
    completed = market.engine.verify_payment(done.order_id, ADMIN)
    assert {item.status for item in completed.items} == {OrderStatus.COMPLETED}

    other = _bundle(market)
    cancelled = market.engine.cancel_by_agent(other.order_id, AGENT, "seller closed")
    assert {item.status for item in cancelled.items} == {OrderStatus.CANCELLED}


def test_per_item_edit_targets_one_item(market) -> None:
    bundle = _bundle(market, count=2)
    i0, i1 = _ids(bundle)
    market.engine.submit_bundle_report(
        bundle.order_id,
        AGENT,
        "per_item",
        item_reports={i0: ReportDraft(user_amount="100"), i1: ReportDraft(user_amount="200")},
    )
    with pytest.raises(ValidationError):
        market.engine.update_report(bundle.order_id, AGENT, user_amount="90")

    report = market.engine.update_report(bundle.order_id, AGENT, item_id=i0, user_amount="90")
    assert report.item_id == i0
    assert report.version == 2
    assert market.requester_amount(bundle.order_id, REQUESTER) == 137_025


def test_single_edit_clears_stale_breakdown(market) -> None:
    bundle = _single_priced(market)
    report = market.engine.update_report(bundle.order_id, AGENT, user_amount="330")
    assert report.item_amounts == {}
    with pytest.raises(ValidationError, match="no per-item amount"):
        market.engine.remove_item(bundle.order_id, REQUESTER, _ids(bundle)[0])
