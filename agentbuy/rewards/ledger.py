"""Agent point balances and the reward-request workflow.

Points are credited when the admin pays an agent out for a completed order.
An agent cashes out by filing a reward request, which snapshots the whole
balance and deducts it at once. Approval finalizes the payout; rejection
returns the points.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

import structlog

from agentbuy.errors import (
    AlreadyResolvedError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from agentbuy.orders.models import Actor, Role, utc_now

ZERO = Decimal("0")


class RewardStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class RewardRequest:
    request_id: str
    agent_id: str
    amount: Decimal
    status: RewardStatus
    created_at: datetime
    approved_at: datetime | None = None
    approved_by: str | None = None
    rejected_at: datetime | None = None
    rejected_by: str | None = None


class RewardLedger:
    def __init__(self) -> None:
        self._balances: dict[str, Decimal] = {}
        self._credited_orders: dict[str, Decimal] = {}
        self._requests: dict[str, RewardRequest] = {}
        self._lock = threading.RLock()
        self._log = structlog.get_logger(__name__)

    def balance(self, agent_id: str) -> Decimal:
        with self._lock:
            return self._balances.get(agent_id, ZERO)

    def credit(self, agent_id: str, points: Decimal, order_id: str) -> Decimal:
        """Credit points for one paid-out order. Returns the new balance."""
        if points <= 0:
            raise ValidationError(f"Credit must be positive, got {points}")
        with self._lock:
            if order_id in self._credited_orders:
                raise AlreadyResolvedError(f"Order {order_id} already credited")
            self._credited_orders[order_id] = points
            new_balance = self._balances.get(agent_id, ZERO) + points
            self._balances[agent_id] = new_balance
        self._log.info(
            "agent_points_credited",
            agent_id=agent_id,
            order_id=order_id,
            points=str(points),
            balance=str(new_balance),
        )
        return new_balance

    def was_credited(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self._credited_orders

    def create_request(self, actor: Actor, now: datetime | None = None) -> RewardRequest:
        """Snapshot the agent's whole balance into a pending request."""
        if actor.role != Role.AGENT:
            raise AuthorizationError("create_reward_request", actor, "only agents hold points")
        now = now or utc_now()
        with self._lock:
            amount = self._balances.get(actor.actor_id, ZERO)
            if amount <= 0:
                raise ValidationError("Insufficient points")
            request = RewardRequest(
                request_id=f"reward_{uuid4().hex[:12]}",
                agent_id=actor.actor_id,
                amount=amount,
                status=RewardStatus.PENDING,
                created_at=now,
            )
            self._requests[request.request_id] = request
            self._balances[actor.actor_id] = ZERO
        self._log.info(
            "reward_requested",
            request_id=request.request_id,
            agent_id=actor.actor_id,
            amount=str(amount),
        )
        return copy.deepcopy(request)

    def approve(self, request_id: str, actor: Actor, now: datetime | None = None) -> RewardRequest:
        """Finalize the payout. The points already left the balance at creation."""
        self._require_admin("approve_reward_request", actor)
        now = now or utc_now()
        with self._lock:
            request = self._pending(request_id)
            request.status = RewardStatus.APPROVED
            request.approved_at = now
            request.approved_by = actor.actor_id
            result = copy.deepcopy(request)
        self._log.info("reward_approved", request_id=request_id, admin_id=actor.actor_id)
        return result

    def reject(self, request_id: str, actor: Actor, now: datetime | None = None) -> RewardRequest:
        """Refuse the payout and give the points back."""
        self._require_admin("reject_reward_request", actor)
        now = now or utc_now()
        with self._lock:
            request = self._pending(request_id)
            request.status = RewardStatus.REJECTED
            request.rejected_at = now
            request.rejected_by = actor.actor_id
            self._balances[request.agent_id] = (
                self._balances.get(request.agent_id, ZERO) + request.amount
            )
            result = copy.deepcopy(request)
        self._log.info(
            "reward_rejected",
            request_id=request_id,
            admin_id=actor.actor_id,
            refunded=str(result.amount),
        )
        return result

    def get_request(self, request_id: str) -> RewardRequest:
        with self._lock:
            return copy.deepcopy(self._require(request_id))

    def list_requests(
        self,
        agent_id: str | None = None,
        status: RewardStatus | None = None,
    ) -> list[RewardRequest]:
        """Requests newest first, optionally filtered by agent and status."""
        with self._lock:
            found = [
                r
                for r in self._requests.values()
                if (agent_id is None or r.agent_id == agent_id)
                and (status is None or r.status == status)
            ]
            found.sort(key=lambda r: r.created_at, reverse=True)
            return copy.deepcopy(found)

    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for r in self._requests.values() if r.status == RewardStatus.PENDING)

    def _pending(self, request_id: str) -> RewardRequest:
        request = self._require(request_id)
        if request.status != RewardStatus.PENDING:
            raise AlreadyResolvedError(
                f"Reward request {request_id} already {request.status.value}"
            )
        return request

    def _require(self, request_id: str) -> RewardRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise NotFoundError("reward request", request_id)
        return request

    @staticmethod
    def _require_admin(action: str, actor: Actor) -> None:
        if actor.role != Role.ADMIN:
            raise AuthorizationError(action, actor, "admin only")
