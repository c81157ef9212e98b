"""Order, bundle and report entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Union


class OrderStatus(str, Enum):
    """Lifecycle status shared by orders, bundles and bundle items."""

    PUBLISHED = "published"
    RESEARCHING = "researching"
    AWAITING_PAYMENT = "awaiting_payment"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
ACTIVE_STATUSES = frozenset(
    {OrderStatus.PUBLISHED, OrderStatus.RESEARCHING, OrderStatus.AWAITING_PAYMENT}
)


class Role(str, Enum):
    REQUESTER = "requester"
    AGENT = "agent"
    ADMIN = "admin"


class ReportMode(str, Enum):
    SINGLE = "single"
    PER_ITEM = "per_item"


@dataclass(frozen=True)
class Actor:
    """Who is calling: a role plus the caller's user id."""

    role: Role
    actor_id: str

    def __str__(self) -> str:
        return f"{self.role.value}:{self.actor_id}"


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


@dataclass
class Order:
    order_id: str
    requester_id: str
    product_name: str
    description: str
    media: list[str] = field(default_factory=list)
    status: OrderStatus = OrderStatus.PUBLISHED
    agent_id: str | None = None
    user_payment_verified: bool = False
    agent_payment_paid: bool = False
    payment_confirmed_by_requester: bool = False
    track_code: str | None = None
    cancel_reason: str | None = None
    cancelled_by: Role | None = None
    archived_by_requester: bool = False
    archived_by_agent: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    version: int = 1

    @property
    def is_bundle(self) -> bool:
        return False


@dataclass
class BundleItem:
    item_id: str
    product_name: str
    description: str
    media: list[str] = field(default_factory=list)
    status: OrderStatus = OrderStatus.PUBLISHED
    removed: bool = False
    removed_at: datetime | None = None


@dataclass
class BundleOrder(Order):
    """A single purchase request holding several independently priced items."""

    items: list[BundleItem] = field(default_factory=list)
    report_mode: ReportMode | None = None

    @property
    def is_bundle(self) -> bool:
        return True

    def active_items(self) -> list[BundleItem]:
        return [item for item in self.items if not item.removed]

    def item(self, item_id: str) -> BundleItem | None:
        for candidate in self.items:
            if candidate.item_id == item_id:
                return candidate
        return None


AnyOrder = Union[Order, BundleOrder]


@dataclass(frozen=True)
class EditHistoryEntry:
    edited_at: datetime
    previous_amount: Decimal
    new_amount: Decimal
    reason: str | None = None


@dataclass
class AgentReport:
    """An agent's priced quote plus supporting evidence.

    ``item_id`` is set for per-item bundle reports. ``item_amounts`` is the
    optional per-item breakdown of a single-mode bundle report.
    """

    order_id: str
    user_amount: Decimal
    item_id: str | None = None
    payment_link: str | None = None
    additional_media: list[str] = field(default_factory=list)
    additional_description: str | None = None
    quantity: int | None = None
    item_amounts: dict[str, Decimal] = field(default_factory=dict)
    submitted_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    edit_history: list[EditHistoryEntry] = field(default_factory=list)

    @property
    def version(self) -> int:
        return 1 + len(self.edit_history)


@dataclass
class ReportDraft:
    """Fields an agent supplies when submitting a report."""

    user_amount: Decimal | int | float | str
    payment_link: str | None = None
    additional_media: list[str] = field(default_factory=list)
    additional_description: str | None = None
    quantity: int | None = None
    item_amounts: dict[str, Decimal | int | float | str] = field(default_factory=dict)


@dataclass
class NewItem:
    product_name: str
    description: str
    media: list[str] = field(default_factory=list)
