"""Exception types raised by the settlement engine."""

from __future__ import annotations

from typing import Any


class MarketplaceError(Exception):
    """Base class for every rejected engine call."""


class InvalidTransition(MarketplaceError):
    """Status change not permitted from the order's current state."""

    def __init__(
        self,
        current: Any,
        attempted: Any,
        actor_role: Any,
        action: str,
        order_id: str | None = None,
    ) -> None:
        self.current = current
        self.attempted = attempted
        self.actor_role = actor_role
        self.action = action
        self.order_id = order_id
        super().__init__(
            f"{action} not permitted: {_value(current)} -> {_value(attempted)} "
            f"(actor_role={_value(actor_role)}, order_id={order_id})"
        )


class ConflictError(MarketplaceError):
    """Lost a concurrent claim. Refetch before retrying elsewhere."""

    def __init__(self, order_id: str, current: Any, holder_id: str | None) -> None:
        self.order_id = order_id
        self.current = current
        self.holder_id = holder_id
        super().__init__(f"Order {order_id} already claimed (status={_value(current)})")


class AuthorizationError(MarketplaceError):
    def __init__(self, action: str, actor: Any, reason: str) -> None:
        self.action = action
        self.actor = actor
        self.reason = reason
        super().__init__(f"{action} denied for {actor}: {reason}")


class ValidationError(MarketplaceError):
    """Malformed input (short cancel reason, non-positive amount, ...)."""


class AlreadyResolvedError(MarketplaceError):
    """Duplicate resolution of a reward request or duplicate reward credit."""


class QuotaExceeded(MarketplaceError):
    def __init__(self, reasons: list[str]) -> None:
        self.reasons = list(reasons)
        super().__init__(f"Order quota exceeded: {', '.join(self.reasons)}")


class NotFoundError(MarketplaceError, KeyError):
    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class InvariantViolation(MarketplaceError):
    """A write would break a structural invariant of a stored entity."""


def _value(item: Any) -> Any:
    return getattr(item, "value", item)
